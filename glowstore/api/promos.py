from fastapi import APIRouter, Depends, Query
from glowstore.api.deps import require_admin
from glowstore.core.errors import ConflictError, NotFoundError, ValidationError
from glowstore.db.supabase import get_client, first
from glowstore.models.schemas import PromoIn, PromoUpdate
from glowstore.services.orders_service import get_promo
from glowstore.services.pricing import check_promo, compute_discount

router = APIRouter()

@router.get("/validate")
def validate_promo(code: str = Query(..., min_length=1), subtotal: float = Query(0, ge=0)):
    promo = get_promo(code)
    check_promo(promo, subtotal)
    # delivery promos depend on the fee, which the client applies itself
    discount = 0.0 if promo.get("apply_to_delivery") else float(compute_discount(promo, subtotal, 0))
    return {"valid": True, "promo": promo, "discount": discount}

@router.get("")
def list_promos(admin=Depends(require_admin)):
    res = get_client().table("promos").select("*").order("created_at", desc=True).execute()
    return {"promos": res.data or []}

@router.post("", status_code=201)
def create_promo(payload: PromoIn, admin=Depends(require_admin)):
    client = get_client()
    if first(client.table("promos").select("code").eq("code", payload.code).execute()):
        raise ConflictError(f"Promo {payload.code} already exists")
    row = payload.model_dump(mode="json")
    row["uses"] = 0
    ins = client.table("promos").insert(row).execute()
    return {"promo": ins.data[0]}

@router.put("/{code}")
def update_promo(code: str, payload: PromoUpdate, admin=Depends(require_admin)):
    changes = payload.model_dump(mode="json", exclude_unset=True)
    if not changes:
        raise ValidationError("Nothing to update")
    client = get_client()
    res = client.table("promos").update(changes).eq("code", code.upper()).execute()
    if not res.data:
        raise NotFoundError("Promo", code.upper())
    return {"promo": res.data[0]}

@router.delete("/{code}")
def delete_promo(code: str, admin=Depends(require_admin)):
    res = get_client().table("promos").delete().eq("code", code.upper()).execute()
    if not res.data:
        raise NotFoundError("Promo", code.upper())
    return {"deleted": True}
