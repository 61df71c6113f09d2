from typing import Optional
from fastapi import APIRouter, Depends, Query
from glowstore.api.deps import require_admin
from glowstore.core.errors import NotFoundError, ValidationError
from glowstore.db.supabase import get_client, first
from glowstore.models.schemas import (
    DeliveryChargeIn, DeliveryChargeUpdate, DriverIn, DriverUpdate, ProductIn, ProductUpdate,
)
from glowstore.services import analytics, orders_service, payments

router = APIRouter(dependencies=[Depends(require_admin)])


def _insert(table: str, row: dict) -> dict:
    return get_client().table(table).insert(row).execute().data[0]

def _update(table: str, what: str, row_id: str, changes: dict) -> dict:
    if not changes:
        raise ValidationError("Nothing to update")
    res = get_client().table(table).update(changes).eq("id", row_id).execute()
    if not res.data:
        raise NotFoundError(what, row_id)
    return res.data[0]

def _delete(table: str, what: str, row_id: str) -> dict:
    res = get_client().table(table).delete().eq("id", row_id).execute()
    if not res.data:
        raise NotFoundError(what, row_id)
    return {"deleted": True}


# --- Orders ---

@router.get("/orders")
def all_orders(status: Optional[str] = None, search: Optional[str] = None):
    query = get_client().table("orders").select(orders_service.ORDER_SELECT)
    if status and status != "all":
        query = query.eq("status", status)
    orders = query.order("created_at", desc=True).execute().data or []
    if search:
        needle = search.lower()
        orders = [o for o in orders if needle in (o.get("email") or "").lower() or needle in str(o.get("id"))]
    return orders

@router.post("/orders/{order_id}/cancel")
def cancel_order(order_id: str):
    return orders_service.cancel_order(order_id)

@router.post("/orders/{order_id}/refund")
def refund_order(order_id: str):
    return orders_service.refund_order(order_id)

@router.post("/orders/{order_id}/paystack-init")
def paystack_init(order_id: str):
    return orders_service.reinit_paystack(order_id)

@router.get("/test-flutterwave")
def test_flutterwave():
    return payments.flutterwave_ping()


# --- Drivers ---

@router.get("/drivers")
def list_drivers():
    return get_client().table("drivers").select("*").order("created_at", desc=True).execute().data or []

@router.post("/drivers", status_code=201)
def create_driver(payload: DriverIn):
    return _insert("drivers", payload.model_dump())

@router.put("/drivers/{driver_id}")
def update_driver(driver_id: str, payload: DriverUpdate):
    return _update("drivers", "Driver", driver_id, payload.model_dump(exclude_unset=True))

@router.delete("/drivers/{driver_id}")
def delete_driver(driver_id: str):
    return _delete("drivers", "Driver", driver_id)


# --- Delivery charges ---

@router.get("/delivery-charges")
def list_charges():
    return get_client().table("delivery_charges").select("*").order("state").execute().data or []

@router.post("/delivery-charges", status_code=201)
def create_charge(payload: DeliveryChargeIn):
    row = payload.model_dump()
    row["state"] = row["state"].strip()
    row["city"] = (row.get("city") or "").strip() or None
    return _insert("delivery_charges", row)

@router.put("/delivery-charges/{charge_id}")
def update_charge(charge_id: str, payload: DeliveryChargeUpdate):
    return _update("delivery_charges", "Delivery charge", charge_id, payload.model_dump(exclude_unset=True))

@router.delete("/delivery-charges/{charge_id}")
def delete_charge(charge_id: str):
    return _delete("delivery_charges", "Delivery charge", charge_id)


# --- Products ---

@router.post("/products", status_code=201)
def create_product(payload: ProductIn):
    return _insert("products", payload.model_dump())

@router.put("/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdate):
    return _update("products", "Product", product_id, payload.model_dump(exclude_unset=True))

@router.delete("/products/{product_id}")
def delete_product(product_id: str):
    return _delete("products", "Product", product_id)


# --- Dashboard ---

@router.get("/stats")
def stats():
    return analytics.dashboard_stats()

@router.get("/revenue")
def revenue():
    return analytics.full_report()

@router.get("/customers/{user_id}")
def customer_detail(user_id: str, limit: int = Query(50, ge=1, le=500)):
    client = get_client()
    profile = first(client.table("profiles").select("*").eq("id", user_id).execute())
    if profile is None:
        raise NotFoundError("Customer", user_id)
    orders = client.table("orders").select(orders_service.ORDER_SELECT).eq("user_id", user_id) \
        .order("created_at", desc=True).limit(limit).execute().data or []
    reviews = client.table("reviews").select("*").eq("user_id", user_id).order("created_at", desc=True).execute().data or []
    paid = analytics.paid_orders(orders)
    return {
        "profile": profile,
        "orders": orders,
        "reviews": reviews,
        "total_spent": analytics.revenue_report(paid)["total_revenue"],
    }
