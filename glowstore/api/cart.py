from fastapi import APIRouter
from glowstore.models.schemas import CartQuoteRequest
from glowstore.services.orders_service import build_quote

router = APIRouter()

@router.post("/quote")
def cart_quote(payload: CartQuoteRequest):
    """Price a client-side cart against live products, delivery rates and an optional promo."""
    items, q = build_quote(payload.cart, payload.state or "", payload.city or "", payload.promo_code)
    return {"items": items, **q.as_dict()}
