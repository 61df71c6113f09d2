import logging
from fastapi import APIRouter
from glowstore.core.errors import NotFoundError, ValidationError
from glowstore.db.supabase import get_client, first
from glowstore.models.schemas import ReviewIn
from glowstore.services.orders_service import get_order

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("", status_code=201)
def create_review(payload: ReviewIn):
    client = get_client()
    if first(client.table("products").select("id").eq("id", payload.product_id).execute()) is None:
        raise NotFoundError("Product", payload.product_id)
    if payload.order_id:
        order = get_order(payload.order_id)
        if order.get("user_id") and str(order["user_id"]) != payload.user_id:
            raise ValidationError("Order belongs to another customer")
        product_ids = {str(i.get("product_id")) for i in order.get("order_items") or []}
        if payload.product_id not in product_ids:
            raise ValidationError("Product is not part of this order")
    ins = client.table("reviews").insert(payload.model_dump(exclude_none=True)).execute()
    logger.info("Review added for product %s by %s", payload.product_id, payload.user_id)
    return ins.data[0]
