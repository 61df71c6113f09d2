from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from glowstore.api.deps import require_admin, optional_user_id
from glowstore.models.schemas import (
    OrderCreate, StatusUpdate, TrackingUpdate, NotifyRequest, EmailRequest, MarkPaidRequest,
)
from glowstore.services import orders_service

router = APIRouter()

@router.post("/create", status_code=201)
def create_order(payload: OrderCreate):
    return orders_service.create_order(payload)

@router.get("")
def my_orders(userId: Optional[str] = Query(None), token_user: Optional[str] = Depends(optional_user_id)):
    user_id = token_user or userId
    if not user_id:
        raise HTTPException(status_code=400, detail="userId required")
    return orders_service.list_orders(user_id)

@router.get("/{order_id}")
def get_order(order_id: str):
    return orders_service.get_order(order_id)

@router.put("/{order_id}/status")
def update_status(order_id: str, payload: StatusUpdate, admin=Depends(require_admin)):
    return orders_service.update_status(order_id, payload.status.value)

@router.post("/{order_id}/mark-paid")
def mark_paid(order_id: str, payload: MarkPaidRequest, admin=Depends(require_admin)):
    return orders_service.mark_paid(order_id, payload.provider, payload.provider_ref)

@router.post("/{order_id}/track")
def track(order_id: str, payload: TrackingUpdate, admin=Depends(require_admin)):
    return orders_service.add_tracking(order_id, payload.status.value, payload.message)

@router.post("/{order_id}/notify")
def notify(order_id: str, payload: NotifyRequest, admin=Depends(require_admin)):
    return orders_service.notify(order_id, payload.type, payload.message)

@router.post("/{order_id}/send-email")
def send_email(order_id: str, payload: EmailRequest, admin=Depends(require_admin)):
    rider = payload.riderInfo.model_dump() if payload.riderInfo else None
    return orders_service.send_order_email(order_id, payload.emailType, rider)
