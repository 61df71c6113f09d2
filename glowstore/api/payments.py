import json
import logging
from typing import Optional
from fastapi import APIRouter, Header, HTTPException, Query, Request
from starlette.concurrency import run_in_threadpool
from glowstore.core.errors import StoreError, PaymentProviderError, NotConfiguredError
from glowstore.core.security import paystack_signature_valid, flutterwave_hash_valid
from glowstore.services import orders_service

logger = logging.getLogger(__name__)

router = APIRouter()
webhooks = APIRouter()

@router.get("/paystack/verify")
def verify_paystack(reference: str = Query(...), orderId: str = Query(...)):
    return orders_service.verify_paystack(orderId, reference)

@router.get("/flutterwave/verify")
def verify_flutterwave(transaction_id: str = Query(...), orderId: str = Query(...)):
    return orders_service.verify_flutterwave(orderId, transaction_id)


async def _json_body(request: Request) -> dict:
    try:
        return json.loads(await request.body() or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

async def _handle(provider: str, handler, event: dict):
    """Run an event handler; business rejections are acknowledged so the provider stops retrying."""
    try:
        return await run_in_threadpool(handler, event)
    except (PaymentProviderError, NotConfiguredError):
        # transient: let the provider redeliver
        raise
    except StoreError as e:
        logger.warning(f"{provider} webhook ignored: {e.message}")
        return None

@webhooks.post("/paystack")
async def paystack_webhook(request: Request, x_paystack_signature: Optional[str] = Header(None)):
    raw = await request.body()
    if not paystack_signature_valid(raw, x_paystack_signature):
        logger.warning("Rejected Paystack webhook with bad signature")
        raise HTTPException(status_code=401, detail="Invalid signature")
    event = await _json_body(request)
    order = await _handle("Paystack", orders_service.handle_paystack_event, event)
    return {"received": True, "orderId": order["id"] if order else None}

@webhooks.post("/flutterwave")
async def flutterwave_webhook(request: Request, verif_hash: Optional[str] = Header(None)):
    if not flutterwave_hash_valid(verif_hash):
        logger.warning("Rejected Flutterwave webhook with bad hash")
        raise HTTPException(status_code=401, detail="Invalid signature")
    event = await _json_body(request)
    order = await _handle("Flutterwave", orders_service.handle_flutterwave_event, event)
    return {"received": True, "orderId": order["id"] if order else None}
