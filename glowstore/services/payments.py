"""
Thin Paystack / Flutterwave REST clients.

Amounts are passed in naira; Paystack wants kobo, Flutterwave wants major units.
"""
import logging
from typing import Optional, Dict, Any

import httpx

from glowstore.core import config
from glowstore.core.errors import PaymentProviderError, NotConfiguredError
from glowstore.services.pricing import money

logger = logging.getLogger(__name__)


def to_kobo(amount) -> int:
    return int(money(amount) * 100)


def _request(provider: str, method: str, url: str, secret: Optional[str], json: dict = None) -> Dict[str, Any]:
    if not secret:
        raise NotConfiguredError(f"{provider} is not configured")
    headers = {"Authorization": f"Bearer {secret}", "Content-Type": "application/json"}
    try:
        with httpx.Client(timeout=config.HTTP_TIMEOUT) as client:
            r = client.request(method, url, headers=headers, json=json)
    except httpx.RequestError as e:
        logger.error(f"{provider} network error calling {url}: {e}")
        raise PaymentProviderError(provider, "service unreachable")
    try:
        body = r.json()
    except ValueError:
        body = {}
    if r.status_code >= 400:
        message = body.get("message") or f"HTTP {r.status_code}"
        logger.warning(f"{provider} rejected {method} {url}: {r.status_code} {message}")
        raise PaymentProviderError(provider, message)
    return body


# --- Paystack ---

def paystack_reference(order_id: str, attempt: int = 0) -> str:
    return f"PS-{order_id}" if not attempt else f"PS-{order_id}-{attempt}"


def paystack_initialize(email: str, amount, reference: str, callback_url: str = None, metadata: dict = None) -> dict:
    payload = {
        "email": email,
        "amount": to_kobo(amount),
        "reference": reference,
        "currency": config.CURRENCY,
    }
    if callback_url:
        payload["callback_url"] = callback_url
    if metadata:
        payload["metadata"] = metadata
    body = _request("Paystack", "POST", f"{config.PAYSTACK_BASE_URL}/transaction/initialize",
                    config.PAYSTACK_SECRET_KEY, json=payload)
    if not body.get("status"):
        raise PaymentProviderError("Paystack", body.get("message") or "initialization failed")
    return body.get("data") or {}


def paystack_verify(reference: str) -> dict:
    body = _request("Paystack", "GET", f"{config.PAYSTACK_BASE_URL}/transaction/verify/{reference}",
                    config.PAYSTACK_SECRET_KEY)
    if not body.get("status"):
        raise PaymentProviderError("Paystack", body.get("message") or "verification failed")
    return body.get("data") or {}


def paystack_paid(data: dict, expected_total, currency: str = None) -> bool:
    if data.get("status") != "success":
        return False
    if (data.get("currency") or config.CURRENCY) != (currency or config.CURRENCY):
        return False
    return int(data.get("amount") or 0) >= to_kobo(expected_total)


# --- Flutterwave ---

def flutterwave_tx_ref(order_id: str) -> str:
    return f"FLW-{order_id}"


def flutterwave_create_payment(tx_ref: str, amount, email: str, redirect_url: str,
                               phone: str = None, name: str = None, description: str = None) -> dict:
    payload = {
        "tx_ref": tx_ref,
        "amount": float(money(amount)),
        "currency": config.CURRENCY,
        "redirect_url": redirect_url,
        "payment_options": "card,ussd,banktransfer",
        "customer": {"email": email, "phonenumber": phone or "", "name": name or email.split("@")[0]},
        "customizations": {"title": f"{config.STORE_NAME} Order", "description": description or "Order payment"},
    }
    body = _request("Flutterwave", "POST", f"{config.FLUTTERWAVE_BASE_URL}/payments",
                    config.FLUTTERWAVE_SECRET_KEY, json=payload)
    if body.get("status") != "success":
        raise PaymentProviderError("Flutterwave", body.get("message") or "payment creation failed")
    link = (body.get("data") or {}).get("link")
    if not link:
        raise PaymentProviderError("Flutterwave", "no payment link returned")
    return {"link": link, "tx_ref": tx_ref}


def flutterwave_verify(transaction_id: str) -> dict:
    body = _request("Flutterwave", "GET", f"{config.FLUTTERWAVE_BASE_URL}/transactions/{transaction_id}/verify",
                    config.FLUTTERWAVE_SECRET_KEY)
    if body.get("status") != "success":
        raise PaymentProviderError("Flutterwave", body.get("message") or "verification failed")
    return body.get("data") or {}


def flutterwave_paid(data: dict, expected_total, tx_ref: str, currency: str = None) -> bool:
    if data.get("status") != "successful":
        return False
    if data.get("tx_ref") != tx_ref:
        return False
    if (data.get("currency") or config.CURRENCY) != (currency or config.CURRENCY):
        return False
    return money(data.get("amount")) >= money(expected_total)


def flutterwave_ping() -> dict:
    if not config.FLUTTERWAVE_SECRET_KEY:
        return {"configured": False, "reachable": False}
    try:
        _request("Flutterwave", "GET", f"{config.FLUTTERWAVE_BASE_URL}/banks/NG", config.FLUTTERWAVE_SECRET_KEY)
    except PaymentProviderError as e:
        return {"configured": True, "reachable": False, "error": e.message}
    return {"configured": True, "reachable": True}
