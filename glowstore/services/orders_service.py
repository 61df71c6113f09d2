import logging
from datetime import datetime, timezone
from typing import List, Optional

from glowstore.core import config
from glowstore.core.errors import ConflictError, NotFoundError, StoreError, ValidationError
from glowstore.db.supabase import get_client, first
from glowstore.models.schemas import OrderCreate, CartLine
from glowstore.services import delivery, notifications, payments
from glowstore.services.pricing import money, quote, check_promo, to_decimal

logger = logging.getLogger(__name__)

ORDER_SELECT = "*, order_items(*)"
TERMINAL = {"cancelled", "refunded"}
# tracking status -> order status it implies
TRACKING_MOVES = {"shipped": "shipped", "out_for_delivery": "shipped", "delivered": "delivered"}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# --- Pricing against live rows ---

def price_cart(lines: List[CartLine]):
    """Re-price cart lines from the products table. Client prices are ignored."""
    if not lines:
        raise ValidationError("Cart is empty")
    client = get_client()
    ids = list({line.id for line in lines})
    res = client.table("products").select("*").in_("id", ids).execute()
    products = {str(p["id"]): p for p in res.data or []}

    wanted = {}
    for line in lines:
        wanted[line.id] = wanted.get(line.id, 0) + line.quantity

    items = []
    for product_id, qty in wanted.items():
        product = products.get(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        stock = product.get("stock")
        if stock is not None and int(stock) < qty:
            raise ConflictError(f"Only {stock} of '{product.get('title')}' left in stock")
        images = product.get("images") or []
        items.append({
            "product_id": product_id,
            "product_title": product.get("title"),
            "product_price": float(money(product.get("price"))),
            "quantity": qty,
            "image": images[0] if images else None,
        })
    return items


def get_promo(code: str) -> dict:
    client = get_client()
    promo = first(client.table("promos").select("*").eq("code", code.strip().upper()).execute())
    if promo is None:
        raise NotFoundError("Promo", code.upper())
    return promo


def build_quote(lines: List[CartLine], state: str, city: str, promo_code: Optional[str] = None):
    items = price_cart(lines)
    subtotal = sum((to_decimal(i["product_price"]) * i["quantity"] for i in items), to_decimal(0))
    charge = delivery.charge_amount(state, city, subtotal)
    promo = None
    if promo_code:
        promo = get_promo(promo_code)
        check_promo(promo, subtotal)
    return items, quote(subtotal, charge, promo)


# --- Reads ---

def get_order(order_id: str) -> dict:
    client = get_client()
    order = first(client.table("orders").select(ORDER_SELECT).eq("id", order_id).execute())
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


def list_orders(user_id: str) -> list:
    client = get_client()
    res = client.table("orders").select(ORDER_SELECT).eq("user_id", user_id).order("created_at", desc=True).execute()
    return res.data or []


def _update(order_id: str, fields: dict) -> dict:
    client = get_client()
    client.table("orders").update(fields).eq("id", order_id).execute()
    return get_order(order_id)


# --- Checkout ---

def create_order(payload: OrderCreate) -> dict:
    if not payload.email:
        raise ValidationError("email is required")
    state, city = payload.delivery.location()
    items, q = build_quote(payload.cart, state, city, payload.promo_code)

    if payload.client_total is not None:
        drift = abs(money(payload.client_total) - q.total)
        if drift > config.PRICE_TOLERANCE:
            logger.warning("Total mismatch for %s: client %s, server %s", payload.email, payload.client_total, q.total)
            raise ConflictError(f"Order total changed to {q.total:,.2f}, please review your cart")

    client = get_client()
    row = {
        "user_id": payload.userId,
        "email": payload.email,
        "status": "pending",
        "payment_status": "unpaid",
        "payment_provider": payload.payment_provider.value,
        "subtotal": float(q.subtotal),
        "delivery_charge": float(q.delivery_after_discount),
        "discount_amount": float(q.discount),
        "promo_code": q.promo_code,
        "total": float(q.total),
        "shipping_address": payload.delivery.shipping_address(),
        "tracking_info": [],
    }
    order = client.table("orders").insert(row).execute().data[0]
    order_id = order["id"]
    client.table("order_items").insert([dict(item, order_id=order_id) for item in items]).execute()
    logger.info("Order %s created for %s, total %s via %s", order_id, payload.email, q.total, row["payment_provider"])

    result = {"orderId": order_id, "quote": q.as_dict()}
    result.update(init_payment(dict(order, order_items=items)))
    return result


def init_payment(order: dict, attempt: int = 0) -> dict:
    """Open a provider transaction for the order; returns {"paystack": ...} or {"flutterwave": ...}."""
    provider = order.get("payment_provider") or "paystack"
    order_id = order["id"]
    success_url = f"{config.FRONTEND_URL}/checkout/success?orderId={order_id}&provider={provider}"
    if provider == "paystack":
        reference = payments.paystack_reference(order_id, attempt)
        data = payments.paystack_initialize(
            email=order["email"],
            amount=order["total"],
            reference=reference,
            callback_url=success_url,
            metadata={"order_id": order_id},
        )
        _record_reference(order_id, data.get("reference") or reference)
        return {"paystack": {
            "reference": data.get("reference") or reference,
            "authorization_url": data.get("authorization_url"),
            "access_code": data.get("access_code"),
        }}
    if provider == "flutterwave":
        tx_ref = payments.flutterwave_tx_ref(order_id)
        address = order.get("shipping_address") or {}
        data = payments.flutterwave_create_payment(
            tx_ref=tx_ref,
            amount=order["total"],
            email=order["email"],
            redirect_url=success_url,
            phone=address.get("phone"),
            description=f"Payment for order {str(order_id)[:8]}",
        )
        _record_reference(order_id, tx_ref)
        return {"flutterwave": data}
    raise ValidationError(f"Unsupported payment provider '{provider}'")


def _record_reference(order_id: str, reference: str):
    get_client().table("orders").update({"payment_reference": reference}).eq("id", order_id).execute()


def reinit_paystack(order_id: str) -> dict:
    order = get_order(order_id)
    if order.get("payment_status") == "paid":
        raise ConflictError("Order is already paid")
    if order.get("status") in TERMINAL:
        raise ConflictError(f"Order is {order['status']}")
    order["payment_provider"] = "paystack"
    attempt = int(datetime.now(timezone.utc).timestamp())
    result = init_payment(order, attempt=attempt)
    _update(order_id, {"payment_provider": "paystack"})
    return result


# --- Stock ---

def _adjust_stock(items: list, sign: int):
    client = get_client()
    for item in items:
        product = first(client.table("products").select("id, stock").eq("id", item["product_id"]).execute())
        if product is None or product.get("stock") is None:
            continue
        stock = max(0, int(product["stock"]) + sign * int(item.get("quantity") or 0))
        client.table("products").update({"stock": stock}).eq("id", item["product_id"]).execute()


# --- Payment state ---

def mark_paid(order_id: str, provider: str = "manual", provider_ref: str = None) -> dict:
    order = get_order(order_id)
    if order.get("payment_status") == "paid":
        return order
    if order.get("status") in TERMINAL:
        raise ConflictError(f"Cannot mark a {order['status']} order as paid")

    client = get_client()
    fields = {
        "payment_status": "paid",
        "paid_at": _now(),
        "payment_provider": provider or order.get("payment_provider"),
        "provider_ref": provider_ref,
    }
    # only one caller gets rows back; stock and promo follow the winner
    claimed = client.table("orders").update(fields).eq("id", order_id).neq("payment_status", "paid") \
        .neq("status", "cancelled").neq("status", "refunded").execute()
    if not claimed.data:
        logger.info("Order %s already paid or closed, nothing to do", order_id)
        return get_order(order_id)

    _adjust_stock(order.get("order_items") or [], -1)
    if order.get("promo_code"):
        redeemed = client.rpc("redeem_promo", {"p_code": order["promo_code"]}).execute()
        if redeemed.data is False:
            logger.warning("Promo %s hit its usage limit while paying order %s", order["promo_code"], order_id)

    client.table("orders").update({"status": "processing"}).eq("id", order_id).eq("status", "pending").execute()
    logger.info("Order %s marked paid via %s (%s)", order_id, provider, provider_ref)
    return get_order(order_id)


def verify_paystack(order_id: str, reference: str) -> dict:
    order = get_order(order_id)
    if not reference.startswith(payments.paystack_reference(order_id)):
        raise ValidationError("Reference does not belong to this order")
    data = payments.paystack_verify(reference)
    if not payments.paystack_paid(data, order["total"]):
        logger.warning("Paystack payment %s for order %s not accepted: %s", reference, order_id, data.get("status"))
        raise ValidationError(data.get("gateway_response") or "Payment not successful")
    return mark_paid(order_id, "paystack", reference)


def verify_flutterwave(order_id: str, transaction_id: str) -> dict:
    order = get_order(order_id)
    data = payments.flutterwave_verify(transaction_id)
    if not payments.flutterwave_paid(data, order["total"], payments.flutterwave_tx_ref(order_id)):
        logger.warning("Flutterwave transaction %s for order %s not accepted: %s", transaction_id, order_id, data.get("status"))
        raise ValidationError("Payment not successful")
    return mark_paid(order_id, "flutterwave", str(transaction_id))


def handle_paystack_event(event: dict) -> Optional[dict]:
    if event.get("event") != "charge.success":
        return None
    data = event.get("data") or {}
    order_id = (data.get("metadata") or {}).get("order_id")
    if not order_id:
        logger.warning("Paystack event without order_id: %s", data.get("reference"))
        return None
    order = get_order(order_id)
    if not payments.paystack_paid(data, order["total"]):
        logger.warning("Paystack event for order %s does not cover total", order_id)
        return None
    return mark_paid(order_id, "paystack", data.get("reference"))


def handle_flutterwave_event(event: dict) -> Optional[dict]:
    if event.get("event") != "charge.completed":
        return None
    data = event.get("data") or {}
    if data.get("status") != "successful":
        logger.info("Flutterwave charge %s for %s is %s, ignoring", data.get("id"), data.get("tx_ref"), data.get("status"))
        return None
    tx_ref = data.get("tx_ref") or ""
    if not tx_ref.startswith("FLW-") or not data.get("id"):
        return None
    # the webhook body is not signed; confirm with the API before trusting it
    return verify_flutterwave(tx_ref[len("FLW-"):], str(data["id"]))


# --- Fulfilment ---

def cancel_order(order_id: str) -> dict:
    order = get_order(order_id)
    if order.get("status") not in ("pending", "processing"):
        raise ConflictError("Only pending or processing orders can be cancelled")
    if order.get("payment_status") == "paid":
        _adjust_stock(order.get("order_items") or [], +1)
    logger.info("Order %s cancelled", order_id)
    return _update(order_id, {"status": "cancelled", "cancelled_at": _now()})


def refund_order(order_id: str) -> dict:
    order = get_order(order_id)
    if order.get("payment_status") != "paid":
        raise ConflictError("Only paid orders can be refunded")
    if order.get("status") not in ("delivered", "cancelled"):
        _adjust_stock(order.get("order_items") or [], +1)
    logger.info("Order %s refunded", order_id)
    return _update(order_id, {"status": "refunded", "payment_status": "refunded", "refunded_at": _now()})


def update_status(order_id: str, status: str) -> dict:
    if status == "cancelled":
        return cancel_order(order_id)
    if status == "refunded":
        return refund_order(order_id)
    order = get_order(order_id)
    current = order.get("status") or "pending"
    if current == status:
        return order
    if current in TERMINAL:
        raise ConflictError(f"Order is {current} and can no longer change")
    if current == "delivered":
        raise ConflictError("Delivered orders can only be refunded")
    return _update(order_id, {"status": status})


def add_tracking(order_id: str, status: str, message: str) -> dict:
    order = get_order(order_id)
    if order.get("status") in TERMINAL:
        raise ConflictError(f"Order is {order['status']}")
    entry = {"status": status, "message": message, "timestamp": _now()}
    fields = {"tracking_info": list(order.get("tracking_info") or []) + [entry]}
    target = TRACKING_MOVES.get(status)
    if target and order.get("status") != "delivered":
        fields["status"] = target
    order = _update(order_id, fields)

    phone = (order.get("shipping_address") or {}).get("phone")
    text = f"Order #{str(order_id)[:8]}: {status.replace('_', ' ')}. {message}"
    email_sent = notifications.send_email(
        order.get("email"), f"{config.STORE_NAME}: delivery update", notifications.tracking_update_html(order, status, message)
    )
    return {
        "order": order,
        "email_sent": email_sent,
        "whatsapp_sent": notifications.send_whatsapp(phone, text),
        "wa_link": notifications.wa_link(phone, text),
    }


NOTIFY_TEMPLATES = {
    "delivery_started": "Your order #{short} is on the way! Your delivery driver will arrive soon.",
    "refund": "Your refund for order #{short} has been processed. The amount will appear in your account within 3-5 business days.",
}


def notify(order_id: str, kind: str, message: Optional[str] = None) -> dict:
    order = get_order(order_id)
    short = str(order_id)[:8]
    if kind in NOTIFY_TEMPLATES:
        text = NOTIFY_TEMPLATES[kind].format(short=short)
    elif message and message.strip():
        text = message.strip()
    else:
        raise ValidationError("message is required for custom notifications")
    phone = (order.get("shipping_address") or {}).get("phone")
    link = notifications.wa_link(phone, text)
    if link is None:
        raise ValidationError("Order has no phone number")
    return {"sent": notifications.send_whatsapp(phone, text), "wa_link": link, "message": text}


def send_order_email(order_id: str, email_type: str, rider: Optional[dict] = None) -> dict:
    order = get_order(order_id)
    if email_type == "delivery_details":
        subject = f"{config.STORE_NAME}: your delivery details"
        html = notifications.delivery_details_html(order, rider)
    else:
        subject = f"{config.STORE_NAME}: order #{str(order_id)[:8]} confirmed"
        html = notifications.order_confirmation_html(order)
    if not notifications.send_email(order.get("email"), subject, html):
        raise StoreError("Email could not be sent", 502)
    return {"sent": True, "emailType": email_type}
