import logging
import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Iterable, Optional
from urllib.parse import quote

import httpx

from glowstore.core import config

logger = logging.getLogger(__name__)


# --- Email ---

def _build_message(to: str, subject: str, html: str) -> MIMEMultipart:
    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = config.EMAIL_FROM
    message["To"] = to
    message.attach(MIMEText(html, "html"))
    return message


def _smtp():
    server = smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=config.HTTP_TIMEOUT)
    server.starttls()
    if config.SMTP_USER:
        server.login(config.SMTP_USER, config.SMTP_PASSWORD)
    return server


def email_configured() -> bool:
    return bool(config.SMTP_HOST and config.EMAIL_FROM)


def send_email(to: str, subject: str, html: str) -> bool:
    if not to:
        return False
    if not email_configured():
        logger.warning("SMTP not configured, skipping email to %s", to)
        return False
    try:
        with _smtp() as server:
            server.sendmail(config.EMAIL_FROM, to, _build_message(to, subject, html).as_string())
        logger.info("Email '%s' sent to %s", subject, to)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {to}: {e}")
        return False


def send_bulk(recipients: Iterable[str], subject: str, html: str) -> dict:
    """Send one message per recipient over a single SMTP connection."""
    recipients = [r for r in recipients if r]
    if not email_configured():
        logger.warning("SMTP not configured, newsletter not sent")
        return {"sent": 0, "failed": len(recipients)}
    sent = failed = 0
    try:
        with _smtp() as server:
            for to in recipients:
                try:
                    server.sendmail(config.EMAIL_FROM, to, _build_message(to, subject, html).as_string())
                    sent += 1
                except smtplib.SMTPRecipientsRefused as e:
                    logger.warning(f"Recipient refused {to}: {e}")
                    failed += 1
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Newsletter delivery aborted: {e}")
        failed = len(recipients) - sent
    return {"sent": sent, "failed": failed}


# --- Email bodies ---

def _money(value) -> str:
    return f"₦{float(value or 0):,.2f}"


def _text(value) -> str:
    return escape(str(value)) if value is not None else ""


def _short(order_id: str) -> str:
    return escape(str(order_id)[:8])


def _wrap(title: str, body: str) -> str:
    return f"""
    <html><body style="font-family: Arial, sans-serif; color: #333;">
        <h2 style="color: #556B2F;">{title}</h2>
        {body}
        <p>Thank you for shopping with {config.STORE_NAME}.</p>
    </body></html>
    """


def order_confirmation_html(order: dict) -> str:
    rows = "".join(
        f"<tr><td>{_text(it.get('product_title'))}</td><td>{_text(it.get('quantity', 1))}</td>"
        f"<td>{_money(it.get('product_price'))}</td></tr>"
        for it in order.get("order_items") or []
    )
    body = f"""
        <p>We have received your order <b>#{_short(order['id'])}</b>.</p>
        <table cellpadding="6" style="border-collapse: collapse;">
            <tr><th align="left">Item</th><th>Qty</th><th>Price</th></tr>
            {rows}
        </table>
        <p>Delivery: {_money(order.get('delivery_charge'))}<br>
        Discount: {_money(order.get('discount_amount'))}<br>
        <b>Total: {_money(order.get('total'))}</b></p>
        <p><a href="{config.FRONTEND_URL}/order/{order['id']}">View your order</a></p>
    """
    return _wrap("Order confirmed", body)


def delivery_details_html(order: dict, rider: Optional[dict] = None) -> str:
    address = order.get("shipping_address") or {}
    rider_html = ""
    if rider:
        rider_html = f"""
        <p><b>Your rider</b><br>
        Name: {_text(rider.get('name')) or '-'}<br>
        Phone: {_text(rider.get('phone')) or '-'}<br>
        Vehicle: {_text(rider.get('vehicle')) or '-'}</p>
        """
    body = f"""
        <p>Your order <b>#{_short(order['id'])}</b> is on its way to
        {_text(address.get('confirmed_address') or address.get('raw_address'))}
        {_text(address.get('city'))} {_text(address.get('state'))}.</p>
        {rider_html}
    """
    return _wrap("Your delivery is on the way", body)


def tracking_update_html(order: dict, status: str, message: str) -> str:
    body = f"""
        <p>Order <b>#{_short(order['id'])}</b>: <b>{_text(status.replace('_', ' '))}</b></p>
        <p>{_text(message)}</p>
        <p><a href="{config.FRONTEND_URL}/order/{order['id']}">Track your order</a></p>
    """
    return _wrap("Delivery update", body)


# --- WhatsApp ---

def normalize_phone(phone: Optional[str]) -> str:
    digits = re.sub(r"\D", "", phone or "")
    if not digits:
        return ""
    if digits.startswith("0"):
        digits = config.DEFAULT_COUNTRY_CODE + digits[1:]
    return digits


def wa_link(phone: Optional[str], text: str) -> Optional[str]:
    number = normalize_phone(phone)
    if not number:
        return None
    return f"https://wa.me/{number}?text={quote(text)}"


def send_whatsapp(phone: Optional[str], text: str) -> bool:
    """Push through the relay webhook when one is configured."""
    number = normalize_phone(phone)
    if not number or not config.WHATSAPP_WEBHOOK_URL:
        return False
    payload = {"to": number, "message": text, "token": config.WHATSAPP_TOKEN or None}
    try:
        r = httpx.post(config.WHATSAPP_WEBHOOK_URL, json=payload, timeout=config.HTTP_TIMEOUT)
    except httpx.RequestError as e:
        logger.warning(f"WhatsApp relay unreachable: {e}")
        return False
    if r.status_code >= 400:
        logger.warning("WhatsApp relay returned %s", r.status_code)
        return False
    return True
