"""
Checkout arithmetic: cart subtotal, promo eligibility and discount, and the
final order total. Everything is Decimal, rounded half-up to kobo.
"""
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Iterable

from glowstore.core.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    """Lenient numeric coercion; anything non-numeric counts as 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO
    if not d.is_finite():
        return ZERO
    return d


def money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def clamp(value: Decimal, upper: Decimal) -> Decimal:
    return max(ZERO, min(value, upper))


def cart_subtotal(lines: Iterable[dict]) -> Decimal:
    total = ZERO
    for line in lines:
        total += to_decimal(line.get("price")) * to_decimal(line.get("quantity"))
    return money(max(ZERO, total))


def parse_expiry(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        # a bare date means "valid through that day"
        if len(text) == 10:
            return datetime.fromisoformat(text).replace(tzinfo=timezone.utc) + timedelta(days=1)
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def check_promo(promo: dict, subtotal, now: datetime = None) -> None:
    """Raise ValidationError when the promo cannot be used for this subtotal."""
    now = now or datetime.now(timezone.utc)
    if promo.get("active") is False:
        raise ValidationError("Promo is not active")
    try:
        expires = parse_expiry(promo.get("expires_at"))
    except ValueError:
        raise ValidationError("Promo has an invalid expiry date")
    if expires is not None and now >= expires:
        raise ValidationError("Promo has expired")
    min_subtotal = to_decimal(promo.get("min_subtotal"))
    if min_subtotal > 0 and to_decimal(subtotal) < min_subtotal:
        raise ValidationError(f"Order subtotal must be at least {min_subtotal:,.2f} to use this promo")
    max_uses = promo.get("max_uses")
    if max_uses is not None and int(promo.get("uses") or 0) >= int(max_uses):
        raise ValidationError("Promo usage limit reached")


def compute_discount(promo: Optional[dict], subtotal, delivery) -> Decimal:
    if not promo:
        return ZERO
    value = to_decimal(promo.get("value"))
    base = money(delivery) if promo.get("apply_to_delivery") else money(subtotal)
    kind = promo.get("discount_type")
    if kind == "percent":
        amount = money(value / HUNDRED * base)
    elif kind == "fixed":
        amount = value
    else:
        return ZERO
    return money(clamp(amount, base))


@dataclass
class Quote:
    subtotal: Decimal
    delivery_charge: Decimal
    discount: Decimal
    subtotal_after_discount: Decimal
    delivery_after_discount: Decimal
    total: Decimal
    promo_code: Optional[str] = None
    apply_to_delivery: bool = False

    def as_dict(self) -> dict:
        out = asdict(self)
        for k, v in out.items():
            if isinstance(v, Decimal):
                out[k] = float(v)
        return out


def quote(subtotal, delivery, promo: Optional[dict] = None) -> Quote:
    subtotal = money(max(ZERO, to_decimal(subtotal)))
    delivery = money(max(ZERO, to_decimal(delivery)))
    discount = compute_discount(promo, subtotal, delivery)
    on_delivery = bool(promo and promo.get("apply_to_delivery"))
    sub_after = subtotal if on_delivery else max(ZERO, subtotal - discount)
    del_after = max(ZERO, delivery - discount) if on_delivery else delivery
    return Quote(
        subtotal=subtotal,
        delivery_charge=delivery,
        discount=discount,
        subtotal_after_discount=sub_after,
        delivery_after_discount=del_after,
        total=money(max(ZERO, sub_after + del_after)),
        promo_code=promo.get("code") if promo else None,
        apply_to_delivery=on_delivery,
    )
