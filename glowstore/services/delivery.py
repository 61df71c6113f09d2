import logging
from decimal import Decimal
from typing import Iterable, Optional

from glowstore.core import config
from glowstore.core.errors import ValidationError
from glowstore.db.supabase import get_client
from glowstore.services.pricing import to_decimal, money, ZERO

logger = logging.getLogger(__name__)


def _norm(value: Optional[str]) -> str:
    return " ".join((value or "").split()).lower()


def resolve_charge(rows: Iterable[dict], state: str, city: str, subtotal=0) -> dict:
    """
    Pick the delivery charge for a state/city pair.
    A city row beats a state-wide row (no city); with neither the default applies.
    A row's min_subtotal is a free-delivery threshold.
    """
    state_n, city_n = _norm(state), _norm(city)
    city_row = state_row = None
    for row in rows:
        if _norm(row.get("state")) != state_n:
            continue
        row_city = _norm(row.get("city"))
        if row_city and row_city == city_n and city_row is None:
            city_row = row
        elif not row_city and state_row is None:
            state_row = row

    row = city_row or state_row
    if row is None:
        return {"charge": float(money(config.DEFAULT_DELIVERY_CHARGE)), "source": "default", "free": False, "row": None}

    charge = money(max(ZERO, to_decimal(row.get("charge"))))
    threshold = to_decimal(row.get("min_subtotal"))
    free = threshold > 0 and to_decimal(subtotal) >= threshold
    return {
        "charge": 0.0 if free else float(charge),
        "source": "city" if row is city_row else "state",
        "free": free,
        "row": row,
    }


def lookup_charge(state: str, city: str, subtotal=0) -> dict:
    if not (state or "").strip() or not (city or "").strip():
        raise ValidationError("state and city are required")
    client = get_client()
    res = client.table("delivery_charges").select("*").ilike("state", state.strip()).execute()
    result = resolve_charge(res.data or [], state, city, subtotal)
    if result["source"] == "default":
        logger.info("No delivery charge configured for %s / %s, using default", city, state)
    return result


def charge_amount(state: str, city: str, subtotal=0) -> Decimal:
    """Delivery fee as Decimal; unknown locations fall back to the default charge."""
    if not (state or "").strip() or not (city or "").strip():
        return money(config.DEFAULT_DELIVERY_CHARGE)
    return money(lookup_charge(state, city, subtotal)["charge"])
