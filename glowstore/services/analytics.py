"""
Revenue figures for the admin dashboard.

Only orders that were actually paid count as revenue; abandoned checkouts stay
pending/unpaid and are ignored.
"""
from collections import OrderedDict
from typing import Iterable, List

from glowstore.db.supabase import get_client
from glowstore.services.pricing import money, to_decimal, ZERO

PAID = {"paid", "refunded"}
STATUS_GROUPS = OrderedDict([
    ("Completed", {"delivered"}),
    ("In Progress", {"pending", "processing", "shipped"}),
    ("Cancelled", {"cancelled"}),
    ("Refunded", {"refunded"}),
])


def paid_orders(orders: Iterable[dict]) -> List[dict]:
    return [o for o in orders if o.get("payment_status") in PAID]


def _day(order: dict) -> str:
    return str(order.get("created_at") or "")[:10]


def daily_revenue(orders: Iterable[dict]) -> List[dict]:
    days = {}
    for o in orders:
        entry = days.setdefault(_day(o), {"date": _day(o), "revenue": ZERO, "count": 0})
        entry["revenue"] += to_decimal(o.get("total"))
        entry["count"] += 1
    return [dict(d, revenue=float(money(d["revenue"]))) for _, d in sorted(days.items())]


def revenue_by_product(orders: Iterable[dict], limit: int = 10) -> List[dict]:
    products = {}
    for o in orders:
        for item in o.get("order_items") or []:
            name = item.get("product_title") or str(item.get("product_id"))
            entry = products.setdefault(name, {"product": name, "revenue": ZERO, "quantity": 0})
            entry["revenue"] += to_decimal(item.get("product_price")) * int(item.get("quantity") or 0)
            entry["quantity"] += int(item.get("quantity") or 0)
    ranked = sorted(products.values(), key=lambda p: p["revenue"], reverse=True)[:limit]
    return [dict(p, revenue=float(money(p["revenue"]))) for p in ranked]


def revenue_by_status(orders: Iterable[dict]) -> List[dict]:
    out = []
    for name, statuses in STATUS_GROUPS.items():
        value = sum((to_decimal(o.get("total")) for o in orders if o.get("status") in statuses), ZERO)
        out.append({"name": name, "value": float(money(value))})
    return out


def status_distribution(orders: Iterable[dict]) -> List[dict]:
    names = ["pending", "processing", "shipped", "delivered", "cancelled", "refunded"]
    return [{"name": n.capitalize(), "value": sum(1 for o in orders if o.get("status") == n)} for n in names]


def revenue_report(orders: List[dict]) -> dict:
    paid = paid_orders(orders)
    total = sum((to_decimal(o.get("total")) for o in paid), ZERO)
    delivery = sum((to_decimal(o.get("delivery_charge")) for o in paid), ZERO)
    return {
        "total_revenue": float(money(total)),
        "total_orders": len(paid),
        "delivery_charges": float(money(delivery)),
        "subtotal_revenue": float(money(total - delivery)),
        "average_order_value": float(money(total / len(paid))) if paid else 0.0,
        "revenue_by_status": revenue_by_status(paid),
        "daily_revenue": daily_revenue(paid),
        "top_products": revenue_by_product(paid),
    }


def dashboard_stats() -> dict:
    client = get_client()
    products = client.table("products").select("id", count="exact").execute()
    users = client.table("profiles").select("id", count="exact").execute()
    orders = client.table("orders").select("total, status, payment_status, created_at").order("created_at").execute().data or []
    paid = paid_orders(orders)
    return {
        "totalProducts": products.count or 0,
        "totalOrders": len(orders),
        "totalRevenue": float(money(sum((to_decimal(o.get("total")) for o in paid), ZERO))),
        "totalUsers": users.count or 0,
        "pendingOrders": sum(1 for o in orders if o.get("status") == "pending"),
        "revenueByDay": daily_revenue(paid)[-7:],
        "statusDist": status_distribution(orders),
    }


def full_report() -> dict:
    res = get_client().table("orders").select("*, order_items(*)").order("created_at").execute()
    return revenue_report(res.data or [])
