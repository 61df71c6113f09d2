import copy
import re
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

import glowstore.db.supabase as supabase_db
from glowstore.core import config
from glowstore.main import app

ADMIN_SECRET = "test-admin-secret"
ADMIN = {"x-admin-secret": ADMIN_SECRET}

EMBED = re.compile(r"(\w+)\(\*\)")


class FakeQuery:
    """Just enough of the postgrest query builder for the store's queries."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.count = None
        self.payload = None
        self.filters = []
        self.order_by = None
        self.max_rows = None

    def select(self, columns="*", count=None):
        self.op, self.columns, self.count = "select", columns, count
        return self

    def insert(self, rows):
        self.op, self.payload = "insert", rows
        return self

    def update(self, fields):
        self.op, self.payload = "update", fields
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda r: r.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda r: r.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda r: r.get(column) in values)
        return self

    def ilike(self, column, pattern):
        regex = re.compile("^" + ".*".join(re.escape(p) for p in pattern.split("%")) + "$", re.IGNORECASE)
        self.filters.append(lambda r: r.get(column) is not None and bool(regex.match(str(r.get(column)))))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.max_rows = n
        return self

    def _matches(self):
        return [r for r in self.db.tables.setdefault(self.table, []) if all(f(r) for f in self.filters)]

    def execute(self):
        rows = self.db.tables.setdefault(self.table, [])
        if self.op == "insert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            out = [self.db.add(self.table, row) for row in payload]
            return SimpleNamespace(data=copy.deepcopy(out), count=None)
        if self.op == "update":
            matched = self._matches()
            for r in matched:
                r.update(copy.deepcopy(self.payload))
            return SimpleNamespace(data=copy.deepcopy(matched), count=None)
        if self.op == "delete":
            matched = self._matches()
            self.db.tables[self.table] = [r for r in rows if r not in matched]
            return SimpleNamespace(data=copy.deepcopy(matched), count=None)

        matched = copy.deepcopy(self._matches())
        if self.order_by:
            column, desc = self.order_by
            matched.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
        if self.max_rows is not None:
            matched = matched[: self.max_rows]
        for name in EMBED.findall(self.columns):
            fk = self.table[:-1] + "_id"
            for r in matched:
                r[name] = [copy.deepcopy(c) for c in self.db.tables.get(name, []) if c.get(fk) == r.get("id")]
        return SimpleNamespace(data=matched, count=len(matched) if self.count else None)


class FakeRpc:
    def __init__(self, db, name, params):
        self.db, self.name, self.params = db, name, params

    def execute(self):
        self.db.rpc_calls.append((self.name, self.params))
        if self.name == "redeem_promo":
            for promo in self.db.tables.get("promos", []):
                if promo["code"] == self.params["p_code"]:
                    if promo.get("max_uses") is not None and promo.get("uses", 0) >= promo["max_uses"]:
                        return SimpleNamespace(data=False)
                    promo["uses"] = promo.get("uses", 0) + 1
                    return SimpleNamespace(data=True)
            return SimpleNamespace(data=False)
        raise AssertionError(f"unexpected rpc {self.name}")


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.rpc_calls = []
        self.clock = datetime(2025, 11, 1, 9, 0, tzinfo=timezone.utc)

    def add(self, table, row):
        row = copy.deepcopy(row)
        row.setdefault("id", str(uuid.uuid4()))
        self.clock += timedelta(minutes=1)
        row.setdefault("created_at", self.clock.isoformat())
        self.tables.setdefault(table, []).append(row)
        return row

    def seed(self, table, *rows):
        added = [self.add(table, r) for r in rows]
        return added[0] if len(added) == 1 else added

    def row(self, table, row_id):
        return next(r for r in self.tables.get(table, []) if r["id"] == row_id)

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params):
        return FakeRpc(self, name, params)


@pytest.fixture
def db(monkeypatch):
    fake = FakeSupabase()
    monkeypatch.setattr(supabase_db, "supabase", fake)
    monkeypatch.setattr(config, "ADMIN_SECRET", ADMIN_SECRET)
    monkeypatch.setattr(config, "DEFAULT_DELIVERY_CHARGE", Decimal("0"))
    monkeypatch.setattr(config, "SMTP_HOST", None)
    monkeypatch.setattr(config, "WHATSAPP_WEBHOOK_URL", "")
    return fake


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def catalog(db):
    """Two products and Lagos delivery rates."""
    serum, soap = db.seed(
        "products",
        {"title": "Glow Serum", "price": 5000, "stock": 10, "images": ["serum.jpg"], "category": "skincare", "featured": True},
        {"title": "Black Soap", "price": 2500, "stock": 3, "images": [], "category": "bath", "featured": False},
    )
    db.seed(
        "delivery_charges",
        {"state": "Lagos", "city": "Ikeja", "charge": 2000, "min_subtotal": None, "notes": "1-2 days"},
        {"state": "Lagos", "city": None, "charge": 3000, "min_subtotal": 50000, "notes": None},
    )
    return SimpleNamespace(serum=serum, soap=soap)


@pytest.fixture
def promos(db):
    save10, freeship = db.seed(
        "promos",
        {"code": "SAVE10", "discount_type": "percent", "value": 10, "apply_to_delivery": False,
         "min_subtotal": 0, "max_uses": None, "uses": 0, "active": True, "expires_at": None},
        {"code": "FREESHIP", "discount_type": "fixed", "value": 5000, "apply_to_delivery": True,
         "min_subtotal": 10000, "max_uses": 5, "uses": 0, "active": True, "expires_at": None},
    )
    return SimpleNamespace(save10=save10, freeship=freeship)


@pytest.fixture
def paystack(monkeypatch):
    """Record Paystack initialize calls instead of hitting the API."""
    from glowstore.services import payments
    calls = []

    def initialize(**kwargs):
        calls.append(kwargs)
        return {"reference": kwargs["reference"], "authorization_url": "https://checkout.paystack.com/abc", "access_code": "abc"}

    monkeypatch.setattr(payments, "paystack_initialize", initialize)
    return calls


def cart_payload(catalog, **overrides):
    body = {
        "cart": [
            {"id": catalog.serum["id"], "name": "Glow Serum", "price": 5000, "quantity": 2, "image": "serum.jpg"},
            {"id": catalog.soap["id"], "name": "Black Soap", "price": 2500, "quantity": 1},
        ],
        "delivery": {"address": {"raw_address": "12 Allen Ave", "phone": "08031234567", "city": "Ikeja", "state": "Lagos"}},
        "payment_provider": "paystack",
        "userId": "user-1",
        "email": "ada@example.com",
    }
    body.update(overrides)
    return body
