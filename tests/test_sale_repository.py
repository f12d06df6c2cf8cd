"""
Tests for the Supabase adapters (`repositories/`) without a network.

A small fake of the postgrest query builder stores rows in memory and applies
`eq` filters, `order` and `limit`, which is enough to exercise:
- row <-> Sale mapping
- versioned compare-and-swap updates (ConflictError vs SaleNotFoundError)
- delete semantics
- failure translation to PersistenceError
- audit / notification / fulfillment payloads
- audit trail reads (ordered, limited)
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from domain.errors import ConflictError, PersistenceError, SaleNotFoundError
from domain.events import AuditEntry, DomainNotification
from domain.invoice import build_invoice
from domain.status import SaleStatus
from repositories.event_repository import SupabaseAuditSink, SupabaseNotificationSink
from repositories.fulfillment_repository import SupabaseFulfillmentGateway
from repositories.rows import parse_utc_datetime
from repositories.sale_repository import SupabaseSaleRepository, row_to_sale
from fakes import make_sale

NOW = datetime(2025, 6, 1, 8, 0, tzinfo=timezone.utc)


class _Response:
    def __init__(self, data):
        self.data = data
        self.error = None


class _Query:
    def __init__(self, db, table):
        self._db = db
        self._table = table
        self._op = "select"
        self._payload = None
        self._filters = []
        self._limit = None
        self._order = None

    def select(self, _columns):
        self._op = "select"
        return self

    def update(self, payload):
        self._op, self._payload = "update", payload
        return self

    def insert(self, payload):
        self._op, self._payload = "insert", payload
        return self

    def delete(self):
        self._op = "delete"
        return self

    def eq(self, column, value):
        self._filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def execute(self):
        if self._db.fail:
            raise ConnectionError("connection refused")
        rows = self._db.tables.setdefault(self._table, [])
        if self._op == "insert":
            rows.append(dict(self._payload))
            return _Response([dict(self._payload)])

        matched = [r for r in rows if all(r.get(c) == v for c, v in self._filters)]
        if self._op == "select":
            if self._order is not None:
                column, desc = self._order
                matched = sorted(matched, key=lambda r: r[column], reverse=desc)
            return _Response([dict(r) for r in matched[: self._limit]])
        if self._op == "update":
            for r in matched:
                r.update(self._payload)
            return _Response([dict(r) for r in matched])
        for r in matched:
            rows.remove(r)
        return _Response([dict(r) for r in matched])


class _FakeClient:
    def __init__(self):
        self.tables = {}
        self.rpcs = []
        self.fail = False

    def table(self, name):
        return _Query(self, name)

    def rpc(self, name, params):
        self.rpcs.append((name, params))
        client = self

        class _Call:
            def execute(self):
                if client.fail:
                    raise ConnectionError("connection refused")
                return _Response(True)

        return _Call()


def _row(**overrides):
    row = {
        "sale_id": "S-1",
        "status": "pending",
        "customer_id": "C-1",
        "product_id": "P-1",
        "quantity": 2,
        "unit_price": "12.50",
        "total_value": "25.00",
        "warranty_period_months": 6,
        "service_contract_id": None,
        "version": 3,
        "created_at_utc": "2025-01-01T00:00:00Z",
        "updated_at_utc": "2025-01-02T00:00:00+00:00",
    }
    row.update(overrides)
    return row


def test_row_to_sale_maps_columns() -> None:
    """Verify column names, Decimal parsing and UTC timestamps."""

    sale = row_to_sale(_row(service_contract_id="SC-1"))

    assert sale.sale_id == "S-1"
    assert sale.status is SaleStatus.PENDING
    assert sale.unit_price == Decimal("12.50")
    assert sale.total_value == Decimal("25.00")
    assert sale.warranty_period_months == 6
    assert sale.linked_contract_ref == "SC-1"
    assert sale.version == 3
    assert sale.created_at == datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_parse_utc_datetime_treats_naive_values_as_utc() -> None:
    """Verify naive timestamps are assumed to be UTC."""

    assert parse_utc_datetime("2025-01-01T10:00:00") == datetime(2025, 1, 1, 10, tzinfo=timezone.utc)
    with pytest.raises(TypeError):
        parse_utc_datetime(12345)


def test_update_status_is_conditional_on_version() -> None:
    """Verify a matching version updates and bumps, a stale one conflicts."""

    client = _FakeClient()
    client.tables["product_sales"] = [_row()]
    repo = SupabaseSaleRepository(client)

    updated = repo.update_status("S-1", SaleStatus.CONFIRMED, expected_version=3)
    assert updated.status is SaleStatus.CONFIRMED
    assert updated.version == 4

    with pytest.raises(ConflictError):
        repo.update_status("S-1", SaleStatus.CANCELLED, expected_version=3)
    assert repo.get_by_id("S-1").status is SaleStatus.CONFIRMED


def test_update_and_delete_of_missing_rows_raise_not_found() -> None:
    """Verify absent rows are distinguished from version conflicts."""

    repo = SupabaseSaleRepository(_FakeClient())

    assert repo.get_by_id("nope") is None
    with pytest.raises(SaleNotFoundError):
        repo.update_status("nope", SaleStatus.CONFIRMED, expected_version=0)
    with pytest.raises(SaleNotFoundError):
        repo.delete("nope")


def test_delete_removes_the_row() -> None:
    """Verify delete drops exactly the requested sale."""

    client = _FakeClient()
    client.tables["product_sales"] = [_row(), _row(sale_id="S-2")]
    repo = SupabaseSaleRepository(client)

    repo.delete("S-1")

    assert repo.get_by_id("S-1") is None
    assert repo.get_by_id("S-2") is not None


def test_transport_failures_become_persistence_errors() -> None:
    """Verify client exceptions are wrapped."""

    client = _FakeClient()
    client.fail = True

    with pytest.raises(PersistenceError, match="get sale"):
        SupabaseSaleRepository(client).get_by_id("S-1")


def test_audit_sink_writes_changes_and_metadata() -> None:
    """Verify the audit payload layout."""

    client = _FakeClient()
    SupabaseAuditSink(client).record(
        AuditEntry(
            action="STATUS_CHANGE",
            sale_id="S-1",
            recorded_at=NOW,
            before={"status": "pending"},
            after={"status": "confirmed"},
            reason="ok",
            actor_ref="user-1",
        )
    )

    (row,) = client.tables["product_sale_audit_log"]
    assert row["action"] == "STATUS_CHANGE"
    assert row["resource_id"] == "S-1"
    assert row["changes"] == {"before": {"status": "pending"}, "after": {"status": "confirmed"}}
    assert row["actor_id"] == "user-1"
    assert row["recorded_at_utc"] == NOW.isoformat()


def test_audit_sink_reads_history_newest_first() -> None:
    """Verify history filters by sale, orders by time descending and applies the limit."""

    client = _FakeClient()
    sink = SupabaseAuditSink(client)
    for minutes, sale_id, status in ((0, "S-1", "pending"), (5, "S-2", "pending"), (10, "S-1", "confirmed")):
        sink.record(
            AuditEntry(
                action="STATUS_CHANGE",
                sale_id=sale_id,
                recorded_at=NOW + timedelta(minutes=minutes),
                after={"status": status},
                actor_ref="user-1",
                metadata={"source": "test"},
            )
        )

    entries = sink.history("S-1")

    assert [e.after["status"] for e in entries] == ["confirmed", "pending"]
    first = entries[0]
    assert first.sale_id == "S-1"
    assert first.recorded_at == NOW + timedelta(minutes=10)
    assert first.actor_ref == "user-1"
    assert dict(first.metadata) == {"source": "test"}
    assert [e.after["status"] for e in sink.history("S-1", limit=1)] == ["confirmed"]
    assert sink.history("S-9") == []


def test_audit_sink_history_failures() -> None:
    """Verify bad limits raise ValueError and query failures PersistenceError."""

    client = _FakeClient()
    sink = SupabaseAuditSink(client)

    with pytest.raises(ValueError):
        sink.history("S-1", limit=0)

    client.fail = True
    with pytest.raises(PersistenceError, match="audit trail"):
        sink.history("S-1")


def test_notification_sink_writes_product_sales_category() -> None:
    """Verify notifications are stored under the product_sales category."""

    client = _FakeClient()
    SupabaseNotificationSink(client).send(
        DomainNotification(type="success", sale_id="S-1", title="Paid", message="Thanks", data={"recipient_role": "customer"})
    )

    (row,) = client.tables["notifications"]
    assert row["category"] == "product_sales"
    assert row["data"] == {"recipient_role": "customer"}


def test_fulfillment_gateway_uses_inventory_functions_and_tables() -> None:
    """Verify inventory RPC parameters and invoice / payment rows."""

    client = _FakeClient()
    gateway = SupabaseFulfillmentGateway(client)
    sale = make_sale(quantity=3, unit_price="5.00")

    gateway.reserve("P-1", 3, "S-1")
    gateway.issue_invoice(build_invoice(sale, NOW, sequence=42))
    gateway.reverse_payment("S-1", Decimal("15.00"), "damaged")

    assert client.rpcs == [("reserve_inventory", {"p_product_id": "P-1", "p_quantity": 3, "p_sale_id": "S-1"})]
    (invoice_row,) = client.tables["invoices"]
    assert invoice_row["invoice_number"] == "INV-2025-06-00042"
    assert invoice_row["total"] == "15.00"
    (payment_row,) = client.tables["sale_payments"]
    assert payment_row["amount"] == "-15.00"
    assert payment_row["kind"] == "refund"
