"""
Tests for `services/transition_engine.py`.

Covers contract rules:
- Only pairs in the rule table change the stored status; others fail
  InvalidTransition and leave the store untouched.
- No-op requests fail NoOpTransition; unknown target values fail
  InvalidTransition.
- A denied or unavailable permission gate never writes.
- Stale snapshots fail ConcurrentModification; of two racing requests on
  the same snapshot exactly one wins.
- Store failures surface as typed results, never as exceptions.
- Side effects are dispatched after commit without being awaited.
"""

from __future__ import annotations

import threading

import pytest

from domain.errors import PersistenceError, TransitionErrorCode
from domain.status import SaleStatus, default_registry
from repositories.memory_sale_repository import InMemorySaleRepository
from fakes import DeferredExecutor, RecordingFulfillment, StaticGate, make_harness, make_sale


def test_draft_to_pending_succeeds_and_returns_event() -> None:
    """Verify a legal transition commits, bumps the version and returns the event."""

    h = make_harness((make_sale("S-1", SaleStatus.DRAFT),))
    sale = h.store.get_by_id("S-1")

    result = h.engine.transition(sale, SaleStatus.PENDING, reason="submitted", actor="user-1")

    assert result.success and result.error is None
    assert result.event.from_status is SaleStatus.DRAFT
    assert result.event.to_status is SaleStatus.PENDING
    assert result.event.reason == "submitted"
    assert result.event.actor_ref == "user-1"
    assert result.event.occurred_at.utcoffset().total_seconds() == 0
    assert result.sale.status is SaleStatus.PENDING
    assert result.sale.version == 1
    assert h.store.get_by_id("S-1").status is SaleStatus.PENDING
    assert len(h.audit.entries) == 1


@pytest.mark.parametrize("from_status", list(SaleStatus))
@pytest.mark.parametrize("to_status", list(SaleStatus))
def test_only_table_pairs_change_the_stored_status(from_status: SaleStatus, to_status: SaleStatus) -> None:
    """Verify every (from, to) pair against the rule table."""

    h = make_harness((make_sale("S-1", from_status),))

    result = h.engine.transition_by_id("S-1", to_status, actor="user-1")

    stored = h.store.get_by_id("S-1")
    if from_status == to_status:
        assert result.error.code is TransitionErrorCode.NO_OP_TRANSITION
        assert stored.status is from_status
    elif default_registry.is_valid(from_status, to_status):
        assert result.success
        assert stored.status is to_status
    else:
        assert not result.success
        assert result.error.code is TransitionErrorCode.INVALID_TRANSITION
        assert stored.status is from_status
        assert stored.version == 0


def test_paid_to_pending_is_invalid() -> None:
    """Verify paid may only move to refunded."""

    h = make_harness((make_sale("S-1", SaleStatus.PAID),))

    result = h.engine.transition_by_id("S-1", SaleStatus.PENDING)

    assert result.error.code is TransitionErrorCode.INVALID_TRANSITION
    assert result.error.message == "Cannot transition from paid to pending"
    assert result.error.from_status is SaleStatus.PAID
    assert result.error.to_status is SaleStatus.PENDING
    assert h.gate.calls == []
    assert h.audit.entries == []


def test_refunded_rejects_every_target() -> None:
    """Verify the terminal status accepts no transition."""

    h = make_harness((make_sale("S-1", SaleStatus.REFUNDED),))

    for status in SaleStatus:
        if status is SaleStatus.REFUNDED:
            continue
        result = h.engine.transition_by_id("S-1", status)
        assert result.error.code is TransitionErrorCode.INVALID_TRANSITION


@pytest.mark.parametrize("target", ["archived", "", None])
def test_unknown_target_status_is_a_typed_result(target) -> None:
    """Verify an unknown status value fails InvalidTransition instead of raising."""

    h = make_harness((make_sale("S-1", SaleStatus.PENDING),))

    result = h.engine.transition(h.store.get_by_id("S-1"), target)
    by_id = h.engine.transition_by_id("S-1", target)

    for outcome in (result, by_id):
        assert not outcome.success
        assert outcome.error.code is TransitionErrorCode.INVALID_TRANSITION
        assert outcome.error.from_status is SaleStatus.PENDING
        assert outcome.error.to_status is None
    assert h.gate.calls == []
    assert h.store.get_by_id("S-1").status is SaleStatus.PENDING


def test_unknown_target_for_missing_sale_is_sale_not_found() -> None:
    """Verify the lookup failure wins when the sale does not exist."""

    h = make_harness()

    result = h.engine.transition_by_id("S-404", "archived")

    assert result.error.code is TransitionErrorCode.SALE_NOT_FOUND
    assert result.error.to_status is None


def test_no_op_transition_fails_and_leaves_status_unchanged() -> None:
    """Verify requesting the current status is rejected before the gate is asked."""

    h = make_harness((make_sale("S-1", SaleStatus.CONFIRMED),))
    sale = h.store.get_by_id("S-1")

    result = h.engine.transition(sale, SaleStatus.CONFIRMED)

    assert result.error.code is TransitionErrorCode.NO_OP_TRANSITION
    assert h.store.get_by_id("S-1") == sale
    assert h.gate.calls == []


def test_permission_denied_never_writes() -> None:
    """Verify a denial returns PermissionDenied and the stored sale is identical."""

    h = make_harness((make_sale("S-1", SaleStatus.PENDING),), gate=StaticGate(allowed=False))
    before = h.store.get_by_id("S-1")

    result = h.engine.transition(before, SaleStatus.CONFIRMED, actor="user-2")

    assert result.error.code is TransitionErrorCode.PERMISSION_DENIED
    assert result.error.message == "You do not have permission to change status to confirmed"
    assert h.store.get_by_id("S-1") == before
    assert h.audit.entries == []
    assert h.fulfillment.calls == []


def test_permission_gate_receives_transition_context() -> None:
    """Verify the gate is asked about change_status with sale, statuses and actor."""

    h = make_harness((make_sale("S-1", SaleStatus.PENDING),))

    h.engine.transition_by_id("S-1", SaleStatus.CONFIRMED, actor="user-3")

    assert h.gate.calls == [
        (
            "product_sales:change_status",
            {"sale_id": "S-1", "from_status": "pending", "new_status": "confirmed", "actor_ref": "user-3"},
        )
    ]


def test_gate_error_fails_closed() -> None:
    """Verify a crashing gate yields PermissionGateUnavailable and no write."""

    h = make_harness(
        (make_sale("S-1", SaleStatus.PENDING),),
        gate=StaticGate(error=ConnectionError("rbac down")),
    )

    result = h.engine.transition_by_id("S-1", SaleStatus.CONFIRMED)

    assert result.error.code is TransitionErrorCode.PERMISSION_GATE_UNAVAILABLE
    assert h.store.get_by_id("S-1").status is SaleStatus.PENDING


def test_gate_timeout_fails_closed() -> None:
    """Verify a slow gate is treated as unavailable."""

    h = make_harness(
        (make_sale("S-1", SaleStatus.PENDING),),
        gate=StaticGate(delay_seconds=0.5),
        timeout_seconds=0.05,
    )
    try:
        result = h.engine.transition_by_id("S-1", SaleStatus.CONFIRMED)
    finally:
        h.permissions.shutdown()

    assert result.error.code is TransitionErrorCode.PERMISSION_GATE_UNAVAILABLE
    assert h.store.get_by_id("S-1").status is SaleStatus.PENDING


def test_stale_snapshot_fails_concurrent_modification() -> None:
    """Verify a sale read before another commit cannot be transitioned."""

    h = make_harness((make_sale("S-1", SaleStatus.PENDING),))
    stale = h.store.get_by_id("S-1")
    assert h.engine.transition(stale, SaleStatus.CONFIRMED).success

    result = h.engine.transition(stale, SaleStatus.CANCELLED)

    assert result.error.code is TransitionErrorCode.CONCURRENT_MODIFICATION
    assert h.store.get_by_id("S-1").status is SaleStatus.CONFIRMED
    assert len(h.audit.entries) == 1


def test_racing_transitions_on_one_snapshot_have_exactly_one_winner() -> None:
    """Verify confirm and cancel racing from the same read never both succeed."""

    for _ in range(20):
        h = make_harness((make_sale("S-1", SaleStatus.PENDING),))
        snapshot = h.store.get_by_id("S-1")
        barrier = threading.Barrier(2)
        results = {}

        def run(target: SaleStatus) -> None:
            barrier.wait()
            results[target] = h.engine.transition(snapshot, target)

        threads = [
            threading.Thread(target=run, args=(SaleStatus.CONFIRMED,)),
            threading.Thread(target=run, args=(SaleStatus.CANCELLED,)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        outcomes = list(results.values())
        winners = [r for r in outcomes if r.success]
        losers = [r for r in outcomes if not r.success]
        assert len(winners) == 1
        assert len(losers) == 1
        assert losers[0].error.code is TransitionErrorCode.CONCURRENT_MODIFICATION
        assert h.store.get_by_id("S-1").status is winners[0].event.to_status
        assert h.store.get_by_id("S-1").version == 1


def test_missing_sale_fails_sale_not_found() -> None:
    """Verify an unknown id is reported, not raised."""

    h = make_harness()

    result = h.engine.transition_by_id("missing", SaleStatus.PENDING)

    assert result.error.code is TransitionErrorCode.SALE_NOT_FOUND


def test_sale_deleted_after_read_fails_sale_not_found() -> None:
    """Verify a sale deleted between read and write is reported as missing."""

    h = make_harness((make_sale("S-1", SaleStatus.DRAFT),))
    sale = h.store.get_by_id("S-1")
    h.store.delete("S-1")

    result = h.engine.transition(sale, SaleStatus.PENDING)

    assert result.error.code is TransitionErrorCode.SALE_NOT_FOUND
    assert h.audit.entries == []


class _BrokenStore(InMemorySaleRepository):
    def update_status(self, sale_id, new_status, expected_version):
        raise PersistenceError("connection reset")


class _UnreadableStore(InMemorySaleRepository):
    def get_by_id(self, sale_id):
        raise PersistenceError("timeout")


def test_store_write_failure_is_a_typed_result() -> None:
    """Verify a failing write yields PersistenceFailure and no side effects."""

    store = _BrokenStore((make_sale("S-1", SaleStatus.PENDING),))
    h = make_harness(store=store)

    result = h.engine.transition_by_id("S-1", SaleStatus.CONFIRMED)

    assert result.error.code is TransitionErrorCode.PERSISTENCE_FAILURE
    assert "connection reset" in result.error.message
    assert h.audit.entries == []
    assert h.fulfillment.calls == []


def test_store_read_failure_is_a_typed_result() -> None:
    """Verify a failing load yields PersistenceFailure."""

    h = make_harness(store=_UnreadableStore())

    result = h.engine.transition_by_id("S-1", SaleStatus.CONFIRMED)

    assert result.error.code is TransitionErrorCode.PERSISTENCE_FAILURE


def test_delivered_to_invoiced_without_contract_fires_no_contract_activation() -> None:
    """Verify invoicing a contract-less sale issues an invoice and nothing contract related."""

    h = make_harness((make_sale("S-1", SaleStatus.DELIVERED),))

    result = h.engine.transition_by_id("S-1", SaleStatus.INVOICED)

    assert result.success
    assert h.fulfillment.names() == ["issue_invoice"]
    assert "activate_contract" not in h.fulfillment.names()


def test_side_effects_are_not_awaited() -> None:
    """Verify the result is returned before any effect or audit write runs."""

    executor = DeferredExecutor()
    h = make_harness((make_sale("S-1", SaleStatus.PENDING),), executor=executor)

    result = h.engine.transition_by_id("S-1", SaleStatus.CONFIRMED)

    assert result.success
    assert h.audit.entries == []
    assert h.fulfillment.calls == []
    assert len(executor.pending) == 1

    executor.run_all()
    assert len(h.audit.entries) == 1
    assert h.fulfillment.names() == ["reserve"]


def test_failing_side_effect_does_not_change_the_result() -> None:
    """Verify the committed status stands when an effect fails."""

    h = make_harness(
        (make_sale("S-1", SaleStatus.PENDING),),
        fulfillment=RecordingFulfillment(fail_on={"reserve"}),
    )

    result = h.engine.transition_by_id("S-1", SaleStatus.CONFIRMED)

    assert result.success
    assert h.store.get_by_id("S-1").status is SaleStatus.CONFIRMED
    assert len(h.notifications.sent) == 2


def test_total_value_is_preserved_across_the_lifecycle() -> None:
    """Verify quantity * unit_price == total_value after every committed transition."""

    h = make_harness((make_sale("S-1", SaleStatus.DRAFT, quantity=7, unit_price="3.15"),))
    path = [
        SaleStatus.PENDING,
        SaleStatus.CONFIRMED,
        SaleStatus.SHIPPED,
        SaleStatus.DELIVERED,
        SaleStatus.INVOICED,
        SaleStatus.PAID,
        SaleStatus.REFUNDED,
    ]

    for status in path:
        result = h.engine.transition_by_id("S-1", status)
        assert result.success, result.error
        stored = h.store.get_by_id("S-1")
        assert stored.total_value == stored.quantity * stored.unit_price

    assert h.store.get_by_id("S-1").version == len(path)
    assert len(h.audit.entries) == len(path)
