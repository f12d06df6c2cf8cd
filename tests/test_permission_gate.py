"""
Tests for `services/permission_gate.py` and `repositories/permission_repository.py`.

Covers contract rules:
- The guard fails closed: errors, timeouts, non-decisions and checks after
  shutdown raise PermissionGateError.
- Gate calls that hang do not block later checks.
- Denials without a reason get an action-specific message.
- Role grants decide the in-process gate; unknown actors are denied.
- The Supabase gate maps RPC answers to decisions and errors to gate errors.
"""

from __future__ import annotations

import threading

import pytest

from domain.errors import PermissionGateError
from domain.ports import PermissionDecision
from domain.status import SaleStatus
from repositories.permission_repository import SupabasePermissionGate
from services.permission_gate import PermissionGuard, ProductSalesAction, RolePermissionGate
from fakes import StaticGate, make_sale


def test_guard_fills_in_denial_reason_and_code() -> None:
    """Verify a bare denial gets the default message and PERMISSION_DENIED."""

    guard = PermissionGuard(StaticGate(allowed=False))

    decision = guard.can_transition(make_sale(), SaleStatus.DRAFT, SaleStatus.PENDING, "user-1")

    assert not decision.allowed
    assert decision.reason == "You do not have permission to change status to pending"
    assert decision.denial_code == "PERMISSION_DENIED"


def test_guard_keeps_gate_reason() -> None:
    """Verify a denial reason from the gate is passed through."""

    guard = PermissionGuard(StaticGate(allowed=False, reason="Managers only"))

    assert guard.can_delete(make_sale(), "user-1").reason == "Managers only"


def test_guard_wraps_gate_exceptions() -> None:
    """Verify arbitrary gate errors become PermissionGateError."""

    guard = PermissionGuard(StaticGate(error=ValueError("bad payload")))

    with pytest.raises(PermissionGateError):
        guard.can_bulk_delete(3, "user-1")


def test_guard_rejects_non_decisions() -> None:
    """Verify a gate returning something other than a decision fails closed."""

    class _Broken:
        def check(self, action, context):
            return True

    with pytest.raises(PermissionGateError):
        PermissionGuard(_Broken()).can_bulk_update_status(2, SaleStatus.PAID, "user-1")


def test_guard_times_out_slow_gates() -> None:
    """Verify a check slower than the timeout raises PermissionGateError."""

    guard = PermissionGuard(StaticGate(delay_seconds=0.5), timeout_seconds=0.05)
    try:
        with pytest.raises(PermissionGateError, match="timed out"):
            guard.can_delete(make_sale(), "user-1")
    finally:
        guard.shutdown()


class _HangingGate:
    """Blocks on `release` for sales whose id starts with "hung"; allows everything else."""

    def __init__(self) -> None:
        self.release = threading.Event()
        self.calls = []
        self._lock = threading.Lock()

    def check(self, action, context):
        with self._lock:
            self.calls.append(context.get("sale_id"))
        if str(context.get("sale_id")).startswith("hung"):
            self.release.wait(timeout=5)
        return PermissionDecision(allowed=True)


def test_hung_gate_calls_do_not_block_later_checks() -> None:
    """Verify a fast check still reaches the gate after several checks timed out."""

    gate = _HangingGate()
    guard = PermissionGuard(gate, timeout_seconds=0.2)
    try:
        for n in range(4):
            with pytest.raises(PermissionGateError, match="timed out"):
                guard.can_delete(make_sale(f"hung-{n}"), "user-1")

        assert guard.in_flight == 4

        decision = guard.can_delete(make_sale("S-fast"), "user-1")

        assert decision.allowed
        assert gate.calls[-1] == "S-fast"
        assert len(gate.calls) == 5
    finally:
        gate.release.set()
        guard.shutdown()


def test_guard_refuses_checks_after_shutdown() -> None:
    """Verify a shut down guard fails closed without calling the gate."""

    gate = StaticGate()
    guard = PermissionGuard(gate, timeout_seconds=1.0)
    guard.shutdown()

    with pytest.raises(PermissionGateError, match="shut down"):
        guard.can_delete(make_sale(), "user-1")
    assert gate.calls == []


def test_role_gate_grants_by_role() -> None:
    """Verify default grants for admin, manager, agent and viewer."""

    gate = RolePermissionGate(
        {
            "ann": frozenset({"admin"}),
            "mo": frozenset({"manager"}),
            "al": frozenset({"agent"}),
            "vi": frozenset({"viewer"}),
        }
    )

    def allowed(actor: str, action: ProductSalesAction) -> bool:
        return gate.check(action.value, {"actor_ref": actor}).allowed

    assert all(allowed("ann", a) for a in ProductSalesAction)
    assert allowed("mo", ProductSalesAction.DELETE)
    assert not allowed("mo", ProductSalesAction.BULK_DELETE)
    assert allowed("al", ProductSalesAction.CHANGE_STATUS)
    assert not allowed("al", ProductSalesAction.BULK_UPDATE_STATUS)
    assert not allowed("vi", ProductSalesAction.CHANGE_STATUS)


def test_role_gate_denies_unknown_actors() -> None:
    """Verify actors without roles get ROLE_MISSING."""

    gate = RolePermissionGate({"ann": frozenset({"admin"})})

    for context in ({"actor_ref": "stranger"}, {}):
        decision = gate.check(ProductSalesAction.CHANGE_STATUS.value, context)
        assert not decision.allowed
        assert decision.denial_code == "ROLE_MISSING"


class _Response:
    def __init__(self, data=None, error=None):
        self.data = data
        self.error = error


class _RpcCall:
    def __init__(self, response=None, exc=None):
        self._response = response
        self._exc = exc

    def execute(self):
        if self._exc is not None:
            raise self._exc
        return self._response


class _RpcClient:
    def __init__(self, response=None, exc=None):
        self.calls = []
        self._call = _RpcCall(response, exc)

    def rpc(self, name, params):
        self.calls.append((name, params))
        return self._call


@pytest.mark.parametrize(
    "data, expected",
    [
        (True, PermissionDecision(allowed=True)),
        (False, PermissionDecision(allowed=False)),
        ([{"allowed": True}], PermissionDecision(allowed=True)),
        (
            {"allowed": False, "reason": "Finance only", "denial_code": "ROLE_MISSING"},
            PermissionDecision(allowed=False, reason="Finance only", denial_code="ROLE_MISSING"),
        ),
    ],
)
def test_supabase_gate_maps_rpc_answers(data, expected) -> None:
    """Verify boolean, single-row and object answers become decisions."""

    client = _RpcClient(_Response(data=data))
    gate = SupabasePermissionGate(client)

    assert gate.check("product_sales:change_status", {"sale_id": "S-1", "actor_ref": None}) == expected
    name, params = client.calls[0]
    assert name == "validate_role_permissions"
    assert params == {"p_action": "product_sales:change_status", "p_context": {"sale_id": "S-1"}}


@pytest.mark.parametrize(
    "client",
    [
        _RpcClient(exc=ConnectionError("network")),
        _RpcClient(_Response(error="function does not exist")),
        _RpcClient(_Response(data=[])),
        _RpcClient(_Response(data={"allowed": "yes"})),
    ],
)
def test_supabase_gate_fails_closed(client) -> None:
    """Verify transport errors and malformed answers raise PermissionGateError."""

    with pytest.raises(PermissionGateError):
        SupabasePermissionGate(client).check("product_sales:bulk_delete", {})
