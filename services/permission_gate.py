"""
Permission checks for product sale operations.

Wraps an injected PermissionGate (RBAC evaluator) with the product-sales
action identifiers and a fail-closed policy:
- An explicit refusal is returned as a PermissionDecision(allowed=False).
- A gate that raises, times out or returns something that is not a decision
  is reported as PermissionGateError. Callers treat that as a denial.

Also provides RolePermissionGate, an in-process gate driven by a role ->
granted-actions table.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional

from domain.errors import PermissionGateError
from domain.ports import PermissionDecision, PermissionGate
from domain.sale import Sale
from domain.status import SaleStatus

logger = logging.getLogger(__name__)


class ProductSalesAction(str, Enum):
    CHANGE_STATUS = "product_sales:change_status"
    DELETE = "crm:product-sale:record:delete"
    BULK_UPDATE_STATUS = "product_sales:bulk_update_status"
    BULK_DELETE = "product_sales:bulk_delete"


class PermissionGuard:
    """
    Fail-closed adapter between the workflow services and a PermissionGate.

    With a timeout, every check runs on its own daemon thread and the caller
    waits at most `timeout_seconds`. A gate call that hangs keeps only its own
    thread; later checks still reach the gate.

    Args:
        gate: the RBAC evaluator
        timeout_seconds: upper bound for a single check; None waits forever
    """

    def __init__(self, gate: PermissionGate, timeout_seconds: Optional[float] = None) -> None:
        self._gate = gate
        self._timeout = timeout_seconds
        self._lock = threading.Lock()
        self._in_flight = 0
        self._closed = False

    @property
    def in_flight(self) -> int:
        """Gate calls started on a worker thread that have not returned yet."""
        with self._lock:
            return self._in_flight

    def check(self, action: ProductSalesAction, context: Mapping[str, Any], *, denied_reason: str) -> PermissionDecision:
        """
        Ask the gate about `action`.

        Raises:
            PermissionGateError: the gate could not produce a decision
        """

        if self._closed:
            raise PermissionGateError(f"Permission guard is shut down; refusing {action.value}")

        try:
            if self._timeout is None:
                decision = self._gate.check(action.value, context)
            else:
                decision = self._check_with_deadline(action, context)
        except FutureTimeoutError:
            logger.warning("Permission gate timed out after %ss for %s", self._timeout, action.value)
            raise PermissionGateError(f"Permission check timed out for {action.value}") from None
        except PermissionGateError:
            logger.warning("Permission gate unavailable for %s", action.value)
            raise
        except Exception as e:
            logger.warning("Permission gate failed for %s: %s", action.value, e)
            raise PermissionGateError(f"Permission check failed for {action.value}: {e}") from e

        if not isinstance(decision, PermissionDecision):
            raise PermissionGateError(f"Permission gate returned no decision for {action.value}")

        if not decision.allowed and not decision.reason:
            return PermissionDecision(allowed=False, reason=denied_reason, denial_code=decision.denial_code or "PERMISSION_DENIED")
        return decision

    def _check_with_deadline(self, action: ProductSalesAction, context: Mapping[str, Any]) -> Any:
        outcome: Future = Future()

        def run() -> None:
            # A future cancelled at the deadline never calls the gate.
            if not outcome.set_running_or_notify_cancel():
                return
            with self._lock:
                self._in_flight += 1
            try:
                outcome.set_result(self._gate.check(action.value, context))
            except BaseException as e:
                outcome.set_exception(e)
            finally:
                with self._lock:
                    self._in_flight -= 1

        threading.Thread(target=run, name="permission-gate", daemon=True).start()
        try:
            return outcome.result(timeout=self._timeout)
        except FutureTimeoutError:
            outcome.cancel()
            raise

    def can_transition(
        self,
        sale: Sale,
        from_status: SaleStatus,
        to_status: SaleStatus,
        actor: Optional[str],
    ) -> PermissionDecision:
        return self.check(
            ProductSalesAction.CHANGE_STATUS,
            {
                "sale_id": sale.sale_id,
                "from_status": from_status.value,
                "new_status": to_status.value,
                "actor_ref": actor,
            },
            denied_reason=f"You do not have permission to change status to {to_status.value}",
        )

    def can_delete(self, sale: Sale, actor: Optional[str]) -> PermissionDecision:
        return self.check(
            ProductSalesAction.DELETE,
            {"sale_id": sale.sale_id, "actor_ref": actor},
            denied_reason="You do not have permission to delete product sales",
        )

    def can_bulk_update_status(self, record_count: int, to_status: SaleStatus, actor: Optional[str]) -> PermissionDecision:
        return self.check(
            ProductSalesAction.BULK_UPDATE_STATUS,
            {"record_count": record_count, "new_status": to_status.value, "actor_ref": actor},
            denied_reason="You do not have permission to bulk update status",
        )

    def can_bulk_delete(self, record_count: int, actor: Optional[str]) -> PermissionDecision:
        return self.check(
            ProductSalesAction.BULK_DELETE,
            {"record_count": record_count, "actor_ref": actor},
            denied_reason="You do not have permission to bulk delete product sales",
        )

    def shutdown(self) -> None:
        """Refuse further checks; gate calls already running are left to finish."""
        with self._lock:
            self._closed = True
            running = self._in_flight
        if running:
            logger.info("Permission guard shut down with %d gate call(s) still running", running)


# Role grants for the in-process gate.
DEFAULT_ROLE_GRANTS: Dict[str, FrozenSet[str]] = {
    "admin": frozenset(a.value for a in ProductSalesAction),
    "manager": frozenset(
        {
            ProductSalesAction.CHANGE_STATUS.value,
            ProductSalesAction.BULK_UPDATE_STATUS.value,
            ProductSalesAction.DELETE.value,
        }
    ),
    "agent": frozenset({ProductSalesAction.CHANGE_STATUS.value}),
    "viewer": frozenset(),
}


class RolePermissionGate:
    """
    Role-based gate: an actor is allowed an action iff one of its roles grants it.

    Unknown actors have no roles and are denied (ROLE_MISSING).
    """

    def __init__(
        self,
        actor_roles: Mapping[str, FrozenSet[str]],
        role_grants: Mapping[str, FrozenSet[str]] = DEFAULT_ROLE_GRANTS,
    ) -> None:
        self._actor_roles = dict(actor_roles)
        self._role_grants = dict(role_grants)

    def check(self, action: str, context: Mapping[str, Any]) -> PermissionDecision:
        actor = context.get("actor_ref")
        roles = self._actor_roles.get(str(actor), frozenset()) if actor is not None else frozenset()
        if not roles:
            return PermissionDecision(allowed=False, reason=f"Actor {actor!r} has no role", denial_code="ROLE_MISSING")

        for role in roles:
            if action in self._role_grants.get(role, frozenset()):
                return PermissionDecision(allowed=True)

        return PermissionDecision(
            allowed=False,
            reason=f"None of the roles {sorted(roles)} grant {action}",
            denial_code="PERMISSION_DENIED",
        )
