"""
Transition engine for product sale statuses.

Process for transition(sale, to_status, reason, actor):
1. Reject a no-op (to_status == current status)
2. Reject pairs not in the status rule table
3. Ask the permission gate (fail closed on gate errors/timeouts)
4. Compare-and-swap the status at the store against sale.version,
   under a per-sale lock
5. Build the TransitionEvent
6. Hand sale + event to the side-effect dispatcher without waiting
7. Return the event

Every failure is returned as a typed TransitionResult; nothing in the
taxonomy is raised to the caller.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from domain.errors import (
    ConflictError,
    PermissionGateError,
    PersistenceError,
    SaleNotFoundError,
    TransitionErrorCode,
    TransitionResult,
)
from domain.events import TransitionEvent
from domain.ports import SaleStore
from domain.sale import Sale
from domain.status import SaleStatus, StatusRegistry, default_registry
from domain.time import utc_now
from services.permission_gate import PermissionGuard
from services.side_effect_dispatcher import SideEffectDispatcher

logger = logging.getLogger(__name__)


def _target_status(value: Any) -> Optional[SaleStatus]:
    try:
        return SaleStatus(value)
    except ValueError:
        return None


class _SaleLocks:
    """Per-sale mutexes; entries are dropped when no caller holds or waits."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._waiters: Dict[str, int] = {}

    def acquire(self, sale_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.setdefault(sale_id, threading.Lock())
            self._waiters[sale_id] = self._waiters.get(sale_id, 0) + 1
        lock.acquire()
        return lock

    def release(self, sale_id: str, lock: threading.Lock) -> None:
        lock.release()
        with self._guard:
            remaining = self._waiters[sale_id] - 1
            if remaining:
                self._waiters[sale_id] = remaining
            else:
                del self._waiters[sale_id]
                del self._locks[sale_id]


class TransitionEngine:
    """
    Validates, authorizes and applies status transitions.

    Args:
        store: sale persistence (get_by_id / update_status with expected version)
        permissions: fail-closed permission guard
        dispatcher: side-effect dispatcher, called after a committed change
        registry: status rule table
    """

    def __init__(
        self,
        store: SaleStore,
        permissions: PermissionGuard,
        dispatcher: SideEffectDispatcher,
        registry: StatusRegistry = default_registry,
    ) -> None:
        self._store = store
        self._permissions = permissions
        self._dispatcher = dispatcher
        self._registry = registry
        self._locks = _SaleLocks()

    @property
    def registry(self) -> StatusRegistry:
        return self._registry

    def transition(
        self,
        sale: Sale,
        to_status: SaleStatus,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> TransitionResult:
        """
        Move `sale` to `to_status`.

        `sale` is the snapshot the caller decided on; if the stored sale moved
        since it was read, the result is ConcurrentModification and the caller
        should retry against a fresh read. A `to_status` that is not a known
        status value fails as InvalidTransition.
        """

        from_status = sale.status
        target = _target_status(to_status)
        if target is None:
            logger.info("Rejected transition for sale %s to unknown status %r", sale.sale_id, to_status)
            return TransitionResult.fail(
                TransitionErrorCode.INVALID_TRANSITION,
                f"Unknown sale status: {to_status!r}",
                from_status,
            )
        to_status = target

        if from_status == to_status:
            logger.info("Rejected no-op transition for sale %s (%s)", sale.sale_id, from_status.value)
            return TransitionResult.fail(
                TransitionErrorCode.NO_OP_TRANSITION,
                f"Sale {sale.sale_id} is already {from_status.value}",
                from_status,
                to_status,
            )

        if not self._registry.is_valid(from_status, to_status):
            logger.info(
                "Rejected invalid transition for sale %s: %s -> %s",
                sale.sale_id,
                from_status.value,
                to_status.value,
            )
            return TransitionResult.fail(
                TransitionErrorCode.INVALID_TRANSITION,
                f"Cannot transition from {from_status.value} to {to_status.value}",
                from_status,
                to_status,
            )

        try:
            decision = self._permissions.can_transition(sale, from_status, to_status, actor)
        except PermissionGateError as e:
            return TransitionResult.fail(
                TransitionErrorCode.PERMISSION_GATE_UNAVAILABLE,
                f"Permission check unavailable: {e}",
                from_status,
                to_status,
            )

        if not decision.allowed:
            logger.info(
                "Permission denied for sale %s (%s -> %s) actor=%s: %s",
                sale.sale_id,
                from_status.value,
                to_status.value,
                actor,
                decision.reason,
            )
            return TransitionResult.fail(
                TransitionErrorCode.PERMISSION_DENIED,
                decision.reason or "Permission denied",
                from_status,
                to_status,
            )

        lock = self._locks.acquire(sale.sale_id)
        try:
            updated = self._store.update_status(sale.sale_id, to_status, expected_version=sale.version)
        except ConflictError as e:
            logger.info("Concurrent modification on sale %s: %s", sale.sale_id, e)
            return TransitionResult.fail(
                TransitionErrorCode.CONCURRENT_MODIFICATION,
                f"Sale {sale.sale_id} was modified concurrently; reload and retry",
                from_status,
                to_status,
            )
        except SaleNotFoundError:
            return TransitionResult.fail(
                TransitionErrorCode.SALE_NOT_FOUND,
                f"Sale not found: {sale.sale_id}",
                from_status,
                to_status,
            )
        except PersistenceError as e:
            logger.error("Persisting status for sale %s failed: %s", sale.sale_id, e)
            return TransitionResult.fail(
                TransitionErrorCode.PERSISTENCE_FAILURE,
                f"Failed to persist status change: {e}",
                from_status,
                to_status,
            )
        except Exception as e:
            logger.exception("Unexpected store failure for sale %s", sale.sale_id)
            return TransitionResult.fail(
                TransitionErrorCode.PERSISTENCE_FAILURE,
                f"Failed to persist status change: {e}",
                from_status,
                to_status,
            )
        finally:
            self._locks.release(sale.sale_id, lock)

        event = TransitionEvent(
            sale_id=sale.sale_id,
            from_status=from_status,
            to_status=to_status,
            occurred_at=utc_now(),
            reason=reason,
            actor_ref=actor,
        )
        logger.info("Sale %s transitioned %s -> %s by %s", sale.sale_id, from_status.value, to_status.value, actor)

        self._dispatcher.dispatch(updated, event)
        return TransitionResult.ok(event, updated)

    def transition_by_id(
        self,
        sale_id: str,
        to_status: SaleStatus,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> TransitionResult:
        """Load the current sale and transition it."""

        try:
            sale = self._store.get_by_id(sale_id)
        except Exception as e:
            logger.error("Loading sale %s failed: %s", sale_id, e)
            return TransitionResult.fail(
                TransitionErrorCode.PERSISTENCE_FAILURE,
                f"Failed to load sale {sale_id}: {e}",
                to_status=_target_status(to_status),
            )

        if sale is None:
            return TransitionResult.fail(
                TransitionErrorCode.SALE_NOT_FOUND,
                f"Sale not found: {sale_id}",
                to_status=_target_status(to_status),
            )
        return self.transition(sale, to_status, reason=reason, actor=actor)
