"""
Bulk operations over many product sales.

Handles:
- Bulk status update through the TransitionEngine
- Bulk delete through the store's delete operation, gated per sale
- A bulk-level permission check before any item is touched
- Aggregation of independent per-item outcomes into a BulkOperationResult

There is no all-or-nothing strategy: every requested id is attempted on its
own and its outcome recorded. Duplicate ids are processed once; `total`
counts distinct ids and `requested` counts the ids as submitted.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional

from domain.bulk import BulkOperationResult, BulkResultBuilder
from domain.errors import PermissionGateError, SaleNotFoundError, TransitionErrorCode
from domain.events import AUDIT_ACTION_DELETE, AuditEntry
from domain.ports import AuditSink, PermissionDecision, SaleStore
from domain.status import SaleStatus
from domain.time import utc_now
from services.permission_gate import PermissionGuard
from services.transition_engine import TransitionEngine

logger = logging.getLogger(__name__)

BULK_STATUS_LABEL = "Bulk status update"
BULK_DELETE_LABEL = "Bulk delete"
UNEXPECTED_ERROR = "UnexpectedError"


def _unique_ids(sale_ids: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    ordered: List[str] = []
    for sale_id in sale_ids:
        key = str(sale_id)
        if key not in seen:
            seen.add(key)
            ordered.append(key)
    return ordered


class BulkCoordinator:
    """
    Fan-out/fan-in over independent single-sale operations.

    Args:
        engine: transition engine used for each status update
        store: sale store (get_by_id / delete)
        permissions: fail-closed permission guard
        audit_sink: receives one DELETE entry per deleted sale
        max_workers: 1 runs items sequentially; >1 runs them on a thread pool
    """

    def __init__(
        self,
        engine: TransitionEngine,
        store: SaleStore,
        permissions: PermissionGuard,
        audit_sink: AuditSink,
        max_workers: int = 1,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._engine = engine
        self._store = store
        self._permissions = permissions
        self._audit_sink = audit_sink
        self._max_workers = max_workers

    def bulk_transition(
        self,
        sale_ids: Iterable[str],
        to_status: SaleStatus,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> BulkOperationResult:
        requested = list(sale_ids)
        ids = _unique_ids(requested)
        builder = BulkResultBuilder(BULK_STATUS_LABEL, total=len(ids), requested=len(requested))

        try:
            target = SaleStatus(to_status)
        except ValueError:
            for sale_id in ids:
                builder.record_failure(sale_id, TransitionErrorCode.INVALID_TRANSITION.value, f"Unknown sale status: {to_status!r}")
            return self._finish(builder)

        refusal = self._bulk_refusal(lambda: self._permissions.can_bulk_update_status(len(ids), target, actor))
        if refusal is not None:
            code, message = refusal
            for sale_id in ids:
                builder.record_failure(sale_id, code, message)
            return self._finish(builder)

        def attempt(sale_id: str) -> None:
            result = self._engine.transition_by_id(sale_id, target, reason=reason, actor=actor)
            if result.error is None:
                builder.record_success(sale_id)
            else:
                builder.record_failure(sale_id, result.error.code.value, result.error.message)

        self._run_each(ids, builder, attempt)
        return self._finish(builder)

    def bulk_delete(
        self,
        sale_ids: Iterable[str],
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> BulkOperationResult:
        requested = list(sale_ids)
        ids = _unique_ids(requested)
        builder = BulkResultBuilder(BULK_DELETE_LABEL, total=len(ids), requested=len(requested))

        refusal = self._bulk_refusal(lambda: self._permissions.can_bulk_delete(len(ids), actor))
        if refusal is not None:
            code, message = refusal
            for sale_id in ids:
                builder.record_failure(sale_id, code, message)
            return self._finish(builder)

        def attempt(sale_id: str) -> None:
            code, message = self._delete_one(sale_id, reason, actor)
            if code is None:
                builder.record_success(sale_id)
            else:
                builder.record_failure(sale_id, code, message)

        self._run_each(ids, builder, attempt)
        return self._finish(builder)

    def _delete_one(self, sale_id: str, reason: Optional[str], actor: Optional[str]) -> tuple[Optional[str], str]:
        try:
            sale = self._store.get_by_id(sale_id)
        except Exception as e:
            return TransitionErrorCode.PERSISTENCE_FAILURE.value, f"Failed to load sale {sale_id}: {e}"
        if sale is None:
            return TransitionErrorCode.SALE_NOT_FOUND.value, f"Sale not found: {sale_id}"

        try:
            decision = self._permissions.can_delete(sale, actor)
        except PermissionGateError as e:
            return TransitionErrorCode.PERMISSION_GATE_UNAVAILABLE.value, f"Permission check unavailable: {e}"
        if not decision.allowed:
            return TransitionErrorCode.PERMISSION_DENIED.value, decision.reason or "Permission denied"

        try:
            self._store.delete(sale_id)
        except SaleNotFoundError:
            return TransitionErrorCode.SALE_NOT_FOUND.value, f"Sale not found: {sale_id}"
        except Exception as e:
            logger.error("Deleting sale %s failed: %s", sale_id, e)
            return TransitionErrorCode.PERSISTENCE_FAILURE.value, f"Failed to delete sale {sale_id}: {e}"

        try:
            self._audit_sink.record(
                AuditEntry(
                    action=AUDIT_ACTION_DELETE,
                    sale_id=sale_id,
                    recorded_at=utc_now(),
                    before={"status": sale.status.value},
                    after={},
                    reason=reason,
                    actor_ref=actor,
                    metadata={"bulk_operation": True},
                )
            )
        except Exception:
            logger.exception("Audit entry failed for deleted sale %s", sale_id)

        return None, ""

    def _bulk_refusal(self, check: Callable[[], PermissionDecision]) -> Optional[tuple[str, str]]:
        """(error code, message) when the bulk-level check refuses, else None."""

        try:
            decision = check()
        except PermissionGateError as e:
            return TransitionErrorCode.PERMISSION_GATE_UNAVAILABLE.value, f"Permission check unavailable: {e}"
        if not decision.allowed:
            return TransitionErrorCode.PERMISSION_DENIED.value, decision.reason or "Permission denied"
        return None

    def _run_each(self, ids: List[str], builder: BulkResultBuilder, attempt: Callable[[str], None]) -> None:
        def guarded(sale_id: str) -> None:
            try:
                attempt(sale_id)
            except Exception as e:
                # The item is reported, the batch keeps going.
                logger.exception("Bulk item %s failed unexpectedly", sale_id)
                builder.record_failure(sale_id, UNEXPECTED_ERROR, str(e))

        if self._max_workers == 1 or len(ids) <= 1:
            for sale_id in ids:
                guarded(sale_id)
        else:
            with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="bulk") as pool:
                list(pool.map(guarded, ids))

    def _finish(self, builder: BulkResultBuilder) -> BulkOperationResult:
        result = builder.finalize()
        logger.info(result.message)
        return result
