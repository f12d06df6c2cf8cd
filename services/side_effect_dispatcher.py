"""
Side-effect dispatcher for sale transitions.

Handles:
- One audit entry per dispatched transition (STATUS_CHANGE, before/after status)
- The ordered side effects of the destination status
- Best-effort execution: every step is caught and logged on its own, so a
  failing audit write or gateway never stops the remaining steps

Dispatch is fire-and-forget: work is submitted to an executor and the caller
receives a Future it is free to ignore. The status change is the
transaction; effects are notifications of fact.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from domain.events import AuditEntry, TransitionEvent
from domain.ports import AuditSink, SideEffectGateways
from domain.sale import Sale
from domain.side_effects import SideEffect, side_effects_for
from domain.status import SaleStatus

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DispatchReport:
    """What happened to one dispatch; returned through the Future."""

    sale_id: str
    to_status: SaleStatus
    audited: bool = False
    applied: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)  # (effect name, error)

    @property
    def ok(self) -> bool:
        return self.audited and not self.failed


class SideEffectDispatcher:
    """
    Maps a destination status to its effects and runs them off the caller's path.

    Args:
        gateways: collaborators effects are applied against
        audit_sink: receives one AuditEntry per dispatch
        executor: where dispatch jobs run; defaults to a private thread pool
        effects_for: status -> ordered effects lookup (injectable for tests)
    """

    def __init__(
        self,
        gateways: SideEffectGateways,
        audit_sink: AuditSink,
        executor: Optional[Executor] = None,
        *,
        max_workers: int = 4,
        effects_for: Callable[[SaleStatus], Tuple[SideEffect, ...]] = side_effects_for,
    ) -> None:
        self._gateways = gateways
        self._audit_sink = audit_sink
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="side-effects")
        self._effects_for = effects_for

    def dispatch(self, sale: Sale, event: TransitionEvent) -> "Future[DispatchReport]":
        """Schedule audit + effects for a committed transition and return immediately."""

        try:
            return self._executor.submit(self.run, sale, event)
        except RuntimeError as e:
            # Executor already shut down; the status change still stands.
            logger.error(
                "Side effects for sale %s (%s -> %s) not scheduled: %s",
                event.sale_id,
                event.from_status.value,
                event.to_status.value,
                e,
            )
            failed: Future[DispatchReport] = Future()
            failed.set_exception(e)
            return failed

    def run(self, sale: Sale, event: TransitionEvent) -> DispatchReport:
        """Execute audit + effects synchronously. Never raises."""

        report = DispatchReport(sale_id=event.sale_id, to_status=event.to_status)

        try:
            self._audit_sink.record(AuditEntry.for_transition(event))
            report.audited = True
        except Exception as e:
            report.failed.append(("AuditEntry", str(e)))
            logger.exception(
                "Audit entry failed for sale %s (%s -> %s)",
                event.sale_id,
                event.from_status.value,
                event.to_status.value,
            )

        for effect in self._effects_for(event.to_status):
            if not effect.applies_to(sale):
                report.skipped.append(effect.name)
                logger.debug("Skipping %s for sale %s", effect.name, event.sale_id)
                continue
            try:
                effect.apply(sale, event, self._gateways)
                report.applied.append(effect.name)
            except Exception as e:
                report.failed.append((effect.name, str(e)))
                logger.exception(
                    "Side effect %s failed for sale %s (%s -> %s)",
                    effect.name,
                    event.sale_id,
                    event.from_status.value,
                    event.to_status.value,
                )

        if report.failed:
            logger.warning(
                "Sale %s reached %s with %d failed side effect(s): %s",
                event.sale_id,
                event.to_status.value,
                len(report.failed),
                ", ".join(name for name, _ in report.failed),
            )
        return report

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
