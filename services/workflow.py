"""
Wiring for the product sales workflow.

Builds the engine, dispatcher and bulk coordinator from explicit
collaborators. Callers own the returned Workflow and call close() on shutdown.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from config import Settings
from domain.ports import AuditSink, PermissionGate, SaleStore, SideEffectGateways
from services.bulk_coordinator import BulkCoordinator
from services.permission_gate import PermissionGuard
from services.side_effect_dispatcher import SideEffectDispatcher
from services.transition_engine import TransitionEngine


@dataclass(frozen=True, slots=True)
class Workflow:
    store: SaleStore
    permissions: PermissionGuard
    dispatcher: SideEffectDispatcher
    engine: TransitionEngine
    bulk: BulkCoordinator
    audit_sink: AuditSink

    def close(self) -> None:
        self.dispatcher.shutdown(wait=True)
        self.permissions.shutdown()


def build_workflow(
    store: SaleStore,
    gate: PermissionGate,
    gateways: SideEffectGateways,
    audit_sink: AuditSink,
    settings: Optional[Settings] = None,
) -> Workflow:
    timeout = settings.permission_timeout_seconds if settings else None
    workers = settings.side_effect_workers if settings else 4
    bulk_workers = settings.bulk_max_workers if settings else 1

    permissions = PermissionGuard(gate, timeout_seconds=timeout)
    dispatcher = SideEffectDispatcher(gateways, audit_sink, max_workers=workers)
    engine = TransitionEngine(store, permissions, dispatcher)
    bulk = BulkCoordinator(engine, store, permissions, audit_sink, max_workers=bulk_workers)
    return Workflow(
        store=store,
        permissions=permissions,
        dispatcher=dispatcher,
        engine=engine,
        bulk=bulk,
        audit_sink=audit_sink,
    )
