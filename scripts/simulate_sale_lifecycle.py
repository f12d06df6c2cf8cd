#!/usr/bin/env python3
"""
Product Sale Lifecycle Simulation

Runs the workflow against an in-memory store with log-only collaborators:
- Creates a handful of sales
- Walks one of them through the full lifecycle (draft -> paid -> refunded)
- Shows rejected transitions (illegal move, missing permission)
- Runs a bulk cancellation with mixed outcomes
- Prints the audit trail of S-1001

Nothing leaves the process; every side effect is written to the log.

Usage:
    python simulate_sale_lifecycle.py
    python simulate_sale_lifecycle.py --actor-role agent --log-level DEBUG
"""

from __future__ import annotations

import argparse
import logging
import sys
from decimal import Decimal
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.errors import TransitionResult
from domain.sale import Sale
from domain.status import SaleStatus
from repositories.memory_sale_repository import InMemorySaleRepository
from services.logging_gateways import LoggingAuditSink, logging_gateways
from services.permission_gate import DEFAULT_ROLE_GRANTS, RolePermissionGate
from services.workflow import build_workflow

ACTOR = "demo-user"

LIFECYCLE = [
    SaleStatus.PENDING,
    SaleStatus.CONFIRMED,
    SaleStatus.SHIPPED,
    SaleStatus.DELIVERED,
    SaleStatus.INVOICED,
    SaleStatus.PAID,
    SaleStatus.REFUNDED,
]


def seed_sales(store: InMemorySaleRepository) -> None:
    store.add(Sale(
        sale_id="S-1001",
        status=SaleStatus.DRAFT,
        customer_ref="C-1",
        product_ref="P-ROUTER",
        quantity=2,
        unit_price=Decimal("149.50"),
        warranty_period_months=12,
        linked_contract_ref="SC-77",
    ))
    for n, status in enumerate(
        [SaleStatus.PENDING, SaleStatus.CONFIRMED, SaleStatus.REFUNDED, SaleStatus.SHIPPED],
        start=2,
    ):
        store.add(Sale(
            sale_id=f"S-100{n}",
            status=status,
            customer_ref=f"C-{n}",
            product_ref="P-CABLE",
            quantity=n,
            unit_price=Decimal("9.99"),
        ))


def print_result(label: str, result: TransitionResult) -> None:
    if result.event is not None:
        print(f"  ✓ {label}: {result.event.from_status.value} -> {result.event.to_status.value}")
    elif result.error is not None:
        print(f"  ✗ {label}: {result.error.code.value} ({result.error.message})")


def main() -> int:
    parser = argparse.ArgumentParser(description="Simulate the product sale lifecycle in memory")
    parser.add_argument(
        "--actor-role",
        choices=sorted(DEFAULT_ROLE_GRANTS),
        default="admin",
        help="Role granted to the simulated user (default: admin)",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = InMemorySaleRepository()
    seed_sales(store)
    audit = LoggingAuditSink()
    workflow = build_workflow(
        store=store,
        gate=RolePermissionGate({ACTOR: frozenset({args.actor_role})}),
        gateways=logging_gateways(),
        audit_sink=audit,
    )

    try:
        print("=" * 60)
        print(f"Full lifecycle for S-1001 (role: {args.actor_role})")
        print("=" * 60)
        for status in LIFECYCLE:
            result = workflow.engine.transition_by_id("S-1001", status, actor=ACTOR)
            print_result(status.value, result)

        print()
        print("Rejected transitions")
        print("-" * 60)
        print_result("refunded -> paid", workflow.engine.transition_by_id("S-1001", SaleStatus.PAID, actor=ACTOR))
        print_result("anonymous", workflow.engine.transition_by_id("S-1002", SaleStatus.CONFIRMED))

        print()
        print("Bulk cancellation")
        print("-" * 60)
        bulk = workflow.bulk.bulk_transition(
            ["S-1002", "S-1003", "S-1004", "S-1005", "S-9999"],
            SaleStatus.CANCELLED,
            reason="Batch withdrawn",
            actor=ACTOR,
        )
        print(f"  {bulk.message}")
        for error in bulk.errors:
            print(f"    - {error.sale_id}: {error.error} ({error.message})")

        print()
        print("Final statuses")
        print("-" * 60)
        for sale in store.list_all():
            print(f"  {sale.sale_id}: {sale.status.value} (version {sale.version})")
    finally:
        workflow.close()

    # close() waits for side effects, so every audit entry is in by now
    print()
    print("Audit trail for S-1001 (newest first)")
    print("-" * 60)
    for entry in audit.history("S-1001"):
        print(f"  {entry.recorded_at.isoformat()} {entry.action}: {dict(entry.before)} -> {dict(entry.after)}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
