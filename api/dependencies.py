"""
FastAPI dependencies.

The workflow is built once per process from the Supabase adapters. Tests (and
local runs) replace it with `app.dependency_overrides[get_workflow]`.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Header

from config import load_settings
from domain.ports import SideEffectGateways
from repositories.client import create_supabase_client
from repositories.event_repository import SupabaseAuditSink, SupabaseNotificationSink
from repositories.fulfillment_repository import SupabaseFulfillmentGateway
from repositories.permission_repository import SupabasePermissionGate
from repositories.sale_repository import SupabaseSaleRepository
from services.workflow import Workflow, build_workflow


@lru_cache(maxsize=1)
def get_workflow() -> Workflow:
    """Process-wide workflow backed by Supabase."""
    settings = load_settings()
    client = create_supabase_client(settings)

    fulfillment = SupabaseFulfillmentGateway(client)
    gateways = SideEffectGateways(
        inventory=fulfillment,
        shipments=fulfillment,
        warranties=fulfillment,
        invoices=fulfillment,
        contracts=fulfillment,
        payments=fulfillment,
        notifications=SupabaseNotificationSink(client),
    )
    return build_workflow(
        store=SupabaseSaleRepository(client),
        gate=SupabasePermissionGate(client),
        gateways=gateways,
        audit_sink=SupabaseAuditSink(client),
        settings=settings,
    )


def get_actor(x_actor_id: Optional[str] = Header(None)) -> Optional[str]:
    """Acting user, taken from the X-Actor-Id header."""
    return x_actor_id
