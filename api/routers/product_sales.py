"""
Product Sales API Endpoints.

Endpoints for reading the status lifecycle and a sale's audit trail, changing
the status of a single sale, and bulk status updates / deletes.
"""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_actor, get_workflow
from api.models import (
    AuditEntryResponse,
    BulkDeleteRequest,
    BulkItemErrorResponse,
    BulkOperationResponse,
    BulkStatusUpdateRequest,
    NextStatusesResponse,
    StatusInfoResponse,
    TransitionEventResponse,
    TransitionRequest,
    TransitionResponse,
)
from domain.bulk import BulkOperationResult
from domain.errors import PersistenceError, TransitionErrorCode
from domain.status import SaleStatus, StatusRegistry
from services.workflow import Workflow

logger = logging.getLogger(__name__)

router = APIRouter()

# HTTP status for each typed transition failure.
ERROR_STATUS_CODES: Dict[TransitionErrorCode, int] = {
    TransitionErrorCode.NO_OP_TRANSITION: 409,
    TransitionErrorCode.INVALID_TRANSITION: 409,
    TransitionErrorCode.PERMISSION_DENIED: 403,
    TransitionErrorCode.PERMISSION_GATE_UNAVAILABLE: 503,
    TransitionErrorCode.CONCURRENT_MODIFICATION: 409,
    TransitionErrorCode.PERSISTENCE_FAILURE: 503,
    TransitionErrorCode.SALE_NOT_FOUND: 404,
}


def _status_info(registry: StatusRegistry, status: SaleStatus) -> StatusInfoResponse:
    info = registry.info(status)
    return StatusInfoResponse(
        status=status,
        label=info.label,
        color=info.color,
        description=info.description,
        notification_type=info.notification_type,
        next_statuses=list(registry.ordered_next(status)),
        is_terminal=registry.is_terminal(status),
    )


def _bulk_response(result: BulkOperationResult) -> BulkOperationResponse:
    return BulkOperationResponse(
        succeeded=result.succeeded,
        failed=result.failed,
        total=result.total,
        requested=result.requested,
        errors=[
            BulkItemErrorResponse(sale_id=e.sale_id, error=e.error, message=e.message)
            for e in result.errors
        ],
        message=result.message,
    )


@router.get(
    "/product-sales/statuses",
    response_model=list[StatusInfoResponse],
    summary="List Sale Statuses",
    description="All sale statuses with display metadata and allowed next statuses."
)
def list_statuses(workflow: Workflow = Depends(get_workflow)):
    """
    List every sale status in lifecycle order.

    Each entry carries the label, color and description used by the UI, plus
    the statuses a sale in that status may move to.
    """
    registry = workflow.engine.registry
    return [_status_info(registry, status) for status in SaleStatus]


@router.get(
    "/product-sales/{sale_id}/next-statuses",
    response_model=NextStatusesResponse,
    summary="Get Next Statuses",
    description="Statuses the given sale may legally move to."
)
def get_next_statuses(sale_id: str, workflow: Workflow = Depends(get_workflow)):
    """
    Get the legal next statuses for a sale.

    Returns 404 if the sale does not exist.
    """
    try:
        sale = workflow.store.get_by_id(sale_id)
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=f"Failed to load sale: {str(e)}")

    if sale is None:
        raise HTTPException(status_code=404, detail=f"Sale not found: {sale_id}")

    registry = workflow.engine.registry
    return NextStatusesResponse(
        sale_id=sale.sale_id,
        current_status=sale.status,
        next_statuses=[_status_info(registry, s) for s in registry.ordered_next(sale.status)],
    )


@router.get(
    "/product-sales/{sale_id}/audit-trail",
    response_model=list[AuditEntryResponse],
    summary="Get Audit Trail",
    description="Status changes and deletions recorded for a sale, newest first."
)
def get_audit_trail(
    sale_id: str,
    limit: int = Query(50, ge=1, le=500, description="Maximum number of entries to return"),
    workflow: Workflow = Depends(get_workflow),
):
    """
    Get the audit history of a sale.

    Deleted sales keep their history, so an unknown id returns an empty list.
    """
    try:
        entries = workflow.audit_sink.history(sale_id, limit=limit)
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=f"Failed to load audit trail: {str(e)}")

    return [
        AuditEntryResponse(
            action=entry.action,
            sale_id=entry.sale_id,
            recorded_at=entry.recorded_at,
            before=dict(entry.before),
            after=dict(entry.after),
            reason=entry.reason,
            actor_ref=entry.actor_ref,
            metadata=dict(entry.metadata),
        )
        for entry in entries
    ]


@router.post(
    "/product-sales/{sale_id}/transitions",
    response_model=TransitionResponse,
    summary="Change Sale Status",
    description="Validate, authorize and commit a status change; side effects run in the background."
)
def transition_sale(
    sale_id: str,
    request: TransitionRequest,
    workflow: Workflow = Depends(get_workflow),
    actor: Optional[str] = Depends(get_actor),
):
    """
    Change the status of one sale.

    **Process:**
    1. Rejects no-op and illegal transitions (409)
    2. Asks the permission gate (403 on denial, 503 if unavailable)
    3. Commits the new status if the sale was not modified concurrently (409 otherwise)
    4. Starts side effects (audit, inventory, invoice, notifications...) without waiting

    Side-effect failures never change the response: the status change is committed.
    """
    result = workflow.engine.transition_by_id(
        sale_id,
        request.new_status,
        reason=request.reason,
        actor=actor,
    )

    error = result.error
    if error is not None:
        raise HTTPException(
            status_code=ERROR_STATUS_CODES[error.code],
            detail={"error": error.code.value, "message": error.message},
        )

    sale, event = result.sale, result.event
    if sale is None or event is None:
        raise HTTPException(status_code=500, detail="Transition committed without an event")

    return TransitionResponse(
        success=True,
        sale_id=sale.sale_id,
        status=sale.status,
        version=sale.version,
        event=TransitionEventResponse(
            sale_id=event.sale_id,
            from_status=event.from_status,
            to_status=event.to_status,
            occurred_at=event.occurred_at,
            reason=event.reason,
            actor_ref=event.actor_ref,
        ),
    )


@router.post(
    "/product-sales/bulk/status",
    response_model=BulkOperationResponse,
    summary="Bulk Status Update",
    description="Move many sales to one status; each sale succeeds or fails on its own."
)
def bulk_update_status(
    request: BulkStatusUpdateRequest,
    workflow: Workflow = Depends(get_workflow),
    actor: Optional[str] = Depends(get_actor),
):
    """
    Update the status of many sales.

    One failing sale never blocks the others. The response reports how many
    succeeded and the error code and message of every failure.
    """
    result = workflow.bulk.bulk_transition(
        request.sale_ids,
        request.new_status,
        reason=request.reason,
        actor=actor,
    )
    return _bulk_response(result)


@router.post(
    "/product-sales/bulk/delete",
    response_model=BulkOperationResponse,
    summary="Bulk Delete",
    description="Delete many sales; each deletion is authorized and audited separately."
)
def bulk_delete(
    request: BulkDeleteRequest,
    workflow: Workflow = Depends(get_workflow),
    actor: Optional[str] = Depends(get_actor),
):
    """
    Delete many sales.

    Each deleted sale gets a DELETE audit entry.
    """
    result = workflow.bulk.bulk_delete(request.sale_ids, reason=request.reason, actor=actor)
    return _bulk_response(result)
