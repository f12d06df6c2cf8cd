"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from domain.status import SaleStatus


# ============================================================================
# Status Models
# ============================================================================

class StatusInfoResponse(BaseModel):
    """Display metadata for one sale status."""
    status: SaleStatus
    label: str
    color: str
    description: str
    notification_type: str  # success, info, warning, error
    next_statuses: List[SaleStatus]
    is_terminal: bool

    class Config:
        json_schema_extra = {
            "example": {
                "status": "invoiced",
                "label": "Invoiced",
                "color": "purple",
                "description": "Invoice has been generated",
                "notification_type": "success",
                "next_statuses": ["paid", "cancelled"],
                "is_terminal": False
            }
        }


class NextStatusesResponse(BaseModel):
    """Statuses a sale may move to from its current status."""
    sale_id: str
    current_status: SaleStatus
    next_statuses: List[StatusInfoResponse]


# ============================================================================
# Transition Models
# ============================================================================

class TransitionRequest(BaseModel):
    """Request to change the status of a single sale."""
    new_status: SaleStatus = Field(
        ...,
        description="Target status"
    )
    reason: Optional[str] = Field(
        None,
        max_length=500,
        description="Free-text reason, copied into the audit entry and notifications"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "new_status": "cancelled",
                "reason": "Customer changed their mind"
            }
        }


class TransitionEventResponse(BaseModel):
    """The status change that was committed."""
    sale_id: str
    from_status: SaleStatus
    to_status: SaleStatus
    occurred_at: datetime
    reason: Optional[str] = None
    actor_ref: Optional[str] = None


class TransitionResponse(BaseModel):
    """Response after a successful status change."""
    success: bool
    sale_id: str
    status: SaleStatus
    version: int
    event: TransitionEventResponse

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "sale_id": "S-1001",
                "status": "paid",
                "version": 7,
                "event": {
                    "sale_id": "S-1001",
                    "from_status": "invoiced",
                    "to_status": "paid",
                    "occurred_at": "2026-10-19T10:15:00Z",
                    "reason": None,
                    "actor_ref": "user-42"
                }
            }
        }


# ============================================================================
# Audit Models
# ============================================================================

class AuditEntryResponse(BaseModel):
    """One row of a sale's audit trail."""
    action: str
    sale_id: str
    recorded_at: datetime
    before: Dict[str, Any]
    after: Dict[str, Any]
    reason: Optional[str] = None
    actor_ref: Optional[str] = None
    metadata: Dict[str, Any]

    class Config:
        json_schema_extra = {
            "example": {
                "action": "STATUS_CHANGE",
                "sale_id": "S-1001",
                "recorded_at": "2026-10-19T10:15:00Z",
                "before": {"status": "invoiced"},
                "after": {"status": "paid"},
                "reason": None,
                "actor_ref": "user-42",
                "metadata": {}
            }
        }


# ============================================================================
# Bulk Models
# ============================================================================

class BulkStatusUpdateRequest(BaseModel):
    """Request to move many sales to one status."""
    sale_ids: List[str] = Field(
        ...,
        min_length=1,
        description="Sale IDs to update; duplicates are processed once"
    )
    new_status: SaleStatus = Field(
        ...,
        description="Target status for every sale"
    )
    reason: Optional[str] = Field(
        None,
        max_length=500,
        description="Reason applied to every transition"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "sale_ids": ["S-1001", "S-1002", "S-1003"],
                "new_status": "cancelled",
                "reason": "Order batch withdrawn"
            }
        }


class BulkDeleteRequest(BaseModel):
    """Request to delete many sales."""
    sale_ids: List[str] = Field(
        ...,
        min_length=1,
        description="Sale IDs to delete; duplicates are processed once"
    )
    reason: Optional[str] = Field(
        None,
        max_length=500,
        description="Reason recorded in each audit entry"
    )


class BulkItemErrorResponse(BaseModel):
    """A single failed item in a bulk operation."""
    sale_id: str
    error: str
    message: str


class BulkOperationResponse(BaseModel):
    """Aggregate outcome of a bulk operation."""
    succeeded: int
    failed: int
    total: int = Field(..., description="Distinct sale ids processed")
    requested: int = Field(..., description="Sale ids as submitted, duplicates included")
    errors: List[BulkItemErrorResponse]
    message: str

    class Config:
        json_schema_extra = {
            "example": {
                "succeeded": 4,
                "failed": 1,
                "total": 5,
                "requested": 5,
                "errors": [
                    {
                        "sale_id": "S-1003",
                        "error": "InvalidTransition",
                        "message": "Cannot transition from refunded to cancelled"
                    }
                ],
                "message": "Bulk status update: 4 succeeded, 1 failed"
            }
        }


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int

    class Config:
        json_schema_extra = {
            "example": {
                "error": "InvalidTransition",
                "detail": "Cannot transition from refunded to cancelled",
                "status_code": 409
            }
        }
