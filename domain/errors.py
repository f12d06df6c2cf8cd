"""
Domain: Transition failure taxonomy.

Two layers:
- Exceptions raised by collaborators at the I/O boundary (store, permission
  gate). These never escape the transition engine.
- TransitionError / TransitionResult, the typed outcome the engine returns to
  its callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .events import TransitionEvent
from .sale import Sale
from .status import SaleStatus


class SaleNotFoundError(LookupError):
    """Raised by a store when no sale exists for the requested id."""


class ConflictError(RuntimeError):
    """Raised by a store when the expected version no longer matches."""


class PersistenceError(RuntimeError):
    """Raised by a store when the backing database fails or is unreachable."""


class PermissionGateError(RuntimeError):
    """Raised by a permission gate that could not produce a decision."""


class TransitionErrorCode(str, Enum):
    NO_OP_TRANSITION = "NoOpTransition"
    INVALID_TRANSITION = "InvalidTransition"
    PERMISSION_DENIED = "PermissionDenied"
    PERMISSION_GATE_UNAVAILABLE = "PermissionGateUnavailable"
    CONCURRENT_MODIFICATION = "ConcurrentModification"
    PERSISTENCE_FAILURE = "PersistenceFailure"
    SALE_NOT_FOUND = "SaleNotFound"


@dataclass(frozen=True, slots=True)
class TransitionError:
    code: TransitionErrorCode
    message: str
    from_status: Optional[SaleStatus] = None
    to_status: Optional[SaleStatus] = None


@dataclass(frozen=True, slots=True)
class TransitionResult:
    """
    Result of a transition attempt.

    success: True iff the stored status was changed
    event: the TransitionEvent (success only)
    sale: the updated Sale snapshot (success only)
    error: the typed failure (failure only)
    """

    success: bool
    event: Optional[TransitionEvent] = None
    sale: Optional[Sale] = None
    error: Optional[TransitionError] = None

    @staticmethod
    def ok(event: TransitionEvent, sale: Sale) -> "TransitionResult":
        return TransitionResult(success=True, event=event, sale=sale)

    @staticmethod
    def fail(
        code: TransitionErrorCode,
        message: str,
        from_status: Optional[SaleStatus] = None,
        to_status: Optional[SaleStatus] = None,
    ) -> "TransitionResult":
        return TransitionResult(
            success=False,
            error=TransitionError(code=code, message=message, from_status=from_status, to_status=to_status),
        )
