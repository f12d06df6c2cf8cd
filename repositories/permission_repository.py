"""
RBAC permission evaluation through Supabase.

Calls the `validate_role_permissions` PostgreSQL function, which answers
whether the acting user may perform an action given a context map.

This adapter never decides on its own: any transport or API error becomes
PermissionGateError so the caller fails closed.
"""

from __future__ import annotations

from typing import Any, Mapping

from postgrest.exceptions import APIError  # type: ignore[import-not-found]

from domain.errors import PermissionGateError
from domain.ports import PermissionDecision

_RPC_NAME: str = "validate_role_permissions"


class SupabasePermissionGate:
    def __init__(self, client: Any, rpc_name: str = _RPC_NAME) -> None:
        self._client = client
        self._rpc_name = rpc_name

    def check(self, action: str, context: Mapping[str, Any]) -> PermissionDecision:
        params = {
            "p_action": action,
            "p_context": {k: v for k, v in context.items() if v is not None},
        }
        try:
            response = self._client.rpc(self._rpc_name, params).execute()
        except APIError as e:
            raise PermissionGateError(f"{self._rpc_name} failed: {e}") from e
        except Exception as e:
            raise PermissionGateError(f"{self._rpc_name} unreachable: {e}") from e

        error = getattr(response, "error", None)
        if error:
            raise PermissionGateError(f"{self._rpc_name} failed: {error}")

        return _to_decision(getattr(response, "data", None))


def _to_decision(data: Any) -> PermissionDecision:
    """
    Accept either a bare boolean or {"allowed": bool, "reason": str, "denial_code": str}.

    Anything else is not a decision.
    """

    if isinstance(data, bool):
        return PermissionDecision(allowed=data)
    if isinstance(data, list) and len(data) == 1:
        data = data[0]
    if isinstance(data, Mapping) and isinstance(data.get("allowed"), bool):
        return PermissionDecision(
            allowed=data["allowed"],
            reason=data.get("reason"),
            denial_code=data.get("denial_code"),
        )
    raise PermissionGateError(f"Unexpected permission response: {data!r}")


__all__ = ["SupabasePermissionGate"]
