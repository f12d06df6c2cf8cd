"""
Audit and notification sinks (persistence).

Writes are one insert per entry with no acknowledgement back to the workflow
core. Failures surface as PersistenceError to the dispatcher, which logs and
moves on. The audit sink also reads a sale's trail back, newest first.
"""

from __future__ import annotations

from typing import Any, List, Mapping

from domain.events import AuditEntry, DomainNotification
from repositories.rows import execute_rows, parse_utc_datetime, to_iso_utc

# Supabase table names.
# Keep these aligned with your database schema.
_AUDIT_TABLE: str = "product_sale_audit_log"
_NOTIFICATIONS_TABLE: str = "notifications"


def row_to_audit_entry(row: Mapping[str, Any]) -> AuditEntry:
    """Convert an audit-log row to an AuditEntry."""

    changes = row.get("changes") or {}
    return AuditEntry(
        action=str(row["action"]),
        sale_id=str(row["resource_id"]),
        recorded_at=parse_utc_datetime(row["recorded_at_utc"]),
        before=dict(changes.get("before") or {}),
        after=dict(changes.get("after") or {}),
        reason=row.get("reason"),
        actor_ref=row.get("actor_id"),
        metadata=dict(row.get("metadata") or {}),
    )


class SupabaseAuditSink:
    def __init__(self, client: Any, table: str = _AUDIT_TABLE) -> None:
        self._client = client
        self._table = table

    def record(self, entry: AuditEntry) -> None:
        payload: dict[str, Any] = {
            "action": entry.action,
            "resource": "product_sale",
            "resource_id": entry.sale_id,
            "changes": {"before": dict(entry.before), "after": dict(entry.after)},
            "reason": entry.reason,
            "actor_id": entry.actor_ref,
            "metadata": dict(entry.metadata),
            "recorded_at_utc": to_iso_utc(entry.recorded_at, name="recorded_at"),
        }
        execute_rows(self._client.table(self._table).insert(payload), action="record audit entry")

    def history(self, sale_id: str, limit: int = 50) -> List[AuditEntry]:
        """
        Audit trail of one sale, newest first.

        Deleted sales keep their trail, so an unknown id returns an empty list.

        Raises:
            ValueError: if limit < 1
            PersistenceError: if the query fails
        """

        if limit < 1:
            raise ValueError("limit must be >= 1")

        query = (
            self._client.table(self._table)
            .select("*")
            .eq("resource", "product_sale")
            .eq("resource_id", sale_id)
            .order("recorded_at_utc", desc=True)
            .limit(limit)
        )
        rows = execute_rows(query, action=f"load audit trail for sale {sale_id}")
        return [row_to_audit_entry(row) for row in rows]


class SupabaseNotificationSink:
    def __init__(self, client: Any, table: str = _NOTIFICATIONS_TABLE) -> None:
        self._client = client
        self._table = table

    def send(self, notification: DomainNotification) -> None:
        payload: dict[str, Any] = {
            "type": notification.type,
            "category": "product_sales",
            "sale_id": notification.sale_id,
            "title": notification.title,
            "message": notification.message,
            "data": dict(notification.data),
        }
        execute_rows(self._client.table(self._table).insert(payload), action="send notification")


__all__ = ["SupabaseAuditSink", "SupabaseNotificationSink", "row_to_audit_entry"]
