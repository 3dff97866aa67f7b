"""
Best-effort audit trail for course mutations.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from ..core.entities import AuditLogEntry, new_entity_id, utc_now
from ..core.enums import AuditAction, EntityKind, Table
from ..core.exceptions import ObservabilityError
from ..core.interfaces import DataAccess

logger = logging.getLogger("courseclaim.audit")


class AuditRecorder:
    """Appends immutable audit entries.

    A failed audit write never fails the business operation that triggered
    it: the failure is logged with the full entry so it can be reconciled.
    """

    def __init__(self, data_access: DataAccess):
        self._data_access = data_access
        self._failed_writes = 0

    @property
    def failed_writes(self) -> int:
        """Number of entries that could not be written since start-up."""
        return self._failed_writes

    def record(self, actor_id: str, action: AuditAction,
               entity_kind: Union[EntityKind, str], entity_id: Optional[str],
               details: Optional[Dict[str, Any]] = None) -> Optional[AuditLogEntry]:
        """Append one audit entry. Returns None when the write failed."""
        kind = entity_kind.value if isinstance(entity_kind, EntityKind) else entity_kind
        values = {
            "id": new_entity_id(),
            "actor_id": actor_id,
            "action": action.value,
            "entity": kind,
            "entity_id": entity_id,
            "details": dict(details or {}),
            "created_at": utc_now().isoformat(),
        }
        try:
            row = self._data_access.insert_row(Table.AUDIT_LOGS, values)
        except Exception as e:
            self._failed_writes += 1
            error = ObservabilityError(
                f"Audit write failed for {action.value} on {kind} {entity_id}: {e}",
                details={"entry": values},
            )
            logger.error("%s", error.message, extra={"audit_entry": values}, exc_info=e)
            return None
        return AuditLogEntry.from_row(row)

    def list_entries(self, entity_id: Optional[str] = None, limit: int = 50) -> List[AuditLogEntry]:
        """Most recent entries first, optionally for a single entity."""
        filters = {"entity_id": entity_id} if entity_id else None
        rows = self._data_access.find_many(
            Table.AUDIT_LOGS, filters, order_by="created_at", descending=True, limit=limit
        )
        return [AuditLogEntry.from_row(row) for row in rows]
