"""Audit Repository - Data access for workflow log entries (append-only)"""
import threading
import time
from typing import Any, Dict, List, Optional

from .base import DocumentStore, SortSpec
from ..domain.models import WorkflowLogEntry
from ..utils.idgen import generate_log_id
from ..utils.logger import get_logger

logger = get_logger(__name__)

LOG_COLLECTION = "workflow_logs"

_sequence_lock = threading.Lock()
_last_sequence = 0


def next_sequence() -> int:
    """Strictly increasing tie-breaker for entries sharing a timestamp"""
    global _last_sequence
    with _sequence_lock:
        _last_sequence = max(time.time_ns(), _last_sequence + 1)
        return _last_sequence


class AuditRepository:
    """
    Repository for workflow log operations

    Only insert and find are exposed; there is no update or delete path.
    """

    def __init__(self, store: DocumentStore):
        self._store = store

    async def insert(self, entry: WorkflowLogEntry) -> WorkflowLogEntry:
        """Insert a log entry, assigning its id and sequence"""
        entry = entry.model_copy(update={
            "id": entry.id or generate_log_id(),
            "sequence": entry.sequence or next_sequence(),
        })
        await self._store.create(LOG_COLLECTION, entry.model_dump(mode="python"))

        logger.info(
            f"Logged {entry.action} on step {entry.step.step_number}",
            extra={
                "log_id": entry.id,
                "workflow_id": entry.workflow,
                "document_id": entry.document.id,
                "collection": entry.document.collection,
                "step_number": entry.step.step_number,
                "action": entry.action,
                "user_id": entry.user
            }
        )
        return entry

    async def find(
        self,
        query: Dict[str, Any],
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None
    ) -> List[WorkflowLogEntry]:
        """Find log entries, oldest first unless a sort is given"""
        result = await self._store.find(
            LOG_COLLECTION,
            query,
            sort=sort or [("timestamp", 1), ("sequence", 1)],
            limit=limit
        )
        return [WorkflowLogEntry.model_validate(doc) for doc in result.items]
