"""Audit Log Store - Append-only workflow history and SLA computation"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..domain.enums import LogAction
from ..domain.models import (
    Document, LogDocumentRef, LogStepRef, SlaStatus, Workflow, WorkflowLogEntry, WorkflowStep
)
from ..repositories.audit_repo import AuditRepository
from ..utils.time import business_hours_between, hours_between, utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

RESOLVING_ACTIONS = [LogAction.APPROVED.value, LogAction.REJECTED.value]


def _order_key(entry: WorkflowLogEntry) -> Tuple[datetime, int]:
    return (entry.timestamp, entry.sequence)


def document_ref(document: Document) -> LogDocumentRef:
    return LogDocumentRef(collection=document.collection, id=document.id, title=document.title)


def step_ref(step: WorkflowStep) -> LogStepRef:
    return LogStepRef(step_number=step.step_number, step_name=step.name, step_type=step.step_type)


class AuditLogStore:
    """
    Append-only log of workflow actions

    Entries are never updated or removed. Queries return entries ordered by
    timestamp ascending unless noted otherwise.
    """

    def __init__(
        self,
        repo: AuditRepository,
        business_timezone: str = "UTC",
        business_day_start_hour: int = 9,
        business_day_end_hour: int = 17,
        clock: Callable[[], datetime] = utc_now
    ):
        self._repo = repo
        self._business_timezone = business_timezone
        self._day_start = business_day_start_hour
        self._day_end = business_day_end_hour
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    # =========================================================================
    # Writes
    # =========================================================================

    async def append(self, entry: WorkflowLogEntry) -> str:
        """Persist an entry and return its id"""
        stored = await self._repo.insert(entry)
        return stored.id

    async def record(
        self,
        workflow: Workflow,
        document: Document,
        step: WorkflowStep,
        action: LogAction,
        user: str,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        sla_status: Optional[SlaStatus] = None
    ) -> str:
        """Build and append an entry for a step event"""
        entry = WorkflowLogEntry(
            workflow=workflow.id,
            document=document_ref(document),
            step=step_ref(step),
            action=action,
            user=user,
            timestamp=self.now(),
            comment=comment,
            metadata=metadata or {},
            sla_status=sla_status
        )
        return await self.append(entry)

    # =========================================================================
    # Queries
    # =========================================================================

    def _document_query(self, workflow_id: Optional[str], document: Document) -> Dict[str, Any]:
        query: Dict[str, Any] = {
            "document.collection": document.collection,
            "document.id": document.id,
        }
        if workflow_id:
            query["workflow"] = workflow_id
        return query

    async def step_logs(self, workflow_id: str, document: Document, step_number: int) -> List[WorkflowLogEntry]:
        """All entries for one step of a document"""
        query = self._document_query(workflow_id, document)
        query["step.step_number"] = step_number
        return await self._repo.find(query)

    async def document_logs(self, workflow_id: Optional[str], document: Document) -> List[WorkflowLogEntry]:
        """All entries for a document (across workflows when workflow_id is None)"""
        return await self._repo.find(self._document_query(workflow_id, document))

    async def workflow_logs(self, workflow_id: str, limit: int = 100) -> List[WorkflowLogEntry]:
        """Most recent entries of a workflow, newest first"""
        return await self._repo.find(
            {"workflow": workflow_id},
            sort=[("timestamp", -1), ("sequence", -1)],
            limit=limit
        )

    async def user_logs(self, user_id: str, limit: int = 50) -> List[WorkflowLogEntry]:
        """Most recent entries written by a user, newest first"""
        return await self._repo.find(
            {"user": user_id},
            sort=[("timestamp", -1), ("sequence", -1)],
            limit=limit
        )

    async def latest_entry(
        self,
        workflow_id: str,
        document: Document,
        action: LogAction,
        step_number: Optional[int] = None
    ) -> Optional[WorkflowLogEntry]:
        """Newest entry with the given action for a document (optionally one step)"""
        query = self._document_query(workflow_id, document)
        query["action"] = action.value
        if step_number is not None:
            query["step.step_number"] = step_number
        entries = await self._repo.find(query, sort=[("timestamp", -1), ("sequence", -1)], limit=1)
        return entries[0] if entries else None

    async def pending_assignments_for(self, user_id: str) -> List[WorkflowLogEntry]:
        """
        Open assignments of a user

        The latest `assigned` entry per workflow/document/step whose
        assignees include the user and that has no later approval or
        rejection for the same step.
        """
        assigned = await self._repo.find({
            "action": LogAction.ASSIGNED.value,
            "metadata.assignees": user_id,
        })

        latest: Dict[Tuple[str, str, str, int], WorkflowLogEntry] = {}
        for entry in assigned:
            key = (entry.workflow, entry.document.collection, entry.document.id, entry.step.step_number)
            latest[key] = entry

        pending = []
        for (workflow_id, collection, document_id, step_number), entry in latest.items():
            resolutions = await self._repo.find({
                "workflow": workflow_id,
                "document.collection": collection,
                "document.id": document_id,
                "step.step_number": step_number,
                "action": {"$in": RESOLVING_ACTIONS},
            })
            if not any(_order_key(r) > _order_key(entry) for r in resolutions):
                pending.append(entry)

        pending.sort(key=_order_key)
        return pending

    async def is_step_resolved(self, workflow_id: str, document: Document, step_number: int) -> bool:
        """A step is resolved once it has at least one approval or rejection"""
        query = self._document_query(workflow_id, document)
        query["step.step_number"] = step_number
        query["action"] = {"$in": RESOLVING_ACTIONS}
        return bool(await self._repo.find(query, limit=1))

    async def assignment_state(
        self,
        workflow_id: str,
        document: Document,
        step_number: int
    ) -> Tuple[Optional[WorkflowLogEntry], bool]:
        """
        Open assignment of a step and whether it was already escalated

        Returns:
            (latest `assigned` entry, escalated). The entry is None when the
            step was never assigned or was approved or rejected after it.
        """
        entries = await self.step_logs(workflow_id, document, step_number)
        assignment = None
        escalated = False
        for entry in sorted(entries, key=_order_key):
            if entry.action == LogAction.ASSIGNED.value:
                assignment = entry
                escalated = False
            elif entry.action in RESOLVING_ACTIONS:
                assignment = None
                escalated = False
            elif entry.action == LogAction.ESCALATED.value and assignment is not None:
                escalated = True
        return assignment, escalated

    # =========================================================================
    # SLA
    # =========================================================================

    def compute_overdue(
        self,
        assignment_entry: WorkflowLogEntry,
        sla_hours: float,
        business_hours: bool = False,
        now: Optional[datetime] = None
    ) -> SlaStatus:
        """
        Overdue status of an assignment

        Args:
            assignment_entry: The `assigned` entry that started the clock
            sla_hours: Time budget in hours
            business_hours: Count only business hours instead of wall clock
            now: Evaluation instant (defaults to the store's clock)
        """
        now = now or self.now()
        if business_hours:
            elapsed = business_hours_between(
                assignment_entry.timestamp,
                now,
                self._business_timezone,
                self._day_start,
                self._day_end
            )
        else:
            elapsed = hours_between(assignment_entry.timestamp, now)

        return SlaStatus(
            is_overdue=elapsed > sla_hours,
            overdue_hours=round(max(0.0, elapsed - sla_hours), 2)
        )

    async def check_sla_status(
        self,
        workflow: Workflow,
        document: Document,
        step: WorkflowStep,
        now: Optional[datetime] = None
    ) -> SlaStatus:
        """SLA status of a step measured from its latest assignment"""
        if step.sla is None or not step.sla.is_active:
            return SlaStatus()

        assignment = await self.latest_entry(workflow.id, document, LogAction.ASSIGNED, step.step_number)
        if assignment is None:
            return SlaStatus()

        return self.compute_overdue(assignment, step.sla.hours, step.sla.business_hours, now)
