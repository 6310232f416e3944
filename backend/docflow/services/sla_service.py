"""SLA Service - Overdue detection and escalation across workflow collections"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..domain.errors import DomainError
from ..domain.models import Document, SlaStatus, Workflow, WorkflowStep
from ..engine.audit_log import AuditLogStore
from ..engine.engine import WorkflowEngine
from ..repositories.base import DocumentStore
from ..repositories.workflow_repo import WorkflowRepository
from ..utils.time import optional_iso
from ..utils.logger import get_logger

logger = get_logger(__name__)


class OverdueItem:
    """A step whose SLA is breached"""

    def __init__(
        self,
        document: Document,
        workflow: Workflow,
        step: WorkflowStep,
        sla_status: SlaStatus,
        assigned_at: Optional[datetime],
        escalated: bool
    ):
        self.document = document
        self.workflow = workflow
        self.step = step
        self.sla_status = sla_status
        self.assigned_at = assigned_at
        self.escalated = escalated

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document": {
                "collection": self.document.collection,
                "id": self.document.id,
                "title": self.document.title,
            },
            "workflow_id": self.workflow.id,
            "workflow_name": self.workflow.name,
            "step": {
                "step_number": self.step.step_number,
                "step_name": self.step.name,
                "escalation_action": self.step.sla.escalation_action if self.step.sla else None,
            },
            "assigned_at": optional_iso(self.assigned_at),
            "sla_status": self.sla_status.model_dump(),
            "escalated": self.escalated,
        }


class SlaService:
    """Service for SLA sweeps; SLA state itself is always computed on demand"""

    def __init__(
        self,
        engine: WorkflowEngine,
        workflow_repo: WorkflowRepository,
        audit_log: AuditLogStore,
        store: DocumentStore,
        workflow_collections: List[str]
    ):
        self.engine = engine
        self.workflow_repo = workflow_repo
        self.audit_log = audit_log
        self._store = store
        self._collections = workflow_collections

    async def list_overdue(self, now: Optional[datetime] = None) -> List[OverdueItem]:
        """All active documents whose current step is past its SLA"""
        now = now or self.audit_log.now()
        workflows: Dict[str, Optional[Workflow]] = {}
        overdue: List[OverdueItem] = []

        for collection in self._collections:
            result = await self._store.find(
                collection,
                {"workflow": {"$ne": None}, "workflow_status.is_completed": False},
                sort=[("id", 1)]
            )
            for raw in result.items:
                document = Document(collection=collection, data=raw)
                workflow_id = document.workflow_id
                if workflow_id not in workflows:
                    workflows[workflow_id] = await self.workflow_repo.get(workflow_id)
                workflow = workflows[workflow_id]
                if workflow is None or not workflow.is_active:
                    continue

                status = document.workflow_status
                step = workflow.get_step(status.current_step) if status else None
                if step is None or step.sla is None or not step.sla.is_active:
                    continue

                sla_status = await self.audit_log.check_sla_status(workflow, document, step, now=now)
                if not sla_status.is_overdue:
                    continue

                assignment, escalated = await self.audit_log.assignment_state(workflow.id, document, step.step_number)
                overdue.append(OverdueItem(
                    document, workflow, step, sla_status,
                    assignment.timestamp if assignment else None,
                    escalated
                ))

        return overdue

    async def escalate_overdue(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Escalate each overdue step at most once per assignment"""
        escalated, skipped, failed = [], [], []

        for item in await self.list_overdue(now):
            if item.escalated:
                skipped.append(item.to_dict())
                continue
            try:
                log_id = await self.engine.escalate_step(item.document, item.workflow, item.step, item.sla_status)
            except DomainError as e:
                logger.error(
                    f"Escalation failed: {e.message}",
                    extra={"document_id": item.document.id, "workflow_id": item.workflow.id}
                )
                failed.append({**item.to_dict(), **e.to_dict()["error"]})
                continue
            if log_id is None:
                skipped.append(item.to_dict())
                continue
            escalated.append({**item.to_dict(), "escalated": True, "log_id": log_id})

        if escalated:
            logger.info(f"Escalated {len(escalated)} overdue step(s)")
        return {"escalated": escalated, "skipped": skipped, "failed": failed}
