"""Document Service - Boundary entry points for documents under workflow

Every public method returns domain results or raises a DomainError; any
other exception is logged and surfaced as InternalFailureError.
"""
import functools
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from ..domain.enums import TriggerAction, SYSTEM_ACTOR
from ..domain.errors import (
    DomainError, InternalFailureError, PermissionDeniedError, ValidationError,
    WorkflowInactiveError, WorkflowNotFoundError
)
from ..domain.models import ActionResult, Document, User, WorkflowLogEntry
from ..engine.audit_log import AuditLogStore
from ..engine.engine import WorkflowEngine
from ..repositories.base import UserDirectory
from ..repositories.workflow_repo import WorkflowRepository
from ..utils.time import optional_iso
from ..utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def boundary(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Translate unexpected exceptions into InternalFailureError"""
    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await func(*args, **kwargs)
        except DomainError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected failure in {func.__name__}: {e}")
            raise InternalFailureError(
                "An unexpected error occurred",
                details={"operation": func.__name__}
            ) from e
    return wrapper


def _require(**fields: Any) -> None:
    missing = [name for name, value in fields.items() if value is None or (isinstance(value, str) and not value.strip())]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details={"missing": missing}
        )


class DocumentService:
    """Service for workflow operations on documents"""

    def __init__(
        self,
        engine: WorkflowEngine,
        workflow_repo: WorkflowRepository,
        audit_log: AuditLogStore,
        directory: UserDirectory,
        status_log_limit: int = 20
    ):
        self.engine = engine
        self.workflow_repo = workflow_repo
        self.audit_log = audit_log
        self.directory = directory
        self.status_log_limit = status_log_limit

    async def _acting_user(self, user_id: str) -> User:
        user = await self.directory.find_by_id(user_id)
        if user is None or not user.is_active:
            raise PermissionDeniedError(
                f"User {user_id} is not an active user",
                details={"user_id": user_id}
            )
        return user

    # =========================================================================
    # Actions
    # =========================================================================

    @boundary
    async def trigger_action(
        self,
        document_id: str,
        collection: str,
        workflow_id: str,
        action: str,
        acting_user_id: str,
        comment: Optional[str] = None
    ) -> ActionResult:
        """Apply an action on the document's current step"""
        _require(
            document_id=document_id,
            collection=collection,
            workflow_id=workflow_id,
            action=action,
            acting_user_id=acting_user_id
        )
        user = await self._acting_user(acting_user_id)
        workflow = await self.workflow_repo.get_or_raise(workflow_id)
        if not workflow.is_active:
            raise WorkflowInactiveError(
                f"Workflow {workflow_id} is not active",
                details={"workflow_id": workflow_id}
            )

        return await self.engine.apply_action(collection, document_id, workflow, action, user, comment)

    @boundary
    async def assign_workflow(
        self,
        document_id: str,
        collection: str,
        workflow_id: str,
        auto_start: bool = True,
        acting_user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Attach a workflow to a document"""
        _require(document_id=document_id, collection=collection, workflow_id=workflow_id)
        actor = (await self._acting_user(acting_user_id)).id if acting_user_id else SYSTEM_ACTOR

        document = await self.engine.get_document(collection, document_id)
        workflow = await self.workflow_repo.get_or_raise(workflow_id)
        document, started = await self.engine.assign_workflow(
            document, workflow, auto_start=auto_start, actor=actor
        )

        status = document.workflow_status
        return {
            "document_id": document.id,
            "collection": collection,
            "workflow_id": workflow.id,
            "started": started is not None,
            "current_step": status.current_step if status else 0,
            "is_completed": status.is_completed if status else False,
        }

    @boundary
    async def bulk_assign(
        self,
        document_ids: List[str],
        collection: str,
        workflow_id: str,
        auto_start: bool = True,
        acting_user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Assign a workflow to many documents, collecting per-document failures"""
        _require(collection=collection, workflow_id=workflow_id)
        if not document_ids:
            raise ValidationError("document_ids must not be empty")
        await self.workflow_repo.get_or_raise(workflow_id)

        assigned, failed = [], []
        for document_id in document_ids:
            try:
                assigned.append(await self.assign_workflow(
                    document_id, collection, workflow_id, auto_start, acting_user_id
                ))
            except DomainError as e:
                failed.append({"document_id": document_id, **e.to_dict()["error"]})

        logger.info(
            f"Bulk assigned workflow {workflow_id}: {len(assigned)} ok, {len(failed)} failed",
            extra={"workflow_id": workflow_id, "collection": collection}
        )
        return {"assigned": assigned, "failed": failed, "total": len(document_ids)}

    # =========================================================================
    # Queries
    # =========================================================================

    @boundary
    async def get_status(self, document_id: str, collection: str, include_logs: bool = True) -> Dict[str, Any]:
        """Status snapshot of a document's workflow"""
        _require(document_id=document_id, collection=collection)
        document = await self.engine.get_document(collection, document_id)
        document_info = {"id": document.id, "title": document.title, "collection": collection}

        if not document.workflow_id:
            return {
                "has_workflow": False,
                "document": document_info,
                "message": "No workflow assigned to this document",
            }

        workflow = await self.workflow_repo.get(document.workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(
                f"Workflow {document.workflow_id} not found",
                details={"workflow_id": document.workflow_id}
            )

        status = document.workflow_status
        total = workflow.step_count
        is_completed = bool(status and status.is_completed)
        current_number = status.current_step if status else 0
        current = None if is_completed else workflow.get_step(current_number)

        if is_completed:
            progress = 100
        elif total:
            progress = round(max(0, current_number - 1) / total * 100)
        else:
            progress = 0

        sla_status = None
        if current is not None:
            sla_status = (await self.audit_log.check_sla_status(workflow, document, current)).model_dump()

        logs: List[Dict[str, Any]] = []
        if include_logs:
            entries = await self.audit_log.document_logs(workflow.id, document)
            logs = [entry.model_dump(mode="json") for entry in entries[-self.status_log_limit:]]

        available_actions: List[str] = []
        if current is not None:
            available_actions = [TriggerAction.APPROVED.value, TriggerAction.REJECTED.value]
            if current.allow_comments:
                available_actions.append(TriggerAction.COMMENTED.value)

        return {
            "has_workflow": True,
            "workflow": {
                "id": workflow.id,
                "name": workflow.name,
                "description": workflow.description,
                "workflow_type": workflow.workflow_type,
                "priority": workflow.priority,
                "is_active": workflow.is_active,
                "version": workflow.version,
                "tags": workflow.tags,
            },
            "document": document_info,
            "status": {
                "current_step": current_number,
                "total_steps": total,
                "progress": progress,
                "is_completed": is_completed,
                "outcome": status.outcome if status else None,
                "last_updated": optional_iso(status.last_updated) if status else None,
                "started_at": optional_iso(status.started_at) if status else None,
                "completed_at": optional_iso(status.completed_at) if status else None,
            },
            "current_step": current.model_dump(mode="json") if current else None,
            "sla_status": sla_status,
            "logs": logs,
            "available_actions": available_actions,
        }

    @boundary
    async def pending_actions(self, user_id: str) -> List[Dict[str, Any]]:
        """Steps currently waiting on a user"""
        _require(user_id=user_id)
        pending = []
        workflows: Dict[str, Any] = {}

        for entry in await self.audit_log.pending_assignments_for(user_id):
            raw = await self.engine.store.find_by_id(entry.document.collection, entry.document.id)
            if raw is None:
                continue
            document = Document(collection=entry.document.collection, data=raw)
            status = document.workflow_status
            if (
                document.workflow_id != entry.workflow
                or status is None
                or status.is_completed
                or status.current_step != entry.step.step_number
            ):
                continue

            if entry.workflow not in workflows:
                workflows[entry.workflow] = await self.workflow_repo.get(entry.workflow)
            workflow = workflows[entry.workflow]
            step = workflow.get_step(entry.step.step_number) if workflow else None
            if step is None:
                continue

            sla_status = None
            if step.sla is not None and step.sla.is_active:
                sla_status = self.audit_log.compute_overdue(entry, step.sla.hours, step.sla.business_hours).model_dump()

            pending.append({
                "workflow_id": workflow.id,
                "workflow_name": workflow.name,
                "document": entry.document.model_dump(),
                "step": entry.step.model_dump(),
                "assigned_at": optional_iso(entry.timestamp),
                "sla_status": sla_status,
                "allow_comments": step.allow_comments,
                "require_comments": step.require_comments,
            })

        return pending

    @boundary
    async def document_history(
        self,
        collection: str,
        document_id: str,
        workflow_id: Optional[str] = None
    ) -> List[WorkflowLogEntry]:
        """Full log of a document, oldest first"""
        document = await self.engine.get_document(collection, document_id)
        return await self.audit_log.document_logs(workflow_id, document)

    @boundary
    async def user_history(self, user_id: str, limit: int = 50) -> List[WorkflowLogEntry]:
        """Most recent entries written by a user, newest first"""
        _require(user_id=user_id)
        return await self.audit_log.user_logs(user_id, limit=limit)

    @boundary
    async def workflow_history(self, workflow_id: str, limit: int = 100) -> List[WorkflowLogEntry]:
        """Most recent entries of a workflow across its documents, newest first"""
        _require(workflow_id=workflow_id)
        return await self.audit_log.workflow_logs(workflow_id, limit=limit)

    # =========================================================================
    # Lifecycle Hooks
    # =========================================================================

    @boundary
    async def handle_document_created(self, collection: str, document_id: str) -> Dict[str, Any]:
        """Run auto-assignment for a newly created document"""
        document = await self.engine.get_document(collection, document_id)
        workflow = await self.engine.handle_document_created(document)
        return {
            "document_id": document_id,
            "collection": collection,
            "assigned_workflow_id": workflow.id if workflow else None,
        }

    @boundary
    async def handle_document_changed(self, collection: str, document_id: str) -> Dict[str, Any]:
        """Restart the document's workflow if its status is orphaned"""
        document = await self.engine.get_document(collection, document_id)
        result = await self.engine.handle_document_changed(document)
        return {
            "document_id": document_id,
            "collection": collection,
            "restarted": result is not None,
        }
