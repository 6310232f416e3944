"""
Workflow Engine - The Brain of the System

This module contains the WorkflowEngine class that moves documents through
their workflow steps.

=============================================================================
MODULE STRUCTURE
=============================================================================

1. STEP LIFECYCLE
   - start_workflow: Enter step 1 (or the first applicable step)
   - process_step: Assign a step unless it is already resolved
   - determine_next_step: Branching rules, then sequential fallback
   - move_to_next_step: Enter a given step
   - complete_workflow: Mark the workflow completed

2. ACTIONS
   - validate_action_permissions: Fail-closed assignee check
   - apply_action: approved / rejected / commented on the current step
   - assign_workflow: Attach a workflow to a document
   - escalate_step: SLA escalation

3. LIFECYCLE HOOKS
   - handle_document_created: Auto-assignment
   - handle_document_changed: Restart orphaned statuses

4. COMMIT
   - Status writes are compare-and-swap on workflow_status.revision and
     happen before any log write. A failed log write restores the previous
     status. Notifications are sent once the document lock is released and
     never fail a transition.

=============================================================================
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from .assignee_resolver import AssigneeResolver
from .audit_log import AuditLogStore, document_ref, step_ref
from .condition_evaluator import ConditionEvaluator
from .locks import KeyedLock
from .permission_guard import PermissionGuard
from .transition_resolver import TransitionResolver, workflow_conditions
from ..domain.enums import (
    AssigneeType, LogAction, NotificationEvent, SlaEscalationAction, TriggerAction, SYSTEM_ACTOR
)
from ..domain.errors import (
    DocumentNotFoundError, InternalFailureError, InvalidStateError, PermissionDeniedError,
    ValidationError, WorkflowAlreadyAssignedError, WorkflowInactiveError
)
from ..domain.models import (
    ActionResult, AssigneeSpec, Document, NotificationMessage, SlaStatus, TransitionResult,
    User, Workflow, WorkflowStatus, WorkflowStep
)
from ..repositories.base import DocumentStore, NotificationDispatcher, UserDirectory
from ..repositories.workflow_repo import WorkflowRepository
from ..utils.logger import get_logger

logger = get_logger(__name__)

DIRECTOR_ROLE = "director"

_Outbox = List[Tuple[List[str], NotificationMessage]]


class _PendingLog:
    def __init__(self, step: WorkflowStep, action: LogAction, user: str, **kwargs: Any):
        self.step = step
        self.action = action
        self.user = user
        self.kwargs = kwargs


class _TransitionPlan:
    """Status to commit plus the logs and notifications that follow it"""

    def __init__(self, status: Optional[WorkflowStatus]):
        self.status = status
        self.logs: List[_PendingLog] = []
        self.notifications: _Outbox = []
        self.entered: Optional[WorkflowStep] = None

    def log(self, step: WorkflowStep, action: LogAction, user: str, **kwargs: Any) -> None:
        self.logs.append(_PendingLog(step, action, user, **kwargs))

    def notify(self, user_ids: Sequence[str], message: NotificationMessage) -> None:
        self.notifications.append((list(user_ids), message))


class WorkflowEngine:
    """
    Workflow state machine

    States per document: UNASSIGNED -> ACTIVE(step) -> COMPLETED. Every
    operation that touches a document runs under that document's lock.
    """

    def __init__(
        self,
        store: DocumentStore,
        workflow_repo: WorkflowRepository,
        directory: UserDirectory,
        evaluator: ConditionEvaluator,
        resolver: AssigneeResolver,
        audit_log: AuditLogStore,
        transitions: TransitionResolver,
        permission_guard: PermissionGuard,
        notifier: NotificationDispatcher,
        locks: Optional[KeyedLock] = None
    ):
        self.store = store
        self.workflow_repo = workflow_repo
        self.directory = directory
        self.evaluator = evaluator
        self.resolver = resolver
        self.audit_log = audit_log
        self.transitions = transitions
        self.permission_guard = permission_guard
        self.notifier = notifier
        self.locks = locks or KeyedLock()

    # =========================================================================
    # Document Access
    # =========================================================================

    async def get_document(self, collection: str, document_id: str) -> Document:
        """Load a document or raise DocumentNotFoundError"""
        raw = await self.store.find_by_id(collection, document_id)
        if raw is None:
            raise DocumentNotFoundError(
                f"Document {document_id} not found in {collection}",
                details={"collection": collection, "document_id": document_id}
            )
        return Document(collection=collection, data=raw)

    @asynccontextmanager
    async def _transaction(self, collection: str, document_id: str) -> AsyncIterator[_Outbox]:
        """Hold the document lock, then send the notifications queued under it"""
        outbox: _Outbox = []
        async with self.locks.hold((collection, document_id)):
            yield outbox
        for user_ids, message in outbox:
            await self._notify(user_ids, message)

    async def _context(self, document: Document, workflow: Workflow) -> Dict[str, Any]:
        return await self.resolver.condition_context(document, workflow_conditions(workflow))

    # =========================================================================
    # Step Lifecycle
    # =========================================================================

    async def start_workflow(
        self,
        document: Document,
        workflow: Workflow,
        actor: str = SYSTEM_ACTOR
    ) -> TransitionResult:
        """
        Start a workflow at step 1

        Caller discipline: starting an already started document logs a
        second `started` entry.

        Raises:
            WorkflowInactiveError: If the workflow is deactivated
        """
        async with self._transaction(document.collection, document.id) as outbox:
            document = await self.get_document(document.collection, document.id)
            return await self._start(document, workflow, actor, outbox)

    async def _start(
        self,
        document: Document,
        workflow: Workflow,
        actor: str,
        outbox: _Outbox
    ) -> TransitionResult:
        if not workflow.is_active:
            raise WorkflowInactiveError(
                f"Workflow {workflow.id} is not active",
                details={"workflow_id": workflow.id}
            )
        first = workflow.get_step(1)
        if first is None:
            raise InvalidStateError(
                f"Workflow {workflow.id} has no steps",
                details={"workflow_id": workflow.id}
            )

        now = self.audit_log.now()
        plan = _TransitionPlan(WorkflowStatus(
            current_step=1,
            started_at=now,
            last_updated=now,
            revision=self._revision(document) + 1
        ))
        plan.log(first, LogAction.STARTED, actor)

        context = await self._context(document, workflow)
        await self._plan_enter(plan, document, workflow, first, LogAction.SKIPPED.value, context, actor)

        _, log_ids = await self._execute(plan, document, workflow, outbox)
        logger.info(
            f"Started workflow {workflow.id}",
            extra={"document_id": document.id, "workflow_id": workflow.id, "collection": document.collection}
        )
        return TransitionResult(
            next_step=plan.entered,
            is_completed=plan.status.is_completed,
            log_id=log_ids[0]
        )

    async def process_step(
        self,
        document: Document,
        workflow: Workflow,
        step: WorkflowStep
    ) -> Optional[str]:
        """
        Assign a step

        Returns:
            The `assigned` log id, or None when the step is already resolved
        """
        async with self._transaction(document.collection, document.id) as outbox:
            if await self.audit_log.is_step_resolved(workflow.id, document, step.step_number):
                logger.info(
                    f"Step {step.step_number} already resolved, nothing to process",
                    extra={"document_id": document.id, "workflow_id": workflow.id}
                )
                return None

            plan = _TransitionPlan(None)
            await self._plan_assignment(plan, document, workflow, step)
            _, log_ids = await self._execute(plan, document, workflow, outbox)
            return log_ids[0]

    def determine_next_step(
        self,
        document: Document,
        workflow: Workflow,
        current_step: WorkflowStep,
        action: str,
        context: Optional[Dict[str, Any]] = None
    ) -> Optional[WorkflowStep]:
        """Next step for an action, None when the workflow should complete"""
        return self.transitions.resolve_next_step(
            workflow,
            current_step,
            action,
            context if context is not None else document.to_context()
        )

    async def move_to_next_step(
        self,
        document: Document,
        workflow: Workflow,
        next_step: WorkflowStep,
        actor: str = SYSTEM_ACTOR
    ) -> TransitionResult:
        """Make `next_step` the current step and assign it"""
        async with self._transaction(document.collection, document.id) as outbox:
            document = await self.get_document(document.collection, document.id)
            plan = _TransitionPlan(self._next_status(document, current_step=next_step.step_number))
            await self._plan_assignment(plan, document, workflow, next_step)
            _, log_ids = await self._execute(plan, document, workflow, outbox)
            return TransitionResult(next_step=next_step, is_completed=False, log_id=log_ids[0])

    async def complete_workflow(
        self,
        document: Document,
        workflow: Workflow,
        action: str,
        actor: str = SYSTEM_ACTOR
    ) -> TransitionResult:
        """Mark the workflow completed with `action` as its outcome"""
        async with self._transaction(document.collection, document.id) as outbox:
            document = await self.get_document(document.collection, document.id)
            plan = _TransitionPlan(self._next_status(document))
            at_step = workflow.get_step(plan.status.current_step) or workflow.last_step
            self._plan_completion(plan, document, workflow, at_step, action, actor)
            _, log_ids = await self._execute(plan, document, workflow, outbox)
            return TransitionResult(next_step=None, is_completed=True, log_id=log_ids[0])

    # =========================================================================
    # Actions
    # =========================================================================

    async def validate_action_permissions(
        self,
        user: Optional[User],
        step: WorkflowStep,
        document: Document,
        workflow: Workflow,
        action: str
    ) -> bool:
        """The user must be an active, resolved assignee of the step"""
        return await self.permission_guard.can_act_on_step(user, step, document, workflow, action)

    async def apply_action(
        self,
        collection: str,
        document_id: str,
        workflow: Workflow,
        action: str,
        actor: Optional[User],
        comment: Optional[str] = None
    ) -> ActionResult:
        """
        Apply a user action to the document's current step

        Raises:
            DocumentNotFoundError: If the document does not exist
            InvalidStateError: If there is no actionable current step
            ValidationError: If the action is unsupported or a comment is missing
            PermissionDeniedError: If the actor is not an assignee
            ConcurrencyError: If the status changed underneath
        """
        async with self._transaction(collection, str(document_id)) as outbox:
            document = await self.get_document(collection, document_id)
            return await self._apply(document, workflow, action, actor, comment, outbox)

    async def _apply(
        self,
        document: Document,
        workflow: Workflow,
        action: str,
        actor: Optional[User],
        comment: Optional[str],
        outbox: _Outbox
    ) -> ActionResult:
        step = self._current_step(document, workflow)

        supported = {a.value for a in TriggerAction}
        if action not in supported:
            raise ValidationError(
                f"Unsupported action: {action}",
                details={"action": action, "supported": sorted(supported)}
            )

        actor_id = actor.id if actor else SYSTEM_ACTOR
        allowed = await self.validate_action_permissions(actor, step, document, workflow, action)
        if not allowed:
            raise PermissionDeniedError(
                f"User {actor_id} cannot {action} step {step.step_number}",
                details={"step_number": step.step_number, "action": action}
            )

        if step.require_comments and not (comment or "").strip():
            raise ValidationError(
                f"Step {step.step_number} requires a comment",
                details={"step_number": step.step_number}
            )

        if action == TriggerAction.COMMENTED.value:
            log_id = await self.audit_log.record(
                workflow, document, step, LogAction.COMMENTED, actor_id, comment=comment
            )
            return ActionResult(
                document_id=document.id,
                workflow_id=workflow.id,
                action=action,
                current_step=step.step_number,
                new_step=None,
                is_completed=False,
                log_id=log_id
            )

        plan = _TransitionPlan(self._next_status(document))
        plan.log(step, LogAction(action), actor_id, comment=comment)
        await self._plan_action(plan, document, workflow, step, action, actor_id)

        _, log_ids = await self._execute(plan, document, workflow, outbox)
        logger.info(
            f"Applied {action} on step {step.step_number}",
            extra={
                "document_id": document.id,
                "workflow_id": workflow.id,
                "step_number": step.step_number,
                "action": action,
                "user_id": actor_id
            }
        )
        return ActionResult(
            document_id=document.id,
            workflow_id=workflow.id,
            action=action,
            current_step=step.step_number,
            new_step=None if plan.status.is_completed else plan.status.current_step,
            is_completed=plan.status.is_completed,
            log_id=log_ids[0]
        )

    async def assign_workflow(
        self,
        document: Document,
        workflow: Workflow,
        auto_start: bool = True,
        actor: str = SYSTEM_ACTOR
    ) -> Tuple[Document, Optional[TransitionResult]]:
        """
        Attach a workflow to a document, optionally starting it

        Raises:
            WorkflowAlreadyAssignedError: If the document already has a workflow
            WorkflowInactiveError: If the workflow is deactivated
        """
        async with self._transaction(document.collection, document.id) as outbox:
            document = await self.get_document(document.collection, document.id)
            return await self._assign(document, workflow, auto_start, actor, outbox)

    async def _assign(
        self,
        document: Document,
        workflow: Workflow,
        auto_start: bool,
        actor: str,
        outbox: _Outbox
    ) -> Tuple[Document, Optional[TransitionResult]]:
        if document.workflow_id:
            raise WorkflowAlreadyAssignedError(
                f"Document {document.id} already has workflow {document.workflow_id}",
                details={"document_id": document.id, "workflow_id": document.workflow_id}
            )
        if not workflow.is_active:
            raise WorkflowInactiveError(
                f"Workflow {workflow.id} is not active",
                details={"workflow_id": workflow.id}
            )

        if auto_start:
            result = await self._start(document, workflow, actor, outbox)
            return await self.get_document(document.collection, document.id), result

        status = WorkflowStatus(
            current_step=0,
            last_updated=self.audit_log.now(),
            revision=self._revision(document) + 1
        )
        document = await self._commit_status(document, workflow, status)
        logger.info(
            f"Assigned workflow {workflow.id} without starting it",
            extra={"document_id": document.id, "workflow_id": workflow.id}
        )
        return document, None

    async def escalate_step(
        self,
        document: Document,
        workflow: Workflow,
        step: WorkflowStep,
        sla_status: SlaStatus
    ) -> Optional[str]:
        """
        Record an SLA breach and run the step's escalation action

        The step must still be the document's current step with an open,
        not yet escalated assignment once the lock is held. Auto-approval
        commits the `escalated` entry together with the approval.

        Returns:
            The `escalated` log id, or None when there is nothing to escalate
        """
        async with self._transaction(document.collection, document.id) as outbox:
            document = await self.get_document(document.collection, document.id)
            if not await self._awaits_escalation(document, workflow, step):
                logger.info(
                    f"Step {step.step_number} no longer awaits escalation",
                    extra={"document_id": document.id, "workflow_id": workflow.id}
                )
                return None

            escalation = step.sla.escalation_action if step.sla else None
            metadata = {"escalation_action": escalation}

            if escalation == SlaEscalationAction.AUTO_APPROVE.value:
                plan = _TransitionPlan(self._next_status(document))
                plan.log(step, LogAction.ESCALATED, SYSTEM_ACTOR, metadata=metadata, sla_status=sla_status)
                plan.log(step, LogAction.APPROVED, SYSTEM_ACTOR, comment="Auto-approved after SLA breach")
                await self._plan_action(plan, document, workflow, step, TriggerAction.APPROVED.value, SYSTEM_ACTOR)
                _, log_ids = await self._execute(plan, document, workflow, outbox)
                return log_ids[0]

            if escalation == SlaEscalationAction.ESCALATE_MANAGER.value:
                spec = AssigneeSpec(type=AssigneeType.MANAGER)
                event = NotificationEvent.SLA_ESCALATION
            elif escalation == SlaEscalationAction.ESCALATE_DIRECTOR.value:
                spec = AssigneeSpec(type=AssigneeType.ROLE, roles=[DIRECTOR_ROLE])
                event = NotificationEvent.SLA_ESCALATION
            else:
                spec = step.assignees
                event = NotificationEvent.SLA_REMINDER

            recipients = sorted(await self.resolver.resolve(spec, document, workflow))
            log_id = await self.audit_log.record(
                workflow, document, step, LogAction.ESCALATED, SYSTEM_ACTOR,
                metadata=metadata,
                sla_status=sla_status
            )
            outbox.append((recipients, self._message(event, document, workflow, step, sla_status=sla_status)))
            return log_id

    async def _awaits_escalation(self, document: Document, workflow: Workflow, step: WorkflowStep) -> bool:
        status = document.workflow_status
        if document.workflow_id != workflow.id or status is None or status.is_completed:
            return False
        if status.current_step != step.step_number:
            return False
        assignment, escalated = await self.audit_log.assignment_state(workflow.id, document, step.step_number)
        return assignment is not None and not escalated

    # =========================================================================
    # Lifecycle Hooks
    # =========================================================================

    async def handle_document_created(self, document: Document) -> Optional[Workflow]:
        """
        Auto-assign the first applicable workflow to a new document

        Returns:
            The assigned workflow, or None
        """
        if document.workflow_id:
            await self.handle_document_changed(document)
            return None

        candidates = await self.workflow_repo.find_applicable(document.collection)
        async with self._transaction(document.collection, document.id) as outbox:
            document = await self.get_document(document.collection, document.id)
            if document.workflow_id:
                return None

            for workflow in candidates:
                context = await self._context(document, workflow)
                if not self.evaluator.evaluate_workflow_assignment(workflow, context):
                    continue

                logger.info(
                    f"Auto-assigning workflow: {workflow.name}",
                    extra={"document_id": document.id, "workflow_id": workflow.id}
                )
                await self._assign(document, workflow, True, SYSTEM_ACTOR, outbox)
                return workflow

        logger.info(
            "No applicable workflow for new document",
            extra={"document_id": document.id, "collection": document.collection}
        )
        return None

    async def handle_document_changed(self, document: Document) -> Optional[TransitionResult]:
        """Restart an active workflow whose status points at no existing step"""
        if not document.workflow_id:
            return None

        workflow = await self.workflow_repo.get(document.workflow_id)
        if workflow is None or not workflow.is_active:
            logger.info(
                "Workflow not found or inactive",
                extra={"document_id": document.id, "workflow_id": document.workflow_id}
            )
            return None

        async with self._transaction(document.collection, document.id) as outbox:
            document = await self.get_document(document.collection, document.id)
            status = document.workflow_status
            if status is not None and (status.is_completed or workflow.get_step(status.current_step)):
                return None

            logger.info(
                "No current step found, starting workflow",
                extra={"document_id": document.id, "workflow_id": workflow.id}
            )
            return await self._start(document, workflow, SYSTEM_ACTOR, outbox)

    # =========================================================================
    # Planning
    # =========================================================================

    def _current_step(self, document: Document, workflow: Workflow) -> WorkflowStep:
        if document.workflow_id != workflow.id:
            raise InvalidStateError(
                f"Document {document.id} is not running workflow {workflow.id}",
                details={"document_id": document.id, "workflow_id": workflow.id}
            )
        status = document.workflow_status
        if status is None:
            raise InvalidStateError(f"Workflow has not started on document {document.id}")
        if status.is_completed:
            raise InvalidStateError(
                f"Workflow {workflow.id} is already completed on document {document.id}",
                details={"outcome": status.outcome}
            )
        step = workflow.get_step(status.current_step)
        if step is None:
            raise InvalidStateError(
                f"No current step resolvable for document {document.id}",
                details={"current_step": status.current_step}
            )
        return step

    def _revision(self, document: Document) -> int:
        raw = document.data.get("workflow_status")
        if isinstance(raw, dict):
            return int(raw.get("revision") or 0)
        return 0

    def _next_status(self, document: Document, **updates: Any) -> WorkflowStatus:
        current = document.workflow_status or WorkflowStatus()
        return current.model_copy(update={
            "last_updated": self.audit_log.now(),
            "revision": self._revision(document) + 1,
            **updates
        })

    async def _plan_action(
        self,
        plan: _TransitionPlan,
        document: Document,
        workflow: Workflow,
        step: WorkflowStep,
        action: str,
        actor: str
    ) -> None:
        context = await self._context(document, workflow)
        next_step = self.determine_next_step(document, workflow, step, action, context)
        if next_step is None:
            self._plan_completion(plan, document, workflow, step, action, actor)
        else:
            await self._plan_enter(plan, document, workflow, next_step, action, context, actor)

    async def _plan_assignment(
        self,
        plan: _TransitionPlan,
        document: Document,
        workflow: Workflow,
        step: WorkflowStep
    ) -> None:
        assignees = sorted(await self.resolver.resolve(step.assignees, document, workflow))
        if not assignees:
            logger.warning(
                f"Step {step.step_number} has no resolvable assignees",
                extra={"document_id": document.id, "workflow_id": workflow.id, "step_number": step.step_number}
            )
        plan.log(step, LogAction.ASSIGNED, SYSTEM_ACTOR, metadata={"assignees": assignees})
        plan.notify(assignees, self._message(NotificationEvent.STEP_ASSIGNED, document, workflow, step))
        plan.entered = step

    async def _plan_enter(
        self,
        plan: _TransitionPlan,
        document: Document,
        workflow: Workflow,
        target: WorkflowStep,
        action: str,
        context: Dict[str, Any],
        actor: str
    ) -> None:
        entered, skipped = self.transitions.resolve_entry(workflow, target, context)
        for step in skipped:
            plan.log(step, LogAction.SKIPPED, SYSTEM_ACTOR, metadata={"reason": "conditions_not_met"})

        if entered is None:
            at_step = skipped[-1] if skipped else target
            self._plan_completion(plan, document, workflow, at_step, action, actor)
            return

        plan.status = plan.status.model_copy(update={"current_step": entered.step_number, "is_completed": False})
        await self._plan_assignment(plan, document, workflow, entered)

    def _plan_completion(
        self,
        plan: _TransitionPlan,
        document: Document,
        workflow: Workflow,
        at_step: WorkflowStep,
        action: str,
        actor: str
    ) -> None:
        now = self.audit_log.now()
        plan.status = plan.status.model_copy(update={
            "current_step": workflow.step_count,
            "is_completed": True,
            "completed_at": now,
            "outcome": action,
        })
        plan.log(at_step, LogAction.COMPLETED, actor, metadata={"outcome": action})

        recipients = [uid for uid in (document.creator_id, workflow.created_by) if uid]
        plan.notify(
            list(dict.fromkeys(recipients)),
            self._message(NotificationEvent.WORKFLOW_COMPLETED, document, workflow, at_step, action=action)
        )
        plan.entered = None

    def _message(
        self,
        event: NotificationEvent,
        document: Document,
        workflow: Workflow,
        step: Optional[WorkflowStep] = None,
        action: Optional[str] = None,
        sla_status: Optional[SlaStatus] = None
    ) -> NotificationMessage:
        return NotificationMessage(
            event=event,
            document=document_ref(document),
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            step=step_ref(step) if step else None,
            action=action,
            sla_status=sla_status
        )

    # =========================================================================
    # Commit
    # =========================================================================

    async def _commit_status(self, document: Document, workflow: Workflow, status: WorkflowStatus) -> Document:
        """Compare-and-swap the status on the revision it was planned from"""
        raw = document.data.get("workflow_status")
        if isinstance(raw, dict):
            expected = {"workflow_status.revision": raw.get("revision")}
        else:
            expected = {"workflow_status": None}

        updated = await self.store.update(
            document.collection,
            document.id,
            {"workflow": workflow.id, "workflow_status": status.model_dump(mode="python")},
            expected=expected
        )
        return document.with_data(updated)

    async def _execute(
        self,
        plan: _TransitionPlan,
        document: Document,
        workflow: Workflow,
        outbox: _Outbox
    ) -> Tuple[Document, List[str]]:
        """Commit the status, then write logs, then queue notifications"""
        committed = document
        if plan.status is not None:
            committed = await self._commit_status(document, workflow, plan.status)

        log_ids: List[str] = []
        try:
            for pending in plan.logs:
                log_ids.append(await self.audit_log.record(
                    workflow, committed, pending.step, pending.action, pending.user, **pending.kwargs
                ))
        except Exception as e:
            logger.error(
                f"Log write failed after status commit: {e}",
                extra={"document_id": document.id, "workflow_id": workflow.id}
            )
            if plan.status is not None:
                await self._restore_status(document, plan.status)
            raise InternalFailureError(
                "Failed to record workflow history",
                details={"document_id": document.id, "workflow_id": workflow.id}
            ) from e

        outbox.extend(plan.notifications)
        return committed, log_ids

    async def _restore_status(self, document: Document, committed: WorkflowStatus) -> None:
        try:
            await self.store.update(
                document.collection,
                document.id,
                {
                    "workflow": document.data.get("workflow"),
                    "workflow_status": document.data.get("workflow_status"),
                },
                expected={"workflow_status.revision": committed.revision}
            )
        except Exception as e:
            logger.error(
                f"Could not restore workflow status: {e}",
                extra={"document_id": document.id}
            )

    async def _notify(self, user_ids: Sequence[str], message: NotificationMessage) -> None:
        if not user_ids:
            return
        try:
            await self.notifier.notify(user_ids, message)
        except Exception as e:
            logger.warning(
                f"Notification dispatch failed: {e}",
                extra={"document_id": message.document.id, "workflow_id": message.workflow_id}
            )
