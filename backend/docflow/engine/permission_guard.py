"""Permission Guard - Authorization enforcement for step actions"""
from typing import Optional

from .assignee_resolver import AssigneeResolver
from ..domain.enums import TriggerAction
from ..domain.models import Document, User, Workflow, WorkflowStep
from ..utils.logger import get_logger

logger = get_logger(__name__)


class PermissionGuard:
    """
    Permission enforcement for workflow actions

    Rules:
    - The actor must be active
    - The actor must be among the step's resolved assignees
    - Comments require the step to allow them

    Fails closed: any doubt denies.
    """

    def __init__(self, resolver: AssigneeResolver):
        self._resolver = resolver

    async def can_act_on_step(
        self,
        user: Optional[User],
        step: WorkflowStep,
        document: Document,
        workflow: Workflow,
        action: str
    ) -> bool:
        """Check whether a user may take an action on a step"""
        if user is None or not user.is_active:
            return False

        if action == TriggerAction.COMMENTED.value and not step.allow_comments:
            logger.info(
                f"Comments are disabled on step {step.step_number}",
                extra={"document_id": document.id, "user_id": user.id}
            )
            return False

        assignees = await self._resolver.resolve(step.assignees, document, workflow)
        allowed = user.id in assignees
        if not allowed:
            logger.info(
                f"User {user.id} is not an assignee of step {step.step_number}",
                extra={
                    "document_id": document.id,
                    "workflow_id": workflow.id,
                    "step_number": step.step_number,
                    "user_id": user.id,
                    "action": action
                }
            )
        return allowed
