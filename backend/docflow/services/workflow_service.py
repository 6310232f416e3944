"""Workflow Service - Workflow definition management business logic"""
from typing import Any, Dict, List, Optional, Tuple
from pydantic import ValidationError as PydanticValidationError

from ..domain.enums import AssigneeType, ConditionOperator
from ..domain.errors import InvalidStateError, WorkflowValidationError
from ..domain.models import Condition, User, Workflow
from ..repositories.base import DocumentStore, Pagination
from ..repositories.workflow_repo import WorkflowRepository
from ..utils.idgen import generate_workflow_id
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Fields a client may set on a workflow definition
EDITABLE_FIELDS = (
    "name", "description", "workflow_type", "priority", "is_active",
    "applicable_collections", "trigger_conditions", "steps", "tags",
)

_MULTI_VALUE_OPERATORS = (ConditionOperator.IN.value, ConditionOperator.NOT_IN.value)


def renumber_steps(steps: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Number steps 1..N in input order

    When every incoming step carries a unique step number, next-step targets
    are rewritten from the old numbers to the new ones. Otherwise targets are
    taken as already referring to the new numbering.

    Raises:
        WorkflowValidationError: If a target references an unknown old number
    """
    old_numbers = [step.get("step_number") for step in steps]
    remap: Dict[int, int] = {}
    if all(isinstance(n, int) and n > 0 for n in old_numbers) and len(set(old_numbers)) == len(old_numbers):
        remap = {old: index + 1 for index, old in enumerate(old_numbers)}

    renumbered = []
    for index, step in enumerate(steps):
        step = dict(step)
        step["step_number"] = index + 1

        rules = []
        for rule in step.get("next_steps") or []:
            rule = dict(rule)
            target = rule.get("next_step_number")
            if remap:
                if target not in remap:
                    message = f"Step {index + 1} branches to unknown step {target}"
                    raise WorkflowValidationError(message, details={"errors": [{
                        "type": "INVALID_NEXT_STEP",
                        "message": message,
                        "path": f"steps[{index}].next_steps"
                    }]})
                rule["next_step_number"] = remap[target]
            rules.append(rule)
        step["next_steps"] = rules
        renumbered.append(step)

    return renumbered


def validate_definition(workflow: Workflow) -> Dict[str, List[Dict[str, str]]]:
    """
    Validate a workflow definition

    Returns validation result with errors and warnings
    """
    errors: List[Dict[str, str]] = []
    warnings: List[Dict[str, str]] = []
    step_count = workflow.step_count

    def check_conditions(conditions: List[Condition], path: str) -> None:
        for i, condition in enumerate(conditions):
            operator = condition.operator.strip().lower()
            if operator in _MULTI_VALUE_OPERATORS and not condition.multiple_values:
                errors.append({
                    "type": "MISSING_MULTIPLE_VALUES",
                    "message": f"Operator '{operator}' requires multiple_values",
                    "path": f"{path}[{i}]"
                })
            elif operator not in {op.value for op in ConditionOperator}:
                warnings.append({
                    "type": "UNKNOWN_OPERATOR",
                    "message": f"Operator '{condition.operator}' is not recognized and never matches",
                    "path": f"{path}[{i}]"
                })

    if not workflow.steps:
        warnings.append({
            "type": "EMPTY_STEPS",
            "message": "Workflow has no steps and will never be auto-assigned",
            "path": "steps"
        })

    check_conditions(workflow.trigger_conditions, "trigger_conditions")

    for i, step in enumerate(workflow.steps):
        path = f"steps[{i}]"
        check_conditions(step.conditions, f"{path}.conditions")

        for j, rule in enumerate(step.next_steps):
            if not 1 <= rule.next_step_number <= step_count:
                errors.append({
                    "type": "INVALID_NEXT_STEP",
                    "message": f"Step {step.step_number} branches to missing step {rule.next_step_number}",
                    "path": f"{path}.next_steps[{j}]"
                })
            check_conditions(rule.additional_conditions, f"{path}.next_steps[{j}].additional_conditions")

        spec = step.assignees
        for k, rule in enumerate(spec.dynamic_rules):
            if isinstance(rule.condition, Condition):
                check_conditions([rule.condition], f"{path}.assignees.dynamic_rules[{k}].condition")

        selectors = {
            AssigneeType.ROLE.value: spec.roles,
            AssigneeType.USER.value: spec.users,
            AssigneeType.DEPARTMENT.value: spec.departments,
            AssigneeType.DYNAMIC.value: spec.dynamic_rules,
        }
        if spec.type in selectors and not selectors[spec.type]:
            warnings.append({
                "type": "EMPTY_ASSIGNEES",
                "message": f"Step {step.step_number} has no {spec.type} selector and will stall",
                "path": f"{path}.assignees"
            })

        if step.require_comments and not step.allow_comments:
            warnings.append({
                "type": "COMMENTS_CONFLICT",
                "message": f"Step {step.step_number} requires comments but does not allow them",
                "path": path
            })

    return {"errors": errors, "warnings": warnings}


class WorkflowService:
    """Service for workflow definition operations"""

    def __init__(self, repo: WorkflowRepository, store: DocumentStore, workflow_collections: List[str]):
        self.repo = repo
        self._store = store
        self._workflow_collections = workflow_collections

    def _build(self, data: Dict[str, Any]) -> Workflow:
        if "steps" in data:
            data["steps"] = renumber_steps(list(data.get("steps") or []))
        try:
            workflow = Workflow.model_validate(data)
        except PydanticValidationError as e:
            raise WorkflowValidationError(
                "Workflow definition is invalid",
                details={"errors": e.errors(include_url=False, include_context=False)}
            )

        result = validate_definition(workflow)
        if result["errors"]:
            raise WorkflowValidationError(
                f"Workflow definition has {len(result['errors'])} error(s)",
                details=result
            )
        for warning in result["warnings"]:
            logger.warning(f"Workflow {workflow.id}: {warning['message']}", extra={"workflow_id": workflow.id})
        return workflow

    def validate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Dry-run validation of a definition payload"""
        data = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
        data.setdefault("id", "validation")
        try:
            workflow = self._build(data)
        except WorkflowValidationError as e:
            return {"valid": False, **({"errors": [], "warnings": []} | e.details), "message": e.message}
        return {"valid": True, **validate_definition(workflow)}

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create_workflow(self, data: Dict[str, Any], actor: User) -> Workflow:
        """Create a new workflow definition"""
        fields = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
        fields.update({"id": generate_workflow_id(), "created_by": actor.id, "version": 1})
        workflow = self._build(fields)
        return await self.repo.create(workflow)

    async def get_workflow(self, workflow_id: str) -> Workflow:
        """Get workflow by ID"""
        return await self.repo.get_or_raise(workflow_id)

    async def list_workflows(
        self,
        is_active: Optional[bool] = None,
        collection: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[Workflow], Pagination]:
        """List workflows with filters"""
        return await self.repo.list(is_active=is_active, collection=collection, skip=skip, limit=limit)

    async def update_workflow(
        self,
        workflow_id: str,
        updates: Dict[str, Any],
        actor: User,
        expected_version: Optional[int] = None
    ) -> Workflow:
        """
        Update a workflow definition

        Steps are renumbered and the whole definition is revalidated. Each
        save increments the version.
        """
        current = await self.repo.get_or_raise(workflow_id)
        changes = {k: v for k, v in updates.items() if k in EDITABLE_FIELDS}

        merged = current.model_dump(mode="python")
        merged.update(changes)
        workflow = self._build(merged)

        fields = {k: v for k, v in workflow.model_dump(mode="python").items() if k in changes}
        updated = await self.repo.update(
            workflow_id,
            fields,
            expected_version=expected_version if expected_version is not None else current.version
        )
        logger.info(
            f"Workflow {workflow_id} saved as version {updated.version}",
            extra={"workflow_id": workflow_id, "user_id": actor.id}
        )
        return updated

    async def delete_workflow(self, workflow_id: str, actor: User) -> None:
        """
        Delete a workflow

        Refused while documents in the workflow collections still run it.
        """
        await self.repo.get_or_raise(workflow_id)

        active = 0
        for collection in self._workflow_collections:
            result = await self._store.find(
                collection,
                {"workflow": workflow_id, "workflow_status.is_completed": {"$ne": True}},
                limit=1
            )
            active += result.pagination.total_docs

        if active:
            raise InvalidStateError(
                "Cannot delete workflow with active instances",
                details={"workflow_id": workflow_id, "active_instances": active}
            )

        await self.repo.soft_delete(workflow_id)
        logger.info(f"Deleted workflow: {workflow_id}", extra={"workflow_id": workflow_id, "user_id": actor.id})

    async def clone_workflow(
        self,
        workflow_id: str,
        actor: User,
        name: Optional[str] = None,
        description: Optional[str] = None,
        is_active: bool = False
    ) -> Workflow:
        """Copy a workflow under a new id (inactive by default)"""
        original = await self.repo.get_or_raise(workflow_id)
        data = original.model_dump(mode="python", include=set(EDITABLE_FIELDS))
        data.update({
            "id": generate_workflow_id(),
            "name": name or f"{original.name} (Copy)",
            "description": description or original.description,
            "is_active": is_active,
            "created_by": actor.id,
            "version": 1,
        })
        workflow = await self.repo.create(self._build(data))
        logger.info(
            f"Cloned workflow {workflow_id} as {workflow.id}",
            extra={"workflow_id": workflow.id, "user_id": actor.id}
        )
        return workflow

    async def set_active(self, workflow_id: str, is_active: bool, actor: User) -> Workflow:
        """Activate or deactivate a workflow; running documents are not halted"""
        current = await self.repo.get_or_raise(workflow_id)
        updated = await self.repo.update(workflow_id, {"is_active": is_active}, expected_version=current.version)
        logger.info(
            f"Workflow {workflow_id} {'activated' if is_active else 'deactivated'}",
            extra={"workflow_id": workflow_id, "user_id": actor.id}
        )
        return updated
