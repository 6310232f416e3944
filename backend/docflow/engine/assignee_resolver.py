"""Assignee Resolver - Turns a step's AssigneeSpec into concrete user ids"""
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from .condition_evaluator import ConditionEvaluator
from ..domain.enums import AssigneeType, DynamicRulePreset, LogAction
from ..domain.models import AssigneeSpec, Condition, Document, DynamicRule, User, Workflow
from ..repositories.base import UserDirectory
from ..utils.logger import get_logger

logger = get_logger(__name__)

CREATOR_FIELD = "$creator"


def preset_conditions(
    amount_high_threshold: float = 10000,
    amount_very_high_threshold: float = 50000
) -> Dict[str, Condition]:
    """Conditions behind the named dynamic-rule presets"""
    return {
        DynamicRulePreset.AMOUNT_HIGH.value: Condition(
            field="amount", operator="gt", value=amount_high_threshold
        ),
        DynamicRulePreset.AMOUNT_VERY_HIGH.value: Condition(
            field="amount", operator="gt", value=amount_very_high_threshold
        ),
        DynamicRulePreset.LEGAL_DEPT.value: Condition(
            field="department", operator="eq", value="legal"
        ),
        DynamicRulePreset.CONTRACT_TYPE.value: Condition(
            field="$collection", operator="eq", value="contracts"
        ),
        DynamicRulePreset.HIGH_PRIORITY.value: Condition(
            field="priority", operator="in", multiple_values=["high", "urgent", "critical"]
        ),
        DynamicRulePreset.C_LEVEL_CREATOR.value: Condition(
            field=f"{CREATOR_FIELD}.role", operator="eq", value="c_level"
        ),
    }


def _active_ids(users: Iterable[Optional[User]]) -> Set[str]:
    return {user.id for user in users if user is not None and user.is_active}


class AssigneeResolver:
    """
    Resolve assignee specifications

    Never raises for a malformed or unresolvable spec: lookup failures
    degrade to an empty set with a warning. An empty set is a valid,
    stalled assignment.
    """

    def __init__(
        self,
        directory: UserDirectory,
        evaluator: ConditionEvaluator,
        audit_log: Any,
        amount_high_threshold: float = 10000,
        amount_very_high_threshold: float = 50000
    ):
        self._directory = directory
        self._evaluator = evaluator
        self._audit_log = audit_log
        self._presets = preset_conditions(amount_high_threshold, amount_very_high_threshold)

    async def resolve(self, spec: AssigneeSpec, document: Document, workflow: Workflow) -> Set[str]:
        """
        Resolve a spec into the set of active user ids

        Args:
            spec: Assignee specification of the step
            document: Document the step runs on
            workflow: Workflow the step belongs to

        Returns:
            Set of active user ids (possibly empty)
        """
        try:
            assignee_type = AssigneeType(spec.type)
        except ValueError:
            logger.warning(f"Unknown assignee type: {spec.type}", extra={"document_id": document.id})
            return set()

        try:
            if assignee_type == AssigneeType.ROLE:
                return await self._by_roles(spec.roles)

            if assignee_type == AssigneeType.USER:
                users = [await self._directory.find_by_id(user_id) for user_id in spec.users]
                return _active_ids(users)

            if assignee_type == AssigneeType.DEPARTMENT:
                if not spec.departments:
                    return set()
                return _active_ids(await self._directory.find_users_by_department(spec.departments))

            if assignee_type == AssigneeType.MANAGER:
                return await self._manager_of_creator(document)

            if assignee_type == AssigneeType.CREATOR:
                return _active_ids([await self._directory.find_by_id(document.creator_id)])

            if assignee_type == AssigneeType.PREVIOUS_APPROVER:
                return await self._previous_approver(document, workflow)

            if assignee_type == AssigneeType.DYNAMIC:
                return await self._dynamic(spec.dynamic_rules, document)

        except Exception as e:
            logger.warning(
                f"Assignee resolution failed for type {assignee_type.value}: {e}",
                extra={"document_id": document.id, "workflow_id": workflow.id}
            )
            return set()

        return set()

    async def condition_context(
        self,
        document: Document,
        conditions: Sequence[Condition] = ()
    ) -> Dict[str, Any]:
        """
        Field mapping for condition evaluation

        The creator's user record is loaded as $creator only when one of the
        conditions reads it.
        """
        context = document.to_context()
        if any(c.path.split(".")[0] == CREATOR_FIELD for c in conditions):
            creator = await self._safe_find(document.creator_id)
            context[CREATOR_FIELD] = creator.model_dump() if creator else None
        return context

    def rule_condition(self, rule: DynamicRule) -> Optional[Condition]:
        """The explicit condition behind a rule, expanding presets"""
        if isinstance(rule.condition, Condition):
            return rule.condition
        preset = getattr(rule.condition, "value", rule.condition)
        return self._presets.get(preset)

    # =========================================================================
    # Resolution strategies
    # =========================================================================

    async def _by_roles(self, roles: List[str]) -> Set[str]:
        if not roles:
            return set()
        return _active_ids(await self._directory.find_users_by_role(roles))

    async def _manager_of_creator(self, document: Document) -> Set[str]:
        creator = await self._directory.find_by_id(document.creator_id)
        if creator is None or not creator.manager:
            logger.warning(
                "Document creator has no manager on record",
                extra={"document_id": document.id, "user_id": document.creator_id}
            )
            return set()
        return _active_ids([await self._directory.find_by_id(creator.manager)])

    async def _previous_approver(self, document: Document, workflow: Workflow) -> Set[str]:
        entry = await self._audit_log.latest_entry(workflow.id, document, LogAction.APPROVED)
        if entry is None:
            return set()
        return _active_ids([await self._directory.find_by_id(entry.user)])

    async def _dynamic(self, rules: List[DynamicRule], document: Document) -> Set[str]:
        conditions = [c for c in (self.rule_condition(rule) for rule in rules) if c is not None]
        context = await self.condition_context(document, conditions)

        for rule in rules:
            condition = self.rule_condition(rule)
            if condition is None:
                logger.warning(f"Unknown dynamic rule preset: {rule.condition}", extra={"document_id": document.id})
                continue
            if self._evaluator.evaluate_all([condition], context):
                logger.debug(
                    f"Dynamic rule matched, assigning role {rule.assign_to}",
                    extra={"document_id": document.id}
                )
                return await self._by_roles([rule.assign_to])

        logger.warning("No dynamic rule matched", extra={"document_id": document.id})
        return set()

    async def _safe_find(self, user_id: Optional[str]) -> Optional[User]:
        try:
            return await self._directory.find_by_id(user_id) if user_id else None
        except Exception as e:
            logger.warning(f"Creator lookup failed: {e}", extra={"user_id": user_id})
            return None
