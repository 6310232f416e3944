"""Transition Resolver - Determine the next step from an action and branching rules"""
from typing import Any, List, Mapping, Optional, Tuple

from ..domain.enums import NextStepCondition, TriggerAction
from ..domain.models import Condition, Workflow, WorkflowStep
from .condition_evaluator import ConditionEvaluator
from ..utils.logger import get_logger

logger = get_logger(__name__)

SKIP_RULES = (NextStepCondition.SKIPPED.value, NextStepCondition.ALWAYS.value)


def workflow_conditions(workflow: Workflow) -> List[Condition]:
    """Every condition a workflow can evaluate against a document"""
    conditions = list(workflow.trigger_conditions)
    for step in workflow.steps:
        conditions.extend(step.conditions)
        for rule in step.next_steps:
            conditions.extend(rule.additional_conditions)
    return conditions


class TransitionResolver:
    """
    Resolve transitions from the current step

    Given current step S and action A:
    1. Walk S.next_steps in declaration order
    2. First rule whose condition is A or 'always', whose additional
       conditions hold and whose target exists wins
    3. Otherwise 'approved' falls back to step S+1; anything else is None
    """

    def __init__(self, evaluator: ConditionEvaluator):
        self.condition_evaluator = evaluator

    def resolve_next_step(
        self,
        workflow: Workflow,
        current_step: WorkflowStep,
        action: str,
        context: Mapping[str, Any]
    ) -> Optional[WorkflowStep]:
        """
        Resolve the next step for an action

        Args:
            workflow: Workflow definition
            current_step: Step the action was taken on
            action: Action name
            context: Field mapping for additional_conditions

        Returns:
            Next step, or None when the workflow should complete
        """
        target = self._match_rule(workflow, current_step, (action, NextStepCondition.ALWAYS.value), context)
        if target is not None:
            return target

        if action == TriggerAction.APPROVED.value:
            return workflow.get_step(current_step.step_number + 1)

        return None

    def resolve_entry(
        self,
        workflow: Workflow,
        target: Optional[WorkflowStep],
        context: Mapping[str, Any]
    ) -> Tuple[Optional[WorkflowStep], List[WorkflowStep]]:
        """
        Find the step actually entered when moving to `target`

        Steps whose conditions fail are not applicable: they are passed over
        via their 'skipped'/'always' rule or the next sequential step.

        Returns:
            (entered step or None if the workflow runs out of steps, skipped steps)
        """
        skipped: List[WorkflowStep] = []
        visited = set()
        step = target

        while step is not None:
            if step.step_number in visited:
                logger.warning(
                    f"Cycle of non-applicable steps at step {step.step_number}",
                    extra={"workflow_id": workflow.id, "step_number": step.step_number}
                )
                return None, skipped
            visited.add(step.step_number)

            if self.condition_evaluator.evaluate_all(step.conditions, context):
                return step, skipped

            skipped.append(step)
            step = (
                self._match_rule(workflow, step, SKIP_RULES, context)
                or workflow.get_step(step.step_number + 1)
            )

        return None, skipped

    def _match_rule(
        self,
        workflow: Workflow,
        step: WorkflowStep,
        conditions: Tuple[str, ...],
        context: Mapping[str, Any]
    ) -> Optional[WorkflowStep]:
        for rule in step.next_steps:
            if rule.condition not in conditions:
                continue
            if not self.condition_evaluator.evaluate_all(rule.additional_conditions, context):
                continue
            target = workflow.get_step(rule.next_step_number)
            if target is None:
                logger.warning(
                    f"Next step rule points to missing step {rule.next_step_number}",
                    extra={"workflow_id": workflow.id, "step_number": step.step_number}
                )
                continue
            return target
        return None
