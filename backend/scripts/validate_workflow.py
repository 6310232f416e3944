"""Script to validate a workflow definition JSON file without a database

Run: python -m scripts.validate_workflow path/to/workflow.json
"""
import json
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pydantic import ValidationError as PydanticValidationError

from docflow.domain.errors import WorkflowValidationError
from docflow.domain.models import Workflow
from docflow.services.workflow_service import EDITABLE_FIELDS, renumber_steps, validate_definition


def describe_assignees(step) -> str:
    spec = step.assignees
    selectors = spec.roles or spec.users or spec.departments
    if spec.dynamic_rules:
        selectors = [f"{rule.condition if isinstance(rule.condition, str) else rule.condition.path} -> {rule.assign_to}"
                     for rule in spec.dynamic_rules]
    return f"{spec.type} {selectors}" if selectors else str(spec.type)


def validate_workflow(path: str) -> int:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    fields = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
    fields["id"] = data.get("id") or "local"

    try:
        fields["steps"] = renumber_steps(list(fields.get("steps") or []))
        workflow = Workflow.model_validate(fields)
    except WorkflowValidationError as e:
        print(f"Invalid workflow: {e.message}")
        for error in e.details.get("errors", []):
            print(f"   {error['path']}: {error['message']}")
        return 1
    except PydanticValidationError as e:
        print("Invalid workflow definition:")
        for error in e.errors(include_url=False):
            location = ".".join(str(part) for part in error["loc"])
            print(f"   {location}: {error['msg']}")
        return 1

    print(f"Workflow: {workflow.name}")
    print(f"   Type: {workflow.workflow_type}  Priority: {workflow.priority}")
    print(f"   Collections: {', '.join(workflow.applicable_collections) or '(none)'}")
    print(f"   Trigger conditions: {len(workflow.trigger_conditions)}")

    print("\n" + "=" * 60)
    print(f"STEPS ({workflow.step_count})")
    print("=" * 60)
    for step in workflow.steps:
        print(f"\n{step.step_number}. [{step.step_type}] {step.name}")
        print(f"   Assignees: {describe_assignees(step)}")
        if step.conditions:
            print(f"   Applies when: {' and '.join(f'{c.path} {c.operator} {c.value}' for c in step.conditions)}")
        if step.sla and step.sla.is_active:
            clock = "business hours" if step.sla.business_hours else "hours"
            print(f"   SLA: {step.sla.hours} {clock}, then {step.sla.escalation_action or 'nothing'}")
        for rule in step.next_steps:
            print(f"   on {rule.condition} -> step {rule.next_step_number}")

    result = validate_definition(workflow)

    print("\n" + "=" * 60)
    print("VALIDATION")
    print("=" * 60)
    for error in result["errors"]:
        print(f"   ERROR   {error['type']}: {error['message']}")
    for warning in result["warnings"]:
        print(f"   WARNING {warning['type']}: {warning['message']}")
    if not result["errors"] and not result["warnings"]:
        print("   OK")

    return 1 if result["errors"] else 0


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python -m scripts.validate_workflow <workflow.json>")
        sys.exit(2)
    sys.exit(validate_workflow(sys.argv[1]))
