"""
Seed Data Script - Creates sample users and workflows for local testing
Run: python -m scripts.seed_data
"""
import asyncio
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from docflow.config.settings import get_settings
from docflow.domain.models import User
from docflow.repositories.mongo_client import close_connection, create_indexes, get_database
from docflow.services.factory import build_services


USERS = [
    User(id="u-admin", name="Ada Admin", email="admin@docflow.local", role="admin", department="it"),
    User(id="u-director", name="Dana Director", email="director@docflow.local", role="director", department="management"),
    User(id="u-manager", name="Max Manager", email="manager@docflow.local", role="manager",
         department="editorial", manager="u-director"),
    User(id="u-editor", name="Erin Editor", email="editor@docflow.local", role="editor",
         department="editorial", manager="u-manager"),
    User(id="u-publisher", name="Pat Publisher", email="publisher@docflow.local", role="publisher",
         department="editorial", manager="u-manager"),
    User(id="u-author", name="Alex Author", email="author@docflow.local", role="author",
         department="editorial", manager="u-manager"),
    User(id="u-legal", name="Lee Legal", email="legal@docflow.local", role="legal", department="legal",
         manager="u-director"),
    User(id="u-finance", name="Fran Finance", email="finance@docflow.local", role="finance", department="finance",
         manager="u-director"),
]


BLOG_WORKFLOW = {
    "name": "Blog Publication",
    "description": "Editor review followed by publisher approval",
    "workflow_type": "publication",
    "applicable_collections": ["blogs"],
    "tags": ["blog", "editorial"],
    "steps": [
        {
            "name": "Editor Review",
            "step_type": "review",
            "assignees": {"type": "role", "roles": ["editor"]},
            "sla": {"hours": 24, "escalation_action": "reminder"},
        },
        {
            "name": "Publisher Approval",
            "step_type": "approval",
            "assignees": {"type": "role", "roles": ["publisher"]},
            "sla": {"hours": 16, "business_hours": True, "escalation_action": "escalate_manager"},
            "require_comments": False,
        },
    ],
}


CONTRACT_WORKFLOW = {
    "name": "Contract Approval",
    "description": "Manager sign-off with value-based routing to finance and legal",
    "workflow_type": "contract",
    "priority": "high",
    "applicable_collections": ["contracts"],
    "trigger_conditions": [{"field": "amount", "operator": "gt", "value": "0"}],
    "tags": ["contract"],
    "steps": [
        {
            "name": "Manager Sign-off",
            "step_type": "signoff",
            "assignees": {"type": "manager"},
            "next_steps": [{"condition": "rejected", "next_step_number": 3}],
        },
        {
            "name": "Value Review",
            "step_type": "approval",
            "assignees": {
                "type": "dynamic",
                "dynamic_rules": [
                    {"condition": "amount_very_high", "assign_to": "director"},
                    {"condition": "amount_high", "assign_to": "finance"},
                ],
            },
            "conditions": [{"field": "amount", "operator": "gt", "value": "10000"}],
            "sla": {"hours": 48, "escalation_action": "escalate_director"},
        },
        {
            "name": "Legal Check",
            "step_type": "review",
            "assignees": {"type": "department", "departments": ["legal"]},
            "require_comments": True,
        },
    ],
}


async def seed():
    settings = get_settings()
    services = build_services(settings)
    try:
        await _seed(services, settings)
    finally:
        await close_connection()


async def _seed(services, settings):
    await create_indexes(get_database(settings), settings.workflow_collections_list)

    _, pagination = await services.workflow_repo.list(limit=1)
    if pagination.total_docs > 0:
        print("Database already has workflows. Skipping seed.")
        return

    for user in USERS:
        await services.directory.create(user)
    print(f"Created {len(USERS)} users")

    admin = USERS[0]
    for definition in (BLOG_WORKFLOW, CONTRACT_WORKFLOW):
        workflow = await services.workflow_service.create_workflow(dict(definition), admin)
        print(f"Created workflow: {workflow.name} ({workflow.id}) with {workflow.step_count} steps")


def main():
    asyncio.run(seed())


if __name__ == "__main__":
    main()
