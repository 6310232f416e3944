"""Catalog Service - Starter templates, form values and directory lookups for workflow editors"""
import copy
from typing import Any, Dict, List, Optional

from ..config.settings import Settings
from ..domain.enums import ALL_COLLECTIONS, ConditionOperator, StepType, WorkflowPriority, WorkflowType
from ..domain.errors import NotFoundError
from ..domain.models import User
from ..repositories.user_directory import StoreUserDirectory
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _role_step(name: str, step_type: str, role: str, conditions: Optional[List[Dict[str, Any]]] = None):
    return {
        "name": name,
        "step_type": step_type,
        "assignees": {"type": "role", "roles": [role]},
        "conditions": conditions or [],
    }


TEMPLATES: List[Dict[str, Any]] = [
    {
        "id": "simple-approval",
        "name": "Simple Approval",
        "description": "Basic two-step approval workflow",
        "workflow_type": WorkflowType.APPROVAL.value,
        "steps": [
            _role_step("Manager Review", "approval", "manager"),
            _role_step("Final Approval", "approval", "director"),
        ],
    },
    {
        "id": "content-publication",
        "name": "Content Publication",
        "description": "Multi-step content review and publication",
        "workflow_type": WorkflowType.PUBLICATION.value,
        "steps": [
            _role_step("Editor Review", "review", "editor"),
            _role_step("Legal Review", "review", "legal"),
            _role_step("Marketing Approval", "approval", "marketing"),
            _role_step("Publish", "publish", "admin"),
        ],
    },
    {
        "id": "expense-approval",
        "name": "Expense Approval",
        "description": "Tiered expense approval based on amount",
        "workflow_type": WorkflowType.EXPENSE.value,
        "steps": [
            _role_step("Manager Review", "approval", "manager", [
                {"field": "amount", "operator": "lte", "value": "1000"},
            ]),
            _role_step("Director Review", "approval", "director", [
                {"field": "amount", "operator": "gt", "value": "1000"},
                {"field": "amount", "operator": "lte", "value": "10000"},
            ]),
            _role_step("VP Approval", "approval", "vp", [
                {"field": "amount", "operator": "gt", "value": "10000"},
            ]),
        ],
    },
]

# (value, label, level), highest authority first
ROLES = [
    ("super_admin", "Super Admin", 10),
    ("admin", "Admin", 9),
    ("c_level", "C-Level", 8),
    ("vp", "VP", 7),
    ("director", "Director", 6),
    ("senior_manager", "Senior Manager", 5),
    ("manager", "Manager", 4),
    ("reviewer", "Reviewer", 3),
    ("editor", "Editor", 2),
    ("author", "Author", 1),
    ("contributor", "Contributor", 1),
    ("user", "User", 0),
]

OPERATOR_LABELS = {
    ConditionOperator.EQ: ("Equals", "="),
    ConditionOperator.NE: ("Not Equals", "!="),
    ConditionOperator.GT: ("Greater Than", ">"),
    ConditionOperator.LT: ("Less Than", "<"),
    ConditionOperator.GTE: ("Greater Than or Equal", ">="),
    ConditionOperator.LTE: ("Less Than or Equal", "<="),
    ConditionOperator.CONTAINS: ("Contains", None),
    ConditionOperator.NOT_CONTAINS: ("Not Contains", None),
    ConditionOperator.STARTS_WITH: ("Starts With", None),
    ConditionOperator.ENDS_WITH: ("Ends With", None),
    ConditionOperator.IN: ("In List", None),
    ConditionOperator.NOT_IN: ("Not In List", None),
    ConditionOperator.IS_EMPTY: ("Is Empty", None),
    ConditionOperator.IS_NOT_EMPTY: ("Is Not Empty", None),
    ConditionOperator.IS_NULL: ("Is Null", None),
    ConditionOperator.IS_NOT_NULL: ("Is Not Null", None),
}

# Acronyms and spellings that title-casing gets wrong
_LABEL_OVERRIDES = {"hr": "HR", "it": "IT", "signoff": "Sign-off", "comment": "Comment Only"}


def _label(value: str) -> str:
    return _LABEL_OVERRIDES.get(value, value.replace("_", " ").title())


class CatalogService:
    """Read-only lookups backing workflow editor forms"""

    VALUE_KINDS = (
        "roles", "workflow-types", "priorities", "step-types",
        "operators", "collections", "notification-channels",
    )

    def __init__(self, directory: StoreUserDirectory, settings: Settings):
        self.directory = directory
        self._collections = settings.workflow_collections_list
        self._webhook_enabled = bool(settings.notification_webhook_url)

    def templates(self) -> List[Dict[str, Any]]:
        """Built-in starter definitions; each validates as a workflow payload"""
        return copy.deepcopy(TEMPLATES)

    async def values(self, kind: str) -> List[Dict[str, Any]]:
        """
        Selectable values for one editor field

        Raises:
            NotFoundError: If the kind is unknown
        """
        if kind == "roles":
            return await self._roles()
        if kind == "workflow-types":
            return [{"value": t.value, "label": _label(t.value)} for t in WorkflowType]
        if kind == "priorities":
            return [
                {"value": p.value, "label": _label(p.value), "level": level}
                for level, p in enumerate(WorkflowPriority, start=1)
            ]
        if kind == "step-types":
            return [{"value": s.value, "label": _label(s.value)} for s in StepType]
        if kind == "operators":
            return [
                {"value": op.value, "label": label, "symbol": symbol}
                for op, (label, symbol) in OPERATOR_LABELS.items()
            ]
        if kind == "collections":
            values = [{"value": c, "label": _label(c)} for c in self._collections]
            return values + [{"value": ALL_COLLECTIONS, "label": "All Collections"}]
        if kind == "notification-channels":
            return [
                {"value": "email", "label": "Email", "enabled": True},
                {"value": "webhook", "label": "Webhook", "enabled": self._webhook_enabled},
            ]
        raise NotFoundError(
            f"Unknown value list: {kind}",
            details={"kind": kind, "supported": list(self.VALUE_KINDS)}
        )

    async def _roles(self) -> List[Dict[str, Any]]:
        values = [{"value": value, "label": label, "level": level} for value, label, level in ROLES]
        known = {value for value, _, _ in ROLES}
        # Directory roles outside the built-in ladder
        extra = sorted({u.role for u in await self.directory.list_users() if u.role and u.role not in known})
        return values + [{"value": role, "label": _label(role), "level": None} for role in extra]

    async def users_by_role(self, role: str, department: Optional[str] = None) -> List[User]:
        """Active users holding a role"""
        return await self.directory.list_users(role=role, department=department)

    async def users_by_department(self, department: str, role: Optional[str] = None) -> List[User]:
        """Active users in a department"""
        return await self.directory.list_users(role=role, department=department)

    async def departments(self) -> List[Dict[str, Any]]:
        """Departments of active users with their head counts"""
        counts: Dict[str, int] = {}
        for user in await self.directory.list_users():
            if user.department:
                counts[user.department] = counts.get(user.department, 0) + 1
        return [
            {"value": department, "label": _label(department), "user_count": counts[department]}
            for department in sorted(counts)
        ]
