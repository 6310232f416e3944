"""Workflow Engine - The brain of the system"""
from .engine import WorkflowEngine
from .permission_guard import PermissionGuard
from .transition_resolver import TransitionResolver
from .condition_evaluator import ConditionEvaluator, MISSING
from .assignee_resolver import AssigneeResolver
from .audit_log import AuditLogStore
from .locks import KeyedLock

__all__ = [
    "WorkflowEngine",
    "PermissionGuard",
    "TransitionResolver",
    "ConditionEvaluator",
    "MISSING",
    "AssigneeResolver",
    "AuditLogStore",
    "KeyedLock",
]
