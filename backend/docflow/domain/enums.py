"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class StepType(str, Enum):
    """Built-in step types (custom strings are also accepted on steps)"""
    APPROVAL = "approval"
    REVIEW = "review"
    SIGNOFF = "signoff"
    COMMENT = "comment"
    EDIT = "edit"
    PUBLISH = "publish"
    ARCHIVE = "archive"
    DELETE = "delete"
    NOTIFY = "notify"
    ASSIGN = "assign"
    VALIDATE = "validate"
    CUSTOM = "custom"


class AssigneeType(str, Enum):
    """How a step's assignees are selected"""
    ROLE = "role"
    USER = "user"
    DEPARTMENT = "department"
    MANAGER = "manager"                      # Creator's manager
    CREATOR = "creator"                      # Document author/creator
    PREVIOUS_APPROVER = "previous_approver"  # Most recent approver of this document
    DYNAMIC = "dynamic"                      # First matching dynamic rule


class ConditionOperator(str, Enum):
    """Operators for condition evaluation"""
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IN = "in"
    NOT_IN = "not_in"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"


class DynamicRulePreset(str, Enum):
    """Named trigger conditions for dynamic assignment"""
    AMOUNT_HIGH = "amount_high"
    AMOUNT_VERY_HIGH = "amount_very_high"
    LEGAL_DEPT = "legal_dept"
    CONTRACT_TYPE = "contract_type"
    HIGH_PRIORITY = "high_priority"
    C_LEVEL_CREATOR = "c_level_creator"


class LogAction(str, Enum):
    """Actions recorded in the workflow log"""
    STARTED = "started"
    ASSIGNED = "assigned"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMMENTED = "commented"
    COMPLETED = "completed"
    ESCALATED = "escalated"
    SKIPPED = "skipped"


class TriggerAction(str, Enum):
    """Actions a user may trigger on the current step"""
    APPROVED = "approved"
    REJECTED = "rejected"
    COMMENTED = "commented"


class NextStepCondition(str, Enum):
    """Rule conditions for branching (free strings are also accepted)"""
    APPROVED = "approved"
    REJECTED = "rejected"
    REVISION = "revision"
    CHANGES = "changes"
    CONDITIONAL = "conditional"
    ALWAYS = "always"
    SLA_EXPIRED = "sla_expired"
    CONDITIONS_MET = "conditions_met"
    SKIPPED = "skipped"


class SlaEscalationAction(str, Enum):
    """What happens when a step's SLA is breached"""
    REMINDER = "reminder"
    AUTO_APPROVE = "auto_approve"
    ESCALATE_MANAGER = "escalate_manager"
    ESCALATE_DIRECTOR = "escalate_director"
    NOTIFICATION = "notification"


class WorkflowType(str, Enum):
    """Workflow categories"""
    APPROVAL = "approval"
    REVIEW = "review"
    PUBLICATION = "publication"
    CONTRACT = "contract"
    EXPENSE = "expense"
    PURCHASE = "purchase"
    HR = "hr"
    IT = "it"
    LEGAL = "legal"
    MARKETING = "marketing"
    CUSTOM = "custom"


class WorkflowPriority(str, Enum):
    """Workflow priority"""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"
    CRITICAL = "critical"


class NotificationEvent(str, Enum):
    """Events handed to the notification dispatcher"""
    STEP_ASSIGNED = "step_assigned"
    WORKFLOW_COMPLETED = "workflow_completed"
    SLA_REMINDER = "sla_reminder"
    SLA_ESCALATION = "sla_escalation"


# Sentinel actor for engine-initiated log entries
SYSTEM_ACTOR = "system"

# Collection tag that makes a workflow applicable everywhere
ALL_COLLECTIONS = "all"
