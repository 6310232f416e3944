"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field, ConfigDict, field_validator

from .enums import (
    AssigneeType, DynamicRulePreset, LogAction, NotificationEvent,
    SlaEscalationAction, StepType, WorkflowPriority, WorkflowType, ALL_COLLECTIONS
)


def _stringify(value: Any) -> Optional[str]:
    """Render a literal comparison value the way it would be typed in the CMS"""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ============================================================================
# Conditions
# ============================================================================

class Condition(BaseModel):
    """
    Field predicate used for step applicability, dynamic assignment,
    workflow auto-assignment and branching.

    The operator is kept as a plain string so that an unknown operator is a
    logged mismatch at evaluation time rather than a load failure.
    """
    model_config = ConfigDict(extra="ignore")

    field: str = Field(..., description="Dot-path into the document, a $synthetic field, or 'custom'")
    custom_field: Optional[str] = Field(None, description="Path used when field is 'custom'")
    operator: str = Field(..., description="Comparison operator")
    value: Optional[str] = Field(None, description="Literal comparison value")
    multiple_values: List[str] = Field(default_factory=list, description="Values for in/not_in")

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, v: Any) -> Optional[str]:
        return _stringify(v)

    @field_validator("multiple_values", mode="before")
    @classmethod
    def _coerce_multiple_values(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if not isinstance(v, list):
            v = [v]
        values = []
        for item in v:
            # CMS array rows arrive as {"value": ...}
            if isinstance(item, dict):
                item = item.get("value")
            if item is not None:
                values.append(_stringify(item))
        return values

    @property
    def path(self) -> str:
        """The field path actually read from the document"""
        if self.field == "custom" and self.custom_field:
            return self.custom_field
        return self.field


class DynamicRule(BaseModel):
    """Dynamic assignment rule: trigger condition -> role"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    condition: Union[DynamicRulePreset, Condition] = Field(..., description="Named preset or explicit condition")
    assign_to: str = Field(..., description="Role that receives the step")


class AssigneeSpec(BaseModel):
    """Declarative selector for who must act on a step"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    type: AssigneeType = Field(..., description="Selector type")
    roles: List[str] = Field(default_factory=list)
    users: List[str] = Field(default_factory=list)
    departments: List[str] = Field(default_factory=list)
    dynamic_rules: List[DynamicRule] = Field(default_factory=list)


# ============================================================================
# SLA & Branching
# ============================================================================

class SlaConfig(BaseModel):
    """SLA configuration for a step"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    enabled: bool = True
    hours: Optional[float] = Field(None, gt=0, description="Time budget in hours")
    business_hours: bool = Field(default=False, description="Count only business hours")
    escalation_action: Optional[SlaEscalationAction] = None

    @property
    def is_active(self) -> bool:
        return self.enabled and self.hours is not None


class NextStepRule(BaseModel):
    """Branching rule evaluated in declaration order"""
    model_config = ConfigDict(extra="ignore")

    condition: str = Field(..., description="Action name or 'always'")
    next_step_number: int = Field(..., ge=1)
    additional_conditions: List[Condition] = Field(default_factory=list)


# ============================================================================
# Workflow Definition
# ============================================================================

class WorkflowStep(BaseModel):
    """One stage of a workflow"""
    model_config = ConfigDict(extra="ignore")

    step_number: int = Field(default=0, description="1-based, assigned on save")
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    step_type: str = Field(default=StepType.APPROVAL.value, description="Built-in or custom step type")
    custom_action: Optional[str] = None
    assignees: AssigneeSpec
    conditions: List[Condition] = Field(default_factory=list)
    sla: Optional[SlaConfig] = None
    next_steps: List[NextStepRule] = Field(default_factory=list)
    is_required: bool = True
    allow_comments: bool = True
    require_comments: bool = False

    @field_validator("step_type", mode="before")
    @classmethod
    def _coerce_step_type(cls, v: Any) -> str:
        if isinstance(v, StepType):
            return v.value
        return v


class Workflow(BaseModel):
    """Workflow definition"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: str
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    workflow_type: WorkflowType = WorkflowType.APPROVAL
    priority: WorkflowPriority = WorkflowPriority.NORMAL
    is_active: bool = True
    applicable_collections: List[str] = Field(default_factory=list)
    trigger_conditions: List[Condition] = Field(default_factory=list)
    steps: List[WorkflowStep] = Field(default_factory=list)
    created_by: Optional[str] = None
    version: int = 1
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def step_count(self) -> int:
        return len(self.steps)

    def get_step(self, step_number: Optional[int]) -> Optional[WorkflowStep]:
        """Find a step by number"""
        for step in self.steps:
            if step.step_number == step_number:
                return step
        return None

    @property
    def last_step(self) -> Optional[WorkflowStep]:
        return self.steps[-1] if self.steps else None

    def applies_to(self, collection: str) -> bool:
        return collection in self.applicable_collections or ALL_COLLECTIONS in self.applicable_collections


# ============================================================================
# Users
# ============================================================================

class User(BaseModel):
    """Directory user"""
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    email: Optional[str] = None
    role: Optional[str] = None
    department: Optional[str] = None
    manager: Optional[str] = Field(None, description="User id of the direct manager")
    job_title: Optional[str] = None
    is_active: bool = True


# ============================================================================
# Documents
# ============================================================================

class WorkflowStatus(BaseModel):
    """Progress marker embedded in a document; written only by the engine"""
    model_config = ConfigDict(extra="ignore")

    current_step: int = 0
    is_completed: bool = False
    last_updated: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    outcome: Optional[str] = None
    revision: int = 0


class Document(BaseModel):
    """
    Generic CMS document

    Only the workflow-relevant fields have typed accessors; everything else
    is opaque and reachable through dot-path lookups on `data`.
    """
    model_config = ConfigDict(extra="forbid")

    collection: str
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def id(self) -> str:
        return str(self.data.get("id"))

    @property
    def title(self) -> str:
        return self.data.get("title") or self.data.get("name") or "Untitled"

    @property
    def workflow_id(self) -> Optional[str]:
        return self.data.get("workflow") or None

    @property
    def workflow_status(self) -> Optional[WorkflowStatus]:
        raw = self.data.get("workflow_status")
        if not raw or not self.workflow_id:
            return None
        return WorkflowStatus.model_validate(raw)

    @property
    def creator_id(self) -> Optional[str]:
        return self.data.get("created_by") or self.data.get("author") or None

    def to_context(self) -> Dict[str, Any]:
        """Field mapping for condition evaluation, including $synthetic fields"""
        context = dict(self.data)
        context["$collection"] = self.collection
        context["$id"] = self.id
        return context

    def with_data(self, data: Dict[str, Any]) -> "Document":
        return Document(collection=self.collection, data=data)


# ============================================================================
# Workflow Log
# ============================================================================

class LogDocumentRef(BaseModel):
    """Document reference stored on a log entry"""
    model_config = ConfigDict(frozen=True)

    collection: str
    id: str
    title: Optional[str] = None


class LogStepRef(BaseModel):
    """Step reference stored on a log entry"""
    model_config = ConfigDict(frozen=True)

    step_number: int
    step_name: str
    step_type: str


class SlaStatus(BaseModel):
    """SLA evaluation of an assignment"""
    model_config = ConfigDict(frozen=True)

    is_overdue: bool = False
    overdue_hours: float = 0.0


class WorkflowLogEntry(BaseModel):
    """Immutable audit record of one action taken against a step"""
    model_config = ConfigDict(frozen=True, extra="ignore", use_enum_values=True)

    id: Optional[str] = None
    workflow: str
    document: LogDocumentRef
    step: LogStepRef
    action: LogAction
    user: str
    timestamp: datetime
    sequence: int = 0
    comment: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    sla_status: Optional[SlaStatus] = None


# ============================================================================
# Engine Results
# ============================================================================

class TransitionResult(BaseModel):
    """Outcome of a transition performed by the engine"""
    next_step: Optional[WorkflowStep] = None
    is_completed: bool = False
    log_id: Optional[str] = None


class ActionResult(BaseModel):
    """Outcome of a triggered action"""
    document_id: str
    workflow_id: str
    action: str
    current_step: int
    new_step: Optional[int] = None
    is_completed: bool = False
    log_id: str


class NotificationMessage(BaseModel):
    """Event context handed to the notification dispatcher"""
    model_config = ConfigDict(use_enum_values=True)

    event: NotificationEvent
    document: LogDocumentRef
    workflow_id: str
    workflow_name: str
    step: Optional[LogStepRef] = None
    action: Optional[str] = None
    sla_status: Optional[SlaStatus] = None
