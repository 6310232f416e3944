"""Workflow API Routes - Document actions, SLA sweeps and definition management"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ..deps import (
    get_current_user_dep, get_correlation_id_dep,
    get_document_service, get_sla_service, get_workflow_service
)
from ...domain.enums import TriggerAction, WorkflowPriority, WorkflowType
from ...domain.models import ActionResult, Condition, User, WorkflowStep
from ...services.document_service import DocumentService
from ...services.sla_service import SlaService
from ...services.workflow_service import WorkflowService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================

class TriggerActionRequest(BaseModel):
    """Request to act on a document's current step"""
    document_id: str = Field(..., min_length=1)
    collection: str = Field(..., min_length=1)
    workflow_id: str = Field(..., min_length=1)
    action: TriggerAction
    comment: Optional[str] = Field(None, max_length=5000)


class AssignWorkflowRequest(BaseModel):
    """Request to attach a workflow to a document"""
    document_id: str = Field(..., min_length=1)
    collection: str = Field(..., min_length=1)
    workflow_id: str = Field(..., min_length=1)
    auto_start: bool = True


class BulkAssignRequest(BaseModel):
    """Request to attach a workflow to many documents"""
    document_ids: List[str] = Field(..., min_length=1, max_length=500)
    collection: str = Field(..., min_length=1)
    workflow_id: str = Field(..., min_length=1)
    auto_start: bool = True


class WorkflowDefinitionRequest(BaseModel):
    """Full workflow definition; steps are renumbered on save"""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    workflow_type: WorkflowType = WorkflowType.APPROVAL
    priority: WorkflowPriority = WorkflowPriority.NORMAL
    is_active: bool = True
    applicable_collections: List[str] = Field(default_factory=list)
    trigger_conditions: List[Condition] = Field(default_factory=list)
    steps: List[WorkflowStep] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


class UpdateWorkflowRequest(BaseModel):
    """Partial workflow update"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    workflow_type: Optional[WorkflowType] = None
    priority: Optional[WorkflowPriority] = None
    is_active: Optional[bool] = None
    applicable_collections: Optional[List[str]] = None
    trigger_conditions: Optional[List[Condition]] = None
    steps: Optional[List[WorkflowStep]] = None
    tags: Optional[List[str]] = None
    expected_version: Optional[int] = Field(None, ge=1)


class CloneWorkflowRequest(BaseModel):
    """Request to copy a workflow"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    is_active: bool = False


class WorkflowListResponse(BaseModel):
    """Response for workflow list"""
    items: List[Dict[str, Any]]
    total: int
    skip: int
    limit: Optional[int]
    has_next_page: bool


# ============================================================================
# Document Actions
# ============================================================================

@router.post("/trigger", response_model=ActionResult)
async def trigger_action(
    request: TriggerActionRequest,
    actor: User = Depends(get_current_user_dep),
    service: DocumentService = Depends(get_document_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Apply approved / rejected / commented to the document's current step

    Only a resolved assignee of the step may act.
    """
    return await service.trigger_action(
        document_id=request.document_id,
        collection=request.collection,
        workflow_id=request.workflow_id,
        action=request.action.value,
        acting_user_id=actor.id,
        comment=request.comment
    )


@router.get("/status/{document_id}")
async def get_workflow_status(
    document_id: str,
    collection: str = Query(..., min_length=1),
    include_logs: bool = Query(True),
    service: DocumentService = Depends(get_document_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Status snapshot: workflow summary, progress, current step, SLA and recent logs"""
    return await service.get_status(document_id, collection, include_logs=include_logs)


@router.get("/pending")
async def get_pending_actions(
    actor: User = Depends(get_current_user_dep),
    service: DocumentService = Depends(get_document_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Steps currently waiting on the calling user"""
    items = await service.pending_actions(actor.id)
    return {"items": items, "total": len(items)}


@router.post("/assign")
async def assign_workflow(
    request: AssignWorkflowRequest,
    actor: User = Depends(get_current_user_dep),
    service: DocumentService = Depends(get_document_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Attach a workflow to a document and optionally start it"""
    return await service.assign_workflow(
        document_id=request.document_id,
        collection=request.collection,
        workflow_id=request.workflow_id,
        auto_start=request.auto_start,
        acting_user_id=actor.id
    )


@router.post("/bulk-assign")
async def bulk_assign_workflow(
    request: BulkAssignRequest,
    actor: User = Depends(get_current_user_dep),
    service: DocumentService = Depends(get_document_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Attach a workflow to many documents; failures are reported per document"""
    return await service.bulk_assign(
        document_ids=request.document_ids,
        collection=request.collection,
        workflow_id=request.workflow_id,
        auto_start=request.auto_start,
        acting_user_id=actor.id
    )


# ============================================================================
# SLA
# ============================================================================

@router.get("/sla/overdue")
async def list_overdue(
    actor: User = Depends(get_current_user_dep),
    service: SlaService = Depends(get_sla_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Documents whose current step is past its SLA"""
    items = [item.to_dict() for item in await service.list_overdue()]
    return {"items": items, "total": len(items)}


@router.post("/sla/escalate")
async def escalate_overdue(
    actor: User = Depends(get_current_user_dep),
    service: SlaService = Depends(get_sla_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Run the escalation action of every overdue step not yet escalated"""
    logger.info("Manual SLA escalation sweep", extra={"user_id": actor.id})
    return await service.escalate_overdue()


# ============================================================================
# Definitions
# ============================================================================

@router.post("/validate")
async def validate_workflow(
    request: Dict[str, Any],
    actor: User = Depends(get_current_user_dep),
    service: WorkflowService = Depends(get_workflow_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Dry-run validation of a definition without saving it"""
    return service.validate(request)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_workflow(
    request: WorkflowDefinitionRequest,
    actor: User = Depends(get_current_user_dep),
    service: WorkflowService = Depends(get_workflow_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Create a workflow definition"""
    workflow = await service.create_workflow(request.model_dump(mode="python"), actor)
    logger.info(
        f"Created workflow: {workflow.id}",
        extra={"workflow_id": workflow.id, "user_id": actor.id}
    )
    return workflow.model_dump(mode="json")


@router.get("", response_model=WorkflowListResponse)
async def list_workflows(
    is_active: Optional[bool] = Query(None),
    collection: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    service: WorkflowService = Depends(get_workflow_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """List workflow definitions, newest first"""
    workflows, pagination = await service.list_workflows(
        is_active=is_active, collection=collection, skip=skip, limit=limit
    )
    return WorkflowListResponse(
        items=[w.model_dump(mode="json") for w in workflows],
        total=pagination.total_docs,
        skip=pagination.skip,
        limit=pagination.limit,
        has_next_page=pagination.has_next_page
    )


@router.get("/{workflow_id}")
async def get_workflow(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Get a workflow definition"""
    workflow = await service.get_workflow(workflow_id)
    return workflow.model_dump(mode="json")


@router.put("/{workflow_id}")
async def update_workflow(
    workflow_id: str,
    request: UpdateWorkflowRequest,
    actor: User = Depends(get_current_user_dep),
    service: WorkflowService = Depends(get_workflow_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Update a workflow definition

    Pass expected_version to fail with a conflict when someone else saved first.
    """
    updates = request.model_dump(mode="python", exclude_unset=True)
    expected_version = updates.pop("expected_version", None)
    workflow = await service.update_workflow(workflow_id, updates, actor, expected_version=expected_version)
    return workflow.model_dump(mode="json")


@router.delete("/{workflow_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workflow(
    workflow_id: str,
    actor: User = Depends(get_current_user_dep),
    service: WorkflowService = Depends(get_workflow_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Delete a workflow that no document is still running"""
    await service.delete_workflow(workflow_id, actor)


@router.post("/{workflow_id}/clone", status_code=status.HTTP_201_CREATED)
async def clone_workflow(
    workflow_id: str,
    request: Optional[CloneWorkflowRequest] = None,
    actor: User = Depends(get_current_user_dep),
    service: WorkflowService = Depends(get_workflow_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Copy a workflow under a new id"""
    request = request or CloneWorkflowRequest()
    workflow = await service.clone_workflow(
        workflow_id,
        actor,
        name=request.name,
        description=request.description,
        is_active=request.is_active
    )
    return workflow.model_dump(mode="json")


@router.post("/{workflow_id}/activate")
async def activate_workflow(
    workflow_id: str,
    actor: User = Depends(get_current_user_dep),
    service: WorkflowService = Depends(get_workflow_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Activate a workflow"""
    workflow = await service.set_active(workflow_id, True, actor)
    return workflow.model_dump(mode="json")


@router.post("/{workflow_id}/deactivate")
async def deactivate_workflow(
    workflow_id: str,
    actor: User = Depends(get_current_user_dep),
    service: WorkflowService = Depends(get_workflow_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Deactivate a workflow; documents already running it keep their status"""
    workflow = await service.set_active(workflow_id, False, actor)
    return workflow.model_dump(mode="json")
