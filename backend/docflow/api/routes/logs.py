"""Workflow Log API Routes - Read-only audit history"""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from ..deps import get_current_user_dep, get_correlation_id_dep, get_document_service
from ...domain.models import User
from ...services.document_service import DocumentService

router = APIRouter()


@router.get("/documents/{collection}/{document_id}")
async def get_document_history(
    collection: str,
    document_id: str,
    workflow_id: Optional[str] = Query(None),
    actor: User = Depends(get_current_user_dep),
    service: DocumentService = Depends(get_document_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Every log entry for a document, oldest first"""
    entries = await service.document_history(collection, document_id, workflow_id=workflow_id)
    return {"items": [e.model_dump(mode="json") for e in entries], "total": len(entries)}


@router.get("/users/{user_id}")
async def get_user_history(
    user_id: str,
    limit: int = Query(50, ge=1, le=500),
    actor: User = Depends(get_current_user_dep),
    service: DocumentService = Depends(get_document_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Most recent entries written by a user, newest first"""
    entries = await service.user_history(user_id, limit=limit)
    return {"items": [e.model_dump(mode="json") for e in entries], "total": len(entries)}


@router.get("/workflows/{workflow_id}")
async def get_workflow_history(
    workflow_id: str,
    limit: int = Query(100, ge=1, le=500),
    actor: User = Depends(get_current_user_dep),
    service: DocumentService = Depends(get_document_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Most recent entries of a workflow, newest first"""
    entries = await service.workflow_history(workflow_id, limit=limit)
    return {"items": [e.model_dump(mode="json") for e in entries], "total": len(entries)}
