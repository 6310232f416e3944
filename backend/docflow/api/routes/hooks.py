"""Lifecycle Hook Routes - Called by the CMS after documents are saved"""
from fastapi import APIRouter, Depends

from ..deps import get_correlation_id_dep, get_document_service
from ...services.document_service import DocumentService

router = APIRouter()


@router.post("/documents/{collection}/{document_id}/created")
async def document_created(
    collection: str,
    document_id: str,
    service: DocumentService = Depends(get_document_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Auto-assign the first applicable workflow to a new document"""
    return await service.handle_document_created(collection, document_id)


@router.post("/documents/{collection}/{document_id}/changed")
async def document_changed(
    collection: str,
    document_id: str,
    service: DocumentService = Depends(get_document_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Restart a workflow whose status was cleared or never started"""
    return await service.handle_document_changed(collection, document_id)
