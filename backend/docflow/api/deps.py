"""API Dependencies - Common dependencies for routes"""
from typing import Optional
from fastapi import Depends, Header, Request

from ..domain.models import User
from ..domain.errors import PermissionDeniedError
from ..services.catalog_service import CatalogService
from ..services.factory import Services
from ..services.document_service import DocumentService
from ..services.sla_service import SlaService
from ..services.workflow_service import WorkflowService
from ..utils.logger import set_correlation_id
from ..utils.idgen import generate_correlation_id


async def get_correlation_id_dep(
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-Id")
) -> str:
    """
    Get or generate correlation ID for request tracing

    If client provides X-Correlation-Id, use it.
    Otherwise generate a new one.
    """
    correlation_id = x_correlation_id or generate_correlation_id()
    set_correlation_id(correlation_id)
    return correlation_id


def get_services(request: Request) -> Services:
    """Component graph built at application startup"""
    return request.app.state.services


def get_workflow_service(services: Services = Depends(get_services)) -> WorkflowService:
    return services.workflow_service


def get_document_service(services: Services = Depends(get_services)) -> DocumentService:
    return services.document_service


def get_sla_service(services: Services = Depends(get_services)) -> SlaService:
    return services.sla_service


def get_catalog_service(services: Services = Depends(get_services)) -> CatalogService:
    return services.catalog_service


async def get_current_user_dep(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    services: Services = Depends(get_services)
) -> User:
    """
    Dependency to get the acting user

    Authentication happens upstream; the gateway forwards the user id in
    X-User-Id. The id must resolve to an active directory user.

    Raises:
        PermissionDeniedError: header missing, user unknown or inactive
    """
    if not x_user_id:
        raise PermissionDeniedError("X-User-Id header is missing")

    user = await services.directory.find_by_id(x_user_id)
    if user is None or not user.is_active:
        raise PermissionDeniedError(
            f"User {x_user_id} is not an active user",
            details={"user_id": x_user_id}
        )
    return user
