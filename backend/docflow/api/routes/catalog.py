"""Workflow Catalog API Routes - Templates, editor values and user lookups"""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from ..deps import get_catalog_service, get_correlation_id_dep, get_current_user_dep
from ...domain.models import User
from ...services.catalog_service import CatalogService

router = APIRouter()


@router.get("/templates")
async def list_templates(
    service: CatalogService = Depends(get_catalog_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Built-in starter workflows"""
    templates = service.templates()
    return {"items": templates, "total": len(templates)}


@router.get("/values/{kind}")
async def list_values(
    kind: str,
    service: CatalogService = Depends(get_catalog_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Selectable values: roles, workflow-types, priorities, step-types, operators, collections, notification-channels"""
    values = await service.values(kind)
    return {"items": values, "total": len(values)}


@router.get("/departments")
async def list_departments(
    actor: User = Depends(get_current_user_dep),
    service: CatalogService = Depends(get_catalog_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Departments of active users"""
    departments = await service.departments()
    return {"items": departments, "total": len(departments)}


@router.get("/users/by-role/{role}")
async def list_users_by_role(
    role: str,
    department: Optional[str] = Query(None),
    actor: User = Depends(get_current_user_dep),
    service: CatalogService = Depends(get_catalog_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Active users holding a role"""
    users = await service.users_by_role(role, department=department)
    return {"items": [u.model_dump(mode="json") for u in users], "total": len(users)}


@router.get("/users/by-department/{department}")
async def list_users_by_department(
    department: str,
    role: Optional[str] = Query(None),
    actor: User = Depends(get_current_user_dep),
    service: CatalogService = Depends(get_catalog_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Active users in a department"""
    users = await service.users_by_department(department, role=role)
    return {"items": [u.model_dump(mode="json") for u in users], "total": len(users)}
