"""Service modules - Business logic layer"""
from .workflow_service import WorkflowService
from .document_service import DocumentService
from .sla_service import SlaService
from .notification_service import NotificationService
from .catalog_service import CatalogService
from .factory import Services, build_services

__all__ = [
    "WorkflowService",
    "DocumentService",
    "SlaService",
    "NotificationService",
    "CatalogService",
    "Services",
    "build_services",
]
