"""Repository modules - Data access layer"""
from .base import DocumentStore, UserDirectory, NotificationDispatcher, FindResult, Pagination
from .memory_store import InMemoryDocumentStore
from .workflow_repo import WorkflowRepository
from .audit_repo import AuditRepository
from .user_directory import StoreUserDirectory

__all__ = [
    "DocumentStore",
    "UserDirectory",
    "NotificationDispatcher",
    "FindResult",
    "Pagination",
    "InMemoryDocumentStore",
    "WorkflowRepository",
    "AuditRepository",
    "StoreUserDirectory",
]
