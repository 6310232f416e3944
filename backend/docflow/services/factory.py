"""Service Factory - Explicit construction of every engine component"""
from datetime import datetime
from typing import Callable, Optional

from .catalog_service import CatalogService
from .document_service import DocumentService
from .notification_service import NotificationService
from .sla_service import SlaService
from .workflow_service import WorkflowService
from ..config.settings import Settings
from ..engine.assignee_resolver import AssigneeResolver
from ..engine.audit_log import AuditLogStore
from ..engine.condition_evaluator import ConditionEvaluator
from ..engine.engine import WorkflowEngine
from ..engine.permission_guard import PermissionGuard
from ..engine.transition_resolver import TransitionResolver
from ..repositories.audit_repo import AuditRepository
from ..repositories.base import DocumentStore, NotificationDispatcher
from ..repositories.memory_store import InMemoryDocumentStore
from ..repositories.user_directory import StoreUserDirectory
from ..repositories.workflow_repo import WorkflowRepository
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class Services:
    """Container for the wired component graph"""

    def __init__(
        self,
        settings: Settings,
        store: DocumentStore,
        notifier: Optional[NotificationDispatcher] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.settings = settings
        self.store = store

        # Repositories
        self.directory = StoreUserDirectory(store)
        self.workflow_repo = WorkflowRepository(store)
        self.audit_repo = AuditRepository(store)

        # Engine components
        self.audit_log = AuditLogStore(
            self.audit_repo,
            business_timezone=settings.business_timezone,
            business_day_start_hour=settings.business_day_start_hour,
            business_day_end_hour=settings.business_day_end_hour,
            clock=clock
        )
        self.evaluator = ConditionEvaluator()
        self.resolver = AssigneeResolver(
            self.directory,
            self.evaluator,
            self.audit_log,
            amount_high_threshold=settings.amount_high_threshold,
            amount_very_high_threshold=settings.amount_very_high_threshold
        )
        self.transitions = TransitionResolver(self.evaluator)
        self.permission_guard = PermissionGuard(self.resolver)
        self.notifier = notifier or NotificationService(self.directory, settings)
        self.engine = WorkflowEngine(
            store=store,
            workflow_repo=self.workflow_repo,
            directory=self.directory,
            evaluator=self.evaluator,
            resolver=self.resolver,
            audit_log=self.audit_log,
            transitions=self.transitions,
            permission_guard=self.permission_guard,
            notifier=self.notifier
        )

        # Boundary services
        collections = settings.workflow_collections_list
        self.workflow_service = WorkflowService(self.workflow_repo, store, collections)
        self.document_service = DocumentService(
            self.engine,
            self.workflow_repo,
            self.audit_log,
            self.directory,
            status_log_limit=settings.status_log_limit
        )
        self.sla_service = SlaService(self.engine, self.workflow_repo, self.audit_log, store, collections)
        self.catalog_service = CatalogService(self.directory, settings)


def build_store(settings: Settings) -> DocumentStore:
    """Document store selected by settings.storage_backend"""
    if settings.storage_backend == "memory":
        logger.info("Using in-memory document store")
        return InMemoryDocumentStore()

    from ..repositories.document_repo import MongoDocumentStore
    from ..repositories.mongo_client import get_database
    return MongoDocumentStore(get_database(settings))


def build_services(
    settings: Settings,
    store: Optional[DocumentStore] = None,
    notifier: Optional[NotificationDispatcher] = None,
    clock: Callable[[], datetime] = utc_now
) -> Services:
    """Wire every component for the given settings"""
    return Services(settings, store if store is not None else build_store(settings), notifier, clock)
