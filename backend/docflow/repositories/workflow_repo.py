"""Workflow Repository - Data access for workflow definitions"""
from typing import Any, Dict, List, Optional, Tuple
from pydantic import ValidationError

from .base import DocumentStore, Pagination
from ..domain.enums import ALL_COLLECTIONS
from ..domain.errors import WorkflowNotFoundError, StorageError
from ..domain.models import Workflow
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

WORKFLOW_COLLECTION = "workflows"


class WorkflowRepository:
    """Repository for workflow definitions"""

    def __init__(self, store: DocumentStore):
        self._store = store

    def _to_model(self, doc: Dict[str, Any]) -> Workflow:
        try:
            return Workflow.model_validate(doc)
        except ValidationError as e:
            logger.error(
                f"Corrupted workflow data for {doc.get('id')}. Validation failed: {str(e)[:500]}",
                extra={"workflow_id": doc.get("id")}
            )
            raise StorageError(f"Workflow {doc.get('id')} could not be loaded", details={"errors": len(e.errors())})

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create(self, workflow: Workflow) -> Workflow:
        """Create a new workflow definition"""
        now = utc_now()
        workflow = workflow.model_copy(update={"created_at": workflow.created_at or now, "updated_at": now})
        await self._store.create(WORKFLOW_COLLECTION, workflow.model_dump(mode="python"))
        logger.info(f"Created workflow: {workflow.id}", extra={"workflow_id": workflow.id})
        return workflow

    async def get(self, workflow_id: str) -> Optional[Workflow]:
        """Get workflow by ID, None if absent or deleted"""
        doc = await self._store.find_by_id(WORKFLOW_COLLECTION, workflow_id)
        if not doc or doc.get("deleted_at"):
            return None
        return self._to_model(doc)

    async def get_or_raise(self, workflow_id: str) -> Workflow:
        """Get workflow by ID or raise error"""
        workflow = await self.get(workflow_id)
        if not workflow:
            raise WorkflowNotFoundError(
                f"Workflow {workflow_id} not found",
                details={"workflow_id": workflow_id}
            )
        return workflow

    async def update(
        self,
        workflow_id: str,
        updates: Dict[str, Any],
        expected_version: Optional[int] = None
    ) -> Workflow:
        """
        Update workflow with optimistic concurrency

        Args:
            workflow_id: Workflow ID
            updates: Fields to update
            expected_version: Expected version for optimistic lock
        """
        updates = dict(updates)
        updates["updated_at"] = utc_now()

        expected = None
        if expected_version is not None:
            expected = {"version": expected_version}
            updates["version"] = expected_version + 1

        doc = await self._store.update(WORKFLOW_COLLECTION, workflow_id, updates, expected=expected)
        logger.info(f"Updated workflow: {workflow_id}", extra={"workflow_id": workflow_id})
        return self._to_model(doc)

    async def soft_delete(self, workflow_id: str) -> None:
        """Hide a workflow from every read path"""
        await self._store.update(
            WORKFLOW_COLLECTION,
            workflow_id,
            {"deleted_at": utc_now(), "is_active": False}
        )
        logger.info(f"Deleted workflow: {workflow_id}", extra={"workflow_id": workflow_id})

    # =========================================================================
    # Queries
    # =========================================================================

    async def list(
        self,
        is_active: Optional[bool] = None,
        collection: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[Workflow], Pagination]:
        """List workflows with filters"""
        query: Dict[str, Any] = {"deleted_at": None}
        if is_active is not None:
            query["is_active"] = is_active
        if collection:
            query["applicable_collections"] = {"$in": [collection, ALL_COLLECTIONS]}

        result = await self._store.find(
            WORKFLOW_COLLECTION,
            query,
            sort=[("created_at", -1), ("id", 1)],
            limit=limit,
            skip=skip
        )
        return [self._to_model(doc) for doc in result.items], result.pagination

    async def find_applicable(self, collection: str) -> List[Workflow]:
        """Active workflows applicable to a collection, in stable (created_at, id) order"""
        result = await self._store.find(
            WORKFLOW_COLLECTION,
            {
                "deleted_at": None,
                "is_active": True,
                "applicable_collections": {"$in": [collection, ALL_COLLECTIONS]},
            },
            sort=[("created_at", 1), ("id", 1)]
        )
        return [self._to_model(doc) for doc in result.items]
