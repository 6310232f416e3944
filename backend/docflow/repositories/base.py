"""Collaborator contracts - document store and user directory"""
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable
from pydantic import BaseModel, Field

from ..domain.models import NotificationMessage, User


# Sort spec: [("field.path", 1 | -1), ...]
SortSpec = Sequence[Tuple[str, int]]


class Pagination(BaseModel):
    """Pagination block returned with every find"""
    total_docs: int = 0
    limit: Optional[int] = None
    skip: int = 0
    has_next_page: bool = False


class FindResult(BaseModel):
    """Result of DocumentStore.find"""
    items: List[Dict[str, Any]] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


@runtime_checkable
class DocumentStore(Protocol):
    """
    Generic document store

    Queries are dicts of dot-path -> value, or dot-path -> operator dict
    using $in, $ne, $gt, $gte, $lt, $lte. Array fields match a scalar (or
    $in) when any element matches.
    """

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def find(
        self,
        collection: str,
        query: Dict[str, Any],
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        skip: int = 0
    ) -> FindResult:
        ...

    async def create(self, collection: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Set top-level or dot-path fields on a document

        When `expected` is given the write only applies if every dot-path in
        it currently holds the given value (ConcurrencyError otherwise).
        Raises NotFoundError when the document does not exist.
        """
        ...


@runtime_checkable
class UserDirectory(Protocol):
    """User lookup used for assignee resolution"""

    async def find_users_by_role(self, roles: List[str]) -> List[User]:
        ...

    async def find_users_by_department(self, departments: List[str]) -> List[User]:
        ...

    async def find_by_id(self, user_id: str) -> Optional[User]:
        ...


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Delivery boundary; best-effort and never part of a transition"""

    async def notify(self, user_ids: Sequence[str], message: NotificationMessage) -> None:
        ...
