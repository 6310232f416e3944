"""User Directory - Lookups over the users collection"""
from typing import List, Optional

from .base import DocumentStore
from ..domain.models import User
from ..utils.logger import get_logger

logger = get_logger(__name__)

USER_COLLECTION = "users"


class StoreUserDirectory:
    """UserDirectory backed by the document store"""

    def __init__(self, store: DocumentStore):
        self._store = store

    async def find_users_by_role(self, roles: List[str]) -> List[User]:
        """Active users holding any of the roles"""
        if not roles:
            return []
        result = await self._store.find(
            USER_COLLECTION,
            {"role": {"$in": list(roles)}, "is_active": True},
            sort=[("id", 1)]
        )
        return [User.model_validate(doc) for doc in result.items]

    async def find_users_by_department(self, departments: List[str]) -> List[User]:
        """Active users in any of the departments"""
        if not departments:
            return []
        result = await self._store.find(
            USER_COLLECTION,
            {"department": {"$in": list(departments)}, "is_active": True},
            sort=[("id", 1)]
        )
        return [User.model_validate(doc) for doc in result.items]

    async def list_users(self, role: Optional[str] = None, department: Optional[str] = None) -> List[User]:
        """Active users, optionally filtered by role and department, sorted by name"""
        query = {"is_active": True}
        if role:
            query["role"] = role
        if department:
            query["department"] = department
        result = await self._store.find(USER_COLLECTION, query, sort=[("name", 1), ("id", 1)])
        return [User.model_validate(doc) for doc in result.items]

    async def find_by_id(self, user_id: str) -> Optional[User]:
        """User by id regardless of status; callers filter on is_active"""
        if not user_id:
            return None
        doc = await self._store.find_by_id(USER_COLLECTION, user_id)
        return User.model_validate(doc) if doc else None

    async def create(self, user: User) -> User:
        """Register a user (seeding and tests)"""
        await self._store.create(USER_COLLECTION, user.model_dump(mode="python"))
        logger.info(f"Created user: {user.id}", extra={"user_id": user.id})
        return user
