"""Mongo Document Store - DocumentStore implementation backed by Motor"""
from typing import Any, Dict, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from .base import FindResult, Pagination, SortSpec
from ..domain.errors import AlreadyExistsError, ConcurrencyError, DocumentNotFoundError, StorageError
from ..utils.idgen import generate_id
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _strip_id(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is not None:
        doc.pop("_id", None)
    return doc


class MongoDocumentStore:
    """
    Document store over a Mongo database

    Each document is stored with `_id` equal to its `id` field so lookups by
    id use the primary index. Compare-and-swap updates are a single
    find_one_and_update with the expected values folded into the filter.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db

    @property
    def db(self) -> AsyncIOMotorDatabase:
        return self._db

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            doc = await self._db[collection].find_one({"_id": str(doc_id)})
        except PyMongoError as e:
            raise StorageError(f"Failed to read {collection}/{doc_id}: {e}")
        return _strip_id(doc)

    async def find(
        self,
        collection: str,
        query: Dict[str, Any],
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        skip: int = 0
    ) -> FindResult:
        coll = self._db[collection]
        try:
            total = await coll.count_documents(query)
            cursor = coll.find(query)
            if sort:
                cursor = cursor.sort(list(sort))
            if skip:
                cursor = cursor.skip(skip)
            if limit is not None:
                cursor = cursor.limit(limit)

            items = []
            async for doc in cursor:
                items.append(_strip_id(doc))
        except PyMongoError as e:
            raise StorageError(f"Failed to query {collection}: {e}", details={"query": str(query)})

        return FindResult(
            items=items,
            pagination=Pagination(
                total_docs=total,
                limit=limit,
                skip=skip,
                has_next_page=skip + len(items) < total
            )
        )

    async def create(self, collection: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(fields)
        doc["id"] = str(doc.get("id") or generate_id())
        doc["_id"] = doc["id"]

        try:
            await self._db[collection].insert_one(doc)
        except DuplicateKeyError:
            raise AlreadyExistsError(f"Document {doc['id']} already exists in {collection}")
        except PyMongoError as e:
            raise StorageError(f"Failed to insert into {collection}: {e}")

        logger.debug(f"Created document {doc['id']} in {collection}", extra={"collection": collection})
        return _strip_id(doc)

    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        coll = self._db[collection]
        filter_query: Dict[str, Any] = {"_id": str(doc_id)}
        if expected:
            filter_query.update(expected)

        try:
            result = await coll.find_one_and_update(
                filter_query,
                {"$set": fields},
                return_document=ReturnDocument.AFTER
            )
            if result is None and expected:
                exists = await coll.find_one({"_id": str(doc_id)}, {"_id": 1})
                if exists:
                    raise ConcurrencyError(
                        f"Document {doc_id} was modified concurrently",
                        details={"collection": collection, "document_id": doc_id}
                    )
        except PyMongoError as e:
            raise StorageError(f"Failed to update {collection}/{doc_id}: {e}")

        if result is None:
            raise DocumentNotFoundError(
                f"Document {doc_id} not found in {collection}",
                details={"collection": collection, "document_id": doc_id}
            )
        return _strip_id(result)
