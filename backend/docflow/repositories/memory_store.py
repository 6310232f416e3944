"""In-Memory Document Store - DocumentStore implementation for development and tests"""
import copy
from typing import Any, Dict, List, Optional, Tuple

from .base import FindResult, Pagination, SortSpec
from ..domain.errors import AlreadyExistsError, ConcurrencyError, DocumentNotFoundError
from ..utils.idgen import generate_id
from ..utils.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


def get_path(data: Any, path: str) -> Any:
    """Read a dot-path from nested mappings, returning _MISSING if absent"""
    value = data
    for part in path.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return _MISSING
    return value


def set_path(data: Dict[str, Any], path: str, value: Any) -> None:
    """Write a dot-path into nested mappings, creating intermediate dicts"""
    parts = path.split(".")
    target = data
    for part in parts[:-1]:
        if not isinstance(target.get(part), dict):
            target[part] = {}
        target = target[part]
    target[parts[-1]] = value


def _equals(value: Any, expected: Any) -> bool:
    if value is _MISSING:
        return expected is None
    if isinstance(value, list) and not isinstance(expected, list):
        return expected in value
    return value == expected


def _compare(value: Any, operand: Any, op: str) -> bool:
    if value is _MISSING or value is None:
        return False
    try:
        if op == "$gt":
            return value > operand
        if op == "$gte":
            return value >= operand
        if op == "$lt":
            return value < operand
        if op == "$lte":
            return value <= operand
    except TypeError:
        return False
    raise ValueError(f"Unsupported query operator: {op}")


def matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    """Evaluate a store query against a single document"""
    for path, condition in query.items():
        value = get_path(doc, path)

        is_operator_dict = (
            isinstance(condition, dict)
            and condition
            and all(key.startswith("$") for key in condition)
        )
        if not is_operator_dict:
            if not _equals(value, condition):
                return False
            continue

        for op, operand in condition.items():
            if op == "$in":
                if isinstance(value, list):
                    if not any(item in operand for item in value):
                        return False
                elif (None if value is _MISSING else value) not in operand:
                    return False
            elif op == "$ne":
                if _equals(value, operand):
                    return False
            elif not _compare(value, operand, op):
                return False
    return True


def _sort_key(path: str):
    def key(doc: Dict[str, Any]) -> Tuple[bool, Any]:
        value = get_path(doc, path)
        if value is _MISSING or value is None:
            return (False, 0)
        return (True, value)
    return key


class InMemoryDocumentStore:
    """
    Process-local document store

    Every read returns a deep copy so callers can never mutate stored state.
    Writes do not await, so each operation is atomic on the event loop.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(name, {})

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._collection(collection).get(str(doc_id))
        return copy.deepcopy(doc) if doc is not None else None

    async def find(
        self,
        collection: str,
        query: Dict[str, Any],
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        skip: int = 0
    ) -> FindResult:
        docs: List[Dict[str, Any]] = [
            doc for doc in self._collection(collection).values() if matches(doc, query)
        ]

        # Stable multi-key sort: apply keys from last to first
        for path, direction in reversed(list(sort or [])):
            docs.sort(key=_sort_key(path), reverse=direction < 0)

        total = len(docs)
        page = docs[skip:]
        if limit is not None:
            page = page[:limit]

        return FindResult(
            items=[copy.deepcopy(doc) for doc in page],
            pagination=Pagination(
                total_docs=total,
                limit=limit,
                skip=skip,
                has_next_page=skip + len(page) < total
            )
        )

    async def create(self, collection: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        doc = copy.deepcopy(fields)
        doc_id = str(doc.get("id") or generate_id())
        doc["id"] = doc_id

        store = self._collection(collection)
        if doc_id in store:
            raise AlreadyExistsError(f"Document {doc_id} already exists in {collection}")

        store[doc_id] = doc
        return copy.deepcopy(doc)

    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        doc = self._collection(collection).get(str(doc_id))
        if doc is None:
            raise DocumentNotFoundError(
                f"Document {doc_id} not found in {collection}",
                details={"collection": collection, "document_id": doc_id}
            )

        if expected and not matches(doc, expected):
            raise ConcurrencyError(
                f"Document {doc_id} was modified concurrently",
                details={"collection": collection, "document_id": doc_id}
            )

        for path, value in copy.deepcopy(fields).items():
            set_path(doc, path, value)
        return copy.deepcopy(doc)

    def clear(self) -> None:
        self._collections.clear()
