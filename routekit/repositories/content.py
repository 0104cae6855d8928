"""Content-type repositories."""

import threading
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from routekit.models.query import CptListQuery


class ContentRepository(Protocol):
    def list(self, source_type: str, query: CptListQuery) -> Dict[str, Any]: ...

    def get(self, source_type: str, id: int, fields: Sequence[str]) -> Optional[Dict[str, Any]]: ...

    def create(self, source_type: str, payload: Dict[str, Any], fields: Sequence[str]) -> Dict[str, Any]: ...

    def update(
        self, source_type: str, id: int, payload: Dict[str, Any], fields: Sequence[str]
    ) -> Optional[Dict[str, Any]]: ...

    def delete(self, source_type: str, id: int) -> bool: ...


def _matches(item: Dict[str, Any], name: str, expected: Any) -> bool:
    actual = item.get(name)
    if isinstance(expected, (list, tuple, set)):
        return actual in expected or str(actual) in {str(value) for value in expected}
    return actual == expected or str(actual) == str(expected)


def project(item: Dict[str, Any], fields: Sequence[str]) -> Dict[str, Any]:
    return {field: item.get(field) for field in fields}


class InMemoryContentRepository:
    """Process-local content store keyed by source type, with status-aware listing."""

    def __init__(self, default_status: str = "publish"):
        self.default_status = default_status
        self._items: Dict[str, Dict[int, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def seed(self, source_type: str, items: Iterable[Dict[str, Any]]) -> "InMemoryContentRepository":
        with self._lock:
            bucket = self._items.setdefault(source_type, {})
            for item in items:
                bucket[int(item["id"])] = dict(item)
        return self

    def list(self, source_type: str, query: CptListQuery) -> Dict[str, Any]:
        with self._lock:
            items = list(self._items.get(source_type, {}).values())

        for name, expected in query.filters.items():
            items = [item for item in items if _matches(item, name, expected)]

        if query.sort_field is not None:
            items.sort(
                key=lambda item: (item.get(query.sort_field) is None, item.get(query.sort_field)),
                reverse=query.sort_direction == "DESC",
            )

        page = items[query.offset : query.offset + query.per_page]
        return {
            "items": [project(item, query.fields) for item in page],
            "total": len(items),
            "page": query.page,
            "perPage": query.per_page,
        }

    def get(self, source_type: str, id: int, fields: Sequence[str]) -> Optional[Dict[str, Any]]:
        with self._lock:
            item = self._items.get(source_type, {}).get(int(id))
        return project(item, fields) if item is not None else None

    def create(self, source_type: str, payload: Dict[str, Any], fields: Sequence[str]) -> Dict[str, Any]:
        with self._lock:
            bucket = self._items.setdefault(source_type, {})
            new_id = max(bucket, default=0) + 1
            item = {"status": self.default_status, **payload, "id": new_id}
            bucket[new_id] = item
        return project(item, fields)

    def update(
        self, source_type: str, id: int, payload: Dict[str, Any], fields: Sequence[str]
    ) -> Optional[Dict[str, Any]]:
        with self._lock:
            item = self._items.get(source_type, {}).get(int(id))
            if item is None:
                return None
            item.update({key: value for key, value in payload.items() if key != "id"})
            return project(item, fields)

    def delete(self, source_type: str, id: int) -> bool:
        with self._lock:
            return self._items.get(source_type, {}).pop(int(id), None) is not None

    def all(self, source_type: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(item) for item in self._items.get(source_type, {}).values()]
