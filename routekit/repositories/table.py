"""Table repositories."""

from typing import Any, Dict, Optional, Protocol, Sequence

from routekit.models.query import TableListQuery
from routekit.storage.sql_adapter import SqlAdapter


class TableRepository(Protocol):
    def list(self, table: str, primary_key: str, query: TableListQuery) -> Dict[str, Any]: ...

    def get(self, table: str, primary_key: str, id: int, fields: Sequence[str]) -> Optional[Dict[str, Any]]: ...

    def create(
        self, table: str, primary_key: str, payload: Dict[str, Any], fields: Sequence[str]
    ) -> Dict[str, Any]: ...

    def update(
        self, table: str, primary_key: str, id: int, payload: Dict[str, Any], fields: Sequence[str]
    ) -> Optional[Dict[str, Any]]: ...

    def delete(self, table: str, primary_key: str, id: int) -> bool: ...


class SqlTableRepository:
    """Table repository over SqlAdapter."""

    def __init__(self, adapter: SqlAdapter):
        self.adapter = adapter

    def list(self, table: str, primary_key: str, query: TableListQuery) -> Dict[str, Any]:
        return self.adapter.list(
            table=table,
            primary_key=primary_key,
            fields=query.fields,
            filters=query.filters,
            sort_field=query.sort_field,
            sort_direction=query.sort_direction,
            page=query.page,
            per_page=query.per_page,
        )

    def get(self, table: str, primary_key: str, id: int, fields: Sequence[str]) -> Optional[Dict[str, Any]]:
        return self.adapter.get(table=table, primary_key=primary_key, id=id, fields=fields)

    def create(
        self, table: str, primary_key: str, payload: Dict[str, Any], fields: Sequence[str]
    ) -> Dict[str, Any]:
        return self.adapter.create(table=table, primary_key=primary_key, payload=payload, fields=fields)

    def update(
        self, table: str, primary_key: str, id: int, payload: Dict[str, Any], fields: Sequence[str]
    ) -> Optional[Dict[str, Any]]:
        return self.adapter.update(table=table, primary_key=primary_key, id=id, payload=payload, fields=fields)

    def delete(self, table: str, primary_key: str, id: int) -> bool:
        return self.adapter.delete(table=table, primary_key=primary_key, id=id)
