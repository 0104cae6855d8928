"""Parameterized SQL for table resources."""

import logging
import re
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PreparedQuery(BaseModel):
    """SQL text with bound parameters, as produced by ``DatabaseClient.prepare``."""

    model_config = ConfigDict(frozen=True)

    sql: str
    params: Tuple[Any, ...] = ()


class DatabaseClient(Protocol):
    insert_id: int

    def prepare(self, query: str, args: Sequence[Any]) -> Any: ...

    def get_results(self, prepared: Any) -> List[Dict[str, Any]]: ...

    def get_row(self, prepared: Any) -> Optional[Dict[str, Any]]: ...

    def get_var(self, prepared: Any) -> Any: ...

    def query(self, prepared: Any) -> int: ...


def quote_identifier(name: str, kind: str = "field") -> str:
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid {kind}: {name!r}")
    return f"`{name}`"


def placeholder(value: Any) -> str:
    if isinstance(value, (bool, int)):
        return "%d"
    if isinstance(value, float):
        return "%f"
    return "%s"


def bind_value(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    return str(value)


class SqlAdapter:
    """Builds validated, parameterized SQL for list/get/create/update/delete."""

    def __init__(self, client: DatabaseClient, table_prefix: str = ""):
        """Initialize adapter.

        Args:
            client: Database client doing the actual binding and execution
            table_prefix: Prepended to every table name
        """
        self.client = client
        self.table_prefix = table_prefix

    def table(self, table: str) -> str:
        return quote_identifier(self.table_prefix + table, "table")

    def _columns(self, fields: Sequence[str]) -> str:
        if not fields:
            return "*"
        return ", ".join(quote_identifier(field) for field in fields)

    def _where(self, filters: Dict[str, Any]) -> Tuple[str, List[Any]]:
        clauses = []
        args: List[Any] = []
        for name, value in filters.items():
            column = quote_identifier(name)
            if value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = {placeholder(value)}")
                args.append(bind_value(value))
        return (" WHERE " + " AND ".join(clauses)) if clauses else "", args

    def list(
        self,
        table: str,
        primary_key: str,
        fields: Sequence[str],
        filters: Dict[str, Any],
        sort_field: Optional[str],
        sort_direction: str,
        page: int,
        per_page: int,
    ) -> Dict[str, Any]:
        """Fetch one page of rows and the total count."""
        where, args = self._where(filters)
        direction = "DESC" if sort_direction.upper() == "DESC" else "ASC"
        order_by = quote_identifier(sort_field or primary_key)
        offset = (page - 1) * per_page

        select_sql = (
            f"SELECT {self._columns(fields)} FROM {self.table(table)}{where} "
            f"ORDER BY {order_by} {direction} LIMIT %d OFFSET %d"
        )
        rows = self.client.get_results(self.client.prepare(select_sql, [*args, per_page, offset]))

        count_sql = f"SELECT COUNT(*) FROM {self.table(table)}{where}"
        total = self.client.get_var(self.client.prepare(count_sql, args))

        return {
            "items": [dict(row) for row in rows or []],
            "total": int(total or 0),
            "page": page,
            "perPage": per_page,
        }

    def get(self, table: str, primary_key: str, id: int, fields: Sequence[str]) -> Optional[Dict[str, Any]]:
        sql = (
            f"SELECT {self._columns(fields)} FROM {self.table(table)} "
            f"WHERE {quote_identifier(primary_key)} = %d LIMIT 1"
        )
        row = self.client.get_row(self.client.prepare(sql, [int(id)]))
        return dict(row) if row else None

    def create(
        self, table: str, primary_key: str, payload: Dict[str, Any], fields: Sequence[str]
    ) -> Dict[str, Any]:
        columns = []
        values = []
        args: List[Any] = []
        for name, value in payload.items():
            columns.append(quote_identifier(name))
            if value is None:
                values.append("NULL")
            else:
                values.append(placeholder(value))
                args.append(bind_value(value))

        sql = f"INSERT INTO {self.table(table)} ({', '.join(columns)}) VALUES ({', '.join(values)})"
        self.client.query(self.client.prepare(sql, args))

        new_id = int(self.client.insert_id or 0)
        logger.info(f"Inserted row {new_id} into {self.table_prefix + table}")
        row = self.get(table, primary_key, new_id, fields) if new_id > 0 else None
        return row if row is not None else {primary_key: new_id, **payload}

    def update(
        self,
        table: str,
        primary_key: str,
        id: int,
        payload: Dict[str, Any],
        fields: Sequence[str],
    ) -> Optional[Dict[str, Any]]:
        if self.get(table, primary_key, id, [primary_key]) is None:
            return None

        if payload:
            assignments = []
            args: List[Any] = []
            for name, value in payload.items():
                if value is None:
                    assignments.append(f"{quote_identifier(name)} = NULL")
                else:
                    assignments.append(f"{quote_identifier(name)} = {placeholder(value)}")
                    args.append(bind_value(value))

            sql = (
                f"UPDATE {self.table(table)} SET {', '.join(assignments)} "
                f"WHERE {quote_identifier(primary_key)} = %d"
            )
            self.client.query(self.client.prepare(sql, [*args, int(id)]))

        return self.get(table, primary_key, id, fields)

    def delete(self, table: str, primary_key: str, id: int) -> bool:
        sql = f"DELETE FROM {self.table(table)} WHERE {quote_identifier(primary_key)} = %d"
        affected = self.client.query(self.client.prepare(sql, [int(id)]))
        return bool(affected)
