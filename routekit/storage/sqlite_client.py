"""sqlite3-backed DatabaseClient."""

import re
import sqlite3
import threading
from typing import Any, Dict, List, Optional, Sequence

from routekit.storage.sql_adapter import PreparedQuery

_PLACEHOLDER = re.compile(r"%([dfs])")

_CASTS = {"d": int, "f": float, "s": str}


class SqliteClient:
    """Executes prepared queries on a sqlite3 connection."""

    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection
        self.connection.row_factory = sqlite3.Row
        self.insert_id = 0
        self._lock = threading.Lock()

    @classmethod
    def connect(cls, database: str = ":memory:") -> "SqliteClient":
        return cls(sqlite3.connect(database, check_same_thread=False))

    def prepare(self, query: str, args: Sequence[Any]) -> PreparedQuery:
        """Swap ``%d``/``%f``/``%s`` for bound ``?`` parameters, casting each value."""
        values = list(args)
        placeholders = _PLACEHOLDER.findall(query)
        if len(placeholders) != len(values):
            raise ValueError(
                f"Query expects {len(placeholders)} arguments, got {len(values)}."
            )

        params = tuple(_CASTS[kind](value) for kind, value in zip(placeholders, values))
        return PreparedQuery(sql=_PLACEHOLDER.sub("?", query), params=params)

    def get_results(self, prepared: PreparedQuery) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self.connection.execute(prepared.sql, prepared.params).fetchall()
        return [dict(row) for row in rows]

    def get_row(self, prepared: PreparedQuery) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.connection.execute(prepared.sql, prepared.params).fetchone()
        return dict(row) if row is not None else None

    def get_var(self, prepared: PreparedQuery) -> Any:
        with self._lock:
            row = self.connection.execute(prepared.sql, prepared.params).fetchone()
        return row[0] if row is not None else None

    def query(self, prepared: PreparedQuery) -> int:
        with self._lock:
            cursor = self.connection.execute(prepared.sql, prepared.params)
            self.connection.commit()
            self.insert_id = cursor.lastrowid or 0
            return cursor.rowcount
