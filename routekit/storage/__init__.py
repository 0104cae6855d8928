"""SQL storage for table resources."""

from routekit.storage.sql_adapter import DatabaseClient, PreparedQuery, SqlAdapter
from routekit.storage.sqlite_client import SqliteClient

__all__ = ["DatabaseClient", "PreparedQuery", "SqlAdapter", "SqliteClient"]
