"""Repositories backing Resource routes."""

from routekit.repositories.content import ContentRepository, InMemoryContentRepository
from routekit.repositories.table import SqlTableRepository, TableRepository

__all__ = [
    "ContentRepository",
    "InMemoryContentRepository",
    "SqlTableRepository",
    "TableRepository",
]
