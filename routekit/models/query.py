"""Typed list queries produced by the list query parsers."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ListQuery(BaseModel):
    """Validated list query: projection, filters, sort and pagination."""

    model_config = ConfigDict(frozen=True)

    fields: List[str] = Field(default_factory=list)
    filters: Dict[str, Any] = Field(default_factory=dict)
    sort_field: Optional[str] = None
    sort_direction: Literal["ASC", "DESC"] = "ASC"
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=20, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


class CptListQuery(ListQuery):
    """List query over a content-type source."""


class TableListQuery(ListQuery):
    """List query over a raw table source."""
