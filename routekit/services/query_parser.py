"""List query parsers for content-type and table resources."""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, Union

from routekit.config import settings
from routekit.exceptions import ApiException, ConfigurationError
from routekit.models.query import CptListQuery, ListQuery, TableListQuery
from routekit.models.request import request_params
from routekit.models.response import ErrorCode

FILTER_TYPES = ("string", "int", "float", "bool", "date", "enum")
RESERVED_PARAMS = ("fields", "sort", "page", "per_page")

_INTEGER = re.compile(r"^-?\d+$", re.ASCII)
_DIGITS = re.compile(r"^\d+$", re.ASCII)
_NUMERIC = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$", re.ASCII)

FilterRule = Union[str, Dict[str, Any]]
FieldErrors = Dict[str, List[str]]


class FilterError(ValueError):
    pass


def validation_error(field_errors: FieldErrors) -> ApiException:
    return ApiException(
        "Invalid request.",
        status=400,
        code=ErrorCode.VALIDATION_FAILED.value,
        details={"fieldErrors": field_errors},
    )


def normalize_filter_schema(schema: Optional[Dict[str, FilterRule]]) -> Dict[str, Dict[str, Any]]:
    """Validate a filter type schema up front.

    Each rule is either a type name or ``{"type": ..., "values": [...]}``;
    enum rules need a non-empty list of string values.
    """
    normalized: Dict[str, Dict[str, Any]] = {}
    for name, rule in (schema or {}).items():
        if isinstance(rule, str) and rule != "":
            rule = {"type": rule}
        if not isinstance(rule, dict):
            raise ConfigurationError(f"Filter rule for {name} must be a type name or a mapping.")

        rule = dict(rule)
        rule_type = str(rule.get("type", "string"))
        if rule_type not in FILTER_TYPES:
            raise ConfigurationError(f"Unsupported filter type {rule_type} for {name}.")
        rule["type"] = rule_type

        if rule_type == "enum":
            values = rule.get("values")
            if not isinstance(values, (list, tuple)):
                raise ConfigurationError(f"Enum filter {name} requires a values list.")
            values = [value for value in values if isinstance(value, str) and value != ""]
            if not values:
                raise ConfigurationError(f"Enum filter {name} requires a non-empty values list.")
            rule["values"] = values

        normalized[name] = rule
    return normalized


class ListQueryParser:
    """Validates and coerces raw list parameters into a typed list query."""

    query_class: Type[ListQuery] = ListQuery

    def __init__(
        self,
        allowed_fields: Sequence[str],
        allowed_filters: Sequence[str] = (),
        allowed_sort: Sequence[str] = (),
        default_per_page: Optional[int] = None,
        max_per_page: Optional[int] = None,
        filter_schema: Optional[Dict[str, FilterRule]] = None,
        max_offset: Optional[int] = None,
    ):
        """Initialize parser.

        Args:
            allowed_fields: Projectable fields, in output order
            allowed_filters: Filterable parameter names
            allowed_sort: Sortable fields
            default_per_page: Page size when ``per_page`` is absent
            max_per_page: Upper bound for ``per_page``
            filter_schema: Optional type rule per filter
            max_offset: Upper bound for ``(page - 1) * per_page``
        """
        self.allowed_fields = list(allowed_fields)
        self.allowed_filters = list(allowed_filters)
        self.allowed_sort = list(allowed_sort)
        self.default_per_page = default_per_page if default_per_page is not None else settings.DEFAULT_PER_PAGE
        self.max_per_page = max_per_page if max_per_page is not None else settings.MAX_PER_PAGE
        self.max_offset = max_offset if max_offset is not None else settings.MAX_OFFSET
        self.filter_schema = normalize_filter_schema(filter_schema)

        if self.max_offset < 0:
            raise ConfigurationError("max_offset must be greater than or equal to 0.")
        if not 1 <= self.default_per_page <= self.max_per_page:
            raise ConfigurationError("default_per_page must be between 1 and max_per_page.")

    def parse(self, request: Any) -> ListQuery:
        """Parse a request or raw parameter map.

        Raises:
            ApiException: 400 ``validation_failed`` with ``fieldErrors``
        """
        params = request_params(request)

        allowed = set(self.allowed_filters) | set(RESERVED_PARAMS)
        unknown = [key for key in params if key not in allowed]
        if unknown:
            raise validation_error({key: ["unknown parameter"] for key in unknown})

        errors: FieldErrors = {}
        fields = self._parse_fields(params.get("fields"), errors)
        sort_field, sort_direction = self._parse_sort(params.get("sort"), errors)
        page = self._parse_positive_int(params.get("page", 1), "page", errors)
        per_page = self._parse_positive_int(params.get("per_page", self.default_per_page), "per_page", errors)

        if per_page is not None and per_page > self.max_per_page:
            errors["per_page"] = [f"max {self.max_per_page}"]
        elif page is not None and per_page is not None and (page - 1) * per_page > self.max_offset:
            errors["page"] = [f"offset exceeds max {self.max_offset}"]

        filters: Dict[str, Any] = {}
        for name in self.allowed_filters:
            if name not in params:
                continue
            try:
                filters[name] = self._parse_filter(name, params[name])
            except FilterError as exc:
                errors[name] = [str(exc)]

        if errors:
            raise validation_error(errors)

        return self.query_class(
            fields=fields,
            filters=filters,
            sort_field=sort_field,
            sort_direction=sort_direction,
            page=page,
            per_page=per_page,
        )

    def _parse_fields(self, raw: Any, errors: FieldErrors) -> List[str]:
        if raw is None or raw == "":
            return list(self.allowed_fields)
        if not isinstance(raw, str):
            errors["fields"] = ["must be a comma separated string"]
            return []

        fields: List[str] = []
        for field in (part.strip() for part in raw.split(",")):
            if field and field not in fields:
                fields.append(field)
        if not fields:
            return list(self.allowed_fields)

        for field in fields:
            if field not in self.allowed_fields:
                errors[field] = ["field not allowed"]
        return fields

    def _parse_sort(self, raw: Any, errors: FieldErrors) -> Tuple[Optional[str], str]:
        if raw is None or raw == "":
            return None, "ASC"
        if not isinstance(raw, str):
            errors["sort"] = ["must be string"]
            return None, "ASC"

        direction = "DESC" if raw.startswith("-") else "ASC"
        field = raw.lstrip("-")
        if field not in self.allowed_sort:
            errors["sort"] = ["unsupported sort field"]
            return None, "ASC"
        return field, direction

    @staticmethod
    def _parse_positive_int(value: Any, name: str, errors: FieldErrors) -> Optional[int]:
        if isinstance(value, int) and not isinstance(value, bool):
            number = value
        elif isinstance(value, str) and _DIGITS.match(value):
            number = int(value)
        else:
            errors[name] = ["must be a positive integer"]
            return None

        if number < 1:
            errors[name] = ["must be greater than 0"]
            return None
        return number

    def _parse_filter(self, name: str, value: Any) -> Any:
        rule = self.filter_schema.get(name)
        if rule is None:
            return value

        rule_type = rule["type"]
        if rule_type == "string":
            return self._as_string(value)
        if rule_type == "int":
            return self._as_int(value)
        if rule_type == "float":
            return self._as_float(value)
        if rule_type == "bool":
            return self._as_bool(value)
        if rule_type == "date":
            return self._as_date(value)

        candidate = self._as_string(value)
        if candidate not in rule["values"]:
            raise FilterError("unsupported value")
        return candidate

    @staticmethod
    def _as_string(value: Any) -> str:
        if isinstance(value, str):
            return value
        if isinstance(value, bool):
            return "1" if value else ""
        if isinstance(value, (int, float)):
            return str(value)
        raise FilterError("must be a string")

    @staticmethod
    def _as_int(value: Any) -> int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and _INTEGER.match(value):
            return int(value)
        raise FilterError("must be an integer")

    @staticmethod
    def _as_float(value: Any) -> float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str) and _NUMERIC.match(value):
            return float(value)
        raise FilterError("must be numeric")

    @staticmethod
    def _as_bool(value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return value == 1
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in ("1", "true", "yes"):
                return True
            if normalized in ("0", "false", "no"):
                return False
        raise FilterError("must be boolean")

    @staticmethod
    def _as_date(value: Any) -> str:
        if not isinstance(value, str) or value.strip() == "":
            raise FilterError("must be a valid date-time string")
        text = value.strip()
        # fromisoformat only accepts a "Z" designator from Python 3.11
        if text[-1:] in ("Z", "z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise FilterError("must be a valid date-time string") from exc

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.isoformat(timespec="seconds")


class CptListQueryParser(ListQueryParser):
    """List query parser for content-type sources."""

    query_class = CptListQuery


class TableListQueryParser(ListQueryParser):
    """List query parser for table sources."""

    query_class = TableListQuery
