"""Declarative CRUD resources over content-type or table sources."""

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from routekit.config import settings
from routekit.exceptions import ApiException, ConfigurationError
from routekit.models.context import RequestContext
from routekit.models.request import (
    request_body_params,
    request_json_params,
    request_param,
)
from routekit.models.response import ErrorCode, Response
from routekit.models.route import Contract, RouteDefinition
from routekit.repositories.content import ContentRepository, project
from routekit.repositories.table import TableRepository
from routekit.router import Router, validate_namespace
from routekit.services.pipeline import ComponentRegistry
from routekit.services.query_parser import (
    CptListQueryParser,
    ListQueryParser,
    TableListQueryParser,
    normalize_filter_schema,
    validation_error,
)
from routekit.storage.sql_adapter import quote_identifier

logger = logging.getLogger(__name__)

ACTIONS = ("list", "get", "create", "update", "delete")
READ_ACTIONS = ("list", "get")
SOURCE_CONTENT = "content"
SOURCE_TABLE = "table"

ID_PATTERN = r"(?P<id>\d+)"

_WORDS = re.compile(r"[^A-Za-z0-9]+")
_DIGITS = re.compile(r"^\d+$", re.ASCII)

_OPENAPI_TYPES = {
    "string": {"type": "string"},
    "int": {"type": "integer"},
    "float": {"type": "number"},
    "bool": {"type": "boolean"},
    "date": {"type": "string", "format": "date-time"},
}


def pascal_case(name: str) -> str:
    return "".join(word[:1].upper() + word[1:] for word in _WORDS.split(name) if word)


def camel_case(name: str) -> str:
    pascal = pascal_case(name)
    return pascal[:1].lower() + pascal[1:]


class CapabilityChecker:
    """Adapts a ``current_user_can(capability)`` callable."""

    def __init__(self, current_user_can: Callable[[str], bool]):
        self._current_user_can = current_user_can

    def current_user_can(self, capability: str) -> bool:
        return bool(self._current_user_can(capability))


class ResourcePolicy(BaseModel):
    """Access policy: public flag, custom permission, per-action rules and scopes."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    public: bool = False
    permission: Optional[Callable[[Any], bool]] = None
    capabilities: Dict[str, Any] = Field(default_factory=dict)
    scopes: List[str] = Field(default_factory=list)

    def uses_capabilities(self) -> bool:
        return any(
            isinstance(rule, (str, list, tuple)) for rule in self.capabilities.values()
        )

    def allows(self, action: str, request: Any, checker: Optional[CapabilityChecker]) -> bool:
        if self.public:
            return True
        if self.permission is not None:
            return bool(self.permission(request))

        rule = self.capabilities.get(action, self.capabilities.get("*"))
        if rule is None:
            return action in READ_ACTIONS
        if callable(rule):
            return bool(rule(request))
        if isinstance(rule, bool):
            return rule
        if checker is None:
            return False
        if isinstance(rule, str):
            return checker.current_user_can(rule)
        return any(checker.current_user_can(capability) for capability in rule)


class ResourceDescriptor(BaseModel):
    """Compiled resource configuration."""

    model_config = ConfigDict(frozen=True)

    name: str
    namespace: Optional[str]
    source_type: Optional[str]
    source: Optional[str]
    primary_key: str
    allow: List[str]
    fields: List[str]
    filters: List[str]
    filter_schema: Dict[str, Dict[str, Any]]
    sort: List[str]
    default_per_page: int
    max_per_page: int
    max_offset: int
    visible_statuses: List[str]
    uniform_envelope: bool
    policy: Dict[str, Any]


class Resource:
    """Builds list/get/create/update/delete routes for one resource."""

    def __init__(self, name: str, registry: Optional[ComponentRegistry] = None):
        if not name.strip("/"):
            raise ConfigurationError("Resource name must not be empty.")
        self.name = name.strip("/")
        self.registry = registry

        self._namespace: Optional[str] = None
        self._source_type: Optional[str] = None
        self._source: Optional[str] = None
        self._primary_key = "id"
        self._allow: List[str] = list(READ_ACTIONS)
        self._fields: List[str] = []
        self._filters: List[str] = []
        self._filter_schema: Dict[str, Any] = {}
        self._sort: List[str] = []
        self._policy = ResourcePolicy()
        self._visible_statuses: List[str] = ["publish"]
        self._visibility_policy: Optional[Callable[[Dict[str, Any], Any], bool]] = None
        self._default_per_page = settings.DEFAULT_PER_PAGE
        self._max_per_page = settings.MAX_PER_PAGE
        self._max_offset = settings.MAX_OFFSET
        self._uniform_envelope = False
        self._content_repository: Optional[ContentRepository] = None
        self._table_repository: Optional[TableRepository] = None
        self._checker: Optional[CapabilityChecker] = None
        self._middlewares: List[Any] = []

        self._router: Optional[Router] = None
        self._registered = False

    @classmethod
    def make(cls, name: str, registry: Optional[ComponentRegistry] = None) -> "Resource":
        return cls(name, registry)

    def _configure(self, **values: Any) -> "Resource":
        if self._registered:
            raise ConfigurationError(f"Resource {self.name} is already registered.")
        for key, value in values.items():
            setattr(self, "_" + key, value)
        self._router = None
        return self

    # Configuration

    def namespace(self, namespace: str) -> "Resource":
        return self._configure(namespace=namespace.strip("/"))

    def source_content(self, content_type: str) -> "Resource":
        return self._configure(source_type=SOURCE_CONTENT, source=content_type, primary_key="id")

    def source_table(self, table: str, primary_key: str = "id") -> "Resource":
        return self._configure(source_type=SOURCE_TABLE, source=table, primary_key=primary_key)

    def allow(self, actions: Sequence[str]) -> "Resource":
        return self._configure(allow=list(actions))

    def fields(self, fields: Sequence[str]) -> "Resource":
        return self._configure(fields=list(fields))

    def filters(self, filters: Sequence[str]) -> "Resource":
        return self._configure(filters=list(filters))

    def filter_schema(self, schema: Dict[str, Any]) -> "Resource":
        return self._configure(filter_schema=dict(schema))

    def sort(self, fields: Sequence[str]) -> "Resource":
        return self._configure(sort=list(fields))

    def policy(self, policy: Dict[str, Any]) -> "Resource":
        return self._configure(policy=ResourcePolicy(**policy))

    def visibility(
        self,
        statuses: Sequence[str] = ("publish",),
        policy: Optional[Callable[[Dict[str, Any], Any], bool]] = None,
    ) -> "Resource":
        return self._configure(visible_statuses=list(statuses), visibility_policy=policy)

    def default_per_page(self, value: int) -> "Resource":
        return self._configure(default_per_page=value)

    def max_per_page(self, value: int) -> "Resource":
        return self._configure(max_per_page=value)

    def max_offset(self, value: int) -> "Resource":
        return self._configure(max_offset=value)

    def uniform_envelope(self, enabled: bool = True) -> "Resource":
        return self._configure(uniform_envelope=enabled)

    def using_content_repository(self, repository: ContentRepository) -> "Resource":
        return self._configure(content_repository=repository)

    def using_table_repository(self, repository: TableRepository) -> "Resource":
        return self._configure(table_repository=repository)

    def capability_checker(self, checker: CapabilityChecker) -> "Resource":
        return self._configure(checker=checker)

    def middleware(self, middlewares: Sequence[Any]) -> "Resource":
        return self._configure(middlewares=list(middlewares))

    # Compilation

    @property
    def is_content(self) -> bool:
        return self._source_type == SOURCE_CONTENT

    @property
    def schema_base(self) -> str:
        return pascal_case(self.name)

    def descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            name=self.name,
            namespace=self._namespace,
            source_type=self._source_type,
            source=self._source,
            primary_key=self._primary_key,
            allow=list(self._allow),
            fields=self._all_fields(),
            filters=list(self._filters),
            filter_schema=normalize_filter_schema(self._filter_schema),
            sort=list(self._sort),
            default_per_page=self._default_per_page,
            max_per_page=self._max_per_page,
            max_offset=self._max_offset,
            visible_statuses=list(self._visible_statuses) if self.is_content else [],
            uniform_envelope=self._uniform_envelope,
            policy={
                "public": self._policy.public,
                "permission": self._policy.permission is not None,
                "capabilities": sorted(self._policy.capabilities),
                "scopes": list(self._policy.scopes),
            },
        )

    def _all_fields(self) -> List[str]:
        if self._fields:
            return list(self._fields)
        return [self._primary_key] if self.is_content else []

    def _validate(self) -> None:
        if self._namespace is None:
            raise ConfigurationError(f"Resource {self.name} needs a namespace.")
        validate_namespace(self._namespace)

        if self._source_type is None or not self._source:
            raise ConfigurationError(f"Resource {self.name} needs a content type or table source.")

        unknown = [action for action in self._allow if action not in ACTIONS]
        if unknown or not self._allow:
            raise ConfigurationError(f"Resource {self.name} allows unsupported actions {unknown}.")

        if self._max_offset < 0:
            raise ConfigurationError("max_offset must be greater than or equal to 0.")
        if not 1 <= self._default_per_page <= self._max_per_page:
            raise ConfigurationError("Pagination bounds require 1 <= default_per_page <= max_per_page.")

        if self._source_type == SOURCE_TABLE:
            if not self._primary_key:
                raise ConfigurationError(f"Table resource {self.name} needs a primary key.")
            if not self._fields:
                raise ConfigurationError(f"Table resource {self.name} needs an explicit field list.")
            try:
                for identifier in [self._source, self._primary_key, *self._fields, *self._filters, *self._sort]:
                    quote_identifier(identifier)
            except ValueError as exc:
                raise ConfigurationError(str(exc)) from exc
            if self._table_repository is None:
                raise ConfigurationError(f"Table resource {self.name} needs a table repository.")
        elif self._content_repository is None:
            raise ConfigurationError(f"Content resource {self.name} needs a content repository.")

        if self._policy.uses_capabilities() and self._checker is None:
            raise ConfigurationError(f"Resource {self.name} uses capability rules but has no capability checker.")

    def _parser(self) -> ListQueryParser:
        parser_class = CptListQueryParser if self.is_content else TableListQueryParser
        return parser_class(
            allowed_fields=self._all_fields(),
            allowed_filters=self._filters,
            allowed_sort=self._sort,
            default_per_page=self._default_per_page,
            max_per_page=self._max_per_page,
            filter_schema=self._filter_schema,
            max_offset=self._max_offset,
        )

    def router(self) -> Router:
        """Compile the resource into a Router carrying its routes."""
        if self._router is not None:
            return self._router

        self._validate()
        parts = self._namespace.split("/")
        router = Router.make("/".join(parts[:-1]), parts[-1], self.registry)
        if self._middlewares:
            router.middleware(self._middlewares)

        handlers = _ResourceHandlers(self, self._parser())
        collection = "/" + self.name
        item = f"{collection}/{ID_PATTERN}"

        if "list" in self._allow:
            self._declare(router.get(collection, handlers.list), "list")
        if "get" in self._allow:
            self._declare(router.get(item, handlers.get), "get")
        if "create" in self._allow:
            self._declare(router.post(collection, handlers.create), "create")
        if "update" in self._allow:
            self._declare(router.put(item, handlers.update), "update")
            self._declare(router.patch(item, handlers.update), "update", operation="patch")
        if "delete" in self._allow:
            self._declare(router.delete(item, handlers.delete), "delete")

        self._router = router
        return router

    def _declare(self, builder: Any, action: str, operation: Optional[str] = None) -> None:
        base = self.schema_base
        meta: Dict[str, Any] = {
            "operationId": camel_case(self.name) + pascal_case(operation or action),
            "tags": [base],
            "scopes": list(self._policy.scopes),
            "resource": {"name": self.name, "action": action, "source": self._source_type},
        }
        if action == "list":
            meta["responseSchema"] = f"#/components/schemas/{base}List"
            meta["parameters"] = self._list_parameters()
        elif action in ("get", "create", "update"):
            meta["responseSchema"] = f"#/components/schemas/{base}"
        if action in ("create", "update"):
            meta["requestSchema"] = f"#/components/schemas/{base}Input"

        builder.meta(meta).permission(lambda request: self._policy.allows(action, request, self._checker))
        if action == "list":
            builder.args({name: {"required": False} for name in ("fields", "sort", "page", "per_page", *self._filters)})

    def _list_parameters(self) -> List[Dict[str, Any]]:
        schema = normalize_filter_schema(self._filter_schema)
        parameters = [
            {"name": "fields", "in": "query", "schema": {"type": "string"}},
            {"name": "sort", "in": "query", "schema": {"type": "string"}},
            {"name": "page", "in": "query", "schema": {"type": "integer", "minimum": 1}},
            {
                "name": "per_page",
                "in": "query",
                "schema": {"type": "integer", "minimum": 1, "maximum": self._max_per_page},
            },
        ]
        for name in self._filters:
            parameters.append({"name": name, "in": "query", "schema": self._property_schema(name, schema)})
        return parameters

    def _property_schema(self, name: str, schema: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        if name == self._primary_key:
            return {"type": "integer"}
        rule = schema.get(name)
        if rule is None:
            return {"type": "string"}
        if rule["type"] == "enum":
            return {"type": "string", "enum": list(rule["values"])}
        return dict(_OPENAPI_TYPES[rule["type"]])

    def writable_fields(self) -> List[str]:
        return [field for field in self._all_fields() if field != self._primary_key]

    def openapi_components(self) -> Dict[str, Any]:
        """Schemas referenced by this resource's route meta."""
        base = self.schema_base
        schema = normalize_filter_schema(self._filter_schema)
        properties = {field: self._property_schema(field, schema) for field in self._all_fields()}
        return {
            "schemas": {
                base: {"type": "object", "properties": properties},
                f"{base}List": {
                    "type": "object",
                    "properties": {
                        "data": {"type": "array", "items": {"$ref": f"#/components/schemas/{base}"}},
                        "meta": {
                            "type": "object",
                            "properties": {
                                "page": {"type": "integer"},
                                "perPage": {"type": "integer"},
                                "total": {"type": "integer"},
                            },
                        },
                    },
                },
                f"{base}Input": {
                    "type": "object",
                    "properties": {field: properties[field] for field in self.writable_fields()},
                    "additionalProperties": False,
                },
            }
        }

    def routes(self) -> List[RouteDefinition]:
        return self.router().routes()

    def contracts(self, openapi_only: bool = False) -> List[Contract]:
        return self.router().contracts(openapi_only)

    def register(self, dispatcher: Any = None) -> None:
        router = self.router()
        self._registered = True
        router.register(dispatcher)
        logger.info(f"Registered resource {self.name} under {router.base_namespace()}")

    # Visibility

    def is_visible(self, item: Dict[str, Any], request: Any) -> bool:
        if not self.is_content:
            return True
        if item.get("status") not in self._visible_statuses:
            return False
        return self._visibility_policy is None or bool(self._visibility_policy(item, request))


class _ResourceHandlers:
    """Request handlers for a compiled Resource."""

    def __init__(self, resource: Resource, parser: ListQueryParser):
        self.resource = resource
        self.parser = parser

    @property
    def _fetch_fields(self) -> List[str]:
        fields = self.resource._all_fields()
        if self.resource.is_content and "status" not in fields:
            fields.append("status")
        return fields

    def _envelope(self, item: Dict[str, Any]) -> Any:
        return {"data": item} if self.resource._uniform_envelope else item

    @staticmethod
    def _not_found() -> ApiException:
        return ApiException("Resource not found.", 404, ErrorCode.NOT_FOUND.value)

    def _id(self, request: Any) -> int:
        raw = request_param(request, "id")
        if isinstance(raw, int) and not isinstance(raw, bool) and raw > 0:
            return raw
        if isinstance(raw, str) and _DIGITS.match(raw) and int(raw) > 0:
            return int(raw)
        raise self._not_found()

    def _payload(self, request: Any) -> Dict[str, Any]:
        payload = request_json_params(request)
        if not payload:
            payload = request_body_params(request)
        if not payload and isinstance(request, dict):
            payload = {key: value for key, value in request.items() if key != "id"}
        payload = dict(payload or {})

        if not payload:
            raise validation_error({"payload": ["must not be empty"]})

        writable = self.resource.writable_fields()
        disallowed = {key: ["field not allowed"] for key in payload if key not in writable}
        if disallowed:
            raise validation_error(disallowed)
        return payload

    def list(self, context: RequestContext, request: Any) -> Dict[str, Any]:
        resource = self.resource
        query = self.parser.parse(request)
        requested = list(query.fields)

        if resource.is_content:
            filters = dict(query.filters)
            filters.setdefault("status", list(resource._visible_statuses))
            fields = requested + (["status"] if "status" not in requested else [])
            query = query.model_copy(update={"filters": filters, "fields": fields})
            result = resource._content_repository.list(resource._source, query)
            items = [
                project(item, requested)
                for item in result.get("items", [])
                if resource.is_visible(item, request)
            ]
        else:
            result = resource._table_repository.list(resource._source, resource._primary_key, query)
            items = list(result.get("items", []))

        return {
            "data": items,
            "meta": {
                "page": result.get("page", query.page),
                "perPage": result.get("perPage", query.per_page),
                "total": int(result.get("total", len(items))),
            },
        }

    def get(self, context: RequestContext, request: Any) -> Any:
        resource = self.resource
        item_id = self._id(request)

        if resource.is_content:
            item = resource._content_repository.get(resource._source, item_id, self._fetch_fields)
            if item is None or not resource.is_visible(item, request):
                raise self._not_found()
            item = project(item, resource._all_fields())
        else:
            item = resource._table_repository.get(
                resource._source, resource._primary_key, item_id, resource._all_fields()
            )
            if item is None:
                raise self._not_found()

        return self._envelope(item)

    def create(self, context: RequestContext, request: Any) -> Response:
        resource = self.resource
        payload = self._payload(request)

        if resource.is_content:
            item = resource._content_repository.create(resource._source, payload, resource._all_fields())
        else:
            item = resource._table_repository.create(
                resource._source, resource._primary_key, payload, resource._all_fields()
            )
        return Response(body=self._envelope(item), status=201)

    def update(self, context: RequestContext, request: Any) -> Any:
        resource = self.resource
        item_id = self._id(request)
        payload = self._payload(request)

        if resource.is_content:
            item = resource._content_repository.update(
                resource._source, item_id, payload, resource._all_fields()
            )
        else:
            item = resource._table_repository.update(
                resource._source, resource._primary_key, item_id, payload, resource._all_fields()
            )
        if item is None:
            raise self._not_found()
        return self._envelope(item)

    def delete(self, context: RequestContext, request: Any) -> Dict[str, Any]:
        resource = self.resource
        item_id = self._id(request)

        if resource.is_content:
            deleted = resource._content_repository.delete(resource._source, item_id)
        else:
            deleted = resource._table_repository.delete(resource._source, resource._primary_key, item_id)
        if not deleted:
            raise self._not_found()
        return {"data": {"id": item_id, "deleted": True}}
