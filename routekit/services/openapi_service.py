"""OpenAPI 3.1 document export from route contracts."""

import copy
import re
from typing import Any, Dict, Iterable, List, Optional, Union

from routekit.config import settings
from routekit.models.route import KNOWN_META_KEYS, Contract

ALLOWED_METHODS = ("get", "post", "put", "patch", "delete", "options", "head")
PARAMETER_LOCATIONS = ("query", "path", "header", "cookie")
EXTENSION_KEY = "x-routekit"

_REGEX_GROUP = re.compile(r"\(\?P<([a-zA-Z0-9_]+)>[^)]+\)")
_PATH_PARAM = re.compile(r"\{([a-zA-Z0-9_]+)\}")
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]+")

ERROR_COMPONENTS: Dict[str, Any] = {
    "schemas": {
        "Error": {
            "type": "object",
            "required": ["error"],
            "properties": {
                "error": {
                    "type": "object",
                    "required": ["code", "message", "requestId"],
                    "properties": {
                        "code": {"type": "string"},
                        "message": {"type": "string"},
                        "requestId": {"type": "string"},
                        "details": {"type": "object", "additionalProperties": True},
                    },
                }
            },
        }
    },
    "responses": {
        "ErrorResponse": {
            "description": "Error response",
            "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Error"}}},
        }
    },
}


def merge_recursive(base: Dict[str, Any], custom: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in custom.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_recursive(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def to_openapi_path(namespace: str, path: str) -> str:
    converted = _REGEX_GROUP.sub(r"{\1}", path.strip("/"))
    return "/" + (namespace.strip("/") + "/" + converted).strip("/")


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str) and item != ""]


class OpenApiExporter:
    """Projects contract records into an OpenAPI document. Pure, no I/O."""

    def __init__(
        self,
        title: Optional[str] = None,
        version: Optional[str] = None,
        server_url: Optional[str] = None,
        description: Optional[str] = None,
        openapi_version: str = "3.1.0",
        include_excluded: bool = False,
        components: Optional[Dict[str, Any]] = None,
    ):
        self.title = title or settings.OPENAPI_TITLE
        self.version = version or settings.OPENAPI_VERSION
        self.server_url = server_url or settings.OPENAPI_SERVER_URL
        self.description = description
        self.openapi_version = openapi_version
        self.include_excluded = include_excluded
        self.components = components or {}

    def export(self, contracts: Iterable[Union[Contract, Dict[str, Any]]]) -> Dict[str, Any]:
        """Build the document.

        Args:
            contracts: Contract records, as models or plain mappings

        Returns:
            JSON-serializable OpenAPI document with sorted paths and methods
        """
        paths: Dict[str, Dict[str, Any]] = {}

        for item in contracts:
            contract = item if isinstance(item, Contract) else Contract.model_validate(item)
            meta = contract.meta
            openapi = meta.get("openapi")
            include = openapi.get("include", True) if isinstance(openapi, dict) else True
            if not self.include_excluded and not include:
                continue

            method = contract.method.lower()
            if method not in ALLOWED_METHODS:
                continue

            path = to_openapi_path(contract.namespace, contract.path)
            paths.setdefault(path, {})[method] = self._operation(meta, method, path)

        info: Dict[str, Any] = {"title": self.title, "version": self.version}
        if self.description:
            info["description"] = self.description

        return {
            "openapi": self.openapi_version,
            "info": info,
            "servers": [{"url": self.server_url}],
            "paths": {path: dict(sorted(paths[path].items())) for path in sorted(paths)},
            "components": merge_recursive(ERROR_COMPONENTS, self.components),
        }

    def _operation(self, meta: Dict[str, Any], method: str, path: str) -> Dict[str, Any]:
        operation_id = meta.get("operationId")
        if not isinstance(operation_id, str) or operation_id == "":
            suffix = "".join(word.capitalize() for word in _NON_ALNUM.split(path) if word)
            operation_id = method + (suffix or "Operation")

        operation: Dict[str, Any] = {
            "operationId": operation_id,
            "responses": self._responses(method, meta),
        }

        tags = _string_list(meta.get("tags"))
        if tags:
            operation["tags"] = tags

        scopes = _string_list(meta.get("scopes"))
        if scopes:
            operation["x-scopes"] = scopes

        parameters = self._path_parameters(self._parameters(meta.get("parameters")), path)
        if parameters:
            operation["parameters"] = parameters

        request_schema = meta.get("requestSchema")
        if isinstance(request_schema, str) and request_schema:
            operation["requestBody"] = {
                "required": method in ("post", "put", "patch"),
                "content": {"application/json": {"schema": {"$ref": request_schema}}},
            }

        extensions = {key: value for key, value in meta.items() if key not in KNOWN_META_KEYS}
        if extensions:
            operation[EXTENSION_KEY] = extensions

        return operation

    @staticmethod
    def _responses(method: str, meta: Dict[str, Any]) -> Dict[str, Any]:
        response: Dict[str, Any] = {"description": "Successful response"}
        response_schema = meta.get("responseSchema")
        if isinstance(response_schema, str) and response_schema:
            response["content"] = {"application/json": {"schema": {"$ref": response_schema}}}

        return {
            "201" if method == "post" else "200": response,
            "default": {"$ref": "#/components/responses/ErrorResponse"},
        }

    @staticmethod
    def _parameters(parameters: Any) -> List[Dict[str, Any]]:
        if not isinstance(parameters, list):
            return []

        normalized = []
        for parameter in parameters:
            if not isinstance(parameter, dict):
                continue
            name = parameter.get("name")
            if not isinstance(name, str) or name == "":
                continue

            location = parameter.get("in")
            if location not in PARAMETER_LOCATIONS:
                location = "query"
            schema = parameter.get("schema")

            result = {
                "in": location,
                "name": name,
                "required": True if location == "path" else parameter.get("required") is True,
                "schema": schema if isinstance(schema, dict) else {"type": "string"},
            }
            description = parameter.get("description")
            if isinstance(description, str) and description:
                result["description"] = description
            normalized.append(result)
        return normalized

    @staticmethod
    def _path_parameters(parameters: List[Dict[str, Any]], path: str) -> List[Dict[str, Any]]:
        defined = {parameter["name"] for parameter in parameters if parameter["in"] == "path"}
        for name in dict.fromkeys(_PATH_PARAM.findall(path)):
            if name not in defined:
                parameters.append({"in": "path", "name": name, "required": True, "schema": {"type": "string"}})
        return parameters
