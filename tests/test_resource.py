"""Tests for declarative resources."""

import pytest

from routekit.exceptions import ConfigurationError
from routekit.models.request import HttpRequest
from routekit.repositories.content import InMemoryContentRepository
from routekit.repositories.table import SqlTableRepository
from routekit.resource import CapabilityChecker, Resource
from routekit.storage.sql_adapter import SqlAdapter
from routekit.storage.sqlite_client import SqliteClient

ITEM = "/articles/(?P<id>\\d+)"


@pytest.fixture
def repository():
    """Content repository with one published and one draft article."""
    return InMemoryContentRepository().seed(
        "article",
        [
            {"id": 1, "title": "Hello", "status": "publish", "author": "ada"},
            {"id": 2, "title": "Secret", "status": "draft", "author": "bob"},
            {"id": 3, "title": "World", "status": "publish", "author": "bob"},
        ],
    )


@pytest.fixture
def articles(repository, dispatcher):
    """Registered content resource allowing every action."""
    resource = (
        Resource.make("articles")
        .namespace("acme/v1")
        .source_content("article")
        .allow(["list", "get", "create", "update", "delete"])
        .fields(["id", "title", "author"])
        .filters(["author"])
        .sort(["id", "title"])
        .policy({"public": True})
        .using_content_repository(repository)
    )
    resource.register(dispatcher)
    return resource


def call(dispatcher, method, uri, **kwargs):
    registration = dispatcher.find(method, uri)
    request = HttpRequest(method=method, **kwargs)
    assert registration["permission_callback"](request) is True
    return registration["callback"](request)


def test_list_hides_drafts(articles, dispatcher):
    """Test only published items are listed."""
    result = call(dispatcher, "GET", "/articles")

    assert result["status"] == 200
    assert result["body"] == {
        "data": [
            {"id": 1, "title": "Hello", "author": "ada"},
            {"id": 3, "title": "World", "author": "bob"},
        ],
        "meta": {"page": 1, "perPage": 20, "total": 2},
    }


class StatusBlindRepository(InMemoryContentRepository):
    """Ignores the status filter it is given."""

    def list(self, source_type, query):
        filters = {name: value for name, value in query.filters.items() if name != "status"}
        return super().list(source_type, query.model_copy(update={"filters": filters}))


def test_list_drops_drafts_returned_by_repository(dispatcher):
    """Test items that are not visible are removed even when the repository returns them."""
    repository = StatusBlindRepository().seed(
        "article",
        [
            {"id": 1, "title": "Hello", "status": "publish"},
            {"id": 2, "title": "Secret", "status": "draft"},
        ],
    )
    (
        Resource.make("articles")
        .namespace("acme/v1")
        .source_content("article")
        .fields(["id", "title"])
        .policy({"public": True})
        .using_content_repository(repository)
        .register(dispatcher)
    )

    result = call(dispatcher, "GET", "/articles")

    assert result["status"] == 200
    assert result["body"]["data"] == [{"id": 1, "title": "Hello"}]


def test_list_filters_sorts_and_projects(articles, dispatcher):
    """Test filter, descending sort and field projection."""
    result = call(dispatcher, "GET", "/articles", query={"author": "bob", "fields": "title", "sort": "-id"})
    assert result["body"]["data"] == [{"title": "World"}]

    result = call(dispatcher, "GET", "/articles", query={"sort": "-title"})
    assert [item["id"] for item in result["body"]["data"]] == [3, 1]


def test_list_rejects_status_override(articles, dispatcher):
    """Test status is not an accepted filter unless declared."""
    result = call(dispatcher, "GET", "/articles", query={"status": "draft"})
    assert result["status"] == 400
    assert result["body"]["error"]["details"]["fieldErrors"] == {"status": ["unknown parameter"]}


def test_get_item_and_hidden_draft(articles, dispatcher):
    """Test drafts are reported as missing."""
    found = call(dispatcher, "GET", ITEM, path_params={"id": "1"})
    assert found["body"] == {"id": 1, "title": "Hello", "author": "ada"}

    draft = call(dispatcher, "GET", ITEM, path_params={"id": "2"})
    assert draft["status"] == 404
    assert draft["body"]["error"]["code"] == "not_found"

    invalid = call(dispatcher, "GET", ITEM, path_params={"id": "abc"})
    assert invalid["status"] == 404

    superscript = call(dispatcher, "GET", ITEM, path_params={"id": "²"})
    assert superscript["status"] == 404
    assert superscript["body"]["error"]["code"] == "not_found"


def test_create_update_delete(articles, dispatcher, repository):
    """Test the write actions round through the repository."""
    created = call(dispatcher, "POST", "/articles", json_body={"title": "New", "author": "cy"})
    assert created["status"] == 201
    assert created["body"] == {"id": 4, "title": "New", "author": "cy"}

    updated = call(dispatcher, "PATCH", ITEM, path_params={"id": "4"}, json_body={"title": "Renamed"})
    assert updated["body"]["title"] == "Renamed"

    replaced = call(dispatcher, "PUT", ITEM, path_params={"id": "4"}, form={"author": "dee"})
    assert replaced["body"]["author"] == "dee"

    deleted = call(dispatcher, "DELETE", ITEM, path_params={"id": "4"})
    assert deleted["body"] == {"data": {"id": 4, "deleted": True}}
    assert [item["id"] for item in repository.all("article")] == [1, 2, 3]

    missing = call(dispatcher, "DELETE", ITEM, path_params={"id": "4"})
    assert missing["status"] == 404


def test_payload_validation(articles, dispatcher):
    """Test empty payloads and unknown fields."""
    empty = call(dispatcher, "POST", "/articles")
    assert empty["status"] == 400
    assert empty["body"]["error"]["details"]["fieldErrors"] == {"payload": ["must not be empty"]}

    unknown = call(dispatcher, "POST", "/articles", json_body={"title": "x", "id": 9})
    assert unknown["body"]["error"]["details"]["fieldErrors"] == {"id": ["field not allowed"]}


def test_uniform_envelope(repository, dispatcher):
    """Test single items can be wrapped in a data envelope."""
    Resource.make("articles").namespace("acme/v1").source_content("article").fields(
        ["id", "title"]
    ).policy({"public": True}).uniform_envelope().using_content_repository(repository).register(dispatcher)

    result = call(dispatcher, "GET", ITEM, path_params={"id": "1"})
    assert result["body"] == {"data": {"id": 1, "title": "Hello"}}


def test_visibility_policy(repository, dispatcher):
    """Test a visibility callback narrows published items further."""
    Resource.make("articles").namespace("acme/v1").source_content("article").fields(
        ["id", "author"]
    ).visibility(["publish", "draft"], policy=lambda item, request: item["status"] == "draft").policy(
        {"public": True}
    ).using_content_repository(repository).register(dispatcher)

    result = call(dispatcher, "GET", "/articles")
    assert result["body"]["data"] == [{"id": 2, "author": "bob"}]


def test_routes_and_meta(articles):
    """Test generated routes, operation ids and schemas."""
    routes = {(route.method, route.uri): route for route in articles.routes()}
    assert set(routes) == {
        ("GET", "/articles"),
        ("GET", ITEM),
        ("POST", "/articles"),
        ("PUT", ITEM),
        ("PATCH", ITEM),
        ("DELETE", ITEM),
    }
    assert routes[("GET", "/articles")].meta["operationId"] == "articlesList"
    assert routes[("PATCH", ITEM)].meta["operationId"] == "articlesPatch"
    assert routes[("POST", "/articles")].meta["requestSchema"] == "#/components/schemas/ArticlesInput"
    assert routes[("GET", "/articles")].meta["responseSchema"] == "#/components/schemas/ArticlesList"

    components = articles.openapi_components()["schemas"]
    assert set(components) == {"Articles", "ArticlesList", "ArticlesInput"}
    assert "id" not in components["ArticlesInput"]["properties"]


def test_capability_policy(repository, dispatcher):
    """Test capability rules checked per action."""
    granted = {"read_articles"}
    Resource.make("articles").namespace("acme/v1").source_content("article").allow(
        ["list", "create"]
    ).fields(["id", "title"]).policy(
        {"capabilities": {"list": "read_articles", "create": ["edit_articles", "admin"]}}
    ).capability_checker(CapabilityChecker(lambda capability: capability in granted)).using_content_repository(
        repository
    ).register(dispatcher)

    request = HttpRequest()
    assert dispatcher.find("GET", "/articles")["permission_callback"](request) is True
    assert dispatcher.find("POST", "/articles")["permission_callback"](request) is False


def test_default_policy_allows_reads_only(repository, dispatcher):
    """Test resources without rules allow reads and deny writes."""
    Resource.make("articles").namespace("acme/v1").source_content("article").allow(
        ["list", "create"]
    ).fields(["id", "title"]).using_content_repository(repository).register(dispatcher)

    assert dispatcher.find("GET", "/articles")["permission_callback"](HttpRequest()) is True
    assert dispatcher.find("POST", "/articles")["permission_callback"](HttpRequest()) is False


def test_configuration_errors(repository):
    """Test invalid declarations fail when compiled."""
    with pytest.raises(ConfigurationError):
        Resource.make("articles").source_content("article").using_content_repository(repository).router()
    with pytest.raises(ConfigurationError):
        Resource.make("articles").namespace("acme").source_content("article").router()
    with pytest.raises(ConfigurationError):
        Resource.make("articles").namespace("acme/v1").router()
    with pytest.raises(ConfigurationError):
        Resource.make("articles").namespace("acme/v1").source_content("article").using_content_repository(
            repository
        ).allow(["list", "archive"]).router()
    with pytest.raises(ConfigurationError):
        Resource.make("rows").namespace("acme/v1").source_table("rows").router()
    with pytest.raises(ConfigurationError):
        Resource.make("rows").namespace("acme/v1").source_table("rows; drop").fields(["id"]).router()
    with pytest.raises(ConfigurationError):
        Resource.make("articles").namespace("acme/v1").source_content("article").policy(
            {"capabilities": {"list": "read"}}
        ).using_content_repository(repository).router()


def test_configuration_locked_after_register(articles):
    """Test a registered resource cannot be reconfigured."""
    with pytest.raises(ConfigurationError):
        articles.fields(["id"])


@pytest.fixture
def sqlite_client():
    """In-memory SQLite database with a products table."""
    client = SqliteClient.connect()
    client.connection.execute(
        "CREATE TABLE shop_products (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT, price REAL, active INTEGER)"
    )
    client.connection.executemany(
        "INSERT INTO shop_products (name, price, active) VALUES (?, ?, ?)",
        [("apple", 1.5, 1), ("pear", 2.0, 0), ("plum", 3.25, 1)],
    )
    client.connection.commit()
    return client


@pytest.fixture
def products(sqlite_client, dispatcher):
    """Registered table resource over SQLite."""
    resource = (
        Resource.make("products")
        .namespace("shop/v1")
        .source_table("products")
        .allow(["list", "get", "create", "update", "delete"])
        .fields(["id", "name", "price", "active"])
        .filters(["active"])
        .filter_schema({"active": "bool"})
        .sort(["price"])
        .default_per_page(2)
        .policy({"public": True})
        .using_table_repository(SqlTableRepository(SqlAdapter(sqlite_client, table_prefix="shop_")))
    )
    resource.register(dispatcher)
    return resource


def test_table_list_and_pagination(products, dispatcher):
    """Test table listing with typed filters, sort and paging."""
    first = call(dispatcher, "GET", "/products", query={"sort": "-price"})
    assert first["body"]["meta"] == {"page": 1, "perPage": 2, "total": 3}
    assert [row["name"] for row in first["body"]["data"]] == ["plum", "pear"]

    active = call(dispatcher, "GET", "/products", query={"active": "true", "page": "2", "per_page": "1"})
    assert active["body"]["data"] == [{"id": 3, "name": "plum", "price": 3.25, "active": 1}]
    assert active["body"]["meta"]["total"] == 2


def test_table_crud(products, dispatcher):
    """Test create, update and delete on a table resource."""
    created = call(dispatcher, "POST", "/products", json_body={"name": "fig", "price": 4.0, "active": True})
    assert created["status"] == 201
    assert created["body"] == {"id": 4, "name": "fig", "price": 4.0, "active": 1}

    updated = call(dispatcher, "PUT", "/products/(?P<id>\\d+)", path_params={"id": "4"}, json_body={"price": 5.5})
    assert updated["body"]["price"] == 5.5

    missing = call(dispatcher, "PUT", "/products/(?P<id>\\d+)", path_params={"id": "99"}, json_body={"price": 1})
    assert missing["status"] == 404

    deleted = call(dispatcher, "DELETE", "/products/(?P<id>\\d+)", path_params={"id": "4"})
    assert deleted["body"]["data"]["deleted"] is True
    assert call(dispatcher, "GET", "/products/(?P<id>\\d+)", path_params={"id": "4"})["status"] == 404


def test_descriptor(products):
    """Test the compiled configuration snapshot."""
    descriptor = products.descriptor()
    assert descriptor.source_type == "table"
    assert descriptor.source == "products"
    assert descriptor.primary_key == "id"
    assert descriptor.default_per_page == 2
    assert descriptor.filter_schema == {"active": {"type": "bool"}}
    assert descriptor.visible_statuses == []
    assert descriptor.policy["public"] is True
