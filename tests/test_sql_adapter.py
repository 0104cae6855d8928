"""Tests for SQL generation."""

import pytest

from routekit.storage.sql_adapter import SqlAdapter, quote_identifier
from routekit.storage.sqlite_client import SqliteClient


class FakeClient:
    """Records prepared statements and returns canned results."""

    def __init__(self, rows=None, total=0, row=None, affected=1, insert_id=0):
        self.prepared = []
        self.rows = rows or []
        self.total = total
        self.row = row
        self.affected = affected
        self.insert_id = insert_id

    def prepare(self, query, args):
        self.prepared.append((query, list(args)))
        return len(self.prepared) - 1

    def get_results(self, prepared):
        return self.rows

    def get_row(self, prepared):
        return self.row

    def get_var(self, prepared):
        return self.total

    def query(self, prepared):
        return self.affected


def test_list_builds_parameterized_queries():
    """Test WHERE, ORDER BY and LIMIT/OFFSET arguments."""
    client = FakeClient(rows=[{"id": 1}], total="7")
    adapter = SqlAdapter(client, table_prefix="wp_")

    result = adapter.list("orders", "id", ["id", "total"], {"state": "open", "paid": True, "note": None}, "total", "desc", 3, 10)

    select_sql, select_args = client.prepared[0]
    assert select_sql == (
        "SELECT `id`, `total` FROM `wp_orders` WHERE `state` = %s AND `paid` = %d AND `note` IS NULL "
        "ORDER BY `total` DESC LIMIT %d OFFSET %d"
    )
    assert select_args == ["open", 1, 10, 20]

    count_sql, count_args = client.prepared[1]
    assert count_sql == "SELECT COUNT(*) FROM `wp_orders` WHERE `state` = %s AND `paid` = %d AND `note` IS NULL"
    assert count_args == ["open", 1]

    assert result == {"items": [{"id": 1}], "total": 7, "page": 3, "perPage": 10}


def test_list_defaults_to_primary_key_order():
    """Test ascending primary key order without a sort field."""
    client = FakeClient()
    SqlAdapter(client).list("orders", "id", [], {}, None, "ASC", 1, 5)
    assert client.prepared[0] == ("SELECT * FROM `orders` ORDER BY `id` ASC LIMIT %d OFFSET %d", [5, 0])


def test_invalid_identifiers_rejected():
    """Test identifiers outside [A-Za-z_][A-Za-z0-9_]* raise."""
    adapter = SqlAdapter(FakeClient())
    with pytest.raises(ValueError, match="Invalid field"):
        adapter.list("orders", "id", ["id; DROP TABLE x"], {}, None, "ASC", 1, 5)
    with pytest.raises(ValueError, match="Invalid table"):
        adapter.get("orders`", "id", 1, ["id"])
    assert quote_identifier("created_at") == "`created_at`"


def test_create_reads_back_row():
    """Test insert arguments and the re-read of the new row."""
    client = FakeClient(row={"id": 5, "name": "fig"}, insert_id=5)
    row = SqlAdapter(client).create("fruit", "id", {"name": "fig", "price": 1.5, "note": None}, ["id", "name"])

    assert client.prepared[0] == ("INSERT INTO `fruit` (`name`, `price`, `note`) VALUES (%s, %f, NULL)", ["fig", 1.5])
    assert client.prepared[1] == ("SELECT `id`, `name` FROM `fruit` WHERE `id` = %d LIMIT 1", [5])
    assert row == {"id": 5, "name": "fig"}


def test_update_missing_row_returns_none():
    """Test updates check existence first."""
    client = FakeClient(row=None)
    assert SqlAdapter(client).update("fruit", "id", 9, {"name": "x"}, ["id"]) is None
    assert len(client.prepared) == 1


def test_delete_reports_affected_rows():
    """Test delete returns whether a row was removed."""
    assert SqlAdapter(FakeClient(affected=1)).delete("fruit", "id", 1) is True
    assert SqlAdapter(FakeClient(affected=0)).delete("fruit", "id", 1) is False


def test_sqlite_prepare_binds_placeholders():
    """Test printf placeholders become bound parameters."""
    client = SqliteClient.connect()
    prepared = client.prepare("SELECT * FROM t WHERE a = %s AND b = %d AND c = %f", ["x", "3", 2])
    assert prepared.sql == "SELECT * FROM t WHERE a = ? AND b = ? AND c = ?"
    assert prepared.params == ("x", 3, 2.0)

    with pytest.raises(ValueError):
        client.prepare("SELECT %d", [])
