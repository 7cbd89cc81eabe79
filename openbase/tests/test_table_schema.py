"""
表结构获取测试
"""
from contextlib import contextmanager
from types import SimpleNamespace

import pytest

from openbase.services.database_adapters import PostgreSQLAdapter
from openbase.services.errors import BadRequestError, NotFoundError
from openbase.services.table_schema import get_table_schema


def column_row(name, data_type, nullable="NO", length=None, precision=None, scale=None, udt=""):
    return SimpleNamespace(
        column_name=name,
        data_type=data_type,
        is_nullable=nullable,
        character_maximum_length=length,
        numeric_precision=precision,
        numeric_scale=scale,
        udt_name=udt,
    )


class FakeConnection:
    def __init__(self, rows):
        self.rows = rows
        self.executed = []

    def execute(self, statement, params):
        self.executed.append((str(statement), params))
        return iter(self.rows)


class FakeAdapter(PostgreSQLAdapter):
    def __init__(self, rows):
        self.conn = FakeConnection(rows)

    @contextmanager
    def connect(self, connection, write=False):
        yield self.conn


class TestGetTableSchema:
    """测试 information_schema 列读取"""

    def test_columns_in_order(self):
        adapter = FakeAdapter([
            column_row("week_start", "date", udt="date"),
            column_row("asin", "character varying", length=20, udt="varchar"),
            column_row("revenue", "numeric", "YES", precision=10, scale=2, udt="numeric"),
        ])
        schema = get_table_schema({"host": "h"}, "weekly_sales", adapter=adapter)

        assert [column.column_name for column in schema] == ["week_start", "asin", "revenue"]
        assert schema[1].max_length == 20
        assert schema[2].is_nullable is True
        assert schema[2].numeric_scale == 2

        sql, params = adapter.conn.executed[0]
        assert "ORDER BY ordinal_position" in sql
        assert params == {"schema": "public", "table": "weekly_sales"}

    def test_explicit_schema(self):
        adapter = FakeAdapter([column_row("id", "integer", udt="int4")])
        get_table_schema({}, "analytics.orders", adapter=adapter)
        assert adapter.conn.executed[0][1] == {"schema": "analytics", "table": "orders"}

    def test_no_columns_is_not_found(self):
        with pytest.raises(NotFoundError, match="表结构不存在"):
            get_table_schema({}, "missing", adapter=FakeAdapter([]))

    def test_invalid_table_name(self):
        adapter = FakeAdapter([])
        with pytest.raises(BadRequestError):
            get_table_schema({}, "orders; drop", adapter=adapter)
        assert adapter.conn.executed == []
