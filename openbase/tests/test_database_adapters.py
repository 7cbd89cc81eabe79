"""
数据库适配器测试
"""
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

import duckdb
import pytest
from bson import ObjectId

from openbase.services.database_adapters import (
    DatabaseAdapterFactory,
    DuckDBAdapter,
    MongoDBAdapter,
    MySQLAdapter,
    PostgreSQLAdapter,
    SQLiteAdapter,
    parse_table_reference,
    quote_identifier,
)
from openbase.services.database_adapters.base import (
    build_engine_url,
    clamp_preview_limit,
    normalize_value,
)
from openbase.services.database_adapters.mongodb import documents_to_rows
from openbase.services.errors import BadRequestError, NotFoundError


class TestDatabaseAdapterFactory:
    """测试数据库适配器工厂"""

    @pytest.mark.parametrize("db_type, adapter_class", [
        ("postgresql", PostgreSQLAdapter),
        ("postgres", PostgreSQLAdapter),
        ("MySQL", MySQLAdapter),
        ("sqlite", SQLiteAdapter),
        ("duckdb", DuckDBAdapter),
        ("mongodb", MongoDBAdapter),
    ])
    def test_get_adapter(self, db_type, adapter_class):
        assert isinstance(DatabaseAdapterFactory.get_adapter(db_type), adapter_class)

    def test_unsupported_type(self):
        with pytest.raises(BadRequestError, match="不支持的数据源类型"):
            DatabaseAdapterFactory.get_adapter("oracle")

    def test_supported_types(self):
        assert set(DatabaseAdapterFactory.get_supported_types()) == {
            "postgresql", "mysql", "sqlite", "duckdb", "mongodb"
        }
        assert DatabaseAdapterFactory.is_supported("Postgres")
        assert not DatabaseAdapterFactory.is_supported("mssql")

    def test_db_type_names(self):
        assert PostgreSQLAdapter().get_db_type() == "postgresql"
        assert DuckDBAdapter().get_db_type() == "duckdb"


class TestTableReference:
    """测试表引用解析与标识符引用"""

    def test_bare_table_uses_default_schema(self):
        assert parse_table_reference("orders", "public") == ("public", "orders")
        assert parse_table_reference(" orders ", None) == (None, "orders")

    def test_schema_qualified(self):
        assert parse_table_reference("sales.weekly_sales", "public") == ("sales", "weekly_sales")

    @pytest.mark.parametrize("value", ["orders; drop table x", "a.b.c", "1table", 'or"ders', "sales.", ".orders"])
    def test_rejects_invalid_identifiers(self, value):
        with pytest.raises(BadRequestError):
            parse_table_reference(value, "public")

    def test_rejects_empty(self):
        with pytest.raises(BadRequestError, match="表名不能为空"):
            parse_table_reference("  ", "public")

    def test_quote_identifier(self):
        assert quote_identifier("orders") == '"orders"'
        assert quote_identifier('a"b') == '"a""b"'
        assert quote_identifier("orders", "`") == "`orders`"

    def test_format_table_per_backend(self):
        assert PostgreSQLAdapter().format_table("public", "orders") == '"public"."orders"'
        assert MySQLAdapter().format_table("shop", "orders") == "`shop`.`orders`"


class TestValueHelpers:
    """测试取值规范化等公共函数"""

    def test_clamp_preview_limit(self):
        assert clamp_preview_limit(None) == 50
        assert clamp_preview_limit("10") == 50
        assert clamp_preview_limit(0) == 1
        assert clamp_preview_limit(5000) == 1000
        assert clamp_preview_limit(20) == 20

    def test_normalize_value(self):
        assert normalize_value(Decimal("120.50")) == "120.50"
        assert normalize_value(b"abc") == "abc"
        assert normalize_value(b"\xff\x00") == "ff00"
        assert normalize_value(date(2026, 1, 5)) == "2026-01-05"
        assert normalize_value(datetime(2026, 1, 5, 8, 30)) == "2026-01-05T08:30:00"
        uuid_text = "7f1b6f5e-3c1a-4b7e-9d2a-2b8f6c0e1a11"
        assert normalize_value(UUID(uuid_text)) == uuid_text
        assert normalize_value(15) == 15


class TestEngineUrl:
    """测试 PostgreSQL/MySQL 连接URL构建"""

    def test_from_connection_string(self):
        url = build_engine_url(
            {"connectionString": "postgresql://u:p@db:5432/shop"}, "postgresql+psycopg", "PostgreSQL"
        )
        assert url.drivername == "postgresql+psycopg"
        assert url.host == "db"
        assert url.database == "shop"
        assert url.password == "p"

    def test_uri_alias(self):
        url = build_engine_url({"uri": "mysql://root@localhost/shop"}, "mysql+mysqlconnector", "MySQL")
        assert url.drivername == "mysql+mysqlconnector"
        assert url.username == "root"

    def test_from_fields(self):
        url = build_engine_url(
            {"host": "db", "port": "5433", "user": "u", "password": "p@ss", "database": "shop"},
            "postgresql+psycopg",
            "PostgreSQL",
        )
        assert url.port == 5433
        assert url.password == "p@ss"
        assert url.username == "u"

    def test_missing_fields(self):
        with pytest.raises(BadRequestError, match="host/user/database"):
            build_engine_url({"host": "db"}, "postgresql+psycopg", "PostgreSQL")

    def test_invalid_connection_string(self):
        with pytest.raises(BadRequestError, match="连接字符串无效"):
            build_engine_url({"url": "not a url"}, "postgresql+psycopg", "PostgreSQL")


class TestCompileQueryPerBackend:
    """测试各适配器编译出的原生占位符"""

    def test_postgresql(self):
        compiled = PostgreSQLAdapter().compile_query("select :a::int, :a", {"a": 1}, 10)
        assert compiled.sql == "SELECT * FROM (select $1::int, $1) AS _subquery LIMIT $2"
        assert compiled.parameters == [1, 10]

    def test_mysql(self):
        compiled = MySQLAdapter().compile_query("select :a, :a", {"a": 1}, 10)
        assert compiled.sql == "SELECT * FROM (select ?, ?) AS _subquery LIMIT ?"
        assert compiled.parameters == [1, 1, 10]

    def test_duckdb_strips_casts(self):
        compiled = DuckDBAdapter().compile_query("select :a::int", {"a": 1}, 10)
        assert compiled.sql == "SELECT * FROM (select $1) AS _subquery LIMIT $2"


class TestSQLiteAdapter:
    """测试SQLite适配器（真实文件）"""

    def test_list_tables(self, sales_sqlite):
        assert SQLiteAdapter().list_tables({"filepath": sales_sqlite}) == ["weekly_sales"]

    def test_test_connection(self, sales_sqlite):
        result = SQLiteAdapter().test_connection({"filepath": sales_sqlite})
        assert result.ok is True
        assert result.tables == ["weekly_sales"]

    def test_get_rows(self, sales_sqlite):
        rows = SQLiteAdapter().get_rows({"filepath": sales_sqlite}, "weekly_sales", limit=2)
        assert rows.columns == ["week_start", "asin", "units_sold", "revenue"]
        assert len(rows.rows) == 2
        assert rows.rows[0]["units_sold"] == 15

    def test_get_rows_missing_table(self, sales_sqlite):
        with pytest.raises(NotFoundError, match="表不存在"):
            SQLiteAdapter().get_rows({"filepath": sales_sqlite}, "main.orders")

    def test_missing_file(self, data_dir):
        with pytest.raises(NotFoundError):
            SQLiteAdapter().list_tables({"filepath": "missing.db"})

    def test_path_outside_data_dir(self, data_dir):
        with pytest.raises(BadRequestError, match="OPENBASE_DATA_DIR"):
            SQLiteAdapter().list_tables({"filepath": "../elsewhere.db"})

    def test_reused_parameter(self, sales_sqlite):
        result = SQLiteAdapter().run_query({"filepath": sales_sqlite}, "select :a AS x, :a AS y", {"a": 7}, 10)
        assert result.rows == [{"x": 7, "y": 7}]
        assert result.columns == ["x", "y"]
        assert result.row_count == 1

    def test_run_query_with_casts_and_limit(self, sales_sqlite):
        result = SQLiteAdapter().run_query(
            {"filepath": sales_sqlite},
            "select asin, units_sold::int AS units from weekly_sales where asin = :asin order by week_start",
            {"asin": "X"},
            1,
        )
        assert result.rows == [{"asin": "X", "units": 15}]

    def test_zero_rows_have_no_columns(self, sales_sqlite):
        result = SQLiteAdapter().run_query(
            {"filepath": sales_sqlite}, "select * from weekly_sales where asin = :asin", {"asin": "none"}, 10
        )
        assert result.rows == []
        assert result.columns == []
        assert result.row_count == 0

    def test_opened_read_only(self, sales_sqlite):
        """连接以只读方式打开，即便绕过守卫也无法写入"""
        adapter = SQLiteAdapter()
        with adapter.connect({"filepath": sales_sqlite}) as conn:
            with pytest.raises(Exception):
                conn.execute("DELETE FROM weekly_sales")


@pytest.fixture
def sales_duckdb(data_dir):
    path = data_dir / "sales.duckdb"
    conn = duckdb.connect(str(path))
    conn.execute(
        "CREATE TABLE weekly_sales (week_start DATE, asin VARCHAR, units_sold INTEGER, revenue DECIMAL(10, 2))"
    )
    conn.execute("INSERT INTO weekly_sales VALUES ('2026-01-05', 'X', 15, 120.50), ('2026-01-12', 'Y', 4, 8.00)")
    conn.execute("CREATE SCHEMA archive")
    conn.execute("CREATE TABLE archive.old_sales (id INTEGER)")
    conn.close()
    return "sales.duckdb"


class TestDuckDBAdapter:
    """测试DuckDB适配器（真实文件）"""

    def test_list_tables(self, sales_duckdb):
        assert DuckDBAdapter().list_tables({"filepath": sales_duckdb}) == ["archive.old_sales", "weekly_sales"]

    def test_get_rows_preserves_decimal_text(self, sales_duckdb):
        rows = DuckDBAdapter().get_rows({"filepath": sales_duckdb}, "weekly_sales")
        assert rows.rows[0] == {"week_start": "2026-01-05", "asin": "X", "units_sold": 15, "revenue": "120.50"}

    def test_get_rows_missing_table(self, sales_duckdb):
        with pytest.raises(NotFoundError):
            DuckDBAdapter().get_rows({"filepath": sales_duckdb}, "archive.weekly_sales")

    def test_reused_parameter(self, sales_duckdb):
        result = DuckDBAdapter().run_query({"filepath": sales_duckdb}, "select :a AS x, :a AS y", {"a": 7}, 10)
        assert result.rows == [{"x": 7, "y": 7}]

    def test_run_query_limit(self, sales_duckdb):
        result = DuckDBAdapter().run_query(
            {"filepath": sales_duckdb}, "select asin, revenue::numeric(10,2) AS revenue from weekly_sales", {}, 1
        )
        assert result.row_count == 1
        assert result.columns == ["asin", "revenue"]

    def test_memory_database(self, data_dir):
        result = DuckDBAdapter().run_query({"filepath": ":memory:"}, "select 42 AS answer", {}, 5)
        assert result.rows == [{"answer": 42}]

    def test_missing_file(self, data_dir):
        with pytest.raises(NotFoundError):
            DuckDBAdapter().list_tables({"filepath": "missing.duckdb"})


class TestMongoDBAdapter:
    """测试MongoDB适配器（不连接服务器的部分）"""

    def test_requires_uri_and_database(self):
        with pytest.raises(BadRequestError, match="uri 和 database"):
            MongoDBAdapter().list_tables({"uri": "mongodb://localhost"})

    @pytest.mark.parametrize("value", ["", "   ", "select * from orders", "orders items"])
    def test_query_text_must_be_collection_name(self, value):
        with pytest.raises(BadRequestError):
            MongoDBAdapter().parse_collection_name(value)

    def test_collection_name(self):
        assert MongoDBAdapter().parse_collection_name(" orders ") == "orders"

    def test_documents_to_rows(self):
        object_id = ObjectId()
        rows = documents_to_rows([
            {"_id": object_id, "name": "a"},
            {"_id": "plain", "qty": 2, "tags": [ObjectId("65a1b2c3d4e5f6a7b8c9d0e1")]},
        ])
        assert rows.columns == ["_id", "name", "qty", "tags"]
        assert rows.rows[0] == {"_id": str(object_id), "name": "a"}
        assert rows.rows[1]["tags"] == ["65a1b2c3d4e5f6a7b8c9d0e1"]
