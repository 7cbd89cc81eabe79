"""
DuckDB数据库适配器
"""
import os
from contextlib import contextmanager
from typing import Dict, Any, List

import duckdb

from ..dto import QueryExecutionResult, TableRows
from ..errors import NotFoundError
from ..query_compiler import ParamStyle
from .base import DatabaseAdapter, clamp_preview_limit, rows_from_cursor, text_param
from ...utils.data_path import MEMORY_DATABASE, resolve_data_file_path
from ...utils.logger import get_logger, log_sql_error

logger = get_logger(__name__)

LIST_TABLES_SQL = """
    SELECT table_schema, table_name
    FROM information_schema.tables
    WHERE table_schema NOT IN ('information_schema', 'pg_catalog')
    ORDER BY table_schema, table_name
"""

TABLE_EXISTS_SQL = """
    SELECT 1
    FROM information_schema.tables
    WHERE table_schema = $1 AND table_name = $2
    LIMIT 1
"""


class DuckDBAdapter(DatabaseAdapter):
    """DuckDB数据库适配器（文件只读打开，禁止访问外部文件）"""

    param_style = ParamStyle.NUMERIC_DOLLAR
    default_schema = "main"
    strip_casts = True

    def get_database_path(self, connection: Dict[str, Any]) -> str:
        path = resolve_data_file_path(text_param(connection, "filepath"), allow_memory=True)
        if path != MEMORY_DATABASE and not os.path.isfile(path):
            raise NotFoundError("DuckDB 数据库文件不存在")
        return path

    @contextmanager
    def connect(self, connection: Dict[str, Any]):
        path = self.get_database_path(connection)
        conn = duckdb.connect(
            path,
            read_only=path != MEMORY_DATABASE,
            config={"enable_external_access": False},
        )
        try:
            yield conn
        finally:
            conn.close()

    def execute(self, conn, sql: str, values: List[Any]):
        """执行并返回 (列名, 行)；列名取自第一行，零行时为空"""
        cursor = conn.execute(sql, values)
        columns, rows = rows_from_cursor(cursor.description, cursor.fetchall())
        return (columns if rows else []), rows

    def list_tables(self, connection: Dict[str, Any]) -> List[str]:
        with self.connect(connection) as conn:
            records = conn.execute(LIST_TABLES_SQL).fetchall()
            return [
                table if schema == self.default_schema else f"{schema}.{table}"
                for schema, table in records
            ]

    def get_rows(self, connection: Dict[str, Any], table: str, limit: int = 50) -> TableRows:
        schema, table_name = self.parse_table_reference(table)
        safe_limit = clamp_preview_limit(limit)

        with self.connect(connection) as conn:
            if not conn.execute(TABLE_EXISTS_SQL, [schema, table_name]).fetchall():
                raise NotFoundError("表不存在")

            sql = f"SELECT * FROM {self.format_table(schema, table_name)} LIMIT $1"
            columns, rows = self.execute(conn, sql, [safe_limit])
            return TableRows(columns=columns, rows=rows)

    def run_query(
        self,
        connection: Dict[str, Any],
        query_text: str,
        parameters: Dict[str, Any],
        limit: int
    ) -> QueryExecutionResult:
        compiled = self.compile_query(query_text, parameters, limit)

        with self.connect(connection) as conn:
            try:
                columns, rows = self.execute(conn, compiled.sql, compiled.parameters)
            except duckdb.Error as e:
                log_sql_error(logger, compiled.sql, self.get_db_type(), e, len(compiled.parameters))
                raise

        return QueryExecutionResult(rows=rows, columns=columns, row_count=len(rows))
