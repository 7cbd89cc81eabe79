"""
SQLite数据库适配器
"""
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Any, List

from ..dto import QueryExecutionResult, TableRows
from ..errors import BadRequestError, NotFoundError
from ..query_compiler import ParamStyle
from .base import DatabaseAdapter, clamp_preview_limit, rows_from_records, text_param
from ...utils.data_path import resolve_data_file_path
from ...utils.logger import get_logger, log_sql_error

logger = get_logger(__name__)

LIST_TABLES_SQL = """
    SELECT name FROM sqlite_master
    WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%'
    ORDER BY name
"""


class SQLiteAdapter(DatabaseAdapter):
    """SQLite数据库适配器（只读打开）"""

    param_style = ParamStyle.NAMED
    default_schema = "main"
    strip_casts = True

    def get_database_path(self, connection: Dict[str, Any]) -> str:
        """解析 filepath 并确认文件存在"""
        path = resolve_data_file_path(text_param(connection, "filepath"))
        if not os.path.isfile(path):
            raise NotFoundError("SQLite 数据库文件不存在")
        return path

    @contextmanager
    def connect(self, connection: Dict[str, Any]):
        path = self.get_database_path(connection)
        conn = sqlite3.connect(f"{Path(path).as_uri()}?mode=ro", uri=True)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _list_tables(self, conn) -> List[str]:
        return [row["name"] for row in conn.execute(LIST_TABLES_SQL)]

    def list_tables(self, connection: Dict[str, Any]) -> List[str]:
        with self.connect(connection) as conn:
            return self._list_tables(conn)

    def get_rows(self, connection: Dict[str, Any], table: str, limit: int = 50) -> TableRows:
        schema, table_name = self.parse_table_reference(table)
        if schema != self.default_schema:
            raise BadRequestError("SQLite 只支持 main schema")
        safe_limit = clamp_preview_limit(limit)

        with self.connect(connection) as conn:
            if table_name not in self._list_tables(conn):
                raise NotFoundError("表不存在")

            sql = f"SELECT * FROM {self.format_table(schema, table_name)} LIMIT :limit"
            columns, rows = rows_from_records(conn.execute(sql, {"limit": safe_limit}).fetchall())
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
                records = conn.execute(compiled.sql, compiled.parameters).fetchall()
            except sqlite3.Error as e:
                log_sql_error(logger, compiled.sql, self.get_db_type(), e, list(compiled.parameters))
                raise

        columns, rows = rows_from_records(records)
        return QueryExecutionResult(rows=rows, columns=columns, row_count=len(rows))
