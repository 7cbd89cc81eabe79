"""
PostgreSQL数据库适配器
"""
import json
from contextlib import contextmanager
from typing import Dict, Any, List, Optional, Tuple

import psycopg
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL
from sqlalchemy.pool import NullPool

from ..dto import BuiltQuery, QueryExecutionResult, TableRows, WriteResult
from ..errors import NotFoundError
from ..query_compiler import ParamStyle
from .base import DatabaseAdapter, build_engine_url, clamp_preview_limit, rows_from_cursor
from ...utils.logger import get_logger, log_sql_error

logger = get_logger(__name__)

LIST_TABLES_SQL = """
    SELECT table_schema, table_name
    FROM information_schema.tables
    WHERE table_type IN ('BASE TABLE', 'VIEW')
      AND table_schema NOT IN ('pg_catalog', 'information_schema')
    ORDER BY table_schema, table_name
"""

TABLE_EXISTS_SQL = """
    SELECT 1
    FROM information_schema.tables
    WHERE table_schema = :schema AND table_name = :table
    LIMIT 1
"""


def adapt_parameter(value: Any) -> Any:
    """dict/list 以 JSON 文本传入，由服务端按列类型解析"""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return value


class PostgreSQLAdapter(DatabaseAdapter):
    """PostgreSQL数据库适配器"""

    param_style = ParamStyle.NUMERIC_DOLLAR
    default_schema = "public"
    driver_name = "postgresql+psycopg"

    def get_connection_url(self, connection: Dict[str, Any]) -> URL:
        """构建PostgreSQL连接URL"""
        return build_engine_url(connection, self.driver_name, "PostgreSQL")

    @contextmanager
    def connect(self, connection: Dict[str, Any], write: bool = False):
        """
        为单次操作打开连接，退出时释放

        Args:
            connection: 明文连接描述
            write: 为True时在事务中执行并在成功后提交
        """
        engine = create_engine(self.get_connection_url(connection), poolclass=NullPool)
        try:
            with (engine.begin() if write else engine.connect()) as conn:
                yield conn
        finally:
            engine.dispose()

    def execute_native(self, conn, sql: str, values: List[Any]) -> Tuple[List[str], List[Dict[str, Any]], int]:
        """用原生 $n 占位符执行语句，返回 (列名, 行, 影响行数)"""
        driver_connection = conn.connection.driver_connection
        with psycopg.RawCursor(driver_connection) as cursor:
            cursor.execute(sql, [adapt_parameter(value) for value in values])
            if cursor.description is None:
                return [], [], cursor.rowcount
            columns, rows = rows_from_cursor(cursor.description, cursor.fetchall())
            return columns, rows, cursor.rowcount

    def list_tables(self, connection: Dict[str, Any]) -> List[str]:
        with self.connect(connection) as conn:
            result = conn.execute(text(LIST_TABLES_SQL))
            return [
                table if schema == self.default_schema else f"{schema}.{table}"
                for schema, table in result
            ]

    def table_exists(self, conn, schema: Optional[str], table: str) -> bool:
        result = conn.execute(
            text(TABLE_EXISTS_SQL),
            {"schema": schema or self.default_schema, "table": table}
        )
        return result.first() is not None

    def get_rows(self, connection: Dict[str, Any], table: str, limit: int = 50) -> TableRows:
        schema, table_name = self.parse_table_reference(table)
        safe_limit = clamp_preview_limit(limit)

        with self.connect(connection) as conn:
            if not self.table_exists(conn, schema, table_name):
                raise NotFoundError("表不存在")

            sql = f"SELECT * FROM {self.format_table(schema, table_name)} LIMIT $1"
            columns, rows, _ = self.execute_native(conn, sql, [safe_limit])
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
                columns, rows, _ = self.execute_native(conn, compiled.sql, compiled.parameters)
            except psycopg.Error as e:
                log_sql_error(logger, compiled.sql, self.get_db_type(), e, len(compiled.parameters))
                raise

        return QueryExecutionResult(rows=rows, columns=columns, row_count=len(rows))

    def execute_write(self, connection: Dict[str, Any], query: BuiltQuery) -> WriteResult:
        """
        在事务中执行 INSERT/UPDATE ... RETURNING *

        Args:
            connection: 明文连接描述
            query: 写语句构建器生成的语句

        Returns:
            WriteResult
        """
        with self.connect(connection, write=True) as conn:
            try:
                _, rows, rowcount = self.execute_native(conn, query.sql, query.values)
            except psycopg.Error as e:
                log_sql_error(logger, query.sql, self.get_db_type(), e, len(query.values))
                raise

        return WriteResult(row_count=rowcount if rowcount >= 0 else len(rows), rows=rows)
