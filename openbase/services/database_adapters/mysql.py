"""
MySQL数据库适配器
"""
from contextlib import contextmanager
from typing import Dict, Any, List, Optional, Tuple

import mysql.connector
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL
from sqlalchemy.pool import NullPool

from ..dto import QueryExecutionResult, TableRows
from ..errors import BadRequestError, NotFoundError
from ..query_compiler import ParamStyle
from .base import DatabaseAdapter, build_engine_url, clamp_preview_limit, rows_from_cursor
from ...utils.logger import get_logger, log_sql_error

logger = get_logger(__name__)

LIST_TABLES_SQL = """
    SELECT table_name AS table_name
    FROM information_schema.tables
    WHERE table_schema = :schema
    ORDER BY table_name
"""

TABLE_EXISTS_SQL = """
    SELECT 1
    FROM information_schema.tables
    WHERE table_schema = :schema AND table_name = :table
    LIMIT 1
"""


class MySQLAdapter(DatabaseAdapter):
    """MySQL数据库适配器"""

    param_style = ParamStyle.QMARK
    quote_char = "`"
    driver_name = "mysql+mysqlconnector"

    def get_connection_url(self, connection: Dict[str, Any]) -> URL:
        """构建MySQL连接URL"""
        return build_engine_url(connection, self.driver_name, "MySQL")

    @contextmanager
    def connect(self, connection: Dict[str, Any]):
        """为单次操作打开只读会话，退出时释放"""
        engine = create_engine(self.get_connection_url(connection), poolclass=NullPool)
        try:
            with engine.connect() as conn:
                conn.exec_driver_sql("SET SESSION TRANSACTION READ ONLY")
                yield conn
        finally:
            engine.dispose()

    def active_database(self, conn) -> Optional[str]:
        return conn.exec_driver_sql("SELECT DATABASE()").scalar()

    def execute_native(self, conn, sql: str, values: List[Any]) -> Tuple[List[str], List[Dict[str, Any]]]:
        """用服务端预处理语句执行，占位符为 ?"""
        cursor = conn.connection.driver_connection.cursor(prepared=True)
        try:
            cursor.execute(sql, tuple(values))
            return rows_from_cursor(cursor.description, cursor.fetchall())
        finally:
            cursor.close()

    def list_tables(self, connection: Dict[str, Any]) -> List[str]:
        with self.connect(connection) as conn:
            database = self.active_database(conn)
            if not database:
                return []
            result = conn.execute(text(LIST_TABLES_SQL), {"schema": database})
            return [row[0] for row in result]

    def get_rows(self, connection: Dict[str, Any], table: str, limit: int = 50) -> TableRows:
        schema, table_name = self.parse_table_reference(table)
        safe_limit = clamp_preview_limit(limit)

        with self.connect(connection) as conn:
            schema = schema or self.active_database(conn)
            if not schema:
                raise BadRequestError("MySQL 连接未指定数据库")

            exists = conn.execute(
                text(TABLE_EXISTS_SQL), {"schema": schema, "table": table_name}
            ).first()
            if exists is None:
                raise NotFoundError("表不存在")

            sql = f"SELECT * FROM {self.format_table(schema, table_name)} LIMIT ?"
            columns, rows = self.execute_native(conn, sql, [safe_limit])
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
                columns, rows = self.execute_native(conn, compiled.sql, compiled.parameters)
            except mysql.connector.Error as e:
                log_sql_error(logger, compiled.sql, self.get_db_type(), e, len(compiled.parameters))
                raise

        return QueryExecutionResult(rows=rows, columns=columns, row_count=len(rows))
