"""
表结构获取
只支持 PostgreSQL，每次请求实时读取 information_schema，不缓存
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import text

from .database_adapters import PostgreSQLAdapter
from .dto import ColumnSchema
from .errors import NotFoundError

TABLE_SCHEMA_SQL = """
    SELECT
        column_name,
        data_type,
        is_nullable,
        character_maximum_length,
        numeric_precision,
        numeric_scale,
        udt_name
    FROM information_schema.columns
    WHERE table_schema = :schema AND table_name = :table
    ORDER BY ordinal_position
"""


def get_table_schema(
    connection: Dict[str, Any],
    table_reference: str,
    adapter: Optional[PostgreSQLAdapter] = None
) -> List[ColumnSchema]:
    """
    获取表的列结构，按物理列顺序

    Args:
        connection: 明文 PostgreSQL 连接描述
        table_reference: table 或 schema.table
        adapter: PostgreSQL 适配器（测试时可替换）

    Returns:
        ColumnSchema 列表

    Raises:
        BadRequestError: 表名非法
        NotFoundError: 没有返回任何列（表不存在或不可访问）
    """
    adapter = adapter or PostgreSQLAdapter()
    schema, table = adapter.parse_table_reference(table_reference)

    with adapter.connect(connection) as conn:
        result = conn.execute(
            text(TABLE_SCHEMA_SQL),
            {"schema": schema or adapter.default_schema, "table": table}
        )
        columns = [
            ColumnSchema(
                column_name=row.column_name,
                data_type=row.data_type,
                is_nullable=row.is_nullable == "YES",
                max_length=row.character_maximum_length,
                numeric_precision=row.numeric_precision,
                numeric_scale=row.numeric_scale,
                udt_name=row.udt_name or "",
            )
            for row in result
        ]

    if not columns:
        raise NotFoundError("表结构不存在")

    return columns
