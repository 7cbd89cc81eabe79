"""
写语句构建
生成带 RETURNING * 的参数化 INSERT/UPDATE，只拼接经过校验的标识符
"""
from typing import Any, List

from .database_adapters.base import IDENTIFIER_PATTERN, parse_table_reference, quote_identifier
from .dto import BuiltQuery
from .errors import BadRequestError


def _format_table(table_name: str) -> str:
    schema, table = parse_table_reference(table_name, "public")
    return f"{quote_identifier(schema)}.{quote_identifier(table)}"


def _format_column(column: str) -> str:
    if not isinstance(column, str) or not IDENTIFIER_PATTERN.match(column):
        raise BadRequestError(f"非法的列名: {column}")
    return quote_identifier(column)


def _check_pairs(columns: List[str], values: List[Any], label: str):
    if not columns:
        raise BadRequestError(f"{label}不能为空")
    if len(columns) != len(values):
        raise BadRequestError(f"{label}的列数与值数不一致")


def build_insert_query(table_name: str, columns: List[str], values: List[Any]) -> BuiltQuery:
    """
    构建 INSERT ... RETURNING *

    Args:
        table_name: table 或 schema.table
        columns: 已校验的列名
        values: 与列一一对应的值

    Returns:
        BuiltQuery，占位符为 $1..$n
    """
    _check_pairs(columns, values, "写入列")

    column_sql = ", ".join(_format_column(column) for column in columns)
    placeholders = ", ".join(f"${index}" for index in range(1, len(values) + 1))
    sql = f"INSERT INTO {_format_table(table_name)} ({column_sql}) VALUES ({placeholders}) RETURNING *"
    return BuiltQuery(sql=sql, values=list(values))


def build_update_query(
    table_name: str,
    columns: List[str],
    values: List[Any],
    where_columns: List[str],
    where_values: List[Any]
) -> BuiltQuery:
    """
    构建 UPDATE ... SET ... WHERE ... RETURNING *

    SET 参数在前，WHERE 参数紧随其后，编号连续
    """
    _check_pairs(columns, values, "更新列")
    _check_pairs(where_columns, where_values, "WHERE 条件")

    set_sql = ", ".join(
        f"{_format_column(column)} = ${index}"
        for index, column in enumerate(columns, start=1)
    )
    offset = len(values)
    where_sql = " AND ".join(
        f"{_format_column(column)} = ${offset + index}"
        for index, column in enumerate(where_columns, start=1)
    )
    sql = f"UPDATE {_format_table(table_name)} SET {set_sql} WHERE {where_sql} RETURNING *"
    return BuiltQuery(sql=sql, values=[*values, *where_values])
