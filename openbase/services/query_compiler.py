"""
命名参数编译器与只读守卫
将 :name 形式的命名参数改写为各数据库驱动的原生占位符，并拒绝任何非只读的SQL
"""
import math
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .errors import BadRequestError

# 整词匹配，包括字符串字面量和注释中的出现（宁可误拒）
DISALLOWED_WRITE_SQL = re.compile(
    r"\b(insert|update|delete|drop|alter|truncate|create|replace|grant|revoke)\b",
    re.IGNORECASE,
)
ALLOWED_READ_SQL = re.compile(r"^\s*(select|with)\b", re.IGNORECASE)
POSITIONAL_PARAMETER = re.compile(r"\$\d+\b")

# 前面不能是冒号，避免与 ::type 类型转换冲突
NAMED_PARAMETER = re.compile(r"(?<!:):([A-Za-z_][A-Za-z0-9_]*)\b")

# PostgreSQL 风格类型转换：::numeric(10,2)、::text[]、::double precision
TYPE_CAST = re.compile(
    r"::\s*(?:double\s+precision|character\s+varying|timestamp\s+with(?:out)?\s+time\s+zone"
    r"|[A-Za-z_][A-Za-z0-9_]*)(?:\s*\(\s*\d+(?:\s*,\s*\d+)?\s*\))?(?:\s*\[\s*\])*",
    re.IGNORECASE,
)

TRAILING_SEMICOLON = re.compile(r";\s*$")

LIMIT_PARAMETER_NAME = "_openbase_limit"


class ParamStyle(str, Enum):
    """编译后的占位符风格"""
    NUMERIC_DOLLAR = "numeric_dollar"  # $1, $2 (PostgreSQL, DuckDB)
    QMARK = "qmark"                    # ? (MySQL)
    NAMED = "named"                    # :name (SQLite)


class CompiledQuery:
    """编译后的查询：SQL文本和按占位符风格组织的参数"""

    def __init__(
        self,
        sql: str,
        parameters: Union[List[Any], Dict[str, Any]],
        style: ParamStyle
    ):
        self.sql = sql
        self.parameters = parameters
        self.style = style

    def __repr__(self):
        return f"<CompiledQuery(style={self.style.value}, sql={self.sql[:60]!r})>"


def normalize_query_text(query_text: str) -> str:
    """去掉首尾空白和一个结尾分号"""
    return TRAILING_SEMICOLON.sub("", (query_text or "").strip()).strip()


def assert_read_only_sql(query_text: str) -> str:
    """
    只读守卫

    Args:
        query_text: 原始查询文本

    Returns:
        规范化后的查询文本

    Raises:
        BadRequestError: 查询为空、不是 SELECT/WITH、包含写操作关键字或位置参数
    """
    normalized = normalize_query_text(query_text)
    if not normalized:
        raise BadRequestError("查询文本不能为空")

    if not ALLOWED_READ_SQL.search(normalized):
        raise BadRequestError("只允许 SELECT/WITH 查询")

    if DISALLOWED_WRITE_SQL.search(normalized):
        raise BadRequestError("常用查询中不允许写操作")

    if POSITIONAL_PARAMETER.search(normalized):
        raise BadRequestError("请使用 :asin 这样的命名参数，不要使用位置参数")

    return normalized


def strip_type_casts(sql: str) -> str:
    """去掉 PostgreSQL 的 ::type 类型转换，使查询在 SQLite/DuckDB 上可以降级执行"""
    return TYPE_CAST.sub("", sql)


def compile_named_parameters(
    sql: str,
    parameters: Dict[str, Any],
    style: ParamStyle
) -> CompiledQuery:
    """
    将 :name 命名参数编译为原生占位符

    NUMERIC_DOLLAR 对同名参数复用同一个序号；QMARK 每次出现都追加一个值；
    NAMED 保留原文，只绑定被引用的参数。

    Raises:
        BadRequestError: 引用的参数不在参数字典中
    """
    positional: List[Any] = []
    named: Dict[str, Any] = {}
    index_by_name: Dict[str, int] = {}

    def replace(match: "re.Match") -> str:
        name = match.group(1)
        if name not in parameters:
            raise BadRequestError(f"缺少查询参数: {name}")

        if style == ParamStyle.NAMED:
            named[name] = parameters[name]
            return match.group(0)

        if style == ParamStyle.QMARK:
            positional.append(parameters[name])
            return "?"

        index = index_by_name.get(name)
        if index is None:
            positional.append(parameters[name])
            index = len(positional)
            index_by_name[name] = index
        return f"${index}"

    text = NAMED_PARAMETER.sub(replace, sql)

    if style == ParamStyle.NAMED:
        return CompiledQuery(text, named, style)
    return CompiledQuery(text, positional, style)


def wrap_with_limit(compiled: CompiledQuery, limit: int) -> CompiledQuery:
    """
    用子查询包裹编译后的查询并追加 LIMIT 参数

    无论内层查询做什么，行数上限都会生效；内层语法错误也会在这里暴露。
    """
    if compiled.style == ParamStyle.NAMED:
        parameters = dict(compiled.parameters)
        parameters[LIMIT_PARAMETER_NAME] = limit
        placeholder = f":{LIMIT_PARAMETER_NAME}"
    elif compiled.style == ParamStyle.QMARK:
        parameters = [*compiled.parameters, limit]
        placeholder = "?"
    else:
        parameters = [*compiled.parameters, limit]
        placeholder = f"${len(parameters)}"

    sql = f"SELECT * FROM ({compiled.sql}) AS _subquery LIMIT {placeholder}"
    return CompiledQuery(sql, parameters, compiled.style)


def parse_limit(value: Optional[Any], fallback: int, maximum: int) -> int:
    """
    解析行数上限并夹紧到 [1, maximum]

    Raises:
        BadRequestError: 不是数字
    """
    raw = fallback if value is None else value
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or math.isnan(raw):
        raise BadRequestError("无效的查询行数上限")

    if math.isinf(raw):
        return maximum if raw > 0 else 1

    return max(1, min(int(raw), maximum))
