"""
数据库适配器基类
定义所有数据库适配器必须实现的接口
"""
import re
from abc import ABC, abstractmethod
from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, Any, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from ..dto import ConnectionTestResult, QueryExecutionResult, TableRows
from ..errors import BadRequestError
from ..query_compiler import (
    CompiledQuery,
    ParamStyle,
    compile_named_parameters,
    strip_type_casts,
    wrap_with_limit,
)

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")

DEFAULT_PREVIEW_LIMIT = 50
MAX_PREVIEW_LIMIT = 1000


def parse_table_reference(value: str, default_schema: Optional[str]) -> Tuple[Optional[str], str]:
    """
    解析 schema.table 或 table 形式的表引用

    Args:
        value: 表引用
        default_schema: 未指定schema时使用的默认值（可以为None）

    Returns:
        (schema, table)

    Raises:
        BadRequestError: 表名为空或包含非法字符
    """
    trimmed = (value or "").strip()
    if not trimmed:
        raise BadRequestError("表名不能为空")

    if "." in trimmed:
        schema_candidate, table_candidate = trimmed.split(".", 1)
        if not schema_candidate.strip():
            raise BadRequestError("非法的表名")
    else:
        schema_candidate, table_candidate = default_schema or "", trimmed

    schema = schema_candidate.strip()
    table = table_candidate.strip()

    if (schema and not IDENTIFIER_PATTERN.match(schema)) or not IDENTIFIER_PATTERN.match(table):
        raise BadRequestError("非法的表名")

    return schema or None, table


def quote_identifier(value: str, quote_char: str = '"') -> str:
    """用引号包裹标识符，内部的引号加倍"""
    return f"{quote_char}{value.replace(quote_char, quote_char * 2)}{quote_char}"


def clamp_preview_limit(limit: Any) -> int:
    """预览行数：非数字时使用默认值，夹紧到 [1, 1000]"""
    if isinstance(limit, bool) or not isinstance(limit, (int, float)) or limit != limit:
        return DEFAULT_PREVIEW_LIMIT
    if limit in (float("inf"), float("-inf")):
        return DEFAULT_PREVIEW_LIMIT
    return max(1, min(int(limit), MAX_PREVIEW_LIMIT))


def normalize_value(value: Any) -> Any:
    """把驱动返回的值转换为可JSON序列化且不丢精度的形式"""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return raw.hex()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value


def rows_from_cursor(description, records) -> Tuple[List[str], List[Dict[str, Any]]]:
    """从 DB-API 游标描述和记录构建 (列名, 行字典)"""
    columns = [str(column[0]) for column in description] if description else []
    rows = [
        {column: normalize_value(value) for column, value in zip(columns, record)}
        for record in records
    ]
    return columns, rows


def rows_from_records(records) -> Tuple[List[str], List[Dict[str, Any]]]:
    """
    从映射形式的记录构建 (列名, 行字典)

    列顺序取自第一行，零行时列为空
    """
    rows = [
        {str(key): normalize_value(record[key]) for key in record.keys()}
        for record in records
    ]
    columns = list(rows[0].keys()) if rows else []
    return columns, rows


def text_param(connection: Dict[str, Any], key: str) -> str:
    """读取连接描述中的字符串字段"""
    value = connection.get(key)
    return value.strip() if isinstance(value, str) else ""


class DatabaseAdapter(ABC):
    """数据库适配器基类"""

    # 编译后的占位符风格
    param_style: ParamStyle = ParamStyle.NUMERIC_DOLLAR
    # 未指定schema时的默认值
    default_schema: Optional[str] = None
    # 是否在编译前去掉 ::type 类型转换
    strip_casts: bool = False
    # 查询文本是否为SQL（需要只读守卫）
    accepts_sql: bool = True
    quote_char: str = '"'

    @abstractmethod
    def list_tables(self, connection: Dict[str, Any]) -> List[str]:
        """
        列出数据源中的表

        Args:
            connection: 明文连接描述

        Returns:
            表名列表，非默认schema的表带 schema. 前缀
        """
        pass

    @abstractmethod
    def get_rows(self, connection: Dict[str, Any], table: str, limit: int = DEFAULT_PREVIEW_LIMIT) -> TableRows:
        """
        预览表数据，先确认表存在

        Raises:
            NotFoundError: 表不存在
        """
        pass

    @abstractmethod
    def run_query(
        self,
        connection: Dict[str, Any],
        query_text: str,
        parameters: Dict[str, Any],
        limit: int
    ) -> QueryExecutionResult:
        """
        执行已通过只读守卫的命名参数查询

        Args:
            connection: 明文连接描述
            query_text: 规范化后的查询文本
            parameters: 参数名到值的映射
            limit: 行数上限

        Returns:
            QueryExecutionResult
        """
        pass

    def test_connection(self, connection: Dict[str, Any]) -> ConnectionTestResult:
        """测试连接：能列出表即视为成功"""
        tables = self.list_tables(connection)
        return ConnectionTestResult(ok=True, tables=tables)

    def compile_query(self, query_text: str, parameters: Dict[str, Any], limit: int) -> CompiledQuery:
        """按本适配器的占位符风格编译并包裹 LIMIT"""
        sql = strip_type_casts(query_text) if self.strip_casts else query_text
        compiled = compile_named_parameters(sql, parameters, self.param_style)
        return wrap_with_limit(compiled, limit)

    def parse_table_reference(self, value: str) -> Tuple[Optional[str], str]:
        return parse_table_reference(value, self.default_schema)

    def format_identifier(self, name: str) -> str:
        """格式化标识符（表名、列名）"""
        return quote_identifier(name, self.quote_char)

    def format_table(self, schema: Optional[str], table: str) -> str:
        if schema:
            return f"{self.format_identifier(schema)}.{self.format_identifier(table)}"
        return self.format_identifier(table)

    def get_db_type(self) -> str:
        """
        获取数据库类型名称

        Returns:
            数据库类型，如 'mysql', 'postgresql', 'sqlite'
        """
        return self.__class__.__name__.replace('Adapter', '').lower()


def build_engine_url(connection: Dict[str, Any], drivername: str, label: str) -> URL:
    """
    根据连接描述构建 SQLAlchemy URL

    支持 connectionString/url/uri 连接字符串，或 host/port/user/password/database 字段
    """
    for key in ("connectionString", "url", "uri"):
        raw = text_param(connection, key)
        if raw:
            try:
                url = make_url(raw)
            except ArgumentError:
                raise BadRequestError(f"{label} 连接字符串无效")
            return url.set(drivername=drivername)

    host = text_param(connection, "host")
    user = text_param(connection, "user")
    database = text_param(connection, "database")
    if not host or not user or not database:
        raise BadRequestError(f"{label} 连接需要连接字符串或 host/user/database")

    port = connection.get("port")
    if isinstance(port, str) and port.strip().isdigit():
        port = int(port.strip())
    if isinstance(port, bool) or not isinstance(port, int):
        port = None

    password = connection.get("password")
    return URL.create(
        drivername,
        username=user,
        password=password if isinstance(password, str) and password else None,
        host=host,
        port=port,
        database=database,
    )
