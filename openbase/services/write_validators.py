"""
写入校验
按实时表结构和列白名单校验并转换调用方提交的值
"""
import math
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from .dto import ColumnSchema, ValidatedColumns
from .errors import BadRequestError

INTEGER_PATTERN = re.compile(r"^-?\d+$")
NUMBER_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

TRUE_STRINGS = ("true", "1")
FALSE_STRINGS = ("false", "0")

INTEGER_RANGES = {
    "smallint": (-32768, 32767),
    "integer": (-2147483648, 2147483647),
    "bigint": (-9223372036854775808, 9223372036854775807),
}

# data_type / udt_name -> 类型族
TYPE_FAMILIES = {
    "smallint": "smallint",
    "int2": "smallint",
    "integer": "integer",
    "int4": "integer",
    "bigint": "bigint",
    "int8": "bigint",
    "numeric": "numeric",
    "decimal": "numeric",
    "real": "float",
    "float4": "float",
    "double precision": "float",
    "float8": "float",
    "boolean": "boolean",
    "bool": "boolean",
    "date": "date",
    "uuid": "uuid",
    "text": "character",
    "character varying": "character",
    "character": "character",
    "varchar": "character",
    "bpchar": "character",
    "citext": "character",
    "json": "json",
    "jsonb": "json",
}


def get_type_family(column: ColumnSchema) -> str:
    """根据 data_type（其次 udt_name）确定列的类型族"""
    data_type = (column.data_type or "").lower()
    udt_name = (column.udt_name or "").lower()

    family = TYPE_FAMILIES.get(data_type) or TYPE_FAMILIES.get(udt_name)
    if family:
        return family
    if data_type.startswith("timestamp") or data_type.startswith("time"):
        return "temporal"
    return "other"


def _coerce_integer(column: ColumnSchema, family: str, value: Any) -> Any:
    name = column.column_name
    if isinstance(value, bool):
        raise BadRequestError(f"列 {name} 需要整数")

    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str) and INTEGER_PATTERN.match(value.strip()):
        number = int(value.strip())
    else:
        raise BadRequestError(f"列 {name} 需要整数")

    low, high = INTEGER_RANGES[family]
    if not low <= number <= high:
        raise BadRequestError(f"列 {name} 的值超出范围")

    # bigint 以字符串传递，避免精度丢失
    return str(number) if family == "bigint" else number


def _coerce_number(column: ColumnSchema, family: str, value: Any) -> Any:
    name = column.column_name
    if isinstance(value, bool):
        raise BadRequestError(f"列 {name} 需要数字")

    if isinstance(value, (int, float, Decimal)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            raise BadRequestError(f"列 {name} 需要数字")
        raw = str(value)
    elif isinstance(value, str) and NUMBER_PATTERN.match(value.strip()):
        raw = value.strip()
    else:
        raise BadRequestError(f"列 {name} 需要数字")

    try:
        return Decimal(raw) if family == "numeric" else float(raw)
    except (InvalidOperation, ValueError):
        raise BadRequestError(f"列 {name} 需要数字")


def _coerce_boolean(column: ColumnSchema, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    raise BadRequestError(f"列 {column.column_name} 需要布尔值")


def _coerce_date(column: ColumnSchema, value: Any) -> str:
    if isinstance(value, str) and DATE_PATTERN.match(value.strip()):
        try:
            datetime.strptime(value.strip(), "%Y-%m-%d")
            return value.strip()
        except ValueError:
            pass
    raise BadRequestError(f"列 {column.column_name} 需要 YYYY-MM-DD 格式的日期")


def _coerce_uuid(column: ColumnSchema, value: Any) -> str:
    if isinstance(value, str) and UUID_PATTERN.match(value.strip()):
        return value.strip()
    raise BadRequestError(f"列 {column.column_name} 需要UUID")


def _coerce_character(column: ColumnSchema, value: Any) -> str:
    if not isinstance(value, str):
        raise BadRequestError(f"列 {column.column_name} 需要字符串")
    if column.max_length is not None and len(value) > column.max_length:
        raise BadRequestError(f"列 {column.column_name} 超过最大长度 {column.max_length}")
    return value


def _coerce_temporal(column: ColumnSchema, value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value
    raise BadRequestError(f"列 {column.column_name} 需要时间字符串")


def coerce_value(column: ColumnSchema, value: Any) -> Any:
    """
    按列的类型族校验并转换单个值

    Raises:
        BadRequestError: 值与列类型不符，错误信息包含列名
    """
    if value is None:
        if not column.is_nullable:
            raise BadRequestError(f"列 {column.column_name} 不能为空")
        return None

    family = get_type_family(column)
    if family in INTEGER_RANGES:
        return _coerce_integer(column, family, value)
    if family in ("numeric", "float"):
        return _coerce_number(column, family, value)
    if family == "boolean":
        return _coerce_boolean(column, value)
    if family == "date":
        return _coerce_date(column, value)
    if family == "uuid":
        return _coerce_uuid(column, value)
    if family == "character":
        return _coerce_character(column, value)
    if family == "temporal":
        return _coerce_temporal(column, value)
    # json/jsonb 及其他类型交给数据库校验
    return value


def _schema_lookup(schema: Iterable[ColumnSchema]) -> Dict[str, ColumnSchema]:
    return {column.column_name.strip().lower(): column for column in schema}


def _validate(
    values: Any,
    schema: List[ColumnSchema],
    allowed_columns: Optional[Iterable[str]],
    where: bool
) -> ValidatedColumns:
    label = "WHERE 条件" if where else "写入数据"
    if not isinstance(values, dict):
        raise BadRequestError(f"{label}必须是对象")
    if not values:
        raise BadRequestError(f"至少需要一个{'WHERE 条件列' if where else '写入列'}")

    lookup = _schema_lookup(schema)
    allowed = None
    if allowed_columns is not None:
        allowed = {name.strip().lower() for name in allowed_columns}

    columns: List[str] = []
    coerced: List[Any] = []
    seen = set()

    for key, value in values.items():
        normalized = str(key).strip().lower()
        column = lookup.get(normalized)
        if column is None:
            raise BadRequestError(f"未知列: {key}")
        if allowed is not None and normalized not in allowed:
            raise BadRequestError(f"列 {column.column_name} 不允许写入")
        if normalized in seen:
            raise BadRequestError(f"重复的列: {column.column_name}")
        if where and value is None:
            raise BadRequestError(f"WHERE 条件列 {column.column_name} 不能为 NULL")

        seen.add(normalized)
        columns.append(column.column_name)
        coerced.append(coerce_value(column, value))

    return ValidatedColumns(columns=columns, values=coerced)


def validate_write_values(
    values: Any,
    schema: List[ColumnSchema],
    allowed_columns: Optional[Iterable[str]] = None
) -> ValidatedColumns:
    """
    校验 INSERT 值或 UPDATE 的 SET 部分

    Args:
        values: 列名到值的映射
        schema: 实时表结构
        allowed_columns: 列白名单，None 表示所有列

    Returns:
        ValidatedColumns（列名保留表结构中的大小写）
    """
    return _validate(values, schema, allowed_columns, where=False)


def validate_where_values(where: Any, schema: List[ColumnSchema]) -> ValidatedColumns:
    """校验 UPDATE 的 WHERE 部分：不允许 NULL，至少一个条件"""
    return _validate(where, schema, None, where=True)
