"""
写入校验测试
"""
from decimal import Decimal

import pytest

from openbase.services.dto import ColumnSchema
from openbase.services.errors import BadRequestError
from openbase.services.write_validators import (
    coerce_value,
    get_type_family,
    validate_where_values,
    validate_write_values,
)


def column(name, data_type, nullable=True, max_length=None, udt_name=""):
    return ColumnSchema(
        column_name=name,
        data_type=data_type,
        is_nullable=nullable,
        max_length=max_length,
        udt_name=udt_name,
    )


SCHEMA = [
    column("id", "bigint", nullable=False, udt_name="int8"),
    column("week_start", "date", nullable=False, udt_name="date"),
    column("ASIN", "character varying", nullable=False, max_length=10, udt_name="varchar"),
    column("units_sold", "integer", udt_name="int4"),
    column("revenue", "numeric", udt_name="numeric"),
    column("conversion", "double precision", udt_name="float8"),
    column("is_promo", "boolean", udt_name="bool"),
    column("batch_id", "uuid", udt_name="uuid"),
    column("meta", "jsonb", udt_name="jsonb"),
    column("updated_at", "timestamp with time zone", udt_name="timestamptz"),
    column("tag", "USER-DEFINED", udt_name="citext"),
]


class TestTypeFamily:
    """测试类型族识别"""

    @pytest.mark.parametrize("data_type, udt_name, family", [
        ("integer", "int4", "integer"),
        ("bigint", "int8", "bigint"),
        ("numeric", "numeric", "numeric"),
        ("real", "float4", "float"),
        ("character", "bpchar", "character"),
        ("USER-DEFINED", "citext", "character"),
        ("json", "json", "json"),
        ("time without time zone", "time", "temporal"),
        ("ARRAY", "_int4", "other"),
    ])
    def test_family(self, data_type, udt_name, family):
        assert get_type_family(column("c", data_type, udt_name=udt_name)) == family


class TestValidateWriteValues:
    """测试写入值校验"""

    def test_round_trip_row(self):
        result = validate_write_values(
            {"week_start": "2026-01-05", "asin": "X", "units_sold": 15, "revenue": 120.50},
            SCHEMA,
            ["week_start", "asin", "units_sold", "revenue"],
        )
        assert result.columns == ["week_start", "ASIN", "units_sold", "revenue"]
        assert result.values == ["2026-01-05", "X", 15, Decimal("120.5")]

    def test_integer_string_coerced(self):
        result = validate_write_values({"units_sold": "15"}, SCHEMA)
        assert result.values == [15]

    @pytest.mark.parametrize("value", ["15.5", 15.5, True, "abc", "", [1]])
    def test_integer_rejects(self, value):
        with pytest.raises(BadRequestError, match="units_sold"):
            validate_write_values({"units_sold": value}, SCHEMA)

    def test_integral_float_accepted(self):
        assert validate_write_values({"units_sold": 15.0}, SCHEMA).values == [15]

    def test_integer_range(self):
        with pytest.raises(BadRequestError, match="超出范围"):
            validate_write_values({"units_sold": 2 ** 31}, SCHEMA)

    def test_bigint_as_string(self):
        assert validate_write_values({"id": 9007199254740993}, SCHEMA).values == ["9007199254740993"]
        assert validate_write_values({"id": "-42"}, SCHEMA).values == ["-42"]

    def test_numeric(self):
        assert validate_write_values({"revenue": "120.50"}, SCHEMA).values == [Decimal("120.50")]
        assert validate_write_values({"conversion": "0.25"}, SCHEMA).values == [0.25]
        with pytest.raises(BadRequestError, match="revenue"):
            validate_write_values({"revenue": "1e5"}, SCHEMA)
        with pytest.raises(BadRequestError, match="conversion"):
            validate_write_values({"conversion": float("nan")}, SCHEMA)

    @pytest.mark.parametrize("value, expected", [
        (True, True), ("TRUE", True), ("1", True), ("false", False), ("0", False),
    ])
    def test_boolean(self, value, expected):
        assert validate_write_values({"is_promo": value}, SCHEMA).values == [expected]

    @pytest.mark.parametrize("value", [1, "yes", "t"])
    def test_boolean_rejects(self, value):
        with pytest.raises(BadRequestError, match="is_promo"):
            validate_write_values({"is_promo": value}, SCHEMA)

    @pytest.mark.parametrize("value", ["2026-1-5", "2026-02-30", "05/01/2026", 20260105])
    def test_date_rejects(self, value):
        with pytest.raises(BadRequestError, match="week_start"):
            validate_write_values({"week_start": value}, SCHEMA)

    def test_uuid(self):
        value = "7f1b6f5e-3c1a-4b7e-9d2a-2b8f6c0e1a11"
        assert validate_write_values({"batch_id": value}, SCHEMA).values == [value]
        with pytest.raises(BadRequestError, match="batch_id"):
            validate_write_values({"batch_id": "7f1b6f5e-3c1a-0b7e-9d2a-2b8f6c0e1a11"}, SCHEMA)

    def test_date_and_uuid_are_trimmed(self):
        result = validate_write_values(
            {"week_start": " 2026-01-05 ", "batch_id": "\t7f1b6f5e-3c1a-4b7e-9d2a-2b8f6c0e1a11\n"},
            SCHEMA,
        )
        assert result.values == ["2026-01-05", "7f1b6f5e-3c1a-4b7e-9d2a-2b8f6c0e1a11"]

    def test_character_max_length(self):
        assert validate_write_values({"asin": "B0ABCDEFGH"}, SCHEMA).values == ["B0ABCDEFGH"]
        with pytest.raises(BadRequestError, match="最大长度"):
            validate_write_values({"asin": "B0ABCDEFGHI"}, SCHEMA)
        with pytest.raises(BadRequestError, match="ASIN"):
            validate_write_values({"asin": 123}, SCHEMA)

    def test_citext_is_character(self):
        assert validate_write_values({"tag": "hot"}, SCHEMA).values == ["hot"]

    def test_json_passthrough(self):
        payload = {"source": "import", "lines": [1, 2]}
        assert validate_write_values({"meta": payload}, SCHEMA).values == [payload]

    def test_timestamp_requires_non_empty_string(self):
        assert validate_write_values({"updated_at": "2026-01-05T10:00:00Z"}, SCHEMA).values == [
            "2026-01-05T10:00:00Z"
        ]
        with pytest.raises(BadRequestError, match="updated_at"):
            validate_write_values({"updated_at": "  "}, SCHEMA)

    def test_null_only_for_nullable(self):
        assert validate_write_values({"revenue": None}, SCHEMA).values == [None]
        with pytest.raises(BadRequestError, match="不能为空"):
            validate_write_values({"week_start": None}, SCHEMA)

    def test_unknown_column(self):
        with pytest.raises(BadRequestError, match="未知列: price"):
            validate_write_values({"price": 1}, SCHEMA)

    def test_column_outside_allow_list(self):
        """列存在且值合法，但不在白名单中"""
        with pytest.raises(BadRequestError, match="不允许写入"):
            validate_write_values({"revenue": 1}, SCHEMA, ["units_sold"])

    def test_allow_list_is_case_insensitive(self):
        result = validate_write_values({" Units_Sold ": 3}, SCHEMA, ["UNITS_SOLD"])
        assert result.columns == ["units_sold"]

    def test_duplicate_after_normalization(self):
        with pytest.raises(BadRequestError, match="重复的列"):
            validate_write_values({"asin": "a", "ASIN": "b"}, SCHEMA)

    def test_requires_values(self):
        with pytest.raises(BadRequestError, match="至少需要一个写入列"):
            validate_write_values({}, SCHEMA)
        with pytest.raises(BadRequestError, match="必须是对象"):
            validate_write_values(["asin"], SCHEMA)


class TestValidateWhereValues:
    """测试 WHERE 条件校验"""

    def test_where(self):
        result = validate_where_values({"id": 5, "week_start": "2026-01-05"}, SCHEMA)
        assert result.columns == ["id", "week_start"]
        assert result.values == ["5", "2026-01-05"]

    def test_where_ignores_allow_list(self):
        assert validate_where_values({"revenue": "1.5"}, SCHEMA).values == [Decimal("1.5")]

    def test_where_rejects_null(self):
        with pytest.raises(BadRequestError, match="不能为 NULL"):
            validate_where_values({"revenue": None}, SCHEMA)

    def test_where_requires_predicate(self):
        with pytest.raises(BadRequestError, match="至少需要一个WHERE 条件列"):
            validate_where_values({}, SCHEMA)


def test_other_types_pass_through():
    assert coerce_value(column("tags", "ARRAY", udt_name="_text"), ["a"]) == ["a"]
