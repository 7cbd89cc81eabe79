"""
数据库适配器工厂
按数据源类型做封闭分派
"""
from typing import Dict, Type
from .base import DatabaseAdapter
from .duckdb import DuckDBAdapter
from .mongodb import MongoDBAdapter
from .mysql import MySQLAdapter
from .postgresql import PostgreSQLAdapter
from .sqlite import SQLiteAdapter
from ..errors import BadRequestError

# 别名 -> 规范类型名
TYPE_ALIASES = {
    "postgres": "postgresql",
}


class DatabaseAdapterFactory:
    """数据库适配器工厂类"""

    # 注册的适配器映射
    _adapters: Dict[str, Type[DatabaseAdapter]] = {
        "postgresql": PostgreSQLAdapter,
        "mysql": MySQLAdapter,
        "sqlite": SQLiteAdapter,
        "duckdb": DuckDBAdapter,
        "mongodb": MongoDBAdapter,
    }

    @classmethod
    def normalize_type(cls, db_type: str) -> str:
        """规范化数据源类型名称（小写并解析别名）"""
        lowered = (db_type or "").strip().lower()
        return TYPE_ALIASES.get(lowered, lowered)

    @classmethod
    def get_adapter(cls, db_type: str) -> DatabaseAdapter:
        """
        根据数据源类型获取对应的适配器实例

        Args:
            db_type: 数据源类型，如 'postgresql', 'mysql', 'sqlite', 'duckdb', 'mongodb'

        Returns:
            数据库适配器实例

        Raises:
            BadRequestError: 如果数据源类型不支持
        """
        adapter_class = cls._adapters.get(cls.normalize_type(db_type))

        if not adapter_class:
            raise BadRequestError(f"不支持的数据源类型: {db_type}")

        return adapter_class()

    @classmethod
    def get_supported_types(cls) -> list:
        """
        获取所有支持的数据源类型

        Returns:
            支持的数据源类型列表
        """
        return list(cls._adapters.keys())

    @classmethod
    def is_supported(cls, db_type: str) -> bool:
        return cls.normalize_type(db_type) in cls._adapters
