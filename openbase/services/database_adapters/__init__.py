"""
数据库适配器模块
提供统一的数据库访问接口，支持 PostgreSQL、MySQL、SQLite、DuckDB 和 MongoDB
"""
from .base import DatabaseAdapter, parse_table_reference, quote_identifier
from .factory import DatabaseAdapterFactory
from .duckdb import DuckDBAdapter
from .mongodb import MongoDBAdapter
from .mysql import MySQLAdapter
from .postgresql import PostgreSQLAdapter
from .sqlite import SQLiteAdapter

__all__ = [
    'DatabaseAdapter',
    'DatabaseAdapterFactory',
    'DuckDBAdapter',
    'MongoDBAdapter',
    'MySQLAdapter',
    'PostgreSQLAdapter',
    'SQLiteAdapter',
    'parse_table_reference',
    'quote_identifier',
]
