"""
MongoDB适配器
查询文本只能是集合名，查询为带上限的 find
"""
import os
from contextlib import contextmanager
from typing import Dict, Any, List

from bson import ObjectId
from bson.decimal128 import Decimal128
from pymongo import MongoClient

from ..dto import QueryExecutionResult, TableRows
from ..errors import BadRequestError, NotFoundError
from .base import DatabaseAdapter, clamp_preview_limit, normalize_value, text_param
from ...utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_MS = 10000


def normalize_document(value: Any) -> Any:
    """递归转换文档中的 ObjectId、Decimal128 等不可序列化的值"""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {str(key): normalize_document(item) for key, item in value.items()}
    if isinstance(value, list):
        return [normalize_document(item) for item in value]
    if isinstance(value, Decimal128):
        return str(value)
    return normalize_value(value)


def documents_to_rows(documents) -> TableRows:
    """列为所有文档键的并集，按首次出现的顺序"""
    rows: List[Dict[str, Any]] = []
    columns: List[str] = []
    for document in documents:
        row = normalize_document(document)
        for key in row:
            if key not in columns:
                columns.append(key)
        rows.append(row)
    return TableRows(columns=columns, rows=rows)


def get_timeout_ms() -> int:
    raw = os.getenv("MONGODB_TIMEOUT_MS", "")
    return int(raw) if raw.isdigit() else DEFAULT_TIMEOUT_MS


class MongoDBAdapter(DatabaseAdapter):
    """MongoDB适配器（只读）"""

    accepts_sql = False

    @contextmanager
    def connect(self, connection: Dict[str, Any]):
        """打开客户端并返回数据库对象，退出时关闭客户端"""
        uri = text_param(connection, "uri")
        database = text_param(connection, "database")
        if not uri or not database:
            raise BadRequestError("MongoDB 连接需要 uri 和 database")

        client = MongoClient(uri, serverSelectionTimeoutMS=get_timeout_ms())
        try:
            yield client[database]
        finally:
            client.close()

    def list_tables(self, connection: Dict[str, Any]) -> List[str]:
        with self.connect(connection) as db:
            return sorted(db.list_collection_names())

    def parse_collection_name(self, value: str) -> str:
        name = (value or "").strip()
        if not name:
            raise BadRequestError("集合名不能为空")
        if any(char.isspace() for char in name):
            raise BadRequestError("MongoDB 查询文本必须是集合名")
        return name

    def get_rows(self, connection: Dict[str, Any], table: str, limit: int = 50) -> TableRows:
        collection = self.parse_collection_name(table)
        safe_limit = clamp_preview_limit(limit)

        with self.connect(connection) as db:
            if collection not in db.list_collection_names():
                raise NotFoundError("集合不存在")
            return documents_to_rows(db[collection].find({}).limit(safe_limit))

    def run_query(
        self,
        connection: Dict[str, Any],
        query_text: str,
        parameters: Dict[str, Any],
        limit: int
    ) -> QueryExecutionResult:
        collection = self.parse_collection_name(query_text)

        with self.connect(connection) as db:
            result = documents_to_rows(db[collection].find({}).limit(limit))

        logger.debug(f"MongoDB 查询集合 {collection}，返回 {len(result.rows)} 条文档")
        return QueryExecutionResult(rows=result.rows, columns=result.columns, row_count=len(result.rows))
