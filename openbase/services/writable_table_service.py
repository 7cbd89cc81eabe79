"""
可写表配置管理
"""
import json
import uuid
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError

from .database_adapters.base import IDENTIFIER_PATTERN, parse_table_reference
from .dto import WritableTableConfig
from .errors import BadRequestError, ConflictError, NotFoundError
from .permission_service import to_writable_table_config
from ..database import Database, get_database
from ..models.data_source import DataSource
from ..models.writable_table import WritableTable
from ..utils.logger import get_logger

logger = get_logger(__name__)

_UNSET = object()


def normalize_allowed_columns(allowed_columns: Any) -> Optional[List[str]]:
    """
    校验列白名单

    None 表示所有列；否则必须是合法标识符组成的列表（去重，保持顺序）
    """
    if allowed_columns is None:
        return None
    if not isinstance(allowed_columns, list):
        raise BadRequestError("allowed_columns 必须是列表或 null")

    columns: List[str] = []
    for column in allowed_columns:
        if not isinstance(column, str) or not IDENTIFIER_PATTERN.match(column.strip()):
            raise BadRequestError(f"非法的列名: {column}")
        if column.strip() not in columns:
            columns.append(column.strip())
    return columns


def normalize_table_name(table_name: str) -> str:
    schema, table = parse_table_reference(table_name, None)
    return f"{schema}.{table}" if schema else table


class WritableTableService:
    """可写表服务类"""

    def __init__(self, database: Optional[Database] = None):
        self.db = database or get_database()

    def _require_postgresql_source(self, session, data_source_id: str) -> DataSource:
        data_source = session.get(DataSource, data_source_id)
        if data_source is None:
            raise NotFoundError("数据源不存在")
        if data_source.type != "postgresql":
            raise BadRequestError("可写表只支持 PostgreSQL 数据源")
        return data_source

    def list_tables(self) -> List[WritableTableConfig]:
        with self.db.get_session() as session:
            rows = (
                session.query(WritableTable, DataSource)
                .join(DataSource, DataSource.id == WritableTable.data_source_id)
                .order_by(WritableTable.table_name)
                .all()
            )
            return [to_writable_table_config(table, data_source) for table, data_source in rows]

    def get_table(self, writable_table_id: str) -> WritableTableConfig:
        with self.db.get_session() as session:
            table = session.get(WritableTable, writable_table_id)
            if table is None:
                raise NotFoundError("可写表不存在")
            return to_writable_table_config(table, session.get(DataSource, table.data_source_id))

    def create_table(
        self,
        data_source_id: str,
        table_name: str,
        allowed_columns: Optional[List[str]] = None,
        allow_insert: bool = True,
        allow_update: bool = True,
        description: Optional[str] = None
    ) -> WritableTableConfig:
        """
        创建可写表配置

        Raises:
            NotFoundError: 数据源不存在
            BadRequestError: 数据源不是 PostgreSQL，或表名/列名非法
            ConflictError: 同一数据源下已存在该表
        """
        table = WritableTable(
            id=str(uuid.uuid4()),
            data_source_id=data_source_id,
            table_name=normalize_table_name(table_name),
            allowed_columns=None,
            allow_insert=allow_insert,
            allow_update=allow_update,
            description=description,
        )
        columns = normalize_allowed_columns(allowed_columns)
        if columns is not None:
            table.allowed_columns = json.dumps(columns)

        try:
            with self.db.get_session() as session:
                data_source = self._require_postgresql_source(session, data_source_id)
                session.add(table)
                session.flush()
                config = to_writable_table_config(table, data_source)
        except IntegrityError:
            raise ConflictError("该数据源下已存在同名可写表")

        logger.info(f"可写表创建成功: id={config.id}, table={config.table_name}")
        return config

    def update_table(
        self,
        writable_table_id: str,
        table_name: Optional[str] = None,
        allowed_columns: Any = _UNSET,
        allow_insert: Optional[bool] = None,
        allow_update: Optional[bool] = None,
        description: Any = _UNSET
    ) -> WritableTableConfig:
        try:
            with self.db.get_session() as session:
                table = session.get(WritableTable, writable_table_id)
                if table is None:
                    raise NotFoundError("可写表不存在")
                data_source = self._require_postgresql_source(session, table.data_source_id)

                if table_name is not None:
                    table.table_name = normalize_table_name(table_name)
                if allowed_columns is not _UNSET:
                    columns = normalize_allowed_columns(allowed_columns)
                    table.allowed_columns = json.dumps(columns) if columns is not None else None
                if allow_insert is not None:
                    table.allow_insert = allow_insert
                if allow_update is not None:
                    table.allow_update = allow_update
                if description is not _UNSET:
                    table.description = description

                session.flush()
                config = to_writable_table_config(table, data_source)
        except IntegrityError:
            raise ConflictError("该数据源下已存在同名可写表")

        logger.info(f"可写表更新成功: id={writable_table_id}")
        return config

    def delete_table(self, writable_table_id: str):
        with self.db.get_session() as session:
            table = session.get(WritableTable, writable_table_id)
            if table is None:
                raise NotFoundError("可写表不存在")
            session.delete(table)

        logger.info(f"可写表已删除: id={writable_table_id}")
