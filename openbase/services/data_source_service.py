"""
数据源服务
管理数据源配置，对引擎透明地解密连接描述
"""
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from .database_adapters import DatabaseAdapterFactory
from .dto import ConnectionTestResult, DataSourceRecord, TableRows
from .encryption_service import EncryptionService, get_encryption_service
from .errors import BadRequestError, ConflictError, EngineError, NotFoundError
from ..database import Database, get_database
from ..models.base import utcnow
from ..models.data_source import DataSource
from ..models.writable_table import WritableTable
from ..utils.logger import get_logger, log_database_connection_error

logger = get_logger(__name__)

FILE_BACKED_TYPES = ("sqlite", "duckdb")
SQL_SERVER_TYPES = ("postgresql", "mysql")


def _has_text(connection: Dict[str, Any], key: str) -> bool:
    value = connection.get(key)
    return isinstance(value, str) and bool(value.strip())


def validate_connection(data_source_type: str, connection: Any) -> Dict[str, Any]:
    """
    按数据源类型校验连接描述的形状

    sqlite/duckdb: {filepath}；mongodb: {uri, database}；
    postgresql/mysql: {connectionString|uri|url} 或 {host, port?, user, password?, database}

    Returns:
        规范化后的类型名不变的连接描述

    Raises:
        BadRequestError: 类型不支持或缺少必填字段
    """
    if not isinstance(connection, dict):
        raise BadRequestError("连接描述必须是对象")

    db_type = DatabaseAdapterFactory.normalize_type(data_source_type)
    if not DatabaseAdapterFactory.is_supported(db_type):
        raise BadRequestError(f"不支持的数据源类型: {data_source_type}")

    if db_type in FILE_BACKED_TYPES:
        if not _has_text(connection, "filepath"):
            raise BadRequestError("缺少 filepath")
    elif db_type == "mongodb":
        if not _has_text(connection, "uri") or not _has_text(connection, "database"):
            raise BadRequestError("MongoDB 需要 uri 和 database")
    else:
        has_url = any(_has_text(connection, key) for key in ("connectionString", "uri", "url"))
        has_fields = all(_has_text(connection, key) for key in ("host", "user", "database"))
        if not has_url and not has_fields:
            raise BadRequestError("需要连接字符串或 host/user/database")

    return connection


class DataSourceService:
    """数据源服务类"""

    def __init__(
        self,
        database: Optional[Database] = None,
        encryption_service: Optional[EncryptionService] = None
    ):
        self.db = database or get_database()
        self.encryption = encryption_service or get_encryption_service()

    def _to_record(self, model: DataSource) -> DataSourceRecord:
        return DataSourceRecord(
            id=model.id,
            name=model.name,
            type=model.type,
            connection=self.encryption.decrypt_connection(model.connection, model.connection_encrypted),
            is_active=model.is_active,
            created_at=model.created_at,
            last_sync_at=model.last_sync_at,
        )

    def list_data_sources(self) -> List[DataSourceRecord]:
        with self.db.get_session() as session:
            models = session.query(DataSource).order_by(DataSource.created_at.desc()).all()
            return [self._to_record(model) for model in models]

    def get_data_source(self, data_source_id: str) -> DataSourceRecord:
        """
        获取解密后的数据源

        Raises:
            NotFoundError: 数据源不存在
        """
        with self.db.get_session() as session:
            model = session.get(DataSource, data_source_id)
            if model is None:
                raise NotFoundError("数据源不存在")
            return self._to_record(model)

    def get_active_data_source(self, data_source_id: str) -> DataSourceRecord:
        """获取数据源并确认已启用（未启用时不尝试连接）"""
        record = self.get_data_source(data_source_id)
        if not record.is_active:
            raise BadRequestError("数据源未启用")
        return record

    def create_data_source(
        self,
        name: str,
        data_source_type: str,
        connection: Dict[str, Any],
        is_active: bool = True
    ) -> DataSourceRecord:
        if not name or not name.strip():
            raise BadRequestError("数据源名称不能为空")

        db_type = DatabaseAdapterFactory.normalize_type(data_source_type)
        validate_connection(db_type, connection)
        stored, encrypted = self.encryption.encrypt_connection(connection)

        model = DataSource(
            id=str(uuid.uuid4()),
            name=name.strip(),
            type=db_type,
            connection=stored,
            connection_encrypted=encrypted,
            is_active=is_active,
        )
        with self.db.get_session() as session:
            session.add(model)
            session.flush()
            record = self._to_record(model)

        logger.info(f"数据源创建成功: id={record.id}, type={record.type}, encrypted={encrypted}")
        return record

    def _has_writable_tables(self, session, data_source_id: str) -> bool:
        return session.query(WritableTable.id).filter(
            WritableTable.data_source_id == data_source_id
        ).first() is not None

    def update_data_source(
        self,
        data_source_id: str,
        name: Optional[str] = None,
        data_source_type: Optional[str] = None,
        connection: Optional[Dict[str, Any]] = None,
        is_active: Optional[bool] = None
    ) -> DataSourceRecord:
        with self.db.get_session() as session:
            model = session.get(DataSource, data_source_id)
            if model is None:
                raise NotFoundError("数据源不存在")

            if name is not None:
                if not name.strip():
                    raise BadRequestError("数据源名称不能为空")
                model.name = name.strip()

            db_type = DatabaseAdapterFactory.normalize_type(data_source_type or model.type)
            if db_type != model.type and self._has_writable_tables(session, data_source_id):
                raise ConflictError("数据源仍被可写表引用，不能修改类型")
            if connection is not None or db_type != model.type:
                if connection is None:
                    connection = self.encryption.decrypt_connection(model.connection, model.connection_encrypted)
                validate_connection(db_type, connection)
                model.type = db_type
                model.connection, model.connection_encrypted = self.encryption.encrypt_connection(connection)

            if is_active is not None:
                model.is_active = is_active

            session.flush()
            record = self._to_record(model)

        logger.info(f"数据源更新成功: id={data_source_id}")
        return record

    def delete_data_source(self, data_source_id: str):
        """
        删除数据源

        Raises:
            NotFoundError: 数据源不存在
            ConflictError: 仍被常用查询或可写表引用
        """
        try:
            with self.db.get_session() as session:
                model = session.get(DataSource, data_source_id)
                if model is None:
                    raise NotFoundError("数据源不存在")
                session.delete(model)
                session.flush()
        except IntegrityError:
            raise ConflictError("数据源仍被常用查询或可写表引用，无法删除")

        logger.info(f"数据源已删除: id={data_source_id}")

    def mark_synced(self, data_source_id: str):
        with self.db.get_session() as session:
            model = session.get(DataSource, data_source_id)
            if model is not None:
                model.last_sync_at = utcnow()

    def list_tables(self, data_source_id: str) -> List[str]:
        record = self.get_active_data_source(data_source_id)
        adapter = DatabaseAdapterFactory.get_adapter(record.type)
        return adapter.list_tables(record.connection)

    def get_rows(self, data_source_id: str, table: str, limit: Any = None) -> TableRows:
        record = self.get_active_data_source(data_source_id)
        adapter = DatabaseAdapterFactory.get_adapter(record.type)
        return adapter.get_rows(record.connection, table, limit)

    def test_connection(self, data_source_id: str) -> ConnectionTestResult:
        """
        测试连接，成功时更新 last_sync_at

        驱动/网络错误作为 ok=False 返回
        """
        record = self.get_data_source(data_source_id)
        adapter = DatabaseAdapterFactory.get_adapter(record.type)

        try:
            result = adapter.test_connection(record.connection)
        except EngineError:
            raise
        except Exception as e:
            log_database_connection_error(logger, record.type, record.connection, e)
            return ConnectionTestResult(ok=False, error=str(e))

        self.mark_synced(data_source_id)
        return result

    def migrate_encryption(self) -> int:
        """
        把明文存储的连接描述重新加密存储

        Returns:
            迁移的数据源数量

        Raises:
            BadRequestError: 未配置 ENCRYPTION_KEY
        """
        if not self.encryption.enabled:
            raise BadRequestError("未配置 ENCRYPTION_KEY，无法迁移")

        migrated = 0
        with self.db.get_session() as session:
            for model in session.query(DataSource).filter(DataSource.connection_encrypted.is_(False)).all():
                connection = self.encryption.decrypt_connection(model.connection, False)
                model.connection, model.connection_encrypted = self.encryption.encrypt_connection(connection)
                migrated += 1

        logger.info(f"连接描述加密迁移完成: migrated={migrated}")
        return migrated
