"""
可写表写入服务
RBAC -> 插入/更新开关 -> 数据源检查 -> 实时表结构 -> 值校验 -> 构建语句 -> 执行 -> 审计
"""
from typing import Any, Callable, Dict, List, Optional

from .audit_service import AuditService
from .data_source_service import DataSourceService
from .database_adapters import PostgreSQLAdapter
from .dto import ColumnSchema, DataSourceRecord, TableRows, WritableTableConfig, WriteResult
from .errors import BadRequestError, ForbiddenError
from .permission_service import PermissionService
from .table_schema import get_table_schema
from .write_query_builder import build_insert_query, build_update_query
from .write_validators import validate_where_values, validate_write_values
from ..database import Database, get_database
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TableWriteService:
    """可写表写入服务类"""

    def __init__(
        self,
        database: Optional[Database] = None,
        permission_service: Optional[PermissionService] = None,
        data_source_service: Optional[DataSourceService] = None,
        audit_service: Optional[AuditService] = None,
        adapter: Optional[PostgreSQLAdapter] = None,
        schema_loader: Callable[..., List[ColumnSchema]] = get_table_schema
    ):
        self.db = database or get_database()
        self.permissions = permission_service or PermissionService(self.db)
        self.data_sources = data_source_service or DataSourceService(self.db)
        self.audit = audit_service or AuditService(self.db)
        self.adapter = adapter or PostgreSQLAdapter()
        self.schema_loader = schema_loader

    def _authorize(self, editor_id: str, writable_table_id: str) -> WritableTableConfig:
        permission = self.permissions.can_editor_write_to_table(editor_id, writable_table_id)
        if not permission.allowed or permission.config is None:
            logger.warning(f"写权限被拒绝: editor={editor_id}, table={writable_table_id}")
            raise ForbiddenError("无权访问该可写表")
        return permission.config

    def _get_data_source(self, config: WritableTableConfig) -> DataSourceRecord:
        data_source = self.data_sources.get_active_data_source(config.data_source_id)
        if data_source.type != "postgresql":
            raise BadRequestError("可写表只支持 PostgreSQL 数据源")
        return data_source

    def _load_schema(self, data_source: DataSourceRecord, config: WritableTableConfig) -> List[ColumnSchema]:
        return self.schema_loader(data_source.connection, config.table_name, adapter=self.adapter)

    def get_table_schema(self, editor_id: str, writable_table_id: str) -> List[ColumnSchema]:
        """返回编辑者可写的列（按白名单过滤）"""
        config = self._authorize(editor_id, writable_table_id)
        data_source = self._get_data_source(config)
        schema = self._load_schema(data_source, config)

        if config.allowed_columns is None:
            return schema
        allowed = {name.lower() for name in config.allowed_columns}
        return [column for column in schema if column.column_name.lower() in allowed]

    def get_rows(self, editor_id: str, writable_table_id: str, limit: Any = None) -> TableRows:
        config = self._authorize(editor_id, writable_table_id)
        data_source = self._get_data_source(config)
        return self.adapter.get_rows(data_source.connection, config.table_name, limit)

    def insert_row(
        self,
        editor_id: str,
        writable_table_id: str,
        values: Dict[str, Any],
        ip_address: Optional[str] = None
    ) -> WriteResult:
        """
        插入一行

        Raises:
            ForbiddenError: 无权限或该表不允许插入
            BadRequestError: 数据源未启用/不是 PostgreSQL，或值校验失败
            NotFoundError: 表结构不存在
        """
        config = self._authorize(editor_id, writable_table_id)
        if not config.allow_insert:
            raise ForbiddenError("该表不允许插入")
        data_source = self._get_data_source(config)

        schema = self._load_schema(data_source, config)
        validated = validate_write_values(values, schema, config.allowed_columns)
        query = build_insert_query(config.table_name, validated.columns, validated.values)

        result = self.adapter.execute_write(data_source.connection, query)
        logger.info(f"插入成功: table={config.table_name}, editor={editor_id}, rows={result.row_count}")

        self.audit.record(
            actor_id=editor_id,
            actor_type="editor",
            action="write.insert",
            resource=f"writable_table:{writable_table_id}",
            details={
                "dataSourceId": config.data_source_id,
                "tableName": config.table_name,
                "columns": validated.columns,
            },
            ip_address=ip_address,
        )
        return result

    def update_rows(
        self,
        editor_id: str,
        writable_table_id: str,
        values: Dict[str, Any],
        where: Dict[str, Any],
        ip_address: Optional[str] = None
    ) -> WriteResult:
        """按等值条件更新行"""
        config = self._authorize(editor_id, writable_table_id)
        if not config.allow_update:
            raise ForbiddenError("该表不允许更新")
        data_source = self._get_data_source(config)

        schema = self._load_schema(data_source, config)
        validated = validate_write_values(values, schema, config.allowed_columns)
        validated_where = validate_where_values(where, schema)
        query = build_update_query(
            config.table_name,
            validated.columns,
            validated.values,
            validated_where.columns,
            validated_where.values,
        )

        result = self.adapter.execute_write(data_source.connection, query)
        logger.info(f"更新成功: table={config.table_name}, editor={editor_id}, rows={result.row_count}")

        self.audit.record(
            actor_id=editor_id,
            actor_type="editor",
            action="write.update",
            resource=f"writable_table:{writable_table_id}",
            details={
                "dataSourceId": config.data_source_id,
                "tableName": config.table_name,
                "columns": validated.columns,
                "whereColumns": validated_where.columns,
            },
            ip_address=ip_address,
        )
        return result
