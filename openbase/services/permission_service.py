"""
RBAC 权限服务
编辑者 -> 仪表盘（查看）与 编辑者 -> 可写表（写入）两组多对多关系，没有记录即拒绝
"""
import json
from typing import Dict, Iterable, List, Optional

from .dto import TablePermission, WritableTableConfig
from .errors import BadRequestError, NotFoundError
from ..database import Database, get_database
from ..models.data_source import DataSource
from ..models.editor import EditorDashboardAccess, EditorTablePermission, EditorUser
from ..models.writable_table import WritableTable
from ..utils.logger import get_logger

logger = get_logger(__name__)


def to_writable_table_config(
    table: WritableTable,
    data_source: Optional[DataSource] = None
) -> WritableTableConfig:
    """ORM 对象转换为可写表配置"""
    return WritableTableConfig(
        id=table.id,
        data_source_id=table.data_source_id,
        data_source_name=data_source.name if data_source else None,
        data_source_type=data_source.type if data_source else None,
        table_name=table.table_name,
        allowed_columns=json.loads(table.allowed_columns) if table.allowed_columns else None,
        allow_insert=table.allow_insert,
        allow_update=table.allow_update,
        description=table.description,
        created_at=table.created_at,
        updated_at=table.updated_at,
    )


class PermissionService:
    """权限服务类"""

    def __init__(self, database: Optional[Database] = None):
        self.db = database or get_database()

    def _is_active_editor(self, session, editor_id: str) -> bool:
        editor = session.get(EditorUser, editor_id)
        return editor is not None and editor.is_active

    def can_editor_write_to_table(self, editor_id: str, writable_table_id: str) -> TablePermission:
        """
        检查编辑者能否写入可写表

        只有存在显式权限记录时才允许；允许时附带可写表配置。
        调用方还需要检查 allow_insert/allow_update 以及数据源状态。
        """
        with self.db.get_session() as session:
            if not self._is_active_editor(session, editor_id):
                return TablePermission(allowed=False)

            permission = session.get(EditorTablePermission, (editor_id, writable_table_id))
            if permission is None:
                return TablePermission(allowed=False)

            table = session.get(WritableTable, writable_table_id)
            if table is None:
                return TablePermission(allowed=False)

            data_source = session.get(DataSource, table.data_source_id)
            return TablePermission(allowed=True, config=to_writable_table_config(table, data_source))

    def can_editor_view_dashboard(self, editor_id: str, dashboard_id: str) -> bool:
        with self.db.get_session() as session:
            if not self._is_active_editor(session, editor_id):
                return False
            return session.get(EditorDashboardAccess, (editor_id, dashboard_id)) is not None

    def get_editor_writable_tables(self, editor_id: str) -> List[WritableTableConfig]:
        """获取编辑者有写权限的所有可写表"""
        with self.db.get_session() as session:
            if not self._is_active_editor(session, editor_id):
                return []

            rows = (
                session.query(WritableTable, DataSource)
                .join(EditorTablePermission, EditorTablePermission.writable_table_id == WritableTable.id)
                .join(DataSource, DataSource.id == WritableTable.data_source_id)
                .filter(EditorTablePermission.editor_user_id == editor_id)
                .order_by(WritableTable.table_name)
                .all()
            )
            return [to_writable_table_config(table, data_source) for table, data_source in rows]

    def get_editor_permission_ids(self, editor_id: str) -> Dict[str, List[str]]:
        with self.db.get_session() as session:
            if session.get(EditorUser, editor_id) is None:
                raise NotFoundError("编辑者不存在")

            dashboard_ids = [
                row.dashboard_id
                for row in session.query(EditorDashboardAccess)
                .filter(EditorDashboardAccess.editor_user_id == editor_id)
                .order_by(EditorDashboardAccess.dashboard_id)
            ]
            writable_table_ids = [
                row.writable_table_id
                for row in session.query(EditorTablePermission)
                .filter(EditorTablePermission.editor_user_id == editor_id)
                .order_by(EditorTablePermission.writable_table_id)
            ]

        return {"dashboard_ids": dashboard_ids, "writable_table_ids": writable_table_ids}

    def replace_editor_permissions(
        self,
        editor_id: str,
        dashboard_ids: Iterable[str],
        writable_table_ids: Iterable[str]
    ) -> Dict[str, List[str]]:
        """
        在一个事务中替换编辑者的全部权限

        Raises:
            NotFoundError: 编辑者不存在
            BadRequestError: 引用了不存在的可写表
        """
        dashboard_ids = sorted({str(item).strip() for item in dashboard_ids if str(item).strip()})
        writable_table_ids = sorted({str(item).strip() for item in writable_table_ids if str(item).strip()})

        with self.db.get_session() as session:
            if session.get(EditorUser, editor_id) is None:
                raise NotFoundError("编辑者不存在")

            if writable_table_ids:
                existing = {
                    table_id
                    for (table_id,) in session.query(WritableTable.id)
                    .filter(WritableTable.id.in_(writable_table_ids))
                }
                missing = [table_id for table_id in writable_table_ids if table_id not in existing]
                if missing:
                    raise BadRequestError(f"可写表不存在: {', '.join(missing)}")

            session.query(EditorDashboardAccess).filter(
                EditorDashboardAccess.editor_user_id == editor_id
            ).delete(synchronize_session=False)
            session.query(EditorTablePermission).filter(
                EditorTablePermission.editor_user_id == editor_id
            ).delete(synchronize_session=False)

            session.add_all(
                EditorDashboardAccess(editor_user_id=editor_id, dashboard_id=dashboard_id)
                for dashboard_id in dashboard_ids
            )
            session.add_all(
                EditorTablePermission(editor_user_id=editor_id, writable_table_id=table_id)
                for table_id in writable_table_ids
            )

        logger.info(
            f"编辑者权限已更新: editor={editor_id}, "
            f"dashboards={len(dashboard_ids)}, tables={len(writable_table_ids)}"
        )
        return {"dashboard_ids": dashboard_ids, "writable_table_ids": writable_table_ids}
