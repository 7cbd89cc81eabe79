"""
编辑者及其权限模型
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from .base import Base, TimestampMixin, utcnow


class EditorUser(Base, TimestampMixin):
    """编辑者表"""
    __tablename__ = "editor_users"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<EditorUser(id={self.id}, email={self.email})>"


class EditorDashboardAccess(Base):
    """编辑者可查看的仪表盘"""
    __tablename__ = "editor_dashboard_access"

    editor_user_id = Column(
        String(36),
        ForeignKey("editor_users.id", ondelete="CASCADE"),
        primary_key=True
    )
    dashboard_id = Column(String(36), primary_key=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class EditorTablePermission(Base):
    """编辑者可写入的表"""
    __tablename__ = "editor_table_permissions"

    editor_user_id = Column(
        String(36),
        ForeignKey("editor_users.id", ondelete="CASCADE"),
        primary_key=True
    )
    writable_table_id = Column(
        String(36),
        ForeignKey("writable_tables.id", ondelete="CASCADE"),
        primary_key=True
    )
    created_at = Column(DateTime, default=utcnow, nullable=False)
