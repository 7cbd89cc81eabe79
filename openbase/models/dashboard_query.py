"""
仪表盘模块与常用查询的绑定
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from .base import Base, utcnow


class DashboardQuery(Base):
    """仪表盘上的查询模块（模块配置中包含 limit/row_limit）"""
    __tablename__ = "dashboard_queries"

    dashboard_id = Column(String(36), primary_key=True)
    saved_query_id = Column(
        String(36),
        ForeignKey("saved_queries.id", ondelete="CASCADE"),
        primary_key=True
    )
    config = Column(Text, nullable=False, default="{}")  # JSON 模块配置
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<DashboardQuery(dashboard={self.dashboard_id}, query={self.saved_query_id})>"
