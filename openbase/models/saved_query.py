"""
常用查询模型
"""
from sqlalchemy import Column, String, Text, ForeignKey
from .base import Base, TimestampMixin


class SavedQuery(Base, TimestampMixin):
    """常用查询表"""
    __tablename__ = "saved_queries"

    id = Column(String(36), primary_key=True)
    data_source_id = Column(
        String(36),
        ForeignKey("data_sources.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    query_text = Column(Text, nullable=False)  # 命名参数SQL，MongoDB为集合名
    parameters = Column(Text, nullable=False, default="{}")  # JSON: {"variables": [...]}

    def __repr__(self):
        return f"<SavedQuery(id={self.id}, name={self.name})>"
