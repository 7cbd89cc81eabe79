"""
可写表模型
"""
from sqlalchemy import Column, String, Text, Boolean, ForeignKey, UniqueConstraint
from .base import Base, TimestampMixin


class WritableTable(Base, TimestampMixin):
    """可写表配置表（只能引用 PostgreSQL 数据源）"""
    __tablename__ = "writable_tables"
    __table_args__ = (
        UniqueConstraint("data_source_id", "table_name", name="uq_writable_table_source_table"),
    )

    id = Column(String(36), primary_key=True)
    data_source_id = Column(
        String(36),
        ForeignKey("data_sources.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    table_name = Column(String(255), nullable=False)  # table 或 schema.table
    allowed_columns = Column(Text, nullable=True)  # JSON array，NULL 表示所有列
    allow_insert = Column(Boolean, default=True, nullable=False)
    allow_update = Column(Boolean, default=True, nullable=False)
    description = Column(Text, nullable=True)

    def __repr__(self):
        return f"<WritableTable(id={self.id}, table_name={self.table_name})>"
