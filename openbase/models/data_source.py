"""
数据源模型
"""
from sqlalchemy import Column, String, Text, Boolean, DateTime
from .base import Base, TimestampMixin


class DataSource(Base, TimestampMixin):
    """数据源表"""
    __tablename__ = "data_sources"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False)  # postgresql, mysql, sqlite, duckdb, mongodb
    connection = Column(Text, nullable=False)  # JSON 或 Fernet 密文
    connection_encrypted = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_sync_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<DataSource(id={self.id}, name={self.name}, type={self.type})>"
