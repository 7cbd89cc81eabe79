"""
审计日志模型
"""
from sqlalchemy import Column, String, Text, DateTime
from .base import Base, utcnow


class AuditLog(Base):
    """审计日志表（只追加）"""
    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True)
    actor_id = Column(String(36), nullable=True, index=True)
    actor_type = Column(String(20), nullable=False)  # admin, editor, system
    action = Column(String(100), nullable=False)  # write.insert, write.update, ...
    resource = Column(String(255), nullable=True)  # writable_table:<id>
    details = Column(Text, nullable=True)  # JSON
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action={self.action})>"
