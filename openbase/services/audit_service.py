"""
审计日志服务
"""
import json
import uuid
from typing import Any, Dict, List, Optional

from ..database import Database, get_database
from ..models.audit_log import AuditLog
from ..utils.logger import get_logger

logger = get_logger(__name__)

ACTOR_TYPES = ("admin", "editor", "system")


class AuditService:
    """审计日志服务类（只追加）"""

    def __init__(self, database: Optional[Database] = None):
        self.db = database or get_database()

    def record(
        self,
        actor_id: Optional[str],
        actor_type: str,
        action: str,
        resource: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None
    ) -> str:
        """
        写入一条审计记录

        Returns:
            审计记录ID
        """
        if actor_type not in ACTOR_TYPES:
            raise ValueError(f"未知的操作者类型: {actor_type}")

        entry = AuditLog(
            id=str(uuid.uuid4()),
            actor_id=actor_id,
            actor_type=actor_type,
            action=action,
            resource=resource,
            details=json.dumps(details, ensure_ascii=False, default=str) if details is not None else None,
            ip_address=ip_address,
        )
        with self.db.get_session() as session:
            session.add(entry)

        logger.info(f"审计: actor={actor_type}:{actor_id}, action={action}, resource={resource}")
        return entry.id

    def list_entries(self, resource: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        with self.db.get_session() as session:
            query = session.query(AuditLog)
            if resource:
                query = query.filter(AuditLog.resource == resource)
            entries = query.order_by(AuditLog.created_at.desc()).limit(limit).all()
            return [
                {
                    "id": entry.id,
                    "actor_id": entry.actor_id,
                    "actor_type": entry.actor_type,
                    "action": entry.action,
                    "resource": entry.resource,
                    "details": json.loads(entry.details) if entry.details else None,
                    "ip_address": entry.ip_address,
                    "created_at": entry.created_at,
                }
                for entry in entries
            ]
