"""
编辑者管理
"""
import re
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from .errors import BadRequestError, ConflictError, NotFoundError
from ..database import Database, get_database
from ..models.editor import EditorUser
from ..utils.logger import get_logger

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def to_editor_dict(editor: EditorUser) -> Dict[str, Any]:
    return {
        "id": editor.id,
        "email": editor.email,
        "name": editor.name,
        "is_active": editor.is_active,
        "created_at": editor.created_at,
        "updated_at": editor.updated_at,
    }


class EditorService:
    """编辑者服务类"""

    def __init__(self, database: Optional[Database] = None):
        self.db = database or get_database()

    def list_editors(self) -> List[Dict[str, Any]]:
        with self.db.get_session() as session:
            return [to_editor_dict(editor) for editor in session.query(EditorUser).order_by(EditorUser.email)]

    def get_editor(self, editor_id: str) -> Dict[str, Any]:
        with self.db.get_session() as session:
            editor = session.get(EditorUser, editor_id)
            if editor is None:
                raise NotFoundError("编辑者不存在")
            return to_editor_dict(editor)

    def create_editor(self, email: str, name: Optional[str] = None, is_active: bool = True) -> Dict[str, Any]:
        """
        创建编辑者

        Raises:
            BadRequestError: 邮箱格式错误
            ConflictError: 邮箱已存在
        """
        normalized = (email or "").strip().lower()
        if not EMAIL_PATTERN.match(normalized):
            raise BadRequestError("邮箱格式不正确")

        editor = EditorUser(
            id=str(uuid.uuid4()),
            email=normalized,
            name=name.strip() if name else None,
            is_active=is_active,
        )
        try:
            with self.db.get_session() as session:
                session.add(editor)
                session.flush()
                result = to_editor_dict(editor)
        except IntegrityError:
            raise ConflictError("邮箱已存在")

        logger.info(f"编辑者创建成功: id={editor.id}")
        return result

    def set_active(self, editor_id: str, is_active: bool) -> Dict[str, Any]:
        with self.db.get_session() as session:
            editor = session.get(EditorUser, editor_id)
            if editor is None:
                raise NotFoundError("编辑者不存在")
            editor.is_active = is_active
            session.flush()
            return to_editor_dict(editor)
