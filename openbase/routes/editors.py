"""
编辑者管理API路由（管理员使用）
"""
from typing import List, Optional
from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from ..services.editor_service import EditorService
from ..services.errors import EngineError
from ..services.permission_service import PermissionService
from ..utils.logger import get_logger
from .common import internal_error, to_iso_string

logger = get_logger(__name__)
router = APIRouter(prefix="/api/editors", tags=["editors"])


class CreateEditorRequest(BaseModel):
    email: str
    name: Optional[str] = None
    is_active: bool = True


class UpdateEditorRequest(BaseModel):
    is_active: bool


class EditorResponse(BaseModel):
    id: str
    email: str
    name: Optional[str]
    is_active: bool
    created_at: Optional[str]
    updated_at: Optional[str]


class EditorPermissions(BaseModel):
    """编辑者权限：可查看的仪表盘和可写入的表"""
    dashboard_ids: List[str] = Field(default_factory=list)
    writable_table_ids: List[str] = Field(default_factory=list)


def to_response(editor: dict) -> EditorResponse:
    return EditorResponse(
        **{
            **editor,
            "created_at": to_iso_string(editor["created_at"]),
            "updated_at": to_iso_string(editor["updated_at"]),
        }
    )


@router.post("", response_model=EditorResponse, status_code=status.HTTP_201_CREATED)
def create_editor(request: CreateEditorRequest):
    try:
        return to_response(EditorService().create_editor(request.email, request.name, request.is_active))
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "创建编辑者", e)


@router.get("", response_model=List[EditorResponse])
def list_editors():
    try:
        return [to_response(editor) for editor in EditorService().list_editors()]
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "获取编辑者列表", e)


@router.get("/{editor_id}", response_model=EditorResponse)
def get_editor(editor_id: str):
    try:
        return to_response(EditorService().get_editor(editor_id))
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "获取编辑者", e, {"editor_id": editor_id})


@router.put("/{editor_id}", response_model=EditorResponse)
def update_editor(editor_id: str, request: UpdateEditorRequest):
    """启用或停用编辑者"""
    try:
        return to_response(EditorService().set_active(editor_id, request.is_active))
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "更新编辑者", e, {"editor_id": editor_id})


@router.get("/{editor_id}/permissions", response_model=EditorPermissions)
def get_editor_permissions(editor_id: str):
    try:
        return EditorPermissions(**PermissionService().get_editor_permission_ids(editor_id))
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "获取编辑者权限", e, {"editor_id": editor_id})


@router.put("/{editor_id}/permissions", response_model=EditorPermissions)
def replace_editor_permissions(editor_id: str, request: EditorPermissions):
    """整体替换编辑者权限"""
    try:
        result = PermissionService().replace_editor_permissions(
            editor_id, request.dashboard_ids, request.writable_table_ids
        )
        return EditorPermissions(**result)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "更新编辑者权限", e, {"editor_id": editor_id})
