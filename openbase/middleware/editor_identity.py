"""
编辑者身份中间件

网关完成认证后注入 X-Editor-ID 头，这里把它放到 request.state 供路由使用。
没有该头时 editor_id 为 None，由编辑者路由的依赖返回 401。
"""
from typing import Optional

from fastapi import HTTPException, Request, status
from starlette.middleware.base import BaseHTTPMiddleware

from ..utils.logger import get_logger

logger = get_logger(__name__)

EDITOR_ID_HEADER = "X-Editor-ID"


class EditorIdentityMiddleware(BaseHTTPMiddleware):
    """从请求头提取编辑者ID"""

    async def dispatch(self, request: Request, call_next):
        editor_id = (request.headers.get(EDITOR_ID_HEADER) or "").strip()
        request.state.editor_id = editor_id or None

        if editor_id:
            logger.debug(f"Editor request: {request.method} {request.url.path} (editor={editor_id})")

        response = await call_next(request)
        return response


def require_editor_id(request: Request) -> str:
    """FastAPI 依赖：返回当前编辑者ID，缺失时 401"""
    editor_id: Optional[str] = getattr(request.state, "editor_id", None)
    if not editor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="缺少编辑者身份"
        )
    return editor_id


def get_client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
