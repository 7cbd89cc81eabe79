"""
中间件
"""
from .editor_identity import EditorIdentityMiddleware, require_editor_id, get_client_ip

__all__ = ["EditorIdentityMiddleware", "require_editor_id", "get_client_ip"]
