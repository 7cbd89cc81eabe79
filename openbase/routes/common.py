"""
路由公共工具
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException, status

from ..utils.logger import log_error_with_context


def internal_error(
    logger: logging.Logger,
    action: str,
    error: Exception,
    context: Optional[Dict[str, Any]] = None
) -> HTTPException:
    """记录未预期的错误并转换为 500"""
    log_error_with_context(logger, f"{action}失败", error, context)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"{action}失败: {str(error)}"
    )


def to_iso_string(value: Optional[datetime]) -> Optional[str]:
    """配置库中的 UTC 时间转为带 Z 后缀的 ISO 8601 字符串"""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0).isoformat() + "Z"
