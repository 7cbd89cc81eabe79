"""
服务层包
查询执行与写入校验引擎
"""
from .errors import (
    EngineError,
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    ConflictError,
)

__all__ = [
    "EngineError",
    "BadRequestError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
]
