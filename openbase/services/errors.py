"""
引擎错误类型
所有引擎层失败都是同步、不可重试的，路由层按 status_code 转换为HTTP响应
"""


class EngineError(Exception):
    """引擎错误基类"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequestError(EngineError):
    """请求非法：查询/参数格式错误、SQL被拒绝、校验失败、不支持的数据源类型"""

    status_code = 400


class ForbiddenError(EngineError):
    """权限不足：RBAC拒绝，或可写表不允许插入/更新"""

    status_code = 403


class NotFoundError(EngineError):
    """资源不存在：数据源、表、常用查询、表结构"""

    status_code = 404


class ConflictError(EngineError):
    """存储层唯一性/外键冲突"""

    status_code = 409
