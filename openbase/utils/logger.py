"""
日志配置模块
提供统一的日志记录功能，支持详细的错误日志记录
"""
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from pathlib import Path

# 连接描述中需要脱敏的字段
SECRET_CONNECTION_KEYS = ("password", "connectionString", "connection_string", "uri", "url")


class DetailedFormatter(logging.Formatter):
    """详细的日志格式化器，包含额外的上下文信息"""

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)

        # 如果有额外的上下文信息，添加到日志中
        if hasattr(record, 'extra_context'):
            formatted += f"\n上下文信息: {record.extra_context}"

        return formatted


def setup_logger(
    name: str = "openbase",
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    console_output: bool = True
) -> logging.Logger:
    """
    设置日志记录器

    Args:
        name: 日志记录器名称
        log_level: 日志级别（DEBUG, INFO, WARNING, ERROR, CRITICAL）
        log_file: 日志文件路径，如果为None则从环境变量读取；空字符串表示不写文件
        console_output: 是否输出到控制台

    Returns:
        配置好的日志记录器
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    if log_file is None:
        log_file = os.getenv("LOG_FILE", "./logs/app.log")

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level.upper()))

    # 清除已有的处理器（避免重复添加）
    logger.handlers.clear()

    log_format = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            Path(log_dir).mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(DetailedFormatter(log_format, date_format))
        logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, log_level.upper()))
        console_handler.setFormatter(DetailedFormatter(log_format, date_format))
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str = "openbase") -> logging.Logger:
    """
    获取日志记录器

    Args:
        name: 日志记录器名称

    Returns:
        日志记录器实例
    """
    logger = logging.getLogger(name)

    # 如果日志记录器还没有处理器，进行初始化
    if not logger.handlers:
        setup_logger(name)

    return logger


def mask_connection(connection: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """返回脱敏后的连接描述副本"""
    safe_connection = dict(connection or {})
    for key in SECRET_CONNECTION_KEYS:
        if safe_connection.get(key):
            safe_connection[key] = "***"
    return safe_connection


def log_error_with_context(
    logger: logging.Logger,
    message: str,
    error: Exception,
    context: Optional[Dict[str, Any]] = None
):
    """
    记录带有详细上下文的错误日志

    Args:
        logger: 日志记录器
        message: 错误消息
        error: 异常对象
        context: 额外的上下文信息（如SQL语句、参数等）
    """
    error_details = {
        "message": message,
        "error_type": type(error).__name__,
        "error_message": str(error),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if context:
        error_details["context"] = context

    error_details["traceback"] = traceback.format_exc()

    logger.error(
        f"{message}\n详细信息: {error_details}",
        exc_info=True,
        extra={"extra_context": context}
    )


def log_sql_error(
    logger: logging.Logger,
    sql: str,
    data_source_type: str,
    error: Exception,
    parameters: Optional[Any] = None
):
    """
    记录SQL执行错误

    Args:
        logger: 日志记录器
        sql: SQL语句
        data_source_type: 数据源类型
        error: 异常对象
        parameters: SQL参数
    """
    context = {
        "sql": sql[:200] if sql else None,
        "data_source_type": data_source_type,
        "parameters": parameters,
    }
    log_error_with_context(logger, "SQL执行失败", error, context)


def log_database_connection_error(
    logger: logging.Logger,
    data_source_type: str,
    connection: Dict[str, Any],
    error: Exception
):
    """
    记录数据库连接错误

    Args:
        logger: 日志记录器
        data_source_type: 数据源类型
        connection: 连接描述（敏感字段会被脱敏）
        error: 异常对象
    """
    context = {
        "data_source_type": data_source_type,
        "connection": mask_connection(connection),
    }
    log_error_with_context(logger, "数据库连接失败", error, context)
