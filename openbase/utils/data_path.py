"""
数据文件路径解析
SQLite/DuckDB 数据源的文件路径必须位于 OPENBASE_DATA_DIR 之内
"""
import os

from ..services.errors import BadRequestError

MEMORY_DATABASE = ":memory:"


def get_data_dir() -> str:
    """获取数据目录（默认为当前工作目录）"""
    return os.path.realpath(os.getenv("OPENBASE_DATA_DIR") or os.getcwd())


def resolve_data_file_path(filepath: str, allow_memory: bool = False) -> str:
    """
    将数据源中配置的文件路径解析为数据目录内的绝对路径

    Args:
        filepath: 配置的文件路径（相对路径相对于数据目录）
        allow_memory: 是否允许 ':memory:'

    Returns:
        解析后的绝对路径，或 ':memory:'

    Raises:
        BadRequestError: 路径为空或位于数据目录之外
    """
    raw = (filepath or "").strip()
    if not raw:
        raise BadRequestError("文件路径不能为空")

    if allow_memory and raw == MEMORY_DATABASE:
        return raw

    data_dir = get_data_dir()
    resolved = os.path.realpath(os.path.join(data_dir, raw))

    if resolved == data_dir or resolved.startswith(data_dir + os.sep):
        return resolved

    raise BadRequestError("文件路径必须位于 OPENBASE_DATA_DIR 之内")
