"""
配置数据库初始化和连接管理
保存数据源、常用查询、可写表、编辑者权限和审计日志
"""
import os
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session as SQLAlchemySession
from sqlalchemy.pool import QueuePool
from contextlib import contextmanager
from typing import Generator

from .models.base import Base
from .models import (  # noqa: F401 注册所有模型
    DataSource,
    SavedQuery,
    WritableTable,
    EditorUser,
    EditorDashboardAccess,
    EditorTablePermission,
    AuditLog,
    DashboardQuery,
)
from .utils.logger import get_logger

logger = get_logger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_config_db_url() -> str:
    """CONFIG_DB_URL 优先，否则使用 CONFIG_DB_PATH 指向的 SQLite 文件"""
    db_url = os.getenv("CONFIG_DB_URL")
    if db_url:
        return db_url

    project_root = Path(__file__).resolve().parent.parent
    default_db_path = project_root / "data" / "config.db"

    db_path = os.getenv("CONFIG_DB_PATH", str(default_db_path))
    # 确保data目录存在
    os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
    return f"sqlite:///{db_path}"


class Database:
    """配置数据库管理类"""

    def __init__(self, db_url: str = None):
        """
        初始化数据库连接

        Args:
            db_url: 数据库URL，如果为None则从环境变量读取
        """
        if db_url is None:
            db_url = get_config_db_url()

        pool_config = {
            "poolclass": QueuePool,
            "pool_size": 10,
            "max_overflow": 20,
            "pool_timeout": 30,
            "pool_recycle": 3600,  # 1小时后回收连接，避免连接过期
            "pool_pre_ping": True,
            "echo": False,
        }

        # SQLite特殊配置
        if db_url.startswith("sqlite"):
            pool_config["connect_args"] = {"check_same_thread": False}

        self.engine = create_engine(db_url, **pool_config)

        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
            expire_on_commit=False  # 提交后不过期对象，减少查询
        )

    def create_tables(self):
        """创建所有表"""
        Base.metadata.create_all(bind=self.engine)

    def dispose(self):
        self.engine.dispose()

    @contextmanager
    def get_session(self) -> Generator[SQLAlchemySession, None, None]:
        """
        获取数据库会话的上下文管理器

        Yields:
            SQLAlchemy会话对象
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


# 全局数据库实例
_db_instance = None


def get_database() -> Database:
    """获取全局数据库实例"""
    global _db_instance
    if _db_instance is None:
        _db_instance = Database()
    return _db_instance


def set_database(database: Database):
    """替换全局数据库实例（测试使用）"""
    global _db_instance
    _db_instance = database


def init_database():
    """初始化数据库（创建所有表）"""
    db = get_database()
    db.create_tables()
    logger.info("配置数据库初始化完成")


if __name__ == "__main__":
    # 直接运行此脚本时初始化数据库
    init_database()
