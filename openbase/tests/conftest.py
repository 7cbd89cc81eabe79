"""
测试公共夹具
"""
import os
import sqlite3

# 测试时不写日志文件
os.environ.setdefault("LOG_FILE", "")

import pytest

from openbase.database import Database, set_database
from openbase.services import encryption_service


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """把 OPENBASE_DATA_DIR 指向临时目录"""
    monkeypatch.setenv("OPENBASE_DATA_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture
def config_db(tmp_path, monkeypatch):
    """独立的配置数据库（不加密连接描述）"""
    monkeypatch.delenv("ENCRYPTION_KEY", raising=False)
    encryption_service.reset_encryption_service()

    db = Database(f"sqlite:///{tmp_path / 'config.db'}")
    db.create_tables()
    set_database(db)

    yield db

    set_database(None)
    db.dispose()
    encryption_service.reset_encryption_service()


@pytest.fixture
def sales_sqlite(data_dir):
    """data_dir 中的 SQLite 销售数据库，返回相对文件名"""
    path = data_dir / "sales.db"
    conn = sqlite3.connect(str(path))
    conn.executescript(
        """
        CREATE TABLE weekly_sales (
            week_start TEXT NOT NULL,
            asin TEXT NOT NULL,
            units_sold INTEGER NOT NULL,
            revenue NUMERIC
        );
        INSERT INTO weekly_sales VALUES ('2026-01-05', 'X', 15, 120.5);
        INSERT INTO weekly_sales VALUES ('2026-01-05', 'Y', 3, 30);
        INSERT INTO weekly_sales VALUES ('2026-01-12', 'X', 9, 72.25);
        """
    )
    conn.commit()
    conn.close()
    return "sales.db"
