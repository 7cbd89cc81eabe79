"""
RBAC 权限服务测试
"""
import pytest

from openbase.services.data_source_service import DataSourceService
from openbase.services.editor_service import EditorService
from openbase.services.errors import BadRequestError, ConflictError, NotFoundError
from openbase.services.permission_service import PermissionService
from openbase.services.writable_table_service import WritableTableService

PG_CONNECTION = {"host": "db.internal", "user": "writer", "password": "secret", "database": "shop"}


@pytest.fixture
def setup(config_db):
    """一个 PostgreSQL 数据源、两张可写表和两个编辑者"""
    source = DataSourceService(config_db).create_data_source("shop", "postgres", PG_CONNECTION)
    tables = WritableTableService(config_db)
    sales = tables.create_table(source.id, "weekly_sales", ["units_sold", "revenue"])
    stock = tables.create_table(source.id, "inventory.stock", None, allow_update=False)
    editors = EditorService(config_db)
    alice = editors.create_editor("alice@example.com", "Alice")
    bob = editors.create_editor("Bob@Example.com")
    return {
        "source": source,
        "sales": sales,
        "stock": stock,
        "alice": alice["id"],
        "bob": bob["id"],
        "service": PermissionService(config_db),
    }


class TestWritePermission:
    """测试写权限检查"""

    def test_no_row_is_deny(self, setup):
        result = setup["service"].can_editor_write_to_table(setup["alice"], setup["sales"].id)
        assert result.allowed is False
        assert result.config is None

    def test_permission_is_per_table(self, setup):
        """对同一数据源中另一张表的权限不会授予本表"""
        service = setup["service"]
        service.replace_editor_permissions(setup["alice"], [], [setup["stock"].id])

        assert service.can_editor_write_to_table(setup["alice"], setup["sales"].id).allowed is False

        allowed = service.can_editor_write_to_table(setup["alice"], setup["stock"].id)
        assert allowed.allowed is True
        assert allowed.config.table_name == "inventory.stock"
        assert allowed.config.allow_update is False
        assert allowed.config.allowed_columns is None
        assert allowed.config.data_source_type == "postgresql"

    def test_permission_is_per_editor(self, setup):
        service = setup["service"]
        service.replace_editor_permissions(setup["alice"], [], [setup["sales"].id])
        assert service.can_editor_write_to_table(setup["bob"], setup["sales"].id).allowed is False

    def test_inactive_editor_denied(self, setup, config_db):
        service = setup["service"]
        service.replace_editor_permissions(setup["alice"], ["dash-1"], [setup["sales"].id])
        EditorService(config_db).set_active(setup["alice"], False)

        assert service.can_editor_write_to_table(setup["alice"], setup["sales"].id).allowed is False
        assert service.can_editor_view_dashboard(setup["alice"], "dash-1") is False
        assert service.get_editor_writable_tables(setup["alice"]) == []

    def test_permission_removed_with_table(self, setup, config_db):
        service = setup["service"]
        service.replace_editor_permissions(setup["alice"], [], [setup["sales"].id])
        WritableTableService(config_db).delete_table(setup["sales"].id)
        assert service.get_editor_permission_ids(setup["alice"])["writable_table_ids"] == []


class TestDashboardPermission:
    """测试仪表盘查看权限"""

    def test_view(self, setup):
        service = setup["service"]
        assert service.can_editor_view_dashboard(setup["alice"], "dash-1") is False
        service.replace_editor_permissions(setup["alice"], ["dash-1"], [])
        assert service.can_editor_view_dashboard(setup["alice"], "dash-1") is True
        assert service.can_editor_view_dashboard(setup["alice"], "dash-2") is False

    def test_unknown_editor(self, setup):
        assert setup["service"].can_editor_view_dashboard("nobody", "dash-1") is False


class TestReplacePermissions:
    """测试整体替换权限"""

    def test_replace(self, setup):
        service = setup["service"]
        service.replace_editor_permissions(setup["alice"], ["dash-1", "dash-2"], [setup["sales"].id])
        result = service.replace_editor_permissions(setup["alice"], ["dash-2", "dash-2"], [setup["stock"].id])

        assert result == {"dashboard_ids": ["dash-2"], "writable_table_ids": [setup["stock"].id]}
        assert service.get_editor_permission_ids(setup["alice"]) == result

        tables = service.get_editor_writable_tables(setup["alice"])
        assert [table.table_name for table in tables] == ["inventory.stock"]

    def test_unknown_table_rolls_back(self, setup):
        service = setup["service"]
        service.replace_editor_permissions(setup["alice"], ["dash-1"], [setup["sales"].id])

        with pytest.raises(BadRequestError, match="可写表不存在"):
            service.replace_editor_permissions(setup["alice"], [], ["missing"])

        assert service.get_editor_permission_ids(setup["alice"]) == {
            "dashboard_ids": ["dash-1"],
            "writable_table_ids": [setup["sales"].id],
        }

    def test_unknown_editor(self, setup):
        with pytest.raises(NotFoundError):
            setup["service"].replace_editor_permissions("nobody", [], [])


class TestWritableTableConfig:
    """测试可写表配置约束"""

    def test_only_postgresql(self, setup, config_db, data_dir):
        source = DataSourceService(config_db).create_data_source("local", "sqlite", {"filepath": "sales.db"})
        with pytest.raises(BadRequestError, match="PostgreSQL"):
            WritableTableService(config_db).create_table(source.id, "weekly_sales")

    def test_duplicate_table(self, setup, config_db):
        with pytest.raises(ConflictError):
            WritableTableService(config_db).create_table(setup["source"].id, "weekly_sales")

    def test_invalid_allowed_columns(self, setup, config_db):
        with pytest.raises(BadRequestError, match="非法的列名"):
            WritableTableService(config_db).create_table(setup["source"].id, "orders", ["ok", "bad name"])

    def test_update_allowed_columns_to_all(self, setup, config_db):
        updated = WritableTableService(config_db).update_table(setup["sales"].id, allowed_columns=None)
        assert updated.allowed_columns is None

    def test_duplicate_editor_email(self, setup, config_db):
        with pytest.raises(ConflictError):
            EditorService(config_db).create_editor("ALICE@example.com")
