"""
HTTP 接口测试
使用 FastAPI TestClient 和本地 SQLite 数据源
"""
import pytest
from fastapi.testclient import TestClient

from openbase.main import app


@pytest.fixture
def client(config_db, sales_sqlite):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sqlite_source(client, sales_sqlite):
    response = client.post(
        "/api/data-sources",
        json={"name": "local", "type": "sqlite", "connection": {"filepath": sales_sqlite}},
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def saved_query(client, sqlite_source):
    response = client.post(
        "/api/queries",
        json={
            "data_source_id": sqlite_source["id"],
            "name": "units by asin",
            "query_text": "select week_start, units_sold from weekly_sales where asin = :asin order by week_start",
            "parameters": {"variables": [{"name": "asin", "default": "X"}]},
        },
    )
    assert response.status_code == 201
    return response.json()


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestDataSourceRoutes:
    """数据源接口"""

    def test_crud(self, client, sqlite_source):
        listed = client.get("/api/data-sources").json()
        assert [item["id"] for item in listed] == [sqlite_source["id"]]

        response = client.put(f"/api/data-sources/{sqlite_source['id']}", json={"name": "renamed"})
        assert response.status_code == 200
        assert response.json()["name"] == "renamed"

        assert client.delete(f"/api/data-sources/{sqlite_source['id']}").status_code == 204
        assert client.get(f"/api/data-sources/{sqlite_source['id']}").status_code == 404

    def test_password_masked(self, client):
        response = client.post(
            "/api/data-sources",
            json={
                "name": "warehouse",
                "type": "postgresql",
                "connection": {"host": "db", "user": "u", "password": "secret", "database": "d"},
            },
        )
        assert response.status_code == 201
        assert "secret" not in response.text

    def test_unsupported_type(self, client):
        response = client.post(
            "/api/data-sources", json={"name": "x", "type": "oracle", "connection": {}}
        )
        assert response.status_code == 400
        assert "不支持的数据源类型" in response.json()["detail"]

    def test_tables_and_rows(self, client, sqlite_source):
        tables = client.get(f"/api/data-sources/{sqlite_source['id']}/tables").json()
        assert tables == {"tables": ["weekly_sales"]}

        rows = client.get(
            f"/api/data-sources/{sqlite_source['id']}/rows",
            params={"table": "weekly_sales", "limit": 2},
        ).json()
        assert rows["columns"] == ["week_start", "asin", "units_sold", "revenue"]
        assert len(rows["rows"]) == 2

    def test_rows_missing_table(self, client, sqlite_source):
        response = client.get(
            f"/api/data-sources/{sqlite_source['id']}/rows", params={"table": "nope"}
        )
        assert response.status_code == 404

    def test_connection_test(self, client, sqlite_source):
        result = client.post(f"/api/data-sources/{sqlite_source['id']}/test").json()
        assert result["ok"] is True
        assert result["tables"] == ["weekly_sales"]
        refreshed = client.get(f"/api/data-sources/{sqlite_source['id']}").json()
        assert refreshed["last_sync_at"] is not None

    def test_delete_referenced_source_conflicts(self, client, sqlite_source, saved_query):
        response = client.delete(f"/api/data-sources/{sqlite_source['id']}")
        assert response.status_code == 409


class TestQueryRoutes:
    """常用查询接口"""

    def test_preview(self, client, saved_query):
        response = client.post(
            f"/api/queries/{saved_query['id']}/preview",
            json={"parameters": {"asin": "Y"}},
        )
        assert response.status_code == 200
        assert response.json()["rows"] == [{"week_start": "2026-01-05", "units_sold": 3}]

    def test_preview_filters_override_parameters(self, client, saved_query):
        response = client.post(
            f"/api/queries/{saved_query['id']}/preview",
            json={"parameters": {"asin": "Y"}, "filters": {"asin": "X"}, "limit": 1},
        )
        assert response.json()["row_count"] == 1
        assert response.json()["rows"][0]["units_sold"] == 15

    def test_preview_rejects_zero_limit(self, client, saved_query):
        response = client.post(f"/api/queries/{saved_query['id']}/preview", json={"limit": 0})
        assert response.status_code == 400

    def test_write_sql_rejected(self, client, sqlite_source):
        response = client.post(
            "/api/queries",
            json={
                "data_source_id": sqlite_source["id"],
                "name": "bad",
                "query_text": "update weekly_sales set units_sold = 0",
            },
        )
        assert response.status_code == 400

    def test_missing_parameter(self, client, sqlite_source):
        created = client.post(
            "/api/queries",
            json={
                "data_source_id": sqlite_source["id"],
                "name": "no default",
                "query_text": "select * from weekly_sales where asin = :asin",
            },
        ).json()
        response = client.post(f"/api/queries/{created['id']}/preview", json={})
        assert response.status_code == 400
        assert "asin" in response.json()["detail"]

    def test_unknown_query(self, client):
        assert client.get("/api/queries/missing").status_code == 404


class TestEditorRoutes:
    """编辑者接口"""

    def test_missing_identity(self, client):
        assert client.get("/api/editor/writable-tables").status_code == 401

    def test_dashboard_permission(self, client, saved_query):
        editor = client.post("/api/editors", json={"email": "Viewer@Example.com"}).json()
        assert editor["email"] == "viewer@example.com"
        headers = {"X-Editor-ID": editor["id"]}
        url = f"/api/editor/dashboards/dash-1/queries/{saved_query['id']}/data"

        assert client.get(url, headers=headers).status_code == 403

        response = client.put(
            f"/api/editors/{editor['id']}/permissions",
            json={"dashboard_ids": ["dash-1"], "writable_table_ids": []},
        )
        assert response.json()["dashboard_ids"] == ["dash-1"]

        # 查询还没有挂到仪表盘上
        assert client.get(url, headers=headers).status_code == 404

        bound = client.put(
            f"/api/dashboards/dash-1/queries/{saved_query['id']}", json={"config": {"limit": 1}}
        )
        assert bound.status_code == 200
        assert bound.json()["config"] == {"limit": 1}

        data = client.get(url, headers=headers, params={"asin": "X", "limit": 1000}).json()
        assert data["row_count"] == 1
        assert data["rows"][0]["units_sold"] == 15

    def test_dashboard_modules(self, client, saved_query):
        path = f"/api/dashboards/dash-1/queries/{saved_query['id']}"
        client.put(path, json={})
        listed = client.get("/api/dashboards/dash-1/queries").json()
        assert [module["saved_query_id"] for module in listed] == [saved_query["id"]]
        assert listed[0]["config"] == {}

        assert client.delete(path).status_code == 204
        assert client.delete(path).status_code == 404
        assert client.put("/api/dashboards/dash-1/queries/missing", json={}).status_code == 404

    def test_duplicate_editor_email(self, client):
        client.post("/api/editors", json={"email": "a@example.com"})
        assert client.post("/api/editors", json={"email": "A@example.com"}).status_code == 409

    def test_writable_table_requires_postgresql(self, client, sqlite_source):
        response = client.post(
            "/api/writable-tables",
            json={"data_source_id": sqlite_source["id"], "table_name": "weekly_sales"},
        )
        assert response.status_code == 400
        assert "PostgreSQL" in response.json()["detail"]

    def test_no_writable_tables(self, client):
        editor = client.post("/api/editors", json={"email": "w@example.com"}).json()
        response = client.get("/api/editor/writable-tables", headers={"X-Editor-ID": editor["id"]})
        assert response.json() == []

    def test_get_and_deactivate_editor(self, client):
        editor = client.post("/api/editors", json={"email": "d@example.com", "name": "D"}).json()
        assert client.get(f"/api/editors/{editor['id']}").json()["name"] == "D"

        response = client.put(f"/api/editors/{editor['id']}", json={"is_active": False})
        assert response.json()["is_active"] is False
        assert client.get("/api/editors/missing").status_code == 404
