"""
编辑者API路由
编辑者身份来自网关注入的 X-Editor-ID 头
"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from ..middleware.editor_identity import get_client_ip, require_editor_id
from ..services.dto import ColumnSchema, QueryExecutionResult, TableRows, WritableTableConfig, WriteResult
from ..services.errors import EngineError
from ..services.permission_service import PermissionService
from ..services.query_runner import QueryRunner
from ..services.table_write_service import TableWriteService
from ..utils.logger import get_logger
from .common import internal_error

logger = get_logger(__name__)
router = APIRouter(prefix="/api/editor", tags=["editor"])


class InsertRequest(BaseModel):
    values: Dict[str, Any] = Field(..., description="列名到值的映射")


class UpdateRequest(BaseModel):
    values: Dict[str, Any] = Field(..., description="SET 部分")
    where: Dict[str, Any] = Field(..., description="等值 WHERE 条件")


@router.get("/writable-tables", response_model=List[WritableTableConfig])
def list_my_writable_tables(editor_id: str = Depends(require_editor_id)):
    """当前编辑者有写权限的表"""
    try:
        return PermissionService().get_editor_writable_tables(editor_id)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "获取可写表列表", e, {"editor_id": editor_id})


@router.get("/writable-tables/{writable_table_id}/schema", response_model=List[ColumnSchema])
def get_writable_table_schema(writable_table_id: str, editor_id: str = Depends(require_editor_id)):
    """可写列的实时结构"""
    try:
        return TableWriteService().get_table_schema(editor_id, writable_table_id)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "获取表结构", e, {"writable_table_id": writable_table_id})


@router.get("/writable-tables/{writable_table_id}/rows", response_model=TableRows)
def get_writable_table_rows(
    writable_table_id: str,
    limit: Optional[int] = Query(None, description="预览行数，默认50"),
    editor_id: str = Depends(require_editor_id)
):
    try:
        return TableWriteService().get_rows(editor_id, writable_table_id, limit)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "预览表数据", e, {"writable_table_id": writable_table_id})


@router.post("/writable-tables/{writable_table_id}/insert", response_model=WriteResult)
def insert_row(
    writable_table_id: str,
    body: InsertRequest,
    request: Request,
    editor_id: str = Depends(require_editor_id)
):
    """插入一行"""
    try:
        return TableWriteService().insert_row(
            editor_id, writable_table_id, body.values, ip_address=get_client_ip(request)
        )
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "插入数据", e, {"writable_table_id": writable_table_id})


@router.put("/writable-tables/{writable_table_id}/update", response_model=WriteResult)
def update_rows(
    writable_table_id: str,
    body: UpdateRequest,
    request: Request,
    editor_id: str = Depends(require_editor_id)
):
    """按等值条件更新行"""
    try:
        return TableWriteService().update_rows(
            editor_id, writable_table_id, body.values, body.where, ip_address=get_client_ip(request)
        )
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "更新数据", e, {"writable_table_id": writable_table_id})


@router.get(
    "/dashboards/{dashboard_id}/queries/{saved_query_id}/data",
    response_model=QueryExecutionResult
)
def get_dashboard_query_data(
    dashboard_id: str,
    saved_query_id: str,
    request: Request,
    editor_id: str = Depends(require_editor_id)
):
    """
    仪表盘模块取数

    filters JSON 与查询字符串合并为查询参数；行数上限只取自服务端保存的模块配置
    """
    try:
        query_params: Dict[str, List[str]] = {}
        for key, value in request.query_params.multi_items():
            query_params.setdefault(key, []).append(value)

        return QueryRunner().fetch_dashboard_data(editor_id, dashboard_id, saved_query_id, query_params)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(
            logger, "获取仪表盘数据", e,
            {"dashboard_id": dashboard_id, "saved_query_id": saved_query_id}
        )
