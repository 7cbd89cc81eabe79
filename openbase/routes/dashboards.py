"""
仪表盘查询模块API路由（管理员使用）
"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from ..services.dashboard_query_service import DashboardQueryService
from ..services.errors import EngineError
from ..utils.logger import get_logger
from .common import internal_error, to_iso_string

logger = get_logger(__name__)
router = APIRouter(prefix="/api/dashboards", tags=["dashboards"])


class BindQueryRequest(BaseModel):
    config: Optional[Dict[str, Any]] = Field(None, description='模块配置，如 {"limit": 50}')


class DashboardModuleResponse(BaseModel):
    dashboard_id: str
    saved_query_id: str
    config: Dict[str, Any]
    created_at: Optional[str]


def to_response(module: Dict[str, Any]) -> DashboardModuleResponse:
    return DashboardModuleResponse(**{**module, "created_at": to_iso_string(module["created_at"])})


@router.get("/{dashboard_id}/queries", response_model=List[DashboardModuleResponse])
def list_dashboard_queries(dashboard_id: str):
    try:
        return [to_response(module) for module in DashboardQueryService().list_modules(dashboard_id)]
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "获取仪表盘模块", e, {"dashboard_id": dashboard_id})


@router.put("/{dashboard_id}/queries/{saved_query_id}", response_model=DashboardModuleResponse)
def bind_dashboard_query(dashboard_id: str, saved_query_id: str, request: BindQueryRequest):
    """把常用查询挂到仪表盘上，已存在时替换模块配置"""
    try:
        return to_response(DashboardQueryService().bind_query(dashboard_id, saved_query_id, request.config))
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(
            logger, "绑定仪表盘模块", e,
            {"dashboard_id": dashboard_id, "saved_query_id": saved_query_id}
        )


@router.delete("/{dashboard_id}/queries/{saved_query_id}", status_code=status.HTTP_204_NO_CONTENT)
def unbind_dashboard_query(dashboard_id: str, saved_query_id: str):
    try:
        DashboardQueryService().unbind_query(dashboard_id, saved_query_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(
            logger, "移除仪表盘模块", e,
            {"dashboard_id": dashboard_id, "saved_query_id": saved_query_id}
        )
