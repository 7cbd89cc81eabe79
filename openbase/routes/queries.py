"""
常用查询API路由
"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from ..services.dto import QueryExecutionResult
from ..services.errors import EngineError
from ..services.query_runner import QueryRunner, parse_filters
from ..services.saved_query_service import SavedQueryService
from ..utils.logger import get_logger
from .common import internal_error, to_iso_string

logger = get_logger(__name__)
router = APIRouter(prefix="/api/queries", tags=["queries"])


# ============ Request/Response Models ============

class CreateQueryRequest(BaseModel):
    """创建常用查询请求"""
    data_source_id: str
    name: str
    query_text: str = Field(..., description="命名参数SQL；MongoDB为集合名")
    parameters: Optional[Dict[str, Any]] = Field(None, description='变量定义，如 {"variables": [{"name": "asin"}]}')
    description: Optional[str] = None


class UpdateQueryRequest(BaseModel):
    """更新常用查询请求"""
    data_source_id: Optional[str] = None
    name: Optional[str] = None
    query_text: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None
    description: Optional[str] = None


class QueryResponse(BaseModel):
    id: str
    data_source_id: str
    name: str
    description: Optional[str]
    query_text: str
    parameters: Dict[str, Any]
    created_at: Optional[str]
    updated_at: Optional[str]


class PreviewRequest(BaseModel):
    """预览请求：parameters 与 filters 合并，filters 优先"""
    parameters: Optional[Dict[str, Any]] = None
    filters: Optional[Dict[str, Any]] = None
    limit: Optional[float] = Field(None, description="行数上限，最多100")


def to_response(query: Dict[str, Any]) -> QueryResponse:
    return QueryResponse(
        **{
            **query,
            "created_at": to_iso_string(query["created_at"]),
            "updated_at": to_iso_string(query["updated_at"]),
        }
    )


# ============ API Endpoints ============

@router.post("", response_model=QueryResponse, status_code=status.HTTP_201_CREATED)
def create_query(request: CreateQueryRequest):
    """创建常用查询"""
    try:
        logger.info(f"收到创建常用查询请求: name={request.name}, data_source={request.data_source_id}")
        query = SavedQueryService().create_query(
            request.data_source_id,
            request.name,
            request.query_text,
            request.parameters,
            request.description,
        )
        return to_response(query)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "创建常用查询", e)


@router.get("", response_model=List[QueryResponse])
def list_queries(data_source_id: Optional[str] = None):
    """获取常用查询列表"""
    try:
        return [to_response(query) for query in SavedQueryService().list_queries(data_source_id)]
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "获取常用查询列表", e)


@router.get("/{saved_query_id}", response_model=QueryResponse)
def get_query(saved_query_id: str):
    try:
        return to_response(SavedQueryService().get_query(saved_query_id))
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "获取常用查询", e, {"saved_query_id": saved_query_id})


@router.put("/{saved_query_id}", response_model=QueryResponse)
def update_query(saved_query_id: str, request: UpdateQueryRequest):
    """更新常用查询（只更新提交的字段）"""
    try:
        changes = request.model_dump(exclude_unset=True)
        query = SavedQueryService().update_query(saved_query_id, **changes)
        return to_response(query)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "更新常用查询", e, {"saved_query_id": saved_query_id})


@router.delete("/{saved_query_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_query(saved_query_id: str):
    try:
        SavedQueryService().delete_query(saved_query_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "删除常用查询", e, {"saved_query_id": saved_query_id})


@router.post("/{saved_query_id}/preview", response_model=QueryExecutionResult)
def preview_query(saved_query_id: str, request: PreviewRequest):
    """临时预览常用查询"""
    try:
        parameters = dict(request.parameters or {})
        if request.filters:
            parameters.update(parse_filters({"filters": request.filters}))
        return QueryRunner().preview_saved_query(saved_query_id, parameters, request.limit)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "预览常用查询", e, {"saved_query_id": saved_query_id})
