"""
可写表配置API路由
"""
from typing import List, Optional
from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from ..services.dto import WritableTableConfig
from ..services.errors import EngineError
from ..services.writable_table_service import WritableTableService
from ..utils.logger import get_logger
from .common import internal_error

logger = get_logger(__name__)
router = APIRouter(prefix="/api/writable-tables", tags=["writable-tables"])


class CreateWritableTableRequest(BaseModel):
    """创建可写表请求"""
    data_source_id: str = Field(..., description="PostgreSQL 数据源ID")
    table_name: str = Field(..., description="table 或 schema.table")
    allowed_columns: Optional[List[str]] = Field(None, description="列白名单，null 表示所有列")
    allow_insert: bool = True
    allow_update: bool = True
    description: Optional[str] = None


class UpdateWritableTableRequest(BaseModel):
    table_name: Optional[str] = None
    allowed_columns: Optional[List[str]] = None
    allow_insert: Optional[bool] = None
    allow_update: Optional[bool] = None
    description: Optional[str] = None


@router.post("", response_model=WritableTableConfig, status_code=status.HTTP_201_CREATED)
def create_writable_table(request: CreateWritableTableRequest):
    """创建可写表配置（只支持 PostgreSQL，重复时 409）"""
    try:
        logger.info(f"收到创建可写表请求: table={request.table_name}, data_source={request.data_source_id}")
        return WritableTableService().create_table(
            request.data_source_id,
            request.table_name,
            request.allowed_columns,
            request.allow_insert,
            request.allow_update,
            request.description,
        )
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "创建可写表", e)


@router.get("", response_model=List[WritableTableConfig])
def list_writable_tables():
    try:
        return WritableTableService().list_tables()
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "获取可写表列表", e)


@router.get("/{writable_table_id}", response_model=WritableTableConfig)
def get_writable_table(writable_table_id: str):
    try:
        return WritableTableService().get_table(writable_table_id)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "获取可写表", e, {"writable_table_id": writable_table_id})


@router.put("/{writable_table_id}", response_model=WritableTableConfig)
def update_writable_table(writable_table_id: str, request: UpdateWritableTableRequest):
    """更新可写表配置（只更新提交的字段，allowed_columns 为 null 表示所有列）"""
    try:
        changes = request.model_dump(exclude_unset=True)
        return WritableTableService().update_table(writable_table_id, **changes)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "更新可写表", e, {"writable_table_id": writable_table_id})


@router.delete("/{writable_table_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_writable_table(writable_table_id: str):
    try:
        WritableTableService().delete_table(writable_table_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "删除可写表", e, {"writable_table_id": writable_table_id})
