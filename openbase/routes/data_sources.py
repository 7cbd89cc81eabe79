"""
数据源API路由
"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Query, Response, status
from pydantic import BaseModel, Field

from ..services.data_source_service import DataSourceService
from ..services.dto import ConnectionTestResult, DataSourceRecord, TableRows
from ..services.errors import EngineError
from ..utils.logger import get_logger, mask_connection
from .common import internal_error, to_iso_string

logger = get_logger(__name__)
router = APIRouter(prefix="/api/data-sources", tags=["data-sources"])


# ============ Request/Response Models ============

class CreateDataSourceRequest(BaseModel):
    """创建数据源请求"""
    name: str = Field(..., description="数据源名称")
    type: str = Field(..., description="数据源类型（postgresql, mysql, sqlite, duckdb, mongodb）")
    connection: Dict[str, Any] = Field(..., description="连接描述")
    is_active: bool = Field(True, description="是否启用")


class UpdateDataSourceRequest(BaseModel):
    """更新数据源请求"""
    name: Optional[str] = None
    type: Optional[str] = None
    connection: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class DataSourceResponse(BaseModel):
    """数据源响应（连接描述已脱敏）"""
    id: str
    name: str
    type: str
    connection: Dict[str, Any]
    is_active: bool
    created_at: Optional[str]
    last_sync_at: Optional[str]


class TablesResponse(BaseModel):
    tables: List[str]


class MigrateEncryptionResponse(BaseModel):
    migrated: int


def to_response(record: DataSourceRecord) -> DataSourceResponse:
    return DataSourceResponse(
        id=record.id,
        name=record.name,
        type=record.type,
        connection=mask_connection(record.connection),
        is_active=record.is_active,
        created_at=to_iso_string(record.created_at),
        last_sync_at=to_iso_string(record.last_sync_at),
    )


# ============ API Endpoints ============

@router.post("", response_model=DataSourceResponse, status_code=status.HTTP_201_CREATED)
def create_data_source(request: CreateDataSourceRequest):
    """创建数据源"""
    try:
        logger.info(f"收到创建数据源请求: name={request.name}, type={request.type}")
        record = DataSourceService().create_data_source(
            request.name, request.type, request.connection, request.is_active
        )
        return to_response(record)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "创建数据源", e)


@router.get("", response_model=List[DataSourceResponse])
def list_data_sources():
    """获取所有数据源"""
    try:
        return [to_response(record) for record in DataSourceService().list_data_sources()]
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "获取数据源列表", e)


@router.post("/migrate-encryption", response_model=MigrateEncryptionResponse)
def migrate_encryption():
    """把明文存储的连接描述迁移为加密存储"""
    try:
        return MigrateEncryptionResponse(migrated=DataSourceService().migrate_encryption())
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "迁移连接加密", e)


@router.get("/{data_source_id}", response_model=DataSourceResponse)
def get_data_source(data_source_id: str):
    """获取单个数据源"""
    try:
        return to_response(DataSourceService().get_data_source(data_source_id))
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "获取数据源", e, {"data_source_id": data_source_id})


@router.put("/{data_source_id}", response_model=DataSourceResponse)
def update_data_source(data_source_id: str, request: UpdateDataSourceRequest):
    """更新数据源"""
    try:
        record = DataSourceService().update_data_source(
            data_source_id,
            name=request.name,
            data_source_type=request.type,
            connection=request.connection,
            is_active=request.is_active,
        )
        return to_response(record)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "更新数据源", e, {"data_source_id": data_source_id})


@router.delete("/{data_source_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_data_source(data_source_id: str):
    """删除数据源（仍被引用时 409）"""
    try:
        DataSourceService().delete_data_source(data_source_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "删除数据源", e, {"data_source_id": data_source_id})


@router.get("/{data_source_id}/tables", response_model=TablesResponse)
def list_tables(data_source_id: str):
    """列出数据源中的表"""
    try:
        return TablesResponse(tables=DataSourceService().list_tables(data_source_id))
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "获取表列表", e, {"data_source_id": data_source_id})


@router.get("/{data_source_id}/rows", response_model=TableRows)
def get_rows(
    data_source_id: str,
    table: str = Query(..., description="table 或 schema.table"),
    limit: Optional[int] = Query(None, description="预览行数，默认50，最多1000")
):
    """预览表数据"""
    try:
        return DataSourceService().get_rows(data_source_id, table, limit)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "预览表数据", e, {"data_source_id": data_source_id, "table": table})


@router.post("/{data_source_id}/test", response_model=ConnectionTestResult)
def test_connection(data_source_id: str):
    """测试连接，成功时更新 last_sync_at"""
    try:
        return DataSourceService().test_connection(data_source_id)
    except EngineError:
        raise
    except Exception as e:
        raise internal_error(logger, "测试连接", e, {"data_source_id": data_source_id})
