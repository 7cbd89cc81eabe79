"""
数据传输对象 (Data Transfer Objects)
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


class QueryExecutionResult(BaseModel):
    """查询执行结果"""
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    columns: List[str] = Field(default_factory=list)
    row_count: int = 0


class TableRows(BaseModel):
    """表数据预览"""
    columns: List[str] = Field(default_factory=list)
    rows: List[Dict[str, Any]] = Field(default_factory=list)


class ConnectionTestResult(BaseModel):
    """连接测试结果"""
    ok: bool
    tables: Optional[List[str]] = None
    error: Optional[str] = None


class ColumnSchema(BaseModel):
    """列结构（每次请求实时获取，不缓存）"""
    column_name: str
    data_type: str
    is_nullable: bool
    max_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None
    udt_name: str = ""


class DataSourceRecord(BaseModel):
    """解密后的数据源，引擎只看到明文连接描述"""
    id: str
    name: str
    type: str
    connection: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    created_at: Optional[datetime] = None
    last_sync_at: Optional[datetime] = None


class WritableTableConfig(BaseModel):
    """可写表配置"""
    id: str
    data_source_id: str
    data_source_name: Optional[str] = None
    data_source_type: Optional[str] = None
    table_name: str
    allowed_columns: Optional[List[str]] = None  # None 表示所有列
    allow_insert: bool = True
    allow_update: bool = True
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TablePermission(BaseModel):
    """RBAC 写权限检查结果"""
    allowed: bool
    config: Optional[WritableTableConfig] = None


class ValidatedColumns(BaseModel):
    """校验并转换后的列和值（列名保留表结构中的原始大小写）"""
    columns: List[str]
    values: List[Any]


class BuiltQuery(BaseModel):
    """参数化的写语句"""
    sql: str
    values: List[Any]


class WriteResult(BaseModel):
    """写入结果（RETURNING *）"""
    row_count: int
    rows: List[Dict[str, Any]] = Field(default_factory=list)
