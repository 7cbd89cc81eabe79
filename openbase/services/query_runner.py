"""
常用查询分派
解析常用查询所属的数据源，执行只读守卫，交给对应的适配器并施加行数上限
"""
import json
import math
from typing import Any, Dict, Mapping, Optional

from .dashboard_query_service import DashboardQueryService
from .data_source_service import DataSourceService
from .database_adapters import DatabaseAdapterFactory
from .dto import QueryExecutionResult
from .errors import BadRequestError, ForbiddenError, NotFoundError
from .permission_service import PermissionService
from .query_compiler import assert_read_only_sql, parse_limit
from .saved_query_service import get_variable_defaults
from ..database import Database, get_database
from ..models.saved_query import SavedQuery
from ..utils.logger import get_logger

logger = get_logger(__name__)

MAX_QUERY_LIMIT = 1000
DEFAULT_DASHBOARD_LIMIT = 200
DEFAULT_PREVIEW_LIMIT = 100
MAX_PREVIEW_LIMIT = 100

FILTERS_KEY = "filters"


def normalize_parameters(parameters: Any) -> Dict[str, Any]:
    if parameters is None:
        return {}
    if not isinstance(parameters, dict):
        raise BadRequestError("查询参数必须是对象")
    return parameters


def run_query(
    data_source_type: str,
    connection: Dict[str, Any],
    query_text: str,
    parameters: Optional[Dict[str, Any]] = None,
    limit: Optional[Any] = None,
    default_limit: int = DEFAULT_PREVIEW_LIMIT,
    maximum: int = MAX_QUERY_LIMIT
) -> QueryExecutionResult:
    """
    执行一条命名参数查询

    Args:
        data_source_type: 数据源类型
        connection: 明文连接描述
        query_text: 查询文本（SQL，MongoDB为集合名）
        parameters: 参数名到值的映射
        limit: 行数上限，None 时使用 default_limit
        default_limit: 默认行数上限
        maximum: 行数上限的上界

    Returns:
        QueryExecutionResult

    Raises:
        BadRequestError: 参数不是对象、行数上限非法、类型不支持或SQL被守卫拒绝
    """
    params = normalize_parameters(parameters)
    safe_limit = parse_limit(limit, default_limit, maximum)
    adapter = DatabaseAdapterFactory.get_adapter(data_source_type)
    text = assert_read_only_sql(query_text) if adapter.accepts_sql else query_text

    logger.info(
        f"执行查询: type={adapter.get_db_type()}, limit={safe_limit}, "
        f"params={sorted(params.keys())}, query={text[:200]}"
    )
    result = adapter.run_query(connection, text, params, safe_limit)
    logger.info(f"查询完成: rows={result.row_count}")
    return result


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def parse_filters(query_params: Mapping[str, Any]) -> Dict[str, Any]:
    """
    合并保留的 filters JSON 对象和请求查询字符串

    先取 filters，再用查询字符串参数覆盖同名键；多值参数取第一个
    """
    raw_filters = _first(query_params.get(FILTERS_KEY))
    merged: Dict[str, Any] = {}

    if raw_filters not in (None, ""):
        if isinstance(raw_filters, str):
            try:
                raw_filters = json.loads(raw_filters)
            except ValueError:
                raise BadRequestError("filters 必须是JSON对象")
        if not isinstance(raw_filters, dict):
            raise BadRequestError("filters 必须是JSON对象")
        merged.update(raw_filters)

    for key, value in query_params.items():
        if key == FILTERS_KEY:
            continue
        merged[key] = _first(value)
    return merged


def parse_module_limit(module_config: Optional[Mapping[str, Any]]) -> int:
    """
    从模块配置读取行数上限（limit 或 row_limit）

    缺失、非数字或小于1时使用默认值200，否则夹紧到 [1, 1000]
    """
    config = module_config or {}
    value = config.get("limit", config.get("row_limit"))
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return DEFAULT_DASHBOARD_LIMIT
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value) or value < 1:
        return DEFAULT_DASHBOARD_LIMIT
    return parse_limit(value, DEFAULT_DASHBOARD_LIMIT, MAX_QUERY_LIMIT)


class QueryRunner:
    """常用查询执行器"""

    def __init__(
        self,
        database: Optional[Database] = None,
        data_source_service: Optional[DataSourceService] = None,
        permission_service: Optional[PermissionService] = None,
        dashboard_query_service: Optional[DashboardQueryService] = None
    ):
        self.db = database or get_database()
        self.data_sources = data_source_service or DataSourceService(self.db)
        self.permissions = permission_service or PermissionService(self.db)
        self.dashboard_modules = dashboard_query_service or DashboardQueryService(self.db)

    def run_saved_query(
        self,
        saved_query_id: str,
        parameters: Optional[Dict[str, Any]] = None,
        limit: Optional[Any] = None,
        default_limit: int = DEFAULT_PREVIEW_LIMIT,
        maximum: int = MAX_QUERY_LIMIT
    ) -> QueryExecutionResult:
        """
        执行常用查询

        Raises:
            NotFoundError: 常用查询或数据源不存在
            BadRequestError: 数据源未启用（不尝试连接）
        """
        with self.db.get_session() as session:
            saved_query = session.get(SavedQuery, saved_query_id)
            if saved_query is None:
                raise NotFoundError("常用查询不存在")
            query_text = saved_query.query_text
            data_source_id = saved_query.data_source_id
            definitions = json.loads(saved_query.parameters) if saved_query.parameters else {}

        data_source = self.data_sources.get_active_data_source(data_source_id)

        merged = get_variable_defaults(definitions)
        merged.update(normalize_parameters(parameters))

        logger.info(f"执行常用查询: id={saved_query_id}, data_source={data_source_id}")
        return run_query(
            data_source.type,
            data_source.connection,
            query_text,
            merged,
            limit,
            default_limit,
            maximum,
        )

    def preview_saved_query(
        self,
        saved_query_id: str,
        parameters: Optional[Dict[str, Any]] = None,
        limit: Optional[Any] = None
    ) -> QueryExecutionResult:
        """临时预览，行数上限不超过100"""
        if isinstance(limit, (int, float)) and not isinstance(limit, bool) and limit < 1:
            raise BadRequestError("预览行数必须大于0")
        return self.run_saved_query(
            saved_query_id,
            parameters,
            limit,
            default_limit=DEFAULT_PREVIEW_LIMIT,
            maximum=MAX_PREVIEW_LIMIT,
        )

    def fetch_dashboard_data(
        self,
        editor_id: str,
        dashboard_id: str,
        saved_query_id: str,
        query_params: Mapping[str, Any]
    ) -> QueryExecutionResult:
        """
        仪表盘模块取数：检查查看权限，确认查询挂在该仪表盘上，再按模块配置分派

        Raises:
            ForbiddenError: 编辑者无权查看该仪表盘
            NotFoundError: 该查询不是这个仪表盘上的模块
        """
        if not self.permissions.can_editor_view_dashboard(editor_id, dashboard_id):
            raise ForbiddenError("无权查看该仪表盘")

        module_config = self.dashboard_modules.get_module_config(dashboard_id, saved_query_id)

        return self.run_saved_query(
            saved_query_id,
            parse_filters(query_params),
            parse_module_limit(module_config),
            default_limit=DEFAULT_DASHBOARD_LIMIT,
        )
