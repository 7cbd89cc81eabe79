"""
仪表盘查询模块管理
编辑者只能通过仪表盘上已绑定的模块取数，行数上限取自服务端保存的模块配置
"""
import json
from typing import Any, Dict, List, Optional

from .errors import BadRequestError, NotFoundError
from ..database import Database, get_database
from ..models.dashboard_query import DashboardQuery
from ..models.saved_query import SavedQuery
from ..utils.logger import get_logger

logger = get_logger(__name__)


def normalize_dashboard_id(dashboard_id: Any) -> str:
    value = str(dashboard_id or "").strip()
    if not value:
        raise BadRequestError("仪表盘ID不能为空")
    return value


def to_module_dict(binding: DashboardQuery) -> Dict[str, Any]:
    return {
        "dashboard_id": binding.dashboard_id,
        "saved_query_id": binding.saved_query_id,
        "config": json.loads(binding.config) if binding.config else {},
        "created_at": binding.created_at,
    }


class DashboardQueryService:
    """仪表盘查询模块服务类"""

    def __init__(self, database: Optional[Database] = None):
        self.db = database or get_database()

    def list_modules(self, dashboard_id: str) -> List[Dict[str, Any]]:
        with self.db.get_session() as session:
            bindings = (
                session.query(DashboardQuery)
                .filter(DashboardQuery.dashboard_id == dashboard_id)
                .order_by(DashboardQuery.created_at, DashboardQuery.saved_query_id)
                .all()
            )
            return [to_module_dict(binding) for binding in bindings]

    def bind_query(
        self,
        dashboard_id: str,
        saved_query_id: str,
        config: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        把常用查询挂到仪表盘上（已存在时替换模块配置）

        Raises:
            BadRequestError: 仪表盘ID为空或配置不是对象
            NotFoundError: 常用查询不存在
        """
        dashboard_id = normalize_dashboard_id(dashboard_id)
        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise BadRequestError("模块配置必须是对象")

        with self.db.get_session() as session:
            if session.get(SavedQuery, saved_query_id) is None:
                raise NotFoundError("常用查询不存在")

            binding = session.get(DashboardQuery, (dashboard_id, saved_query_id))
            if binding is None:
                binding = DashboardQuery(dashboard_id=dashboard_id, saved_query_id=saved_query_id)
                session.add(binding)
            binding.config = json.dumps(config, ensure_ascii=False)
            session.flush()
            result = to_module_dict(binding)

        logger.info(f"仪表盘模块已绑定: dashboard={dashboard_id}, query={saved_query_id}")
        return result

    def unbind_query(self, dashboard_id: str, saved_query_id: str):
        with self.db.get_session() as session:
            binding = session.get(DashboardQuery, (dashboard_id, saved_query_id))
            if binding is None:
                raise NotFoundError("仪表盘中不存在该查询模块")
            session.delete(binding)

        logger.info(f"仪表盘模块已移除: dashboard={dashboard_id}, query={saved_query_id}")

    def get_module_config(self, dashboard_id: str, saved_query_id: str) -> Dict[str, Any]:
        """
        读取仪表盘上某个查询模块的配置

        Raises:
            NotFoundError: 该查询没有挂在这个仪表盘上
        """
        with self.db.get_session() as session:
            binding = session.get(DashboardQuery, (dashboard_id, saved_query_id))
            if binding is None:
                raise NotFoundError("仪表盘中不存在该查询模块")
            return json.loads(binding.config) if binding.config else {}
