"""
常用查询管理
保存时校验查询文本和变量定义，执行见 query_runner
"""
import json
import uuid
from typing import Any, Dict, List, Optional

from .database_adapters import DatabaseAdapterFactory
from .database_adapters.mongodb import MongoDBAdapter
from .errors import BadRequestError, NotFoundError
from .query_compiler import NAMED_PARAMETER, assert_read_only_sql
from ..database import Database, get_database
from ..models.data_source import DataSource
from ..models.saved_query import SavedQuery
from ..utils.logger import get_logger

logger = get_logger(__name__)

_UNSET = object()


def validate_parameters(parameters: Any) -> Dict[str, Any]:
    """
    校验参数定义

    形如 {"variables": [{"name": "asin", "default": "X"}, ...]}，变量名必须是合法的命名参数
    """
    if parameters is None:
        return {}
    if not isinstance(parameters, dict):
        raise BadRequestError("parameters 必须是对象")

    variables = parameters.get("variables")
    if variables is None:
        return parameters
    if not isinstance(variables, list):
        raise BadRequestError("variables 必须是列表")

    names = set()
    for variable in variables:
        if not isinstance(variable, dict):
            raise BadRequestError("变量定义必须是对象")
        name = variable.get("name")
        if not isinstance(name, str) or not NAMED_PARAMETER.fullmatch(f":{name}"):
            raise BadRequestError(f"非法的变量名: {name}")
        if name in names:
            raise BadRequestError(f"重复的变量名: {name}")
        names.add(name)

    return parameters


def validate_query_text(data_source_type: str, query_text: str) -> str:
    """按数据源类型校验查询文本，返回规范化后的文本"""
    adapter = DatabaseAdapterFactory.get_adapter(data_source_type)
    if isinstance(adapter, MongoDBAdapter):
        return adapter.parse_collection_name(query_text)
    return assert_read_only_sql(query_text)


def get_variable_defaults(parameters: Dict[str, Any]) -> Dict[str, Any]:
    """变量定义中带 default 的变量及其默认值"""
    defaults = {}
    for variable in parameters.get("variables") or []:
        if "default" in variable:
            defaults[variable["name"]] = variable["default"]
    return defaults


def to_saved_query_dict(query: SavedQuery) -> Dict[str, Any]:
    return {
        "id": query.id,
        "data_source_id": query.data_source_id,
        "name": query.name,
        "description": query.description,
        "query_text": query.query_text,
        "parameters": json.loads(query.parameters) if query.parameters else {},
        "created_at": query.created_at,
        "updated_at": query.updated_at,
    }


class SavedQueryService:
    """常用查询服务类"""

    def __init__(self, database: Optional[Database] = None):
        self.db = database or get_database()

    def list_queries(self, data_source_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self.db.get_session() as session:
            query = session.query(SavedQuery)
            if data_source_id:
                query = query.filter(SavedQuery.data_source_id == data_source_id)
            return [to_saved_query_dict(item) for item in query.order_by(SavedQuery.name)]

    def get_query(self, saved_query_id: str) -> Dict[str, Any]:
        with self.db.get_session() as session:
            query = session.get(SavedQuery, saved_query_id)
            if query is None:
                raise NotFoundError("常用查询不存在")
            return to_saved_query_dict(query)

    def create_query(
        self,
        data_source_id: str,
        name: str,
        query_text: str,
        parameters: Optional[Dict[str, Any]] = None,
        description: Optional[str] = None
    ) -> Dict[str, Any]:
        if not name or not name.strip():
            raise BadRequestError("查询名称不能为空")
        parameters = validate_parameters(parameters)

        with self.db.get_session() as session:
            data_source = session.get(DataSource, data_source_id)
            if data_source is None:
                raise NotFoundError("数据源不存在")

            query = SavedQuery(
                id=str(uuid.uuid4()),
                data_source_id=data_source_id,
                name=name.strip(),
                description=description,
                query_text=validate_query_text(data_source.type, query_text),
                parameters=json.dumps(parameters, ensure_ascii=False),
            )
            session.add(query)
            session.flush()
            result = to_saved_query_dict(query)

        logger.info(f"常用查询创建成功: id={result['id']}, data_source={data_source_id}")
        return result

    def update_query(
        self,
        saved_query_id: str,
        name: Optional[str] = None,
        query_text: Optional[str] = None,
        parameters: Any = _UNSET,
        description: Any = _UNSET,
        data_source_id: Optional[str] = None
    ) -> Dict[str, Any]:
        with self.db.get_session() as session:
            query = session.get(SavedQuery, saved_query_id)
            if query is None:
                raise NotFoundError("常用查询不存在")

            if data_source_id is not None:
                query.data_source_id = data_source_id
            data_source = session.get(DataSource, query.data_source_id)
            if data_source is None:
                raise NotFoundError("数据源不存在")

            if name is not None:
                if not name.strip():
                    raise BadRequestError("查询名称不能为空")
                query.name = name.strip()
            if query_text is not None or data_source_id is not None:
                query.query_text = validate_query_text(
                    data_source.type,
                    query_text if query_text is not None else query.query_text
                )
            if parameters is not _UNSET:
                query.parameters = json.dumps(validate_parameters(parameters), ensure_ascii=False)
            if description is not _UNSET:
                query.description = description

            session.flush()
            result = to_saved_query_dict(query)

        logger.info(f"常用查询更新成功: id={saved_query_id}")
        return result

    def delete_query(self, saved_query_id: str):
        with self.db.get_session() as session:
            query = session.get(SavedQuery, saved_query_id)
            if query is None:
                raise NotFoundError("常用查询不存在")
            session.delete(query)

        logger.info(f"常用查询已删除: id={saved_query_id}")
