"""
API路由模块
"""
from .data_sources import router as data_sources_router
from .queries import router as queries_router
from .writable_tables import router as writable_tables_router
from .editors import router as editors_router
from .editor import router as editor_router
from .dashboards import router as dashboards_router

__all__ = [
    "data_sources_router",
    "queries_router",
    "writable_tables_router",
    "editors_router",
    "editor_router",
    "dashboards_router",
]
