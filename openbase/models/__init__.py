"""
数据库模型包
"""
from .base import Base
from .data_source import DataSource
from .saved_query import SavedQuery
from .writable_table import WritableTable
from .editor import EditorUser, EditorDashboardAccess, EditorTablePermission
from .audit_log import AuditLog
from .dashboard_query import DashboardQuery

__all__ = [
    "Base",
    "DataSource",
    "SavedQuery",
    "WritableTable",
    "EditorUser",
    "EditorDashboardAccess",
    "EditorTablePermission",
    "AuditLog",
    "DashboardQuery",
]
