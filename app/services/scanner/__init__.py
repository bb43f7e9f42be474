# app/services/scanner/__init__.py
"""
资产标签扫码链路：解析 → 动作分发 → 会话（冷却 / 单飞 / 撤销）。
"""

from app.services.scanner.actions import ScanActionDispatcher
from app.services.scanner.context import load_job_context, load_location_target
from app.services.scanner.registry import ScanSessionRegistry
from app.services.scanner.resolver import AssetTagResolver
from app.services.scanner.session import CaseTarget, JobContext, LocationTarget, ScanSession
from app.services.scanner.undo import UndoHandler

__all__ = [
    "AssetTagResolver",
    "CaseTarget",
    "JobContext",
    "LocationTarget",
    "ScanActionDispatcher",
    "ScanSession",
    "ScanSessionRegistry",
    "UndoHandler",
    "load_job_context",
    "load_location_target",
]
