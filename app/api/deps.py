# app/api/deps.py
from __future__ import annotations

from functools import lru_cache

from app.adapters.sqla_store import SqlAlchemyStore
from app.core.config import get_settings
from app.db.session import get_sessionmaker
from app.domain.ports import AssetStore
from app.services.scanner.registry import ScanSessionRegistry

# ---------------------------
# 存储依赖（业务用）
# ---------------------------


def get_store() -> AssetStore:
    """
    统一走 app.db.session 里的 AsyncSession 工厂；测试里通过
    app.dependency_overrides[get_store] 换成内存实现。
    """
    return SqlAlchemyStore(get_sessionmaker())


# ---------------------------
# 扫码会话表（进程级单例）
# ---------------------------


@lru_cache(maxsize=1)
def get_session_registry() -> ScanSessionRegistry:
    return ScanSessionRegistry(ttl_s=get_settings().SCAN_SESSION_TTL_S)


__all__ = (
    "get_store",
    "get_session_registry",
)
