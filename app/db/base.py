from __future__ import annotations

import importlib
import logging
from typing import Iterable, List, Set

from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("assetscan.models")


class Base(DeclarativeBase):
    """全局唯一 ORM Base"""

    pass


_INITIALIZED: bool = False  # 防重复初始化

MODEL_MODULES = (
    "app.models.asset_tag",
    "app.models.location",
    "app.models.article",
    "app.models.equipment",
    "app.models.case",
    "app.models.job",
)


def init_models(*, exclude: Iterable[str] | None = None, force: bool = False) -> None:
    """
    集中导入模型 + 固化关系映射：
      1) 按固定顺序导入扫码链路涉及的模型（保证表已注册到 Base.metadata）
      2) 统一 configure_mappers()
    """
    global _INITIALIZED
    if _INITIALIZED and not force:
        log.debug("init_models() called again; already initialized, skipping.")
        return

    ex: Set[str] = set(exclude or [])
    loaded: List[str] = []
    for mod in MODEL_MODULES:
        if mod in ex:
            continue
        importlib.import_module(mod)
        loaded.append(mod)

    configure_mappers()
    _INITIALIZED = True
    log.info("ORM models initialized & mappers configured (loaded %d modules)", len(loaded))
