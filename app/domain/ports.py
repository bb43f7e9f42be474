# -*- coding: utf-8 -*-
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Protocol

Row = Dict[str, Any]


class StoreError(Exception):
    """
    存储层失败（写入 / 查询异常）。

    message 尽量保留底层驱动的原始报错，动作层会原样透传给前端。
    """

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class AssetStore(Protocol):
    """
    扫码链路消费的通用数据存储接口（按表名 + 等值过滤）。

    约定：
    - filters 为等值条件；值为 None 时表示 IS NULL
    - 行以 dict 表示（列名 → 值）
    - 任何后端失败一律抛 StoreError
    """

    async def find_one(self, table: str, filters: Mapping[str, Any]) -> Optional[Row]: ...

    async def find_many(
        self,
        table: str,
        filters: Mapping[str, Any],
        *,
        limit: Optional[int] = None,
    ) -> List[Row]: ...

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row: ...

    async def update(
        self,
        table: str,
        filters: Mapping[str, Any],
        patch: Mapping[str, Any],
    ) -> int: ...
