# app/services/scanner/resolver.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

from app.domain.ports import AssetStore, Row
from app.metrics import SCAN_RESOLVE
from app.models.enums import StoreTable
from app.services.scanner.types import (
    REASON_LOOKUP_FAILED,
    REASON_TAG_MISSING,
    ArticleRow,
    CaseRow,
    EquipmentRow,
    LocationRow,
    NotFound,
    ResolvedArticle,
    ResolvedAsset,
    ResolvedCase,
    ResolvedEquipment,
    ResolvedLocation,
    UnassignedTag,
    as_int,
    id_list,
)

log = logging.getLogger("assetscan.resolver")

# 数据完整性被破坏（同一标签被多个载体引用）时，按此顺序取第一个命中
CARRIER_PRIORITY: Tuple[StoreTable, ...] = (
    StoreTable.EQUIPMENTS,
    StoreTable.CASES,
    StoreTable.ARTICLES,
    StoreTable.LOCATIONS,
)


class _LookupFailed:
    """载体查询失败的哨兵（区别于“无记录”）"""


_FAILED = _LookupFailed()


class AssetTagResolver:
    """
    扫码解析：printed_code → 载体（equipment / case / article / location）。

    规则：
      1) 去空白；空串直接 not-found，不查库
      2) 按 printed_code 精确查 asset_tags（不限定 company：码本身决定租户）
      3) 以 tag.id 并发查询四张载体表（各 limit 1）
      4) 按 Equipment > Case > Article > Location 取第一个命中
      5) 无载体 → asset-tag（已建标签，未绑定）
      6) 载体 company 为空 → 回落 tag.company；仍为空则降级为 asset-tag

    只读：解析过程绝不写库。
    """

    def __init__(self, store: AssetStore, *, strict_lookup: bool = False) -> None:
        self._store = store
        self._strict = strict_lookup

    async def resolve(self, raw_code: str) -> ResolvedAsset:
        resolved = await self._resolve(raw_code)
        SCAN_RESOLVE.labels(resolved.kind).inc()
        return resolved

    async def _resolve(self, raw_code: str) -> ResolvedAsset:
        code = (raw_code or "").strip()
        if not code:
            return NotFound(REASON_TAG_MISSING)

        try:
            tag = await self._store.find_one(StoreTable.ASSET_TAGS, {"printed_code": code})
        except Exception as e:
            # 失败即关闭：记录后按 not-found 处理，绝不抛给调用方
            log.error("asset tag lookup failed for %r: %s", code, e)
            return NotFound(REASON_TAG_MISSING)

        if not tag:
            return NotFound(REASON_TAG_MISSING)

        tag_id = int(tag["id"])
        tag_company = as_int(tag.get("company_id"))
        tag_code = tag.get("printed_code")

        rows = await asyncio.gather(*(self._carrier(t, tag_id) for t in CARRIER_PRIORITY))

        if self._strict and any(r is _FAILED for r in rows):
            return NotFound(REASON_LOOKUP_FAILED)

        for table, row in zip(CARRIER_PRIORITY, rows):
            if not row or row is _FAILED:
                continue

            company_id = as_int(row.get("company_id"))
            if company_id is None:
                company_id = tag_company
                if company_id is None:
                    log.warning(
                        "%s #%s without company id (asset_tag=%s); degrading to asset-tag",
                        table,
                        row.get("id"),
                        tag_id,
                    )
                    return UnassignedTag(tag_company, tag_id, tag_code)
                log.warning(
                    "%s #%s without company id; falling back to asset tag company %s",
                    table,
                    row.get("id"),
                    company_id,
                )

            return await self._build(table, row, company_id, tag_id, tag_code)

        return UnassignedTag(tag_company, tag_id, tag_code)

    async def _carrier(self, table: StoreTable, tag_id: int) -> Any:
        try:
            return await self._store.find_one(table, {"asset_tag": tag_id})
        except Exception as e:
            log.warning("carrier lookup %s(asset_tag=%s) failed: %s", table, tag_id, e)
            return _FAILED

    async def _build(
        self,
        table: StoreTable,
        row: Row,
        company_id: int,
        tag_id: int,
        tag_code: Optional[str],
    ) -> ResolvedAsset:
        common: Dict[str, Any] = {
            "company_id": company_id,
            "asset_tag_id": tag_id,
            "asset_tag_code": tag_code,
        }
        if table == StoreTable.EQUIPMENTS:
            return ResolvedEquipment(
                **common,
                equipment=EquipmentRow(
                    id=int(row["id"]),
                    company_id=as_int(row.get("company_id")),
                    article_id=as_int(row.get("article_id")),
                    current_location=as_int(row.get("current_location")),
                ),
            )
        if table == StoreTable.CASES:
            case_equipment = as_int(row.get("case_equipment"))
            return ResolvedCase(
                **common,
                case=CaseRow(
                    id=int(row["id"]),
                    company_id=as_int(row.get("company_id")),
                    name=row.get("name"),
                    case_equipment=case_equipment,
                    case_equipment_location=await self._equipment_location(case_equipment),
                    contained_equipment=id_list(row.get("contained_equipment")),
                ),
            )
        if table == StoreTable.ARTICLES:
            return ResolvedArticle(
                **common,
                article=ArticleRow(
                    id=int(row["id"]),
                    company_id=as_int(row.get("company_id")),
                    default_location=as_int(row.get("default_location")),
                ),
            )
        return ResolvedLocation(
            **common,
            location=LocationRow(
                id=int(row["id"]),
                company_id=as_int(row.get("company_id")),
                name=row.get("name"),
            ),
        )

    async def _equipment_location(self, equipment_id: Optional[int]) -> Optional[int]:
        """箱体设备的当前库位（case 的“位置”）"""
        if equipment_id is None:
            return None
        try:
            eq = await self._store.find_one(StoreTable.EQUIPMENTS, {"id": equipment_id})
        except Exception as e:
            log.warning("case equipment #%s lookup failed: %s", equipment_id, e)
            return None
        return as_int(eq.get("current_location")) if eq else None
