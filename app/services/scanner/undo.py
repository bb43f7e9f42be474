# app/services/scanner/undo.py
from __future__ import annotations

import logging
from typing import Optional

from app.domain.ports import AssetStore, StoreError
from app.models.enums import ActionStatus, StoreTable
from app.services.scanner.types import (
    ActionResult,
    AssignmentInfo,
    ResolvedArticle,
    ResolvedAsset,
    ResolvedCase,
    ResolvedEquipment,
    as_int,
    id_list,
)

log = logging.getLogger("assetscan.undo")

_ENTITY_TABLES = {
    "equipment": StoreTable.EQUIPMENTS,
    "case": StoreTable.CASES,
    "article": StoreTable.ARTICLES,
}


def location_assignment(
    resolved: ResolvedAsset,
    result: ActionResult,
    *,
    location_id: int,
    location_name: Optional[str] = None,
) -> Optional[AssignmentInfo]:
    """
    成功的库位分配 → 撤销记录（记录分配前的库位）；其余情况返回 None。
    """
    if result.status != ActionStatus.SUCCESS:
        return None

    if isinstance(resolved, ResolvedEquipment):
        entity_type, entity_id = "equipment", resolved.equipment.id
        previous = resolved.equipment.current_location
    elif isinstance(resolved, ResolvedCase) and resolved.case.case_equipment is not None:
        entity_type, entity_id = "case", resolved.case.id
        previous = resolved.case.case_equipment_location
    elif isinstance(resolved, ResolvedArticle):
        entity_type, entity_id = "article", resolved.article.id
        previous = resolved.article.default_location
    else:
        return None

    return AssignmentInfo(
        entity_type=entity_type,
        entity_id=entity_id,
        previous_location_id=previous,
        new_location_id=location_id,
        new_location_name=location_name,
    )


def packing_assignment(resolved: ResolvedEquipment, case_id: int) -> AssignmentInfo:
    return AssignmentInfo(
        entity_type="equipment",
        entity_id=resolved.equipment.id,
        previous_location_id=resolved.equipment.current_location,
        new_location_id=case_id,
        new_location_name=f"Case #{case_id}",
        container_id=case_id,
    )


class UndoHandler:
    """
    撤销最近一次库位分配 / 装箱：把载体恢复到 previous_location_id。

    任何失败都抛异常（StoreError / ValueError），由会话层转成状态流消息。
    """

    def __init__(self, store: AssetStore) -> None:
        self._store = store

    async def same_company(self, info: AssignmentInfo) -> bool:
        """
        外部传入的撤销记录先过租户校验：载体、要恢复到的库位、装箱的目标箱
        必须属于同一个 company。载体不存在也算不通过。
        """
        table = _ENTITY_TABLES.get(info.entity_type)
        if table is None:
            raise ValueError(f"unsupported undo entity type: {info.entity_type}")

        row = await self._store.find_one(table, {"id": info.entity_id})
        company_id = as_int(row.get("company_id")) if row else None
        if company_id is None:
            return False

        refs = ((StoreTable.LOCATIONS, info.previous_location_id), (StoreTable.CASES, info.container_id))
        for ref_table, ref_id in refs:
            if ref_id is None:
                continue
            ref = await self._store.find_one(ref_table, {"id": ref_id})
            if not ref or as_int(ref.get("company_id")) != company_id:
                log.warning(
                    "undo rejected: %s #%s vs %s #%s", info.entity_type, info.entity_id, ref_table, ref_id
                )
                return False
        return True

    async def undo(self, info: AssignmentInfo) -> None:
        if info.entity_type == "equipment":
            if info.is_container_packing:
                await self._remove_from_case(info.container_id, info.entity_id)
            await self._store.update(
                StoreTable.EQUIPMENTS,
                {"id": info.entity_id},
                {"current_location": info.previous_location_id},
            )
        elif info.entity_type == "case":
            # 重新读取箱体设备：记录里只有 case id
            case_row = await self._store.find_one(StoreTable.CASES, {"id": info.entity_id})
            case_equipment = as_int(case_row.get("case_equipment")) if case_row else None
            if case_equipment is None:
                log.warning("undo: case #%s has no case equipment anymore", info.entity_id)
                return
            await self._store.update(
                StoreTable.EQUIPMENTS,
                {"id": case_equipment},
                {"current_location": info.previous_location_id},
            )
        elif info.entity_type == "article":
            await self._store.update(
                StoreTable.ARTICLES,
                {"id": info.entity_id},
                {"default_location": info.previous_location_id},
            )
        else:
            raise ValueError(f"unsupported undo entity type: {info.entity_type}")

    async def _remove_from_case(self, case_id: int, equipment_id: int) -> None:
        case_row = await self._store.find_one(StoreTable.CASES, {"id": case_id})
        if not case_row:
            raise StoreError(f"Case #{case_id} konnte nicht geladen werden.")
        remaining = [i for i in id_list(case_row.get("contained_equipment")) if i != equipment_id]
        await self._store.update(StoreTable.CASES, {"id": case_id}, {"contained_equipment": remaining})
