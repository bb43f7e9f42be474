# app/services/scanner/actions.py
"""
扫码动作分发（lookup / assign-location / job-book / job-pack + 装箱）。

约定：
- 领域内的预期情况（未找到、跨 company、幂等命中等）一律返回 ActionResult，不抛异常
- 写库失败（StoreError）原样透传底层报错；无报错文本时用通用提示
- INFO 表示“未发生变更”，与 SUCCESS 区分
"""

from __future__ import annotations

import logging
from typing import Optional

from app.domain.ports import AssetStore, StoreError
from app.models.enums import ActionStatus, ScannerMode, StoreTable
from app.services.scanner.types import (
    ActionContext,
    ActionResult,
    ArticleRow,
    CaseRow,
    Carrier,
    EquipmentRow,
    NotFound,
    ResolvedArticle,
    ResolvedCase,
    ResolvedEquipment,
    ResolvedLocation,
    UnassignedTag,
    id_list,
)

log = logging.getLogger("assetscan.actions")

GENERIC_ERROR = "Aktion konnte nicht ausgeführt werden."

_KIND_LABELS = {
    "equipment": "Equipment",
    "case": "Case",
    "article": "Artikel",
    "location": "Standort",
}


def format_job_name(job_id: Optional[int], job_name: Optional[str]) -> str:
    if job_name and job_name.strip():
        return job_name.strip()
    if job_id is not None:
        return f"Job #{job_id}"
    return "Job"


def format_location_name(location_id: Optional[int], location_name: Optional[str]) -> str:
    if location_name and location_name.strip():
        return location_name.strip()
    if location_id is not None:
        return f"Standort #{location_id}"
    return "Standort"


def _store_error(
    e: StoreError, entity_type: str, entity_id: int, fallback: str = GENERIC_ERROR
) -> ActionResult:
    return ActionResult(ActionStatus.ERROR, e.message or fallback, entity_type, entity_id)


class ScanActionDispatcher:
    def __init__(self, store: AssetStore) -> None:
        self._store = store

    async def perform_action(self, ctx: ActionContext) -> ActionResult:
        """
        对已解析的载体执行当前模式对应的唯一一次变更。
        """
        resolved = ctx.resolved

        if isinstance(resolved, NotFound):
            return ActionResult(ActionStatus.ERROR, "Kein Asset-Tag gefunden.")
        if isinstance(resolved, UnassignedTag):
            return ActionResult(ActionStatus.ERROR, "Asset-Tag ist keinem Objekt zugeordnet.")

        if ctx.mode == ScannerMode.LOOKUP:
            return self._lookup(resolved)
        if ctx.mode == ScannerMode.ASSIGN_LOCATION:
            return await self._assign_location(ctx, resolved)
        if ctx.mode in (ScannerMode.JOB_BOOK, ScannerMode.JOB_PACK):
            return await self._link_job(ctx, resolved)

        return ActionResult(ActionStatus.ERROR, GENERIC_ERROR)

    # ---------------- lookup ----------------

    @staticmethod
    def _lookup(resolved: Carrier) -> ActionResult:
        label = _KIND_LABELS[resolved.kind]
        return ActionResult(
            ActionStatus.SUCCESS,
            f"{label} #{resolved.entity_id} gefunden.",
            resolved.kind,
            resolved.entity_id,
        )

    # ---------------- assign-location ----------------

    async def _assign_location(self, ctx: ActionContext, resolved: Carrier) -> ActionResult:
        location_id = ctx.target_location_id
        if location_id is None:
            return ActionResult(ActionStatus.ERROR, "Bitte zuerst einen Standort auswählen.")

        if (
            not isinstance(resolved, ResolvedLocation)
            and ctx.target_location_company_id is not None
            and resolved.company_id != ctx.target_location_company_id
        ):
            return ActionResult(
                ActionStatus.ERROR,
                "Objekt gehört zu einer anderen Company als der Zielstandort.",
                resolved.kind,
                resolved.entity_id,
            )

        if isinstance(resolved, ResolvedEquipment):
            return await self._assign_equipment(resolved.equipment, location_id)
        if isinstance(resolved, ResolvedCase):
            return await self._assign_case(resolved.case, location_id)
        if isinstance(resolved, ResolvedArticle):
            return await self._assign_article(resolved.article, location_id)
        if isinstance(resolved, ResolvedLocation):
            # 扫到另一个库位只是重新选定目标，不落库
            name = format_location_name(location_id, ctx.target_location_name)
            return ActionResult(
                ActionStatus.INFO,
                f"{name} bleibt ausgewählt.",
                "location",
                resolved.location.id,
            )
        return ActionResult(ActionStatus.ERROR, GENERIC_ERROR)

    async def _assign_equipment(self, equipment: EquipmentRow, location_id: int) -> ActionResult:
        if equipment.current_location == location_id:
            return ActionResult(
                ActionStatus.INFO,
                f"Equipment #{equipment.id} ist bereits an diesem Standort.",
                "equipment",
                equipment.id,
            )
        try:
            await self._store.update(
                StoreTable.EQUIPMENTS, {"id": equipment.id}, {"current_location": location_id}
            )
        except StoreError as e:
            return _store_error(e, "equipment", equipment.id)

        return ActionResult(
            ActionStatus.SUCCESS,
            f"Equipment #{equipment.id} wurde dem Standort zugewiesen.",
            "equipment",
            equipment.id,
        )

    async def _assign_case(self, case: CaseRow, location_id: int) -> ActionResult:
        if case.case_equipment is None:
            return ActionResult(
                ActionStatus.ERROR,
                "Case hat kein Case-Equipment. Standort kann nicht zugewiesen werden.",
                "case",
                case.id,
            )

        # 箱子的位置 = 箱体设备的位置
        if case.case_equipment_location == location_id:
            return ActionResult(
                ActionStatus.INFO,
                f"Case #{case.id} (Equipment #{case.case_equipment}) "
                "befindet sich bereits an diesem Standort.",
                "case",
                case.id,
            )
        try:
            await self._store.update(
                StoreTable.EQUIPMENTS,
                {"id": case.case_equipment},
                {"current_location": location_id},
            )
        except StoreError as e:
            return _store_error(e, "case", case.id)

        return ActionResult(
            ActionStatus.SUCCESS,
            f"Case #{case.id} steht nun mit Equipment #{case.case_equipment} an diesem Standort.",
            "case",
            case.id,
        )

    async def _assign_article(self, article: ArticleRow, location_id: int) -> ActionResult:
        if article.default_location == location_id:
            return ActionResult(
                ActionStatus.INFO,
                f"Artikel #{article.id} ist bereits auf diesen Standort voreingestellt.",
                "article",
                article.id,
            )
        try:
            await self._store.update(
                StoreTable.ARTICLES, {"id": article.id}, {"default_location": location_id}
            )
        except StoreError as e:
            return _store_error(e, "article", article.id)

        return ActionResult(
            ActionStatus.SUCCESS,
            f"Standard-Standort für Artikel #{article.id} gesetzt.",
            "article",
            article.id,
        )

    # ---------------- 装箱（assign-location + 目标箱） ----------------

    async def pack_into_case(
        self,
        resolved: ResolvedEquipment,
        *,
        case_id: int,
        case_company_id: int,
    ) -> ActionResult:
        """
        把设备加入目标箱的 contained_equipment，并清空设备自身的 current_location。

        读-改-写整列表：依赖会话内串行（单飞）保证正确，不做乐观锁。
        """
        equipment_id = resolved.equipment.id
        if resolved.company_id != case_company_id:
            return ActionResult(
                ActionStatus.ERROR,
                "Equipment gehört zu einer anderen Company als das Ziel-Case.",
                "equipment",
                equipment_id,
            )

        try:
            case_row = await self._store.find_one(StoreTable.CASES, {"id": case_id})
        except StoreError as e:
            log.warning("load case #%s failed: %s", case_id, e)
            case_row = None
        if not case_row:
            return ActionResult(
                ActionStatus.ERROR, "Case konnte nicht geladen werden.", "equipment", equipment_id
            )

        contained = list(id_list(case_row.get("contained_equipment")))
        if equipment_id in contained:
            return ActionResult(
                ActionStatus.INFO,
                f"Equipment #{equipment_id} ist bereits in Case #{case_id}.",
                "equipment",
                equipment_id,
            )

        try:
            await self._store.update(
                StoreTable.CASES, {"id": case_id}, {"contained_equipment": contained + [equipment_id]}
            )
        except StoreError as e:
            return _store_error(
                e, "equipment", equipment_id, "Equipment konnte nicht zum Case hinzugefügt werden."
            )

        # 设备此时“在箱内”，不再“在某库位”
        try:
            await self._store.update(
                StoreTable.EQUIPMENTS, {"id": equipment_id}, {"current_location": None}
            )
        except StoreError as e:
            # 成员已写入但库位未清：撤回成员，保持“在箱内 ⇔ 无库位”
            try:
                await self._store.update(
                    StoreTable.CASES, {"id": case_id}, {"contained_equipment": contained}
                )
            except StoreError:
                log.exception(
                    "rollback of case #%s membership for equipment #%s failed", case_id, equipment_id
                )
            return _store_error(
                e, "equipment", equipment_id, "Equipment-Standort konnte nicht aktualisiert werden."
            )

        return ActionResult(
            ActionStatus.SUCCESS,
            f"Equipment #{equipment_id} wurde in Case #{case_id} gepackt.",
            "equipment",
            equipment_id,
        )

    # ---------------- job-book / job-pack ----------------

    async def _link_job(self, ctx: ActionContext, resolved: Carrier) -> ActionResult:
        if ctx.job_id is None or ctx.job_company_id is None:
            return ActionResult(ActionStatus.ERROR, "Job-Kontext fehlt.")

        if resolved.company_id != ctx.job_company_id:
            label = _KIND_LABELS[resolved.kind]
            return ActionResult(
                ActionStatus.ERROR, f"{label} gehört zu einer anderen Company."
            )

        if isinstance(resolved, ResolvedEquipment):
            entity_type, entity_id, column = "equipment", resolved.equipment.id, "equipment_id"
        elif isinstance(resolved, ResolvedCase):
            entity_type, entity_id, column = "case", resolved.case.id, "case_id"
        else:
            return ActionResult(
                ActionStatus.ERROR, "Nur Equipments oder Cases können Jobs zugeordnet werden."
            )

        booking = ctx.mode == ScannerMode.JOB_BOOK
        table = StoreTable.JOB_BOOKED if booking else StoreTable.JOB_PACKED
        job_label = format_job_name(ctx.job_id, ctx.job_name)
        subject = f"{_KIND_LABELS[entity_type]} #{entity_id}"

        # 幂等边界：先查后插；同一 (job, 载体) 重复扫码只返回 INFO
        try:
            existing = await self._store.find_one(table, {"job_id": ctx.job_id, column: entity_id})
            if existing:
                message = (
                    f"{subject} ist bereits für {job_label} gebucht."
                    if booking
                    else f"{subject} ist bereits als gepackt vermerkt."
                )
                return ActionResult(ActionStatus.INFO, message, entity_type, entity_id)

            await self._store.insert(
                table,
                {"job_id": ctx.job_id, "company_id": ctx.job_company_id, column: entity_id},
            )
        except StoreError as e:
            return _store_error(e, entity_type, entity_id)

        message = (
            f"{subject} wurde für {job_label} gebucht."
            if booking
            else f"{subject} wurde für {job_label} als gepackt erfasst."
        )
        return ActionResult(ActionStatus.SUCCESS, message, entity_type, entity_id)
