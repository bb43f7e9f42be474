# app/services/scanner/session.py
"""
扫码会话（Scan Session Controller）

一个会话 = 一次打开的扫码界面：
- 持有当前模式、目标（库位 / 箱子，二者互斥）、job 上下文
- 冷却：同一条码在窗口内重复读取直接丢弃（摄像头解码器会连续回调）
- 单飞：上一次扫码的动作未完成前，新扫码直接丢弃
- 撤销槽：最近一次成功的库位分配 / 装箱
- 关闭后不再应用任何进行中动作的结果

会话内串行是 contained_equipment 读-改-写与撤销槽正确性的前提。
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable, List, Optional

from app.core.config import get_settings
from app.domain.ports import AssetStore
from app.metrics import SCAN_ACTIONS, SCAN_SUPPRESSED
from app.models.enums import ActionStatus, ScannerMode
from app.services.scanner.actions import ScanActionDispatcher
from app.services.scanner.resolver import AssetTagResolver
from app.services.scanner.types import (
    ActionContext,
    AssignmentInfo,
    FeedEntry,
    FeedLink,
    NotFound,
    ResolvedCase,
    ResolvedEquipment,
    ResolvedLocation,
    UnassignedTag,
)
from app.services.scanner.undo import UndoHandler, location_assignment, packing_assignment

log = logging.getLogger("assetscan.session")

NO_CODE = "—"

_LINK_PATHS = {
    "equipment": ("equipments", "Equipment"),
    "case": ("cases", "Case"),
    "article": ("articles", "Artikel"),
    "location": ("locations", "Standort"),
}


def entity_link(kind: str, entity_id: int, label: Optional[str] = None) -> FeedLink:
    path, word = _LINK_PATHS[kind]
    return FeedLink(href=f"/management/{path}/{entity_id}", label=label or f"{word} #{entity_id}")


@dataclass(frozen=True)
class LocationTarget:
    id: int
    company_id: int
    name: Optional[str] = None


@dataclass(frozen=True)
class CaseTarget:
    id: int
    company_id: int
    name: Optional[str] = None


@dataclass(frozen=True)
class JobContext:
    id: int
    company_id: int
    name: Optional[str] = None


@dataclass
class _Outcome:
    """一次扫码的处理结果 + 待应用的会话状态变更（会话仍活跃时才应用）"""

    status: ActionStatus
    message: str
    link: Optional[FeedLink] = None
    target_location: Optional[LocationTarget] = None
    target_case: Optional[CaseTarget] = None
    undo: Optional[AssignmentInfo] = None
    request_location_picker: bool = False


class ScanSession:
    def __init__(
        self,
        store: AssetStore,
        *,
        mode: Optional[ScannerMode] = None,
        target_location: Optional[LocationTarget] = None,
        job: Optional[JobContext] = None,
        cooldown_ms: Optional[int] = None,
        feed_limit: Optional[int] = None,
        strict_lookup: Optional[bool] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = get_settings()
        self._resolver = AssetTagResolver(
            store,
            strict_lookup=settings.SCAN_STRICT_LOOKUP if strict_lookup is None else strict_lookup,
        )
        self._dispatcher = ScanActionDispatcher(store)
        self._undo = UndoHandler(store)
        self._cooldown_ms = settings.SCAN_COOLDOWN_MS if cooldown_ms is None else cooldown_ms
        self._feed_limit = settings.SCAN_FEED_LIMIT if feed_limit is None else feed_limit
        self._clock = clock

        self._mode: Optional[ScannerMode] = ScannerMode(mode) if mode is not None else None
        self._target_location = target_location
        self._target_case: Optional[CaseTarget] = None
        self._job = job

        self._feed: List[FeedEntry] = []
        self._last_code = ""
        self._last_ts = 0.0
        self._processing = False
        self._active = True
        self._undo_slot: Optional[AssignmentInfo] = None
        self._picker_requested = False

    # ---------------- 只读状态 ----------------

    @property
    def mode(self) -> Optional[ScannerMode]:
        return self._mode

    @property
    def target_location(self) -> Optional[LocationTarget]:
        return self._target_location

    @property
    def target_case(self) -> Optional[CaseTarget]:
        return self._target_case

    @property
    def job(self) -> Optional[JobContext]:
        return self._job

    @property
    def feed(self) -> List[FeedEntry]:
        """最新在前"""
        return list(self._feed)

    @property
    def undo_slot(self) -> Optional[AssignmentInfo]:
        return self._undo_slot

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def location_picker_requested(self) -> bool:
        return self._picker_requested

    # ---------------- 外部控制 ----------------

    def set_mode(self, mode: Optional[ScannerMode]) -> None:
        new_mode = ScannerMode(mode) if mode is not None else None
        if new_mode == self._mode:
            return
        self._mode = new_mode
        self.clear_targets()

    def select_location(self, target: LocationTarget) -> None:
        """库位选择器：设为目标库位，同时清掉目标箱"""
        self._target_location = target
        self._target_case = None
        self._picker_requested = False

    def clear_targets(self) -> None:
        self._target_location = None
        self._target_case = None
        self._picker_requested = False

    def close(self) -> None:
        """关闭界面：冷却、单飞标记、撤销槽全部清空，之后到达的结果一律丢弃"""
        self._active = False
        self._processing = False
        self._last_code = ""
        self._last_ts = 0.0
        self._undo_slot = None

    # ---------------- 扫码 ----------------

    async def submit_scan(self, code: str) -> Optional[FeedEntry]:
        """
        处理一次扫码；被冷却 / 单飞 / 已关闭丢弃时返回 None。
        """
        if not self._active:
            SCAN_SUPPRESSED.labels("closed").inc()
            return None
        if not code:
            SCAN_SUPPRESSED.labels("empty").inc()
            return None
        if self._processing:
            log.debug("scan %r dropped: previous action still running", code)
            SCAN_SUPPRESSED.labels("in-flight").inc()
            return None

        now = self._clock()
        if code == self._last_code and (now - self._last_ts) * 1000 < self._cooldown_ms:
            log.debug("scan %r dropped: cooldown", code)
            SCAN_SUPPRESSED.labels("cooldown").inc()
            return None
        self._last_code, self._last_ts = code, now

        mode_label = str(self._mode) if self._mode else "none"
        self._processing = True
        try:
            outcome = await self._handle_scan(code)
        except Exception as e:
            log.exception("scanner failure for %r", code)
            outcome = _Outcome(
                ActionStatus.ERROR, str(e) or "Unbekannter Fehler beim Verarbeiten."
            )
        finally:
            self._processing = False

        if not self._active:
            log.debug("scan %r finished after session close; result discarded", code)
            return None

        SCAN_ACTIONS.labels(mode_label, str(outcome.status)).inc()
        return self._apply(code, outcome)

    async def _handle_scan(self, code: str) -> _Outcome:
        mode = self._mode
        if mode is None:
            return _Outcome(ActionStatus.INFO, "Bitte einen Modus auswählen.")

        resolved = await self._resolver.resolve(code)
        if isinstance(resolved, NotFound):
            return _Outcome(ActionStatus.ERROR, "Asset-Tag nicht gefunden.")

        if mode == ScannerMode.ASSIGN_LOCATION:
            early = await self._assign_location_targets(resolved)
            if early is not None:
                return early

        if mode in (ScannerMode.JOB_BOOK, ScannerMode.JOB_PACK) and self._job is None:
            return _Outcome(
                ActionStatus.ERROR, "Kein Job ausgewählt. Bitte aus Job-Detailseite öffnen."
            )

        location = self._target_location
        job = self._job
        result = await self._dispatcher.perform_action(
            ActionContext(
                mode=mode,
                resolved=resolved,
                target_location_id=location.id if location else None,
                target_location_name=location.name if location else None,
                target_location_company_id=location.company_id if location else None,
                job_id=job.id if job else None,
                job_name=job.name if job else None,
                job_company_id=job.company_id if job else None,
            )
        )

        outcome = _Outcome(result.status, result.message)
        if not isinstance(resolved, UnassignedTag):
            outcome.link = entity_link(resolved.kind, resolved.entity_id)
        if mode == ScannerMode.ASSIGN_LOCATION and location is not None:
            outcome.undo = location_assignment(
                resolved, result, location_id=location.id, location_name=location.name
            )
        return outcome

    async def _assign_location_targets(self, resolved) -> Optional[_Outcome]:
        """
        assign-location 的目标切换 / 装箱分支；返回 None 表示继续走普通库位分配。
        """
        if isinstance(resolved, ResolvedCase):
            case_id = resolved.case.id
            return _Outcome(
                ActionStatus.INFO,
                f"Ziel-Case auf Case #{case_id} gesetzt. "
                "Scanne jetzt Equipment um es ins Case zu packen.",
                link=entity_link("case", case_id, "Case öffnen"),
                target_case=CaseTarget(case_id, resolved.company_id, resolved.case.name),
            )

        if isinstance(resolved, ResolvedLocation):
            loc = resolved.location
            return _Outcome(
                ActionStatus.INFO,
                f"Zielstandort auf {loc.name or f'#{loc.id}'} gesetzt.",
                link=entity_link("location", loc.id, "Standort öffnen"),
                target_location=LocationTarget(loc.id, resolved.company_id, loc.name),
            )

        target_case = self._target_case
        if target_case is not None and isinstance(resolved, ResolvedEquipment):
            result = await self._dispatcher.pack_into_case(
                resolved, case_id=target_case.id, case_company_id=target_case.company_id
            )
            outcome = _Outcome(result.status, result.message)
            if result.status != ActionStatus.ERROR:
                outcome.link = entity_link("equipment", resolved.equipment.id)
            if result.status == ActionStatus.SUCCESS:
                outcome.undo = packing_assignment(resolved, target_case.id)
            return outcome

        if self._target_location is None:
            return _Outcome(
                ActionStatus.ERROR, "Kein Standort gewählt.", request_location_picker=True
            )
        return None

    # ---------------- 撤销 ----------------

    async def submit_undo(self, info: Optional[AssignmentInfo] = None) -> Optional[FeedEntry]:
        """
        撤销指定记录（缺省为撤销槽）；无论成功失败，执行后撤销槽清空。
        """
        if not self._active:
            return None
        info = info or self._undo_slot
        if info is None:
            return None
        if self._processing:
            SCAN_SUPPRESSED.labels("in-flight").inc()
            return None

        self._processing = True
        try:
            await self._undo.undo(info)
            status, message = ActionStatus.INFO, "Standortzuweisung rückgängig gemacht."
        except Exception as e:
            log.exception("undo failed for %s #%s", info.entity_type, info.entity_id)
            status, message = ActionStatus.ERROR, str(e) or "Rückgängig machen fehlgeschlagen."
        finally:
            self._processing = False

        if not self._active:
            return None
        self._undo_slot = None
        return self._push(status, message, NO_CODE)

    # ---------------- 状态流 ----------------

    def _apply(self, code: str, outcome: _Outcome) -> FeedEntry:
        if outcome.target_location is not None:
            self.select_location(outcome.target_location)
        if outcome.target_case is not None:
            self._target_case = outcome.target_case
            self._target_location = None
        if outcome.undo is not None:
            self._undo_slot = outcome.undo
        if outcome.request_location_picker:
            self._picker_requested = True
        return self._push(outcome.status, outcome.message, code, outcome.link)

    def _push(
        self,
        status: ActionStatus,
        message: str,
        code: str,
        link: Optional[FeedLink] = None,
    ) -> FeedEntry:
        entry = FeedEntry(
            id=uuid.uuid4().hex,
            status=status,
            message=message,
            code=code,
            timestamp=time.time(),
            link=link,
        )
        self._feed = [entry, *self._feed][: self._feed_limit]
        return entry
