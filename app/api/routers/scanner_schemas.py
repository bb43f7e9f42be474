# app/api/routers/scanner_schemas.py
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import ActionStatus, ScannerMode
from app.services.scanner.session import ScanSession
from app.services.scanner.types import ActionResult, AssignmentInfo, FeedEntry

# ==========================
# Request models
# ==========================


class ResolveRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    code: str = Field(..., description="扫到的 printed_code（前后空白会被去掉）")


class ActionRequest(BaseModel):
    """
    无状态动作入口（不经过会话）：

    - mode: lookup | assign-location | job-book | job-pack
    - target_location_id: assign-location 时必填（缺省返回 error 结果，而不是 422）
    - job_id: job-book / job-pack 时使用；company 与名称由后端加载
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    mode: ScannerMode
    code: str
    target_location_id: Optional[int] = None
    job_id: Optional[int] = None


class AssignmentPayload(BaseModel):
    entity_type: Literal["equipment", "case", "article"]
    entity_id: int
    previous_location_id: Optional[int] = None
    new_location_id: Optional[int] = None
    new_location_name: Optional[str] = None
    container_id: Optional[int] = None

    @classmethod
    def from_info(cls, info: AssignmentInfo) -> "AssignmentPayload":
        return cls(
            entity_type=info.entity_type,  # type: ignore[arg-type]
            entity_id=info.entity_id,
            previous_location_id=info.previous_location_id,
            new_location_id=info.new_location_id,
            new_location_name=info.new_location_name,
            container_id=info.container_id,
        )

    def to_info(self) -> AssignmentInfo:
        return AssignmentInfo(
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            previous_location_id=self.previous_location_id,
            new_location_id=self.new_location_id,
            new_location_name=self.new_location_name,
            container_id=self.container_id,
        )


class SessionOpenRequest(BaseModel):
    mode: Optional[ScannerMode] = None
    location_id: Optional[int] = Field(None, description="预选目标库位")
    job_id: Optional[int] = Field(None, description="job 上下文（job-book / job-pack）")


class ModeRequest(BaseModel):
    mode: Optional[ScannerMode] = None


class TargetLocationRequest(BaseModel):
    location_id: int


class ScanCodeRequest(BaseModel):
    # 会话层不做 strip：冷却按原始读数比较，空串直接丢弃
    code: str


# ==========================
# Response models
# ==========================


class ResolveResponse(BaseModel):
    kind: str
    resolved: Dict[str, Any]


class ActionResultOut(BaseModel):
    status: ActionStatus
    message: str
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None

    @classmethod
    def from_result(cls, r: ActionResult) -> "ActionResultOut":
        return cls(
            status=r.status, message=r.message, entity_type=r.entity_type, entity_id=r.entity_id
        )


class ActionResponse(BaseModel):
    result: ActionResultOut
    resolved: Dict[str, Any]
    undo: Optional[AssignmentPayload] = None


class TargetOut(BaseModel):
    id: int
    company_id: int
    name: Optional[str] = None


class FeedLinkOut(BaseModel):
    href: str
    label: str


class FeedEntryOut(BaseModel):
    id: str
    status: ActionStatus
    message: str
    code: str
    timestamp: float
    link: Optional[FeedLinkOut] = None

    @classmethod
    def from_entry(cls, e: FeedEntry) -> "FeedEntryOut":
        return cls(
            id=e.id,
            status=e.status,
            message=e.message,
            code=e.code,
            timestamp=e.timestamp,
            link=FeedLinkOut(href=e.link.href, label=e.link.label) if e.link else None,
        )


def _target(t: Any) -> Optional[TargetOut]:
    if t is None:
        return None
    return TargetOut(id=t.id, company_id=t.company_id, name=t.name)


class SessionOut(BaseModel):
    session_id: str
    mode: Optional[ScannerMode] = None
    active: bool
    processing: bool
    target_location: Optional[TargetOut] = None
    target_case: Optional[TargetOut] = None
    job: Optional[TargetOut] = None
    location_picker_requested: bool = False
    undo: Optional[AssignmentPayload] = None
    feed: List[FeedEntryOut] = Field(default_factory=list)

    @classmethod
    def from_session(cls, sid: str, s: ScanSession) -> "SessionOut":
        return cls(
            session_id=sid,
            mode=s.mode,
            active=s.is_active,
            processing=s.is_processing,
            target_location=_target(s.target_location),
            target_case=_target(s.target_case),
            job=_target(s.job),
            location_picker_requested=s.location_picker_requested,
            undo=AssignmentPayload.from_info(s.undo_slot) if s.undo_slot else None,
            feed=[FeedEntryOut.from_entry(e) for e in s.feed],
        )


class ScanResponse(BaseModel):
    """accepted=False：被冷却 / 单飞丢弃，或撤销槽为空"""

    accepted: bool
    entry: Optional[FeedEntryOut] = None
    session: SessionOut
