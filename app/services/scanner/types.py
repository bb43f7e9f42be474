# app/services/scanner/types.py
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from app.models.enums import ActionStatus, ScannerMode

# not-found 原因
REASON_TAG_MISSING = "asset-tag-missing"
REASON_LOOKUP_FAILED = "lookup-failed"


# ---------------- 载体行（解析结果携带的只读快照） ----------------


@dataclass(frozen=True)
class EquipmentRow:
    id: int
    company_id: Optional[int]
    article_id: Optional[int] = None
    current_location: Optional[int] = None


@dataclass(frozen=True)
class CaseRow:
    """
    case_equipment_location：箱体设备（case_equipment）当前的库位，解析时一并读取；
    箱子的“位置”以它为准，而不是 case 自身的任何列。
    """

    id: int
    company_id: Optional[int]
    name: Optional[str] = None
    case_equipment: Optional[int] = None
    case_equipment_location: Optional[int] = None
    contained_equipment: Tuple[int, ...] = ()


@dataclass(frozen=True)
class ArticleRow:
    id: int
    company_id: Optional[int]
    default_location: Optional[int] = None


@dataclass(frozen=True)
class LocationRow:
    id: int
    company_id: Optional[int]
    name: Optional[str] = None


# ---------------- 解析结果（tagged union） ----------------


@dataclass(frozen=True)
class _Carrier(ABC):
    company_id: int
    asset_tag_id: int
    asset_tag_code: Optional[str]

    kind: ClassVar[str] = ""

    @property
    @abstractmethod
    def entity_id(self) -> int: ...

    def as_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["kind"] = self.kind
        d["entity_id"] = self.entity_id
        return d


@dataclass(frozen=True, kw_only=True)
class ResolvedEquipment(_Carrier):
    equipment: EquipmentRow

    kind: ClassVar[str] = "equipment"

    @property
    def entity_id(self) -> int:
        return self.equipment.id


@dataclass(frozen=True, kw_only=True)
class ResolvedCase(_Carrier):
    case: CaseRow

    kind: ClassVar[str] = "case"

    @property
    def entity_id(self) -> int:
        return self.case.id


@dataclass(frozen=True, kw_only=True)
class ResolvedArticle(_Carrier):
    article: ArticleRow

    kind: ClassVar[str] = "article"

    @property
    def entity_id(self) -> int:
        return self.article.id


@dataclass(frozen=True, kw_only=True)
class ResolvedLocation(_Carrier):
    location: LocationRow

    kind: ClassVar[str] = "location"

    @property
    def entity_id(self) -> int:
        return self.location.id


@dataclass(frozen=True)
class UnassignedTag:
    """标签存在，但没有任何载体引用它"""

    company_id: Optional[int]
    asset_tag_id: int
    asset_tag_code: Optional[str]

    kind: ClassVar[str] = "asset-tag"

    def as_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["kind"] = self.kind
        return d


@dataclass(frozen=True)
class NotFound:
    reason: str = REASON_TAG_MISSING

    kind: ClassVar[str] = "not-found"

    def as_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "reason": self.reason}


Carrier = Union[ResolvedEquipment, ResolvedCase, ResolvedArticle, ResolvedLocation]
ResolvedAsset = Union[Carrier, UnassignedTag, NotFound]


# ---------------- 动作 ----------------


@dataclass
class ActionContext:
    mode: ScannerMode
    resolved: ResolvedAsset
    target_location_id: Optional[int] = None
    target_location_name: Optional[str] = None
    target_location_company_id: Optional[int] = None
    job_id: Optional[int] = None
    job_name: Optional[str] = None
    job_company_id: Optional[int] = None


@dataclass(frozen=True)
class ActionResult:
    status: ActionStatus
    message: str
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None


@dataclass(frozen=True)
class AssignmentInfo:
    """
    撤销槽：最近一次成功的库位分配 / 装箱。

    - container_id 非空 → 装箱（entity 为 equipment，new_location_id == container_id）
    - 否则为普通库位分配（equipment / case / article）
    """

    entity_type: str
    entity_id: int
    previous_location_id: Optional[int]
    new_location_id: Optional[int]
    new_location_name: Optional[str] = None
    container_id: Optional[int] = None

    @property
    def is_container_packing(self) -> bool:
        return self.container_id is not None


@dataclass(frozen=True)
class FeedLink:
    href: str
    label: str


@dataclass(frozen=True)
class FeedEntry:
    id: str
    status: ActionStatus
    message: str
    code: str
    timestamp: float
    link: Optional[FeedLink] = field(default=None)


# ---------------- 行值归一 ----------------


def as_int(v: Any) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def id_list(v: Any) -> Tuple[int, ...]:
    """JSON 列（contained_equipment）→ 有序 id 元组；非列表按空处理"""
    if not isinstance(v, (list, tuple)):
        return ()
    return tuple(i for i in (as_int(x) for x in v) if i is not None)
