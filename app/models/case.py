from __future__ import annotations

from typing import List, Optional

from sqlalchemy import JSON, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Case(Base):
    """
    箱子（Case）

    - case_equipment：代表箱体本身的设备；箱子的“位置”即该设备的 current_location
    - contained_equipment：箱内设备 id 列表（有序，成员唯一）
    """

    __tablename__ = "cases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # 历史数据里存在无 company 的 case，解析时会回落到 asset_tag 的 company
    company_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    asset_tag: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("asset_tags.id", ondelete="SET NULL"), nullable=True
    )
    case_equipment: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("equipments.id", ondelete="SET NULL"), nullable=True
    )
    contained_equipment: Mapped[List[int]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index("ix_cases_company_id", "company_id"),
        Index("ix_cases_asset_tag", "asset_tag"),
    )
