from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Location(Base):
    """
    库位 / 存放地点

    扫码链路中只读：作为解析目标（切换目标库位）和分配目的地。
    """

    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    asset_tag: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("asset_tags.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        Index("ix_locations_company_id", "company_id"),
        Index("ix_locations_asset_tag", "asset_tag"),
    )
