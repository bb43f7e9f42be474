from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Equipment(Base):
    """
    设备（实物个体）

    current_location：
    - 扫码分配库位时写入目标库位
    - 装箱（packed into case）时置空：设备此时“在箱内”，而不是“在某库位”
    """

    __tablename__ = "equipments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False)
    article_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("articles.id", ondelete="SET NULL"), nullable=True
    )
    asset_tag: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("asset_tags.id", ondelete="SET NULL"), nullable=True
    )
    current_location: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        Index("ix_equipments_company_id", "company_id"),
        Index("ix_equipments_asset_tag", "asset_tag"),
    )

    def __repr__(self) -> str:
        return f"<Equipment id={self.id} company={self.company_id} loc={self.current_location}>"
