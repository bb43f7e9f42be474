from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Article(Base):
    """
    物料主档（型号）。default_location 为常规存放库位，扫码分配库位时更新此列。
    """

    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    asset_tag: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("asset_tags.id", ondelete="SET NULL"), nullable=True
    )
    default_location: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        Index("ix_articles_company_id", "company_id"),
        Index("ix_articles_asset_tag", "asset_tag"),
    )
