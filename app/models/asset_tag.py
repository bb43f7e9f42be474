from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class AssetTag(Base):
    """
    资产标签（打印码）登记表

    用途：
    - printed_code → asset_tags.id，扫码解析的唯一入口
    - 载体（equipments / cases / articles / locations）通过 asset_tag 列反向引用
    - 同一 company 内 printed_code 唯一；打印后不可变更、不可复用
    """

    __tablename__ = "asset_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[Optional[int]] = mapped_column(nullable=True, index=True)
    printed_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    printed_applied: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    printed_template: Mapped[Optional[int]] = mapped_column(nullable=True)
    nfc_tag_id: Mapped[Optional[int]] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("uq_asset_tags_company_code", "company_id", "printed_code", unique=True),
        Index("ix_asset_tags_printed_code", "printed_code"),
    )

    def __repr__(self) -> str:
        return f"<AssetTag id={self.id} company={self.company_id} code={self.printed_code!r}>"
