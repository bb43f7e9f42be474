from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class _JobAssetColumns:
    """
    job ↔ equipment/case 关联表的公共列。

    每行只挂 equipment_id 或 case_id 其中之一；
    (job_id, equipment_id) / (job_id, case_id) 在同一张表内至多一行，
    由调用方“先查后插”保证幂等。
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    company_id: Mapped[int] = mapped_column(Integer, nullable=False)
    equipment_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("equipments.id", ondelete="CASCADE"), nullable=True
    )
    case_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("cases.id", ondelete="CASCADE"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class JobBookedAsset(_JobAssetColumns, Base):
    """已预订（booked）：计划给 job 使用的设备 / 箱子"""

    __tablename__ = "job_booked_assets"
    __table_args__ = (Index("ix_job_booked_assets_job_id", "job_id"),)


class JobAssetOnJob(_JobAssetColumns, Base):
    """已装车（packed）：实际随 job 出库的设备 / 箱子"""

    __tablename__ = "job_assets_on_job"
    __table_args__ = (Index("ix_job_assets_on_job_job_id", "job_id"),)
