# app/services/scanner/context.py
"""
打开扫码界面时的上下文加载：预选库位 / job。
找不到时返回 None，由调用方（路由）决定 404。
"""

from __future__ import annotations

from typing import Optional

from app.domain.ports import AssetStore
from app.models.enums import StoreTable
from app.services.scanner.session import JobContext, LocationTarget
from app.services.scanner.types import as_int


async def load_location_target(store: AssetStore, location_id: int) -> Optional[LocationTarget]:
    row = await store.find_one(StoreTable.LOCATIONS, {"id": location_id})
    if not row:
        return None
    company_id = as_int(row.get("company_id"))
    if company_id is None:
        return None
    return LocationTarget(id=int(row["id"]), company_id=company_id, name=row.get("name"))


async def load_job_context(store: AssetStore, job_id: int) -> Optional[JobContext]:
    row = await store.find_one(StoreTable.JOBS, {"id": job_id})
    if not row:
        return None
    company_id = as_int(row.get("company_id"))
    if company_id is None:
        return None
    return JobContext(id=int(row["id"]), company_id=company_id, name=row.get("name"))
