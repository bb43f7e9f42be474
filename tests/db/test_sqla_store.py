# tests/db/test_sqla_store.py
from __future__ import annotations

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.adapters.sqla_store import SqlAlchemyStore
from app.db.base import Base, init_models
from app.db.session import normalize_async_dsn
from app.domain.ports import StoreError
from app.models.enums import ActionStatus, ScannerMode, StoreTable
from app.services.scanner.session import JobContext, ScanSession

pytestmark = pytest.mark.grp_db


# =========================================
# 每用例独立的 sqlite 文件库（NullPool，避免跨 loop）
# =========================================
@pytest_asyncio.fixture
async def sqla_store(tmp_path) -> AsyncGenerator[SqlAlchemyStore, None]:
    init_models()
    engine = create_async_engine(
        normalize_async_dsn(f"sqlite:///{tmp_path / 'assets.db'}"),
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield SqlAlchemyStore(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))
    finally:
        await engine.dispose()


def test_normalize_async_dsn():
    assert normalize_async_dsn("sqlite:///tmp/a.db") == "sqlite+aiosqlite:///tmp/a.db"
    assert normalize_async_dsn("postgres://u:p@h/db") == "postgresql+psycopg://u:p@h/db"
    assert normalize_async_dsn('"postgresql://u@h/db"') == "postgresql+psycopg://u@h/db"


@pytest.mark.asyncio
async def test_insert_find_update(sqla_store):
    tag = await sqla_store.insert(StoreTable.ASSET_TAGS, {"company_id": 3, "printed_code": "EQP-1"})
    assert tag["id"] > 0
    assert tag["printed_applied"] is False

    eq = await sqla_store.insert(
        StoreTable.EQUIPMENTS, {"company_id": 3, "asset_tag": tag["id"], "current_location": None}
    )

    found = await sqla_store.find_one(StoreTable.EQUIPMENTS, {"asset_tag": tag["id"]})
    assert found["id"] == eq["id"]

    # None → IS NULL
    assert await sqla_store.find_many(StoreTable.EQUIPMENTS, {"current_location": None})

    n = await sqla_store.update(StoreTable.EQUIPMENTS, {"id": eq["id"]}, {"current_location": 10})
    assert n == 1
    assert await sqla_store.find_many(StoreTable.EQUIPMENTS, {"current_location": None}) == []


@pytest.mark.asyncio
async def test_find_many_is_ordered_and_limited(sqla_store):
    for code in ("A", "B", "C"):
        await sqla_store.insert(StoreTable.ASSET_TAGS, {"company_id": 1, "printed_code": code})

    rows = await sqla_store.find_many(StoreTable.ASSET_TAGS, {"company_id": 1}, limit=2)

    assert [r["printed_code"] for r in rows] == ["A", "B"]


@pytest.mark.asyncio
async def test_unique_violation_is_store_error(sqla_store):
    await sqla_store.insert(StoreTable.ASSET_TAGS, {"company_id": 1, "printed_code": "DUP"})

    with pytest.raises(StoreError) as ei:
        await sqla_store.insert(StoreTable.ASSET_TAGS, {"company_id": 1, "printed_code": "DUP"})

    assert "UNIQUE" in ei.value.message.upper()


@pytest.mark.asyncio
async def test_unknown_table_is_store_error(sqla_store):
    with pytest.raises(StoreError):
        await sqla_store.find_one("nope", {"id": 1})


@pytest.mark.asyncio
async def test_session_packs_equipment_through_sql(sqla_store):
    loc = await sqla_store.insert(StoreTable.LOCATIONS, {"company_id": 3, "name": "Lager"})
    case_eq = await sqla_store.insert(
        StoreTable.EQUIPMENTS, {"company_id": 3, "current_location": loc["id"]}
    )
    case_tag = await sqla_store.insert(
        StoreTable.ASSET_TAGS, {"company_id": 3, "printed_code": "CASE-1"}
    )
    case = await sqla_store.insert(
        StoreTable.CASES,
        {
            "company_id": 3,
            "asset_tag": case_tag["id"],
            "case_equipment": case_eq["id"],
            "contained_equipment": [],
        },
    )
    eq_tag = await sqla_store.insert(StoreTable.ASSET_TAGS, {"company_id": 3, "printed_code": "EQP-1"})
    eq = await sqla_store.insert(
        StoreTable.EQUIPMENTS,
        {"company_id": 3, "asset_tag": eq_tag["id"], "current_location": loc["id"]},
    )

    s = ScanSession(sqla_store, mode=ScannerMode.ASSIGN_LOCATION)
    await s.submit_scan("CASE-1")
    entry = await s.submit_scan("EQP-1")

    assert entry.status == ActionStatus.SUCCESS
    stored_case = await sqla_store.find_one(StoreTable.CASES, {"id": case["id"]})
    assert stored_case["contained_equipment"] == [eq["id"]]
    stored_eq = await sqla_store.find_one(StoreTable.EQUIPMENTS, {"id": eq["id"]})
    assert stored_eq["current_location"] is None

    undone = await s.submit_undo()

    assert undone.status == ActionStatus.INFO
    stored_case = await sqla_store.find_one(StoreTable.CASES, {"id": case["id"]})
    assert stored_case["contained_equipment"] == []
    stored_eq = await sqla_store.find_one(StoreTable.EQUIPMENTS, {"id": eq["id"]})
    assert stored_eq["current_location"] == loc["id"]


@pytest.mark.asyncio
async def test_job_booking_through_sql(sqla_store):
    job = await sqla_store.insert(StoreTable.JOBS, {"company_id": 3, "name": "Messe"})
    tag = await sqla_store.insert(StoreTable.ASSET_TAGS, {"company_id": 3, "printed_code": "EQP-2"})
    eq = await sqla_store.insert(StoreTable.EQUIPMENTS, {"company_id": 3, "asset_tag": tag["id"]})

    s = ScanSession(
        sqla_store, mode=ScannerMode.JOB_BOOK, job=JobContext(job["id"], 3, job["name"])
    )
    first = await s.submit_scan("EQP-2")
    assert first.status == ActionStatus.SUCCESS
    assert first.message == f"Equipment #{eq['id']} wurde für Messe gebucht."

    rows = await sqla_store.find_many(StoreTable.JOB_BOOKED, {"job_id": job["id"]})
    assert [r["equipment_id"] for r in rows] == [eq["id"]]
    assert rows[0]["case_id"] is None
