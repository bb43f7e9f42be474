# tests/conftest.py
from __future__ import annotations

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from app.api.deps import get_session_registry, get_store
from app.main import app
from app.models.enums import StoreTable
from tests.helpers.memory_store import MemoryStore

# ==========================
# 基线数据（company 3 为主租户，company 9 为“别家”）
# ==========================
#
#   EQP-0042  → equipment 7   （无库位）
#   CASE-9    → case 4        （无箱体设备）
#   CASE-5    → case 5        （箱体设备 8，位于库位 11）
#   ART-20    → article 20    （无默认库位）
#   LOC-10    → location 10   "Warehouse"
#   FREE-1    → 未绑定标签
#   EQP-OTHER → equipment 30  （company 9）
#   LOC-40    → location 40   （company 9）
#   job 55    "Festival"      （company 3）


def seed_baseline(store: MemoryStore) -> MemoryStore:
    tags = {
        "EQP-0042": 1,
        "LOC-10": 2,
        "CASE-9": 3,
        "CASE-5": 4,
        "ART-20": 5,
        "FREE-1": 6,
        "EQP-OTHER": 7,
        "LOC-40": 8,
    }
    for code, tag_id in tags.items():
        company = 9 if code in ("EQP-OTHER", "LOC-40") else 3
        store.seed(StoreTable.ASSET_TAGS, id=tag_id, company_id=company, printed_code=code)

    store.seed(StoreTable.LOCATIONS, id=10, company_id=3, name="Warehouse", asset_tag=2)
    store.seed(StoreTable.LOCATIONS, id=11, company_id=3, name="Bühne", asset_tag=None)
    store.seed(StoreTable.LOCATIONS, id=40, company_id=9, name="Fremdlager", asset_tag=8)

    store.seed(
        StoreTable.EQUIPMENTS, id=7, company_id=3, article_id=20, asset_tag=1, current_location=None
    )
    store.seed(
        StoreTable.EQUIPMENTS, id=8, company_id=3, article_id=None, asset_tag=None, current_location=11
    )
    store.seed(
        StoreTable.EQUIPMENTS, id=30, company_id=9, article_id=None, asset_tag=7, current_location=None
    )

    store.seed(
        StoreTable.CASES,
        id=4,
        company_id=3,
        name="Kabelcase",
        asset_tag=3,
        case_equipment=None,
        contained_equipment=[],
    )
    store.seed(
        StoreTable.CASES,
        id=5,
        company_id=3,
        name="Rack",
        asset_tag=4,
        case_equipment=8,
        contained_equipment=[],
    )

    store.seed(StoreTable.ARTICLES, id=20, company_id=3, asset_tag=5, default_location=None)

    store.seed(StoreTable.JOBS, id=55, company_id=3, name="Festival")
    return store


@pytest.fixture
def store() -> MemoryStore:
    return seed_baseline(MemoryStore())


class FakeClock:
    """可手动推进的单调时钟（秒）"""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =========================================
# HTTP 客户端：ASGITransport 直连 app，存储换成内存实现
# =========================================
@pytest_asyncio.fixture
async def client(store: MemoryStore) -> AsyncGenerator[httpx.AsyncClient, None]:
    app.dependency_overrides[get_store] = lambda: store
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_store, None)
        get_session_registry().clear()
