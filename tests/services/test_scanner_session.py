import asyncio

import pytest

from app.models.enums import ActionStatus, ScannerMode, StoreTable
from app.services.scanner.session import JobContext, LocationTarget, ScanSession

pytestmark = pytest.mark.grp_scan


def _session(store, clock, **kw):
    return ScanSession(store, clock=clock, **kw)


# ---------------- 冷却 / 单飞 ----------------


@pytest.mark.asyncio
async def test_same_code_within_cooldown_is_dropped(store, clock):
    s = _session(store, clock, mode=ScannerMode.LOOKUP)

    first = await s.submit_scan("EQP-0042")
    clock.advance_ms(500)
    second = await s.submit_scan("EQP-0042")
    clock.advance_ms(1100)  # 距第一次 1600ms
    third = await s.submit_scan("EQP-0042")

    assert first is not None
    assert second is None
    assert third is not None
    assert len(s.feed) == 2


@pytest.mark.asyncio
async def test_other_code_within_cooldown_is_processed(store, clock):
    s = _session(store, clock, mode=ScannerMode.LOOKUP)

    await s.submit_scan("EQP-0042")
    clock.advance_ms(100)
    entry = await s.submit_scan("ART-20")

    assert entry is not None
    assert entry.message == "Artikel #20 gefunden."


@pytest.mark.asyncio
async def test_scan_while_processing_is_dropped(store, clock):
    s = _session(store, clock, mode=ScannerMode.LOOKUP)
    store.gate = asyncio.Event()

    task = asyncio.create_task(s.submit_scan("EQP-0042"))
    await asyncio.sleep(0)
    assert s.is_processing

    assert await s.submit_scan("ART-20") is None

    store.gate.set()
    entry = await task
    assert entry is not None
    assert not s.is_processing
    assert [e.code for e in s.feed] == ["EQP-0042"]


@pytest.mark.asyncio
async def test_close_discards_in_flight_result(store, clock):
    s = _session(store, clock, mode=ScannerMode.LOOKUP)
    store.gate = asyncio.Event()

    task = asyncio.create_task(s.submit_scan("EQP-0042"))
    await asyncio.sleep(0)
    s.close()
    store.gate.set()

    assert await task is None
    assert s.feed == []
    assert not s.is_processing
    assert await s.submit_scan("ART-20") is None


@pytest.mark.asyncio
async def test_empty_code_is_ignored(store, clock):
    s = _session(store, clock, mode=ScannerMode.LOOKUP)

    assert await s.submit_scan("") is None
    assert store.calls == []


# ---------------- 基本流转 ----------------


@pytest.mark.asyncio
async def test_scan_without_mode_prompts(store, clock):
    s = _session(store, clock)

    entry = await s.submit_scan("EQP-0042")

    assert entry.status == ActionStatus.INFO
    assert entry.message == "Bitte einen Modus auswählen."
    assert store.calls == []


@pytest.mark.asyncio
async def test_unknown_code(store, clock):
    s = _session(store, clock, mode=ScannerMode.LOOKUP)

    entry = await s.submit_scan("NOPE")

    assert entry.status == ActionStatus.ERROR
    assert entry.message == "Asset-Tag nicht gefunden."
    assert entry.code == "NOPE"


@pytest.mark.asyncio
async def test_lookup_entry_links_to_entity(store, clock):
    s = _session(store, clock, mode=ScannerMode.LOOKUP)

    entry = await s.submit_scan("CASE-9")

    assert entry.status == ActionStatus.SUCCESS
    assert entry.link.href == "/management/cases/4"
    assert entry.link.label == "Case #4"


@pytest.mark.asyncio
async def test_feed_is_newest_first_and_capped(store, clock):
    s = _session(store, clock, mode=ScannerMode.LOOKUP, feed_limit=3)

    for code in ("EQP-0042", "CASE-9", "ART-20", "LOC-10", "FREE-1"):
        await s.submit_scan(code)

    assert [e.code for e in s.feed] == ["FREE-1", "LOC-10", "ART-20"]


@pytest.mark.asyncio
async def test_unexpected_failure_becomes_error_entry(store, clock, monkeypatch):
    s = _session(store, clock, mode=ScannerMode.LOOKUP)

    async def boom(_ctx):
        raise RuntimeError("kaputt")

    monkeypatch.setattr(s._dispatcher, "perform_action", boom)
    entry = await s.submit_scan("EQP-0042")

    assert entry.status == ActionStatus.ERROR
    assert entry.message == "kaputt"
    assert not s.is_processing


# ---------------- assign-location ----------------


@pytest.mark.asyncio
async def test_assign_without_target_requests_picker(store, clock):
    s = _session(store, clock, mode=ScannerMode.ASSIGN_LOCATION)

    entry = await s.submit_scan("EQP-0042")

    assert entry.status == ActionStatus.ERROR
    assert entry.message == "Kein Standort gewählt."
    assert s.location_picker_requested

    s.select_location(LocationTarget(id=11, company_id=3, name="Bühne"))
    assert not s.location_picker_requested
    assert s.target_location.id == 11


@pytest.mark.asyncio
async def test_scan_location_then_equipment_then_undo(store, clock):
    s = _session(store, clock, mode=ScannerMode.ASSIGN_LOCATION)

    target = await s.submit_scan("LOC-10")
    assert target.status == ActionStatus.INFO
    assert target.message == "Zielstandort auf Warehouse gesetzt."
    assert s.target_location == LocationTarget(id=10, company_id=3, name="Warehouse")

    assigned = await s.submit_scan("EQP-0042")
    assert assigned.status == ActionStatus.SUCCESS
    assert store.get(StoreTable.EQUIPMENTS, 7)["current_location"] == 10
    assert s.undo_slot.entity_id == 7
    assert s.undo_slot.previous_location_id is None
    assert s.undo_slot.new_location_id == 10

    undone = await s.submit_undo()
    assert undone.status == ActionStatus.INFO
    assert undone.message == "Standortzuweisung rückgängig gemacht."
    assert store.get(StoreTable.EQUIPMENTS, 7)["current_location"] is None
    assert s.undo_slot is None
    assert await s.submit_undo() is None


@pytest.mark.asyncio
async def test_case_scan_becomes_target_case(store, clock):
    s = _session(
        store, clock, mode=ScannerMode.ASSIGN_LOCATION,
        target_location=LocationTarget(id=11, company_id=3, name="Bühne"),
    )

    entry = await s.submit_scan("CASE-5")
    assert s.target_case.id == 5
    assert s.target_location is None
    assert entry.status == ActionStatus.INFO
    assert s.undo_slot is None


@pytest.mark.asyncio
async def test_target_location_of_other_company_is_rejected(store, clock):
    s = _session(store, clock, mode=ScannerMode.ASSIGN_LOCATION)

    await s.submit_scan("LOC-40")
    entry = await s.submit_scan("EQP-0042")

    assert entry.status == ActionStatus.ERROR
    assert entry.message == "Objekt gehört zu einer anderen Company als der Zielstandort."
    assert store.get(StoreTable.EQUIPMENTS, 7)["current_location"] is None


@pytest.mark.asyncio
async def test_pack_equipment_into_target_case_twice_then_undo(store, clock):
    await store.update(StoreTable.EQUIPMENTS, {"id": 7}, {"current_location": 11})
    s = _session(store, clock, mode=ScannerMode.ASSIGN_LOCATION)

    target = await s.submit_scan("CASE-5")
    assert target.message.startswith("Ziel-Case auf Case #5 gesetzt.")

    packed = await s.submit_scan("EQP-0042")
    assert packed.status == ActionStatus.SUCCESS
    assert store.get(StoreTable.CASES, 5)["contained_equipment"] == [7]
    assert store.get(StoreTable.EQUIPMENTS, 7)["current_location"] is None
    assert s.undo_slot.container_id == 5

    clock.advance_ms(2000)
    again = await s.submit_scan("EQP-0042")
    assert again.status == ActionStatus.INFO
    assert store.get(StoreTable.CASES, 5)["contained_equipment"] == [7]

    undone = await s.submit_undo()
    assert undone.status == ActionStatus.INFO
    assert store.get(StoreTable.CASES, 5)["contained_equipment"] == []
    assert store.get(StoreTable.EQUIPMENTS, 7)["current_location"] == 11


@pytest.mark.asyncio
async def test_pack_equipment_of_other_company(store, clock):
    s = _session(store, clock, mode=ScannerMode.ASSIGN_LOCATION)

    await s.submit_scan("CASE-5")
    entry = await s.submit_scan("EQP-OTHER")

    assert entry.status == ActionStatus.ERROR
    assert store.get(StoreTable.CASES, 5)["contained_equipment"] == []


@pytest.mark.asyncio
async def test_failed_undo_clears_slot(store, clock):
    s = _session(
        store, clock, mode=ScannerMode.ASSIGN_LOCATION,
        target_location=LocationTarget(id=10, company_id=3, name="Warehouse"),
    )
    await s.submit_scan("ART-20")
    assert s.undo_slot is not None

    store.fail_on("update", StoreTable.ARTICLES, "row is locked")
    entry = await s.submit_undo()

    assert entry.status == ActionStatus.ERROR
    assert entry.message == "row is locked"
    assert s.undo_slot is None


@pytest.mark.asyncio
async def test_mode_switch_clears_targets(store, clock):
    s = _session(store, clock, mode=ScannerMode.ASSIGN_LOCATION)
    await s.submit_scan("CASE-5")
    assert s.target_case is not None

    s.set_mode(ScannerMode.LOOKUP)

    assert s.target_case is None
    assert s.target_location is None


@pytest.mark.asyncio
async def test_close_clears_undo_slot(store, clock):
    s = _session(
        store, clock, mode=ScannerMode.ASSIGN_LOCATION,
        target_location=LocationTarget(id=10, company_id=3, name="Warehouse"),
    )
    await s.submit_scan("EQP-0042")
    assert s.undo_slot is not None

    s.close()

    assert s.undo_slot is None
    assert not s.is_active
    assert await s.submit_undo() is None


# ---------------- job ----------------


@pytest.mark.asyncio
async def test_job_mode_without_job(store, clock):
    s = _session(store, clock, mode=ScannerMode.JOB_BOOK)

    entry = await s.submit_scan("EQP-0042")

    assert entry.status == ActionStatus.ERROR
    assert entry.message == "Kein Job ausgewählt. Bitte aus Job-Detailseite öffnen."


@pytest.mark.asyncio
async def test_job_book_from_session(store, clock):
    s = _session(
        store, clock, mode=ScannerMode.JOB_BOOK,
        job=JobContext(id=55, company_id=3, name="Festival"),
    )

    entry = await s.submit_scan("EQP-0042")

    assert entry.status == ActionStatus.SUCCESS
    assert entry.message == "Equipment #7 wurde für Festival gebucht."
    assert entry.link.href == "/management/equipments/7"
    assert s.undo_slot is None
    assert len(store.rows(StoreTable.JOB_BOOKED)) == 1
