# app/api/routers/scanner_sessions.py
from __future__ import annotations

from typing import Tuple

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.api.deps import get_session_registry, get_store
from app.api.routers.scanner_schemas import (
    FeedEntryOut,
    ModeRequest,
    ScanCodeRequest,
    ScanResponse,
    SessionOpenRequest,
    SessionOut,
    TargetLocationRequest,
)
from app.core.logging import bind_scan_session
from app.domain.ports import AssetStore
from app.services.scanner.context import load_job_context, load_location_target
from app.services.scanner.registry import ScanSessionRegistry
from app.services.scanner.session import ScanSession

router = APIRouter(prefix="/scanner/sessions", tags=["scanner"])


def _lookup(registry: ScanSessionRegistry, sid: str) -> ScanSession:
    try:
        return registry.get(sid)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"scan session {sid} not found") from None


async def get_scan_session(
    sid: str,
    registry: ScanSessionRegistry = Depends(get_session_registry),
) -> Tuple[str, ScanSession]:
    session = _lookup(registry, sid)
    bind_scan_session(sid)
    return sid, session


# ---------------------------------------------------------
# 1) 打开 / 查看 / 关闭
# ---------------------------------------------------------
@router.post("", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
async def open_session(
    req: SessionOpenRequest,
    store: AssetStore = Depends(get_store),
    registry: ScanSessionRegistry = Depends(get_session_registry),
) -> SessionOut:
    location = None
    if req.location_id is not None:
        location = await load_location_target(store, req.location_id)
        if location is None:
            raise HTTPException(status_code=404, detail="Standort nicht gefunden.")

    job = None
    if req.job_id is not None:
        job = await load_job_context(store, req.job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="Job nicht gefunden.")

    sid, session = registry.open(
        ScanSession(store, mode=req.mode, target_location=location, job=job)
    )
    bind_scan_session(sid)
    return SessionOut.from_session(sid, session)


@router.get("/{sid}", response_model=SessionOut)
async def get_session_state(
    current: Tuple[str, ScanSession] = Depends(get_scan_session),
) -> SessionOut:
    return SessionOut.from_session(*current)


@router.delete("/{sid}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(
    sid: str,
    registry: ScanSessionRegistry = Depends(get_session_registry),
) -> Response:
    _lookup(registry, sid)
    registry.close(sid)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------
# 2) 模式 / 目标库位
# ---------------------------------------------------------
@router.put("/{sid}/mode", response_model=SessionOut)
async def set_mode(
    req: ModeRequest,
    current: Tuple[str, ScanSession] = Depends(get_scan_session),
) -> SessionOut:
    sid, session = current
    session.set_mode(req.mode)
    return SessionOut.from_session(sid, session)


@router.put("/{sid}/target-location", response_model=SessionOut)
async def select_target_location(
    req: TargetLocationRequest,
    store: AssetStore = Depends(get_store),
    current: Tuple[str, ScanSession] = Depends(get_scan_session),
) -> SessionOut:
    sid, session = current
    location = await load_location_target(store, req.location_id)
    if location is None:
        raise HTTPException(status_code=404, detail="Standort nicht gefunden.")
    session.select_location(location)
    return SessionOut.from_session(sid, session)


# ---------------------------------------------------------
# 3) 扫码 / 撤销
# ---------------------------------------------------------
@router.post("/{sid}/scan", response_model=ScanResponse)
async def submit_scan(
    req: ScanCodeRequest,
    current: Tuple[str, ScanSession] = Depends(get_scan_session),
) -> ScanResponse:
    sid, session = current
    entry = await session.submit_scan(req.code)
    return ScanResponse(
        accepted=entry is not None,
        entry=FeedEntryOut.from_entry(entry) if entry else None,
        session=SessionOut.from_session(sid, session),
    )


@router.post("/{sid}/undo", response_model=ScanResponse)
async def submit_undo(
    current: Tuple[str, ScanSession] = Depends(get_scan_session),
) -> ScanResponse:
    sid, session = current
    entry = await session.submit_undo()
    return ScanResponse(
        accepted=entry is not None,
        entry=FeedEntryOut.from_entry(entry) if entry else None,
        session=SessionOut.from_session(sid, session),
    )
