# app/api/routers/scanner.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_store
from app.api.routers.scanner_schemas import (
    ActionRequest,
    ActionResponse,
    ActionResultOut,
    AssignmentPayload,
    ResolveRequest,
    ResolveResponse,
)
from app.core.config import get_settings
from app.domain.ports import AssetStore, StoreError
from app.models.enums import ActionStatus, ScannerMode
from app.services.scanner.actions import ScanActionDispatcher
from app.services.scanner.context import load_job_context, load_location_target
from app.services.scanner.resolver import AssetTagResolver
from app.services.scanner.types import ActionContext
from app.services.scanner.undo import UndoHandler, location_assignment

router = APIRouter(prefix="/scanner", tags=["scanner"])


def get_resolver(store: AssetStore = Depends(get_store)) -> AssetTagResolver:
    return AssetTagResolver(store, strict_lookup=get_settings().SCAN_STRICT_LOOKUP)


# ---------------------------------------------------------
# 1) 解析：code → 载体（只读）
# ---------------------------------------------------------
@router.post("/resolve", response_model=ResolveResponse, status_code=status.HTTP_200_OK)
async def resolve_code(
    req: ResolveRequest,
    resolver: AssetTagResolver = Depends(get_resolver),
) -> ResolveResponse:
    resolved = await resolver.resolve(req.code)
    return ResolveResponse(kind=resolved.kind, resolved=resolved.as_dict())


# ---------------------------------------------------------
# 2) 无状态动作：解析 + 执行一次动作
# ---------------------------------------------------------
@router.post("/action", response_model=ActionResponse, status_code=status.HTTP_200_OK)
async def perform_action(
    req: ActionRequest,
    store: AssetStore = Depends(get_store),
    resolver: AssetTagResolver = Depends(get_resolver),
) -> ActionResponse:
    """
    - target_location_id / job_id 指向不存在的记录 → 404
    - 领域内的拒绝（跨 company、未绑定标签等）→ 200 + status=error
    - assign-location 成功时附带撤销记录，可原样回传 /scanner/undo
    """
    location = None
    if req.target_location_id is not None:
        location = await load_location_target(store, req.target_location_id)
        if location is None:
            raise HTTPException(status_code=404, detail="Standort nicht gefunden.")

    job = None
    if req.job_id is not None:
        job = await load_job_context(store, req.job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="Job nicht gefunden.")

    resolved = await resolver.resolve(req.code)
    result = await ScanActionDispatcher(store).perform_action(
        ActionContext(
            mode=req.mode,
            resolved=resolved,
            target_location_id=location.id if location else None,
            target_location_name=location.name if location else None,
            target_location_company_id=location.company_id if location else None,
            job_id=job.id if job else None,
            job_name=job.name if job else None,
            job_company_id=job.company_id if job else None,
        )
    )

    undo = None
    if req.mode == ScannerMode.ASSIGN_LOCATION and location is not None:
        info = location_assignment(
            resolved, result, location_id=location.id, location_name=location.name
        )
        undo = AssignmentPayload.from_info(info) if info else None

    return ActionResponse(
        result=ActionResultOut.from_result(result),
        resolved=resolved.as_dict(),
        undo=undo,
    )


# ---------------------------------------------------------
# 3) 无状态撤销：回传 /scanner/action 给出的撤销记录
# ---------------------------------------------------------
@router.post("/undo", response_model=ActionResultOut, status_code=status.HTTP_200_OK)
async def undo_assignment(
    req: AssignmentPayload,
    store: AssetStore = Depends(get_store),
) -> ActionResultOut:
    """
    记录来自客户端：先做租户校验，跨 company 的记录一律拒绝（200 + status=error）。
    """
    info = req.to_info()
    handler = UndoHandler(store)
    try:
        if not await handler.same_company(info):
            return ActionResultOut(
                status=ActionStatus.ERROR,
                message="Objekt gehört zu einer anderen Company als der Standort.",
                entity_type=req.entity_type,
                entity_id=req.entity_id,
            )
        await handler.undo(info)
    except StoreError as e:
        return ActionResultOut(
            status=ActionStatus.ERROR,
            message=e.message or "Rückgängig machen fehlgeschlagen.",
            entity_type=req.entity_type,
            entity_id=req.entity_id,
        )
    return ActionResultOut(
        status=ActionStatus.INFO,
        message="Standortzuweisung rückgängig gemacht.",
        entity_type=req.entity_type,
        entity_id=req.entity_id,
    )
