"""
Game Router - game ID assignment and credit/redeem decisions
"""

from fastapi import APIRouter, Depends
from loguru import logger

from adminsync.dependencies import get_sync, http_error
from adminsync.errors import AdminSyncError
from adminsync.models.dashboard import ActionResponse, AssignGameIdRequest, GameActionRequest
from adminsync.sync.feeds import GAME_MANAGEMENT
from adminsync.sync.service import DashboardSync

router = APIRouter()


async def _run(sync: DashboardSync, call, success_message: str) -> ActionResponse:
    try:
        result = await call
    except AdminSyncError as e:
        logger.error(f"❌ {success_message} failed: {e}")
        raise http_error(e)
    sync.request_refresh(feeds=[GAME_MANAGEMENT])
    return ActionResponse(success=True, message=result.get("message") or success_message)


@router.post("/assign-gameid", response_model=ActionResponse)
async def assign_game_id(request: AssignGameIdRequest, sync: DashboardSync = Depends(get_sync)):
    call = sync.api.assign_game_id(request.user_id, request.game_name, request.game_id)
    return await _run(sync, call, "Game ID assigned")


@router.post("/approve-credit", response_model=ActionResponse)
async def approve_credit(request: GameActionRequest, sync: DashboardSync = Depends(get_sync)):
    return await _run(sync, sync.api.approve_credit(request.user_id, request.game_name), "Credit approved")


@router.post("/disapprove-credit", response_model=ActionResponse)
async def disapprove_credit(request: GameActionRequest, sync: DashboardSync = Depends(get_sync)):
    return await _run(sync, sync.api.disapprove_credit(request.user_id, request.game_name), "Credit disapproved")


@router.post("/approve-redeem", response_model=ActionResponse)
async def approve_redeem(request: GameActionRequest, sync: DashboardSync = Depends(get_sync)):
    return await _run(sync, sync.api.approve_redeem(request.user_id, request.game_name), "Redeem approved")


@router.post("/disapprove-redeem", response_model=ActionResponse)
async def disapprove_redeem(request: GameActionRequest, sync: DashboardSync = Depends(get_sync)):
    return await _run(sync, sync.api.disapprove_redeem(request.user_id, request.game_name), "Redeem disapproved")
