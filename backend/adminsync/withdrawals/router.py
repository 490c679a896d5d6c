"""
Withdrawal Router - approve or reject pending withdrawals
"""

from fastapi import APIRouter, Depends
from loguru import logger

from adminsync.dependencies import get_sync, http_error
from adminsync.errors import AdminSyncError
from adminsync.models.dashboard import ActionResponse, ApproveWithdrawalRequest, WithdrawalActionRequest
from adminsync.sync.feeds import WITHDRAWAL_MANAGEMENT
from adminsync.sync.service import DashboardSync

router = APIRouter()


@router.post("/approve", response_model=ActionResponse)
async def approve_withdrawal(request: ApproveWithdrawalRequest, sync: DashboardSync = Depends(get_sync)):
    try:
        result = await sync.api.approve_withdrawal(request.user_id, request.withdrawal_id, request.tx_hash or "")
    except AdminSyncError as e:
        logger.error(f"❌ Approving withdrawal {request.withdrawal_id} failed: {e}")
        raise http_error(e)

    logger.info(f"✅ Withdrawal {request.withdrawal_id} approved")
    sync.request_refresh(feeds=[WITHDRAWAL_MANAGEMENT])
    return ActionResponse(success=True, message=result.get("message") or "Withdrawal approved successfully")


@router.post("/disapprove", response_model=ActionResponse)
async def disapprove_withdrawal(request: WithdrawalActionRequest, sync: DashboardSync = Depends(get_sync)):
    try:
        result = await sync.api.disapprove_withdrawal(request.user_id, request.withdrawal_id)
    except AdminSyncError as e:
        logger.error(f"❌ Rejecting withdrawal {request.withdrawal_id} failed: {e}")
        raise http_error(e)

    logger.info(f"🚫 Withdrawal {request.withdrawal_id} rejected")
    sync.request_refresh(feeds=[WITHDRAWAL_MANAGEMENT])
    return ActionResponse(success=True, message=result.get("message") or "Withdrawal rejected successfully")
