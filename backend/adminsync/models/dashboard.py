"""
Dashboard state and action request models
"""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from adminsync.models.profile import GameProfile, GameStatistics
from adminsync.models.withdrawal import Withdrawal


class BadgeCounts(BaseModel):
    game_requests: int = 0
    pending_items: int = 0
    withdrawals: int = 0


class DashboardState(BaseModel):
    connected: bool
    authenticated: bool
    live: bool
    profiles: List[GameProfile] = []
    statistics: GameStatistics = GameStatistics()
    withdrawals: List[Withdrawal] = []
    badges: BadgeCounts = BadgeCounts()
    new_items: Dict[str, int] = {}
    refresh: Dict[str, str] = {}
    last_error: Optional[str] = None


class RefreshRequest(BaseModel):
    feeds: Optional[List[str]] = None


class ClearNotificationsRequest(BaseModel):
    feeds: Optional[List[str]] = None


class GameActionRequest(BaseModel):
    user_id: str = Field(..., alias="userId")
    game_name: str = Field(..., alias="gameName")

    model_config = {"populate_by_name": True}


class AssignGameIdRequest(GameActionRequest):
    game_id: str = Field(..., alias="gameId", min_length=1)


class WithdrawalActionRequest(BaseModel):
    user_id: str = Field(..., alias="userId")
    withdrawal_id: str = Field(..., alias="withdrawalId")

    model_config = {"populate_by_name": True}


class ApproveWithdrawalRequest(WithdrawalActionRequest):
    tx_hash: Optional[str] = Field(None, alias="txHash")


class ActionResponse(BaseModel):
    success: bool
    message: Optional[str] = None
