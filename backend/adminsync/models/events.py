"""
Socket.IO event payloads exchanged with the upstream admin server

Every collection field falls back to an empty list when the server omits it
or sends null, so consumers never branch on a missing key.
"""

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

from adminsync.models.profile import StatisticsRecord, UserProfileRecord
from adminsync.models.withdrawal import Withdrawal

# Inbound event names
EVENT_CONNECT = "connect"
EVENT_DISCONNECT = "disconnect"
EVENT_CONNECT_ERROR = "connect_error"
EVENT_AUTHENTICATED = "authenticated"
EVENT_GAME_PROFILES = "gameProfiles"
EVENT_GAME_STATISTICS = "gameStatistics"
EVENT_PENDING_WITHDRAWALS = "pendingWithdrawals"
EVENT_ERROR = "error"

# Outbound event names
EMIT_AUTHENTICATE = "authenticate"
EMIT_GET_GAME_PROFILES = "get:gameProfiles"
EMIT_GET_GAME_STATISTICS = "get:gameStatistics"
EMIT_GET_PENDING_WITHDRAWALS = "get:pendingWithdrawals"


class ServerPayload(BaseModel):
    success: bool = False
    message: Optional[str] = None

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("success", mode="before")
    @classmethod
    def none_is_false(cls, value):
        return False if value is None else value

class AuthenticatedPayload(ServerPayload):
    pass

class GameProfilesPayload(ServerPayload):
    profiles: List[UserProfileRecord] = Field(default_factory=list)

    @field_validator("profiles", mode="before")
    @classmethod
    def profiles_default(cls, value):
        if not isinstance(value, list):
            return []
        return [record for record in value if isinstance(record, (dict, UserProfileRecord))]

class GameStatisticsPayload(ServerPayload):
    statistics: Optional[StatisticsRecord] = None

class PendingWithdrawalsPayload(ServerPayload):
    pending_withdrawals: List[Withdrawal] = Field(default_factory=list, alias="pendingWithdrawals")

    @field_validator("pending_withdrawals", mode="before")
    @classmethod
    def withdrawals_default(cls, value):
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, (dict, Withdrawal))]

class ErrorPayload(BaseModel):
    message: Optional[str] = None

    model_config = {"extra": "ignore"}


DATA_PAYLOADS = {
    EVENT_GAME_PROFILES: GameProfilesPayload,
    EVENT_GAME_STATISTICS: GameStatisticsPayload,
    EVENT_PENDING_WITHDRAWALS: PendingWithdrawalsPayload,
}

DEFAULT_FAILURE_MESSAGES = {
    EVENT_GAME_PROFILES: "Failed to fetch game profiles",
    EVENT_GAME_STATISTICS: "Failed to fetch game statistics",
    EVENT_PENDING_WITHDRAWALS: "Failed to fetch pending withdrawals",
}
