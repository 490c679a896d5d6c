"""
Game Profile Data Models
"""

from pydantic import BaseModel, Field, field_validator
from typing import Any, List, Optional, Tuple
from enum import Enum

class ProfileStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"

class CreditStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    PENDING_REDEEM = "pending_redeem"
    SUCCESS = "success"


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


class UserData(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None

    model_config = {"populate_by_name": True, "extra": "ignore"}

class CreditAmount(BaseModel):
    amount: float = 0
    requested_amount: float = Field(0, alias="requestedAmount")
    status: str = CreditStatus.NONE.value

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("amount", "requested_amount", mode="before")
    @classmethod
    def none_is_zero(cls, value):
        return 0 if value is None else value

    @field_validator("status", mode="before")
    @classmethod
    def none_is_none_status(cls, value):
        return CreditStatus.NONE.value if value is None else value

class GameEntry(BaseModel):
    game_name: Optional[str] = Field(None, alias="gameName")
    game_id: Optional[str] = Field(None, alias="gameId")
    profile_status: Optional[str] = Field(None, alias="profileStatus")
    credit_amount: Optional[CreditAmount] = Field(None, alias="creditAmount")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("game_id", mode="before")
    @classmethod
    def coerce_game_id(cls, value):
        return _as_str(value)

    @field_validator("game_name", mode="before")
    @classmethod
    def coerce_game_name(cls, value):
        return _as_str(value)

    @field_validator("credit_amount", mode="before")
    @classmethod
    def credit_default(cls, value):
        return value if isinstance(value, (dict, CreditAmount)) else None

class UserProfileRecord(BaseModel):
    """One user's record as the server sends it: a user owning several games"""
    user_id: Optional[str] = Field(None, alias="userId")
    id: Optional[str] = Field(None, alias="_id")
    user_data: Optional[UserData] = Field(None, alias="userData")
    games: List[GameEntry] = Field(default_factory=list)
    created_at: Optional[str] = Field(None, alias="createdAt")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("user_id", "id", "created_at", mode="before")
    @classmethod
    def coerce_ids(cls, value):
        return _as_str(value)

    @field_validator("games", mode="before")
    @classmethod
    def games_default(cls, value):
        # Some records arrive with games=null or a non-list placeholder.
        if not isinstance(value, list):
            return []
        return [entry for entry in value if isinstance(entry, (dict, GameEntry))]

    @property
    def identity(self) -> Optional[str]:
        return self.user_id or self.id

    @property
    def username(self) -> str:
        if self.user_data and self.user_data.username:
            return self.user_data.username
        return "Unknown"

class GameProfile(BaseModel):
    """Flattened (user, game) row; the unit compared between snapshots"""
    user_id: str
    game_name: str
    username: str = "Unknown"
    email: str = "No email"
    game_id: Optional[str] = None
    profile_status: Optional[str] = None
    credit_status: str = CreditStatus.NONE.value
    credit_amount: float = 0
    requested_amount: float = 0

    model_config = {"frozen": True}

    @property
    def key(self) -> Tuple[str, str]:
        return (self.user_id, self.game_name)

class StatisticsRecord(BaseModel):
    total_profiles: int = Field(0, alias="totalProfiles")
    total_pending_profiles: int = Field(0, alias="totalPendingProfiles")
    pending_credit_requests: int = Field(0, alias="pendingCreditRequests")
    pending_redeem_requests: int = Field(0, alias="pendingRedeemRequests")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("*", mode="before")
    @classmethod
    def none_is_zero(cls, value):
        return 0 if value is None else value

class GameStatistics(BaseModel):
    total_profiles: int = 0
    pending_profiles: int = 0
    pending_credits: int = 0
    pending_redeems: int = 0

    @classmethod
    def from_record(cls, record: Optional[StatisticsRecord]) -> "GameStatistics":
        if record is None:
            return cls()
        return cls(
            total_profiles=record.total_profiles,
            pending_profiles=record.total_pending_profiles,
            pending_credits=record.pending_credit_requests,
            pending_redeems=record.pending_redeem_requests,
        )

    @property
    def total_pending(self) -> int:
        return self.pending_profiles + self.pending_credits + self.pending_redeems
