"""
Withdrawal Data Models
"""

from pydantic import BaseModel, Field, field_validator
from typing import Any, Optional
from enum import Enum

from adminsync.models.profile import UserData

class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


class Withdrawal(BaseModel):
    withdrawal_id: Optional[str] = Field(None, alias="withdrawalId")
    id: Optional[str] = Field(None, alias="_id")
    user_id: Optional[str] = Field(None, alias="userId")
    username: Optional[str] = None
    email: Optional[str] = None
    user_data: Optional[UserData] = Field(None, alias="userData")
    status: Optional[str] = None
    amount: float = 0
    address: Optional[str] = None
    asset: Optional[str] = None
    network: Optional[str] = None
    timestamp: Optional[str] = None

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("withdrawal_id", "id", "user_id", "timestamp", mode="before")
    @classmethod
    def coerce_ids(cls, value):
        return _as_str(value)

    @field_validator("amount", mode="before")
    @classmethod
    def none_is_zero(cls, value):
        return 0 if value is None else value

    @property
    def identity(self) -> Optional[str]:
        return self.withdrawal_id or self.id

    @property
    def display_name(self) -> str:
        if self.username:
            return self.username
        if self.user_data and self.user_data.username:
            return self.user_data.username
        return "User"

    @property
    def is_pending(self) -> bool:
        return self.status == WithdrawalStatus.PENDING.value
