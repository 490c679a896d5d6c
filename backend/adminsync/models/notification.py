"""
Change records and notification dispatch models
"""

from dataclasses import dataclass
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional, Union
from enum import Enum

class ChangeKind(str, Enum):
    GAME_ID = "gameId"
    CREDIT = "credit"
    REDEEM = "redeem"
    WITHDRAWAL = "withdrawal"

class Visibility(str, Enum):
    VISIBLE = "visible"
    HIDDEN = "hidden"

class Permission(str, Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"
    UNSUPPORTED = "unsupported"

@dataclass(frozen=True)
class ChangeRecord:
    """A newly actionable item detected between two snapshots"""
    kind: ChangeKind
    username: str
    context: Union[str, float, None]
    timestamp: int

class NotificationDispatch(BaseModel):
    tag: str
    title: str
    body: str
    url: str
    icon: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
