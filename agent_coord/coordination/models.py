"""
Records persisted by the coordination store and the result types returned to callers.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

UNKNOWN_SENDER = "unknown"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_duration(delta: timedelta) -> str:
    """Render a lock age as e.g. ``'1h 4m'``, ``'3m 12s'`` or ``'8s'``."""
    seconds = max(0, int(delta.total_seconds()))
    hours, rest = divmod(seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


class LockRecord(BaseModel):
    """Ownership of one resource path. Stored as ``{path: {ownerId, acquiredAt, lastModified}}``."""

    model_config = ConfigDict(populate_by_name=True)

    resource_path: str = Field(exclude=True, min_length=1)
    owner_id: str = Field(alias="ownerId", min_length=1)
    acquired_at: datetime = Field(alias="acquiredAt")
    last_modified: datetime = Field(alias="lastModified")

    @field_validator("acquired_at", "last_modified")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @classmethod
    def from_entry(cls, resource_path: str, value: Any) -> 'LockRecord':
        if not isinstance(value, dict):
            raise TypeError(f"expected an object, got {type(value).__name__}")
        return cls.model_validate({**value, "resource_path": resource_path})

    def to_entry(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Message(BaseModel):
    """
    One mailbox entry. Stored as ``{from, body, timestamp}``.

    Older writers stored either a bare string or used ``message`` for the body;
    both are normalized here so nothing past the store sees the difference.
    """

    model_config = ConfigDict(frozen=True)

    sender: str = Field(
        validation_alias=AliasChoices("from", "sender"),
        serialization_alias="from",
        min_length=1,
    )
    body: str = Field(validation_alias=AliasChoices("body", "message"))
    sent_at: datetime = Field(
        default_factory=utcnow,
        validation_alias=AliasChoices("timestamp", "sentAt", "sent_at"),
        serialization_alias="timestamp",
    )

    @model_validator(mode="before")
    @classmethod
    def _normalize_bare_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"from": UNKNOWN_SENDER, "body": data}
        return data

    @field_validator("sent_at")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def to_entry(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def render(self) -> str:
        return f"{self.sender}: {self.body}"


@dataclass
class LockAcquired:
    """The caller owns the resource (newly, or already did)."""
    record: LockRecord
    created: bool

    ok = True


@dataclass
class LockDenied:
    """Another agent owns the resource. Surfaced to the caller, never retried."""
    resource_path: str
    held_by: str
    held_since: datetime

    ok = False

    def held_for(self, now: Optional[datetime] = None) -> timedelta:
        return (now or utcnow()) - self.held_since

    def reason(self, now: Optional[datetime] = None) -> str:
        return (
            f"{self.resource_path} is locked by {self.held_by} "
            f"for {format_duration(self.held_for(now))}"
        )


class AwaitState(str, Enum):
    CHECKING = "checking"
    WATCHING = "watching"
    DELIVERED = "delivered"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass
class AwaitResult:
    """Terminal outcome of one mailbox wait."""
    state: AwaitState
    messages: List[Message] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return self.state is AwaitState.DELIVERED

    @property
    def timed_out(self) -> bool:
        return self.state is AwaitState.TIMED_OUT

    @property
    def cancelled(self) -> bool:
        return self.state is AwaitState.CANCELLED
