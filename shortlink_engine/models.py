"""
Domain records for the short-link engine.

Records are frozen dataclasses: stores hand out snapshots and produce new
instances (via `dataclasses.replace`) when a field changes, so a record held
by a caller never mutates underneath it.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

MIN_CODE_LENGTH = 3
MAX_CODE_LENGTH = 20

UNKNOWN = "Unknown"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class LinkStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


@dataclass(frozen=True)
class MappingDraft:
    """Everything needed to create a mapping except its short code."""
    target_url: str
    title: Optional[str] = None
    description: Optional[str] = None
    expires_at: Optional[datetime] = None
    owner: Optional[str] = None


@dataclass(frozen=True)
class LinkMapping:
    """
    One short code's binding to a target URL.

    `id` is assigned by the store on insert. `click_count` only ever moves
    through the store's atomic increment.
    """
    short_code: str
    target_url: str
    status: LinkStatus = LinkStatus.ACTIVE
    expires_at: Optional[datetime] = None
    title: Optional[str] = None
    description: Optional[str] = None
    owner: Optional[str] = None
    click_count: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    id: Optional[str] = None

    @classmethod
    def from_draft(cls, short_code: str, draft: MappingDraft, now: datetime) -> "LinkMapping":
        return cls(
            short_code=short_code,
            target_url=draft.target_url,
            expires_at=draft.expires_at,
            title=draft.title,
            description=draft.description,
            owner=draft.owner,
            created_at=now,
            updated_at=now,
        )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


@dataclass(frozen=True)
class ClickContext:
    """Request metadata handed from the redirect path to the click recorder."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None


@dataclass(frozen=True)
class RawClick:
    """A capture task: what the recorder receives for one resolved redirect."""
    mapping_ref: Optional[str]
    short_code: str
    timestamp: datetime
    context: ClickContext = field(default_factory=ClickContext)


@dataclass(frozen=True)
class ClickEvent:
    """
    One recorded redirect. Immutable once written.

    `mapping_ref` is a weak reference: the mapping may have been deleted since.
    """
    mapping_ref: Optional[str]
    short_code: str
    timestamp: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None
    device_class: str = UNKNOWN
    browser_class: str = UNKNOWN
    country: str = UNKNOWN
    city: str = UNKNOWN
    id: Optional[str] = None
