"""
Pydantic schemas for request/response models of the HTTP API.
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

from .analytics.aggregator import Aggregates
from .models import ClickEvent, LinkMapping, LinkStatus


class CreateMappingRequest(BaseModel):
    """Request payload for creating a new short link."""
    target_url: str
    custom_code: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    expires_at: Optional[datetime] = None
    owner: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: LinkStatus


class MappingResponse(BaseModel):
    id: Optional[str]
    short_code: str
    short_url: str
    target_url: str
    title: Optional[str] = None
    description: Optional[str] = None
    status: LinkStatus
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    click_count: int
    owner: Optional[str] = None

    @classmethod
    def from_mapping(cls, mapping: LinkMapping, base_url: str) -> "MappingResponse":
        return cls(
            id=mapping.id,
            short_code=mapping.short_code,
            short_url=f"{base_url}/s/{mapping.short_code}",
            target_url=mapping.target_url,
            title=mapping.title,
            description=mapping.description,
            status=mapping.status,
            expires_at=mapping.expires_at,
            created_at=mapping.created_at,
            updated_at=mapping.updated_at,
            click_count=mapping.click_count,
            owner=mapping.owner,
        )


class ClickResponse(BaseModel):
    id: Optional[str]
    mapping_ref: Optional[str]
    short_code: str
    clicked_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None
    device: str
    browser: str
    country: str
    city: str

    @classmethod
    def from_event(cls, event: ClickEvent) -> "ClickResponse":
        return cls(
            id=event.id,
            mapping_ref=event.mapping_ref,
            short_code=event.short_code,
            clicked_at=event.timestamp,
            ip_address=event.ip_address,
            user_agent=event.user_agent,
            referer=event.referer,
            device=event.device_class,
            browser=event.browser_class,
            country=event.country,
            city=event.city,
        )


class AggregatesResponse(BaseModel):
    owner: Optional[str] = None
    window_days: int
    start_date: str
    end_date: str
    total_clicks: int
    clicks_by_date: Dict[str, int] = Field(default_factory=dict)
    clicks_by_country: Dict[str, int] = Field(default_factory=dict)
    clicks_by_device: Dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_aggregates(cls, agg: Aggregates, owner: Optional[str], window_days: int) -> "AggregatesResponse":
        return cls(
            owner=owner,
            window_days=window_days,
            start_date=agg.start_date.isoformat(),
            end_date=agg.end_date.isoformat(),
            total_clicks=agg.total,
            clicks_by_date=agg.clicks_by_date,
            clicks_by_country=agg.clicks_by_country,
            clicks_by_device=agg.clicks_by_device,
        )
