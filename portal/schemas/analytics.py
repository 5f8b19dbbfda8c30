from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClientInfo(CamelModel):
    """Browser metadata sent by the article page. Unknown keys are kept as extras."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    url: Optional[str] = None
    pathname: Optional[str] = None
    search: Optional[str] = None
    language: Optional[str] = None
    platform: Optional[str] = None
    screen_width: Optional[int] = None
    screen_height: Optional[int] = None
    viewport_width: Optional[int] = None
    viewport_height: Optional[int] = None
    timezone: Optional[str] = None

    @property
    def screen_resolution(self) -> Optional[str]:
        if self.screen_width is None or self.screen_height is None:
            return None
        return f"{self.screen_width}x{self.screen_height}"

    @property
    def viewport_size(self) -> Optional[str]:
        if self.viewport_width is None or self.viewport_height is None:
            return None
        return f"{self.viewport_width}x{self.viewport_height}"

    @property
    def extras(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class ViewTrackingRequest(CamelModel):
    article_slug: str = Field(..., min_length=1, max_length=255, description="Slug of the article being read.")
    session_id: Optional[str] = Field(None, max_length=128, description="Opaque reading-session token.")
    referrer: Optional[str] = Field(None, description="document.referrer of the article page.")
    timestamp: Optional[datetime] = Field(
        None, description="Client-side view time, unix seconds/milliseconds or ISO-8601."
    )
    client_info: Optional[ClientInfo] = None

    @field_validator("article_slug")
    @classmethod
    def strip_slug(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Article slug is required")
        return value


class EngagementAction(str, Enum):
    TRACK_DURATION = "track-duration"
    TRACK_SCROLL = "track-scroll"


class EngagementRequest(CamelModel):
    article_slug: str = Field(..., min_length=1, max_length=255)
    session_id: str = Field(..., min_length=1, max_length=128)
    action: EngagementAction
    view_duration: Optional[float] = Field(None, ge=0, description="Seconds spent on the page.")
    scroll_depth: Optional[float] = Field(None, ge=0, le=100, description="Deepest scroll position, in percent.")


class ViewTrackingData(CamelModel):
    tracking_id: int
    article_slug: str
    session_id: str
    new_view_count: Optional[int]
    is_unique_view: bool
    article_found: bool


class ViewTrackingResponse(CamelModel):
    success: bool = True
    data: ViewTrackingData


class EngagementResponse(CamelModel):
    success: bool = True
    updated: bool


class AnalyticsEventResponse(CamelModel):
    id: int
    article_slug: str
    article_title: str
    client_address: str
    user_agent: str
    session_id: str
    referrer: str
    device_type: str
    viewed_at: datetime
    client_timestamp: Optional[datetime] = None
    is_unique_view: bool
    view_duration: Optional[float] = None
    scroll_depth: Optional[float] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)
