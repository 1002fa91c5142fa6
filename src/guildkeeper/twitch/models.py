"""Pydantic models for the subset of the Twitch Helix API the plugins consume.

Only the fields the plugins read are declared; unknown fields in responses
are ignored so that additions on Twitch's side never break decoding.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _HelixModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Pagination(_HelixModel):
    cursor: str = ""


# --- /helix/streams ---


class Stream(_HelixModel):
    """A live stream as returned by ``GET /helix/streams``."""

    id: str
    user_id: str
    user_login: str
    user_name: str = ""
    game_id: str = ""
    game_name: str = ""
    type: str = ""
    title: str = ""
    viewer_count: int = 0
    started_at: datetime
    language: str = ""
    thumbnail_url: str = ""
    tag_ids: Optional[list[str]] = None
    is_mature: bool = False


class StreamListing(_HelixModel):
    data: list[Stream] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


# --- /helix/schedule ---


class Category(_HelixModel):
    id: str = ""
    name: str = ""


class ScheduleSegment(_HelixModel):
    """One entry of a broadcaster's stream schedule."""

    id: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    title: str = ""
    canceled_until: Optional[datetime] = None
    category: Optional[Category] = None
    is_recurring: bool = False


class Vacation(_HelixModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class ScheduleData(_HelixModel):
    segments: list[ScheduleSegment] = Field(default_factory=list)
    broadcaster_id: str = ""
    broadcaster_name: str = ""
    broadcaster_login: str = ""
    vacation: Optional[Vacation] = None


class StreamSchedule(_HelixModel):
    """Response of ``GET /helix/schedule``."""

    data: ScheduleData = Field(default_factory=ScheduleData)
    pagination: Pagination = Field(default_factory=Pagination)


# --- /helix/users ---


class User(_HelixModel):
    """A Twitch account as returned by ``GET /helix/users``."""

    id: str
    login: str
    display_name: str = ""
    type: str = ""
    broadcaster_type: str = ""
    description: str = ""
    profile_image_url: str = ""
    offline_image_url: str = ""
    view_count: int = 0
    created_at: Optional[datetime] = None


class UserListing(_HelixModel):
    data: list[User] = Field(default_factory=list)


# --- oauth2/token ---


class AppAccessToken(_HelixModel):
    access_token: str
    expires_in: int = 0
    token_type: str = ""
