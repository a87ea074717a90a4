"""
Core data models for group content: chat messages, schedules, announcements
and the administrative activity trail.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class MeetingType(str, Enum):
    PHYSICAL = "physical"
    ONLINE = "online"


class MessageData(BaseModel):
    message_id: int
    group_id: int
    sender_id: int
    sender_name: str | None
    text: str | None
    file_link: str | None
    created_at: datetime


class ScheduleData(BaseModel):
    schedule_id: int
    group_id: int
    created_by_user_id: int
    title: str
    description: str
    start: datetime
    end: datetime
    location: str
    attendees: list[int]
    meeting_type: MeetingType
    external_event_id: str | None
    meeting_link: str | None
    created_at: datetime


class AnnouncementData(BaseModel):
    announcement_id: int
    group_id: int
    author_id: int
    author_name: str | None
    title: str
    body: str
    created_at: datetime


class ActivityData(BaseModel):
    activity_id: int
    user_id: int
    user_name: str | None
    action: str
    target: str
    created_at: datetime
