"""
ORM for group content. Messages and announcements are append-only; schedules
are written once and carry the identifier of their remote calendar event, if
the calendar accepted them.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, Relationship, SQLModel

from studygroup.core.content import (
    ActivityData,
    AnnouncementData,
    MeetingType,
    MessageData,
    ScheduleData,
)

if TYPE_CHECKING:
    from .user import User


class Message(SQLModel, table=True):
    message_id: int | None = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="group.group_id", ondelete="CASCADE", index=True)
    sender_id: int = Field(foreign_key="user.user_id", ondelete="CASCADE")
    sender: "User" = Relationship(sa_relationship_kwargs=dict(lazy="joined"))
    text: str | None = None
    file_link: str | None = None
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))

    def to_core(self) -> MessageData:
        return MessageData(
            message_id=self.message_id,
            group_id=self.group_id,
            sender_id=self.sender_id,
            sender_name=self.sender.user_name if self.sender is not None else None,
            text=self.text,
            file_link=self.file_link,
            created_at=self.created_at,
        )


class Schedule(SQLModel, table=True):
    schedule_id: int | None = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="group.group_id", ondelete="CASCADE", index=True)
    created_by_user_id: int = Field(foreign_key="user.user_id", ondelete="CASCADE")
    title: str
    description: str = ""
    start: datetime = Field(sa_column=Column(DateTime(timezone=True)))
    end: datetime = Field(sa_column=Column(DateTime(timezone=True)))
    location: str = "Online"
    attendees: list[int] = Field(default_factory=list, sa_column=Column(JSON))
    meeting_type: str = Field(default=MeetingType.PHYSICAL.value)
    external_event_id: str | None = None
    meeting_link: str | None = None
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))

    def to_core(self) -> ScheduleData:
        return ScheduleData(
            schedule_id=self.schedule_id,
            group_id=self.group_id,
            created_by_user_id=self.created_by_user_id,
            title=self.title,
            description=self.description,
            start=self.start,
            end=self.end,
            location=self.location,
            attendees=list(self.attendees or []),
            meeting_type=MeetingType(self.meeting_type),
            external_event_id=self.external_event_id,
            meeting_link=self.meeting_link,
            created_at=self.created_at,
        )


class Announcement(SQLModel, table=True):
    announcement_id: int | None = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="group.group_id", ondelete="CASCADE", index=True)
    author_id: int = Field(foreign_key="user.user_id", ondelete="CASCADE")
    author: "User" = Relationship(sa_relationship_kwargs=dict(lazy="joined"))
    title: str
    body: str
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))

    def to_core(self) -> AnnouncementData:
        return AnnouncementData(
            announcement_id=self.announcement_id,
            group_id=self.group_id,
            author_id=self.author_id,
            author_name=self.author.user_name if self.author is not None else None,
            title=self.title,
            body=self.body,
            created_at=self.created_at,
        )


class Activity(SQLModel, table=True):
    """
    Audit trail of administrative and lifecycle actions.
    """

    activity_id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.user_id", ondelete="CASCADE")
    user: "User" = Relationship(sa_relationship_kwargs=dict(lazy="joined"))
    action: str
    target: str
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))

    def to_core(self) -> ActivityData:
        return ActivityData(
            activity_id=self.activity_id,
            user_id=self.user_id,
            user_name=self.user.user_name if self.user is not None else None,
            action=self.action,
            target=self.target,
            created_at=self.created_at,
        )
