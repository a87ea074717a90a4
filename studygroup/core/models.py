"""
Pydantic models for request/responses to APIs.
"""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import AwareDatetime, BaseModel, EmailStr, Field, model_validator

from studygroup.core.content import MeetingType
from studygroup.core.group import GroupStatus
from studygroup.core.user import UserData, UserStatus

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """
    The single response shape used by every endpoint. Business-rule rejections
    (already a member, group full) are returned with `success=False` and a
    200 status; errors carry the matching HTTP status.
    """

    success: bool = True
    message: str | None = None
    data: T | None = None
    trace: list[str] | None = None


class RegisterRequest(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    middle_name: str | None = None
    user_name: str = Field(min_length=1, max_length=64)
    email: EmailStr
    password: str = Field(min_length=8)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class GoogleLoginRequest(BaseModel):
    credential: str


class ProfileUpdateRequest(BaseModel):
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    user_name: str | None = Field(default=None, min_length=1, max_length=64)
    bio: str | None = None
    profile_image: str | None = None


class TokenResponse(BaseModel):
    access_token: str
    access_token_expires: datetime
    user: UserData


class GroupCreationRequest(BaseModel):
    group_name: str = Field(min_length=1, max_length=255)
    capacity: int = Field(ge=1)
    description: str | None = None
    subject: str | None = None
    course: str | None = None
    location: str | None = None


class GroupUpdateRequest(BaseModel):
    group_name: str | None = Field(default=None, min_length=1, max_length=255)
    capacity: int | None = Field(default=None, ge=1)
    description: str | None = None
    subject: str | None = None
    course: str | None = None
    location: str | None = None


class JoinRequest(BaseModel):
    group_id: int
    user_id: int


class GroupReviewRequest(BaseModel):
    status: GroupStatus
    remarks: str | None = None

    @model_validator(mode="after")
    def not_pending(self):
        if self.status == GroupStatus.PENDING:
            raise ValueError("A group can only be approved or rejected")
        return self


class UserStatusRequest(BaseModel):
    status: UserStatus


class MessageCreationRequest(BaseModel):
    text: str | None = None
    file_link: str | None = None

    @model_validator(mode="after")
    def has_payload(self):
        if not self.text and not self.file_link:
            raise ValueError("A message needs text or a file link")
        return self


class AnnouncementCreationRequest(BaseModel):
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)


class ScheduleCreationRequest(BaseModel):
    title: str = Field(min_length=1)
    start: AwareDatetime
    end: AwareDatetime
    description: str = ""
    location: str = "Online"
    attendees: list[int] = []
    meeting_type: MeetingType = MeetingType.PHYSICAL

    @model_validator(mode="after")
    def start_before_end(self):
        if self.start >= self.end:
            raise ValueError("Schedule start must be strictly before its end")
        return self


class MeetLinkResponse(BaseModel):
    meeting_link: str | None


class DashboardResponse(BaseModel):
    total_users: int
    approved_groups: int
    pending_groups: int
    socket_connections: int


class HealthResponse(BaseModel):
    database: str
    socket_connections: int
