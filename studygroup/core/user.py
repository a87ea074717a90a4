"""
A shared user object that is serialized.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class UserStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class UserData(BaseModel):
    user_id: int
    user_name: str
    email: str | None
    first_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None
    profile_image: str | None = None
    grants: set[str] | None
    status: UserStatus = UserStatus.ACTIVE

    @property
    def is_admin(self) -> bool:
        return "admin" in (self.grants or set())


class UserProfileData(UserData):
    middle_name: str | None = None
    bio: str | None = None
    created_at: datetime | None = None
    last_logged_in: datetime | None = None
