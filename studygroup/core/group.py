"""
Core group and membership data models.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class GroupStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class MembershipStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


class JoinOutcome(str, Enum):
    REQUESTED = "requested"
    ALREADY_MEMBER = "already_member"
    PENDING = "pending"
    FULL = "full"


class GroupData(BaseModel):
    group_id: int
    group_name: str
    description: str | None
    subject: str | None
    course: str | None
    location: str | None
    capacity: int
    status: GroupStatus
    remarks: str | None
    created_by_user_id: int
    created_at: datetime
    updated_at: datetime | None


class GroupSummary(GroupData):
    """
    A group joined with its approved member count and the creator's display
    name, as returned by the listing endpoints.
    """

    approved_count: int
    creator_name: str | None


class MembershipData(BaseModel):
    membership_id: int
    group_id: int
    user_id: int
    user_name: str | None = None
    status: MembershipStatus
    joined_at: datetime


class JoinResult(BaseModel):
    outcome: JoinOutcome
    membership: MembershipData | None = None
