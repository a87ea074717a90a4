"""
Group ORM
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Column, DateTime, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

from studygroup.core.group import (
    GroupData,
    GroupStatus,
    MembershipData,
    MembershipStatus,
)

if TYPE_CHECKING:
    from .user import User


class Membership(SQLModel, table=True):
    """
    A record of a user's membership of (or request to join) a group. There is
    at most one row per (group, user) pair.
    """

    __table_args__ = (UniqueConstraint("group_id", "user_id"),)

    membership_id: int | None = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="group.group_id", ondelete="CASCADE", index=True)
    user_id: int = Field(foreign_key="user.user_id", ondelete="CASCADE", index=True)
    user: "User" = Relationship(sa_relationship_kwargs=dict(lazy="joined"))
    status: str = Field(default=MembershipStatus.PENDING.value)
    joined_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))

    def to_core(self) -> MembershipData:
        return MembershipData(
            membership_id=self.membership_id,
            group_id=self.group_id,
            user_id=self.user_id,
            user_name=self.user.user_name if self.user is not None else None,
            status=MembershipStatus(self.status),
            joined_at=self.joined_at,
        )


class Group(SQLModel, table=True):
    group_id: int | None = Field(default=None, primary_key=True)

    group_name: str
    description: str | None = None
    subject: str | None = None
    course: str | None = None
    location: str | None = None
    capacity: int

    status: str = Field(default=GroupStatus.PENDING.value)
    remarks: str | None = None

    created_by_user_id: int = Field(foreign_key="user.user_id", ondelete="CASCADE")
    created_by: "User" = Relationship(sa_relationship_kwargs=dict(lazy="joined"))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))
    updated_at: datetime | None = Field(
        sa_column=Column(DateTime(timezone=True)), default=None
    )

    def to_core(self) -> GroupData:
        """
        Convert this Group ORM object to a GroupData core object.
        """
        return GroupData(
            group_id=self.group_id,
            group_name=self.group_name,
            description=self.description,
            subject=self.subject,
            course=self.course,
            location=self.location,
            capacity=self.capacity,
            status=GroupStatus(self.status),
            remarks=self.remarks,
            created_by_user_id=self.created_by_user_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
