"""
Meta functionality for the database.
"""

from .content import Activity, Announcement, Message, Schedule
from .group import Group, Membership
from .user import User

ALL_TABLES = (
    User,
    Group,
    Membership,
    Message,
    Schedule,
    Announcement,
    Activity,
)
