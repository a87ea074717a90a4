"""
Service layer for study session schedules.

Schedules are mirrored to the external calendar when one is configured. The
calendar call is made before the local write and its failure is never fatal:
the schedule is then stored without a remote event or meeting link.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy import exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from studygroup.core.content import MeetingType
from studygroup.core.errors import StudyGroupError
from studygroup.core.group import MembershipStatus
from studygroup.database.content import Schedule
from studygroup.database.group import Group, Membership

from .calendar import CalendarError, CalendarEventRequest, CalendarProvider

MEET_LINK_DURATION = timedelta(minutes=30)


class MeetLinkUnavailable(StudyGroupError):
    status_code = 503


async def create(
    group_id: int,
    created_by_user_id: int,
    title: str,
    start: datetime,
    end: datetime,
    calendar: CalendarProvider,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    description: str = "",
    location: str = "Online",
    attendees: list[int] | None = None,
    meeting_type: MeetingType = MeetingType.PHYSICAL,
) -> Schedule:
    """
    Create a schedule, first asking the calendar provider for a remote event.

    Parameters
    ----------
    calendar: CalendarProvider
        Where to mirror the event. Any `CalendarError` it raises is logged
        and the schedule is stored with no external event.
    """
    log = log.bind(
        group_id=group_id,
        user_id=created_by_user_id,
        meeting_type=meeting_type.value,
        calendar=calendar.name,
    )

    external_event_id = None
    meeting_link = None

    try:
        result = await calendar.create_event(
            CalendarEventRequest(
                title=title,
                description=description,
                location=location,
                start=start,
                end=end,
                meeting_type=meeting_type,
            )
        )
        external_event_id = result.event_id
        meeting_link = result.meeting_link
        log = log.bind(external_event_id=external_event_id)
    except CalendarError as e:
        await log.awarn("schedule.calendar.failed", error=str(e))

    schedule = Schedule(
        group_id=group_id,
        created_by_user_id=created_by_user_id,
        title=title,
        description=description,
        start=start,
        end=end,
        location=location,
        attendees=list(attendees or []),
        meeting_type=meeting_type.value,
        external_event_id=external_event_id,
        meeting_link=meeting_link,
        created_at=datetime.now(timezone.utc),
    )
    conn.add(schedule)
    await conn.flush()

    await log.ainfo("schedule.created", schedule_id=schedule.schedule_id)

    return schedule


async def list_for_group(
    group_id: int, conn: AsyncSession, log: FilteringBoundLogger
) -> list[Schedule]:
    """
    Schedules of a group, soonest first.
    """
    result = await conn.execute(
        select(Schedule)
        .where(Schedule.group_id == group_id)
        .order_by(Schedule.start, Schedule.schedule_id)
    )
    schedules = result.scalars().all()

    await log.adebug("schedule.listed", group_id=group_id, number=len(schedules))

    return list(schedules)


async def list_for_user(
    user_id: int, conn: AsyncSession, log: FilteringBoundLogger
) -> list[Schedule]:
    """
    Schedules across every group the user created or is an approved member of,
    soonest first.
    """
    is_member = exists().where(
        Membership.group_id == Schedule.group_id,
        Membership.user_id == user_id,
        Membership.status == MembershipStatus.APPROVED.value,
    )
    is_creator = exists().where(
        Group.group_id == Schedule.group_id,
        Group.created_by_user_id == user_id,
    )

    result = await conn.execute(
        select(Schedule)
        .where(or_(is_member, is_creator))
        .order_by(Schedule.start, Schedule.schedule_id)
    )
    schedules = result.scalars().all()

    await log.adebug("schedule.listed", for_user=user_id, number=len(schedules))

    return list(schedules)


async def generate_meet_link(
    title: str,
    calendar: CalendarProvider,
    log: FilteringBoundLogger,
) -> str:
    """
    Create a stand-alone online event starting now and return its meeting
    link. Nothing is stored locally.

    Raises
    ------
    MeetLinkUnavailable
        If the calendar fails or returns no link.
    """
    log = log.bind(calendar=calendar.name)
    start = datetime.now(timezone.utc)

    try:
        result = await calendar.create_event(
            CalendarEventRequest(
                title=title,
                start=start,
                end=start + MEET_LINK_DURATION,
                meeting_type=MeetingType.ONLINE,
            )
        )
    except CalendarError as e:
        await log.awarn("schedule.meet_link.failed", error=str(e))
        raise MeetLinkUnavailable("Could not generate a meeting link")

    if result.meeting_link is None:
        await log.awarn("schedule.meet_link.missing", event_id=result.event_id)
        raise MeetLinkUnavailable("The calendar did not return a meeting link")

    await log.ainfo("schedule.meet_link.created", event_id=result.event_id)

    return result.meeting_link
