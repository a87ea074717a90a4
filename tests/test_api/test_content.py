"""
Tests messages, announcements and schedules over HTTP, and the events they
broadcast to group rooms.
"""

import pytest

from studygroup.api import dependencies
from studygroup.api.app import app
from studygroup.realtime.hub import room_for_group
from studygroup.service.mock import MockCalendarProvider

SCHEDULE = {
    "title": "Problem set 4",
    "start": "2026-11-03T10:00:00Z",
    "end": "2026-11-03T12:00:00Z",
    "location": "Online",
    "meeting_type": "online",
}


async def group_with_member(client, register, admin, prefix: str):
    """
    An approved group owned by `{prefix}_owner` with `{prefix}_member` as an
    approved member and `{prefix}_outsider` outside it.
    """
    owner_headers, _ = await register(f"{prefix}_owner")
    member_headers, member = await register(f"{prefix}_member")
    outsider_headers, _ = await register(f"{prefix}_outsider")

    response = await client.post(
        "/api/group",
        headers=owner_headers,
        json={"group_name": f"{prefix} group", "capacity": 4},
    )
    group_id = response.json()["data"]["group_id"]

    await client.post(
        f"/api/admin/groups/{group_id}/status",
        headers=admin[0],
        json={"status": "approved"},
    )
    await client.post(
        "/api/group/join",
        headers=member_headers,
        json={"group_id": group_id, "user_id": member["user_id"]},
    )
    response = await client.post(
        f"/api/group/{group_id}/requests/{member['user_id']}/approve",
        headers=owner_headers,
    )
    assert response.json()["success"], response.json()

    return group_id, owner_headers, member_headers, outsider_headers


@pytest.mark.asyncio(loop_scope="session")
async def test_messages(client, register, admin, hub):
    group_id, owner_headers, member_headers, outsider_headers = (
        await group_with_member(client, register, admin, "api_chat")
    )

    room = room_for_group(group_id)
    await hub.join("chat-owner-socket", room)
    await hub.join("chat-member-socket", room)

    response = await client.post(
        f"/api/messages/{group_id}/messages",
        headers={**member_headers, "X-Socket-Id": "chat-member-socket"},
        json={"text": "Who has the lecture notes?"},
    )
    assert response.status_code == 201
    assert response.json()["data"]["sender_name"] == "api_chat_member"

    received = hub.events_for("chat-owner-socket", "receive_message")
    assert received[-1]["group_id"] == group_id
    assert received[-1]["message"]["text"] == "Who has the lecture notes?"

    # The sender's own connection is left out.
    assert hub.events_for("chat-member-socket", "receive_message") == []

    response = await client.post(
        f"/api/messages/{group_id}/messages",
        headers=owner_headers,
        json={"file_link": "https://files.example.com/notes.pdf"},
    )
    assert response.status_code == 201
    assert len(hub.events_for("chat-member-socket", "receive_message")) == 1

    response = await client.get(
        f"/api/messages/{group_id}/messages", headers=member_headers
    )
    messages = response.json()["data"]
    assert [m["sender_name"] for m in messages] == [
        "api_chat_member",
        "api_chat_owner",
    ]

    response = await client.post(
        f"/api/messages/{group_id}/messages", headers=member_headers, json={}
    )
    assert response.status_code == 422

    response = await client.post(
        f"/api/messages/{group_id}/messages",
        headers=outsider_headers,
        json={"text": "Let me in"},
    )
    assert response.status_code == 403

    response = await client.get(
        f"/api/messages/{group_id}/messages", headers=outsider_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio(loop_scope="session")
async def test_announcements(client, register, admin, hub):
    group_id, owner_headers, member_headers, outsider_headers = (
        await group_with_member(client, register, admin, "api_news")
    )

    await hub.join("news-member-socket", room_for_group(group_id))

    for title in ("Room change", "Exam moved"):
        response = await client.post(
            f"/api/announcements/group/{group_id}",
            headers=owner_headers,
            json={"title": title, "body": "See the schedule."},
        )
        assert response.status_code == 201

    announced = hub.events_for("news-member-socket", "newAnnouncement")
    assert [a["title"] for a in announced] == ["Room change", "Exam moved"]

    response = await client.get(
        f"/api/announcements/group/{group_id}", headers=member_headers
    )
    assert [a["title"] for a in response.json()["data"]] == [
        "Exam moved",
        "Room change",
    ]

    response = await client.get(
        f"/api/announcements/group/{group_id}", headers=outsider_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio(loop_scope="session")
async def test_schedules(client, register, admin, hub):
    group_id, owner_headers, member_headers, outsider_headers = (
        await group_with_member(client, register, admin, "api_plan")
    )

    room = room_for_group(group_id)
    await hub.join("plan-owner-socket", room)
    await hub.join("plan-member-socket", room)
    # Joined to some other room only.
    await hub.join("plan-elsewhere-socket", room_for_group(group_id + 10_000))

    response = await client.post(
        f"/api/calendar/group/{group_id}",
        headers={**owner_headers, "X-Socket-Id": "plan-owner-socket"},
        json=SCHEDULE,
    )
    body = response.json()

    assert response.status_code == 201
    assert body["data"]["external_event_id"].startswith("mock-event-")
    assert body["data"]["meeting_link"].startswith("https://meet.example.com/")

    announced = hub.events_for("plan-member-socket", "new_schedule")
    assert [s["schedule_id"] for s in announced] == [body["data"]["schedule_id"]]
    assert hub.events_for("plan-owner-socket", "new_schedule") == []
    assert hub.events_for("plan-elsewhere-socket", "new_schedule") == []

    response = await client.get(
        f"/api/schedules/user/{body['data']['created_by_user_id']}",
        headers=owner_headers,
    )
    assert [s["schedule_id"] for s in response.json()["data"]] == [
        body["data"]["schedule_id"]
    ]

    response = await client.get(
        f"/api/calendar/group/{group_id}", headers=member_headers
    )
    assert len(response.json()["data"]) == 1

    response = await client.post(
        f"/api/calendar/group/{group_id}", headers=outsider_headers, json=SCHEDULE
    )
    assert response.status_code == 403

    response = await client.post(
        f"/api/calendar/group/{group_id}",
        headers=owner_headers,
        json={**SCHEDULE, "end": SCHEDULE["start"]},
    )
    assert response.status_code == 422


@pytest.mark.asyncio(loop_scope="session")
@pytest.mark.parametrize(
    "prefix, start, end",
    [
        ("api_naive_start", "2026-11-03T10:00:00", "2026-11-03T12:00:00Z"),
        ("api_naive_end", "2026-11-03T10:00:00+08:00", "2026-11-03T12:00:00"),
        ("api_naive_both", "2026-11-03T10:00:00", "2026-11-03T12:00:00"),
    ],
)
async def test_schedule_times_need_a_timezone(
    client, register, admin, prefix, start, end
):
    group_id, owner_headers, _, _ = await group_with_member(
        client, register, admin, prefix
    )

    response = await client.post(
        f"/api/calendar/group/{group_id}",
        headers=owner_headers,
        json={**SCHEDULE, "start": start, "end": end},
    )
    body = response.json()

    assert response.status_code == 422
    assert body["success"] is False

    response = await client.get(
        f"/api/calendar/group/{group_id}", headers=owner_headers
    )
    assert response.json()["data"] == []


@pytest.mark.asyncio(loop_scope="session")
async def test_calendar_failure(client, register, admin, calendar):
    group_id, owner_headers, _, _ = await group_with_member(
        client, register, admin, "api_offline"
    )

    app.dependency_overrides[dependencies.get_calendar] = lambda: (
        MockCalendarProvider(fail=True)
    )

    try:
        response = await client.post(
            f"/api/calendar/group/{group_id}", headers=owner_headers, json=SCHEDULE
        )
        assert response.status_code == 201
        assert response.json()["data"]["external_event_id"] is None
        assert response.json()["data"]["meeting_link"] is None

        response = await client.post(
            "/api/calendar/meet-link", headers=owner_headers, json={"title": "Now"}
        )
        assert response.status_code == 503
        assert response.json()["success"] is False
    finally:
        app.dependency_overrides[dependencies.get_calendar] = lambda: calendar

    response = await client.post(
        "/api/calendar/meet-link", headers=owner_headers, json={"title": "Now"}
    )
    assert response.status_code == 200
    assert response.json()["data"]["meeting_link"].startswith(
        "https://meet.example.com/"
    )
