"""
Tests for event browsing and event management endpoints.
"""

from datetime import date, timedelta

import pytest
from httpx import AsyncClient

from conftest import headers_for, make_event, make_reservation, make_user, reload
from eventbook.models.event import Event, EventCategory, EventStatus
from eventbook.models.reservation import Reservation, ReservationStatus
from eventbook.models.user import UserRole
from eventbook.services import event_service


def event_body(**overrides) -> dict:
    body = {
        "title": "Python Conference 2026",
        "description": "Annual Python gathering",
        "date": (date.today() + timedelta(days=30)).isoformat(),
        "time": "9:30",
        "venue": "Convention Center",
        "category": "conference",
        "capacity": 500,
        "price": "25.50",
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_create_event(client: AsyncClient, organizer_headers, organizer):
    """Organizers can create an event with every spot free."""
    response = await client.post("/api/v1/events/", json=event_body(), headers=organizer_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["message"] == "Event created successfully"
    event = data["event"]
    assert event["title"] == "Python Conference 2026"
    assert event["time"] == "09:30"
    assert event["capacity"] == 500
    assert event["reserved_count"] == 0
    assert event["available_spots"] == 500
    assert event["is_full"] is False
    assert event["status"] == "upcoming"
    assert event["created_by"] == organizer.id


@pytest.mark.asyncio
async def test_create_event_regular_user_forbidden(client: AsyncClient, auth_headers):
    """Users with the plain `user` role cannot create events."""
    response = await client.post("/api/v1/events/", json=event_body(), headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_event_unauthenticated(client: AsyncClient):
    """Unauthenticated request returns 401."""
    response = await client.post("/api/v1/events/", json=event_body())
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_event_past_date(client: AsyncClient, organizer_headers):
    """Event with past date returns 400."""
    past = (date.today() - timedelta(days=2)).isoformat()
    response = await client.post("/api/v1/events/", json=event_body(date=past), headers=organizer_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Event date cannot be in the past"


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"capacity": 0},
    {"capacity": -3},
    {"time": "25:00"},
    {"category": "concert"},
    {"price": "-1"},
    {"title": ""},
])
async def test_create_event_invalid_fields(client: AsyncClient, organizer_headers, overrides):
    """Invalid fields return 422."""
    response = await client.post("/api/v1/events/", json=event_body(**overrides), headers=organizer_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_events(client: AsyncClient, test_event):
    """Listing is public and paginated."""
    response = await client.get("/api/v1/events/")
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["cached"] is False
    assert [e["id"] for e in data["events"]] == [test_event.id]
    assert data["pagination"] == {
        "page": 1,
        "limit": 12,
        "total": 1,
        "pages": 1,
        "has_next": False,
        "has_prev": False,
    }


@pytest.mark.asyncio
async def test_list_events_pagination(client: AsyncClient, db_session, organizer):
    for i in range(5):
        await make_event(db_session, organizer, title=f"Event {i}", date=date.today() + timedelta(days=i + 1))

    response = await client.get("/api/v1/events/?page=2&limit=2")
    data = response.json()
    assert [e["title"] for e in data["events"]] == ["Event 2", "Event 3"]
    assert data["pagination"]["pages"] == 3
    assert data["pagination"]["has_next"] is True
    assert data["pagination"]["has_prev"] is True


@pytest.mark.asyncio
@pytest.mark.parametrize("query, page, limit", [
    ("page=0", 1, 12),
    ("page=-4&limit=0", 1, 12),
    ("limit=-1", 1, 12),
    ("limit=1000", 1, 100),
])
async def test_list_events_out_of_range_paging_is_corrected(client: AsyncClient, test_event, query, page, limit):
    """Bad paging values fall back to defaults instead of failing."""
    response = await client.get(f"/api/v1/events/?{query}")
    assert response.status_code == 200
    pagination = response.json()["pagination"]
    assert pagination["page"] == page
    assert pagination["limit"] == limit


@pytest.mark.asyncio
async def test_list_events_page_past_the_end(client: AsyncClient, test_event):
    response = await client.get("/api/v1/events/?page=9")
    data = response.json()
    assert data["events"] == []
    assert data["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_list_events_filters(client: AsyncClient, db_session, organizer):
    day = date.today() + timedelta(days=10)
    workshop = await make_event(
        db_session, organizer, title="Async Workshop", category=EventCategory.WORKSHOP, date=day
    )
    party = await make_event(
        db_session, organizer, title="Launch Party", category=EventCategory.PARTY,
        date=day + timedelta(days=1), description="Celebrate the 100% release",
    )
    past = await make_event(
        db_session, organizer, title="Old Seminar", category=EventCategory.SEMINAR,
        date=date.today() - timedelta(days=3), status=EventStatus.COMPLETED,
    )

    async def ids(query):
        response = await client.get(f"/api/v1/events/?{query}")
        assert response.status_code == 200
        return [e["id"] for e in response.json()["events"]]

    assert await ids("category=workshop") == [workshop.id]
    assert await ids(f"date={day.isoformat()}") == [workshop.id]
    assert await ids("search=ASYNC") == [workshop.id]
    assert await ids("search=100%25") == [party.id]
    assert await ids("status=completed") == [past.id]
    assert await ids("upcoming=true") == [workshop.id, party.id]
    assert await ids("") == [past.id, workshop.id, party.id]


@pytest.mark.asyncio
async def test_list_events_sort(client: AsyncClient, db_session, organizer):
    soon = await make_event(db_session, organizer, title="Soon", date=date.today() + timedelta(days=1))
    popular = await make_event(
        db_session, organizer, title="Popular", date=date.today() + timedelta(days=5), reserved_count=40
    )

    by_date = await client.get("/api/v1/events/?sort=date")
    assert [e["id"] for e in by_date.json()["events"]] == [soon.id, popular.id]

    by_popularity = await client.get("/api/v1/events/?sort=popularity")
    assert [e["id"] for e in by_popularity.json()["events"]] == [popular.id, soon.id]

    unknown = await client.get("/api/v1/events/?sort=bogus")
    assert [e["id"] for e in unknown.json()["events"]] == [soon.id, popular.id]


@pytest.mark.asyncio
async def test_list_categories(client: AsyncClient):
    response = await client.get("/api/v1/events/categories")
    assert response.status_code == 200
    categories = response.json()["categories"]
    assert {"value": "workshop", "label": "Workshop"} in categories
    assert len(categories) == 4


@pytest.mark.asyncio
async def test_get_event(client: AsyncClient, auth_headers, test_event):
    """Get single event by ID."""
    response = await client.get(f"/api/v1/events/{test_event.id}", headers=auth_headers)
    assert response.status_code == 200
    event = response.json()["event"]
    assert event["id"] == test_event.id
    assert event["title"] == "Test Conference"
    assert event["available_spots"] == 100


@pytest.mark.asyncio
async def test_get_event_requires_auth(client: AsyncClient, test_event):
    response = await client.get(f"/api/v1/events/{test_event.id}")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_event_not_found(client: AsyncClient, auth_headers):
    """Non-existent event returns 404."""
    response = await client.get("/api/v1/events/99999", headers=auth_headers)
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Event not found"}


@pytest.mark.asyncio
async def test_update_event_by_owner(client: AsyncClient, organizer_headers, test_event):
    response = await client.put(
        f"/api/v1/events/{test_event.id}",
        json={"title": "Renamed", "capacity": 150, "status": "ongoing"},
        headers=organizer_headers,
    )
    assert response.status_code == 200
    event = response.json()["event"]
    assert event["title"] == "Renamed"
    assert event["capacity"] == 150
    assert event["available_spots"] == 150
    assert event["status"] == "ongoing"


@pytest.mark.asyncio
async def test_update_event_by_other_organizer_forbidden(client: AsyncClient, db_session, test_event):
    rival = await make_user(db_session, "rival@example.com", UserRole.ORGANIZER)
    response = await client.put(
        f"/api/v1/events/{test_event.id}", json={"title": "Hijacked"}, headers=headers_for(rival)
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_update_event_by_admin(client: AsyncClient, admin_headers, test_event):
    response = await client.put(
        f"/api/v1/events/{test_event.id}", json={"venue": "Main Hall"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["event"]["venue"] == "Main Hall"


@pytest.mark.asyncio
async def test_update_event_past_date(client: AsyncClient, organizer_headers, test_event, session_factory):
    """Moving an event into the past is rejected and nothing is written."""
    past = (date.today() - timedelta(days=5)).isoformat()
    response = await client.put(
        f"/api/v1/events/{test_event.id}",
        json={"title": "Rescheduled", "date": past},
        headers=organizer_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Event date cannot be in the past"

    stored = await reload(session_factory, Event, test_event.id)
    assert stored.date == test_event.date
    assert stored.title == test_event.title


@pytest.mark.asyncio
async def test_update_capacity_below_reserved_conflicts(
    client: AsyncClient, db_session, organizer, organizer_headers, session_factory
):
    """Capacity can never drop below the number of spots already taken."""
    event = await make_event(db_session, organizer, capacity=10, reserved_count=6)

    response = await client.put(
        f"/api/v1/events/{event.id}", json={"capacity": 5, "title": "Shrunk"}, headers=organizer_headers
    )
    assert response.status_code == 409
    assert response.json()["message"] == "Capacity cannot be lower than the 6 spots already reserved"

    stored = await reload(session_factory, Event, event.id)
    assert stored.capacity == 10
    assert stored.title == "Test Conference"

    response = await client.put(
        f"/api/v1/events/{event.id}", json={"capacity": 6}, headers=organizer_headers
    )
    assert response.status_code == 200
    assert response.json()["event"]["is_full"] is True


@pytest.mark.asyncio
async def test_my_events(client: AsyncClient, organizer_headers, test_event, auth_headers):
    response = await client.get("/api/v1/events/mine", headers=organizer_headers)
    assert response.status_code == 200
    assert [e["id"] for e in response.json()["events"]] == [test_event.id]

    response = await client.get("/api/v1/events/mine", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_event_without_reservations(
    client: AsyncClient, organizer_headers, test_event, session_factory
):
    response = await client.delete(f"/api/v1/events/{test_event.id}", headers=organizer_headers)
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Event deleted successfully"}
    assert await reload(session_factory, Event, test_event.id) is None


@pytest.mark.asyncio
async def test_delete_event_blocked_by_active_reservations(
    client: AsyncClient, organizer_headers, auth_headers, test_event, session_factory
):
    reserve = await client.post(f"/api/v1/events/{test_event.id}/reservation", headers=auth_headers)
    assert reserve.status_code == 201

    response = await client.delete(f"/api/v1/events/{test_event.id}", headers=organizer_headers)
    assert response.status_code == 409
    assert response.json()["message"] == "Cannot delete an event with active reservations"
    assert await reload(session_factory, Event, test_event.id) is not None

    # Once the only reservation is cancelled the event can go, history and all
    await client.delete(f"/api/v1/events/{test_event.id}/reservation", headers=auth_headers)
    response = await client.delete(f"/api/v1/events/{test_event.id}", headers=organizer_headers)
    assert response.status_code == 200
    reservation_id = reserve.json()["reservation"]["id"]
    assert await reload(session_factory, Reservation, reservation_id) is None


@pytest.mark.asyncio
async def test_delete_event_cascade_policy(
    client: AsyncClient, monkeypatch, db_session, test_user, organizer_headers, test_event, session_factory
):
    monkeypatch.setattr(event_service.settings, "EVENT_DELETE_POLICY", "cascade")
    reservation = await make_reservation(db_session, test_event, test_user)

    response = await client.delete(f"/api/v1/events/{test_event.id}", headers=organizer_headers)
    assert response.status_code == 200
    assert await reload(session_factory, Event, test_event.id) is None
    assert await reload(session_factory, Reservation, reservation.id) is None


@pytest.mark.asyncio
async def test_delete_event_by_non_owner_forbidden(client: AsyncClient, auth_headers, test_event):
    response = await client.delete(f"/api/v1/events/{test_event.id}", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_event_reservations_visible_to_owner_only(
    client: AsyncClient, db_session, test_user, other_user, test_event, organizer_headers, auth_headers
):
    await make_reservation(db_session, test_event, test_user)
    await make_reservation(db_session, test_event, other_user, status=ReservationStatus.CANCELLED)

    response = await client.get(f"/api/v1/events/{test_event.id}/reservations", headers=organizer_headers)
    assert response.status_code == 200
    assert [r["user_id"] for r in response.json()["reservations"]] == [test_user.id]

    response = await client.get(
        f"/api/v1/events/{test_event.id}/reservations?active_only=false", headers=organizer_headers
    )
    assert len(response.json()["reservations"]) == 2

    response = await client.get(f"/api/v1/events/{test_event.id}/reservations", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_event_by_admin(client: AsyncClient, admin_headers, test_event, session_factory):
    response = await client.delete(f"/api/v1/events/{test_event.id}", headers=admin_headers)
    assert response.status_code == 200
    assert await reload(session_factory, Event, test_event.id) is None
