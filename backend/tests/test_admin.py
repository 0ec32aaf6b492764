"""
Tests for admin endpoints and general app endpoints.
"""

import pytest
from httpx import AsyncClient

from conftest import PASSWORD, headers_for, make_reservation


@pytest.mark.asyncio
async def test_admin_routes_reject_non_admins(client: AsyncClient, auth_headers, organizer_headers):
    for headers in (auth_headers, organizer_headers):
        assert (await client.get("/api/v1/admin/users", headers=headers)).status_code == 403
        assert (await client.get("/api/v1/admin/reservations", headers=headers)).status_code == 403


@pytest.mark.asyncio
async def test_list_users(client: AsyncClient, admin_headers, admin, test_user):
    response = await client.get("/api/v1/admin/users", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert [u["email"] for u in data["users"]] == ["admin@example.com", "test@example.com"]


@pytest.mark.asyncio
async def test_promote_user_applies_at_next_login(client: AsyncClient, admin_headers, test_user):
    """Role changes take effect through a freshly issued token."""
    old_headers = headers_for(test_user)

    response = await client.put(
        f"/api/v1/admin/users/{test_user.id}/role", json={"role": "organizer"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "organizer"

    assert (await client.get("/api/v1/events/mine", headers=old_headers)).status_code == 403

    login = await client.post("/api/v1/auth/login", json={"email": "test@example.com", "password": PASSWORD})
    new_headers = {"Authorization": f"Bearer {login.json()['access_token']}"}
    assert (await client.get("/api/v1/events/mine", headers=new_headers)).status_code == 200


@pytest.mark.asyncio
async def test_role_change_unknown_user_and_bad_role(client: AsyncClient, admin_headers):
    response = await client.put("/api/v1/admin/users/999/role", json={"role": "admin"}, headers=admin_headers)
    assert response.status_code == 404

    response = await client.put("/api/v1/admin/users/999/role", json={"role": "root"}, headers=admin_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_all_reservations(client: AsyncClient, db_session, admin_headers, test_user, test_event):
    await make_reservation(db_session, test_event, test_user)

    response = await client.get("/api/v1/admin/reservations", headers=admin_headers)
    assert response.status_code == 200
    [row] = response.json()["reservations"]
    assert row["event_title"] == "Test Conference"
    assert row["user_email"] == "test@example.com"
    assert row["status"] == "active"


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["cache"] == {"status": "disabled"}
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"


@pytest.mark.asyncio
async def test_metrics(client: AsyncClient, auth_headers, test_event):
    await client.post(f"/api/v1/events/{test_event.id}/reservation", headers=auth_headers)
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert 'reservation_attempts_total{outcome="confirmed"}' in response.text
