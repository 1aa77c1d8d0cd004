"""Tests for the HTTP API."""

from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from riskwatch.database import get_db
from riskwatch.main import app
from riskwatch.models import NotificationType

from conftest import NOW


@pytest_asyncio.fixture
async def client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def inbox(db, build, acme):
    """Two alerts for the PM, one of them already read."""
    fresh = build.notification(acme.pm, NotificationType.PM_HIGH_REWORK, NOW, project_id=acme.alpha.id,
                               payload_data={"kind": "rework", "recent_sprints": [], "rework_pct": 18.0})
    seen = build.notification(acme.pm, NotificationType.PM_VELOCITY_DROP, NOW - timedelta(days=1), read=True)
    build.notification(acme.dev, NotificationType.IDLE_TIME_ALERT, NOW)
    await db.commit()
    return fresh, seen


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestNotifications:

    @pytest.mark.asyncio
    async def test_inbox_newest_first(self, client, inbox):
        fresh, seen = inbox

        response = await client.get("/api/notifications", params={"recipient_email": "pm@acme.io"})

        assert response.status_code == 200
        data = response.json()
        assert [n["id"] for n in data["notifications"]] == [fresh.id, seen.id]
        assert data["total_count"] == 2
        assert data["unread_count"] == 1
        assert data["notifications"][0]["metadata"]["kind"] == "rework"

    @pytest.mark.asyncio
    async def test_unread_only(self, client, inbox):
        fresh, _ = inbox

        response = await client.get(
            "/api/notifications", params={"recipient_email": "pm@acme.io", "unread_only": True},
        )

        assert [n["id"] for n in response.json()["notifications"]] == [fresh.id]

    @pytest.mark.asyncio
    async def test_recipient_is_required(self, client):
        response = await client.get("/api/notifications")
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_mark_read(self, db, client, inbox):
        fresh, _ = inbox

        response = await client.post(f"/api/notifications/{fresh.id}/read")

        assert response.status_code == 200
        assert response.json()["read"] is True
        await db.refresh(fresh)
        assert fresh.read is True

    @pytest.mark.asyncio
    async def test_acknowledge(self, db, client, acme, inbox):
        fresh, _ = inbox

        response = await client.post(
            f"/api/notifications/{fresh.id}/acknowledge", json={"user_id": acme.pm.id},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["acknowledged"] is True
        assert body["acknowledged_by"] == "pm@acme.io"
        assert body["status"] == "OPEN"

        admin_inbox = await client.get("/api/notifications", params={"recipient_email": "admin@acme.io"})
        [notice] = admin_inbox.json()["notifications"]
        assert notice["type"] == NotificationType.PM_ACKNOWLEDGED_ALERT.value

    @pytest.mark.asyncio
    async def test_acknowledge_by_another_tenant(self, db, build, client, inbox):
        fresh, _ = inbox
        other = build.tenant("Globex", owner_email="boss@globex.io")
        stranger = build.user(other, "boss@globex.io", role="owner")
        await db.commit()

        response = await client.post(
            f"/api/notifications/{fresh.id}/acknowledge", json={"user_id": stranger.id},
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "User not found"

    @pytest.mark.asyncio
    async def test_missing_notification(self, client):
        response = await client.post("/api/notifications/notif_missing/read")
        assert response.status_code == 404
        assert response.json()["detail"] == "Notification not found"


class TestJobs:

    @pytest.mark.asyncio
    async def test_list(self, client):
        response = await client.get("/api/jobs")

        assert response.status_code == 200
        names = [job["name"] for job in response.json()["jobs"]]
        assert len(names) == 21
        assert "escalation-sweep" in names

    @pytest.mark.asyncio
    async def test_run(self, client, acme):
        response = await client.post("/api/jobs/overwork/run")

        assert response.status_code == 200
        body = response.json()
        assert body["job"] == "overwork"
        assert body["tenants"] == 1
        assert body["forced"] is False

    @pytest.mark.asyncio
    async def test_run_unknown(self, client):
        response = await client.post("/api/jobs/nope/run", params={"force": True})

        assert response.status_code == 404
        assert response.json()["detail"] == "Unknown job: nope"
