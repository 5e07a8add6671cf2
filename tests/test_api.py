"""
API tests.

The FastAPI app runs in-process through httpx's ASGITransport. The database
and the background components are swapped for test instances with
dependency overrides; the lifespan (scheduler, queue) is not started.
"""

from datetime import timedelta

import httpx
import pytest
from httpx import ASGITransport
from sqlalchemy import func, select

from apiwatch.api.deps import get_job_manager
from apiwatch.core.db import get_db, utcnow
from apiwatch.main import app
from apiwatch.models import Alert, NotificationChannel
from apiwatch.services.dispatcher import DeliveryDispatcher
from apiwatch.services.jobs import JobManager
from apiwatch.services.senders import ChannelSender, DeliveryResult

RULE_PAYLOAD = {
    "name": "OpenAI errors",
    "type": "error_rate",
    "severity": "high",
    "provider_id": 1,
    "conditions": {
        "metric": "error_rate",
        "operator": "gte",
        "threshold": 5,
        "time_window": 60,
    },
    "cooldown_minutes": 30,
}


class AcceptingWebhook(ChannelSender):
    channel_type = "webhook"

    async def send(self, config, alert, context):
        return DeliveryResult(success=True, response={"status": 200})


@pytest.fixture
def manager(session_factory) -> JobManager:
    dispatcher = DeliveryDispatcher(session_factory)
    return JobManager(dispatcher=dispatcher, session_factory=session_factory)


@pytest.fixture
async def client(session_factory, manager):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_job_manager] = lambda: manager

    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def as_user(auth_header, user):
    return auth_header(user)


@pytest.fixture
def as_other(auth_header, other_user):
    return auth_header(other_user)


# =============================================================================
# ENVELOPE / AUTH
# =============================================================================


class TestEnvelopeAndAuth:
    async def test_health(self, client):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "healthy"

    async def test_missing_token(self, client):
        response = await client.get("/api/v1/alert-rules")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "UNAUTHORIZED"

    async def test_invalid_token(self, client):
        response = await client.get(
            "/api/v1/alerts",
            headers={"Authorization": "Bearer not.a.token"},
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_token_for_unknown_user(self, client, auth_header, user):
        ghost = type("Ghost", (), {"id": 9999})()

        response = await client.get("/api/v1/alerts", headers=auth_header(ghost))

        assert response.status_code == 401

    async def test_validation_error_shape(self, client, as_user):
        response = await client.get("/api/v1/alerts?limit=500", headers=as_user)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"][0]["field"] == "query.limit"

    async def test_unknown_route(self, client):
        response = await client.get("/api/v1/nope")

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": {"code": "NOT_FOUND", "message": "Not Found"},
        }


# =============================================================================
# ALERT RULES
# =============================================================================


class TestAlertRuleRoutes:
    async def test_create_and_list(self, client, as_user, user):
        created = await client.post("/api/v1/alert-rules", json=RULE_PAYLOAD, headers=as_user)

        assert created.status_code == 201
        rule = created.json()["data"]
        assert rule["user_id"] == user.id
        assert rule["is_active"] is True
        assert rule["trigger_count"] == 0
        assert rule["conditions"]["operator"] == "gte"
        assert rule["conditions"]["aggregation"] is None

        listed = await client.get("/api/v1/alert-rules", headers=as_user)
        body = listed.json()
        assert body["success"] is True
        assert [r["id"] for r in body["data"]] == [rule["id"]]
        assert body["pagination"] == {"page": 1, "limit": 20, "total": 1, "total_pages": 1}

    async def test_pagination(self, client, as_user):
        for i in range(3):
            await client.post(
                "/api/v1/alert-rules",
                json={**RULE_PAYLOAD, "name": f"Rule {i}"},
                headers=as_user,
            )

        response = await client.get("/api/v1/alert-rules?page=2&limit=2", headers=as_user)

        body = response.json()
        assert len(body["data"]) == 1
        assert body["pagination"]["total"] == 3
        assert body["pagination"]["total_pages"] == 2

    @pytest.mark.parametrize(
        "conditions",
        [
            {"metric": "error_rate", "operator": "between", "threshold": 5, "time_window": 60},
            {"metric": "error_rate", "operator": "gt", "threshold": 0, "time_window": 60},
            {"metric": "latency", "operator": "gt", "threshold": 5, "time_window": 60},
            {"metric": "error_rate", "operator": "gt", "threshold": 5, "time_window": 0},
            {"metric": "cost", "operator": "gt", "threshold": 5, "time_window": 60, "aggregation": "p99"},
        ],
    )
    async def test_invalid_conditions_rejected(self, client, as_user, conditions):
        response = await client.post(
            "/api/v1/alert-rules",
            json={**RULE_PAYLOAD, "conditions": conditions},
            headers=as_user,
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_duplicate_name(self, client, as_user):
        await client.post("/api/v1/alert-rules", json=RULE_PAYLOAD, headers=as_user)

        response = await client.post("/api/v1/alert-rules", json=RULE_PAYLOAD, headers=as_user)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    async def test_other_tenant_gets_not_found(self, client, as_user, as_other):
        created = await client.post("/api/v1/alert-rules", json=RULE_PAYLOAD, headers=as_user)
        rule_id = created.json()["data"]["id"]

        for method, path in [
            ("GET", f"/api/v1/alert-rules/{rule_id}"),
            ("PUT", f"/api/v1/alert-rules/{rule_id}"),
            ("DELETE", f"/api/v1/alert-rules/{rule_id}"),
            ("POST", f"/api/v1/alert-rules/{rule_id}/toggle"),
            ("POST", f"/api/v1/alert-rules/{rule_id}/test"),
        ]:
            kwargs = {"json": {"name": "Mine now"}} if method == "PUT" else {}
            response = await client.request(method, path, headers=as_other, **kwargs)
            assert response.status_code == 404, path
            assert response.json()["error"]["code"] == "NOT_FOUND"

        # The owner's rule is untouched
        response = await client.get(f"/api/v1/alert-rules/{rule_id}", headers=as_user)
        assert response.json()["data"]["name"] == "OpenAI errors"

    async def test_update_toggle_delete(self, client, as_user):
        created = await client.post("/api/v1/alert-rules", json=RULE_PAYLOAD, headers=as_user)
        rule_id = created.json()["data"]["id"]

        updated = await client.put(
            f"/api/v1/alert-rules/{rule_id}",
            json={"severity": "critical", "cooldown_minutes": 120, "is_active": False},
            headers=as_user,
        )
        data = updated.json()["data"]
        assert data["severity"] == "critical"
        assert data["cooldown_minutes"] == 120
        assert data["name"] == "OpenAI errors"
        # Activation only changes through the toggle endpoint
        assert data["is_active"] is True

        toggled = await client.post(f"/api/v1/alert-rules/{rule_id}/toggle", headers=as_user)
        assert toggled.json()["data"]["is_active"] is False

        deleted = await client.delete(f"/api/v1/alert-rules/{rule_id}", headers=as_user)
        assert deleted.status_code == 200
        assert deleted.json()["data"] == {"id": rule_id, "deleted": True}

        missing = await client.get(f"/api/v1/alert-rules/{rule_id}", headers=as_user)
        assert missing.status_code == 404

    async def test_filter_by_active(self, client, as_user):
        first = await client.post("/api/v1/alert-rules", json=RULE_PAYLOAD, headers=as_user)
        await client.post("/api/v1/alert-rules", json={**RULE_PAYLOAD, "name": "Other"}, headers=as_user)
        await client.post(f"/api/v1/alert-rules/{first.json()['data']['id']}/toggle", headers=as_user)

        response = await client.get("/api/v1/alert-rules?is_active=false", headers=as_user)

        assert [r["name"] for r in response.json()["data"]] == ["OpenAI errors"]

    async def test_dry_run(self, client, session_factory, as_user, user, add_metrics):
        created = await client.post("/api/v1/alert-rules", json=RULE_PAYLOAD, headers=as_user)
        rule_id = created.json()["data"]["id"]
        await add_metrics(user, count=20, errors=2, at=utcnow(), minutes_ago=1)

        response = await client.post(f"/api/v1/alert-rules/{rule_id}/test", headers=as_user)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["triggered"] is True
        assert data["current_value"] == 10.0
        assert data["sample_count"] == 20
        assert data["in_cooldown"] is False
        assert data["explanation"].startswith("Rule would trigger")

        async with session_factory() as session:
            count = await session.execute(select(func.count()).select_from(Alert))
            assert count.scalar_one() == 0

    async def test_stats(self, client, as_user):
        await client.post("/api/v1/alert-rules", json=RULE_PAYLOAD, headers=as_user)
        await client.post(
            "/api/v1/alert-rules",
            json={**RULE_PAYLOAD, "name": "Budget", "type": "budget_exceeded", "severity": "low"},
            headers=as_user,
        )

        response = await client.get("/api/v1/alert-rules/stats", headers=as_user)

        data = response.json()["data"]
        assert data["total_rules"] == 2
        assert data["active_rules"] == 2
        assert data["triggered_today"] == 0
        assert data["by_type"] == {"error_rate": 1, "budget_exceeded": 1}
        assert data["by_severity"] == {"high": 1, "low": 1}




# =============================================================================
# ALERTS
# =============================================================================


class TestAlertRoutes:
    async def test_list_and_get(self, client, as_user, user, other_user, make_alert, now):
        older = await make_alert(user, created_at=now - timedelta(hours=2))
        newer = await make_alert(user, severity="critical")
        await make_alert(other_user)

        listed = await client.get("/api/v1/alerts", headers=as_user)
        body = listed.json()
        assert [a["id"] for a in body["data"]] == [newer.id, older.id]
        assert body["pagination"]["total"] == 2

        critical = await client.get("/api/v1/alerts?severity=critical", headers=as_user)
        assert [a["id"] for a in critical.json()["data"]] == [newer.id]

        single = await client.get(f"/api/v1/alerts/{older.id}", headers=as_user)
        data = single.json()["data"]
        assert data["metadata"] == {"current_value": 10.0, "threshold": 5.0}
        assert data["is_read"] is False

    async def test_other_tenants_alert(self, client, as_other, user, make_alert):
        alert = await make_alert(user)

        for method, path in [
            ("GET", f"/api/v1/alerts/{alert.id}"),
            ("POST", f"/api/v1/alerts/{alert.id}/read"),
            ("POST", f"/api/v1/alerts/{alert.id}/resolve"),
            ("DELETE", f"/api/v1/alerts/{alert.id}"),
        ]:
            response = await client.request(method, path, headers=as_other)
            assert response.status_code == 404, path

    async def test_read_and_resolve(self, client, as_user, user, make_alert):
        alert = await make_alert(user)

        read = await client.post(f"/api/v1/alerts/{alert.id}/read", headers=as_user)
        assert read.json()["data"]["is_read"] is True
        assert read.json()["data"]["is_resolved"] is False

        resolved = await client.post(f"/api/v1/alerts/{alert.id}/resolve", headers=as_user)
        data = resolved.json()["data"]
        assert data["is_resolved"] is True
        assert data["resolved_at"] is not None

        # Resolving again is a no-op that keeps the first resolved_at
        again = await client.post(f"/api/v1/alerts/{alert.id}/resolve", headers=as_user)
        assert again.status_code == 200
        assert again.json()["data"]["resolved_at"] == data["resolved_at"]

    async def test_resolve_marks_read(self, client, as_user, user, make_alert):
        alert = await make_alert(user)

        response = await client.post(f"/api/v1/alerts/{alert.id}/resolve", headers=as_user)

        assert response.json()["data"]["is_read"] is True

    async def test_bulk_read(self, client, as_user, user, other_user, make_alert):
        first = await make_alert(user)
        second = await make_alert(user)
        foreign = await make_alert(other_user)

        response = await client.post(
            "/api/v1/alerts/bulk/read",
            json={"ids": [first.id, second.id, foreign.id]},
            headers=as_user,
        )
        assert response.json()["data"] == {"updated": 2}

        again = await client.post(
            "/api/v1/alerts/bulk/read",
            json={"ids": [first.id, second.id]},
            headers=as_user,
        )
        assert again.json()["data"] == {"updated": 0}

    async def test_bulk_resolve_all(self, client, session_factory, as_user, user, make_alert):
        await make_alert(user)
        await make_alert(user, provider_id=2)

        response = await client.post(
            "/api/v1/alerts/bulk/resolve",
            json={"all": True, "provider_id": 2},
            headers=as_user,
        )

        assert response.json()["data"] == {"updated": 1}
        async with session_factory() as session:
            result = await session.execute(select(Alert).where(Alert.is_resolved == True))  # noqa: E712
            resolved = list(result.scalars().all())
        assert [a.provider_id for a in resolved] == [2]
        assert resolved[0].is_read is True

    async def test_bulk_requires_ids_or_all(self, client, as_user):
        response = await client.post("/api/v1/alerts/bulk/read", json={}, headers=as_user)

        assert response.status_code == 400

    async def test_stats(self, client, as_user, user, make_alert):
        await make_alert(user)
        await make_alert(user, type="cost_threshold", severity="low", is_read=True)

        response = await client.get("/api/v1/alerts/stats", headers=as_user)

        data = response.json()["data"]
        assert data["total"] == 2
        assert data["unread"] == 1
        assert data["unresolved"] == 2
        assert data["by_type"] == {"error_rate": 1, "cost_threshold": 1}
        assert data["by_severity"] == {"high": 1, "low": 1}

    async def test_delete(self, client, as_user, user, make_alert):
        alert = await make_alert(user)

        response = await client.delete(f"/api/v1/alerts/{alert.id}", headers=as_user)

        assert response.json()["data"] == {"id": alert.id, "deleted": True}
        missing = await client.get(f"/api/v1/alerts/{alert.id}", headers=as_user)
        assert missing.status_code == 404


# =============================================================================
# NOTIFICATIONS
# =============================================================================


class TestChannelRoutes:
    async def test_create_webhook_masks_secret(self, client, as_user):
        response = await client.post(
            "/api/v1/notifications/channels",
            json={
                "name": "Ops webhook",
                "type": "webhook",
                "config": {"url": "https://hooks.example.com/apiwatch", "secret": "s3cret"},
            },
            headers=as_user,
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["config"]["url"] == "https://hooks.example.com/apiwatch"
        assert data["config"]["secret"] == "********"
        assert data["config"]["method"] == "POST"
        assert data["is_verified"] is False
        assert data["needs_attention"] is False

    async def test_update_with_masked_secret_keeps_secret(self, client, session_factory, as_user):
        """Sending back the config from a GET only changes what was edited."""
        created = await client.post(
            "/api/v1/notifications/channels",
            json={
                "name": "Ops webhook",
                "type": "webhook",
                "config": {"url": "https://hooks.example.com/apiwatch", "secret": "s3cret"},
            },
            headers=as_user,
        )
        channel_id = created.json()["data"]["id"]

        shown = await client.get(f"/api/v1/notifications/channels/{channel_id}", headers=as_user)
        config = shown.json()["data"]["config"]
        config["headers"] = {"X-Team": "payments"}

        response = await client.put(
            f"/api/v1/notifications/channels/{channel_id}",
            json={"config": config},
            headers=as_user,
        )
        assert response.status_code == 200
        assert response.json()["data"]["config"]["secret"] == "********"

        async with session_factory() as session:
            channel = await session.get(NotificationChannel, channel_id)
        assert channel.config["secret"] == "s3cret"
        assert channel.config["headers"] == {"X-Team": "payments"}

    async def test_update_secret(self, client, session_factory, as_user, user, make_channel):
        channel = await make_channel(
            user, config={"url": "https://hooks.example.com/apiwatch", "secret": "old"}
        )

        rotated = await client.put(
            f"/api/v1/notifications/channels/{channel.id}",
            json={"config": {"url": "https://hooks.example.com/apiwatch", "secret": "new"}},
            headers=as_user,
        )
        assert rotated.status_code == 200
        async with session_factory() as session:
            assert (await session.get(NotificationChannel, channel.id)).config["secret"] == "new"

        removed = await client.put(
            f"/api/v1/notifications/channels/{channel.id}",
            json={"config": {"url": "https://hooks.example.com/apiwatch", "secret": None}},
            headers=as_user,
        )
        assert removed.status_code == 200
        async with session_factory() as session:
            assert "secret" not in (await session.get(NotificationChannel, channel.id)).config

    async def test_in_app_is_verified(self, client, as_user):
        response = await client.post(
            "/api/v1/notifications/channels",
            json={"name": "Bell", "type": "in_app"},
            headers=as_user,
        )

        assert response.status_code == 201
        assert response.json()["data"]["is_verified"] is True

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "Mismatch", "type": "slack", "config": {"url": "https://hooks.example.com/x"}},
            {"name": "Bad email", "type": "email", "config": {"address": "not-an-email"}},
            {"name": "Bad url", "type": "webhook", "config": {"url": "ftp://files.example.com/x"}},
            {"name": "Unknown", "type": "pager", "config": {}},
        ],
    )
    async def test_config_must_match_type(self, client, as_user, payload):
        response = await client.post("/api/v1/notifications/channels", json=payload, headers=as_user)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_update_config_clears_verification(self, client, db, as_user, user, make_channel):
        channel = await make_channel(user)
        channel.is_verified = True
        await db.commit()

        response = await client.put(
            f"/api/v1/notifications/channels/{channel.id}",
            json={"config": {"url": "https://hooks.example.com/new"}},
            headers=as_user,
        )

        data = response.json()["data"]
        assert data["config"]["url"] == "https://hooks.example.com/new"
        assert data["is_verified"] is False

    async def test_update_invalid_config(self, client, as_user, user, make_channel):
        channel = await make_channel(user)

        response = await client.put(
            f"/api/v1/notifications/channels/{channel.id}",
            json={"config": {"webhook_url": "https://hooks.example.com/new"}},
            headers=as_user,
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"]

    async def test_test_send_verifies_channel(self, client, session_factory, manager, as_user, user, make_channel):
        manager.dispatcher.registry.register(AcceptingWebhook())
        channel = await make_channel(user)

        response = await client.post(f"/api/v1/notifications/channels/{channel.id}/test", headers=as_user)

        assert response.json()["data"]["success"] is True
        async with session_factory() as session:
            stored = await session.get(NotificationChannel, channel.id)
        assert stored.is_verified is True

    async def test_failed_test_send_reported_in_data(self, client, as_user, user, make_channel):
        channel = await make_channel(user, type="email", config={"address": "ops@example.com"})

        response = await client.post(f"/api/v1/notifications/channels/{channel.id}/test", headers=as_user)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["success"] is False
        assert data["error"] == "SMTP not configured"

    async def test_other_tenants_channel(self, client, as_other, user, make_channel):
        channel = await make_channel(user)

        for method, path in [
            ("GET", f"/api/v1/notifications/channels/{channel.id}"),
            ("DELETE", f"/api/v1/notifications/channels/{channel.id}"),
            ("POST", f"/api/v1/notifications/channels/{channel.id}/test"),
        ]:
            response = await client.request(method, path, headers=as_other)
            assert response.status_code == 404, path

    async def test_delete_channel(self, client, as_user, user, make_channel, route_alerts):
        channel = await make_channel(user)
        await route_alerts(user, channel)

        response = await client.delete(f"/api/v1/notifications/channels/{channel.id}", headers=as_user)
        assert response.json()["data"]["deleted"] is True

        preferences = await client.get("/api/v1/notifications/preferences", headers=as_user)
        assert preferences.json()["data"] == []


class TestPreferenceRoutes:
    async def test_create_list_delete(self, client, as_user, user, make_channel):
        channel = await make_channel(user)
        payload = {"alert_type": "error_rate", "severity": "high", "channel_id": channel.id}

        created = await client.post("/api/v1/notifications/preferences", json=payload, headers=as_user)
        assert created.status_code == 201
        preference_id = created.json()["data"]["id"]

        duplicate = await client.post("/api/v1/notifications/preferences", json=payload, headers=as_user)
        assert duplicate.status_code == 409

        listed = await client.get("/api/v1/notifications/preferences", headers=as_user)
        assert [p["id"] for p in listed.json()["data"]] == [preference_id]

        deleted = await client.delete(f"/api/v1/notifications/preferences/{preference_id}", headers=as_user)
        assert deleted.json()["data"] == {"id": preference_id, "deleted": True}

    async def test_cannot_route_to_foreign_channel(self, client, as_other, user, make_channel):
        channel = await make_channel(user)

        response = await client.post(
            "/api/v1/notifications/preferences",
            json={"alert_type": "error_rate", "severity": "high", "channel_id": channel.id},
            headers=as_other,
        )

        assert response.status_code == 404


class TestHistoryRoute:
    async def test_history(self, client, manager, as_user, as_other, user, make_channel, route_alerts, make_alert):
        channel = await make_channel(user, type="in_app")
        await route_alerts(user, channel)
        alert = await make_alert(user)
        await manager.dispatcher.dispatch(alert.id)

        response = await client.get("/api/v1/notifications/history?status=sent", headers=as_user)

        body = response.json()
        assert body["pagination"]["total"] == 1
        delivery = body["data"][0]
        assert delivery["alert_id"] == alert.id
        assert delivery["channel_id"] == channel.id
        assert delivery["status"] == "sent"

        foreign = await client.get("/api/v1/notifications/history", headers=as_other)
        assert foreign.json()["pagination"]["total"] == 0


# =============================================================================
# ADMIN JOBS
# =============================================================================


class TestAdminJobRoutes:
    async def test_requires_admin(self, client, as_user):
        response = await client.get("/api/v1/admin/jobs", headers=as_user)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    async def test_status(self, client, auth_header, admin):
        response = await client.get("/api/v1/admin/jobs", headers=auth_header(admin))

        data = response.json()["data"]
        assert data["scheduler_running"] is False
        assert [j["name"] for j in data["jobs"]] == ["alert_evaluation", "notification_delivery", "cleanup"]
        assert all(j["last_run"] is None for j in data["jobs"])

    async def test_run_job(self, client, auth_header, admin):
        response = await client.post("/api/v1/admin/jobs/alert_evaluation/run", headers=auth_header(admin))

        data = response.json()["data"]
        assert data["job"] == "alert_evaluation"
        assert data["result"]["rules_evaluated"] == 0
        assert data["result"]["skipped"] is False

        status = await client.get("/api/v1/admin/jobs", headers=auth_header(admin))
        evaluation = status.json()["data"]["jobs"][0]
        assert evaluation["last_run"] is not None
        assert evaluation["last_result"]["alerts_created"] == 0

    async def test_unknown_job(self, client, auth_header, admin):
        response = await client.post("/api/v1/admin/jobs/reindex/run", headers=auth_header(admin))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "JOB_ERROR"

    async def test_start_and_stop(self, client, auth_header, admin):
        headers = auth_header(admin)

        started = await client.post("/api/v1/admin/jobs/start", headers=headers)
        assert started.json()["data"]["scheduler_running"] is True
        assert all(j["next_run"] is not None for j in started.json()["data"]["jobs"])

        twice = await client.post("/api/v1/admin/jobs/start", headers=headers)
        assert twice.status_code == 400

        stopped = await client.post("/api/v1/admin/jobs/stop", headers=headers)
        assert stopped.json()["data"]["scheduler_running"] is False

        again = await client.post("/api/v1/admin/jobs/stop", headers=headers)
        assert again.status_code == 400
