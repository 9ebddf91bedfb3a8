"""HTTP surface: auth gate, error mapping, background fan-out and the cron hook."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from app.models import Notification

from conftest import accept, auth_headers

pytestmark = pytest.mark.anyio

ASSET = {"type": "video", "url": "https://cdn.example.com/reel-1.mp4"}


async def _notification_types(session, user_id):
    return list(
        (
            await session.execute(
                select(Notification.type).where(Notification.user_id == user_id)
            )
        ).scalars().all()
    )


async def test_healthz(client):
    resp = await client.get("/api/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


async def test_missing_or_bad_token_is_401(client):
    resp = await client.get("/api/notifications")
    assert resp.status_code == 401

    resp = await client.get("/api/notifications", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.json() == {"detail": "Invalid token"}


async def test_apply_flow_and_error_mapping(client, session, world, email_gateway):
    cid = world["campaign_id"]
    alice = auth_headers(world["alice"])

    resp = await client.post(
        f"/api/campaigns/{cid}/apply",
        json={"message": "  I love beaches  ", "custom_quote": "150.00"},
        headers=alice,
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "pending"
    assert body["message"] == "I love beaches"
    assert Decimal(str(body["custom_quote"])) == Decimal("150")

    # Fan-out ran as a background task after the response.
    assert await _notification_types(session, world["brand"].user_id) == ["application_created"]
    assert email_gateway.templates_for("brand@example.com") == ["brand_creator_applied"]

    resp = await client.post(f"/api/campaigns/{cid}/apply", json={"message": "again"}, headers=alice)
    assert resp.status_code == 409
    assert resp.json()["detail"] == "You have already applied to this campaign"

    resp = await client.post(
        f"/api/campaigns/{cid}/apply",
        json={"message": "brand"},
        headers=auth_headers(world["brand"]),
    )
    assert resp.status_code == 403

    resp = await client.post(
        f"/api/campaigns/{cid}/apply", json={"message": "   "}, headers=auth_headers(world["bob"])
    )
    assert resp.status_code == 422

    resp = await client.post(
        "/api/campaigns/missing/apply", json={"message": "hi"}, headers=auth_headers(world["bob"])
    )
    assert resp.status_code == 404


async def test_decide_application(client, world):
    cid = world["campaign_id"]
    brand = auth_headers(world["brand"])
    resp = await client.post(
        f"/api/campaigns/{cid}/apply", json={"message": "hi"}, headers=auth_headers(world["alice"])
    )
    application_id = resp.json()["id"]
    url = f"/api/campaigns/{cid}/applicants/{application_id}"

    resp = await client.patch(url, json={"status": "maybe"}, headers=brand)
    assert resp.status_code == 400

    resp = await client.patch(
        f"/api/campaigns/{cid}/applicants/unknown", json={"status": "accepted"}, headers=brand
    )
    assert resp.status_code == 404

    resp = await client.patch(url, json={"status": "accepted"}, headers=auth_headers(world["alice"]))
    assert resp.status_code == 403

    resp = await client.patch(url, json={"status": "accepted"}, headers=brand)
    assert resp.status_code == 200
    assert resp.json()["status"] == "accepted"

    resp = await client.patch(url, json={"status": "rejected"}, headers=brand)
    assert resp.status_code == 409

    resp = await client.get(f"/api/campaigns/{cid}/applicants", headers=brand)
    assert [a["status"] for a in resp.json()] == ["accepted"]

    resp = await client.get("/api/creator/applications", headers=auth_headers(world["alice"]))
    (mine,) = resp.json()
    assert mine["campaign_title"] == "Summer Escape"
    assert mine["campaign_status"] == "active"


async def test_submission_review_and_eligibility(client, session, world):
    cid = world["campaign_id"]
    await accept(session, cid, world["alice"].user_id)
    alice = auth_headers(world["alice"])
    brand = auth_headers(world["brand"])

    payload = {
        "campaign_id": cid,
        "requirement_id": "r1",
        "content_type": "Reel",
        "social_channel": "Instagram",
        "assets": [ASSET, {**ASSET, "url": "https://cdn.example.com/reel-2.mp4"}],
    }
    resp = await client.post("/api/submissions", json=payload, headers=alice)
    assert resp.status_code == 201
    submission = resp.json()
    assert submission["quantity"] == 2
    assert [a["url"] for a in submission["assets"]] == [
        "https://cdn.example.com/reel-1.mp4",
        "https://cdn.example.com/reel-2.mp4",
    ]

    resp = await client.post("/api/submissions", json={**payload, "assets": []}, headers=alice)
    assert resp.status_code == 400

    resp = await client.post("/api/submissions", json=payload, headers=auth_headers(world["bob"]))
    assert resp.status_code == 403

    resp = await client.patch(
        f"/api/submissions/{submission['id']}/review",
        json={"status": "rejected", "rejection_comment": "Logo is cut off"},
        headers=brand,
    )
    assert resp.status_code == 200
    assert resp.json()["rejection_comment"] == "Logo is cut off"

    resp = await client.put(
        f"/api/submissions/{submission['id']}", json={"assets": [ASSET]}, headers=alice
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "pending"
    assert resp.json()["rejection_comment"] is None

    resp = await client.patch(
        f"/api/submissions/{submission['id']}/review",
        json={"status": "approved"},
        headers=brand,
    )
    assert resp.status_code == 200

    resp = await client.get(f"/api/campaigns/{cid}/eligibility", headers=alice)
    assert resp.status_code == 403

    resp = await client.get(f"/api/campaigns/{cid}/eligibility", headers=brand)
    assert resp.status_code == 200
    report = resp.json()
    assert report["budget_type"] == "paid"
    (creator,) = report["creators"]
    assert creator["creator_id"] == world["alice"].user_id
    # Resubmission carried one asset, so quantity fell to 1 against a required 2.
    assert creator["eligible"] is False
    assert creator["requirements"][0]["required"] == 2

    resp = await client.get(f"/api/campaigns/{cid}/payment-due", headers=brand)
    assert resp.json()["creators"] == []

    resp = await client.get(f"/api/campaigns/{cid}/submissions?status=approved", headers=brand)
    assert [s["id"] for s in resp.json()] == [submission["id"]]

    resp = await client.get(f"/api/creator/submissions?campaign_id={cid}", headers=alice)
    assert len(resp.json()) == 1


async def test_messages_and_participants(client, session, world):
    cid = world["campaign_id"]
    await accept(session, cid, world["alice"].user_id)
    brand = auth_headers(world["brand"])
    alice = auth_headers(world["alice"])

    resp = await client.post(
        "/api/messages/send",
        json={"campaign_id": cid, "message": "Welcome aboard", "is_broadcast": True},
        headers=brand,
    )
    assert resp.status_code == 201
    assert resp.json()["recipient_id"] is None

    resp = await client.post(
        "/api/messages/send",
        json={"campaign_id": cid, "message": "Thanks!"},
        headers=alice,
    )
    assert resp.status_code == 201
    assert resp.json()["recipient_id"] == world["brand"].user_id

    resp = await client.post(
        "/api/messages/send",
        json={"campaign_id": cid, "message": "", "recipient_id": world["alice"].user_id},
        headers=brand,
    )
    assert resp.status_code == 400

    resp = await client.post(
        "/api/messages/send",
        json={"campaign_id": cid, "message": "all", "is_broadcast": True},
        headers=alice,
    )
    assert resp.status_code == 403

    resp = await client.get(f"/api/messages/campaign/{cid}", headers=alice)
    assert [m["body"] for m in resp.json()] == ["Welcome aboard", "Thanks!"]

    resp = await client.get(f"/api/campaigns/{cid}/participants", headers=brand)
    assert resp.json() == [{"id": world["alice"].user_id, "name": "Alice"}]

    resp = await client.get(f"/api/campaigns/{cid}/participants", headers=alice)
    assert resp.status_code == 403

    assert await _notification_types(session, world["alice"].user_id) == ["message_broadcast"]


async def test_notification_inbox_and_preferences(client, world):
    cid = world["campaign_id"]
    brand = auth_headers(world["brand"])
    await client.post(
        f"/api/campaigns/{cid}/apply", json={"message": "a"}, headers=auth_headers(world["alice"])
    )
    await client.post(
        f"/api/campaigns/{cid}/apply", json={"message": "b"}, headers=auth_headers(world["bob"])
    )

    resp = await client.get("/api/notifications", headers=brand)
    body = resp.json()
    assert body["unread_count"] == 2
    ids = [item["id"] for item in body["items"]]

    resp = await client.put("/api/notifications", json={"notification_ids": ids[:1]}, headers=brand)
    assert resp.json() == {"updated": 1}

    resp = await client.get("/api/notifications?unread=true", headers=brand)
    assert resp.json()["unread_count"] == 1
    assert [item["id"] for item in resp.json()["items"]] == ids[1:]

    resp = await client.put("/api/notifications", json={"notification_ids": []}, headers=brand)
    assert resp.status_code == 422

    resp = await client.get("/api/user/notification-preferences", headers=brand)
    assert resp.json()["email_campaign_updates"] is True

    resp = await client.put(
        "/api/user/notification-preferences",
        json={"email_campaign_updates": False},
        headers=brand,
    )
    assert resp.json()["email_campaign_updates"] is False
    assert resp.json()["email_payment_alerts"] is True


async def test_scheduled_endpoint_requires_cron_secret(client):
    resp = await client.post("/api/notifications/scheduled")
    assert resp.status_code == 401

    resp = await client.post(
        "/api/notifications/scheduled", headers={"Authorization": "Bearer wrong"}
    )
    assert resp.status_code == 401

    resp = await client.post(
        "/api/notifications/scheduled", headers={"Authorization": "Bearer cron-secret"}
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "brand_campaign_boost_reminder": 0,
        "creator_nudge_first_application": 0,
        "brand_nudge_campaign_creation": 0,
    }
