"""
HTTP API tests for the campus grievance service.

Uses httpx AsyncClient + ASGITransport against the in-process app with the
in-memory store, rule-based classifier and a recording notifier.
"""

import base64

import pytest

from campusvoice.app import app, get_store
from campusvoice.store import StoreError

pytestmark = pytest.mark.asyncio

ANA = {
    "studentName": "Ana",
    "studentEmail": "ana@u.edu",
    "complaint": "The hostel room has no electricity and it's urgent",
}


async def _submit(client, complaint, name="Test Student", email="student@campus.edu", **extra):
    resp = await client.post("/grievances", json={
        "studentName": name, "studentEmail": email, "complaint": complaint, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()["grievanceId"]


# ═══════════════════════════════════════════════════════════════════════════════
# HEALTH CHECK
# ═══════════════════════════════════════════════════════════════════════════════

class TestHealthCheck:
    async def test_health_endpoint(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data

    async def test_security_headers(self, client):
        resp = await client.get("/health")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"


# ═══════════════════════════════════════════════════════════════════════════════
# AUTHENTICATION
# ═══════════════════════════════════════════════════════════════════════════════

class TestAuth:
    async def test_login_admin(self, client):
        resp = await client.post("/auth/login", json={
            "email": "Admin@Campus.edu", "password": "admin-pass-1234"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["tokenType"] == "bearer"
        assert data["email"] == "admin@campus.edu"
        assert data["accessToken"]

    async def test_login_wrong_password(self, client):
        resp = await client.post("/auth/login", json={
            "email": "admin@campus.edu", "password": "1234"})
        assert resp.status_code == 401

    async def test_login_unknown_admin(self, client):
        resp = await client.post("/auth/login", json={
            "email": "someone@campus.edu", "password": "admin-pass-1234"})
        assert resp.status_code == 401

    async def test_get_me(self, client, admin_headers):
        resp = await client.get("/auth/me", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["email"] == "admin@campus.edu"

    async def test_dashboard_requires_token(self, client):
        assert (await client.get("/grievances")).status_code == 401
        assert (await client.get("/grievances/stats")).status_code == 401

    async def test_invalid_token(self, client):
        resp = await client.get("/grievances", headers={"Authorization": "Bearer invalid.token.here"})
        assert resp.status_code == 401

    async def test_logout_revokes_token(self, client, admin_headers):
        assert (await client.get("/auth/me", headers=admin_headers)).status_code == 200
        resp = await client.post("/auth/logout", headers=admin_headers)
        assert resp.status_code == 200
        revoked = await client.get("/auth/me", headers=admin_headers)
        assert revoked.status_code == 401


# ═══════════════════════════════════════════════════════════════════════════════
# SUBMISSION
# ═══════════════════════════════════════════════════════════════════════════════

class TestSubmission:
    async def test_submit_classifies_complaint(self, client):
        resp = await client.post("/grievances", json=ANA)
        assert resp.status_code == 201
        data = resp.json()
        assert data["grievanceId"]
        assert data["analysis"] == {
            "category": "Hostel", "urgency": "High", "sentiment": "Neutral",
            "summary": "The hostel room has no electricity and it's urgent",
        }

    async def test_submit_missing_fields(self, client):
        resp = await client.post("/grievances", json={"studentName": "Ana"})
        assert resp.status_code == 400
        data = resp.json()
        assert data["detail"].startswith("Missing required fields")
        fields = {e["field"] for e in data["errors"]}
        assert fields == {"studentEmail", "complaint"}

    async def test_submit_blank_complaint(self, client):
        resp = await client.post("/grievances", json={**ANA, "complaint": "   "})
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "complaint"

    async def test_submit_malformed_email(self, client):
        resp = await client.post("/grievances", json={**ANA, "studentEmail": "not-an-email"})
        assert resp.status_code == 400

    async def test_submit_with_attachment(self, client, admin_headers):
        content = base64.b64encode(b"\x89PNG fake image bytes").decode()
        gid = await _submit(client, "Broken fan in the reading hall", attachments=[
            {"name": "fan.png", "mimeType": "image/png", "sizeBytes": 21, "content": content}])
        resp = await client.get(f"/grievances/{gid}", headers=admin_headers)
        attachments = resp.json()["grievance"]["attachments"]
        assert attachments == [
            {"name": "fan.png", "mimeType": "image/png", "sizeBytes": 21, "content": content}]

    async def test_submit_rejects_unsupported_attachment_type(self, client):
        resp = await client.post("/grievances", json={**ANA, "attachments": [
            {"name": "notes.pdf", "mimeType": "application/pdf", "sizeBytes": 10, "content": "AAAA"}]})
        assert resp.status_code == 400

    async def test_submit_rejects_oversized_attachment(self, client):
        resp = await client.post("/grievances", json={**ANA, "attachments": [
            {"name": "big.jpg", "mimeType": "image/jpeg", "sizeBytes": 500 * 1024, "content": "AAAA"}]})
        assert resp.status_code == 400

    async def test_submit_rejects_too_many_attachments(self, client):
        one = {"name": "a.gif", "mimeType": "image/gif", "sizeBytes": 3, "content": "AAAA"}
        resp = await client.post("/grievances", json={**ANA, "attachments": [one] * 6})
        assert resp.status_code == 400

    async def test_submit_with_data_url_attachment(self, client, admin_headers):
        content = "data:image/gif;base64," + base64.b64encode(b"GIF89a").decode()
        gid = await _submit(client, "Broken window in the corridor", attachments=[
            {"name": "window.gif", "mimeType": "image/gif", "sizeBytes": 6, "content": content}])
        resp = await client.get(f"/grievances/{gid}", headers=admin_headers)
        assert resp.json()["grievance"]["attachments"][0]["content"] == content

    @pytest.mark.parametrize("content", [
        "data:image/png;base64",
        "data:image/png;base64,not base64!",
    ])
    async def test_submit_rejects_malformed_data_url(self, client, content):
        resp = await client.post("/grievances", json={**ANA, "attachments": [
            {"name": "a.png", "mimeType": "image/png", "sizeBytes": 3, "content": content}]})
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"].startswith("attachments.0")

    async def test_submit_rejects_wrong_declared_size(self, client):
        # "AAAA" decodes to 3 bytes
        resp = await client.post("/grievances", json={**ANA, "attachments": [
            {"name": "a.png", "mimeType": "image/png", "sizeBytes": 1, "content": "AAAA"}]})
        assert resp.status_code == 400
        assert "sizeBytes" in resp.json()["detail"]

    async def test_duplicate_submissions_create_two_records(self, client, admin_headers):
        first = await _submit(client, ANA["complaint"])
        second = await _submit(client, ANA["complaint"])
        assert first != second
        resp = await client.get("/grievances", headers=admin_headers)
        assert resp.json()["count"] == 2


# ═══════════════════════════════════════════════════════════════════════════════
# LISTING, LOOKUP AND SEARCH
# ═══════════════════════════════════════════════════════════════════════════════

class TestListing:
    async def test_filter_by_category_newest_first(self, client, admin_headers):
        mess = [
            await _submit(client, "Mess food was cold at dinner"),
            await _submit(client, "The canteen meal was stale"),
        ]
        await _submit(client, "The wifi keeps dropping in block C")
        mess.append(await _submit(client, "Rice in the mess had stones"))
        await _submit(client, "My exam result is missing")

        resp = await client.get("/grievances?category=Mess", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 3
        assert [g["id"] for g in data["grievances"]] == list(reversed(mess))
        assert all(g["category"] == "Mess" for g in data["grievances"])

    async def test_filter_by_urgency_and_status(self, client, admin_headers):
        urgent = await _submit(client, "Emergency: water leaking onto the wiring")
        await _submit(client, "The projector is old")
        resp = await client.get("/grievances?urgency=High&status=submitted", headers=admin_headers)
        assert [g["id"] for g in resp.json()["grievances"]] == [urgent]

    async def test_filter_by_date_range(self, client, admin_headers):
        # The test clock starts on 2025-03-01
        await _submit(client, "The lift is broken")
        inside = await client.get("/grievances?startDate=2025-03-01&endDate=2025-03-01",
                                  headers=admin_headers)
        assert inside.json()["count"] == 1
        before = await client.get("/grievances?endDate=2025-02-28", headers=admin_headers)
        assert before.json()["count"] == 0
        after = await client.get("/grievances?startDate=2025-03-02T00:00:00Z", headers=admin_headers)
        assert after.json()["count"] == 0

    async def test_invalid_date_rejected(self, client, admin_headers):
        resp = await client.get("/grievances?startDate=yesterday", headers=admin_headers)
        assert resp.status_code == 400

    async def test_invalid_category_rejected(self, client, admin_headers):
        resp = await client.get("/grievances?category=Parking", headers=admin_headers)
        assert resp.status_code == 400

    async def test_list_uses_camel_case(self, client, admin_headers):
        await client.post("/grievances", json=ANA)
        g = (await client.get("/grievances", headers=admin_headers)).json()["grievances"][0]
        for key in ("studentName", "studentEmail", "createdAt", "updatedAt", "status", "summary"):
            assert key in g
        assert g["status"] == "submitted"

    async def test_get_unknown_grievance(self, client, admin_headers):
        resp = await client.get("/grievances/does-not-exist", headers=admin_headers)
        assert resp.status_code == 404

    async def test_search_is_public(self, client):
        gid = await _submit(client, "Warden ignores complaints")
        resp = await client.get(f"/grievances/search/{gid}")
        assert resp.status_code == 200
        assert resp.json()["grievance"]["id"] == gid

    async def test_search_unknown_id_is_descriptive(self, client):
        resp = await client.get("/grievances/search/nope-123")
        assert resp.status_code == 404
        assert "nope-123" in resp.json()["detail"]


# ═══════════════════════════════════════════════════════════════════════════════
# STATUS WORKFLOW
# ═══════════════════════════════════════════════════════════════════════════════

class TestStatusWorkflow:
    async def test_end_to_end_submit_then_clear(self, client, admin_headers, notifier):
        submit = await client.post("/grievances", json=ANA)
        gid = submit.json()["grievanceId"]
        before = (await client.get(f"/grievances/{gid}", headers=admin_headers)).json()["grievance"]
        assert before["category"] == "Hostel"
        assert before["urgency"] == "High"
        assert before["status"] == "submitted"

        resp = await client.patch(f"/grievances/{gid}/status", json={"status": "cleared"},
                                  headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["grievance"]["status"] == "cleared"
        assert isinstance(data["emailNotificationSent"], bool)
        assert data["grievance"]["updatedAt"] != before["updatedAt"]
        assert data["message"].startswith("Grievance marked as cleared.")

        assert len(notifier.sent) == 1
        sent = notifier.sent[0]
        assert sent.to == "ana@u.edu"
        assert sent.grievance_id == gid
        assert sent.category == "Hostel"

    async def test_viewed_then_cleared(self, client, admin_headers):
        gid = await _submit(client, "Fan not working in room 12")
        viewed = await client.patch(f"/grievances/{gid}/status",
                                    json={"status": "viewed", "message": "We are on it"},
                                    headers=admin_headers)
        assert viewed.status_code == 200
        assert viewed.json()["grievance"]["status"] == "viewed"
        cleared = await client.patch(f"/grievances/{gid}/status", json={"status": "cleared"},
                                     headers=admin_headers)
        assert cleared.status_code == 200
        assert cleared.json()["grievance"]["status"] == "cleared"

    async def test_cleared_is_final(self, client, admin_headers):
        gid = await _submit(client, "Fan not working in room 12")
        await client.patch(f"/grievances/{gid}/status", json={"status": "cleared"}, headers=admin_headers)
        resp = await client.patch(f"/grievances/{gid}/status", json={"status": "viewed"},
                                  headers=admin_headers)
        assert resp.status_code == 409
        again = await client.patch(f"/grievances/{gid}/status", json={"status": "cleared"},
                                   headers=admin_headers)
        assert again.status_code == 409

    async def test_repeat_viewed_rejected(self, client, admin_headers):
        gid = await _submit(client, "Fan not working in room 12")
        await client.patch(f"/grievances/{gid}/status", json={"status": "viewed"}, headers=admin_headers)
        resp = await client.patch(f"/grievances/{gid}/status", json={"status": "viewed"},
                                  headers=admin_headers)
        assert resp.status_code == 409

    @pytest.mark.parametrize("status", ["submitted", "archived", ""])
    async def test_invalid_status_value(self, client, admin_headers, status):
        gid = await _submit(client, "Fan not working in room 12")
        resp = await client.patch(f"/grievances/{gid}/status", json={"status": status},
                                  headers=admin_headers)
        assert resp.status_code == 400

    async def test_status_of_unknown_grievance(self, client, admin_headers):
        resp = await client.patch("/grievances/missing/status", json={"status": "viewed"},
                                  headers=admin_headers)
        assert resp.status_code == 404

    async def test_notifier_failure_keeps_status(self, client, admin_headers, notifier):
        notifier.error = ConnectionError("smtp down")
        gid = await _submit(client, "Fan not working in room 12")
        resp = await client.patch(f"/grievances/{gid}/status", json={"status": "viewed"},
                                  headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["emailNotificationSent"] is False
        assert data["grievance"]["status"] == "viewed"
        assert "could not be sent" in data["message"]

    async def test_status_requires_admin(self, client):
        gid = await _submit(client, "Fan not working in room 12")
        resp = await client.patch(f"/grievances/{gid}/status", json={"status": "viewed"})
        assert resp.status_code == 401


# ═══════════════════════════════════════════════════════════════════════════════
# DELETE AND STATISTICS
# ═══════════════════════════════════════════════════════════════════════════════

class TestDeleteAndStats:
    async def test_delete_grievance(self, client, admin_headers):
        gid = await _submit(client, "Fan not working in room 12")
        resp = await client.delete(f"/grievances/{gid}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Grievance deleted successfully",
                               "deletedGrievanceId": gid}
        assert (await client.get(f"/grievances/{gid}", headers=admin_headers)).status_code == 404

    async def test_delete_nonexistent_is_not_found(self, client, admin_headers):
        resp = await client.delete("/grievances/never-existed", headers=admin_headers)
        assert resp.status_code == 404

    async def test_stats(self, client, admin_headers):
        await _submit(client, "The hostel room is dirty")
        await _submit(client, "Hostel water is brown, urgent")
        gid = await _submit(client, "Worst mess food ever, I am angry")
        await client.patch(f"/grievances/{gid}/status", json={"status": "viewed"}, headers=admin_headers)

        resp = await client.get("/grievances/stats", headers=admin_headers)
        assert resp.status_code == 200
        stats = resp.json()
        assert stats["total"] == 3
        assert stats["byCategory"] == {"Hostel": 2, "Mess": 1}
        assert stats["byUrgency"] == {"Low": 2, "High": 1}
        assert stats["bySentiment"] == {"Neutral": 2, "Angry": 1}
        assert stats["byStatus"] == {"submitted": 2, "viewed": 1}

    async def test_stats_empty(self, client, admin_headers):
        resp = await client.get("/grievances/stats", headers=admin_headers)
        assert resp.json() == {"total": 0, "byCategory": {}, "byUrgency": {},
                               "bySentiment": {}, "byStatus": {}}


# ═══════════════════════════════════════════════════════════════════════════════
# STORAGE FAULTS
# ═══════════════════════════════════════════════════════════════════════════════

class BrokenStore:
    async def list(self, flt=None):
        raise StoreError("connection refused")

    async def get(self, grievance_id):
        raise StoreError("connection refused")


class TestStorageFaults:
    async def test_storage_fault_is_generic_500(self, client, admin_headers):
        app.dependency_overrides[get_store] = lambda: BrokenStore()
        resp = await client.get("/grievances", headers=admin_headers)
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Internal server error"}
        assert "connection refused" not in resp.text
