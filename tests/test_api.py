# File: tests/test_api.py

"""
HTTP smoke tests: the routes are thin, so these mainly check wiring and the
error -> status code mapping.
"""

from portal.models.enums import Role


def test_health_endpoint(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_report_and_view_issue(client, citizen, auth_headers, issue_payload):
    headers = auth_headers(citizen)

    created = client.post("/api/v1/issues", json=issue_payload(), headers=headers)
    assert created.status_code == 201
    issue = created.json()
    assert issue["status"] == "pending"
    assert issue["upvotes"] == 0

    detail = client.get(f"/api/v1/issues/{issue['id']}", headers=headers)
    assert detail.status_code == 200
    assert set(detail.json()["permissions"]) == {"edit_issue", "delete_issue", "boost_issue"}

    timeline = client.get(f"/api/v1/issues/{issue['id']}/timeline")
    assert [e["status"] for e in timeline.json()] == ["pending"]

    listing = client.get("/api/v1/issues", params={"q": "pothole"})
    assert listing.json()["total"] == 1


def test_quota_maps_to_402(client, citizen, auth_headers, issue_payload):
    headers = auth_headers(citizen)
    for n in range(3):
        assert client.post("/api/v1/issues", json=issue_payload(title=f"#{n}"), headers=headers).status_code == 201

    resp = client.post("/api/v1/issues", json=issue_payload(), headers=headers)
    assert resp.status_code == 402
    assert resp.json() == {
        "success": False,
        "error": "quota_exceeded",
        "message": "Free issue limit reached, upgrade to premium to report more issues",
    }


def test_upvote_flow(client, citizen, other_citizen, auth_headers, issue_payload):
    issue_id = client.post(
        "/api/v1/issues", json=issue_payload(), headers=auth_headers(citizen)
    ).json()["id"]

    own = client.post(f"/api/v1/issues/{issue_id}/upvote", headers=auth_headers(citizen))
    assert own.status_code == 403
    assert own.json()["error"] == "self_upvote_forbidden"

    first = client.post(f"/api/v1/issues/{issue_id}/upvote", headers=auth_headers(other_citizen))
    assert first.status_code == 200
    assert first.json()["upvotes"] == 1

    again = client.post(f"/api/v1/issues/{issue_id}/upvote", headers=auth_headers(other_citizen))
    assert again.status_code == 409
    assert again.json()["error"] == "already_voted"

    votes = client.get(f"/api/v1/issues/{issue_id}/votes").json()
    assert votes["total"] == 1


def test_assign_and_resolve(client, citizen, staff, admin, auth_headers, issue_payload):
    issue_id = client.post(
        "/api/v1/issues", json=issue_payload(), headers=auth_headers(citizen)
    ).json()["id"]

    denied = client.put(
        f"/api/v1/issues/{issue_id}/assign", json={"staffId": staff.id}, headers=auth_headers(citizen)
    )
    assert denied.status_code == 403

    assigned = client.put(
        f"/api/v1/issues/{issue_id}/assign", json={"staffId": staff.id}, headers=auth_headers(admin)
    )
    assert assigned.json()["assigned_staff_id"] == staff.id

    resolved = client.put(
        f"/api/v1/issues/{issue_id}/status",
        json={"status": "resolved", "note": "fixed pothole"},
        headers=auth_headers(staff),
    )
    assert resolved.status_code == 200
    assert resolved.json()["status"] == "resolved"

    back = client.put(
        f"/api/v1/issues/{issue_id}/status",
        json={"status": "pending", "note": "oops"},
        headers=auth_headers(staff),
    )
    assert back.status_code == 409
    assert back.json()["error"] == "invalid_transition"

    timeline = client.get(f"/api/v1/issues/{issue_id}/timeline").json()
    assert [e["actor_role"] for e in timeline] == ["citizen", "staff"]


def test_blocked_user_sees_blocked(client, make_user, auth_headers, issue_payload):
    blocked = make_user(Role.CITIZEN, blocked=True)
    resp = client.post("/api/v1/issues", json=issue_payload(), headers=auth_headers(blocked))
    assert resp.status_code == 403
    assert resp.json()["error"] == "blocked"


def test_boost_payment_round_trip(client, gateway, citizen, auth_headers, issue_payload):
    headers = auth_headers(citizen)
    issue_id = client.post("/api/v1/issues", json=issue_payload(), headers=headers).json()["id"]

    gateway.next_session_id = "sess_123"
    checkout = client.post(
        "/api/v1/payments/create-checkout-session",
        json={"purpose": "boost", "issueId": issue_id, "amount": 100},
        headers=headers,
    )
    assert checkout.status_code == 200
    assert checkout.json()["session_id"] == "sess_123"

    gateway.mark_paid("sess_123")
    for _ in range(2):
        confirmed = client.post("/api/v1/payments/confirm-payment", json={"sessionId": "sess_123"})
        assert confirmed.status_code == 200
        assert confirmed.json()["purpose"] == "boost"
        assert confirmed.json()["target"] == issue_id

    issue = client.get(f"/api/v1/issues/{issue_id}", headers=headers).json()
    assert issue["is_boosted"] is True
    assert issue["priority"] == "high"

    mine = client.get("/api/v1/payments/my", headers=headers).json()
    assert len(mine) == 1
    assert mine[0]["status"] == "completed"


def test_confirm_unknown_session_is_404(client):
    resp = client.post("/api/v1/payments/confirm-payment", json={"sessionId": "sess_nope"})
    assert resp.status_code == 404
    assert resp.json()["error"] == "payment_not_found"


def test_admin_user_management(client, admin, citizen, auth_headers):
    headers = auth_headers(admin)

    blocked = client.put(f"/api/v1/users/{citizen.id}/block", headers=headers)
    assert blocked.json()["is_blocked"] is True

    staff = client.post(
        "/api/v1/users/staff",
        json={"subject": "uid-new-staff", "email": "staff@city.gov", "name": "New Staff"},
        headers=headers,
    )
    assert staff.status_code == 201
    staff_id = staff.json()["id"]

    listed = client.get("/api/v1/users", params={"role": "staff"}, headers=headers).json()
    assert [u["id"] for u in listed["items"]] == [staff_id]

    assert client.delete(f"/api/v1/users/staff/{staff_id}", headers=headers).status_code == 204

    forbidden = client.get("/api/v1/users", headers=auth_headers(citizen))
    assert forbidden.status_code == 403


def test_admin_updates_staff_profile(client, admin, staff, auth_headers):
    headers = auth_headers(admin)

    resp = client.put(f"/api/v1/users/{staff.id}", json={"name": "Ward Officer"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Ward Officer"
    assert resp.json()["role"] == "staff"

    rejected = client.put(f"/api/v1/users/{staff.id}", json={"role": "admin"}, headers=headers)
    assert rejected.status_code == 422

    forbidden = client.put(
        f"/api/v1/users/{staff.id}", json={"name": "x"}, headers=auth_headers(staff)
    )
    assert forbidden.status_code == 403
