import pytest
from sqlalchemy import text

from jobboard.db.postgres import get_db_session


def test_admin_user_listing(client, admin, make_seeker, make_employer):
    make_seeker()
    make_employer()

    body = client.get("/api/admin/users", headers=admin["headers"]).json()
    assert body["pagination"]["total"] == 3

    employers = client.get("/api/admin/users", headers=admin["headers"], params={"role": "EMPLOYER"}).json()
    assert [u["email"] for u in employers["users"]] == ["hr@acme.example.com"]

    searched = client.get("/api/admin/users", headers=admin["headers"], params={"search": "georgiou"}).json()
    assert [u["email"] for u in searched["users"]] == ["seeker@example.com"]


def test_soft_delete_restore_and_delete(client, admin, make_seeker, audit_actions):
    seeker = make_seeker()
    url = f"/api/admin/users/{seeker['user_id']}"

    soft = client.patch(url, headers=admin["headers"], json={"action": "soft-delete"})
    assert soft.status_code == 200
    assert soft.json()["user"]["deleted_at"] is not None
    assert client.get("/api/auth/me", headers=seeker["headers"]).status_code == 403

    restored = client.patch(url, headers=admin["headers"], json={"action": "restore"})
    assert restored.json()["user"]["deleted_at"] is None
    assert client.get("/api/auth/me", headers=seeker["headers"]).status_code == 200

    deleted = client.patch(url, headers=admin["headers"], json={"action": "delete"})
    assert deleted.json() == {"message": "User deleted successfully"}
    assert client.patch(url, headers=admin["headers"], json={"action": "restore"}).status_code == 404

    actions = audit_actions(admin["user_id"])
    assert {"ADMIN_USER_SOFT_DELETED", "ADMIN_USER_RESTORED", "ADMIN_USER_DELETED"} <= set(actions)


def test_metrics(client, admin, make_seeker, make_employer, make_job):
    employer = make_employer()
    seeker = make_seeker()
    job_id = make_job(employer)
    application_id = client.post(f"/api/jobs/{job_id}/apply", headers=seeker["headers"]).json()["application_id"]
    client.patch(f"/api/applications/{application_id}/status", headers=employer["headers"], json={"status": "HIRED"})

    metrics = client.get("/api/admin/metrics", headers=admin["headers"]).json()["metrics"]
    assert metrics["total_users"] == 3
    assert metrics["total_employers"] == 1
    assert metrics["total_job_seekers"] == 1
    assert metrics["active_jobs"] == 1
    assert metrics["total_applications"] == 1
    assert metrics["success_rate"] == 100
    assert metrics["data_retention_days"] == 730


def test_admin_payments_listing(client, admin):
    body = client.get("/api/admin/payments", headers=admin["headers"], params={"status": "COMPLETED"}).json()
    assert body["payments"] == []
    assert body["pagination"]["total"] == 0


@pytest.mark.parametrize("kind, recipient", [("EMAIL", "someone@example.com"), ("SMS", "+35799123456")])
def test_admin_notification(client, admin, monkeypatch, audit_actions, kind, recipient):
    sent = []
    monkeypatch.setattr("jobboard.api.routes.admin_routes.send_email",
                        lambda to, subject, body: sent.append(("EMAIL", to)) or True)
    monkeypatch.setattr("jobboard.api.routes.admin_routes.send_sms",
                        lambda phone, message: sent.append(("SMS", phone)) or True)

    response = client.post("/api/admin/notifications/send", headers=admin["headers"],
                           json={"type": kind, "recipient": recipient, "message": "Hello"})
    assert response.status_code == 200
    assert sent == [(kind, recipient)]
    assert "SEND_NOTIFICATION" in audit_actions(admin["user_id"])


def test_admin_notification_failure(client, admin):
    # no SMS gateway configured
    response = client.post("/api/admin/notifications/send", headers=admin["headers"],
                           json={"type": "SMS", "recipient": "+35799123456", "message": "Hello"})
    assert response.status_code == 502


def _completed_payment(employer_user_id, amount=2000):
    with get_db_session() as db:
        employer_id = db.execute(
            text("SELECT id FROM employers WHERE user_id = :uid"), {"uid": employer_user_id}
        ).fetchone()[0]
        db.execute(
            text("""
                INSERT INTO payments (employer_id, amount, currency, status, type)
                VALUES (:eid, :amount, 'eur', 'COMPLETED', 'JOB_POSTING')
            """),
            {"eid": employer_id, "amount": amount}
        )


def test_realtime_metrics(client, admin, make_seeker, make_employer, make_job):
    employer = make_employer()
    seeker = make_seeker()
    job_id = make_job(employer)
    make_job(employer, title="Draft role", status="DRAFT")
    client.post(f"/api/jobs/{job_id}/apply", headers=seeker["headers"])
    client.post("/api/auth/login", json={"email": seeker["email"], "password": "password123"})

    body = client.get("/api/admin/realtime-metrics", headers=admin["headers"]).json()
    assert body["metrics"] == {"active_users": 1, "new_jobs": 1, "new_applications": 1}
    assert body["timestamp"]


def test_recent_activity_feed(client, admin, make_seeker, make_employer, make_job):
    employer = make_employer()
    seeker = make_seeker()
    job_id = make_job(employer)
    make_job(employer, title="Draft role", status="DRAFT")
    client.post(f"/api/jobs/{job_id}/apply", headers=seeker["headers"])
    client.post("/api/applications/guest", json={"job_id": job_id, "email": "guest@example.com"})
    _completed_payment(employer["user_id"])

    activities = client.get("/api/admin/recent-activity", headers=admin["headers"]).json()["activities"]
    by_id = {activity["id"]: activity for activity in activities}

    assert by_id["job_1"]["type"] == "job_posted"
    assert by_id["job_1"]["message"] == "New job posted: Senior Python Developer at Acme Ltd"
    assert "job_2" not in by_id
    assert by_id["application_1"]["message"] == "Maria Georgiou applied for Senior Python Developer"
    assert by_id["application_2"]["message"] == "Anonymous applied for Senior Python Developer"
    assert by_id["payment_1"]["type"] == "payment_received"
    assert by_id["payment_1"]["details"]["amount"] == 2000
    assert len([a for a in activities if a["type"] == "user_registered"]) == 3
    timestamps = [a["timestamp"] for a in activities]
    assert timestamps == sorted(timestamps, reverse=True)


def test_recent_activity_requires_admin(client, make_seeker):
    seeker = make_seeker()
    assert client.get("/api/admin/recent-activity", headers=seeker["headers"]).status_code == 403


def test_enhanced_analytics(client, admin, make_seeker, make_employer, make_job):
    employer = make_employer()
    seeker = make_seeker()
    job_id = make_job(employer)
    make_job(employer, title="Draft role", status="DRAFT")
    application_id = client.post(f"/api/jobs/{job_id}/apply", headers=seeker["headers"]).json()["application_id"]
    client.patch(f"/api/applications/{application_id}/status", headers=employer["headers"],
                 json={"status": "VIEWED"})
    _completed_payment(employer["user_id"], amount=2000)
    _completed_payment(employer["user_id"], amount=4000)

    body = client.get("/api/admin/analytics/enhanced", headers=admin["headers"]).json()
    analytics = body["analytics"]
    assert body["generated_at"]

    assert analytics["users"]["total"] == 3
    assert analytics["users"]["growth_rate"] == 100.0
    assert {"role": "JOB_SEEKER", "count": 1} in analytics["users"]["by_role"]

    assert analytics["jobs"]["total"] == 2
    assert analytics["jobs"]["active"] == 1
    assert analytics["jobs"]["fill_rate"] == 50.0
    assert analytics["jobs"]["by_type"] == [{"type": "FULL_TIME", "count": 1}]
    assert analytics["jobs"]["top_locations"] == [{"location": "Limassol", "count": 1}]

    assert analytics["applications"]["total"] == 1
    assert analytics["applications"]["conversion_rate"] == 100.0
    assert analytics["applications"]["average_per_job"] == 0.5
    assert sum(day["count"] for day in analytics["applications"]["by_day"]) == 1

    assert analytics["employers"]["top_by_job_count"] == [{"company_name": "Acme Ltd", "job_count": 1}]

    revenue = analytics["revenue"]
    assert revenue["total"] == 6000
    assert revenue["last_30_days"] == 6000
    assert revenue["average_order_value"] == 3000
    assert sum(month["revenue"] for month in revenue["by_month"]) == 6000
    assert revenue["by_type"] == [{"type": "JOB_POSTING", "count": 2, "amount": 6000}]

    assert analytics["performance"]["gdpr_requests_processed"] == 0
    assert analytics["performance"]["average_response_time_hours"] >= 0
