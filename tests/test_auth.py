from sqlalchemy import text

from jobboard.db.postgres import get_db_session


def test_register_job_seeker_returns_token_and_records_consents(client, make_seeker, audit_actions):
    seeker = make_seeker(marketing_consent=False)

    me = client.get("/api/auth/me", headers=seeker["headers"])
    assert me.status_code == 200
    body = me.json()
    assert body["role"] == "JOB_SEEKER"
    assert body["name"] == "Maria Georgiou"
    assert body["data_retention_consent"] is True
    assert body["job_alert_consent"] is True
    assert body["marketing_consent"] is False

    with get_db_session() as db:
        consents = db.execute(
            text("SELECT consent_type FROM consent_logs WHERE user_id = :uid ORDER BY consent_type"),
            {"uid": seeker["user_id"]}
        ).fetchall()
    assert [row[0] for row in consents] == ["DATA_RETENTION", "JOB_ALERTS"]
    assert "USER_CREATED" in audit_actions(seeker["user_id"])


def test_register_duplicate_email_is_rejected(client, make_seeker):
    make_seeker(email="dup@example.com")
    response = client.post("/api/auth/register/employer", json={
        "company_name": "Other", "email": "DUP@example.com", "password": "password123", "contact_name": "X",
    })
    assert response.status_code == 400


def test_register_with_missing_fields_is_a_400(client):
    response = client.post("/api/auth/register/job-seeker", json={"email": "a@example.com"})
    assert response.status_code == 400


def test_employer_never_gets_job_alert_consent(client, make_employer):
    employer = make_employer(job_alert_consent=True)
    body = client.get("/api/auth/me", headers=employer["headers"]).json()
    assert body["role"] == "EMPLOYER"
    assert body["job_alert_consent"] is False

    profile = client.get("/api/employer/profile", headers=employer["headers"]).json()
    assert profile["contact_email"] == employer["email"]


def test_login_success_updates_last_login(client, make_seeker, audit_actions):
    seeker = make_seeker()
    response = client.post("/api/auth/login", json={"email": "seeker@example.com", "password": "password123"})
    assert response.status_code == 200
    assert response.json()["role"] == "JOB_SEEKER"

    me = client.get("/api/auth/me", headers=seeker["headers"]).json()
    assert me["last_login_at"] is not None
    assert "USER_LOGIN" in audit_actions(seeker["user_id"])


def test_login_wrong_password(client, make_seeker):
    make_seeker()
    response = client.post("/api/auth/login", json={"email": "seeker@example.com", "password": "wrong-password"})
    assert response.status_code == 401


def test_login_role_mismatch(client, make_seeker):
    make_seeker()
    response = client.post(
        "/api/auth/login",
        json={"email": "seeker@example.com", "password": "password123", "role": "EMPLOYER"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid role for this account"


def test_me_requires_token(client):
    assert client.get("/api/auth/me").status_code in (401, 403)
    bad = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad.status_code == 401


def test_role_guards(client, make_seeker, make_employer):
    seeker = make_seeker()
    employer = make_employer()
    assert client.get("/api/employer/profile", headers=seeker["headers"]).status_code == 403
    assert client.get("/api/job-seeker/profile", headers=employer["headers"]).status_code == 403
    assert client.get("/api/admin/metrics", headers=employer["headers"]).status_code == 403
