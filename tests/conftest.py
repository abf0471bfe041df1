import os
import tempfile

# Settings are read once at import time, so the environment must be ready first.
_TMP_DIR = tempfile.mkdtemp(prefix="jobboard-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "cvs")
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["SMTP_HOST"] = ""
os.environ["SMS_API_URL"] = ""
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["LLM_API_KEY"] = ""

import mongomock
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from jobboard.core.auth import create_access_token, hash_password
from jobboard.db.mongodb import set_mongo_client
from jobboard.db.postgres import get_db_session
from jobboard.db.schema import drop_db, init_db
from jobboard.main import app


@pytest.fixture(autouse=True)
def fresh_stores():
    drop_db()
    init_db()
    set_mongo_client(mongomock.MongoClient())
    yield


@pytest.fixture
def client():
    return TestClient(app)


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_seeker(client):
    def _make(email="seeker@example.com", **overrides):
        payload = {
            "first_name": "Maria",
            "last_name": "Georgiou",
            "email": email,
            "password": "password123",
            "location": "Limassol",
            "phone": "+357 99 123456",
            "data_retention_consent": True,
            "job_alert_consent": True,
        }
        payload.update(overrides)
        response = client.post("/api/auth/register/job-seeker", json=payload)
        assert response.status_code == 201, response.text
        body = response.json()
        return {"user_id": body["user_id"], "headers": auth_headers(body["access_token"]), "email": email}
    return _make


@pytest.fixture
def make_employer(client):
    def _make(email="hr@acme.example.com", company_name="Acme Ltd", **overrides):
        payload = {
            "company_name": company_name,
            "email": email,
            "password": "password123",
            "contact_name": "Andreas Ioannou",
            "industry": "Technology",
            "data_retention_consent": True,
        }
        payload.update(overrides)
        response = client.post("/api/auth/register/employer", json=payload)
        assert response.status_code == 201, response.text
        body = response.json()
        return {"user_id": body["user_id"], "headers": auth_headers(body["access_token"]), "email": email}
    return _make


@pytest.fixture
def admin():
    with get_db_session() as db:
        user_id = db.execute(
            text("""
                INSERT INTO users (email, password_hash, name, role)
                VALUES ('admin@example.com', :pw, 'Admin', 'ADMIN') RETURNING id
            """),
            {"pw": hash_password("password123")}
        ).fetchone()[0]
    token = create_access_token({"sub": str(user_id), "role": "ADMIN"})
    return {"user_id": user_id, "headers": auth_headers(token)}


@pytest.fixture
def make_job(client):
    def _make(employer, **overrides):
        payload = {
            "title": "Senior Python Developer",
            "description": "Build backend services for our platform.",
            "location": "Limassol",
            "type": "FULL_TIME",
            "remote": "HYBRID",
            "salary_min": 40000,
            "salary_max": 60000,
            "application_email": "jobs@acme.example.com",
            "status": "PUBLISHED",
            "skills": ["Python", "FastAPI"],
        }
        payload.update(overrides)
        response = client.post("/api/jobs", json=payload, headers=employer["headers"])
        assert response.status_code == 201, response.text
        return response.json()["job_id"]
    return _make


@pytest.fixture
def sent_emails(monkeypatch):
    """Capture notification emails instead of talking to SMTP."""
    outbox = []

    def fake_send_email(to_email, subject, text_body, html_body=None):
        outbox.append({"to": to_email, "subject": subject, "text": text_body, "html": html_body})
        return True

    monkeypatch.setattr("jobboard.services.notification_service.send_email", fake_send_email)
    return outbox


@pytest.fixture
def sent_sms(monkeypatch):
    outbox = []

    def fake_send_sms(phone, message):
        outbox.append({"to": phone, "message": message})
        return True

    monkeypatch.setattr("jobboard.services.notification_service.send_sms", fake_send_sms)
    return outbox


@pytest.fixture
def cron_headers():
    return {"Authorization": "Bearer test-cron-secret"}


@pytest.fixture
def audit_actions():
    """Audit log actions in insertion order, optionally for one user."""
    def _actions(user_id=None) -> list:
        sql = "SELECT action FROM audit_logs"
        params = {}
        if user_id is not None:
            sql += " WHERE user_id = :uid"
            params["uid"] = user_id
        with get_db_session() as db:
            return [row[0] for row in db.execute(text(sql + " ORDER BY id"), params).fetchall()]
    return _actions
