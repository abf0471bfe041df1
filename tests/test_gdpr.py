import os

from jobboard.services.mongo_service import get_cv_document_service
from jobboard.utils.file_upload import cv_path


def test_consent_grant_and_revoke(client, make_seeker, audit_actions):
    seeker = make_seeker(marketing_consent=False)
    response = client.post("/api/gdpr/consent", headers=seeker["headers"],
                           json={"consent_type": "MARKETING", "action": "GRANTED"})
    assert response.status_code == 200
    assert response.json()["consent_type"] == "MARKETING"

    client.post("/api/gdpr/consent", headers=seeker["headers"],
                json={"consent_type": "JOB_ALERTS", "action": "REVOKED"})

    body = client.get("/api/gdpr/consent", headers=seeker["headers"]).json()
    assert body["current_consents"] == {"data_retention": True, "marketing": True, "job_alerts": False}
    latest = body["consent_history"][0]
    assert (latest["consent_type"], latest["action"]) == ("JOB_ALERTS", "REVOKED")
    assert {"CONSENT_GRANTED", "CONSENT_REVOKED"} <= set(audit_actions(seeker["user_id"]))


def test_consent_rejects_unknown_type(client, make_seeker):
    seeker = make_seeker()
    response = client.post("/api/gdpr/consent", headers=seeker["headers"],
                           json={"consent_type": "TELEPATHY", "action": "GRANTED"})
    assert response.status_code == 400


def test_data_export_for_job_seeker(client, make_employer, make_seeker, make_job):
    employer = make_employer()
    seeker = make_seeker()
    job_id = make_job(employer)
    client.post(f"/api/jobs/{job_id}/apply", headers=seeker["headers"], json={"cover_letter": "Hello"})
    files = {"file": ("cv.doc", b"legacy", "application/msword")}
    client.post("/api/job-seeker/upload-cv", headers=seeker["headers"], files=files)

    export = client.get("/api/gdpr/data-export", headers=seeker["headers"]).json()
    assert export["export_info"]["user_email"] == "seeker@example.com"
    assert export["basic_info"]["role"] == "JOB_SEEKER"
    profile = export["job_seeker_profile"]
    assert profile["cv_url"] == "[CV FILE PRESENT]"
    assert profile["applications"][0]["cover_letter"] == "Hello"
    assert len(export["consent_logs"]) == 2
    assert export["audit_logs"][0]["action"] in {"CV_UPLOADED", "JOB_APPLICATION_SUBMITTED"}
    assert export["data_summary"]["job_seeker_profile"] is True
    assert export["data_summary"]["employer_profile"] is False


def test_data_export_for_employer(client, make_employer, make_job):
    employer = make_employer()
    make_job(employer)
    export = client.get("/api/gdpr/data-export", headers=employer["headers"]).json()
    assert export["employer_profile"]["company_name"] == "Acme Ltd"
    assert len(export["employer_profile"]["jobs"]) == 1


def test_account_deletion_anonymises(client, make_seeker, audit_actions):
    seeker = make_seeker()
    client.post("/api/newsletter/subscribe", json={"email": "seeker@example.com"})
    client.post("/api/job-seeker/job-alerts", headers=seeker["headers"], json={"title": "Anything"})
    profile_id = client.get("/api/job-seeker/profile", headers=seeker["headers"]).json()["id"]
    get_cv_document_service().insert(profile_id, "cv text", "cv.pdf", "1_1.pdf")

    assert client.post("/api/gdpr/account-deletion", headers=seeker["headers"],
                       json={"confirm": False}).status_code == 400

    response = client.post("/api/gdpr/account-deletion", headers=seeker["headers"],
                           json={"confirm": True, "reason": "moving abroad"})
    assert response.status_code == 200

    # the token no longer works and the email is free again
    assert client.get("/api/auth/me", headers=seeker["headers"]).status_code == 403
    login = client.post("/api/auth/login", json={"email": "seeker@example.com", "password": "password123"})
    assert login.status_code == 401
    again = client.post("/api/auth/register/job-seeker", json={
        "first_name": "New", "last_name": "Person", "email": "seeker@example.com",
        "password": "password123", "location": "Nicosia",
    })
    assert again.status_code == 201

    assert get_cv_document_service().get_by_job_seeker(profile_id) is None
    assert "ACCOUNT_DELETED" in audit_actions(seeker["user_id"])

    resubscribe = client.post("/api/newsletter/subscribe", json={"email": "seeker@example.com"})
    assert resubscribe.status_code == 201
    assert resubscribe.json()["message"] == "Subscription reactivated"


def test_account_deletion_removes_stored_cv_files(client, make_seeker):
    seeker = make_seeker()
    files = {"file": ("cv.doc", b"legacy word content", "application/msword")}
    cv_url = client.post("/api/job-seeker/upload-cv", headers=seeker["headers"], files=files).json()["cv_url"]
    stored = cv_path(cv_url.rsplit("/", 1)[1])
    assert os.path.exists(stored)

    response = client.post("/api/gdpr/account-deletion", headers=seeker["headers"], json={"confirm": True})
    assert response.status_code == 200
    assert not os.path.exists(stored)
