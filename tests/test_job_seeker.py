import io

from docx import Document

from jobboard.services.mongo_service import get_cv_document_service


def test_profile_update_syncs_user_name(client, make_seeker, audit_actions):
    seeker = make_seeker()
    response = client.put("/api/job-seeker/profile", headers=seeker["headers"],
                          json={"first_name": "Eleni", "title": "Backend Developer", "experience": 5})
    assert response.status_code == 200

    profile = client.get("/api/job-seeker/profile", headers=seeker["headers"]).json()
    assert profile["first_name"] == "Eleni"
    assert profile["experience"] == 5
    assert profile["country"] == "Cyprus"
    assert client.get("/api/auth/me", headers=seeker["headers"]).json()["name"] == "Eleni Georgiou"
    assert "PROFILE_UPDATED" in audit_actions(seeker["user_id"])

    assert client.put("/api/job-seeker/profile", headers=seeker["headers"], json={}).status_code == 400


def test_skills(client, make_seeker):
    seeker = make_seeker()
    added = client.post("/api/job-seeker/skills", headers=seeker["headers"],
                        json={"name": "Python", "level": "ADVANCED"})
    assert added.status_code == 201
    duplicate = client.post("/api/job-seeker/skills", headers=seeker["headers"],
                            json={"name": "python", "level": "EXPERT"})
    assert duplicate.status_code == 400

    skills = client.get("/api/job-seeker/skills", headers=seeker["headers"]).json()
    assert [(s["name"], s["level"]) for s in skills] == [("Python", "ADVANCED")]

    skill_id = skills[0]["id"]
    assert client.delete(f"/api/job-seeker/skills/{skill_id}", headers=seeker["headers"]).status_code == 200
    assert client.delete(f"/api/job-seeker/skills/{skill_id}", headers=seeker["headers"]).status_code == 404


def test_saved_jobs(client, make_employer, make_seeker, make_job):
    employer = make_employer()
    seeker = make_seeker()
    job_id = make_job(employer)
    draft = make_job(employer, status="DRAFT")

    assert client.post(f"/api/job-seeker/saved-jobs/{job_id}", headers=seeker["headers"]).status_code == 201
    assert client.post(f"/api/job-seeker/saved-jobs/{job_id}", headers=seeker["headers"]).status_code == 409
    assert client.post(f"/api/job-seeker/saved-jobs/{draft}", headers=seeker["headers"]).status_code == 404

    saved = client.get("/api/job-seeker/saved-jobs", headers=seeker["headers"]).json()
    assert saved["total"] == 1
    assert saved["saved_jobs"][0]["job"]["id"] == job_id
    assert saved["saved_jobs"][0]["saved_at"] is not None
    assert client.get(f"/api/job-seeker/saved-jobs/check/{job_id}", headers=seeker["headers"]).json() == {"saved": True}

    assert client.delete(f"/api/job-seeker/saved-jobs/{job_id}", headers=seeker["headers"]).status_code == 200
    assert client.get(f"/api/job-seeker/saved-jobs/check/{job_id}", headers=seeker["headers"]).json() == {"saved": False}


def _docx_bytes(text: str) -> bytes:
    document = Document()
    document.add_paragraph(text)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def test_cv_upload_stores_file_and_text(client, make_seeker, audit_actions):
    seeker = make_seeker()
    files = {"file": ("maria_cv.docx", _docx_bytes("Experienced Python engineer"), DOCX_TYPE)}
    response = client.post("/api/job-seeker/upload-cv", headers=seeker["headers"], files=files)
    assert response.status_code == 200
    body = response.json()
    assert body["file_name"] == "maria_cv.docx"
    assert body["text_extracted"] is True
    assert body["cv_url"].startswith(f"/api/uploads/cvs/{seeker['user_id']}_")

    profile = client.get("/api/job-seeker/profile", headers=seeker["headers"]).json()
    assert profile["cv_url"] == body["cv_url"]
    assert "CV_UPLOADED" in audit_actions(seeker["user_id"])

    profile_id = profile["id"]
    stored = get_cv_document_service().get_by_job_seeker(profile_id)
    assert "Experienced Python engineer" in stored["cv_text"]

    download = client.get(body["cv_url"], headers=seeker["headers"])
    assert download.status_code == 200


def test_cv_upload_rejects_other_types(client, make_seeker):
    seeker = make_seeker()
    files = {"file": ("notes.txt", b"hello", "text/plain")}
    assert client.post("/api/job-seeker/upload-cv", headers=seeker["headers"], files=files).status_code == 400


def test_cv_download_access(client, make_seeker, make_employer, make_job):
    seeker = make_seeker()
    files = {"file": ("cv.doc", b"legacy word content", "application/msword")}
    cv_url = client.post("/api/job-seeker/upload-cv", headers=seeker["headers"], files=files).json()["cv_url"]

    stranger = make_seeker(email="stranger@example.com")
    employer = make_employer()
    assert client.get(cv_url, headers=stranger["headers"]).status_code == 403
    assert client.get(cv_url, headers=employer["headers"]).status_code == 403

    job_id = make_job(employer)
    client.post(f"/api/jobs/{job_id}/apply", headers=seeker["headers"])
    assert client.get(cv_url, headers=employer["headers"]).status_code == 200

    assert client.get("/api/uploads/cvs/..secret", headers=seeker["headers"]).status_code == 400


def test_job_alert_crud(client, make_seeker, audit_actions):
    seeker = make_seeker()
    created = client.post("/api/job-seeker/job-alerts", headers=seeker["headers"], json={
        "title": "Python in Limassol", "location": "Limassol", "job_type": "FULL_TIME", "salary_min": 30000,
    })
    assert created.status_code == 201
    alert = created.json()
    assert alert["active"] is True
    assert alert["frequency"] == "DAILY"

    bad = client.post("/api/job-seeker/job-alerts", headers=seeker["headers"],
                      json={"title": "Bad", "salary_min": 50, "salary_max": 10})
    assert bad.status_code == 400

    updated = client.put(f"/api/job-seeker/job-alerts/{alert['id']}", headers=seeker["headers"],
                         json={"sms_alerts": True, "frequency": "WEEKLY"})
    assert updated.status_code == 200
    assert updated.json()["sms_alerts"] is True
    assert updated.json()["frequency"] == "WEEKLY"

    inverted = client.put(f"/api/job-seeker/job-alerts/{alert['id']}", headers=seeker["headers"],
                          json={"salary_max": 100})
    assert inverted.status_code == 400

    other = make_seeker(email="other@example.com")
    assert client.delete(f"/api/job-seeker/job-alerts/{alert['id']}", headers=other["headers"]).status_code == 404
    assert client.delete(f"/api/job-seeker/job-alerts/{alert['id']}", headers=seeker["headers"]).status_code == 200
    assert client.get("/api/job-seeker/job-alerts", headers=seeker["headers"]).json() == []

    actions = audit_actions(seeker["user_id"])
    assert {"JOB_ALERT_CREATED", "JOB_ALERT_UPDATED", "JOB_ALERT_DELETED"} <= set(actions)
