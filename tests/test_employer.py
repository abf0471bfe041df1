from sqlalchemy import text

from jobboard.db.postgres import get_db_session


def test_profile_update(client, make_employer):
    employer = make_employer()
    response = client.put("/api/employer/profile", headers=employer["headers"],
                          json={"city": "Limassol", "size": "SMALL", "website": "https://acme.example.com"})
    assert response.status_code == 200
    profile = client.get("/api/employer/profile", headers=employer["headers"]).json()
    assert profile["city"] == "Limassol"
    assert profile["size"] == "SMALL"
    assert profile["country"] == "Cyprus"


def test_job_listing_and_actions(client, make_employer, make_job, audit_actions):
    employer = make_employer()
    draft = make_job(employer, title="Accountant", status="DRAFT")
    live = make_job(employer)

    listing = client.get("/api/employer/jobs", headers=employer["headers"]).json()
    assert listing["total"] == 2
    drafts = client.get("/api/employer/jobs", headers=employer["headers"], params={"status": "draft"}).json()
    assert [j["id"] for j in drafts["jobs"]] == [draft]
    by_title = client.get("/api/employer/jobs", headers=employer["headers"],
                          params={"sort_by": "title", "sort_order": "asc"}).json()
    assert [j["title"] for j in by_title["jobs"]] == ["Accountant", "Senior Python Developer"]

    published = client.put(f"/api/employer/jobs/{draft}", headers=employer["headers"], json={"action": "publish"})
    assert published.status_code == 200
    assert published.json()["status"] == "PUBLISHED"
    assert published.json()["published_at"] is not None

    paused = client.put(f"/api/employer/jobs/{live}", headers=employer["headers"], json={"action": "pause"})
    assert paused.json()["status"] == "PAUSED"
    assert client.get(f"/api/jobs/{live}").status_code == 404

    assert {"JOB_PUBLISHED", "JOB_PAUSED"} <= set(audit_actions(employer["user_id"]))


def test_job_general_update_replaces_skills(client, make_employer, make_job):
    employer = make_employer()
    job_id = make_job(employer)
    response = client.put(f"/api/employer/jobs/{job_id}", headers=employer["headers"],
                          json={"title": "Lead Python Developer", "salary_max": 80000, "skills": ["Django"]})
    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Lead Python Developer"
    assert body["salary_max"] == 80000
    assert body["skills"] == ["Django"]

    inverted = client.put(f"/api/employer/jobs/{job_id}", headers=employer["headers"], json={"salary_min": 90000})
    assert inverted.status_code == 400


def test_jobs_are_private_to_their_employer(client, make_employer, make_job, audit_actions):
    employer = make_employer()
    rival = make_employer(email="hr@rival.example.com", company_name="Rival")
    job_id = make_job(employer)

    assert client.get(f"/api/employer/jobs/{job_id}", headers=rival["headers"]).status_code == 404
    assert client.delete(f"/api/employer/jobs/{job_id}", headers=rival["headers"]).status_code == 404
    assert client.delete(f"/api/employer/jobs/{job_id}", headers=employer["headers"]).status_code == 200
    assert client.get(f"/api/employer/jobs/{job_id}", headers=employer["headers"]).status_code == 404
    assert "JOB_DELETED" in audit_actions(employer["user_id"])


def test_stats(client, make_employer, make_seeker, make_job):
    employer = make_employer()
    seeker = make_seeker()
    job_id = make_job(employer, featured=True)
    make_job(employer, status="DRAFT")
    client.post(f"/api/jobs/{job_id}/apply", headers=seeker["headers"])

    stats = client.get("/api/employer/stats", headers=employer["headers"]).json()
    assert stats == {
        "total_jobs": 2,
        "active_jobs": 1,
        "expired_jobs": 0,
        "featured_jobs": 1,
        "total_applications": 1,
        "recent_applications": 1,
    }


def test_analytics_funnel_and_rates(client, make_employer, make_seeker, make_job):
    employer = make_employer()
    job_id = make_job(employer)
    statuses = ["VIEWED", "SHORTLISTED", "HIRED", None]
    for n, status in enumerate(statuses):
        seeker = make_seeker(email=f"seeker{n}@example.com")
        application_id = client.post(f"/api/jobs/{job_id}/apply", headers=seeker["headers"]).json()["application_id"]
        if status:
            client.patch(f"/api/applications/{application_id}/status", headers=employer["headers"],
                         json={"status": "VIEWED"})
            if status != "VIEWED":
                client.patch(f"/api/applications/{application_id}/status", headers=employer["headers"],
                             json={"status": status})
    client.post("/api/applications/guest", json={"job_id": job_id, "email": "guest@example.com"})

    body = client.get("/api/employer/analytics", headers=employer["headers"], params={"days": 7}).json()
    assert body["total_applications"] == 5
    assert body["application_sources"] == {"guest": 1, "registered": 4}
    assert body["funnel"] == {"applied": 5, "viewed": 3, "responded": 2, "shortlisted": 1, "hired": 1}
    assert body["rates"]["view_rate"] == 60.0
    assert body["rates"]["response_rate"] == 66.7
    assert body["rates"]["shortlist_rate"] == 50.0
    assert body["rates"]["hire_rate"] == 100.0
    assert body["rates"]["overall_hire_rate"] == 20.0
    assert len(body["timeline"]) == 7
    assert body["timeline"][-1]["total"] == 5
    assert body["top_jobs"] == [{"id": job_id, "title": "Senior Python Developer", "application_count": 5}]


def test_payment_history(client, make_employer):
    employer = make_employer()
    with get_db_session() as db:
        employer_id = db.execute(
            text("SELECT id FROM employers WHERE user_id = :uid"), {"uid": employer["user_id"]}
        ).fetchone()[0]
        db.execute(
            text("""
                INSERT INTO payments (employer_id, amount, currency, status, type, stripe_payment_intent_id)
                VALUES (:eid, 2000, 'eur', 'COMPLETED', 'JOB_POSTING', 'pi_history')
            """),
            {"eid": employer_id}
        )
    body = client.get("/api/employer/payments", headers=employer["headers"]).json()
    assert body["total"] == 1
    assert body["payments"][0]["stripe_payment_intent_id"] == "pi_history"


def test_recent_jobs(client, make_employer, make_job, make_seeker):
    employer = make_employer()
    other = make_employer(email="hr@other.example.com", company_name="Other Ltd")
    first = make_job(employer, title="Accountant", status="DRAFT")
    second = make_job(employer)
    make_job(other, title="Not ours")
    client.post(f"/api/jobs/{second}/apply", headers=make_seeker()["headers"])

    jobs = client.get("/api/employer/jobs/recent", headers=employer["headers"]).json()["jobs"]
    assert [job["id"] for job in jobs] == [second, first]
    assert jobs[0]["applications_count"] == 1
    assert jobs[1]["status"] == "DRAFT"
    assert jobs[1]["applications_count"] == 0


def test_recent_applications(client, make_employer, make_job, make_seeker):
    employer = make_employer()
    job_id = make_job(employer)
    client.post(f"/api/jobs/{job_id}/apply", headers=make_seeker()["headers"])
    client.post("/api/applications/guest", json={"job_id": job_id, "email": "named@example.com", "name": "Eleni"})
    client.post("/api/applications/guest", json={"job_id": job_id, "email": "nameless@example.com"})

    applications = client.get("/api/employer/applications/recent", headers=employer["headers"]).json()["applications"]
    names = {application["id"]: application["applicant_name"] for application in applications}
    assert names == {1: "Maria Georgiou", 2: "Eleni", 3: "nameless@example.com"}
    assert all(application["job_title"] == "Senior Python Developer" for application in applications)
    assert all(application["has_cv"] is False for application in applications)

    other = make_employer(email="hr@other.example.com", company_name="Other Ltd")
    assert client.get("/api/employer/applications/recent", headers=other["headers"]).json() == {"applications": []}


def test_company_page(client, make_employer, audit_actions):
    employer = make_employer()

    created = client.get("/api/employer/company", headers=employer["headers"])
    assert created.status_code == 200
    assert created.json()["description"] is None
    assert created.json()["employer_id"] == 1

    updated = client.put("/api/employer/company", headers=employer["headers"],
                         json={"description": "We build things", "values": "Openness",
                               "linkedin": "https://linkedin.com/company/acme"})
    assert updated.status_code == 200
    assert updated.json()["values"] == "Openness"
    assert updated.json()["id"] == created.json()["id"]

    # full replace clears what is left out
    replaced = client.put("/api/employer/company", headers=employer["headers"], json={"mission": "Ship"}).json()
    assert replaced["mission"] == "Ship"
    assert replaced["description"] is None
    assert replaced["values"] is None

    assert audit_actions(employer["user_id"]).count("COMPANY_INFO_UPDATED") == 2


def test_company_page_is_employer_only(client, make_seeker):
    seeker = make_seeker()
    assert client.get("/api/employer/company", headers=seeker["headers"]).status_code == 403


def test_job_status_changes_reach_applicants(client, make_employer, make_job, make_seeker, monkeypatch):
    published = []
    monkeypatch.setattr("jobboard.api.routes.employer_routes.publish",
                        lambda rooms, event, data: published.append((rooms, event, data)))
    employer = make_employer()
    seeker = make_seeker()
    job_id = make_job(employer)
    client.post(f"/api/jobs/{job_id}/apply", headers=seeker["headers"])
    client.post("/api/applications/guest", json={"job_id": job_id, "email": "guest@example.com"})

    client.put(f"/api/employer/jobs/{job_id}", headers=employer["headers"], json={"action": "pause"})
    client.put(f"/api/employer/jobs/{job_id}", headers=employer["headers"], json={"title": "Renamed"})
    client.put(f"/api/employer/jobs/{job_id}", headers=employer["headers"], json={"action": "close"})

    assert [(rooms, event) for rooms, event, _ in published] == [
        ([f"user_{seeker['user_id']}"], "job_status_update"),
        ([f"user_{seeker['user_id']}"], "job_status_update"),
    ]
    assert [data["status"] for _, _, data in published] == ["PAUSED", "CLOSED"]
    assert published[0][2]["job_id"] == job_id


def test_job_without_applicants_publishes_nothing(client, make_employer, make_job, monkeypatch):
    published = []
    monkeypatch.setattr("jobboard.api.routes.employer_routes.publish",
                        lambda rooms, event, data: published.append(rooms))
    employer = make_employer()
    job_id = make_job(employer, status="DRAFT")
    response = client.put(f"/api/employer/jobs/{job_id}", headers=employer["headers"], json={"action": "publish"})
    assert response.status_code == 200
    assert published == []
