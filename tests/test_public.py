def test_health(client):
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert body["version"] == "1.0.0"


def test_root_health_reports_database(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["postgres"] == "connected"


def test_platform_stats(client, make_employer, make_seeker, make_job):
    employer = make_employer()
    seeker = make_seeker()
    job_id = make_job(employer, urgent=True)
    make_job(employer, title="Draft", status="DRAFT")
    client.post(f"/api/jobs/{job_id}/apply", headers=seeker["headers"])

    stats = client.get("/api/stats").json()
    assert stats["overview"]["total_jobs"] == 2
    assert stats["overview"]["active_jobs"] == 1
    assert stats["overview"]["total_companies"] == 1
    assert stats["overview"]["success_rate"] == 100
    assert stats["featured"] == {"featured_jobs": 0, "urgent_jobs": 1}
    assert stats["activity"]["recent_applications"] == 1
    assert stats["distribution"]["jobs_by_type"] == [{"type": "FULL_TIME", "count": 1}]


def test_skills_catalogue(client, make_employer, make_job):
    employer = make_employer()
    make_job(employer)
    skills = client.get("/api/skills", params={"search": "py"}).json()["skills"]
    assert [(s["name"], s["job_count"]) for s in skills] == [("Python", 1)]


def test_companies_directory(client, make_employer, make_job):
    acme = make_employer()
    client.put("/api/employer/profile", headers=acme["headers"], json={"city": "Limassol"})
    make_job(acme)
    make_employer(email="hr@bank.example.com", company_name="Bank of Things", industry="Finance")

    by_jobs = client.get("/api/companies", params={"sort_by": "jobs"}).json()
    assert [c["company_name"] for c in by_jobs["companies"]] == ["Acme Ltd", "Bank of Things"]
    assert by_jobs["companies"][0]["active_jobs"] == 1
    assert by_jobs["pagination"]["total"] == 2

    finance = client.get("/api/companies", params={"industry": "fin"}).json()
    assert [c["company_name"] for c in finance["companies"]] == ["Bank of Things"]
    in_limassol = client.get("/api/companies", params={"location": "limassol"}).json()
    assert [c["company_name"] for c in in_limassol["companies"]] == ["Acme Ltd"]


def test_newsletter(client, audit_actions):
    created = client.post("/api/newsletter/subscribe", json={"email": "Reader@Example.com", "name": "Reader"})
    assert created.status_code == 201
    assert created.json()["email"] == "reader@example.com"
    assert client.post("/api/newsletter/subscribe", json={"email": "reader@example.com"}).status_code == 409
    assert client.post("/api/newsletter/subscribe", json={"email": "nope"}).status_code == 400
    assert "NEWSLETTER_SUBSCRIBED" in audit_actions()


def test_search_suggestions(client, make_employer, make_job):
    employer = make_employer()
    make_job(employer)

    short = client.get("/api/search/suggestions", params={"q": "p"})
    assert short.status_code == 200
    assert short.json()["suggestions"] == []

    body = client.get("/api/search/suggestions", params={"q": "pyth"}).json()
    assert [j["text"] for j in body["suggestions"]["jobs"]] == ["Senior Python Developer"]
    assert [s["text"] for s in body["suggestions"]["skills"]] == ["Python"]
    assert body["total_results"]["companies"] == 0

    only_locations = client.get("/api/search/suggestions", params={"q": "lima", "type": "locations"}).json()
    assert only_locations["suggestions"]["locations"] == [
        {"text": "Limassol", "type": "location", "metadata": {"job_count": 1}}
    ]
    assert only_locations["suggestions"]["jobs"] == []


def test_search_analytics_counts_searches(client, make_employer, make_job):
    employer = make_employer()
    make_job(employer)
    client.get("/api/jobs/search", params={"query": "Python", "location": "Limassol"})
    client.get("/api/jobs/search", params={"query": "python", "skills": "FastAPI"})

    body = client.get("/api/analytics/search", params={"timeframe": "30d"}).json()
    assert body["timeframe"] == "30d"
    assert body["total_searches"] == 2
    assert body["popular_queries"] == [{"value": "python", "count": 2}]
    assert body["trending_skills"] == [{"value": "fastapi", "count": 1}]
    assert body["job_market"]["locations"] == [{"value": "Limassol", "count": 1}]


def test_saved_searches(client, make_seeker):
    seeker = make_seeker()
    created = client.post("/api/user/saved-searches", headers=seeker["headers"],
                          json={"name": "Remote python", "query": "python", "filters": {"remote_type": "REMOTE"}})
    assert created.status_code == 201

    listing = client.get("/api/user/saved-searches", headers=seeker["headers"]).json()["saved_searches"]
    assert listing[0]["filters"] == {"remote_type": "REMOTE"}
    assert listing[0]["alert_frequency"] == "DAILY"

    search_id = created.json()["id"]
    assert client.delete(f"/api/user/saved-searches/{search_id}", headers=seeker["headers"]).status_code == 200
    assert client.delete(f"/api/user/saved-searches/{search_id}", headers=seeker["headers"]).status_code == 404


def test_recent_searches_deduplicate(client, make_seeker):
    seeker = make_seeker()
    headers = seeker["headers"]
    assert client.post("/api/user/recent-searches", headers=headers, json={"query": " "}).status_code == 400

    client.post("/api/user/recent-searches", headers=headers, json={"query": "python", "location": "Limassol"})
    client.post("/api/user/recent-searches", headers=headers, json={"query": "java"})
    client.post("/api/user/recent-searches", headers=headers, json={"query": "python", "location": "Limassol"})

    recent = client.get("/api/user/recent-searches", headers=headers).json()["recent_searches"]
    assert [(r["query"], r["location"]) for r in recent] == [("python", "Limassol"), ("java", "")]


def test_recent_searches_keep_the_latest_twenty(client, make_seeker):
    seeker = make_seeker()
    for n in range(25):
        client.post("/api/user/recent-searches", headers=seeker["headers"], json={"query": f"query {n}"})
    recent = client.get("/api/user/recent-searches", headers=seeker["headers"]).json()["recent_searches"]
    assert len(recent) == 10
    assert recent[0]["query"] == "query 24"
