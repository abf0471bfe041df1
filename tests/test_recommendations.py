from datetime import datetime

import pytest

from jobboard.services import recommendation_service
from jobboard.services.recommendation_service import LLMClient, fallback_recommendations, score_job


def _job(job_id, **fields):
    job = {"id": job_id, "title": "Developer", "location": "Nicosia", "remote": "ONSITE", "skills": [],
           "featured": False, "urgent": False}
    job.update(fields)
    return job


def test_score_components():
    profile = {"skills": ["Python", "SQL", "Docker", "AWS", "Go"], "location": "Limassol", "experience": 6}
    job = _job(1, title="Senior Engineer", location="Limassol, Cyprus",
               skills=["python", "sql", "docker", "aws", "go"], featured=True, urgent=True)
    result = score_job(profile, job)
    # skills capped at 40, location 30, seniority 20, featured 5, urgent 5
    assert result["relevance_score"] == 100
    assert "Location match" in result["match_reasons"]
    assert "Experience level matches senior position" in result["match_reasons"]


def test_remote_jobs_score_when_location_differs():
    profile = {"skills": [], "location": "Paphos", "experience": 1}
    result = score_job(profile, _job(2, title="Junior Analyst", remote="REMOTE"))
    assert result["relevance_score"] == 40
    assert result["skill_match"] == "No direct skill match"


def test_fallback_orders_and_caps():
    profile = {"skills": ["python"], "location": "Nicosia", "experience": 0}
    jobs = [_job(n, skills=["python"] if n % 2 else []) for n in range(1, 15)]
    ranked = fallback_recommendations(profile, jobs)
    assert len(ranked) == 10
    assert ranked[0]["relevance_score"] >= ranked[-1]["relevance_score"]
    assert ranked[0]["job_id"] % 2 == 1


def test_extract_json_handles_code_fences():
    client = LLMClient.__new__(LLMClient)
    assert client._extract_json('```json\n{"recommendations": []}\n```') == {"recommendations": []}
    assert client._extract_json('  {"insights": "ok"} ') == {"insights": "ok"}


class FakeLLM:
    def __init__(self, job_id=None, fail=False):
        self.job_id = job_id
        self.fail = fail

    def rank_jobs(self, profile, jobs):
        if self.fail:
            raise ValueError("not json")
        return {
            "recommendations": [
                {"job_id": self.job_id, "relevance_score": 88, "match_reasons": ["fit"]},
                {"job_id": 424242, "relevance_score": 99, "match_reasons": ["hallucinated"]},
            ],
            "insights": "Strong backend profile",
        }


@pytest.fixture
def seeker_with_job(make_employer, make_seeker, make_job, client):
    employer = make_employer()
    seeker = make_seeker()
    job_id = make_job(employer)
    profile_id = client.get("/api/job-seeker/profile", headers=seeker["headers"]).json()["id"]
    return profile_id, job_id


def test_llm_ranking_drops_unknown_jobs(monkeypatch, seeker_with_job):
    profile_id, job_id = seeker_with_job
    monkeypatch.setattr(recommendation_service, "get_llm_client", lambda: FakeLLM(job_id))

    result = recommendation_service.recommend_jobs(profile_id)
    assert result["insights"] == "Strong backend profile"
    assert [r["job_id"] for r in result["recommendations"]] == [job_id]
    assert result["recommendations"][0]["job"]["company"] == "Acme Ltd"
    assert "fallback" not in result
    datetime.fromisoformat(result["generated_at"])


def test_llm_failure_falls_back(monkeypatch, seeker_with_job):
    profile_id, job_id = seeker_with_job
    monkeypatch.setattr(recommendation_service, "get_llm_client", lambda: FakeLLM(fail=True))

    result = recommendation_service.recommend_jobs(profile_id)
    assert result["fallback"] is True
    assert result["insights"] == recommendation_service.FALLBACK_INSIGHTS
    assert result["recommendations"][0]["job_id"] == job_id


def test_applied_jobs_are_not_recommended(client, make_employer, make_seeker, make_job):
    employer = make_employer()
    seeker = make_seeker()
    job_id = make_job(employer)
    client.post(f"/api/jobs/{job_id}/apply", headers=seeker["headers"])

    body = client.get("/api/jobs/recommendations", headers=seeker["headers"]).json()
    assert body["recommendations"] == []
