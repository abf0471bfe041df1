"""
Job Recommendations

Candidates are published, unexpired jobs the seeker has not applied to.
Ranking:
- LLM (OpenAI-compatible API) when an API key is configured
- Rule-based scoring otherwise, or whenever the LLM call or its JSON fails

Rule-based score (max 100):
- skills overlap   10 per skill, max 40
- location         30 if either contains the other, else 20 for REMOTE jobs
- experience       20 when seniority words in the title fit the years
- featured/urgent  5 each
"""

import json
import logging
from datetime import datetime
from typing import List, Optional

from openai import OpenAI

from jobboard.core.config import get_settings
from jobboard.db.postgres import execute_raw_sql, fetch_one
from jobboard.schemas.schemas import ACTIVE_APPLICATION_STATUSES

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 50
MAX_RECOMMENDATIONS = 10
FALLBACK_INSIGHTS = "AI service temporarily unavailable. Showing basic matches based on skills and location."


class LLMClient:
    """
    Wrapper for an OpenAI-compatible chat API.
    """

    def __init__(self):
        settings = get_settings()
        self.client = OpenAI(api_key=settings.llm_api_key, base_url=settings.llm_base_url)
        self.model = settings.llm_model

    def _call_api(self, system_prompt: str, user_content: str, max_tokens: int = 2000) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content}
            ],
            max_tokens=max_tokens,
            temperature=0.3
        )
        return response.choices[0].message.content

    def _extract_json(self, text: str) -> dict:
        """
        Extract JSON from API response.
        Handles cases where model wraps JSON in markdown code blocks.
        """
        text = text.strip()
        if text.startswith("```json"):
            text = text[7:]
        if text.startswith("```"):
            text = text[3:]
        if text.endswith("```"):
            text = text[:-3]

        return json.loads(text.strip())

    def rank_jobs(self, profile: dict, jobs: List[dict]) -> dict:
        system_prompt = """You are an expert job matching assistant. Return ONLY valid JSON.
Output format:
{
  "recommendations": [
    {"job_id": number, "relevance_score": 0-100, "match_reasons": ["string"], "suggestions": ["string"]}
  ],
  "insights": "string"
}
Rank at most 10 jobs, best first. Return ONLY the JSON, no explanation."""

        payload = {
            "profile": profile,
            "jobs": [
                {
                    "job_id": job["id"], "title": job["title"], "company": job["company_name"],
                    "location": job["location"], "type": job["type"], "remote": job["remote"],
                    "salary_min": job["salary_min"], "salary_max": job["salary_max"],
                    "skills": job["skills"], "description": (job["description"] or "")[:500],
                }
                for job in jobs
            ],
        }
        response = self._call_api(system_prompt, json.dumps(payload, default=str))
        return self._extract_json(response)


# Singleton instance
_llm_client: LLMClient = None


def get_llm_client() -> Optional[LLMClient]:
    """Get or create the LLM client; None when no API key is configured."""
    global _llm_client
    if not get_settings().llm_api_key:
        return None
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client


def load_profile(job_seeker_id: int) -> Optional[dict]:
    row = fetch_one(
        """
        SELECT id, first_name, last_name, title, experience, location, bio, education
        FROM job_seekers WHERE id = :id
        """,
        {"id": job_seeker_id}
    )
    if not row:
        return None
    skills = execute_raw_sql(
        """
        SELECT sk.name FROM job_seeker_skills jss JOIN skills sk ON jss.skill_id = sk.id
        WHERE jss.job_seeker_id = :id ORDER BY sk.name
        """,
        {"id": job_seeker_id}
    )
    row["skills"] = [s["name"] for s in skills]
    return row


def load_candidates(job_seeker_id: int, now: Optional[datetime] = None) -> List[dict]:
    now = now or datetime.utcnow()
    jobs = execute_raw_sql(
        f"""
        SELECT j.id, j.title, j.description, j.requirements, j.location, j.type, j.remote,
               j.salary_min, j.salary_max, j.salary_currency, j.featured, j.urgent, j.created_at,
               e.id AS employer_id, e.company_name, e.logo
        FROM jobs j JOIN employers e ON j.employer_id = e.id
        WHERE j.status = 'PUBLISHED' AND (j.expires_at IS NULL OR j.expires_at >= :now)
        ORDER BY j.featured DESC, j.urgent DESC, j.created_at DESC
        LIMIT {MAX_CANDIDATES}
        """,
        {"now": now}
    )
    status_list = ", ".join(f"'{s}'" for s in ACTIVE_APPLICATION_STATUSES)
    applied = execute_raw_sql(
        f"SELECT job_id FROM applications WHERE job_seeker_id = :sid AND status IN ({status_list})",
        {"sid": job_seeker_id}
    )
    applied_ids = {a["job_id"] for a in applied}
    jobs = [job for job in jobs if job["id"] not in applied_ids]

    for job in jobs:
        skills = execute_raw_sql(
            "SELECT sk.name FROM job_skills js JOIN skills sk ON js.skill_id = sk.id WHERE js.job_id = :jid",
            {"jid": job["id"]}
        )
        job["skills"] = [s["name"] for s in skills]
    return jobs


def score_job(profile: dict, job: dict) -> dict:
    """Rule-based relevance for one job."""
    score = 0
    reasons = []

    user_skills = [s.lower() for s in profile.get("skills", [])]
    job_skills = [s.lower() for s in job.get("skills", [])]
    matched = [
        skill for skill in user_skills
        if any(skill in job_skill or job_skill in skill for job_skill in job_skills)
    ]
    if matched:
        score += min(40, len(matched) * 10)
        reasons.append(f"Skills match: {', '.join(matched)}")

    user_location = (profile.get("location") or "").lower()
    job_location = (job.get("location") or "").lower()
    if user_location and job_location and (user_location in job_location or job_location in user_location):
        score += 30
        reasons.append("Location match")
    elif job.get("remote") == "REMOTE":
        score += 20
        reasons.append("Remote work opportunity")

    experience = profile.get("experience") or 0
    title = (job.get("title") or "").lower()
    if experience >= 3 and "senior" in title:
        score += 20
        reasons.append("Experience level matches senior position")
    elif experience < 3 and "junior" in title:
        score += 20
        reasons.append("Experience level matches entry position")

    if job.get("featured"):
        score += 5
    if job.get("urgent"):
        score += 5

    return {
        "job_id": job["id"],
        "relevance_score": min(100, score),
        "match_reasons": reasons,
        "skill_match": ", ".join(matched) or "No direct skill match",
        "experience_match": f"{experience} years experience",
        "location_match": job.get("location"),
    }


def fallback_recommendations(profile: dict, jobs: List[dict]) -> List[dict]:
    scored = sorted((score_job(profile, job) for job in jobs), key=lambda r: r["relevance_score"], reverse=True)
    return scored[:MAX_RECOMMENDATIONS]


def _job_summary(job: dict) -> dict:
    return {
        "id": job["id"], "title": job["title"], "company": job["company_name"],
        "location": job["location"], "type": job["type"], "remote": job["remote"],
        "salary_min": job["salary_min"], "salary_max": job["salary_max"],
        "salary_currency": job["salary_currency"], "featured": bool(job["featured"]),
        "urgent": bool(job["urgent"]), "skills": job["skills"], "created_at": job["created_at"],
        "employer": {"id": job["employer_id"], "company_name": job["company_name"], "logo": job["logo"]},
    }


def _attach_jobs(recs: List[dict], jobs: List[dict]) -> List[dict]:
    by_id = {job["id"]: job for job in jobs}
    enriched = []
    for rec in recs:
        job = by_id.get(rec.get("job_id"))
        if job:
            enriched.append({**rec, "job": _job_summary(job)})
    return enriched[:MAX_RECOMMENDATIONS]


def recommend_jobs(job_seeker_id: int) -> dict:
    profile = load_profile(job_seeker_id)
    jobs = load_candidates(job_seeker_id)
    generated_at = datetime.utcnow().isoformat()

    if not jobs:
        return {"recommendations": [], "message": "No new jobs available for recommendation"}

    client = get_llm_client()
    if client is not None:
        try:
            ranked = client.rank_jobs(profile, jobs)
            return {
                "recommendations": _attach_jobs(ranked.get("recommendations", []), jobs),
                "insights": ranked.get("insights"),
                "generated_at": generated_at,
            }
        except Exception as e:
            logger.warning("LLM ranking failed, using rule-based scoring: %s", e)

    return {
        "recommendations": _attach_jobs(fallback_recommendations(profile, jobs), jobs),
        "insights": FALLBACK_INSIGHTS,
        "fallback": True,
        "generated_at": generated_at,
    }
