"""
Job helpers shared by the public, seeker and employer routes.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from fastapi import HTTPException
from sqlalchemy import text

from jobboard.db.postgres import execute_raw_sql
from jobboard.schemas.schemas import JobEmployerInfo, JobResponse
from jobboard.utils.dates import is_past

JOB_SELECT = """
    SELECT j.id, j.employer_id, j.title, j.description, j.requirements, j.responsibilities,
           j.location, j.remote, j.type, j.salary_min, j.salary_max, j.salary_currency,
           j.application_email, j.application_url, j.status, j.featured, j.urgent,
           j.expires_at, j.published_at, j.created_at,
           e.company_name, e.logo, e.industry, e.website, e.description AS company_description,
           (SELECT COUNT(*) FROM applications a WHERE a.job_id = j.id) AS application_count
    FROM jobs j JOIN employers e ON j.employer_id = e.id
"""

# Published and not past expiry
LIVE_JOB_CONDITION = "j.status = 'PUBLISHED' AND (j.expires_at IS NULL OR j.expires_at > :now)"


def validate_salary(salary_min: Optional[int], salary_max: Optional[int], currency: Optional[str]) -> None:
    if currency is not None and currency != "EUR":
        raise HTTPException(status_code=400, detail="Salary currency must be EUR (Euro) for Cyprus job postings")
    if salary_min and salary_max and salary_min > salary_max:
        raise HTTPException(status_code=400, detail="Minimum salary cannot be greater than maximum salary")


def job_is_expired(job: dict, now: Optional[datetime] = None) -> bool:
    return is_past(job.get("expires_at"), now)


def skills_for_jobs(job_ids: Iterable[int]) -> dict:
    """Map job id -> sorted skill names in one query."""
    ids = [int(i) for i in job_ids]
    if not ids:
        return {}
    placeholders = ", ".join(f":id{n}" for n in range(len(ids)))
    rows = execute_raw_sql(
        f"""
        SELECT js.job_id, sk.name FROM job_skills js JOIN skills sk ON js.skill_id = sk.id
        WHERE js.job_id IN ({placeholders}) ORDER BY sk.name
        """,
        {f"id{n}": job_id for n, job_id in enumerate(ids)}
    )
    result = {job_id: [] for job_id in ids}
    for row in rows:
        result[row["job_id"]].append(row["name"])
    return result


def upsert_skill(db, name: str, category: Optional[str] = None) -> int:
    """Find or create a skill by name, returning its id."""
    row = db.execute(text("SELECT id FROM skills WHERE name = :name"), {"name": name}).fetchone()
    if row:
        return row[0]
    return db.execute(
        text("INSERT INTO skills (name, category) VALUES (:name, :category) RETURNING id"),
        {"name": name, "category": category}
    ).fetchone()[0]


def set_job_skills(db, job_id: int, names: List[str], replace: bool = False) -> int:
    if replace:
        db.execute(text("DELETE FROM job_skills WHERE job_id = :jid"), {"jid": job_id})
    added = 0
    for name in {n.strip() for n in names if n and n.strip()}:
        skill_id = upsert_skill(db, name)
        db.execute(
            text("INSERT INTO job_skills (job_id, skill_id) VALUES (:jid, :sid) ON CONFLICT DO NOTHING"),
            {"jid": job_id, "sid": skill_id}
        )
        added += 1
    return added


def to_job_response(row: dict, skills: List[str]) -> JobResponse:
    return JobResponse(
        id=row["id"], title=row["title"], description=row["description"],
        requirements=row["requirements"], responsibilities=row["responsibilities"],
        location=row["location"], remote=row["remote"], type=row["type"],
        salary_min=row["salary_min"], salary_max=row["salary_max"],
        salary_currency=row["salary_currency"],
        application_email=row["application_email"], application_url=row["application_url"],
        status=row["status"], featured=bool(row["featured"]), urgent=bool(row["urgent"]),
        expires_at=row["expires_at"], published_at=row["published_at"], created_at=row["created_at"],
        employer=JobEmployerInfo(
            id=row["employer_id"], company_name=row["company_name"], logo=row["logo"],
            industry=row["industry"], website=row["website"], description=row["company_description"],
        ),
        skills=skills,
        application_count=row["application_count"] or 0,
    )


def to_job_responses(rows: List[dict]) -> List[JobResponse]:
    skills = skills_for_jobs(r["id"] for r in rows)
    return [to_job_response(r, skills.get(r["id"], [])) for r in rows]
