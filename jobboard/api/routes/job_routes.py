"""
Job Routes

POST /jobs - Create job posting (employer only)
GET /jobs/search - Search published jobs with filters
GET /jobs/recommendations - Recommended jobs for the current job seeker
GET /jobs/{job_id} - Get job details
GET /jobs/{job_id}/related - Similar open jobs
POST /jobs/{job_id}/apply - Apply to job (job seeker only)
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query, Request
from sqlalchemy import text

from jobboard.db.postgres import get_db_session, execute_raw_sql, fetch_one
from jobboard.core.auth import get_current_employer, get_current_job_seeker
from jobboard.services.audit_service import log_audit
from jobboard.services.job_service import (
    JOB_SELECT, LIVE_JOB_CONDITION, validate_salary, job_is_expired, set_job_skills,
    to_job_response, to_job_responses, skills_for_jobs,
)
from jobboard.services.mongo_service import get_search_event_service
from jobboard.services.notification_service import send_notification
from jobboard.services.realtime import publish
from jobboard.services.recommendation_service import recommend_jobs
from jobboard.schemas.schemas import (
    JobCreate, JobResponse, JobListResponse, JobCreatedResponse, ApplyRequest
)
from jobboard.utils.dates import to_naive_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])

POSTED_WITHIN_DAYS = {"today": 1, "week": 7, "month": 30, "3months": 90}

SORT_COLUMNS = {
    "date": "j.created_at",
    "salary": "COALESCE(j.salary_max, j.salary_min, 0)",
    "location": "j.location",
    "deadline": "j.expires_at",
}


def _split(value: Optional[str]) -> list:
    return [v.strip() for v in value.split(",") if v.strip()] if value else []


def _in_clause(column: str, values: list, prefix: str, params: dict) -> str:
    names = []
    for n, value in enumerate(values):
        params[f"{prefix}{n}"] = value
        names.append(f":{prefix}{n}")
    return f"{column} IN ({', '.join(names)})"


@router.post("", response_model=JobCreatedResponse, status_code=201)
async def create_job(job: JobCreate, request: Request, employer: dict = Depends(get_current_employer)):
    """Create a new job posting. Drafts are the default; PUBLISHED goes live immediately."""
    if job.salary_min is None and job.salary_max is None:
        raise HTTPException(status_code=400, detail="At least one salary field (minimum or maximum) is required")
    validate_salary(job.salary_min, job.salary_max, job.salary_currency)
    if not job.application_email and not job.application_url:
        raise HTTPException(status_code=400, detail="Either application email or application URL is required")

    now = datetime.utcnow()
    status = job.status.value
    with get_db_session() as db:
        result = db.execute(
            text("""
                INSERT INTO jobs (employer_id, title, description, requirements, responsibilities, location,
                    remote, type, salary_min, salary_max, salary_currency, application_email, application_url,
                    status, featured, urgent, expires_at, published_at)
                VALUES (:employer_id, :title, :description, :requirements, :responsibilities, :location,
                    :remote, :type, :salary_min, :salary_max, :currency, :application_email, :application_url,
                    :status, :featured, :urgent, :expires_at, :published_at)
                RETURNING id
            """),
            {
                "employer_id": employer["employer_id"], "title": job.title, "description": job.description,
                "requirements": job.requirements, "responsibilities": job.responsibilities,
                "location": job.location, "remote": job.remote.value, "type": job.type.value,
                "salary_min": job.salary_min, "salary_max": job.salary_max, "currency": job.salary_currency,
                "application_email": job.application_email, "application_url": job.application_url,
                "status": status, "featured": job.featured, "urgent": job.urgent,
                "expires_at": to_naive_utc(job.expires_at),
                "published_at": now if status == "PUBLISHED" else None,
            }
        )
        job_id = result.fetchone()[0]
        set_job_skills(db, job_id, job.skills)

        log_audit(
            employer["user_id"], "JOB_PUBLISHED" if status == "PUBLISHED" else "JOB_CREATED_DRAFT",
            "Job", job_id,
            changes={"title": job.title, "status": status, "skills": job.skills},
            request=request, db=db,
        )

    message = "Job published successfully" if status == "PUBLISHED" else "Job saved as draft"
    return JobCreatedResponse(message=message, job_id=job_id, status=status)


@router.get("/search", response_model=JobListResponse)
async def search_jobs(
    query: Optional[str] = None,
    location: Optional[str] = None,
    remote_type: Optional[str] = None,
    job_type: Optional[str] = None,
    salary_range: Optional[str] = None,
    skills: Optional[str] = None,
    industry: Optional[str] = None,
    featured: Optional[bool] = None,
    urgent: Optional[bool] = None,
    posted_within: Optional[str] = None,
    sort_by: str = "relevance",
    sort_order: str = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
):
    """
    Search published, non-expired jobs.

    Comma-separated lists are accepted for remote_type, job_type, skills and industry.
    salary_range is "min,max" with either side optional.
    """
    now = datetime.utcnow()
    conditions = [LIVE_JOB_CONDITION]
    params = {"now": now}

    if query and query.strip():
        params["query"] = f"%{query.strip().lower()}%"
        conditions.append(
            "(LOWER(j.title) LIKE :query OR LOWER(j.description) LIKE :query"
            " OR LOWER(COALESCE(j.requirements, '')) LIKE :query"
            " OR LOWER(COALESCE(j.responsibilities, '')) LIKE :query)"
        )
    if location and location.strip():
        params["location"] = f"%{location.strip().lower()}%"
        conditions.append("LOWER(j.location) LIKE :location")

    remote_types = _split(remote_type)
    if remote_types:
        conditions.append(_in_clause("j.remote", remote_types, "remote", params))
    job_types = _split(job_type)
    if job_types:
        conditions.append(_in_clause("j.type", job_types, "jtype", params))

    if salary_range:
        bounds = (salary_range.split(",") + [""])[:2]
        try:
            salary_min = int(bounds[0]) if bounds[0].strip() else None
            salary_max = int(bounds[1]) if bounds[1].strip() else None
        except ValueError:
            raise HTTPException(status_code=400, detail="salary_range must be 'min,max'")
        if salary_min is not None:
            params["salary_min"] = salary_min
            conditions.append("j.salary_min >= :salary_min")
        if salary_max is not None:
            params["salary_max"] = salary_max
            conditions.append("j.salary_max <= :salary_max")

    skill_names = _split(skills)
    if skill_names:
        in_skills = _in_clause("LOWER(sk.name)", [s.lower() for s in skill_names], "skill", params)
        conditions.append(
            f"j.id IN (SELECT js.job_id FROM job_skills js JOIN skills sk ON js.skill_id = sk.id WHERE {in_skills})"
        )

    industries = _split(industry)
    if industries:
        parts = []
        for n, value in enumerate(industries):
            params[f"industry{n}"] = f"%{value.lower()}%"
            parts.append(f"LOWER(e.industry) LIKE :industry{n}")
        conditions.append("(" + " OR ".join(parts) + ")")

    if featured:
        params["featured"] = True
        conditions.append("j.featured = :featured")
    if urgent:
        params["urgent"] = True
        conditions.append("j.urgent = :urgent")

    if posted_within in POSTED_WITHIN_DAYS:
        params["posted_since"] = now - timedelta(days=POSTED_WITHIN_DAYS[posted_within])
        conditions.append("j.created_at >= :posted_since")

    where = " WHERE " + " AND ".join(conditions)
    direction = "ASC" if sort_order.lower() == "asc" else "DESC"
    if sort_by in SORT_COLUMNS:
        order = f"{SORT_COLUMNS[sort_by]} {direction}, j.id DESC"
    else:
        order = "j.featured DESC, j.urgent DESC, j.created_at DESC, j.id DESC"

    total = fetch_one(
        "SELECT COUNT(*) AS n FROM jobs j JOIN employers e ON j.employer_id = e.id" + where, params
    )["n"]

    params["limit"] = limit
    params["offset"] = (page - 1) * limit
    rows = execute_raw_sql(JOB_SELECT + where + f" ORDER BY {order} LIMIT :limit OFFSET :offset", params)

    try:
        get_search_event_service().record(
            query, location, job_types, industries, skill_names, results=total
        )
    except Exception as e:
        logger.warning("Could not record search event: %s", e)

    return JobListResponse(
        jobs=to_job_responses(rows),
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/recommendations")
async def get_recommendations(job_seeker: dict = Depends(get_current_job_seeker)):
    """Rank open jobs for the current job seeker (LLM when configured, rules otherwise)."""
    return recommend_jobs(job_seeker["job_seeker_id"])


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: int):
    """Get a published job. Expired postings return 410."""
    row = fetch_one(JOB_SELECT + " WHERE j.id = :id", {"id": job_id})
    if not row or row["status"] != "PUBLISHED":
        raise HTTPException(status_code=404, detail="Job not found")
    if job_is_expired(row):
        raise HTTPException(status_code=410, detail="This job posting has expired")

    return to_job_response(row, skills_for_jobs([job_id])[job_id])


@router.get("/{job_id}/related")
async def get_related_jobs(job_id: int, limit: int = Query(6, ge=1, le=20)):
    """Open jobs sharing location, type, remote mode, industry or a skill."""
    job = fetch_one(
        """
        SELECT j.id, j.location, j.type, j.remote, e.industry
        FROM jobs j JOIN employers e ON j.employer_id = e.id WHERE j.id = :id
        """,
        {"id": job_id}
    )
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    rows = execute_raw_sql(
        JOB_SELECT
        + f" WHERE {LIVE_JOB_CONDITION} AND j.id != :id AND ("
        + " j.location = :location OR j.type = :type OR j.remote = :remote OR e.industry = :industry"
        + " OR j.id IN (SELECT js.job_id FROM job_skills js WHERE js.skill_id IN"
        + "   (SELECT skill_id FROM job_skills WHERE job_id = :id)))"
        + " ORDER BY j.featured DESC, j.urgent DESC, j.created_at DESC LIMIT :limit",
        {
            "now": datetime.utcnow(), "id": job_id, "location": job["location"], "type": job["type"],
            "remote": job["remote"], "industry": job["industry"], "limit": limit,
        }
    )
    return {"jobs": to_job_responses(rows)}


@router.post("/{job_id}/apply", status_code=201)
async def apply_to_job(
    job_id: int,
    request: Request,
    data: Optional[ApplyRequest] = None,
    job_seeker: dict = Depends(get_current_job_seeker),
):
    """Apply to a published job. One application per job seeker and job."""
    data = data or ApplyRequest()
    now = datetime.utcnow()
    sid = job_seeker["job_seeker_id"]

    with get_db_session() as db:
        job = db.execute(
            text("""
                SELECT j.id, j.title, j.status, j.expires_at, j.employer_id,
                       e.user_id AS employer_user_id, e.company_name, e.contact_email, u.email AS employer_email
                FROM jobs j JOIN employers e ON j.employer_id = e.id JOIN users u ON e.user_id = u.id
                WHERE j.id = :id
            """),
            {"id": job_id}
        ).mappings().fetchone()
        if not job or job["status"] != "PUBLISHED":
            raise HTTPException(status_code=404, detail="Job not found")
        if job_is_expired(dict(job), now):
            raise HTTPException(status_code=410, detail="This job posting has expired")

        existing = db.execute(
            text("SELECT id FROM applications WHERE job_seeker_id = :sid AND job_id = :jid"),
            {"sid": sid, "jid": job_id}
        ).fetchone()
        if existing:
            raise HTTPException(status_code=409, detail="You have already applied to this job")

        seeker = db.execute(
            text("SELECT first_name, last_name, bio, cv_url FROM job_seekers WHERE id = :id"),
            {"id": sid}
        ).mappings().fetchone()

        result = db.execute(
            text("""
                INSERT INTO applications (job_seeker_id, job_id, cover_letter, cv_url, status, applied_at)
                VALUES (:sid, :jid, :cover_letter, :cv_url, 'APPLIED', :now)
                RETURNING id
            """),
            {
                "sid": sid, "jid": job_id, "cover_letter": data.cover_letter,
                "cv_url": data.cv_url or seeker["cv_url"], "now": now,
            }
        )
        application_id = result.fetchone()[0]

        log_audit(
            job_seeker["user_id"], "JOB_APPLICATION_SUBMITTED", "Application", application_id,
            changes={"job_id": job_id, "job_title": job["title"], "company_name": job["company_name"]},
            request=request, db=db,
        )

    applicant_name = f"{seeker['first_name']} {seeker['last_name']}"
    send_notification(
        {
            "user_id": job["employer_user_id"],
            "email": job["contact_email"] or job["employer_email"],
            "name": job["company_name"],
            "preferences": {"email": True, "sms": False, "push": False},
        },
        "NEW_APPLICATION",
        {
            "job_title": job["title"], "applicant_name": applicant_name, "applied_at": now,
            "applicant_bio": seeker["bio"], "application_id": application_id,
        },
    )
    publish(
        [f"employer_{job['employer_id']}"], "new_application",
        {
            "application_id": application_id, "job_id": job_id, "job_title": job["title"],
            "applicant_name": applicant_name, "applied_at": now,
        },
    )

    return {"message": "Application submitted successfully", "application_id": application_id, "status": "APPLIED"}
