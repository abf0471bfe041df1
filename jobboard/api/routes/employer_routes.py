"""
Employer Routes

GET /employer/profile - Get company profile
PUT /employer/profile - Update company profile
GET /employer/jobs - List own jobs with application counts
GET /employer/jobs/recent - Ten newest jobs with application counts
GET /employer/jobs/{job_id} - Get own job
PUT /employer/jobs/{job_id} - Publish/pause/close or update a job
DELETE /employer/jobs/{job_id} - Delete a job
GET /employer/applications - Applications to own jobs
GET /employer/applications/recent - Ten newest applications
PATCH /employer/applications - Update status/notes of an application
DELETE /employer/applications - Delete an application
GET /employer/stats - Dashboard counters
GET /employer/analytics - Application analytics
GET /employer/payments - Payment history
GET /employer/company - Company page details
PUT /employer/company - Replace company page details
"""

import logging
import math
from collections import Counter
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query, Request
from sqlalchemy import text

from jobboard.db.postgres import get_db_session, execute_raw_sql, fetch_one
from jobboard.core.auth import get_current_employer
from jobboard.services.audit_service import log_audit
from jobboard.services.realtime import publish
from jobboard.services.job_service import (
    JOB_SELECT, validate_salary, set_job_skills, to_job_response, to_job_responses, skills_for_jobs,
)
from jobboard.schemas.schemas import (
    EmployerUpdate, EmployerResponse, JobUpdate, JobResponse, EmployerApplicationUpdate,
    MessageResponse, ApplicationStatus, RESPONDED_STATUSES, CompanyUpdate, CompanyResponse,
)
from jobboard.utils.dates import as_datetime, to_naive_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employer", tags=["Employers"])

PROFILE_FIELDS = ["company_name", "description", "website", "industry", "size", "logo", "contact_name",
                  "contact_email", "contact_phone", "address", "city", "postal_code"]

JOB_FIELDS = ["title", "description", "requirements", "responsibilities", "location", "remote", "type",
              "salary_min", "salary_max", "salary_currency", "application_email", "application_url",
              "expires_at", "status"]

JOB_SORT_COLUMNS = {"title": "j.title", "published_at": "j.published_at", "created_at": "j.created_at"}

JOB_ACTIONS = {
    "publish": ("PUBLISHED", "JOB_PUBLISHED"),
    "pause": ("PAUSED", "JOB_PAUSED"),
    "close": ("CLOSED", "JOB_CLOSED"),
}

TIMELINE_STATUSES = ("applied", "viewed", "shortlisted", "rejected", "hired")


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


def _own_job(job_id: int, employer_id: int) -> dict:
    row = fetch_one(JOB_SELECT + " WHERE j.id = :id AND j.employer_id = :eid", {"id": job_id, "eid": employer_id})
    if not row:
        raise HTTPException(status_code=404, detail="Job not found")
    return row


def _notify_applicants(job_id: int, status: str, now: datetime) -> None:
    """Push job_status_update to every registered applicant of the job."""
    rows = execute_raw_sql(
        """
        SELECT DISTINCT js.user_id FROM applications a JOIN job_seekers js ON a.job_seeker_id = js.id
        WHERE a.job_id = :jid
        """,
        {"jid": job_id}
    )
    if rows:
        publish([f"user_{r['user_id']}" for r in rows], "job_status_update",
                {"job_id": job_id, "status": status, "timestamp": now})


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


# ============================================================
# PROFILE
# ============================================================

@router.get("/profile", response_model=EmployerResponse)
async def get_profile(employer: dict = Depends(get_current_employer)):
    row = fetch_one(
        """
        SELECT e.id, e.user_id, u.email, e.company_name, e.description, e.website, e.industry, e.size, e.logo,
               e.contact_name, e.contact_email, e.contact_phone, e.address, e.city, e.postal_code, e.country,
               e.created_at
        FROM employers e JOIN users u ON e.user_id = u.id
        WHERE e.id = :id
        """,
        {"id": employer["employer_id"]}
    )
    return EmployerResponse(**row)


@router.put("/profile", response_model=MessageResponse)
async def update_profile(data: EmployerUpdate, request: Request, employer: dict = Depends(get_current_employer)):
    """Update company profile. Only provided fields are updated."""
    updates = []
    params = {"id": employer["employer_id"], "now": datetime.utcnow()}
    changes = {}
    for field in PROFILE_FIELDS:
        value = _enum_value(getattr(data, field))
        if value is not None:
            updates.append(f"{field} = :{field}")
            params[field] = value
            changes[field] = value

    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    with get_db_session() as db:
        db.execute(text(f"UPDATE employers SET {', '.join(updates)}, updated_at = :now WHERE id = :id"), params)
        log_audit(
            employer["user_id"], "PROFILE_UPDATED", "Employer", employer["employer_id"],
            changes=changes, request=request, db=db,
        )

    return MessageResponse(message="Company profile updated successfully")


# ============================================================
# JOBS
# ============================================================

@router.get("/jobs")
async def list_jobs(
    status: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    employer: dict = Depends(get_current_employer),
):
    sql = JOB_SELECT + " WHERE j.employer_id = :eid"
    params = {"eid": employer["employer_id"]}
    if status and status.upper() != "ALL":
        sql += " AND j.status = :status"
        params["status"] = status.upper()
    if search and search.strip():
        sql += " AND LOWER(j.title) LIKE :search"
        params["search"] = f"%{search.strip().lower()}%"

    column = JOB_SORT_COLUMNS.get(sort_by, "j.created_at")
    direction = "ASC" if sort_order.lower() == "asc" else "DESC"
    rows = execute_raw_sql(sql + f" ORDER BY {column} {direction}, j.id DESC", params)
    return {"jobs": to_job_responses(rows), "total": len(rows)}


@router.get("/jobs/recent")
async def recent_jobs(employer: dict = Depends(get_current_employer)):
    rows = execute_raw_sql(
        """
        SELECT j.id, j.title, j.location, j.type, j.status, j.created_at,
               (SELECT COUNT(*) FROM applications a WHERE a.job_id = j.id) AS applications_count
        FROM jobs j
        WHERE j.employer_id = :eid
        ORDER BY j.created_at DESC, j.id DESC
        LIMIT 10
        """,
        {"eid": employer["employer_id"]}
    )
    for row in rows:
        row["created_at"] = as_datetime(row["created_at"])
    return {"jobs": rows}


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: int, employer: dict = Depends(get_current_employer)):
    row = _own_job(job_id, employer["employer_id"])
    return to_job_response(row, skills_for_jobs([job_id])[job_id])


@router.put("/jobs/{job_id}", response_model=JobResponse)
async def update_job(job_id: int, data: JobUpdate, request: Request, employer: dict = Depends(get_current_employer)):
    """
    With `action` (publish, pause, close) only the status changes.
    Without it, the provided fields are updated and skills, if given, replaced.
    """
    job = _own_job(job_id, employer["employer_id"])
    now = datetime.utcnow()

    with get_db_session() as db:
        if data.action:
            new_status, audit_action = JOB_ACTIONS[data.action]
            set_clause = "status = :status, updated_at = :now"
            if new_status == "PUBLISHED":
                set_clause += ", published_at = :now"
            db.execute(text(f"UPDATE jobs SET {set_clause} WHERE id = :id"),
                       {"status": new_status, "now": now, "id": job_id})
            changes = {"action": data.action, "from": job["status"], "to": new_status}
        else:
            updates = []
            params = {"id": job_id, "now": now}
            changes = {}
            for field in JOB_FIELDS:
                value = _enum_value(getattr(data, field))
                if value is not None:
                    if field == "expires_at":
                        value = to_naive_utc(value)
                    updates.append(f"{field} = :{field}")
                    params[field] = value
                    changes[field] = value

            validate_salary(
                changes.get("salary_min", job["salary_min"]),
                changes.get("salary_max", job["salary_max"]),
                changes.get("salary_currency"),
            )
            if changes.get("status") == "PUBLISHED" and job["published_at"] is None:
                updates.append("published_at = :now")

            if updates:
                db.execute(text(f"UPDATE jobs SET {', '.join(updates)}, updated_at = :now WHERE id = :id"), params)
            if data.skills is not None:
                set_job_skills(db, job_id, data.skills, replace=True)
                changes["skills"] = data.skills
            audit_action = "JOB_UPDATED"

        log_audit(employer["user_id"], audit_action, "Job", job_id, changes=changes, request=request, db=db)

    if data.action:
        _notify_applicants(job_id, changes["to"], now)

    row = _own_job(job_id, employer["employer_id"])
    return to_job_response(row, skills_for_jobs([job_id])[job_id])


@router.delete("/jobs/{job_id}", response_model=MessageResponse)
async def delete_job(job_id: int, request: Request, employer: dict = Depends(get_current_employer)):
    job = _own_job(job_id, employer["employer_id"])
    with get_db_session() as db:
        db.execute(text("DELETE FROM jobs WHERE id = :id"), {"id": job_id})
        log_audit(
            employer["user_id"], "JOB_DELETED", "Job", job_id,
            changes={"title": job["title"], "status": job["status"]}, request=request, db=db,
        )
    return MessageResponse(message="Job deleted successfully")


# ============================================================
# APPLICATIONS
# ============================================================

@router.get("/applications")
async def list_applications(
    job_id: Optional[int] = None,
    status: Optional[ApplicationStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    employer: dict = Depends(get_current_employer),
):
    """Applications to this employer's jobs. Guest applicants are listed by their guest details."""
    where = " WHERE j.employer_id = :eid"
    params = {"eid": employer["employer_id"]}
    if job_id:
        where += " AND a.job_id = :jid"
        params["jid"] = job_id
    if status:
        where += " AND a.status = :status"
        params["status"] = status.value

    base = " FROM applications a JOIN jobs j ON a.job_id = j.id LEFT JOIN job_seekers js ON a.job_seeker_id = js.id" \
           " LEFT JOIN users u ON js.user_id = u.id"
    total = fetch_one("SELECT COUNT(*) AS n" + base + where, params)["n"]

    params.update({"limit": limit, "offset": (page - 1) * limit})
    rows = execute_raw_sql(
        """
        SELECT a.id, a.status, a.cover_letter, a.cv_url, a.notes, a.applied_at, a.viewed_at, a.responded_at,
               a.job_seeker_id, a.guest_email, a.guest_name, a.guest_phone,
               j.id AS job_id, j.title AS job_title, j.location AS job_location, j.type AS job_type,
               j.status AS job_status,
               js.first_name, js.last_name, js.phone, js.location AS applicant_location, js.title AS applicant_title,
               js.cv_url AS profile_cv_url, u.email
        """ + base + where + " ORDER BY a.applied_at DESC, a.id DESC LIMIT :limit OFFSET :offset",
        params
    )

    applications = []
    for row in rows:
        if row["job_seeker_id"]:
            applicant = {
                "type": "registered",
                "job_seeker_id": row["job_seeker_id"],
                "name": f"{row['first_name']} {row['last_name']}",
                "email": row["email"],
                "phone": row["phone"],
                "location": row["applicant_location"],
                "title": row["applicant_title"],
            }
        else:
            applicant = {
                "type": "guest",
                "job_seeker_id": None,
                "name": row["guest_name"] or row["guest_email"],
                "email": row["guest_email"],
                "phone": row["guest_phone"],
                "location": None,
                "title": None,
            }
        applications.append({
            "id": row["id"],
            "status": row["status"],
            "cover_letter": row["cover_letter"],
            "cv_url": row["cv_url"] or row["profile_cv_url"],
            "notes": row["notes"],
            "applied_at": as_datetime(row["applied_at"]),
            "viewed_at": as_datetime(row["viewed_at"]),
            "responded_at": as_datetime(row["responded_at"]),
            "job": {
                "id": row["job_id"], "title": row["job_title"], "location": row["job_location"],
                "type": row["job_type"], "status": row["job_status"],
            },
            "applicant": applicant,
        })

    summary_rows = execute_raw_sql(
        """
        SELECT a.status, COUNT(*) AS n FROM applications a JOIN jobs j ON a.job_id = j.id
        WHERE j.employer_id = :eid GROUP BY a.status
        """,
        {"eid": employer["employer_id"]}
    )

    return {
        "applications": applications,
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit) if total else 0},
        "filters": {"status": {r["status"]: r["n"] for r in summary_rows}},
    }


@router.get("/applications/recent")
async def recent_applications(employer: dict = Depends(get_current_employer)):
    rows = execute_raw_sql(
        """
        SELECT a.id, j.title AS job_title, a.status, a.applied_at, a.guest_name, a.guest_email,
               js.first_name, js.last_name, js.cv_url AS profile_cv_url, a.cv_url
        FROM applications a
        JOIN jobs j ON a.job_id = j.id
        LEFT JOIN job_seekers js ON a.job_seeker_id = js.id
        WHERE j.employer_id = :eid
        ORDER BY a.applied_at DESC, a.id DESC
        LIMIT 10
        """,
        {"eid": employer["employer_id"]}
    )
    applications = []
    for row in rows:
        if row["first_name"] is not None:
            name = f"{row['first_name']} {row['last_name']}"
        else:
            name = row["guest_name"] or row["guest_email"]
        applications.append({
            "id": row["id"],
            "job_title": row["job_title"],
            "applicant_name": name,
            "status": row["status"],
            "applied_at": as_datetime(row["applied_at"]),
            "has_cv": bool(row["cv_url"] or row["profile_cv_url"]),
        })
    return {"applications": applications}


def _own_application(db, application_id: int, employer_id: int):
    row = db.execute(
        text("""
            SELECT a.id, a.status, a.viewed_at, a.notes FROM applications a JOIN jobs j ON a.job_id = j.id
            WHERE a.id = :id AND j.employer_id = :eid
        """),
        {"id": application_id, "eid": employer_id}
    ).mappings().fetchone()
    if not row:
        raise HTTPException(status_code=404, detail="Application not found or access denied")
    return row


@router.patch("/applications")
async def update_application(
    data: EmployerApplicationUpdate, request: Request, employer: dict = Depends(get_current_employer)
):
    now = datetime.utcnow()
    with get_db_session() as db:
        application = _own_application(db, data.application_id, employer["employer_id"])

        updates = ["updated_at = :now"]
        params = {"id": data.application_id, "now": now}
        if data.status:
            updates.append("status = :status")
            params["status"] = data.status.value
            if data.status.value == "VIEWED" and application["viewed_at"] is None:
                updates.append("viewed_at = :now")
            if data.status.value in RESPONDED_STATUSES:
                updates.append("responded_at = :now")
        if data.notes is not None:
            updates.append("notes = :notes")
            params["notes"] = data.notes

        db.execute(text(f"UPDATE applications SET {', '.join(updates)} WHERE id = :id"), params)
        log_audit(
            employer["user_id"], "APPLICATION_STATUS_UPDATE", "Application", data.application_id,
            changes={
                "from_status": application["status"],
                "to_status": data.status.value if data.status else None,
                "notes_changed": data.notes is not None,
            },
            request=request, db=db,
        )
        updated = db.execute(
            text("SELECT id, status, viewed_at, responded_at, notes FROM applications WHERE id = :id"),
            {"id": data.application_id}
        ).mappings().fetchone()

    return {
        "message": "Application updated successfully",
        "application": {
            "id": updated["id"],
            "status": updated["status"],
            "viewed_at": as_datetime(updated["viewed_at"]),
            "responded_at": as_datetime(updated["responded_at"]),
            "notes": updated["notes"],
        },
    }


@router.delete("/applications", response_model=MessageResponse)
async def delete_application(
    request: Request,
    application_id: int = Query(...),
    employer: dict = Depends(get_current_employer),
):
    with get_db_session() as db:
        application = _own_application(db, application_id, employer["employer_id"])
        db.execute(text("DELETE FROM applications WHERE id = :id"), {"id": application_id})
        log_audit(
            employer["user_id"], "APPLICATION_DELETED", "Application", application_id,
            changes={"status": application["status"]}, request=request, db=db,
        )
    return MessageResponse(message="Application deleted successfully")


# ============================================================
# STATS & ANALYTICS
# ============================================================

@router.get("/stats")
async def get_stats(employer: dict = Depends(get_current_employer)):
    now = datetime.utcnow()
    params = {"eid": employer["employer_id"], "now": now, "since": now - timedelta(days=30), "flag": True}
    jobs = fetch_one(
        """
        SELECT COUNT(*) AS total_jobs,
               SUM(CASE WHEN status = 'PUBLISHED' AND (expires_at IS NULL OR expires_at > :now) THEN 1 ELSE 0 END)
                   AS active_jobs,
               SUM(CASE WHEN status = 'EXPIRED' OR (status = 'PUBLISHED' AND expires_at <= :now) THEN 1 ELSE 0 END)
                   AS expired_jobs,
               SUM(CASE WHEN featured = :flag THEN 1 ELSE 0 END) AS featured_jobs
        FROM jobs WHERE employer_id = :eid
        """,
        params
    )
    applications = fetch_one(
        """
        SELECT COUNT(*) AS total_applications,
               SUM(CASE WHEN a.applied_at >= :since THEN 1 ELSE 0 END) AS recent_applications
        FROM applications a JOIN jobs j ON a.job_id = j.id WHERE j.employer_id = :eid
        """,
        params
    )
    return {
        "total_jobs": jobs["total_jobs"] or 0,
        "active_jobs": jobs["active_jobs"] or 0,
        "expired_jobs": jobs["expired_jobs"] or 0,
        "featured_jobs": jobs["featured_jobs"] or 0,
        "total_applications": applications["total_applications"] or 0,
        "recent_applications": applications["recent_applications"] or 0,
    }


@router.get("/analytics")
async def get_analytics(
    days: int = Query(30, ge=1, le=365),
    job_id: Optional[int] = None,
    employer: dict = Depends(get_current_employer),
):
    """
    Application analytics over the last `days` days.

    Rates are percentages with one decimal:
    view = viewed/applied, response = responded/viewed,
    shortlist = shortlisted/responded, hire = hired/shortlisted.
    """
    now = datetime.utcnow()
    start = now - timedelta(days=days)
    sql = """
        SELECT a.id, a.job_id, j.title AS job_title, a.job_seeker_id, a.status,
               a.applied_at, a.viewed_at, a.responded_at
        FROM applications a JOIN jobs j ON a.job_id = j.id
        WHERE j.employer_id = :eid AND a.applied_at >= :start
    """
    params = {"eid": employer["employer_id"], "start": start}
    if job_id:
        sql += " AND a.job_id = :jid"
        params["jid"] = job_id
    rows = execute_raw_sql(sql + " ORDER BY a.applied_at", params)

    for row in rows:
        for key in ("applied_at", "viewed_at", "responded_at"):
            row[key] = as_datetime(row[key])

    status_distribution = dict(Counter(row["status"] for row in rows))

    timeline = {}
    for offset in range(days - 1, -1, -1):
        day = (now - timedelta(days=offset)).date().isoformat()
        timeline[day] = {"date": day, "total": 0, **{s: 0 for s in TIMELINE_STATUSES}}
    for row in rows:
        entry = timeline.get(row["applied_at"].date().isoformat())
        if entry:
            entry["total"] += 1
            key = row["status"].lower()
            if key in entry:
                entry[key] += 1

    job_counts = Counter((row["job_id"], row["job_title"]) for row in rows)
    top_jobs = [
        {"id": jid, "title": title, "application_count": count}
        for (jid, title), count in sorted(job_counts.items(), key=lambda item: (-item[1], item[0][0]))[:5]
    ]

    response_hours = [
        (row["viewed_at"] - row["applied_at"]).total_seconds() / 3600
        for row in rows if row["viewed_at"]
    ]
    average_response = round(sum(response_hours) / len(response_hours), 1) if response_hours else 0

    funnel = {
        "applied": len(rows),
        "viewed": sum(1 for row in rows if row["viewed_at"]),
        "responded": sum(1 for row in rows if row["responded_at"]),
        "shortlisted": status_distribution.get("SHORTLISTED", 0),
        "hired": status_distribution.get("HIRED", 0),
    }

    return {
        "days": days,
        "total_applications": len(rows),
        "status_distribution": status_distribution,
        "timeline": list(timeline.values()),
        "top_jobs": top_jobs,
        "application_sources": {
            "guest": sum(1 for row in rows if not row["job_seeker_id"]),
            "registered": sum(1 for row in rows if row["job_seeker_id"]),
        },
        "average_response_time_hours": average_response,
        "funnel": funnel,
        "rates": {
            "view_rate": _percent(funnel["viewed"], funnel["applied"]),
            "response_rate": _percent(funnel["responded"], funnel["viewed"]),
            "shortlist_rate": _percent(funnel["shortlisted"], funnel["responded"]),
            "hire_rate": _percent(funnel["hired"], funnel["shortlisted"]),
            "overall_hire_rate": _percent(funnel["hired"], funnel["applied"]),
        },
    }


# ============================================================
# PAYMENTS
# ============================================================

@router.get("/payments")
async def list_payments(employer: dict = Depends(get_current_employer)):
    rows = execute_raw_sql(
        """
        SELECT p.id, p.amount, p.currency, p.status, p.type, p.plan_type, p.stripe_payment_intent_id,
               p.job_id, j.title AS job_title, p.subscription_id, p.created_at
        FROM payments p LEFT JOIN jobs j ON p.job_id = j.id
        WHERE p.employer_id = :eid
        ORDER BY p.created_at DESC, p.id DESC
        """,
        {"eid": employer["employer_id"]}
    )
    return {"payments": rows, "total": len(rows)}


# ============================================================
# COMPANY PAGE
# ============================================================

COMPANY_FIELDS = ["description", "mission", "values", "benefits", "linkedin", "facebook", "twitter", "instagram"]

COMPANY_SELECT = """
    SELECT id, employer_id, description, mission, company_values AS "values", benefits,
           linkedin, facebook, twitter, instagram, updated_at
    FROM companies WHERE employer_id = :eid
"""


def _company(employer_id: int) -> dict:
    """Company row for the employer, created empty on first access."""
    row = fetch_one(COMPANY_SELECT, {"eid": employer_id})
    if row:
        return row
    with get_db_session() as db:
        db.execute(text("INSERT INTO companies (employer_id) VALUES (:eid)"), {"eid": employer_id})
    return fetch_one(COMPANY_SELECT, {"eid": employer_id})


def _company_response(row: dict) -> CompanyResponse:
    return CompanyResponse(**{**row, "updated_at": as_datetime(row["updated_at"])})


@router.get("/company", response_model=CompanyResponse)
async def get_company(employer: dict = Depends(get_current_employer)):
    return _company_response(_company(employer["employer_id"]))


@router.put("/company", response_model=CompanyResponse)
async def update_company(data: CompanyUpdate, request: Request, employer: dict = Depends(get_current_employer)):
    company = _company(employer["employer_id"])
    values = {field: getattr(data, field) or None for field in COMPANY_FIELDS}
    with get_db_session() as db:
        db.execute(
            text("""
                UPDATE companies SET description = :description, mission = :mission, company_values = :values,
                    benefits = :benefits, linkedin = :linkedin, facebook = :facebook, twitter = :twitter,
                    instagram = :instagram, updated_at = :now
                WHERE id = :id
            """),
            {**values, "now": datetime.utcnow(), "id": company["id"]}
        )
        log_audit(
            employer["user_id"], "COMPANY_INFO_UPDATED", "Company", company["id"],
            changes={"updated_fields": sorted(data.model_dump(exclude_unset=True))}, request=request, db=db,
        )
    return _company_response(_company(employer["employer_id"]))
