"""
Job Seeker Routes

GET /job-seeker/profile - Get own profile
PUT /job-seeker/profile - Update profile
GET /job-seeker/skills - Get skills
POST /job-seeker/skills - Add skill
DELETE /job-seeker/skills/{skill_id} - Remove skill
GET /job-seeker/saved-jobs - List saved jobs
POST /job-seeker/saved-jobs/{job_id} - Save job
DELETE /job-seeker/saved-jobs/{job_id} - Unsave job
GET /job-seeker/saved-jobs/check/{job_id} - Is the job saved
GET /job-seeker/applications - Get my applications
GET /job-seeker/applications/check/{job_id} - Have I applied
POST /job-seeker/upload-cv - Upload CV (PDF/DOC/DOCX)
GET /job-seeker/job-alerts - List job alerts
POST /job-seeker/job-alerts - Create job alert
PUT /job-seeker/job-alerts/{alert_id} - Update job alert
DELETE /job-seeker/job-alerts/{alert_id} - Delete job alert
"""

import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, HTTPException, Depends, UploadFile, File, Request
from sqlalchemy import text

from jobboard.db.postgres import get_db_session, execute_raw_sql, fetch_one
from jobboard.core.auth import get_current_job_seeker
from jobboard.services.audit_service import log_audit
from jobboard.services.job_service import JOB_SELECT, to_job_responses
from jobboard.services.mongo_service import get_cv_document_service
from jobboard.utils.file_upload import read_cv_upload, build_cv_filename, save_cv, extract_text
from jobboard.schemas.schemas import (
    JobSeekerUpdate, JobSeekerResponse, SkillResponse, SkillAdd, CvUploadResponse,
    ApplicationResponse, JobAlertCreate, JobAlertUpdate, JobAlertResponse, MessageResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/job-seeker", tags=["Job Seekers"])

PROFILE_FIELDS = ["first_name", "last_name", "phone", "location", "bio", "title", "experience", "education"]

ALERT_FIELDS = ["title", "location", "industry", "job_type", "salary_min", "salary_max",
                "email_alerts", "sms_alerts", "frequency", "active"]


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


def _seeker_skills(job_seeker_id: int) -> List[SkillResponse]:
    rows = execute_raw_sql(
        """
        SELECT sk.id, sk.name, sk.category, jss.level
        FROM job_seeker_skills jss JOIN skills sk ON jss.skill_id = sk.id
        WHERE jss.job_seeker_id = :id ORDER BY sk.name
        """,
        {"id": job_seeker_id}
    )
    return [SkillResponse(**row) for row in rows]


# ============================================================
# PROFILE
# ============================================================

@router.get("/profile", response_model=JobSeekerResponse)
async def get_profile(job_seeker: dict = Depends(get_current_job_seeker)):
    row = fetch_one(
        """
        SELECT js.id, js.user_id, u.email, js.first_name, js.last_name, js.phone, js.location, js.country,
               js.bio, js.title, js.experience, js.education, js.cv_url, js.cv_file_name, js.cv_uploaded_at,
               js.profile_visibility, js.created_at
        FROM job_seekers js JOIN users u ON js.user_id = u.id
        WHERE js.id = :id
        """,
        {"id": job_seeker["job_seeker_id"]}
    )
    return JobSeekerResponse(**row, skills=_seeker_skills(job_seeker["job_seeker_id"]))


@router.put("/profile", response_model=MessageResponse)
async def update_profile(data: JobSeekerUpdate, request: Request, job_seeker: dict = Depends(get_current_job_seeker)):
    """Update job seeker profile. Only provided fields are updated."""
    updates = []
    params = {"id": job_seeker["job_seeker_id"], "now": datetime.utcnow()}
    changes = {}

    for field in PROFILE_FIELDS + ["profile_visibility"]:
        value = _enum_value(getattr(data, field))
        if value is not None:
            updates.append(f"{field} = :{field}")
            params[field] = value
            changes[field] = value

    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    with get_db_session() as db:
        db.execute(
            text(f"UPDATE job_seekers SET {', '.join(updates)}, updated_at = :now WHERE id = :id"),
            params
        )
        if "first_name" in changes or "last_name" in changes:
            db.execute(
                text("""
                    UPDATE users SET name = (
                        SELECT first_name || ' ' || last_name FROM job_seekers WHERE id = :id
                    ) WHERE id = :uid
                """),
                {"id": job_seeker["job_seeker_id"], "uid": job_seeker["user_id"]}
            )
        log_audit(
            job_seeker["user_id"], "PROFILE_UPDATED", "JobSeeker", job_seeker["job_seeker_id"],
            changes=changes, request=request, db=db,
        )

    return MessageResponse(message="Profile updated successfully")


# ============================================================
# SKILLS
# ============================================================

@router.get("/skills", response_model=List[SkillResponse])
async def get_skills(job_seeker: dict = Depends(get_current_job_seeker)):
    return _seeker_skills(job_seeker["job_seeker_id"])


@router.post("/skills", response_model=MessageResponse, status_code=201)
async def add_skill(data: SkillAdd, request: Request, job_seeker: dict = Depends(get_current_job_seeker)):
    """Add a skill, creating it in the catalogue if new."""
    name = data.name.strip()
    with get_db_session() as db:
        skill = db.execute(text("SELECT id FROM skills WHERE LOWER(name) = :name"), {"name": name.lower()}).fetchone()
        if skill:
            skill_id = skill[0]
        else:
            skill_id = db.execute(
                text("INSERT INTO skills (name, category) VALUES (:name, :category) RETURNING id"),
                {"name": name, "category": data.category}
            ).fetchone()[0]

        existing = db.execute(
            text("SELECT id FROM job_seeker_skills WHERE job_seeker_id = :sid AND skill_id = :skid"),
            {"sid": job_seeker["job_seeker_id"], "skid": skill_id}
        ).fetchone()
        if existing:
            raise HTTPException(status_code=400, detail="Skill already added to profile")

        db.execute(
            text("INSERT INTO job_seeker_skills (job_seeker_id, skill_id, level) VALUES (:sid, :skid, :level)"),
            {"sid": job_seeker["job_seeker_id"], "skid": skill_id, "level": data.level.value}
        )
        log_audit(
            job_seeker["user_id"], "SKILL_ADDED", "JobSeekerSkill", skill_id,
            changes={"skill": name, "level": data.level.value}, request=request, db=db,
        )

    return MessageResponse(message=f"Skill '{name}' added")


@router.delete("/skills/{skill_id}", response_model=MessageResponse)
async def remove_skill(skill_id: int, request: Request, job_seeker: dict = Depends(get_current_job_seeker)):
    with get_db_session() as db:
        result = db.execute(
            text("DELETE FROM job_seeker_skills WHERE job_seeker_id = :sid AND skill_id = :skid"),
            {"sid": job_seeker["job_seeker_id"], "skid": skill_id}
        )
        if result.rowcount == 0:
            raise HTTPException(status_code=404, detail="Skill not found on profile")
        log_audit(job_seeker["user_id"], "SKILL_REMOVED", "JobSeekerSkill", skill_id, request=request, db=db)

    return MessageResponse(message="Skill removed")


# ============================================================
# SAVED JOBS
# ============================================================

@router.get("/saved-jobs")
async def get_saved_jobs(job_seeker: dict = Depends(get_current_job_seeker)):
    rows = execute_raw_sql(
        JOB_SELECT.replace("FROM jobs j", ", sj.created_at AS saved_at FROM jobs j")
        + " JOIN saved_jobs sj ON sj.job_id = j.id WHERE sj.job_seeker_id = :sid ORDER BY sj.created_at DESC",
        {"sid": job_seeker["job_seeker_id"]}
    )
    jobs = to_job_responses(rows)
    return {
        "saved_jobs": [
            {"job": job, "saved_at": row["saved_at"]} for job, row in zip(jobs, rows)
        ],
        "total": len(rows),
    }


@router.post("/saved-jobs/{job_id}", response_model=MessageResponse, status_code=201)
async def save_job(job_id: int, request: Request, job_seeker: dict = Depends(get_current_job_seeker)):
    with get_db_session() as db:
        job = db.execute(
            text("SELECT id, title FROM jobs WHERE id = :id AND status = 'PUBLISHED'"), {"id": job_id}
        ).fetchone()
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")

        existing = db.execute(
            text("SELECT id FROM saved_jobs WHERE job_seeker_id = :sid AND job_id = :jid"),
            {"sid": job_seeker["job_seeker_id"], "jid": job_id}
        ).fetchone()
        if existing:
            raise HTTPException(status_code=409, detail="Job already saved")

        db.execute(
            text("INSERT INTO saved_jobs (job_seeker_id, job_id) VALUES (:sid, :jid)"),
            {"sid": job_seeker["job_seeker_id"], "jid": job_id}
        )
        log_audit(
            job_seeker["user_id"], "JOB_SAVED", "Job", job_id,
            changes={"job_title": job[1]}, request=request, db=db,
        )

    return MessageResponse(message="Job saved")


@router.delete("/saved-jobs/{job_id}", response_model=MessageResponse)
async def unsave_job(job_id: int, request: Request, job_seeker: dict = Depends(get_current_job_seeker)):
    with get_db_session() as db:
        result = db.execute(
            text("DELETE FROM saved_jobs WHERE job_seeker_id = :sid AND job_id = :jid"),
            {"sid": job_seeker["job_seeker_id"], "jid": job_id}
        )
        if result.rowcount == 0:
            raise HTTPException(status_code=404, detail="Saved job not found")
        log_audit(job_seeker["user_id"], "JOB_UNSAVED", "Job", job_id, request=request, db=db)

    return MessageResponse(message="Job removed from saved jobs")


@router.get("/saved-jobs/check/{job_id}")
async def check_saved_job(job_id: int, job_seeker: dict = Depends(get_current_job_seeker)):
    row = fetch_one(
        "SELECT id FROM saved_jobs WHERE job_seeker_id = :sid AND job_id = :jid",
        {"sid": job_seeker["job_seeker_id"], "jid": job_id}
    )
    return {"saved": row is not None}


# ============================================================
# APPLICATIONS
# ============================================================

APPLICATION_SELECT = """
    SELECT a.id, a.job_id, j.title AS job_title, e.company_name, a.status, a.cover_letter, a.cv_url,
           a.applied_at, a.viewed_at, a.responded_at
    FROM applications a
    JOIN jobs j ON a.job_id = j.id
    JOIN employers e ON j.employer_id = e.id
"""


@router.get("/applications", response_model=List[ApplicationResponse])
async def get_my_applications(job_seeker: dict = Depends(get_current_job_seeker)):
    rows = execute_raw_sql(
        APPLICATION_SELECT + " WHERE a.job_seeker_id = :sid ORDER BY a.applied_at DESC",
        {"sid": job_seeker["job_seeker_id"]}
    )
    return [ApplicationResponse(**row) for row in rows]


@router.get("/applications/check/{job_id}")
async def check_application(job_id: int, job_seeker: dict = Depends(get_current_job_seeker)):
    row = fetch_one(
        APPLICATION_SELECT + " WHERE a.job_seeker_id = :sid AND a.job_id = :jid",
        {"sid": job_seeker["job_seeker_id"], "jid": job_id}
    )
    return {
        "has_applied": row is not None,
        "application": ApplicationResponse(**row) if row else None,
    }


# ============================================================
# CV UPLOAD
# ============================================================

@router.post("/upload-cv", response_model=CvUploadResponse)
async def upload_cv(
    request: Request,
    file: UploadFile = File(...),
    job_seeker: dict = Depends(get_current_job_seeker),
):
    """
    Upload CV. Supported: PDF, DOC, DOCX (max 10MB).

    The file is stored on disk; extracted text goes to MongoDB.
    """
    content, ext = await read_cv_upload(file)
    stored_name = build_cv_filename(job_seeker["user_id"], ext)
    save_cv(content, stored_name)
    cv_url = f"/api/uploads/cvs/{stored_name}"
    now = datetime.utcnow()

    with get_db_session() as db:
        db.execute(
            text("""
                UPDATE job_seekers SET cv_url = :url, cv_file_name = :name, cv_uploaded_at = :now, updated_at = :now
                WHERE id = :id
            """),
            {"url": cv_url, "name": file.filename, "now": now, "id": job_seeker["job_seeker_id"]}
        )
        log_audit(
            job_seeker["user_id"], "CV_UPLOADED", "JobSeeker", job_seeker["job_seeker_id"],
            changes={"file_name": file.filename, "file_size": len(content), "stored_name": stored_name},
            request=request, db=db,
        )

    text_extracted = False
    try:
        cv_text = extract_text(content, ext)
        if cv_text.strip():
            get_cv_document_service().insert(job_seeker["job_seeker_id"], cv_text, file.filename, stored_name)
            text_extracted = True
    except Exception as e:
        logger.warning("CV text extraction/storage failed for %s: %s", stored_name, e)

    return CvUploadResponse(
        message="CV uploaded successfully",
        cv_url=cv_url,
        file_name=file.filename,
        text_extracted=text_extracted,
    )


# ============================================================
# JOB ALERTS
# ============================================================

ALERT_SELECT = """
    SELECT id, title, location, industry, job_type, salary_min, salary_max,
           email_alerts, sms_alerts, frequency, active, created_at
    FROM job_alerts
"""


def _check_alert_salary(salary_min, salary_max) -> None:
    if salary_min and salary_max and salary_min > salary_max:
        raise HTTPException(status_code=400, detail="Minimum salary cannot be greater than maximum salary")


@router.get("/job-alerts", response_model=List[JobAlertResponse])
async def get_job_alerts(job_seeker: dict = Depends(get_current_job_seeker)):
    rows = execute_raw_sql(
        ALERT_SELECT + " WHERE job_seeker_id = :sid ORDER BY created_at DESC, id DESC",
        {"sid": job_seeker["job_seeker_id"]}
    )
    return [JobAlertResponse(**row) for row in rows]


@router.post("/job-alerts", response_model=JobAlertResponse, status_code=201)
async def create_job_alert(data: JobAlertCreate, request: Request, job_seeker: dict = Depends(get_current_job_seeker)):
    _check_alert_salary(data.salary_min, data.salary_max)
    with get_db_session() as db:
        alert_id = db.execute(
            text("""
                INSERT INTO job_alerts (job_seeker_id, title, location, industry, job_type, salary_min, salary_max,
                    email_alerts, sms_alerts, frequency, active)
                VALUES (:sid, :title, :location, :industry, :job_type, :salary_min, :salary_max,
                    :email_alerts, :sms_alerts, :frequency, :active)
                RETURNING id
            """),
            {
                "sid": job_seeker["job_seeker_id"], "title": data.title, "location": data.location,
                "industry": data.industry, "job_type": _enum_value(data.job_type),
                "salary_min": data.salary_min, "salary_max": data.salary_max,
                "email_alerts": data.email_alerts, "sms_alerts": data.sms_alerts,
                "frequency": data.frequency.value, "active": True,
            }
        ).fetchone()[0]
        log_audit(
            job_seeker["user_id"], "JOB_ALERT_CREATED", "JobAlert", alert_id,
            changes=data.model_dump(mode="json"), request=request, db=db,
        )

    return JobAlertResponse(**fetch_one(ALERT_SELECT + " WHERE id = :id", {"id": alert_id}))


@router.put("/job-alerts/{alert_id}", response_model=JobAlertResponse)
async def update_job_alert(
    alert_id: int, data: JobAlertUpdate, request: Request, job_seeker: dict = Depends(get_current_job_seeker)
):
    existing = fetch_one(
        ALERT_SELECT + " WHERE id = :id AND job_seeker_id = :sid",
        {"id": alert_id, "sid": job_seeker["job_seeker_id"]}
    )
    if not existing:
        raise HTTPException(status_code=404, detail="Job alert not found")

    updates = []
    params = {"id": alert_id, "now": datetime.utcnow()}
    changes = {}
    for field in ALERT_FIELDS:
        value = _enum_value(getattr(data, field))
        if value is not None:
            updates.append(f"{field} = :{field}")
            params[field] = value
            changes[field] = value

    _check_alert_salary(
        changes.get("salary_min", existing["salary_min"]), changes.get("salary_max", existing["salary_max"])
    )

    if updates:
        with get_db_session() as db:
            db.execute(text(f"UPDATE job_alerts SET {', '.join(updates)}, updated_at = :now WHERE id = :id"), params)
            log_audit(
                job_seeker["user_id"], "JOB_ALERT_UPDATED", "JobAlert", alert_id,
                changes=changes, request=request, db=db,
            )

    return JobAlertResponse(**fetch_one(ALERT_SELECT + " WHERE id = :id", {"id": alert_id}))


@router.delete("/job-alerts/{alert_id}", response_model=MessageResponse)
async def delete_job_alert(alert_id: int, request: Request, job_seeker: dict = Depends(get_current_job_seeker)):
    with get_db_session() as db:
        result = db.execute(
            text("DELETE FROM job_alerts WHERE id = :id AND job_seeker_id = :sid"),
            {"id": alert_id, "sid": job_seeker["job_seeker_id"]}
        )
        if result.rowcount == 0:
            raise HTTPException(status_code=404, detail="Job alert not found")
        log_audit(job_seeker["user_id"], "JOB_ALERT_DELETED", "JobAlert", alert_id, request=request, db=db)

    return MessageResponse(message="Job alert deleted")
