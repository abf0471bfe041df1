"""
Application Routes

POST /applications/guest - Apply without an account
PATCH /applications/{application_id}/status - Employer review or job seeker withdrawal
"""

import logging
import re
from datetime import datetime

from fastapi import APIRouter, HTTPException, Depends, Request
from sqlalchemy import text

from jobboard.db.postgres import get_db_session
from jobboard.core.auth import get_current_user
from jobboard.services.audit_service import log_audit
from jobboard.services.job_service import job_is_expired
from jobboard.services.notification_service import send_notification
from jobboard.services.realtime import publish
from jobboard.schemas.schemas import GuestApplicationCreate, ApplicationStatusUpdate, RESPONDED_STATUSES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["Applications"])

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@router.post("/guest", status_code=201)
async def create_guest_application(data: GuestApplicationCreate, request: Request):
    """Guest applications are keyed by email; one per job."""
    email = data.email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise HTTPException(status_code=400, detail="Invalid email format")

    now = datetime.utcnow()
    with get_db_session() as db:
        job = db.execute(
            text("SELECT id, title, status, expires_at FROM jobs WHERE id = :id"),
            {"id": data.job_id}
        ).mappings().fetchone()
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")
        if job["status"] != "PUBLISHED" or job_is_expired(dict(job), now):
            raise HTTPException(status_code=400, detail="Job is not accepting applications")

        duplicate = db.execute(
            text("SELECT id FROM applications WHERE job_id = :jid AND guest_email = :email"),
            {"jid": data.job_id, "email": email}
        ).fetchone()
        if duplicate:
            raise HTTPException(status_code=409, detail="You have already applied to this job")

        result = db.execute(
            text("""
                INSERT INTO applications (job_id, guest_email, guest_name, guest_phone, cover_letter, cv_url,
                    status, applied_at)
                VALUES (:jid, :email, :name, :phone, :cover_letter, :cv_url, 'APPLIED', :now)
                RETURNING id
            """),
            {
                "jid": data.job_id, "email": email, "name": data.name, "phone": data.phone,
                "cover_letter": data.cover_letter, "cv_url": data.cv_url, "now": now,
            }
        )
        application_id = result.fetchone()[0]

        log_audit(
            None, "GUEST_APPLICATION_SUBMITTED", "Application", application_id,
            changes={"job_id": data.job_id, "guest_email": email, "job_title": job["title"]},
            request=request, db=db,
        )

    return {
        "message": "Application submitted successfully",
        "application_id": application_id,
        "status": "APPLIED",
    }


@router.patch("/{application_id}/status")
async def update_application_status(
    application_id: int,
    data: ApplicationStatusUpdate,
    request: Request,
    user: dict = Depends(get_current_user),
):
    """
    Employers may set any status on applications to their jobs.
    Job seekers may only withdraw their own applications.
    """
    new_status = data.status.value
    now = datetime.utcnow()

    with get_db_session() as db:
        app_row = db.execute(
            text("""
                SELECT a.id, a.status, a.viewed_at, a.job_seeker_id, a.job_id,
                       j.title AS job_title, e.company_name, e.user_id AS employer_user_id,
                       js.user_id AS seeker_user_id, js.phone AS seeker_phone,
                       su.email AS seeker_email, su.name AS seeker_name
                FROM applications a
                JOIN jobs j ON a.job_id = j.id
                JOIN employers e ON j.employer_id = e.id
                LEFT JOIN job_seekers js ON a.job_seeker_id = js.id
                LEFT JOIN users su ON js.user_id = su.id
                WHERE a.id = :id
            """),
            {"id": application_id}
        ).mappings().fetchone()
        if not app_row:
            raise HTTPException(status_code=404, detail="Application not found")

        is_employer = user["role"] == "EMPLOYER"
        if is_employer:
            if app_row["employer_user_id"] != user["user_id"]:
                raise HTTPException(status_code=403, detail="Not authorized to update this application")
        elif user["role"] == "JOB_SEEKER":
            if app_row["seeker_user_id"] != user["user_id"]:
                raise HTTPException(status_code=403, detail="Not authorized to update this application")
            if new_status != "WITHDRAWN":
                raise HTTPException(status_code=400, detail="Job seekers can only withdraw applications")
        else:
            raise HTTPException(status_code=403, detail="Not authorized to update this application")

        updates = {"status": new_status, "now": now, "id": application_id}
        set_clause = "status = :status, updated_at = :now"
        if new_status == "VIEWED" and app_row["viewed_at"] is None:
            set_clause += ", viewed_at = :now"
        if new_status in RESPONDED_STATUSES:
            set_clause += ", responded_at = :now"
        db.execute(text(f"UPDATE applications SET {set_clause} WHERE id = :id"), updates)

        log_audit(
            user["user_id"], "APPLICATION_STATUS_UPDATE", "Application", application_id,
            changes={"from": app_row["status"], "to": new_status, "message": data.message},
            request=request, db=db,
        )

    if is_employer and app_row["seeker_user_id"]:
        send_notification(
            {
                "user_id": app_row["seeker_user_id"],
                "email": app_row["seeker_email"],
                "phone": app_row["seeker_phone"],
                "name": app_row["seeker_name"],
                "preferences": {"email": True, "sms": False, "push": True},
            },
            "APPLICATION_UPDATE",
            {
                "job_title": app_row["job_title"], "company_name": app_row["company_name"],
                "status": new_status, "message": data.message, "application_id": application_id,
            },
        )

    rooms = [f"application_{application_id}", f"user_{app_row['employer_user_id']}"]
    if app_row["seeker_user_id"]:
        rooms.append(f"user_{app_row['seeker_user_id']}")
    publish(rooms, "application_status_update", {
        "application_id": application_id,
        "job_id": app_row["job_id"],
        "job_title": app_row["job_title"],
        "status": new_status,
        "previous_status": app_row["status"],
        "message": data.message,
        "updated_at": now,
    })

    return {"message": "Application status updated", "application_id": application_id, "status": new_status}
