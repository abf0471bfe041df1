"""
GDPR Routes

GET /gdpr/consent - Current consents and history
POST /gdpr/consent - Grant or revoke a consent
GET /gdpr/data-export - Export everything held about the current user
POST /gdpr/account-deletion - Soft-delete and anonymise the account
"""

import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException, Depends, Request
from sqlalchemy import text

from jobboard.db.postgres import get_db_session, execute_raw_sql, fetch_one
from jobboard.core.auth import get_current_user
from jobboard.services.audit_service import log_audit, log_consent, parse_changes
from jobboard.services.mongo_service import get_cv_document_service
from jobboard.schemas.schemas import ConsentUpdate, AccountDeletionRequest
from jobboard.utils.file_upload import delete_user_cvs

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gdpr", tags=["GDPR"])

# Consent types backed by a flag on users; the rest only live in consent_logs
CONSENT_COLUMNS = {
    "DATA_RETENTION": "data_retention_consent",
    "MARKETING": "marketing_consent",
    "JOB_ALERTS": "job_alert_consent",
}

CV_PLACEHOLDER = "[CV FILE PRESENT]"


@router.post("/consent")
async def update_consent(data: ConsentUpdate, request: Request, user: dict = Depends(get_current_user)):
    consent_type = data.consent_type.value
    action = data.action.value
    now = datetime.utcnow()

    with get_db_session() as db:
        column = CONSENT_COLUMNS.get(consent_type)
        if column:
            db.execute(
                text(f"UPDATE users SET {column} = :granted, updated_at = :now WHERE id = :id"),
                {"granted": action == "GRANTED", "now": now, "id": user["user_id"]}
            )
        log_consent(user["user_id"], consent_type, action, request, db=db)
        log_audit(
            user["user_id"], f"CONSENT_{action}", "Consent", user["user_id"],
            changes={"consent_type": consent_type, "action": action}, request=request, db=db,
        )

    return {
        "message": f"Consent {action.lower()} successfully",
        "consent_type": consent_type,
        "action": action,
        "timestamp": now,
    }


@router.get("/consent")
async def get_consent(user: dict = Depends(get_current_user)):
    current = fetch_one(
        "SELECT data_retention_consent, marketing_consent, job_alert_consent FROM users WHERE id = :id",
        {"id": user["user_id"]}
    )
    history = execute_raw_sql(
        """
        SELECT id, consent_type, action, ip_address, user_agent, created_at
        FROM consent_logs WHERE user_id = :id ORDER BY created_at DESC, id DESC LIMIT 50
        """,
        {"id": user["user_id"]}
    )
    return {
        "current_consents": {
            "data_retention": bool(current["data_retention_consent"]),
            "marketing": bool(current["marketing_consent"]),
            "job_alerts": bool(current["job_alert_consent"]),
        },
        "consent_history": history,
    }


def _job_seeker_export(user_id: int) -> dict:
    profile = fetch_one("SELECT * FROM job_seekers WHERE user_id = :uid", {"uid": user_id})
    if not profile:
        return None
    sid = profile["id"]
    profile["cv_url"] = CV_PLACEHOLDER if profile["cv_url"] else None
    profile["skills"] = execute_raw_sql(
        """
        SELECT sk.name, sk.category, jss.level FROM job_seeker_skills jss JOIN skills sk ON jss.skill_id = sk.id
        WHERE jss.job_seeker_id = :sid ORDER BY sk.name
        """,
        {"sid": sid}
    )
    profile["applications"] = execute_raw_sql(
        """
        SELECT a.id, a.status, a.cover_letter, a.applied_at, a.viewed_at, a.responded_at,
               j.id AS job_id, j.title AS job_title, e.company_name
        FROM applications a JOIN jobs j ON a.job_id = j.id JOIN employers e ON j.employer_id = e.id
        WHERE a.job_seeker_id = :sid ORDER BY a.applied_at DESC
        """,
        {"sid": sid}
    )
    profile["job_alerts"] = execute_raw_sql("SELECT * FROM job_alerts WHERE job_seeker_id = :sid", {"sid": sid})
    profile["saved_jobs"] = execute_raw_sql(
        """
        SELECT sj.created_at AS saved_at, j.id AS job_id, j.title, e.company_name
        FROM saved_jobs sj JOIN jobs j ON sj.job_id = j.id JOIN employers e ON j.employer_id = e.id
        WHERE sj.job_seeker_id = :sid ORDER BY sj.created_at DESC
        """,
        {"sid": sid}
    )
    return profile


def _employer_export(user_id: int) -> dict:
    profile = fetch_one("SELECT * FROM employers WHERE user_id = :uid", {"uid": user_id})
    if not profile:
        return None
    eid = profile["id"]
    profile["jobs"] = execute_raw_sql(
        """
        SELECT j.id, j.title, j.status, j.location, j.type, j.created_at, j.published_at,
               (SELECT COUNT(*) FROM applications a WHERE a.job_id = j.id) AS application_count
        FROM jobs j WHERE j.employer_id = :eid ORDER BY j.created_at DESC
        """,
        {"eid": eid}
    )
    profile["payments"] = execute_raw_sql(
        "SELECT id, amount, currency, status, type, plan_type, created_at FROM payments WHERE employer_id = :eid",
        {"eid": eid}
    )
    profile["subscriptions"] = execute_raw_sql(
        "SELECT id, plan, status, starts_at, ends_at, cancelled_at FROM subscriptions WHERE employer_id = :eid",
        {"eid": eid}
    )
    return profile


@router.get("/data-export")
async def export_data(request: Request, user: dict = Depends(get_current_user)):
    """Everything stored about the caller, as JSON."""
    user_id = user["user_id"]
    basic_info = fetch_one(
        """
        SELECT id, email, email_verified, name, role, created_at, updated_at, last_login_at,
               data_retention_consent, marketing_consent, job_alert_consent
        FROM users WHERE id = :id
        """,
        {"id": user_id}
    )

    export = {
        "export_info": {
            "exported_at": datetime.utcnow(),
            "user_id": user_id,
            "user_email": basic_info["email"],
            "format": "json",
        },
        "basic_info": basic_info,
    }
    if basic_info["role"] == "JOB_SEEKER":
        export["job_seeker_profile"] = _job_seeker_export(user_id)
    elif basic_info["role"] == "EMPLOYER":
        export["employer_profile"] = _employer_export(user_id)

    export["consent_logs"] = execute_raw_sql(
        "SELECT consent_type, action, ip_address, user_agent, created_at FROM consent_logs"
        " WHERE user_id = :id ORDER BY created_at DESC, id DESC",
        {"id": user_id}
    )
    audit_logs = execute_raw_sql(
        "SELECT action, entity_type, entity_id, changes, ip_address, created_at FROM audit_logs"
        " WHERE user_id = :id ORDER BY created_at DESC, id DESC LIMIT 100",
        {"id": user_id}
    )
    for entry in audit_logs:
        entry["changes"] = parse_changes(entry["changes"])
    export["audit_logs"] = audit_logs
    export["newsletter_subscription"] = fetch_one(
        "SELECT email, name, active, subscribed_at, unsubscribed_at FROM newsletter_subscribers WHERE email = :email",
        {"email": basic_info["email"]}
    )
    export["data_summary"] = {
        "basic_info": True,
        "job_seeker_profile": bool(export.get("job_seeker_profile")),
        "employer_profile": bool(export.get("employer_profile")),
        "consent_logs": len(export["consent_logs"]),
        "audit_logs": len(audit_logs),
        "newsletter_subscription": export["newsletter_subscription"] is not None,
    }

    log_audit(user_id, "DATA_EXPORT", "User", user_id, changes={"format": "json"}, request=request)
    return export


@router.post("/account-deletion")
async def delete_account(data: AccountDeletionRequest, request: Request, user: dict = Depends(get_current_user)):
    """
    Soft-delete the account and anonymise personal data.
    Audit and consent logs are kept, linked to the anonymised user.
    """
    if not data.confirm:
        raise HTTPException(status_code=400, detail="Account deletion must be confirmed")

    user_id = user["user_id"]
    now = datetime.utcnow()
    with get_db_session() as db:
        current = db.execute(
            text("""
                SELECT email, data_retention_consent, marketing_consent, job_alert_consent
                FROM users WHERE id = :id
            """),
            {"id": user_id}
        ).mappings().fetchone()

        for consent_type, column in CONSENT_COLUMNS.items():
            if current[column]:
                log_consent(user_id, consent_type, "REVOKED", request, db=db)

        db.execute(
            text("""
                UPDATE users SET email = :email, name = 'Deleted User', password_hash = NULL,
                    data_retention_consent = :off, marketing_consent = :off, job_alert_consent = :off,
                    deleted_at = :now, updated_at = :now
                WHERE id = :id
            """),
            {"email": f"deleted-{user_id}@deleted.invalid", "off": False, "now": now, "id": user_id}
        )

        seeker = db.execute(text("SELECT id FROM job_seekers WHERE user_id = :uid"), {"uid": user_id}).fetchone()
        if seeker:
            db.execute(
                text("""
                    UPDATE job_seekers SET first_name = 'Deleted', last_name = 'User', phone = NULL, bio = NULL,
                        title = NULL, education = NULL, cv_url = NULL, cv_file_name = NULL,
                        profile_visibility = 'PRIVATE', updated_at = :now
                    WHERE id = :sid
                """),
                {"now": now, "sid": seeker[0]}
            )
            db.execute(
                text("UPDATE job_alerts SET active = :off, updated_at = :now WHERE job_seeker_id = :sid"),
                {"off": False, "now": now, "sid": seeker[0]}
            )
        db.execute(
            text("UPDATE employers SET contact_name = NULL, contact_email = NULL, contact_phone = NULL WHERE user_id = :uid"),
            {"uid": user_id}
        )
        db.execute(
            text("UPDATE newsletter_subscribers SET active = :off, unsubscribed_at = :now WHERE email = :email"),
            {"off": False, "now": now, "email": current["email"]}
        )
        db.execute(text("DELETE FROM saved_searches WHERE user_id = :uid"), {"uid": user_id})
        db.execute(text("DELETE FROM recent_searches WHERE user_id = :uid"), {"uid": user_id})

        log_audit(
            user_id, "ACCOUNT_DELETED", "User", user_id,
            changes={"reason": data.reason, "deleted_at": now}, request=request, db=db,
        )

    if seeker:
        try:
            get_cv_document_service().delete_by_job_seeker(seeker[0])
        except Exception as e:
            logger.warning("Could not remove CV documents for job seeker %s: %s", seeker[0], e)
        try:
            removed = delete_user_cvs(user_id)
            logger.info("Removed %d stored CV files for user %s", removed, user_id)
        except OSError as e:
            logger.warning("Could not remove CV files for user %s: %s", user_id, e)

    logger.info("Account %s deleted and anonymised", user_id)
    return {"message": "Your account has been deleted and your personal data anonymised", "deleted_at": now}
