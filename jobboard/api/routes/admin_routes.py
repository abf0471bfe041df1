"""
Admin Routes (role ADMIN)

GET /admin/users - Search and page through users
PATCH /admin/users/{user_id} - Delete, soft-delete or restore a user
GET /admin/metrics - Platform counters
GET /admin/realtime-metrics - Logins, jobs and applications in the last minutes/hours
GET /admin/recent-activity - Last 24 hours as an activity feed
GET /admin/analytics/enhanced - Users, jobs, applications, employers and revenue breakdowns
GET /admin/payments - All payments, paginated
POST /admin/notifications/send - Send a one-off email or SMS
"""

import logging
import math
from collections import Counter
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query, Request
from sqlalchemy import text

from jobboard.db.postgres import get_db_session, execute_raw_sql, fetch_one
from jobboard.core.auth import get_current_admin
from jobboard.services.audit_service import log_audit
from jobboard.services.email_service import send_email
from jobboard.services.sms_service import send_sms
from jobboard.schemas.schemas import AdminUserAction, AdminNotification, PaymentStatus, UserRole
from jobboard.utils.dates import as_datetime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

DATA_RETENTION_DAYS = 730


def _pagination(total: int, page: int, limit: int) -> dict:
    return {"total": total, "page": page, "limit": limit, "total_pages": math.ceil(total / limit) if total else 0}


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


@router.get("/users")
async def list_users(
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: dict = Depends(get_current_admin),
):
    where = " WHERE 1 = 1"
    params = {}
    if search and search.strip():
        where += " AND (LOWER(email) LIKE :search OR LOWER(COALESCE(name, '')) LIKE :search)"
        params["search"] = f"%{search.strip().lower()}%"
    if role:
        where += " AND role = :role"
        params["role"] = role.value

    total = fetch_one("SELECT COUNT(*) AS n FROM users" + where, params)["n"]
    params.update({"limit": limit, "offset": (page - 1) * limit})
    users = execute_raw_sql(
        "SELECT id, email, name, role, last_login_at, deleted_at, created_at,"
        " data_retention_consent, marketing_consent, job_alert_consent FROM users"
        + where + " ORDER BY created_at DESC, id DESC LIMIT :limit OFFSET :offset",
        params
    )
    return {"users": users, "pagination": _pagination(total, page, limit)}


@router.patch("/users/{user_id}")
async def manage_user(user_id: int, data: AdminUserAction, request: Request, admin: dict = Depends(get_current_admin)):
    target = fetch_one("SELECT id, email, name, role, deleted_at FROM users WHERE id = :id", {"id": user_id})
    if not target:
        raise HTTPException(status_code=404, detail="User not found")

    now = datetime.utcnow()
    with get_db_session() as db:
        if data.action == "delete":
            db.execute(text("DELETE FROM users WHERE id = :id"), {"id": user_id})
            audit_action, deleted_at = "ADMIN_USER_DELETED", None
        elif data.action == "soft-delete":
            db.execute(text("UPDATE users SET deleted_at = :now, updated_at = :now WHERE id = :id"),
                       {"now": now, "id": user_id})
            audit_action, deleted_at = "ADMIN_USER_SOFT_DELETED", now
        else:
            db.execute(text("UPDATE users SET deleted_at = NULL, updated_at = :now WHERE id = :id"),
                       {"now": now, "id": user_id})
            audit_action, deleted_at = "ADMIN_USER_RESTORED", None

        log_audit(
            admin["user_id"], audit_action, "User", user_id,
            changes={"email": target["email"], "role": target["role"]}, request=request, db=db,
        )

    if data.action == "delete":
        return {"message": "User deleted successfully"}
    return {
        "user": {
            "id": target["id"], "email": target["email"], "name": target["name"],
            "role": target["role"], "deleted_at": deleted_at,
        }
    }


@router.get("/metrics")
async def get_metrics(admin: dict = Depends(get_current_admin)):
    now = datetime.utcnow()
    params = {"now": now, "since": now - timedelta(days=30)}

    def count(sql: str) -> int:
        return fetch_one(sql, params)["n"]

    total_applications = count("SELECT COUNT(*) AS n FROM applications")
    hires = count("SELECT COUNT(*) AS n FROM applications WHERE status = 'HIRED'")

    return {
        "metrics": {
            "total_users": count("SELECT COUNT(*) AS n FROM users"),
            "active_users": count("SELECT COUNT(*) AS n FROM users WHERE last_login_at IS NOT NULL"),
            "total_employers": count("SELECT COUNT(*) AS n FROM employers"),
            "total_job_seekers": count("SELECT COUNT(*) AS n FROM job_seekers"),
            "deleted_users": count("SELECT COUNT(*) AS n FROM users WHERE deleted_at IS NOT NULL"),
            "total_payments": count("SELECT COUNT(*) AS n FROM payments"),
            "successful_payments": count("SELECT COUNT(*) AS n FROM payments WHERE status = 'COMPLETED'"),
            "recent_users": count("SELECT COUNT(*) AS n FROM users WHERE created_at >= :since"),
            "recent_jobs": count("SELECT COUNT(*) AS n FROM jobs WHERE created_at >= :since"),
            "recent_applications": count("SELECT COUNT(*) AS n FROM applications WHERE applied_at >= :since"),
            "active_jobs": count(
                "SELECT COUNT(*) AS n FROM jobs WHERE status = 'PUBLISHED' AND (expires_at IS NULL OR expires_at >= :now)"
            ),
            "total_applications": total_applications,
            "success_rate": round(hires / total_applications * 100) if total_applications else 0,
            "data_retention_days": DATA_RETENTION_DAYS,
            "last_audit_date": now,
        }
    }


@router.get("/realtime-metrics")
async def get_realtime_metrics(admin: dict = Depends(get_current_admin)):
    """Logins in the last 30 minutes, new published jobs and applications in the last 24 hours."""
    now = datetime.utcnow()
    params = {"active_since": now - timedelta(minutes=30), "since": now - timedelta(hours=24)}
    return {
        "metrics": {
            "active_users": fetch_one(
                "SELECT COUNT(*) AS n FROM users WHERE last_login_at >= :active_since", params)["n"],
            "new_jobs": fetch_one(
                "SELECT COUNT(*) AS n FROM jobs WHERE created_at >= :since AND status = 'PUBLISHED'", params)["n"],
            "new_applications": fetch_one(
                "SELECT COUNT(*) AS n FROM applications WHERE applied_at >= :since", params)["n"],
        },
        "timestamp": now,
    }


@router.get("/recent-activity")
async def get_recent_activity(admin: dict = Depends(get_current_admin)):
    """
    Last 24 hours as one feed, newest first, at most 20 entries:
    5 published jobs, 5 applications, 5 registrations, 3 completed payments.
    """
    now = datetime.utcnow()
    params = {"since": now - timedelta(hours=24)}

    jobs = execute_raw_sql(
        """
        SELECT j.id, j.title, j.location, j.type, j.created_at, e.company_name
        FROM jobs j JOIN employers e ON j.employer_id = e.id
        WHERE j.created_at >= :since AND j.status = 'PUBLISHED'
        ORDER BY j.created_at DESC, j.id DESC LIMIT 5
        """,
        params
    )
    applications = execute_raw_sql(
        """
        SELECT a.id, a.status, a.applied_at, a.guest_name, j.title AS job_title, e.company_name, u.name AS applicant
        FROM applications a
        JOIN jobs j ON a.job_id = j.id
        JOIN employers e ON j.employer_id = e.id
        LEFT JOIN job_seekers js ON a.job_seeker_id = js.id
        LEFT JOIN users u ON js.user_id = u.id
        WHERE a.applied_at >= :since
        ORDER BY a.applied_at DESC, a.id DESC LIMIT 5
        """,
        params
    )
    users = execute_raw_sql(
        "SELECT id, email, name, role, created_at FROM users WHERE created_at >= :since"
        " ORDER BY created_at DESC, id DESC LIMIT 5",
        params
    )
    payments = execute_raw_sql(
        """
        SELECT p.id, p.amount, p.currency, p.type, p.created_at, e.company_name, u.name AS payer, u.email
        FROM payments p JOIN employers e ON p.employer_id = e.id JOIN users u ON e.user_id = u.id
        WHERE p.created_at >= :since AND p.status = 'COMPLETED'
        ORDER BY p.created_at DESC, p.id DESC LIMIT 3
        """,
        params
    )

    activities = []
    for job in jobs:
        activities.append({
            "id": f"job_{job['id']}",
            "type": "job_posted",
            "message": f"New job posted: {job['title']} at {job['company_name']}",
            "timestamp": as_datetime(job["created_at"]),
            "details": {"job_id": job["id"], "title": job["title"], "company": job["company_name"],
                        "location": job["location"], "type": job["type"]},
        })
    for application in applications:
        applicant = application["applicant"] or application["guest_name"] or "Anonymous"
        activities.append({
            "id": f"application_{application['id']}",
            "type": "application_submitted",
            "message": f"{applicant} applied for {application['job_title']}",
            "timestamp": as_datetime(application["applied_at"]),
            "details": {"application_id": application["id"], "job_title": application["job_title"],
                        "company": application["company_name"], "status": application["status"]},
        })
    for user in users:
        activities.append({
            "id": f"user_{user['id']}",
            "type": "user_registered",
            "message": f"New user registered: {user['name'] or user['email']}",
            "timestamp": as_datetime(user["created_at"]),
            "details": {"user_id": user["id"], "email": user["email"], "role": user["role"]},
        })
    for payment in payments:
        activities.append({
            "id": f"payment_{payment['id']}",
            "type": "payment_received",
            "message": f"Payment received from {payment['payer'] or payment['email'] or payment['company_name']}",
            "timestamp": as_datetime(payment["created_at"]),
            "details": {"payment_id": payment["id"], "amount": payment["amount"], "currency": payment["currency"],
                        "company": payment["company_name"], "type": payment["type"]},
        })

    activities.sort(key=lambda activity: activity["timestamp"], reverse=True)
    return {"activities": activities[:20], "timestamp": now}


def _grouped(sql: str, key: str, params: Optional[dict] = None) -> list:
    return [{key: row["value"], "count": row["n"]} for row in execute_raw_sql(sql, params or {})]


@router.get("/analytics/enhanced")
async def get_enhanced_analytics(admin: dict = Depends(get_current_admin)):
    """
    Platform analytics for the admin dashboard.

    Growth rates are the share of the total created in the last 30 days.
    Amounts are in cents.
    """
    now = datetime.utcnow()
    params = {
        "now": now,
        "last_30": now - timedelta(days=30),
        "last_7": now - timedelta(days=7),
        "last_year": now - timedelta(days=365),
        "flag": True,
    }

    def count(sql: str) -> int:
        return fetch_one(sql, params)["n"]

    # users
    total_users = count("SELECT COUNT(*) AS n FROM users")
    new_users_30 = count("SELECT COUNT(*) AS n FROM users WHERE created_at >= :last_30")
    users = {
        "total": total_users,
        "new_last_30_days": new_users_30,
        "new_last_7_days": count("SELECT COUNT(*) AS n FROM users WHERE created_at >= :last_7"),
        "active_last_30_days": count("SELECT COUNT(*) AS n FROM users WHERE last_login_at >= :last_30"),
        "growth_rate": _rate(new_users_30, total_users),
        "by_role": _grouped("SELECT role AS value, COUNT(*) AS n FROM users GROUP BY role ORDER BY role", "role"),
    }

    # jobs
    total_jobs = count("SELECT COUNT(*) AS n FROM jobs")
    active_jobs = count(
        "SELECT COUNT(*) AS n FROM jobs WHERE status = 'PUBLISHED' AND (expires_at IS NULL OR expires_at >= :now)"
    )
    new_jobs_30 = count("SELECT COUNT(*) AS n FROM jobs WHERE created_at >= :last_30")
    jobs = {
        "total": total_jobs,
        "active": active_jobs,
        "new_last_30_days": new_jobs_30,
        "new_last_7_days": count("SELECT COUNT(*) AS n FROM jobs WHERE created_at >= :last_7"),
        "growth_rate": _rate(new_jobs_30, total_jobs),
        "by_status": _grouped("SELECT status AS value, COUNT(*) AS n FROM jobs GROUP BY status ORDER BY status",
                              "status"),
        "by_type": _grouped(
            "SELECT type AS value, COUNT(*) AS n FROM jobs WHERE status = 'PUBLISHED' GROUP BY type ORDER BY type",
            "type"),
        "top_locations": _grouped(
            "SELECT location AS value, COUNT(*) AS n FROM jobs WHERE status = 'PUBLISHED'"
            " GROUP BY location ORDER BY n DESC, location LIMIT 10",
            "location"),
        "featured": count("SELECT COUNT(*) AS n FROM jobs WHERE featured = :flag AND status = 'PUBLISHED'"),
        "urgent": count("SELECT COUNT(*) AS n FROM jobs WHERE urgent = :flag AND status = 'PUBLISHED'"),
        "fill_rate": _rate(active_jobs, total_jobs),
    }

    # applications
    total_applications = count("SELECT COUNT(*) AS n FROM applications")
    new_applications_30 = count("SELECT COUNT(*) AS n FROM applications WHERE applied_at >= :last_30")
    recent = execute_raw_sql(
        "SELECT job_id, applied_at, viewed_at FROM applications WHERE applied_at >= :last_30", params
    )
    by_day = Counter(as_datetime(row["applied_at"]).date().isoformat() for row in recent)
    published_jobs = count("SELECT COUNT(*) AS n FROM jobs WHERE status = 'PUBLISHED'")
    applications = {
        "total": total_applications,
        "new_last_30_days": new_applications_30,
        "new_last_7_days": count("SELECT COUNT(*) AS n FROM applications WHERE applied_at >= :last_7"),
        "growth_rate": _rate(new_applications_30, total_applications),
        "by_status": _grouped(
            "SELECT status AS value, COUNT(*) AS n FROM applications GROUP BY status ORDER BY status", "status"),
        "by_day": [{"date": day, "count": by_day[day]} for day in sorted(by_day)],
        "conversion_rate": _rate(len({row["job_id"] for row in recent}), published_jobs),
        "average_per_job": round(total_applications / total_jobs, 1) if total_jobs else 0,
    }

    # employers
    total_employers = count("SELECT COUNT(*) AS n FROM employers")
    new_employers_30 = count("SELECT COUNT(*) AS n FROM employers WHERE created_at >= :last_30")
    top_employers = execute_raw_sql(
        """
        SELECT e.company_name,
               (SELECT COUNT(*) FROM jobs j WHERE j.employer_id = e.id AND j.status = 'PUBLISHED') AS job_count
        FROM employers e
        ORDER BY job_count DESC, e.company_name LIMIT 10
        """
    )
    employers = {
        "total": total_employers,
        "active": count(
            "SELECT COUNT(DISTINCT employer_id) AS n FROM jobs WHERE created_at >= :last_30"
        ),
        "new_last_30_days": new_employers_30,
        "growth_rate": _rate(new_employers_30, total_employers),
        "by_size": _grouped(
            "SELECT size AS value, COUNT(*) AS n FROM employers GROUP BY size ORDER BY size", "size"),
        "top_by_job_count": top_employers,
    }

    # revenue
    def revenue(since_key: Optional[str] = None) -> int:
        sql = "SELECT COALESCE(SUM(amount), 0) AS n FROM payments WHERE status = 'COMPLETED'"
        if since_key:
            sql += f" AND created_at >= :{since_key}"
        return fetch_one(sql, params)["n"]

    by_status = execute_raw_sql(
        "SELECT status, COUNT(*) AS count, COALESCE(SUM(amount), 0) AS amount FROM payments"
        " GROUP BY status ORDER BY status"
    )
    completed = execute_raw_sql(
        "SELECT amount, created_at FROM payments WHERE status = 'COMPLETED' AND created_at >= :last_year", params
    )
    by_month = {}
    for row in completed:
        month = as_datetime(row["created_at"]).strftime("%Y-%m")
        entry = by_month.setdefault(month, {"month": month, "revenue": 0, "count": 0})
        entry["revenue"] += row["amount"]
        entry["count"] += 1
    completed_total = revenue()
    completed_count = sum(row["count"] for row in by_status if row["status"] == "COMPLETED")
    revenue_totals = {
        "total": completed_total,
        "last_30_days": revenue("last_30"),
        "last_7_days": revenue("last_7"),
        "by_status": by_status,
        "by_type": execute_raw_sql(
            "SELECT type, COUNT(*) AS count, COALESCE(SUM(amount), 0) AS amount FROM payments"
            " WHERE status = 'COMPLETED' GROUP BY type ORDER BY type"
        ),
        "by_month": [by_month[month] for month in sorted(by_month)],
        "average_order_value": round(completed_total / completed_count) if completed_count else 0,
    }

    response_hours = [
        (as_datetime(row["viewed_at"]) - as_datetime(row["applied_at"])).total_seconds() / 3600
        for row in recent if row["viewed_at"]
    ]
    performance = {
        "average_response_time_hours": round(sum(response_hours) / len(response_hours), 1) if response_hours else 0,
        "gdpr_requests_processed": count(
            "SELECT COUNT(*) AS n FROM audit_logs WHERE action = 'DATA_EXPORT' AND created_at >= :last_30"
        ),
    }

    return {
        "analytics": {
            "users": users,
            "jobs": jobs,
            "applications": applications,
            "employers": employers,
            "revenue": revenue_totals,
            "performance": performance,
        },
        "generated_at": now,
    }


@router.get("/payments")
async def list_payments(
    status: Optional[PaymentStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: dict = Depends(get_current_admin),
):
    where = " WHERE 1 = 1"
    params = {}
    if status:
        where += " AND p.status = :status"
        params["status"] = status.value

    total = fetch_one("SELECT COUNT(*) AS n FROM payments p" + where, params)["n"]
    params.update({"limit": limit, "offset": (page - 1) * limit})
    payments = execute_raw_sql(
        """
        SELECT p.id, p.amount, p.currency, p.status, p.type, p.plan_type, p.stripe_payment_intent_id,
               p.job_id, p.created_at, e.id AS employer_id, e.company_name
        FROM payments p JOIN employers e ON p.employer_id = e.id
        """ + where + " ORDER BY p.created_at DESC, p.id DESC LIMIT :limit OFFSET :offset",
        params
    )
    return {"payments": payments, "pagination": _pagination(total, page, limit)}


@router.post("/notifications/send")
async def send_admin_notification(data: AdminNotification, request: Request, admin: dict = Depends(get_current_admin)):
    if data.type == "EMAIL":
        subject = data.subject or "Notification from Cyprus Jobs"
        sent = send_email(data.recipient, subject, data.message)
    else:
        sent = send_sms(data.recipient, data.message)

    log_audit(
        admin["user_id"], "SEND_NOTIFICATION", "Notification",
        changes={"type": data.type, "recipient": data.recipient, "subject": data.subject, "sent": sent},
        request=request,
    )
    if not sent:
        raise HTTPException(status_code=502, detail=f"Failed to send {data.type.lower()} notification")
    return {"success": True, "message": f"{data.type.title()} notification sent"}
