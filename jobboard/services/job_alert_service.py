"""
Job Alert Processing

For every active alert whose owner consented to job alerts:
1. Find PUBLISHED jobs from the last 7 days matching the alert filters
2. Drop jobs the seeker already applied to
3. Notify by email and/or SMS per the alert settings
4. Audit JOB_ALERT_TRIGGERED

One alert failing is logged and does not stop the run.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from jobboard.db.postgres import execute_raw_sql, fetch_one
from jobboard.services.audit_service import log_audit
from jobboard.services.notification_service import send_notification

logger = logging.getLogger(__name__)

LOOKBACK_DAYS = 7
MAX_JOBS_PER_ALERT = 50
PROCESSOR_AGENT = "job-alert-processor"

ALERT_SELECT = """
    SELECT ja.id, ja.job_seeker_id, ja.title, ja.location, ja.industry, ja.job_type,
           ja.salary_min, ja.salary_max, ja.email_alerts, ja.sms_alerts, ja.frequency,
           js.first_name, js.last_name, js.phone, u.id AS user_id, u.email, u.name
    FROM job_alerts ja
    JOIN job_seekers js ON ja.job_seeker_id = js.id
    JOIN users u ON js.user_id = u.id
"""


def build_salary_clause(salary_min: Optional[int], salary_max: Optional[int], params: dict) -> str:
    """
    Salary filter for an alert. Jobs that leave one bound open still match
    on the bound they do state.
    """
    if salary_min and salary_max:
        params["alert_min"] = salary_min
        params["alert_max"] = salary_max
        return (
            " AND ((j.salary_min >= :alert_min AND j.salary_max <= :alert_max)"
            " OR (j.salary_min >= :alert_min AND j.salary_max IS NULL)"
            " OR (j.salary_min IS NULL AND j.salary_max <= :alert_max))"
        )
    if salary_min:
        params["alert_min"] = salary_min
        return " AND (j.salary_min >= :alert_min OR j.salary_min IS NULL)"
    if salary_max:
        params["alert_max"] = salary_max
        return " AND (j.salary_max <= :alert_max OR j.salary_max IS NULL)"
    return ""


def find_matching_jobs(alert: dict, now: Optional[datetime] = None) -> list:
    """Recent published jobs matching one alert, newest first, at most 50."""
    now = now or datetime.utcnow()
    sql = """
        SELECT j.id, j.title, j.location, j.type, j.salary_min, j.salary_max,
               j.published_at, e.company_name
        FROM jobs j
        JOIN employers e ON j.employer_id = e.id
        WHERE j.status = 'PUBLISHED' AND j.published_at >= :since
    """
    params = {"since": now - timedelta(days=LOOKBACK_DAYS)}

    if alert.get("location"):
        sql += " AND LOWER(j.location) LIKE :location"
        params["location"] = f"%{alert['location'].lower()}%"
    if alert.get("job_type"):
        sql += " AND j.type = :job_type"
        params["job_type"] = alert["job_type"]
    if alert.get("industry"):
        sql += " AND LOWER(e.industry) LIKE :industry"
        params["industry"] = f"%{alert['industry'].lower()}%"
    sql += build_salary_clause(alert.get("salary_min"), alert.get("salary_max"), params)

    sql += f" ORDER BY j.published_at DESC LIMIT {MAX_JOBS_PER_ALERT}"
    return execute_raw_sql(sql, params)


def applied_job_ids(job_seeker_id: int) -> set:
    rows = execute_raw_sql(
        "SELECT job_id FROM applications WHERE job_seeker_id = :sid",
        {"sid": job_seeker_id}
    )
    return {r["job_id"] for r in rows}


def process_alert(alert: dict, ip_address: str = "system") -> dict:
    """
    Run one alert. Returns {"jobs_found": n, "notifications_sent": n}.
    """
    jobs = find_matching_jobs(alert)
    already_applied = applied_job_ids(alert["job_seeker_id"])
    new_jobs = [job for job in jobs if job["id"] not in already_applied]

    if not new_jobs:
        return {"jobs_found": 0, "notifications_sent": 0}

    recipient = {
        "user_id": alert["user_id"],
        "email": alert["email"],
        "phone": alert.get("phone"),
        "name": alert.get("name") or f"{alert['first_name']} {alert['last_name']}",
        "preferences": {
            "email": bool(alert["email_alerts"]),
            "sms": bool(alert["sms_alerts"]) and bool(alert.get("phone")),
            "push": False,
        },
    }
    results = send_notification(recipient, "JOB_ALERT", {"alert_title": alert["title"], "jobs": new_jobs})
    sent = int(results["email"]) + int(results["sms"])

    log_audit(
        alert["user_id"], "JOB_ALERT_TRIGGERED", "JobAlert", alert["id"],
        changes={"jobs_found": len(new_jobs), "notifications_sent": sent, "alert_title": alert["title"]},
        ip_address=ip_address, user_agent=PROCESSOR_AGENT,
    )
    logger.info("Alert %s: %d new jobs, %d notifications", alert["id"], len(new_jobs), sent)
    return {"jobs_found": len(new_jobs), "notifications_sent": sent}


def process_job_alerts(ip_address: str = "system") -> dict:
    """Process every active, consented alert."""
    alerts = execute_raw_sql(
        ALERT_SELECT
        + " WHERE ja.active = :active AND u.job_alert_consent = :consent AND u.deleted_at IS NULL"
        + " ORDER BY ja.id",
        {"active": True, "consent": True}
    )
    logger.info("Processing %d job alerts", len(alerts))

    processed = 0
    total_sent = 0
    for alert in alerts:
        try:
            total_sent += process_alert(alert, ip_address)["notifications_sent"]
        except Exception:
            logger.exception("Error processing job alert %s", alert["id"])
            continue
        processed += 1

    return {
        "message": "Job alerts processed successfully",
        "alerts_processed": processed,
        "notifications_sent": total_sent,
    }


def process_single_alert(alert_id: int, ip_address: str = "system") -> Optional[dict]:
    """Process one alert regardless of schedule. None if it does not exist."""
    alert = fetch_one(ALERT_SELECT + " WHERE ja.id = :id", {"id": alert_id})
    if not alert:
        return None

    result = process_alert(alert, ip_address)
    return {
        "message": "Alert processed",
        "alert_id": alert_id,
        "jobs_found": result["jobs_found"],
        "notifications_sent": result["notifications_sent"],
    }


def alert_counts() -> dict:
    """Alerts the next run would process, and jobs inside the lookback window."""
    since = datetime.utcnow() - timedelta(days=LOOKBACK_DAYS)
    active = fetch_one(
        """
        SELECT COUNT(*) AS n
        FROM job_alerts ja
        JOIN job_seekers js ON ja.job_seeker_id = js.id
        JOIN users u ON js.user_id = u.id
        WHERE ja.active = :active AND u.job_alert_consent = :consent AND u.deleted_at IS NULL
        """,
        {"active": True, "consent": True}
    )
    recent = fetch_one(
        "SELECT COUNT(*) AS n FROM jobs WHERE status = 'PUBLISHED' AND published_at >= :since",
        {"since": since}
    )
    return {"active_alerts": active["n"], "recent_jobs": recent["n"]}
