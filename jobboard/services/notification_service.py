"""
Notification Service - templated email / SMS / push fan-out.

Templates:
- JOB_ALERT           new postings matching a saved alert
- APPLICATION_UPDATE  employer moved an application to a new status
- NEW_APPLICATION     employer received an application
- anything else       generic notice

send_notification() never raises; each channel reports True/False.
"""

import logging
from datetime import datetime
from html import escape
from typing import Optional

from jobboard.core.config import get_settings
from jobboard.services.audit_service import log_audit
from jobboard.services.email_service import send_email
from jobboard.services.realtime import publish
from jobboard.services.sms_service import send_sms

logger = logging.getLogger(__name__)

BRAND = "Cyprus Jobs"


def format_salary(salary_min: Optional[int], salary_max: Optional[int]) -> str:
    if salary_min and salary_max:
        return f"€{salary_min:,} - €{salary_max:,}"
    if salary_min:
        return f"€{salary_min:,}+"
    return "Competitive"


def _plural(count: int) -> str:
    return "s" if count > 1 else ""


def _html_page(heading: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{escape(heading)}</title></head>"
        "<body style=\"font-family: Arial, sans-serif; line-height: 1.6; color: #333;\">"
        f"<h1>{escape(heading)}</h1><p>{BRAND} Platform</p>{body}"
        f"<p style=\"font-size: 12px; color: #6b7280;\">&copy; {datetime.utcnow().year} {BRAND}. All rights reserved.</p>"
        "</body></html>"
    )


def get_email_template(notification_type: str, data: dict) -> dict:
    """Return {subject, text, html} for a notification type."""
    base_url = get_settings().app_url
    user_name = data.get("user_name") or "there"

    if notification_type == "JOB_ALERT":
        jobs = data.get("jobs", [])
        alert_title = data.get("alert_title", "")
        lines = [
            f"Hi {user_name},",
            "",
            f"We found {len(jobs)} new job{_plural(len(jobs))} that match your alert \"{alert_title}\":",
        ]
        cards = []
        for index, job in enumerate(jobs, start=1):
            salary = format_salary(job.get("salary_min"), job.get("salary_max"))
            lines += [
                "",
                f"{index}. {job['title']} at {job.get('company_name', '')}",
                f"   Location: {job.get('location', '')}",
                f"   Type: {job.get('type', '')}",
                f"   Salary: {salary}",
                f"   View: {base_url}/jobs/{job['id']}",
            ]
            cards.append(
                f"<div><h3>{escape(job['title'])}</h3>"
                f"<p>{escape(job.get('company_name') or '')}</p>"
                f"<p>{escape(job.get('location') or '')} | {escape(job.get('type') or '')} | {escape(salary)}</p>"
                f"<a href=\"{base_url}/jobs/{job['id']}\">View Job</a></div>"
            )
        lines += [
            "",
            f"You can view all matching jobs and manage your alerts here: {base_url}/job-alerts",
            "",
            "Best regards,",
            f"{BRAND} Team",
        ]
        html_body = (
            f"<p>Hi {escape(user_name)},</p>"
            f"<p>We found <strong>{len(jobs)} new job{_plural(len(jobs))}</strong> that match your alert "
            f"\"<strong>{escape(alert_title)}</strong>\":</p>"
            + "".join(cards)
            + f"<p><a href=\"{base_url}/job-alerts\">Manage Your Alerts</a></p>"
        )
        return {
            "subject": f"New Job Matches: {alert_title}",
            "text": "\n".join(lines),
            "html": _html_page("New Job Matches", html_body),
        }

    if notification_type == "APPLICATION_UPDATE":
        message = data.get("message")
        link = f"{base_url}/applications/{data.get('application_id')}"
        lines = [
            f"Hi {user_name},",
            "",
            "Your application status has been updated:",
            "",
            f"Job: {data.get('job_title')}",
            f"Company: {data.get('company_name')}",
            f"Status: {data.get('status')}",
        ]
        if message:
            lines.append(f"Message: {message}")
        lines += ["", f"View your application here: {link}", "", "Best regards,", f"{BRAND} Team"]
        html_body = (
            f"<p>Hi {escape(user_name)},</p><p>Your application status has been updated:</p>"
            f"<h3>{escape(str(data.get('job_title')))}</h3>"
            f"<p><strong>Company:</strong> {escape(str(data.get('company_name')))}</p>"
            f"<p><strong>Status:</strong> {escape(str(data.get('status')))}</p>"
            + (f"<p><strong>Message:</strong> {escape(message)}</p>" if message else "")
            + f"<p><a href=\"{link}\">View Application</a></p>"
        )
        return {
            "subject": f"Application Status Update: {data.get('job_title')}",
            "text": "\n".join(lines),
            "html": _html_page("Application Status Update", html_body),
        }

    if notification_type == "NEW_APPLICATION":
        link = f"{base_url}/dashboard/employer/applications"
        applied_at = data.get("applied_at") or datetime.utcnow()
        applied = applied_at.strftime("%d/%m/%Y") if isinstance(applied_at, datetime) else str(applied_at)[:10]
        bio = data.get("applicant_bio")
        lines = [
            f"Hi {user_name},",
            "",
            "You have received a new application for your job posting:",
            "",
            f"Job: {data.get('job_title')}",
            f"Applicant: {data.get('applicant_name')}",
            f"Applied: {applied}",
        ]
        if bio:
            lines.append(f"Bio: {bio[:150]}...")
        lines += ["", f"Review the application here: {link}", "", "Best regards,", f"{BRAND} Team"]
        html_body = (
            f"<p>Hi {escape(user_name)},</p><p>You have received a new application for your job posting:</p>"
            f"<h3>{escape(str(data.get('job_title')))}</h3>"
            f"<p><strong>Applicant:</strong> {escape(str(data.get('applicant_name')))}</p>"
            f"<p><strong>Applied:</strong> {escape(applied)}</p>"
            + (f"<p><strong>Bio:</strong> {escape(bio[:150])}...</p>" if bio else "")
            + f"<p><a href=\"{link}\">Review Application</a></p>"
        )
        return {
            "subject": f"New Application Received: {data.get('job_title')}",
            "text": "\n".join(lines),
            "html": _html_page("New Application Received", html_body),
        }

    return {
        "subject": f"Notification from {BRAND}",
        "text": f"You have a new notification from {BRAND}.",
        "html": f"<p>You have a new notification from {BRAND}.</p>",
    }


def get_sms_template(notification_type: str, data: dict) -> str:
    base_url = get_settings().app_url

    if notification_type == "JOB_ALERT":
        count = len(data.get("jobs", []))
        return f"{BRAND}: {count} new job{_plural(count)} match \"{data.get('alert_title')}\". View: {base_url}/job-alerts"
    if notification_type == "APPLICATION_UPDATE":
        return (
            f"{BRAND}: Your application for {data.get('job_title')} is now {data.get('status')}. "
            f"View: {base_url}/applications/{data.get('application_id')}"
        )
    if notification_type == "NEW_APPLICATION":
        return (
            f"{BRAND}: New application for {data.get('job_title')} from {data.get('applicant_name')}. "
            f"Review: {base_url}/dashboard/employer/applications"
        )
    return f"You have a new notification from {BRAND}."


def send_push(user_id: int, notification_type: str, data: dict) -> bool:
    """Record an in-app notification and relay it to the user's sockets."""
    try:
        log_audit(
            user_id, "PUSH_NOTIFICATION", "Notification",
            changes={"type": notification_type, "data": data},
            ip_address="system", user_agent="notification-service",
        )
        publish([f"user_{user_id}"], "notification", {"type": notification_type, "data": data})
        return True
    except Exception:
        logger.exception("Push notification to user %s failed", user_id)
        return False


def send_notification(recipient: dict, notification_type: str, data: dict) -> dict:
    """
    Fan a notification out over the recipient's enabled channels.

    recipient: {user_id, email, phone, name, preferences: {email, sms, push}}
    Returns {"email": bool, "sms": bool, "push": bool}.
    """
    prefs = recipient.get("preferences") or {}
    data = {**data, "user_name": recipient.get("name"), "user_email": recipient.get("email")}
    results = {"email": False, "sms": False, "push": False}

    if prefs.get("email") and recipient.get("email"):
        template = get_email_template(notification_type, data)
        try:
            results["email"] = send_email(recipient["email"], template["subject"], template["text"], template["html"])
        except Exception:
            logger.exception("Email channel failed for %s", recipient.get("email"))

    if prefs.get("sms") and recipient.get("phone"):
        try:
            results["sms"] = send_sms(recipient["phone"], get_sms_template(notification_type, data))
        except Exception:
            logger.exception("SMS channel failed for %s", recipient.get("phone"))

    if prefs.get("push") and recipient.get("user_id"):
        results["push"] = send_push(recipient["user_id"], notification_type, data)

    try:
        log_audit(
            recipient.get("user_id"), "NOTIFICATION_SENT", "Notification",
            changes={"type": notification_type, "results": results},
            ip_address="system", user_agent="notification-service",
        )
    except Exception:
        logger.exception("Could not audit notification for user %s", recipient.get("user_id"))

    return results
