from datetime import datetime

from jobboard.services import notification_service
from jobboard.services.email_service import send_email
from jobboard.services.notification_service import (
    format_salary, get_email_template, get_sms_template, send_notification,
)
from jobboard.services.sms_service import is_valid_phone, send_sms


def test_format_salary():
    assert format_salary(30000, 45000) == "€30,000 - €45,000"
    assert format_salary(30000, None) == "€30,000+"
    assert format_salary(None, 45000) == "Competitive"


def test_job_alert_template_lists_every_job():
    jobs = [
        {"id": 1, "title": "Backend Developer", "company_name": "Acme", "location": "Limassol",
         "type": "FULL_TIME", "salary_min": 30000, "salary_max": None},
        {"id": 2, "title": "Data <Engineer>", "company_name": "Bank", "location": "Nicosia",
         "type": "CONTRACT", "salary_min": None, "salary_max": None},
    ]
    template = get_email_template("JOB_ALERT", {"user_name": "Maria", "alert_title": "Tech", "jobs": jobs})
    assert template["subject"] == "New Job Matches: Tech"
    assert "We found 2 new jobs that match your alert \"Tech\"" in template["text"]
    assert "1. Backend Developer at Acme" in template["text"]
    assert "Salary: €30,000+" in template["text"]
    assert "/jobs/2" in template["text"]
    assert "Data &lt;Engineer&gt;" in template["html"]


def test_application_update_template():
    template = get_email_template("APPLICATION_UPDATE", {
        "user_name": "Maria", "job_title": "Designer", "company_name": "Acme",
        "status": "INTERVIEW", "application_id": 7,
    })
    assert template["subject"] == "Application Status Update: Designer"
    assert "Status: INTERVIEW" in template["text"]
    assert "Message:" not in template["text"]
    assert "/applications/7" in template["text"]


def test_new_application_template_truncates_bio():
    template = get_email_template("NEW_APPLICATION", {
        "user_name": "Acme", "job_title": "Designer", "applicant_name": "Maria Georgiou",
        "applied_at": datetime(2026, 3, 5), "applicant_bio": "x" * 300,
    })
    assert "Applied: 05/03/2026" in template["text"]
    assert f"Bio: {'x' * 150}..." in template["text"]


def test_unknown_type_gets_generic_template():
    template = get_email_template("SOMETHING_ELSE", {})
    assert template["subject"] == "Notification from Cyprus Jobs"
    assert get_sms_template("SOMETHING_ELSE", {}) == "You have a new notification from Cyprus Jobs."


def test_sms_templates():
    assert get_sms_template("JOB_ALERT", {"jobs": [{}, {}], "alert_title": "Tech"}).startswith(
        "Cyprus Jobs: 2 new jobs match \"Tech\""
    )
    assert "is now HIRED" in get_sms_template("APPLICATION_UPDATE", {"job_title": "Dev", "status": "HIRED"})


def test_phone_validation():
    assert is_valid_phone("+357 99 123456")
    assert is_valid_phone("(22) 123-456")
    assert not is_valid_phone("call me")
    assert not is_valid_phone("")


def test_send_notification_respects_preferences(monkeypatch, make_seeker):
    seeker = make_seeker()
    emails, texts = [], []
    monkeypatch.setattr(notification_service, "send_email",
                        lambda to, subject, body, html=None: emails.append(to) or True)
    monkeypatch.setattr(notification_service, "send_sms", lambda phone, message: texts.append(phone) or True)

    results = send_notification(
        {"user_id": seeker["user_id"], "email": "a@example.com", "phone": "+35799000000", "name": "A",
         "preferences": {"email": True, "sms": False, "push": True}},
        "APPLICATION_UPDATE", {"job_title": "Dev", "status": "VIEWED"},
    )
    assert results == {"email": True, "sms": False, "push": True}
    assert emails == ["a@example.com"]
    assert texts == []


def test_send_notification_survives_channel_errors(monkeypatch, make_seeker):
    seeker = make_seeker()

    def broken(*args, **kwargs):
        raise OSError("smtp down")

    monkeypatch.setattr(notification_service, "send_email", broken)
    results = send_notification(
        {"user_id": seeker["user_id"], "email": "a@example.com", "preferences": {"email": True}},
        "JOB_ALERT", {"jobs": [], "alert_title": "x"},
    )
    assert results == {"email": False, "sms": False, "push": False}


def test_unconfigured_channels_report_failure():
    assert send_email("a@example.com", "Hi", "Body") is False
    assert send_sms("+35799000000", "Hi") is False
