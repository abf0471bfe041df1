"""
Relational schema - table definitions and bootstrap.

Tables are declared with SQLAlchemy Core so the same DDL runs on
PostgreSQL in production and SQLite in tests. Queries elsewhere are
raw SQL against these tables.
"""

import logging

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, MetaData, String, Table, Text,
    UniqueConstraint, false, func, true,
)

logger = logging.getLogger(__name__)

metadata = MetaData()


def _timestamps():
    return [
        Column("created_at", DateTime, nullable=False, server_default=func.now()),
        Column("updated_at", DateTime, nullable=False, server_default=func.now()),
    ]


users = Table(
    "users", metadata,
    Column("id", Integer, primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", String(255)),
    Column("name", String(200)),
    Column("role", String(20), nullable=False, server_default="JOB_SEEKER"),
    Column("email_verified", DateTime),
    Column("last_login_at", DateTime),
    Column("data_retention_consent", Boolean, nullable=False, server_default=false()),
    Column("marketing_consent", Boolean, nullable=False, server_default=false()),
    Column("job_alert_consent", Boolean, nullable=False, server_default=false()),
    Column("deleted_at", DateTime),
    *_timestamps(),
)

job_seekers = Table(
    "job_seekers", metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("phone", String(50)),
    Column("location", String(200), nullable=False),
    Column("country", String(100), nullable=False, server_default="Cyprus"),
    Column("bio", Text),
    Column("title", String(200)),
    Column("experience", Integer),
    Column("education", Text),
    Column("cv_url", String(500)),
    Column("cv_file_name", String(255)),
    Column("cv_uploaded_at", DateTime),
    Column("profile_visibility", String(20), nullable=False, server_default="PUBLIC"),
    *_timestamps(),
)

employers = Table(
    "employers", metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
    Column("company_name", String(200), nullable=False),
    Column("description", Text),
    Column("website", String(500)),
    Column("industry", String(100)),
    Column("size", String(20)),
    Column("logo", String(500)),
    Column("contact_name", String(200)),
    Column("contact_email", String(255)),
    Column("contact_phone", String(50)),
    Column("address", String(300)),
    Column("city", String(100)),
    Column("postal_code", String(20)),
    Column("country", String(100), nullable=False, server_default="Cyprus"),
    *_timestamps(),
)

# Public company page details, one row per employer, created on first access
companies = Table(
    "companies", metadata,
    Column("id", Integer, primary_key=True),
    Column("employer_id", Integer, ForeignKey("employers.id", ondelete="CASCADE"), nullable=False, unique=True),
    Column("description", Text),
    Column("mission", Text),
    Column("company_values", Text),
    Column("benefits", Text),
    Column("linkedin", String(500)),
    Column("facebook", String(500)),
    Column("twitter", String(500)),
    Column("instagram", String(500)),
    *_timestamps(),
)

jobs = Table(
    "jobs", metadata,
    Column("id", Integer, primary_key=True),
    Column("employer_id", Integer, ForeignKey("employers.id", ondelete="CASCADE"), nullable=False),
    Column("title", String(200), nullable=False),
    Column("description", Text, nullable=False),
    Column("requirements", Text),
    Column("responsibilities", Text),
    Column("location", String(200), nullable=False),
    Column("remote", String(20), nullable=False, server_default="ONSITE"),
    Column("country", String(100), nullable=False, server_default="Cyprus"),
    Column("type", String(20), nullable=False),
    Column("salary_min", Integer),
    Column("salary_max", Integer),
    Column("salary_currency", String(3), nullable=False, server_default="EUR"),
    Column("application_email", String(255)),
    Column("application_url", String(500)),
    Column("status", String(20), nullable=False, server_default="DRAFT"),
    Column("featured", Boolean, nullable=False, server_default=false()),
    Column("urgent", Boolean, nullable=False, server_default=false()),
    Column("expires_at", DateTime),
    Column("published_at", DateTime),
    *_timestamps(),
)

skills = Table(
    "skills", metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("category", String(100)),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

job_seeker_skills = Table(
    "job_seeker_skills", metadata,
    Column("id", Integer, primary_key=True),
    Column("job_seeker_id", Integer, ForeignKey("job_seekers.id", ondelete="CASCADE"), nullable=False),
    Column("skill_id", Integer, ForeignKey("skills.id", ondelete="CASCADE"), nullable=False),
    Column("level", String(20), nullable=False, server_default="INTERMEDIATE"),
    UniqueConstraint("job_seeker_id", "skill_id"),
)

job_skills = Table(
    "job_skills", metadata,
    Column("id", Integer, primary_key=True),
    Column("job_id", Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False),
    Column("skill_id", Integer, ForeignKey("skills.id", ondelete="CASCADE"), nullable=False),
    UniqueConstraint("job_id", "skill_id"),
)

applications = Table(
    "applications", metadata,
    Column("id", Integer, primary_key=True),
    Column("job_seeker_id", Integer, ForeignKey("job_seekers.id", ondelete="CASCADE")),
    Column("job_id", Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False),
    Column("guest_email", String(255)),
    Column("guest_name", String(200)),
    Column("guest_phone", String(50)),
    Column("cover_letter", Text),
    Column("cover_letter_url", String(500)),
    Column("cv_url", String(500)),
    Column("status", String(20), nullable=False, server_default="APPLIED"),
    Column("applied_at", DateTime, nullable=False, server_default=func.now()),
    Column("viewed_at", DateTime),
    Column("responded_at", DateTime),
    Column("notes", Text),
    *_timestamps(),
    UniqueConstraint("job_seeker_id", "job_id"),
)

saved_jobs = Table(
    "saved_jobs", metadata,
    Column("id", Integer, primary_key=True),
    Column("job_seeker_id", Integer, ForeignKey("job_seekers.id", ondelete="CASCADE"), nullable=False),
    Column("job_id", Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    UniqueConstraint("job_seeker_id", "job_id"),
)

job_alerts = Table(
    "job_alerts", metadata,
    Column("id", Integer, primary_key=True),
    Column("job_seeker_id", Integer, ForeignKey("job_seekers.id", ondelete="CASCADE"), nullable=False),
    Column("title", String(200), nullable=False),
    Column("location", String(200)),
    Column("industry", String(100)),
    Column("job_type", String(20)),
    Column("salary_min", Integer),
    Column("salary_max", Integer),
    Column("email_alerts", Boolean, nullable=False, server_default=true()),
    Column("sms_alerts", Boolean, nullable=False, server_default=false()),
    Column("frequency", String(20), nullable=False, server_default="DAILY"),
    Column("active", Boolean, nullable=False, server_default=true()),
    *_timestamps(),
)

subscriptions = Table(
    "subscriptions", metadata,
    Column("id", Integer, primary_key=True),
    Column("employer_id", Integer, ForeignKey("employers.id", ondelete="CASCADE"), nullable=False),
    Column("plan", String(20), nullable=False),
    Column("status", String(20), nullable=False, server_default="ACTIVE"),
    Column("starts_at", DateTime, nullable=False),
    Column("ends_at", DateTime, nullable=False),
    Column("cancelled_at", DateTime),
    Column("stripe_subscription_id", String(255)),
    Column("stripe_customer_id", String(255)),
    *_timestamps(),
)

payments = Table(
    "payments", metadata,
    Column("id", Integer, primary_key=True),
    Column("employer_id", Integer, ForeignKey("employers.id", ondelete="CASCADE"), nullable=False),
    Column("job_id", Integer, ForeignKey("jobs.id", ondelete="SET NULL")),
    Column("subscription_id", Integer, ForeignKey("subscriptions.id", ondelete="SET NULL")),
    Column("amount", Integer, nullable=False),
    Column("currency", String(3), nullable=False, server_default="eur"),
    Column("status", String(20), nullable=False, server_default="PENDING"),
    Column("type", String(20), nullable=False),
    Column("plan_type", String(20)),
    Column("stripe_payment_intent_id", String(255), unique=True),
    Column("stripe_customer_id", String(255)),
    *_timestamps(),
)

consent_logs = Table(
    "consent_logs", metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("consent_type", String(30), nullable=False),
    Column("action", String(10), nullable=False),
    Column("ip_address", String(100)),
    Column("user_agent", String(500)),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

audit_logs = Table(
    "audit_logs", metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="SET NULL")),
    Column("action", String(100), nullable=False),
    Column("entity_type", String(100)),
    Column("entity_id", String(100)),
    Column("changes", Text),
    Column("ip_address", String(100)),
    Column("user_agent", String(500)),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

newsletter_subscribers = Table(
    "newsletter_subscribers", metadata,
    Column("id", Integer, primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(200)),
    Column("preferences", Text),
    Column("active", Boolean, nullable=False, server_default=true()),
    Column("subscribed_at", DateTime, nullable=False, server_default=func.now()),
    Column("unsubscribed_at", DateTime),
)

saved_searches = Table(
    "saved_searches", metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("name", String(120), nullable=False),
    Column("query", String(300)),
    Column("location", String(200)),
    Column("filters", Text, nullable=False, server_default="{}"),
    Column("alert_enabled", Boolean, nullable=False, server_default=false()),
    Column("alert_frequency", String(20), nullable=False, server_default="DAILY"),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

recent_searches = Table(
    "recent_searches", metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("query", String(300), nullable=False, server_default=""),
    Column("location", String(200), nullable=False, server_default=""),
    Column("filters", Text),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)


def init_db(bind=None) -> None:
    """Create any missing tables."""
    if bind is None:
        from jobboard.db.postgres import engine
        bind = engine
    metadata.create_all(bind)
    logger.info("Database tables ready (%d tables)", len(metadata.tables))


def drop_db(bind=None) -> None:
    if bind is None:
        from jobboard.db.postgres import engine
        bind = engine
    metadata.drop_all(bind)
