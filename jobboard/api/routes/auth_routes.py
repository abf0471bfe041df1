"""
Authentication Routes

POST /auth/register/job-seeker - Register job seeker account + profile
POST /auth/register/employer - Register employer account + company profile
POST /auth/login - Login and get JWT token
GET /auth/me - Get current user info
"""

import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException, Depends, Request
from sqlalchemy import text

from jobboard.db.postgres import get_db_session
from jobboard.core.auth import hash_password, verify_password, create_access_token, get_current_user
from jobboard.services.audit_service import log_audit, log_consent
from jobboard.schemas.schemas import (
    JobSeekerRegister, EmployerRegister, LoginRequest, TokenResponse, UserResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _email_taken(db, email: str) -> bool:
    return db.execute(text("SELECT id FROM users WHERE email = :email"), {"email": email}).fetchone() is not None


def _create_user(db, email: str, password: str, name: str, role: str, consents: dict) -> int:
    result = db.execute(
        text("""
            INSERT INTO users (email, password_hash, name, role,
                data_retention_consent, marketing_consent, job_alert_consent)
            VALUES (:email, :password_hash, :name, :role, :retention, :marketing, :alerts)
            RETURNING id
        """),
        {
            "email": email,
            "password_hash": hash_password(password),
            "name": name,
            "role": role,
            "retention": consents["DATA_RETENTION"],
            "marketing": consents["MARKETING"],
            "alerts": consents["JOB_ALERTS"],
        }
    )
    return result.fetchone()[0]


def _log_granted_consents(db, user_id: int, consents: dict, request: Request) -> None:
    for consent_type, granted in consents.items():
        if granted:
            log_consent(user_id, consent_type, "GRANTED", request, db=db)


@router.post("/register/job-seeker", response_model=TokenResponse, status_code=201)
async def register_job_seeker(data: JobSeekerRegister, request: Request):
    """Create a job seeker account and its profile in one step."""
    email = data.email.lower()
    consents = {
        "DATA_RETENTION": data.data_retention_consent,
        "MARKETING": data.marketing_consent,
        "JOB_ALERTS": data.job_alert_consent,
    }
    with get_db_session() as db:
        if _email_taken(db, email):
            raise HTTPException(status_code=400, detail="User with this email already exists")

        user_id = _create_user(
            db, email, data.password, f"{data.first_name} {data.last_name}", "JOB_SEEKER", consents
        )
        profile = db.execute(
            text("""
                INSERT INTO job_seekers (user_id, first_name, last_name, phone, location, country, profile_visibility)
                VALUES (:user_id, :first_name, :last_name, :phone, :location, 'Cyprus', 'PUBLIC')
                RETURNING id
            """),
            {
                "user_id": user_id, "first_name": data.first_name, "last_name": data.last_name,
                "phone": data.phone, "location": data.location,
            }
        )
        job_seeker_id = profile.fetchone()[0]

        _log_granted_consents(db, user_id, consents, request)
        log_audit(
            user_id, "USER_CREATED", "User", user_id,
            changes={"role": "JOB_SEEKER", "job_seeker_id": job_seeker_id, "consents": consents},
            request=request, db=db,
        )

    logger.info("Registered job seeker user %s", user_id)
    token = create_access_token(data={"sub": str(user_id), "role": "JOB_SEEKER"})
    return TokenResponse(access_token=token, user_id=user_id, role="JOB_SEEKER")


@router.post("/register/employer", response_model=TokenResponse, status_code=201)
async def register_employer(data: EmployerRegister, request: Request):
    """Create an employer account and company profile. Employers never get job alerts."""
    email = data.email.lower()
    consents = {
        "DATA_RETENTION": data.data_retention_consent,
        "MARKETING": data.marketing_consent,
        "JOB_ALERTS": False,
    }
    with get_db_session() as db:
        if _email_taken(db, email):
            raise HTTPException(status_code=400, detail="User with this email already exists")

        user_id = _create_user(db, email, data.password, data.contact_name, "EMPLOYER", consents)
        profile = db.execute(
            text("""
                INSERT INTO employers (user_id, company_name, description, website, industry, size,
                    contact_name, contact_email, contact_phone, country)
                VALUES (:user_id, :company_name, :description, :website, :industry, :size,
                    :contact_name, :contact_email, :contact_phone, 'Cyprus')
                RETURNING id
            """),
            {
                "user_id": user_id, "company_name": data.company_name, "description": data.description,
                "website": data.website, "industry": data.industry,
                "size": data.size.value if data.size else None,
                "contact_name": data.contact_name, "contact_email": email,
                "contact_phone": data.contact_phone,
            }
        )
        employer_id = profile.fetchone()[0]

        _log_granted_consents(db, user_id, consents, request)
        log_audit(
            user_id, "USER_CREATED", "User", user_id,
            changes={"role": "EMPLOYER", "employer_id": employer_id, "company_name": data.company_name},
            request=request, db=db,
        )

    logger.info("Registered employer user %s", user_id)
    token = create_access_token(data={"sub": str(user_id), "role": "EMPLOYER"})
    return TokenResponse(access_token=token, user_id=user_id, role="EMPLOYER")


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, request: Request):
    """
    Login and receive JWT access token.

    Include token in requests: Authorization: Bearer <token>
    """
    with get_db_session() as db:
        user = db.execute(
            text("SELECT id, password_hash, role, deleted_at FROM users WHERE email = :email"),
            {"email": data.email.lower()}
        ).fetchone()

        if not user or user[3] is not None or not verify_password(data.password, user[1]):
            raise HTTPException(status_code=401, detail="Invalid email or password")

        user_id, _, role, _ = user
        if data.role and data.role.value != role:
            raise HTTPException(status_code=401, detail="Invalid role for this account")

        db.execute(
            text("UPDATE users SET last_login_at = :now WHERE id = :id"),
            {"now": datetime.utcnow(), "id": user_id}
        )
        log_audit(user_id, "USER_LOGIN", "User", user_id, request=request, db=db)

    token = create_access_token(data={"sub": str(user_id), "role": role})
    return TokenResponse(access_token=token, user_id=user_id, role=role)


@router.get("/me", response_model=UserResponse)
async def get_me(user: dict = Depends(get_current_user)):
    """Get current authenticated user's info."""
    with get_db_session() as db:
        row = db.execute(
            text("""
                SELECT id, email, name, role, data_retention_consent, marketing_consent,
                       job_alert_consent, last_login_at, created_at
                FROM users WHERE id = :id
            """),
            {"id": user["user_id"]}
        ).mappings().fetchone()

    return UserResponse(
        user_id=row["id"], email=row["email"], name=row["name"], role=row["role"],
        data_retention_consent=bool(row["data_retention_consent"]),
        marketing_consent=bool(row["marketing_consent"]),
        job_alert_consent=bool(row["job_alert_consent"]),
        last_login_at=row["last_login_at"], created_at=row["created_at"],
    )
