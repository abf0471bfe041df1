"""
Authentication Utility - JWT and Password handling.

Provides:
- Password hashing with bcrypt
- JWT token creation/verification
- FastAPI dependencies for protected routes, one per role
"""

from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import text

from jobboard.core.config import get_settings
from jobboard.db.postgres import get_db_session

settings = get_settings()

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer token extractor
bearer_scheme = HTTPBearer()


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def get_user_from_token(token: str) -> Optional[dict]:
    """
    Resolve a token to a live user row, or None.

    Shared by the HTTP dependencies and the websocket endpoint.
    """
    payload = decode_token(token) if token else None
    if not payload or not payload.get("sub"):
        return None
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None

    with get_db_session() as db:
        row = db.execute(
            text("SELECT id, email, name, role, deleted_at FROM users WHERE id = :id"),
            {"id": user_id}
        ).fetchone()

    if not row:
        return None
    return {"user_id": row[0], "email": row[1], "name": row[2], "role": row[3], "deleted": row[4] is not None}


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> dict:
    """
    FastAPI dependency - Get current authenticated user.

    Usage:
        @router.get("/protected")
        async def route(user: dict = Depends(get_current_user)):
            return user
    """
    user = get_user_from_token(credentials.credentials)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user.pop("deleted"):
        raise HTTPException(status_code=403, detail="Account deactivated")

    return user


async def get_current_job_seeker(user: dict = Depends(get_current_user)) -> dict:
    """Dependency - Require job seeker role and get job_seeker_id."""
    if user["role"] != "JOB_SEEKER":
        raise HTTPException(status_code=403, detail="Job seekers only")

    with get_db_session() as db:
        row = db.execute(
            text("SELECT id FROM job_seekers WHERE user_id = :id"),
            {"id": user["user_id"]}
        ).fetchone()

    if not row:
        raise HTTPException(status_code=404, detail="Job seeker profile not found")

    user["job_seeker_id"] = row[0]
    return user


async def get_current_employer(user: dict = Depends(get_current_user)) -> dict:
    """Dependency - Require employer role and get employer_id."""
    if user["role"] != "EMPLOYER":
        raise HTTPException(status_code=403, detail="Employers only")

    with get_db_session() as db:
        row = db.execute(
            text("SELECT id FROM employers WHERE user_id = :id"),
            {"id": user["user_id"]}
        ).fetchone()

    if not row:
        raise HTTPException(status_code=404, detail="Employer profile not found")

    user["employer_id"] = row[0]
    return user


async def get_current_admin(user: dict = Depends(get_current_user)) -> dict:
    if user["role"] != "ADMIN":
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
