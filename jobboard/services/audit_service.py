"""
Audit and consent logging.

Every state-changing endpoint records who did what in audit_logs.
Consent changes additionally go to consent_logs (GDPR trail).
"""

import json
import logging
from typing import Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.orm import Session

from jobboard.db.postgres import get_db_session

logger = logging.getLogger(__name__)


def client_info(request: Optional[Request]) -> tuple:
    """Return (ip_address, user_agent) for a request, 'unknown' when absent."""
    if request is None:
        return "unknown", "unknown"
    ip = request.headers.get("x-forwarded-for")
    if not ip and request.client:
        ip = request.client.host
    return ip or "unknown", request.headers.get("user-agent") or "unknown"


def _write(db: Optional[Session], sql: str, params: dict) -> None:
    if db is not None:
        db.execute(text(sql), params)
        return
    with get_db_session() as session:
        session.execute(text(sql), params)


def log_audit(
    user_id: Optional[int],
    action: str,
    entity_type: Optional[str] = None,
    entity_id=None,
    changes: Optional[dict] = None,
    request: Optional[Request] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    db: Optional[Session] = None,
) -> None:
    """
    Write one audit_logs row.

    Pass db to write inside the caller's transaction; otherwise the row
    is committed on its own.
    """
    req_ip, req_agent = client_info(request)
    _write(
        db,
        """
        INSERT INTO audit_logs (user_id, action, entity_type, entity_id, changes, ip_address, user_agent)
        VALUES (:user_id, :action, :entity_type, :entity_id, :changes, :ip, :agent)
        """,
        {
            "user_id": user_id,
            "action": action,
            "entity_type": entity_type,
            "entity_id": str(entity_id) if entity_id is not None else None,
            "changes": json.dumps(changes, default=str) if changes is not None else None,
            "ip": ip_address or req_ip,
            "agent": user_agent or req_agent,
        },
    )
    logger.debug("audit %s %s:%s by %s", action, entity_type, entity_id, user_id)


def log_consent(
    user_id: int,
    consent_type: str,
    action: str,
    request: Optional[Request] = None,
    db: Optional[Session] = None,
) -> None:
    ip, agent = client_info(request)
    _write(
        db,
        """
        INSERT INTO consent_logs (user_id, consent_type, action, ip_address, user_agent)
        VALUES (:user_id, :consent_type, :action, :ip, :agent)
        """,
        {"user_id": user_id, "consent_type": consent_type, "action": action, "ip": ip, "agent": agent},
    )


def parse_changes(value: Optional[str]):
    """Decode the JSON stored in audit_logs.changes."""
    if not value:
        return None
    try:
        return json.loads(value)
    except ValueError:
        return value
