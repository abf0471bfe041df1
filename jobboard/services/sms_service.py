"""
SMS delivery through an HTTP gateway (JSON POST with bearer key).
"""

import logging
import re

import httpx

from jobboard.core.config import get_settings

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^\+?[\d\s\-\(\)]+$")


def is_valid_phone(phone: str) -> bool:
    return bool(phone) and PHONE_PATTERN.match(phone) is not None


def send_sms(phone: str, message: str) -> bool:
    """Send a text message. Returns False on invalid number or any failure."""
    if not is_valid_phone(phone):
        logger.warning("Invalid phone number format: %r", phone)
        return False

    settings = get_settings()
    if not settings.sms_api_url:
        logger.info("SMS gateway not configured, skipping SMS to %s", phone)
        return False

    try:
        response = httpx.post(
            settings.sms_api_url,
            json={"to": phone, "from": settings.sms_sender, "message": message},
            headers={"Authorization": f"Bearer {settings.sms_api_key}"},
            timeout=10.0,
        )
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("SMS to %s failed: %s", phone, e)
        return False

    logger.info("SMS sent to %s", phone)
    return True
