"""
Small SMTP helper shared by routes and the alert processor.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from jobboard.core.config import get_settings

logger = logging.getLogger(__name__)


def send_email(to_email: str, subject: str, text_body: str, html_body: Optional[str] = None) -> bool:
    """
    Send one email over SMTP with STARTTLS.

    Returns False instead of raising when SMTP is not configured or the
    server rejects the message.
    """
    settings = get_settings()
    if not settings.email_configured:
        logger.info("SMTP not configured, skipping email to %s (%s)", to_email, subject)
        return False

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.email_from or settings.smtp_user
    msg["To"] = to_email
    msg.attach(MIMEText(text_body, "plain", "utf-8"))
    if html_body:
        msg.attach(MIMEText(html_body, "html", "utf-8"))

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=15) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(msg["From"], [to_email], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Email to %s failed: %s", to_email, e)
        return False

    logger.info("Email sent to %s: %s", to_email, subject)
    return True
