"""
Job Alert Processing Routes (cron)

POST /job-alerts/process - Process every active alert
GET /job-alerts/process - Counts, or process one alert with ?alert_id=

Both require Authorization: Bearer <CRON_SECRET>.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from jobboard.core.config import get_settings
from jobboard.services.audit_service import client_info
from jobboard.services.job_alert_service import process_job_alerts, process_single_alert, alert_counts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/job-alerts", tags=["Job Alerts"])

cron_bearer = HTTPBearer(auto_error=False)


async def require_cron_secret(credentials: Optional[HTTPAuthorizationCredentials] = Depends(cron_bearer)) -> None:
    secret = get_settings().cron_secret
    if not credentials or not secret or not hmac.compare_digest(credentials.credentials, secret):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post("/process", dependencies=[Depends(require_cron_secret)])
async def process_alerts(request: Request):
    ip, _ = client_info(request)
    result = process_job_alerts(ip)
    logger.info("Job alert run: %d alerts, %d notifications", result["alerts_processed"], result["notifications_sent"])
    return result


@router.get("/process", dependencies=[Depends(require_cron_secret)])
async def process_alert_or_counts(request: Request, alert_id: Optional[int] = None):
    if alert_id is None:
        return alert_counts()

    ip, _ = client_info(request)
    result = process_single_alert(alert_id, ip)
    if result is None:
        raise HTTPException(status_code=404, detail="Alert not found")
    return result
