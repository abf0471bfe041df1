#!/usr/bin/env python3
"""
Job Alert Cron Script

Runs the alert filter-and-notify loop once, without going through HTTP.
Usage: python scripts/process_job_alerts.py [--alert-id ID]
"""

import argparse
import logging
import sys

from jobboard.core.config import get_settings
from jobboard.core.logging_config import setup_logging
from jobboard.services.job_alert_service import process_job_alerts, process_single_alert

logger = logging.getLogger("process_job_alerts")


def main() -> int:
    parser = argparse.ArgumentParser(description="Send job alert notifications")
    parser.add_argument("--alert-id", type=int, help="process only this alert")
    args = parser.parse_args()

    setup_logging(get_settings().log_level)

    if args.alert_id is not None:
        result = process_single_alert(args.alert_id, ip_address="cron")
        if result is None:
            logger.error("Alert %s not found", args.alert_id)
            return 1
    else:
        result = process_job_alerts(ip_address="cron")

    logger.info("Done: %s", result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
