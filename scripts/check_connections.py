#!/usr/bin/env python3
"""
Connection Check Script

Run this to verify the databases and external integrations are reachable/configured.
Usage: python scripts/check_connections.py
"""

from jobboard.db.postgres import test_postgres_connection
from jobboard.db.mongodb import test_mongo_connection
from jobboard.core.config import get_settings


def main():
    settings = get_settings()
    print("=" * 50)
    print("CYPRUS JOBS - CONNECTION CHECK")
    print("=" * 50)

    print("\n[1] Relational database...")
    if settings.database_url:
        print(f"    URL: {settings.database_url.split('@')[-1]}")
    else:
        print(f"    URL: postgresql://{settings.postgres_user}:****@{settings.postgres_host}:{settings.postgres_port}/{settings.postgres_db}")
    print("    OK: CONNECTED" if test_postgres_connection() else "    FAIL: not reachable")

    print("\n[2] MongoDB...")
    print(f"    URI: {settings.mongodb_uri}")
    print(f"    Database: {settings.mongodb_db}")
    print("    OK: CONNECTED" if test_mongo_connection() else "    FAIL: not reachable")

    print("\n[3] Integrations (configuration only)...")
    print(f"    SMTP:   {'configured' if settings.email_configured else 'not configured'}")
    print(f"    SMS:    {'configured' if settings.sms_api_url and settings.sms_api_key else 'not configured'}")
    print(f"    Stripe: {'configured' if settings.stripe_secret_key else 'not configured'}")
    print(f"    LLM:    {'configured' if settings.llm_api_key else 'not configured (rule-based recommendations)'}")

    print("\n" + "=" * 50)
    print("Connection check complete!")
    print("=" * 50)


if __name__ == "__main__":
    main()
