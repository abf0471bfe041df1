"""
Cyprus Jobs - job board backend.

Architecture:
- PostgreSQL: Structured data (users, profiles, jobs, applications, payments, consent)
- MongoDB: Documents (extracted CV text, search events)
- Stripe, SMTP and an SMS gateway behind thin service wrappers
"""

__version__ = "1.0.0"
