"""
Payment Service - Stripe payment intents and webhook fulfilment.

Prices are in euro cents. Fulfilment happens only from the webhook:
- JOB_POSTING   publish the job for 30 days
- FEATURED_JOB  mark the job featured
- URGENT_JOB    mark the job urgent
- SUBSCRIPTION  activate (or extend) a 30-day plan
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

import stripe
from sqlalchemy import text

from jobboard.core.config import get_settings
from jobboard.core.errors import PaymentError
from jobboard.db.postgres import get_db_session
from jobboard.services.audit_service import log_audit

logger = logging.getLogger(__name__)

CURRENCY = "eur"
JOB_POSTING_DAYS = 30
SUBSCRIPTION_DAYS = 30

PRICES = {
    "JOB_POSTING": 2000,
    "FEATURED_JOB": 1500,
    "URGENT_JOB": 1000,
}
PLAN_PRICES = {
    "BASIC": 5000,
    "PREMIUM": 15000,
}


def amount_for(payment_type: str, plan_type: Optional[str] = None) -> int:
    """Price in cents for a payment type (and plan, for subscriptions)."""
    if payment_type == "SUBSCRIPTION":
        if plan_type not in PLAN_PRICES:
            raise PaymentError("Valid plan type (BASIC or PREMIUM) is required for subscriptions")
        return PLAN_PRICES[plan_type]
    if payment_type not in PRICES:
        raise PaymentError(f"Unknown payment type: {payment_type}")
    return PRICES[payment_type]


def create_payment_intent(amount: int, metadata: dict) -> dict:
    """Create a Stripe PaymentIntent. Returns {id, client_secret}."""
    settings = get_settings()
    if not settings.stripe_secret_key:
        raise PaymentError("Stripe is not configured")

    stripe.api_key = settings.stripe_secret_key
    try:
        intent = stripe.PaymentIntent.create(
            amount=amount,
            currency=CURRENCY,
            metadata={k: str(v) for k, v in metadata.items() if v is not None},
            automatic_payment_methods={"enabled": True},
        )
    except stripe.StripeError as e:
        logger.error("Stripe PaymentIntent creation failed: %s", e)
        raise PaymentError("Payment provider error") from e

    return {"id": intent["id"], "client_secret": intent["client_secret"]}


def construct_event(payload: bytes, sig_header: Optional[str]):
    """Verify a webhook payload against the signing secret."""
    settings = get_settings()
    if not settings.stripe_webhook_secret:
        raise PaymentError("Stripe webhook secret is not configured")
    try:
        return stripe.Webhook.construct_event(
            payload=payload, sig_header=sig_header or "", secret=settings.stripe_webhook_secret
        )
    except (ValueError, stripe.SignatureVerificationError) as e:
        raise PaymentError("Invalid signature") from e


def _load_payment(db, intent_id: str):
    return db.execute(
        text("""
            SELECT p.id, p.employer_id, p.job_id, p.type, p.plan_type, p.status, p.amount, e.user_id
            FROM payments p JOIN employers e ON p.employer_id = e.id
            WHERE p.stripe_payment_intent_id = :intent_id
        """),
        {"intent_id": intent_id}
    ).mappings().fetchone()


def _activate_subscription(db, employer_id: int, plan: str, now: datetime) -> int:
    ends_at = now + timedelta(days=SUBSCRIPTION_DAYS)
    existing = db.execute(
        text("SELECT id FROM subscriptions WHERE employer_id = :eid AND status = 'ACTIVE' ORDER BY created_at DESC"),
        {"eid": employer_id}
    ).fetchone()
    if existing:
        db.execute(
            text("UPDATE subscriptions SET plan = :plan, ends_at = :ends, cancelled_at = NULL, updated_at = :now WHERE id = :id"),
            {"plan": plan, "ends": ends_at, "now": now, "id": existing[0]}
        )
        return existing[0]

    result = db.execute(
        text("""
            INSERT INTO subscriptions (employer_id, plan, status, starts_at, ends_at)
            VALUES (:eid, :plan, 'ACTIVE', :starts, :ends)
            RETURNING id
        """),
        {"eid": employer_id, "plan": plan, "starts": now, "ends": ends_at}
    )
    return result.fetchone()[0]


def handle_payment_succeeded(intent_id: str) -> bool:
    """Mark the payment completed and fulfil it. False if unknown or already done."""
    now = datetime.utcnow()
    with get_db_session() as db:
        payment = _load_payment(db, intent_id)
        if not payment:
            logger.warning("Webhook for unknown payment intent %s", intent_id)
            return False
        if payment["status"] == "COMPLETED":
            logger.info("Payment %s already completed, ignoring replay", payment["id"])
            return False

        db.execute(
            text("UPDATE payments SET status = 'COMPLETED', updated_at = :now WHERE id = :id"),
            {"now": now, "id": payment["id"]}
        )

        payment_type = payment["type"]
        subscription_id = None
        if payment_type == "JOB_POSTING" and payment["job_id"]:
            db.execute(
                text("""
                    UPDATE jobs SET status = 'PUBLISHED', published_at = :now, expires_at = :expires, updated_at = :now
                    WHERE id = :jid
                """),
                {"now": now, "expires": now + timedelta(days=JOB_POSTING_DAYS), "jid": payment["job_id"]}
            )
        elif payment_type == "FEATURED_JOB" and payment["job_id"]:
            db.execute(text("UPDATE jobs SET featured = :flag, updated_at = :now WHERE id = :jid"),
                       {"flag": True, "now": now, "jid": payment["job_id"]})
        elif payment_type == "URGENT_JOB" and payment["job_id"]:
            db.execute(text("UPDATE jobs SET urgent = :flag, updated_at = :now WHERE id = :jid"),
                       {"flag": True, "now": now, "jid": payment["job_id"]})
        elif payment_type == "SUBSCRIPTION":
            subscription_id = _activate_subscription(db, payment["employer_id"], payment["plan_type"] or "BASIC", now)
            db.execute(text("UPDATE payments SET subscription_id = :sid WHERE id = :id"),
                       {"sid": subscription_id, "id": payment["id"]})

        log_audit(
            payment["user_id"], "PAYMENT_SUCCESS", "Payment", payment["id"],
            changes={
                "type": payment_type,
                "amount": payment["amount"],
                "job_id": payment["job_id"],
                "subscription_id": subscription_id,
                "payment_intent_id": intent_id,
            },
            ip_address="stripe-webhook", user_agent="stripe-webhook", db=db,
        )

    logger.info("Payment %s (%s) fulfilled", intent_id, payment_type)
    return True


def _set_status(intent_id: str, status: str, audit_action: Optional[str] = None) -> bool:
    with get_db_session() as db:
        payment = _load_payment(db, intent_id)
        if not payment:
            logger.warning("Webhook for unknown payment intent %s", intent_id)
            return False
        db.execute(
            text("UPDATE payments SET status = :status, updated_at = :now WHERE id = :id"),
            {"status": status, "now": datetime.utcnow(), "id": payment["id"]}
        )
        if audit_action:
            log_audit(
                payment["user_id"], audit_action, "Payment", payment["id"],
                changes={"payment_intent_id": intent_id},
                ip_address="stripe-webhook", user_agent="stripe-webhook", db=db,
            )
    return True


def handle_event(event) -> None:
    """Dispatch a verified webhook event."""
    event_type = event["type"]
    intent_id = event["data"]["object"]["id"]

    if event_type == "payment_intent.succeeded":
        handle_payment_succeeded(intent_id)
    elif event_type == "payment_intent.payment_failed":
        _set_status(intent_id, "FAILED", "PAYMENT_FAILED")
    elif event_type == "payment_intent.canceled":
        _set_status(intent_id, "CANCELLED")
    else:
        logger.info("Unhandled Stripe event type %s", event_type)
