"""
Payment Routes

POST /payments/create-payment-intent - Start a Stripe payment (employer only)
POST /payments/webhook - Stripe webhook (signature verified)
"""

import logging

from fastapi import APIRouter, HTTPException, Depends, Request
from sqlalchemy import text

from jobboard.core.auth import get_current_employer
from jobboard.core.errors import PaymentError
from jobboard.db.postgres import get_db_session, fetch_one
from jobboard.services import payment_service
from jobboard.services.audit_service import log_audit
from jobboard.schemas.schemas import PaymentIntentCreate, PaymentIntentResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])

JOB_PAYMENT_TYPES = {"JOB_POSTING", "FEATURED_JOB", "URGENT_JOB"}


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(data: PaymentIntentCreate, request: Request, employer: dict = Depends(get_current_employer)):
    """
    Create a PaymentIntent and a PENDING payment row.
    Fulfilment happens when the webhook reports success.
    """
    payment_type = data.payment_type.value
    plan_type = data.plan_type.value if data.plan_type else None

    if payment_type in JOB_PAYMENT_TYPES:
        if not data.job_id:
            raise HTTPException(status_code=400, detail="Job ID is required for job payments")
        job = fetch_one(
            "SELECT id FROM jobs WHERE id = :id AND employer_id = :eid",
            {"id": data.job_id, "eid": employer["employer_id"]}
        )
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")

    try:
        amount = payment_service.amount_for(payment_type, plan_type)
    except PaymentError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        intent = payment_service.create_payment_intent(amount, {
            "employer_id": employer["employer_id"],
            "user_id": employer["user_id"],
            "payment_type": payment_type,
            "job_id": data.job_id,
            "plan_type": plan_type,
            "success_url": data.success_url,
            "cancel_url": data.cancel_url,
        })
    except PaymentError as e:
        logger.error("Payment intent failed for employer %s: %s", employer["employer_id"], e)
        raise HTTPException(status_code=502, detail="Failed to create payment intent")

    with get_db_session() as db:
        payment_id = db.execute(
            text("""
                INSERT INTO payments (employer_id, job_id, amount, currency, status, type, plan_type,
                    stripe_payment_intent_id)
                VALUES (:eid, :jid, :amount, :currency, 'PENDING', :type, :plan, :intent)
                RETURNING id
            """),
            {
                "eid": employer["employer_id"],
                "jid": data.job_id if payment_type in JOB_PAYMENT_TYPES else None,
                "amount": amount, "currency": payment_service.CURRENCY, "type": payment_type,
                "plan": plan_type, "intent": intent["id"],
            }
        ).fetchone()[0]
        log_audit(
            employer["user_id"], "PAYMENT_INTENT_CREATED", "Payment", payment_id,
            changes={"type": payment_type, "amount": amount, "job_id": data.job_id, "plan_type": plan_type},
            request=request, db=db,
        )

    return PaymentIntentResponse(
        client_secret=intent["client_secret"],
        payment_intent_id=intent["id"],
        payment_id=payment_id,
        amount=amount,
        currency=payment_service.CURRENCY,
    )


@router.post("/webhook")
async def stripe_webhook(request: Request):
    payload = await request.body()
    try:
        event = payment_service.construct_event(payload, request.headers.get("stripe-signature"))
    except PaymentError as e:
        logger.warning("Rejected Stripe webhook: %s", e)
        raise HTTPException(status_code=400, detail="Invalid signature")

    payment_service.handle_event(event)
    return {"received": True}
