"""
Employer Subscription Routes

GET /employer/subscription - Active subscription or null
POST /employer/subscription - Start a plan
DELETE /employer/subscription - Cancel at period end
POST /employer/subscription/manage - Upgrade, downgrade, cancel or resume

A cancelled subscription stays ACTIVE until ends_at; cancelled_at marks it.
A row past ends_at no longer counts as active and cannot be resumed.
"""

import logging
import math
from datetime import datetime, timedelta

from fastapi import APIRouter, HTTPException, Depends, Request
from sqlalchemy import text

from jobboard.db.postgres import get_db_session, fetch_one
from jobboard.core.auth import get_current_employer
from jobboard.services.audit_service import log_audit
from jobboard.services.payment_service import PLAN_PRICES, CURRENCY, SUBSCRIPTION_DAYS
from jobboard.schemas.schemas import SubscriptionCreate, SubscriptionManage
from jobboard.utils.dates import as_datetime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employer/subscription", tags=["Subscriptions"])

PLAN_LEVELS = {"BASIC": 1, "PREMIUM": 2}

SUBSCRIPTION_SELECT = """
    SELECT id, employer_id, plan, status, starts_at, ends_at, cancelled_at, stripe_subscription_id
    FROM subscriptions
"""


def _active_subscription(employer_id: int, include_lapsed: bool = False):
    """Latest ACTIVE row. A row past ends_at only counts with include_lapsed."""
    sql = SUBSCRIPTION_SELECT + " WHERE employer_id = :eid AND status = 'ACTIVE'"
    params = {"eid": employer_id}
    if not include_lapsed:
        sql += " AND ends_at >= :now"
        params["now"] = datetime.utcnow()
    return fetch_one(sql + " ORDER BY created_at DESC, id DESC", params)


def _serialize(sub: dict) -> dict:
    return {
        "id": sub["id"],
        "plan": sub["plan"],
        "status": sub["status"],
        "starts_at": as_datetime(sub["starts_at"]),
        "ends_at": as_datetime(sub["ends_at"]),
        "cancelled_at": as_datetime(sub["cancelled_at"]),
        "stripe_subscription_id": sub["stripe_subscription_id"],
    }


def prorate(current_plan: str, new_plan: str, ends_at: datetime, now: datetime) -> dict:
    """Refund the unused days of the current plan against the new plan's price (cents)."""
    days_remaining = max(0, math.ceil((ends_at - now).total_seconds() / 86400))
    daily_rate = PLAN_PRICES[current_plan] / SUBSCRIPTION_DAYS
    refund = max(0, round(daily_rate * days_remaining))
    return {
        "days_remaining": days_remaining,
        "prorated_refund": refund,
        "additional_amount": max(0, PLAN_PRICES[new_plan] - refund),
        "currency": CURRENCY,
    }


@router.get("")
async def get_subscription(employer: dict = Depends(get_current_employer)):
    sub = _active_subscription(employer["employer_id"])
    return _serialize(sub) if sub else None


@router.post("", status_code=201)
async def create_subscription(data: SubscriptionCreate, request: Request, employer: dict = Depends(get_current_employer)):
    plan = data.plan_id.strip().upper()
    if plan not in PLAN_PRICES:
        raise HTTPException(status_code=400, detail="Invalid plan ID")
    if _active_subscription(employer["employer_id"]):
        raise HTTPException(status_code=400, detail="You already have an active subscription")

    now = datetime.utcnow()
    with get_db_session() as db:
        db.execute(
            text("UPDATE subscriptions SET status = 'EXPIRED', updated_at = :now "
                 "WHERE employer_id = :eid AND status = 'ACTIVE' AND ends_at < :now"),
            {"eid": employer["employer_id"], "now": now}
        )
        subscription_id = db.execute(
            text("""
                INSERT INTO subscriptions (employer_id, plan, status, starts_at, ends_at)
                VALUES (:eid, :plan, 'ACTIVE', :starts, :ends)
                RETURNING id
            """),
            {"eid": employer["employer_id"], "plan": plan, "starts": now,
             "ends": now + timedelta(days=SUBSCRIPTION_DAYS)}
        ).fetchone()[0]
        log_audit(
            employer["user_id"], "SUBSCRIPTION_CREATED", "Subscription", subscription_id,
            changes={"plan": plan, "price": PLAN_PRICES[plan], "currency": CURRENCY},
            request=request, db=db,
        )

    return {"message": "Subscription created successfully", "subscription_id": subscription_id}


def _cancel(sub: dict, employer: dict, request: Request) -> dict:
    if sub["cancelled_at"] is not None:
        raise HTTPException(status_code=400, detail="Subscription is already cancelled")
    now = datetime.utcnow()
    with get_db_session() as db:
        db.execute(
            text("UPDATE subscriptions SET cancelled_at = :now, updated_at = :now WHERE id = :id"),
            {"now": now, "id": sub["id"]}
        )
        log_audit(
            employer["user_id"], "SUBSCRIPTION_CANCELLED", "Subscription", sub["id"],
            changes={"plan": sub["plan"], "cancelled_at": now}, request=request, db=db,
        )
    return {
        "message": "Subscription cancelled successfully",
        "subscription": _serialize({**sub, "cancelled_at": now}),
        "access_until": as_datetime(sub["ends_at"]),
    }


def _resume(sub: dict, employer: dict, request: Request) -> dict:
    if sub["cancelled_at"] is None:
        raise HTTPException(status_code=400, detail="Subscription is not cancelled")
    if as_datetime(sub["ends_at"]) < datetime.utcnow():
        raise HTTPException(
            status_code=400, detail="Subscription period has ended. Please purchase a new subscription."
        )
    with get_db_session() as db:
        db.execute(
            text("UPDATE subscriptions SET cancelled_at = NULL, updated_at = :now WHERE id = :id"),
            {"now": datetime.utcnow(), "id": sub["id"]}
        )
        log_audit(
            employer["user_id"], "SUBSCRIPTION_RESUMED", "Subscription", sub["id"],
            changes={"plan": sub["plan"]}, request=request, db=db,
        )
    return {"message": "Subscription resumed successfully", "subscription": _serialize({**sub, "cancelled_at": None})}


def _change_plan(sub: dict, new_plan: str, action: str, employer: dict, request: Request) -> dict:
    current_plan = sub["plan"]
    if current_plan == new_plan:
        raise HTTPException(status_code=400, detail="You are already on this plan")
    if action == "upgrade" and PLAN_LEVELS[new_plan] <= PLAN_LEVELS[current_plan]:
        raise HTTPException(status_code=400, detail="Invalid upgrade path")
    if action == "downgrade" and PLAN_LEVELS[new_plan] >= PLAN_LEVELS[current_plan]:
        raise HTTPException(status_code=400, detail="Invalid downgrade path")

    billing = prorate(current_plan, new_plan, as_datetime(sub["ends_at"]), datetime.utcnow())
    with get_db_session() as db:
        db.execute(
            text("UPDATE subscriptions SET plan = :plan, updated_at = :now WHERE id = :id"),
            {"plan": new_plan, "now": datetime.utcnow(), "id": sub["id"]}
        )
        log_audit(
            employer["user_id"], f"SUBSCRIPTION_{action.upper()}", "Subscription", sub["id"],
            changes={"from_plan": current_plan, "to_plan": new_plan, **billing},
            request=request, db=db,
        )

    return {
        "message": f"Subscription {action}d successfully",
        "subscription": _serialize({**sub, "plan": new_plan}),
        "billing": {**billing, "effective_immediately": True},
    }


@router.delete("")
async def cancel_subscription(request: Request, employer: dict = Depends(get_current_employer)):
    sub = _active_subscription(employer["employer_id"])
    if not sub:
        raise HTTPException(status_code=404, detail="No active subscription found")
    return _cancel(sub, employer, request)


@router.post("/manage")
async def manage_subscription(data: SubscriptionManage, request: Request, employer: dict = Depends(get_current_employer)):
    sub = _active_subscription(employer["employer_id"], include_lapsed=data.action == "resume")
    if not sub:
        raise HTTPException(status_code=404, detail="No active subscription found")

    if data.action in ("upgrade", "downgrade"):
        if not data.plan_id:
            raise HTTPException(status_code=400, detail="Plan ID is required for upgrade/downgrade")
        return _change_plan(sub, data.plan_id.value, data.action, employer, request)
    if data.action == "cancel":
        return _cancel(sub, employer, request)
    return _resume(sub, employer, request)
