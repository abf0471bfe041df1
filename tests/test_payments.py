import json

import pytest

from jobboard.core.errors import PaymentError
from jobboard.services import payment_service


@pytest.fixture
def fake_stripe(monkeypatch):
    """Stand in for the Stripe API: intents get sequential ids, webhooks skip signature checks."""
    created = []

    def fake_create(amount, metadata):
        intent_id = f"pi_test_{len(created) + 1}"
        created.append({"id": intent_id, "amount": amount, "metadata": metadata})
        return {"id": intent_id, "client_secret": f"{intent_id}_secret"}

    def fake_construct(payload, sig_header):
        if sig_header != "valid":
            raise PaymentError("Invalid signature")
        return json.loads(payload)

    monkeypatch.setattr(payment_service, "create_payment_intent", fake_create)
    monkeypatch.setattr(payment_service, "construct_event", fake_construct)
    return created


def _webhook(client, event_type, intent_id, signature="valid"):
    return client.post(
        "/api/payments/webhook",
        json={"type": event_type, "data": {"object": {"id": intent_id}}},
        headers={"stripe-signature": signature},
    )


def _intent(client, employer, **payload):
    body = {"success_url": "https://app.example.com/ok", "cancel_url": "https://app.example.com/cancel", **payload}
    return client.post("/api/payments/create-payment-intent", headers=employer["headers"], json=body)


def test_amount_for():
    assert payment_service.amount_for("JOB_POSTING") == 2000
    assert payment_service.amount_for("FEATURED_JOB") == 1500
    assert payment_service.amount_for("URGENT_JOB") == 1000
    assert payment_service.amount_for("SUBSCRIPTION", "PREMIUM") == 15000
    with pytest.raises(PaymentError):
        payment_service.amount_for("SUBSCRIPTION")


def test_job_posting_payment_publishes_job(client, make_employer, make_job, fake_stripe, audit_actions):
    employer = make_employer()
    job_id = make_job(employer, status="DRAFT")

    response = _intent(client, employer, payment_type="JOB_POSTING", job_id=job_id)
    assert response.status_code == 200
    body = response.json()
    assert body["amount"] == 2000
    assert body["currency"] == "eur"
    assert body["client_secret"] == "pi_test_1_secret"
    assert fake_stripe[0]["metadata"]["job_id"] == job_id

    pending = client.get("/api/employer/payments", headers=employer["headers"]).json()["payments"]
    assert pending[0]["status"] == "PENDING"

    assert _webhook(client, "payment_intent.succeeded", "pi_test_1").json() == {"received": True}

    job = client.get(f"/api/jobs/{job_id}").json()
    assert job["status"] == "PUBLISHED"
    assert job["expires_at"] is not None
    payments = client.get("/api/employer/payments", headers=employer["headers"]).json()["payments"]
    assert payments[0]["status"] == "COMPLETED"
    assert "PAYMENT_SUCCESS" in audit_actions(employer["user_id"])

    # replayed webhook is a no-op
    assert _webhook(client, "payment_intent.succeeded", "pi_test_1").status_code == 200
    assert audit_actions(employer["user_id"]).count("PAYMENT_SUCCESS") == 1


def test_featured_payment(client, make_employer, make_job, fake_stripe):
    employer = make_employer()
    job_id = make_job(employer)
    _intent(client, employer, payment_type="FEATURED_JOB", job_id=job_id)
    _webhook(client, "payment_intent.succeeded", "pi_test_1")
    assert client.get(f"/api/jobs/{job_id}").json()["featured"] is True


def test_subscription_payment_activates_plan(client, make_employer, fake_stripe):
    employer = make_employer()
    response = _intent(client, employer, payment_type="SUBSCRIPTION", plan_type="PREMIUM")
    assert response.json()["amount"] == 15000
    _webhook(client, "payment_intent.succeeded", "pi_test_1")

    subscription = client.get("/api/employer/subscription", headers=employer["headers"]).json()
    assert subscription["plan"] == "PREMIUM"
    assert subscription["status"] == "ACTIVE"


def test_failed_payment(client, make_employer, make_job, fake_stripe):
    employer = make_employer()
    job_id = make_job(employer, status="DRAFT")
    _intent(client, employer, payment_type="JOB_POSTING", job_id=job_id)
    _webhook(client, "payment_intent.payment_failed", "pi_test_1")

    payments = client.get("/api/employer/payments", headers=employer["headers"]).json()["payments"]
    assert payments[0]["status"] == "FAILED"
    assert client.get(f"/api/jobs/{job_id}").status_code == 404


def test_intent_validation(client, make_employer, make_job, fake_stripe):
    employer = make_employer()
    rival = make_employer(email="hr@rival.example.com", company_name="Rival")
    job_id = make_job(rival)

    assert _intent(client, employer, payment_type="JOB_POSTING").status_code == 400
    assert _intent(client, employer, payment_type="FEATURED_JOB", job_id=job_id).status_code == 404
    assert _intent(client, employer, payment_type="SUBSCRIPTION").status_code == 400
    assert fake_stripe == []


def test_gateway_failure_is_a_502(client, make_employer, monkeypatch):
    employer = make_employer()

    def broken(amount, metadata):
        raise PaymentError("Stripe is not configured")

    monkeypatch.setattr(payment_service, "create_payment_intent", broken)
    response = _intent(client, employer, payment_type="SUBSCRIPTION", plan_type="BASIC")
    assert response.status_code == 502


def test_webhook_rejects_bad_signature(client, fake_stripe):
    assert _webhook(client, "payment_intent.succeeded", "pi_x", signature="forged").status_code == 400


def test_webhook_without_secret_is_rejected(client):
    assert _webhook(client, "payment_intent.succeeded", "pi_x").status_code == 400
