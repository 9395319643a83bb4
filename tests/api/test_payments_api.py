from decimal import Decimal

import pytest

CLAIM_PAYLOAD = {
    "patient_id": "pat-001",
    "doctor_id": "doc-001",
    "diagnosis": "Routine checkup",
    "cost": 250,
    "documents": ["checkup.pdf"],
}


@pytest.fixture
def approved(client):
    claim_id = client.post("/claims/", json=CLAIM_PAYLOAD).json()["claim"]["id"]
    client.post(f"/claims/{claim_id}/submit")
    review = client.post(f"/claims/{claim_id}/review", json={"decision": "approved"}).json()
    return claim_id, review["payment"]["id"]


def test_complete_payment(client, approved, today):
    claim_id, payment_id = approved
    response = client.post(
        f"/payments/{payment_id}/complete", json={"notes": "paid via bank transfer"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["payment"]["status"] == "completed"
    assert body["payment"]["completed_date"] == today.isoformat()
    assert body["payment"]["bank_notes"] == "paid via bank transfer"
    assert body["claim"]["status"] == "paid"
    assert body["claim"]["paid_date"] == today.isoformat()


def test_complete_payment_twice(client, approved):
    _, payment_id = approved
    client.post(f"/payments/{payment_id}/complete", json={"notes": "first"})

    response = client.post(f"/payments/{payment_id}/complete", json={"notes": "second"})

    assert response.status_code == 400
    assert client.get(f"/payments/{payment_id}").json()["bank_notes"] == "first"


def test_reject_payment_keeps_claim_approved(client, approved):
    claim_id, payment_id = approved
    response = client.post(f"/payments/{payment_id}/reject", json={"notes": "insufficient funds"})

    assert response.status_code == 200
    assert response.json()["payment"]["status"] == "rejected"
    assert client.get(f"/claims/{claim_id}").json()["claim"]["status"] == "approved"


def test_duplicate_payment_is_conflict(client, approved):
    claim_id, _ = approved
    response = client.post("/payments/", json={"claim_id": claim_id})

    assert response.status_code == 409
    assert response.json()["error"] == "DuplicatePaymentError"


def test_reissue_after_rejection(client, approved):
    claim_id, payment_id = approved
    client.post(f"/payments/{payment_id}/reject", json={"notes": "account closed"})

    response = client.post("/payments/", json={"claim_id": claim_id, "notes": "new account"})

    assert response.status_code == 201
    assert Decimal(str(response.json()["payment"]["amount"])) == Decimal("200")


def test_payment_for_unapproved_claim(client):
    claim_id = client.post("/claims/", json=CLAIM_PAYLOAD).json()["claim"]["id"]
    response = client.post("/payments/", json={"claim_id": claim_id})
    assert response.status_code == 400


def test_initiate_payment(client, approved):
    _, payment_id = approved
    response = client.post(f"/payments/{payment_id}/initiate")
    assert response.json()["payment"]["status"] == "initiated"

    assert client.post(f"/payments/{payment_id}/initiate").status_code == 400


def test_list_payments(client, approved):
    _, payment_id = approved
    pending = client.get("/payments/", params={"status": "pending"}).json()
    assert [p["id"] for p in pending] == [payment_id]
    assert client.get("/payments/", params={"status": "completed"}).json() == []
    assert client.get("/payments/", params={"status": "bogus"}).status_code == 400


def test_unknown_payment_is_404(client):
    assert client.get("/payments/missing").status_code == 404
    assert client.post("/payments/missing/complete").status_code == 404


def test_settlement_details(client, approved):
    claim_id, payment_id = approved
    rejected = client.post(
        f"/payments/{payment_id}/reject",
        json={"failure_reason": "beneficiary account mismatch", "actor": "First National"}
    ).json()["payment"]
    assert rejected["failure_reason"] == "beneficiary account mismatch"
    assert rejected["processed_by"] == "First National"

    reissued = client.post("/payments/", json={"claim_id": claim_id}).json()["payment"]
    completed = client.post(
        f"/payments/{reissued['id']}/complete", json={"transaction_id": "TXN-000123"}
    ).json()["payment"]
    assert completed["transaction_id"] == "TXN-000123"
    assert completed["processed_by"] == "Bank"
    assert completed["processed_at"] is not None
