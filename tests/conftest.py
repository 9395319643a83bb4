import os
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before the application settings load
os.environ.setdefault("LOG_LEVEL", "WARNING")

from medclaim.config import Settings
from medclaim.core.models import Claim, ClaimCreate, Payment
from medclaim.core.states import ClaimStatus, PaymentStatus
from medclaim.lifecycle.claim_lifecycle import ClaimLifecycle
from medclaim.services.claim_service import ClaimService
from medclaim.storage.store import InMemoryClaimStore

TODAY = date(2025, 7, 30)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def lifecycle():
    return ClaimLifecycle(today=lambda: TODAY)


@pytest.fixture
def make_claim():
    def _make(status=ClaimStatus.SUBMITTED, cost=Decimal("250"), **overrides) -> Claim:
        fields = dict(
            patient_id="pat-001",
            patient_name="John Smith",
            doctor_id="doc-001",
            doctor_name="Dr. Sarah Johnson",
            treatment_id="trt-001",
            diagnosis="Hypertension follow-up",
            cost=cost,
            documents=["bp-readings.pdf"],
            status=status,
        )
        fields.update(overrides)
        return Claim(**fields)
    return _make


@pytest.fixture
def make_payment():
    def _make(claim_id: str, status=PaymentStatus.PENDING, amount=Decimal("200")) -> Payment:
        return Payment(claim_id=claim_id, amount=amount, status=status, initiated_date=TODAY)
    return _make


@pytest.fixture
def claim_data():
    return ClaimCreate(
        patient_id="pat-001",
        patient_name="John Smith",
        doctor_id="doc-001",
        doctor_name="Dr. Sarah Johnson",
        diagnosis="Hypertension follow-up",
        cost=Decimal("250"),
        documents=["bp-readings.pdf"],
    )


@pytest.fixture
def store():
    return InMemoryClaimStore()


@pytest.fixture
def settings():
    return Settings(COVERAGE_PERCENTAGE=Decimal("0.8"), PROTECT_COMPLETED_PAYMENTS=False)


@pytest.fixture
def service(store, settings):
    return ClaimService.from_settings(settings, store=store, today=lambda: TODAY)


@pytest.fixture
def client(service):
    from medclaim.api.dependencies import get_service
    from medclaim.main import app

    app.dependency_overrides[get_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
