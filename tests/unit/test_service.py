import threading
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from medclaim.core.errors import (
    DuplicatePaymentError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from medclaim.core.models import ClaimCreate, TreatmentCreate
from medclaim.core.states import ClaimStatus, PaymentStatus, ReviewDecision, TreatmentStatus
from medclaim.services.claim_service import ClaimService


@pytest.fixture
def submitted_claim(service, claim_data):
    claim = service.create_claim(claim_data)
    return service.submit_claim(claim.id)


@pytest.fixture
def approved(service, submitted_claim):
    return service.review_claim(submitted_claim.id, ReviewDecision.APPROVED)


class TestClaimCreation:

    def test_complete_claim_starts_pending(self, service, claim_data):
        claim = service.create_claim(claim_data)
        assert claim.status is ClaimStatus.PENDING
        assert claim.claim_number.startswith("CLM-")
        assert service.get_claim(claim.id) == claim

    def test_claim_without_documents_starts_as_draft(self, service, claim_data):
        claim = service.create_claim(claim_data.model_copy(update={"documents": []}))
        assert claim.status is ClaimStatus.DRAFT

        with pytest.raises(ValidationError):
            service.mark_ready(claim.id)

    def test_draft_without_doctor_cannot_be_marked_ready(self, service, claim_data):
        claim = service.create_claim(claim_data.model_copy(update={"doctor_id": None}))
        assert claim.status is ClaimStatus.DRAFT

        with pytest.raises(ValidationError):
            service.mark_ready(claim.id)
        assert service.get_claim(claim.id).status is ClaimStatus.DRAFT

    def test_cost_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            ClaimCreate(patient_id="p", diagnosis="d", cost=Decimal("0"))


class TestReviewFlow:

    def test_approval_stores_claim_and_payment(self, service, approved, today):
        claim, payment = approved

        stored_claim = service.get_claim(claim.id)
        stored_payment = service.get_payment(payment.id)
        assert stored_claim.status is ClaimStatus.APPROVED
        assert stored_claim.reviewed_date == today
        assert stored_payment.amount == Decimal("200")
        assert service.list_payments(claim_id=claim.id) == [stored_payment]

    def test_second_approval_fails_and_keeps_single_payment(self, service, approved):
        claim, _ = approved
        with pytest.raises(InvalidTransitionError):
            service.review_claim(claim.id, ReviewDecision.APPROVED)
        assert len(service.list_payments(claim_id=claim.id)) == 1

    def test_rejected_claim_has_no_payment(self, service, submitted_claim):
        service.start_review(submitted_claim.id)
        claim, payment = service.review_claim(
            submitted_claim.id, ReviewDecision.REJECTED, notes="insufficient documentation"
        )
        assert payment is None
        assert claim.insurance_notes == "insufficient documentation"
        assert service.list_payments(claim_id=claim.id) == []

    def test_failed_review_leaves_store_unchanged(self, service, submitted_claim):
        with pytest.raises(ValidationError):
            service.review_claim(submitted_claim.id, ReviewDecision.REJECTED)
        assert service.get_claim(submitted_claim.id).status is ClaimStatus.SUBMITTED

    def test_unknown_claim(self, service):
        with pytest.raises(NotFoundError):
            service.review_claim("missing", ReviewDecision.APPROVED)

    def test_concurrent_approvals_create_one_payment(self, service, submitted_claim):
        barrier = threading.Barrier(8)
        outcomes = []

        def approve():
            barrier.wait()
            try:
                service.review_claim(submitted_claim.id, ReviewDecision.APPROVED)
                outcomes.append("approved")
            except InvalidTransitionError:
                outcomes.append("refused")

        threads = [threading.Thread(target=approve) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("approved") == 1
        assert outcomes.count("refused") == 7
        assert len(service.list_payments(claim_id=submitted_claim.id)) == 1


class TestPayments:

    def test_complete_payment_cascades_to_claim(self, service, approved, today):
        claim, payment = approved
        completed, paid = service.complete_payment(payment.id, notes="paid via bank transfer")

        assert completed.status is PaymentStatus.COMPLETED
        assert paid.status is ClaimStatus.PAID
        assert service.get_claim(claim.id).paid_date == today

    def test_complete_twice_keeps_first_notes(self, service, approved):
        _, payment = approved
        service.complete_payment(payment.id, notes="first")
        with pytest.raises(InvalidTransitionError):
            service.complete_payment(payment.id, notes="second")

        stored = service.get_payment(payment.id)
        assert stored.bank_notes == "first"

    def test_rejected_payment_can_be_reissued(self, service, approved):
        claim, payment = approved
        service.reject_payment(payment.id, notes="insufficient funds")
        assert service.get_claim(claim.id).status is ClaimStatus.APPROVED

        reissued = service.create_payment(claim.id, notes="second attempt")
        payments = service.list_payments(claim_id=claim.id)
        assert len(payments) == 2
        assert [p.id for p in payments if p.status.is_active] == [reissued.id]

        with pytest.raises(DuplicatePaymentError):
            service.create_payment(claim.id)

    def test_initiate_then_complete(self, service, approved):
        _, payment = approved
        service.initiate_payment(payment.id)
        completed, _ = service.complete_payment(payment.id)
        assert completed.status is PaymentStatus.COMPLETED

    def test_settlement_details_are_stored(self, service, approved):
        claim, payment = approved
        service.reject_payment(payment.id, failure_reason="account closed", actor="First National")
        reissued = service.create_payment(claim.id)
        service.complete_payment(reissued.id, transaction_id="TXN-9001")

        rejected = service.get_payment(payment.id)
        completed = service.get_payment(reissued.id)
        assert rejected.failure_reason == "account closed"
        assert rejected.processed_by == "First National"
        assert completed.transaction_id == "TXN-9001"
        assert completed.processed_at is not None

    def test_approved_amount_is_paid(self, service, submitted_claim):
        claim, payment = service.review_claim(
            submitted_claim.id, ReviewDecision.APPROVED, approved_amount=Decimal("175")
        )
        assert service.get_payment(payment.id).amount == Decimal("175")
        assert service.get_claim(claim.id).approved_amount == Decimal("175")

    def test_unknown_payment(self, service):
        with pytest.raises(NotFoundError):
            service.complete_payment("missing")

    def test_list_payments_by_status(self, service, approved):
        _, payment = approved
        assert service.list_payments(status=PaymentStatus.PENDING) == [service.get_payment(payment.id)]
        assert service.list_payments(status=PaymentStatus.COMPLETED) == []


class TestDeletion:

    def test_delete_cascades_to_completed_payment(self, service, approved):
        claim, payment = approved
        service.complete_payment(payment.id)

        service.delete_claim(claim.id)

        with pytest.raises(NotFoundError):
            service.get_claim(claim.id)
        with pytest.raises(NotFoundError):
            service.get_payment(payment.id)

    def test_protected_deletion_keeps_records(self, store, settings, approved):
        claim, payment = approved
        protected = ClaimService.from_settings(
            settings.model_copy(update={"PROTECT_COMPLETED_PAYMENTS": True}), store=store
        )
        protected.complete_payment(payment.id)

        with pytest.raises(InvalidTransitionError):
            protected.delete_claim(claim.id)
        assert protected.get_payment(payment.id).status is PaymentStatus.COMPLETED

    def test_delete_unknown_claim(self, service):
        with pytest.raises(NotFoundError):
            service.delete_claim("missing")


class TestStoreConditionalWrites:

    def test_stale_claim_write_is_refused(self, service, store, submitted_claim):
        stale = store.load_claim(submitted_claim.id)
        service.start_review(submitted_claim.id)

        stale.insurance_notes = "overwritten"
        with pytest.raises(InvalidTransitionError):
            store.save_claim(stale, expected_status=ClaimStatus.SUBMITTED)

    def test_store_refuses_second_active_payment(self, store, approved, make_payment):
        claim, _ = approved
        with pytest.raises(DuplicatePaymentError):
            store.add_payment(make_payment(claim.id))

    def test_payment_for_unknown_claim(self, store, make_payment):
        with pytest.raises(NotFoundError):
            store.add_payment(make_payment("missing"))

    def test_unknown_claims_do_not_leave_locks_behind(self, service, store):
        for i in range(200):
            with pytest.raises(NotFoundError):
                service.submit_claim(f"missing-{i}")
            with pytest.raises(NotFoundError):
                service.delete_claim(f"missing-{i}")
        assert store._claim_locks == {}

    def test_deleted_claim_releases_its_lock(self, service, store, submitted_claim):
        service.start_review(submitted_claim.id)
        assert submitted_claim.id in store._claim_locks

        service.delete_claim(submitted_claim.id)
        assert submitted_claim.id not in store._claim_locks

    def test_loaded_records_are_copies(self, store, submitted_claim):
        loaded = store.load_claim(submitted_claim.id)
        loaded.documents.append("tampered.pdf")
        assert store.load_claim(submitted_claim.id).documents == ["bp-readings.pdf"]


class TestTreatments:

    @pytest.fixture
    def treatment(self, service):
        return service.create_treatment(TreatmentCreate(
            doctor_id="doc-001",
            patient_id="pat-001",
            diagnosis="Fractured wrist",
            cost=Decimal("450"),
            medical_reports=["xray.pdf"],
        ))

    def test_claim_requires_submitted_treatment(self, service, treatment):
        with pytest.raises(InvalidTransitionError):
            service.create_claim_from_treatment(treatment.id)

    def test_claim_from_treatment(self, service, treatment):
        service.submit_treatment(treatment.id)
        claim = service.create_claim_from_treatment(treatment.id)

        assert claim.treatment_id == treatment.id
        assert claim.cost == Decimal("450")
        assert claim.documents == ["xray.pdf"]
        assert claim.status is ClaimStatus.PENDING

    def test_invalidated_treatment(self, service, treatment):
        service.submit_treatment(treatment.id)
        service.validate_treatment(treatment.id, False, "procedure not covered")
        with pytest.raises(ValidationError):
            service.create_claim_from_treatment(treatment.id)

    def test_submit_treatment_once(self, service, treatment):
        assert service.submit_treatment(treatment.id).status is TreatmentStatus.SUBMITTED
        with pytest.raises(InvalidTransitionError):
            service.submit_treatment(treatment.id)


class TestListingAndSummary:

    def test_drafts_hidden_by_default(self, service, claim_data):
        draft = service.create_claim(claim_data.model_copy(update={"documents": []}))
        pending = service.create_claim(claim_data)

        claims, total = service.list_claims()
        assert [c.id for c in claims] == [pending.id]
        assert total == 1

        claims, total = service.list_claims(include_drafts=True)
        assert total == 2
        claims, _ = service.list_claims(status=ClaimStatus.DRAFT)
        assert [c.id for c in claims] == [draft.id]

    def test_pagination(self, service, claim_data):
        for _ in range(5):
            service.create_claim(claim_data)
        claims, total = service.list_claims(page=2, limit=2)
        assert total == 5
        assert len(claims) == 2
        claims, _ = service.list_claims(page=3, limit=2)
        assert len(claims) == 1

    def test_summary(self, service, approved):
        _, payment = approved
        service.complete_payment(payment.id)

        summary = service.summary()
        assert summary["total_claims"] == 1
        assert summary["claim_status_counts"]["paid"] == 1
        assert summary["payment_status_counts"]["completed"] == 1
        assert summary["total_paid"] == Decimal("200")
