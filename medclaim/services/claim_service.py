"""
Claim Service

Id-based entry point used by the API layer. Loads records from the store,
applies the pure lifecycle inside a per-claim transaction and persists the
result with a conditional write.
"""
import logging
from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from medclaim.config import Settings
from medclaim.core.errors import InvalidTransitionError, ValidationError
from medclaim.core.models import Claim, ClaimCreate, Payment, Treatment, TreatmentCreate
from medclaim.core.states import ClaimStatus, PaymentStatus, ReviewDecision, TreatmentStatus
from medclaim.lifecycle.claim_lifecycle import ClaimLifecycle
from medclaim.storage.store import InMemoryClaimStore

logger = logging.getLogger(__name__)


class ClaimService:
    """Coordinates the claim lifecycle with persistence."""

    def __init__(
        self,
        store: InMemoryClaimStore,
        lifecycle: ClaimLifecycle,
        protect_completed_payments: bool = False,
        default_page_size: int = 10,
    ):
        self.store = store
        self.lifecycle = lifecycle
        self.protect_completed_payments = protect_completed_payments
        self.default_page_size = default_page_size

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: Optional[InMemoryClaimStore] = None,
        today: Callable[[], date] = date.today,
    ) -> "ClaimService":
        lifecycle = ClaimLifecycle(
            coverage_percentage=settings.COVERAGE_PERCENTAGE,
            require_rejection_notes=settings.REQUIRE_REJECTION_NOTES,
            today=today,
        )
        return cls(
            store=store or InMemoryClaimStore(),
            lifecycle=lifecycle,
            protect_completed_payments=settings.PROTECT_COMPLETED_PAYMENTS,
            default_page_size=settings.DEFAULT_PAGE_SIZE,
        )

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def create_claim(self, data: ClaimCreate, actor: str = "Patient") -> Claim:
        """
        Create a new claim.

        Claims without a doctor or supporting documents start as DRAFT,
        complete ones as PENDING.
        """
        status = ClaimStatus.PENDING if data.is_complete else ClaimStatus.DRAFT
        claim = Claim(**data.model_dump(), status=status)
        claim.add_audit_entry(actor=actor, decision="CREATED", raw_reasoning=data.notes or "")
        self.store.save_claim(claim)
        logger.info(f"Created claim {claim.id} ({claim.claim_number}) as {status.value}")
        return claim

    def create_claim_from_treatment(
        self,
        treatment_id: str,
        notes: Optional[str] = None,
        actor: str = "Doctor",
    ) -> Claim:
        """
        Derive a claim from a submitted treatment record.

        Raises:
            InvalidTransitionError: If the treatment has not been submitted
            ValidationError: If the treatment was marked invalid for claims
        """
        treatment = self.store.load_treatment(treatment_id)
        if treatment.status is not TreatmentStatus.SUBMITTED:
            raise InvalidTransitionError(
                f"Treatment {treatment_id} must be submitted before a claim is raised",
                entity_id=treatment_id,
            )
        if treatment.validated_for_claim is False:
            raise ValidationError(
                f"Treatment {treatment_id} was not validated for claims: "
                f"{treatment.validation_notes or 'no reason given'}",
                entity_id=treatment_id,
            )
        data = ClaimCreate(
            patient_id=treatment.patient_id,
            patient_name=treatment.patient_name,
            doctor_id=treatment.doctor_id,
            doctor_name=treatment.doctor_name,
            treatment_id=treatment.id,
            diagnosis=treatment.diagnosis,
            cost=treatment.cost,
            documents=list(treatment.medical_reports),
            notes=notes,
        )
        return self.create_claim(data, actor=actor)

    def get_claim(self, claim_id: str) -> Claim:
        return self.store.load_claim(claim_id)

    def list_claims(
        self,
        status: Optional[ClaimStatus] = None,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
        include_drafts: bool = False,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Tuple[List[Claim], int]:
        """
        List claims, newest first.

        Drafts are hidden unless asked for or filtered on explicitly.

        Returns:
            Tuple of (claims on the requested page, total matching claims)
        """
        limit = limit or self.default_page_size
        claims = self.store.list_claims()
        if status is not None:
            claims = [c for c in claims if c.status is status]
        elif not include_drafts:
            claims = [c for c in claims if c.status is not ClaimStatus.DRAFT]
        if patient_id:
            claims = [c for c in claims if c.patient_id == patient_id]
        if doctor_id:
            claims = [c for c in claims if c.doctor_id == doctor_id]
        claims.sort(key=lambda c: c.created_at, reverse=True)
        start = (max(page, 1) - 1) * limit
        return claims[start:start + limit], len(claims)

    def mark_ready(self, claim_id: str, actor: str = "Patient") -> Claim:
        with self.store.transaction(claim_id):
            claim = self.store.load_claim(claim_id)
            if not claim.is_complete:
                raise ValidationError(
                    f"Claim {claim_id} needs a doctor and at least one supporting document",
                    entity_id=claim_id,
                )
            updated = self.lifecycle.mark_ready(claim, actor=actor)
            self.store.save_claim(updated, expected_status=claim.status)
        return updated

    def submit_claim(self, claim_id: str, actor: str = "Patient") -> Claim:
        with self.store.transaction(claim_id):
            claim = self.store.load_claim(claim_id)
            updated = self.lifecycle.submit_claim(claim, actor=actor)
            self.store.save_claim(updated, expected_status=claim.status)
        return updated

    def start_review(self, claim_id: str, actor: str = "Insurance Reviewer") -> Claim:
        with self.store.transaction(claim_id):
            claim = self.store.load_claim(claim_id)
            updated = self.lifecycle.start_review(claim, actor=actor)
            self.store.save_claim(updated, expected_status=claim.status)
        return updated

    def review_claim(
        self,
        claim_id: str,
        decision: ReviewDecision,
        notes: Optional[str] = None,
        coverage_percentage: Optional[Decimal] = None,
        approved_amount: Optional[Decimal] = None,
        actor: str = "Insurance Reviewer",
    ) -> Tuple[Claim, Optional[Payment]]:
        """
        Approve or reject a claim; approval stores the derived payment.

        The claim update and the new payment are written together, and only
        if the claim still has the status it was reviewed in.
        """
        with self.store.transaction(claim_id):
            claim = self.store.load_claim(claim_id)
            payments = self.store.payments_for_claim(claim_id)
            updated, payment = self.lifecycle.review_claim(
                claim,
                decision,
                notes=notes,
                existing_payments=payments,
                coverage_percentage=coverage_percentage,
                approved_amount=approved_amount,
                actor=actor,
            )
            self.store.save(claim=updated, payment=payment, expected_claim_status=claim.status)
        return updated, payment

    def delete_claim(self, claim_id: str) -> None:
        """Delete a claim together with all of its payments."""
        with self.store.transaction(claim_id):
            claim = self.store.load_claim(claim_id)
            payments = self.store.payments_for_claim(claim_id)
            self.lifecycle.check_deletable(
                claim, payments, protect_completed=self.protect_completed_payments
            )
            removed = self.store.delete_claim(claim_id)
        logger.info(f"Deleted claim {claim_id} and {len(removed)} payment(s)")

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def get_payment(self, payment_id: str) -> Payment:
        return self.store.load_payment(payment_id)

    def list_payments(
        self,
        status: Optional[PaymentStatus] = None,
        claim_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[Payment]:
        payments = self.store.list_payments()
        if status is not None:
            payments = [p for p in payments if p.status is status]
        if claim_id:
            payments = [p for p in payments if p.claim_id == claim_id]
        payments.sort(key=lambda p: p.created_at, reverse=True)
        return payments[:limit]

    def create_payment(
        self,
        claim_id: str,
        amount: Optional[Decimal] = None,
        notes: Optional[str] = None,
        actor: str = "Bank",
    ) -> Payment:
        with self.store.transaction(claim_id):
            claim = self.store.load_claim(claim_id)
            payments = self.store.payments_for_claim(claim_id)
            payment = self.lifecycle.create_payment(
                claim, payments, amount=amount, notes=notes, actor=actor
            )
            self.store.add_payment(payment)
        return payment

    def initiate_payment(self, payment_id: str, actor: str = "Bank") -> Payment:
        claim_id = self.store.load_payment(payment_id).claim_id
        with self.store.transaction(claim_id):
            payment = self.store.load_payment(payment_id)
            updated = self.lifecycle.initiate_payment(payment, actor=actor)
            self.store.save_payment(updated, expected_status=payment.status)
        return updated

    def complete_payment(
        self,
        payment_id: str,
        notes: Optional[str] = None,
        transaction_id: Optional[str] = None,
        actor: str = "Bank",
    ) -> Tuple[Payment, Claim]:
        """Complete a payment and cascade the claim to PAID."""
        claim_id = self.store.load_payment(payment_id).claim_id
        with self.store.transaction(claim_id):
            payment = self.store.load_payment(payment_id)
            claim = self.store.load_claim(claim_id)
            updated_payment, updated_claim = self.lifecycle.complete_payment(
                payment, claim, notes=notes, transaction_id=transaction_id, actor=actor
            )
            self.store.save(
                claim=updated_claim,
                payment=updated_payment,
                expected_claim_status=claim.status,
                expected_payment_status=payment.status,
            )
        return updated_payment, updated_claim

    def reject_payment(
        self,
        payment_id: str,
        notes: Optional[str] = None,
        failure_reason: Optional[str] = None,
        actor: str = "Bank",
    ) -> Payment:
        claim_id = self.store.load_payment(payment_id).claim_id
        with self.store.transaction(claim_id):
            payment = self.store.load_payment(payment_id)
            updated = self.lifecycle.reject_payment(
                payment, notes=notes, failure_reason=failure_reason, actor=actor
            )
            self.store.save_payment(updated, expected_status=payment.status)
        return updated

    # ------------------------------------------------------------------
    # Treatments
    # ------------------------------------------------------------------

    def create_treatment(self, data: TreatmentCreate) -> Treatment:
        treatment = Treatment(**data.model_dump())
        self.store.save_treatment(treatment)
        logger.info(f"Created treatment {treatment.id} for patient {treatment.patient_id}")
        return treatment

    def get_treatment(self, treatment_id: str) -> Treatment:
        return self.store.load_treatment(treatment_id)

    def list_treatments(
        self,
        status: Optional[TreatmentStatus] = None,
        doctor_id: Optional[str] = None,
    ) -> List[Treatment]:
        treatments = self.store.list_treatments()
        if status is not None:
            treatments = [t for t in treatments if t.status is status]
        if doctor_id:
            treatments = [t for t in treatments if t.doctor_id == doctor_id]
        return treatments

    def submit_treatment(self, treatment_id: str) -> Treatment:
        treatment = self.store.load_treatment(treatment_id)
        if treatment.status is not TreatmentStatus.PENDING:
            raise InvalidTransitionError(
                f"Treatment {treatment_id} is already {treatment.status.value}",
                entity_id=treatment_id,
            )
        treatment.status = TreatmentStatus.SUBMITTED
        self.store.save_treatment(treatment)
        logger.info(f"Treatment {treatment_id} submitted")
        return treatment

    def validate_treatment(self, treatment_id: str, is_valid: bool, notes: Optional[str] = None) -> Treatment:
        """Record whether a treatment qualifies for a claim."""
        treatment = self.store.load_treatment(treatment_id)
        treatment.validated_for_claim = is_valid
        treatment.validation_notes = notes
        self.store.save_treatment(treatment)
        return treatment

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def summary(self) -> Dict[str, Any]:
        """Counts and totals for the dashboard."""
        claims = self.store.list_claims()
        payments = self.store.list_payments()
        claim_counts = Counter(c.status for c in claims)
        payment_counts = Counter(p.status for p in payments)
        return {
            "total_claims": len(claims),
            "claim_status_counts": {s.value: claim_counts.get(s, 0) for s in ClaimStatus},
            "total_payments": len(payments),
            "payment_status_counts": {s.value: payment_counts.get(s, 0) for s in PaymentStatus},
            "total_claimed": sum((c.cost for c in claims), Decimal("0")),
            "total_paid": sum(
                (p.amount for p in payments if p.status is PaymentStatus.COMPLETED),
                Decimal("0"),
            ),
        }
