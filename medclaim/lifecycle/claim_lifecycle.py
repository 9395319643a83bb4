"""
Claim Lifecycle

Applies claim and payment transitions together with their side effects,
most importantly the derivation of a payment when a claim is approved.

Every operation takes records as arguments and returns updated copies;
inputs are never mutated, so a failed operation leaves the caller's
records untouched.
"""
import logging
from datetime import date, datetime
from decimal import ROUND_FLOOR, Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from medclaim.core.errors import (
    DuplicatePaymentError,
    InvalidTransitionError,
    ValidationError,
)
from medclaim.core.models import Claim, Payment
from medclaim.core.states import ClaimStatus, PaymentStatus, ReviewDecision
from medclaim.state_machine.machine import ClaimStateMachine, PaymentStateMachine

logger = logging.getLogger(__name__)

DEFAULT_COVERAGE_PERCENTAGE = Decimal("0.8")

ClaimHandler = Callable[[Claim], None]


def compute_payment_amount(cost: Decimal, coverage_percentage: Decimal) -> Decimal:
    """
    Derive the payable amount for a claim.

    The amount is floor(cost * coverage_percentage) in whole currency units.

    Raises:
        ValidationError: If cost is not positive or coverage is outside (0, 1]
    """
    cost = Decimal(cost)
    coverage_percentage = Decimal(coverage_percentage)
    if cost <= 0:
        raise ValidationError(f"Claim cost must be positive, got {cost}")
    if not Decimal("0") < coverage_percentage <= Decimal("1"):
        raise ValidationError(
            f"Coverage percentage must be in (0, 1], got {coverage_percentage}"
        )
    return (cost * coverage_percentage).to_integral_value(rounding=ROUND_FLOOR)


def find_active_payment(payments: Iterable[Payment]) -> Optional[Payment]:
    """Return the payment that still counts against its claim, if any."""
    for payment in payments:
        if payment.status.is_active:
            return payment
    return None


def check_payable_amount(claim: Claim, amount: Decimal) -> Decimal:
    """
    Validate an amount about to be paid out for a claim.

    Raises:
        ValidationError: If the amount is not positive or exceeds the claim cost
    """
    amount = Decimal(amount)
    if amount <= 0 or amount > claim.cost:
        raise ValidationError(
            f"Payment amount {amount} must be positive and at most claim cost {claim.cost}",
            entity_id=claim.id,
        )
    return amount


def _mark_processed(payment: Payment, actor: str) -> None:
    payment.processed_by = actor
    payment.processed_at = datetime.now()


class ClaimLifecycle:
    """
    Owns the legal claim/payment transitions and their side effects.

    Handlers can be registered for claim statuses; they are called with the
    updated claim after it enters that status.
    """

    def __init__(
        self,
        coverage_percentage: Decimal = DEFAULT_COVERAGE_PERCENTAGE,
        require_rejection_notes: bool = True,
        today: Callable[[], date] = date.today,
        claim_machine: Optional[ClaimStateMachine] = None,
        payment_machine: Optional[PaymentStateMachine] = None,
    ):
        # Coverage policy is validated up front
        compute_payment_amount(Decimal("1"), coverage_percentage)
        self.coverage_percentage = Decimal(coverage_percentage)
        self.require_rejection_notes = require_rejection_notes
        self.today = today
        self.claim_machine = claim_machine or ClaimStateMachine()
        self.payment_machine = payment_machine or PaymentStateMachine()
        self._event_handlers: Dict[ClaimStatus, List[ClaimHandler]] = {}

        self.register_handler(ClaimStatus.APPROVED, self._on_approved)

    def register_handler(self, status: ClaimStatus, handler: ClaimHandler) -> None:
        """
        Register a handler to be called when a claim enters a status.

        Args:
            status: The status that triggers the handler
            handler: Function called with the updated claim
        """
        self._event_handlers.setdefault(status, []).append(handler)
        logger.debug(f"Registered handler for status {status.value}")

    def _on_state_entered(self, claim: Claim) -> None:
        for handler in self._event_handlers.get(claim.status, []):
            handler(claim)

    def _on_approved(self, claim: Claim) -> None:
        logger.info(f"Claim {claim.id} approved - payment derived")

    def _advance(self, claim: Claim, target: ClaimStatus, actor: str, notes: str = "") -> Claim:
        updated = claim.model_copy(deep=True)
        self.claim_machine.transition(updated, target)
        updated.add_audit_entry(actor=actor, decision=target.name, raw_reasoning=notes)
        return updated

    # ------------------------------------------------------------------
    # Claim transitions
    # ------------------------------------------------------------------

    def mark_ready(self, claim: Claim, actor: str = "Patient") -> Claim:
        """Move a completed draft to PENDING."""
        updated = self._advance(claim, ClaimStatus.PENDING, actor)
        self._on_state_entered(updated)
        return updated

    def submit_claim(self, claim: Claim, actor: str = "Patient") -> Claim:
        """
        Submit a draft or pending claim for insurance review.

        Raises:
            InvalidTransitionError: If the claim is not DRAFT or PENDING
        """
        updated = self._advance(claim, ClaimStatus.SUBMITTED, actor)
        updated.submitted_date = self.today()
        logger.info(f"Claim {claim.id} submitted by {actor}")
        self._on_state_entered(updated)
        return updated

    def start_review(self, claim: Claim, actor: str = "Insurance Reviewer") -> Claim:
        """Open a submitted claim for review."""
        updated = self._advance(claim, ClaimStatus.UNDER_REVIEW, actor)
        logger.info(f"Claim {claim.id} under review by {actor}")
        self._on_state_entered(updated)
        return updated

    def review_claim(
        self,
        claim: Claim,
        decision: ReviewDecision,
        notes: Optional[str] = None,
        existing_payments: Iterable[Payment] = (),
        coverage_percentage: Optional[Decimal] = None,
        approved_amount: Optional[Decimal] = None,
        actor: str = "Insurance Reviewer",
    ) -> Tuple[Claim, Optional[Payment]]:
        """
        Record an insurance decision on a claim.

        Approval derives exactly one PENDING payment for the claim.
        Rejection stores the notes as insurance notes and creates nothing.

        Args:
            claim: Claim in SUBMITTED or UNDER_REVIEW
            decision: APPROVED or REJECTED
            notes: Reviewer notes, required for rejections by default
            existing_payments: Payments already stored for this claim
            coverage_percentage: Overrides the configured coverage
            approved_amount: Pays this amount instead of the coverage-derived one

        Returns:
            Tuple of (updated claim, new payment or None)

        Raises:
            InvalidTransitionError: If the claim cannot be reviewed
            ValidationError: If the decision is unknown, a rejection has no
                notes, or the payable amount is not in (0, cost]
            DuplicatePaymentError: If the claim already has an active payment
        """
        try:
            decision = ReviewDecision(decision)
        except ValueError:
            raise ValidationError(
                f"Unknown review decision {decision!r}. "
                f"Valid: {[d.value for d in ReviewDecision]}",
                entity_id=claim.id,
            ) from None
        target = ClaimStatus(decision.value)
        self.claim_machine.check_transition(claim, target)

        if decision is ReviewDecision.REJECTED:
            if self.require_rejection_notes and not (notes and notes.strip()):
                raise ValidationError(
                    f"Rejecting claim {claim.id} requires notes", entity_id=claim.id
                )
            updated = self._advance(claim, target, actor, notes or "")
            updated.reviewed_date = self.today()
            updated.insurance_notes = notes
            logger.info(f"Claim {claim.id} rejected by {actor}")
            self._on_state_entered(updated)
            return updated, None

        existing = find_active_payment(existing_payments)
        if existing is not None:
            raise DuplicatePaymentError(
                f"Claim {claim.id} already has active payment {existing.id} "
                f"({existing.status.value})",
                entity_id=claim.id,
            )

        coverage = None
        if approved_amount is None:
            coverage = self.coverage_percentage if coverage_percentage is None else Decimal(coverage_percentage)
            amount = compute_payment_amount(claim.cost, coverage)
        else:
            amount = approved_amount
        amount = check_payable_amount(claim, amount)

        updated = self._advance(claim, target, actor, notes or "")
        updated.reviewed_date = self.today()
        updated.approved_amount = amount
        if notes is not None:
            updated.insurance_notes = notes

        payment = Payment(
            claim_id=claim.id,
            amount=amount,
            coverage_percentage=coverage,
            initiated_date=self.today(),
        )
        reasoning = (
            f"Derived from approved claim at {coverage} coverage" if coverage is not None
            else f"Approved amount {amount} set by reviewer"
        )
        payment.add_audit_entry(actor=actor, decision="CREATED", raw_reasoning=reasoning)
        self._on_state_entered(updated)
        return updated, payment

    # ------------------------------------------------------------------
    # Payment transitions
    # ------------------------------------------------------------------

    def create_payment(
        self,
        claim: Claim,
        existing_payments: Iterable[Payment] = (),
        amount: Optional[Decimal] = None,
        notes: Optional[str] = None,
        actor: str = "Bank",
    ) -> Payment:
        """
        Create a payment for an approved claim whose earlier payment was rejected.

        Without an explicit amount the claim's approved amount is paid again.

        Raises:
            InvalidTransitionError: If the claim is not APPROVED
            DuplicatePaymentError: If the claim already has an active payment
            ValidationError: If the amount is not in (0, cost]
        """
        if claim.status is not ClaimStatus.APPROVED:
            raise InvalidTransitionError(
                f"Payments can only be created for approved claims; "
                f"claim {claim.id} is {claim.status.value}",
                entity_id=claim.id,
            )
        existing = find_active_payment(existing_payments)
        if existing is not None:
            raise DuplicatePaymentError(
                f"Claim {claim.id} already has active payment {existing.id}",
                entity_id=claim.id,
            )

        coverage = None
        if amount is None and claim.approved_amount is not None:
            amount = claim.approved_amount
        elif amount is None:
            coverage = self.coverage_percentage
            amount = compute_payment_amount(claim.cost, coverage)
        amount = check_payable_amount(claim, amount)

        payment = Payment(
            claim_id=claim.id,
            amount=amount,
            coverage_percentage=coverage,
            initiated_date=self.today(),
            bank_notes=notes,
        )
        payment.add_audit_entry(actor=actor, decision="CREATED", raw_reasoning=notes or "")
        logger.info(f"Payment {payment.id} created for claim {claim.id} by {actor}")
        return payment

    def initiate_payment(self, payment: Payment, actor: str = "Bank") -> Payment:
        """Mark a pending payment as being processed by the bank."""
        updated = payment.model_copy(deep=True)
        self.payment_machine.transition(updated, PaymentStatus.INITIATED)
        _mark_processed(updated, actor)
        updated.add_audit_entry(actor=actor, decision="INITIATED")
        logger.info(f"Payment {payment.id} initiated by {actor}")
        return updated

    def complete_payment(
        self,
        payment: Payment,
        claim: Claim,
        notes: Optional[str] = None,
        transaction_id: Optional[str] = None,
        actor: str = "Bank",
    ) -> Tuple[Payment, Claim]:
        """
        Complete a payment and mark its claim as paid.

        Raises:
            InvalidTransitionError: If the payment is already settled or the
                claim is not APPROVED
            ValidationError: If the payment does not belong to the claim
        """
        if payment.claim_id != claim.id:
            raise ValidationError(
                f"Payment {payment.id} belongs to claim {payment.claim_id}, not {claim.id}",
                entity_id=payment.id,
            )
        self.payment_machine.check_transition(payment, PaymentStatus.COMPLETED)
        self.claim_machine.check_transition(claim, ClaimStatus.PAID)

        updated_payment = payment.model_copy(deep=True)
        self.payment_machine.transition(updated_payment, PaymentStatus.COMPLETED)
        updated_payment.completed_date = self.today()
        updated_payment.bank_notes = notes
        updated_payment.transaction_id = transaction_id
        _mark_processed(updated_payment, actor)
        updated_payment.add_audit_entry(actor=actor, decision="COMPLETED", raw_reasoning=notes or "")

        updated_claim = self._advance(claim, ClaimStatus.PAID, actor, notes or "")
        updated_claim.paid_date = self.today()

        logger.info(f"Payment {payment.id} completed; claim {claim.id} paid")
        self._on_state_entered(updated_claim)
        return updated_payment, updated_claim

    def reject_payment(
        self,
        payment: Payment,
        notes: Optional[str] = None,
        failure_reason: Optional[str] = None,
        actor: str = "Bank",
    ) -> Payment:
        """
        Reject a payment. The claim stays APPROVED and can be paid again.

        Raises:
            InvalidTransitionError: If the payment is already settled
        """
        updated = payment.model_copy(deep=True)
        self.payment_machine.transition(updated, PaymentStatus.REJECTED)
        updated.completed_date = self.today()
        updated.bank_notes = notes
        updated.failure_reason = failure_reason
        _mark_processed(updated, actor)
        updated.add_audit_entry(
            actor=actor, decision="REJECTED", raw_reasoning=failure_reason or notes or ""
        )
        logger.info(f"Payment {payment.id} rejected by {actor}")
        return updated

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def check_deletable(
        self,
        claim: Claim,
        payments: Iterable[Payment],
        protect_completed: bool = False,
    ) -> None:
        """
        Validate that a claim and its payments may be deleted.

        Deletion cascades to every payment unless protect_completed is set,
        in which case a completed payment blocks it.
        """
        if not protect_completed:
            return
        for payment in payments:
            if payment.status is PaymentStatus.COMPLETED:
                raise InvalidTransitionError(
                    f"Claim {claim.id} has completed payment {payment.id} and cannot be deleted",
                    entity_id=claim.id,
                )
