"""
Claim and Payment State Machines

Transition tables for claims and payments, and validation of requested
transitions against them.
"""
from typing import Dict, List, Set

from medclaim.core.errors import InvalidTransitionError
from medclaim.core.models import Claim, Payment
from medclaim.core.states import ClaimStatus, PaymentStatus


class ClaimStateMachine:
    """
    State machine for claim status transitions.

    Statuses only move forward; REJECTED and PAID are terminal.
    """

    # Define standard status flow
    STANDARD_FLOW: List[ClaimStatus] = [
        ClaimStatus.DRAFT,
        ClaimStatus.PENDING,
        ClaimStatus.SUBMITTED,
        ClaimStatus.UNDER_REVIEW,
        ClaimStatus.APPROVED,
        ClaimStatus.PAID,
    ]

    # Define valid transitions (from_status -> set of valid to_statuses)
    TRANSITIONS: Dict[ClaimStatus, Set[ClaimStatus]] = {
        ClaimStatus.DRAFT: {ClaimStatus.PENDING, ClaimStatus.SUBMITTED},
        ClaimStatus.PENDING: {ClaimStatus.SUBMITTED},
        ClaimStatus.SUBMITTED: {
            ClaimStatus.UNDER_REVIEW,
            ClaimStatus.APPROVED,
            ClaimStatus.REJECTED,
        },
        ClaimStatus.UNDER_REVIEW: {ClaimStatus.APPROVED, ClaimStatus.REJECTED},
        ClaimStatus.APPROVED: {ClaimStatus.PAID},
        ClaimStatus.REJECTED: set(),  # Terminal
        ClaimStatus.PAID: set(),  # Terminal
    }

    def get_valid_transitions(self, claim: Claim) -> List[ClaimStatus]:
        """Get list of valid next statuses for a claim, in flow order."""
        allowed = self.TRANSITIONS.get(claim.status, set())
        ordered = [s for s in self.STANDARD_FLOW if s in allowed]
        ordered.extend(s for s in ClaimStatus if s in allowed and s not in ordered)
        return ordered

    def can_transition(self, claim: Claim, target_status: ClaimStatus) -> bool:
        """Check if a transition to target_status is valid."""
        return target_status in self.TRANSITIONS.get(claim.status, set())

    def check_transition(self, claim: Claim, target_status: ClaimStatus) -> None:
        """
        Validate a transition without applying it.

        Raises:
            InvalidTransitionError: If the transition is not valid
        """
        if not self.can_transition(claim, target_status):
            valid = [s.value for s in self.get_valid_transitions(claim)]
            raise InvalidTransitionError(
                f"Invalid claim transition for {claim.id} from {claim.status.value} "
                f"to {target_status.value}. Valid transitions: {valid}",
                entity_id=claim.id,
            )

    def transition(self, claim: Claim, target_status: ClaimStatus) -> Claim:
        """
        Execute a status transition on the given claim.

        Args:
            claim: The claim to transition
            target_status: The desired next status

        Returns:
            The same claim with its new status recorded

        Raises:
            InvalidTransitionError: If the transition is not valid
        """
        self.check_transition(claim, target_status)
        claim.record_state_change(target_status)
        return claim


class PaymentStateMachine:
    """
    State machine for payment status transitions.

    COMPLETED and REJECTED are terminal, so a payment can never move back
    to PENDING once settled.
    """

    TRANSITIONS: Dict[PaymentStatus, Set[PaymentStatus]] = {
        PaymentStatus.PENDING: {
            PaymentStatus.INITIATED,
            PaymentStatus.COMPLETED,
            PaymentStatus.REJECTED,
        },
        PaymentStatus.INITIATED: {PaymentStatus.COMPLETED, PaymentStatus.REJECTED},
        PaymentStatus.COMPLETED: set(),
        PaymentStatus.REJECTED: set(),
    }

    def get_valid_transitions(self, payment: Payment) -> List[PaymentStatus]:
        allowed = self.TRANSITIONS.get(payment.status, set())
        return [s for s in PaymentStatus if s in allowed]

    def can_transition(self, payment: Payment, target_status: PaymentStatus) -> bool:
        return target_status in self.TRANSITIONS.get(payment.status, set())

    def check_transition(self, payment: Payment, target_status: PaymentStatus) -> None:
        if not self.can_transition(payment, target_status):
            valid = [s.value for s in self.get_valid_transitions(payment)]
            raise InvalidTransitionError(
                f"Invalid payment transition for {payment.id} from {payment.status.value} "
                f"to {target_status.value}. Valid transitions: {valid}",
                entity_id=payment.id,
            )

    def transition(self, payment: Payment, target_status: PaymentStatus) -> Payment:
        self.check_transition(payment, target_status)
        payment.record_state_change(target_status)
        return payment
