"""
In-Memory Claim Store

Repository for claims, payments and treatments keyed by id. Records are
copied on the way in and out, so callers only ever hold values.

Writes are conditional: a caller states which status it read, and the
store refuses the write if the stored record has moved on since. Together
with the per-claim lock from transaction(), this guarantees that at most
one active payment is ever stored for a claim.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from medclaim.core.errors import DuplicatePaymentError, InvalidTransitionError, NotFoundError
from medclaim.core.models import Claim, Payment, Treatment
from medclaim.core.states import ClaimStatus, PaymentStatus

logger = logging.getLogger(__name__)


class InMemoryClaimStore:
    """Process-local store; swap for a database-backed one in production."""

    def __init__(self):
        self._claims: Dict[str, Claim] = {}
        self._payments: Dict[str, Payment] = {}
        self._treatments: Dict[str, Treatment] = {}
        self._claim_locks: Dict[str, threading.RLock] = {}
        self._guard = threading.RLock()

    @contextmanager
    def transaction(self, claim_id: str) -> Iterator[None]:
        """
        Hold the per-claim lock for a load -> transition -> save sequence.

        Raises:
            NotFoundError: If the claim does not exist; no lock is created for it
        """
        with self._guard:
            if claim_id not in self._claims:
                raise NotFoundError(f"Claim {claim_id} not found", entity_id=claim_id)
            lock = self._claim_locks.setdefault(claim_id, threading.RLock())
        with lock:
            yield

    # Claims

    def load_claim(self, claim_id: str) -> Claim:
        with self._guard:
            claim = self._claims.get(claim_id)
            if claim is None:
                raise NotFoundError(f"Claim {claim_id} not found", entity_id=claim_id)
            return claim.model_copy(deep=True)

    def list_claims(self) -> List[Claim]:
        with self._guard:
            return [c.model_copy(deep=True) for c in self._claims.values()]

    def save_claim(self, claim: Claim, expected_status: Optional[ClaimStatus] = None) -> None:
        self.save(claim=claim, expected_claim_status=expected_status)

    def delete_claim(self, claim_id: str) -> List[Payment]:
        """
        Remove a claim and cascade to all of its payments.

        Returns:
            The payments that were removed with the claim
        """
        with self._guard:
            if claim_id not in self._claims:
                raise NotFoundError(f"Claim {claim_id} not found", entity_id=claim_id)
            del self._claims[claim_id]
            removed = [p for p in self._payments.values() if p.claim_id == claim_id]
            for payment in removed:
                del self._payments[payment.id]
            self._claim_locks.pop(claim_id, None)
        return removed

    # Payments

    def load_payment(self, payment_id: str) -> Payment:
        with self._guard:
            payment = self._payments.get(payment_id)
            if payment is None:
                raise NotFoundError(f"Payment {payment_id} not found", entity_id=payment_id)
            return payment.model_copy(deep=True)

    def list_payments(self) -> List[Payment]:
        with self._guard:
            return [p.model_copy(deep=True) for p in self._payments.values()]

    def payments_for_claim(self, claim_id: str) -> List[Payment]:
        with self._guard:
            return [
                p.model_copy(deep=True)
                for p in self._payments.values()
                if p.claim_id == claim_id
            ]

    def add_payment(self, payment: Payment) -> None:
        self.save(payment=payment)

    def save_payment(self, payment: Payment, expected_status: Optional[PaymentStatus] = None) -> None:
        self.save(payment=payment, expected_payment_status=expected_status)

    # Atomic conditional write

    def save(
        self,
        claim: Optional[Claim] = None,
        payment: Optional[Payment] = None,
        expected_claim_status: Optional[ClaimStatus] = None,
        expected_payment_status: Optional[PaymentStatus] = None,
    ) -> None:
        """
        Write a claim and/or payment in one step.

        Args:
            claim: Claim to store
            payment: Payment to store; a payment with an unknown id is new
            expected_claim_status: Status the stored claim must still have
            expected_payment_status: Status the stored payment must still have

        Raises:
            InvalidTransitionError: If a stored record no longer has the expected status
            DuplicatePaymentError: If a new payment would be a second active payment
            NotFoundError: If a new payment references an unknown claim
        """
        with self._guard:
            if claim is not None and expected_claim_status is not None:
                current = self._claims.get(claim.id)
                if current is None:
                    raise NotFoundError(f"Claim {claim.id} not found", entity_id=claim.id)
                if current.status is not expected_claim_status:
                    raise InvalidTransitionError(
                        f"Claim {claim.id} changed concurrently: expected "
                        f"{expected_claim_status.value}, found {current.status.value}",
                        entity_id=claim.id,
                    )

            if payment is not None:
                stored = self._payments.get(payment.id)
                if stored is None:
                    self._check_new_payment(payment, claim)
                elif expected_payment_status is not None and stored.status is not expected_payment_status:
                    raise InvalidTransitionError(
                        f"Payment {payment.id} changed concurrently: expected "
                        f"{expected_payment_status.value}, found {stored.status.value}",
                        entity_id=payment.id,
                    )

            if claim is not None:
                self._claims[claim.id] = claim.model_copy(deep=True)
            if payment is not None:
                self._payments[payment.id] = payment.model_copy(deep=True)

    def _check_new_payment(self, payment: Payment, claim: Optional[Claim]) -> None:
        if payment.claim_id not in self._claims and (claim is None or claim.id != payment.claim_id):
            raise NotFoundError(
                f"Claim {payment.claim_id} not found for payment {payment.id}",
                entity_id=payment.claim_id,
            )
        if not payment.status.is_active:
            return
        for other in self._payments.values():
            if other.claim_id == payment.claim_id and other.status.is_active:
                raise DuplicatePaymentError(
                    f"Claim {payment.claim_id} already has active payment {other.id}",
                    entity_id=payment.claim_id,
                )

    # Treatments

    def save_treatment(self, treatment: Treatment) -> None:
        with self._guard:
            self._treatments[treatment.id] = treatment.model_copy(deep=True)

    def load_treatment(self, treatment_id: str) -> Treatment:
        with self._guard:
            treatment = self._treatments.get(treatment_id)
            if treatment is None:
                raise NotFoundError(f"Treatment {treatment_id} not found", entity_id=treatment_id)
            return treatment.model_copy(deep=True)

    def list_treatments(self) -> List[Treatment]:
        with self._guard:
            return [t.model_copy(deep=True) for t in self._treatments.values()]
