"""
Claim and Payment Status Definitions

Canonical status vocabularies for claims, payments and treatments.
"""
from enum import Enum


class _CanonicalStatus(str, Enum):
    """
    Status enum that accepts legacy spellings.

    Older surfaces send 'APPROVED', 'Under Review' or 'under-review';
    all of them resolve to the same lowercase member.
    """

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
            for member in cls:
                if member.value == normalized:
                    return member
        return None

    @classmethod
    def parse(cls, value: str):
        """Resolve a status string, raising ValueError for unknown values."""
        return cls(value)


class ClaimStatus(_CanonicalStatus):
    """
    Enum representing the possible states of an insurance claim.

    Flow: DRAFT -> PENDING -> SUBMITTED -> UNDER_REVIEW -> APPROVED -> PAID
    Rejection: SUBMITTED/UNDER_REVIEW -> REJECTED
    """
    DRAFT = "draft"
    PENDING = "pending"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"

    @property
    def is_terminal(self) -> bool:
        return self in (ClaimStatus.REJECTED, ClaimStatus.PAID)


class PaymentStatus(_CanonicalStatus):
    """
    Enum representing the possible states of a payment.

    Flow: PENDING -> INITIATED -> COMPLETED
    Rejection: PENDING/INITIATED -> REJECTED
    """
    PENDING = "pending"
    INITIATED = "initiated"
    COMPLETED = "completed"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (PaymentStatus.COMPLETED, PaymentStatus.REJECTED)

    @property
    def is_active(self) -> bool:
        """Every payment that has not been rejected counts against its claim."""
        return self is not PaymentStatus.REJECTED


class ReviewDecision(_CanonicalStatus):
    """Outcome an insurance reviewer can record for a claim."""
    APPROVED = "approved"
    REJECTED = "rejected"


class TreatmentStatus(_CanonicalStatus):
    PENDING = "pending"
    SUBMITTED = "submitted"
