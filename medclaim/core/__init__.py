# Core module - statuses, models and errors
from .states import ClaimStatus, PaymentStatus, ReviewDecision, TreatmentStatus
from .models import (
    ActionRequest,
    AuditLogEntry,
    Claim,
    ClaimCreate,
    Payment,
    PaymentCreate,
    ReviewRequest,
    SettlementRequest,
    Treatment,
    TreatmentCreate,
)
from .errors import (
    DuplicatePaymentError,
    InvalidTransitionError,
    LifecycleError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "ClaimStatus",
    "PaymentStatus",
    "ReviewDecision",
    "TreatmentStatus",
    "ActionRequest",
    "AuditLogEntry",
    "Claim",
    "ClaimCreate",
    "Payment",
    "PaymentCreate",
    "ReviewRequest",
    "SettlementRequest",
    "Treatment",
    "TreatmentCreate",
    "DuplicatePaymentError",
    "InvalidTransitionError",
    "LifecycleError",
    "NotFoundError",
    "ValidationError",
]
