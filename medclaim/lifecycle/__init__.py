# Lifecycle module
from .claim_lifecycle import (
    DEFAULT_COVERAGE_PERCENTAGE,
    ClaimLifecycle,
    check_payable_amount,
    compute_payment_amount,
    find_active_payment,
)

__all__ = [
    "DEFAULT_COVERAGE_PERCENTAGE",
    "ClaimLifecycle",
    "check_payable_amount",
    "compute_payment_amount",
    "find_active_payment",
]
