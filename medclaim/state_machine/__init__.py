# State machine module
from .machine import ClaimStateMachine, PaymentStateMachine

__all__ = ["ClaimStateMachine", "PaymentStateMachine"]
