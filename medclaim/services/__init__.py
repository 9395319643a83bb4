"""
Services module for the MedClaim Lifecycle Service.

Business-logic facade the API layer calls into.
"""
from .claim_service import ClaimService

__all__ = [
    'ClaimService',
]
