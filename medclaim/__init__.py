"""
MedClaim Lifecycle Service

Claim review and payment disbursement for a multi-role medical insurance
system.
"""
__version__ = "1.0.0"
