"""
API Dependencies

Shared service instance handed to the routers. Tests replace it through
FastAPI's dependency overrides.
"""
from medclaim.config import settings
from medclaim.services.claim_service import ClaimService

# In-memory store behind the service (would be a database in production)
claim_service = ClaimService.from_settings(settings)


def get_service() -> ClaimService:
    return claim_service
