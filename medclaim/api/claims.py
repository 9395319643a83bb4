"""
FastAPI Endpoints for Claims

Creation, submission, review and deletion of insurance claims.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from medclaim.core.models import ActionRequest, Claim, ClaimCreate, Payment, ReviewRequest
from medclaim.core.states import ClaimStatus
from medclaim.services.claim_service import ClaimService

from .dependencies import get_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/claims", tags=["claims"])


class ClaimResponse(BaseModel):
    """Response model for claim operations."""
    claim: Claim
    message: str
    next_valid_states: List[ClaimStatus]


class ReviewResponse(BaseModel):
    """Response model for a review decision."""
    claim: Claim
    payment: Optional[Payment] = None
    message: str


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ClaimListResponse(BaseModel):
    claims: List[Claim]
    pagination: Pagination


class StateHistoryResponse(BaseModel):
    """Response model for state history."""
    claim_id: str
    current_state: ClaimStatus
    state_history: List[ClaimStatus]
    payments: List[Payment]


class FromTreatmentRequest(BaseModel):
    notes: Optional[str] = None
    actor: str = "Doctor"


def _parse_status(value: Optional[str]) -> Optional[ClaimStatus]:
    if value is None:
        return None
    try:
        return ClaimStatus.parse(value)
    except ValueError:
        logger.warning(f"Rejected claim listing with unknown status '{value}'")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown claim status '{value}'. Valid: {[s.value for s in ClaimStatus]}"
        )


def _claim_response(service: ClaimService, claim: Claim, message: str) -> ClaimResponse:
    return ClaimResponse(
        claim=claim,
        message=message,
        next_valid_states=service.lifecycle.claim_machine.get_valid_transitions(claim)
    )


@router.post("/", response_model=ClaimResponse, status_code=status.HTTP_201_CREATED)
async def create_claim(
    claim_data: ClaimCreate,
    service: ClaimService = Depends(get_service)
) -> ClaimResponse:
    """
    Create a new claim.

    Claims with a doctor and supporting documents start in PENDING,
    incomplete ones in DRAFT.
    """
    claim = service.create_claim(claim_data)
    return _claim_response(
        service, claim, f"Claim created successfully with ID {claim.id}"
    )


@router.post(
    "/from-treatment/{treatment_id}",
    response_model=ClaimResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_claim_from_treatment(
    treatment_id: str,
    request: FromTreatmentRequest | None = None,
    service: ClaimService = Depends(get_service)
) -> ClaimResponse:
    """Raise a claim from a doctor's submitted treatment record."""
    request = request or FromTreatmentRequest()
    claim = service.create_claim_from_treatment(
        treatment_id, notes=request.notes, actor=request.actor
    )
    return _claim_response(
        service, claim, f"Claim {claim.id} created from treatment {treatment_id}"
    )


@router.get("/", response_model=ClaimListResponse)
async def list_claims(
    status_filter: Optional[str] = Query(None, alias="status"),
    patient_id: Optional[str] = None,
    doctor_id: Optional[str] = None,
    include_drafts: bool = False,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    service: ClaimService = Depends(get_service)
) -> ClaimListResponse:
    """
    List claims, newest first.

    Drafts are excluded unless include_drafts is set or status=draft.
    """
    limit = limit or service.default_page_size
    claims, total = service.list_claims(
        status=_parse_status(status_filter),
        patient_id=patient_id,
        doctor_id=doctor_id,
        include_drafts=include_drafts,
        page=page,
        limit=limit,
    )
    return ClaimListResponse(
        claims=claims,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=(total + limit - 1) // limit,
        )
    )


@router.get("/dashboard/summary")
async def get_dashboard_summary(service: ClaimService = Depends(get_service)) -> Dict[str, Any]:
    """Get summary statistics for the dashboard."""
    return service.summary()


@router.get("/{claim_id}", response_model=ClaimResponse)
async def get_claim(claim_id: str, service: ClaimService = Depends(get_service)) -> ClaimResponse:
    """Get details of a specific claim."""
    claim = service.get_claim(claim_id)
    return _claim_response(service, claim, f"Claim {claim_id} retrieved")


@router.get("/{claim_id}/history", response_model=StateHistoryResponse)
async def get_claim_history(
    claim_id: str,
    service: ClaimService = Depends(get_service)
) -> StateHistoryResponse:
    """Get the status history of a claim and the payments derived from it."""
    claim = service.get_claim(claim_id)
    return StateHistoryResponse(
        claim_id=claim.id,
        current_state=claim.status,
        state_history=claim.state_history,
        payments=service.list_payments(claim_id=claim.id)
    )


@router.post("/{claim_id}/ready", response_model=ClaimResponse)
async def mark_claim_ready(
    claim_id: str,
    request: ActionRequest | None = None,
    service: ClaimService = Depends(get_service)
) -> ClaimResponse:
    """Move a completed draft to PENDING."""
    actor = request.actor if request else "Patient"
    claim = service.mark_ready(claim_id, actor=actor)
    return _claim_response(service, claim, f"Claim {claim_id} is ready for submission")


@router.post("/{claim_id}/submit", response_model=ClaimResponse)
async def submit_claim(
    claim_id: str,
    request: ActionRequest | None = None,
    service: ClaimService = Depends(get_service)
) -> ClaimResponse:
    """Submit a draft or pending claim to insurance."""
    actor = request.actor if request else "Patient"
    claim = service.submit_claim(claim_id, actor=actor)
    return _claim_response(service, claim, f"Claim {claim_id} submitted")


@router.post("/{claim_id}/start-review", response_model=ClaimResponse)
async def start_review(
    claim_id: str,
    request: ActionRequest | None = None,
    service: ClaimService = Depends(get_service)
) -> ClaimResponse:
    """Open a submitted claim for insurance review."""
    actor = request.actor if request else "Insurance Reviewer"
    claim = service.start_review(claim_id, actor=actor)
    return _claim_response(service, claim, f"Claim {claim_id} is under review")


@router.post("/{claim_id}/review", response_model=ReviewResponse)
async def review_claim(
    claim_id: str,
    request: ReviewRequest,
    service: ClaimService = Depends(get_service)
) -> ReviewResponse:
    """
    Approve or reject a claim.

    Approval creates a pending payment of floor(cost * coverage), or of
    approved_amount when the reviewer sets one.
    """
    claim, payment = service.review_claim(
        claim_id,
        request.decision,
        notes=request.notes,
        coverage_percentage=request.coverage_percentage,
        approved_amount=request.approved_amount,
        actor=request.actor,
    )
    message = f"Claim {claim_id} {claim.status.value} by {request.actor}"
    if payment is not None:
        message += f". Payment {payment.id} of {payment.amount} created"
    logger.info(message)
    return ReviewResponse(claim=claim, payment=payment, message=message)


@router.delete("/{claim_id}")
async def delete_claim(claim_id: str, service: ClaimService = Depends(get_service)) -> Dict[str, str]:
    """Delete a claim and every payment derived from it."""
    service.delete_claim(claim_id)
    return {"message": f"Claim {claim_id} deleted successfully"}
