"""
FastAPI Endpoints for Payments

Bank-side actions on payments derived from approved claims.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from medclaim.core.models import ActionRequest, Claim, Payment, PaymentCreate, SettlementRequest
from medclaim.core.states import PaymentStatus
from medclaim.services.claim_service import ClaimService

from .dependencies import get_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


class PaymentResponse(BaseModel):
    """Response model for payment operations."""
    payment: Payment
    claim: Optional[Claim] = None
    message: str


@router.get("/", response_model=List[Payment])
async def list_payments(
    status_filter: Optional[str] = Query(None, alias="status"),
    claim_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    service: ClaimService = Depends(get_service)
) -> List[Payment]:
    """List payments, newest first."""
    payment_status = None
    if status_filter is not None:
        try:
            payment_status = PaymentStatus.parse(status_filter)
        except ValueError:
            logger.warning(f"Rejected payment listing with unknown status '{status_filter}'")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown payment status '{status_filter}'"
            )
    return service.list_payments(status=payment_status, claim_id=claim_id, limit=limit)


@router.post("/", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    request: PaymentCreate,
    service: ClaimService = Depends(get_service)
) -> PaymentResponse:
    """
    Create a payment for an approved claim.

    Only allowed when the claim has no active payment, e.g. after the
    previous payment was rejected.
    """
    payment = service.create_payment(
        request.claim_id, amount=request.amount, notes=request.notes, actor=request.actor
    )
    return PaymentResponse(
        payment=payment,
        message=f"Payment {payment.id} created for claim {request.claim_id}"
    )


@router.get("/{payment_id}", response_model=Payment)
async def get_payment(payment_id: str, service: ClaimService = Depends(get_service)) -> Payment:
    return service.get_payment(payment_id)


@router.post("/{payment_id}/initiate", response_model=PaymentResponse)
async def initiate_payment(
    payment_id: str,
    request: ActionRequest | None = None,
    service: ClaimService = Depends(get_service)
) -> PaymentResponse:
    """Start processing a pending payment."""
    actor = request.actor if request else "Bank"
    payment = service.initiate_payment(payment_id, actor=actor)
    return PaymentResponse(payment=payment, message=f"Payment {payment_id} initiated")


@router.post("/{payment_id}/complete", response_model=PaymentResponse)
async def complete_payment(
    payment_id: str,
    request: SettlementRequest | None = None,
    service: ClaimService = Depends(get_service)
) -> PaymentResponse:
    """Complete a payment; its claim moves to PAID."""
    request = request or SettlementRequest()
    payment, claim = service.complete_payment(
        payment_id,
        notes=request.notes,
        transaction_id=request.transaction_id,
        actor=request.actor,
    )
    return PaymentResponse(
        payment=payment,
        claim=claim,
        message=f"Payment {payment_id} completed. Claim {claim.id} marked as paid"
    )


@router.post("/{payment_id}/reject", response_model=PaymentResponse)
async def reject_payment(
    payment_id: str,
    request: SettlementRequest | None = None,
    service: ClaimService = Depends(get_service)
) -> PaymentResponse:
    """Reject a payment. The claim stays approved and can be paid again."""
    request = request or SettlementRequest()
    payment = service.reject_payment(
        payment_id,
        notes=request.notes,
        failure_reason=request.failure_reason,
        actor=request.actor,
    )
    if payment.failure_reason:
        logger.info(f"Payment {payment_id} failed: {payment.failure_reason}")
    return PaymentResponse(
        payment=payment,
        message=f"Payment {payment_id} rejected. Claim {payment.claim_id} remains approved"
    )
