"""
FastAPI Endpoints for Treatments

Doctor-authored treatment records that claims can be raised from.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from medclaim.core.models import Treatment, TreatmentCreate
from medclaim.core.states import TreatmentStatus
from medclaim.services.claim_service import ClaimService

from .dependencies import get_service

router = APIRouter(prefix="/treatments", tags=["treatments"])


class ValidationRequest(BaseModel):
    is_valid: bool
    notes: Optional[str] = None


@router.post("/", response_model=Treatment, status_code=status.HTTP_201_CREATED)
async def create_treatment(
    data: TreatmentCreate,
    service: ClaimService = Depends(get_service)
) -> Treatment:
    return service.create_treatment(data)


@router.get("/", response_model=List[Treatment])
async def list_treatments(
    status_filter: Optional[str] = Query(None, alias="status"),
    doctor_id: Optional[str] = None,
    service: ClaimService = Depends(get_service)
) -> List[Treatment]:
    treatment_status = None
    if status_filter is not None:
        try:
            treatment_status = TreatmentStatus.parse(status_filter)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown treatment status '{status_filter}'"
            )
    return service.list_treatments(status=treatment_status, doctor_id=doctor_id)


@router.get("/{treatment_id}", response_model=Treatment)
async def get_treatment(treatment_id: str, service: ClaimService = Depends(get_service)) -> Treatment:
    return service.get_treatment(treatment_id)


@router.post("/{treatment_id}/submit", response_model=Treatment)
async def submit_treatment(treatment_id: str, service: ClaimService = Depends(get_service)) -> Treatment:
    """Submit a pending treatment so a claim can be raised from it."""
    return service.submit_treatment(treatment_id)


@router.post("/{treatment_id}/validate", response_model=Treatment)
async def validate_treatment(
    treatment_id: str,
    request: ValidationRequest,
    service: ClaimService = Depends(get_service)
) -> Treatment:
    """Record whether the treatment qualifies for a claim."""
    return service.validate_treatment(treatment_id, request.is_valid, request.notes)
