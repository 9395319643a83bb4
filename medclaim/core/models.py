"""
Claim and Payment Pydantic Models

Defines the records moved through the lifecycle, with validation.
"""
import random
import string
import time
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .states import ClaimStatus, PaymentStatus, ReviewDecision, TreatmentStatus


def has_required_details(doctor_id: Optional[str], documents: List[str]) -> bool:
    """A claim with a doctor and at least one document is ready for submission."""
    return bool(doctor_id) and bool(documents)


def generate_claim_number() -> str:
    """Human readable claim reference, e.g. CLM-482913-K3ZQ9A."""
    timestamp = str(int(time.time() * 1000))
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"CLM-{timestamp[-6:]}-{suffix}"


class AuditLogEntry(BaseModel):
    """Entry in a claim or payment audit log."""
    actor: str = Field(..., description="Role or person that performed the action")
    timestamp: datetime = Field(default_factory=datetime.now, description="When the event occurred")
    decision: str = Field(..., description="The action taken, e.g. SUBMITTED or APPROVED")
    raw_reasoning: str = Field(default="", description="Notes supplied with the action")


class _Audited(BaseModel):
    audit_log: List[AuditLogEntry] = Field(
        default_factory=list,
        description="Audit trail of every transition applied to the record"
    )
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: Optional[datetime] = Field(default=None)

    def add_audit_entry(self, actor: str, decision: str, raw_reasoning: str = "") -> None:
        """Add an entry to the audit log."""
        self.audit_log.append(
            AuditLogEntry(actor=actor, decision=decision, raw_reasoning=raw_reasoning)
        )
        self.updated_at = datetime.now()


class ClaimCreate(BaseModel):
    """Request model for creating a new claim."""
    patient_id: str = Field(..., min_length=1)
    patient_name: str = Field(default="")
    doctor_id: Optional[str] = Field(default=None)
    doctor_name: str = Field(default="")
    treatment_id: Optional[str] = Field(default=None)
    diagnosis: str = Field(..., min_length=1)
    cost: Decimal = Field(..., gt=0, description="Claimed cost, must be positive")
    documents: List[str] = Field(default_factory=list, description="Supporting document references")
    notes: Optional[str] = Field(default=None)

    @property
    def is_complete(self) -> bool:
        return has_required_details(self.doctor_id, self.documents)


class Claim(_Audited):
    """
    Insurance Claim Model

    A patient's reimbursement request tied to a treatment. The status only
    changes through ClaimLifecycle; every change is kept in state_history.
    """
    id: str = Field(default_factory=lambda: str(uuid4()), description="Unique claim identifier")
    claim_number: str = Field(default_factory=generate_claim_number)
    patient_id: str
    patient_name: str = ""
    doctor_id: Optional[str] = None
    doctor_name: str = ""
    treatment_id: Optional[str] = None
    diagnosis: str
    cost: Decimal = Field(..., gt=0, description="Claimed cost")
    documents: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    insurance_notes: Optional[str] = None
    approved_amount: Optional[Decimal] = Field(default=None, description="Amount granted on approval")
    status: ClaimStatus = Field(default=ClaimStatus.PENDING)
    state_history: List[ClaimStatus] = Field(
        default_factory=list,
        description="Statuses the claim has previously held"
    )
    submitted_date: Optional[date] = None
    reviewed_date: Optional[date] = None
    paid_date: Optional[date] = None

    @property
    def is_complete(self) -> bool:
        return has_required_details(self.doctor_id, self.documents)

    def record_state_change(self, new_status: ClaimStatus) -> None:
        """Record a status transition in history."""
        if self.status not in self.state_history:
            self.state_history.append(self.status)
        self.status = new_status
        self.updated_at = datetime.now()


class Payment(_Audited):
    """
    Payment Model

    A disbursement derived from an approved claim.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    claim_id: str
    amount: Decimal = Field(..., gt=0)
    coverage_percentage: Optional[Decimal] = Field(
        default=None,
        description="Coverage ratio the amount was derived with"
    )
    status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    initiated_date: date = Field(default_factory=date.today)
    completed_date: Optional[date] = None
    bank_notes: Optional[str] = None
    transaction_id: Optional[str] = Field(default=None, description="Bank reference of a completed transfer")
    failure_reason: Optional[str] = None
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None

    def record_state_change(self, new_status: PaymentStatus) -> None:
        self.status = new_status
        self.updated_at = datetime.now()


class TreatmentCreate(BaseModel):
    """Request model for a doctor-authored treatment record."""
    doctor_id: str = Field(..., min_length=1)
    doctor_name: str = ""
    patient_id: str = Field(..., min_length=1)
    patient_name: str = ""
    diagnosis: str = Field(..., min_length=1)
    treatment_details: Optional[str] = None
    cost: Decimal = Field(..., gt=0)
    treatment_date: date = Field(default_factory=date.today)
    medical_reports: List[str] = Field(default_factory=list)
    discharge_summary: Optional[str] = None


class Treatment(TreatmentCreate):
    """Clinical record a claim can be derived from. Read-only to the lifecycle."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    status: TreatmentStatus = Field(default=TreatmentStatus.PENDING)
    validated_for_claim: Optional[bool] = None
    validation_notes: Optional[str] = None


class ReviewRequest(BaseModel):
    """Request model for an insurance review decision."""
    decision: ReviewDecision
    notes: Optional[str] = None
    coverage_percentage: Optional[Decimal] = Field(
        default=None,
        gt=0,
        le=1,
        description="Overrides the configured coverage for this approval"
    )
    approved_amount: Optional[Decimal] = Field(
        default=None,
        gt=0,
        description="Explicit amount to pay instead of the coverage-derived one"
    )
    actor: str = "Insurance Reviewer"


class PaymentCreate(BaseModel):
    """Request model for a bank-created payment on an approved claim."""
    claim_id: str
    amount: Optional[Decimal] = Field(default=None, gt=0)
    notes: Optional[str] = None
    actor: str = "Bank"


class ActionRequest(BaseModel):
    """Request body shared by the simple transition endpoints."""
    notes: Optional[str] = None
    actor: str = "System"


class SettlementRequest(BaseModel):
    """Request body for the bank completing or rejecting a payment."""
    notes: Optional[str] = None
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    actor: str = "Bank"
