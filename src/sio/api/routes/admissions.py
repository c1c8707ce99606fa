"""
Admission Routes

Intake, waiting queue, visit detail and status changes.
"""

from datetime import date

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field

import structlog

from sio.api.auth import User, get_current_active_user
from sio.models import (
    Admission,
    AdmissionDetail,
    ClinicalInput,
    PatientInput,
    QueueEntry,
)
from sio.triage import AdmissionLifecycle

logger = structlog.get_logger(__name__)


def get_lifecycle(request: Request) -> AdmissionLifecycle:
    """Get the admission lifecycle from app state."""
    return request.app.state.lifecycle


router = APIRouter(prefix="/admissions", tags=["Admissions"])


# =============================================================================
# Request Models
# =============================================================================

class AdmissionCreateRequest(BaseModel):
    """New emergency room access: patient registry plus triage data."""
    # Registry
    fiscal_code: str = Field(min_length=1, max_length=16)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    birth_date: date
    street: str | None = Field(default=None, max_length=255)
    street_number: str | None = Field(default=None, max_length=20)
    city: str | None = Field(default=None, max_length=100)
    province: str | None = Field(default=None, max_length=5)

    # Triage
    pathology_code: str | None = Field(default=None, max_length=10)
    color_code: str | None = Field(default=None, max_length=20)
    arrival_mode: str | None = Field(default=None, max_length=20)

    def patient_input(self) -> PatientInput:
        return PatientInput(**self.model_dump(include=set(PatientInput.model_fields)))

    def clinical_input(self) -> ClinicalInput:
        return ClinicalInput(**self.model_dump(include=set(ClinicalInput.model_fields)))


class StatusUpdateRequest(BaseModel):
    """Target status; validated by the lifecycle so unknown codes map to invalid_state."""
    status: str


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=list[QueueEntry])
async def list_active_admissions(
    lifecycle: AdmissionLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_active_user),
):
    """
    Waiting room queue.

    Excludes admitted (RIC) and discharged (DIM) visits. Ordered by color
    priority, then most recent arrival first.
    """
    return await lifecycle.list_active()


@router.get("/{admission_id}", response_model=AdmissionDetail)
async def get_admission(
    admission_id: int,
    lifecycle: AdmissionLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_active_user),
):
    """Full admission record with patient registry and color."""
    return await lifecycle.get_detail(admission_id)


@router.post("", response_model=Admission, status_code=status.HTTP_201_CREATED)
async def create_admission(
    request: AdmissionCreateRequest,
    lifecycle: AdmissionLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_active_user),
):
    """
    Register a new access.

    Administrative staff are rejected with 403. The patient is created on
    the first access of a fiscal code and reused afterwards.
    """
    logger.info("Intake requested", username=user.username, role=user.role.value)
    return await lifecycle.create_admission(
        user.role,
        request.patient_input(),
        request.clinical_input(),
    )


@router.patch("/{admission_id}/status", response_model=Admission)
async def update_admission_status(
    admission_id: int,
    request: StatusUpdateRequest,
    lifecycle: AdmissionLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_active_user),
):
    """Move a visit to ATT, VIS, OBI, RIC or DIM."""
    return await lifecycle.transition(admission_id, request.status)
