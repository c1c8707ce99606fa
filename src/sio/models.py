"""
SIO Domain Models

Pydantic models shared by the admission lifecycle, the storage backends
and the API layer.
"""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field


# =============================================================================
# Enumerations
# =============================================================================

class Role(str, Enum):
    """Staff roles carried in the access token."""
    DOCTOR = "DOC"
    NURSE = "INF"
    ADMINISTRATIVE = "AMM"


class AdmissionStatus(str, Enum):
    """Clinical status of an emergency room visit."""
    WAITING = "ATT"
    IN_VISIT = "VIS"
    OBSERVATION = "OBI"
    ADMITTED = "RIC"
    DISCHARGED = "DIM"


# =============================================================================
# Inputs
# =============================================================================

class Demographics(BaseModel):
    """Patient demographic data supplied at intake."""
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    birth_date: date
    street: str | None = Field(default=None, max_length=255)
    street_number: str | None = Field(default=None, max_length=20)
    city: str | None = Field(default=None, max_length=100)
    province: str | None = Field(default=None, max_length=5)


class PatientInput(Demographics):
    """Demographics plus the fiscal code used to deduplicate patients."""
    fiscal_code: str = Field(min_length=1, max_length=16)

    def demographics(self) -> Demographics:
        return Demographics(**self.model_dump(exclude={"fiscal_code"}))


class ClinicalInput(BaseModel):
    """Clinical classification recorded at intake."""
    pathology_code: str | None = Field(default=None, max_length=10)
    color_code: str | None = Field(default=None, max_length=20)
    arrival_mode: str | None = Field(default=None, max_length=20)


# =============================================================================
# Records
# =============================================================================

class Patient(Demographics):
    """Stored patient record."""
    id: int
    fiscal_code: str


class Admission(BaseModel):
    """Stored emergency room visit."""
    id: int
    patient_id: int
    bracelet: str
    admitted_at: datetime
    status: AdmissionStatus
    color_code: str | None = None
    pathology_code: str | None = None
    arrival_mode: str | None = None


class TriageColor(BaseModel):
    """Triage color reference entry. Lower priority is more urgent."""
    code: str
    hex_value: str
    display_name: str
    priority: int


class PatientSummary(BaseModel):
    """Patient fields shown in the waiting queue."""
    id: int
    fiscal_code: str
    first_name: str
    last_name: str
    birth_date: date


class QueueEntry(BaseModel):
    """Active admission joined with its patient and color."""
    admission: Admission
    patient: PatientSummary
    color: TriageColor | None = None


class AdmissionDetail(BaseModel):
    """Full view of one admission."""
    admission: Admission
    patient: Patient
    color: TriageColor | None = None
