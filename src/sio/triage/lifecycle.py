"""
Admission Lifecycle

Intake, status transitions and the read views of the triage desk.

Intake runs as one transaction over patient resolution, bracelet
allocation and the admission insert; any failure rolls all three back.
Status transitions are a single-row update, last writer wins.
"""

from datetime import datetime
from typing import Callable

import structlog

from sio.config import TriageSettings
from sio.db.base import TriageStore
from sio.errors import ConstraintViolation, DuplicateKey, Forbidden, NotFound
from sio.models import (
    Admission,
    AdmissionDetail,
    AdmissionStatus,
    ClinicalInput,
    PatientInput,
    QueueEntry,
    Role,
    TriageColor,
)
from sio.triage.bracelets import BraceletAllocator
from sio.triage.colors import ColorRegistry
from sio.triage.patients import PatientDirectory
from sio.triage.states import CLOSED_STATUSES, INITIAL_STATUS, parse_status

logger = structlog.get_logger(__name__)

# Roles allowed to open a clinical admission
INTAKE_ROLES: frozenset[Role] = frozenset({Role.DOCTOR, Role.NURSE})

# Whole-intake attempts when patient registration races another intake
INTAKE_ATTEMPTS = 2


def local_now() -> datetime:
    """Timezone-aware wall clock of the hospital."""
    return datetime.now().astimezone()


class AdmissionLifecycle:
    """
    Admission workflow over a triage store.

    Usage:
        lifecycle = AdmissionLifecycle(store)
        admission = await lifecycle.create_admission(Role.NURSE, patient, clinical)
        await lifecycle.transition(admission.id, "VIS")
    """

    def __init__(
        self,
        store: TriageStore,
        settings: TriageSettings | None = None,
        directory: PatientDirectory | None = None,
        allocator: BraceletAllocator | None = None,
        colors: ColorRegistry | None = None,
        clock: Callable[[], datetime] = local_now,
    ):
        self.store = store
        self.settings = settings or TriageSettings()
        self.directory = directory or PatientDirectory()
        self.allocator = allocator or BraceletAllocator(self.settings.bracelet_max_attempts)
        self.colors = colors or ColorRegistry()
        self.clock = clock

    # =========================================================================
    # Intake
    # =========================================================================

    async def create_admission(
        self,
        actor_role: Role | str,
        patient: PatientInput,
        clinical: ClinicalInput,
    ) -> Admission:
        """
        Register a visit, creating the patient on first sight.

        Raises:
            Forbidden: role may not open clinical admissions
            UnknownColor: color validation is enabled and the code is unknown
            AllocationExhausted: no free bracelet within the retry budget
            ConstraintViolation: patient registration kept racing
            Unavailable: the store failed or timed out
        """
        self.authorize_intake(actor_role)

        attempt = 1
        while True:
            try:
                return await self._create_once(patient, clinical)
            except ConstraintViolation as e:
                if attempt >= INTAKE_ATTEMPTS:
                    raise
                logger.warning("Intake conflicted, retrying", error=e.message, attempt=attempt)
                attempt += 1

    def authorize_intake(self, actor_role: Role | str) -> Role:
        try:
            role = Role(actor_role)
        except ValueError:
            role = None
        if role not in INTAKE_ROLES:
            logger.warning("Intake denied", role=str(actor_role))
            raise Forbidden(
                "Administrative staff cannot register clinical admissions",
                role=str(actor_role),
            )
        return role

    async def _create_once(self, patient: PatientInput, clinical: ClinicalInput) -> Admission:
        admitted_at = self.clock()

        async with self.store.acquire() as conn:
            if self.settings.validate_colors and clinical.color_code is not None:
                await self.colors.require(conn, clinical.color_code)

            async with conn.transaction():
                try:
                    patient_id = await self.directory.resolve_or_create(
                        conn, patient.fiscal_code, patient.demographics()
                    )

                    async def claim(bracelet: str) -> Admission:
                        return await conn.insert_admission(
                            patient_id, bracelet, INITIAL_STATUS, clinical, admitted_at
                        )

                    admission = await self.allocator.allocate(conn, admitted_at.year, claim)
                except DuplicateKey as e:
                    raise ConstraintViolation(str(e), constraint=e.constraint) from e

        logger.info(
            "Admission created",
            admission_id=admission.id,
            patient_id=admission.patient_id,
            bracelet=admission.bracelet,
            color_code=admission.color_code,
        )
        return admission

    # =========================================================================
    # Status
    # =========================================================================

    async def transition(self, admission_id: int, target: AdmissionStatus | str) -> Admission:
        """
        Move an admission to any known status.

        No ordering is enforced between statuses; a discharged visit can be
        sent back to the waiting room.

        Raises:
            InvalidState: ``target`` is not a known status
            NotFound: no admission with ``admission_id``
        """
        status = parse_status(target)

        async with self.store.acquire() as conn:
            admission = await conn.update_status(admission_id, status)

        if admission is None:
            raise NotFound(f"Admission {admission_id} not found", admission_id=admission_id)

        logger.info("Admission status changed", admission_id=admission_id, status=status.value)
        return admission

    # =========================================================================
    # Views
    # =========================================================================

    async def list_active(self) -> list[QueueEntry]:
        """Waiting room queue: open visits, most urgent color first, newest first."""
        async with self.store.acquire() as conn:
            return await conn.fetch_queue(CLOSED_STATUSES)

    async def get_detail(self, admission_id: int) -> AdmissionDetail:
        async with self.store.acquire() as conn:
            detail = await conn.fetch_admission_detail(admission_id)
        if detail is None:
            raise NotFound(f"Admission {admission_id} not found", admission_id=admission_id)
        return detail

    async def list_colors(self) -> list[TriageColor]:
        async with self.store.acquire() as conn:
            return await self.colors.list_colors(conn)
