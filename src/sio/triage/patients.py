"""
Patient directory.

Resolves a fiscal code to a patient id, creating the patient on first
sight. Demographics supplied for an already known fiscal code are dropped,
never merged.
"""

import structlog

from sio.db.base import TriageConnection
from sio.errors import ConstraintViolation
from sio.models import Demographics

logger = structlog.get_logger(__name__)


class PatientDirectory:
    """Owner of patient creation and lookup."""

    async def resolve_or_create(
        self,
        conn: TriageConnection,
        fiscal_code: str,
        demographics: Demographics,
    ) -> int:
        """
        Return the patient id for a fiscal code, inserting it if absent.

        Must run inside the caller's transaction. The insert is conditional,
        so a concurrent intake for the same fiscal code waits on the other
        transaction and then reads its committed row.

        Raises:
            ConstraintViolation: the row was neither inserted nor visible,
                which happens when the competing insert is still settling.
        """
        patient_id = await conn.insert_patient_if_absent(fiscal_code, demographics)
        if patient_id is not None:
            logger.info("Patient created", patient_id=patient_id, fiscal_code=fiscal_code)
            return patient_id

        patient_id = await conn.find_patient_id(fiscal_code)
        if patient_id is None:
            raise ConstraintViolation(
                "Patient fiscal code conflicts with a concurrent registration",
                fiscal_code=fiscal_code,
            )
        return patient_id
