"""
Triage Store Contract

Operations every storage backend provides. The admission lifecycle only
talks to these methods; SQL stays inside the Postgres backend.

Usage:
    async with store.acquire() as conn:
        async with conn.transaction():
            patient_id = await conn.insert_patient_if_absent(code, demographics)
"""

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Protocol

from sio.models import (
    Admission,
    AdmissionDetail,
    AdmissionStatus,
    ClinicalInput,
    Demographics,
    QueueEntry,
    TriageColor,
)

# Unique constraint names, shared by both backends
PATIENT_FISCAL_CODE_KEY = "patients_fiscal_code_key"
ADMISSION_BRACELET_KEY = "admissions_bracelet_key"
ADMISSION_PATIENT_FKEY = "admissions_patient_id_fkey"


class TriageConnection(Protocol):
    """A single store session. Statements outside a transaction autocommit."""

    def transaction(self) -> AbstractAsyncContextManager:
        """Open a transaction, or a savepoint when one is already open."""
        ...

    async def ping(self) -> None: ...

    async def find_patient_id(self, fiscal_code: str) -> int | None: ...

    async def insert_patient_if_absent(
        self, fiscal_code: str, demographics: Demographics
    ) -> int | None:
        """Insert a patient; return None when the fiscal code already exists."""
        ...

    async def count_bracelets(self, year: int) -> int: ...

    async def insert_admission(
        self,
        patient_id: int,
        bracelet: str,
        status: AdmissionStatus,
        clinical: ClinicalInput,
        admitted_at: datetime,
    ) -> Admission:
        """Insert an admission; raise DuplicateKey on a taken bracelet."""
        ...

    async def update_status(
        self, admission_id: int, status: AdmissionStatus
    ) -> Admission | None: ...

    async def fetch_queue(
        self, excluded: frozenset[AdmissionStatus]
    ) -> list[QueueEntry]:
        """Admissions not in ``excluded``, most urgent color first, newest first."""
        ...

    async def fetch_admission_detail(self, admission_id: int) -> AdmissionDetail | None: ...

    async def fetch_colors(self) -> list[TriageColor]: ...

    async def fetch_color(self, code: str) -> TriageColor | None: ...


class TriageStore(Protocol):
    """Connection source for a storage backend."""

    def acquire(self) -> AbstractAsyncContextManager[TriageConnection]: ...

    async def close(self) -> None: ...
