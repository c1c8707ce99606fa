"""
In-Memory Triage Store

Development and test backend with the same visibility rules as the
Postgres schema under READ COMMITTED:

- writes of an open transaction are visible only to that transaction
- a unique key inserted by an open transaction blocks other inserters of
  the same key until it commits (then they fail) or rolls back (then they
  proceed)
- nested transactions behave as savepoints

Every statement yields to the event loop once, so concurrent intakes
interleave the way they would against a real server.
"""

import asyncio
import itertools
from contextlib import asynccontextmanager, nullcontext
from datetime import datetime
from typing import Iterable

import structlog

from sio.db.base import (
    ADMISSION_BRACELET_KEY,
    ADMISSION_PATIENT_FKEY,
    PATIENT_FISCAL_CODE_KEY,
)
from sio.errors import ConstraintViolation, DuplicateKey, Unavailable
from sio.models import (
    Admission,
    AdmissionDetail,
    AdmissionStatus,
    ClinicalInput,
    Demographics,
    Patient,
    PatientSummary,
    QueueEntry,
    TriageColor,
)
from sio.triage.colors import DEFAULT_COLORS

logger = structlog.get_logger(__name__)


class _Transaction:
    """Outermost transaction of a connection; others wait on ``done``."""

    def __init__(self):
        self.done = asyncio.Event()


class _Frame:
    """Uncommitted writes of one transaction level."""

    def __init__(self):
        self.patients: dict[int, Patient] = {}
        self.admissions: dict[int, Admission] = {}
        self.claims: list[tuple[str, str]] = []


class InMemoryTriageStore:
    """
    Process-local triage store.

    Usage:
        store = InMemoryTriageStore()
        async with store.acquire() as conn:
            colors = await conn.fetch_colors()
    """

    def __init__(
        self,
        colors: Iterable[TriageColor] = DEFAULT_COLORS,
        lock_timeout: float = 10.0,
    ):
        self.lock_timeout = lock_timeout
        self.colors: dict[str, TriageColor] = {c.code: c for c in colors}
        self.patients: dict[int, Patient] = {}
        self.admissions: dict[int, Admission] = {}

        # Committed unique keys and keys held by open transactions
        self.unique_keys: set[tuple[str, str]] = set()
        self.claims: dict[tuple[str, str], _Transaction] = {}

        self._patient_ids = itertools.count(1)
        self._admission_ids = itertools.count(1)

    @asynccontextmanager
    async def acquire(self):
        conn = InMemoryConnection(self)
        try:
            yield conn
        finally:
            conn.release()

    def next_patient_id(self) -> int:
        return next(self._patient_ids)

    def next_admission_id(self) -> int:
        return next(self._admission_ids)

    async def close(self) -> None:
        logger.debug("In-memory store closed", admissions=len(self.admissions))


class InMemoryConnection:
    """Session over an InMemoryTriageStore."""

    def __init__(self, store: InMemoryTriageStore):
        self._store = store
        self._txn: _Transaction | None = None
        self._frames: list[_Frame] = []

    # =========================================================================
    # Transactions
    # =========================================================================

    @asynccontextmanager
    async def transaction(self):
        if not self._frames:
            self._txn = _Transaction()
        frame = _Frame()
        self._frames.append(frame)
        try:
            yield self
        except BaseException:
            self._rollback(frame)
            raise
        self._commit(frame)

    def _autocommit(self):
        return nullcontext() if self._frames else self.transaction()

    def _rollback(self, frame: _Frame) -> None:
        self._frames.remove(frame)
        for key in frame.claims:
            self._store.claims.pop(key, None)
        if not self._frames:
            self._finish()

    def _commit(self, frame: _Frame) -> None:
        self._frames.remove(frame)
        if self._frames:
            parent = self._frames[-1]
            parent.patients.update(frame.patients)
            parent.admissions.update(frame.admissions)
            parent.claims.extend(frame.claims)
            return

        self._store.patients.update(frame.patients)
        self._store.admissions.update(frame.admissions)
        for key in frame.claims:
            self._store.claims.pop(key, None)
            self._store.unique_keys.add(key)
        self._finish()

    def _finish(self) -> None:
        if self._txn is not None:
            self._txn.done.set()
            self._txn = None

    def release(self) -> None:
        # Connection dropped with a transaction still open
        while self._frames:
            self._rollback(self._frames[-1])

    async def _claim(self, constraint: str, value: str) -> None:
        key = (constraint, value)
        owner = self._store.claims.get(key)
        while owner is not None and owner is not self._txn:
            try:
                await asyncio.wait_for(owner.done.wait(), self._store.lock_timeout)
            except asyncio.TimeoutError:
                raise Unavailable(
                    f"Timed out waiting for lock on {constraint}", constraint=constraint
                ) from None
            owner = self._store.claims.get(key)

        if owner is not None or key in self._store.unique_keys:
            raise DuplicateKey(constraint, value)
        self._store.claims[key] = self._txn
        self._frames[-1].claims.append(key)

    # =========================================================================
    # Visibility
    # =========================================================================

    def _patients(self) -> dict[int, Patient]:
        rows = dict(self._store.patients)
        for frame in self._frames:
            rows.update(frame.patients)
        return rows

    def _admissions(self) -> dict[int, Admission]:
        rows = dict(self._store.admissions)
        for frame in self._frames:
            rows.update(frame.admissions)
        return rows

    # =========================================================================
    # Statements
    # =========================================================================

    async def ping(self) -> None:
        await asyncio.sleep(0)

    async def find_patient_id(self, fiscal_code: str) -> int | None:
        await asyncio.sleep(0)
        for patient in self._patients().values():
            if patient.fiscal_code == fiscal_code:
                return patient.id
        return None

    async def insert_patient_if_absent(
        self, fiscal_code: str, demographics: Demographics
    ) -> int | None:
        await asyncio.sleep(0)
        async with self._autocommit():
            try:
                await self._claim(PATIENT_FISCAL_CODE_KEY, fiscal_code)
            except DuplicateKey:
                return None
            patient = Patient(
                id=self._store.next_patient_id(),
                fiscal_code=fiscal_code,
                **demographics.model_dump(),
            )
            self._frames[-1].patients[patient.id] = patient
            return patient.id

    async def count_bracelets(self, year: int) -> int:
        await asyncio.sleep(0)
        prefix = f"{year}-"
        return sum(1 for a in self._admissions().values() if a.bracelet.startswith(prefix))

    async def insert_admission(
        self,
        patient_id: int,
        bracelet: str,
        status: AdmissionStatus,
        clinical: ClinicalInput,
        admitted_at: datetime,
    ) -> Admission:
        await asyncio.sleep(0)
        async with self._autocommit():
            if patient_id not in self._patients():
                raise ConstraintViolation(
                    f"Patient {patient_id} does not exist",
                    constraint=ADMISSION_PATIENT_FKEY,
                    patient_id=patient_id,
                )
            await self._claim(ADMISSION_BRACELET_KEY, bracelet)
            admission = Admission(
                id=self._store.next_admission_id(),
                patient_id=patient_id,
                bracelet=bracelet,
                admitted_at=admitted_at,
                status=status,
                **clinical.model_dump(),
            )
            self._frames[-1].admissions[admission.id] = admission
            return admission

    async def update_status(
        self, admission_id: int, status: AdmissionStatus
    ) -> Admission | None:
        await asyncio.sleep(0)
        async with self._autocommit():
            current = self._admissions().get(admission_id)
            if current is None:
                return None
            updated = current.model_copy(update={"status": status})
            self._frames[-1].admissions[admission_id] = updated
            return updated

    async def fetch_queue(
        self, excluded: frozenset[AdmissionStatus]
    ) -> list[QueueEntry]:
        await asyncio.sleep(0)
        patients = self._patients()
        entries = [
            QueueEntry(
                admission=admission,
                patient=PatientSummary(**patients[admission.patient_id].model_dump()),
                color=self._store.colors.get(admission.color_code),
            )
            for admission in self._admissions().values()
            if admission.status not in excluded
        ]

        # Newest first, then a stable sort by priority with unknown colors last
        entries.sort(key=lambda e: (e.admission.admitted_at, e.admission.id), reverse=True)
        entries.sort(key=lambda e: (e.color is None, e.color.priority if e.color else 0))
        return entries

    async def fetch_admission_detail(self, admission_id: int) -> AdmissionDetail | None:
        await asyncio.sleep(0)
        admission = self._admissions().get(admission_id)
        if admission is None:
            return None
        return AdmissionDetail(
            admission=admission,
            patient=self._patients()[admission.patient_id],
            color=self._store.colors.get(admission.color_code),
        )

    async def fetch_colors(self) -> list[TriageColor]:
        await asyncio.sleep(0)
        return sorted(self._store.colors.values(), key=lambda c: c.priority)

    async def fetch_color(self, code: str) -> TriageColor | None:
        await asyncio.sleep(0)
        return self._store.colors.get(code)
