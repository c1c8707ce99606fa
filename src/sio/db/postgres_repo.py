"""
PostgreSQL Repository Layer

Triage store backed by an asyncpg pool. Statement timeouts come from the
pool's ``command_timeout`` and the wait for a free connection from
``acquire_timeout``; timeouts and connection failures are raised as
``Unavailable`` so callers can tell them apart from business errors.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime

import asyncpg
import structlog
from asyncpg import exceptions as pg_errors

from sio.db.base import ADMISSION_PATIENT_FKEY
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

logger = structlog.get_logger(__name__)

# Failures that mean the store itself is unusable
STORE_FAILURES = (
    OSError,
    asyncio.TimeoutError,
    pg_errors.PostgresConnectionError,
    pg_errors.InterfaceError,
    pg_errors.QueryCanceledError,
    pg_errors.CannotConnectNowError,
)

# SERIAL ids are int4; larger values cannot match a row
MAX_ID = 2**31 - 1

ADMISSION_COLUMNS = """
    a.id, a.patient_id, a.bracelet, a.admitted_at, a.status,
    a.color_code, a.pathology_code, a.arrival_mode
"""

COLOR_COLUMNS = """
    tc.code AS tc_code, tc.hex_value AS tc_hex_value,
    tc.display_name AS tc_display_name, tc.priority AS tc_priority
"""


def _valid_id(value: int) -> bool:
    return 1 <= value <= MAX_ID


def _admission(row) -> Admission:
    return Admission(
        id=row["id"],
        patient_id=row["patient_id"],
        bracelet=row["bracelet"],
        admitted_at=row["admitted_at"],
        status=AdmissionStatus(row["status"]),
        color_code=row["color_code"],
        pathology_code=row["pathology_code"],
        arrival_mode=row["arrival_mode"],
    )


def _color(row) -> TriageColor | None:
    if row["tc_code"] is None:
        return None
    return TriageColor(
        code=row["tc_code"],
        hex_value=row["tc_hex_value"],
        display_name=row["tc_display_name"],
        priority=row["tc_priority"],
    )


class PostgresTriageStore:
    """
    Triage store backed by PostgreSQL.

    Usage:
        store = PostgresTriageStore(pool)
        async with store.acquire() as conn:
            queue = await conn.fetch_queue(CLOSED_STATUSES)
    """

    def __init__(self, pool, acquire_timeout: float = 5.0):
        """
        Initialize with an asyncpg connection pool.

        Args:
            pool: asyncpg.Pool instance
            acquire_timeout: Seconds to wait for a free pool connection
        """
        self.pool = pool
        self.acquire_timeout = acquire_timeout

    @asynccontextmanager
    async def acquire(self):
        try:
            async with self.pool.acquire(timeout=self.acquire_timeout) as conn:
                yield PostgresConnection(conn)
        except STORE_FAILURES as e:
            logger.error("PostgreSQL unavailable", error=str(e), error_type=type(e).__name__)
            raise Unavailable(f"Database unavailable: {e}") from e

    async def close(self) -> None:
        await self.pool.close()


class PostgresConnection:
    """Domain statements over one asyncpg connection."""

    def __init__(self, conn: asyncpg.Connection):
        self.conn = conn

    def transaction(self):
        # Nested calls become savepoints; isolation is the server default (READ COMMITTED)
        return self.conn.transaction()

    async def ping(self) -> None:
        await self.conn.fetchval("SELECT 1")

    async def find_patient_id(self, fiscal_code: str) -> int | None:
        return await self.conn.fetchval(
            "SELECT id FROM patients WHERE fiscal_code = $1", fiscal_code
        )

    async def insert_patient_if_absent(
        self, fiscal_code: str, demographics: Demographics
    ) -> int | None:
        return await self.conn.fetchval("""
            INSERT INTO patients (fiscal_code, first_name, last_name, birth_date,
                                  street, street_number, city, province)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ON CONFLICT (fiscal_code) DO NOTHING
            RETURNING id
        """,
            fiscal_code,
            demographics.first_name,
            demographics.last_name,
            demographics.birth_date,
            demographics.street,
            demographics.street_number,
            demographics.city,
            demographics.province,
        )

    async def count_bracelets(self, year: int) -> int:
        return await self.conn.fetchval(
            "SELECT count(*) FROM admissions WHERE bracelet LIKE $1", f"{year}-%"
        )

    async def insert_admission(
        self,
        patient_id: int,
        bracelet: str,
        status: AdmissionStatus,
        clinical: ClinicalInput,
        admitted_at: datetime,
    ) -> Admission:
        try:
            row = await self.conn.fetchrow("""
                INSERT INTO admissions AS a (patient_id, bracelet, admitted_at, status,
                                             pathology_code, color_code, arrival_mode)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING """ + ADMISSION_COLUMNS,
                patient_id,
                bracelet,
                admitted_at,
                status.value,
                clinical.pathology_code,
                clinical.color_code,
                clinical.arrival_mode,
            )
        except pg_errors.UniqueViolationError as e:
            raise DuplicateKey(getattr(e, "constraint_name", None) or "admissions", bracelet) from e
        except pg_errors.ForeignKeyViolationError as e:
            raise ConstraintViolation(
                f"Patient {patient_id} does not exist",
                constraint=ADMISSION_PATIENT_FKEY,
                patient_id=patient_id,
            ) from e
        return _admission(row)

    async def update_status(
        self, admission_id: int, status: AdmissionStatus
    ) -> Admission | None:
        if not _valid_id(admission_id):
            return None
        row = await self.conn.fetchrow(
            "UPDATE admissions AS a SET status = $1 WHERE a.id = $2 RETURNING " + ADMISSION_COLUMNS,
            status.value,
            admission_id,
        )
        return _admission(row) if row else None

    async def fetch_queue(
        self, excluded: frozenset[AdmissionStatus]
    ) -> list[QueueEntry]:
        rows = await self.conn.fetch(f"""
            SELECT {ADMISSION_COLUMNS},
                   p.fiscal_code, p.first_name, p.last_name, p.birth_date,
                   {COLOR_COLUMNS}
            FROM admissions a
            JOIN patients p ON a.patient_id = p.id
            LEFT JOIN triage_colors tc ON a.color_code = tc.code
            WHERE a.status <> ALL($1::varchar[])
            ORDER BY tc.priority ASC NULLS LAST, a.admitted_at DESC, a.id DESC
        """, [s.value for s in excluded])

        return [
            QueueEntry(
                admission=_admission(row),
                patient=PatientSummary(
                    id=row["patient_id"],
                    fiscal_code=row["fiscal_code"],
                    first_name=row["first_name"],
                    last_name=row["last_name"],
                    birth_date=row["birth_date"],
                ),
                color=_color(row),
            )
            for row in rows
        ]

    async def fetch_admission_detail(self, admission_id: int) -> AdmissionDetail | None:
        if not _valid_id(admission_id):
            return None
        row = await self.conn.fetchrow(f"""
            SELECT {ADMISSION_COLUMNS},
                   p.fiscal_code, p.first_name, p.last_name, p.birth_date,
                   p.street, p.street_number, p.city, p.province,
                   {COLOR_COLUMNS}
            FROM admissions a
            JOIN patients p ON a.patient_id = p.id
            LEFT JOIN triage_colors tc ON a.color_code = tc.code
            WHERE a.id = $1
        """, admission_id)

        if row is None:
            return None

        return AdmissionDetail(
            admission=_admission(row),
            patient=Patient(
                id=row["patient_id"],
                fiscal_code=row["fiscal_code"],
                first_name=row["first_name"],
                last_name=row["last_name"],
                birth_date=row["birth_date"],
                street=row["street"],
                street_number=row["street_number"],
                city=row["city"],
                province=row["province"],
            ),
            color=_color(row),
        )

    async def fetch_colors(self) -> list[TriageColor]:
        rows = await self.conn.fetch(
            "SELECT code, hex_value, display_name, priority FROM triage_colors ORDER BY priority"
        )
        return [TriageColor(**dict(row)) for row in rows]

    async def fetch_color(self, code: str) -> TriageColor | None:
        row = await self.conn.fetchrow(
            "SELECT code, hex_value, display_name, priority FROM triage_colors WHERE code = $1",
            code,
        )
        return TriageColor(**dict(row)) if row else None
