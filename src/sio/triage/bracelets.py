"""
Bracelet allocation.

A bracelet is ``<year>-<seq>`` with a 1-based, zero-padded, four digit
sequence counted within the calendar year. The next sequence is derived
from the number of bracelets already issued that year, so two intakes
running at once can compute the same value. The unique constraint on the
bracelet column catches that; the losing insert is rolled back to a
savepoint and the count is taken again, up to ``max_attempts`` times.

Past 9999 the sequence widens to five digits instead of wrapping.
"""

from typing import Awaitable, Callable

import structlog

from sio.db.base import ADMISSION_BRACELET_KEY, TriageConnection
from sio.errors import AllocationExhausted, DuplicateKey
from sio.models import Admission

logger = structlog.get_logger(__name__)


def format_bracelet(year: int, sequence: int) -> str:
    """Render a bracelet id, e.g. ``format_bracelet(2025, 7) == "2025-0007"``."""
    if sequence < 1:
        raise ValueError(f"Bracelet sequence must be positive, got {sequence}")
    return f"{year}-{sequence:04d}"


class BraceletAllocator:
    """
    Mints bracelets scoped to a calendar year.

    Usage:
        allocator = BraceletAllocator(max_attempts=5)
        admission = await allocator.allocate(conn, 2025, insert_with_bracelet)
    """

    def __init__(self, max_attempts: int = 5):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts

    async def next_bracelet(self, conn: TriageConnection, year: int) -> str:
        """Candidate bracelet for ``year`` as seen by this connection."""
        issued = await conn.count_bracelets(year)
        return format_bracelet(year, issued + 1)

    async def allocate(
        self,
        conn: TriageConnection,
        year: int,
        claim: Callable[[str], Awaitable[Admission]],
    ) -> Admission:
        """
        Claim the next free bracelet for ``year``.

        Args:
            conn: Connection with an open transaction
            year: Calendar year of the intake
            claim: Inserts the admission row carrying the candidate bracelet

        Returns:
            The admission inserted by ``claim``

        Raises:
            AllocationExhausted: every attempt hit a taken bracelet
        """
        for attempt in range(1, self.max_attempts + 1):
            bracelet = await self.next_bracelet(conn, year)
            try:
                async with conn.transaction():
                    return await claim(bracelet)
            except DuplicateKey as e:
                if e.constraint != ADMISSION_BRACELET_KEY:
                    raise
                logger.warning(
                    "Bracelet already taken, retrying",
                    bracelet=bracelet,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                )

        logger.error("Bracelet allocation exhausted", year=year, attempts=self.max_attempts)
        raise AllocationExhausted(
            f"Could not allocate a bracelet for {year} after {self.max_attempts} attempts",
            year=year,
        )
