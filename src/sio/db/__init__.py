"""
SIO Storage

Store contract shared by the PostgreSQL and in-memory backends.
Backend construction lives in ``sio.db.clients``.
"""
from sio.db.base import (
    ADMISSION_BRACELET_KEY,
    PATIENT_FISCAL_CODE_KEY,
    TriageConnection,
    TriageStore,
)

__all__ = [
    "ADMISSION_BRACELET_KEY",
    "PATIENT_FISCAL_CODE_KEY",
    "TriageConnection",
    "TriageStore",
]
