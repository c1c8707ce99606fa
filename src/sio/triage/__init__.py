"""
SIO Triage Core

Admission lifecycle engine: patient directory, bracelet allocation,
status table and color registry.
"""
from sio.triage.bracelets import BraceletAllocator, format_bracelet
from sio.triage.colors import DEFAULT_COLORS, ColorRegistry
from sio.triage.lifecycle import AdmissionLifecycle
from sio.triage.patients import PatientDirectory
from sio.triage.states import ALL_STATUSES, CLOSED_STATUSES, INITIAL_STATUS, parse_status

__all__ = [
    "AdmissionLifecycle",
    "BraceletAllocator",
    "format_bracelet",
    "ColorRegistry",
    "DEFAULT_COLORS",
    "PatientDirectory",
    "ALL_STATUSES",
    "CLOSED_STATUSES",
    "INITIAL_STATUS",
    "parse_status",
]
