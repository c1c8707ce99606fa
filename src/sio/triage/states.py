"""
Admission status table.

Transitions are validated by membership only: any known status may follow
any other, including itself. RIC and DIM drop a visit from the active queue
but do not lock it.
"""

from sio.errors import InvalidState
from sio.models import AdmissionStatus

ALL_STATUSES: tuple[AdmissionStatus, ...] = tuple(AdmissionStatus)

INITIAL_STATUS = AdmissionStatus.WAITING

# Hidden from the active queue view
CLOSED_STATUSES: frozenset[AdmissionStatus] = frozenset({
    AdmissionStatus.ADMITTED,
    AdmissionStatus.DISCHARGED,
})


def parse_status(value) -> AdmissionStatus:
    """Coerce a raw status code, raising InvalidState for unknown values."""
    if isinstance(value, AdmissionStatus):
        return value
    try:
        return AdmissionStatus(value)
    except ValueError:
        raise InvalidState(
            f"Unknown status {value!r}; expected one of "
            f"{', '.join(s.value for s in ALL_STATUSES)}",
            status=value,
        ) from None
