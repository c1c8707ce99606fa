import os

os.environ.setdefault("SIO_STORAGE_BACKEND", "memory")
os.environ.setdefault("SIO_LOG_LEVEL", "WARNING")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from datetime import date, datetime, timedelta, timezone

import pytest

from sio.config import TriageSettings
from sio.db.memory import InMemoryTriageStore
from sio.models import ClinicalInput, PatientInput
from sio.triage import AdmissionLifecycle


class SteppingClock:
    """Clock that advances by ``step`` on every reading."""

    def __init__(self, start: datetime, step: timedelta = timedelta(minutes=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value


@pytest.fixture
def store():
    return InMemoryTriageStore(lock_timeout=2.0)


@pytest.fixture
def clock():
    return SteppingClock(datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def lifecycle(store, clock):
    return AdmissionLifecycle(store, TriageSettings(), clock=clock)


@pytest.fixture
def make_patient():
    def factory(fiscal_code: str = "ABC123", **overrides) -> PatientInput:
        fields = {
            "fiscal_code": fiscal_code,
            "first_name": "Mario",
            "last_name": "Rossi",
            "birth_date": date(1980, 5, 20),
            "street": "Via Roma",
            "street_number": "10",
            "city": "Milano",
            "province": "MI",
        }
        fields.update(overrides)
        return PatientInput(**fields)

    return factory


@pytest.fixture
def make_clinical():
    def factory(color_code: str | None = "VERDE", **overrides) -> ClinicalInput:
        fields = {
            "pathology_code": "C1",
            "color_code": color_code,
            "arrival_mode": "AMBULANZA",
        }
        fields.update(overrides)
        return ClinicalInput(**fields)

    return factory
