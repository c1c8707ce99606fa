"""
Reference Data Routes

Static lookup tables used by the triage desk client.
"""

from fastapi import APIRouter, Depends

from sio.api.auth import User, get_current_active_user
from sio.api.routes.admissions import get_lifecycle
from sio.models import TriageColor
from sio.triage import AdmissionLifecycle

router = APIRouter(prefix="/resources", tags=["Resources"])


@router.get("/triage-colors", response_model=list[TriageColor])
async def list_triage_colors(
    lifecycle: AdmissionLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_active_user),
):
    """Triage colors ordered by priority, most urgent first."""
    return await lifecycle.list_colors()
