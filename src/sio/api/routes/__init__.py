"""
SIO API Routes

All API route modules.
"""

from sio.api.routes.auth import router as auth_router
from sio.api.routes.admissions import router as admissions_router
from sio.api.routes.resources import router as resources_router

__all__ = [
    "auth_router",
    "admissions_router",
    "resources_router",
]
