"""
Triage color registry.

Read-only view over the color reference table. The standard Italian
emergency color scale is seeded by the storage backends.
"""

import structlog

from sio.db.base import TriageConnection
from sio.errors import UnknownColor
from sio.models import TriageColor

logger = structlog.get_logger(__name__)

DEFAULT_COLORS: tuple[TriageColor, ...] = (
    TriageColor(code="ROSSO", hex_value="#FF0000", display_name="Emergenza", priority=1),
    TriageColor(code="ARANCIONE", hex_value="#FFA500", display_name="Urgenza", priority=2),
    TriageColor(code="AZZURRO", hex_value="#00BFFF", display_name="Urgenza differibile", priority=3),
    TriageColor(code="VERDE", hex_value="#008000", display_name="Urgenza minore", priority=4),
    TriageColor(code="BIANCO", hex_value="#FFFFFF", display_name="Non urgenza", priority=5),
)


class ColorRegistry:
    """Lookup over the triage color catalog."""

    async def list_colors(self, conn: TriageConnection) -> list[TriageColor]:
        """All colors, most urgent first."""
        colors = await conn.fetch_colors()
        return sorted(colors, key=lambda c: c.priority)

    async def require(self, conn: TriageConnection, code: str) -> TriageColor:
        color = await conn.fetch_color(code)
        if color is None:
            logger.info("Unknown triage color rejected", color_code=code)
            raise UnknownColor(f"Unknown triage color {code!r}", color_code=code)
        return color
