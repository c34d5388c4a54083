"""Static location adapter.

Implements LocationPort with a position fixed in configuration. A
terminal has no positioning hardware, so the customer's position is
either configured or unavailable.
"""

import logging

from storefront.core.errors import GeolocationUnavailableError
from storefront.core.models import Coordinates
from storefront.core.ports import LocationPort

logger = logging.getLogger(__name__)


class StaticLocationAdapter(LocationPort):
    """Returns a configured position, or reports that none is available."""

    def __init__(self, coordinates: Coordinates | None = None):
        self.coordinates = coordinates

    async def current_location(self) -> Coordinates:
        if self.coordinates is None:
            raise GeolocationUnavailableError("No customer location configured")
        logger.debug(
            "Using configured customer location",
            extra={
                "latitude": self.coordinates.latitude,
                "longitude": self.coordinates.longitude,
            },
        )
        return self.coordinates
