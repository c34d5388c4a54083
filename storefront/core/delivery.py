"""Delivery cost estimation from great-circle distance.

Pure given coordinates. Getting the customer's position is the job of a
LocationPort adapter, called before estimate().
"""

import math
from decimal import Decimal

from .errors import GeolocationUnavailableError
from .models import Coordinates, DeliveryEstimate

EARTH_RADIUS_KM = 6371.0

# (inclusive upper bound in km, fee); beyond the last bound FAR_FEE applies
DELIVERY_TIERS: tuple[tuple[float, Decimal], ...] = (
    (5.0, Decimal("0")),
    (10.0, Decimal("15")),
    (20.0, Decimal("25")),
)
FAR_FEE = Decimal("35")


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    """Great-circle distance between two points, in kilometres."""
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(destination.latitude)
    d_lat = math.radians(destination.latitude - origin.latitude)
    d_lon = math.radians(destination.longitude - origin.longitude)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def cost_for_distance(distance_km: float) -> Decimal:
    """Delivery fee for a distance. Tier bounds are inclusive."""
    if distance_km < 0:
        raise ValueError(f"distance_km must be non-negative, got {distance_km}")
    for upper_bound, fee in DELIVERY_TIERS:
        if distance_km <= upper_bound:
            return fee
    return FAR_FEE


class DeliveryCostEstimator:
    """Maps a store location and a customer location to a delivery fee."""

    def __init__(self, store_location: Coordinates | None = None):
        self.store_location = store_location

    def estimate(
        self,
        origin: Coordinates | None,
        destination: Coordinates | None,
    ) -> DeliveryEstimate:
        """Estimate distance and fee between two coordinate pairs.

        Raises:
            GeolocationUnavailableError: If either pair is missing.
        """
        if origin is None or destination is None:
            missing = "origin" if origin is None else "destination"
            raise GeolocationUnavailableError(
                f"Location unavailable ({missing}), delivery cost unknown"
            )
        distance = haversine_km(origin, destination)
        return DeliveryEstimate(distance_km=distance, cost=cost_for_distance(distance))

    def estimate_from_store(self, destination: Coordinates | None) -> DeliveryEstimate:
        """Estimate from the configured store location."""
        return self.estimate(self.store_location, destination)
