"""Turn raw location and orientation readings into the animation's scalar inputs.

These helpers do no I/O; they only convert coordinates the caller already
has into a bearing, a distance and a compass heading.
"""

from typing import Optional

from pyproj import Geod

from sunflower.animation import known

GEOD = Geod(ellps="WGS84")

# Heading drift used when no orientation sensor is present
SIMULATED_HEADING_RATE = 3.0  # degrees per second


def geodesic_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in meters along the WGS84 geodesic."""
    _, _, distance = GEOD.inv(lon1, lat1, lon2, lat2)
    return float(distance)


def initial_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Forward azimuth from point 1 to point 2, degrees clockwise from north in [0, 360)."""
    azimuth, _, _ = GEOD.inv(lon1, lat1, lon2, lat2)
    bearing = float(azimuth) % 360.0
    # Tiny negative azimuths round up to 360.0
    return bearing if bearing < 360.0 else 0.0


def compass_heading(alpha=None, webkit_compass_heading=None) -> float:
    """Compass heading in degrees from a device orientation reading.

    A native compass heading wins when present; otherwise the heading is
    ``360 - alpha``. A reading with neither gives 0 (north).
    """
    heading = known(webkit_compass_heading)
    if heading is not None:
        return heading % 360.0
    alpha = known(alpha)
    if alpha is None:
        return 0.0
    return (360.0 - alpha) % 360.0


class SimulatedHeading:
    """Slowly rotating heading for demos without an orientation sensor."""

    def __init__(self, rate: float = SIMULATED_HEADING_RATE, start: float = 0.0):
        self.rate = rate
        self.heading = start % 360.0

    def advance(self, dt: float) -> float:
        dt = known(dt)
        if dt is not None and dt > 0:
            self.heading = (self.heading + self.rate * dt) % 360.0
        return self.heading


def partner_inputs(
    self_lat: float,
    self_lon: float,
    partner_lat: Optional[float],
    partner_lon: Optional[float],
) -> tuple[Optional[float], Optional[float]]:
    """(bearing_deg, distance_m) toward a partner, (None, None) when the partner is unknown."""
    coords = [known(v) for v in (self_lat, self_lon, partner_lat, partner_lon)]
    if any(c is None for c in coords):
        return None, None
    return initial_bearing(*coords), geodesic_distance(*coords)
