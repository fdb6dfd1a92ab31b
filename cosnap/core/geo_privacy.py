"""Geo Privacy — bounded random displacement of a flag's coordinate.

Invariants:
    - Output lies within radius_km of the input (flat-earth approximation, ~0.2% slack)
    - Sampling is area-uniform over the disk: r = R * sqrt(U1), theta = 2*pi * U2
    - Longitude divisor never reaches zero (cos(lat) clamped to MIN_COS)
    - Output latitude in [-90, 90], longitude in [-180, 180)
    - Pure: deterministic for a seeded rng, no IO

Design Decisions:
    - rng injected (anything with random()), SystemRandom by default so
      production offsets cannot be replayed from a seed
    - haversine_km lives here so callers can verify the privacy bound
"""

import math
import random
from typing import Protocol


EARTH_KM_PER_DEGREE = 111.0
EARTH_RADIUS_KM = 6371.0
DEFAULT_RADIUS_KM = 5.0
MIN_COS = 1e-6

_system_rng = random.SystemRandom()


class RandomSource(Protocol):
    def random(self) -> float: ...


def displace(
    lat: float,
    lng: float,
    radius_km: float = DEFAULT_RADIUS_KM,
    rng: RandomSource | None = None,
) -> tuple[float, float]:
    """Return a publish-safe coordinate uniformly distributed in a disk around (lat, lng)."""
    rng = rng or _system_rng
    r = radius_km * math.sqrt(rng.random())
    theta = 2 * math.pi * rng.random()
    dx = r * math.cos(theta)
    dy = r * math.sin(theta)

    cos_lat = max(abs(math.cos(math.radians(lat))), MIN_COS)
    d_lat = dy / EARTH_KM_PER_DEGREE
    d_lng = dx / (EARTH_KM_PER_DEGREE * cos_lat)

    new_lat = min(90.0, max(-90.0, lat + d_lat))
    return new_lat, _wrap_longitude(lng + d_lng)


def _wrap_longitude(lng: float) -> float:
    return ((lng + 180.0) % 360.0) - 180.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two coordinates in kilometers."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lng2 - lng1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))
