"""Geographic to UTM-style planar conversion on the WGS-84 ellipsoid.

Series expansion after the USGS formulas (Snyder, "Map Projections: A
Working Manual"). The zone is picked from the longitude of each point, so a
trajectory crossing a zone boundary jumps; KITTI drives never do.
"""

from __future__ import annotations

import math
from typing import Tuple

# WGS-84 datum
EQUATORIAL_RADIUS = 6378137.0
INVERSE_FLATTENING = 298.2572236
SCALE_FACTOR = 0.9996
FALSE_EASTING = 500000.0
FALSE_NORTHING_SOUTH = 10000000.0


def utm_zone(lon: float) -> int:
    return int(1 + math.floor((lon + 180.0) / 6.0))


def central_meridian(zone: int) -> float:
    return 3.0 + 6.0 * (zone - 1) - 180.0


def latlon_to_xy(lat: float, lon: float) -> Tuple[float, float]:
    """
    Convert latitude/longitude in degrees to (easting, northing) in meters.

    Southern-hemisphere northings get the 10,000,000 m false northing so the
    value stays non-negative.
    """
    a = EQUATORIAL_RADIUS
    f = 1.0 / INVERSE_FLATTENING
    b = a * (1.0 - f)
    e = math.sqrt(1.0 - (b * b) / (a * a))
    k0 = SCALE_FACTOR

    phi = math.radians(lat)
    zcm = central_meridian(utm_zone(lon))
    esq = 1.0 - (b / a) * (b / a)
    e0sq = e * e / (1.0 - e * e)

    N = a / math.sqrt(1.0 - (e * math.sin(phi)) ** 2)
    T = math.tan(phi) ** 2
    C = e0sq * math.cos(phi) ** 2
    A = math.radians(lon - zcm) * math.cos(phi)

    # meridional arc
    M = phi * (1.0 - esq * (1.0 / 4.0 + esq * (3.0 / 64.0 + 5.0 * esq / 256.0)))
    M -= math.sin(2.0 * phi) * (esq * (3.0 / 8.0 + esq * (3.0 / 32.0 + 45.0 * esq / 1024.0)))
    M += math.sin(4.0 * phi) * (esq * esq * (15.0 / 256.0 + esq * 45.0 / 1024.0))
    M -= math.sin(6.0 * phi) * (esq * esq * esq * (35.0 / 3072.0))
    M *= a

    x = k0 * N * A * (
        1.0
        + A * A * (
            (1.0 - T + C) / 6.0
            + A * A * (5.0 - 18.0 * T + T * T + 72.0 * C - 58.0 * e0sq) / 120.0
        )
    )
    x += FALSE_EASTING

    y = k0 * (
        M
        + N * math.tan(phi) * (
            A * A * (
                1.0 / 2.0
                + A * A * (
                    (5.0 - T + 9.0 * C + 4.0 * C * C) / 24.0
                    + A * A * (61.0 - 58.0 * T + T * T + 600.0 * C - 330.0 * e0sq) / 720.0
                )
            )
        )
    )
    if y < 0:
        y += FALSE_NORTHING_SOUTH

    return x, y


class GeodeticConverter:
    """Stateless converter; kept as an object so it can be swapped in tests."""

    def to_local_xy(self, lat: float, lon: float) -> Tuple[float, float]:
        return latlon_to_xy(lat, lon)
