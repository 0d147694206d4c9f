"""Geographic helpers shared by the enrichment clients."""

import math
import re
from typing import Optional, Tuple

EARTH_RADIUS_METERS = 6371000.0

WKT_POINT_PATTERN = re.compile(r"^POINT\s*\((?P<body>.*)\)$", re.IGNORECASE)


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two WGS84 points.

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def parse_wkt_point(wkt: Optional[str]) -> Optional[Tuple[float, float]]:
    """
    Parse a WKT ``POINT(x y)`` string.

    Args:
        wkt: e.g. "POINT(4.8952 52.3731)"

    Returns:
        (x, y) tuple, or None when the text is not a two-coordinate point
    """
    if not wkt:
        return None

    match = WKT_POINT_PATTERN.match(wkt.strip())
    if not match:
        return None

    parts = match.group("body").split()
    if len(parts) != 2:
        return None

    try:
        return float(parts[0]), float(parts[1])
    except ValueError:
        return None
