"""
Mathematical Utility Functions
===========================

Geographic helpers used when laying out maps.

Functions:
    calculate_geographic_midpoint: Center of gravity of (lat, lon) coordinates.
    bbox_center: Center of a (south, west, north, east) bounding box.

Example:
    >>> from src.utils.math_utils import calculate_geographic_midpoint
    >>> coords = [(34.0211, -118.3965), (34.0250, -118.3900)]
    >>> lat, lon = calculate_geographic_midpoint(coords)
"""

# Standard library imports
import math
import logging

# Local imports
from src.utils.logging_utils import with_log_context
from src.utils.error_utils import (
    handle_exception,
    DataValidationError,
    DataProcessingError,
)


@handle_exception(
    custom_mapping={ValueError: DataValidationError, Exception: DataProcessingError}
)
@with_log_context(module="math_utils", operation="calculate_midpoint")
def calculate_geographic_midpoint(coords):
    """
    Calculate the geographic midpoint (center of gravity) of multiple coordinates.

    Uses the algorithm described at http://www.geomidpoint.com/calculation.html
    which converts lat/lon to 3D Cartesian coordinates, averages them,
    and converts back to spherical coordinates.

    Args:
        coords: List of (lat, lon) pairs

    Returns:
        [lat, lon] midpoint coordinates

    Raises:
        DataValidationError: When no coordinates are given
    """
    coords = list(coords)
    if not coords:
        raise ValueError("No valid coordinates provided.")

    if len(coords) == 1:
        return [coords[0][0], coords[0][1]]

    x = y = z = 0.0
    for lat, lon in coords:
        lat_rad = math.radians(lat)
        lon_rad = math.radians(lon)
        x += math.cos(lat_rad) * math.cos(lon_rad)
        y += math.cos(lat_rad) * math.sin(lon_rad)
        z += math.sin(lat_rad)

    total = len(coords)
    x /= total
    y /= total
    z /= total

    lon_rad = math.atan2(y, x)
    hyp = math.sqrt(x * x + y * y)
    lat_rad = math.atan2(z, hyp)

    result = [math.degrees(lat_rad), math.degrees(lon_rad)]
    logging.debug(f"Midpoint of {total} coordinates: {result}")
    return result


def bbox_center(bbox):
    """Return [lat, lon] at the center of a (south, west, north, east) box."""
    south, west, north, east = bbox
    return [(south + north) / 2.0, (west + east) / 2.0]
