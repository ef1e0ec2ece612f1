"""
Location Extraction Module
==========================

Turns raw point records from the map-data query into a flat table of shop
locations with numeric longitude and latitude.

A point record is a dict with ``id``, ``name`` and ``geometry``. The geometry
may be a shapely geometry, a GeoJSON mapping, WKT text such as
``"POINT (-118.3965 34.0211)"`` or a ``(lon, lat)`` pair. Records without a
name or whose geometry does not decode to a single point with two finite
coordinates are dropped; the drops are counted and logged, never raised.

Main Functions:
-------------
* decode_point: Decode one geometry payload into a shapely Point
* extract_locations: Build the locations DataFrame from raw point records

Example:
-------
>>> from src.locations import extract_locations
>>> records = [{"id": "node/1", "name": "Cafe", "geometry": "POINT (-118.39 34.02)"}]
>>> locations, stats = extract_locations(records)
>>> locations[["name", "lon", "lat"]].values.tolist()
[['Cafe', -118.39, 34.02]]
"""

# Standard Library Imports
import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

# Third-party Imports
import pandas as pd
from shapely import wkb, wkt
from shapely.errors import ShapelyError
from shapely.geometry import Point, shape
from shapely.geometry.base import BaseGeometry

# Local Imports
from src.utils.logging_utils import with_log_context, LogContext
from src.utils.error_utils import MalformedGeometryError, MissingNameError

LOCATION_COLUMNS = ["id", "name", "lon", "lat", "geometry"]


@dataclass
class ExtractionStats:
    """Counts of kept and dropped point records."""

    total: int = 0
    kept: int = 0
    missing_name: int = 0
    malformed_geometry: int = 0

    @property
    def dropped(self) -> int:
        return self.missing_name + self.malformed_geometry


def decode_point(geometry) -> Point:
    """
    Decode a geometry payload into a shapely Point.

    Args:
        geometry: shapely geometry, GeoJSON mapping, WKT string, WKB bytes
            or (lon, lat)

    Returns:
        Point: A point with finite x (longitude) and y (latitude)

    Raises:
        MalformedGeometryError: If the payload is not a single finite point
    """
    if geometry is None:
        raise MalformedGeometryError("Geometry is missing")

    try:
        if isinstance(geometry, BaseGeometry):
            geom = geometry
        elif isinstance(geometry, Mapping):
            geom = shape(geometry)
        elif isinstance(geometry, str):
            geom = wkt.loads(geometry.strip())
        elif isinstance(geometry, (bytes, bytearray)):
            geom = wkb.loads(bytes(geometry))
        elif isinstance(geometry, Sequence) and len(geometry) == 2:
            geom = Point(float(geometry[0]), float(geometry[1]))
        else:
            raise MalformedGeometryError(
                f"Unsupported geometry payload: {type(geometry).__name__}"
            )
    except MalformedGeometryError:
        raise
    except (ShapelyError, ValueError, TypeError, KeyError, AttributeError) as e:
        raise MalformedGeometryError(f"Could not decode geometry: {e}") from e

    if geom.geom_type != "Point" or geom.is_empty:
        raise MalformedGeometryError(f"Expected a point, got {geom.geom_type}")
    if geom.has_z:
        geom = Point(geom.x, geom.y)
    if not (math.isfinite(geom.x) and math.isfinite(geom.y)):
        raise MalformedGeometryError(f"Non-finite coordinates: ({geom.x}, {geom.y})")

    return geom


def _record_name(record) -> str:
    name = record.get("name")
    if name is None or (isinstance(name, float) and math.isnan(name)):
        raise MissingNameError("Record has no name")
    name = str(name).strip()
    if not name:
        raise MissingNameError("Record has an empty name")
    return name


@with_log_context(module="locations", operation="extract_locations")
def extract_locations(raw_points):
    """
    Extract named point locations with numeric coordinates.

    Args:
        raw_points: Iterable of point records (dicts with id, name, geometry)

    Returns:
        tuple: (locations_df, stats) where locations_df has the columns
        id, name, lon (float64), lat (float64), geometry (shapely Point)
    """
    stats = ExtractionStats()
    rows = []

    for record in raw_points:
        stats.total += 1
        record_id = record.get("id")

        with LogContext(location_id=record_id):
            try:
                name = _record_name(record)
            except MissingNameError:
                stats.missing_name += 1
                logging.debug("Dropping record without a name")
                continue

            try:
                point = decode_point(record.get("geometry"))
            except MalformedGeometryError as e:
                stats.malformed_geometry += 1
                logging.warning(f"Dropping '{name}': {e}")
                continue

        rows.append(
            {
                "id": record_id,
                "name": name,
                "lon": point.x,
                "lat": point.y,
                "geometry": point,
            }
        )

    stats.kept = len(rows)
    locations = pd.DataFrame(rows, columns=LOCATION_COLUMNS)
    locations = locations.astype({"lon": "float64", "lat": "float64"})

    if stats.dropped:
        logging.info(
            f"Dropped {stats.dropped} of {stats.total} point records "
            f"(missing name: {stats.missing_name}, "
            f"malformed geometry: {stats.malformed_geometry})"
        )
    logging.info(f"Extracted {stats.kept} locations")
    return locations, stats
