"""
OpenStreetMap Point Query Module
================================

Finds the shops to map: geocodes a place name into a bounding box with
Nominatim, then asks the Overpass API for every feature in that box carrying a
tag (by default ``cuisine=coffee_shop``).

Each returned element becomes a point record::

    {"id": "node/123456", "name": "Cafe Name", "geometry": {"type": "Point", ...}}

Nodes use their own coordinates; ways and relations use the center point
Overpass computes for them. Elements without a name are kept here (with
``name`` set to None) and filtered by the location extractor.

Main Functions:
-------------
* get_bounding_box: Geocode a place name into (south, west, north, east)
* build_overpass_query: Overpass QL for a bounding box and tag
* query_points: Run the query and return point records

Example:
-------
>>> from src.osm import get_bounding_box, query_points
>>> bbox = get_bounding_box("Culver City")
>>> records = query_points(bbox, "cuisine", "coffee_shop")
"""

# Standard Library Imports
import logging

# Third-party Imports
from geopy.exc import GeopyError

# Local Imports
from src.utils.logging_utils import with_log_context, LogContext
from src.utils.error_utils import (
    handle_exception,
    ExceptionContext,
    DataAccessError,
    DataValidationError,
)
from src.utils.client_utils import get_geolocator, get_overpass_session
from src.config import OSM_SETTINGS


@handle_exception(custom_mapping={GeopyError: DataAccessError})
@with_log_context(module="osm", operation="get_bounding_box")
def get_bounding_box(place, geolocator=None):
    """
    Geocode a place name into a bounding box.

    Args:
        place: Place name, e.g. "Culver City"
        geolocator: Optional geopy geocoder (Nominatim is created if None)

    Returns:
        tuple: (south, west, north, east) in degrees

    Raises:
        DataValidationError: If the place cannot be found
        DataAccessError: If the geocoding service fails
    """
    if not place or not str(place).strip():
        raise DataValidationError("A place name is required")

    geolocator = geolocator or get_geolocator()

    with LogContext(place=place):
        logging.info(f"Geocoding bounding box for {place}")
        location = geolocator.geocode(place, exactly_one=True)
        if location is None:
            raise DataValidationError(f"Place not found: {place}")

        raw_bbox = location.raw.get("boundingbox")
        if not raw_bbox or len(raw_bbox) != 4:
            raise DataValidationError(f"No bounding box returned for {place}")

        # Nominatim orders the box as [south, north, west, east]
        south, north, west, east = (float(value) for value in raw_bbox)
        bbox = (south, west, north, east)
        logging.info(f"Bounding box for {place}: {bbox}")
        return bbox


def build_overpass_query(bbox, key, value, timeout=25):
    """Build an Overpass QL query for features tagged key=value inside bbox."""
    south, west, north, east = bbox
    area = f"{south},{west},{north},{east}"
    selector = f'["{key}"="{value}"]'
    return (
        f"[out:json][timeout:{timeout}];\n"
        "(\n"
        f"  node{selector}({area});\n"
        f"  way{selector}({area});\n"
        f"  relation{selector}({area});\n"
        ");\n"
        "out center;"
    )


def _element_to_record(element):
    """Convert an Overpass element to a point record (None when unusable)."""
    element_type = element.get("type")
    element_id = element.get("id")
    if element_type is None or element_id is None:
        return None

    if element_type == "node":
        lon, lat = element.get("lon"), element.get("lat")
    else:
        center = element.get("center") or {}
        lon, lat = center.get("lon"), center.get("lat")

    geometry = None
    if lon is not None and lat is not None:
        geometry = {"type": "Point", "coordinates": [lon, lat]}

    return {
        "id": f"{element_type}/{element_id}",
        "name": (element.get("tags") or {}).get("name"),
        "geometry": geometry,
    }


@handle_exception(custom_mapping={ValueError: DataAccessError})
@with_log_context(module="osm", operation="query_points")
def query_points(
    bbox,
    key=OSM_SETTINGS["key"],
    value=OSM_SETTINGS["value"],
    session=None,
    timeout=OSM_SETTINGS["timeout"],
    url=OSM_SETTINGS["overpass_url"],
):
    """
    Query the Overpass API for tagged features inside a bounding box.

    Args:
        bbox: (south, west, north, east)
        key: Tag key to match
        value: Tag value to match
        session: Optional requests session
        timeout: Server-side query timeout in seconds
        url: Overpass interpreter endpoint

    Returns:
        list: Point records (id, name, geometry)

    Raises:
        DataAccessError: If the request fails or returns invalid JSON
    """
    query = build_overpass_query(bbox, key, value, timeout=timeout)
    session = session or get_overpass_session()

    with LogContext(tag=f"{key}={value}"):
        logging.info(f"Querying Overpass for {key}={value} in {bbox}")
        with ExceptionContext("Overpass query", DataAccessError):
            response = session.post(url, data={"data": query}, timeout=timeout + 5)
            response.raise_for_status()
            payload = response.json()

        records = []
        for element in payload.get("elements", []):
            record = _element_to_record(element)
            if record is not None:
                records.append(record)

        logging.info(f"Overpass returned {len(records)} point records")
        return records
