"""
GeoJSON Utility Functions
======================

Validation of GeoJSON returned by the routing service and conversion between
GeoJSON and shapely geometries.

Functions:
    validate_geojson: Validate if input is valid GeoJSON.
    extract_features: Extract all features from a GeoJSON object.
    feature_to_shape: Turn a Feature's geometry into a shapely geometry.

Example:
    >>> from src.utils.geojson_utils import validate_geojson, extract_features
    >>> features = extract_features(validate_geojson(response))
"""

# Standard library imports
import json
import logging
import math
from numbers import Real
from typing import Dict, List, Union

# Third-party imports
from shapely.geometry import shape

# Local imports
from src.utils.logging_utils import LogContext, with_log_context
from src.utils.error_utils import (
    handle_exception,
    DataValidationError,
    DataProcessingError,
    GeoJSONError,
)

VALID_GEOJSON_TYPES = {
    "Point",
    "MultiPoint",
    "LineString",
    "MultiLineString",
    "Polygon",
    "MultiPolygon",
    "GeometryCollection",
    "Feature",
    "FeatureCollection",
}

# Nesting depth of the coordinates array per geometry type
COORDINATE_DEPTH = {
    "Point": 0,
    "LineString": 1,
    "MultiPoint": 1,
    "Polygon": 2,
    "MultiLineString": 2,
    "MultiPolygon": 3,
}


@handle_exception(
    custom_mapping={
        json.JSONDecodeError: DataValidationError,
        ValueError: DataValidationError,
        TypeError: DataValidationError,
        Exception: GeoJSONError,
    }
)
@with_log_context(module="geojson_utils", operation="validate_geojson")
def validate_geojson(data: Union[Dict, str]) -> Dict:
    """
    Validate if the input is valid GeoJSON.

    Args:
        data: GeoJSON data as dict or JSON string

    Returns:
        Dict: The validated GeoJSON data

    Raises:
        DataValidationError: If data doesn't follow GeoJSON spec
    """
    if isinstance(data, str):
        data = json.loads(data)

    if not isinstance(data, dict):
        raise DataValidationError("GeoJSON must be a JSON object")

    if "type" not in data:
        raise DataValidationError("GeoJSON must have a 'type' property")

    if data["type"] not in VALID_GEOJSON_TYPES:
        raise DataValidationError(f"Invalid GeoJSON type: {data['type']}")

    if data["type"] == "Feature":
        _validate_feature(data)
    elif data["type"] == "FeatureCollection":
        _validate_feature_collection(data)
    elif data["type"] == "GeometryCollection":
        for i, geometry in enumerate(data.get("geometries") or []):
            with LogContext(geometry_idx=i):
                _validate_geometry(geometry)
    else:
        _validate_geometry(data)

    logging.debug(f"GeoJSON {data['type']} validated")
    return data


def _validate_coordinates(coords, depth):
    """Validate a coordinates array nested ``depth`` levels deep."""
    if not isinstance(coords, (list, tuple)):
        raise DataValidationError("Coordinates must be arrays")

    if depth == 0:
        if len(coords) < 2:
            raise DataValidationError(
                "Position must be an array of at least 2 numbers"
            )
        for value in coords:
            if not isinstance(value, Real) or not math.isfinite(value):
                raise DataValidationError(f"Invalid coordinate value: {value!r}")
        return

    for item in coords:
        _validate_coordinates(item, depth - 1)


def _validate_geometry(geometry):
    """Validate a GeoJSON geometry object."""
    if not isinstance(geometry, dict) or "type" not in geometry:
        raise DataValidationError("Geometry must be an object with a 'type'")

    geom_type = geometry["type"]
    if geom_type not in COORDINATE_DEPTH:
        raise DataValidationError(f"Unsupported geometry type: {geom_type}")

    if "coordinates" not in geometry:
        raise DataValidationError("Geometry must have 'coordinates' property")

    _validate_coordinates(geometry["coordinates"], COORDINATE_DEPTH[geom_type])


def _validate_feature(feature):
    """Validate a GeoJSON Feature object."""
    if "geometry" not in feature:
        raise DataValidationError("Feature must have a 'geometry' property")

    # Geometry can be null
    if feature["geometry"] is not None:
        _validate_geometry(feature["geometry"])

    properties = feature.get("properties")
    if properties is not None and not isinstance(properties, dict):
        raise DataValidationError("Feature properties must be an object")


def _validate_feature_collection(fc):
    """Validate a GeoJSON FeatureCollection."""
    if not isinstance(fc.get("features"), list):
        raise DataValidationError("FeatureCollection 'features' must be an array")

    for i, feature in enumerate(fc["features"]):
        with LogContext(feature_idx=i):
            if not isinstance(feature, dict):
                raise DataValidationError("Feature must be an object")
            _validate_feature(feature)


@handle_exception(custom_mapping={Exception: DataProcessingError})
def extract_features(geojson: Dict) -> List[Dict]:
    """
    Extract all features from a GeoJSON object.

    A bare geometry is wrapped into a Feature with empty properties.
    """
    if geojson["type"] == "FeatureCollection":
        return list(geojson["features"])
    if geojson["type"] == "Feature":
        return [geojson]
    return [{"type": "Feature", "geometry": geojson, "properties": {}}]


@handle_exception(custom_mapping={Exception: GeoJSONError})
def feature_to_shape(feature: Dict):
    """Convert a Feature's geometry into a shapely geometry."""
    if feature.get("geometry") is None:
        raise GeoJSONError("Feature has no geometry")
    return shape(feature["geometry"])
