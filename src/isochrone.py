"""
Isochrone Request Module
========================

Requests travel time isochrones around a single location from the
OpenRouteService API and returns them as shapely geometries, one per time band.

Key Features:
------------
* Travel modes walking, cycling and driving
* Concentric bands: one polygon per multiple of the interval up to the range
* Response validation (GeoJSON structure and the set of returned bands)
* Service failures reported as FetchError so one location never stops a batch

Main Functions:
-------------
* isochrone_thresholds: The band values (seconds) a request should return
* fetch_isochrones: Request and decode the isochrones for one location
* make_fetcher: Bind a client and settings into a fetch(lon, lat) callable

Example:
-------
>>> from src.utils.client_utils import get_ors_client
>>> from src.isochrone import fetch_isochrones
>>> client = get_ors_client(api_key)
>>> bands = fetch_isochrones(client, -118.3965, 34.0211, "walking", 600, 150)
>>> [value for value, _ in bands]
[150, 300, 450, 600]
"""

# Standard Library Imports
import logging
from functools import partial
from time import sleep

# Third-party Imports
import openrouteservice
import requests
from openrouteservice.isochrones import isochrones

# Local Imports
from src.utils.logging_utils import with_log_context, LogContext
from src.utils.error_utils import (
    ConfigError,
    DataError,
    DataValidationError,
    FetchError,
    GeoJSONError,
    ServiceUnreachableError,
)
from src.utils.geojson_utils import validate_geojson, extract_features, feature_to_shape
from src.config import PROFILES


def resolve_profile(profile):
    """Map a travel mode (walking, cycling, driving) to the ORS profile name."""
    try:
        return PROFILES[profile]
    except KeyError:
        raise ConfigError(
            f"Unknown profile '{profile}', expected one of {', '.join(PROFILES)}"
        ) from None


def isochrone_thresholds(range_seconds, interval_seconds):
    """
    Return the band values the routing service produces for a request.

    Every multiple of ``interval_seconds`` up to and including
    ``range_seconds``; when the range is not a multiple of the interval the
    range itself closes the sequence.

    Raises:
        ConfigError: If either value is not a positive integer
    """
    for label, value in (("range", range_seconds), ("interval", interval_seconds)):
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigError(f"Isochrone {label} must be a positive integer: {value!r}")

    interval = min(interval_seconds, range_seconds)
    thresholds = list(range(interval, range_seconds + 1, interval))
    if thresholds[-1] != range_seconds:
        thresholds.append(range_seconds)
    return thresholds


def _decode_response(response, expected):
    """Turn an ORS isochrone FeatureCollection into sorted (value, geometry) pairs."""
    features = extract_features(validate_geojson(response))

    bands = []
    for feature in features:
        properties = feature.get("properties") or {}
        if "value" not in properties:
            raise GeoJSONError("Isochrone feature has no 'value' property")
        value = properties["value"]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise GeoJSONError(f"Invalid isochrone value: {value!r}")
        if float(value).is_integer():
            value = int(value)
        bands.append((value, feature_to_shape(feature)))

    bands.sort(key=lambda band: band[0])
    values = [value for value, _ in bands]
    if values != expected:
        raise DataValidationError(f"Expected bands {expected}, service returned {values}")
    return bands


@with_log_context(module="isochrone", operation="fetch_isochrones")
def fetch_isochrones(
    client,
    longitude,
    latitude,
    profile="walking",
    range_seconds=600,
    interval_seconds=150,
    request_delay=0,
    location=None,
):
    """
    Request isochrones around one location.

    Args:
        client: The OpenRouteService client instance
        longitude: Longitude of the location
        latitude: Latitude of the location
        profile: Travel mode (walking, cycling, driving)
        range_seconds: Largest travel time band in seconds
        interval_seconds: Step between bands in seconds
        request_delay: Pause after the request, to stay under rate limits
        location: Optional label used in log lines and errors

    Returns:
        list: (time_seconds, geometry) pairs in ascending time order

    Raises:
        ConfigError: For an unknown profile or invalid range/interval
        ServiceUnreachableError: If the service host cannot be reached
        FetchError: For any other failure of this request
    """
    ors_profile = resolve_profile(profile)
    expected = isochrone_thresholds(range_seconds, interval_seconds)
    location = location or f"{longitude},{latitude}"

    with LogContext(location=location, profile=ors_profile):
        logging.debug(f"Requesting isochrones for {location}")
        try:
            response = isochrones(
                client,
                locations=[[longitude, latitude]],
                profile=ors_profile,
                range=[range_seconds],
                interval=interval_seconds,
                range_type="time",
            )
            bands = _decode_response(response, expected)
        except requests.exceptions.ConnectionError as e:
            raise ServiceUnreachableError(
                f"Routing service unreachable while fetching {location}: {e}",
                location=location,
            ) from e
        except (
            openrouteservice.exceptions.ApiError,
            openrouteservice.exceptions.HTTPError,
            openrouteservice.exceptions.Timeout,
            requests.exceptions.RequestException,
            DataError,
            GeoJSONError,
        ) as e:
            raise FetchError(
                f"Isochrone request failed for {location}: {e}", location=location
            ) from e
        finally:
            if request_delay:
                sleep(request_delay)

        logging.info(f"Received {len(bands)} isochrone bands for {location}")
        return bands


def make_fetcher(
    client,
    profile="walking",
    range_seconds=600,
    interval_seconds=150,
    request_delay=0,
):
    """
    Bind a client and request settings into a ``fetch(lon, lat, location=None)``.

    The settings are validated here so a bad configuration fails before any
    request is issued.
    """
    resolve_profile(profile)
    isochrone_thresholds(range_seconds, interval_seconds)
    return partial(
        fetch_isochrones,
        client,
        profile=profile,
        range_seconds=range_seconds,
        interval_seconds=interval_seconds,
        request_delay=request_delay,
    )
