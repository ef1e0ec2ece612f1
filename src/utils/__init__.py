"""
Utilities Module
===============

Project-wide helpers for the isochrone pipeline.

Key Components:
-------------
1. Logging: setup_structured_logging(), LogContext, with_log_context
2. Errors: AppError hierarchy, handle_exception, ExceptionContext
3. Environment: load_env_variables(), get_api_key()
4. Clients: get_ors_client(), get_geolocator(), get_overpass_session()
5. GeoJSON: validate_geojson(), extract_features(), feature_to_shape()
6. Exports: save_geojson_file(), save_bands_csv(), save_locations_csv()
7. Geography: calculate_geographic_midpoint()

Usage:
-----
from src.utils import load_env_variables, get_api_key, get_ors_client
load_env_variables()
client = get_ors_client(get_api_key("ORS_API_KEY"), timeout=30)
"""

from .path_utils import ensure_dirs_exist, safe_file_name
from .logging_utils import setup_logging, setup_structured_logging
from .env_utils import load_env_variables, get_api_key
from .client_utils import get_ors_client, get_geolocator, get_overpass_session
from .math_utils import calculate_geographic_midpoint

__all__ = [
    "ensure_dirs_exist",
    "safe_file_name",
    "setup_logging",
    "setup_structured_logging",
    "load_env_variables",
    "get_api_key",
    "get_ors_client",
    "get_geolocator",
    "get_overpass_session",
    "calculate_geographic_midpoint",
]
