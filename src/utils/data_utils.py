"""
Data Utility Functions
=====================

Writes the pipeline results to disk.

Functions:
    save_geojson_file: Save the band polygons as a GeoJSON FeatureCollection (geopandas).
    save_bands_csv: Save the band polygons as CSV with WKT geometry.
    save_locations_csv: Save the shop locations as CSV.

Example:
    >>> from src.utils.data_utils import save_geojson_file
    >>> save_geojson_file(Path("output/culver_city_walking_isochrones.geojson"), bands)
"""

# Standard library imports
import logging
from pathlib import Path

# Third-party imports
import pandas as pd

# Local imports
from src.aggregate import BAND_COLUMNS
from src.utils.error_utils import (
    handle_exception,
    DataProcessingError,
    GeoJSONError,
)
from src.utils.logging_utils import with_log_context

LOCATION_EXPORT_COLUMNS = ["id", "name", "lon", "lat"]


def _prepare_path(file_path):
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    return file_path


@handle_exception(
    custom_mapping={
        TypeError: GeoJSONError,
        ValueError: GeoJSONError,
        Exception: DataProcessingError,
    }
)
@with_log_context(module="data_utils", operation="save_geojson")
def save_geojson_file(file_path, bands):
    """
    Save band polygons to a GeoJSON file.

    Args:
        file_path: Path to save the file
        bands: Band frame (dist_cat, value, geometry)

    Raises:
        GeoJSONError: If the features cannot be serialized
        DataProcessingError: If the file cannot be written
    """
    file_path = _prepare_path(file_path)
    export = bands.assign(dist_cat=bands["dist_cat"].astype(str))[BAND_COLUMNS]
    content = export.to_json(drop_id=True)

    with file_path.open("w", encoding="utf-8") as f:
        f.write(content)
    logging.info(f"Saved {len(export)} bands to {file_path}")
    return file_path


@handle_exception(custom_mapping={Exception: DataProcessingError})
@with_log_context(module="data_utils", operation="save_bands_csv")
def save_bands_csv(file_path, bands):
    """Save band polygons as CSV (dist_cat, value, geometry as WKT)."""
    file_path = _prepare_path(file_path)
    table = pd.DataFrame(
        {
            "dist_cat": bands["dist_cat"].astype(str),
            "value": bands["value"],
            "geometry": [geometry.wkt for geometry in bands.geometry],
        },
        columns=BAND_COLUMNS,
    )
    table.to_csv(file_path, index=False)
    logging.info(f"Saved {len(table)} bands to {file_path}")
    return file_path


@handle_exception(custom_mapping={Exception: DataProcessingError})
@with_log_context(module="data_utils", operation="save_locations_csv")
def save_locations_csv(file_path, locations):
    """Save shop locations as CSV (id, name, lon, lat)."""
    file_path = _prepare_path(file_path)
    locations.reindex(columns=LOCATION_EXPORT_COLUMNS).to_csv(file_path, index=False)
    logging.info(f"Saved {len(locations)} locations to {file_path}")
    return file_path
