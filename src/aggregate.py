"""
Isochrone Aggregation Module
============================

Fetches isochrones for every shop location and merges them into one polygon
per travel time band.

Fetches run on a bounded thread pool. A location whose fetch fails is logged
with its id and name and contributes nothing; the batch carries on. Results
are collected in submission order, then flattened, labelled and dissolved in a
single pass on the calling thread.

Bands are labelled ``value / 60`` minutes ("2.5 min", "5 min", ...) and sorted
by ``value`` descending, so that drawing the frame top to bottom paints the
smaller bands over the larger ones.

Main Functions:
-------------
* fetch_all: Run the per-location fetches on a bounded pool
* build_isochrone_frame: Flatten fetch results into one row per polygon
* format_band_label: Minute label for a band value in seconds
* dissolve_bands: Union all polygons of each band
* aggregate: fetch_all + build_isochrone_frame + dissolve_bands

Example:
-------
>>> from src.aggregate import aggregate
>>> from src.isochrone import make_fetcher
>>> bands = aggregate(locations, make_fetcher(client), max_workers=4)
>>> bands["dist_cat"].tolist()
['10 min', '7.5 min', '5 min', '2.5 min']
"""

# Standard Library Imports
import logging
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field

# Third-party Imports
import geopandas as gpd
import pandas as pd
from shapely.ops import unary_union

# Local Imports
from src.utils.logging_utils import with_log_context, get_log_context, LogContext
from src.utils.error_utils import ConfigError, ServiceUnreachableError

CRS = "EPSG:4326"
ISOCHRONE_COLUMNS = ["shop", "value", "dist_cat", "geometry"]
BAND_COLUMNS = ["dist_cat", "value", "geometry"]

# How often the pool checks the cancel event while waiting (seconds)
CANCEL_POLL_INTERVAL = 0.2


@dataclass
class FetchFailure:
    """A location whose isochrone request failed or was cancelled."""

    location_id: object
    name: str
    reason: str
    error: Exception = field(default=None, repr=False)


def _fetch_one(fetch, row, parent_context):
    # Worker threads start without context; carry over the submitting thread's
    location = f"{row['name']} ({row['id']})"
    with LogContext(**{**parent_context, "location_id": row["id"], "shop": row["name"]}):
        return fetch(row["lon"], row["lat"], location=location)


@with_log_context(module="aggregate", operation="fetch_all")
def fetch_all(rows, fetch, max_workers=2, cancel_event=None):
    """
    Fetch isochrones for every location on a bounded thread pool.

    Args:
        rows: DataFrame of locations (id, name, lon, lat)
        fetch: Callable ``fetch(lon, lat, location=None)`` returning
            ``[(time_seconds, geometry), ...]``
        max_workers: Maximum number of concurrent requests
        cancel_event: Optional threading.Event; once set, pending requests are
            cancelled and only already completed results are kept

    Returns:
        tuple: (results, failures) where results is a list of
        ``(name, [(time_seconds, geometry), ...])`` in submission order

    Raises:
        ConfigError: If max_workers is not positive
        ServiceUnreachableError: If every location failed because the
            routing service could not be reached
    """
    if max_workers is None or max_workers < 1:
        raise ConfigError(f"max_workers must be at least 1, got {max_workers}")

    records = rows.to_dict("records") if isinstance(rows, pd.DataFrame) else list(rows)
    if not records:
        logging.info("No locations to fetch")
        return [], []

    logging.info(
        f"Fetching isochrones for {len(records)} locations with {max_workers} workers"
    )

    executor = ThreadPoolExecutor(max_workers=max_workers)
    try:
        parent_context = dict(get_log_context())
        futures = [
            executor.submit(_fetch_one, fetch, row, parent_context) for row in records
        ]

        pending = set(futures)
        while pending:
            if cancel_event is not None and cancel_event.is_set():
                logging.warning(
                    f"Fetch cancelled with {len(pending)} requests outstanding"
                )
                for future in pending:
                    future.cancel()
                break
            _, pending = wait(
                pending, timeout=CANCEL_POLL_INTERVAL, return_when=FIRST_COMPLETED
            )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    results = []
    failures = []
    for row, future in zip(records, futures):
        with LogContext(location_id=row["id"], shop=row["name"]):
            if not future.done() or future.cancelled():
                failures.append(FetchFailure(row["id"], row["name"], "cancelled"))
                continue
            try:
                bands = future.result()
            except ConfigError:
                raise
            except Exception as e:
                logging.error(f"Isochrone fetch failed for '{row['name']}': {e}")
                failures.append(FetchFailure(row["id"], row["name"], str(e), e))
                continue

        if not bands:
            logging.warning(f"No isochrones returned for '{row['name']}'")
            failures.append(FetchFailure(row["id"], row["name"], "empty result"))
            continue
        results.append((row["name"], bands))

    if failures:
        logging.warning(
            f"{len(failures)} of {len(records)} locations contributed no isochrones"
        )
    if not results and all(
        isinstance(failure.error, ServiceUnreachableError) for failure in failures
    ):
        raise ServiceUnreachableError(
            f"Routing service unreachable for all {len(records)} locations"
        )

    return results, failures


def format_band_label(value):
    """Label a band value in seconds as minutes: 150 -> '2.5 min', 300 -> '5 min'."""
    return f"{value / 60:g} min"


def build_isochrone_frame(results):
    """
    Flatten per-location fetch results into one row per isochrone polygon.

    Args:
        results: ``[(shop_name, [(time_seconds, geometry), ...]), ...]``

    Returns:
        GeoDataFrame: columns shop, value, dist_cat, geometry
    """
    rows = [
        {
            "shop": shop,
            "value": value,
            "dist_cat": format_band_label(value),
            "geometry": geometry,
        }
        for shop, bands in results
        for value, geometry in bands
    ]
    if not rows:
        return gpd.GeoDataFrame(
            {
                "shop": pd.Series([], dtype="object"),
                "value": pd.Series([], dtype="int64"),
                "dist_cat": pd.Series([], dtype="object"),
                "geometry": gpd.GeoSeries([], crs=CRS),
            },
            geometry="geometry",
            crs=CRS,
        )
    return gpd.GeoDataFrame(rows, columns=ISOCHRONE_COLUMNS, geometry="geometry", crs=CRS)


def empty_bands():
    """An empty band frame with the usual columns."""
    return gpd.GeoDataFrame(
        {
            "dist_cat": pd.Categorical([]),
            "value": pd.Series([], dtype="int64"),
            "geometry": gpd.GeoSeries([], crs=CRS),
        },
        columns=BAND_COLUMNS,
        geometry="geometry",
        crs=CRS,
    )


def dissolve_bands(isochrones):
    """
    Union every polygon of each band into a single (multi)polygon.

    Args:
        isochrones: Frame with value, dist_cat and geometry columns

    Returns:
        GeoDataFrame: one row per band (dist_cat, value, geometry) sorted by
        value descending; dist_cat is an ordered categorical in the same order
    """
    if isochrones.empty:
        return empty_bands()

    bands = []
    for value, group in isochrones.groupby("value", sort=True):
        geometry = unary_union(list(group.geometry))
        bands.append(
            {
                "dist_cat": format_band_label(value),
                "value": value,
                "geometry": geometry,
            }
        )
        logging.debug(
            f"Band {format_band_label(value)}: {len(group)} polygons dissolved"
        )

    bands = sorted(bands, key=lambda band: band["value"], reverse=True)
    frame = gpd.GeoDataFrame(bands, columns=BAND_COLUMNS, geometry="geometry", crs=CRS)
    frame["dist_cat"] = pd.Categorical(
        frame["dist_cat"], categories=list(frame["dist_cat"]), ordered=True
    )
    return frame.reset_index(drop=True)


@with_log_context(module="aggregate", operation="aggregate")
def aggregate(rows, fetch, max_workers=2, cancel_event=None, return_failures=False):
    """
    Fetch isochrones for all locations and merge them by travel time band.

    Args:
        rows: DataFrame of locations (id, name, lon, lat)
        fetch: Callable ``fetch(lon, lat, location=None)``
        max_workers: Maximum number of concurrent requests
        cancel_event: Optional threading.Event to abort outstanding requests
        return_failures: Also return the list of FetchFailure

    Returns:
        GeoDataFrame of bands (longest first), or (bands, failures) when
        return_failures is set. Empty input or total failure gives an empty
        frame.
    """
    results, failures = fetch_all(
        rows, fetch, max_workers=max_workers, cancel_event=cancel_event
    )
    isochrones = build_isochrone_frame(results)
    bands = dissolve_bands(isochrones)

    if bands.empty:
        logging.warning("No isochrone bands produced")
    else:
        logging.info(
            f"Aggregated {len(isochrones)} isochrones from {len(results)} locations "
            f"into {len(bands)} bands: {', '.join(bands['dist_cat'].astype(str))}"
        )

    if return_failures:
        return bands, failures
    return bands
