"""
Coffee Shop Isochrone Pipeline
==============================

Runs the whole workflow: find the coffee shops of a place on OpenStreetMap,
request travel time isochrones around each of them, merge the isochrones by
time band and write the maps and exports.

Steps:
-----
1. Geocode the place into a bounding box (Nominatim)
2. Query Overpass for features tagged cuisine=coffee_shop
3. Extract named locations with numeric coordinates
4. Fetch isochrones per location on a bounded thread pool (OpenRouteService)
5. Union the isochrones per time band
6. Write the static map, the interactive map, GeoJSON and CSV exports

Command-line Usage:
-----------------
# Walking isochrones for Culver City (defaults)
$ python -m src.pipeline

# Cycling, 20 minutes in 5 minute bands, 4 parallel requests
$ python -m src.pipeline --place "Santa Monica" --profile cycling \\
      --range 1200 --interval 300 --workers 4

The ORS API key is read from ORS_API_KEY (environment or .env file).
"""

# Standard Library Imports
import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

# Local Imports
from src.utils.logging_utils import (
    setup_structured_logging,
    with_log_context,
    LogContext,
)
from src.utils.env_utils import load_env_variables, get_api_key
from src.utils.client_utils import get_ors_client
from src.utils.data_utils import (
    save_geojson_file,
    save_bands_csv,
    save_locations_csv,
)
from src.utils.path_utils import safe_file_name
from src.utils.error_utils import AppError, PipelineCancelledError
from src.osm import get_bounding_box, query_points
from src.locations import extract_locations
from src.isochrone import make_fetcher, PROFILES
from src.aggregate import aggregate
from src.maps import create_static_map, create_interactive_map, save_interactive_map
from src.config import ISOCHRONE_SETTINGS, OSM_SETTINGS, MAP_SETTINGS, OUTPUT, OUTPUT_FILES


def _raise_if_cancelled(cancel_event, stage):
    if cancel_event is not None and cancel_event.is_set():
        raise PipelineCancelledError(f"Run cancelled before {stage}")


@with_log_context(module="pipeline", operation="run_pipeline")
def run_pipeline(
    place=OSM_SETTINGS["place"],
    api_key=None,
    profile=ISOCHRONE_SETTINGS["profile"],
    range_seconds=ISOCHRONE_SETTINGS["range_seconds"],
    interval_seconds=ISOCHRONE_SETTINGS["interval_seconds"],
    max_workers=ISOCHRONE_SETTINGS["max_workers"],
    timeout=ISOCHRONE_SETTINGS["timeout"],
    request_delay=ISOCHRONE_SETTINGS["request_delay"],
    output_dir=OUTPUT,
    tile_provider=None,
    static_map=True,
    interactive_map=True,
    export=True,
    cancel_event=None,
    ors_client=None,
    geolocator=None,
    overpass_session=None,
):
    """
    Run the coffee shop isochrone workflow for one place.

    Args:
        place: Place name used for the bounding box
        api_key: ORS API key (required unless ors_client is given)
        profile: Travel mode (walking, cycling, driving)
        range_seconds: Largest travel time band in seconds
        interval_seconds: Step between bands in seconds
        max_workers: Concurrent isochrone requests
        timeout: Per-request timeout in seconds
        request_delay: Pause after each request in seconds
        output_dir: Directory for maps and exports
        tile_provider: Default base layer of the interactive map
        static_map: Write the PNG map
        interactive_map: Write the HTML map
        export: Write GeoJSON and CSV exports
        cancel_event: threading.Event; once set, outstanding requests are
            cancelled and the run stops before its next stage
        ors_client, geolocator, overpass_session: Optional preconfigured clients

    Returns:
        dict: counts, the bands and locations frames and the written paths

    Raises:
        PipelineCancelledError: If cancel_event is set before the run finishes
    """
    # Fail on bad settings before touching any service
    ors_client = ors_client or get_ors_client(api_key, timeout=timeout)
    fetch = make_fetcher(
        ors_client,
        profile=profile,
        range_seconds=range_seconds,
        interval_seconds=interval_seconds,
        request_delay=request_delay,
    )

    with LogContext(place=place, profile=profile):
        bbox = get_bounding_box(place, geolocator=geolocator)
        _raise_if_cancelled(cancel_event, "the Overpass query")
        records = query_points(
            bbox, OSM_SETTINGS["key"], OSM_SETTINGS["value"], session=overpass_session
        )
        _raise_if_cancelled(cancel_event, "fetching isochrones")
        locations, stats = extract_locations(records)

        bands, failures = aggregate(
            locations,
            fetch,
            max_workers=max_workers,
            cancel_event=cancel_event,
            return_failures=True,
        )
        _raise_if_cancelled(cancel_event, "writing outputs")

        output_dir = Path(output_dir)
        stem = safe_file_name(place)

        def output_path(name):
            file_name = OUTPUT_FILES[name].format(profile=safe_file_name(profile))
            return output_dir / f"{stem}_{file_name}"

        outputs = {}

        if static_map:
            outputs["static_map"] = create_static_map(
                bands,
                locations,
                output_path("static_map"),
                title=f"Isochrone Map of Coffee Shops Near {place}",
                profile=profile,
                bbox=bbox,
            )

        if interactive_map:
            _raise_if_cancelled(cancel_event, "the interactive map")
            m = create_interactive_map(
                bands, locations, profile=profile, tile_provider=tile_provider, bbox=bbox
            )
            outputs["interactive_map"] = save_interactive_map(
                m, output_path("interactive_map")
            )

        if export:
            _raise_if_cancelled(cancel_event, "the exports")
            outputs["bands_geojson"] = save_geojson_file(
                output_path("bands_geojson"), bands
            )
            outputs["bands_csv"] = save_bands_csv(output_path("bands_csv"), bands)
            outputs["locations_csv"] = save_locations_csv(
                output_path("locations_csv"), locations
            )

        logging.info(
            f"Pipeline finished: {stats.kept} shops, {len(failures)} failed fetches, "
            f"{len(bands)} bands"
        )

    return {
        "bbox": bbox,
        "locations": locations,
        "bands": bands,
        "extraction": stats,
        "failures": failures,
        "outputs": {name: str(path) for name, path in outputs.items()},
    }


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Map travel time isochrones around the coffee shops of a place",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Walking isochrones for Culver City
  python -m src.pipeline

  # Cycling isochrones with satellite imagery as the default base layer
  python -m src.pipeline --profile cycling --tile-provider Satellite
""",
    )
    parser.add_argument("--place", default=OSM_SETTINGS["place"], help="Place name to map")
    parser.add_argument(
        "--profile",
        choices=sorted(PROFILES),
        default=ISOCHRONE_SETTINGS["profile"],
        help="Travel mode (default: walking)",
    )
    parser.add_argument(
        "--range",
        dest="range_seconds",
        type=int,
        default=ISOCHRONE_SETTINGS["range_seconds"],
        help="Largest travel time band in seconds (default: 600)",
    )
    parser.add_argument(
        "--interval",
        dest="interval_seconds",
        type=int,
        default=ISOCHRONE_SETTINGS["interval_seconds"],
        help="Step between travel time bands in seconds (default: 150)",
    )
    parser.add_argument(
        "--workers",
        dest="max_workers",
        type=int,
        default=ISOCHRONE_SETTINGS["max_workers"],
        help="Concurrent isochrone requests (default: 2)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=ISOCHRONE_SETTINGS["timeout"],
        help="Per-request timeout in seconds (default: 60)",
    )
    parser.add_argument(
        "--delay",
        dest="request_delay",
        type=float,
        default=ISOCHRONE_SETTINGS["request_delay"],
        help="Pause after each isochrone request in seconds (default: 1.5)",
    )
    parser.add_argument(
        "--output-dir", default=str(OUTPUT), help="Directory for maps and exports"
    )
    parser.add_argument(
        "--tile-provider",
        choices=list(MAP_SETTINGS["tiles"]["providers"]),
        help="Default base layer of the interactive map",
    )
    parser.add_argument("--no-static", action="store_true", help="Skip the PNG map")
    parser.add_argument(
        "--no-interactive", action="store_true", help="Skip the HTML map"
    )
    parser.add_argument(
        "--no-export", action="store_true", help="Skip GeoJSON and CSV exports"
    )
    return parser.parse_args(argv)


def cancel_on_interrupt(cancel_event):
    """
    Build a SIGINT handler that cancels the run.

    The first Ctrl-C sets ``cancel_event`` and restores the default handler,
    so a second Ctrl-C raises KeyboardInterrupt right away.
    """

    def handler(_signum, _frame):
        logging.warning("Interrupted, cancelling the run (Ctrl-C again to abort)")
        cancel_event.set()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    return handler


def main(argv=None):
    """Command-line entry point; exits 1 on errors and 130 when cancelled."""
    args = parse_args(argv)
    setup_structured_logging(log_file="pipeline.log")

    cancel_event = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, cancel_on_interrupt(cancel_event))
    try:
        load_env_variables()
        api_key = get_api_key("ORS_API_KEY")

        result = run_pipeline(
            place=args.place,
            api_key=api_key,
            profile=args.profile,
            range_seconds=args.range_seconds,
            interval_seconds=args.interval_seconds,
            max_workers=args.max_workers,
            timeout=args.timeout,
            request_delay=args.request_delay,
            output_dir=args.output_dir,
            tile_provider=args.tile_provider,
            static_map=not args.no_static,
            interactive_map=not args.no_interactive,
            export=not args.no_export,
            cancel_event=cancel_event,
        )
    except PipelineCancelledError as e:
        logging.warning(str(e))
        sys.exit(130)
    except AppError as e:
        logging.error(f"Isochrone map generation failed: {e}")
        sys.exit(1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    for name, path in result["outputs"].items():
        logging.info(f"{name}: {path}")
    return result


if __name__ == "__main__":
    main()
