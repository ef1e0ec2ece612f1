"""
Configuration Module
===================

Central configuration for the coffee shop isochrone maps: paths, the point
query, isochrone request settings and map styling.

Key Components:
--------------
1. Base Paths:
   - ROOT: Project root directory
   - LOGS: Directory for application logs
   - OUTPUT: Directory for generated maps and exports

2. Point Query (OSM_SETTINGS):
   - place: Place name geocoded into the query bounding box
   - key/value: OpenStreetMap tag matched by the query
   - overpass_url/timeout: Overpass API endpoint and server-side timeout

3. Isochrone Requests (ISOCHRONE_SETTINGS):
   - profile: walking, cycling or driving
   - range_seconds/interval_seconds: Largest band and band step
   - max_workers/timeout/request_delay: Request pool size and pacing

4. Map Settings (MAP_SETTINGS):
   - band_colors: Fill colors for the travel time bands, longest band first
   - tiles: Base layers offered by the interactive map
   - icons: Marker icons keyed by franchise

5. Output Files (OUTPUT_FILES):
   - File names written by the pipeline; {profile} is the travel mode

Usage:
-----
from src.config import ISOCHRONE_SETTINGS, MAP_SETTINGS
profile = ISOCHRONE_SETTINGS["profile"]
first_color = MAP_SETTINGS["band_colors"][0]
"""

# Standard library imports
from pathlib import Path

# Local imports
from src.utils.path_utils import ensure_dirs_exist

# Define base paths
ROOT = Path(__file__).resolve().parent.parent.parent
LOGS = Path(ROOT, "logs")
OUTPUT = Path(ROOT, "output")

OSM_SETTINGS = {
    "place": "Culver City",
    "key": "cuisine",
    "value": "coffee_shop",
    "overpass_url": "https://overpass-api.de/api/interpreter",
    "timeout": 25,
}

# Routing service profile names for each travel mode
PROFILES = {
    "walking": "foot-walking",
    "cycling": "cycling-regular",
    "driving": "driving-car",
}

ISOCHRONE_SETTINGS = {
    "profile": "walking",
    "range_seconds": 600,
    "interval_seconds": 150,
    "max_workers": 2,
    "timeout": 60,
    "request_delay": 1.5,
}

MAP_SETTINGS = {
    "zoom": 14,
    "min_zoom": 10,
    "max_zoom": 18,
    "band_colors": ["#587291", "#1CCAD8", "#15E6CD", "#11EEA1"],
    "band_opacity": {"static": 0.6, "interactive": 0.4},
    "legend_titles": {
        "walking": "Walking Time",
        "cycling": "Cycling Time",
        "driving": "Driving Time",
    },
    "tiles": {
        "default": "Light",
        "providers": {
            "Light": {"name": "CartoDB positron"},
            "Street Map": {"name": "Esri.WorldStreetMap"},
            "Satellite": {"name": "Esri.WorldImagery"},
        },
    },
    "icons": {
        "Starbucks": {
            "url": "https://img.icons8.com/color/344/starbucks.png",
            "size": (30, 30),
        },
        "Other": {
            "url": "https://img.icons8.com/ios-filled/452/coffee-beans---v2.png",
            "size": (20, 20),
        },
    },
    "static_figsize": (10, 10),
}

OUTPUT_FILES = {
    "static_map": "{profile}_isochrones.png",
    "interactive_map": "{profile}_isochrones.html",
    "bands_geojson": "{profile}_isochrones.geojson",
    "bands_csv": "{profile}_isochrones.csv",
    "locations_csv": "coffee_shops.csv",
}

# Ensure directories exist
ensure_dirs_exist([LOGS, OUTPUT])
