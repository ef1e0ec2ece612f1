"""
Map Generation Module
====================

Renders the travel time bands and the shop locations as a static image and as
an interactive Folium web map.

Key Features:
-----------
* Static map (PNG) drawn with geopandas/matplotlib: band polygons, shop
  points and a manual legend
* Interactive map (HTML) with switchable base layers (Light, Street Map,
  Satellite), one marker per shop with a franchise icon, band polygons with
  tooltips and a legend
* Bands are drawn longest first so the shorter bands stay visible on top
* Empty band frames render as a base map with shop markers only
* HTML minification with htmlmin, jsmin and csscompressor

Main Functions:
-------------
* band_colors: Map each band label to its fill color
* create_static_map: Write the PNG map
* create_interactive_map: Build the folium.Map
* save_interactive_map: Save (and minify) the interactive map
* minify_html: Optimize a generated HTML file

Configuration:
------------
MAP_SETTINGS in src.config controls colors, opacities, tiles, icons and zoom.
"""

# Standard Library Imports
import logging
import re
from pathlib import Path

# Third-party Imports
import folium
import htmlmin
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
from csscompressor import compress
from folium import MacroElement
from jinja2 import Template
from jsmin import jsmin
from matplotlib.lines import Line2D
from matplotlib.patches import Patch
from shapely.geometry import mapping

# Local Imports
from src.utils.logging_utils import with_log_context, LogContext
from src.utils.math_utils import calculate_geographic_midpoint, bbox_center
from src.utils.error_utils import (
    handle_exception,
    DataProcessingError,
    DataValidationError,
)
from src.config import MAP_SETTINGS

LEGEND_TEMPLATE = """
{% macro html(this, kwargs) %}
<div class="band-legend">
  <div class="band-legend-title">{{ this.title }}</div>
  {% for label, color in this.entries %}
  <div><span class="band-legend-swatch" style="background:{{ color }};"></span>{{ label }}</div>
  {% endfor %}
</div>
{% endmacro %}
"""

LEGEND_CSS = """
{% macro header(this, kwargs) %}
<style>
  .band-legend {
    position: fixed; bottom: 30px; right: 10px; z-index: 9999;
    background: rgba(255, 255, 255, 0.9); padding: 6px 10px;
    border-radius: 4px; font: 12px/1.5 sans-serif;
    box-shadow: 0 1px 4px rgba(0, 0, 0, 0.3);
  }
  .band-legend-title { font-weight: bold; margin-bottom: 4px; }
  .band-legend-swatch {
    display: inline-block; width: 14px; height: 14px;
    margin-right: 6px; vertical-align: middle; opacity: 0.7;
  }
</style>
{% endmacro %}
"""


def band_colors(bands):
    """Map each band label to a fill color, in band order (longest first)."""
    palette = MAP_SETTINGS["band_colors"]
    return {
        str(label): palette[idx % len(palette)]
        for idx, label in enumerate(bands["dist_cat"].astype(str))
    }


def franchise(name):
    """Icon group for a shop name: 'Starbucks' or 'Other'."""
    return "Starbucks" if "Starbucks" in str(name) else "Other"


def legend_title(profile):
    return MAP_SETTINGS["legend_titles"].get(profile, "Travel Time")


def _map_center(locations, bbox=None):
    """[lat, lon] to center the map on: the shops' midpoint, else the bbox."""
    if locations is not None and not locations.empty:
        return calculate_geographic_midpoint(zip(locations["lat"], locations["lon"]))
    if bbox is not None:
        return bbox_center(bbox)
    raise DataValidationError("Cannot center a map without locations or a bounding box")


@handle_exception(
    custom_mapping={OSError: DataProcessingError, ValueError: DataProcessingError}
)
@with_log_context(module="maps", operation="create_static_map")
def create_static_map(
    bands,
    locations,
    output_path,
    title="Isochrone Map of Coffee Shops",
    profile="walking",
    bbox=None,
):
    """
    Draw the bands and shop points into a PNG file.

    Args:
        bands: Band frame (dist_cat, value, geometry), longest band first
        locations: Locations frame (name, lon, lat)
        output_path: Destination PNG path
        title: Figure title
        profile: Travel mode, used for the legend title
        bbox: Optional (south, west, north, east) used to frame the map

    Returns:
        Path: The written file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=MAP_SETTINGS["static_figsize"])
    try:
        legend_elements = []

        if not bands.empty:
            colors = band_colors(bands)
            bands.plot(
                ax=ax,
                color=[colors[str(label)] for label in bands["dist_cat"]],
                alpha=MAP_SETTINGS["band_opacity"]["static"],
                edgecolor="none",
            )
            legend_elements.extend(
                Patch(
                    facecolor=color,
                    alpha=MAP_SETTINGS["band_opacity"]["static"],
                    label=label,
                )
                for label, color in colors.items()
            )
        else:
            logging.warning("No isochrone bands to draw on the static map")

        if locations is not None and not locations.empty:
            ax.scatter(locations["lon"], locations["lat"], color="black", s=12, zorder=3)
            legend_elements.append(
                Line2D(
                    [0],
                    [0],
                    marker="o",
                    color="none",
                    markerfacecolor="black",
                    markersize=5,
                    label="Coffee shop",
                )
            )

        if bbox is not None:
            south, west, north, east = bbox
            ax.set_xlim(west, east)
            ax.set_ylim(south, north)

        if legend_elements:
            ax.legend(
                handles=legend_elements,
                title=legend_title(profile),
                loc="lower left",
                framealpha=0.9,
            )
        ax.set_title(title)
        ax.set_xlabel("")
        ax.set_ylabel("")
        ax.set_aspect("equal", adjustable="datalim")

        fig.savefig(output_path, dpi=150, bbox_inches="tight")
    finally:
        plt.close(fig)

    logging.info(f"Static map saved to {output_path}")
    return output_path


def _add_base_layers(m, tile_provider=None):
    """Add the configured base layers; the selected one is added first and shown."""
    tiles_config = MAP_SETTINGS["tiles"]
    providers = tiles_config["providers"]
    selected = tile_provider if tile_provider in providers else tiles_config["default"]
    if tile_provider and tile_provider not in providers:
        logging.warning(f"Unknown tile provider '{tile_provider}', using {selected}")

    ordered = [selected] + [name for name in providers if name != selected]
    for name in ordered:
        folium.TileLayer(
            tiles=providers[name]["name"],
            name=name,
            overlay=False,
            control=True,
            show=name == selected,
        ).add_to(m)
    return selected


@with_log_context(module="maps", operation="create_interactive_map")
def create_interactive_map(
    bands, locations, profile="walking", tile_provider=None, bbox=None
):
    """
    Build the interactive map.

    Args:
        bands: Band frame (dist_cat, value, geometry), longest band first
        locations: Locations frame (name, lon, lat)
        profile: Travel mode, used for the legend title
        tile_provider: Optional base layer name (Light, Street Map, Satellite)
        bbox: Optional (south, west, north, east) to fit the view to

    Returns:
        folium.Map: The generated map object
    """
    map_center = _map_center(locations, bbox)
    logging.info(f"Creating interactive map centered at {map_center}")

    m = folium.Map(
        location=map_center,
        zoom_start=MAP_SETTINGS["zoom"],
        min_zoom=MAP_SETTINGS["min_zoom"],
        max_zoom=MAP_SETTINGS["max_zoom"],
        control_scale=True,
        tiles=None,
    )
    _add_base_layers(m, tile_provider)

    title = legend_title(profile)
    isochrones_layer = folium.FeatureGroup(name=title, show=True)
    shops_layer = folium.FeatureGroup(name="Coffee Shops", show=True)

    with LogContext(layer="isochrones"):
        colors = band_colors(bands) if not bands.empty else {}
        # Longest band first so shorter bands end up on top
        for _, band in bands.iterrows():
            label = str(band["dist_cat"])
            color = colors[label]
            folium.GeoJson(
                {
                    "type": "Feature",
                    "properties": {"dist_cat": label, "value": int(band["value"])},
                    "geometry": mapping(band.geometry),
                },
                style_function=lambda _feature, color=color: {
                    "fillColor": color,
                    "color": color,
                    "opacity": 0,
                    "weight": 0,
                    "fillOpacity": MAP_SETTINGS["band_opacity"]["interactive"],
                },
                tooltip=folium.Tooltip(f"{title}:&nbsp;<b>{label}</b>"),
            ).add_to(isochrones_layer)

    with LogContext(layer="shops"):
        icons = MAP_SETTINGS["icons"]
        if locations is not None:
            for _, row in locations.iterrows():
                icon_config = icons[franchise(row["name"])]
                folium.Marker(
                    location=[row["lat"], row["lon"]],
                    tooltip=folium.Tooltip(str(row["name"])),
                    icon=folium.CustomIcon(
                        icon_image=icon_config["url"],
                        icon_size=tuple(icon_config["size"]),
                    ),
                ).add_to(shops_layer)

    isochrones_layer.add_to(m)
    shops_layer.add_to(m)
    folium.LayerControl(position="topleft", collapsed=True).add_to(m)

    if colors:
        legend = MacroElement()
        legend._template = Template(LEGEND_TEMPLATE)
        legend.title = title
        legend.entries = list(colors.items())
        legend.add_to(m)

        styles = MacroElement()
        styles._template = Template(LEGEND_CSS)
        styles.add_to(m)

    if bbox is not None:
        south, west, north, east = bbox
        m.fit_bounds([[south, west], [north, east]])

    return m


@handle_exception(custom_mapping={OSError: DataProcessingError})
@with_log_context(module="maps", operation="save_interactive_map")
def save_interactive_map(m, output_path, minify=True):
    """Save a folium map to HTML, minifying it unless told otherwise."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    m.save(str(output_path))
    if minify:
        minify_html(output_path)
    logging.info(f"Interactive map saved to {output_path}")
    return output_path


@with_log_context(module="maps", operation="minify_html")
def minify_html(file_path):
    """Minify an HTML file in place (inline scripts, styles and markup)."""
    logging.info(f"Minifying HTML file: {file_path}")

    with Path(file_path).open("r", encoding="utf-8") as file:
        html_content = file.read()

    def minify_script(match):
        minified_script = jsmin(match.group(1), quote_chars="'\"")
        return f"<script>{minified_script}</script>"

    html_content = re.sub(
        r"<script>(.*?)</script>", minify_script, html_content, flags=re.DOTALL
    )

    def minify_style(match):
        return f"<style>{compress(match.group(1))}</style>"

    html_content = re.sub(
        r"<style>(.*?)</style>", minify_style, html_content, flags=re.DOTALL
    )

    minified_html = htmlmin.minify(
        html_content,
        remove_comments=True,
        remove_empty_space=True,
        reduce_boolean_attributes=True,
        remove_optional_attribute_quotes=False,
    )

    with Path(file_path).open("w", encoding="utf-8") as file:
        file.write(minified_html)
