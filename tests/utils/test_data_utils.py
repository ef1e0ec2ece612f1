import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import geopandas as gpd
import pandas as pd
from shapely import wkt
from shapely.geometry import Point, box

from src import aggregate
from src.utils import data_utils
from src.utils.data_utils import save_geojson_file, save_bands_csv, save_locations_csv
from src.utils.error_utils import DataProcessingError, GeoJSONError


class TestDataUtils(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.output_dir = Path(self.tmp_dir.name)
        self.bands = gpd.GeoDataFrame(
            {
                "dist_cat": pd.Categorical(
                    ["10 min", "5 min"], categories=["10 min", "5 min"], ordered=True
                ),
                "value": [600, 300],
                "geometry": [box(0, 0, 2, 2), box(0.5, 0.5, 1.5, 1.5)],
            },
            geometry="geometry",
            crs="EPSG:4326",
        )
        self.locations = pd.DataFrame(
            {
                "id": ["node/1"],
                "name": ["Starbucks"],
                "lon": [-118.3965],
                "lat": [34.0211],
                "geometry": [Point(-118.3965, 34.0211)],
            }
        )

    def tearDown(self):
        self.tmp_dir.cleanup()

    def test_save_geojson_file(self):
        path = save_geojson_file(self.output_dir / "nested" / "bands.geojson", self.bands)

        with path.open(encoding="utf-8") as f:
            collection = json.load(f)
        self.assertEqual(collection["type"], "FeatureCollection")
        self.assertEqual(
            [feature["properties"] for feature in collection["features"]],
            [{"dist_cat": "10 min", "value": 600}, {"dist_cat": "5 min", "value": 300}],
        )
        self.assertEqual(collection["features"][0]["geometry"]["type"], "Polygon")

    def test_save_geojson_file_empty_bands(self):
        path = save_geojson_file(self.output_dir / "empty.geojson", self.bands.iloc[0:0])

        with path.open(encoding="utf-8") as f:
            collection = json.load(f)
        self.assertEqual(collection["type"], "FeatureCollection")
        self.assertEqual(collection["features"], [])

    @patch("geopandas.GeoDataFrame.to_json")
    def test_save_geojson_serialization_error(self, mock_to_json):
        mock_to_json.side_effect = TypeError("not serializable")
        with self.assertRaises(GeoJSONError):
            save_geojson_file(self.output_dir / "bands.geojson", self.bands)

    @patch("pathlib.Path.open")
    def test_save_geojson_write_error(self, mock_open):
        mock_open.side_effect = PermissionError("read-only")
        with self.assertRaises(DataProcessingError):
            save_geojson_file(self.output_dir / "bands.geojson", self.bands)

    def test_band_columns_shared_with_aggregate(self):
        self.assertIs(data_utils.BAND_COLUMNS, aggregate.BAND_COLUMNS)

    def test_save_bands_csv(self):
        path = save_bands_csv(self.output_dir / "bands.csv", self.bands)

        table = pd.read_csv(path)
        self.assertEqual(list(table.columns), ["dist_cat", "value", "geometry"])
        self.assertEqual(list(table["dist_cat"]), ["10 min", "5 min"])
        self.assertEqual(list(table["value"]), [600, 300])
        self.assertTrue(wkt.loads(table["geometry"][0]).equals(box(0, 0, 2, 2)))

    def test_save_locations_csv(self):
        path = save_locations_csv(self.output_dir / "shops.csv", self.locations)

        table = pd.read_csv(path)
        self.assertEqual(list(table.columns), ["id", "name", "lon", "lat"])
        self.assertEqual(table["name"][0], "Starbucks")
        self.assertAlmostEqual(table["lon"][0], -118.3965)


if __name__ == "__main__":
    unittest.main()
