import unittest
from unittest.mock import patch, MagicMock
import json
import os
import signal
import sys
import tempfile
import threading
import time
from pathlib import Path

import requests

# Add the project root to path to allow importing from src
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src import config
from src.pipeline import cancel_on_interrupt, main, parse_args, run_pipeline
from src.utils.error_utils import (
    ConfigError,
    ConfigMissingError,
    PipelineCancelledError,
    ServiceUnreachableError,
)


def isochrone_response(lon, lat, values=(150, 300, 450, 600)):
    def ring(size):
        return [
            [
                [lon - size, lat - size],
                [lon + size, lat - size],
                [lon + size, lat + size],
                [lon - size, lat + size],
                [lon - size, lat - size],
            ]
        ]

    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"value": value},
                "geometry": {"type": "Polygon", "coordinates": ring(value / 60000.0)},
            }
            for value in values
        ],
    }


class TestPipeline(unittest.TestCase):
    """Test suite for the end-to-end pipeline with mocked services"""

    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.output_dir = Path(self.tmp_dir.name)

        self.geolocator = MagicMock()
        self.geolocator.geocode.return_value = MagicMock(
            raw={"boundingbox": ["33.9866", "34.0338", "-118.4285", "-118.3599"]}
        )

        self.session = MagicMock()
        self.session.post.return_value.json.return_value = {
            "elements": [
                {"type": "node", "id": 1, "lat": 34.0211, "lon": -118.3965,
                 "tags": {"name": "Starbucks"}},
                {"type": "node", "id": 2, "lat": 34.0215, "lon": -118.3945,
                 "tags": {"name": "Cafe Vida"}},
                {"type": "node", "id": 3, "lat": 34.0100, "lon": -118.3800, "tags": {}},
            ]
        }

        self.isochrones_patcher = patch("src.isochrone.isochrones")
        self.mock_isochrones = self.isochrones_patcher.start()
        self.mock_isochrones.side_effect = lambda client, locations, **kwargs: (
            isochrone_response(*locations[0])
        )

    def tearDown(self):
        self.isochrones_patcher.stop()
        self.tmp_dir.cleanup()

    def run_with_mocks(self, **kwargs):
        options = dict(
            place="Culver City",
            ors_client=MagicMock(),
            geolocator=self.geolocator,
            overpass_session=self.session,
            output_dir=self.output_dir,
            request_delay=0,
        )
        options.update(kwargs)
        return run_pipeline(**options)

    def test_run_pipeline_writes_outputs(self):
        result = self.run_with_mocks()

        self.assertEqual(result["extraction"].kept, 2)
        self.assertEqual(result["extraction"].missing_name, 1)
        self.assertEqual(result["failures"], [])
        self.assertEqual(list(result["bands"]["value"]), [600, 450, 300, 150])
        self.assertEqual(
            set(result["outputs"]),
            {"static_map", "interactive_map", "bands_geojson", "bands_csv", "locations_csv"},
        )
        for path in result["outputs"].values():
            self.assertTrue(Path(path).exists(), path)
        self.assertTrue(
            result["outputs"]["bands_geojson"].endswith("culver_city_walking_isochrones.geojson")
        )

        with open(result["outputs"]["bands_geojson"], encoding="utf-8") as f:
            collection = json.load(f)
        self.assertEqual(
            [feature["properties"]["dist_cat"] for feature in collection["features"]],
            ["10 min", "7.5 min", "5 min", "2.5 min"],
        )

    def test_run_pipeline_without_outputs(self):
        result = self.run_with_mocks(static_map=False, interactive_map=False, export=False)

        self.assertEqual(result["outputs"], {})
        self.assertEqual(list(self.output_dir.iterdir()), [])

    def test_run_pipeline_no_shops(self):
        self.session.post.return_value.json.return_value = {"elements": []}

        result = self.run_with_mocks(static_map=False, interactive_map=False)

        self.assertTrue(result["bands"].empty)
        self.mock_isochrones.assert_not_called()
        self.assertTrue(Path(result["outputs"]["bands_csv"]).exists())

    def test_run_pipeline_requires_api_key(self):
        with self.assertRaises(ConfigMissingError):
            run_pipeline(api_key="", geolocator=self.geolocator, overpass_session=self.session)
        self.geolocator.geocode.assert_not_called()

    def test_run_pipeline_rejects_bad_settings_before_requests(self):
        with self.assertRaises(ConfigError):
            self.run_with_mocks(profile="teleport")
        self.geolocator.geocode.assert_not_called()

    def test_run_pipeline_service_unreachable(self):
        self.mock_isochrones.side_effect = requests.exceptions.ConnectionError("down")

        with self.assertRaises(ServiceUnreachableError):
            self.run_with_mocks()

    def test_run_pipeline_output_names_follow_profile(self):
        result = self.run_with_mocks(profile="cycling", static_map=False, interactive_map=False)

        geojson = Path(result["outputs"]["bands_geojson"]).name
        self.assertEqual(geojson, "culver_city_cycling_isochrones.geojson")
        self.assertEqual(
            Path(result["outputs"]["bands_csv"]).name, "culver_city_cycling_isochrones.csv"
        )
        for path in result["outputs"].values():
            self.assertNotIn("walk", Path(path).name)

    def test_run_pipeline_cancelled_between_stages(self):
        """A cancel during geocoding stops the run before Overpass is queried"""
        cancel_event = threading.Event()
        location = self.geolocator.geocode.return_value

        def geocode(*args, **kwargs):
            cancel_event.set()
            return location

        self.geolocator.geocode.side_effect = geocode

        with self.assertRaises(PipelineCancelledError):
            self.run_with_mocks(cancel_event=cancel_event)

        self.session.post.assert_not_called()
        self.mock_isochrones.assert_not_called()
        self.assertEqual(list(self.output_dir.iterdir()), [])

    def test_run_pipeline_cancelled_during_fetch_writes_nothing(self):
        cancel_event = threading.Event()

        def isochrones(client, locations, **kwargs):
            cancel_event.set()
            return isochrone_response(*locations[0])

        self.mock_isochrones.side_effect = isochrones

        with self.assertRaises(PipelineCancelledError):
            self.run_with_mocks(cancel_event=cancel_event, max_workers=1)

        self.assertEqual(list(self.output_dir.iterdir()), [])

    def test_output_file_templates(self):
        self.assertFalse(hasattr(config, "DATA"))
        for name, template in config.OUTPUT_FILES.items():
            if name != "locations_csv":
                self.assertIn("{profile}", template)

    @patch("src.pipeline.signal.signal")
    def test_cancel_on_interrupt_handler(self, mock_signal):
        cancel_event = threading.Event()
        handler = cancel_on_interrupt(cancel_event)

        handler(signal.SIGINT, None)

        self.assertTrue(cancel_event.is_set())
        mock_signal.assert_called_once_with(signal.SIGINT, signal.default_int_handler)

    def test_parse_args(self):
        args = parse_args(
            ["--place", "Santa Monica", "--profile", "cycling", "--range", "1200",
             "--interval", "300", "--workers", "4", "--no-static"]
        )

        self.assertEqual(args.place, "Santa Monica")
        self.assertEqual(args.profile, "cycling")
        self.assertEqual(args.range_seconds, 1200)
        self.assertEqual(args.interval_seconds, 300)
        self.assertEqual(args.max_workers, 4)
        self.assertTrue(args.no_static)
        self.assertFalse(args.no_export)

    @patch("src.pipeline.run_pipeline")
    @patch("src.pipeline.get_api_key", return_value="test-key")
    @patch("src.pipeline.load_env_variables")
    @patch("src.pipeline.setup_structured_logging")
    def test_main(self, mock_logging, mock_load_env, mock_get_key, mock_run):
        mock_run.return_value = {"outputs": {"bands_csv": "output/x.csv"}}

        main(["--place", "Culver City", "--no-interactive", "--tile-provider", "Satellite"])

        mock_load_env.assert_called_once()
        kwargs = mock_run.call_args.kwargs
        self.assertEqual(kwargs["api_key"], "test-key")
        self.assertEqual(kwargs["tile_provider"], "Satellite")
        self.assertFalse(kwargs["interactive_map"])
        self.assertTrue(kwargs["static_map"])
        self.assertIsNotNone(kwargs["cancel_event"])
        self.assertFalse(kwargs["cancel_event"].is_set())

    @patch("src.pipeline.run_pipeline")
    @patch("src.pipeline.get_api_key", return_value="test-key")
    @patch("src.pipeline.load_env_variables")
    @patch("src.pipeline.setup_structured_logging")
    def test_main_exits_1_on_app_error(self, mock_logging, mock_load_env, mock_get_key, mock_run):
        mock_run.side_effect = ServiceUnreachableError("down")

        with self.assertRaises(SystemExit) as cm:
            main([])

        self.assertEqual(cm.exception.code, 1)

    @patch("src.pipeline.run_pipeline")
    @patch("src.pipeline.get_api_key", side_effect=ConfigMissingError("no key"))
    @patch("src.pipeline.load_env_variables")
    @patch("src.pipeline.setup_structured_logging")
    def test_main_exits_1_without_api_key(self, mock_logging, mock_load_env, mock_get_key, mock_run):
        with self.assertRaises(SystemExit) as cm:
            main([])

        self.assertEqual(cm.exception.code, 1)
        mock_run.assert_not_called()

    @patch("src.pipeline.run_pipeline")
    @patch("src.pipeline.get_api_key", return_value="test-key")
    @patch("src.pipeline.load_env_variables")
    @patch("src.pipeline.setup_structured_logging")
    def test_main_exits_130_when_cancelled(self, mock_logging, mock_load_env, mock_get_key, mock_run):
        mock_run.side_effect = PipelineCancelledError("Run cancelled before the exports")
        handler_before = signal.getsignal(signal.SIGINT)

        with self.assertRaises(SystemExit) as cm:
            main([])

        self.assertEqual(cm.exception.code, 130)
        self.assertIs(signal.getsignal(signal.SIGINT), handler_before)

    @unittest.skipUnless(
        threading.current_thread() is threading.main_thread(),
        "signal handlers can only be installed on the main thread",
    )
    @patch("src.pipeline.run_pipeline")
    @patch("src.pipeline.get_api_key", return_value="test-key")
    @patch("src.pipeline.load_env_variables")
    @patch("src.pipeline.setup_structured_logging")
    def test_main_ctrl_c_twice_aborts(self, mock_logging, mock_load_env, mock_get_key, mock_run):
        """First Ctrl-C only sets the cancel event, the second one aborts"""
        seen = {}

        def interrupted_run(**kwargs):
            cancel_event = kwargs["cancel_event"]
            os.kill(os.getpid(), signal.SIGINT)
            for _ in range(200):
                if cancel_event.is_set():
                    break
                time.sleep(0.01)
            seen["cancelled"] = cancel_event.is_set()
            os.kill(os.getpid(), signal.SIGINT)
            time.sleep(2)
            seen["still_running"] = True

        mock_run.side_effect = interrupted_run
        handler_before = signal.getsignal(signal.SIGINT)

        with self.assertRaises(KeyboardInterrupt):
            main([])

        self.assertTrue(seen["cancelled"])
        self.assertNotIn("still_running", seen)
        self.assertIs(signal.getsignal(signal.SIGINT), handler_before)


if __name__ == "__main__":
    unittest.main()
