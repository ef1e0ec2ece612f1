import unittest

from src.utils.math_utils import calculate_geographic_midpoint, bbox_center
from src.utils.error_utils import DataValidationError


class TestMathUtils(unittest.TestCase):
    def test_midpoint_single_point(self):
        self.assertEqual(
            calculate_geographic_midpoint([(34.0211, -118.3965)]), [34.0211, -118.3965]
        )

    def test_midpoint_two_points(self):
        lat, lon = calculate_geographic_midpoint([(34.0, -118.4), (34.02, -118.38)])
        self.assertAlmostEqual(lat, 34.01, places=4)
        self.assertAlmostEqual(lon, -118.39, places=4)

    def test_midpoint_accepts_iterators(self):
        lat, lon = calculate_geographic_midpoint(zip([10.0, 10.0], [20.0, 20.0]))
        self.assertAlmostEqual(lat, 10.0)
        self.assertAlmostEqual(lon, 20.0)

    def test_midpoint_across_antimeridian(self):
        lat, lon = calculate_geographic_midpoint([(0.0, 179.0), (0.0, -179.0)])
        self.assertAlmostEqual(lat, 0.0)
        self.assertAlmostEqual(abs(lon), 180.0)

    def test_midpoint_empty(self):
        with self.assertRaises(DataValidationError):
            calculate_geographic_midpoint([])

    def test_bbox_center(self):
        lat, lon = bbox_center((34.0, -118.4, 34.02, -118.38))
        self.assertAlmostEqual(lat, 34.01)
        self.assertAlmostEqual(lon, -118.39)


if __name__ == "__main__":
    unittest.main()
