#!/usr/bin/env python3
"""
Unit tests for RANSAC plane fitting and the inlier / foreground partition.
"""

import os
import sys
import unittest

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from tabletop_perception.cloud import PointCloud
from tabletop_perception.ransac import (
    fit_plane_from_points, refine_plane, ransac_plane, RansacPlaneEstimator
)


def noisy_table(n=500, z=0.5, seed=0):
    rng = np.random.default_rng(seed)
    return np.column_stack([
        rng.uniform(-0.3, 0.3, n),
        rng.uniform(-0.3, 0.3, n),
        z + rng.normal(0.0, 0.002, n),
    ])


class TestPlaneHelpers(unittest.TestCase):

    def test_three_point_plane_is_oriented(self):
        plane = fit_plane_from_points(
            np.array([0.0, 0.0, 0.5]), np.array([0.0, 1.0, 0.5]), np.array([1.0, 0.0, 0.5])
        )
        np.testing.assert_allclose(plane.normal, [0.0, 0.0, 1.0], atol=1e-12)
        self.assertAlmostEqual(plane.d, -0.5)

    def test_vertical_plane_orients_on_first_nonzero_of_a_b(self):
        plane = fit_plane_from_points(
            np.array([0.0, 0.0, 0.0]), np.array([0.0, 0.0, 1.0]), np.array([1.0, 1.0, 0.0])
        )
        np.testing.assert_allclose(plane.normal, [np.sqrt(0.5), -np.sqrt(0.5), 0.0], atol=1e-12)
        self.assertAlmostEqual(plane.d, 0.0)

        plane = fit_plane_from_points(
            np.array([0.5, 0.0, 0.0]), np.array([0.5, 0.0, 1.0]), np.array([0.5, 1.0, 0.0])
        )
        np.testing.assert_allclose(plane.normal, [1.0, 0.0, 0.0], atol=1e-12)
        self.assertAlmostEqual(plane.d, -0.5)

    def test_collinear_points_raise(self):
        with self.assertRaises(ValueError):
            fit_plane_from_points(np.zeros(3), np.array([1.0, 0, 0]), np.array([2.0, 0, 0]))

    def test_refine_plane_least_squares(self):
        plane = refine_plane(noisy_table())
        self.assertAlmostEqual(np.linalg.norm(plane.normal), 1.0)
        np.testing.assert_allclose(plane.coefficients, (0.0, 0.0, 1.0, -0.5), atol=0.01)


class TestRansacPlane(unittest.TestCase):

    def test_finds_table_among_clutter(self):
        rng = np.random.default_rng(1)
        table = noisy_table()
        clutter = rng.uniform([-0.3, -0.3, 0.6], [0.3, 0.3, 0.9], (100, 3))
        points = np.vstack([table, clutter])

        plane, mask = ransac_plane(points, num_iterations=200, distance_threshold=0.02, rng=np.random.default_rng(0))

        np.testing.assert_allclose(plane.coefficients, (0.0, 0.0, 1.0, -0.5), atol=0.01)
        self.assertTrue(mask[:500].all())
        self.assertFalse(mask[500:].any())

    def test_accepts_vertical_plane(self):
        rng = np.random.default_rng(3)
        wall = np.column_stack([np.full(300, 0.5), rng.uniform(-0.3, 0.3, 300), rng.uniform(0.0, 0.6, 300)])

        plane, mask = ransac_plane(wall, num_iterations=50, rng=np.random.default_rng(0))

        np.testing.assert_allclose(plane.coefficients, (1.0, 0.0, 0.0, -0.5), atol=1e-6)
        self.assertTrue(mask.all())

    def test_too_few_points(self):
        plane, mask = ransac_plane(np.zeros((2, 3)))
        self.assertIsNone(plane)
        self.assertEqual(mask.shape, (2,))

    def test_degenerate_line_has_no_plane(self):
        points = np.column_stack([np.linspace(0, 1, 50), np.zeros(50), np.zeros(50)])
        plane, mask = ransac_plane(points, num_iterations=50, rng=np.random.default_rng(0))
        self.assertIsNone(plane)
        self.assertFalse(mask.any())


class TestRansacPlaneEstimator(unittest.TestCase):

    def test_partition_is_complete_and_disjoint(self):
        rng = np.random.default_rng(2)
        points = np.vstack([noisy_table(), rng.uniform(0.0, 0.3, (80, 3)) + [0, 0, 0.55]])
        cloud = PointCloud(points, frame_id="cam")

        fit = RansacPlaneEstimator(max_iterations=300, seed=0).fit(cloud)

        self.assertTrue(fit.found)
        self.assertEqual(len(fit.inlier_cloud) + len(fit.foreground_cloud), len(cloud))
        inlier_rows = {tuple(p) for p in fit.inlier_cloud.points}
        foreground_rows = {tuple(p) for p in fit.foreground_cloud.points}
        self.assertFalse(inlier_rows & foreground_rows)
        self.assertEqual(fit.foreground_cloud.frame_id, "cam")

    def test_foreground_keeps_input_order(self):
        points = np.vstack([noisy_table(n=200), [[0.0, 0.0, 0.8], [0.1, 0.0, 0.7], [0.2, 0.0, 0.9]]])
        fit = RansacPlaneEstimator(max_iterations=100, seed=0).fit(PointCloud(points))
        np.testing.assert_allclose(fit.foreground_cloud.points[:, 2], [0.8, 0.7, 0.9])

    def test_empty_cloud_is_not_found(self):
        fit = RansacPlaneEstimator(seed=0).fit(PointCloud.empty("cam"))
        self.assertFalse(fit.found)
        self.assertIsNone(fit.model)
        self.assertEqual(len(fit.inlier_cloud), 0)
        self.assertEqual(len(fit.foreground_cloud), 0)


if __name__ == '__main__':
    unittest.main()
