#!/usr/bin/env python3
"""
Unit tests for the cluster acceptance filter against the adjusted plane.
"""

import os
import sys
import unittest

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from tabletop_perception.cloud import PointCloud
from tabletop_perception.proximity import adjust_plane, plane_residuals, accept_cluster, filter_clusters
from tabletop_perception.ransac import PlaneModel

TABLE = PlaneModel(normal=np.array([0.0, 0.0, 1.0]), d=-0.5)


class TestAdjustPlane(unittest.TestCase):

    def test_default_offsets(self):
        np.testing.assert_allclose(adjust_plane(TABLE), (0.1, 0.5, 1.1, -0.5))

    def test_custom_offsets(self):
        np.testing.assert_allclose(adjust_plane(TABLE, (0.0, 0.0, 0.0, 0.0)), (0.0, 0.0, 1.0, -0.5))

    def test_residuals_are_not_normalized(self):
        residuals = plane_residuals(np.array([[0.0, 0.0, 1.0]]), (0.0, 0.0, 2.0, 0.0))
        np.testing.assert_allclose(residuals, [2.0])


class TestAcceptCluster(unittest.TestCase):

    def test_point_on_plane_is_accepted(self):
        coefficients = (0.0, 0.0, 1.0, -0.5)
        cluster = PointCloud(np.array([[0.0, 0.0, 0.5], [0.0, 0.0, 0.9]]))
        for tolerance in (0.0, 0.09, 1.0):
            self.assertTrue(accept_cluster(cluster, coefficients, tolerance))

    def test_far_cluster_is_rejected(self):
        coefficients = (0.0, 0.0, 1.0, -0.5)
        cluster = PointCloud(np.array([[0.0, 0.0, 0.7], [0.0, 0.0, 0.8]]))
        self.assertFalse(accept_cluster(cluster, coefficients, 0.09))
        self.assertTrue(accept_cluster(cluster, coefficients, 0.25))

    def test_points_below_plane_use_absolute_distance(self):
        cluster = PointCloud(np.array([[0.0, 0.0, 0.2]]))
        self.assertFalse(accept_cluster(cluster, (0.0, 0.0, 1.0, -0.5), 0.09))

    def test_empty_cluster_is_rejected(self):
        self.assertFalse(accept_cluster(PointCloud.empty(), (0.0, 0.0, 1.0, -0.5), 10.0))

    def test_min_height_rejects_flat_clusters(self):
        coefficients = (0.0, 0.0, 1.0, -0.5)
        flat = PointCloud(np.array([[0.0, 0.0, 0.5], [0.1, 0.0, 0.51]]))
        tall = PointCloud(np.array([[0.0, 0.0, 0.5], [0.1, 0.0, 0.6]]))
        self.assertFalse(accept_cluster(flat, coefficients, 0.09, min_height=0.05))
        self.assertTrue(accept_cluster(tall, coefficients, 0.09, min_height=0.05))

    def test_filter_keeps_evaluation_order(self):
        coefficients = (0.0, 0.0, 1.0, -0.5)
        a = PointCloud(np.array([[0.0, 0.0, 0.52]]), frame_id="a")
        far = PointCloud(np.array([[0.0, 0.0, 0.9]]), frame_id="far")
        b = PointCloud(np.array([[0.0, 0.0, 0.55]]), frame_id="b")

        kept = filter_clusters([a, far, PointCloud.empty(), b], coefficients, tolerance=0.09)

        self.assertEqual([c.frame_id for c in kept], ["a", "b"])


if __name__ == '__main__':
    unittest.main()
