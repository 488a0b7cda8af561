#!/usr/bin/env python3
"""
Tests for the Plotly figure helpers used by the viewer.
"""

import os
import sys
import unittest

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from tabletop_perception.cloud import PointCloud
from tabletop_perception.visualizations import box_edge_lines, scatter_2d, scatter_3d_plane


class TestBoxEdgeLines(unittest.TestCase):

    def test_twelve_edges_span_the_box(self):
        lines = box_edge_lines((0.0, 0.0, 0.0), (0.1, 0.5, 1.1, -0.5))

        self.assertEqual(lines.shape, (36, 3))
        breaks = np.isnan(lines).all(axis=1)
        self.assertEqual(breaks.sum(), 12)
        corners = lines[~breaks]
        np.testing.assert_allclose(corners.min(axis=0), [0.0, 0.0, 0.0])
        np.testing.assert_allclose(corners.max(axis=0), [0.1, 0.5, 1.1])

        # Each edge moves along exactly one axis
        for start, end in zip(corners[0::2], corners[1::2]):
            self.assertEqual(np.count_nonzero(end - start), 1)


class TestFigures(unittest.TestCase):

    def test_plane_figure_draws_crop_box(self):
        plane = PointCloud(np.array([[0.05, 0.1, 0.5], [0.06, 0.2, 0.5]]))
        foreground = PointCloud(np.array([[0.0, 0.0, 0.45]]))

        fig = scatter_3d_plane(plane, foreground, box_min=(0.0, 0.0, 0.0), box_max=(0.1, 0.5, 1.1))

        self.assertEqual([trace.name for trace in fig.data], ["Plane crop (2)", "Foreground (1)", "Crop box"])

    def test_plane_figure_without_box_skips_empty_clouds(self):
        fig = scatter_3d_plane(PointCloud(np.array([[0.0, 0.0, 0.5]])), PointCloud.empty())
        self.assertEqual(len(fig.data), 1)

    def test_scatter_2d_projects_named_axes(self):
        cloud = PointCloud(np.array([[1.0, 2.0, 3.0]]))

        fig = scatter_2d([cloud, PointCloud.empty()], ["A", "B"], ["red", "blue"], "t", x_axis="y", y_axis="z")

        self.assertEqual(len(fig.data), 1)
        self.assertEqual(list(fig.data[0].x), [2.0])
        self.assertEqual(list(fig.data[0].y), [3.0])
        self.assertEqual(fig.layout.xaxis.title.text, "Y (m)")


if __name__ == '__main__':
    unittest.main()
