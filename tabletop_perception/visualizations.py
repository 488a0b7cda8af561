"""Plotly visualization functions for the tabletop detector"""

import numpy as np
import plotly.graph_objects as go

from tabletop_perception.cloud import PointCloud
from tabletop_perception.preprocessing import AXES

CLUSTER_COLORS = [
    "#e6194b", "#3cb44b", "#ffe119", "#4363d8", "#f58231",
    "#911eb4", "#42d4f4", "#f032e6", "#bfef45", "#fabed4",
    "#469990", "#dcbeff", "#9A6324", "#800000", "#aaffc3",
    "#808000", "#ffd8b1", "#000075", "#a9a9a9", "#ffffff",
]

# Corner pairs of a box whose corners are numbered by their (x, y, z) bits
_BOX_EDGES = [
    (0, 1), (2, 3), (4, 5), (6, 7),
    (0, 2), (1, 3), (4, 6), (5, 7),
    (0, 4), (1, 5), (2, 6), (3, 7),
]


def _layout_3d(fig):
    fig.update_layout(
        scene=dict(aspectmode="data"),
        height=600,
        margin=dict(l=0, r=0, t=30, b=0),
    )
    return fig


def scatter_2d(clouds, names, colors, title, x_axis="x", y_axis="z"):
    """Side projection of several clouds onto two named axes."""
    x_idx, y_idx = AXES[x_axis], AXES[y_axis]
    fig = go.Figure()
    for cloud, name, color in zip(clouds, names, colors):
        if cloud.is_empty:
            continue
        fig.add_trace(go.Scattergl(
            x=cloud.points[:, x_idx], y=cloud.points[:, y_idx],
            mode="markers",
            marker=dict(size=2, color=color, opacity=0.5),
            name=f"{name} ({len(cloud):,})",
        ))
    fig.update_layout(
        title=title,
        xaxis=dict(title=f"{x_axis.upper()} (m)", scaleanchor="y"),
        yaxis=dict(title=f"{y_axis.upper()} (m)"),
        height=550,
        margin=dict(l=40, r=20, t=40, b=40),
    )
    return fig


def _rgb_strings(cloud: PointCloud):
    return [f"rgb({r},{g},{b})" for r, g, b in cloud.colors]


def scatter_3d_cloud(cloud: PointCloud, name: str, use_colors: bool = True):
    """3D scatter of a cloud drawn with its own point colors."""
    fig = go.Figure()
    pts = cloud.points
    if len(pts) > 0:
        fig.add_trace(go.Scatter3d(
            x=pts[:, 0], y=pts[:, 1], z=pts[:, 2],
            mode="markers",
            marker=dict(size=2, color=_rgb_strings(cloud) if use_colors else "gray", opacity=0.7),
            name=f"{name} ({len(pts):,})",
        ))
    return _layout_3d(fig)


def box_edge_lines(min_pt, max_pt) -> np.ndarray:
    """
    Polyline vertices for the 12 edges of an axis-aligned box.
    Edges are separated by a row of NaN so one line trace draws them all.
    """
    low = np.asarray(min_pt, dtype=np.float64)[:3]
    high = np.asarray(max_pt, dtype=np.float64)[:3]
    corners = np.array([
        [high[0] if i & 1 else low[0], high[1] if i & 2 else low[1], high[2] if i & 4 else low[2]]
        for i in range(8)
    ])

    rows = []
    for start, end in _BOX_EDGES:
        rows.extend([corners[start], corners[end], [np.nan, np.nan, np.nan]])
    return np.array(rows)


def scatter_3d_plane(plane_cloud: PointCloud, foreground: PointCloud, box_min=None, box_max=None):
    """
    Cropped plane cloud against the foreground left after plane removal.
    When both box corners are given, the crop box is drawn as a wireframe.
    """
    fig = go.Figure()
    if not plane_cloud.is_empty:
        pts = plane_cloud.points
        fig.add_trace(go.Scatter3d(
            x=pts[:, 0], y=pts[:, 1], z=pts[:, 2],
            mode="markers",
            marker=dict(size=1, color=_rgb_strings(plane_cloud), opacity=0.5),
            name=f"Plane crop ({len(pts):,})",
        ))
    if not foreground.is_empty:
        pts = foreground.points
        fig.add_trace(go.Scatter3d(
            x=pts[:, 0], y=pts[:, 1], z=pts[:, 2],
            mode="markers",
            marker=dict(size=1, color="red", opacity=0.6),
            name=f"Foreground ({len(pts):,})",
        ))
    if box_min is not None and box_max is not None:
        lines = box_edge_lines(box_min, box_max)
        fig.add_trace(go.Scatter3d(
            x=lines[:, 0], y=lines[:, 1], z=lines[:, 2],
            mode="lines",
            line=dict(color="orange", width=3),
            connectgaps=False,
            name="Crop box",
        ))
    return _layout_3d(fig)


def scatter_3d_clusters(clusters, context: PointCloud = None):
    """One color per accepted cluster, over the filtered scene in gray."""
    fig = go.Figure()
    if context is not None and not context.is_empty:
        pts = context.points
        fig.add_trace(go.Scatter3d(
            x=pts[:, 0], y=pts[:, 1], z=pts[:, 2],
            mode="markers",
            marker=dict(size=1, color="gray", opacity=0.2),
            name=f"Scene ({len(pts):,})",
        ))
    for label, cluster in enumerate(clusters):
        pts = cluster.points
        color = CLUSTER_COLORS[label % len(CLUSTER_COLORS)]
        fig.add_trace(go.Scatter3d(
            x=pts[:, 0], y=pts[:, 1], z=pts[:, 2],
            mode="markers",
            marker=dict(size=2, color=color, opacity=0.7),
            name=f"Cluster {label} ({len(pts):,})",
        ))
    return _layout_3d(fig)
