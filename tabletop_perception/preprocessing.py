import logging
import numpy as np
from typing import Sequence, Tuple

from tabletop_perception.cloud import PointCloud

logger = logging.getLogger(__name__)

AXES = {"x": 0, "y": 1, "z": 2}


def passthrough_filter(
    cloud: PointCloud,
    axis: str = "z",
    limits: Tuple[float, float] = (0.0, 1.0),
) -> PointCloud:
    """
    Keep points whose coordinate on one axis lies in [limits[0], limits[1]].
    Points with any non-finite coordinate are dropped.
    """
    if axis not in AXES:
        raise ValueError(f"Unknown filter axis {axis!r}, expected one of x, y, z")

    low, high = limits
    coord = cloud.points[:, AXES[axis]]
    keep_mask = np.isfinite(cloud.points).all(axis=1) & (coord >= low) & (coord <= high)
    return cloud.select(keep_mask)


def voxel_downsample(cloud: PointCloud, voxel_size: float = 0.005) -> PointCloud:
    """
    Downsample point cloud using voxel grid filtering.
    Each occupied voxel becomes the centroid of its points, colored with the rounded mean color.
    Output is ordered by voxel index (x, then y, then z).
    """
    if voxel_size <= 0:
        raise ValueError(f"Voxel size must be positive, got {voxel_size}")
    if cloud.is_empty:
        return PointCloud.empty(cloud.frame_id)

    xyz = cloud.points

    # Compute voxel indices for each point
    # Then shift indices to handle negative values
    # Then create unique hash for each voxel
    # Find unique voxels and compute centroids
    voxel_indices = np.floor(xyz / voxel_size).astype(np.int64)

    min_indices = voxel_indices.min(axis=0)
    shifted_indices = voxel_indices - min_indices

    max_dim = shifted_indices.max(axis=0) + 1
    voxel_hash = (shifted_indices[:, 0] * (max_dim[1] * max_dim[2]) + shifted_indices[:, 1] * max_dim[2] + shifted_indices[:, 2])

    unique_hashes, inverse_indices = np.unique(voxel_hash, return_inverse=True)
    inverse_indices = inverse_indices.reshape(-1)
    num_voxels = len(unique_hashes)

    counts = np.bincount(inverse_indices)
    centroids = np.zeros((num_voxels, 3))
    colors = np.zeros((num_voxels, 3))

    for dim in range(3):
        centroids[:, dim] = np.bincount(inverse_indices, weights=xyz[:, dim]) / counts
        colors[:, dim] = np.bincount(inverse_indices, weights=cloud.colors[:, dim].astype(np.float64)) / counts

    colors = np.clip(np.rint(colors), 0, 255).astype(np.uint8)
    return PointCloud(centroids, colors, cloud.frame_id)


def crop_box(cloud: PointCloud, min_pt: Sequence[float], max_pt: Sequence[float]) -> PointCloud:
    """
    Keep points inside the axis-aligned box [min_pt, max_pt].
    Only the first three components of each bound are used.
    """
    low = np.asarray(min_pt, dtype=np.float64)[:3]
    high = np.asarray(max_pt, dtype=np.float64)[:3]

    inside = np.all((cloud.points >= low) & (cloud.points <= high), axis=1)
    return cloud.select(inside)


def prefilter(
    cloud: PointCloud,
    axis: str = "z",
    limits: Tuple[float, float] = (0.0, 1.0),
    voxel_size: float = 0.005,
) -> PointCloud:
    """Range filter followed by voxel downsampling."""
    ranged = passthrough_filter(cloud, axis=axis, limits=limits)
    filtered = voxel_downsample(ranged, voxel_size=voxel_size)
    logger.info(f"After voxel grid filter: {len(filtered)} points ({len(cloud)} in, {len(ranged)} in range)")
    return filtered
