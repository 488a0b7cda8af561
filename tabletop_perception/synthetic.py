"""
Synthetic tabletop scenes: a flat square support surface with an optional cube resting on it.
"""

import numpy as np
from typing import Optional, Tuple

from tabletop_perception.cloud import PointCloud

TABLE_COLOR = (120, 120, 120)
CUBE_COLOR = (200, 30, 30)


def make_tabletop_frame(
    n_plane: int = 1000,
    n_cube: int = 200,
    plane_z: float = 0.5,
    plane_x: Tuple[float, float] = (-0.2, 0.2),
    plane_y: Tuple[float, float] = (-0.3, 0.1),
    cube_center: Tuple[float, float] = (0.0, -0.1),
    cube_size: float = 0.1,
    cube_base_z: Optional[float] = None,
    noise: float = 0.001,
    seed: int = 0,
    frame_id: str = "camera_depth_optical_frame",
) -> PointCloud:
    """
    Build one frame: n_plane points on the horizontal square z = plane_z, followed by
    n_cube points filling a cube whose base sits at cube_base_z (defaults to the table).
    """
    rng = np.random.default_rng(seed)

    table = np.column_stack([
        rng.uniform(plane_x[0], plane_x[1], n_plane),
        rng.uniform(plane_y[0], plane_y[1], n_plane),
        plane_z + rng.normal(0.0, noise, n_plane),
    ])

    if cube_base_z is None:
        cube_base_z = plane_z
    half = cube_size / 2.0
    cube = np.column_stack([
        rng.uniform(cube_center[0] - half, cube_center[0] + half, n_cube),
        rng.uniform(cube_center[1] - half, cube_center[1] + half, n_cube),
        rng.uniform(cube_base_z, cube_base_z + cube_size, n_cube),
    ])

    colors = np.vstack([
        np.tile(np.array(TABLE_COLOR, dtype=np.uint8), (n_plane, 1)),
        np.tile(np.array(CUBE_COLOR, dtype=np.uint8), (n_cube, 1)),
    ])
    return PointCloud(np.vstack([table, cube]), colors, frame_id)
