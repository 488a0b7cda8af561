import logging
import numpy as np
from typing import List, Optional, Sequence, Tuple

from tabletop_perception.cloud import PointCloud
from tabletop_perception.ransac import PlaneModel

logger = logging.getLogger(__name__)

# Empirical offsets added to (a, b, c, d) for acceptance and plane cropping.
# Calibrated against one camera mount; the result is not a normalized plane.
PLANE_OFFSETS = (0.1, 0.5, 0.1, 0.0)


def adjust_plane(
    model: PlaneModel,
    offsets: Sequence[float] = PLANE_OFFSETS,
) -> Tuple[float, float, float, float]:
    a, b, c, d = model.coefficients
    return a + offsets[0], b + offsets[1], c + offsets[2], d + offsets[3]


def plane_residuals(points: np.ndarray, coefficients: Sequence[float]) -> np.ndarray:
    """|a*x + b*y + c*z + d| for each point, without normalizing (a, b, c)."""
    coef = np.asarray(coefficients, dtype=np.float64)
    return np.abs(points[:, :3] @ coef[:3] + coef[3])


def accept_cluster(
    cluster: PointCloud,
    adjusted_coefficients: Sequence[float],
    tolerance: float = 0.09,
    min_height: Optional[float] = None,
) -> bool:
    """
    Accept a cluster whose closest point to the adjusted plane is within tolerance.
    With min_height set, clusters whose furthest point is still below it are rejected too.
    """
    if cluster.is_empty:
        logger.debug("Rejecting empty cluster")
        return False

    distances = plane_residuals(cluster.points, adjusted_coefficients)
    min_distance = float(distances.min())
    max_distance = float(distances.max())

    if min_distance > tolerance:
        return False
    if min_height is not None and max_distance < min_height:
        return False

    logger.debug(f"Min distance to plane for cluster with {len(cluster)} points: {min_distance:.4f}")
    logger.debug(f"Max distance to plane for cluster with {len(cluster)} points: {max_distance:.4f}")
    return True


def filter_clusters(
    clusters: List[PointCloud],
    adjusted_coefficients: Sequence[float],
    tolerance: float = 0.09,
    min_height: Optional[float] = None,
) -> List[PointCloud]:
    """Clusters resting on the plane, in evaluation order."""
    on_plane = []
    for cluster in clusters:
        if accept_cluster(cluster, adjusted_coefficients, tolerance, min_height):
            on_plane.append(cluster)
            mean_color = cluster.mean_color()
            logger.debug(f"Accepted cluster of {len(cluster)} points, mean color {mean_color}")

    logger.info(f"clusters on plane found: {len(on_plane)}")
    return on_plane
