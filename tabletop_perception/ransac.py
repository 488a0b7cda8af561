import logging
import numpy as np
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

from tabletop_perception.cloud import PointCloud

logger = logging.getLogger(__name__)


@dataclass
class PlaneModel:
    """
    Represents a 3D plane: normal * point + d = 0
    """
    # Unit vector with distance parameter to represent plane
    normal: np.ndarray
    d: float

    @property
    def coefficients(self) -> Tuple[float, float, float, float]:
        return float(self.normal[0]), float(self.normal[1]), float(self.normal[2]), float(self.d)

    def signed_distance_to_points(self, points: np.ndarray) -> np.ndarray:
        return np.dot(points[:, :3], self.normal) + self.d

    def distance_to_points(self, points: np.ndarray) -> np.ndarray:
        return np.abs(self.signed_distance_to_points(points))

    @property
    def equation_string(self) -> str:
        return f"{self.normal[0]:.4f}x + {self.normal[1]:.4f}y + {self.normal[2]:.4f}z + {self.d:.4f} = 0"


@dataclass
class PlaneFit:
    """Winning plane plus the inlier / foreground partition of the input cloud."""
    found: bool
    model: Optional[PlaneModel]
    inlier_cloud: PointCloud
    foreground_cloud: PointCloud


class PlaneEstimator(Protocol):
    def fit(self, cloud: PointCloud) -> PlaneFit:
        ...


def _orient(normal: np.ndarray, d: float) -> Tuple[np.ndarray, float]:
    # c >= 0, or the first non-zero of a, b positive when c == 0
    for value in (normal[2], normal[0], normal[1]):
        if abs(value) > 1e-12:
            return (-normal, -d) if value < 0 else (normal, d)
    return normal, d


def fit_plane_from_points(p1: np.ndarray, p2: np.ndarray, p3: np.ndarray) -> PlaneModel:
    """
    Fit a plane through three 3D points.
    """
    v1 = p2 - p1
    v2 = p3 - p1

    normal = np.cross(v1, v2)

    norm = np.linalg.norm(normal)
    if norm < 1e-10:
        raise ValueError("Points are collinear")

    normal = normal / norm

    d = -np.dot(normal, p1)

    normal, d = _orient(normal, d)
    return PlaneModel(normal=normal, d=float(d))


def refine_plane(points: np.ndarray) -> PlaneModel:
    """
    Least-squares plane through a set of points.
    Normal is the direction of least variance around the centroid.
    """
    xyz = points[:, :3]
    if len(xyz) < 3:
        raise ValueError("Need at least 3 points")

    centroid = xyz.mean(axis=0)
    _, _, vt = np.linalg.svd(xyz - centroid, full_matrices=False)
    normal = vt[-1] / np.linalg.norm(vt[-1])
    d = -np.dot(normal, centroid)

    normal, d = _orient(normal, d)
    return PlaneModel(normal=normal, d=float(d))


def ransac_plane(
    points: np.ndarray,
    num_iterations: int = 1000,
    distance_threshold: float = 0.02,
    optimize_coefficients: bool = True,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[Optional[PlaneModel], np.ndarray]:
    """
    Detect the dominant plane using RANSAC.
    Returns (None, all-False mask) when no plane can be hypothesised.
    """
    xyz = points[:, :3]
    n_points = len(xyz)
    best_inlier_mask = np.zeros(n_points, dtype=bool)

    if n_points < 3:
        return None, best_inlier_mask

    if rng is None:
        rng = np.random.default_rng()

    best_plane = None
    best_inlier_count = 0

    for _ in range(num_iterations):
        sample_indices = rng.choice(n_points, 3, replace=False)
        p1, p2, p3 = xyz[sample_indices]

        try:
            plane = fit_plane_from_points(p1, p2, p3)
        except ValueError:
            continue

        distances = plane.distance_to_points(xyz)
        inlier_mask = distances < distance_threshold
        inlier_count = np.sum(inlier_mask)

        if inlier_count > best_inlier_count:
            best_inlier_count = inlier_count
            best_plane = plane
            best_inlier_mask = inlier_mask

    if best_plane is None:
        logger.info(f"RANSAC found no plane after {num_iterations} iterations")
        return None, best_inlier_mask

    if optimize_coefficients and best_inlier_count >= 3:
        best_plane = refine_plane(xyz[best_inlier_mask])
        best_inlier_mask = best_plane.distance_to_points(xyz) < distance_threshold

    return best_plane, best_inlier_mask


class RansacPlaneEstimator:
    """Default PlaneEstimator backed by ransac_plane."""

    def __init__(
        self,
        max_iterations: int = 1000,
        distance_threshold: float = 0.02,
        optimize_coefficients: bool = True,
        seed: Optional[int] = None,
    ):
        self.max_iterations = max_iterations
        self.distance_threshold = distance_threshold
        self.optimize_coefficients = optimize_coefficients
        self.seed = seed

    def fit(self, cloud: PointCloud) -> PlaneFit:
        plane, inlier_mask = ransac_plane(
            cloud.points,
            num_iterations=self.max_iterations,
            distance_threshold=self.distance_threshold,
            optimize_coefficients=self.optimize_coefficients,
            rng=np.random.default_rng(self.seed),
        )

        if plane is None or not inlier_mask.any():
            empty = PointCloud.empty(cloud.frame_id)
            return PlaneFit(found=False, model=None, inlier_cloud=empty, foreground_cloud=empty)

        logger.info(f"Plane {plane.equation_string} with {int(inlier_mask.sum())} inliers")
        return PlaneFit(
            found=True,
            model=plane,
            inlier_cloud=cloud.select(inlier_mask),
            foreground_cloud=cloud.select(~inlier_mask),
        )
