import logging
import numpy as np
from scipy.spatial import KDTree
from dataclasses import dataclass
from typing import List, Protocol
from collections import deque

from tabletop_perception.cloud import PointCloud

logger = logging.getLogger(__name__)


@dataclass
class ClusterResult:
    # Sorted point indices per kept cluster, in discovery order
    clusters: List[np.ndarray]
    labels: np.ndarray
    num_clusters: int
    cluster_sizes: List[int]
    rejected_count: int


class SpatialClusterer(Protocol):
    def extract(self, cloud: PointCloud) -> List[PointCloud]:
        ...


def euclidean_cluster(
    points: np.ndarray,
    tolerance: float = 0.04,
    min_cluster_size: int = 50,
    max_cluster_size: int = 25000,
) -> ClusterResult:
    """
    Euclidean cluster extraction using KDTree.
    Two points are linked when they are at most `tolerance` apart; each connected
    component is a cluster. Components outside [min_cluster_size, max_cluster_size]
    are dropped. Seeds are visited in point order so the cluster order is deterministic.
    """
    if len(points) == 0:
        return ClusterResult(
            clusters=[],
            labels=np.array([], dtype=int),
            num_clusters=0,
            cluster_sizes=[],
            rejected_count=0,
        )

    xyz = points[:, :3]
    n = len(xyz)
    tree = KDTree(xyz)

    neighborhoods = tree.query_ball_point(xyz, tolerance)

    visited = np.zeros(n, dtype=bool)
    labels = np.full(n, -1, dtype=int)
    clusters = []
    rejected = 0

    for i in range(n):
        if visited[i]:
            continue

        visited[i] = True
        component = [i]
        queue = deque([i])

        while queue:
            j = queue.popleft()
            for k in neighborhoods[j]:
                if not visited[k]:
                    visited[k] = True
                    component.append(k)
                    queue.append(k)

        size = len(component)
        if size < min_cluster_size or size > max_cluster_size:
            rejected += 1
            continue

        indices = np.sort(np.asarray(component, dtype=int))
        labels[indices] = len(clusters)
        clusters.append(indices)

    return ClusterResult(
        clusters=clusters,
        labels=labels,
        num_clusters=len(clusters),
        cluster_sizes=[len(c) for c in clusters],
        rejected_count=rejected,
    )


class EuclideanClusterer:
    """Default SpatialClusterer backed by euclidean_cluster."""

    def __init__(self, tolerance: float = 0.04, min_size: int = 50, max_size: int = 25000):
        self.tolerance = tolerance
        self.min_size = min_size
        self.max_size = max_size

    def extract(self, cloud: PointCloud) -> List[PointCloud]:
        result = euclidean_cluster(
            cloud.points,
            tolerance=self.tolerance,
            min_cluster_size=self.min_size,
            max_cluster_size=self.max_size,
        )
        logger.info(f"clusters found: {result.num_clusters} ({result.rejected_count} components outside size bounds)")
        return [cloud.select(indices) for indices in result.clusters]
