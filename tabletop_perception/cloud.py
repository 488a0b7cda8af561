import numpy as np
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple


@dataclass
class PointCloud:
    """
    Ordered colored point cloud with a frame-of-reference tag.
    points is Nx3 float64, colors is Nx3 uint8. frame_id is carried along, never interpreted.
    """
    points: np.ndarray
    colors: np.ndarray = None
    frame_id: str = ""

    def __post_init__(self):
        self.points = np.asarray(self.points, dtype=np.float64).reshape(-1, 3)
        if self.colors is None:
            self.colors = np.zeros((len(self.points), 3), dtype=np.uint8)
        else:
            self.colors = np.asarray(self.colors, dtype=np.uint8).reshape(-1, 3)
        if len(self.colors) != len(self.points):
            raise ValueError(f"Got {len(self.points)} points but {len(self.colors)} colors")

    def __len__(self) -> int:
        return len(self.points)

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0

    @classmethod
    def empty(cls, frame_id: str = "") -> "PointCloud":
        return cls(np.zeros((0, 3)), np.zeros((0, 3), dtype=np.uint8), frame_id)

    @classmethod
    def from_array(cls, array: np.ndarray, frame_id: str = "") -> "PointCloud":
        """
        Build a cloud from Nx3 (xyz) or Nx6 (xyzrgb) rows.
        """
        array = np.asarray(array, dtype=np.float64)
        if array.size == 0:
            return cls.empty(frame_id)
        if array.ndim != 2 or array.shape[1] not in (3, 6):
            raise ValueError(f"Expected Nx3 or Nx6 array, got shape {array.shape}")

        colors = None
        if array.shape[1] == 6:
            colors = np.clip(np.rint(array[:, 3:6]), 0, 255).astype(np.uint8)
        return cls(array[:, :3], colors, frame_id)

    def to_array(self) -> np.ndarray:
        return np.hstack([self.points, self.colors.astype(np.float64)])

    def select(self, indices) -> "PointCloud":
        """Sub-cloud from an index array or boolean mask, in index order."""
        return PointCloud(self.points[indices], self.colors[indices], self.frame_id)

    def mean_color(self) -> Optional[Tuple[float, float, float]]:
        if self.is_empty:
            return None
        r, g, b = self.colors.astype(np.float64).mean(axis=0)
        return float(r), float(g), float(b)


def concatenate(clouds: Sequence[PointCloud], frame_id: Optional[str] = None) -> PointCloud:
    """
    Concatenate clouds in list-then-point order.
    The result takes the last cloud's frame_id unless one is given.
    """
    if frame_id is None:
        frame_id = clouds[-1].frame_id if clouds else ""
    if not clouds:
        return PointCloud.empty(frame_id)

    points = np.concatenate([c.points for c in clouds], axis=0)
    colors = np.concatenate([c.colors for c in clouds], axis=0)
    return PointCloud(points, colors, frame_id)
