import numpy as np
from pathlib import Path
from typing import Optional, Union

from tabletop_perception.cloud import PointCloud


def load_cloud_txt(file_path: Union[str, Path], frame_id: Optional[str] = None) -> PointCloud:
    """
    Load a point cloud frame from a whitespace separated .txt file.
    Rows are `x y z` or `x y z r g b`. frame_id defaults to the file stem.
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Point cloud file not found: {file_path}")

    points = np.loadtxt(file_path, dtype=np.float64, ndmin=2)
    return PointCloud.from_array(points, frame_id=frame_id if frame_id is not None else file_path.stem)


def save_cloud_txt(file_path: Union[str, Path], cloud: PointCloud):
    """Write a cloud as `x y z r g b` rows."""
    file_path = Path(file_path)
    np.savetxt(file_path, cloud.to_array(), fmt=["%.6f"] * 3 + ["%d"] * 3)


def discover_frame_sequence(sequence_dir: Union[str, Path]) -> list[Path]:
    """
    Discover all frames in a recorded sequence directory, in file name order.
    """
    sequence_dir = Path(sequence_dir)

    if not sequence_dir.exists():
        return []

    return sorted(sequence_dir.glob("*.txt"))
