import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from tabletop_perception.aggregator import DetectionCancelled, FrameAggregator, FrameBuffer
from tabletop_perception.cloud import PointCloud, concatenate
from tabletop_perception.clustering import EuclideanClusterer, SpatialClusterer
from tabletop_perception.preprocessing import crop_box, prefilter
from tabletop_perception.proximity import PLANE_OFFSETS, adjust_plane, filter_clusters
from tabletop_perception.ransac import PlaneEstimator, RansacPlaneEstimator

logger = logging.getLogger(__name__)

DebugPublisher = Callable[[PointCloud], None]


@dataclass
class PipelineParams:
    """Parameters for the tabletop detection pipeline."""
    # Aggregation
    aggregation_frames: int = 15
    aggregation_timeout: Optional[float] = 10.0
    # Preprocessing
    filter_axis: str = "z"
    filter_limits: Tuple[float, float] = (0.0, 1.0)
    voxel_size: float = 0.005
    # RANSAC
    ransac_iters: int = 1000
    dist_thresh: float = 0.02
    optimize_coefficients: bool = True
    ransac_seed: Optional[int] = None
    # Clustering
    cluster_tolerance: float = 0.04
    min_cluster: int = 50
    max_cluster: int = 25000
    # Proximity filter and plane crop
    plane_offsets: Tuple[float, float, float, float] = PLANE_OFFSETS
    proximity_tolerance: float = 0.09
    min_cluster_height: Optional[float] = None
    crop_min: Tuple[float, float, float] = (0.0, 0.0, 0.0)


class DetectionStage(Enum):
    IDLE = "idle"
    AGGREGATING = "aggregating"
    FILTERING = "filtering"
    PLANE_FITTING = "plane_fitting"
    NO_PLANE = "no_plane"
    CLUSTERING = "clustering"
    PROXIMITY_FILTERING = "proximity_filtering"
    ASSEMBLING = "assembling"


@dataclass
class DetectionResult:
    """Result of one detect request."""
    plane_found: bool
    plane_cloud: PointCloud
    plane_coefficients: Optional[Tuple[float, float, float, float]] = None
    clusters: List[PointCloud] = field(default_factory=list)

    # Diagnostics
    filtered_cloud: Optional[PointCloud] = None
    filtered_count: int = 0
    foreground_count: int = 0
    candidate_count: int = 0

    def to_response(self) -> Dict[str, Any]:
        """Response fields as exposed by the detect service."""
        response: Dict[str, Any] = {
            "is_plane_found": self.plane_found,
            "cloud_clusters": list(self.clusters),
        }
        if self.plane_found:
            response["cloud_plane"] = self.plane_cloud
            response["cloud_plane_coef"] = list(self.plane_coefficients)
        return response


def _publish(debug_publisher: Optional[DebugPublisher], cloud: PointCloud):
    if debug_publisher is None:
        return
    try:
        debug_publisher(cloud)
    except Exception as e:
        logger.warning(f"Debug cloud publish failed: {e}")


def _check_cancel(cancel: Optional[threading.Event]):
    if cancel is not None and cancel.is_set():
        raise DetectionCancelled("Detection cancelled")


def run_detection_pipeline(
    cloud: PointCloud,
    params: PipelineParams,
    plane_estimator: Optional[PlaneEstimator] = None,
    clusterer: Optional[SpatialClusterer] = None,
    debug_publisher: Optional[DebugPublisher] = None,
    cancel: Optional[threading.Event] = None,
    on_stage: Optional[Callable[[DetectionStage], None]] = None,
) -> DetectionResult:
    """
    Run filtering, plane fitting, clustering and proximity filtering on an aggregated cloud.
    """
    if plane_estimator is None:
        plane_estimator = RansacPlaneEstimator(
            max_iterations=params.ransac_iters,
            distance_threshold=params.dist_thresh,
            optimize_coefficients=params.optimize_coefficients,
            seed=params.ransac_seed,
        )
    if clusterer is None:
        clusterer = EuclideanClusterer(
            tolerance=params.cluster_tolerance,
            min_size=params.min_cluster,
            max_size=params.max_cluster,
        )

    def enter(stage: DetectionStage):
        _check_cancel(cancel)
        logger.debug(f"Detection stage: {stage.value}")
        if on_stage:
            on_stage(stage)

    # Range filter and voxel grid
    enter(DetectionStage.FILTERING)
    filtered = prefilter(
        cloud,
        axis=params.filter_axis,
        limits=params.filter_limits,
        voxel_size=params.voxel_size,
    )

    # Plane segmentation
    enter(DetectionStage.PLANE_FITTING)
    fit = plane_estimator.fit(filtered)
    if not fit.found:
        if on_stage:
            on_stage(DetectionStage.NO_PLANE)
        logger.info("No plane found")
        return DetectionResult(
            plane_found=False,
            plane_cloud=PointCloud.empty(cloud.frame_id),
            filtered_cloud=filtered,
            filtered_count=len(filtered),
        )

    _publish(debug_publisher, fit.foreground_cloud)
    adjusted = adjust_plane(fit.model, params.plane_offsets)

    # Euclidean cluster extraction
    enter(DetectionStage.CLUSTERING)
    clusters = clusterer.extract(fit.foreground_cloud)

    # Keep the clusters touching the table
    enter(DetectionStage.PROXIMITY_FILTERING)
    on_plane = filter_clusters(
        clusters,
        adjusted,
        tolerance=params.proximity_tolerance,
        min_height=params.min_cluster_height,
    )

    enter(DetectionStage.ASSEMBLING)
    # The adjusted coefficients double as the crop box's max corner
    plane_cloud = crop_box(filtered, params.crop_min, adjusted[:3])

    _publish(debug_publisher, concatenate(on_plane, frame_id=cloud.frame_id))

    return DetectionResult(
        plane_found=True,
        plane_cloud=plane_cloud,
        plane_coefficients=fit.model.coefficients,
        clusters=on_plane,
        filtered_cloud=filtered,
        filtered_count=len(filtered),
        foreground_count=len(fit.foreground_cloud),
        candidate_count=len(clusters),
    )


class ObjectDetector:
    """
    Owns the frame buffer and serves detect requests one at a time.
    The sensor callback feeds handle_frame; the service handler calls detect.
    """

    def __init__(
        self,
        params: Optional[PipelineParams] = None,
        plane_estimator: Optional[PlaneEstimator] = None,
        clusterer: Optional[SpatialClusterer] = None,
        debug_publisher: Optional[DebugPublisher] = None,
        buffer_size: int = 64,
    ):
        self.params = params if params is not None else PipelineParams()
        self.plane_estimator = plane_estimator
        self.clusterer = clusterer
        self.debug_publisher = debug_publisher

        self._buffer = FrameBuffer(maxlen=max(buffer_size, self.params.aggregation_frames))
        self._aggregator = FrameAggregator(self._buffer)
        self._request_lock = threading.Lock()
        self._stage = DetectionStage.IDLE
        # Terminal stage of the most recent request
        self.last_stage = DetectionStage.IDLE

    @property
    def stage(self) -> DetectionStage:
        return self._stage

    @property
    def dropped_frames(self) -> int:
        return self._buffer.dropped

    @property
    def is_collecting(self) -> bool:
        return self._buffer.is_collecting

    def handle_frame(self, frame: PointCloud) -> bool:
        """Producer entry point. Returns False if the frame was dropped."""
        return self._buffer.push(frame)

    def _set_stage(self, stage: DetectionStage):
        self._stage = stage

    def detect(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> DetectionResult:
        """
        Aggregate fresh frames and run the detection pipeline on them.
        `timeout` overrides params.aggregation_timeout for this request.
        """
        if timeout is None:
            timeout = self.params.aggregation_timeout

        with self._request_lock:
            try:
                self._set_stage(DetectionStage.AGGREGATING)
                cloud = self._aggregator.collect(
                    self.params.aggregation_frames,
                    timeout=timeout,
                    cancel=cancel,
                )
                return run_detection_pipeline(
                    cloud,
                    self.params,
                    plane_estimator=self.plane_estimator,
                    clusterer=self.clusterer,
                    debug_publisher=self.debug_publisher,
                    cancel=cancel,
                    on_stage=self._set_stage,
                )
            finally:
                self.last_stage = self._stage
                self._set_stage(DetectionStage.IDLE)
