"""
Tabletop Perception: support plane fitting and object clustering from aggregated RGB-D point frames.
"""

from .cloud import PointCloud, concatenate
from .aggregator import FrameBuffer, FrameAggregator, FrameTimeoutError, DetectionCancelled, aggregate_frames
from .preprocessing import passthrough_filter, voxel_downsample, crop_box, prefilter
from .ransac import ransac_plane, PlaneModel, PlaneFit, PlaneEstimator, RansacPlaneEstimator
from .clustering import euclidean_cluster, ClusterResult, SpatialClusterer, EuclideanClusterer
from .proximity import adjust_plane, accept_cluster, filter_clusters
from .pipeline import PipelineParams, DetectionResult, DetectionStage, ObjectDetector, run_detection_pipeline
from .config import load_params

__version__ = "0.1.0"
