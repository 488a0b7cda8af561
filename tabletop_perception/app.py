"""Streamlit UI for inspecting tabletop detections"""

import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import streamlit as st
import yaml

from tabletop_perception.aggregator import aggregate_frames
from tabletop_perception.cloud import PointCloud
from tabletop_perception.config import load_params
from tabletop_perception.data_loader import load_cloud_txt, discover_frame_sequence
from tabletop_perception.pipeline import PipelineParams, run_detection_pipeline
from tabletop_perception.synthetic import make_tabletop_frame
from tabletop_perception.visualizations import (
    scatter_2d,
    scatter_3d_cloud,
    scatter_3d_plane,
    scatter_3d_clusters,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s: %(message)s")


def get_params_from_sidebar(defaults: PipelineParams) -> PipelineParams:
    """Render parameter controls in sidebar and return PipelineParams."""
    with st.popover("Aggregation & preprocessing", use_container_width=True):
        aggregation_frames = st.slider(
            "Frames aggregated per request",
            1, 30, defaults.aggregation_frames,
        )
        z_min, z_max = st.slider(
            "Range filter on z (m)",
            -1.0, 3.0, tuple(defaults.filter_limits), 0.05,
        )
        voxel_size = st.slider(
            "Voxel size (larger = fewer points, faster)",
            0.001, 0.05, defaults.voxel_size, 0.001, format="%.3f",
        )

    with st.popover("RANSAC", use_container_width=True):
        ransac_iters = st.slider(
            "Iterations (more = better fit, slower)",
            10, 2000, defaults.ransac_iters, 10,
        )
        dist_thresh = st.slider(
            "Distance threshold (larger = thicker plane layer)",
            0.005, 0.1, defaults.dist_thresh, 0.005, format="%.3f",
        )

    with st.popover("Clustering", use_container_width=True):
        cluster_tolerance = st.slider(
            "Cluster tolerance (larger = merges nearby objects)",
            0.005, 0.2, defaults.cluster_tolerance, 0.005, format="%.3f",
        )
        min_cluster = st.number_input("Min cluster size", 1, 100000, defaults.min_cluster)
        max_cluster = st.number_input("Max cluster size", 1, 1000000, defaults.max_cluster)
        proximity_tolerance = st.slider(
            "Proximity tolerance to adjusted plane",
            0.0, 0.5, defaults.proximity_tolerance, 0.01,
        )

    return PipelineParams(
        aggregation_frames=aggregation_frames,
        aggregation_timeout=defaults.aggregation_timeout,
        filter_axis=defaults.filter_axis,
        filter_limits=(z_min, z_max),
        voxel_size=voxel_size,
        ransac_iters=ransac_iters,
        dist_thresh=dist_thresh,
        optimize_coefficients=defaults.optimize_coefficients,
        ransac_seed=defaults.ransac_seed,
        cluster_tolerance=cluster_tolerance,
        min_cluster=int(min_cluster),
        max_cluster=int(max_cluster),
        plane_offsets=defaults.plane_offsets,
        proximity_tolerance=proximity_tolerance,
        min_cluster_height=defaults.min_cluster_height,
        crop_min=defaults.crop_min,
    )


def load_input_cloud(source: str, seq_dir: str, levitate: bool, params: PipelineParams):
    if source == "Synthetic scene":
        frame = make_tabletop_frame(cube_base_z=2.0 if levitate else None)
        return aggregate_frames([frame] * params.aggregation_frames)

    frames = discover_frame_sequence(seq_dir)[:params.aggregation_frames]
    if not frames:
        return None
    return aggregate_frames([load_cloud_txt(path) for path in frames])


def run(cloud, params: PipelineParams):
    debug_clouds = []
    result = run_detection_pipeline(cloud, params, debug_publisher=debug_clouds.append)
    # First debug cloud is the foreground left after plane removal
    foreground = debug_clouds[0] if debug_clouds else PointCloud.empty(cloud.frame_id)
    return {
        "result": result,
        "input": cloud,
        "foreground": foreground,
        "params": params,
    }


def render_preprocessing_tab(r):
    result = r["result"]
    st.caption(
        f"Aggregated: **{len(r['input']):,}** pts | "
        f"After range filter and voxel grid: **{result.filtered_count:,}** pts"
    )

    col_left, col_right = st.columns(2)
    with col_left:
        fig = scatter_2d([r["input"]], ["Aggregated"], ["#4363d8"], "Aggregated input")
        st.plotly_chart(fig, use_container_width=True)
    with col_right:
        fig = scatter_2d([result.filtered_cloud], ["Filtered"], ["#3cb44b"], "Range filtered and downsampled")
        st.plotly_chart(fig, use_container_width=True)


def render_plane_tab(r):
    result = r["result"]
    if not result.plane_found:
        st.warning("No plane found.")
        return

    params = r["params"]
    a, b, c, d = result.plane_coefficients
    box_max = (a + params.plane_offsets[0], b + params.plane_offsets[1], c + params.plane_offsets[2])
    st.caption(
        f"Plane: {a:.4f}x + {b:.4f}y + {c:.4f}z + {d:.4f} = 0 | "
        f"Crop box: {params.crop_min} to ({box_max[0]:.3f}, {box_max[1]:.3f}, {box_max[2]:.3f}) | "
        f"Cropped plane cloud: {len(result.plane_cloud):,} pts"
    )

    fig = scatter_3d_plane(result.plane_cloud, r["foreground"], box_min=params.crop_min, box_max=box_max)
    st.plotly_chart(fig, use_container_width=True)


def render_clusters_tab(r):
    result = r["result"]
    col1, col2 = st.columns(2)
    col1.metric("Candidate clusters", result.candidate_count)
    col2.metric("Clusters on plane", len(result.clusters))

    fig = scatter_3d_clusters(result.clusters, context=result.filtered_cloud)
    st.plotly_chart(fig, use_container_width=True)


def main():
    st.set_page_config(page_title="Tabletop Detector", layout="wide")
    st.title("Tabletop Object Detector")

    with st.sidebar:
        st.header("Input")
        source = st.radio("Source", ["Synthetic scene", "Recorded sequence"])
        seq_dir = st.text_input("Sequence directory", value="data/sequence")
        levitate = st.checkbox("Levitate cube (synthetic)", value=False)
        config_path = st.text_input("Config file (optional)", value="")

        defaults = PipelineParams()
        if config_path:
            try:
                defaults = load_params(config_path)
            except (FileNotFoundError, ValueError, TypeError, yaml.YAMLError) as e:
                st.error(str(e))

        st.header("Parameters")
        params = get_params_from_sidebar(defaults)

        run_button = st.button("Detect", type="primary", use_container_width=True)

    if run_button:
        cloud = load_input_cloud(source, seq_dir, levitate, params)
        if cloud is None:
            st.error(f"No frames found in: {seq_dir}")
            return

        with st.spinner("Running pipeline..."):
            st.session_state["detection"] = run(cloud, params)

    if "detection" not in st.session_state:
        st.info("Configure parameters in the sidebar and click **Detect** to begin.")
        return

    r = st.session_state["detection"]

    tab_input, tab_preproc, tab_plane, tab_cluster = st.tabs(
        ["Input", "Preprocessing", "Plane Segmentation", "Clusters"]
    )

    with tab_input:
        st.plotly_chart(scatter_3d_cloud(r["input"], "Aggregated"), use_container_width=True)
    with tab_preproc:
        render_preprocessing_tab(r)
    with tab_plane:
        render_plane_tab(r)
    with tab_cluster:
        render_clusters_tab(r)


if __name__ == "__main__":
    main()
