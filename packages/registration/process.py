"""End-to-end pipeline: captured rooms → combined building model JSON."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Sequence

from packages.core.cloud import PointCloud
from packages.core.config import RegistrationConfig
from packages.core.types import AlignmentResult, CapturedRoom, CombinedBuildingModel
from packages.registration.aligner import align_pairwise
from packages.registration.assemble import assemble_building_model
from packages.registration.extract import extract_point_clouds
from packages.registration.global_frame import build_global_coordinate_system
from packages.registration.icp import register_pair
from packages.registration.loader import load_rooms
from packages.registration.quality import assess_alignment_quality

logger = logging.getLogger(__name__)


def align_rooms(
    rooms: Sequence[CapturedRoom],
    config: RegistrationConfig | None = None,
    *,
    cancel: threading.Event | None = None,
) -> CombinedBuildingModel:
    """Run the full registration pipeline on an ordered list of rooms.

    1. Sample each room's surfaces into a point cloud.
    2. Register room *i* onto room *i − 1* with ICP.
    3. Chain the pairwise transforms into the building frame.
    4. Score the alignment.
    5. Assemble a :class:`CombinedBuildingModel`.
    """
    config = config or RegistrationConfig()
    logger.info("🔄 Starting ICP alignment for %d rooms", len(rooms))

    clouds = extract_point_clouds(
        rooms, spacing=config.sample_spacing, voxel_size=config.voxel_size,
    )
    results = align_pairwise(clouds, config, cancel=cancel)
    gcs = build_global_coordinate_system(results, room_count=len(rooms))
    quality = assess_alignment_quality(
        results, low_confidence_threshold=config.low_confidence_threshold,
    )

    model = assemble_building_model(
        rooms,
        gcs,
        quality,
        results,
        default_ceiling_height=config.default_ceiling_height,
    )
    logger.info(
        "✅ ICP alignment completed with quality score: %.3f", quality.overall_score,
    )
    return model


def register_clouds(
    source: PointCloud,
    target: PointCloud,
    config: RegistrationConfig | None = None,
) -> AlignmentResult:
    """Register two raw point clouds (e.g. loaded from PLY files)."""
    return register_pair(source, target, config)


def align_rooms_to_json(
    rooms_path: str | Path,
    output_path: str | Path | None = None,
    config: RegistrationConfig | None = None,
) -> str:
    """Load rooms from JSON, run the pipeline and write the building model.

    Returns the JSON string.
    """
    rooms = load_rooms(rooms_path)
    model = align_rooms(rooms, config)
    json_str = model.model_dump_json(indent=2)

    if output_path is None:
        output_path = Path(rooms_path).with_suffix(".building.json")
    Path(output_path).write_text(json_str)
    logger.info("Wrote building model → %s", output_path)
    return json_str
