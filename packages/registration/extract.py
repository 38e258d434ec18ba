"""Turn captured room surfaces into point clouds for registration."""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from packages.core.cloud import PointCloud
from packages.core.types import CapturedRoom
from packages.registration.preprocess import voxel_downsample

logger = logging.getLogger(__name__)


def extract_point_cloud(
    room: CapturedRoom,
    room_index: int,
    *,
    spacing: float = 0.1,
) -> PointCloud:
    """Sample every surface of *room* on a regular grid.

    Walls come first, then the floor, then the ceiling.  A room without
    geometry (failed capture) gives an empty cloud.
    """
    if room.geometry is None:
        logger.warning("⚠️ No captured geometry for room %d", room_index)
        return PointCloud.empty(room_index)

    point_chunks: list[np.ndarray] = []
    normal_chunks: list[np.ndarray] = []
    for surface in room.geometry.surfaces():
        pts, nrm = surface.sample(spacing)
        point_chunks.append(pts)
        normal_chunks.append(nrm)

    if not point_chunks:
        logger.warning("⚠️ Room %d has no surfaces to sample", room_index)
        return PointCloud.empty(room_index)

    cloud = PointCloud(np.vstack(point_chunks), np.vstack(normal_chunks), room_index)
    logger.info("📊 Extracted %d points for room %d", len(cloud), room_index)
    return cloud


def extract_point_clouds(
    rooms: Sequence[CapturedRoom],
    *,
    spacing: float = 0.1,
    voxel_size: float | None = None,
) -> list[PointCloud]:
    """Extract one cloud per room, tagged with its position in *rooms*."""
    logger.info("📊 Extracting point clouds from %d rooms", len(rooms))
    clouds: list[PointCloud] = []
    for index, room in enumerate(rooms):
        cloud = extract_point_cloud(room, index, spacing=spacing)
        if voxel_size is not None and not cloud.is_empty:
            pts, nrm = voxel_downsample(cloud.points, cloud.normals, voxel_size=voxel_size)
            logger.debug("Room %d down-sampled %d → %d points", index, len(cloud), len(pts))
            cloud = PointCloud(pts, nrm, index)
        clouds.append(cloud)
    return clouds
