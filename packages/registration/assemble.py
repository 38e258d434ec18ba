"""Assemble the combined building model and its derived metrics."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from packages.core.types import (
    AlignmentQuality,
    AlignmentResult,
    BuildingMetrics,
    CapturedRoom,
    CombinedBuildingModel,
    GlobalCoordinateSystem,
)
from packages.registration.preprocess import compute_bounds


def boundary_vertices(
    rooms: Sequence[CapturedRoom],
    gcs: GlobalCoordinateSystem | None = None,
) -> np.ndarray:
    """Every boundary vertex of every room as an (N, 3) array.

    With a *gcs*, vertices are mapped from each room's local frame into the
    building frame.
    """
    chunks: list[np.ndarray] = []
    for index, room in enumerate(rooms):
        if room.boundary is None:
            continue
        pts = np.array([[v.x, v.y, v.z] for v in room.boundary.vertices], dtype=np.float64)
        if gcs is not None:
            pts = gcs.room_to_global(index, pts)
        chunks.append(pts)
    if not chunks:
        return np.empty((0, 3))
    return np.vstack(chunks)


def compute_building_metrics(
    rooms: Sequence[CapturedRoom],
    gcs: GlobalCoordinateSystem | None = None,
    *,
    default_ceiling_height: float = 2.5,
) -> BuildingMetrics:
    """Floor area, volume, room count, average room size and bounds.

    Rooms without a boundary count towards ``room_count`` but add no area.
    Volume uses each room's measured ceiling height, falling back to
    *default_ceiling_height*.
    """
    total_area = 0.0
    total_volume = 0.0
    for room in rooms:
        if room.boundary is None:
            continue
        area = room.boundary.area
        height = room.measured_ceiling_height() or default_ceiling_height
        total_area += area
        total_volume += area * height

    room_count = len(rooms)
    return BuildingMetrics(
        total_floor_area=total_area,
        total_volume=total_volume,
        room_count=room_count,
        average_room_size=total_area / room_count if room_count else 0.0,
        building_bounds=compute_bounds(boundary_vertices(rooms, gcs)),
    )


def assemble_building_model(
    rooms: Sequence[CapturedRoom],
    gcs: GlobalCoordinateSystem,
    quality: AlignmentQuality,
    results: Sequence[AlignmentResult] = (),
    *,
    default_ceiling_height: float = 2.5,
) -> CombinedBuildingModel:
    """Snapshot the run into a :class:`CombinedBuildingModel`."""
    return CombinedBuildingModel(
        rooms=list(rooms),
        global_coordinate_system=gcs,
        alignment_quality=quality,
        alignment_results=list(results),
        building_metrics=compute_building_metrics(
            rooms, gcs, default_ceiling_height=default_ceiling_height,
        ),
    )
