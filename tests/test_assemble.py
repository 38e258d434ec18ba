"""Tests for building metrics and model assembly."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from packages.core.transform import RigidTransform
from packages.core.types import (
    AlignmentQuality,
    AlignmentResult,
    BuildingMetrics,
    CapturedRoom,
    CombinedBuildingModel,
    GlobalCoordinateSystem,
)
from packages.registration.assemble import assemble_building_model, compute_building_metrics


@pytest.fixture()
def three_rooms(make_rectangle) -> list[CapturedRoom]:
    return [
        CapturedRoom(index=0, boundary=make_rectangle(3.0, 4.0)),
        CapturedRoom(index=1, boundary=make_rectangle(2.0, 2.0)),
        CapturedRoom(index=2),
    ]


def _gcs(*translations) -> GlobalCoordinateSystem:
    return GlobalCoordinateSystem(room_transforms=[
        RigidTransform.from_rotation_translation(translation=t).to_list() for t in translations
    ])


class TestComputeBuildingMetrics:
    def test_totals(self, three_rooms):
        metrics = compute_building_metrics(three_rooms)
        assert metrics.total_floor_area == pytest.approx(16.0)
        assert metrics.total_volume == pytest.approx(40.0)
        assert metrics.room_count == 3
        assert metrics.average_room_size == pytest.approx(16.0 / 3.0)

    def test_idempotent(self, three_rooms):
        assert compute_building_metrics(three_rooms) == compute_building_metrics(three_rooms)

    def test_uses_measured_ceiling_height(self, make_rectangle):
        room = CapturedRoom(boundary=make_rectangle(3.0, 4.0), ceiling_height=3.0)
        assert compute_building_metrics([room]).total_volume == pytest.approx(36.0)

    def test_height_from_geometry(self, make_box_room):
        room = make_box_room(width=3.0, depth=4.0, height=2.8)
        assert compute_building_metrics([room]).total_volume == pytest.approx(12.0 * 2.8)

    def test_default_height_override(self, three_rooms):
        metrics = compute_building_metrics(three_rooms, default_ceiling_height=3.0)
        assert metrics.total_volume == pytest.approx(48.0)

    def test_local_bounds(self, three_rooms):
        bounds = compute_building_metrics(three_rooms).building_bounds
        assert (bounds.min.x, bounds.min.y) == (0.0, 0.0)
        assert (bounds.max.x, bounds.max.y) == (3.0, 4.0)

    def test_bounds_follow_room_transforms(self, three_rooms):
        gcs = _gcs([0, 0, 0], [5, 0, 0], [0, 0, 0])
        bounds = compute_building_metrics(three_rooms, gcs).building_bounds
        assert bounds.max.x == pytest.approx(7.0)
        assert bounds.max.y == pytest.approx(4.0)
        assert bounds.size.x == pytest.approx(7.0)

    def test_no_rooms(self):
        metrics = compute_building_metrics([])
        assert metrics.room_count == 0
        assert metrics.average_room_size == 0.0
        assert metrics.building_bounds.is_empty

    def test_no_boundaries(self):
        metrics = compute_building_metrics([CapturedRoom(), CapturedRoom()])
        assert metrics.total_floor_area == 0.0
        assert metrics.room_count == 2
        assert metrics.building_bounds.is_empty


class TestAssembleBuildingModel:
    def test_snapshot(self, three_rooms):
        quality = AlignmentQuality(overall_score=0.8, room_alignment_scores=[0.9, 0.7])
        results = [
            AlignmentResult(source_room_index=1, target_room_index=0, error=0.1, confidence=0.9),
            AlignmentResult(source_room_index=2, target_room_index=1, error=float("inf"), confidence=0.0),
        ]
        gcs = _gcs([0, 0, 0], [1, 0, 0], [1, 0, 0])
        model = assemble_building_model(three_rooms, gcs, quality, results)

        assert model.version == "0.1.0"
        assert model.units == "metres"
        assert len(model.rooms) == 3
        assert model.building_metrics.room_count == 3
        assert model.alignment_quality.overall_score == 0.8

        data = json.loads(model.model_dump_json())
        assert data["alignment_results"][1]["error"] == float("inf")
        again = CombinedBuildingModel.model_validate(data)
        assert again.building_metrics == model.building_metrics

    def test_snapshot_is_frozen(self, three_rooms):
        quality = AlignmentQuality(overall_score=0.8)
        model = assemble_building_model(three_rooms, _gcs([0, 0, 0]), quality, [])
        with pytest.raises(ValidationError):
            model.rooms = []
        with pytest.raises(ValidationError):
            model.building_metrics = BuildingMetrics()
        assert len(model.rooms) == 3
        assert model.building_metrics.room_count == 3
