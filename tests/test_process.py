"""End-to-end tests for the registration pipeline."""

from __future__ import annotations

import json
import threading
from pathlib import Path

import numpy as np
import pytest

from packages.core.config import RegistrationConfig
from packages.core.types import CapturedRoom, CombinedBuildingModel, IcpState
from packages.registration.process import align_rooms, align_rooms_to_json

OFFSET = (0.05, -0.03, 0.02)
CONFIG = RegistrationConfig(sample_spacing=0.25)


def _write_rooms(path: Path, rooms: list[CapturedRoom]) -> None:
    path.write_text(json.dumps([room.model_dump(mode="json") for room in rooms]))


class TestAlignRooms:
    def test_two_overlapping_rooms(self, make_box_room):
        rooms = [make_box_room(0), make_box_room(1, offset=OFFSET)]
        model = align_rooms(rooms, CONFIG)

        assert isinstance(model, CombinedBuildingModel)
        assert len(model.alignment_results) == 1
        result = model.alignment_results[0]
        assert result.state == IcpState.CONVERGED
        assert result.confidence > 0.95

        room_1 = np.asarray(model.global_coordinate_system.room_transforms[1])
        np.testing.assert_allclose(room_1[:3, 3], -np.asarray(OFFSET), atol=1e-6)
        np.testing.assert_allclose(room_1[:3, :3], np.eye(3), atol=1e-6)

        assert model.alignment_quality.overall_score > 0.95
        assert model.alignment_quality.issues == []
        assert model.building_metrics.room_count == 2
        assert model.building_metrics.total_floor_area == pytest.approx(24.0)
        assert model.building_metrics.total_volume == pytest.approx(60.0)

    def test_offset_beyond_half_sample_spacing(self, make_box_room):
        offset = (0.12, -0.07, 0.04)
        rooms = [make_box_room(0), make_box_room(1, offset=offset)]
        model = align_rooms(rooms, RegistrationConfig(sample_spacing=0.1))

        assert model.alignment_results[0].confidence > 0.99
        room_1 = np.asarray(model.global_coordinate_system.room_transforms[1])
        np.testing.assert_allclose(room_1[:3, 3], -np.asarray(offset), atol=1e-4)

    def test_room_without_geometry(self, make_box_room):
        rooms = [make_box_room(0), CapturedRoom(index=1), make_box_room(2)]
        model = align_rooms(rooms, CONFIG)

        assert [r.confidence for r in model.alignment_results] == [0.0, 0.0]
        assert len(model.alignment_quality.issues) == 2
        assert len(model.global_coordinate_system.room_transforms) == 3
        for matrix in model.global_coordinate_system.room_transforms:
            np.testing.assert_allclose(matrix, np.eye(4))

    def test_rooms_without_overlap(self, make_box_room):
        rooms = [make_box_room(0), make_box_room(1, offset=(20.0, 0.0, 0.0))]
        model = align_rooms(rooms, CONFIG)

        assert model.alignment_results[0].confidence == 0.0
        assert model.alignment_quality.overall_score == 0.0
        assert model.alignment_quality.issues == [
            "Low confidence alignment between rooms 1 and 0 (confidence 0.00)"
        ]

    def test_single_room(self, make_box_room):
        model = align_rooms([make_box_room(0)], CONFIG)
        assert model.alignment_results == []
        assert model.alignment_quality.overall_score == 0.0
        assert len(model.global_coordinate_system.room_transforms) == 1
        assert model.building_metrics.room_count == 1

    def test_cancelled_run_still_returns_a_model(self, make_box_room):
        cancel = threading.Event()
        cancel.set()
        rooms = [make_box_room(0), make_box_room(1, offset=OFFSET)]
        model = align_rooms(rooms, CONFIG, cancel=cancel)
        assert model.alignment_results[0].stop_reason == "cancelled"


class TestAlignRoomsToJson:
    def test_writes_building_model(self, make_box_room, tmp_path: Path):
        rooms_file = tmp_path / "rooms.json"
        _write_rooms(rooms_file, [make_box_room(0), make_box_room(1, offset=OFFSET)])
        out_json = tmp_path / "building.json"

        json_str = align_rooms_to_json(rooms_file, output_path=out_json, config=CONFIG)

        assert out_json.read_text() == json_str
        data = json.loads(json_str)
        assert data["units"] == "metres"
        assert len(data["rooms"]) == 2
        model = CombinedBuildingModel.model_validate(data)
        assert model.building_metrics.room_count == 2

    def test_default_output_path(self, make_box_room, tmp_path: Path):
        rooms_file = tmp_path / "rooms.json"
        _write_rooms(rooms_file, [make_box_room(0)])
        align_rooms_to_json(rooms_file, config=CONFIG)
        assert (tmp_path / "rooms.building.json").exists()
