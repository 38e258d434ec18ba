"""Tests for building the global coordinate system."""

from __future__ import annotations

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from packages.core.transform import RigidTransform
from packages.core.types import AlignmentResult
from packages.registration.global_frame import (
    build_global_coordinate_system,
    chain_room_transforms,
)


def _result(source: int, transform: RigidTransform) -> AlignmentResult:
    return AlignmentResult(
        source_room_index=source,
        target_room_index=source - 1,
        transform=transform.to_list(),
        error=0.0,
        confidence=1.0,
    )


def _translation(x, y, z) -> RigidTransform:
    return RigidTransform.from_rotation_translation(translation=[x, y, z])


class TestChainRoomTransforms:
    def test_translations_accumulate(self):
        results = [_result(1, _translation(4, 0, 0)), _result(2, _translation(0, 3, 0))]
        transforms = chain_room_transforms(results)
        assert len(transforms) == 3
        assert transforms[0].is_identity()
        np.testing.assert_allclose(transforms[1].translation, [4, 0, 0])
        np.testing.assert_allclose(transforms[2].translation, [4, 3, 0])

    def test_rotation_is_applied_before_earlier_steps(self):
        quarter = RigidTransform.from_rotation_translation(
            Rotation.from_euler("z", 90, degrees=True).as_matrix(), [1.0, 0.0, 0.0],
        )
        results = [_result(1, quarter), _result(2, _translation(1, 0, 0))]
        transforms = chain_room_transforms(results)
        # room 2's origin → room 1 (1, 0, 0) → room 0 (1, 1, 0)
        np.testing.assert_allclose(transforms[2].apply(np.zeros((1, 3))), [[1.0, 1.0, 0.0]], atol=1e-12)

    def test_products_stay_rigid(self):
        rng = np.random.default_rng(9)
        rotations = Rotation.random(10, random_state=9).as_matrix()
        results = [
            _result(i + 1, RigidTransform.from_rotation_translation(rotations[i], rng.normal(size=3)))
            for i in range(10)
        ]
        assert all(t.is_rigid(atol=1e-9) for t in chain_room_transforms(results))

    def test_missing_rooms_stay_at_identity(self):
        transforms = chain_room_transforms([_result(1, _translation(1, 0, 0))], room_count=4)
        assert len(transforms) == 4
        assert transforms[2].is_identity()
        assert transforms[3].is_identity()

    def test_no_results(self):
        assert chain_room_transforms([]) == []
        assert len(chain_room_transforms([], room_count=1)) == 1


class TestBuildGlobalCoordinateSystem:
    def test_anchored_at_room_zero(self):
        gcs = build_global_coordinate_system([_result(1, _translation(2, 0, 0))])
        assert gcs.scale == 1.0
        assert (gcs.origin.x, gcs.origin.y, gcs.origin.z) == (0.0, 0.0, 0.0)
        assert gcs.orientation.w == 1.0
        assert len(gcs.room_transforms) == 2
        np.testing.assert_allclose(gcs.room_transforms[0], np.eye(4))

    def test_room_to_global(self):
        gcs = build_global_coordinate_system(
            [_result(1, _translation(2, 0, 0)), _result(2, _translation(0, 1, 0))],
        )
        moved = gcs.room_to_global(2, np.array([[0.5, 0.5, 0.0]]))
        np.testing.assert_allclose(moved, [[2.5, 1.5, 0.0]])

    def test_single_room(self):
        gcs = build_global_coordinate_system([], room_count=1)
        assert len(gcs.room_transforms) == 1
        np.testing.assert_allclose(gcs.room_to_global(0, np.array([[1.0, 2.0, 3.0]])), [[1.0, 2.0, 3.0]])

    def test_serialises(self):
        gcs = build_global_coordinate_system([_result(1, _translation(2, 0, 0))])
        data = gcs.model_dump()
        assert data["room_transforms"][1][0][3] == pytest.approx(2.0)
