"""Build the shared building frame from the pairwise alignment chain.

Policy: room 0 is the anchor.  The frame keeps the origin at room 0's
origin with identity orientation and unit scale, and each later room's
global transform is the product of every pairwise transform before it.
"""

from __future__ import annotations

import logging
from typing import Sequence

from packages.core.transform import RigidTransform, compose_transforms
from packages.core.types import AlignmentResult, GlobalCoordinateSystem, Quaternion, Vec3

logger = logging.getLogger(__name__)


def chain_room_transforms(
    results: Sequence[AlignmentResult],
    room_count: int | None = None,
) -> list[RigidTransform]:
    """Room-local → global transform for each room.

    ``results[i - 1]`` maps room *i* into room *i − 1*, so
    ``global[i] = global[i − 1] @ results[i − 1].transform``.  Rooms past
    the end of the chain stay at identity.
    """
    if room_count is None:
        room_count = len(results) + 1 if results else 0
    transforms: list[RigidTransform] = []
    for index in range(room_count):
        if index == 0:
            transforms.append(RigidTransform.identity())
        elif index - 1 < len(results):
            step = RigidTransform.from_list(results[index - 1].transform)
            transforms.append(compose_transforms([transforms[index - 1], step]))
        else:
            logger.warning("⚠️ No alignment for room %d – leaving it at the origin", index)
            transforms.append(RigidTransform.identity())
    return transforms


def build_global_coordinate_system(
    results: Sequence[AlignmentResult],
    room_count: int | None = None,
) -> GlobalCoordinateSystem:
    """Anchor the building frame at room 0 and attach every room's transform."""
    transforms = chain_room_transforms(results, room_count)
    return GlobalCoordinateSystem(
        origin=Vec3(x=0.0, y=0.0, z=0.0),
        orientation=Quaternion(),
        scale=1.0,
        room_transforms=[t.to_list() for t in transforms],
    )
