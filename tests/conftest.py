"""Shared test fixtures – synthetic rooms and point clouds."""

from __future__ import annotations

import numpy as np
import pytest

from packages.core.cloud import PointCloud
from packages.core.types import (
    CapturedRoom,
    CeilingSurface,
    FloorSurface,
    RoomBoundary,
    RoomGeometry,
    Vec3,
    WallSurface,
)


def _box_geometry(
    width: float,
    depth: float,
    height: float,
    offset: tuple[float, float, float] = (0.0, 0.0, 0.0),
) -> RoomGeometry:
    """Floor, ceiling and four inward-facing walls of a box room.

    The floor centre sits at *offset*; Z is up.
    """
    ox, oy, oz = offset

    def v(x, y, z):
        return Vec3(x=x, y=y, z=z)

    walls = [
        WallSurface(center=v(ox - width / 2, oy, oz + height / 2), normal=v(1, 0, 0),
                    u_axis=v(0, 1, 0), width=depth, height=height),
        WallSurface(center=v(ox + width / 2, oy, oz + height / 2), normal=v(-1, 0, 0),
                    u_axis=v(0, 1, 0), width=depth, height=height),
        WallSurface(center=v(ox, oy - depth / 2, oz + height / 2), normal=v(0, 1, 0),
                    u_axis=v(1, 0, 0), width=width, height=height),
        WallSurface(center=v(ox, oy + depth / 2, oz + height / 2), normal=v(0, -1, 0),
                    u_axis=v(1, 0, 0), width=width, height=height),
    ]
    return RoomGeometry(
        walls=walls,
        floor=FloorSurface(center=v(ox, oy, oz), width=width, height=depth),
        ceiling=CeilingSurface(center=v(ox, oy, oz + height), width=width, height=depth),
    )


def _rectangle(width: float, depth: float) -> RoomBoundary:
    return RoomBoundary(vertices=[
        Vec3(x=0.0, y=0.0, z=0.0),
        Vec3(x=width, y=0.0, z=0.0),
        Vec3(x=width, y=depth, z=0.0),
        Vec3(x=0.0, y=depth, z=0.0),
    ])


@pytest.fixture()
def make_box_room():
    """Factory: ``make_box_room(index, offset=(0, 0, 0), ...) -> CapturedRoom``."""

    def _make(
        index: int = 0,
        offset: tuple[float, float, float] = (0.0, 0.0, 0.0),
        width: float = 4.0,
        depth: float = 3.0,
        height: float = 2.5,
        with_boundary: bool = True,
    ) -> CapturedRoom:
        return CapturedRoom(
            index=index,
            name=f"room-{index}",
            geometry=_box_geometry(width, depth, height, offset),
            boundary=_rectangle(width, depth) if with_boundary else None,
        )

    return _make


@pytest.fixture()
def make_rectangle():
    """Factory: ``make_rectangle(width, depth) -> RoomBoundary`` in the XY plane."""
    return _rectangle


@pytest.fixture()
def grid_points() -> np.ndarray:
    """A 6 × 6 × 6 lattice with 0.2 m spacing, centred on the origin."""
    axis = (np.arange(6) - 2.5) * 0.2
    xx, yy, zz = np.meshgrid(axis, axis, axis, indexing="ij")
    return np.column_stack((xx.ravel(), yy.ravel(), zz.ravel()))


@pytest.fixture()
def grid_cloud(grid_points: np.ndarray) -> PointCloud:
    normals = np.tile([0.0, 0.0, 1.0], (len(grid_points), 1))
    return PointCloud(grid_points, normals, room_index=0)


@pytest.fixture()
def random_cloud() -> PointCloud:
    """200 well-spread random points in a 2 m cube."""
    rng = np.random.default_rng(7)
    pts = rng.uniform(-1.0, 1.0, size=(200, 3))
    normals = rng.normal(size=(200, 3))
    normals /= np.linalg.norm(normals, axis=1, keepdims=True)
    return PointCloud(pts, normals, room_index=0)
