"""Pydantic models for room geometry, alignment results and the building model.

Rooms arrive from the capture pipeline as planar surfaces (walls, floor,
ceiling) in their own local frame.  Registration produces one
:class:`AlignmentResult` per consecutive room pair, and the run ends with a
:class:`CombinedBuildingModel` snapshot.  Z is up throughout.
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Iterator, Literal, Optional

import numpy as np
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    computed_field,
    model_validator,
)
from scipy.spatial.transform import Rotation

_FLOAT_MAX = sys.float_info.max


# ── tiny helpers ──────────────────────────────────────────────────────
class Vec3(BaseModel):
    """A 3-component vector (x, y, z) in metres."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    z: float

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @classmethod
    def from_array(cls, arr) -> Vec3:
        return cls(x=float(arr[0]), y=float(arr[1]), z=float(arr[2]))


class Quaternion(BaseModel):
    """Unit quaternion, scalar last (x, y, z, w)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z, self.w], dtype=np.float64)


class BBox(BaseModel):
    """Axis-aligned bounding box.

    The empty box has ``min > max`` on every axis (see :meth:`empty`).
    """

    min: Vec3
    max: Vec3

    @classmethod
    def empty(cls) -> BBox:
        return cls(
            min=Vec3(x=_FLOAT_MAX, y=_FLOAT_MAX, z=_FLOAT_MAX),
            max=Vec3(x=-_FLOAT_MAX, y=-_FLOAT_MAX, z=-_FLOAT_MAX),
        )

    @property
    def is_empty(self) -> bool:
        return self.min.x > self.max.x or self.min.y > self.max.y or self.min.z > self.max.z

    @property
    def size(self) -> Vec3:
        if self.is_empty:
            return Vec3(x=0.0, y=0.0, z=0.0)
        return Vec3.from_array(self.max.to_array() - self.min.to_array())

    @property
    def center(self) -> Vec3:
        return Vec3.from_array((self.min.to_array() + self.max.to_array()) / 2.0)


def _check_matrix4(value: list[list[float]]) -> list[list[float]]:
    if len(value) != 4 or any(len(row) != 4 for row in value):
        raise ValueError("transform must be a 4x4 nested list")
    return value


Matrix4 = Annotated[list[list[float]], AfterValidator(_check_matrix4)]


def _identity_matrix() -> list[list[float]]:
    return np.eye(4).tolist()


# ── surfaces ─────────────────────────────────────────────────────────
def _grid_offsets(length: float, spacing: float) -> np.ndarray:
    """Regularly spaced offsets covering ``[-length/2, length/2]``, centred."""
    n = int(np.floor(length / spacing + 1e-9)) + 1
    return (np.arange(n) - (n - 1) / 2.0) * spacing


class PlanarSurface(BaseModel):
    """A rectangular planar patch: ``width`` along ``u_axis``, ``height`` along
    ``normal × u_axis``, centred on ``center``."""

    center: Vec3
    normal: Vec3
    u_axis: Vec3
    width: float = Field(ge=0.0)
    height: float = Field(ge=0.0)

    @model_validator(mode="after")
    def _orthonormalise(self) -> PlanarSurface:
        n = self.normal.to_array()
        norm = np.linalg.norm(n)
        if norm < 1e-12:
            raise ValueError("surface normal must be non-zero")
        n = n / norm
        u = self.u_axis.to_array()
        u = u - np.dot(u, n) * n
        u_norm = np.linalg.norm(u)
        if u_norm < 1e-9:
            raise ValueError("u_axis must not be parallel to the surface normal")
        self.normal = Vec3.from_array(n)
        self.u_axis = Vec3.from_array(u / u_norm)
        return self

    @property
    def v_axis(self) -> np.ndarray:
        return np.cross(self.normal.to_array(), self.u_axis.to_array())

    @property
    def area(self) -> float:
        return self.width * self.height

    def sample(self, spacing: float) -> tuple[np.ndarray, np.ndarray]:
        """Sample the patch on a regular grid.

        Returns ``(points, normals)``, both ``(M, 3)``.  A patch with zero
        width or height yields no samples.
        """
        if spacing <= 0:
            raise ValueError("spacing must be positive")
        if self.width <= 0 or self.height <= 0:
            return np.empty((0, 3)), np.empty((0, 3))

        us = _grid_offsets(self.width, spacing)
        vs = _grid_offsets(self.height, spacing)
        uu, vv = np.meshgrid(us, vs, indexing="ij")
        points = (
            self.center.to_array()
            + uu.reshape(-1, 1) * self.u_axis.to_array()
            + vv.reshape(-1, 1) * self.v_axis
        )
        normals = np.tile(self.normal.to_array(), (len(points), 1))
        return points, normals


class WallSurface(PlanarSurface):
    kind: Literal["wall"] = "wall"


class FloorSurface(PlanarSurface):
    kind: Literal["floor"] = "floor"
    normal: Vec3 = Field(default_factory=lambda: Vec3(x=0.0, y=0.0, z=1.0))
    u_axis: Vec3 = Field(default_factory=lambda: Vec3(x=1.0, y=0.0, z=0.0))


class CeilingSurface(PlanarSurface):
    kind: Literal["ceiling"] = "ceiling"
    normal: Vec3 = Field(default_factory=lambda: Vec3(x=0.0, y=0.0, z=-1.0))
    u_axis: Vec3 = Field(default_factory=lambda: Vec3(x=1.0, y=0.0, z=0.0))


class RoomGeometry(BaseModel):
    """Surfaces captured for one room, in the room's local frame."""

    walls: list[WallSurface] = Field(default_factory=list)
    floor: Optional[FloorSurface] = None
    ceiling: Optional[CeilingSurface] = None

    def surfaces(self) -> Iterator[PlanarSurface]:
        yield from self.walls
        if self.floor is not None:
            yield self.floor
        if self.ceiling is not None:
            yield self.ceiling

    def measured_height(self) -> float | None:
        """Floor-to-ceiling distance along the floor normal, if both exist."""
        if self.floor is None or self.ceiling is None:
            return None
        delta = self.ceiling.center.to_array() - self.floor.center.to_array()
        return float(abs(np.dot(delta, self.floor.normal.to_array())))


# ── room boundary ────────────────────────────────────────────────────
class RoomBoundary(BaseModel):
    """Closed floor polygon of a room.

    ``center``, ``area`` and ``perimeter`` are derived once, when the
    boundary is built, and serialised with it.  The model is frozen so they
    cannot drift from ``vertices``.  The area is the Newell vector area, so
    the polygon may lie in any plane.
    """

    model_config = ConfigDict(frozen=True)

    vertices: tuple[Vec3, ...] = Field(min_length=3)

    _center: Vec3 = PrivateAttr()
    _area: float = PrivateAttr()
    _perimeter: float = PrivateAttr()

    def model_post_init(self, __context: Any) -> None:
        pts = np.array([[v.x, v.y, v.z] for v in self.vertices], dtype=np.float64)
        following = np.roll(pts, -1, axis=0)
        self._center = Vec3.from_array(pts.mean(axis=0))
        self._area = float(np.linalg.norm(np.cross(pts, following).sum(axis=0)) / 2.0)
        self._perimeter = float(np.linalg.norm(following - pts, axis=1).sum())

    def model_copy(self, *, update: dict[str, Any] | None = None, deep: bool = False) -> RoomBoundary:
        copied = super().model_copy(update=update, deep=deep)
        if update:
            copied.model_post_init(None)
        return copied

    @computed_field
    @property
    def center(self) -> Vec3:
        return self._center

    @computed_field
    @property
    def area(self) -> float:
        return self._area

    @computed_field
    @property
    def perimeter(self) -> float:
        return self._perimeter


# ── quality ──────────────────────────────────────────────────────────
class QualityLevel(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    UNACCEPTABLE = "unacceptable"

    @classmethod
    def from_score(cls, score: float) -> QualityLevel:
        if score >= 0.9:
            return cls.EXCELLENT
        if score >= 0.8:
            return cls.GOOD
        if score >= 0.7:
            return cls.FAIR
        if score >= 0.6:
            return cls.POOR
        return cls.UNACCEPTABLE


class RoomQualityMetrics(BaseModel):
    """Per-scan quality reported by the capture pipeline."""

    completeness: float = Field(ge=0.0, le=1.0)
    accuracy: float = Field(ge=0.0, le=1.0)
    consistency: float = Field(ge=0.0, le=1.0)
    feature_count: int = 0
    scan_duration: float = 0.0

    @property
    def overall_quality(self) -> float:
        return (self.completeness + self.accuracy + self.consistency) / 3.0

    @property
    def quality_level(self) -> QualityLevel:
        return QualityLevel.from_score(self.overall_quality)


# ── captured room ────────────────────────────────────────────────────
class CapturedRoom(BaseModel):
    """One scanned room as handed over by the capture pipeline."""

    index: int = 0
    name: str = ""
    start_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None
    geometry: Optional[RoomGeometry] = None
    boundary: Optional[RoomBoundary] = None
    ceiling_height: Optional[float] = Field(default=None, gt=0.0)
    quality_metrics: Optional[RoomQualityMetrics] = None

    @property
    def scan_duration(self) -> float | None:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    @property
    def is_complete(self) -> bool:
        return self.geometry is not None and self.end_time is not None

    def measured_ceiling_height(self) -> float | None:
        if self.ceiling_height is not None:
            return self.ceiling_height
        if self.geometry is not None:
            return self.geometry.measured_height()
        return None


# ── registration output ──────────────────────────────────────────────
class IcpState(str, Enum):
    ITERATING = "iterating"
    CONVERGED = "converged"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    DEGENERATE = "degenerate"


class AlignmentResult(BaseModel):
    """Outcome of registering ``source_room_index`` onto ``target_room_index``.

    ``transform`` maps source-room coordinates into the target room's frame.
    """

    model_config = ConfigDict(frozen=True, ser_json_inf_nan="constants")

    source_room_index: int
    target_room_index: int
    transform: Matrix4 = Field(default_factory=_identity_matrix)
    error: float = Field(ge=0.0, description="RMS correspondence distance (inf if none)")
    confidence: float = Field(ge=0.0, le=1.0)
    state: IcpState = IcpState.CONVERGED
    iterations: int = 0
    correspondence_count: int = 0
    stop_reason: Optional[str] = None


class GlobalCoordinateSystem(BaseModel):
    """Shared building frame plus the room-local → global transform of each room."""

    model_config = ConfigDict(frozen=True)

    origin: Vec3 = Field(default_factory=lambda: Vec3(x=0.0, y=0.0, z=0.0))
    orientation: Quaternion = Field(default_factory=Quaternion)
    scale: float = Field(default=1.0, gt=0.0)
    room_transforms: list[Matrix4] = Field(default_factory=list)

    def transform(self, point: Vec3) -> Vec3:
        """Map a point through the frame: ``origin + scale · rotate(point)``."""
        rotated = Rotation.from_quat(self.orientation.to_array()).apply(point.to_array())
        return Vec3.from_array(self.origin.to_array() + rotated * self.scale)

    def room_to_global(self, room_index: int, points: np.ndarray) -> np.ndarray:
        """Map ``(N, 3)`` room-local points into the global frame."""
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if 0 <= room_index < len(self.room_transforms):
            matrix = np.asarray(self.room_transforms[room_index], dtype=np.float64)
            pts = pts @ matrix[:3, :3].T + matrix[:3, 3]
        rotation = Rotation.from_quat(self.orientation.to_array())
        return self.origin.to_array() + rotation.apply(pts) * self.scale


class AlignmentQuality(BaseModel):
    model_config = ConfigDict(frozen=True)

    overall_score: float = Field(ge=0.0, le=1.0)
    room_alignment_scores: list[float] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def quality_level(self) -> QualityLevel:
        return QualityLevel.from_score(self.overall_score)


class BuildingMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_floor_area: float = 0.0
    total_volume: float = 0.0
    room_count: int = 0
    average_room_size: float = 0.0
    building_bounds: BBox = Field(default_factory=BBox.empty)


# ── building model ───────────────────────────────────────────────────
class CombinedBuildingModel(BaseModel):
    """Top-level snapshot produced at the end of a registration run."""

    model_config = ConfigDict(frozen=True, ser_json_inf_nan="constants")

    version: str = "0.1.0"
    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    units: str = "metres"
    rooms: list[CapturedRoom] = Field(default_factory=list)
    global_coordinate_system: GlobalCoordinateSystem = Field(default_factory=GlobalCoordinateSystem)
    alignment_quality: AlignmentQuality
    alignment_results: list[AlignmentResult] = Field(default_factory=list)
    building_metrics: BuildingMetrics = Field(default_factory=BuildingMetrics)
