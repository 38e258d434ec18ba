"""NumPy containers used inside a registration run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, NamedTuple

import numpy as np


def _frozen(arr, dtype=np.float64, cols: int | None = 3) -> np.ndarray:
    out = np.array(arr, dtype=dtype)
    if cols is not None:
        out = out.reshape(-1, cols)
    out.setflags(write=False)
    return out


@dataclass(frozen=True, eq=False)
class PointCloud:
    """Points and unit normals sampled from one room, in that room's frame."""

    points: np.ndarray
    normals: np.ndarray
    room_index: int = 0

    def __post_init__(self):
        points = _frozen(self.points)
        normals = _frozen(self.normals)
        if len(points) != len(normals):
            raise ValueError(
                f"points and normals differ in length ({len(points)} vs {len(normals)})"
            )
        object.__setattr__(self, "points", points)
        object.__setattr__(self, "normals", normals)

    @classmethod
    def empty(cls, room_index: int = 0) -> PointCloud:
        return cls(np.empty((0, 3)), np.empty((0, 3)), room_index)

    @property
    def point_count(self) -> int:
        return len(self.points)

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0

    def __len__(self) -> int:
        return len(self.points)


class Correspondence(NamedTuple):
    source_index: int
    target_index: int
    source_point: np.ndarray
    target_point: np.ndarray
    distance: float


@dataclass(frozen=True, eq=False)
class Correspondences:
    """Matched source/target pairs from one ICP iteration, stored column-wise."""

    source_indices: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    target_indices: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    source_points: np.ndarray = field(default_factory=lambda: np.empty((0, 3)))
    target_points: np.ndarray = field(default_factory=lambda: np.empty((0, 3)))
    distances: np.ndarray = field(default_factory=lambda: np.empty(0))

    def __post_init__(self):
        object.__setattr__(self, "source_indices", _frozen(self.source_indices, np.int64, None))
        object.__setattr__(self, "target_indices", _frozen(self.target_indices, np.int64, None))
        object.__setattr__(self, "source_points", _frozen(self.source_points))
        object.__setattr__(self, "target_points", _frozen(self.target_points))
        object.__setattr__(self, "distances", _frozen(self.distances, np.float64, None))
        n = len(self.source_indices)
        if not (
            len(self.target_indices) == n
            and len(self.source_points) == n
            and len(self.target_points) == n
            and len(self.distances) == n
        ):
            raise ValueError("correspondence columns must have equal length")

    def __len__(self) -> int:
        return len(self.source_indices)

    def __iter__(self) -> Iterator[Correspondence]:
        for i in range(len(self)):
            yield Correspondence(
                int(self.source_indices[i]),
                int(self.target_indices[i]),
                self.source_points[i],
                self.target_points[i],
                float(self.distances[i]),
            )

    def subset(self, mask_or_index: np.ndarray) -> Correspondences:
        return Correspondences(
            source_indices=self.source_indices[mask_or_index],
            target_indices=self.target_indices[mask_or_index],
            source_points=self.source_points[mask_or_index],
            target_points=self.target_points[mask_or_index],
            distances=self.distances[mask_or_index],
        )

    def rms_error(self) -> float:
        """Root-mean-square distance; ``inf`` when there are no pairs."""
        if len(self) == 0:
            return float("inf")
        return float(np.sqrt(np.mean(self.distances ** 2)))
