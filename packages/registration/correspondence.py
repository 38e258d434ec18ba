"""Nearest-neighbour correspondence search between two point sets.

Two interchangeable back-ends give the same matches:

* ``brute_force`` – full distance matrix in chunks, the reference.
* ``kdtree`` – ``scipy.spatial.cKDTree``; the tree over the target is built
  once and reused for every ICP iteration.

Ties between equally distant targets (within ``_TIE_TOLERANCE``) go to the
lowest target index, however many targets share the distance.
"""

from __future__ import annotations

from typing import Literal

import numpy as np
from scipy.spatial import cKDTree

from packages.core.cloud import Correspondences

CorrespondenceMethod = Literal["kdtree", "brute_force"]

# k nearest candidates inspected for tie-breaking with the kd-tree
_TIE_CANDIDATES = 4
_TIE_TOLERANCE = 1e-12
_BRUTE_FORCE_CHUNK = 256


def _as_points(points: np.ndarray) -> np.ndarray:
    return np.asarray(points, dtype=np.float64).reshape(-1, 3)


def _nearest_brute_force(source: np.ndarray, target: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    distances = np.empty(len(source))
    indices = np.empty(len(source), dtype=np.int64)
    for start in range(0, len(source), _BRUTE_FORCE_CHUNK):
        chunk = source[start:start + _BRUTE_FORCE_CHUNK]
        d = np.sqrt(((chunk[:, None, :] - target[None, :, :]) ** 2).sum(axis=2))
        nearest = d.min(axis=1)
        # argmax returns the first True → lowest index among the tied
        best = np.argmax(d <= nearest[:, None] + _TIE_TOLERANCE, axis=1)
        indices[start:start + len(chunk)] = best
        distances[start:start + len(chunk)] = nearest
    return distances, indices


def _nearest_kdtree(
    source: np.ndarray,
    tree: cKDTree,
    max_distance: float,
    workers: int,
) -> tuple[np.ndarray, np.ndarray]:
    k = min(_TIE_CANDIDATES, tree.n)
    distances, indices = tree.query(
        source, k=k, distance_upper_bound=max_distance, workers=workers,
    )
    if k == 1:
        return distances, indices.astype(np.int64)

    # Among candidates tied with the closest one, keep the lowest index.
    nearest = distances[:, 0]
    tied = distances <= nearest[:, None] + _TIE_TOLERANCE
    masked = np.where(tied, indices, np.iinfo(np.int64).max)
    best_idx = masked.min(axis=1).astype(np.int64)

    # All k candidates tied: the tie may extend past k, so collect every
    # target within the tie radius.
    crowded = np.flatnonzero(np.isfinite(nearest) & tied[:, -1])
    if k < tree.n and len(crowded):
        neighbours = tree.query_ball_point(
            source[crowded], r=nearest[crowded] + _TIE_TOLERANCE, workers=workers,
        )
        for row, found in zip(crowded, neighbours):
            best_idx[row] = min(found, default=best_idx[row])
    return nearest, best_idx


def find_correspondences(
    source_points: np.ndarray,
    target_points: np.ndarray,
    max_distance: float,
    *,
    method: CorrespondenceMethod = "kdtree",
    tree: cKDTree | None = None,
    workers: int = 1,
) -> Correspondences:
    """Pair every source point with its nearest target point.

    Pairs at or beyond *max_distance* are dropped, so every returned distance
    is in ``[0, max_distance)``.  Returns an empty set when either side has
    no points.
    """
    source = _as_points(source_points)
    target = _as_points(target_points)
    if len(source) == 0 or len(target) == 0:
        return Correspondences()

    if method == "brute_force":
        distances, indices = _nearest_brute_force(source, target)
    elif method == "kdtree":
        distances, indices = _nearest_kdtree(
            source, tree if tree is not None else cKDTree(target), max_distance, workers,
        )
    else:
        raise ValueError(f"Unknown correspondence method '{method}'")

    keep = np.flatnonzero(np.isfinite(distances) & (distances < max_distance))
    target_idx = indices[keep]
    return Correspondences(
        source_indices=keep,
        target_indices=target_idx,
        source_points=source[keep],
        target_points=target[target_idx],
        distances=distances[keep],
    )


class CorrespondenceFinder:
    """Holds one target point set (and its kd-tree) for repeated queries."""

    def __init__(
        self,
        target_points: np.ndarray,
        max_distance: float,
        *,
        method: CorrespondenceMethod = "kdtree",
        workers: int = 1,
    ):
        self.target_points = _as_points(target_points)
        self.max_distance = max_distance
        self.method = method
        self.workers = workers
        self._tree: cKDTree | None = None
        if method == "kdtree" and len(self.target_points) > 0:
            self._tree = cKDTree(self.target_points)

    def find(self, source_points: np.ndarray) -> Correspondences:
        return find_correspondences(
            source_points,
            self.target_points,
            self.max_distance,
            method=self.method,
            tree=self._tree,
            workers=self.workers,
        )
