"""Preprocessing helpers: down-sampling, normal estimation, bounds."""

from __future__ import annotations

import numpy as np
from scipy.spatial import cKDTree

from packages.core.types import BBox, Vec3


def compute_bounds(points: np.ndarray) -> BBox:
    """Return the axis-aligned bounding box of an (N, 3) point array.

    An empty array gives :meth:`BBox.empty` rather than raising.
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if len(points) == 0:
        return BBox.empty()
    mins = points.min(axis=0)
    maxs = points.max(axis=0)
    return BBox(
        min=Vec3(x=float(mins[0]), y=float(mins[1]), z=float(mins[2])),
        max=Vec3(x=float(maxs[0]), y=float(maxs[1]), z=float(maxs[2])),
    )


def voxel_downsample(
    points: np.ndarray,
    normals: np.ndarray | None = None,
    voxel_size: float = 0.05,
) -> tuple[np.ndarray, np.ndarray | None]:
    """Voxel-grid down-sampling.

    Each occupied voxel keeps the centroid of its points and, when *normals*
    are given, their renormalised mean.  Voxels come out in order of first
    occurrence so the result is deterministic.

    Returns ``(points, normals)`` where both are (M, 3) with M ≤ N; normals
    is *None* when none were passed in.
    """
    if voxel_size <= 0:
        raise ValueError("voxel_size must be positive")

    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if len(points) == 0:
        return points.copy(), (None if normals is None else np.empty((0, 3)))

    # Quantise to voxel grid
    mins = points.min(axis=0)
    keys = np.floor((points - mins) / voxel_size).astype(np.int64)
    _, first, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    inverse = inverse.reshape(-1)

    # np.unique sorts lexicographically; remap voxel ids to first-seen order
    order = np.argsort(first)
    rank = np.empty_like(order)
    rank[order] = np.arange(len(order))
    voxel_ids = rank[inverse]

    counts = np.bincount(voxel_ids).astype(np.float64)
    centroids = np.zeros((len(counts), 3))
    np.add.at(centroids, voxel_ids, points)
    centroids /= counts[:, None]

    if normals is None:
        return centroids, None

    normals = np.asarray(normals, dtype=np.float64).reshape(-1, 3)
    summed = np.zeros((len(counts), 3))
    np.add.at(summed, voxel_ids, normals)
    norms = np.linalg.norm(summed, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return centroids, summed / norms


def estimate_normals(points: np.ndarray, k: int = 20) -> np.ndarray:
    """Estimate surface normals using PCA on *k*-nearest neighbours.

    Returns an (N, 3) array of unit normals.  Sign is arbitrary per point.
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    n = len(points)
    if n < 3:
        out = np.zeros_like(points)
        out[:, 2] = 1.0
        return out

    tree = cKDTree(points)
    _, idx = tree.query(points, k=min(k, n))
    normals = np.zeros_like(points)
    for i in range(n):
        neighbours = points[idx[i]]
        cov = np.cov(neighbours, rowvar=False)
        eigvals, eigvecs = np.linalg.eigh(cov)
        normals[i] = eigvecs[:, 0]  # smallest eigenvalue → normal direction
    # Normalise
    norms = np.linalg.norm(normals, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return normals / norms
