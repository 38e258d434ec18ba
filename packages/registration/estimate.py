"""Rigid transform estimation from point correspondences."""

from __future__ import annotations

import logging
import math
from typing import Literal

import numpy as np
from scipy.spatial.transform import Rotation

from packages.core.cloud import Correspondences
from packages.core.transform import RigidTransform

logger = logging.getLogger(__name__)

EstimationMethod = Literal["point_to_point", "point_to_plane"]


def kabsch(source: np.ndarray, target: np.ndarray) -> RigidTransform:
    """Least-squares rotation + translation mapping *source* onto *target*.

    SVD Procrustes with the reflection correction, so the rotation always
    has determinant +1.
    """
    mu_s = source.mean(axis=0)
    mu_t = target.mean(axis=0)
    h = (source - mu_s).T @ (target - mu_t)
    u, _, vt = np.linalg.svd(h)
    d = np.sign(np.linalg.det(vt.T @ u.T)) or 1.0
    rotation = vt.T @ np.diag([1.0, 1.0, d]) @ u.T
    translation = mu_t - rotation @ mu_s
    return RigidTransform.from_rotation_translation(rotation, translation)


def point_to_plane(
    source: np.ndarray,
    target: np.ndarray,
    target_normals: np.ndarray,
) -> RigidTransform | None:
    """Linearised point-to-plane step (small-angle rotation).

    Minimises ``Σ ((R·p + t − q) · n)²``.  Returns *None* when the system is
    rank deficient, e.g. all normals parallel.
    """
    a = np.hstack([np.cross(source, target_normals), target_normals])
    b = -np.einsum("ij,ij->i", source - target, target_normals)
    if np.linalg.matrix_rank(a) < 6:
        return None
    x, *_ = np.linalg.lstsq(a, b, rcond=None)
    rotation = Rotation.from_rotvec(x[:3]).as_matrix()
    return RigidTransform.from_rotation_translation(rotation, x[3:])


def trim_outliers(
    correspondences: Correspondences,
    outlier_ratio: float,
    min_keep: int = 3,
) -> Correspondences:
    """Drop the worst *outlier_ratio* fraction of pairs by distance."""
    n = len(correspondences)
    if outlier_ratio <= 0 or n <= min_keep:
        return correspondences
    keep = max(min_keep, math.ceil(n * (1.0 - outlier_ratio)))
    if keep >= n:
        return correspondences
    order = np.argsort(correspondences.distances, kind="stable")[:keep]
    return correspondences.subset(np.sort(order))


def estimate_rigid_transform(
    correspondences: Correspondences,
    *,
    method: EstimationMethod = "point_to_point",
    target_normals: np.ndarray | None = None,
    outlier_ratio: float = 0.0,
    min_correspondences: int = 3,
) -> RigidTransform:
    """Incremental transform that moves the source points onto their targets.

    *target_normals* is the full normal array of the target cloud (indexed
    by ``correspondences.target_indices``) and is only used for
    ``point_to_plane``.  With fewer than *min_correspondences* pairs the
    identity is returned.
    """
    if len(correspondences) < max(3, min_correspondences):
        logger.debug("Only %d correspondences – returning identity", len(correspondences))
        return RigidTransform.identity()

    pairs = trim_outliers(correspondences, outlier_ratio, max(3, min_correspondences))

    if method == "point_to_plane":
        if target_normals is None:
            raise ValueError("point_to_plane estimation needs target normals")
        normals = np.asarray(target_normals, dtype=np.float64)[pairs.target_indices]
        step = point_to_plane(pairs.source_points, pairs.target_points, normals)
        if step is not None:
            return step
        logger.debug("Point-to-plane system is rank deficient – falling back to Kabsch")
    elif method != "point_to_point":
        raise ValueError(f"Unknown estimation method '{method}'")

    return kabsch(pairs.source_points, pairs.target_points)
