"""Rigid 4×4 homogeneous transforms."""

from __future__ import annotations

from functools import reduce
from typing import Iterable

import numpy as np
from scipy.spatial.transform import Rotation

from packages.core.types import Quaternion


class RigidTransform:
    """A rotation + translation stored as a 4×4 homogeneous matrix.

    Instances are treated as values: every operation returns a new transform.
    """

    __slots__ = ("_matrix",)

    def __init__(self, matrix: np.ndarray | None = None):
        if matrix is None:
            matrix = np.eye(4)
        m = np.array(matrix, dtype=np.float64)
        if m.shape != (4, 4):
            raise ValueError(f"Expected a 4x4 matrix, got shape {m.shape}")
        m.setflags(write=False)
        self._matrix = m

    # ── constructors ─────────────────────────────────────────────────
    @classmethod
    def identity(cls) -> RigidTransform:
        return cls()

    @classmethod
    def from_rotation_translation(
        cls, rotation: np.ndarray | None = None, translation: np.ndarray | None = None,
    ) -> RigidTransform:
        m = np.eye(4)
        if rotation is not None:
            m[:3, :3] = rotation
        if translation is not None:
            m[:3, 3] = translation
        return cls(m)

    @classmethod
    def from_list(cls, rows: list[list[float]]) -> RigidTransform:
        return cls(np.asarray(rows, dtype=np.float64))

    # ── accessors ────────────────────────────────────────────────────
    @property
    def matrix(self) -> np.ndarray:
        return self._matrix

    @property
    def rotation(self) -> np.ndarray:
        return self._matrix[:3, :3].copy()

    @property
    def translation(self) -> np.ndarray:
        return self._matrix[:3, 3].copy()

    def to_list(self) -> list[list[float]]:
        return self._matrix.tolist()

    def to_quaternion(self) -> Quaternion:
        x, y, z, w = Rotation.from_matrix(self.rotation).as_quat()
        return Quaternion(x=float(x), y=float(y), z=float(z), w=float(w))

    # ── algebra ──────────────────────────────────────────────────────
    def compose(self, other: RigidTransform) -> RigidTransform:
        """``self ∘ other``: apply *other* first, then *self*."""
        return RigidTransform(self._matrix @ other._matrix)

    def __matmul__(self, other: RigidTransform) -> RigidTransform:
        if not isinstance(other, RigidTransform):
            return NotImplemented
        return self.compose(other)

    def inverse(self) -> RigidTransform:
        r = self._matrix[:3, :3]
        t = self._matrix[:3, 3]
        return RigidTransform.from_rotation_translation(r.T, -r.T @ t)

    def apply(self, points: np.ndarray) -> np.ndarray:
        """Transform an ``(N, 3)`` point array."""
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        return pts @ self._matrix[:3, :3].T + self._matrix[:3, 3]

    def rotate(self, vectors: np.ndarray) -> np.ndarray:
        """Rotate direction vectors (no translation)."""
        vecs = np.asarray(vectors, dtype=np.float64).reshape(-1, 3)
        return vecs @ self._matrix[:3, :3].T

    # ── checks ───────────────────────────────────────────────────────
    def is_rigid(self, atol: float = 1e-6) -> bool:
        """Finite, bottom row ``[0, 0, 0, 1]``, orthonormal rotation with det +1."""
        m = self._matrix
        if not np.all(np.isfinite(m)):
            return False
        if not np.allclose(m[3, :], [0.0, 0.0, 0.0, 1.0], atol=atol):
            return False
        r = m[:3, :3]
        if not np.allclose(r @ r.T, np.eye(3), atol=atol):
            return False
        return bool(np.isclose(np.linalg.det(r), 1.0, atol=atol))

    def is_identity(self, atol: float = 1e-9) -> bool:
        return bool(np.allclose(self._matrix, np.eye(4), atol=atol))

    def allclose(self, other: RigidTransform, atol: float = 1e-8) -> bool:
        return bool(np.allclose(self._matrix, other._matrix, atol=atol))

    def __repr__(self) -> str:
        t = self._matrix[:3, 3]
        return f"RigidTransform(t=[{t[0]:.4f}, {t[1]:.4f}, {t[2]:.4f}])"


def compose_transforms(transforms: Iterable[RigidTransform]) -> RigidTransform:
    """Left-to-right product ``T1 @ T2 @ … @ Tn`` (identity for no input)."""
    return reduce(lambda acc, t: acc @ t, transforms, RigidTransform.identity())
