"""Load registration inputs from disk.

Supported formats
-----------------
* **Rooms JSON** – a list of :class:`CapturedRoom` objects, or an object
  with a ``rooms`` key holding that list.
* **PLY** – a raw point cloud via the ``plyfile`` library, with per-vertex
  normals when the file has ``nx``/``ny``/``nz``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import numpy as np
from plyfile import PlyData
from pydantic import TypeAdapter

from packages.core.cloud import PointCloud
from packages.core.types import CapturedRoom
from packages.registration.preprocess import estimate_normals

logger = logging.getLogger(__name__)

_ROOM_LIST = TypeAdapter(list[CapturedRoom])


def load_rooms(path: str | Path) -> list[CapturedRoom]:
    """Read captured rooms from a JSON file, in scan order."""
    p = Path(path)
    logger.info("📄 Reading rooms from %s", p.name)
    data = json.loads(p.read_text())
    if isinstance(data, dict):
        if "rooms" not in data:
            raise ValueError(f"{p.name}: expected a list of rooms or an object with 'rooms'")
        data = data["rooms"]
    rooms = _ROOM_LIST.validate_python(data)
    logger.info("✅ Loaded %d rooms", len(rooms))
    return rooms


def load_ply_cloud(path: str | Path, room_index: int = 0, *, normal_neighbours: int = 20) -> PointCloud:
    """Read a binary or ASCII PLY file into a :class:`PointCloud`.

    Normals are taken from the file when present, otherwise estimated by
    PCA over *normal_neighbours* nearest neighbours.
    """
    p = Path(path)
    if p.suffix.lower() != ".ply":
        raise ValueError(f"Unsupported point-cloud format '{p.suffix.lower()}'. Supported: .ply")

    logger.info("📄 Reading PLY file %s ...", p.name)
    ply = PlyData.read(str(p))
    vertex = ply["vertex"]
    xs = np.asarray(vertex["x"], dtype=np.float64)
    ys = np.asarray(vertex["y"], dtype=np.float64)
    zs = np.asarray(vertex["z"], dtype=np.float64)
    positions = np.column_stack((xs, ys, zs))
    logger.info("✅ PLY file loaded: %s vertices", f"{len(positions):,}")

    prop_names = [prop.name for prop in vertex.properties]
    if all(name in prop_names for name in ("nx", "ny", "nz")):
        normals = np.column_stack((
            np.asarray(vertex["nx"], dtype=np.float64),
            np.asarray(vertex["ny"], dtype=np.float64),
            np.asarray(vertex["nz"], dtype=np.float64),
        ))
        norms = np.linalg.norm(normals, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        normals = normals / norms
    else:
        logger.info("⚪ No normals in PLY file, estimating from %d neighbours", normal_neighbours)
        normals = estimate_normals(positions, k=normal_neighbours)

    return PointCloud(positions, normals, room_index)
