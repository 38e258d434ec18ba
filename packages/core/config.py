"""Tunable parameters for a registration run."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class RegistrationConfig(BaseModel):
    """Every knob of the registration pipeline in one frozen model.

    The confidence mapping (``max_error``) and the low-confidence threshold
    have no empirical basis beyond "works on typical indoor scans"; tune them
    per capture device.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # ICP loop
    max_iterations: int = Field(default=50, ge=1)
    convergence_threshold: float = Field(default=0.001, gt=0.0)
    max_correspondence_distance: float = Field(default=0.5, gt=0.0)
    max_seconds: Optional[float] = Field(default=None, gt=0.0, description="Wall-clock budget per room pair")

    # transform estimation
    estimation: Literal["point_to_point", "point_to_plane"] = "point_to_plane"
    outlier_ratio: float = Field(default=0.1, ge=0.0, lt=1.0)
    min_correspondences: int = Field(default=3, ge=3)

    # correspondence search
    correspondence_method: Literal["kdtree", "brute_force"] = "kdtree"
    workers: int = Field(default=1, description="cKDTree query threads, -1 for all cores")

    # scoring
    max_error: float = Field(default=1.0, gt=0.0, description="RMS error mapped to confidence 0")
    low_confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)

    # extraction / metrics
    sample_spacing: float = Field(default=0.1, gt=0.0)
    voxel_size: Optional[float] = Field(default=None, gt=0.0)
    default_ceiling_height: float = Field(default=2.5, gt=0.0)

    @classmethod
    def from_file(cls, path: str | Path) -> RegistrationConfig:
        """Load a config from a JSON file; missing keys keep their defaults."""
        return cls.model_validate_json(Path(path).read_text())
