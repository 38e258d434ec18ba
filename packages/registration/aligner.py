"""Chain registration: every room is registered against the one before it."""

from __future__ import annotations

import logging
import threading
from typing import Sequence

import numpy as np

from packages.core.cloud import PointCloud
from packages.core.config import RegistrationConfig
from packages.core.types import AlignmentResult
from packages.registration.icp import degenerate_result, register_pair

logger = logging.getLogger(__name__)


def align_pairwise(
    clouds: Sequence[PointCloud],
    config: RegistrationConfig | None = None,
    *,
    cancel: threading.Event | None = None,
) -> list[AlignmentResult]:
    """Register cloud *i* onto cloud *i − 1* for ``i = 1 … N−1``.

    Returns ``N − 1`` results in order.  A pair that fails numerically gets
    an identity, zero-confidence result and the chain carries on.
    """
    config = config or RegistrationConfig()
    logger.info("🔄 Performing pairwise alignment for %d point clouds", len(clouds))

    results: list[AlignmentResult] = []
    for i in range(1, len(clouds)):
        source, target = clouds[i], clouds[i - 1]
        logger.info("🔗 Aligning room %d to room %d", source.room_index, target.room_index)
        try:
            result = register_pair(source, target, config, cancel=cancel)
        except (np.linalg.LinAlgError, ValueError):
            logger.exception(
                "❌ Registration of room %d onto room %d failed",
                source.room_index, target.room_index,
            )
            result = degenerate_result(source.room_index, target.room_index, "failed")
        results.append(result)
    return results
