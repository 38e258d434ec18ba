"""Iterative Closest Point registration of one room against another.

The loop alternates correspondence search and transform estimation, left-
multiplying each increment into the accumulated transform, until the RMS
error stops changing by more than ``convergence_threshold`` or the iteration
budget runs out.  Running out of iterations is reported in the result, not
raised.
"""

from __future__ import annotations

import logging
import threading
import time

from packages.core.cloud import PointCloud
from packages.core.config import RegistrationConfig
from packages.core.transform import RigidTransform
from packages.core.types import AlignmentResult, IcpState
from packages.registration.correspondence import CorrespondenceFinder
from packages.registration.estimate import estimate_rigid_transform

logger = logging.getLogger(__name__)


def confidence_from_error(error: float, max_error: float = 1.0) -> float:
    """Map an RMS error onto ``[0, 1]``: 1 for a perfect fit, 0 at *max_error* or worse."""
    if max_error <= 0:
        raise ValueError("max_error must be positive")
    return max(0.0, 1.0 - min(error, max_error) / max_error)


def degenerate_result(
    source_index: int,
    target_index: int,
    reason: str,
) -> AlignmentResult:
    """Identity transform with zero confidence."""
    return AlignmentResult(
        source_room_index=source_index,
        target_room_index=target_index,
        transform=RigidTransform.identity().to_list(),
        error=float("inf"),
        confidence=0.0,
        state=IcpState.DEGENERATE,
        stop_reason=reason,
    )


def register_pair(
    source: PointCloud,
    target: PointCloud,
    config: RegistrationConfig | None = None,
    *,
    cancel: threading.Event | None = None,
) -> AlignmentResult:
    """Register *source* onto *target* and return the pairwise result.

    *cancel* is checked once per iteration; setting it (or exceeding
    ``config.max_seconds``) stops the loop with whatever transform has been
    accumulated so far.
    """
    config = config or RegistrationConfig()
    logger.info(
        "⚙️ Running ICP (source room %d: %d points, target room %d: %d points)",
        source.room_index, len(source), target.room_index, len(target),
    )

    if source.is_empty or target.is_empty:
        logger.warning(
            "⚠️ Empty point cloud in pair %d → %d, skipping registration",
            source.room_index, target.room_index,
        )
        return degenerate_result(source.room_index, target.room_index, "empty point cloud")

    finder = CorrespondenceFinder(
        target.points,
        config.max_correspondence_distance,
        method=config.correspondence_method,
        workers=config.workers,
    )
    deadline = None if config.max_seconds is None else time.monotonic() + config.max_seconds

    transform = RigidTransform.identity()
    previous_error = float("inf")
    state = IcpState.ITERATING
    stop_reason: str | None = None
    iterations = 0

    for iteration in range(config.max_iterations):
        if cancel is not None and cancel.is_set():
            stop_reason = "cancelled"
            break
        if deadline is not None and time.monotonic() > deadline:
            stop_reason = "timeout"
            break

        moved = transform.apply(source.points)
        correspondences = finder.find(moved)
        current_error = correspondences.rms_error()
        iterations = iteration + 1
        logger.debug(
            "ICP iteration %d: %d correspondences, error %.6f",
            iterations, len(correspondences), current_error,
        )

        if len(correspondences) == 0:
            state = IcpState.DEGENERATE
            stop_reason = "no correspondences"
            break

        if abs(previous_error - current_error) < config.convergence_threshold:
            state = IcpState.CONVERGED
            logger.info(
                "✅ ICP converged after %d iterations (error: %.6f)", iterations, current_error,
            )
            break

        delta = estimate_rigid_transform(
            correspondences,
            method=config.estimation,
            target_normals=target.normals,
            outlier_ratio=config.outlier_ratio,
            min_correspondences=config.min_correspondences,
        )
        transform = delta @ transform
        previous_error = current_error

    if state == IcpState.ITERATING:
        state = IcpState.MAX_ITERATIONS_REACHED
        if stop_reason is None:
            logger.warning(
                "⚠️ ICP reached %d iterations without convergence", config.max_iterations,
            )
        else:
            logger.warning("⚠️ ICP stopped early after %d iterations (%s)", iterations, stop_reason)

    final = finder.find(transform.apply(source.points))
    error = final.rms_error()
    if len(final) == 0:
        logger.warning(
            "⚠️ No correspondences between room %d and room %d within %.2f",
            source.room_index, target.room_index, config.max_correspondence_distance,
        )

    return AlignmentResult(
        source_room_index=source.room_index,
        target_room_index=target.room_index,
        transform=transform.to_list(),
        error=error,
        confidence=confidence_from_error(error, config.max_error),
        state=state,
        iterations=iterations,
        correspondence_count=len(final),
        stop_reason=stop_reason,
    )
