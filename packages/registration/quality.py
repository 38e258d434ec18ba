"""Summarise pairwise alignment confidence into an overall quality report."""

from __future__ import annotations

import logging
from typing import Sequence

from packages.core.types import AlignmentQuality, AlignmentResult, IcpState

logger = logging.getLogger(__name__)


def assess_alignment_quality(
    results: Sequence[AlignmentResult],
    *,
    low_confidence_threshold: float = 0.7,
) -> AlignmentQuality:
    """Mean pairwise confidence plus one issue per weak pair.

    With no pairs (a single-room building) the score is 0.0 and there are
    no issues.
    """
    scores = [r.confidence for r in results]
    if not scores:
        logger.info("⚠️ Only one room captured, no alignment to assess")
        return AlignmentQuality(overall_score=0.0, room_alignment_scores=[], issues=[])

    overall = sum(scores) / len(scores)

    issues: list[str] = []
    for result in results:
        if result.confidence < low_confidence_threshold:
            issues.append(
                f"Low confidence alignment between rooms {result.source_room_index} "
                f"and {result.target_room_index} (confidence {result.confidence:.2f})"
            )
        if result.state == IcpState.MAX_ITERATIONS_REACHED:
            logger.info(
                "Pair %d → %d did not converge (%s)",
                result.source_room_index, result.target_room_index,
                result.stop_reason or "iteration limit",
            )

    quality = AlignmentQuality(
        overall_score=min(1.0, max(0.0, overall)),
        room_alignment_scores=scores,
        issues=issues,
    )
    logger.info(
        "📐 Alignment quality %.3f (%s), %d issue(s)",
        quality.overall_score, quality.quality_level.value, len(issues),
    )
    return quality
