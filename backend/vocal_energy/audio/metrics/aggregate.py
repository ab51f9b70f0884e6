"""Weighted combination of the per-metric scores."""
from typing import Dict, Optional
from vocal_energy.audio.models import (
    AccelerationResult,
    AnalysisResult,
    NormalizationInfo,
    PauseResult,
    ResponseTimeResult,
    SpeechRateMethod,
    SpeechRateResult,
    VolumeResult
)
from vocal_energy.core.logging import logger
from vocal_energy.core.numeric import clamp, round_half_up
from vocal_energy.services.metric_config import ACCELERATION, PAUSES, RESPONSE_TIME, SPEECH_RATE, VOLUME

EXCELLENT_THRESHOLD = 70
GOOD_THRESHOLD = 40


def emotional_feedback(score: float) -> str:
    if score >= EXCELLENT_THRESHOLD:
        return "excellent"
    if score >= GOOD_THRESHOLD:
        return "good"
    return "poor"


def calculate_overall_score(scores: Dict[str, float], weights: Dict[str, float]) -> int:
    """
    Weighted sum of metric scores.

    Args:
        scores: Metric id -> score in [0, 100]
        weights: Metric id -> normalized weight (see normalized_weights)

    Returns:
        Overall score in [0, 100]
    """
    total = 0.0
    for metric_id, score in scores.items():
        weight = weights.get(metric_id, 0.0)
        points = score * weight
        total += points
        logger.debug(f"  {metric_id}: {score} x {weight * 100:.0f}% = {points:.1f} points")

    overall = int(clamp(round_half_up(total), 0, 100))
    logger.debug(f"  TOTAL: {overall}/100")
    return overall


def build_result(
    volume: VolumeResult,
    speech_rate: SpeechRateResult,
    acceleration: AccelerationResult,
    response_time: ResponseTimeResult,
    pauses: PauseResult,
    weights: Dict[str, float],
    normalization: Optional[NormalizationInfo] = None
) -> AnalysisResult:
    """Aggregate metric results into the final AnalysisResult."""
    overall = calculate_overall_score(
        {
            VOLUME: volume.score,
            SPEECH_RATE: speech_rate.score,
            ACCELERATION: acceleration.score,
            RESPONSE_TIME: response_time.score,
            PAUSES: pauses.score,
        },
        weights
    )
    return AnalysisResult(
        overall_score=overall,
        emotional_feedback=emotional_feedback(overall),
        volume=volume,
        speech_rate=speech_rate,
        acceleration=acceleration,
        response_time=response_time,
        pauses=pauses,
        normalization=normalization
    )


def zero_result(method: SpeechRateMethod) -> AnalysisResult:
    """Result for a recording in which no speech was detected."""
    return AnalysisResult(
        overall_score=0,
        emotional_feedback="poor",
        volume=VolumeResult(average_db=float("-inf"), score=0),
        speech_rate=SpeechRateResult(words_per_minute=0, score=0, method=method),
        acceleration=AccelerationResult(
            is_accelerating=False,
            segment1_volume=0.0,
            segment2_volume=0.0,
            segment1_rate=0,
            segment2_rate=0,
            score=0
        ),
        response_time=ResponseTimeResult(response_time_ms=0, score=0),
        pauses=PauseResult(pause_ratio=1.0, score=0)
    )
