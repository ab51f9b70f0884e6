"""Readiness: how long before the speaker starts talking."""
from typing import Optional
import numpy as np
from vocal_energy.audio.dsp.noise import adaptive_onset_threshold
from vocal_energy.audio.models import MetricThresholds, ResponseTimeResult
from vocal_energy.core.numeric import clamp, round_half_up
from vocal_energy.services.metric_config import DEFAULT_METRIC_CONFIG, RESPONSE_TIME, thresholds_for

LATE_PENALTY_MS = 3000


def first_onset_index(samples: np.ndarray, sample_rate: int) -> int:
    """Index of the first sample louder than the adaptive threshold (0 if none)."""
    threshold = adaptive_onset_threshold(samples, sample_rate)
    above = np.flatnonzero(np.abs(samples) > threshold)
    return int(above[0]) if above.size else 0


def score_response_time(response_time_ms: float, thresholds: MetricThresholds) -> float:
    """
    Faster is better.

    The config stores the slow limit in `min` and the target in `ideal`.
    """
    max_ms, ideal_ms = thresholds.min, thresholds.ideal
    if response_time_ms <= ideal_ms:
        return 100.0
    if response_time_ms <= max_ms:
        return 100 - (response_time_ms - ideal_ms) / (max_ms - ideal_ms) * 50
    return max(0.0, 50 * (1 - (response_time_ms - max_ms) / LATE_PENALTY_MS))


def analyze_response_time(
    samples: np.ndarray,
    sample_rate: int,
    thresholds: Optional[MetricThresholds] = None
) -> ResponseTimeResult:
    """
    Measure the delay before the first audible sample.

    Args:
        samples: Mono float samples (normally the loudness-normalized buffer)
        sample_rate: Sample rate in Hz
        thresholds: Response-time thresholds in ms

    Returns:
        ResponseTimeResult
    """
    if thresholds is None:
        thresholds = thresholds_for(DEFAULT_METRIC_CONFIG, RESPONSE_TIME)

    response_time_ms = round_half_up(first_onset_index(samples, sample_rate) / sample_rate * 1000)
    score = score_response_time(response_time_ms, thresholds)

    return ResponseTimeResult(
        response_time_ms=response_time_ms,
        score=int(clamp(round_half_up(score), 0, 100))
    )
