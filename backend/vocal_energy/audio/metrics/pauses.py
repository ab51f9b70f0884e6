"""Fluidity: share of the recording spent not speaking."""
from typing import Optional
import numpy as np
from vocal_energy.audio.dsp.pacing import calculate_silence_ratio
from vocal_energy.audio.models import MetricThresholds, PauseResult, VADMetrics
from vocal_energy.core.logging import logger
from vocal_energy.core.numeric import clamp, round_half_up, round_to
from vocal_energy.services.metric_config import DEFAULT_METRIC_CONFIG, PAUSES, thresholds_for

NATURAL_PAUSE_RATIO = 0.1  # breathing room that is never penalized


def score_pauses(pause_ratio: float, max_ratio: float) -> float:
    if pause_ratio <= NATURAL_PAUSE_RATIO:
        return 100.0
    if max_ratio <= 0:
        return 0.0
    return clamp(100 - (pause_ratio - NATURAL_PAUSE_RATIO) / max_ratio * 100, 0, 100)


def analyze_pauses(
    samples: np.ndarray,
    sample_rate: int,
    vad_metrics: Optional[VADMetrics] = None,
    thresholds: Optional[MetricThresholds] = None
) -> PauseResult:
    """
    Score the pause ratio.

    VAD speech ratio is preferred; without VAD, 50ms frames below a fixed
    amplitude count as silent.

    Args:
        samples: Mono float samples (normally the loudness-normalized buffer)
        sample_rate: Sample rate in Hz
        vad_metrics: Optional VAD summary
        thresholds: Pause thresholds; `max` scales the penalty

    Returns:
        PauseResult with the ratio rounded to 2 decimals
    """
    if thresholds is None:
        thresholds = thresholds_for(DEFAULT_METRIC_CONFIG, PAUSES)

    if vad_metrics is not None:
        pause_ratio = 1 - vad_metrics.speech_ratio
        logger.debug(f"Pause analysis (VAD): speechRatio={vad_metrics.speech_ratio:.2f}, pauseRatio={pause_ratio:.2f}")
    else:
        pause_ratio = calculate_silence_ratio(samples, sample_rate)
        logger.debug(f"Pause analysis (energy): pauseRatio={pause_ratio:.2f}")

    score = score_pauses(pause_ratio, thresholds.max)
    return PauseResult(
        pause_ratio=round_to(pause_ratio, 2),
        score=int(clamp(round_half_up(score), 0, 100))
    )
