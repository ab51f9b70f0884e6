"""Loudness (energy) scoring."""
from typing import Optional
import numpy as np
from vocal_energy.audio.dsp.noise import RMS_FLOOR
from vocal_energy.audio.models import MetricThresholds, VolumeResult
from vocal_energy.core.numeric import clamp, round_half_up, round_to
from vocal_energy.services.metric_config import DEFAULT_METRIC_CONFIG, VOLUME, thresholds_for


def rms_db(samples: np.ndarray) -> float:
    """RMS level in dBFS; empty or silent input reads as -200 dB."""
    if len(samples) == 0:
        return float(20 * np.log10(RMS_FLOOR))
    rms = float(np.sqrt(np.mean(samples.astype(np.float64) ** 2)))
    return float(20 * np.log10(max(rms, RMS_FLOOR)))


def score_volume(db: float, thresholds: MetricThresholds) -> float:
    """
    Map a level in dB to 0-100.

    - below min: 0 (too quiet)
    - min to ideal: linear climb 0 -> 90
    - ideal to max: 90 -> 100 at the midpoint, back to 90 at max
    - above max: 90 minus 5 points per dB (clipping / shouting)
    """
    low, ideal, high = thresholds.min, thresholds.ideal, thresholds.max

    if ideal <= db <= high:
        midpoint = (ideal + high) / 2
        if db <= midpoint:
            if midpoint == ideal:
                return 90.0
            return 90 + (db - ideal) / (midpoint - ideal) * 10
        return 100 - (db - midpoint) / (high - midpoint) * 10
    if db > high:
        return max(0.0, 90 - (db - high) * 5)
    if db >= low:
        return (db - low) / (ideal - low) * 90
    return 0.0


def analyze_volume(
    samples: np.ndarray,
    thresholds: Optional[MetricThresholds] = None,
    device_db_offset: float = 0.0
) -> VolumeResult:
    """
    Score the speaking level of a buffer.

    Args:
        samples: Raw (not loudness-normalized) mono float samples
        thresholds: Volume thresholds in dB (defaults to the built-in config)
        device_db_offset: Microphone sensitivity correction added to the level
        
    Returns:
        VolumeResult with the corrected level rounded to 0.1 dB
    """
    if thresholds is None:
        thresholds = thresholds_for(DEFAULT_METRIC_CONFIG, VOLUME)

    db = rms_db(samples) + device_db_offset
    score = score_volume(db, thresholds)

    return VolumeResult(
        average_db=round_to(db, 1),
        score=int(clamp(round_half_up(score), 0, 100))
    )
