"""Dynamics: does the speaker build energy from the first half to the second?"""
from typing import Optional, Tuple
import numpy as np
from vocal_energy.audio.metrics.speech_rate import analyze_speech_rate
from vocal_energy.audio.metrics.volume import analyze_volume
from vocal_energy.audio.models import AccelerationResult, MetricThresholds, VADMetrics, VADSegment
from vocal_energy.core.numeric import clamp, round_half_up, round_to
from vocal_energy.services.metric_config import DEFAULT_METRIC_CONFIG, SPEECH_RATE, VOLUME, thresholds_for

RATE_INCREASE_WPM = 5
VOLUME_FACTOR = 2.0
RATE_FACTOR = 0.5
BASE_SCORE = 50


def split_vad_metrics(
    vad_metrics: Optional[VADMetrics],
    midpoint_ms: float
) -> Tuple[Optional[VADMetrics], Optional[VADMetrics]]:
    """
    Split speech segments at a time offset.

    Segments straddling the midpoint belong to neither half. Second-half
    segments are shifted to start at 0. A half without segments gets no VAD.
    """
    if vad_metrics is None or not vad_metrics.has_segments():
        return None, None

    first = [s for s in vad_metrics.segments if s.end <= midpoint_ms]
    second = [
        VADSegment(start=s.start - midpoint_ms, end=s.end - midpoint_ms, duration=s.duration)
        for s in vad_metrics.segments
        if s.start >= midpoint_ms
    ]

    def half(segments):
        if not segments:
            return None
        return VADMetrics.from_segments(
            segments,
            midpoint_ms,
            is_speaking=vad_metrics.is_speaking,
            speech_probability=vad_metrics.speech_probability
        )

    return half(first), half(second)


def analyze_acceleration(
    samples: np.ndarray,
    sample_rate: int,
    vad_metrics: Optional[VADMetrics] = None,
    volume_thresholds: Optional[MetricThresholds] = None,
    rate_thresholds: Optional[MetricThresholds] = None
) -> AccelerationResult:
    """
    Compare loudness and tempo of the two halves of a recording.

    Each half is scored with the volume and speech-rate analyzers. The rate
    analysis gets no word count, so it always uses spectral flux: a
    transcript cannot be split between halves.

    Args:
        samples: Mono float samples (normally the loudness-normalized buffer)
        sample_rate: Sample rate in Hz
        vad_metrics: Optional speech segments for the whole buffer
        volume_thresholds: Thresholds passed to the per-half volume analysis
        rate_thresholds: Thresholds passed to the per-half rate analysis

    Returns:
        AccelerationResult (score 50 for a steady delivery, higher when building)
    """
    if volume_thresholds is None:
        volume_thresholds = thresholds_for(DEFAULT_METRIC_CONFIG, VOLUME)
    if rate_thresholds is None:
        rate_thresholds = thresholds_for(DEFAULT_METRIC_CONFIG, SPEECH_RATE)

    midpoint = len(samples) // 2
    first, second = samples[:midpoint], samples[midpoint:]
    midpoint_ms = len(samples) / sample_rate * 1000 / 2
    vad1, vad2 = split_vad_metrics(vad_metrics, midpoint_ms)

    vol1 = analyze_volume(first, volume_thresholds)
    vol2 = analyze_volume(second, volume_thresholds)
    rate1 = analyze_speech_rate(first, sample_rate, vad1, None, thresholds=rate_thresholds)
    rate2 = analyze_speech_rate(second, sample_rate, vad2, None, thresholds=rate_thresholds)

    volume_increase = vol2.average_db - vol1.average_db
    rate_increase = rate2.words_per_minute - rate1.words_per_minute

    is_accelerating = volume_increase > 0 or rate_increase > RATE_INCREASE_WPM
    acceleration_factor = max(0.0, volume_increase * VOLUME_FACTOR + rate_increase * RATE_FACTOR)

    return AccelerationResult(
        is_accelerating=is_accelerating,
        segment1_volume=round_to(vol1.average_db, 1),
        segment2_volume=round_to(vol2.average_db, 1),
        segment1_rate=rate1.words_per_minute,
        segment2_rate=rate2.words_per_minute,
        score=int(clamp(round_half_up(BASE_SCORE + acceleration_factor), 0, 100))
    )
