"""
Speech tempo estimation.

Words per minute come either from an external transcription word count or
from acoustic syllable counting (spectral flux, energy peaks, or
VAD-gated energy peaks) divided by the syllables-per-word heuristic.
"""
from typing import Optional, Tuple
import numpy as np
from vocal_energy.audio.dsp.onsets import (
    detect_syllables_energy_peaks,
    detect_syllables_spectral_flux,
    detect_syllables_vad_gated
)
from vocal_energy.audio.models import MetricThresholds, SpeechRateMethod, SpeechRateResult, VADMetrics
from vocal_energy.core.config import settings
from vocal_energy.core.logging import logger
from vocal_energy.core.numeric import clamp, round_half_up
from vocal_energy.services.metric_config import DEFAULT_METRIC_CONFIG, SPEECH_RATE, thresholds_for


def effective_duration(num_samples: int, sample_rate: int, vad_metrics: Optional[VADMetrics] = None) -> float:
    """
    Duration in seconds used as the WPM denominator.

    Counting only speech time inflates WPM on short clips and counting the
    whole buffer deflates it, so with VAD segments half of the silence is
    subtracted from the total.
    """
    total = num_samples / sample_rate
    if vad_metrics is None or not vad_metrics.has_segments():
        return total
    speech = vad_metrics.total_speech_time / 1000
    silence = total - speech
    return total - silence / 2


def _wpm_from_words(word_count: float, duration: float) -> int:
    if duration <= 0:
        return 0
    return round_half_up(word_count / duration * 60)


def _wpm_from_syllables(syllables: int, duration: float) -> int:
    return _wpm_from_words(syllables / settings.syllables_per_word, duration)


def _spectral_flux_wpm(samples, sample_rate, vad_metrics, duration) -> Tuple[int, SpeechRateMethod]:
    syllables = detect_syllables_spectral_flux(samples, sample_rate, vad_metrics)
    return _wpm_from_syllables(syllables, duration), SpeechRateMethod.SPECTRAL_FLUX


def _energy_peaks_wpm(samples, sample_rate, vad_metrics, duration) -> Tuple[int, SpeechRateMethod]:
    if vad_metrics is not None and vad_metrics.has_segments():
        syllables = detect_syllables_vad_gated(samples, sample_rate, vad_metrics)
        return _wpm_from_syllables(syllables, duration), SpeechRateMethod.VAD_ENHANCED
    syllables = detect_syllables_energy_peaks(samples, sample_rate)
    return _wpm_from_syllables(syllables, duration), SpeechRateMethod.ENERGY_PEAKS


def score_speech_rate(wpm: int, thresholds: MetricThresholds) -> float:
    """Faster is more energetic: 0 below min, linear up to ideal, 100 beyond."""
    if wpm <= 0 or wpm < thresholds.min:
        return 0.0
    if wpm < thresholds.ideal:
        return (wpm - thresholds.min) / (thresholds.ideal - thresholds.min) * 100
    return 100.0


def analyze_speech_rate(
    samples: np.ndarray,
    sample_rate: int,
    vad_metrics: Optional[VADMetrics] = None,
    stt_word_count: Optional[int] = None,
    method: SpeechRateMethod = SpeechRateMethod.SPECTRAL_FLUX,
    thresholds: Optional[MetricThresholds] = None
) -> SpeechRateResult:
    """
    Estimate and score words per minute.

    Args:
        samples: Mono float samples (normally the loudness-normalized buffer)
        sample_rate: Sample rate in Hz
        vad_metrics: Optional speech segments
        stt_word_count: Word count from a transcription. None means no count
            was supplied at all (e.g. a half-buffer), which forces spectral
            flux whatever the configured method; 0 means the transcriber
            found nothing and the transcript methods fall back to spectral flux.
        method: Configured estimation method
        thresholds: Speech-rate thresholds in WPM

    Returns:
        SpeechRateResult with the method actually used
    """
    if thresholds is None:
        thresholds = thresholds_for(DEFAULT_METRIC_CONFIG, SPEECH_RATE)
    if stt_word_count is None:
        method = SpeechRateMethod.SPECTRAL_FLUX

    duration = effective_duration(len(samples), sample_rate, vad_metrics)

    if method.uses_transcript:
        if stt_word_count is not None and stt_word_count > 0:
            wpm = _wpm_from_words(stt_word_count, duration)
            used = method
            logger.info(f"Speech rate ({method.value}): {stt_word_count} words, {wpm} WPM over {duration:.2f}s")
        else:
            logger.warning(f"{method.value} produced no words, falling back to spectral-flux")
            wpm, used = _spectral_flux_wpm(samples, sample_rate, vad_metrics, duration)
    elif method is SpeechRateMethod.SPECTRAL_FLUX:
        wpm, used = _spectral_flux_wpm(samples, sample_rate, vad_metrics, duration)
    else:
        # energy-peaks and vad-enhanced both pick VAD gating when segments exist
        wpm, used = _energy_peaks_wpm(samples, sample_rate, vad_metrics, duration)

    logger.debug(f"Speech rate ({used.value}): {wpm} WPM over {duration:.2f}s")

    score = score_speech_rate(wpm, thresholds)
    return SpeechRateResult(
        words_per_minute=wpm,
        score=int(clamp(round_half_up(score), 0, 100)),
        method=used
    )
