"""Main speech analysis pipeline orchestrator."""
import time
from typing import List, Optional
import numpy as np
from vocal_energy.audio.metrics.acceleration import analyze_acceleration
from vocal_energy.audio.metrics.aggregate import build_result, zero_result
from vocal_energy.audio.metrics.pauses import analyze_pauses
from vocal_energy.audio.metrics.response_time import analyze_response_time
from vocal_energy.audio.metrics.speech_rate import analyze_speech_rate
from vocal_energy.audio.metrics.volume import analyze_volume
from vocal_energy.audio.models import AnalysisResult, MetricConfig, SpeechRateMethod, VADMetrics
from vocal_energy.audio.normalization import calibrate_and_normalize, device_db_offset
from vocal_energy.core.logging import logger
from vocal_energy.services.calibration_store import CalibrationStore, calibration_store
from vocal_energy.services.metric_config import (
    PAUSES,
    RESPONSE_TIME,
    SPEECH_RATE,
    VOLUME,
    metric_config_store,
    normalized_weights,
    speech_rate_method_of,
    thresholds_for
)
from vocal_energy.services.transcription import TranscriptionClient, transcription_client

MIN_SPEECH_RATIO = 0.02
MIN_SPEECH_MS = 200


def has_speech(vad_metrics: Optional[VADMetrics]) -> bool:
    """False only when a VAD summary says the recording holds no real speech."""
    if vad_metrics is None:
        return True
    return vad_metrics.speech_ratio > MIN_SPEECH_RATIO and vad_metrics.total_speech_time > MIN_SPEECH_MS


async def _transcribed_word_count(
    transcriber: TranscriptionClient,
    method: SpeechRateMethod,
    audio_blob: Optional[bytes]
) -> Optional[int]:
    if method is not SpeechRateMethod.DEEPGRAM_STT:
        return None
    if not audio_blob:
        logger.warning("Deepgram STT selected but no audio blob provided - falling back to spectral-flux")
        return None

    outcome = await transcriber.transcribe_async(audio_blob)
    if not outcome.ok:
        logger.warning(f"Transcription failed ({outcome.error}), falling back to spectral-flux")
        return None
    return outcome.word_count


async def analyze_audio(
    samples: np.ndarray,
    sample_rate: int,
    device_id: Optional[str] = None,
    vad_metrics: Optional[VADMetrics] = None,
    stt_word_count: Optional[int] = None,
    audio_blob: Optional[bytes] = None,
    *,
    calibration: Optional[CalibrationStore] = None,
    metric_config: Optional[List[MetricConfig]] = None,
    transcriber: Optional[TranscriptionClient] = None
) -> AnalysisResult:
    """
    Score one recording.

    The pipeline runs in order:
    1. No-speech guard (VAD says nothing was said -> all-zero result)
    2. Device calibration gain + LUFS normalization (when a device id is given)
    3. Volume on the raw buffer, corrected by the device's dB offset
    4. Optional transcription for the word count
    5. Speech rate, acceleration, response time and pauses on the normalized buffer
    6. Weighted aggregation

    Args:
        samples: Mono float samples in [-1, 1]
        sample_rate: Sample rate in Hz
        device_id: Microphone identifier for calibration lookup
        vad_metrics: Speech segments from the voice-activity detector
        stt_word_count: Word count from a client-side recognizer
        audio_blob: Encoded recording forwarded to the transcription service
        calibration: Profile store (defaults to the global store)
        metric_config: Metric configuration (defaults to the stored config)
        transcriber: Transcription client (defaults to the global client)

    Returns:
        AnalysisResult; never raises for bad audio or unavailable services
    """
    if calibration is None:
        calibration = calibration_store
    if metric_config is None:
        metric_config = metric_config_store.load()
    if transcriber is None:
        transcriber = transcription_client

    method = speech_rate_method_of(metric_config)

    if not has_speech(vad_metrics):
        logger.info("No speech detected by VAD - returning zero scores")
        return zero_result(method)

    start_time = time.time()
    samples = np.asarray(samples, dtype=np.float32)

    try:
        processed = samples
        normalization = None
        offset = 0.0

        # Normalized buffer feeds tempo, dynamics, latency and pauses; volume stays raw
        if device_id:
            outcome = calibrate_and_normalize(samples, sample_rate, calibration, device_id)
            processed = outcome.normalized
            normalization = outcome.info()
            logger.info(f"LUFS normalization applied: {normalization.to_dict()}")

            profile = calibration.get_profile(device_id, touch=False)
            offset = device_db_offset(profile)
            if profile is not None:
                logger.info(f"Volume offset: {offset:.1f} dB (ref={profile.reference_level:.1f} LUFS)")

        if vad_metrics is not None:
            logger.debug(
                f"VAD metrics: {len(vad_metrics.segments)} segments, "
                f"speechRatio={vad_metrics.speech_ratio:.2f}, totalSpeechTime={vad_metrics.total_speech_time:.0f}ms"
            )

        volume = analyze_volume(samples, thresholds_for(metric_config, VOLUME), offset)

        transcribed = await _transcribed_word_count(transcriber, method, audio_blob)
        word_count = transcribed if transcribed is not None else stt_word_count
        logger.debug(f"Final STT word count: {word_count} (transcribed: {transcribed}, client: {stt_word_count})")

        speech_rate = analyze_speech_rate(
            processed,
            sample_rate,
            vad_metrics,
            word_count,
            method=method,
            thresholds=thresholds_for(metric_config, SPEECH_RATE)
        )
        acceleration = analyze_acceleration(
            processed,
            sample_rate,
            vad_metrics,
            volume_thresholds=thresholds_for(metric_config, VOLUME),
            rate_thresholds=thresholds_for(metric_config, SPEECH_RATE)
        )
        response_time = analyze_response_time(processed, sample_rate, thresholds_for(metric_config, RESPONSE_TIME))
        pauses = analyze_pauses(processed, sample_rate, vad_metrics, thresholds_for(metric_config, PAUSES))

        result = build_result(
            volume,
            speech_rate,
            acceleration,
            response_time,
            pauses,
            normalized_weights(metric_config),
            normalization
        )
    except Exception as e:
        logger.error(f"Error analyzing recording (device={device_id}): {e}", exc_info=True)
        return zero_result(method)

    processing_time = (time.time() - start_time) * 1000
    logger.info(
        f"Analysis complete in {processing_time:.1f}ms: score={result.overall_score} ({result.emotional_feedback})"
    )
    return result
