"""Device calibration and loudness normalization of a recording."""
from dataclasses import dataclass
from typing import Optional
import numpy as np
from vocal_energy.audio.dsp.gain import apply_gain
from vocal_energy.audio.dsp.loudness import calculate_lufs, normalize_to_lufs
from vocal_energy.audio.dsp.noise import calculate_noise_floor
from vocal_energy.audio.models import CalibrationProfile, NormalizationInfo
from vocal_energy.core.config import settings
from vocal_energy.core.logging import logger
from vocal_energy.core.numeric import round_to
from vocal_energy.services.calibration_store import CalibrationStore


@dataclass(frozen=True)
class NormalizationOutcome:
    normalized: np.ndarray
    original_lufs: float
    calibrated_lufs: float
    final_lufs: float
    device_gain: float
    normalization_gain: float

    def info(self) -> NormalizationInfo:
        """Rounded diagnostics for the analysis result."""
        return NormalizationInfo(
            original_lufs=round_to(self.original_lufs, 1),
            calibrated_lufs=round_to(self.calibrated_lufs, 1),
            final_lufs=round_to(self.final_lufs, 1),
            device_gain=round_to(self.device_gain, 2),
            normalization_gain=round_to(self.normalization_gain, 2)
        )


def calibrate_and_normalize(
    samples: np.ndarray,
    sample_rate: int,
    calibration: Optional[CalibrationStore] = None,
    device_id: Optional[str] = None,
    target_lufs: Optional[float] = None
) -> NormalizationOutcome:
    """
    Apply the device's calibration gain, then normalize to the target loudness.

    The returned buffer feeds the tempo, dynamics, latency and pause
    analyzers. When the device has a profile, the recording's loudness is
    appended to its history for drift detection.

    Args:
        samples: Raw mono float samples in [-1, 1]
        sample_rate: Sample rate in Hz
        calibration: Store holding device profiles (None = no calibration)
        device_id: Microphone identifier
        target_lufs: Normalization target (defaults to settings.target_lufs)

    Returns:
        NormalizationOutcome with the normalized buffer and loudness diagnostics
    """
    if target_lufs is None:
        target_lufs = settings.target_lufs

    original_lufs = calculate_lufs(samples, sample_rate)
    calibrated = samples
    device_gain = 1.0

    profile = None
    if calibration is not None and device_id:
        profile = calibration.get_profile(device_id)
    if profile is not None and profile.gain_adjustment != 1:
        device_gain = profile.gain_adjustment
        calibrated = apply_gain(samples, device_gain)

    calibrated_lufs = calculate_lufs(calibrated, sample_rate)
    result = normalize_to_lufs(calibrated, sample_rate, target_lufs)
    final_lufs = calculate_lufs(result.normalized, sample_rate)

    if profile is not None:
        calibration.track_recording(
            device_id,
            original_lufs=original_lufs,
            calibrated_lufs=calibrated_lufs,
            final_lufs=final_lufs,
            noise_floor=calculate_noise_floor(samples, sample_rate)
        )

    return NormalizationOutcome(
        normalized=result.normalized,
        original_lufs=original_lufs,
        calibrated_lufs=calibrated_lufs,
        final_lufs=final_lufs,
        device_gain=device_gain,
        normalization_gain=result.gain_linear
    )


def device_db_offset(profile: Optional[CalibrationProfile], target_lufs: Optional[float] = None) -> float:
    """
    dB correction applied to the raw level for loudness scoring only.

    Compensates for microphone sensitivity without erasing the difference
    between a loud and a quiet delivery, which full normalization would do.
    """
    if profile is None:
        return 0.0
    if target_lufs is None:
        target_lufs = settings.target_lufs
    offset = target_lufs - profile.reference_level
    if not np.isfinite(offset):
        logger.warning(f"Ignoring non-finite reference level for device {profile.device_id}")
        return 0.0
    return float(offset)
