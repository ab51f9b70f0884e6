"""Per-device calibration profiles and drift detection."""
import json
import threading
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional
import numpy as np
from vocal_energy.audio.dsp.gain import clamp_gain, db_to_linear
from vocal_energy.audio.dsp.loudness import calculate_lufs
from vocal_energy.audio.dsp.noise import calculate_noise_floor
from vocal_energy.audio.models import CalibrationProfile, RecordingStats, now_ms
from vocal_energy.core.config import settings
from vocal_energy.core.logging import logger
from vocal_energy.core.storage import KeyValueStore, kv_store

CALIBRATION_STORAGE_KEY = "audio_calibration_profiles"

MIN_HISTORY_FOR_CHECK = 3
LUFS_VARIANCE_THRESHOLD = 5.0  # LUFS
NOISE_FLOOR_VARIANCE_THRESHOLD = 10.0  # dB
MAX_PROFILE_AGE_DAYS = 30
DRIFT_THRESHOLD = 3.0  # LUFS
MS_PER_DAY = 1000 * 60 * 60 * 24


@dataclass(frozen=True)
class RecalibrationSuggestion:
    should_recalibrate: bool
    reason: Optional[str] = None
    variance: Optional[float] = None
    threshold: Optional[float] = None
    age_based: bool = False

    def to_dict(self) -> dict:
        data = {"shouldRecalibrate": self.should_recalibrate}
        if self.reason is not None:
            data["reason"] = self.reason
        if self.variance is not None:
            data["variance"] = self.variance
        if self.threshold is not None:
            data["threshold"] = self.threshold
        return data


@dataclass(frozen=True)
class RecalibrationStatus:
    status: str  # "good" | "warning" | "recommend"
    message: str
    variance: Optional[float] = None

    def to_dict(self) -> dict:
        data = {"status": self.status, "message": self.message}
        if self.variance is not None:
            data["variance"] = self.variance
        return data


def measure_noise_floor(silence: np.ndarray, sample_rate: int) -> float:
    """Calibration phase 1: noise floor (dB) of a silence capture."""
    return calculate_noise_floor(silence, sample_rate)


def measure_reference_level(speech: np.ndarray, sample_rate: int) -> float:
    """Calibration phase 2: integrated loudness (LUFS) of normal speech."""
    return calculate_lufs(speech, sample_rate)


def create_calibration_profile(
    device_id: str,
    device_label: str,
    noise_floor: float,
    reference_level: float,
    target_level: Optional[float] = None,
    timestamp: Optional[int] = None
) -> CalibrationProfile:
    """
    Create a calibration profile from the two wizard measurements.

    The gain needed to bring `reference_level` to `target_level` is clamped
    to [0.1, 10] whatever the inputs, including infinite or NaN levels.

    Args:
        device_id: Microphone identifier
        device_label: Human-readable microphone name
        noise_floor: Measured background noise (dB)
        reference_level: Measured speaking loudness (LUFS)
        target_level: Loudness the device should be corrected to (defaults to settings.target_lufs)
        timestamp: Creation time in epoch ms (defaults to now)

    Returns:
        New CalibrationProfile with an empty recording history
    """
    if target_level is None:
        target_level = settings.target_lufs
    if timestamp is None:
        timestamp = now_ms()

    gain_db = target_level - reference_level
    if np.isnan(gain_db):
        gain = float("nan")
    else:
        # Clamp in the dB domain first; 10 ** (huge / 20) overflows
        gain = db_to_linear(float(np.clip(gain_db, -40.0, 40.0)))

    return CalibrationProfile(
        device_id=device_id,
        device_label=device_label,
        noise_floor=noise_floor,
        reference_level=reference_level,
        gain_adjustment=clamp_gain(gain, settings.min_device_gain, settings.max_device_gain),
        created_at=timestamp,
        last_used=timestamp,
        recording_history=[]
    )


def _finite(values: List[float]) -> np.ndarray:
    array = np.asarray(values, dtype=np.float64)
    return array[np.isfinite(array)]


def _stdev(values: List[float]) -> float:
    finite = _finite(values)
    if finite.size == 0:
        return 0.0
    return float(np.std(finite))


class CalibrationStore:
    """
    Calibration profiles keyed by device id.

    Profiles live in memory, indexed by device id, and are written through to
    the key-value store as a JSON array on every change. Mutations of one
    device's profile are serialized by a per-device lock so that concurrent
    analyses never lose a history entry.
    """

    def __init__(
        self,
        store: KeyValueStore,
        target_lufs: Optional[float] = None,
        history_size: Optional[int] = None,
        clock: Callable[[], int] = now_ms
    ):
        """
        Initialize the calibration store.

        Args:
            store: Backing key-value store
            target_lufs: Reference loudness (defaults to settings.target_lufs)
            history_size: Recordings kept per profile (defaults to settings)
            clock: Time source returning epoch ms
        """
        self._store = store
        self.target_lufs = settings.target_lufs if target_lufs is None else target_lufs
        self.history_size = settings.calibration_history_size if history_size is None else history_size
        self._clock = clock
        self._lock = threading.RLock()
        self._device_locks: Dict[str, threading.RLock] = {}
        self._profiles: Dict[str, CalibrationProfile] = self._load()

    def _load(self) -> Dict[str, CalibrationProfile]:
        raw = self._store.get(CALIBRATION_STORAGE_KEY)
        if not raw:
            return {}
        try:
            entries = json.loads(raw)
            profiles = [CalibrationProfile.from_dict(entry) for entry in entries]
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Failed to load calibration profiles: {e}")
            return {}
        return {p.device_id: p for p in profiles}

    def _persist(self) -> None:
        payload = json.dumps([p.to_dict() for p in self._profiles.values()])
        try:
            self._store.set(CALIBRATION_STORAGE_KEY, payload)
        except OSError as e:
            logger.error(f"Failed to save calibration profiles: {e}", exc_info=True)

    def _device_lock(self, device_id: str) -> threading.RLock:
        with self._lock:
            lock = self._device_locks.get(device_id)
            if lock is None:
                lock = threading.RLock()
                self._device_locks[device_id] = lock
            return lock

    def get_profile(self, device_id: str, touch: bool = True) -> Optional[CalibrationProfile]:
        """
        Look up a device's profile.

        Args:
            device_id: Microphone identifier
            touch: Update the profile's last-used timestamp

        Returns:
            The profile or None if the device was never calibrated
        """
        with self._device_lock(device_id):
            with self._lock:
                profile = self._profiles.get(device_id)
            if profile is None or not touch:
                return profile
            profile = replace(profile, last_used=self._clock())
            self.save_profile(profile)
            return profile

    def save_profile(self, profile: CalibrationProfile) -> None:
        with self._lock:
            self._profiles[profile.device_id] = profile
            self._persist()
        logger.debug(f"Calibration profile saved: {profile.device_id}")

    def delete_profile(self, device_id: str) -> bool:
        with self._device_lock(device_id):
            with self._lock:
                removed = self._profiles.pop(device_id, None)
                if removed is not None:
                    self._persist()
        if removed is not None:
            logger.info(f"Deleted calibration profile for device {device_id}")
        return removed is not None

    def calibrate_device(
        self,
        device_id: str,
        device_label: str,
        silence: np.ndarray,
        speech: np.ndarray,
        sample_rate: int
    ) -> CalibrationProfile:
        """
        Run both wizard phases on captured audio and store the new profile.

        Args:
            device_id: Microphone identifier
            device_label: Human-readable microphone name
            silence: Capture of the room with nobody speaking
            speech: Capture of the user speaking at a normal level
            sample_rate: Sample rate of both captures

        Returns:
            The saved profile (replaces any previous one for the device)
        """
        noise_floor = measure_noise_floor(silence, sample_rate)
        reference_level = measure_reference_level(speech, sample_rate)
        profile = create_calibration_profile(
            device_id,
            device_label,
            noise_floor,
            reference_level,
            target_level=self.target_lufs,
            timestamp=self._clock()
        )
        with self._device_lock(device_id):
            self.save_profile(profile)
        logger.info(
            f"Calibrated device {device_id}: noise floor {noise_floor:.1f} dB, "
            f"reference {reference_level:.1f} LUFS, gain {profile.gain_adjustment:.2f}x"
        )
        return profile

    def track_recording(
        self,
        device_id: str,
        original_lufs: float,
        calibrated_lufs: float,
        final_lufs: float,
        noise_floor: float
    ) -> Optional[CalibrationProfile]:
        """
        Append a recording's loudness snapshot to the device history.

        Returns:
            The updated profile, or None if the device has no profile
        """
        with self._device_lock(device_id):
            with self._lock:
                profile = self._profiles.get(device_id)
            if profile is None:
                return None
            stats = RecordingStats(
                timestamp=self._clock(),
                original_lufs=original_lufs,
                calibrated_lufs=calibrated_lufs,
                final_lufs=final_lufs,
                noise_floor=noise_floor
            )
            profile = profile.with_recording(stats, self.history_size)
            profile = replace(profile, last_used=stats.timestamp)
            self.save_profile(profile)
            return profile

    def check_recalibration_needed(self, device_id: str) -> RecalibrationSuggestion:
        """
        Decide whether the device's calibration has gone stale.

        Checks, in order: spread of raw loudness, spread of the noise floor,
        profile age, and drift of calibrated loudness from the target. At
        least three recordings are required before anything is suggested.

        Args:
            device_id: Microphone identifier

        Returns:
            RecalibrationSuggestion describing the first failed check
        """
        profile = self.get_profile(device_id, touch=False)
        if profile is None or len(profile.recording_history) < MIN_HISTORY_FOR_CHECK:
            return RecalibrationSuggestion(should_recalibrate=False)

        history = profile.recording_history

        lufs_variance = _stdev([r.original_lufs for r in history])
        if lufs_variance > LUFS_VARIANCE_THRESHOLD:
            return RecalibrationSuggestion(
                should_recalibrate=True,
                reason=(f"High variance in audio levels detected ({lufs_variance:.1f} LUFS). "
                        "Your environment or mic position may have changed."),
                variance=lufs_variance,
                threshold=LUFS_VARIANCE_THRESHOLD
            )

        noise_variance = _stdev([r.noise_floor for r in history])
        if noise_variance > NOISE_FLOOR_VARIANCE_THRESHOLD:
            return RecalibrationSuggestion(
                should_recalibrate=True,
                reason=(f"Background noise level changed significantly ({noise_variance:.1f} dB). "
                        "Consider recalibrating in your current environment."),
                variance=noise_variance,
                threshold=NOISE_FLOOR_VARIANCE_THRESHOLD
            )

        age_days = (self._clock() - profile.created_at) / MS_PER_DAY
        if age_days > MAX_PROFILE_AGE_DAYS:
            return RecalibrationSuggestion(
                should_recalibrate=True,
                reason=f"Calibration is {int(age_days)} days old. Recalibrating ensures optimal accuracy.",
                age_based=True
            )

        calibrated = _finite([r.calibrated_lufs for r in history])
        if calibrated.size > 0:
            drift = abs(float(np.mean(calibrated)) - self.target_lufs)
            if drift > DRIFT_THRESHOLD:
                return RecalibrationSuggestion(
                    should_recalibrate=True,
                    reason=f"Audio levels are drifting from target ({drift:.1f} LUFS off). Recalibration recommended.",
                    variance=drift,
                    threshold=DRIFT_THRESHOLD
                )

        return RecalibrationSuggestion(should_recalibrate=False)

    def get_recalibration_status(self, device_id: str) -> RecalibrationStatus:
        """Human-readable severity tier for the recalibration check."""
        suggestion = self.check_recalibration_needed(device_id)

        if not suggestion.should_recalibrate:
            return RecalibrationStatus(status="good", message="Calibration is accurate and up to date.")

        if suggestion.age_based:
            return RecalibrationStatus(status="recommend", message=suggestion.reason)

        severity = suggestion.variance / suggestion.threshold
        if severity > 2:
            return RecalibrationStatus(
                status="recommend",
                message=suggestion.reason or "Recalibration strongly recommended.",
                variance=suggestion.variance
            )

        return RecalibrationStatus(
            status="warning",
            message=suggestion.reason or "Consider recalibrating soon.",
            variance=suggestion.variance
        )


# Global calibration store instance
calibration_store = CalibrationStore(kv_store)
