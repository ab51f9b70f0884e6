"""Unit tests for device calibration + loudness normalization."""
import pytest
import numpy as np
from vocal_energy.audio.dsp.loudness import calculate_lufs
from vocal_energy.audio.normalization import calibrate_and_normalize, device_db_offset
from vocal_energy.core.storage import InMemoryKeyValueStore
from vocal_energy.services.calibration_store import CalibrationStore, create_calibration_profile
from synthetic import SAMPLE_RATE, silence, tone


def _store(reference_level=-29.0):
    store = CalibrationStore(InMemoryKeyValueStore(), target_lufs=-23.0)
    store.save_profile(create_calibration_profile("mic-1", "USB Mic", -60.0, reference_level, -23.0))
    return store


def test_normalize_without_calibration():
    """Test that an uncalibrated buffer is only LUFS-normalized."""
    samples = tone(2.0, amplitude=0.02)
    outcome = calibrate_and_normalize(samples, SAMPLE_RATE, target_lufs=-23.0)

    assert outcome.device_gain == 1.0
    assert outcome.calibrated_lufs == pytest.approx(outcome.original_lufs)
    assert outcome.final_lufs == pytest.approx(-23.0, abs=0.1)
    assert calculate_lufs(outcome.normalized, SAMPLE_RATE) == pytest.approx(outcome.final_lufs)


def test_normalize_applies_device_gain_and_tracks_history():
    """Test that device gain is applied and the recording is tracked."""
    store = _store(reference_level=-29.0)
    samples = tone(2.0, amplitude=0.02)

    outcome = calibrate_and_normalize(samples, SAMPLE_RATE, store, "mic-1", target_lufs=-23.0)

    assert outcome.device_gain == pytest.approx(10 ** (6 / 20))
    assert outcome.calibrated_lufs == pytest.approx(outcome.original_lufs + 6.0, abs=0.05)
    assert outcome.final_lufs == pytest.approx(-23.0, abs=0.1)

    history = store.get_profile("mic-1", touch=False).recording_history
    assert len(history) == 1
    assert history[0].original_lufs == pytest.approx(outcome.original_lufs)
    assert history[0].noise_floor == pytest.approx(20 * np.log10(0.02 / np.sqrt(2)), abs=0.5)


def test_normalize_unknown_device_does_not_track():
    """Test that an unknown device is normalized without tracking."""
    store = _store()
    outcome = calibrate_and_normalize(tone(2.0), SAMPLE_RATE, store, "other-mic")

    assert outcome.device_gain == 1.0
    assert store.get_profile("other-mic") is None
    assert store.get_profile("mic-1", touch=False).recording_history == []


def test_normalize_silence():
    """Test that silence passes through normalization."""
    outcome = calibrate_and_normalize(silence(1.0), SAMPLE_RATE)

    assert outcome.original_lufs == float("-inf")
    assert outcome.final_lufs == float("-inf")
    assert outcome.normalization_gain == 1.0

    info = outcome.info()
    assert info.original_lufs == float("-inf")
    assert info.normalization_gain == 1.0


def test_info_rounding():
    """Test that normalization diagnostics are rounded."""
    outcome = calibrate_and_normalize(tone(2.0, amplitude=0.02), SAMPLE_RATE, target_lufs=-23.0)
    info = outcome.info()
    assert info.final_lufs == round(info.final_lufs, 1)
    assert info.normalization_gain == round(info.normalization_gain, 2)


def test_device_db_offset():
    """Test that the device offset is the target minus the reference level."""
    profile = create_calibration_profile("mic", "", -60.0, -30.0, -23.0)
    assert device_db_offset(profile, -23.0) == pytest.approx(7.0)
    assert device_db_offset(None) == 0.0

    silent_reference = create_calibration_profile("mic", "", -60.0, float("-inf"), -23.0)
    assert device_db_offset(silent_reference, -23.0) == 0.0
