"""Unit tests for calibration profiles and drift detection."""
import json
import threading
import pytest
import numpy as np
from vocal_energy.audio.models import CalibrationProfile
from vocal_energy.core.storage import InMemoryKeyValueStore
from vocal_energy.services.calibration_store import (
    CALIBRATION_STORAGE_KEY,
    CalibrationStore,
    create_calibration_profile
)
from synthetic import SAMPLE_RATE, silence, tone

T0 = 1_700_000_000_000
DAY_MS = 24 * 60 * 60 * 1000


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now


def _store_with_profile(kv=None, clock=None, reference_level=-20.0):
    kv = kv or InMemoryKeyValueStore()
    clock = clock or FakeClock()
    store = CalibrationStore(kv, target_lufs=-23.0, history_size=10, clock=clock)
    store.save_profile(create_calibration_profile("mic-1", "USB Mic", -50.0, reference_level, -23.0, timestamp=clock()))
    return store


def _track(store, original, calibrated=-23.0, noise_floor=-50.0):
    return store.track_recording("mic-1", original, calibrated, calibrated, noise_floor)


def test_create_profile_gain():
    """Test that -20 LUFS speech gets -3 dB of gain to reach -23 LUFS."""
    profile = create_calibration_profile("mic-1", "USB Mic", noise_floor=-50, reference_level=-20, target_level=-23)

    assert profile.gain_adjustment == pytest.approx(10 ** (-3 / 20), abs=1e-3)
    assert profile.gain_adjustment == pytest.approx(0.708, abs=1e-3)
    assert profile.recording_history == []
    assert profile.created_at == profile.last_used


@pytest.mark.parametrize("reference_level, expected", [
    (-200.0, 10.0),
    (100.0, 0.1),
    (float("-inf"), 10.0),
    (float("inf"), 0.1),
    (float("nan"), 1.0),
])
def test_create_profile_clamps_gain(reference_level, expected):
    """Test that extreme or non-finite reference levels clamp the gain."""
    profile = create_calibration_profile("mic", "", -50.0, reference_level, -23.0)
    assert profile.gain_adjustment == expected
    assert 0.1 <= profile.gain_adjustment <= 10


def test_history_is_fifo_capped():
    """Test that history keeps only the newest recordings."""
    clock = FakeClock()
    store = _store_with_profile(clock=clock)

    for i in range(12):
        clock.now = T0 + i
        _track(store, -20.0)

    history = store.get_profile("mic-1", touch=False).recording_history
    assert len(history) == 10
    assert history[0].timestamp == T0 + 2
    assert history[-1].timestamp == T0 + 11


def test_track_recording_without_profile():
    """Test that tracking an uncalibrated device is a no-op."""
    store = CalibrationStore(InMemoryKeyValueStore())
    assert store.track_recording("unknown", -20, -23, -23, -50) is None


def test_no_suggestion_with_short_history():
    """Test that fewer than three recordings never trigger recalibration."""
    clock = FakeClock()
    store = _store_with_profile(clock=clock)
    _track(store, -5.0, calibrated=-60.0, noise_floor=-10.0)
    _track(store, -45.0, calibrated=-60.0, noise_floor=-90.0)
    clock.now = T0 + 365 * DAY_MS

    assert store.check_recalibration_needed("mic-1").should_recalibrate is False
    assert store.get_recalibration_status("mic-1").status == "good"


def test_good_status():
    """Test that stable recordings report a good status."""
    store = _store_with_profile()
    for _ in range(3):
        _track(store, -20.0)

    status = store.get_recalibration_status("mic-1")
    assert status.status == "good"
    assert status.variance is None


def test_loudness_variance_warning():
    """Test that moderate loudness spread warns."""
    store = _store_with_profile()
    for original in (-10.0, -30.0, -20.0):
        _track(store, original)

    suggestion = store.check_recalibration_needed("mic-1")
    assert suggestion.should_recalibrate is True
    assert suggestion.variance == pytest.approx(np.std([-10.0, -30.0, -20.0]))
    assert suggestion.threshold == 5.0
    assert store.get_recalibration_status("mic-1").status == "warning"


def test_loudness_variance_recommend():
    """Test that large loudness spread recommends recalibration."""
    store = _store_with_profile()
    for original in (-5.0, -35.0, -20.0):
        _track(store, original)

    status = store.get_recalibration_status("mic-1")
    assert status.status == "recommend"
    assert status.variance > 10


def test_noise_floor_variance():
    """Test that a wandering noise floor suggests recalibration."""
    store = _store_with_profile()
    for noise_floor in (-60.0, -30.0, -45.0):
        _track(store, -20.0, noise_floor=noise_floor)

    suggestion = store.check_recalibration_needed("mic-1")
    assert suggestion.should_recalibrate is True
    assert suggestion.threshold == 10.0
    assert "noise" in suggestion.reason.lower()


def test_age_based_recalibration_is_recommended():
    """Test that a profile older than 30 days is recommended for recalibration."""
    clock = FakeClock()
    store = _store_with_profile(clock=clock)
    for _ in range(3):
        _track(store, -20.0)
    clock.now = T0 + 31 * DAY_MS

    suggestion = store.check_recalibration_needed("mic-1")
    assert suggestion.should_recalibrate is True
    assert suggestion.age_based is True
    assert store.get_recalibration_status("mic-1").status == "recommend"


@pytest.mark.parametrize("calibrated, status", [(-30.0, "recommend"), (-27.0, "warning"), (-25.0, "good")])
def test_drift_from_target(calibrated, status):
    """Test that calibrated loudness drifting from the target grades the status."""
    store = _store_with_profile()
    for _ in range(3):
        _track(store, -20.0, calibrated=calibrated)

    assert store.get_recalibration_status("mic-1").status == status


def test_silent_recordings_are_skipped_in_statistics():
    """Test that -inf loudness from silent recordings is left out of drift statistics."""
    store = _store_with_profile()
    silent = float("-inf")
    for original, calibrated in ((-20.0, -23.0), (-20.0, -23.0), (-20.0, -23.0), (silent, silent)):
        _track(store, original, calibrated=calibrated)

    assert store.check_recalibration_needed("mic-1").should_recalibrate is False


def test_get_profile_touches_last_used():
    """Test that lookups update last-used only when touching."""
    clock = FakeClock()
    store = _store_with_profile(clock=clock)
    clock.now = T0 + 5000

    assert store.get_profile("mic-1", touch=False).last_used == T0
    assert store.get_profile("mic-1").last_used == T0 + 5000
    assert store.get_profile("mic-1", touch=False).last_used == T0 + 5000


def test_profiles_persist_across_instances():
    """Test that profiles and history survive a reload from storage."""
    kv = InMemoryKeyValueStore()
    store = _store_with_profile(kv=kv)
    _track(store, -21.0)

    reloaded = CalibrationStore(kv)
    profile = reloaded.get_profile("mic-1", touch=False)
    assert profile is not None
    assert profile.device_label == "USB Mic"
    assert len(profile.recording_history) == 1
    assert profile.recording_history[0].original_lufs == -21.0

    stored = json.loads(kv.get(CALIBRATION_STORAGE_KEY))
    assert stored[0]["deviceId"] == "mic-1"
    assert stored[0]["recordingHistory"][0]["originalLUFS"] == -21.0


def test_corrupt_storage_is_ignored():
    """Test that unreadable stored profiles are ignored."""
    kv = InMemoryKeyValueStore({CALIBRATION_STORAGE_KEY: "not json"})
    store = CalibrationStore(kv)
    assert store.get_profile("mic-1", touch=False) is None


def test_delete_profile():
    """Test that deleting removes the profile once."""
    store = _store_with_profile()
    assert store.delete_profile("mic-1") is True
    assert store.delete_profile("mic-1") is False
    assert store.get_profile("mic-1") is None


def test_calibrate_device_from_captures():
    """Test that the wizard captures produce and store a profile."""
    clock = FakeClock()
    store = CalibrationStore(InMemoryKeyValueStore(), target_lufs=-23.0, clock=clock)

    profile = store.calibrate_device("mic-2", "Laptop", silence(3.0), tone(5.0, amplitude=0.05), SAMPLE_RATE)

    assert isinstance(profile, CalibrationProfile)
    assert profile.noise_floor == pytest.approx(-200.0)
    # 0.05 sine is about -29.7 LUFS, so the device needs boosting
    assert profile.reference_level == pytest.approx(-29.7, abs=0.1)
    assert profile.gain_adjustment > 1.0
    assert profile.created_at == T0
    assert store.get_profile("mic-2", touch=False) == profile


def test_concurrent_tracking_keeps_every_entry():
    """Test that concurrent writers to one device never lose a history entry."""
    writers, per_writer = 8, 50
    store = CalibrationStore(InMemoryKeyValueStore(), target_lufs=-23.0, history_size=writers * per_writer)
    store.save_profile(create_calibration_profile("mic-1", "USB Mic", -50.0, -20.0, -23.0))
    start = threading.Barrier(writers)

    def write(writer):
        start.wait()
        for _ in range(per_writer):
            store.track_recording("mic-1", -20.0 - writer, -23.0, -23.0, -50.0)

    threads = [threading.Thread(target=write, args=(w,)) for w in range(writers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    history = store.get_profile("mic-1", touch=False).recording_history
    assert len(history) == writers * per_writer
    for writer in range(writers):
        assert sum(1 for s in history if s.original_lufs == -20.0 - writer) == per_writer
