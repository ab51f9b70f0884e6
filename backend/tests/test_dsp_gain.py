"""Unit tests for gain application and clamping."""
import pytest
import numpy as np
from vocal_energy.audio.dsp.gain import apply_gain, clamp_gain, db_to_linear


def test_apply_gain_amplifies_quiet_audio():
    """Test that quiet audio gets amplified."""
    quiet_audio = np.array([0.01, 0.02, -0.015, 0.005], dtype=np.float32)

    result = apply_gain(quiet_audio, 4.0)

    assert np.abs(result).max() > np.abs(quiet_audio).max()
    np.testing.assert_allclose(result, quiet_audio * 4.0, rtol=1e-6)


def test_apply_gain_clips_loud_audio():
    """Test that very loud audio doesn't exceed full scale."""
    loud_audio = np.array([0.6, 0.8, -0.7, 0.5], dtype=np.float32)

    result = apply_gain(loud_audio, 10.0)

    assert np.abs(result).max() <= 1.0
    assert result[1] == 1.0
    assert result[2] == -1.0


def test_apply_gain_returns_new_array():
    """Test that the input buffer is not modified."""
    samples = np.array([0.1, -0.1], dtype=np.float32)
    result = apply_gain(samples, 2.0)

    assert result is not samples
    assert result.dtype == np.float32
    np.testing.assert_array_equal(samples, np.array([0.1, -0.1], dtype=np.float32))


def test_apply_gain_empty_frame():
    """Test that empty input is handled gracefully."""
    result = apply_gain(np.array([], dtype=np.float32), 2.0)
    assert len(result) == 0


def test_db_to_linear():
    """Test that decibels convert to linear gain."""
    assert db_to_linear(0.0) == 1.0
    assert db_to_linear(20.0) == pytest.approx(10.0)
    assert db_to_linear(-3.0) == pytest.approx(0.708, abs=1e-3)


@pytest.mark.parametrize("gain, expected", [
    (0.001, 0.1),
    (50.0, 10.0),
    (2.5, 2.5),
    (float("inf"), 10.0),
    (float("nan"), 1.0),
])
def test_clamp_gain(gain, expected):
    """Test that gains are clamped to range and NaN resets to unity."""
    assert clamp_gain(gain) == expected
