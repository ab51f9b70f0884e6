"""Unit tests for the loudness meter and LUFS normalization."""
import math
import pytest
import numpy as np
from vocal_energy.audio.dsp.loudness import calculate_lufs, normalize_to_lufs
from synthetic import SAMPLE_RATE, silence, tone


def test_lufs_of_silence_is_negative_infinity():
    """Test that digital silence has -inf loudness."""
    assert calculate_lufs(silence(1.0), SAMPLE_RATE) == float("-inf")


def test_lufs_of_empty_buffer():
    """Test that an empty buffer has -inf loudness."""
    assert calculate_lufs(np.zeros(0, dtype=np.float32), SAMPLE_RATE) == float("-inf")


def test_lufs_single_block_buffer_has_no_blocks():
    """Blocks start while start < len - block, so exactly one block yields nothing."""
    samples = tone(0.4, amplitude=0.5)
    assert len(samples) == int(SAMPLE_RATE * 0.4)
    assert calculate_lufs(samples, SAMPLE_RATE) == float("-inf")


def test_lufs_of_sine():
    """Mean square of a sine is A^2/2; K-weighting is identity."""
    amplitude = 0.1
    expected = -0.691 + 10 * math.log10(amplitude ** 2 / 2)
    assert calculate_lufs(tone(2.0, amplitude=amplitude), SAMPLE_RATE) == pytest.approx(expected, abs=0.05)


def test_lufs_below_absolute_gate():
    """Blocks quieter than -70 LUFS are discarded entirely."""
    assert calculate_lufs(tone(2.0, amplitude=1e-5), SAMPLE_RATE) == float("-inf")


def test_relative_gate_ignores_quiet_passages():
    """A quiet stretch far below the speech level does not drag loudness down."""
    loud = tone(2.0, amplitude=0.2)
    quiet = tone(2.0, amplitude=0.002)
    loud_only = calculate_lufs(loud, SAMPLE_RATE)
    mixed = calculate_lufs(np.concatenate([loud, quiet]), SAMPLE_RATE)
    assert mixed == pytest.approx(loud_only, abs=0.5)


def test_normalize_silence_is_noop():
    """Test that silence is left untouched by normalization."""
    samples = silence(1.0)
    result = normalize_to_lufs(samples, SAMPLE_RATE, -23.0)

    assert result.gain_linear == 1.0
    assert result.gain_db == 0.0
    assert result.current_lufs == float("-inf")
    np.testing.assert_array_equal(result.normalized, samples)


def test_normalize_reaches_target():
    """Test that normalization brings a quiet tone to the target loudness."""
    samples = tone(2.0, amplitude=0.02)
    result = normalize_to_lufs(samples, SAMPLE_RATE, -23.0)

    assert result.gain_linear > 1.0
    assert calculate_lufs(result.normalized, SAMPLE_RATE) == pytest.approx(-23.0, abs=0.1)
    # Input buffer is untouched
    assert np.max(np.abs(samples)) == pytest.approx(0.02, abs=1e-4)
