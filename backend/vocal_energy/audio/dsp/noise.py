"""Noise floor estimation from the leading silence of a recording."""
import numpy as np

NOISE_WINDOW_SECONDS = 0.1  # First 100ms is assumed to be room tone
RMS_FLOOR = 1e-10
ONSET_MULTIPLIER = 3.0
MIN_ONSET_THRESHOLD = 0.005
DEFAULT_ONSET_THRESHOLD = 0.01


def _noise_window(samples: np.ndarray, sample_rate: int) -> np.ndarray:
    frame_samples = int(sample_rate * NOISE_WINDOW_SECONDS)
    return samples[:min(frame_samples, len(samples))]


def _rms(segment: np.ndarray) -> float:
    if len(segment) == 0:
        return 0.0
    return float(np.sqrt(np.mean(segment.astype(np.float64) ** 2)))


def calculate_noise_floor(samples: np.ndarray, sample_rate: int) -> float:
    """
    Calculate the background noise level from the first 100ms of audio.
    
    Used by the calibration wizard (silence capture) and to annotate the
    per-device recording history.
    
    Args:
        samples: Mono float samples in [-1, 1]
        sample_rate: Sample rate in Hz
        
    Returns:
        Noise floor in dB (-200 dB for empty or digital-silence input)
    """
    rms = _rms(_noise_window(samples, sample_rate))
    return float(20 * np.log10(max(rms, RMS_FLOOR)))


def adaptive_onset_threshold(samples: np.ndarray, sample_rate: int) -> float:
    """
    Linear amplitude above which a sample counts as the start of speech.
    
    Three times the RMS of the first 100ms, never below 0.005 so that
    digital silence does not make every dithered sample an onset.
    
    Args:
        samples: Mono float samples in [-1, 1]
        sample_rate: Sample rate in Hz
        
    Returns:
        Threshold in linear amplitude
    """
    segment = _noise_window(samples, sample_rate)
    if len(segment) == 0:
        return DEFAULT_ONSET_THRESHOLD
    return max(MIN_ONSET_THRESHOLD, _rms(segment) * ONSET_MULTIPLIER)
