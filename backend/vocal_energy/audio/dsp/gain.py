"""Gain application with clipping protection."""
import numpy as np


def db_to_linear(gain_db: float) -> float:
    return float(10 ** (gain_db / 20))


def apply_gain(samples: np.ndarray, gain: float) -> np.ndarray:
    """
    Multiply a buffer by a linear gain and hard-clip to [-1, 1].
    
    Always returns a new float32 array; the input is never modified.
    
    Args:
        samples: Mono float samples in [-1, 1]
        gain: Linear gain factor
        
    Returns:
        New gain-adjusted buffer
    """
    if len(samples) == 0:
        return np.zeros(0, dtype=np.float32)

    scaled = samples.astype(np.float64) * gain
    return np.clip(scaled, -1.0, 1.0).astype(np.float32)


def clamp_gain(gain: float, min_gain: float = 0.1, max_gain: float = 10.0) -> float:
    """
    Clamp a device gain to a safe range.
    
    NaN (e.g. from corrupt calibration data) maps to unity gain.
    """
    if np.isnan(gain):
        return 1.0
    return float(np.clip(gain, min_gain, max_gain))
