"""Pause and silence detection metrics."""
import numpy as np

PAUSE_FRAME_SECONDS = 0.05
SILENCE_THRESHOLD = 0.01  # mean absolute amplitude


def calculate_silence_ratio(
    samples: np.ndarray,
    sample_rate: int,
    silence_threshold: float = SILENCE_THRESHOLD
) -> float:
    """
    Calculate the ratio of silent 50ms frames in a buffer.
    
    A frame is silent when its mean absolute amplitude is below the
    threshold. Frames start while `start < len - frame`; a trailing partial
    frame is ignored.
    
    Args:
        samples: Mono float samples in [-1, 1]
        sample_rate: Sample rate in Hz
        silence_threshold: Mean absolute amplitude below which a frame is silent
        
    Returns:
        Ratio of silence (0.0 = no silence, 1.0 = all silence); 0.0 with no frames
    """
    frame_size = int(sample_rate * PAUSE_FRAME_SECONDS)
    if frame_size <= 0 or len(samples) <= frame_size:
        return 0.0

    starts = np.arange(0, len(samples) - frame_size, frame_size)
    cumulative = np.concatenate(([0.0], np.cumsum(np.abs(samples.astype(np.float64)))))
    frame_energy = (cumulative[starts + frame_size] - cumulative[starts]) / frame_size

    silent_frames = int(np.sum(frame_energy < silence_threshold))
    return silent_frames / max(1, len(starts))
