"""
Integrated loudness (LUFS) measurement.

Simplified ITU-R BS.1770-4: 400ms blocks with 75% overlap, absolute gate
at -70 LUFS and relative gate 10 LU below the gated average. K-weighting is
approximated as identity, so values are not broadcast-certified.
"""
from dataclasses import dataclass
import numpy as np
from vocal_energy.audio.dsp.gain import apply_gain, db_to_linear

BLOCK_SECONDS = 0.4
BLOCK_OVERLAP = 0.75
ABSOLUTE_GATE_LUFS = -70.0
RELATIVE_GATE_LU = -10.0
LUFS_OFFSET = -0.691


@dataclass(frozen=True)
class LoudnessNormalization:
    """Result of normalizing a buffer to a target loudness."""
    normalized: np.ndarray
    current_lufs: float
    gain_db: float
    gain_linear: float


def apply_k_weighting(samples: np.ndarray) -> np.ndarray:
    """Identity stand-in for the BS.1770 shelf + high-pass pre-filter."""
    return samples


def block_mean_squares(samples: np.ndarray, sample_rate: int) -> np.ndarray:
    """
    Mean square of each 400ms block (100ms hop).
    
    Blocks start while `start < len - block`, so a buffer exactly one block
    long produces no blocks.
    """
    block_size = int(sample_rate * BLOCK_SECONDS)
    hop_size = block_size - int(block_size * BLOCK_OVERLAP)
    if block_size <= 0 or hop_size <= 0 or len(samples) <= block_size:
        return np.zeros(0, dtype=np.float64)

    squares = samples.astype(np.float64) ** 2
    cumulative = np.concatenate(([0.0], np.cumsum(squares)))
    starts = np.arange(0, len(samples) - block_size, hop_size)
    sums = cumulative[starts + block_size] - cumulative[starts]
    # cumsum differences can dip fractionally below zero
    return np.maximum(sums, 0.0) / block_size


def gated_mean_square(samples: np.ndarray, sample_rate: int) -> float:
    """
    Mean square after absolute and relative gating.
    
    Args:
        samples: Mono float samples in [-1, 1]
        sample_rate: Sample rate in Hz
        
    Returns:
        Gated mean square, 0.0 when nothing survives the absolute gate
    """
    blocks = block_mean_squares(samples, sample_rate)
    if blocks.size == 0:
        return 0.0

    gated = blocks[blocks >= 10 ** (ABSOLUTE_GATE_LUFS / 10)]
    if gated.size == 0:
        return 0.0

    average = float(np.mean(gated))
    relative_gate = average * 10 ** (RELATIVE_GATE_LU / 10)
    final_blocks = gated[gated >= relative_gate]
    if final_blocks.size == 0:
        return average

    return float(np.mean(final_blocks))


def calculate_lufs(samples: np.ndarray, sample_rate: int) -> float:
    """
    Calculate integrated loudness.
    
    Args:
        samples: Mono float samples in [-1, 1]
        sample_rate: Sample rate in Hz
        
    Returns:
        Loudness in LUFS, or -inf for empty/silent input
    """
    if len(samples) == 0:
        return float("-inf")

    mean_square = gated_mean_square(apply_k_weighting(samples), sample_rate)
    if mean_square <= 0:
        return float("-inf")

    return LUFS_OFFSET + 10 * float(np.log10(mean_square))


def normalize_to_lufs(samples: np.ndarray, sample_rate: int, target_lufs: float) -> LoudnessNormalization:
    """
    Scale a buffer so its integrated loudness matches `target_lufs`.
    
    Silent input is returned unchanged with unity gain.
    
    Args:
        samples: Mono float samples in [-1, 1]
        sample_rate: Sample rate in Hz
        target_lufs: Desired loudness
        
    Returns:
        LoudnessNormalization with the new buffer and the gain applied
    """
    current_lufs = calculate_lufs(samples, sample_rate)
    if not np.isfinite(current_lufs):
        return LoudnessNormalization(
            normalized=samples,
            current_lufs=float("-inf"),
            gain_db=0.0,
            gain_linear=1.0
        )

    gain_db = target_lufs - current_lufs
    gain_linear = db_to_linear(gain_db)
    return LoudnessNormalization(
        normalized=apply_gain(samples, gain_linear),
        current_lufs=current_lufs,
        gain_db=gain_db,
        gain_linear=gain_linear
    )
