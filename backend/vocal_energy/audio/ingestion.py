"""Helper functions for ingesting and converting incoming audio data."""
import base64
import binascii
from typing import Optional, Sequence
import numpy as np
from vocal_energy.core.logging import logger

SAMPLE_WIDTHS = {"float32": 4, "int16": 2}
INT16_SCALE = 32768.0


def validate_audio_data(data: bytes, encoding: str = "float32", expected_size: Optional[int] = None) -> bool:
    """
    Validate incoming PCM bytes.

    Args:
        data: Raw little-endian PCM bytes
        encoding: "float32" or "int16"
        expected_size: Expected size in bytes (optional)

    Returns:
        True if valid, False otherwise
    """
    width = SAMPLE_WIDTHS.get(encoding)
    if width is None:
        logger.warning(f"Unsupported PCM encoding: {encoding}")
        return False

    if len(data) == 0:
        logger.warning("Received empty audio data")
        return False

    if len(data) % width != 0:
        logger.warning(f"Audio data size {len(data)} is not multiple of {width} bytes")
        return False

    if expected_size and len(data) != expected_size:
        logger.warning(f"Audio data size {len(data)} != expected {expected_size}")
        return False

    return True


def bytes_to_samples(data: bytes, encoding: str = "float32") -> np.ndarray:
    """
    Convert raw PCM bytes to mono float32 samples in [-1, 1].

    Args:
        data: Little-endian PCM bytes
        encoding: "float32" or "int16"

    Returns:
        1-D float32 array

    Raises:
        ValueError: If the data is empty, misaligned or the encoding is unknown
    """
    if not validate_audio_data(data, encoding):
        raise ValueError(f"Invalid {encoding} PCM data ({len(data)} bytes)")

    if encoding == "int16":
        pcm = np.frombuffer(data, dtype="<i2")
        samples = pcm.astype(np.float32) / INT16_SCALE
    else:
        samples = np.frombuffer(data, dtype="<f4").astype(np.float32)

    if not np.all(np.isfinite(samples)):
        raise ValueError("PCM data contains NaN or infinite samples")
    return np.clip(samples, -1.0, 1.0)


def decode_base64(data: str) -> bytes:
    """Decode a base64 payload, raising ValueError on malformed input."""
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 data: {e}")


def samples_from_list(values: Sequence[float]) -> np.ndarray:
    """Convert a JSON list of samples to a float32 array."""
    samples = np.asarray(values, dtype=np.float32).ravel()
    if not np.all(np.isfinite(samples)):
        raise ValueError("Samples contain NaN or infinite values")
    return np.clip(samples, -1.0, 1.0)
