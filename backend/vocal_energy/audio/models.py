"""Audio analysis data models and structures."""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional
import time


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class SpeechRateMethod(str, Enum):
    """How words-per-minute is estimated for a recording."""
    ENERGY_PEAKS = "energy-peaks"
    VAD_ENHANCED = "vad-enhanced"
    SPECTRAL_FLUX = "spectral-flux"
    WEB_SPEECH_API = "web-speech-api"
    DEEPGRAM_STT = "deepgram-stt"

    @property
    def uses_transcript(self) -> bool:
        return self in (SpeechRateMethod.WEB_SPEECH_API, SpeechRateMethod.DEEPGRAM_STT)

    @classmethod
    def parse(cls, value: Any, default: Optional["SpeechRateMethod"] = None) -> "SpeechRateMethod":
        """Parse a method tag, returning `default` (spectral-flux) for unknown tags."""
        if default is None:
            default = cls.SPECTRAL_FLUX
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return default


@dataclass(frozen=True)
class VADSegment:
    """A detected speech segment, in milliseconds from the start of the buffer."""
    start: float
    end: float
    duration: float

    def to_dict(self) -> Dict[str, float]:
        return {"start": self.start, "end": self.end, "duration": self.duration}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VADSegment":
        start = float(data["start"])
        end = float(data["end"])
        return cls(start=start, end=end, duration=float(data.get("duration", end - start)))


@dataclass(frozen=True)
class VADMetrics:
    """Voice-activity summary produced by the external VAD before analysis."""
    segments: List[VADSegment] = field(default_factory=list)
    total_speech_time: float = 0.0  # ms
    total_silence_time: float = 0.0  # ms
    speech_ratio: float = 0.0
    is_speaking: bool = False
    speech_probability: float = 0.0

    @classmethod
    def from_segments(cls, segments: List[VADSegment], total_ms: float, **kwargs) -> "VADMetrics":
        """Build metrics whose totals and ratio are derived from the segments."""
        speech = sum(s.duration for s in segments)
        silence = max(0.0, total_ms - speech)
        total = speech + silence
        return cls(
            segments=list(segments),
            total_speech_time=speech,
            total_silence_time=silence,
            speech_ratio=speech / total if total > 0 else 0.0,
            **kwargs
        )

    def has_segments(self) -> bool:
        return len(self.segments) > 0

    def contains(self, time_ms: float) -> bool:
        """True if time_ms falls inside any speech segment (inclusive bounds)."""
        return any(s.start <= time_ms <= s.end for s in self.segments)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "speechSegments": [s.to_dict() for s in self.segments],
            "totalSpeechTime": self.total_speech_time,
            "totalSilenceTime": self.total_silence_time,
            "speechRatio": self.speech_ratio,
            "isSpeaking": self.is_speaking,
            "speechProbability": self.speech_probability,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VADMetrics":
        raw_segments = data.get("speechSegments", data.get("segments")) or []
        return cls(
            segments=[VADSegment.from_dict(s) for s in raw_segments],
            total_speech_time=float(data.get("totalSpeechTime", 0.0)),
            total_silence_time=float(data.get("totalSilenceTime", 0.0)),
            speech_ratio=float(data.get("speechRatio", 0.0)),
            is_speaking=bool(data.get("isSpeaking", False)),
            speech_probability=float(data.get("speechProbability", 0.0)),
        )


@dataclass(frozen=True)
class RecordingStats:
    """Loudness snapshot of one analyzed recording, kept for drift detection."""
    timestamp: int
    original_lufs: float
    calibrated_lufs: float
    final_lufs: float
    noise_floor: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "originalLUFS": self.original_lufs,
            "calibratedLUFS": self.calibrated_lufs,
            "finalLUFS": self.final_lufs,
            "noiseFloor": self.noise_floor,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecordingStats":
        return cls(
            timestamp=int(data.get("timestamp", 0)),
            original_lufs=_float_or_neg_inf(data.get("originalLUFS")),
            calibrated_lufs=_float_or_neg_inf(data.get("calibratedLUFS")),
            final_lufs=_float_or_neg_inf(data.get("finalLUFS")),
            noise_floor=_float_or_neg_inf(data.get("noiseFloor")),
        )


@dataclass
class CalibrationProfile:
    """Per-microphone correction data."""
    device_id: str
    device_label: str
    noise_floor: float  # dB
    reference_level: float  # LUFS
    gain_adjustment: float  # linear, clamped to [0.1, 10]
    created_at: int  # epoch ms
    last_used: int  # epoch ms
    recording_history: List[RecordingStats] = field(default_factory=list)

    def with_recording(self, stats: RecordingStats, max_history: int) -> "CalibrationProfile":
        """Return a copy with `stats` appended and the oldest entries evicted."""
        history = (list(self.recording_history) + [stats])[-max_history:]
        return replace(self, recording_history=history)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "deviceLabel": self.device_label,
            "noiseFloor": self.noise_floor,
            "referenceLevel": self.reference_level,
            "gainAdjustment": self.gain_adjustment,
            "createdAt": self.created_at,
            "lastUsed": self.last_used,
            "recordingHistory": [r.to_dict() for r in self.recording_history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalibrationProfile":
        return cls(
            device_id=str(data["deviceId"]),
            device_label=str(data.get("deviceLabel", "")),
            noise_floor=_float_or_neg_inf(data.get("noiseFloor")),
            reference_level=float(data["referenceLevel"]),
            gain_adjustment=float(data.get("gainAdjustment", 1.0)),
            created_at=int(data.get("createdAt", 0)),
            last_used=int(data.get("lastUsed", 0)),
            recording_history=[RecordingStats.from_dict(r) for r in data.get("recordingHistory") or []],
        )


@dataclass(frozen=True)
class MetricThresholds:
    min: float
    ideal: float
    max: float

    def to_dict(self) -> Dict[str, float]:
        return {"min": self.min, "ideal": self.ideal, "max": self.max}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricThresholds":
        return cls(min=float(data["min"]), ideal=float(data["ideal"]), max=float(data["max"]))


@dataclass(frozen=True)
class MetricConfig:
    """Admin-tunable settings for one scored metric."""
    id: str
    weight: float
    thresholds: MetricThresholds
    enabled: bool = True
    method: Optional[SpeechRateMethod] = None  # speechRate only

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "weight": self.weight,
            "thresholds": self.thresholds.to_dict(),
            "enabled": self.enabled,
        }
        if self.method is not None:
            data["method"] = self.method.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricConfig":
        method = data.get("method")
        return cls(
            id=str(data["id"]),
            weight=float(data.get("weight") or 0),
            thresholds=MetricThresholds.from_dict(data["thresholds"]),
            enabled=bool(data.get("enabled", True)),
            method=SpeechRateMethod.parse(method) if method else None,
        )


@dataclass(frozen=True)
class VolumeResult:
    average_db: float
    score: int
    tag: str = "ENERGY"

    def to_dict(self) -> Dict[str, Any]:
        return {"averageDb": self.average_db, "score": self.score, "tag": self.tag}


@dataclass(frozen=True)
class SpeechRateResult:
    words_per_minute: int
    score: int
    method: SpeechRateMethod
    tag: str = "FLUENCY"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wordsPerMinute": self.words_per_minute,
            "score": self.score,
            "tag": self.tag,
            "method": self.method.value,
        }


@dataclass(frozen=True)
class AccelerationResult:
    is_accelerating: bool
    segment1_volume: float
    segment2_volume: float
    segment1_rate: int
    segment2_rate: int
    score: int
    tag: str = "DYNAMICS"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isAccelerating": self.is_accelerating,
            "segment1Volume": self.segment1_volume,
            "segment2Volume": self.segment2_volume,
            "segment1Rate": self.segment1_rate,
            "segment2Rate": self.segment2_rate,
            "score": self.score,
            "tag": self.tag,
        }


@dataclass(frozen=True)
class ResponseTimeResult:
    response_time_ms: int
    score: int
    tag: str = "READINESS"

    def to_dict(self) -> Dict[str, Any]:
        return {"responseTimeMs": self.response_time_ms, "score": self.score, "tag": self.tag}


@dataclass(frozen=True)
class PauseResult:
    pause_ratio: float
    score: int
    tag: str = "FLUIDITY"

    def to_dict(self) -> Dict[str, Any]:
        return {"pauseRatio": self.pause_ratio, "score": self.score, "tag": self.tag}


@dataclass(frozen=True)
class NormalizationInfo:
    """Diagnostics of the calibration + LUFS normalization step."""
    original_lufs: float
    calibrated_lufs: float
    final_lufs: float
    device_gain: float
    normalization_gain: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "originalLUFS": self.original_lufs,
            "calibratedLUFS": self.calibrated_lufs,
            "finalLUFS": self.final_lufs,
            "deviceGain": self.device_gain,
            "normalizationGain": self.normalization_gain,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Scored output for one recording."""
    overall_score: int
    emotional_feedback: str  # "excellent" | "good" | "poor"
    volume: VolumeResult
    speech_rate: SpeechRateResult
    acceleration: AccelerationResult
    response_time: ResponseTimeResult
    pauses: PauseResult
    normalization: Optional[NormalizationInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "overallScore": self.overall_score,
            "emotionalFeedback": self.emotional_feedback,
            "volume": self.volume.to_dict(),
            "speechRate": self.speech_rate.to_dict(),
            "acceleration": self.acceleration.to_dict(),
            "responseTime": self.response_time.to_dict(),
            "pauses": self.pauses.to_dict(),
        }
        if self.normalization is not None:
            data["normalization"] = self.normalization.to_dict()
        return data


def _float_or_neg_inf(value: Any) -> float:
    # Silent recordings serialize their -inf loudness as null
    if value is None:
        return float("-inf")
    return float(value)
