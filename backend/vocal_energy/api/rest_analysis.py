"""REST endpoint for scoring a recording."""
from typing import Any, Dict, List, Literal, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from vocal_energy.api.deps import get_calibration_store, get_metric_config_store, get_transcriber
from vocal_energy.audio.ingestion import bytes_to_samples, decode_base64, samples_from_list
from vocal_energy.audio.models import VADMetrics
from vocal_energy.audio.pipeline import analyze_audio
from vocal_energy.core.logging import logger
from vocal_energy.core.numeric import finite_or_none
from vocal_energy.services.calibration_store import CalibrationStore
from vocal_energy.services.metric_config import MetricConfigStore
from vocal_energy.services.transcription import TranscriptionClient

router = APIRouter()


class AnalyzeRequest(BaseModel):
    """Recording to score: samples as a JSON list or base64 PCM."""
    samples: Optional[List[float]] = None
    pcm_base64: Optional[str] = Field(None, alias="pcmBase64")
    encoding: Literal["float32", "int16"] = "float32"
    sample_rate: int = Field(..., alias="sampleRate", gt=0)
    device_id: Optional[str] = Field(None, alias="deviceId")
    vad_metrics: Optional[Dict[str, Any]] = Field(None, alias="vadMetrics")
    stt_word_count: Optional[int] = Field(None, alias="sttWordCount", ge=0)
    audio_base64: Optional[str] = Field(None, alias="audioBase64")


@router.post("/analyze")
async def analyze(
    request: AnalyzeRequest,
    calibration: CalibrationStore = Depends(get_calibration_store),
    metric_configs: MetricConfigStore = Depends(get_metric_config_store),
    transcriber: TranscriptionClient = Depends(get_transcriber)
):
    """
    Score one recording.

    Returns:
        AnalysisResult as a camelCase dict (non-finite numbers become null)
    """
    try:
        if request.pcm_base64 is not None:
            samples = bytes_to_samples(decode_base64(request.pcm_base64), request.encoding)
        elif request.samples is not None:
            samples = samples_from_list(request.samples)
        else:
            raise ValueError("Either samples or pcmBase64 is required")

        vad_metrics = VADMetrics.from_dict(request.vad_metrics) if request.vad_metrics is not None else None
        audio_blob = decode_base64(request.audio_base64) if request.audio_base64 else None
    except (ValueError, KeyError, TypeError) as e:
        logger.warning(f"Rejected analysis request: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    result = await analyze_audio(
        samples,
        request.sample_rate,
        device_id=request.device_id,
        vad_metrics=vad_metrics,
        stt_word_count=request.stt_word_count,
        audio_blob=audio_blob,
        calibration=calibration,
        metric_config=metric_configs.load(),
        transcriber=transcriber
    )
    return finite_or_none(result.to_dict())
