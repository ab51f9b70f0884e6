"""REST endpoints for per-device microphone calibration."""
from typing import Literal
from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from vocal_energy.api.deps import get_calibration_store
from vocal_energy.audio.ingestion import bytes_to_samples, decode_base64
from vocal_energy.core.logging import logger
from vocal_energy.core.numeric import finite_or_none
from vocal_energy.services.calibration_store import CalibrationStore

router = APIRouter(prefix="/calibration")


class CalibrationRequest(BaseModel):
    """The two wizard captures: room silence, then normal speech."""
    device_label: str = Field("", alias="deviceLabel")
    sample_rate: int = Field(..., alias="sampleRate", gt=0)
    silence_base64: str = Field(..., alias="silenceBase64")
    speech_base64: str = Field(..., alias="speechBase64")
    encoding: Literal["float32", "int16"] = "float32"


@router.post("/{device_id}")
async def calibrate_device(
    device_id: str,
    request: CalibrationRequest,
    store: CalibrationStore = Depends(get_calibration_store)
):
    """Create (or replace) a device's calibration profile from the wizard captures."""
    try:
        silence = bytes_to_samples(decode_base64(request.silence_base64), request.encoding)
        speech = bytes_to_samples(decode_base64(request.speech_base64), request.encoding)
    except ValueError as e:
        logger.warning(f"Rejected calibration for device {device_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    profile = store.calibrate_device(device_id, request.device_label, silence, speech, request.sample_rate)
    return finite_or_none(profile.to_dict())


@router.get("/{device_id}")
async def get_profile(device_id: str, store: CalibrationStore = Depends(get_calibration_store)):
    profile = store.get_profile(device_id, touch=False)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"Device {device_id} is not calibrated")
    return finite_or_none(profile.to_dict())


@router.get("/{device_id}/status")
async def get_status(device_id: str, store: CalibrationStore = Depends(get_calibration_store)):
    """
    Recalibration advice for a device.

    Returns:
        {status: good|warning|recommend, message, variance?}
    """
    if store.get_profile(device_id, touch=False) is None:
        raise HTTPException(status_code=404, detail=f"Device {device_id} is not calibrated")
    return finite_or_none(store.get_recalibration_status(device_id).to_dict())


@router.delete("/{device_id}", status_code=204)
async def delete_profile(device_id: str, store: CalibrationStore = Depends(get_calibration_store)):
    if not store.delete_profile(device_id):
        raise HTTPException(status_code=404, detail=f"Device {device_id} is not calibrated")
    return Response(status_code=204)
