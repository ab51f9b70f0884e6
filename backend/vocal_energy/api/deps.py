"""Shared service dependencies for the REST routers (overridable in tests)."""
from vocal_energy.services.calibration_store import CalibrationStore, calibration_store
from vocal_energy.services.metric_config import MetricConfigStore, metric_config_store
from vocal_energy.services.transcription import TranscriptionClient, transcription_client


def get_calibration_store() -> CalibrationStore:
    return calibration_store


def get_metric_config_store() -> MetricConfigStore:
    return metric_config_store


def get_transcriber() -> TranscriptionClient:
    return transcription_client
