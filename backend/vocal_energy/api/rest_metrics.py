"""REST endpoints for the metric weights and thresholds."""
from typing import Any, Dict, List
from fastapi import APIRouter, Depends, HTTPException
from vocal_energy.api.deps import get_metric_config_store
from vocal_energy.audio.models import MetricConfig
from vocal_energy.core.logging import logger
from vocal_energy.services.metric_config import MetricConfigStore

router = APIRouter(prefix="/metrics")


@router.get("/config")
async def get_config(store: MetricConfigStore = Depends(get_metric_config_store)):
    return [c.to_dict() for c in store.load()]


@router.put("/config")
async def put_config(
    payload: List[Dict[str, Any]],
    store: MetricConfigStore = Depends(get_metric_config_store)
):
    """
    Replace the metric configuration.

    Weights of enabled metrics are rebalanced to sum to 100 before saving.

    Returns:
        The stored configuration
    """
    try:
        configs = [MetricConfig.from_dict(entry) for entry in payload]
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Rejected metric config: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid metric config: {e}")

    return [c.to_dict() for c in store.save(configs)]
