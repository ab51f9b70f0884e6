"""Metric weights, thresholds, and speech-rate method configuration."""
import json
import threading
from dataclasses import replace
from typing import Dict, List, Optional
from vocal_energy.audio.models import MetricConfig, MetricThresholds, SpeechRateMethod
from vocal_energy.core.logging import logger
from vocal_energy.core.numeric import round_half_up
from vocal_energy.core.storage import KeyValueStore, kv_store

METRIC_CONFIG_STORAGE_KEY = "metricConfig"

VOLUME = "volume"
SPEECH_RATE = "speechRate"
ACCELERATION = "acceleration"
RESPONSE_TIME = "responseTime"
PAUSES = "pauses"
# Stored configs use the admin panel's id for the pause metric
PAUSE_MANAGEMENT = "pauseManagement"

SCORED_METRICS = (VOLUME, SPEECH_RATE, ACCELERATION, RESPONSE_TIME, PAUSES)

DEFAULT_METRIC_CONFIG: List[MetricConfig] = [
    MetricConfig(VOLUME, 40, MetricThresholds(min=-35, ideal=-15, max=0)),
    MetricConfig(SPEECH_RATE, 40, MetricThresholds(min=90, ideal=150, max=220), method=SpeechRateMethod.SPECTRAL_FLUX),
    MetricConfig(ACCELERATION, 5, MetricThresholds(min=0, ideal=50, max=100)),
    MetricConfig(RESPONSE_TIME, 5, MetricThresholds(min=2000, ideal=200, max=0)),
    MetricConfig(PAUSE_MANAGEMENT, 10, MetricThresholds(min=0, ideal=0, max=2.71)),
]


def _canonical_id(metric_id: str) -> str:
    return PAUSES if metric_id == PAUSE_MANAGEMENT else metric_id


def find_metric(configs: List[MetricConfig], metric_id: str) -> Optional[MetricConfig]:
    """Config for one metric; `pauses` and `pauseManagement` are interchangeable."""
    wanted = _canonical_id(metric_id)
    for config in configs:
        if _canonical_id(config.id) == wanted:
            return config
    return None


def thresholds_for(configs: List[MetricConfig], metric_id: str) -> MetricThresholds:
    """Thresholds for a metric, using the built-in defaults when not configured."""
    config = find_metric(configs, metric_id) or find_metric(DEFAULT_METRIC_CONFIG, metric_id)
    return config.thresholds


def speech_rate_method_of(configs: List[MetricConfig]) -> SpeechRateMethod:
    config = find_metric(configs, SPEECH_RATE)
    if config is None or config.method is None:
        return SpeechRateMethod.SPECTRAL_FLUX
    return config.method


def rebalance_weights(configs: List[MetricConfig]) -> List[MetricConfig]:
    """
    Rescale enabled metric weights so they sum to exactly 100.

    Disabled metrics get weight 0. Proportional rounding can miss 100 by a
    point or two; the remainder goes to the first enabled metric that can
    absorb it without dropping below 0. With no enabled metric every weight
    becomes 0.

    Args:
        configs: Metric configurations in display order

    Returns:
        New list of configurations (inputs are not modified)
    """
    enabled = [c for c in configs if c.enabled]
    if not enabled:
        return [replace(c, weight=0) for c in configs]

    total = sum(c.weight for c in enabled)
    if total == 100:
        return [c if c.enabled else replace(c, weight=0) for c in configs]

    if total <= 0:
        # All enabled weights are zero: share equally
        share = 100 // len(enabled)
        rebalanced = [replace(c, weight=share if c.enabled else 0) for c in configs]
    else:
        rebalanced = [
            replace(c, weight=round_half_up(c.weight / total * 100) if c.enabled else 0)
            for c in configs
        ]

    remainder = 100 - sum(c.weight for c in rebalanced if c.enabled)
    if remainder:
        target = next(i for i, c in enumerate(rebalanced) if c.enabled and c.weight + remainder >= 0)
        rebalanced[target] = replace(rebalanced[target], weight=rebalanced[target].weight + remainder)

    return rebalanced


def normalized_weights(configs: List[MetricConfig]) -> Dict[str, float]:
    """
    Fraction of the overall score contributed by each scored metric.

    Each enabled metric's weight is divided by the sum of enabled weights;
    disabled or missing metrics (and every metric when nothing is enabled)
    get 0.

    Returns:
        Mapping of metric id (volume, speechRate, acceleration, responseTime, pauses) to weight in [0, 1]
    """
    weights = {metric_id: 0.0 for metric_id in SCORED_METRICS}
    enabled_total = sum(c.weight for c in configs if c.enabled)
    if enabled_total <= 0:
        return weights

    for config in configs:
        metric_id = _canonical_id(config.id)
        if config.enabled and metric_id in weights:
            weights[metric_id] = config.weight / enabled_total
    return weights


class MetricConfigStore:
    """Reads and writes the locally cached metric configuration."""

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._lock = threading.Lock()

    def load(self) -> List[MetricConfig]:
        """
        Load the configuration, falling back to defaults when absent or corrupt.

        Returns:
            List of MetricConfig
        """
        raw = self._store.get(METRIC_CONFIG_STORAGE_KEY)
        if not raw:
            return list(DEFAULT_METRIC_CONFIG)
        try:
            configs = [MetricConfig.from_dict(entry) for entry in json.loads(raw)]
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Failed to load metric config: {e}")
            return list(DEFAULT_METRIC_CONFIG)
        return configs

    def save(self, configs: List[MetricConfig]) -> List[MetricConfig]:
        """Rebalance and store a new configuration. Returns what was stored."""
        balanced = rebalance_weights(configs)
        with self._lock:
            self._store.set(METRIC_CONFIG_STORAGE_KEY, json.dumps([c.to_dict() for c in balanced]))
        logger.info("Saved metric config: " + ", ".join(f"{c.id}={c.weight:g}" for c in balanced))
        return balanced


metric_config_store = MetricConfigStore(kv_store)
