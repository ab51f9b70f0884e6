"""Unit tests for score aggregation."""
import pytest
from vocal_energy.audio.metrics.aggregate import calculate_overall_score, emotional_feedback, zero_result
from vocal_energy.audio.models import SpeechRateMethod
from vocal_energy.services.metric_config import DEFAULT_METRIC_CONFIG, normalized_weights

SCORES_PERFECT = {"volume": 100, "speechRate": 100, "acceleration": 100, "responseTime": 100, "pauses": 100}


def test_overall_score_default_weights():
    """Test that default weights combine the metric scores."""
    weights = normalized_weights(DEFAULT_METRIC_CONFIG)

    assert calculate_overall_score(SCORES_PERFECT, weights) == 100
    assert calculate_overall_score({**SCORES_PERFECT, "speechRate": 0, "acceleration": 0,
                                    "responseTime": 0, "pauses": 0}, weights) == 40
    assert calculate_overall_score({k: 50 for k in SCORES_PERFECT}, weights) == 50


def test_overall_score_rounds_half_up():
    """Test that the overall score rounds halves up."""
    weights = {"volume": 0.5, "speechRate": 0.5}
    assert calculate_overall_score({"volume": 50, "speechRate": 51}, weights) == 51


def test_overall_score_nothing_enabled():
    """Test that zero weights give a zero overall score."""
    assert calculate_overall_score(SCORES_PERFECT, {k: 0.0 for k in SCORES_PERFECT}) == 0


@pytest.mark.parametrize("score, feedback", [(100, "excellent"), (70, "excellent"), (69, "good"),
                                             (40, "good"), (39, "poor"), (0, "poor")])
def test_emotional_feedback(score, feedback):
    """Test that scores map to feedback bands."""
    assert emotional_feedback(score) == feedback


def test_zero_result():
    """Test that the zero result has -inf volume and full pauses."""
    result = zero_result(SpeechRateMethod.DEEPGRAM_STT)
    data = result.to_dict()

    assert data["overallScore"] == 0
    assert data["emotionalFeedback"] == "poor"
    assert data["volume"]["averageDb"] == float("-inf")
    assert data["speechRate"]["method"] == "deepgram-stt"
    assert data["pauses"]["pauseRatio"] == 1.0
    assert "normalization" not in data
