"""Unit tests for the transcription client."""
import asyncio
import time
from unittest.mock import MagicMock
import pytest
import requests
from vocal_energy.services.transcription import TranscriptionClient

PAYLOAD = {
    "transcript": "one two three",
    "words": [
        {"word": "one", "start": 0.0, "end": 0.3, "confidence": 0.99},
        {"word": "two", "start": 0.4, "end": 0.7, "confidence": 0.98},
        {"word": "three", "start": 0.8, "end": 1.2, "confidence": 0.97},
    ],
    "confidence": 0.98,
    "duration": 1.5,
}


def _response(status_code=200, payload=None, reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


def _client(response=None, side_effect=None):
    client = TranscriptionClient("https://example.test/", timeout=1.0, max_retries=0)
    client.session = MagicMock()
    if side_effect is not None:
        client.session.post.side_effect = side_effect
    else:
        client.session.post.return_value = response
    return client


def test_transcribe_success():
    """Test that a transcription payload yields its word count."""
    client = _client(_response(payload=PAYLOAD))
    outcome = client.transcribe(b"audio")

    assert outcome.ok
    assert outcome.error is None
    assert outcome.word_count == 3
    assert outcome.transcription.transcript == "one two three"
    assert outcome.transcription.words[1].word == "two"

    url = client.session.post.call_args[0][0]
    assert url == "https://example.test/functions/v1/transcribe"
    assert client.session.post.call_args[1]["data"] == b"audio"


def test_transcribe_not_configured():
    """Test that a missing service URL is reported as an error."""
    client = TranscriptionClient("", timeout=1.0, max_retries=0)
    outcome = client.transcribe(b"audio")
    assert not outcome.ok
    assert "not configured" in outcome.error


def test_transcribe_empty_blob():
    """Test that an empty blob is not sent."""
    client = _client(_response(payload=PAYLOAD))
    outcome = client.transcribe(b"")
    assert not outcome.ok
    client.session.post.assert_not_called()


def test_transcribe_network_error():
    """Test that network errors become an error outcome."""
    outcome = _client(side_effect=requests.exceptions.ConnectionError("refused")).transcribe(b"audio")
    assert not outcome.ok
    assert outcome.word_count is None
    assert "Request failed" in outcome.error


def test_transcribe_http_error():
    """Test that HTTP errors carry the service's error message."""
    response = _response(status_code=500, payload={"error": "Deepgram API error"}, reason="Server Error")
    outcome = _client(response).transcribe(b"audio")
    assert outcome.error == "HTTP 500: Deepgram API error"


def test_transcribe_http_error_without_json():
    """Test that HTTP errors without JSON use the reason phrase."""
    response = _response(status_code=502, payload=ValueError("no json"), reason="Bad Gateway")
    outcome = _client(response).transcribe(b"audio")
    assert outcome.error == "HTTP 502: Bad Gateway"


@pytest.mark.parametrize("payload", [ValueError("bad json"), ["not", "a", "dict"], {"unexpected": True}])
def test_transcribe_bad_payload(payload):
    """Test that malformed payloads become an error outcome."""
    outcome = _client(_response(payload=payload)).transcribe(b"audio")
    assert not outcome.ok


def test_transcript_without_words_counts_zero():
    """Test that an empty transcript counts zero words."""
    outcome = _client(_response(payload={"transcript": "", "words": [], "duration": 2.0})).transcribe(b"audio")
    assert outcome.ok
    assert outcome.word_count == 0


@pytest.mark.asyncio
async def test_transcribe_async_success():
    """Test that the async wrapper returns the outcome."""
    outcome = await _client(_response(payload=PAYLOAD)).transcribe_async(b"audio")
    assert outcome.word_count == 3


@pytest.mark.asyncio
async def test_transcribe_async_timeout():
    """Test that a slow service times out as an error outcome."""
    def slow_post(*args, **kwargs):
        time.sleep(0.5)
        return _response(payload=PAYLOAD)

    client = _client(side_effect=slow_post)
    client.timeout = 0.05

    outcome = await client.transcribe_async(b"audio")
    assert not outcome.ok
    assert outcome.error == "Transcription timed out"
