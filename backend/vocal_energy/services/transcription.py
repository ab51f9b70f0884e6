"""
Client for the external speech-to-text service.

Only the word count of a transcription is used by the scorer. Every failure
(no URL configured, network error, HTTP error, malformed payload, timeout)
is reported as a TranscriptionOutcome with an error instead of an exception,
so the caller can fall back to acoustic speech-rate estimation.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from vocal_energy.core.config import settings
from vocal_energy.core.logging import logger

TRANSCRIBE_PATH = "/functions/v1/transcribe"


@dataclass(frozen=True)
class TranscribedWord:
    word: str
    start: float
    end: float
    confidence: float


@dataclass(frozen=True)
class Transcription:
    transcript: str
    words: List[TranscribedWord] = field(default_factory=list)
    confidence: float = 0.0
    duration: float = 0.0  # seconds

    @property
    def word_count(self) -> int:
        return len(self.words)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Transcription":
        words = [
            TranscribedWord(
                word=str(w.get("word", "")),
                start=float(w.get("start") or 0.0),
                end=float(w.get("end") or 0.0),
                confidence=float(w.get("confidence") or 0.0)
            )
            for w in payload.get("words") or []
        ]
        return cls(
            transcript=payload.get("transcript") or "",
            words=words,
            confidence=float(payload.get("confidence") or 0.0),
            duration=float(payload.get("duration") or 0.0)
        )


@dataclass(frozen=True)
class TranscriptionOutcome:
    """Either a transcription or the reason there is none."""
    transcription: Optional[Transcription] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.transcription is not None

    @property
    def word_count(self) -> Optional[int]:
        return self.transcription.word_count if self.transcription is not None else None


class TranscriptionClient:
    """
    HTTP client for the transcription edge function.

    Example usage:
        client = TranscriptionClient("https://example.supabase.co")
        outcome = await client.transcribe_async(webm_bytes)
        if outcome.ok:
            print(outcome.word_count)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_backoff_factor: float = 0.5
    ):
        """
        Initialize the transcription client.

        Args:
            base_url: Service root URL (defaults to settings.transcription_url)
            timeout: Seconds before a transcription attempt is abandoned
            max_retries: Retries for connection errors and 429/5xx responses
            retry_backoff_factor: Backoff factor for retry delays
        """
        self.base_url = (base_url if base_url is not None else settings.transcription_url or "").rstrip("/")
        self.timeout = timeout if timeout is not None else settings.transcription_timeout_seconds
        if max_retries is None:
            max_retries = settings.transcription_max_retries

        self.session = requests.Session()
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["POST"]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def transcribe(self, audio_blob: bytes) -> TranscriptionOutcome:
        """
        Send encoded audio to the service and parse the word list.

        Args:
            audio_blob: Encoded recording (e.g. webm/opus) exactly as captured

        Returns:
            TranscriptionOutcome; never raises for service problems
        """
        if not self.configured:
            return TranscriptionOutcome(error="Transcription URL not configured")
        if not audio_blob:
            return TranscriptionOutcome(error="No audio data provided")

        url = f"{self.base_url}{TRANSCRIBE_PATH}"
        logger.debug(f"Calling transcription service: {url} ({len(audio_blob)} bytes)")

        try:
            response = self.session.post(
                url,
                data=audio_blob,
                headers={"Content-Type": "application/octet-stream"},
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"Transcription request failed: {e}")
            return TranscriptionOutcome(error=f"Request failed: {e}")

        if response.status_code != 200:
            try:
                detail = response.json().get("error", response.reason)
            except (ValueError, AttributeError):
                detail = response.reason
            logger.warning(f"Transcription service error {response.status_code}: {detail}")
            return TranscriptionOutcome(error=f"HTTP {response.status_code}: {detail}")

        try:
            payload = response.json()
        except ValueError:
            return TranscriptionOutcome(error="Transcription response is not JSON")

        if not isinstance(payload, dict) or ("transcript" not in payload and "words" not in payload):
            return TranscriptionOutcome(error="No transcription results returned")

        try:
            transcription = Transcription.from_payload(payload)
        except (TypeError, ValueError, AttributeError) as e:
            return TranscriptionOutcome(error=f"Malformed transcription payload: {e}")

        logger.info(f"Transcription complete: {transcription.word_count} words, {transcription.duration:.2f}s")
        return TranscriptionOutcome(transcription=transcription)

    async def transcribe_async(self, audio_blob: bytes) -> TranscriptionOutcome:
        """
        Run `transcribe` on a worker thread with an overall deadline.

        The deadline covers retries as well, so analysis is never blocked for
        longer than `timeout` (plus scheduling slack).
        """
        try:
            return await asyncio.wait_for(asyncio.to_thread(self.transcribe, audio_blob), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Transcription timed out after {self.timeout:.1f}s")
            return TranscriptionOutcome(error="Transcription timed out")


# Global transcription client instance
transcription_client = TranscriptionClient()
