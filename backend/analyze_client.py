#!/usr/bin/env python3
"""
Manual client for a running backend.

Generates synthetic recordings (silence, tone, and syllable-like bursts),
calibrates a fake device, and posts each recording to POST /analyze,
printing the per-metric scores.

Usage:
    cd backend && python -m uvicorn vocal_energy.main:app --reload
    python analyze_client.py [server_url]
"""
import base64
import sys
import wave
import numpy as np
import requests

# Configuration
SERVER_URL = "http://localhost:8000"
SAMPLE_RATE = 16000
DEVICE_ID = "analyze-client-mic"


def generate_silence(duration=1.0):
    return np.zeros(int(SAMPLE_RATE * duration), dtype=np.int16)


def generate_tone(frequency=440, duration=1.0, amplitude=3000):
    t = np.arange(int(SAMPLE_RATE * duration)) / SAMPLE_RATE
    return (np.sin(2 * np.pi * frequency * t) * amplitude).astype(np.int16)


def generate_speech_like(duration=3.0, syllables_per_second=5, amplitude=10000):
    """Carrier tone with smooth syllable-rate loudness bumps after a short pause."""
    t = np.arange(int(SAMPLE_RATE * duration)) / SAMPLE_RATE
    envelope = np.sin(np.pi * syllables_per_second * t) ** 2
    envelope[t < 0.3] = 0.0
    carrier = np.sin(2 * np.pi * 250 * t)
    return (envelope * carrier * amplitude).astype(np.int16)


def save_wav(filename, samples):
    with wave.open(filename, "w") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(SAMPLE_RATE)
        wav_file.writeframes(samples.tobytes())
    return filename


def encode(samples):
    return base64.b64encode(samples.astype("<i2").tobytes()).decode()


def calibrate(server_url):
    """Run both calibration phases with synthetic captures."""
    response = requests.post(
        f"{server_url}/calibration/{DEVICE_ID}",
        json={
            "deviceLabel": "Synthetic mic",
            "sampleRate": SAMPLE_RATE,
            "encoding": "int16",
            "silenceBase64": encode(generate_silence(3.0)),
            "speechBase64": encode(generate_speech_like(5.0)),
        },
        timeout=30
    )
    response.raise_for_status()
    profile = response.json()
    print(f"✓ Calibrated {DEVICE_ID}: reference {profile['referenceLevel']:.1f} LUFS, "
          f"gain {profile['gainAdjustment']:.2f}x")


def analyze(server_url, samples, description, device_id=None):
    print(f"\n{'=' * 70}")
    print(f"Testing: {description}")
    print(f"{'=' * 70}")

    payload = {"pcmBase64": encode(samples), "encoding": "int16", "sampleRate": SAMPLE_RATE}
    if device_id:
        payload["deviceId"] = device_id

    response = requests.post(f"{server_url}/analyze", json=payload, timeout=30)
    if response.status_code != 200:
        print(f"✗ ERROR: HTTP {response.status_code}: {response.text}")
        return False

    data = response.json()
    print(f"  Overall: {data['overallScore']} ({data['emotionalFeedback']})")
    print(f"  Volume: {data['volume']['averageDb']} dB -> {data['volume']['score']}")
    print(f"  Speech rate: {data['speechRate']['wordsPerMinute']} WPM ({data['speechRate']['method']}) "
          f"-> {data['speechRate']['score']}")
    print(f"  Acceleration: {data['acceleration']['score']}")
    print(f"  Response time: {data['responseTime']['responseTimeMs']} ms -> {data['responseTime']['score']}")
    print(f"  Pauses: {data['pauses']['pauseRatio']} -> {data['pauses']['score']}")
    if "normalization" in data:
        print(f"  Normalization: {data['normalization']}")

    if not (0 <= data["overallScore"] <= 100):
        print(f"✗ WARNING: Score out of range: {data['overallScore']}")
        return False
    return True


def main():
    server_url = sys.argv[1] if len(sys.argv) > 1 else SERVER_URL

    try:
        health = requests.get(f"{server_url}/health", timeout=5)
        health.raise_for_status()
    except requests.exceptions.RequestException as e:
        print(f"✗ Could not reach server at {server_url}: {e}")
        print("  cd backend && python -m uvicorn vocal_energy.main:app --reload")
        return False
    print(f"✓ Server is healthy (version {health.json().get('version')})")

    speech = generate_speech_like()
    save_wav("speech_like.wav", speech)

    results = [
        analyze(server_url, generate_silence(), "Silence"),
        analyze(server_url, generate_tone(), "Steady tone"),
        analyze(server_url, speech, "Speech-like bursts"),
    ]

    calibrate(server_url)
    results.append(analyze(server_url, speech, "Speech-like bursts (calibrated device)", DEVICE_ID))
    requests.delete(f"{server_url}/calibration/{DEVICE_ID}", timeout=5)

    passed = sum(results)
    print(f"\n{passed}/{len(results)} requests succeeded")
    return passed == len(results)


if __name__ == "__main__":
    sys.exit(0 if main() else 1)
