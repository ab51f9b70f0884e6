"""Configuration settings for the Vocal Energy scoring backend."""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    
    # Loudness / calibration settings
    target_lufs: float = -23.0  # EBU R128 reference level
    calibration_history_size: int = 10  # Recordings kept per device for drift detection
    min_device_gain: float = 0.1
    max_device_gain: float = 10.0
    
    # Speech rate settings
    syllables_per_word: float = 1.5  # English speech heuristic
    spectral_flux_bins: int = 256  # ~0-8 kHz at 44.1 kHz
    
    # External transcription (speech-to-text) settings
    transcription_url: Optional[str] = None  # e.g. https://<project>.supabase.co
    transcription_timeout_seconds: float = 15.0
    transcription_max_retries: int = 2
    
    # Storage settings
    storage_path: Optional[str] = "data/store.json"  # Empty/None = in-memory only
    
    # Logging
    log_level: str = "INFO"
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "VOCAL_ENERGY_"


settings = Settings()
