"""FastAPI application entrypoint."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from vocal_energy.api import rest_analysis, rest_calibration, rest_metrics, rest_status
from vocal_energy.core.config import settings
from vocal_energy.core.logging import logger, setup_logging

# Setup logging
setup_logging()

# Create FastAPI app
app = FastAPI(
    title="Vocal Energy Scoring Backend",
    description="Calibrated, device-independent scoring of recorded speech energy",
    version="0.1.0"
)

# CORS middleware (allow frontend connections)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify allowed origins
    allow_credentials=False,  # Must be False when using "*" origins
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(rest_status.router)
app.include_router(rest_analysis.router)
app.include_router(rest_calibration.router)
app.include_router(rest_metrics.router)


@app.on_event("startup")
async def startup_event():
    """Log the effective configuration on startup."""
    logger.info(f"Starting Vocal Energy Scoring Backend on {settings.host}:{settings.port}")
    logger.info(f"Target loudness: {settings.target_lufs} LUFS, history size: {settings.calibration_history_size}")
    logger.info(f"Storage: {settings.storage_path or 'in-memory'}")
    if settings.transcription_url:
        logger.info(f"Transcription service: {settings.transcription_url}")
    else:
        logger.info("Transcription service not configured, deepgram-stt will fall back to spectral-flux")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Shutting down Vocal Energy Scoring Backend")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "vocal_energy.main:app",
        host=settings.host,
        port=settings.port,
        reload=True
    )
