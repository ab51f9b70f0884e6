"""REST endpoints for health and status."""
from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    
    Returns:
        Status and version information
    """
    return {
        "status": "ok",
        "version": "0.1.0"
    }
