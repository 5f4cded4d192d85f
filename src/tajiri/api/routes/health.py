"""Health check endpoints."""

from fastapi import APIRouter, Request

from tajiri.config import get_settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "tajiri-relay"}


@router.get("/health/detailed")
async def detailed_health(request: Request):
    """Detailed health check with ledger mode and configuration info."""
    settings = get_settings()
    ledger = request.app.state.ledger
    return {
        "status": "degraded" if ledger.is_degraded else "healthy",
        "service": "tajiri-relay",
        "version": "0.1.0",
        "ledger": {
            "network": settings.ledger_network,
            "mode": ledger.mode.value,
            "operator_configured": settings.has_operator,
        },
        "config": settings.get_safe_dict(),
    }
