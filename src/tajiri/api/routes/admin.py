"""Admin API endpoints (token-protected)."""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel

from tajiri.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


async def require_admin_token(x_admin_token: str = Header(None)) -> bool:
    """Verify admin token from header.

    If ADMIN_TOKEN is not set, allows access (dev mode).
    """
    settings = get_settings()

    if not settings.admin_token:
        # Dev mode - no token required (warn in production)
        if settings.is_production:
            logger.warning("ADMIN_TOKEN is not set - admin endpoints are unprotected")
        return True

    if x_admin_token != settings.admin_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")

    return True


class LedgerModeStatus(BaseModel):
    """Ledger mode status."""

    mode: str
    degraded: bool
    consecutive_failures: int


def _mode_status(request: Request) -> LedgerModeStatus:
    ledger = request.app.state.ledger
    return LedgerModeStatus(
        mode=ledger.mode.value,
        degraded=ledger.is_degraded,
        consecutive_failures=ledger.mode_store.get_failures(),
    )


@router.get("/ledger/mode", response_model=LedgerModeStatus)
async def get_ledger_mode(
    request: Request, _: bool = Depends(require_admin_token)
) -> LedgerModeStatus:
    """Get the ledger client mode (live or degraded)."""
    return _mode_status(request)


@router.post("/ledger/mode/reset", response_model=LedgerModeStatus)
async def reset_ledger_mode(
    request: Request, _: bool = Depends(require_admin_token)
) -> LedgerModeStatus:
    """Leave degraded mode and resume live ledger calls."""
    request.app.state.ledger.reset_mode()
    logger.info("Ledger mode reset by admin")
    return _mode_status(request)
