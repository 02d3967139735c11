from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, status

from apexchat.core.config import INTERNAL_METRICS_TOKEN, IS_DEV
from apexchat.core.metrics import request_metrics

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


def require_internal_token(x_internal_token: str | None = Header(default=None)) -> None:
    if IS_DEV and not INTERNAL_METRICS_TOKEN:
        return
    if not INTERNAL_METRICS_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="INTERNAL_METRICS_TOKEN is not configured",
        )
    if (x_internal_token or "").strip() != INTERNAL_METRICS_TOKEN:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


@router.get("", dependencies=[Depends(require_internal_token)])
def metrics_snapshot():
    return {
        "requests": request_metrics.snapshot(),
        "webhook": request_metrics.snapshot_webhook(),
    }
