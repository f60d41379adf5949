from __future__ import annotations

from fastapi import APIRouter

from ratekeeper.core.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check, never rate limited.

    Returns:
        dict: ``status`` plus the configured algorithm and store backend.
    """

    return {
        "status": "ok",
        "algorithm": settings.rate_limit.algorithm,
        "store": settings.rate_limit.store,
    }
