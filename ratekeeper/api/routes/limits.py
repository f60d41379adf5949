"""Demo routes protected by, and administering, the rate limiter."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ratekeeper.core.rate_limit import enforce_rate_limit, get_rate_limiter
from ratekeeper.services.limiter import hash_key

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Limits"])


@router.get("/ping", dependencies=[Depends(enforce_rate_limit)])
async def ping() -> dict:
    """Rate-limited endpoint used to exercise the limiter.

    Returns:
        dict: ``{"status": "ok"}`` when the request is admitted.
    """

    return {"status": "ok"}


@router.delete("/limits/{key}", status_code=status.HTTP_204_NO_CONTENT)
async def reset_limit(key: str) -> Response:
    """Drop the stored limiter state for a caller key (e.g. ``ip:10.0.0.1``).

    Raises:
        HTTPException: 501 when the configured store cannot reset keys.
    """

    limiter = get_rate_limiter()
    if not limiter.supports_reset:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Configured store does not support reset",
        )

    await limiter.reset(key)
    logger.info("rate_limit.reset", extra={"key_hash": hash_key(limiter.full_key(key))})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
