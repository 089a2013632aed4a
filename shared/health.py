"""
Health check router.

Public liveness endpoint used by container orchestration and by the
controller when probing remote agent-managers.
"""

import time
from typing import Any

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/api/health")
def health() -> dict[str, Any]:
    """Basic health check; timestamp is epoch milliseconds."""
    return {"status": "ok", "timestamp": int(time.time() * 1000)}
