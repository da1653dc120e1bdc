"""
Health Check Router
===================
Liveness endpoint for process supervisors.
"""

from datetime import datetime, UTC

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
async def health():
    return {"status": "healthy", "timestamp": datetime.now(UTC).isoformat()}
