"""
Event Statistics Router
=======================
Received/sent/blocked/error counters per event type, in the standard
success envelope.
"""

from datetime import datetime, UTC

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.schemas import StatsOut

router = APIRouter()


def success_response(data, status_code=200):
    """Wrap data in standard success envelope."""
    body = {
        "status": "success",
        "data": data,
        "generated_at": datetime.now(UTC).isoformat(),
    }
    return JSONResponse(content=body, status_code=status_code)


@router.get("/stats")
async def stats(request: Request):
    deduplicator = request.app.state.deduplicator
    body = StatsOut(
        **request.app.state.stats.snapshot(),
        dedup_entries=len(deduplicator) if deduplicator is not None else 0,
    )
    return success_response(body.model_dump())
