"""
Pydantic Models
===============
Response schemas for the status endpoints.
"""

from typing import Dict

from pydantic import BaseModel


class StatsOut(BaseModel):
    """Event counters per type, plus the live dedup window size."""
    received: Dict[str, int] = {}
    sent: Dict[str, int] = {}
    blocked: Dict[str, int] = {}
    errors: Dict[str, int] = {}
    dedup_entries: int = 0
