"""Run model for tracking pipeline cycles."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from .base import DBModel


class Run(DBModel):
    """Pipeline cycle record."""

    id: Optional[int] = Field(None, description="Primary key")
    trigger: str = Field(..., description="scheduled or manual")
    started_at: datetime = Field(..., description="When the cycle started")
    finished_at: Optional[datetime] = Field(None, description="When the cycle finished")
    status: str = Field("running", description="running, success, partial, failed or idle")
    stats_json: Optional[Dict[str, Any]] = Field(None, description="Cycle statistics")
