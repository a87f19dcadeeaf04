"""Conflict event derived from classifying one article."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from .base import DBModel


class EventType(str, Enum):
    """Kinds of conflict event the classifier may report."""

    AIRSTRIKE = "airstrike"
    HUMANITARIAN = "humanitarian"
    CYBERATTACK = "cyberattack"
    DIPLOMATIC = "diplomatic"


class ThreatLevel(str, Enum):
    """Severity assigned by the classifier."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class WarEvent(DBModel):
    """War event model."""

    id: Optional[int] = Field(None, description="Primary key")
    event_type: EventType = Field(..., description="Event category")
    country: str = Field(..., description="Primary country of the event")
    region: Optional[str] = Field(None, description="State, province or oblast")
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    casualties: Optional[int] = Field(None, ge=0, description="Deaths and injuries")
    weapons_used: Optional[List[str]] = Field(None, description="Weapons or equipment")
    source_country: Optional[str] = Field(None, description="Attacking country")
    target_country: Optional[str] = Field(None, description="Defending country")
    confidence: float = Field(..., ge=0, le=100, description="Model confidence 0-100")
    threat_level: ThreatLevel = Field(..., description="Threat level")
    article_id: str = Field(..., description="Originating article")
    article_title: str = Field(..., description="Originating article title")
    article_url: str = Field(..., description="Originating article URL")
    article_source: Optional[str] = Field(None, description="Originating feed name")
    processed_at: datetime = Field(..., description="When classification produced the event")
