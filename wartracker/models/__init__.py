"""Data models for War Tracker."""

from .article import Article
from .run import Run
from .war_event import EventType, ThreatLevel, WarEvent

__all__ = ["Article", "EventType", "Run", "ThreatLevel", "WarEvent"]
