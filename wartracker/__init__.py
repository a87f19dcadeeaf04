"""War Tracker: RSS ingestion, deduplication and conflict-event classification."""

__version__ = "0.3.0"
