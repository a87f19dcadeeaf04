"""Command line interface for War Tracker."""

from .app import app

__all__ = ["app"]
