"""Pipeline orchestration and scheduling."""

from .orchestrator import PipelineOrchestrator
from .scheduler import PipelineScheduler
from .stats import ClassificationStats, CycleStats, SourceStats

__all__ = [
    "ClassificationStats",
    "CycleStats",
    "PipelineOrchestrator",
    "PipelineScheduler",
    "SourceStats",
]
