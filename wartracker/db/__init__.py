"""Database layer for War Tracker."""

from .articles import ArticleRepository, PostgresArticleRepository
from .connection import Database, DatabaseConfig
from .init import init_database, validate_connection
from .runs import RunManager, RunRepository
from .upsert import ArticleUpsertEngine, BatchStats
from .war_events import PostgresWarEventRepository, WarEventRepository

__all__ = [
    "ArticleRepository",
    "ArticleUpsertEngine",
    "BatchStats",
    "Database",
    "DatabaseConfig",
    "PostgresArticleRepository",
    "PostgresWarEventRepository",
    "RunManager",
    "RunRepository",
    "WarEventRepository",
    "init_database",
    "validate_connection",
]
