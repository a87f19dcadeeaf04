"""Run management in database."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional

import psycopg
from psycopg.types.json import Jsonb

from ..errors import PersistenceError
from .connection import Database

FINAL_STATUSES = ("success", "partial", "failed", "idle")


class RunRepository(ABC):
    """Pipeline run bookkeeping."""

    @abstractmethod
    async def create_run(self, trigger: str, started_at: Optional[datetime] = None) -> int:
        """Create a run in 'running' state and return its id."""

    @abstractmethod
    async def update_run_status(
        self,
        run_id: int,
        status: str,
        stats_json: Optional[Dict] = None,
        finished_at: Optional[datetime] = None,
    ) -> None:
        """Update run status and statistics."""


class RunManager(RunRepository):
    """Manage pipeline runs in database."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def create_run(self, trigger: str, started_at: Optional[datetime] = None) -> int:
        """
        Create a new run record.

        Returns:
            Run ID
        """
        if started_at is None:
            started_at = datetime.now(timezone.utc)

        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        INSERT INTO runs (trigger, started_at, status)
                        VALUES (%s, %s, 'running')
                        RETURNING id
                        """,
                        (trigger, started_at),
                    )
                    run_id = (await cur.fetchone())["id"]
                await conn.commit()
        except psycopg.Error as e:
            raise PersistenceError(f"Failed to create run: {e}") from e
        return run_id

    async def update_run_status(
        self,
        run_id: int,
        status: str,
        stats_json: Optional[Dict] = None,
        finished_at: Optional[datetime] = None,
    ) -> None:
        if finished_at is None and status in FINAL_STATUSES:
            finished_at = datetime.now(timezone.utc)

        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        UPDATE runs
                        SET
                            status = %s,
                            finished_at = %s,
                            stats_json = %s
                        WHERE id = %s
                        """,
                        (status, finished_at, Jsonb(stats_json) if stats_json else None, run_id),
                    )
                await conn.commit()
        except psycopg.Error as e:
            raise PersistenceError(f"Failed to update run {run_id}: {e}") from e

