"""War event storage."""

from abc import ABC, abstractmethod

import psycopg

from ..errors import PersistenceError
from ..models import WarEvent
from .connection import Database

EVENT_COLUMNS = (
    "event_type",
    "country",
    "region",
    "latitude",
    "longitude",
    "casualties",
    "weapons_used",
    "source_country",
    "target_country",
    "confidence",
    "threat_level",
    "article_id",
    "article_title",
    "article_url",
    "article_source",
    "processed_at",
)


class WarEventRepository(ABC):
    """Write contract for classified events."""

    @abstractmethod
    async def insert_event(self, event: WarEvent) -> int:
        """Store an event and return its id."""


class PostgresWarEventRepository(WarEventRepository):
    """Event repository backed by the war_events table."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def insert_event(self, event: WarEvent) -> int:
        values = []
        for column in EVENT_COLUMNS:
            value = getattr(event, column)
            # Enums are stored by value
            values.append(getattr(value, "value", value))

        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"""
                        INSERT INTO war_events ({", ".join(EVENT_COLUMNS)})
                        VALUES ({", ".join(["%s"] * len(EVENT_COLUMNS))})
                        RETURNING id
                        """,
                        values,
                    )
                    event_id = (await cur.fetchone())["id"]
                await conn.commit()
        except psycopg.Error as e:
            raise PersistenceError(f"Failed to store event for {event.article_url}: {e}") from e
        return event_id

