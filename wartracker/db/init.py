"""Database initialization and schema management."""

import logging

from psycopg.errors import DatabaseError

from .connection import Database

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
-- Articles table, one row per URL
CREATE TABLE IF NOT EXISTS articles (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    content TEXT NOT NULL DEFAULT '',
    url TEXT NOT NULL UNIQUE,
    source TEXT NOT NULL,
    published_at TIMESTAMPTZ NOT NULL,
    fetched_at TIMESTAMPTZ NOT NULL,
    content_hash TEXT NOT NULL,
    is_processed BOOLEAN NOT NULL DEFAULT FALSE,
    is_war_related BOOLEAN NOT NULL DEFAULT FALSE,
    matched_keywords TEXT[] NOT NULL DEFAULT '{}',
    image_url TEXT,
    author TEXT,
    tags TEXT[] NOT NULL DEFAULT '{}',
    created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
);

-- Columns added after the first release
ALTER TABLE articles ADD COLUMN IF NOT EXISTS tags TEXT[] NOT NULL DEFAULT '{}';

-- War events derived from classified articles
CREATE TABLE IF NOT EXISTS war_events (
    id SERIAL PRIMARY KEY,
    event_type TEXT NOT NULL CHECK (event_type IN ('airstrike', 'humanitarian', 'cyberattack', 'diplomatic')),
    country TEXT NOT NULL,
    region TEXT,
    latitude DOUBLE PRECISION CHECK (latitude IS NULL OR (latitude >= -90 AND latitude <= 90)),
    longitude DOUBLE PRECISION CHECK (longitude IS NULL OR (longitude >= -180 AND longitude <= 180)),
    casualties INTEGER CHECK (casualties IS NULL OR casualties >= 0),
    weapons_used TEXT[],
    source_country TEXT,
    target_country TEXT,
    confidence REAL NOT NULL CHECK (confidence >= 0 AND confidence <= 100),
    threat_level TEXT NOT NULL CHECK (threat_level IN ('low', 'medium', 'high', 'critical')),
    article_id TEXT NOT NULL REFERENCES articles(id),
    article_title TEXT NOT NULL,
    article_url TEXT NOT NULL,
    article_source TEXT,
    processed_at TIMESTAMPTZ NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
);

-- One row per pipeline cycle
CREATE TABLE IF NOT EXISTS runs (
    id SERIAL PRIMARY KEY,
    trigger TEXT NOT NULL,
    started_at TIMESTAMPTZ NOT NULL,
    finished_at TIMESTAMPTZ,
    status TEXT NOT NULL DEFAULT 'running' CHECK (status IN ('running', 'success', 'partial', 'failed', 'idle')),
    stats_json JSONB,
    created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
);

-- Create indexes
CREATE INDEX IF NOT EXISTS idx_articles_unprocessed ON articles(published_at DESC) WHERE is_processed = FALSE;
CREATE INDEX IF NOT EXISTS idx_articles_source ON articles(source);
CREATE INDEX IF NOT EXISTS idx_articles_fetched_at ON articles(fetched_at DESC);
CREATE INDEX IF NOT EXISTS idx_war_events_article_id ON war_events(article_id);
CREATE INDEX IF NOT EXISTS idx_war_events_processed_at ON war_events(processed_at);
CREATE INDEX IF NOT EXISTS idx_runs_started_at ON runs(started_at);

-- Update trigger function
CREATE OR REPLACE FUNCTION update_updated_at_column()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = CURRENT_TIMESTAMP;
    RETURN NEW;
END;
$$ language 'plpgsql';

-- Create update triggers
DROP TRIGGER IF EXISTS update_articles_updated_at ON articles;
CREATE TRIGGER update_articles_updated_at BEFORE UPDATE ON articles
    FOR EACH ROW EXECUTE FUNCTION update_updated_at_column();

DROP TRIGGER IF EXISTS update_war_events_updated_at ON war_events;
CREATE TRIGGER update_war_events_updated_at BEFORE UPDATE ON war_events
    FOR EACH ROW EXECUTE FUNCTION update_updated_at_column();

DROP TRIGGER IF EXISTS update_runs_updated_at ON runs;
CREATE TRIGGER update_runs_updated_at BEFORE UPDATE ON runs
    FOR EACH ROW EXECUTE FUNCTION update_updated_at_column();
"""


async def validate_connection(db: Database) -> bool:
    """Validate database connection."""
    try:
        async with db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT 1 AS ok")
                result = await cur.fetchone()
                return result is not None and result["ok"] == 1
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        return False


async def init_database(db: Database) -> None:
    """Initialize database schema."""
    try:
        async with db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(SCHEMA_SQL)
            await conn.commit()
            logger.info("Database schema initialized successfully")
    except DatabaseError as e:
        logger.error("Failed to initialize database schema: %s", e)
        raise
