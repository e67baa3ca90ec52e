from __future__ import annotations

import sqlite3

from . import config


def connect() -> sqlite3.Connection:
    conn = sqlite3.connect(config.DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    with connect() as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
                id TEXT PRIMARY KEY,
                code TEXT NOT NULL,
                name TEXT NOT NULL,
                host_id TEXT,
                created_at INTEGER NOT NULL,
                status TEXT NOT NULL DEFAULT 'active',
                beer_order TEXT NOT NULL DEFAULT '[]'
            );

            CREATE INDEX IF NOT EXISTS idx_events_code ON events(code, status);

            CREATE TABLE IF NOT EXISTS attendees (
                id TEXT PRIMARY KEY,
                event_id TEXT NOT NULL,
                name TEXT NOT NULL,
                is_host INTEGER NOT NULL DEFAULT 0,
                joined_at INTEGER NOT NULL,
                token TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS beers (
                id TEXT PRIMARY KEY,
                event_id TEXT NOT NULL,
                name TEXT NOT NULL,
                brewery TEXT NOT NULL DEFAULT '',
                style TEXT NOT NULL DEFAULT '',
                brought_by_attendee_id TEXT NOT NULL,
                order_index INTEGER,
                tasted INTEGER NOT NULL DEFAULT 0,
                photo_url TEXT,
                created_at INTEGER NOT NULL DEFAULT 0
            );

            -- one score per (event, beer, attendee); resubmission updates in place
            CREATE TABLE IF NOT EXISTS scores (
                id TEXT PRIMARY KEY,
                event_id TEXT NOT NULL,
                beer_id TEXT NOT NULL,
                attendee_id TEXT NOT NULL,
                "values" TEXT NOT NULL,
                total INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                UNIQUE(event_id, beer_id, attendee_id)
            );
            """
        )

        # Simple migration safety if an older beers table exists
        cols = [r["name"] for r in conn.execute("PRAGMA table_info(beers)").fetchall()]
        if "photo_url" not in cols:
            conn.execute("ALTER TABLE beers ADD COLUMN photo_url TEXT")
        if "created_at" not in cols:
            conn.execute("ALTER TABLE beers ADD COLUMN created_at INTEGER NOT NULL DEFAULT 0")
