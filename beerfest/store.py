"""Persistence for events, attendees, beers and scores (sqlite)."""
from __future__ import annotations

import json
import logging
import secrets
import sqlite3
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from . import db, photos
from .errors import AuthorizationError, EventClosedError, EventNotFoundError, ValidationError
from .models import Attendee, Beer, Event, Score, fill_values, now_ms
from .ordering import shuffled_order

logger = logging.getLogger(__name__)

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6


@dataclass
class CleanupCounts:
    events: int = 0
    beers: int = 0
    scores: int = 0
    attendees: int = 0
    photos: int = 0

    def add(self, other: "CleanupCounts") -> None:
        for key, value in asdict(other).items():
            setattr(self, key, getattr(self, key) + value)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


# -----------------------
# Helpers
# -----------------------
def new_id() -> str:
    return secrets.token_hex(10)


def generate_event_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def _require_text(value: Optional[str], label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{label} is required.")
    return value


def _unused_code(conn: sqlite3.Connection) -> str:
    while True:
        code = generate_event_code()
        taken = conn.execute(
            "SELECT 1 FROM events WHERE code=? AND status='active'", (code,)
        ).fetchone()
        if not taken:
            return code


def _get_event(conn: sqlite3.Connection, event_id: str) -> Optional[Event]:
    row = conn.execute("SELECT * FROM events WHERE id=?", (event_id,)).fetchone()
    return Event.from_row(row) if row else None


def _require_event(conn: sqlite3.Connection, event_id: str) -> Event:
    event = _get_event(conn, event_id)
    if event is None:
        raise EventNotFoundError("Event not found.")
    return event


def _require_beer(conn: sqlite3.Connection, event_id: str, beer_id: str) -> Beer:
    row = conn.execute("SELECT * FROM beers WHERE id=? AND event_id=?", (beer_id, event_id)).fetchone()
    if not row:
        raise EventNotFoundError("Beer not found.")
    return Beer.from_row(row)


def _list_beers(conn: sqlite3.Connection, event_id: str) -> List[Beer]:
    rows = conn.execute(
        """
        SELECT * FROM beers WHERE event_id=?
        ORDER BY order_index IS NULL, order_index, created_at, rowid
        """,
        (event_id,),
    ).fetchall()
    return [Beer.from_row(r) for r in rows]


def _list_attendees(conn: sqlite3.Connection, event_id: str) -> List[Attendee]:
    rows = conn.execute(
        "SELECT * FROM attendees WHERE event_id=? ORDER BY joined_at, rowid", (event_id,)
    ).fetchall()
    return [Attendee.from_row(r) for r in rows]


def _list_scores(conn: sqlite3.Connection, event_id: str, attendee_id: Optional[str] = None) -> List[Score]:
    if attendee_id is None:
        rows = conn.execute("SELECT * FROM scores WHERE event_id=? ORDER BY rowid", (event_id,)).fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM scores WHERE event_id=? AND attendee_id=? ORDER BY rowid",
            (event_id, attendee_id),
        ).fetchall()
    return [Score.from_row(r) for r in rows]


def _insert_attendee(conn: sqlite3.Connection, event_id: str, name: str, is_host: bool) -> Attendee:
    attendee_id = new_id()
    conn.execute(
        "INSERT INTO attendees(id, event_id, name, is_host, joined_at, token) VALUES(?,?,?,?,?,?)",
        (attendee_id, event_id, name, int(is_host), now_ms(), secrets.token_urlsafe(16)),
    )
    row = conn.execute("SELECT * FROM attendees WHERE id=?", (attendee_id,)).fetchone()
    return Attendee.from_row(row)


# -----------------------
# Events & attendees
# -----------------------
def create_event(host_name: str, event_name: str) -> Tuple[Event, Attendee]:
    host_name = _require_text(host_name, "Your name")
    event_name = _require_text(event_name, "Event name")

    with db.connect() as conn:
        event_id = new_id()
        conn.execute(
            "INSERT INTO events(id, code, name, created_at, status, beer_order) VALUES(?,?,?,?,?,?)",
            (event_id, _unused_code(conn), event_name, now_ms(), "active", "[]"),
        )
        host = _insert_attendee(conn, event_id, host_name, is_host=True)
        conn.execute("UPDATE events SET host_id=? WHERE id=?", (host.id, event_id))
        event = _require_event(conn, event_id)

    logger.info("Created event %s (%s) hosted by %s", event.id, event.code, host.id)
    return event, host


def join_event_by_code(code: str, attendee_name: str) -> Tuple[Event, Attendee]:
    code = (code or "").strip().upper()
    attendee_name = _require_text(attendee_name, "Your name")

    with db.connect() as conn:
        row = conn.execute(
            "SELECT * FROM events WHERE code=? AND status='active' ORDER BY created_at DESC LIMIT 1",
            (code,),
        ).fetchone()
        if not row:
            raise EventNotFoundError("Event not found or not active")
        event = Event.from_row(row)
        attendee = _insert_attendee(conn, event.id, attendee_name, is_host=False)

    logger.info("Attendee %s joined event %s", attendee.id, event.id)
    return event, attendee


def authenticate(event_id: str, attendee_id: str, token: str) -> Attendee:
    with db.connect() as conn:
        row = conn.execute(
            "SELECT * FROM attendees WHERE id=? AND event_id=?", (attendee_id, event_id)
        ).fetchone()
    if not row or not secrets.compare_digest(str(row["token"]), token or ""):
        raise AuthorizationError("Invalid session.")
    return Attendee.from_row(row)


def get_event(event_id: str) -> Optional[Event]:
    with db.connect() as conn:
        return _get_event(conn, event_id)


def require_event(event_id: str) -> Event:
    with db.connect() as conn:
        return _require_event(conn, event_id)


def end_event(event_id: str) -> Event:
    with db.connect() as conn:
        _require_event(conn, event_id)
        conn.execute("UPDATE events SET status='ended' WHERE id=?", (event_id,))
        event = _require_event(conn, event_id)
    logger.info("Ended event %s", event_id)
    return event


def list_attendees(event_id: str) -> List[Attendee]:
    with db.connect() as conn:
        return _list_attendees(conn, event_id)


# -----------------------
# Beers
# -----------------------
def add_or_update_beer(
    event_id: str,
    name: str,
    brought_by_attendee_id: str,
    brewery: str = "",
    style: str = "",
    beer_id: Optional[str] = None,
    order_index: Optional[int] = None,
    photo_url: Optional[str] = None,
) -> Beer:
    name = _require_text(name, "Beer name")
    brewery = (brewery or "").strip()
    style = (style or "").strip()

    with db.connect() as conn:
        _require_event(conn, event_id)
        if beer_id:
            _require_beer(conn, event_id, beer_id)
            conn.execute(
                """
                UPDATE beers SET name=?, brewery=?, style=?, brought_by_attendee_id=?,
                    order_index=COALESCE(?, order_index), photo_url=COALESCE(?, photo_url)
                WHERE id=?
                """,
                (name, brewery, style, brought_by_attendee_id, order_index, photo_url, beer_id),
            )
        else:
            beer_id = new_id()
            conn.execute(
                """
                INSERT INTO beers(id, event_id, name, brewery, style, brought_by_attendee_id,
                                  order_index, tasted, photo_url, created_at)
                VALUES(?,?,?,?,?,?,?,?,?,?)
                """,
                (beer_id, event_id, name, brewery, style, brought_by_attendee_id,
                 order_index, 0, photo_url, now_ms()),
            )
        return _require_beer(conn, event_id, beer_id)


def get_beer(event_id: str, beer_id: str) -> Beer:
    with db.connect() as conn:
        return _require_beer(conn, event_id, beer_id)


def list_beers(event_id: str) -> List[Beer]:
    with db.connect() as conn:
        return _list_beers(conn, event_id)


def randomize_beer_order(event_id: str) -> List[Beer]:
    with db.connect() as conn:
        _require_event(conn, event_id)
        beers = _list_beers(conn, event_id)
        positions = shuffled_order([b.id for b in beers])
        for beer_id, position in positions.items():
            conn.execute("UPDATE beers SET order_index=? WHERE id=?", (position, beer_id))
        beer_order = sorted(positions, key=positions.get)
        conn.execute("UPDATE events SET beer_order=? WHERE id=?", (json.dumps(beer_order), event_id))
        beers = _list_beers(conn, event_id)

    logger.info("Randomized order of %d beers for event %s", len(beers), event_id)
    return beers


def mark_beer_tasted(event_id: str, beer_id: str, tasted: bool) -> Beer:
    with db.connect() as conn:
        _require_beer(conn, event_id, beer_id)
        conn.execute("UPDATE beers SET tasted=? WHERE id=?", (int(tasted), beer_id))
        return _require_beer(conn, event_id, beer_id)


def delete_beer(event_id: str, beer_id: str) -> None:
    with db.connect() as conn:
        beer = _require_beer(conn, event_id, beer_id)
        conn.execute("DELETE FROM beers WHERE id=?", (beer_id,))
        deleted_scores = conn.execute(
            "DELETE FROM scores WHERE event_id=? AND beer_id=?", (event_id, beer_id)
        ).rowcount

        event = _require_event(conn, event_id)
        beer_order = [b for b in event.beer_order if b != beer_id]
        conn.execute("UPDATE events SET beer_order=? WHERE id=?", (json.dumps(beer_order), event_id))

    if beer.photo_url:
        photos.delete_photo(beer.photo_url)
    logger.info("Deleted beer %s from event %s (%d scores)", beer_id, event_id, deleted_scores)


# -----------------------
# Scores
# -----------------------
def submit_score(event_id: str, beer_id: str, attendee_id: str, values: Mapping[str, Any]) -> Score:
    filled = fill_values(values)
    total = sum(filled.values())

    with db.connect() as conn:
        event = _require_event(conn, event_id)
        if not event.is_active:
            raise EventClosedError("This event has ended. Scores are closed.")
        _require_beer(conn, event_id, beer_id)

        conn.execute(
            """
            INSERT INTO scores(id, event_id, beer_id, attendee_id, "values", total, updated_at)
            VALUES(?,?,?,?,?,?,?)
            ON CONFLICT(event_id, beer_id, attendee_id) DO UPDATE SET
                "values"=excluded."values", total=excluded.total, updated_at=excluded.updated_at
            """,
            (new_id(), event_id, beer_id, attendee_id, json.dumps(filled), total, now_ms()),
        )
        row = conn.execute(
            "SELECT * FROM scores WHERE event_id=? AND beer_id=? AND attendee_id=?",
            (event_id, beer_id, attendee_id),
        ).fetchone()
    return Score.from_row(row)


def list_scores(event_id: str, attendee_id: Optional[str] = None) -> List[Score]:
    with db.connect() as conn:
        return _list_scores(conn, event_id, attendee_id)


def scoring_progress(event_id: str) -> Dict[str, int]:
    """Number of distinct beers each attendee has scored."""
    with db.connect() as conn:
        rows = conn.execute(
            """
            SELECT attendee_id, COUNT(DISTINCT beer_id) AS scored
            FROM scores WHERE event_id=? GROUP BY attendee_id
            """,
            (event_id,),
        ).fetchall()
    return {r["attendee_id"]: int(r["scored"]) for r in rows}


def load_event_snapshot(event_id: str) -> Tuple[List[Beer], List[Attendee], List[Score]]:
    with db.connect() as conn:
        return _list_beers(conn, event_id), _list_attendees(conn, event_id), _list_scores(conn, event_id)


# -----------------------
# Retention
# -----------------------
def find_expired_events(cutoff_ms: int) -> List[Event]:
    with db.connect() as conn:
        rows = conn.execute(
            "SELECT * FROM events WHERE created_at < ? ORDER BY created_at", (cutoff_ms,)
        ).fetchall()
    return [Event.from_row(r) for r in rows]


def delete_event_cascade(event_id: str) -> CleanupCounts:
    """Delete an event with its beers, scores, attendees and photos."""
    counts = CleanupCounts()
    with db.connect() as conn:
        beers = _list_beers(conn, event_id)
        for beer in beers:
            if beer.photo_url and photos.delete_photo(beer.photo_url):
                counts.photos += 1

        counts.beers = conn.execute("DELETE FROM beers WHERE event_id=?", (event_id,)).rowcount
        counts.scores = conn.execute("DELETE FROM scores WHERE event_id=?", (event_id,)).rowcount
        counts.attendees = conn.execute("DELETE FROM attendees WHERE event_id=?", (event_id,)).rowcount
        counts.events = conn.execute("DELETE FROM events WHERE id=?", (event_id,)).rowcount

    photos.delete_event_media(event_id)
    return counts
