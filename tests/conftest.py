import pytest
from fastapi.testclient import TestClient

from beerfest import config, db
from beerfest.models import CATEGORIES, Attendee, Beer, Score


@pytest.fixture(autouse=True)
def tmp_store(tmp_path, monkeypatch):
    """Point the database and photo storage at a fresh temp directory."""
    monkeypatch.setattr(config, "DB_PATH", str(tmp_path / "beerfest.sqlite"))
    monkeypatch.setattr(config, "MEDIA_DIR", str(tmp_path / "media"))
    monkeypatch.setattr(config, "CLEANUP_ENABLED", False)
    monkeypatch.setattr(config, "ADMIN_TOKEN", "admin-secret")
    db.init_db()
    yield tmp_path


@pytest.fixture
def client():
    from beerfest.main import app

    return TestClient(app)


def values_for(total):
    """Spread a total over the five categories, highest first (18 -> 4,4,4,3,3)."""
    base, extra = divmod(total, len(CATEGORIES))
    return {c: base + (1 if i < extra else 0) for i, c in enumerate(CATEGORIES)}


def make_beer(beer_id, name=None):
    return Beer(id=beer_id, event_id="e1", name=name or beer_id, brought_by_attendee_id="host")


def make_attendee(attendee_id, name=None):
    return Attendee(id=attendee_id, event_id="e1", name=name or attendee_id.upper(), joined_at=0)


def make_score(beer_id, attendee_id, total=None, values=None, updated_at=0, score_id=None):
    if values is None:
        values = values_for(total)
    if total is None:
        total = sum(values.values())
    return Score(
        id=score_id or f"{beer_id}-{attendee_id}-{updated_at}",
        event_id="e1",
        beer_id=beer_id,
        attendee_id=attendee_id,
        values=values,
        total=total,
        updated_at=updated_at,
    )
