from __future__ import annotations

import asyncio
import logging
import secrets
from html import escape
from io import StringIO
from typing import Dict, List, Optional, Tuple

from fastapi import FastAPI, Form, HTTPException, Request
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.datastructures import UploadFile

from . import config, db, photos, store
from .cleanup import CleanupScheduler, run_cleanup
from .errors import AuthorizationError, BeerfestError, ValidationError
from .models import CATEGORIES, MAX_SCORE, Attendee, Beer
from .scoring import EventResults, results_frame, tally
from .session import SESSION_KEY, CurrentSession, SessionContext, encode_session

logger = logging.getLogger(__name__)

SESSION_MAX_AGE = 14 * 24 * 60 * 60

app = FastAPI()


class SessionRequired(Exception):
    """No usable session: send the visitor back to the start page."""

    def __init__(self, clear: bool = False):
        self.clear = clear


@app.on_event("startup")
async def _startup():
    config.configure_logging()
    db.init_db()
    if config.CLEANUP_ENABLED:
        scheduler = CleanupScheduler()
        app.state.cleanup_scheduler = scheduler
        app.state.cleanup_task = asyncio.create_task(scheduler.run())


@app.on_event("shutdown")
async def _shutdown():
    scheduler = getattr(app.state, "cleanup_scheduler", None)
    if scheduler is not None:
        await scheduler.shutdown()
        await app.state.cleanup_task


# -----------------------
# Session helpers
# -----------------------
def session_context(request: Request, response: Optional[Response] = None) -> SessionContext:
    """Session read from the request cookie; changes are mirrored onto `response`."""
    ctx = SessionContext(dict(request.cookies))
    if response is not None:

        def sync_cookie(session: Optional[CurrentSession]) -> None:
            if session is None:
                response.delete_cookie(SESSION_KEY)
            else:
                response.set_cookie(
                    SESSION_KEY,
                    encode_session(session),
                    max_age=SESSION_MAX_AGE,
                    httponly=True,
                    samesite="lax",
                )

        ctx.subscribe(sync_cookie)
    return ctx


def start_session(request: Request, response: Response, event, attendee: Attendee) -> None:
    session_context(request, response).save(
        CurrentSession(
            event_id=event.id,
            event_code=event.code,
            event_name=event.name,
            attendee_id=attendee.id,
            attendee_name=attendee.name,
            is_host=attendee.is_host,
            token=attendee.token,
        )
    )


def require_session(request: Request) -> Tuple[CurrentSession, Attendee]:
    session = session_context(request).load()
    if session is None:
        raise SessionRequired()
    try:
        attendee = store.authenticate(session.event_id, session.attendee_id, session.token)
    except AuthorizationError:
        raise SessionRequired(clear=True)
    return session, attendee


def require_host(request: Request) -> Tuple[CurrentSession, Attendee]:
    session, attendee = require_session(request)
    if not attendee.is_host:
        raise AuthorizationError("Only the host can do that.")
    return session, attendee


@app.exception_handler(SessionRequired)
async def _session_required(request: Request, exc: SessionRequired):
    response = RedirectResponse(url="/", status_code=303)
    if exc.clear:
        session_context(request, response).clear()
    return response


@app.exception_handler(BeerfestError)
async def _beerfest_error(request: Request, exc: BeerfestError):
    return page(
        "Oops",
        f'<div class="card"><p class="danger">{escape(str(exc))}</p>'
        f'<p><a href="javascript:history.back()">← Back</a> | <a href="/">Home</a></p></div>',
        status_code=exc.status_code,
    )


# -----------------------
# Form helpers
# -----------------------
async def read_photo(request: Request) -> Tuple[str, bytes]:
    """The uploaded photo, if any. Rejects unsupported file types before anything is stored."""
    form = await request.form()
    photo = form.get("photo")
    if not isinstance(photo, UploadFile) or not photo.filename:
        return "", b""
    data = await photo.read()
    if data:
        photos.check_photo_name(photo.filename)
    return photo.filename, data


def register_beer(
    event_id: str, attendee_id: str, name: str, brewery: str, style: str, photo: Tuple[str, bytes]
) -> Beer:
    filename, data = photo
    beer = store.add_or_update_beer(event_id, name, attendee_id, brewery=brewery, style=style)
    if data:
        url = photos.save_beer_photo(event_id, beer.id, filename, data)
        beer = store.add_or_update_beer(
            event_id, beer.name, attendee_id, brewery=beer.brewery, style=beer.style,
            beer_id=beer.id, photo_url=url,
        )
    return beer


def beer_fields() -> str:
    return f"""
        <div class="row">
          <input name="beer_name" placeholder="Beer name" required />
          <input name="brewery" placeholder="Brewery" />
          <input name="style" placeholder="Style (e.g., IPA)" />
        </div>
        <p class="muted">Photo (optional): <input name="photo" type="file" accept="image/*" /></p>
    """


# -----------------------
# UI helpers
# -----------------------
def page(title: str, body: str, status_code: int = 200) -> HTMLResponse:
    html = f"""
    <html>
      <head>
        <title>{escape(title)}</title>
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <style>
          body {{ font-family: system-ui, Arial; max-width: 980px; margin: 0 auto; padding: 22px; }}
          input, textarea, button, select {{ font-size: 16px; padding: 10px; }}
          .card {{ border: 1px solid #ddd; border-radius: 12px; padding: 16px; margin: 16px 0; }}
          .row {{ display: flex; gap: 12px; flex-wrap: wrap; align-items: center; }}
          .row > * {{ flex: 1; min-width: 220px; }}
          table {{ border-collapse: collapse; width: 100%; }}
          th, td {{ border: 1px solid #ddd; padding: 8px; }}
          th {{ text-align: left; background: #f7f7f7; }}
          .muted {{ color: #666; }}
          .pill {{ display:inline-block; padding:4px 10px; border:1px solid #ddd; border-radius:999px; }}
          a {{ text-decoration: none; }}
          .danger {{ color: #b00020; }}
          .ok {{ color: #2e7d32; }}
          .warn {{ background: #fff8e1; border-color: #ffe082; }}
          .gold {{ background: #fff8dc; border: 2px solid #f5d76e; }}
          .silver {{ background: #f4f4f4; border: 2px solid #c0c0c0; }}
          .bronze {{ background: #fff1e6; border: 2px solid #e0a370; }}
          .inline {{ display: inline; }}
          .thumb {{ height: 48px; border-radius: 6px; }}
          .score-pill {{ display:inline-block; min-width: 44px; text-align:center; border:1px solid #ddd; border-radius:999px; padding:2px 8px; margin-left: 10px; }}
        </style>
      </head>
      <body>
        <h1>{escape(title)}</h1>
        {body}
      </body>
    </html>
    """
    return HTMLResponse(html, status_code=status_code)


def names_by_id(attendees: List[Attendee]) -> Dict[str, str]:
    return {a.id: a.name for a in attendees}


# -----------------------
# Routes: Home
# -----------------------
@app.get("/", response_class=HTMLResponse)
def home(request: Request):
    session = session_context(request).load()
    resume = ""
    if session is not None:
        target = "/host" if session.is_host else "/score"
        resume = f"""
        <div class="card">
          <p>You are in <b>{escape(session.event_name)}</b> as {escape(session.attendee_name)}.</p>
          <p><a href="{target}">Continue →</a></p>
          <form method="post" action="/leave"><button type="submit">Leave Event</button></form>
        </div>
        """
    return page(
        "Beerfest",
        f"""
        {resume}
        <div class="card">
          <p><a href="/create">Host a tasting</a> | <a href="/join">Join a tasting</a> | <a href="/how-it-works">How it works</a></p>
          <p class="muted">
            Everyone brings a beer, everyone scores every beer 0–{MAX_SCORE} on
            {", ".join(CATEGORIES)}. Only attendees who scored every beer count towards the results.
          </p>
        </div>
        """,
    )


@app.get("/how-it-works", response_class=HTMLResponse)
def how_it_works():
    steps = [
        "The host creates an event and shares the six-character join code.",
        "Each attendee joins with the code and registers the beer they brought.",
        "The host randomizes the tasting order and marks beers as tasted.",
        f"For each beer, score {', '.join(CATEGORIES)} from 0 to {MAX_SCORE} (max {MAX_SCORE * len(CATEGORIES)} points).",
        "When the host ends the event, everyone sees the results.",
        "Attendees who did not score every beer are left out of the results.",
        f"Events are deleted automatically after {config.RETENTION_DAYS} days.",
    ]
    items = "".join(f"<li>{escape(s)}</li>" for s in steps)
    return page("How it works", f'<div class="card"><ol>{items}</ol><p><a href="/">← Home</a></p></div>')


@app.post("/leave")
def leave(request: Request):
    response = RedirectResponse(url="/", status_code=303)
    session_context(request, response).clear()
    return response


# -----------------------
# Routes: Create / Join
# -----------------------
@app.get("/create", response_class=HTMLResponse)
def create_form():
    body = f"""
    <div class="card">
      <h2>Create Event</h2>
      <form method="post" action="/create" enctype="multipart/form-data">
        <div class="row">
          <input name="event_name" placeholder="Event name (e.g., Friday Sour Night)" required />
          <input name="host_name" placeholder="Your name" required />
        </div>
        <h3>Your beer</h3>
        {beer_fields()}
        <button type="submit">Create</button>
      </form>
    </div>
    """
    return page("Host a tasting", body)


@app.post("/create")
async def create(
    request: Request,
    event_name: str = Form(...),
    host_name: str = Form(...),
    beer_name: str = Form(...),
    brewery: str = Form(""),
    style: str = Form(""),
):
    if not beer_name.strip():
        raise ValidationError("Beer name is required.")
    photo = await read_photo(request)
    event, host = store.create_event(host_name, event_name)
    register_beer(event.id, host.id, beer_name, brewery, style, photo)

    response = RedirectResponse(url="/host", status_code=303)
    start_session(request, response, event, host)
    return response


@app.get("/join", response_class=HTMLResponse)
def join_form(code: str = ""):
    body = f"""
    <div class="card">
      <h2>Join Event</h2>
      <form method="post" action="/join" enctype="multipart/form-data">
        <div class="row">
          <input name="code" placeholder="Join code" value="{escape(code.strip().upper())}" required />
          <input name="attendee_name" placeholder="Your name" required />
        </div>
        <h3>Your beer</h3>
        {beer_fields()}
        <button type="submit">Join</button>
      </form>
      <p class="muted">Ask the host for the join code.</p>
    </div>
    """
    return page("Join a tasting", body)


@app.post("/join")
async def join(
    request: Request,
    code: str = Form(...),
    attendee_name: str = Form(...),
    beer_name: str = Form(...),
    brewery: str = Form(""),
    style: str = Form(""),
):
    if not beer_name.strip():
        raise ValidationError("Beer name is required.")
    photo = await read_photo(request)
    event, attendee = store.join_event_by_code(code, attendee_name)
    register_beer(event.id, attendee.id, beer_name, brewery, style, photo)

    response = RedirectResponse(url="/score", status_code=303)
    start_session(request, response, event, attendee)
    return response


# -----------------------
# Routes: Host
# -----------------------
@app.get("/host", response_class=HTMLResponse)
def host_dashboard(request: Request):
    session, attendee = require_session(request)
    if not attendee.is_host:
        return RedirectResponse(url="/score", status_code=303)

    event = store.require_event(session.event_id)
    if not event.is_active:
        return RedirectResponse(url="/results", status_code=303)

    beers = store.list_beers(event.id)
    attendees = store.list_attendees(event.id)
    progress = store.scoring_progress(event.id)
    names = names_by_id(attendees)
    join_url = f"{str(request.base_url).rstrip('/')}/join?code={event.code}"

    beer_rows = ""
    for b in beers:
        photo = f'<img class="thumb" src="{escape(b.photo_url)}" alt="" />' if b.photo_url else ""
        status = '<span class="ok">tasted</span>' if b.tasted else '<span class="muted">pending</span>'
        beer_rows += f"""
        <tr>
          <td>{"" if b.order_index is None else b.order_index + 1}</td>
          <td>{photo} {escape(b.name)}<div class="muted">{escape(" · ".join(x for x in (b.brewery, b.style) if x))}</div></td>
          <td>{escape(names.get(b.brought_by_attendee_id, "Unknown"))}</td>
          <td>
            {status}
            <form class="inline" method="post" action="/beers/{b.id}/tasted">
              <input type="hidden" name="tasted" value="{0 if b.tasted else 1}" />
              <button type="submit">{"Undo" if b.tasted else "Mark tasted"}</button>
            </form>
          </td>
          <td>
            <form class="inline" method="post" action="/beers/{b.id}/delete" onsubmit="return confirm('Delete this beer and its scores?');">
              <button type="submit">Delete</button>
            </form>
          </td>
        </tr>
        """
    if not beer_rows:
        beer_rows = '<tr><td colspan="5" class="muted">No beers yet.</td></tr>'

    attendee_rows = ""
    for a in attendees:
        scored = progress.get(a.id, 0)
        done = beers and scored >= len(beers)
        attendee_rows += (
            f"<tr><td>{escape(a.name)}{' (host)' if a.is_host else ''}</td>"
            f"<td class=\"{'ok' if done else 'muted'}\">{scored} / {len(beers)}</td></tr>"
        )

    body = f"""
    <div class="card">
      <h2>{escape(event.name)}</h2>
      <p>Join Code: <span class="pill">{event.code}</span></p>
      <p class="muted">Join link: <a href="{escape(join_url)}">{escape(join_url)}</a></p>
      <p><a href="/score">Score beers →</a></p>
    </div>

    <div class="card">
      <h3>Beers</h3>
      <table>
        <thead><tr><th>#</th><th>Beer</th><th>Brought By</th><th>Status</th><th></th></tr></thead>
        <tbody>{beer_rows}</tbody>
      </table>
      <form method="post" action="/randomize" style="margin-top:12px;">
        <button type="submit">Randomize Order</button>
      </form>
    </div>

    <div class="card">
      <h3>Add Beer</h3>
      <form method="post" action="/beers" enctype="multipart/form-data">
        {beer_fields()}
        <button type="submit">Add Beer</button>
      </form>
    </div>

    <div class="card">
      <h3>Attendees</h3>
      <table>
        <thead><tr><th>Name</th><th>Beers Scored</th></tr></thead>
        <tbody>{attendee_rows}</tbody>
      </table>
    </div>

    <div class="card">
      <h3>Controls</h3>
      <form method="post" action="/end" onsubmit="return confirm('End the event and reveal results?');">
        <button type="submit">End Event</button>
      </form>
      <form method="post" action="/leave" style="margin-top:12px;">
        <button type="submit">Leave Event</button>
      </form>
    </div>
    """
    return page("Host Dashboard", body)


@app.post("/beers")
async def add_beer(
    request: Request,
    beer_name: str = Form(...),
    brewery: str = Form(""),
    style: str = Form(""),
):
    session, attendee = require_host(request)
    photo = await read_photo(request)
    register_beer(session.event_id, attendee.id, beer_name, brewery, style, photo)
    return RedirectResponse(url="/host", status_code=303)


@app.post("/beers/{beer_id}/tasted")
def beer_tasted(request: Request, beer_id: str, tasted: int = Form(1)):
    session, _host = require_host(request)
    store.mark_beer_tasted(session.event_id, beer_id, bool(tasted))
    return RedirectResponse(url="/host", status_code=303)


@app.post("/beers/{beer_id}/delete")
def beer_delete(request: Request, beer_id: str):
    session, _host = require_host(request)
    store.delete_beer(session.event_id, beer_id)
    return RedirectResponse(url="/host", status_code=303)


@app.post("/randomize")
def randomize(request: Request):
    session, _host = require_host(request)
    store.randomize_beer_order(session.event_id)
    return RedirectResponse(url="/host", status_code=303)


@app.post("/end")
def end(request: Request):
    session, _host = require_host(request)
    store.end_event(session.event_id)
    return RedirectResponse(url="/results", status_code=303)


# -----------------------
# Routes: Score
# -----------------------
def pick_beer(beers: List[Beer], requested: Optional[str]) -> Optional[Beer]:
    by_id = {b.id: b for b in beers}
    if requested in by_id:
        return by_id[requested]
    for b in beers:
        if not b.tasted:
            return b
    return beers[0] if beers else None


def status_poller(event_id: str) -> str:
    """Sends the page to the results once the host ends the event."""
    return f"""
    <script>
      setInterval(async () => {{
        try {{
          const res = await fetch('/api/events/{event_id}/status');
          if (res.ok && (await res.json()).status === 'ended') window.location = '/results';
        }} catch (e) {{}}
      }}, 5000);
    </script>
    """


@app.get("/score", response_class=HTMLResponse)
def score_page(request: Request, beer_id: Optional[str] = None):
    session, attendee = require_session(request)
    event = store.require_event(session.event_id)
    if not event.is_active:
        return RedirectResponse(url="/results", status_code=303)

    beers = store.list_beers(event.id)
    mine = {s.beer_id: s for s in store.list_scores(event.id, attendee_id=attendee.id)}
    active = pick_beer(beers, beer_id)

    if active is None:
        body = '<div class="card">No beers registered yet. Check back soon.</div>'
        return page("Score", body + status_poller(event.id))

    tabs = ""
    for idx, b in enumerate(beers, start=1):
        marker = " ✓" if b.id in mine else ""
        label = f"{idx}. {escape(b.name)}{marker}"
        tabs += f'<a class="pill" href="/score?beer_id={b.id}">{"<b>" + label + "</b>" if b.id == active.id else label}</a> '

    existing = mine.get(active.id)
    rows = ""
    for c in CATEGORIES:
        val = int(existing.values.get(c, 0)) if existing else 0
        rows += f"""
        <tr>
          <td style="text-transform:capitalize;">{c}</td>
          <td style="min-width:280px;">
            <input type="range" min="0" max="{MAX_SCORE}" step="1" name="c__{c}" value="{val}" oninput="syncVal(this)">
            <span class="score-pill">{val}</span>
          </td>
        </tr>
        """

    photo = f'<p><img src="{escape(active.photo_url)}" alt="" style="max-width:100%;" /></p>' if active.photo_url else ""
    body = f"""
    <div class="card">
      <p>{escape(event.name)} · {escape(attendee.name)}{' · <a href="/host">Host dashboard</a>' if attendee.is_host else ''}</p>
      <p>{tabs}</p>
      <p class="muted">Scored {len(mine)} of {len(beers)} beers.</p>
    </div>

    <div class="card">
      <h2>{escape(active.name)}</h2>
      <p class="muted">{escape(" · ".join(x for x in (active.brewery, active.style) if x))}</p>
      {photo}
      <form method="post" action="/score">
        <input type="hidden" name="beer_id" value="{active.id}" />
        <table>
          <thead><tr><th>Category</th><th>Score</th></tr></thead>
          <tbody>{rows}</tbody>
        </table>
        <button type="submit" style="margin-top:12px;">{"Update" if existing else "Submit"} Score</button>
      </form>
    </div>

    <script>
      function syncVal(slider) {{
        slider.parentElement.querySelector('.score-pill').textContent = slider.value;
      }}
    </script>
    {status_poller(event.id)}
    """
    return page("Score", body)


@app.post("/score")
async def score_submit(request: Request, beer_id: str = Form(...)):
    session, attendee = require_session(request)
    form = await request.form()
    values = {c: form.get(f"c__{c}") for c in CATEGORIES}
    store.submit_score(session.event_id, beer_id, attendee.id, values)

    # move on to the next beer this attendee has not scored yet
    scored = {s.beer_id for s in store.list_scores(session.event_id, attendee_id=attendee.id)}
    remaining = [b.id for b in store.list_beers(session.event_id) if b.id not in scored]
    next_id = remaining[0] if remaining else beer_id
    return RedirectResponse(url=f"/score?beer_id={next_id}", status_code=303)


# -----------------------
# Routes: Results
# -----------------------
def compute_results(event_id: str):
    beers, attendees, scores = store.load_event_snapshot(event_id)
    results = tally(beers, attendees, scores, min_consistency_scores=config.MIN_CONSISTENCY_SCORES)
    return beers, attendees, results


def fun_stat(stat, value: float) -> str:
    if stat is None:
        return "N/A"
    return f"{escape(stat.name)} — {value:.2f}"


def render_results(beers: List[Beer], attendees: List[Attendee], results: EventResults) -> str:
    beer_by_id = {b.id: b for b in beers}
    names = names_by_id(attendees)

    def beer_name(beer_id: str) -> str:
        beer = beer_by_id.get(beer_id)
        return escape(beer.name if beer else beer_id)

    def brought_by(beer_id: str) -> str:
        beer = beer_by_id.get(beer_id)
        owner = beer.brought_by_attendee_id if beer else ""
        return escape(names.get(owner) or owner or "Unknown")

    winner = ""
    if results.winner:
        winner = f"""
        <div class="card gold" style="text-align:center;">
          <h2>🏆 Winner</h2>
          <p style="font-size:22px;"><b>{beer_name(results.winner.beer_id)}</b></p>
          <p>{results.winner.total} points</p>
        </div>
        """

    warning = ""
    if results.excluded_attendee_ids:
        warning = f"""
        <div class="card warn">
          <h3>⚠️ Incomplete Scores</h3>
          <p>Some attendees didn't complete all their scores and have been excluded from the results.
          Only attendees who scored all {len(beers)} beers are included in the final rankings.</p>
        </div>
        """

    ranking_rows = ""
    for r in results.ranking:
        ranking_rows += (
            f'<tr class="{r.medal or ""}"><td>{r.position}</td><td>{beer_name(r.beer_id)}</td>'
            f"<td>{brought_by(r.beer_id)}</td><td><b>{r.total}</b></td></tr>"
        )
    if not ranking_rows:
        ranking_rows = '<tr><td colspan="4" class="muted">No complete scores yet.</td></tr>'

    category_rows = ""
    for c, w in results.category_winners.items():
        detail = f"{beer_name(w.beer_id)} — {w.value} points" if w else '<span class="muted">No scores</span>'
        category_rows += f'<tr><td style="text-transform:capitalize;">Best {c}</td><td>{detail}</td></tr>'

    head = "".join(f"<th>{escape(s.name)}</th>" for s in results.attendee_stats)
    detail_rows = ""
    for r in results.ranking:
        cells = "".join(
            f"<td>{int(results.score_matrix.at[r.beer_id, s.attendee_id])}</td>"
            for s in results.attendee_stats
        )
        detail_rows += (
            f"<tr><td>{beer_name(r.beer_id)}</td><td>{brought_by(r.beer_id)}</td>{cells}"
            f"<td><b>{r.total}</b></td></tr>"
        )

    generous = results.most_generous
    tough = results.toughest_critic
    consistent = results.most_consistent
    return f"""
    {winner}
    {warning}
    <div class="card">
      <h2>Final Rankings</h2>
      <p><a href="/results.csv">Download Results CSV</a></p>
      <table>
        <thead><tr><th>Rank</th><th>Beer</th><th>Brought By</th><th>Points</th></tr></thead>
        <tbody>{ranking_rows}</tbody>
      </table>
    </div>

    <div class="card">
      <h2>Category Winners</h2>
      <table><tbody>{category_rows}</tbody></table>
    </div>

    <div class="card">
      <h2>Detailed Scores</h2>
      <table>
        <thead><tr><th>Beer</th><th>Brought By</th>{head}<th>Total</th></tr></thead>
        <tbody>{detail_rows}</tbody>
      </table>
    </div>

    <div class="card">
      <h2>Fun Stats</h2>
      <table>
        <tbody>
          <tr><td>Most Generous Scorer<div class="muted">Highest average scores given</div></td>
              <td>{fun_stat(generous, generous.average if generous else 0)}</td></tr>
          <tr><td>Toughest Critic<div class="muted">Lowest average scores given</div></td>
              <td>{fun_stat(tough, tough.average if tough else 0)}</td></tr>
          <tr><td>Most Consistent<div class="muted">Least variation in scores</div></td>
              <td>{fun_stat(consistent, consistent.stddev if consistent else 0)}</td></tr>
        </tbody>
      </table>
    </div>
    """


@app.get("/results", response_class=HTMLResponse)
def results_page(request: Request):
    session, _attendee = require_session(request)
    event = store.require_event(session.event_id)
    beers, attendees, results = compute_results(event.id)
    back = '<p><a href="/host">← Host dashboard</a></p>' if session.is_host and event.is_active else ""
    body = f"""
    <div class="card">
      {back}
      <h2>{escape(event.name)}</h2>
      <p class="muted">{"The final scores are in!" if not event.is_active else "Scoring is still open. These results may change."}</p>
    </div>
    {render_results(beers, attendees, results)}
    """
    return page("Festival Results", body)


@app.get("/results.csv")
def download_results(request: Request):
    session, _attendee = require_session(request)
    event = store.require_event(session.event_id)
    beers, attendees, results = compute_results(event.id)

    buf = StringIO()
    results_frame(results, beers, attendees).to_csv(buf, index=False)
    return Response(
        content=buf.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="event_{event.code}_results.csv"'},
    )


# -----------------------
# Routes: Media
# -----------------------
@app.get("/media/{path:path}")
def media(path: str):
    # resolved per request so MEDIA_DIR can change after import
    file_path = photos.path_for_url(photos.MEDIA_URL_PREFIX + path)
    if file_path is None or not file_path.is_file():
        raise HTTPException(status_code=404, detail="Not found.")
    return FileResponse(file_path)


# -----------------------
# Routes: API
# -----------------------
@app.get("/api/events/{event_id}/status")
def event_status(event_id: str):
    event = store.get_event(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found.")
    return JSONResponse({"id": event.id, "status": event.status, "beer_order": event.beer_order})


@app.post("/admin/cleanup")
def admin_cleanup(admin_token: str = Form(""), days: Optional[int] = Form(None)):
    if not config.ADMIN_TOKEN or not secrets.compare_digest(admin_token, config.ADMIN_TOKEN):
        raise HTTPException(status_code=403, detail="Invalid admin token.")
    logger.info("Manual cleanup triggered")
    counts = run_cleanup(days=days)
    return JSONResponse(
        {
            "success": True,
            "message": f"Cleaned up {counts.events} old events",
            **counts.to_dict(),
        }
    )
