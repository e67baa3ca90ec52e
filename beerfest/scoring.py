from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .models import CATEGORIES, Attendee, Beer, Score, clamp_score

SCORE_COLUMNS = ["beer_id", "attendee_id", "total", "updated_at", *CATEGORIES]
MEDALS = {1: "gold", 2: "silver", 3: "bronze"}


@dataclass(frozen=True)
class RankedBeer:
    position: int
    beer_id: str
    total: int

    @property
    def medal(self) -> Optional[str]:
        return MEDALS.get(self.position)


@dataclass(frozen=True)
class CategoryWinner:
    category: str
    beer_id: str
    value: int


@dataclass(frozen=True)
class AttendeeStats:
    attendee_id: str
    name: str
    count: int
    average: float
    stddev: float


@dataclass
class EventResults:
    beer_totals: Dict[str, int] = field(default_factory=dict)
    ranking: List[RankedBeer] = field(default_factory=list)
    category_winners: Dict[str, Optional[CategoryWinner]] = field(
        default_factory=lambda: {c: None for c in CATEGORIES}
    )
    attendee_stats: List[AttendeeStats] = field(default_factory=list)
    most_generous: Optional[AttendeeStats] = None
    toughest_critic: Optional[AttendeeStats] = None
    most_consistent: Optional[AttendeeStats] = None
    included_attendee_ids: List[str] = field(default_factory=list)
    excluded_attendee_ids: List[str] = field(default_factory=list)
    # rows = beer_id in ranking order, cols = attendee_id, values = score total
    score_matrix: pd.DataFrame = field(default_factory=pd.DataFrame)

    @property
    def winner(self) -> Optional[RankedBeer]:
        return self.ranking[0] if self.ranking else None


# -----------------------
# Input shaping
# -----------------------
def scores_frame(scores: Sequence[Score]) -> pd.DataFrame:
    """One row per score record, category values clamped, input order kept."""
    rows = [
        {
            "beer_id": s.beer_id,
            "attendee_id": s.attendee_id,
            "total": int(s.total),
            "updated_at": int(s.updated_at),
            **{c: clamp_score(s.values.get(c)) for c in CATEGORIES},
        }
        for s in scores
    ]
    return pd.DataFrame(rows, columns=SCORE_COLUMNS)


def latest_per_pair(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Collapse duplicate (beer, attendee) rows to the most recently updated one.
    Equal timestamps keep the row that came later in the input. Survivors keep
    their original relative order.
    """
    if frame.empty:
        return frame
    latest = frame.sort_values("updated_at", kind="mergesort").drop_duplicates(
        subset=["beer_id", "attendee_id"], keep="last"
    )
    return latest.sort_index(kind="mergesort")


def complete_attendee_ids(frame: pd.DataFrame, beer_count: int) -> List[str]:
    """Attendees that have scored every beer, in order of first appearance."""
    if frame.empty or beer_count == 0:
        return []
    counts = frame.groupby("attendee_id", sort=False)["beer_id"].nunique()
    return [str(a) for a in counts[counts == beer_count].index]


# -----------------------
# Aggregation
# -----------------------
def rank_beers(beer_totals: Dict[str, int]) -> List[RankedBeer]:
    if not beer_totals:
        return []
    ordered = pd.Series(beer_totals, dtype="int64").sort_values(
        ascending=False, kind="mergesort"
    )
    return [
        RankedBeer(position=idx, beer_id=str(beer_id), total=int(total))
        for idx, (beer_id, total) in enumerate(ordered.items(), start=1)
    ]


def category_winners(included: pd.DataFrame) -> Dict[str, Optional[CategoryWinner]]:
    winners: Dict[str, Optional[CategoryWinner]] = {c: None for c in CATEGORIES}
    if included.empty:
        return winners

    sums = included.groupby("beer_id", sort=False)[list(CATEGORIES)].sum()
    for c in CATEGORIES:
        # idxmax returns the first label holding the maximum
        beer_id = sums[c].idxmax()
        winners[c] = CategoryWinner(category=c, beer_id=str(beer_id), value=int(sums.at[beer_id, c]))
    return winners


def attendee_stats(included: pd.DataFrame, names: Dict[str, str]) -> List[AttendeeStats]:
    stats: List[AttendeeStats] = []
    for attendee_id, totals in included.groupby("attendee_id", sort=False)["total"]:
        values = totals.to_numpy(dtype=np.float64)
        stats.append(
            AttendeeStats(
                attendee_id=str(attendee_id),
                name=names.get(str(attendee_id)) or str(attendee_id),
                count=int(values.size),
                average=float(values.mean()),
                # population standard deviation (ddof=0)
                stddev=float(values.std()),
            )
        )
    return stats


def tally(
    beers: Sequence[Beer],
    attendees: Sequence[Attendee],
    scores: Sequence[Score],
    min_consistency_scores: int = 1,
) -> EventResults:
    """
    Aggregate an event's scores into totals, rankings and attendee highlights.

    Only attendees who scored every beer take part; everyone else is listed in
    ``excluded_attendee_ids``. Ties keep the order in which beers (or
    attendees) first appear in ``scores``. Never raises: degenerate inputs
    produce empty results.
    """
    names = {a.id: a.name for a in attendees}
    beer_ids = list(dict.fromkeys(b.id for b in beers))

    frame = scores_frame(scores)
    frame = frame[frame["beer_id"].isin(beer_ids)]
    frame = latest_per_pair(frame)

    complete = complete_attendee_ids(frame, len(beer_ids))
    known = list(dict.fromkeys([a.id for a in attendees] + [str(a) for a in frame["attendee_id"]]))
    complete_set = set(complete)
    excluded = [a for a in known if a not in complete_set]

    if not complete:
        return EventResults(excluded_attendee_ids=excluded)

    included = frame[frame["attendee_id"].isin(complete)]

    totals = included.groupby("beer_id", sort=False)["total"].sum()
    beer_totals = {str(b): int(t) for b, t in totals.items()}
    ranking = rank_beers(beer_totals)

    stats = attendee_stats(included, names)

    # Each highlight re-sorts the previous ordering, so ties fall back to it.
    by_generosity = sorted(stats, key=lambda s: -s.average)
    by_toughness = sorted(by_generosity, key=lambda s: s.average)
    eligible = [s for s in by_toughness if s.count >= min_consistency_scores]
    by_consistency = sorted(eligible, key=lambda s: s.stddev)

    matrix = included.pivot(index="beer_id", columns="attendee_id", values="total").reindex(
        index=[r.beer_id for r in ranking], columns=[s.attendee_id for s in stats]
    )

    return EventResults(
        beer_totals=beer_totals,
        ranking=ranking,
        category_winners=category_winners(included),
        attendee_stats=stats,
        most_generous=by_generosity[0],
        toughest_critic=by_toughness[0],
        most_consistent=by_consistency[0] if by_consistency else None,
        included_attendee_ids=complete,
        excluded_attendee_ids=excluded,
        score_matrix=matrix,
    )


# -----------------------
# Reporting
# -----------------------
def _attendee_labels(stats: Sequence[AttendeeStats]) -> Dict[str, str]:
    """Column label per attendee; repeated names are suffixed with the id."""
    counts: Dict[str, int] = {}
    for s in stats:
        counts[s.name] = counts.get(s.name, 0) + 1
    return {s.attendee_id: s.name if counts[s.name] == 1 else f"{s.name} ({s.attendee_id})" for s in stats}


def results_frame(
    results: EventResults,
    beers: Sequence[Beer],
    attendees: Sequence[Attendee],
) -> pd.DataFrame:
    """
    Ranking as a flat table:
      columns: Rank, Beer, Brewery, Style, BroughtBy, Total, then one column per attendee
    """
    beer_by_id = {b.id: b for b in beers}
    names = {a.id: a.name for a in attendees}
    labels = _attendee_labels(results.attendee_stats)

    rows = []
    for r in results.ranking:
        beer = beer_by_id.get(r.beer_id)
        brought_by = beer.brought_by_attendee_id if beer else ""
        row = [
            r.position,
            beer.name if beer else r.beer_id,
            beer.brewery if beer else "",
            beer.style if beer else "",
            names.get(brought_by) or brought_by or "Unknown",
            r.total,
        ]
        row += [int(results.score_matrix.at[r.beer_id, a]) for a in labels]
        rows.append(row)

    columns = ["Rank", "Beer", "Brewery", "Style", "BroughtBy", "Total", *labels.values()]
    return pd.DataFrame(rows, columns=columns)
