import math

import pytest

from beerfest.models import CATEGORIES
from beerfest.scoring import (
    complete_attendee_ids,
    latest_per_pair,
    rank_beers,
    results_frame,
    scores_frame,
    tally,
)
from conftest import make_attendee, make_beer, make_score


@pytest.fixture
def two_beers():
    return [make_beer("A", "Amber"), make_beer("B", "Blonde")]


@pytest.fixture
def two_tasters():
    return [make_attendee("a1", "Alice"), make_attendee("a2", "Bob")]


@pytest.fixture
def basic_scores():
    return [
        make_score("A", "a1", 20),
        make_score("B", "a1", 15),
        make_score("A", "a2", 18),
        make_score("B", "a2", 22),
    ]


class TestTally:
    def test_totals_and_ranking(self, two_beers, two_tasters, basic_scores):
        results = tally(two_beers, two_tasters, basic_scores)

        assert results.beer_totals == {"A": 38, "B": 37}
        assert [(r.beer_id, r.total) for r in results.ranking] == [("A", 38), ("B", 37)]
        assert [r.position for r in results.ranking] == [1, 2]
        assert results.winner.beer_id == "A"

    def test_attendee_highlights(self, two_beers, two_tasters, basic_scores):
        results = tally(two_beers, two_tasters, basic_scores)

        assert results.most_generous.attendee_id == "a2"
        assert results.most_generous.average == pytest.approx(20.0)
        assert results.toughest_critic.attendee_id == "a1"
        assert results.toughest_critic.average == pytest.approx(17.5)
        # a1: [20, 15] -> 2.5, a2: [18, 22] -> 2.0
        assert results.most_consistent.attendee_id == "a2"
        assert results.most_consistent.stddev == pytest.approx(2.0)

    def test_stddev_is_population(self, two_beers, two_tasters):
        scores = [make_score("A", "a1", 10), make_score("B", "a1", 20)]
        results = tally(two_beers, two_tasters, scores)

        # sample stddev would be ~7.07
        assert results.attendee_stats[0].stddev == pytest.approx(5.0)

    def test_names_come_from_attendee_list(self, two_beers, two_tasters, basic_scores):
        results = tally(two_beers, two_tasters, basic_scores)
        assert [s.name for s in results.attendee_stats] == ["Alice", "Bob"]

    def test_unknown_attendee_falls_back_to_id(self, two_beers):
        scores = [make_score("A", "ghost", 10), make_score("B", "ghost", 12)]
        results = tally(two_beers, [], scores)
        assert results.attendee_stats[0].name == "ghost"

    def test_category_winners(self, two_beers, two_tasters, basic_scores):
        results = tally(two_beers, two_tasters, basic_scores)
        winners = results.category_winners

        assert set(winners) == set(CATEGORIES)
        # look: A = 4 + 4, B = 3 + 5 -> tied, first beer seen wins
        assert (winners["look"].beer_id, winners["look"].value) == ("A", 8)
        # finish: A = 4 + 3, B = 3 + 4 -> tied again
        assert (winners["finish"].beer_id, winners["finish"].value) == ("A", 7)

    def test_category_sums_use_clamped_values(self, two_beers, two_tasters):
        wild = {"look": 9, "aroma": -3, "flavour": float("nan"), "mouthfeel": 2.9}
        scores = [
            make_score("A", "a1", values=wild, total=7),
            make_score("B", "a1", values={"look": 4}, total=4),
        ]
        results = tally(two_beers, two_tasters, scores)

        assert results.category_winners["look"].value == 5
        assert results.category_winners["mouthfeel"].value == 2
        assert results.category_winners["aroma"].value == 0

    def test_medals(self, two_tasters):
        beers = [make_beer(x) for x in "ABCD"]
        scores = [make_score(b, "a1", t) for b, t in zip("ABCD", [25, 20, 15, 10])]
        results = tally(beers, two_tasters, scores)

        assert [r.medal for r in results.ranking] == ["gold", "silver", "bronze", None]

    def test_score_matrix(self, two_beers, two_tasters, basic_scores):
        matrix = tally(two_beers, two_tasters, basic_scores).score_matrix

        assert list(matrix.index) == ["A", "B"]
        assert list(matrix.columns) == ["a1", "a2"]
        assert matrix.at["B", "a2"] == 22


class TestCompleteness:
    def test_incomplete_attendee_fully_excluded(self, two_beers, two_tasters, basic_scores):
        attendees = two_tasters + [make_attendee("a3", "Cleo")]
        scores = basic_scores + [make_score("A", "a3", 25)]
        results = tally(two_beers, attendees, scores)

        assert results.beer_totals == {"A": 38, "B": 37}
        assert [r.beer_id for r in results.ranking] == ["A", "B"]
        assert results.included_attendee_ids == ["a1", "a2"]
        assert results.excluded_attendee_ids == ["a3"]
        assert "a3" not in [s.attendee_id for s in results.attendee_stats]
        assert results.most_generous.attendee_id == "a2"
        assert "a3" not in results.score_matrix.columns

    def test_attendee_without_scores_is_excluded(self, two_beers, two_tasters, basic_scores):
        attendees = two_tasters + [make_attendee("a3")]
        results = tally(two_beers, attendees, basic_scores)
        assert results.excluded_attendee_ids == ["a3"]

    def test_nobody_complete(self, two_beers, two_tasters):
        scores = [make_score("A", "a1", 20), make_score("B", "a2", 20)]
        results = tally(two_beers, two_tasters, scores)

        assert results.beer_totals == {}
        assert results.ranking == []
        assert results.winner is None
        assert all(w is None for w in results.category_winners.values())
        assert results.most_generous is None
        assert results.excluded_attendee_ids == ["a1", "a2"]

    def test_scores_for_unknown_beers_are_ignored(self, two_beers, two_tasters, basic_scores):
        scores = basic_scores + [make_score("deleted", "a1", 25)]
        results = tally(two_beers, two_tasters, scores)

        assert results.beer_totals == {"A": 38, "B": 37}
        assert results.included_attendee_ids == ["a1", "a2"]

    def test_complete_attendee_ids_counts_distinct_beers(self):
        frame = scores_frame(
            [make_score("A", "a1", 10, updated_at=1), make_score("A", "a1", 12, updated_at=2)]
        )
        assert complete_attendee_ids(frame, 2) == []
        assert complete_attendee_ids(frame, 1) == ["a1"]


class TestDegenerateInput:
    def test_zero_beers(self, two_tasters, basic_scores):
        results = tally([], two_tasters, basic_scores)

        assert results.beer_totals == {}
        assert results.ranking == []
        assert results.category_winners == {c: None for c in CATEGORIES}
        assert results.attendee_stats == []
        assert results.most_generous is None
        assert results.toughest_critic is None
        assert results.most_consistent is None
        assert results.score_matrix.empty

    def test_everything_empty(self):
        results = tally([], [], [])
        assert results.ranking == []
        assert results.excluded_attendee_ids == []

    def test_no_scores(self, two_beers, two_tasters):
        results = tally(two_beers, two_tasters, [])
        assert results.beer_totals == {}
        assert results.excluded_attendee_ids == ["a1", "a2"]

    def test_single_attendee_single_beer(self):
        results = tally([make_beer("A")], [make_attendee("a1")], [make_score("A", "a1", 20)])

        stats = results.attendee_stats[0]
        assert stats.average == pytest.approx(20.0)
        assert stats.stddev == 0.0
        assert results.most_consistent.attendee_id == "a1"
        assert results.most_generous.attendee_id == "a1"
        assert results.toughest_critic.attendee_id == "a1"

    def test_min_consistency_scores(self):
        results = tally(
            [make_beer("A")], [make_attendee("a1")], [make_score("A", "a1", 20)],
            min_consistency_scores=2,
        )
        assert results.most_consistent is None
        assert results.most_generous.attendee_id == "a1"

    def test_empty_results_frame(self):
        frame = results_frame(tally([], [], []), [], [])
        assert frame.empty
        assert list(frame.columns) == ["Rank", "Beer", "Brewery", "Style", "BroughtBy", "Total"]


class TestTieBreaks:
    def test_equal_totals_keep_input_order(self, two_beers, two_tasters):
        scores = [make_score("A", "a1", 10), make_score("B", "a1", 10)]
        for _ in range(5):
            results = tally(two_beers, two_tasters, scores)
            assert [r.beer_id for r in results.ranking] == ["A", "B"]

    def test_tie_order_follows_first_appearance(self, two_beers, two_tasters):
        scores = [make_score("B", "a1", 10), make_score("A", "a1", 10)]
        results = tally(two_beers, two_tasters, scores)
        assert [r.beer_id for r in results.ranking] == ["B", "A"]

    def test_rank_beers_is_stable(self):
        ranking = rank_beers({"x": 5, "y": 9, "z": 5, "w": 9})
        assert [r.beer_id for r in ranking] == ["y", "w", "x", "z"]
        assert rank_beers({}) == []

    def test_equal_averages_pick_first_attendee(self, two_beers, two_tasters):
        scores = [
            make_score("A", "a1", 10), make_score("B", "a1", 20),
            make_score("A", "a2", 20), make_score("B", "a2", 10),
        ]
        results = tally(two_beers, two_tasters, scores)

        assert results.most_generous.attendee_id == "a1"
        assert results.toughest_critic.attendee_id == "a1"
        assert results.most_consistent.attendee_id == "a1"

    def test_consistency_tie_prefers_lower_average(self, two_beers, two_tasters):
        # both have stddev 5; a2 averages 20, a1 averages 15
        scores = [
            make_score("A", "a2", 15), make_score("B", "a2", 25),
            make_score("A", "a1", 10), make_score("B", "a1", 20),
        ]
        results = tally(two_beers, two_tasters, scores)

        assert results.attendee_stats[0].attendee_id == "a2"
        assert results.most_consistent.stddev == pytest.approx(5.0)
        assert results.most_consistent.attendee_id == "a1"


class TestDuplicates:
    def test_latest_row_wins(self, two_beers, two_tasters):
        scores = [
            make_score("A", "a1", 5, updated_at=100),
            make_score("B", "a1", 15, updated_at=100),
            make_score("A", "a1", 20, updated_at=200),
        ]
        results = tally(two_beers, two_tasters, scores)

        assert results.beer_totals == {"B": 15, "A": 20}
        assert results.attendee_stats[0].count == 2

    def test_latest_row_wins_regardless_of_input_order(self, two_beers, two_tasters):
        scores = [
            make_score("A", "a1", 20, updated_at=200),
            make_score("B", "a1", 15, updated_at=100),
            make_score("A", "a1", 5, updated_at=100),
        ]
        results = tally(two_beers, two_tasters, scores)
        assert results.beer_totals["A"] == 20

    def test_equal_timestamps_keep_later_row(self):
        frame = scores_frame(
            [make_score("A", "a1", 5, updated_at=100), make_score("A", "a1", 9, updated_at=100)]
        )
        latest = latest_per_pair(frame)
        assert list(latest["total"]) == [9]

    def test_duplicates_do_not_fake_completeness(self, two_beers, two_tasters):
        scores = [make_score("A", "a1", 5, updated_at=1), make_score("A", "a1", 7, updated_at=2)]
        results = tally(two_beers, two_tasters, scores)
        assert results.included_attendee_ids == []


class TestResultsFrame:
    def test_columns_and_rows(self, two_beers, two_tasters, basic_scores):
        results = tally(two_beers, two_tasters, basic_scores)
        frame = results_frame(results, two_beers, two_tasters + [make_attendee("host", "Hank")])

        assert list(frame.columns) == ["Rank", "Beer", "Brewery", "Style", "BroughtBy", "Total", "Alice", "Bob"]
        assert list(frame["Beer"]) == ["Amber", "Blonde"]
        assert list(frame["Total"]) == [38, 37]
        assert list(frame["BroughtBy"]) == ["Hank", "Hank"]
        assert list(frame["Bob"]) == [18, 22]

    def test_repeated_names_are_disambiguated(self, two_beers, basic_scores):
        twins = [make_attendee("a1", "Sam"), make_attendee("a2", "Sam")]
        frame = results_frame(tally(two_beers, twins, basic_scores), two_beers, twins)
        assert list(frame.columns)[-2:] == ["Sam (a1)", "Sam (a2)"]

    def test_averages_are_finite(self, two_beers, two_tasters, basic_scores):
        for s in tally(two_beers, two_tasters, basic_scores).attendee_stats:
            assert math.isfinite(s.average) and math.isfinite(s.stddev)
