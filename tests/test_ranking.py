"""
Tests for ranking.py - ballot ranking and tie classification.
"""

import itertools

import pytest

from ballotbox.ranking import (
    VoteTally,
    competition_ranks,
    group_by_votes,
    rank_tallies,
    sort_tallies,
)


class TestRankTallies:
    """Winner and tie classification."""

    def test_top_candidates_win_when_seats_suffice(self, tallies):
        """A:10, B:7, C:5 with two seats elects A and B."""
        result = rank_tallies(tallies(("Alice", 10), ("Bob", 7), ("Claire", 5)), seats_available=2)

        assert result.winner_ids == ("alice", "bob")
        assert result.tie_candidate_ids == ()
        assert [c.rank for c in result.ranked] == [1, 2, 3]
        assert result.eliminated_ids == ("claire",)
        assert result.remaining_seats == 0

    def test_full_tie_for_single_seat(self, tallies):
        """Two candidates at 15 each for one seat are tied, nobody wins."""
        result = rank_tallies(tallies(("Alice", 15), ("Bob", 15)), seats_available=1)

        assert result.winner_ids == ()
        assert result.tie_candidate_ids == ("alice", "bob")
        assert result.remaining_seats == 1
        assert result.eliminated_ids == ()

    def test_tie_for_last_seat(self, tallies):
        """A:12, B:8, C:8 with two seats elects A and ties B and C."""
        result = rank_tallies(tallies(("Alice", 12), ("Bob", 8), ("Claire", 8)), seats_available=2)

        assert result.winner_ids == ("alice",)
        assert result.tie_candidate_ids == ("bob", "claire")
        assert result.remaining_seats == 1
        assert [c.rank for c in result.ranked] == [1, 2, 2]

    def test_groups_after_tie_are_eliminated_not_tied(self, tallies):
        result = rank_tallies(
            tallies(("Alice", 9), ("Bob", 9), ("Claire", 9), ("Dan", 4), ("Eve", 4)),
            seats_available=2,
        )

        assert result.winner_ids == ()
        assert result.tie_candidate_ids == ("alice", "bob", "claire")
        assert result.remaining_seats == 2
        assert set(result.eliminated_ids) == {"dan", "eve"}

    def test_equal_group_that_fits_exactly_wins_cleanly(self, tallies):
        """Two candidates tied with each other for exactly two seats both win."""
        result = rank_tallies(tallies(("Alice", 20), ("Bob", 20), ("Claire", 3)), seats_available=2)

        assert result.winner_ids == ("alice", "bob")
        assert result.tie_candidate_ids == ()
        assert result.remaining_seats == 0

    def test_more_seats_than_candidates_all_win(self, tallies):
        result = rank_tallies(tallies(("Alice", 0), ("Bob", 0)), seats_available=5)

        assert set(result.winner_ids) == {"alice", "bob"}
        assert result.tie_candidate_ids == ()
        assert result.remaining_seats == 0

    def test_no_candidates(self):
        result = rank_tallies([], seats_available=3)

        assert result.ranked == ()
        assert result.winner_ids == ()
        assert result.tie_candidate_ids == ()
        assert result.remaining_seats == 0

    def test_ballot_metadata_is_carried(self, tallies):
        result = rank_tallies(
            tallies(("Alice", 1)),
            seats_available=1,
            ballot_id="b-1",
            ballot_number=3,
            status="counting",
            ballot_type="runoff",
        )

        assert result.ballot_id == "b-1"
        assert result.ballot_number == 3
        assert result.to_dict()["type"] == "runoff"

    def test_result_flags_match_sets(self, tallies):
        result = rank_tallies(tallies(("Alice", 12), ("Bob", 8), ("Claire", 8), ("Dan", 1)), seats_available=2)

        for c in result.ranked:
            assert c.is_winner == (c.candidate_id in result.winner_ids)
            assert c.in_tie == (c.candidate_id in result.tie_candidate_ids)
            assert not (c.is_winner and c.in_tie)


class TestOrdering:
    """Sorting, grouping and competition ranking."""

    def test_equal_votes_sorted_by_name(self, tallies):
        ordered = sort_tallies(tallies(("claire", 5), ("Bob", 5), ("alice", 5)))
        assert [t.name for t in ordered] == ["alice", "Bob", "claire"]

    def test_accented_names_sort_next_to_plain_ones(self, tallies):
        ordered = sort_tallies(tallies(("Zoe", 1), ("Émile", 1), ("Eve", 1)))
        assert [t.name for t in ordered] == ["Émile", "Eve", "Zoe"]

    def test_group_by_votes(self, tallies):
        groups = group_by_votes(sort_tallies(tallies(("A", 3), ("B", 3), ("C", 2), ("D", 1), ("E", 1))))
        assert [[t.name for t in g] for g in groups] == [["A", "B"], ["C"], ["D", "E"]]

    def test_competition_ranks_skip_after_shared_rank(self, tallies):
        ordered = sort_tallies(tallies(("A", 9), ("B", 9), ("C", 7), ("D", 7), ("E", 7), ("F", 1)))
        assert competition_ranks(ordered) == [1, 1, 3, 3, 3, 6]


class TestRankingProperties:
    """Invariants over many tallies."""

    VOTE_PATTERNS = [
        (5, 5, 5, 5),
        (10, 7, 5, 5),
        (0, 0, 0, 1),
        (3, 2, 2, 1),
        (8, 8, 1, 0),
        (1, 2, 3, 4),
    ]

    @pytest.mark.parametrize("votes", VOTE_PATTERNS)
    @pytest.mark.parametrize("seats", [1, 2, 3, 4, 6])
    def test_winners_ties_eliminated_partition_candidates(self, votes, seats):
        data = [VoteTally(candidate_id=f"c{i}", name=f"Cand {i}", votes=v) for i, v in enumerate(votes)]
        result = rank_tallies(data, seats_available=seats)

        winners = set(result.winner_ids)
        tied = set(result.tie_candidate_ids)
        eliminated = set(result.eliminated_ids)

        assert len(winners) + len(tied) + len(eliminated) == len(data)
        assert not winners & tied
        assert not winners & eliminated
        assert not tied & eliminated
        assert len(winners) <= seats
        if tied:
            assert result.remaining_seats >= 1
            assert len(tied) > result.remaining_seats
        else:
            assert result.remaining_seats == 0

    @pytest.mark.parametrize("votes", VOTE_PATTERNS)
    def test_enough_seats_means_everyone_wins(self, votes):
        data = [VoteTally(candidate_id=f"c{i}", name=f"Cand {i}", votes=v) for i, v in enumerate(votes)]
        result = rank_tallies(data, seats_available=len(data))

        assert result.tie_candidate_ids == ()
        assert set(result.winner_ids) == {t.candidate_id for t in data}

    def test_input_order_does_not_change_result(self, tallies):
        data = tallies(("Alice", 12), ("Bob", 8), ("Claire", 8), ("Dan", 3))
        expected = rank_tallies(data, seats_available=2)

        for permutation in itertools.permutations(data):
            assert rank_tallies(list(permutation), seats_available=2) == expected
