"""Tests for the consistency validator."""

import itertools
import random

import pytest

from reverse_minesweeper.board import EMPTY, MINE, BoardSize, GameSession
from reverse_minesweeper.utils import get_neighborhoods
from reverse_minesweeper.validation import (
    EXCESS_FLAGS,
    EXCESS_MINES,
    IMPOSSIBLE_VALUE,
    MALFORMED_VALUE,
    MISSING_CELLS,
    UNSATISFIABLE_GROUP,
    ZERO_WITH_FLAGS,
    ConsistencyValidator,
)


def build_session(rows, columns, answers=None, flags=()):
    session = GameSession(BoardSize(rows, columns))
    for coord, content in (answers or {}).items():
        session.probe(coord)
        session.commit(coord, content)
    for coord in flags:
        session.place_flag(coord)
    return session


def kind_of(result):
    return None if result.contradiction is None else result.contradiction.kind


class TestDirectChecks:

    @pytest.mark.parametrize("answer", ["9", "-1", "x", None, "\u00b2", "9" * 5000])
    def test_malformed(self, answer):
        session = build_session(3, 3)
        result = ConsistencyValidator().validate((1, 1), answer, session)
        assert not result.consistent
        assert kind_of(result) == MALFORMED_VALUE
        assert result.contradiction.is_critical

    @pytest.mark.parametrize(
        "coord, answer, consistent",
        [((0, 0), "3", True), ((0, 0), "4", False), ((0, 1), "5", True), ((0, 1), "6", False), ((1, 1), "8", True)],
    )
    def test_neighbor_count_bound(self, coord, answer, consistent):
        session = build_session(3, 3)
        result = ConsistencyValidator().validate(coord, answer, session)
        assert result.consistent is consistent
        if not consistent:
            assert kind_of(result) == IMPOSSIBLE_VALUE

    def test_zero_with_flag(self):
        session = build_session(1, 3, {(0, 0): "1"}, flags=[(0, 1)])
        result = ConsistencyValidator().validate((0, 2), EMPTY, session)
        assert kind_of(result) == ZERO_WITH_FLAGS

    def test_excess_flags(self):
        session = build_session(2, 3, {(0, 0): "1", (0, 2): "1"}, flags=[(0, 1), (1, 1)])
        result = ConsistencyValidator().validate((1, 2), "1", session)
        assert kind_of(result) == EXCESS_FLAGS
        assert result.contradiction.expected == 1
        assert result.contradiction.actual == 2

    def test_missing_cells(self):
        session = build_session(1, 3, {(0, 0): "1"})
        result = ConsistencyValidator().validate((0, 1), "2", session)
        assert kind_of(result) == MISSING_CELLS
        assert not result.contradiction.is_critical

    def test_excess_mines(self):
        session = build_session(1, 4, {(0, 0): "1", (0, 2): "1"}, flags=[(0, 1)])
        result = ConsistencyValidator().validate((0, 3), MINE, session)
        assert kind_of(result) == EXCESS_MINES
        assert result.contradiction.cells == ((0, 2), (0, 3))

    def test_validate_does_not_mutate(self):
        session = build_session(1, 4, {(0, 0): "1", (0, 2): "1"})
        before = session.snapshot()
        ConsistencyValidator().validate((0, 3), MINE, session)
        assert session.snapshot() == before


class TestGroupCheck:

    def test_shared_neighbor_scenario(self):
        # (0,0)=1 has only (0,1) left, so (0,1) is the mine that also satisfies
        # (0,2)=1; a mine at (0,3) cannot fit.
        session = build_session(1, 4, {(0, 0): "1", (0, 2): "1"})
        validator = ConsistencyValidator()
        result = validator.validate((0, 3), "mine", session)
        assert not result.consistent
        assert kind_of(result) == UNSATISFIABLE_GROUP
        assert result.contradiction.cells == ((0, 0), (0, 2))
        assert validator.validate((0, 3), EMPTY, session).consistent

    def test_large_components_are_skipped(self):
        session = build_session(1, 4, {(0, 0): "1", (0, 2): "1"})
        result = ConsistencyValidator(max_component_size=1).validate((0, 3), MINE, session)
        assert result.consistent

    def test_invalid_bound(self):
        with pytest.raises(ValueError):
            ConsistencyValidator(max_component_size=0)


class TestFutureRisk:

    def test_advisory_for_starved_neighbor(self):
        session = build_session(1, 3, {(0, 0): "1"})
        advisories = ConsistencyValidator().scan_for_future_risk((0, 1), EMPTY, session)
        assert [a.kind for a in advisories] == [MISSING_CELLS]
        assert advisories[0].cells == ((0, 0),)

    def test_no_advisory_for_mines_or_healthy_boards(self):
        session = build_session(1, 4, {(0, 0): "1"})
        validator = ConsistencyValidator()
        assert validator.scan_for_future_risk((0, 1), MINE, session) == []
        assert validator.scan_for_future_risk((0, 2), "1", session) == []


# -----------------------------------------------------------------------------
# Agreement with brute-force enumeration on 3x3 boards
# -----------------------------------------------------------------------------

SIZE = BoardSize(3, 3)
CELLS = [(r, c) for r in range(3) for c in range(3)]
NEIGHBORS = get_neighborhoods(3, 3)
ALL_LAYOUTS = [
    frozenset(cell for cell, bit in zip(CELLS, bits) if bit)
    for bits in itertools.product((0, 1), repeat=9)
]


def count_mines(layout, cell):
    return sum(1 for n in NEIGHBORS[cell] if n in layout)


def brute_force_accepts(discovered, coord, proposal):
    for layout in ALL_LAYOUTS:
        if any(d in layout or count_mines(layout, d) != v for d, v in discovered.items()):
            continue
        if proposal == MINE:
            if coord in layout:
                return True
        elif coord not in layout and count_mines(layout, coord) == proposal:
            return True
    return False


class TestBruteForceAgreement:

    @pytest.mark.parametrize("seed", range(12))
    def test_matches_enumeration(self, seed):
        rng = random.Random(seed)
        mines = frozenset(cell for cell in CELLS if rng.random() < 0.3)
        safe_cells = [cell for cell in CELLS if cell not in mines]
        picked = rng.sample(safe_cells, min(len(safe_cells), rng.randint(1, 5)))

        discovered = {cell: count_mines(mines, cell) for cell in picked}
        session = build_session(
            3, 3, {cell: (EMPTY if v == 0 else str(v)) for cell, v in discovered.items()}
        )

        validator = ConsistencyValidator()
        for coord in CELLS:
            if coord in discovered:
                continue
            for proposal in [MINE] + list(range(9)):
                answer = MINE if proposal == MINE else str(proposal)
                expected = brute_force_accepts(discovered, coord, proposal)
                result = validator.validate(coord, answer, session)
                assert result.consistent is expected, (coord, answer, discovered)
