"""Tests for the move selector state machine."""

import random

import pytest

from reverse_minesweeper.board import BoardSize, ProbeEvent, clue_value
from reverse_minesweeper.config import EngineConfig, ValidationPolicy
from reverse_minesweeper.memory import MemoryStore
from reverse_minesweeper.oracle import SimulatedOracle
from reverse_minesweeper.selector import GameState, MoveSelector
from reverse_minesweeper.validation import (
    IMPOSSIBLE_VALUE,
    MALFORMED_VALUE,
    UNSATISFIABLE_GROUP,
)


def make_selector(rows, columns, seed=0, memory=None, **config):
    config.setdefault("jitter", 0.0)
    cfg = EngineConfig(**config)
    rng = random.Random(seed)
    memory = memory or MemoryStore(config=cfg, rng=rng)
    return MoveSelector(BoardSize(rows, columns), config=cfg, memory=memory, rng=rng)


def play_line(selector):
    """Answer (0,0)=1 and (0,2)=1 on a 1x4 board, leaving (0,3) to probe."""
    assert selector.probe((0, 0))
    assert selector.answer("1").accepted
    assert selector.probe((0, 2))
    assert selector.answer("1").accepted
    assert selector.probe((0, 3))


class TestScenarios:

    def test_single_cell_mine_is_lost(self):
        selector = make_selector(1, 1)
        assert selector.start() == (0, 0)
        assert selector.state == GameState.AWAITING_ANSWER

        outcome = selector.answer("mine")
        assert outcome.accepted
        assert selector.state == GameState.LOST
        assert selector.snapshot().discovered == frozenset()
        stats = selector.memory_statistics()
        assert stats["losses"] == 1
        assert stats["total_mines"] == 1

    def test_empty_center_floods_then_wins(self):
        selector = make_selector(3, 3)
        assert selector.probe((1, 1))
        selector.answer("0")

        assert len(selector.last_report.flood) == 8
        answered = 0
        while selector.pending is not None:
            assert selector.answer("0").accepted
            answered += 1

        assert answered == 8
        assert selector.state == GameState.WON
        assert len(selector.snapshot().discovered) == 9
        assert selector.memory_statistics()["wins"] == 1

    def test_start_only_once(self):
        selector = make_selector(3, 3)
        assert selector.start() is not None
        assert selector.start() is None


class TestDecisionPriority:

    def test_flags_certain_mine_and_probes_certain_safe(self):
        selector = make_selector(1, 5, auto_advance=False)
        selector.probe((0, 0))
        selector.answer("1")
        selector.probe((0, 4))
        selector.answer("0")
        assert selector.state == GameState.THINKING

        assert selector.tick() == (0, 3)
        snap = selector.snapshot()
        assert snap.flags == frozenset({(0, 1)})
        assert snap.pending == (0, 3)
        assert all(e.coord != (0, 1) for e in snap.ledger if isinstance(e, ProbeEvent))

    def test_untouched_cells_beat_a_risky_frontier(self):
        selector = make_selector(1, 5, auto_advance=False, memory_weight=0.0)
        selector.probe((0, 2))
        selector.answer("1")
        assert selector.tick() in {(0, 0), (0, 4)}

    @pytest.mark.parametrize("seed", range(20))
    def test_memory_steers_away_from_hot_untouched_cells(self, seed):
        memory = MemoryStore(config=EngineConfig(jitter=0.0))
        for _ in range(4):
            memory.record_mine_found((0, 0), BoardSize(1, 5))
        selector = make_selector(1, 5, seed=seed, memory=memory, auto_advance=False)
        selector.probe((0, 2))
        selector.answer("1")
        assert selector.tick() == (0, 4)

    def test_frontier_chosen_when_memory_outweighs_it(self):
        memory = MemoryStore(config=EngineConfig(jitter=0.0))
        for cell in ((0, 0), (0, 4)):
            for _ in range(4):
                memory.record_mine_found(cell, BoardSize(1, 5))
        selector = make_selector(1, 5, memory=memory, auto_advance=False, memory_weight=1.0)
        selector.probe((0, 2))
        selector.answer("1")
        assert selector.tick() in {(0, 1), (0, 3)}

    def test_remembered_second_move(self):
        memory = MemoryStore(config=EngineConfig(jitter=0.0))
        memory.record_win([ProbeEvent((0, 0), "1"), ProbeEvent((0, 7), "1")], BoardSize(8, 8))
        selector = make_selector(8, 8, memory=memory)
        selector.probe((0, 0))
        selector.answer("1")
        assert selector.pending == (0, 7)

    def test_tick_is_a_no_op_while_waiting(self):
        selector = make_selector(3, 3)
        selector.start()
        pending = selector.pending
        assert selector.tick() is None
        assert selector.pending == pending


class TestPolicies:

    def test_block_keeps_waiting(self):
        selector = make_selector(3, 3)
        selector.probe((0, 0))
        outcome = selector.answer("4")
        assert not outcome.accepted
        assert outcome.contradiction.kind == IMPOSSIBLE_VALUE
        assert selector.state == GameState.AWAITING_ANSWER
        assert selector.last_contradiction.kind == IMPOSSIBLE_VALUE
        # Critical contradictions cannot be forced.
        assert not selector.force_answer().accepted
        assert selector.answer("1").accepted
        assert selector.last_contradiction is None

    def test_force_non_critical_answer(self):
        selector = make_selector(1, 4, auto_advance=False)
        play_line(selector)
        outcome = selector.answer("mine")
        assert not outcome.accepted
        assert outcome.contradiction.kind == UNSATISFIABLE_GROUP

        forced = selector.force_answer()
        assert forced.accepted
        assert forced.event.inconsistent
        assert selector.state == GameState.LOST

    def test_warn_commits_non_critical(self):
        selector = make_selector(1, 4, auto_advance=False, policy=ValidationPolicy.WARN)
        play_line(selector)
        outcome = selector.answer("mine")
        assert outcome.accepted
        assert outcome.event.inconsistent
        assert selector.last_contradiction.kind == UNSATISFIABLE_GROUP

    def test_warn_blocks_critical(self):
        selector = make_selector(3, 3, policy="warn")
        selector.probe((0, 0))
        assert not selector.answer("4").accepted

    def test_ignore_commits_all_but_malformed(self):
        selector = make_selector(3, 3, auto_advance=False, policy=ValidationPolicy.IGNORE)
        selector.probe((0, 0))
        outcome = selector.answer("nine")
        assert not outcome.accepted
        assert outcome.contradiction.kind == MALFORMED_VALUE
        outcome = selector.answer("4")
        assert outcome.accepted
        assert outcome.event.inconsistent

    def test_force_without_rejection(self):
        selector = make_selector(3, 3)
        assert not selector.force_answer().accepted


class TestInvalidInput:

    def test_answer_without_pending_probe(self):
        selector = make_selector(3, 3)
        outcome = selector.answer("1")
        assert not outcome.accepted
        assert selector.state == GameState.NOT_STARTED

    def test_probe_while_waiting(self):
        selector = make_selector(3, 3)
        selector.start()
        other = (2, 2) if selector.pending != (2, 2) else (0, 0)
        assert not selector.on_cell_probed(other)

    @pytest.mark.parametrize("answer", ["\u00b2", "9" * 5000])
    def test_undecodable_digits_are_rejected(self, answer):
        selector = make_selector(3, 3)
        selector.probe((1, 1))
        outcome = selector.answer(answer)
        assert not outcome.accepted
        assert outcome.contradiction.kind == MALFORMED_VALUE
        assert selector.state == GameState.AWAITING_ANSWER

    def test_out_of_bounds_probe(self):
        selector = make_selector(3, 3)
        assert not selector.probe((3, 0))
        assert selector.state == GameState.NOT_STARTED


class TestReset:

    def test_reset_of_started_game_records_loss(self):
        selector = make_selector(3, 3)
        selector.probe((0, 0))
        selector.answer("1")
        selector.on_reset()
        assert selector.state == GameState.NOT_STARTED
        assert selector.snapshot().ledger == ()
        assert selector.memory_statistics()["losses"] == 1

    def test_reset_before_start_records_nothing(self):
        selector = make_selector(3, 3)
        selector.reset()
        assert selector.memory_statistics()["games_played"] == 0

    def test_board_size_change(self):
        selector = make_selector(3, 3)
        selector.start()
        selector.on_board_size_changed(BoardSize(10, 10))
        assert selector.size == BoardSize(10, 10)
        assert selector.state == GameState.NOT_STARTED
        assert selector.pending is None


class TestInvariants:

    @pytest.mark.parametrize("seed", range(5))
    def test_truthful_games_keep_invariants(self, seed):
        rng = random.Random(seed)
        size = BoardSize(8, 8)
        oracle = SimulatedOracle(size, 10, rng=rng)
        selector = MoveSelector(size, config=EngineConfig(), rng=rng)
        selector.start()

        while not selector.is_over:
            if selector.pending is None:
                selector.tick()
                continue
            assert selector.answer(oracle.answer_for(selector.pending)).accepted

            snap = selector.snapshot()
            assert not (snap.discovered & snap.flags)
            assert snap.flags <= oracle.mines
            for cell in snap.discovered:
                value = clue_value(snap.board[cell[0]][cell[1]])
                nbr_flags = sum(1 for n in selector.session.neighbors(cell) if n in snap.flags)
                assert nbr_flags <= value

        if selector.state == GameState.WON:
            assert selector.snapshot().flags == frozenset(oracle.mines)
