"""Tests for the simulated oracle, board rendering and benchmarking helpers."""

import random

import numpy as np
import pytest

from reverse_minesweeper.analysis import (
    format_board,
    heat_map_array,
    opening_loss_array,
    plot_heat_map,
    run_many_simulated_games,
    run_preset_benchmark,
    run_simulated_game,
    summarize,
)
from reverse_minesweeper.board import EMPTY, MINE, BoardSize, GameSession, ProbeEvent
from reverse_minesweeper.config import EngineConfig
from reverse_minesweeper.memory import MemoryStore
from reverse_minesweeper.oracle import SimulatedOracle


def trained_memory():
    memory = MemoryStore(config=EngineConfig(jitter=0.0))
    size = BoardSize(8, 8)
    memory.record_mine_found((0, 0), size)
    memory.record_mine_found((0, 0), size)
    memory.record_mine_found((7, 3), size)
    memory.record_loss([ProbeEvent((0, 0), MINE)], size)
    return memory


class TestSimulatedOracle:

    def test_first_probe_is_safe(self):
        for seed in range(10):
            oracle = SimulatedOracle(BoardSize(4, 4), 15, rng=random.Random(seed))
            assert oracle.answer_for((2, 2)) != MINE
            assert len(oracle.mines) == 15

    def test_neighborhood_rule_opens_an_empty_cell(self):
        oracle = SimulatedOracle(
            BoardSize(6, 6), 20, "safe_neighborhood_rule", rng=random.Random(1)
        )
        assert oracle.answer_for((3, 3)) == EMPTY

    def test_fixed_layout_counts(self):
        oracle = SimulatedOracle.from_layout(BoardSize(2, 3), {(0, 0), (1, 2)})
        assert oracle.answer_for((0, 0)) == MINE
        assert oracle.answer_for((0, 1)) == "2"
        assert oracle.answer_for((1, 0)) == "1"
        assert oracle.format_layout().splitlines()[0] == "M 2 1"

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            SimulatedOracle(BoardSize(3, 3), -1)
        with pytest.raises(ValueError):
            SimulatedOracle(BoardSize(3, 3), 1, "random")
        with pytest.raises(ValueError):
            SimulatedOracle(BoardSize(3, 3), 9)


class TestFormatBoard:

    def test_symbols(self):
        session = GameSession(BoardSize(2, 3))
        for coord, content in (((0, 0), EMPTY), ((0, 1), "2")):
            session.probe(coord)
            session.commit(coord, content)
        session.place_flag((1, 0))
        session.probe((1, 2))

        text = format_board(session.snapshot(), show_coords=False)
        assert text.splitlines() == [" _  2  .", " F  .  ?"]

    def test_coordinates_are_one_based(self):
        text = format_board(GameSession(BoardSize(2, 2)).snapshot())
        assert text.splitlines()[0].split() == ["1", "2"]
        assert text.splitlines()[2].startswith(" 1 |")


class TestMemoryViews:

    def test_heat_map_array(self):
        grid = heat_map_array(trained_memory())
        assert grid.shape == (11, 11)
        assert grid[0, 0] == 2
        assert grid[10, 4] == 1
        assert grid.sum() == 3

    def test_opening_loss_array(self):
        grid = opening_loss_array(trained_memory())
        assert grid[0, 0] == 1.0
        assert np.isnan(grid[5, 5])

    def test_plot_returns_figure(self):
        fig = plot_heat_map(trained_memory(), show=False)
        assert len(fig.axes) >= 2

    def test_summarize(self):
        summary = summarize(trained_memory())
        assert summary["hottest_position"] == (0.0, 0.0)
        assert summary["recent_results"] == ["loss"]
        assert summarize(MemoryStore())["hottest_position"] is None


class TestSimulatedGames:

    def test_single_game(self):
        result = run_simulated_game(BoardSize(8, 8), 8, rng=random.Random(5))
        assert result["status"] in (1, -1)
        assert result["probes"] >= 1
        assert result["guesses"] >= 1
        if result["status"] == 1:
            assert result["flags"] == 8
            assert result["discovered"] == 64 - 8

    def test_many_games_train_memory(self):
        memory = MemoryStore(config=EngineConfig())
        results = run_many_simulated_games(BoardSize(8, 8), 10, runs=4, seed=2, memory=memory)
        assert 0.0 <= results["win_rate"] <= 1.0
        assert results["avg_probes"] > 0
        assert memory.statistics()["games_played"] == 4

    def test_runs_must_be_positive(self):
        with pytest.raises(ValueError):
            run_many_simulated_games(BoardSize(8, 8), 10, runs=0)

    def test_preset_benchmark(self):
        presets = (BoardSize(4, 4), BoardSize(5, 5))
        results = run_preset_benchmark(2, seed=3, presets=presets, show=False)
        assert list(results) == ["4x4", "5x5"]
        assert all(0.0 <= r["win_rate"] <= 1.0 for r in results.values())
        with pytest.raises(ValueError):
            run_preset_benchmark(1, mine_density=1.0, presets=presets, show=False)
