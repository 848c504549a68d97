"""Analysis and benchmarking tools for the reverse Minesweeper engine."""

import random
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np

from .board import EMPTY, BoardSize, GameSnapshot
from .config import BOARD_SIZE_PRESETS, EngineConfig
from .memory import LEVELS, MemoryStore, parse_position_key
from .oracle import SimulatedOracle
from .selector import GameState, MoveSelector


def format_board(snapshot: GameSnapshot, *, show_coords: bool = True) -> str:
    """
    Format a session snapshot as a human-readable string.

    Args:
        snapshot: Snapshot whose board will be displayed.
        show_coords: If True, include 1-based coordinate labels and a header.

    Returns:
        A text grid where unknown cells are '.', flags 'F', the pending probe
        '?', empty cells '_', reported mines 'M' and digits themselves.
    """
    rows, columns = snapshot.size.rows, snapshot.size.columns

    def cell_char(r: int, c: int) -> str:
        if (r, c) == snapshot.pending:
            return "?"
        if (r, c) in snapshot.flags:
            return "F"
        v = snapshot.board[r][c]
        if v is None:
            return "."
        if v == EMPTY:
            return "_"
        return v

    lines: List[str] = []
    if show_coords:
        header = " ".join(f"{c + 1:2d}" for c in range(columns))
        lines.append("    " + header)
        lines.append("    " + "-" * (3 * columns - 1))

    for r in range(rows):
        row = " ".join(f" {cell_char(r, c)}" for c in range(columns))
        lines.append(f"{r + 1:2d} |" + row if show_coords else row)

    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Memory visualization
# -----------------------------------------------------------------------------

def heat_map_array(memory: MemoryStore) -> np.ndarray:
    """
    Mine observations per normalized bucket as an (11, 11) array.

    Row index is the row level (0 = top edge), column index the column level.
    Malformed keys are ignored.
    """
    grid = np.zeros((LEVELS + 1, LEVELS + 1), dtype=float)
    for key, count in memory.record.heat_map.items():
        try:
            lr, lc = parse_position_key(key)
        except ValueError:
            continue
        grid[lr, lc] += count
    return grid


def opening_loss_array(memory: MemoryStore) -> np.ndarray:
    """Opening-move loss rate per bucket; NaN where no opening was recorded."""
    grid = np.full((LEVELS + 1, LEVELS + 1), np.nan)
    for key, stats in memory.record.opening_moves.items():
        rate = memory.loss_rate(stats)
        if rate is None:
            continue
        try:
            lr, lc = parse_position_key(key)
        except ValueError:
            continue
        grid[lr, lc] = rate
    return grid


def plot_heat_map(memory: MemoryStore, *, show: bool = True):
    """
    Plot the mine heat map and the opening-move loss rates side by side.

    Returns:
        The matplotlib Figure.
    """
    heat = heat_map_array(memory)
    openings = opening_loss_array(memory)
    ticks = np.arange(LEVELS + 1)
    tick_labels = [f"{t / LEVELS:.1f}" for t in ticks]

    fig, (ax_heat, ax_open) = plt.subplots(1, 2, figsize=(11, 5))  # type: ignore[misc]

    im = ax_heat.imshow(heat, cmap="Reds", origin="upper")
    ax_heat.set_title("Mines found per normalized position")
    fig.colorbar(im, ax=ax_heat, fraction=0.046)

    im = ax_open.imshow(openings, cmap="RdYlGn_r", vmin=0.0, vmax=1.0, origin="upper")
    ax_open.set_title("Opening-move loss rate")
    fig.colorbar(im, ax=ax_open, fraction=0.046)

    for ax in (ax_heat, ax_open):
        ax.set_xticks(ticks)
        ax.set_xticklabels(tick_labels, rotation=90)
        ax.set_yticks(ticks)
        ax.set_yticklabels(tick_labels)
        ax.set_xlabel("column")
        ax.set_ylabel("row")

    fig.tight_layout()
    if show:
        plt.show()  # type: ignore[misc]
    return fig


# -----------------------------------------------------------------------------
# Simulated benchmarking
# -----------------------------------------------------------------------------

def run_simulated_game(
    size: BoardSize,
    mines_count: int,
    *,
    memory: Optional[MemoryStore] = None,
    config: Optional[EngineConfig] = None,
    rng: Optional[random.Random] = None,
    mines_generation_algorithm: str = "safe_first_action_rule",
    show_boards: bool = False,
) -> Dict[str, object]:
    """
    Play one game with the engine against a truthful SimulatedOracle.

    Args:
        size: Board size.
        mines_count: Total number of mines on the hidden layout.
        memory: Memory store to train; a volatile one is used when omitted.
        config: Engine settings.
        rng: Random source shared by the oracle and the engine.
        mines_generation_algorithm: Mine placement rule
            ("safe_first_action_rule" or "safe_neighborhood_rule").
        show_boards: If True, print the hidden layout and the final board.

    Returns:
        Dict with "status" (1 win, -1 loss), "probes", "guesses", "flags",
        "discovered" and the final "state".

    Raises:
        RuntimeError: If a truthful answer is rejected or the game does not end.
    """
    rng = rng or random.Random()
    config = config or EngineConfig()
    oracle = SimulatedOracle(size, mines_count, mines_generation_algorithm, rng=rng)
    selector = MoveSelector(size, config=config, memory=memory, rng=rng)

    selector.start()
    probes = 0
    guesses = 0

    for _ in range(2 * size.cell_count + 2):
        if selector.is_over:
            break
        if selector.pending is None:
            selector.tick()
            continue

        coord = selector.pending
        report = selector.last_report
        if report is None or (coord not in report.certain_safe and coord not in report.flood):
            guesses += 1

        outcome = selector.answer(oracle.answer_for(coord))
        probes += 1
        if not outcome.accepted:
            raise RuntimeError(
                f"Truthful answer at {coord} was rejected: {outcome.message}"
            )

    if not selector.is_over:
        raise RuntimeError("Simulated game did not terminate.")

    snapshot = selector.snapshot()
    if show_boards:
        print("Hidden layout:")
        print(oracle.format_layout())
        print()
        print("Engine board:")
        print(format_board(snapshot))
        print()
        print(f"Finished as {selector.state.value}.")

    return {
        "status": 1 if selector.state == GameState.WON else -1,
        "state": selector.state.value,
        "probes": probes,
        "guesses": guesses,
        "flags": len(snapshot.flags),
        "discovered": len(snapshot.discovered),
    }


def run_many_simulated_games(
    size: BoardSize,
    mines_count: int,
    runs: int,
    *,
    seed: Optional[int] = None,
    memory: Optional[MemoryStore] = None,
    config: Optional[EngineConfig] = None,
    mines_generation_algorithm: str = "safe_first_action_rule",
) -> Dict[str, float]:
    """
    Run many independent games and return averaged metrics plus win rate.

    The same memory store is trained across all runs, so later games benefit
    from earlier losses.

    Returns:
        Averages of run_simulated_game() metrics (prefixed with "avg_"), plus:
        - win_rate
        - guess_failure_rate (losses per guess)
    """
    if runs <= 0:
        raise ValueError("runs must be positive.")

    rng = random.Random(seed)
    config = config or EngineConfig()
    memory = memory if memory is not None else MemoryStore(config=config, rng=rng)

    sums: Dict[str, float] = defaultdict(float)
    wins = 0
    losses = 0
    for _ in range(runs):
        result = run_simulated_game(
            size,
            mines_count,
            memory=memory,
            config=config,
            rng=rng,
            mines_generation_algorithm=mines_generation_algorithm,
        )
        if result["status"] == 1:
            wins += 1
        else:
            losses += 1
        for k in ("probes", "guesses", "flags", "discovered"):
            sums[f"avg_{k}"] += float(result[k])  # type: ignore[arg-type]

    out: Dict[str, float] = {k: total / runs for k, total in sums.items()}
    out["win_rate"] = wins / runs
    total_guesses = sums["avg_guesses"]
    out["guess_failure_rate"] = losses / total_guesses if total_guesses > 0 else 0.0
    return out


def run_preset_benchmark(
    runs: int,
    *,
    mine_density: float = 0.15,
    seed: Optional[int] = None,
    presets: Tuple[BoardSize, ...] = BOARD_SIZE_PRESETS,
    show: bool = True,
) -> Dict[str, Dict[str, float]]:
    """
    Benchmark the engine on every board preset and plot win rate and guesses.

    Args:
        runs: Games per preset.
        mine_density: Fraction of cells holding a mine.
        seed: Seed for reproducible layouts and engine choices.
        presets: Board sizes to benchmark.
        show: If True, display the plots.

    Returns:
        Mapping from preset label to run_many_simulated_games() statistics.
    """
    if not 0.0 <= mine_density < 1.0:
        raise ValueError("mine_density must lie in [0, 1).")

    results: Dict[str, Dict[str, float]] = {}
    for i, size in enumerate(presets):
        mines = int(size.cell_count * mine_density)
        results[size.label] = run_many_simulated_games(
            size, mines, runs, seed=None if seed is None else seed + i
        )

    labels = list(results.keys())
    x = np.arange(len(labels))

    plt.figure()  # type: ignore[misc]
    plt.bar(x, [results[n]["win_rate"] for n in labels])  # type: ignore[misc]
    plt.xticks(x, labels)  # type: ignore[misc]
    plt.ylabel("Win rate")  # type: ignore[misc]
    plt.ylim(0.0, 1.0)  # type: ignore[misc]
    plt.title(f"Win rate by board size ({mine_density:.0%} mines)")  # type: ignore[misc]
    plt.tight_layout()

    bar_w = 0.4
    plt.figure()  # type: ignore[misc]
    plt.bar(x - bar_w / 2, [results[n]["avg_probes"] for n in labels], width=bar_w, label="probes")  # type: ignore[misc]
    plt.bar(x + bar_w / 2, [results[n]["avg_guesses"] for n in labels], width=bar_w, label="guesses")  # type: ignore[misc]
    plt.xticks(x, labels)  # type: ignore[misc]
    plt.ylabel("Average per game")  # type: ignore[misc]
    plt.title("Probes and guesses by board size")  # type: ignore[misc]
    plt.legend()  # type: ignore[misc]
    plt.tight_layout()

    if show:
        plt.show()  # type: ignore[misc]
    return results


def summarize(memory: MemoryStore) -> Dict[str, object]:
    """
    Display-oriented summary of a memory store.

    Returns:
        The store's statistics plus the hottest bucket ("hottest_position",
        None when no mine was recorded) and the recent game results.
    """
    stats: Dict[str, object] = dict(memory.statistics())
    heat = heat_map_array(memory)
    if heat.max() > 0:
        lr, lc = np.unravel_index(int(np.argmax(heat)), heat.shape)
        stats["hottest_position"] = (float(lr) / LEVELS, float(lc) / LEVELS)
    else:
        stats["hottest_position"] = None
    stats["recent_results"] = [g.get("result") for g in memory.record.games]
    return stats
