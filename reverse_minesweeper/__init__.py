"""
Reverse Minesweeper Engine

An automated player for games where a human oracle holds the board:
- Inference: single-clue rules and clue-pair intersection to a fixpoint
- Validation: local checks plus bounded exact search over constraint groups
- Memory: mine heat map, opening and second-move statistics, losing sequences
- Move selection: a state machine that flags, probes and declares win or loss
"""

from .board import BoardSize, GameSession, GameSnapshot, normalize_content
from .config import BOARD_SIZE_PRESETS, EngineConfig, ValidationPolicy
from .inference import InferenceEngine, InferenceReport
from .validation import ConsistencyValidator, Contradiction, ValidationResult
from .memory import FileStorage, InMemoryStorage, MemoryStore
from .selector import AnswerOutcome, GameState, MoveSelector
from .scheduler import GameScheduler
from .oracle import SimulatedOracle
from .analysis import (
    format_board,
    heat_map_array,
    plot_heat_map,
    run_simulated_game,
    run_many_simulated_games,
    run_preset_benchmark,
    summarize,
)
from .cli import play_cli

__version__ = "1.0.0"

__all__ = [
    # Core classes
    "BoardSize",
    "GameSession",
    "GameSnapshot",
    "normalize_content",
    "InferenceEngine",
    "InferenceReport",
    "ConsistencyValidator",
    "Contradiction",
    "ValidationResult",
    "MemoryStore",
    "InMemoryStorage",
    "FileStorage",
    "MoveSelector",
    "GameState",
    "AnswerOutcome",
    "GameScheduler",
    "SimulatedOracle",
    # Configuration
    "BOARD_SIZE_PRESETS",
    "EngineConfig",
    "ValidationPolicy",
    # CLI
    "play_cli",
    # Analysis functions
    "format_board",
    "heat_map_array",
    "plot_heat_map",
    "run_simulated_game",
    "run_many_simulated_games",
    "run_preset_benchmark",
    "summarize",
]
