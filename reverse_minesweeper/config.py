"""Configuration constants and engine settings."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

from .board import BoardSize

# Board size presets offered before a game starts; picking one resets the session.
BOARD_SIZE_PRESETS: Tuple[BoardSize, ...] = (
    BoardSize(8, 8),
    BoardSize(10, 10),
    BoardSize(12, 12),
    BoardSize(15, 15),
    BoardSize(16, 16),
    BoardSize(20, 20),
)

PRESETS_BY_LABEL: Dict[str, BoardSize] = {size.label: size for size in BOARD_SIZE_PRESETS}

# Period of the re-analysis tick a UI drives while the engine is thinking (ms).
ANALYSIS_INTERVAL_MS = 3000

STORAGE_KEY = "reverse_minesweeper.memory"


class ValidationPolicy(str, Enum):
    """What the move selector does with an answer the validator rejects."""

    BLOCK = "block"  # keep waiting, surface the contradiction
    WARN = "warn"  # commit tagged as inconsistent unless the contradiction is critical
    IGNORE = "ignore"  # commit tagged as inconsistent (malformed input still blocks)


@dataclass
class EngineConfig:
    """
    Tunable settings of the engine.

    Attributes:
        policy: Handling of inconsistent oracle answers.
        max_exact_component_size: Largest constraint component (in clue cells)
            checked exactly by the validator; larger ones are skipped.
        pair_radius: Chebyshev radius within which clue pairs are intersected.
        memory_weight: Weight of the memory risk added to the inference risk.
        unconstrained_risk: Local risk assumed for unresolved cells that no
            clue touches.
        jitter: Half-width of the uniform noise added to memory risk scores.
        history_limit: Number of recent games and losing sequences kept.
        auto_advance: Think immediately after an answer instead of waiting
            for the next tick.
        storage_key: Key of the memory document in the key-value store.
    """

    policy: ValidationPolicy = ValidationPolicy.BLOCK
    max_exact_component_size: int = 6
    pair_radius: int = 2
    memory_weight: float = 0.5
    unconstrained_risk: float = 0.05
    jitter: float = 0.05
    history_limit: int = 20
    auto_advance: bool = True
    storage_key: str = STORAGE_KEY

    def __post_init__(self) -> None:
        if not isinstance(self.policy, ValidationPolicy):
            try:
                self.policy = ValidationPolicy(self.policy)
            except ValueError:
                raise ValueError(
                    'policy must be "block", "warn" or "ignore".'
                ) from None
        if self.max_exact_component_size < 1:
            raise ValueError("max_exact_component_size must be at least 1.")
        if self.pair_radius < 1:
            raise ValueError("pair_radius must be at least 1.")
        if self.memory_weight < 0:
            raise ValueError("memory_weight must be non-negative.")
        if not 0.0 <= self.unconstrained_risk <= 1.0:
            raise ValueError("unconstrained_risk must lie in [0, 1].")
        if not 0.0 <= self.jitter <= 0.5:
            raise ValueError("jitter must lie in [0, 0.5].")
        if self.history_limit < 1:
            raise ValueError("history_limit must be at least 1.")
