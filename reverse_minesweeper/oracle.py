"""Simulated oracle answering probes from a hidden mine layout."""

import logging
import random
from typing import Dict, List, Optional, Set, Tuple

from .board import EMPTY, MINE, BoardSize
from .utils import Coord, get_neighborhoods

logger = logging.getLogger(__name__)


class SimulatedOracle:
    """
    Answers probes truthfully from a randomly generated layout.

    Mines are placed lazily on the first probe so that the opening is never a
    mine ("safe_first_action_rule") or never a mine nor next to one
    ("safe_neighborhood_rule").
    """

    def __init__(
        self,
        size: BoardSize,
        mines_count: int,
        mines_generation_algorithm: str = "safe_first_action_rule",
        rng: Optional[random.Random] = None,
    ) -> None:
        """
        Args:
            size: Board dimensions.
            mines_count: Total number of mines to place, must be >= 0.
            mines_generation_algorithm: One of {"safe_first_action_rule",
                "safe_neighborhood_rule"}.
            rng: Random source for mine placement.

        Raises:
            ValueError: If the mine count or algorithm is invalid.
        """
        if mines_count < 0:
            raise ValueError("mines_count must be non-negative.")
        if mines_generation_algorithm not in (
            "safe_first_action_rule",
            "safe_neighborhood_rule",
        ):
            raise ValueError(
                'mines_generation_algorithm must be "safe_first_action_rule" '
                'or "safe_neighborhood_rule".'
            )
        reserved = 1 if mines_generation_algorithm == "safe_first_action_rule" else 9
        if mines_count > size.cell_count - min(reserved, size.cell_count):
            raise ValueError(
                f"Cannot place {mines_count} mines and satisfy {mines_generation_algorithm}."
            )

        self.size = size
        self.mines_count = mines_count
        self.mines_generation_algorithm = mines_generation_algorithm
        self.rng = rng or random.Random()

        self.mines: Set[Coord] = set()
        self.board: List[List[str]] = []
        self._neighborhoods: Dict[Coord, Tuple[Coord, ...]] = get_neighborhoods(
            size.rows, size.columns
        )

    @classmethod
    def from_layout(cls, size: BoardSize, mines: Set[Coord]) -> "SimulatedOracle":
        """Build an oracle over a fixed layout (no lazy placement)."""
        oracle = cls(size, 0)
        oracle.mines_count = len(mines)
        oracle.mines = set(mines)
        oracle._fill_counts()
        return oracle

    @property
    def placed(self) -> bool:
        return bool(self.board)

    def place_mines(self, first: Coord) -> None:
        """
        Place mines once, respecting the first-probe safety rule.

        Raises:
            ValueError: If mines were already placed.
        """
        if self.placed:
            raise ValueError("Mines are already placed.")

        safe: Set[Coord] = {first}
        if self.mines_generation_algorithm == "safe_neighborhood_rule":
            safe |= set(self._neighborhoods[first])

        eligible = [
            (r, c)
            for r in range(self.size.rows)
            for c in range(self.size.columns)
            if (r, c) not in safe
        ]
        self.mines = set(self.rng.sample(eligible, min(self.mines_count, len(eligible))))
        logger.debug("Placed %d mines on %s.", len(self.mines), self.size.label)
        self._fill_counts()

    def _fill_counts(self) -> None:
        self.board = []
        for r in range(self.size.rows):
            row: List[str] = []
            for c in range(self.size.columns):
                if (r, c) in self.mines:
                    row.append(MINE)
                    continue
                count = sum(1 for n in self._neighborhoods[(r, c)] if n in self.mines)
                row.append(EMPTY if count == 0 else str(count))
            self.board.append(row)

    def answer_for(self, coord: Coord) -> str:
        """The content of a cell, as the oracle would report it."""
        if not self.placed:
            self.place_mines(coord)
        r, c = coord
        return self.board[r][c]

    def format_layout(self) -> str:
        """Render the hidden layout (mines shown as M, empty cells as '.')."""
        if not self.placed:
            return "(mines not placed yet)"
        return "\n".join(
            " ".join("." if v == EMPTY else v for v in row) for row in self.board
        )

