"""
Consistency checks for oracle answers before they are committed.

The validator only classifies: it returns Contradiction reports and never
mutates the session. Policy (block, warn, ignore) is applied by the caller.
"""

import logging
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from .board import MINE, Board, GameSession, clue_value, normalize_content
from .utils import Coord, chebyshev_distance, format_coord, sorted_coords

logger = logging.getLogger(__name__)

MALFORMED_VALUE = "malformed-value"
IMPOSSIBLE_VALUE = "impossible-value"
EXCESS_FLAGS = "excess-flags"
ZERO_WITH_FLAGS = "zero-with-flags"
MISSING_CELLS = "missing-cells"
EXCESS_MINES = "excess-mines"
UNSATISFIABLE_GROUP = "unsatisfiable-group"

# Kinds that no policy may commit and no override may force through.
CRITICAL_KINDS: FrozenSet[str] = frozenset(
    {MALFORMED_VALUE, IMPOSSIBLE_VALUE, EXCESS_FLAGS, ZERO_WITH_FLAGS, EXCESS_MINES}
)


@dataclass(frozen=True)
class Contradiction:
    """Structured description of why an answer breaks minesweeper rules."""

    kind: str
    cells: Tuple[Coord, ...]
    expected: Optional[int] = None
    actual: Optional[int] = None
    explanation: str = ""

    @property
    def is_critical(self) -> bool:
        return self.kind in CRITICAL_KINDS


@dataclass(frozen=True)
class ValidationResult:
    consistent: bool
    contradiction: Optional[Contradiction] = None
    explanation: str = ""


@dataclass
class _ClueConstraint:
    """A clue cell on the simulated board: `remaining` mines among `unknowns`."""

    cell: Coord
    remaining: int
    unknowns: Set[Coord] = field(default_factory=set)


class ConsistencyValidator:
    """
    Two-tier validator: cheap local checks, then a bounded exact search over the
    constraint components the proposal touches.

    Args:
        max_component_size: Largest component (counted in clue cells) searched
            exactly. Larger components are skipped.

    Raises:
        ValueError: If max_component_size is not positive.
    """

    def __init__(self, max_component_size: int = 6) -> None:
        if max_component_size < 1:
            raise ValueError("max_component_size must be at least 1.")
        self.max_component_size = max_component_size

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def validate(self, coord: Coord, proposed: object, session: GameSession) -> ValidationResult:
        """
        Decide whether committing `proposed` at `coord` keeps the board solvable.

        Args:
            coord: The probed cell.
            proposed: Raw oracle answer (normalized with normalize_content).
            session: Current game session (read only).

        Returns:
            ValidationResult; `contradiction` is set when inconsistent.
        """
        contradiction = self._direct_checks(coord, proposed, session)
        if contradiction is None:
            contradiction = self._group_check(coord, normalize_content(proposed), session)

        if contradiction is None:
            return ValidationResult(True, None, "Answer is consistent with the board.")

        logger.info(
            "Answer %r at %s rejected (%s): %s",
            proposed,
            format_coord(coord),
            contradiction.kind,
            contradiction.explanation,
        )
        return ValidationResult(False, contradiction, contradiction.explanation)

    def scan_for_future_risk(
        self, coord: Coord, proposed: object, session: GameSession
    ) -> List[Contradiction]:
        """
        Advisory check for empty/digit answers: list adjacent clue cells that
        would be left needing more mines than they have unresolved neighbors.
        """
        symbol = normalize_content(proposed)
        if symbol is None or symbol == MINE or not session.size.contains(coord):
            return []

        advisories: List[Contradiction] = []
        for nbr in session.neighbors(coord):
            if nbr not in session.discovered:
                continue
            value = clue_value(session.board.get(nbr))
            if value is None:
                continue

            confirmed = self._confirmed_mines(nbr, session.board, session.flags, session)
            unresolved = [
                n
                for n in session.neighbors(nbr)
                if n != coord and self._is_open(n, session.board, session.discovered, session.flags)
            ]
            needed = value - confirmed
            if needed > len(unresolved):
                advisories.append(
                    Contradiction(
                        kind=MISSING_CELLS,
                        cells=(nbr,),
                        expected=needed,
                        actual=len(unresolved),
                        explanation=(
                            f"Cell {format_coord(nbr)} shows {value} but would have only "
                            f"{len(unresolved)} unresolved neighbors left for {needed} mines."
                        ),
                    )
                )
        return advisories

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _is_open(cell: Coord, board: Board, discovered: Set[Coord], mines: Set[Coord]) -> bool:
        return cell not in discovered and cell not in mines and board.get(cell) != MINE

    @staticmethod
    def _confirmed_mines(
        cell: Coord, board: Board, mines: Set[Coord], session: GameSession
    ) -> int:
        return sum(1 for n in session.neighbors(cell) if n in mines or board.get(n) == MINE)

    # -------------------------------------------------------------------------
    # Tier 1: direct checks
    # -------------------------------------------------------------------------

    def _direct_checks(
        self, coord: Coord, proposed: object, session: GameSession
    ) -> Optional[Contradiction]:
        symbol = normalize_content(proposed)
        if symbol is None:
            return Contradiction(
                kind=MALFORMED_VALUE,
                cells=(coord,),
                explanation=f"{proposed!r} is not empty, a digit 0-8 or a mine.",
            )
        if not session.size.contains(coord):
            return Contradiction(
                kind=MALFORMED_VALUE,
                cells=(coord,),
                explanation=f"{coord} lies outside the {session.size.label} board.",
            )

        neighbors = session.neighbors(coord)

        if symbol == MINE:
            for nbr in neighbors:
                if nbr not in session.discovered:
                    continue
                value = clue_value(session.board.get(nbr))
                if value is None:
                    continue
                confirmed = self._confirmed_mines(nbr, session.board, session.flags, session)
                if confirmed >= value:
                    return Contradiction(
                        kind=EXCESS_MINES,
                        cells=(nbr, coord),
                        expected=value,
                        actual=confirmed + 1,
                        explanation=(
                            f"Cell {format_coord(nbr)} shows {value} and already has "
                            f"{confirmed} confirmed mines; a mine at {format_coord(coord)} "
                            "would exceed it."
                        ),
                    )
            return None

        value = clue_value(symbol)
        assert value is not None
        flags = [n for n in neighbors if n in session.flags]
        confirmed = self._confirmed_mines(coord, session.board, session.flags, session)
        unresolved = [
            n for n in neighbors if self._is_open(n, session.board, session.discovered, session.flags)
        ]

        if value > len(neighbors):
            return Contradiction(
                kind=IMPOSSIBLE_VALUE,
                cells=(coord,),
                expected=len(neighbors),
                actual=value,
                explanation=(
                    f"Cell {format_coord(coord)} has only {len(neighbors)} neighbors "
                    f"and cannot show {value}."
                ),
            )
        if value == 0 and flags:
            return Contradiction(
                kind=ZERO_WITH_FLAGS,
                cells=(coord,) + tuple(sorted_coords(flags)),
                expected=0,
                actual=len(flags),
                explanation=(
                    f"Cell {format_coord(coord)} cannot be empty: it touches "
                    f"{len(flags)} flagged cell(s)."
                ),
            )
        if value < len(flags):
            return Contradiction(
                kind=EXCESS_FLAGS,
                cells=(coord,) + tuple(sorted_coords(flags)),
                expected=value,
                actual=len(flags),
                explanation=(
                    f"Cell {format_coord(coord)} cannot show {value}: it already "
                    f"touches {len(flags)} flags."
                ),
            )
        if value - confirmed > len(unresolved):
            return Contradiction(
                kind=MISSING_CELLS,
                cells=(coord,),
                expected=value - confirmed,
                actual=len(unresolved),
                explanation=(
                    f"Cell {format_coord(coord)} would need {value - confirmed} more "
                    f"mines but has only {len(unresolved)} unresolved neighbors."
                ),
            )
        return None

    # -------------------------------------------------------------------------
    # Tier 2: group satisfiability
    # -------------------------------------------------------------------------

    def _simulate(
        self, coord: Coord, symbol: str, session: GameSession
    ) -> Dict[Coord, _ClueConstraint]:
        """Build clue constraints on a cloned board with the proposal applied."""
        board = session.board.clone()
        board.set(coord, symbol)
        discovered = set(session.discovered)
        mines = set(session.flags)
        if symbol == MINE:
            mines.add(coord)
        else:
            discovered.add(coord)

        constraints: Dict[Coord, _ClueConstraint] = {}
        for cell in discovered:
            value = clue_value(board.get(cell))
            if value is None:
                continue
            constraint = _ClueConstraint(cell, value)
            for n in session.neighbors(cell):
                if n in mines or board.get(n) == MINE:
                    constraint.remaining -= 1
                elif n not in discovered:
                    constraint.unknowns.add(n)
            constraints[cell] = constraint
        return constraints

    @staticmethod
    def _components(constraints: Dict[Coord, _ClueConstraint]) -> List[List[Coord]]:
        """Connected components of clue cells linked by shared unresolved cells."""
        by_unknown: Dict[Coord, List[Coord]] = {}
        for cell, constraint in constraints.items():
            for u in constraint.unknowns:
                by_unknown.setdefault(u, []).append(cell)

        seen: Set[Coord] = set()
        components: List[List[Coord]] = []
        for start in sorted_coords(constraints):
            if start in seen:
                continue
            stack = [start]
            seen.add(start)
            component: List[Coord] = []
            while stack:
                cell = stack.pop()
                component.append(cell)
                for u in constraints[cell].unknowns:
                    for other in by_unknown[u]:
                        if other not in seen:
                            seen.add(other)
                            stack.append(other)
            components.append(sorted_coords(component))
        return components

    @staticmethod
    def _satisfiable(component: List[Coord], constraints: Dict[Coord, _ClueConstraint]) -> bool:
        """
        Backtracking over the component's clue cells. Each level places the
        clue's still-needed mines among its unassigned cells, so the recursion
        depth never exceeds the number of clue cells.
        """
        assignment: Dict[Coord, int] = {}

        def backtrack(i: int) -> bool:
            if i == len(component):
                return True

            constraint = constraints[component[i]]
            placed = 0
            free: List[Coord] = []
            for u in sorted_coords(constraint.unknowns):
                if u in assignment:
                    placed += assignment[u]
                else:
                    free.append(u)

            need = constraint.remaining - placed
            if need < 0 or need > len(free):
                return False

            for chosen in combinations(free, need):
                chosen_set = set(chosen)
                for u in free:
                    assignment[u] = 1 if u in chosen_set else 0
                if backtrack(i + 1):
                    return True
            for u in free:
                assignment.pop(u, None)
            return False

        return backtrack(0)

    def _group_check(
        self, coord: Coord, symbol: Optional[str], session: GameSession
    ) -> Optional[Contradiction]:
        if symbol is None:
            return None

        constraints = self._simulate(coord, symbol, session)
        for component in self._components(constraints):
            if not any(chebyshev_distance(cell, coord) <= 1 for cell in component):
                continue
            if len(component) > self.max_component_size:
                logger.debug(
                    "Component of %d clue cells near %s exceeds %d; exact check skipped.",
                    len(component),
                    format_coord(coord),
                    self.max_component_size,
                )
                continue
            if not self._satisfiable(component, constraints):
                return Contradiction(
                    kind=UNSATISFIABLE_GROUP,
                    cells=tuple(component),
                    explanation=(
                        f"No mine layout satisfies the clues at "
                        f"{', '.join(format_coord(c) for c in component)} "
                        f"with this answer at {format_coord(coord)}."
                    ),
                )
        return None
