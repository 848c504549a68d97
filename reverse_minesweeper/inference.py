"""Deduction of certain-safe and certain-mine cells from the committed clues."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import DefaultDict, Dict, List, Set, Tuple

from .board import MINE, GameSession
from .utils import Coord, chebyshev_distance, sorted_coords

logger = logging.getLogger(__name__)


@dataclass
class InferenceReport:
    """
    Outcome of one analysis pass.

    Attributes:
        certain_safe: Unresolved cells proven mine-free.
        certain_mines: Unresolved cells proven to hold a mine (to be flagged).
        risk: Estimated mine probability of every other unresolved cell that
            touches a clue; cells with no adjacent clue are absent.
        flood: Unresolved neighbors of 0/empty cells, in row-major order.
        single_deductions: Cells resolved by single-clue rules.
        paired_deductions: Cells resolved by clue-pair intersection.
    """

    certain_safe: List[Coord] = field(default_factory=list)
    certain_mines: List[Coord] = field(default_factory=list)
    risk: Dict[Coord, float] = field(default_factory=dict)
    flood: List[Coord] = field(default_factory=list)
    single_deductions: int = 0
    paired_deductions: int = 0

    @property
    def new_flags(self) -> List[Coord]:
        """Certain mines; none of them is flagged yet since they are unresolved."""
        return self.certain_mines

    def ranked_risk(self) -> List[Tuple[Coord, float]]:
        """Risk-scored cells, lowest risk first (row-major among ties)."""
        return sorted(self.risk.items(), key=lambda kv: (kv[1], kv[0]))


class InferenceEngine:
    """
    Constraint-propagation over clue neighborhoods.

    The clue system is kept as a bipartite frontier:
    - revealed_frontier[clue] = [set_of_unresolved_neighbors, mines_remaining]
    - unrevealed_frontier[cell] = set_of_adjacent_clues

    Single-clue rules run to a fixpoint first; clue pairs within ``pair_radius``
    are then intersected, and any pair that yields a deduction restarts the
    single-clue pass. The engine never mutates the session.
    """

    def __init__(self, pair_radius: int = 2) -> None:
        if pair_radius < 1:
            raise ValueError("pair_radius must be at least 1.")
        self.pair_radius = pair_radius

    # -------------------------------------------------------------------------
    # Frontier construction
    # -------------------------------------------------------------------------

    def _build_frontier(
        self, session: GameSession
    ) -> Tuple[Dict[Coord, List[object]], DefaultDict[Coord, Set[Coord]]]:
        revealed_frontier: Dict[Coord, List[object]] = {}
        unrevealed_frontier: DefaultDict[Coord, Set[Coord]] = defaultdict(set)

        for clue, value in session.clue_cells().items():
            unknowns: Set[Coord] = set()
            remaining = value
            for nbr in session.neighbors(clue):
                if nbr in session.flags or session.board.get(nbr) == MINE:
                    remaining -= 1
                elif nbr not in session.discovered:
                    unknowns.add(nbr)

            if not unknowns:
                continue

            revealed_frontier[clue] = [unknowns, remaining]
            for u in unknowns:
                unrevealed_frontier[u].add(clue)

        return revealed_frontier, unrevealed_frontier

    @staticmethod
    def _resolve(
        cell: Coord,
        kind: str,
        revealed_frontier: Dict[Coord, List[object]],
        unrevealed_frontier: DefaultDict[Coord, Set[Coord]],
    ) -> None:
        """Remove a deduced cell from the frontier; "M" also lowers adjacent clue counts."""
        affected = unrevealed_frontier.pop(cell, set())
        for clue in affected:
            entry = revealed_frontier[clue]
            unknowns: Set[Coord] = entry[0]  # type: ignore[assignment]
            unknowns.discard(cell)
            if kind == "M":
                entry[1] = int(entry[1]) - 1  # type: ignore[call-overload]
            if not unknowns:
                del revealed_frontier[clue]

    # -------------------------------------------------------------------------
    # Deduction passes
    # -------------------------------------------------------------------------

    def _single_pass(
        self,
        revealed_frontier: Dict[Coord, List[object]],
        unrevealed_frontier: DefaultDict[Coord, Set[Coord]],
        safe: Set[Coord],
        mines: Set[Coord],
    ) -> int:
        """Apply the Safe and Mine rules until nothing changes. Returns cells resolved."""
        resolved = 0
        changed = True
        while changed:
            changed = False
            for clue in list(revealed_frontier):
                entry = revealed_frontier.get(clue)
                if entry is None:
                    continue
                unknowns: Set[Coord] = entry[0]  # type: ignore[assignment]
                remaining = int(entry[1])  # type: ignore[call-overload]

                if remaining < 0 or remaining > len(unknowns):
                    logger.debug(
                        "Clue %s is unsatisfiable (needs %d mines among %d cells); skipped.",
                        clue,
                        remaining,
                        len(unknowns),
                    )
                    continue

                if remaining == 0:
                    kind, target = "S", safe
                elif remaining == len(unknowns):
                    kind, target = "M", mines
                else:
                    continue

                for cell in sorted_coords(unknowns):
                    target.add(cell)
                    self._resolve(cell, kind, revealed_frontier, unrevealed_frontier)
                    resolved += 1
                changed = True

        return resolved

    def _clue_pairs(
        self,
        revealed_frontier: Dict[Coord, List[object]],
        unrevealed_frontier: DefaultDict[Coord, Set[Coord]],
    ) -> List[Tuple[Coord, Coord]]:
        """Clue pairs within the pair radius that share at least one unresolved cell."""
        pairs: Set[Tuple[Coord, Coord]] = set()
        for a, entry in revealed_frontier.items():
            unknowns: Set[Coord] = entry[0]  # type: ignore[assignment]
            for u in unknowns:
                for b in unrevealed_frontier[u]:
                    if b == a or chebyshev_distance(a, b) > self.pair_radius:
                        continue
                    pairs.add((a, b) if a <= b else (b, a))
        return sorted(pairs)

    def _paired_infer(
        self,
        c1: Coord,
        c2: Coord,
        revealed_frontier: Dict[Coord, List[object]],
        unrevealed_frontier: DefaultDict[Coord, Set[Coord]],
        safe: Set[Coord],
        mines: Set[Coord],
    ) -> int:
        """
        Overlap-based deduction between two clues.

        With r1, r2 remaining mines and the overlap I of their unresolved sets,
        the mines inside I lie in [t_low, t_high]; a side whose bounds force zero
        mines is safe, a side whose bounds force every cell is mined.
        """
        if c1 not in revealed_frontier or c2 not in revealed_frontier:
            return 0

        unrevealed1: Set[Coord] = revealed_frontier[c1][0]  # type: ignore[assignment]
        mines1 = int(revealed_frontier[c1][1])  # type: ignore[call-overload]
        unrevealed2: Set[Coord] = revealed_frontier[c2][0]  # type: ignore[assignment]
        mines2 = int(revealed_frontier[c2][1])  # type: ignore[call-overload]

        intersection = unrevealed1 & unrevealed2
        if not intersection:
            return 0

        only1 = unrevealed1 - intersection
        only2 = unrevealed2 - intersection

        t_low = max(0, mines1 - len(only1), mines2 - len(only2))
        t_high = min(len(intersection), mines1, mines2)
        if t_low > t_high:
            logger.debug("Clues %s and %s contradict each other; pair skipped.", c1, c2)
            return 0

        deductions: List[Tuple[Coord, str]] = []
        for only, total in ((only1, mines1), (only2, mines2)):
            if not only:
                continue
            if total - t_low == 0:
                deductions.extend((cell, "S") for cell in sorted_coords(only))
            elif total - t_high == len(only):
                deductions.extend((cell, "M") for cell in sorted_coords(only))

        for cell, kind in deductions:
            (safe if kind == "S" else mines).add(cell)
            self._resolve(cell, kind, revealed_frontier, unrevealed_frontier)

        return len(deductions)

    # -------------------------------------------------------------------------
    # Probability fallback
    # -------------------------------------------------------------------------

    @staticmethod
    def _local_densities(
        revealed_frontier: Dict[Coord, List[object]],
        unrevealed_frontier: DefaultDict[Coord, Set[Coord]],
    ) -> Dict[Coord, float]:
        """
        Approximate mine probabilities by averaging the residual density of
        every clue adjacent to a cell.
        """
        densities: Dict[Coord, float] = {}
        for clue, entry in revealed_frontier.items():
            unknowns: Set[Coord] = entry[0]  # type: ignore[assignment]
            remaining = int(entry[1])  # type: ignore[call-overload]
            densities[clue] = min(1.0, max(0.0, remaining / len(unknowns)))

        risk: Dict[Coord, float] = {}
        for cell, clues in unrevealed_frontier.items():
            if not clues:
                continue
            risk[cell] = sum(densities[c] for c in clues) / len(clues)
        return risk

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def analyze(self, session: GameSession) -> InferenceReport:
        """
        Derive certain cells, risk estimates and flood candidates for a session.

        Args:
            session: Current game session (read only).

        Returns:
            An InferenceReport; flag placement is left to the caller.
        """
        revealed_frontier, unrevealed_frontier = self._build_frontier(session)

        safe: Set[Coord] = set()
        mines: Set[Coord] = set()
        single_count = 0
        paired_count = 0

        while True:
            single_count += self._single_pass(
                revealed_frontier, unrevealed_frontier, safe, mines
            )

            restart_single = False
            for c1, c2 in self._clue_pairs(revealed_frontier, unrevealed_frontier):
                n = self._paired_infer(
                    c1, c2, revealed_frontier, unrevealed_frontier, safe, mines
                )
                if n:
                    paired_count += n
                    restart_single = True
                    break

            if not restart_single:
                break

        flood: Set[Coord] = set()
        for clue, value in session.clue_cells().items():
            if value != 0:
                continue
            for nbr in session.neighbors(clue):
                if session.is_unresolved(nbr) and session.board.get(nbr) != MINE:
                    flood.add(nbr)

        report = InferenceReport(
            certain_safe=sorted_coords(safe),
            certain_mines=sorted_coords(mines),
            risk=self._local_densities(revealed_frontier, unrevealed_frontier),
            flood=sorted_coords(flood),
            single_deductions=single_count,
            paired_deductions=paired_count,
        )
        logger.debug(
            "Analysis: %d safe, %d mines, %d risk-scored, %d flood.",
            len(report.certain_safe),
            len(report.certain_mines),
            len(report.risk),
            len(report.flood),
        )
        return report
