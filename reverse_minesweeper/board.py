"""Board state, cell contents and the append-only move ledger of one game session."""

import logging
from collections import deque
from dataclasses import dataclass
from typing import (
    Deque,
    Dict,
    FrozenSet,
    List,
    Optional,
    Set,
    Tuple,
    Union,
)

from .utils import Coord, format_coord, get_neighborhoods

logger = logging.getLogger(__name__)

# Cell contents stored on the board:
#   None     -> unknown (never probed)
#   "E"      -> empty
#   "0".."8" -> clue digit
#   "M"      -> mine reported by the oracle
EMPTY = "E"
MINE = "M"
DIGITS: Tuple[str, ...] = tuple(str(d) for d in range(9))

_CONTENT_ALIASES: Dict[str, str] = {
    "": EMPTY,
    "e": EMPTY,
    "empty": EMPTY,
    "vacío": EMPTY,
    "vacio": EMPTY,
    "m": MINE,
    "mine": MINE,
    "mina": MINE,
}


def normalize_content(value: object) -> Optional[str]:
    """
    Map an oracle answer onto a board content symbol.

    Accepts the symbols themselves, the aliases "empty"/"mine" (case-insensitive)
    and integers or digit strings in 0..8.

    Returns:
        EMPTY, MINE or a digit string, or None when the answer is malformed.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value) if 0 <= value <= 8 else None
    if not isinstance(value, str):
        return None

    text = value.strip().lower()
    if text in _CONTENT_ALIASES:
        return _CONTENT_ALIASES[text]
    # Leading zeros are tolerated; anything else outside "0".."8" is malformed
    stripped = text.lstrip("0") or "0"
    if text[:1] in DIGITS and stripped in DIGITS:
        return stripped
    return None


def clue_value(content: Optional[str]) -> Optional[int]:
    """Return the mine count a content states about its neighbors (empty counts as 0)."""
    if content == EMPTY:
        return 0
    if content in DIGITS:
        return int(content)  # type: ignore[arg-type]
    return None


@dataclass(frozen=True)
class BoardSize:
    """Board dimensions; immutable for the lifetime of a game."""

    rows: int
    columns: int

    def __post_init__(self) -> None:
        if self.rows <= 0 or self.columns <= 0:
            raise ValueError("Board rows and columns must be positive.")

    @property
    def cell_count(self) -> int:
        return self.rows * self.columns

    @property
    def label(self) -> str:
        return f"{self.rows}x{self.columns}"

    def contains(self, coord: Coord) -> bool:
        r, c = coord
        return 0 <= r < self.rows and 0 <= c < self.columns


@dataclass(frozen=True)
class ProbeEvent:
    """A probe answered by the oracle."""

    coord: Coord
    content: str
    inconsistent: bool = False


@dataclass(frozen=True)
class ActionEvent:
    """An action taken by the engine itself (currently only flag placement)."""

    coord: Coord
    kind: str = "flag"


LedgerEvent = Union[ProbeEvent, ActionEvent]


class Board:
    """Rows x columns grid of cell contents."""

    def __init__(
        self,
        size: BoardSize,
        cells: Optional[List[List[Optional[str]]]] = None,
    ) -> None:
        self.size = size
        if cells is None:
            cells = [[None for _ in range(size.columns)] for _ in range(size.rows)]
        elif len(cells) != size.rows or any(len(row) != size.columns for row in cells):
            raise ValueError("Cell grid does not match the board size.")
        self.cells: List[List[Optional[str]]] = cells

    def get(self, coord: Coord) -> Optional[str]:
        r, c = coord
        return self.cells[r][c]

    def set(self, coord: Coord, content: Optional[str]) -> None:
        r, c = coord
        self.cells[r][c] = content

    def clone(self) -> "Board":
        """Return an independent copy of the grid."""
        return Board(self.size, [list(row) for row in self.cells])

    def as_tuple(self) -> Tuple[Tuple[Optional[str], ...], ...]:
        return tuple(tuple(row) for row in self.cells)


@dataclass(frozen=True)
class GameSnapshot:
    """Read-only copy of a session handed to rendering collaborators."""

    size: BoardSize
    board: Tuple[Tuple[Optional[str], ...], ...]
    discovered: FrozenSet[Coord]
    flags: FrozenSet[Coord]
    ledger: Tuple[LedgerEvent, ...]
    started: bool
    ended: bool
    pending: Optional[Coord]


class GameSession:
    """
    Authoritative state of one game: board, discovered set, flags and ledger.

    Every component reads this object directly; there is no shadow copy to keep
    in sync. A session is replaced wholesale on reset or board size change.
    """

    def __init__(self, size: BoardSize) -> None:
        self.size: BoardSize = size
        self.board: Board = Board(size)
        self.discovered: Set[Coord] = set()
        self.flags: Set[Coord] = set()
        self.ledger: List[LedgerEvent] = []

        self.started: bool = False
        self.ended: bool = False
        self.pending: Optional[Coord] = None
        self.mine_reported: bool = False

        # Provably safe cells queued after a 0/empty answer (FIFO)
        self.flood_queue: Deque[Coord] = deque()

        self._neighborhoods: Dict[Coord, Tuple[Coord, ...]] = get_neighborhoods(
            size.rows, size.columns
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def awaiting_answer(self) -> bool:
        return self.pending is not None

    def neighbors(self, coord: Coord) -> Tuple[Coord, ...]:
        """Return precomputed neighbor coordinates for a cell."""
        return self._neighborhoods[coord]

    def is_unresolved(self, coord: Coord) -> bool:
        """True when the cell is neither discovered nor flagged."""
        return coord not in self.discovered and coord not in self.flags

    def unresolved_cells(self) -> List[Coord]:
        """Cells that are neither discovered nor flagged, row-major."""
        return [
            (r, c)
            for r in range(self.size.rows)
            for c in range(self.size.columns)
            if self.is_unresolved((r, c))
        ]

    def clue_cells(self) -> Dict[Coord, int]:
        """Discovered cells carrying a mine count (digits and empty)."""
        clues: Dict[Coord, int] = {}
        for coord in self.discovered:
            value = clue_value(self.board.get(coord))
            if value is not None:
                clues[coord] = value
        return clues

    def probe_events(self) -> List[ProbeEvent]:
        return [e for e in self.ledger if isinstance(e, ProbeEvent)]

    def is_complete(self) -> bool:
        """All cells are either discovered or flagged."""
        return len(self.discovered) + len(self.flags) == self.size.cell_count

    def snapshot(self) -> GameSnapshot:
        return GameSnapshot(
            size=self.size,
            board=self.board.as_tuple(),
            discovered=frozenset(self.discovered),
            flags=frozenset(self.flags),
            ledger=tuple(self.ledger),
            started=self.started,
            ended=self.ended,
            pending=self.pending,
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def probe(self, coord: Coord) -> bool:
        """
        Mark a cell as awaiting the oracle's answer.

        Returns:
            True if the cell is now pending; False (logged no-op) if the game has
            ended, a probe is already pending, or the cell is out of bounds,
            discovered or flagged.
        """
        if self.ended:
            logger.warning("Probe %s ignored: the game has ended.", coord)
            return False
        if self.pending is not None:
            logger.warning(
                "Probe %s ignored: still waiting for the answer at %s.",
                coord,
                format_coord(self.pending),
            )
            return False
        if not self.size.contains(coord):
            logger.warning("Probe %s ignored: outside the %s board.", coord, self.size.label)
            return False
        if coord in self.discovered:
            logger.warning("Probe %s ignored: cell already discovered.", format_coord(coord))
            return False
        if coord in self.flags:
            logger.warning("Probe %s ignored: cell is flagged.", format_coord(coord))
            return False

        self.pending = coord
        self.started = True
        return True

    def commit(self, coord: Coord, content: str, inconsistent: bool = False) -> ProbeEvent:
        """
        Write an oracle answer into the board and append it to the ledger.

        Mines are written as the mine marker but never join the discovered set.

        Raises:
            ValueError: If the content is malformed, the game has ended, another
                cell is pending, or the cell is out of bounds, discovered or flagged.
        """
        symbol = normalize_content(content)
        if symbol is None:
            raise ValueError(f"Cannot commit malformed content {content!r}.")
        if self.ended:
            raise ValueError("Cannot commit an answer after the game has ended.")
        if self.pending is not None and self.pending != coord:
            raise ValueError(
                f"Cell {format_coord(self.pending)} is pending, not {format_coord(coord)}."
            )
        if not self.size.contains(coord):
            raise ValueError("Cell coordinates are outside the board.")
        if coord in self.discovered or coord in self.flags:
            raise ValueError(f"Cell {format_coord(coord)} is already resolved.")

        self.board.set(coord, symbol)
        if symbol == MINE:
            self.mine_reported = True
        else:
            self.discovered.add(coord)

        event = ProbeEvent(coord, symbol, inconsistent)
        self.ledger.append(event)
        self.pending = None
        self.started = True
        return event

    def place_flag(self, coord: Coord) -> bool:
        """
        Flag a cell believed to hold a mine.

        Returns:
            True if the flag was placed; False (logged no-op) if the cell is out of
            bounds, discovered or already flagged.
        """
        if not self.size.contains(coord):
            logger.warning("Flag %s ignored: outside the %s board.", coord, self.size.label)
            return False
        if coord in self.discovered:
            logger.warning("Flag %s ignored: cell already discovered.", format_coord(coord))
            return False
        if coord in self.flags:
            logger.warning("Flag %s ignored: cell already flagged.", format_coord(coord))
            return False

        self.flags.add(coord)
        self.ledger.append(ActionEvent(coord))
        return True
