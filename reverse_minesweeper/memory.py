"""
Heuristic memory that carries experience across games.

Positions are bucketed onto an 11x11 normalized grid so that what was learned
on one board size transfers to others. The record is persisted as a single
JSON document through a small key-value storage object.
"""

import json
import logging
import os
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .board import ActionEvent, BoardSize, LedgerEvent, ProbeEvent
from .config import EngineConfig
from .utils import Coord, format_coord

logger = logging.getLogger(__name__)

Bucket = Tuple[int, int]

LEVELS = 10


# -----------------------------------------------------------------------------
# Position normalization
# -----------------------------------------------------------------------------

def _axis_level(index: int, n: int) -> int:
    return index * LEVELS // (n - 1) if n > 1 else 0


def _axis_index(level: int, n: int) -> int:
    # Smallest index whose level is `level` (ceil division).
    return -((-level * (n - 1)) // LEVELS) if n > 1 else 0


def normalize_position(coord: Coord, size: BoardSize) -> Bucket:
    """Discretize a coordinate to integer levels 0..10 on each axis."""
    r, c = coord
    return _axis_level(r, size.rows), _axis_level(c, size.columns)


def position_key(coord: Coord, size: BoardSize) -> str:
    """Storage key of a coordinate's bucket, e.g. "0.3,1.0"."""
    lr, lc = normalize_position(coord, size)
    return f"{lr / LEVELS:.1f},{lc / LEVELS:.1f}"


def parse_position_key(key: str) -> Bucket:
    """Inverse of position_key. Raises ValueError for malformed keys."""
    parts = key.split(",")
    if len(parts) != 2:
        raise ValueError(f"Malformed position key {key!r}.")
    levels = tuple(int(round(float(p) * LEVELS)) for p in parts)
    if not all(0 <= level <= LEVELS for level in levels):
        raise ValueError(f"Position key {key!r} is out of range.")
    return levels[0], levels[1]


def denormalize_position(bucket: Bucket, size: BoardSize) -> Coord:
    """
    Map a bucket back to a cell on the given board.

    Returns the smallest coordinate in the bucket, so that normalizing the
    result yields the same bucket. Buckets with no cell on a small board
    resolve to the nearest cell above them.
    """
    lr, lc = bucket
    r = min(_axis_index(lr, size.rows), size.rows - 1)
    c = min(_axis_index(lc, size.columns), size.columns - 1)
    return r, c


# -----------------------------------------------------------------------------
# Storage
# -----------------------------------------------------------------------------

class InMemoryStorage:
    """Volatile key-value store, used by tests and throwaway sessions."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class FileStorage:
    """Key-value store keeping each key in `<directory>/<key>.json`."""

    def __init__(self, directory: str) -> None:
        self.directory = directory

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as fh:
            return fh.read()

    def set(self, key: str, value: str) -> None:
        os.makedirs(self.directory, exist_ok=True)
        path = self._path(key)
        tmp_path = path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as fh:
            fh.write(value)
        os.replace(tmp_path, path)


# -----------------------------------------------------------------------------
# Record
# -----------------------------------------------------------------------------

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _empty_counters() -> Dict[str, int]:
    return {"games_played": 0, "wins": 0, "losses": 0, "total_mines": 0, "total_moves": 0}


@dataclass
class MemoryRecord:
    """Everything the memory store persists, as one JSON-serializable document."""

    heat_map: Dict[str, int] = field(default_factory=dict)
    opening_moves: Dict[str, Dict[str, int]] = field(default_factory=dict)
    second_moves: Dict[str, Dict[str, int]] = field(default_factory=dict)
    losing_sequences: List[str] = field(default_factory=list)
    games: List[Dict[str, Any]] = field(default_factory=list)
    counters: Dict[str, int] = field(default_factory=_empty_counters)
    last_played: str = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "heat_map": dict(self.heat_map),
            "opening_moves": {k: dict(v) for k, v in self.opening_moves.items()},
            "second_moves": {k: dict(v) for k, v in self.second_moves.items()},
            "losing_sequences": list(self.losing_sequences),
            "games": list(self.games),
            "counters": dict(self.counters),
            "last_played": self.last_played,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemoryRecord":
        """
        Rebuild a record from a decoded document.

        Raises:
            TypeError, ValueError or KeyError: If the document does not match
                the record layout.
        """
        if not isinstance(data, dict):
            raise TypeError("Memory document must be a JSON object.")

        def tallies(raw: Any) -> Dict[str, Dict[str, int]]:
            if not isinstance(raw, dict):
                raise TypeError("Move statistics must be an object.")
            return {
                str(k): {"wins": int(v["wins"]), "losses": int(v["losses"])}
                for k, v in raw.items()
            }

        heat_map = {str(k): int(v) for k, v in data["heat_map"].items()}
        sequences = [str(s) for s in data["losing_sequences"]]
        games = data.get("games", [])
        if not isinstance(games, list):
            raise TypeError("Games must be a list.")

        counters = _empty_counters()
        counters.update({k: int(v) for k, v in data.get("counters", {}).items()})

        return cls(
            heat_map=heat_map,
            opening_moves=tallies(data["opening_moves"]),
            second_moves=tallies(data["second_moves"]),
            losing_sequences=sequences,
            games=[dict(g) for g in games],
            counters=counters,
            last_played=str(data.get("last_played", _now())),
        )


@dataclass(frozen=True)
class RiskAssessment:
    risk: float
    reasons: Tuple[str, ...]


@dataclass(frozen=True)
class SecondMoveSuggestion:
    coord: Coord
    win_rate: float
    samples: int
    confidence: str  # "high" or "medium"


# -----------------------------------------------------------------------------
# Store
# -----------------------------------------------------------------------------

class MemoryStore:
    """
    Records game outcomes and scores cells by historical risk.

    Args:
        storage: Object with get(key) and set(key, value). Defaults to an
            InMemoryStorage.
        config: Engine settings (storage key, jitter, history limit).
        rng: Random source for score jitter. Pass a seeded instance for
            reproducible scores.
    """

    def __init__(
        self,
        storage: Optional[Any] = None,
        config: Optional[EngineConfig] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.storage = storage if storage is not None else InMemoryStorage()
        self.config = config or EngineConfig()
        self.rng = rng or random.Random()
        self.record = self.load()

    # ----- persistence -----

    def load(self) -> MemoryRecord:
        """Read the record; a missing, unreadable or corrupt document yields a fresh one."""
        try:
            raw = self.storage.get(self.config.storage_key)
            if raw is None:
                return MemoryRecord()
            return MemoryRecord.from_dict(json.loads(raw))
        except (OSError, ValueError, TypeError, KeyError, AttributeError) as exc:
            logger.warning("Could not load game memory (%s); starting fresh.", exc)
            return MemoryRecord()

    def save(self) -> bool:
        """Write the record back. Returns False (and logs) when storage fails."""
        try:
            self.storage.set(self.config.storage_key, json.dumps(self.record.to_dict()))
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("Could not save game memory: %s", exc)
            return False
        return True

    # ----- recording -----

    @staticmethod
    def _probes(ledger: Sequence[LedgerEvent]) -> List[ProbeEvent]:
        return [e for e in ledger if isinstance(e, ProbeEvent)]

    def record_mine_found(self, coord: Coord, size: BoardSize) -> None:
        key = position_key(coord, size)
        self.record.heat_map[key] = self.record.heat_map.get(key, 0) + 1
        self.record.counters["total_mines"] += 1
        self.save()

    def record_loss(self, ledger: Sequence[LedgerEvent], size: BoardSize) -> None:
        """Tally a lost game and remember its probe sequence."""
        probes = self._probes(ledger)
        if not probes:
            return

        sequence = "|".join(position_key(p.coord, size) for p in probes)
        sequences = self.record.losing_sequences
        # A repeated loss moves its sequence to the newest end
        if sequence in sequences:
            sequences.remove(sequence)
        sequences.append(sequence)
        del sequences[: max(0, len(sequences) - self.config.history_limit)]

        self._record_outcome(probes, size, won=False)

    def record_win(self, ledger: Sequence[LedgerEvent], size: BoardSize) -> None:
        probes = self._probes(ledger)
        if not probes:
            return
        self._record_outcome(probes, size, won=True)

    def _record_outcome(self, probes: List[ProbeEvent], size: BoardSize, won: bool) -> None:
        outcome = "wins" if won else "losses"
        first_key = position_key(probes[0].coord, size)

        opening = self.record.opening_moves.setdefault(first_key, {"wins": 0, "losses": 0})
        opening[outcome] += 1

        if len(probes) >= 2:
            pair_key = f"{first_key}|{position_key(probes[1].coord, size)}"
            second = self.record.second_moves.setdefault(pair_key, {"wins": 0, "losses": 0})
            second[outcome] += 1

        counters = self.record.counters
        counters[outcome] += 1
        counters["games_played"] += 1
        counters["total_moves"] += len(probes)

        self.record.last_played = _now()
        self.record.games.append(
            {
                "date": self.record.last_played,
                "result": "win" if won else "loss",
                "moves": [[p.coord[0], p.coord[1], p.content] for p in probes],
                "board_size": [size.rows, size.columns],
            }
        )
        del self.record.games[: max(0, len(self.record.games) - self.config.history_limit)]

        logger.info(
            "Recorded %s after %d probes on %s.", "win" if won else "loss", len(probes), size.label
        )
        self.save()

    # ----- scoring -----

    @staticmethod
    def loss_rate(stats: Optional[Dict[str, int]]) -> Optional[float]:
        if not stats:
            return None
        total = stats["wins"] + stats["losses"]
        return stats["losses"] / total if total > 0 else None

    def opening_loss_rate(self, coord: Coord, size: BoardSize) -> Optional[float]:
        return self.loss_rate(self.record.opening_moves.get(position_key(coord, size)))

    def score_risk(
        self, coord: Coord, size: BoardSize, ledger: Sequence[LedgerEvent] = ()
    ) -> RiskAssessment:
        """
        Historical risk of probing `coord` next, in [0, 1].

        Combines the mine heat map, opening and second-move loss rates, matches
        against stored losing sequences and a small uniform jitter.
        """
        key = position_key(coord, size)
        risk = 0.0
        reasons: List[str] = []

        count = self.record.heat_map.get(key, 0)
        if count:
            risk += min(0.8, 0.2 * count)
            reasons.append(f"mine seen here {count} time(s)")

        probes = self._probes(ledger)
        if not probes:
            rate = self.loss_rate(self.record.opening_moves.get(key))
            if rate is not None:
                risk += 0.3 * rate
                reasons.append(f"opening lost {round(rate * 100)}% of games")
        elif len(probes) == 1 and not any(isinstance(e, ActionEvent) for e in ledger):
            first_key = position_key(probes[0].coord, size)
            rate = self.loss_rate(self.record.second_moves.get(f"{first_key}|{key}"))
            if rate is not None:
                risk += 0.4 * rate
                reasons.append(f"second move lost {round(rate * 100)}% of games")

        candidate = "|".join([position_key(p.coord, size) for p in probes] + [key])
        matches = sum(
            1 for seq in self.record.losing_sequences if candidate in seq or seq in candidate
        )
        if matches:
            risk += min(0.75, 0.25 * matches)
            reasons.append(f"matches {matches} losing sequence(s)")

        if self.config.jitter:
            risk += self.rng.uniform(-self.config.jitter, self.config.jitter)

        return RiskAssessment(max(0.0, min(1.0, risk)), tuple(reasons) or ("no history",))

    def suggest_second_move(
        self, first_move: Coord, size: BoardSize
    ) -> Optional[SecondMoveSuggestion]:
        """
        Best recorded follow-up to an opening in the same bucket.

        Win rates more than 0.2 apart decide; otherwise the better-sampled move
        wins. Returns None when nothing was recorded for this opening.
        """
        prefix = position_key(first_move, size) + "|"
        candidates: List[Tuple[Coord, float, int]] = []
        for key, stats in self.record.second_moves.items():
            if not key.startswith(prefix):
                continue
            total = stats["wins"] + stats["losses"]
            try:
                bucket = parse_position_key(key[len(prefix):])
            except ValueError:
                logger.warning("Skipping malformed second-move key %r.", key)
                continue
            win_rate = stats["wins"] / total if total > 0 else 0.0
            candidates.append((denormalize_position(bucket, size), win_rate, total))

        if not candidates:
            return None

        def compare(a: Tuple[Coord, float, int], b: Tuple[Coord, float, int]) -> int:
            if abs(a[1] - b[1]) > 0.2:
                return -1 if a[1] > b[1] else 1
            return b[2] - a[2]

        coord, win_rate, total = sorted(candidates, key=cmp_to_key(compare))[0]
        suggestion = SecondMoveSuggestion(
            coord=coord,
            win_rate=win_rate,
            samples=total,
            confidence="high" if total > 2 else "medium",
        )
        logger.debug(
            "Second move after %s: %s (win rate %.2f, %d samples).",
            format_coord(first_move),
            format_coord(coord),
            win_rate,
            total,
        )
        return suggestion

    def statistics(self) -> Dict[str, Any]:
        """Aggregate counters plus win rate, for display."""
        stats: Dict[str, Any] = dict(self.record.counters)
        played = stats["games_played"]
        stats["win_rate"] = stats["wins"] / played if played else 0.0
        stats["losing_sequences"] = len(self.record.losing_sequences)
        stats["last_played"] = self.record.last_played
        return stats
