"""Move selector: the state machine that plays a reverse Minesweeper game."""

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .board import MINE, BoardSize, GameSession, GameSnapshot, ProbeEvent, normalize_content
from .config import BOARD_SIZE_PRESETS, EngineConfig, ValidationPolicy
from .inference import InferenceEngine, InferenceReport
from .memory import MemoryStore
from .utils import Coord, format_coord
from .validation import MALFORMED_VALUE, ConsistencyValidator, Contradiction

logger = logging.getLogger(__name__)


class GameState(str, Enum):
    NOT_STARTED = "not-started"
    AWAITING_ANSWER = "awaiting-answer"
    THINKING = "thinking"
    WON = "won"
    LOST = "lost"


@dataclass(frozen=True)
class AnswerOutcome:
    """What happened to an oracle answer."""

    accepted: bool
    state: GameState
    event: Optional[ProbeEvent] = None
    contradiction: Optional[Contradiction] = None
    advisories: Tuple[Contradiction, ...] = ()
    message: str = ""


class MoveSelector:
    """
    Plays one game at a time against a human (or simulated) oracle.

    Each turn: analyze the board, flag certain mines, then probe the best cell by
    priority certain-safe > flood queue > memory-suggested second move > lowest
    combined risk over all unresolved cells, with ties broken by an
    adjacency-biased random choice. The oracle's answer is validated
    before it is committed; the configured policy decides what happens to
    contradicting answers.

    Args:
        size: Board size of the first session.
        config: Engine settings.
        memory: Memory store shared across games. Defaults to a volatile store.
        rng: Random source for tie-breaking and random guesses.
    """

    def __init__(
        self,
        size: Optional[BoardSize] = None,
        config: Optional[EngineConfig] = None,
        memory: Optional[MemoryStore] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.rng = rng or random.Random()
        self.memory = memory if memory is not None else MemoryStore(config=self.config, rng=self.rng)
        self.inference = InferenceEngine(pair_radius=self.config.pair_radius)
        self.validator = ConsistencyValidator(
            max_component_size=self.config.max_exact_component_size
        )

        self.session = GameSession(size or BOARD_SIZE_PRESETS[0])
        self.state = GameState.NOT_STARTED

        self.last_contradiction: Optional[Contradiction] = None
        self.last_advisories: List[Contradiction] = []
        self.last_report: Optional[InferenceReport] = None

        # Last rejected answer: (coord, content, contradiction)
        self._rejected: Optional[Tuple[Coord, object, Contradiction]] = None

    # -------------------------------------------------------------------------
    # Exposed state
    # -------------------------------------------------------------------------

    @property
    def size(self) -> BoardSize:
        return self.session.size

    @property
    def pending(self) -> Optional[Coord]:
        return self.session.pending

    @property
    def is_over(self) -> bool:
        return self.state in (GameState.WON, GameState.LOST)

    def snapshot(self) -> GameSnapshot:
        return self.session.snapshot()

    def memory_statistics(self) -> Dict[str, Any]:
        return self.memory.statistics()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> Optional[Coord]:
        """Pick the opening probe. Returns the probed cell, or None if already started."""
        if self.state != GameState.NOT_STARTED:
            logger.warning("start() ignored in state %s.", self.state.value)
            return None

        self.state = GameState.THINKING
        coord = self._choose_opening()
        self._issue_probe(coord)
        return coord

    def reset(self, size: Optional[BoardSize] = None) -> None:
        """Replace the session. An unfinished started game is recorded as a loss first."""
        if self.session.started and not self.session.ended:
            logger.info("Abandoning an unfinished game; recording it as a loss.")
            self.memory.record_loss(self.session.ledger, self.session.size)

        self.session = GameSession(size or self.session.size)
        self.state = GameState.NOT_STARTED
        self.last_contradiction = None
        self.last_advisories = []
        self.last_report = None
        self._rejected = None

    def change_board_size(self, size: BoardSize) -> None:
        self.reset(size)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def probe(self, coord: Coord) -> bool:
        """
        External probe request. Honoured only before the game starts or while
        the engine is thinking; otherwise a logged no-op.
        """
        if self.state not in (GameState.NOT_STARTED, GameState.THINKING):
            logger.warning(
                "Probe %s ignored in state %s.", format_coord(coord), self.state.value
            )
            return False
        if not self.session.probe(coord):
            return False

        self.state = GameState.AWAITING_ANSWER
        return True

    def answer(self, content: object) -> AnswerOutcome:
        """Validate the oracle's answer for the pending cell and apply the policy."""
        if self.state != GameState.AWAITING_ANSWER or not self.session.awaiting_answer:
            logger.warning("Answer %r ignored: no probe is awaiting an answer.", content)
            return AnswerOutcome(False, self.state, message="No probe is awaiting an answer.")

        coord = self.session.pending
        result = self.validator.validate(coord, content, self.session)
        advisories = self.validator.scan_for_future_risk(coord, content, self.session)
        self.last_advisories = advisories

        if result.consistent:
            self.last_contradiction = None
            self._rejected = None
            return self._commit(coord, content, inconsistent=False, advisories=advisories)

        contradiction = result.contradiction
        assert contradiction is not None
        self.last_contradiction = contradiction

        policy = self.config.policy
        if policy == ValidationPolicy.WARN and not contradiction.is_critical:
            logger.warning("Committing contradicting answer at %s.", format_coord(coord))
            return self._commit(coord, content, inconsistent=True, advisories=advisories)
        if policy == ValidationPolicy.IGNORE and contradiction.kind != MALFORMED_VALUE:
            return self._commit(coord, content, inconsistent=True, advisories=advisories)

        self._rejected = (coord, content, contradiction)
        return AnswerOutcome(
            False,
            self.state,
            contradiction=contradiction,
            advisories=tuple(advisories),
            message=contradiction.explanation,
        )

    def force_answer(self) -> AnswerOutcome:
        """Commit the last rejected answer anyway, unless its contradiction is critical."""
        if self._rejected is None or self.state != GameState.AWAITING_ANSWER:
            logger.warning("force_answer() ignored: no rejected answer to apply.")
            return AnswerOutcome(False, self.state, message="No rejected answer to apply.")

        coord, content, contradiction = self._rejected
        if contradiction.is_critical:
            logger.warning(
                "Cannot force a %s answer at %s.", contradiction.kind, format_coord(coord)
            )
            return AnswerOutcome(
                False,
                self.state,
                contradiction=contradiction,
                message=f"A {contradiction.kind} contradiction cannot be overridden.",
            )

        self._rejected = None
        return self._commit(coord, content, inconsistent=True, advisories=self.last_advisories)

    def tick(self) -> Optional[Coord]:
        """Periodic re-analysis: thinks only while in THINKING, otherwise a no-op."""
        if self.state != GameState.THINKING:
            return None
        return self._think()

    # Thin entry points for UI collaborators.

    def on_cell_probed(self, coord: Coord) -> bool:
        return self.probe(coord)

    def on_oracle_answer(self, content: object) -> AnswerOutcome:
        return self.answer(content)

    def on_reset(self) -> None:
        self.reset()

    def on_board_size_changed(self, size: BoardSize) -> None:
        self.change_board_size(size)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _issue_probe(self, coord: Coord) -> None:
        if self.session.probe(coord):
            self.state = GameState.AWAITING_ANSWER
            logger.debug("Probing %s.", format_coord(coord))

    def _commit(
        self,
        coord: Coord,
        content: object,
        inconsistent: bool,
        advisories: List[Contradiction],
    ) -> AnswerOutcome:
        symbol = normalize_content(content)
        assert symbol is not None
        event = self.session.commit(coord, symbol, inconsistent=inconsistent)

        if symbol == MINE:
            self.session.ended = True
            self.state = GameState.LOST
            logger.info("Mine reported at %s; game lost.", format_coord(coord))
            self.memory.record_mine_found(coord, self.session.size)
            self.memory.record_loss(self.session.ledger, self.session.size)
        elif self.session.is_complete():
            self._declare_win()
        else:
            self.state = GameState.THINKING
            if self.config.auto_advance:
                self._think()

        return AnswerOutcome(
            True, self.state, event=event, advisories=tuple(advisories)
        )

    def _declare_win(self) -> None:
        self.session.ended = True
        self.state = GameState.WON
        logger.info("All cells resolved on %s; game won.", self.session.size.label)
        self.memory.record_win(self.session.ledger, self.session.size)

    def _choose_opening(self) -> Coord:
        scored = [
            (self.memory.score_risk(cell, self.session.size, self.session.ledger).risk, cell)
            for cell in self.session.unresolved_cells()
        ]
        best = min(risk for risk, _ in scored)
        return self.rng.choice([cell for risk, cell in scored if risk == best])

    def _think(self) -> Optional[Coord]:
        """One decision step: flag certain mines, then probe the next cell."""
        session = self.session
        report = self.inference.analyze(session)
        self.last_report = report

        for cell in report.certain_mines:
            if session.place_flag(cell):
                logger.debug("Flagged %s.", format_coord(cell))

        for cell in report.flood:
            if cell not in session.flood_queue:
                session.flood_queue.append(cell)

        if session.is_complete():
            self._declare_win()
            return None

        coord = self._next_probe(report)
        self._issue_probe(coord)
        return coord

    def _next_probe(self, report: InferenceReport) -> Coord:
        session = self.session

        for cell in report.certain_safe:
            if session.is_unresolved(cell):
                return cell

        while session.flood_queue:
            cell = session.flood_queue.popleft()
            if session.is_unresolved(cell):
                return cell

        probes = session.probe_events()
        if len(probes) == 1:
            suggestion = self.memory.suggest_second_move(probes[0].coord, session.size)
            if suggestion is not None and session.is_unresolved(suggestion.coord):
                logger.debug("Using remembered second move %s.", format_coord(suggestion.coord))
                return suggestion.coord

        # Every unresolved cell is scored; cells no clue touches get a baseline
        scored: List[Tuple[float, Coord]] = []
        for cell in session.unresolved_cells():
            local = report.risk.get(cell, self.config.unconstrained_risk)
            memory_risk = self.memory.score_risk(cell, session.size, session.ledger).risk
            scored.append((local + self.config.memory_weight * memory_risk, cell))

        best = min(risk for risk, _ in scored)
        tied = [cell for risk, cell in scored if risk - best <= 1e-9]
        if len(tied) == 1:
            return tied[0]

        weights = [
            1 + sum(1 for n in session.neighbors(cell) if n in session.discovered)
            for cell in tied
        ]
        return self.rng.choices(tied, weights=weights, k=1)[0]
