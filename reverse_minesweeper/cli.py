"""Terminal UI where the user answers the engine's probes."""

import argparse
import logging
import os
import random
from typing import List, Optional

from .analysis import format_board
from .config import PRESETS_BY_LABEL, EngineConfig, ValidationPolicy
from .memory import FileStorage, MemoryStore
from .selector import GameState, MoveSelector
from .utils import format_coord


_ANSWER_HELP = "Answer with e (empty), 0-8, or m (mine). Type 'f' to force, 'r' to reset, 'q' to quit."


def play_cli(selector: MoveSelector) -> None:
    """
    Run a terminal loop where the user is the oracle.

    Args:
        selector: MoveSelector to play with.
    """
    print(f"Reverse Minesweeper on a {selector.size.label} board.")
    print(_ANSWER_HELP + "\n")
    selector.start()

    while True:
        print(format_board(selector.snapshot()))

        if selector.state == GameState.WON:
            print("\nEvery cell is resolved. The engine won!")
            return
        if selector.state == GameState.LOST:
            print("\nThe engine probed a mine. It lost.")
            return

        pending = selector.pending
        if pending is None:
            selector.tick()
            continue

        s = input(f"\nWhat is at {format_coord(pending)}? ").strip()
        if s.lower() in {"q", "quit", "exit"}:
            print("Quit.")
            return
        if s.lower() == "r":
            selector.reset()
            selector.start()
            continue

        outcome = selector.force_answer() if s.lower() == "f" else selector.answer(s)
        if not outcome.accepted:
            print(f"\nRejected: {outcome.message}")
            if outcome.contradiction is not None and not outcome.contradiction.is_critical:
                print("Type 'f' to keep this answer anyway.")
        for advisory in outcome.advisories:
            print(f"Note: {advisory.explanation}")
        print()


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Play reverse Minesweeper as the oracle.")
    parser.add_argument("--size", default="8x8", choices=sorted(PRESETS_BY_LABEL))
    parser.add_argument(
        "--policy", default=ValidationPolicy.BLOCK.value, choices=[p.value for p in ValidationPolicy]
    )
    parser.add_argument(
        "--memory-dir",
        default=os.path.join(os.path.expanduser("~"), ".reverse_minesweeper"),
        help="Directory where game memory is kept.",
    )
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    rng = random.Random(args.seed)
    config = EngineConfig(policy=ValidationPolicy(args.policy))
    memory = MemoryStore(FileStorage(args.memory_dir), config=config, rng=rng)
    selector = MoveSelector(PRESETS_BY_LABEL[args.size], config=config, memory=memory, rng=rng)
    play_cli(selector)


if __name__ == "__main__":
    main()
