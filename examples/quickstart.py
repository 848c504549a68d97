"""
Quickstart example for the reverse Minesweeper engine.

This script plays the engine against a simulated oracle, then shows what the
validator does with an impossible answer.
"""

import random

from reverse_minesweeper import (
    BoardSize,
    EngineConfig,
    MemoryStore,
    MoveSelector,
    SimulatedOracle,
    format_board,
    run_many_simulated_games,
    summarize,
)


def main():
    print("=" * 60)
    print("Reverse Minesweeper - Quickstart Example")
    print("=" * 60)

    rng = random.Random(7)
    config = EngineConfig()
    memory = MemoryStore(config=config, rng=rng)

    # Example 1: Play a single game against a simulated oracle
    print("\n1. Playing one 8x8 game with 9 mines...")
    print("-" * 60)

    size = BoardSize(8, 8)
    oracle = SimulatedOracle(size, mines_count=9, rng=rng)
    selector = MoveSelector(size, config=config, memory=memory, rng=rng)

    selector.start()
    while not selector.is_over:
        if selector.pending is None:
            selector.tick()
            continue
        selector.answer(oracle.answer_for(selector.pending))

    print(f"Result: {selector.state.value.upper()}")
    print(format_board(selector.snapshot()))
    print("\nHidden layout:")
    print(oracle.format_layout())

    # Example 2: An impossible answer is rejected
    print("\n2. Answering 4 for a corner cell...")
    print("-" * 60)

    selector.reset()
    selector.probe((0, 0))
    outcome = selector.answer("4")
    print(f"Accepted: {outcome.accepted}")
    print(f"Reason: {outcome.message}")
    selector.answer("empty")

    # Example 3: Train memory over many games
    print("\n3. Running 30 games on 10x10 with 15 mines...")
    print("-" * 60)

    results = run_many_simulated_games(
        BoardSize(10, 10), mines_count=15, runs=30, seed=11, memory=memory
    )
    print(f"Win rate: {results['win_rate']*100:.1f}%")
    print(f"Average probes per game: {results['avg_probes']:.1f}")
    print(f"Average guesses per game: {results['avg_guesses']:.1f}")

    # Example 4: What the memory learned
    print("\n4. Memory summary")
    print("-" * 60)
    for key, value in summarize(memory).items():
        print(f"{key:20s} {value}")

    print("\n" + "=" * 60)
    print("Done! Run `streamlit run app/demo.py` to be the oracle yourself.")
    print("=" * 60)


if __name__ == "__main__":
    main()
