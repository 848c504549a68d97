"""
Reverse Minesweeper - Interactive Demo

You hold the board; the engine asks what is under each cell.

Run with: streamlit run app/demo.py
"""

import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import streamlit as st
from typing import Optional

from reverse_minesweeper import (
    BOARD_SIZE_PRESETS,
    EngineConfig,
    FileStorage,
    GameState,
    MemoryStore,
    MoveSelector,
    ValidationPolicy,
    plot_heat_map,
)
from reverse_minesweeper.board import EMPTY, MINE, GameSnapshot
from reverse_minesweeper.config import PRESETS_BY_LABEL
from reverse_minesweeper.utils import format_coord

MEMORY_DIR = os.path.join(os.path.expanduser("~"), ".reverse_minesweeper")

POLICY_LABELS = {
    "Block (ask again)": ValidationPolicy.BLOCK,
    "Warn (commit if not critical)": ValidationPolicy.WARN,
    "Ignore (commit anyway)": ValidationPolicy.IGNORE,
}


def render_board_html(snapshot: GameSnapshot, lost_at: Optional[tuple] = None) -> str:
    """Render the engine's view of the board as HTML with styling."""
    columns = snapshot.size.columns
    if columns >= 16:
        cell_size = 22
        font_size = "13px"
    else:
        cell_size = 28
        font_size = "15px"

    colors = {
        "1": "#0000ff",
        "2": "#008000",
        "3": "#ff0000",
        "4": "#000080",
        "5": "#800000",
        "6": "#008080",
        "7": "#000000",
        "8": "#808080",
    }

    html = '<div style="font-family: monospace; line-height: 1.2;">'
    html += '<table style="border-collapse: collapse; margin: auto;">'

    for r in range(snapshot.size.rows):
        html += "<tr>"
        for c in range(columns):
            value = snapshot.board[r][c]
            border = "1px solid #999"

            if (r, c) in snapshot.flags:
                cell, bg, text_color = "F", "#ffa500", "#ffffff"
            elif value == MINE:
                cell, bg, text_color = "M", "#ff0000", "#ffffff"
            elif value == EMPTY or value == "0":
                cell, bg, text_color = " ", "#f0f0f0", "#000000"
            elif value is not None:
                cell, bg, text_color = value, "#ffffff", colors.get(value, "#000000")
            else:
                cell, bg, text_color = ".", "#c0c0c0", "#666666"

            if (r, c) == snapshot.pending:
                cell, bg, text_color = "?", "#fff3b0", "#000000"
                border = "3px solid #ff0000"

            html += f'''<td style="
                width: {cell_size}px; height: {cell_size}px;
                text-align: center;
                background: {bg};
                border: {border};
                color: {text_color};
                font-weight: bold;
                font-size: {font_size};
            ">{cell}</td>'''
        html += "</tr>"

    html += "</table></div>"
    return html


def new_selector(size_label: str, policy: ValidationPolicy) -> MoveSelector:
    config = EngineConfig(policy=policy)
    memory = MemoryStore(FileStorage(MEMORY_DIR), config=config)
    return MoveSelector(PRESETS_BY_LABEL[size_label], config=config, memory=memory)


def main():
    st.set_page_config(page_title="Reverse Minesweeper", layout="wide")

    st.title("Reverse Minesweeper")
    st.markdown("""
    Think of a Minesweeper board. The engine picks a cell, you say what is
    under it. It deduces safe cells and mines, and checks that your answers
    are consistent with the rules.
    """)

    # Sidebar configuration
    st.sidebar.header("Game Configuration")
    size_label = st.sidebar.selectbox(
        "Board size", [size.label for size in BOARD_SIZE_PRESETS], index=0
    )
    policy_label = st.sidebar.selectbox("Inconsistent answers", list(POLICY_LABELS))
    policy = POLICY_LABELS[policy_label]

    current_settings = (size_label, policy)
    if st.session_state.get("prev_settings") != current_settings:
        previous: Optional[MoveSelector] = st.session_state.get("selector")
        if previous is not None and previous.config.policy == policy:
            # Only the size changed: record an abandoned game before resetting.
            previous.change_board_size(PRESETS_BY_LABEL[size_label])
        else:
            st.session_state.selector = new_selector(size_label, policy)
        st.session_state.message = None
        st.session_state.prev_settings = current_settings

    selector: MoveSelector = st.session_state.selector

    col1, col2 = st.columns([2, 1])

    with col1:
        st.subheader("Board")

        btn_col1, btn_col2 = st.columns(2)
        with btn_col1:
            if st.button("Start", type="primary", disabled=selector.state != GameState.NOT_STARTED):
                selector.start()
                st.rerun()
        with btn_col2:
            if st.button("Reset"):
                selector.reset()
                st.session_state.message = None
                st.rerun()

        st.markdown(render_board_html(selector.snapshot()), unsafe_allow_html=True)

        if selector.state == GameState.WON:
            st.success("Every cell is resolved. The engine won!")
        elif selector.state == GameState.LOST:
            st.error("The engine probed a mine. It lost.")
        elif selector.state == GameState.THINKING:
            # Tick in place of the periodic analysis timer.
            selector.tick()
            st.rerun()

        if selector.pending is not None:
            st.markdown(f"**What is at {format_coord(selector.pending)}?**")
            answers = ["empty"] + [str(d) for d in range(1, 9)] + ["mine"]
            answer_cols = st.columns(len(answers))
            for col, answer in zip(answer_cols, answers):
                with col:
                    if st.button(answer, key=f"answer-{answer}"):
                        outcome = selector.answer(answer)
                        st.session_state.message = None if outcome.accepted else outcome.message
                        st.rerun()

        if st.session_state.get("message"):
            st.warning(st.session_state.message)
            contradiction = selector.last_contradiction
            if contradiction is not None and not contradiction.is_critical:
                if st.button("Continue anyway"):
                    outcome = selector.force_answer()
                    st.session_state.message = None if outcome.accepted else outcome.message
                    st.rerun()

        for advisory in selector.last_advisories:
            st.info(advisory.explanation)

    with col2:
        st.subheader("Memory")
        stats = selector.memory_statistics()

        mcol1, mcol2 = st.columns(2)
        with mcol1:
            st.metric("Games", stats["games_played"])
            st.metric("Wins", stats["wins"])
        with mcol2:
            st.metric("Win rate", f"{stats['win_rate'] * 100:.0f}%")
            st.metric("Losses", stats["losses"])

        report = selector.last_report
        if report is not None:
            st.markdown("---")
            st.markdown(
                f"Certain safe: **{len(report.certain_safe)}** · "
                f"certain mines: **{len(report.certain_mines)}** · "
                f"risk-scored: **{len(report.risk)}**"
            )

        if stats["total_mines"]:
            st.markdown("---")
            st.pyplot(plot_heat_map(selector.memory, show=False))


if __name__ == "__main__":
    main()
