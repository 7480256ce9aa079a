from __future__ import annotations

from dataclasses import replace

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st

from timeout_lab.analysis import accuracy_table, compare_sessions, tolerance_misses
from timeout_lab.config import TOLERANCE_MS, LabConfig, ScenarioType, default_scenarios
from timeout_lab.scenarios.runner import run_session
from timeout_lab.storage import default_storage


st.set_page_config(page_title="Timeout Lab", layout="wide")

storage = default_storage()


@st.cache_data
def _load_sessions() -> pd.DataFrame:
    return storage.list_sessions()


def _render_header() -> None:
    st.title("Timeout Lab")
    st.caption("Connect, read, write and worker-pool timeouts against fault-injecting TCP servers.")


def _build_config() -> LabConfig:
    with st.sidebar:
        st.header("Session Configuration")
        selected = st.multiselect(
            "Scenarios",
            [t.value for t in ScenarioType],
            default=[t.value for t in ScenarioType if t is not ScenarioType.THREAD_EXHAUSTION],
        )
        iterations = st.slider("Measured iterations", 1, 50, 10)
        warmup = st.slider("Warmup iterations", 0, 10, 2)
        pause = st.number_input("Pause between scenarios (sec)", min_value=0.0, value=2.0)
        notes = st.text_input("Notes", "")

    scenarios = []
    for scenario in default_scenarios():
        if scenario.scenario_type.value not in selected:
            continue
        if scenario.scenario_type is ScenarioType.THREAD_EXHAUSTION:
            scenarios.append(scenario)
        else:
            scenarios.append(replace(scenario, iterations=iterations, warmup_iterations=warmup))
    return LabConfig(scenarios=tuple(scenarios), pause_between_sec=pause, notes=notes)


def _run_button(config: LabConfig) -> None:
    if st.sidebar.button("Start session"):
        progress = st.sidebar.progress(0, text="Running...")

        def on_progress(name: str, done: int, total: int) -> None:
            progress.progress(min(1.0, done / max(1, total)), text=f"{name}: {done}/{total}")

        result = run_session(config, storage, progress=on_progress)
        if result.all_passed:
            st.sidebar.success(f"Session completed: {result.session_id}")
        else:
            st.sidebar.warning(f"Session {result.session_id}: failures in {', '.join(result.failed_scenarios())}")
        st.cache_data.clear()


def _plot_trials(trials: pd.DataFrame) -> go.Figure:
    if trials.empty:
        return go.Figure()
    frame = trials.assign(result=trials["passed"].map({True: "passed", False: "failed"}))
    fig = px.scatter(
        frame,
        x="iteration",
        y="elapsed_ms",
        color="result",
        symbol="label",
        facet_col="scenario",
        hover_data=["configured_timeout_ms", "condition", "criterion"],
        title="Elapsed time per trial",
    )
    fig.update_layout(height=340, margin=dict(l=10, r=10, t=50, b=10))
    return fig


def _plot_accuracy(table: pd.DataFrame) -> go.Figure:
    fig = go.Figure()
    for scenario, rows in table.groupby("scenario"):
        fig.add_trace(
            go.Bar(
                x=rows["configured_timeout_ms"].astype(int).astype(str) + "ms",
                y=rows["mean_error_ms"],
                name=str(scenario),
            )
        )
    fig.add_hline(y=TOLERANCE_MS, line_dash="dash", annotation_text="tolerance")
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10), yaxis_title="mean |error| ms")
    return fig


def _plot_outcomes(summaries: pd.DataFrame) -> go.Figure:
    fig = go.Figure()
    for col, label in [("successes", "success"), ("timeouts", "timeout"), ("other_failures", "other")]:
        fig.add_trace(go.Bar(x=summaries["name"], y=summaries[col], name=label))
    fig.update_layout(barmode="stack", height=300, margin=dict(l=10, r=10, t=30, b=10))
    return fig


def _render_session_view(session_id: str) -> None:
    summaries = storage.load_summaries(session_id)
    trials = storage.load_trials(session_id)
    meta = storage.load_session_meta(session_id) or {}
    st.subheader(f"Session {session_id}")
    st.caption(meta.get("notes", ""))

    st.dataframe(
        summaries[["name", "status", "passed", "total", "mean_ms", "p50_ms", "p95_ms", "p99_ms", "wall_time_sec"]],
        use_container_width=True,
    )
    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(_plot_outcomes(summaries), use_container_width=True)
    with col2:
        table = accuracy_table(trials)
        if table.empty:
            st.info("No timed-out trials to grade")
        else:
            st.plotly_chart(_plot_accuracy(table), use_container_width=True)
    st.plotly_chart(_plot_trials(trials), use_container_width=True)
    if not table.empty:
        st.dataframe(table, use_container_width=True)
    for miss in tolerance_misses(trials):
        st.warning(
            f"{miss.scenario} #{miss.iteration}: {miss.elapsed_ms:.0f}ms against "
            f"{miss.configured_timeout_ms:.0f}ms configured ({miss.error_ms:.0f}ms off)"
        )


def _render_comparison() -> None:
    sessions = _load_sessions()
    if len(sessions) < 2:
        return
    session_ids = sessions["session_id"].tolist()
    st.subheader("Session Comparison")
    base = st.selectbox("Baseline session", session_ids, index=1)
    candidate = st.selectbox("Candidate session", session_ids, index=0)
    if base == candidate:
        st.info("Select two different sessions for comparison")
        return
    base_df = storage.load_summaries(base)
    cand_df = storage.load_summaries(candidate)
    merged = base_df.merge(cand_df, on="name", suffixes=("_base", "_cand"))

    fig = go.Figure()
    fig.add_trace(go.Bar(x=merged["name"], y=merged["p99_ms_base"], name=f"{base[:8]} p99"))
    fig.add_trace(go.Bar(x=merged["name"], y=merged["p99_ms_cand"], name=f"{candidate[:8]} p99"))
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10))
    st.plotly_chart(fig, use_container_width=True)

    regressions = compare_sessions(base_df, cand_df)
    if not regressions:
        st.success("No regressions detected")
    else:
        for reg in regressions:
            st.error(f"{reg.scenario}: {reg.message} ({reg.delta_pct:.1f}% on {reg.metric})")


def main() -> None:
    _render_header()
    config = _build_config()
    _run_button(config)

    sessions = _load_sessions()
    if sessions.empty:
        st.info("No sessions yet. Start one from the sidebar.")
        return
    selected = st.selectbox("Select session", sessions["session_id"].tolist())
    _render_session_view(selected)
    _render_comparison()


if __name__ == "__main__":
    main()
