"""Streamlit rendering for the budget planner.

State lives in ``st.session_state`` under a handful of keys (see
``init_session_state``). The ``apply_*`` helpers change that state and return
notices; the ``render_*`` functions draw widgets and surface the notices.
Domain errors are caught here and shown inline; they never reach Streamlit.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
import streamlit as st

from . import ledger
from .auth import AuthGate, AuthSession
from .config import MAX_ITERATIONS
from .csv_io import (
    ITERATIONS_FILENAME,
    PARAMETERS_FILENAME,
    ImportResult,
    export_iterations_csv,
    export_parameters_csv,
    import_csv,
)
from .errors import AuthenticationError, Notice, OperationResult, PlannerError, ValidationError
from .formatting import escape_currency_for_markdown, format_currency, format_percent
from .models import SERIES_NAMES, BudgetParameters, IterationRecord, PlannerState
from .persistence import SnapshotManager, build_remote_backend
from .projection import consumption_summary, consumption_table, project
from .report import build_pdf_report, report_filename
from .settings import get_label, get_message
from .visualization import create_cumulative_chart, create_iteration_cost_chart, series_label

logger = logging.getLogger(__name__)

EDITOR_COLUMNS = ['Iteration #', 'Days', 'Team Size', 'Total Hours', 'Current']

_NOTICE_ICONS = {'info': 'ℹ️', 'success': '✅', 'warning': '⚠️', 'error': '❌'}


# ============================================================================
# Session state
# ============================================================================

def _state() -> Any:
    return st.session_state


def init_session_state(gate: Optional[AuthGate] = None, manager: Optional[SnapshotManager] = None) -> None:
    """Populate default parameters, an initial ledger and the auth session."""
    state = _state()
    if 'parameters' not in state:
        state['parameters'] = BudgetParameters()
    if 'iterations' not in state:
        state['iterations'] = ledger.generate_iterations(state['parameters'])
    if 'visible_series' not in state:
        state['visible_series'] = list(SERIES_NAMES)
    if 'pending_notices' not in state:
        state['pending_notices'] = []
    if 'auth_gate' not in state:
        state['auth_gate'] = gate or AuthGate()
    if 'auth' not in state:
        state['auth'] = state['auth_gate'].restore()
    if 'snapshot_manager' not in state:
        state['snapshot_manager'] = manager or SnapshotManager(remote=build_remote_backend())


def current_planner_state() -> PlannerState:
    state = _state()
    params = state['parameters']
    iterations = state['iterations']
    return PlannerState(
        parameters=params,
        iterations=[it.copy() for it in iterations],
        chart_data=project(params, iterations),
        visible_series=list(state['visible_series']),
    )


def _queue(notices: Sequence[Notice]) -> None:
    """Keep notices across a rerun so they are shown on the next pass."""
    _state()['pending_notices'].extend(notices)


def _rerun() -> None:
    if hasattr(st, 'rerun'):
        st.rerun()
    elif hasattr(st, 'experimental_rerun'):
        st.experimental_rerun()


# ============================================================================
# State transitions
# ============================================================================

def apply_parameters(parameters: BudgetParameters) -> List[Notice]:
    """Validate new parameters and resize the ledger to match.

    Raises:
        ValidationError: If any parameter is invalid; state is left unchanged
    """
    parameters.validate()
    state = _state()
    result = ledger.reconcile(parameters, state['iterations'])
    state['parameters'] = parameters
    state['iterations'] = result.iterations
    notices = list(result.notices)
    if result.action == 'extended':
        notices.append(Notice('info', f"Added iterations; ledger now holds {len(result.iterations)}"))
    logger.info("Parameters updated (%s ledger)", result.action)
    return notices


def apply_loaded_state(planner_state: PlannerState) -> None:
    state = _state()
    state['parameters'] = planner_state.parameters
    state['iterations'] = ledger.ensure_filled(planner_state.parameters, planner_state.iterations)
    state['visible_series'] = list(planner_state.visible_series)


def apply_import(result: ImportResult) -> List[Notice]:
    """Replace parameters or the iteration ledger with imported CSV content."""
    notices = list(result.notices)
    if result.kind == 'parameters' and result.parameters is not None:
        notices.extend(apply_parameters(result.parameters))
    elif result.kind == 'iterations':
        _state()['iterations'] = ledger.sort_iterations(result.iterations)
    return notices


def editor_frame(iterations: Sequence[IterationRecord]) -> pd.DataFrame:
    """Editable table view of the ledger."""
    rows = [{
        'Iteration #': it.iteration_number,
        'Days': it.iteration_days,
        'Team Size': it.team_size,
        'Total Hours': it.effective_hours,
        'Current': it.is_current,
    } for it in ledger.sort_iterations(iterations)]
    return pd.DataFrame(rows, columns=EDITOR_COLUMNS)


def apply_editor_changes(iterations: Sequence[IterationRecord], edited: pd.DataFrame) -> List[IterationRecord]:
    """Fold inline edits from the data editor back into the ledger.

    Changing days or team size on a row whose hours were not overridden keeps
    hours derived. A changed Total Hours becomes an override; clearing it
    returns the row to derived hours.

    Raises:
        ValidationError: If an edited value is not positive
    """
    updated = ledger.sort_iterations(it.copy() for it in iterations)
    by_number = {it.iteration_number: it for it in updated}
    new_current: Optional[int] = None

    for row in edited.to_dict('records'):
        number = int(row['Iteration #'])
        original = by_number.get(number)
        if original is None:
            continue
        changes: Dict[str, Any] = {}
        if pd.isna(row['Days']) or pd.isna(row['Team Size']):
            raise ValidationError(f"Iteration {number} needs days and team size")
        days = float(row['Days'])
        team = row['Team Size']
        if days != original.iteration_days:
            changes['iteration_days'] = days
        if int(team) != float(team):
            raise ValidationError("Team size must be a whole number")
        if int(team) != original.team_size:
            changes['team_size'] = int(team)

        hours = row.get('Total Hours')
        if hours is None or pd.isna(hours):
            if original.total_hours is not None:
                changes['total_hours'] = None
        elif float(hours) != original.effective_hours:
            changes['total_hours'] = float(hours)

        if changes:
            updated = ledger.update_iteration(updated, number, **changes)
            by_number = {it.iteration_number: it for it in updated}
        if bool(row.get('Current')) and not original.is_current:
            new_current = number

    if new_current is not None:
        updated = ledger.set_current(updated, new_current)
    return updated


def login(username: str, password: str) -> OperationResult[AuthSession]:
    state = _state()
    try:
        session = state['auth_gate'].login(username, password)
    except AuthenticationError as e:
        logger.error("Sign-in failed: %s", e)
        return OperationResult.failure(str(e))
    if session is None:
        return OperationResult.failure(get_message('login_failed', "Invalid username or password"))
    state['auth'] = session
    return OperationResult.success(session, "Signed in")


def logout() -> None:
    state = _state()
    state['auth'] = state['auth_gate'].logout()


# ============================================================================
# Notifications
# ============================================================================

def show_notices(notices: Sequence[Notice], toast: bool = False) -> None:
    for notice in notices:
        if toast and hasattr(st, 'toast'):
            st.toast(notice.message, icon=_NOTICE_ICONS.get(notice.level))
        elif notice.level == 'success':
            st.success(notice.message)
        elif notice.level == 'warning':
            st.warning(notice.message)
        elif notice.level == 'error':
            st.error(notice.message)
        else:
            st.info(notice.message)


def show_result(result: OperationResult) -> None:
    if result.ok:
        if result.message:
            st.success(result.message)
    else:
        st.error(result.message)
    show_notices(result.notices)


def flush_pending_notices() -> None:
    state = _state()
    pending = list(state.get('pending_notices', []))
    state['pending_notices'] = []
    show_notices(pending, toast=True)


# ============================================================================
# Sidebar: authentication and saved states
# ============================================================================

def render_auth_sidebar() -> AuthSession:
    state = _state()
    session: AuthSession = state['auth']
    st.sidebar.subheader("👤 Account")
    if session.is_authenticated:
        st.sidebar.caption(f"Signed in as **{session.user_id}**")
        if st.sidebar.button("Log out", key="logout_button"):
            logout()
            _rerun()
        return session

    with st.sidebar.form("login_form", clear_on_submit=False):
        username = st.text_input("Username", key="login_username")
        password = st.text_input("Password", type="password", key="login_password")
        submitted = st.form_submit_button("Log in")
    if submitted:
        with st.spinner("Signing in..."):
            result = login(username, password)
        if result.ok:
            _rerun()
        else:
            st.sidebar.error(result.message)
    st.sidebar.caption(get_message('login_required', "Log in to sync saved states across devices."))
    return session


def render_saved_states_sidebar(session: AuthSession) -> None:
    """Save the current plan and load, delete or clean up earlier saves."""
    state = _state()
    manager: SnapshotManager = state['snapshot_manager']
    st.sidebar.subheader("💾 Saved States")
    if not session.is_authenticated:
        st.sidebar.caption(get_message('local_only', "Saved on this device only. Log in to sync remotely."))

    name = st.sidebar.text_input(get_label('save_name_input', "Save name"), key="save_name")
    if st.sidebar.button(get_label('save_button', "💾 Save State"), key="save_state_button"):
        with st.spinner("Saving..."):
            result = manager.save(name, current_planner_state(), session)
        if result.ok:
            _queue([Notice('success', result.message)] + result.notices)
            _rerun()
        else:
            show_result(result)

    with st.spinner("Loading saved states..."):
        listing = manager.list(session)
    show_notices(listing.notices)
    snapshots = listing.value or []
    if not snapshots:
        st.sidebar.caption("No saved states yet.")
    else:
        options = {s.id: s for s in snapshots}
        selected = st.sidebar.selectbox(
            "Saved states",
            list(options.keys()),
            format_func=lambda sid: f"{options[sid].name} · {options[sid].timestamp[:16]} ({options[sid].source})",
            key="selected_snapshot",
        )
        load_col, delete_col = st.sidebar.columns(2)
        if load_col.button(get_label('load_button', "📂 Load"), key="load_state_button"):
            with st.spinner("Loading..."):
                result = manager.load(selected, session)
            if result.ok:
                apply_loaded_state(result.value)
                _queue([Notice('success', result.message)] + result.notices)
                _rerun()
            else:
                show_result(result)
        if delete_col.button(get_label('delete_button', "🗑️ Delete"), key="delete_state_button"):
            with st.spinner("Deleting..."):
                result = manager.delete(selected, session)
            if result.ok:
                _queue([Notice('success', result.message)] + result.notices)
                _rerun()
            else:
                show_result(result)

    if manager.remote is not None and session.is_authenticated:
        if st.sidebar.button(get_label('cleanup_button', "🧹 Clean up old saves"), key="cleanup_button"):
            with st.spinner("Cleaning up..."):
                result = manager.cleanup(session)
            show_result(result)


# ============================================================================
# Tabs
# ============================================================================

def render_parameters_tab() -> None:
    state = _state()
    params: BudgetParameters = state['parameters']
    st.subheader(get_label('parameters_tab', "Budget Parameters"))
    with st.form("parameters_form"):
        col1, col2 = st.columns(2)
        cost_per_hour = col1.number_input("Cost per hour", min_value=0.01, value=float(params.cost_per_hour), step=1.0)
        budget_size = col2.number_input("Budget size", min_value=1.0, value=float(params.budget_size), step=1000.0)
        team_size = col1.number_input("Team size", min_value=1, value=int(params.team_size), step=1)
        working_days = col2.number_input(
            "Working days per iteration", min_value=0.5, value=float(params.working_days_per_iteration), step=1.0,
        )
        currency = col1.text_input("Currency symbol", value=params.currency, max_chars=5)
        submitted = st.form_submit_button("Update parameters")

    if submitted:
        candidate = BudgetParameters(
            cost_per_hour=float(cost_per_hour),
            budget_size=float(budget_size),
            team_size=int(team_size),
            working_days_per_iteration=float(working_days),
            currency=currency.strip(),
        )
        try:
            notices = apply_parameters(candidate)
        except ValidationError as e:
            st.error(str(e))
        else:
            _queue([Notice('success', "Budget parameters updated")] + notices)
            _rerun()

    params = state['parameters']
    cur = params.currency
    cols = st.columns(3)
    cols[0].metric("Standard hours / iteration", f"{params.standard_hours:,.0f}")
    cols[1].metric("Standard cost / iteration", format_currency(params.standard_iteration_cost, cur))
    cols[2].metric("Iterations to spend budget", ledger.required_iterations(params))

    st.markdown("**CSV**")
    dl_col, ul_col = st.columns(2)
    dl_col.download_button(
        "⬇️ Download parameters CSV",
        data=export_parameters_csv(params),
        file_name=PARAMETERS_FILENAME,
        mime="text/csv",
    )
    _render_csv_upload(ul_col, key="parameters_upload")


def _claim_upload(key: str, uploaded) -> bool:
    """True the first time an uploaded file is seen by the ``key`` widget."""
    marker = f"{key}_handled"
    if _state().get(marker) == uploaded.file_id:
        return False
    _state()[marker] = uploaded.file_id
    return True


def _render_csv_upload(container, key: str) -> None:
    uploaded = container.file_uploader("Import CSV", type=['csv'], key=key)
    if uploaded is None or not _claim_upload(key, uploaded):
        return
    try:
        result = import_csv(uploaded.getvalue())
        notices = apply_import(result)
    except ValidationError as e:
        st.error(str(e))
        return
    _queue(notices)
    _rerun()


def render_iterations_tab() -> None:
    state = _state()
    params: BudgetParameters = state['parameters']
    iterations: List[IterationRecord] = state['iterations']
    st.subheader(get_label('iterations_tab', "Iterations"))

    if not iterations:
        st.info(get_message('no_iterations', "No iterations added yet."))
    else:
        edited = st.data_editor(
            editor_frame(iterations),
            key="iterations_editor",
            hide_index=True,
            use_container_width=True,
            disabled=['Iteration #'],
            column_config={
                'Days': st.column_config.NumberColumn(min_value=0.5, step=0.5),
                'Team Size': st.column_config.NumberColumn(min_value=1, step=1),
                'Total Hours': st.column_config.NumberColumn(min_value=0.5, help="Override the derived hours"),
                'Current': st.column_config.CheckboxColumn(),
            },
        )
        try:
            updated = apply_editor_changes(iterations, edited)
        except ValidationError as e:
            st.error(str(e))
        else:
            if [it.to_dict() for it in updated] != [it.to_dict() for it in iterations]:
                state['iterations'] = updated
                _rerun()

    with st.expander("➕ Add iteration", expanded=not iterations):
        with st.form("add_iteration_form"):
            col1, col2, col3 = st.columns(3)
            number = col1.number_input("Iteration #", min_value=1, value=ledger.next_iteration_number(iterations), step=1)
            days = col2.number_input("Days", min_value=0.5, value=float(params.working_days_per_iteration), step=0.5)
            team = col3.number_input("Team size", min_value=1, value=int(params.team_size), step=1)
            hours = col1.number_input("Total hours (0 = derived)", min_value=0.0, value=0.0, step=1.0)
            is_current = col2.checkbox("Current iteration")
            submitted = st.form_submit_button("Add")
        if submitted:
            record = IterationRecord(
                iteration_number=int(number),
                iteration_days=float(days),
                team_size=int(team),
                total_hours=float(hours) if hours > 0 else None,
                is_current=bool(is_current),
            )
            try:
                state['iterations'] = ledger.add_iteration(iterations, record)
            except ValidationError as e:
                st.error(str(e))
            else:
                _rerun()

    st.caption(f"{len(iterations)} of {MAX_ITERATIONS} iterations")
    dl_col, ul_col = st.columns(2)
    dl_col.download_button(
        "⬇️ Download iterations CSV",
        data=export_iterations_csv(iterations),
        file_name=ITERATIONS_FILENAME,
        mime="text/csv",
    )
    _render_csv_upload(ul_col, key="iterations_upload")


def render_summary_metrics(params: BudgetParameters, iterations: Sequence[IterationRecord]) -> None:
    summary = consumption_summary(params, iterations)
    cur = params.currency
    cols = st.columns(3)
    cols[0].metric("Total Budget", format_currency(summary['total'], cur))
    cols[1].metric("Consumed", format_currency(summary['consumed'], cur), format_percent(summary['percent']),
                   delta_color="inverse")
    cols[2].metric("Remaining", format_currency(summary['remaining'], cur))


def render_visualization_tab() -> None:
    state = _state()
    params: BudgetParameters = state['parameters']
    iterations: List[IterationRecord] = state['iterations']
    st.subheader(get_label('visualization_tab', "Visualization"))

    if not iterations:
        st.info(get_message('no_chart_data', "No data to visualize."))
        return

    render_summary_metrics(params, iterations)

    visible = st.multiselect(
        "Series",
        list(SERIES_NAMES),
        default=[s for s in state['visible_series'] if s in SERIES_NAMES],
        format_func=series_label,
        key="visible_series_select",
    )
    state['visible_series'] = list(visible)

    points = project(params, iterations)
    figure = create_cumulative_chart(points, visible, params.currency, budget_size=params.budget_size)
    st.plotly_chart(figure, use_container_width=True)
    if 'iterationCost' in visible:
        st.plotly_chart(create_iteration_cost_chart(points, params.currency), use_container_width=True)

    table = consumption_table(params, iterations)
    cur = escape_currency_for_markdown(params.currency)
    st.dataframe(
        table.drop(columns=['Current', 'Exhaustion']).style.format({
            'Hours': '{:,.0f}',
            'Cost': cur + '{:,.0f}',
            'Cumulative': cur + '{:,.0f}',
            'Remaining': cur + '{:,.0f}',
            'Consumed (%)': '{:,.1f}%',
        }),
        use_container_width=True,
        hide_index=True,
    )

    if st.button(get_label('pdf_button', "📄 Generate PDF Report"), key="pdf_button"):
        with st.spinner("Composing report..."):
            try:
                state['pdf_report'] = build_pdf_report(params, iterations, figure)
                state['pdf_filename'] = report_filename()
            except PlannerError as e:
                st.error(str(e))
    if state.get('pdf_report'):
        st.download_button(
            "⬇️ Download PDF",
            data=state['pdf_report'],
            file_name=state.get('pdf_filename', report_filename()),
            mime="application/pdf",
        )


# ============================================================================
# Page
# ============================================================================

def main() -> None:
    st.set_page_config(page_title=get_label('app_title', "Budget Visualization Tool"), page_icon="📊", layout="wide")
    init_session_state()
    st.title(get_label('app_title', "Budget Visualization Tool"))
    flush_pending_notices()

    session = render_auth_sidebar()
    render_saved_states_sidebar(session)

    params_tab, iterations_tab, viz_tab = st.tabs([
        get_label('parameters_tab', "Budget Parameters"),
        get_label('iterations_tab', "Iterations"),
        get_label('visualization_tab', "Visualization"),
    ])
    with params_tab:
        render_parameters_tab()
    with iterations_tab:
        render_iterations_tab()
    with viz_tab:
        render_visualization_tab()
