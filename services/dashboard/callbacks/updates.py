"""
Dashboard callback functions for auto-refresh updates and operator actions.

This module defines all Dash callbacks for the SafeTrack UI:
- Sign-in and sign-out
- Overview, alerts, chart and map: every refresh interval
- Device table: on interval and on filter changes
- Operator actions: refresh, auto-refresh, emails, cleanup, export

Note:
    Dash callbacks run in the WSGI worker thread. Store reads are synchronous
    and called directly; coroutines (polling, sending) are submitted to the
    service event loop and awaited from the thread.
"""

import asyncio
import concurrent.futures
from typing import Any, Coroutine, List, Optional, Tuple

from dash import ALL, Dash, callback_context, no_update
from dash.dependencies import Input, Output, State

import structlog

from safetrack.models.timestamps import utc_now
from safetrack.services import Components
from services.dashboard.components.alert_list import (
    get_status_counts,
    render_alerts_list,
)
from services.dashboard.components.device_map import create_device_map
from services.dashboard.components.device_table import (
    PAGE_SIZE,
    filter_readings,
    page_count,
    render_device_table,
    sort_readings,
)
from services.dashboard.components.heartbeat_chart import (
    create_empty_heartbeat_chart,
    create_heartbeat_chart,
)
from services.dashboard.components.summary_cards import (
    SUMMARY_METRICS,
    render_freshness,
    render_summary_values,
)

logger = structlog.get_logger(__name__)

# Upper bound on how long a callback waits for the service loop
ACTION_TIMEOUT_SECONDS = 60.0

HIDDEN = {"display": "none"}
SHOWN = {"display": "block"}


def get_components() -> Optional[Components]:
    from services.dashboard.app import app_state
    return app_state.components


def run_on_service_loop(coro: Coroutine, timeout: float = ACTION_TIMEOUT_SECONDS) -> Any:
    """
    Run a coroutine on the service event loop and wait for its result.

    Args:
        coro: Coroutine to run.
        timeout: Seconds to wait.

    Returns:
        The coroutine's result.

    Raises:
        RuntimeError: If the service loop is not running.
        concurrent.futures.TimeoutError: If the coroutine did not finish in
            time. It is cancelled before this is raised.
    """
    from services.dashboard.app import app_state

    loop = app_state.loop
    if loop is None or not loop.is_running():
        coro.close()
        raise RuntimeError("service event loop is not running")

    future = asyncio.run_coroutine_threadsafe(coro, loop)
    try:
        return future.result(timeout)
    except concurrent.futures.TimeoutError:
        future.cancel()
        logger.warning("ui_action_timed_out", timeout_seconds=timeout)
        raise


def register_callbacks(app: Dash) -> None:
    """
    Register all dashboard callbacks with the Dash app.

    Args:
        app: Dash application instance.
    """

    # =========================================================================
    # SESSION CALLBACKS
    # =========================================================================

    @app.callback(
        [
            Output("login-panel", "style"),
            Output("dashboard-content", "style"),
        ],
        [
            Input("interval-refresh", "n_intervals"),
            Input("action-counter", "data"),
        ],
    )
    def update_visibility(n_intervals: int, counter: int) -> Tuple:
        """Show the sign-in panel until the session is authenticated."""
        components = get_components()
        if components is not None and components.session.is_authenticated():
            return HIDDEN, SHOWN
        return SHOWN, HIDDEN

    @app.callback(
        [
            Output("login-message", "children"),
            Output("action-counter", "data"),
        ],
        [
            Input("btn-login", "n_clicks"),
            Input("btn-logout", "n_clicks"),
        ],
        [
            State("login-email", "value"),
            State("login-password", "value"),
            State("action-counter", "data"),
        ],
        prevent_initial_call=True,
    )
    def handle_session(
        login_clicks: Optional[int],
        logout_clicks: Optional[int],
        email: Optional[str],
        password: Optional[str],
        counter: int,
    ) -> Tuple:
        """Handle sign-in and sign-out buttons."""
        components = get_components()
        ctx = callback_context
        if components is None or not ctx.triggered:
            return no_update, no_update

        button_id = ctx.triggered[0]["prop_id"].split(".")[0]

        try:
            if button_id == "btn-logout":
                run_on_service_loop(components.monitor.stop())
                components.monitor.clear()
                components.session.logout()
                return "", (counter or 0) + 1

            if not components.session.login(email or "", password or ""):
                return "Please enter valid credentials", no_update
            if components.config.dashboard.run_monitor and components.config.monitor.auto_refresh:
                run_on_service_loop(components.monitor.start())
            return "", (counter or 0) + 1
        except Exception as e:
            logger.error("session_action_failed", action=button_id, error=str(e))
            return f"Error: {e}", no_update

    # =========================================================================
    # OPERATOR ACTIONS
    # =========================================================================

    @app.callback(
        Output("alerts-action-message", "children"),
        [
            Input("btn-refresh", "n_clicks"),
            Input("auto-refresh-switch", "value"),
            Input("btn-send-pending", "n_clicks"),
            Input("btn-cleanup", "n_clicks"),
            Input({"type": "send-alert-email", "index": ALL}, "n_clicks"),
        ],
        prevent_initial_call=True,
    )
    def handle_action(
        refresh_clicks: Optional[int],
        auto_refresh: bool,
        pending_clicks: Optional[int],
        cleanup_clicks: Optional[int],
        email_clicks: List[Optional[int]],
    ) -> str:
        """Run the operator action behind whichever control fired."""
        components = get_components()
        ctx = callback_context
        if components is None or not ctx.triggered:
            return no_update

        trigger = ctx.triggered_id
        # Re-rendered alert cards fire with n_clicks None
        if isinstance(trigger, dict) and not ctx.triggered[0]["value"]:
            return no_update

        try:
            if trigger == "btn-refresh":
                new_alerts = run_on_service_loop(components.monitor.poll_once(force_refresh=True))
                return f"Refreshed: {len(new_alerts)} new alert(s)"

            if trigger == "auto-refresh-switch":
                run_on_service_loop(components.monitor.set_auto_refresh(bool(auto_refresh)))
                return "Auto-refresh on" if auto_refresh else "Auto-refresh off"

            if trigger == "btn-send-pending":
                result = run_on_service_loop(components.dispatcher.send_pending())
                return (
                    f"Emails: {result.succeeded} sent, {result.failed} failed "
                    f"of {result.attempted}"
                )

            if trigger == "btn-cleanup":
                cleanup = components.store.cleanup_older_than(components.config.alerts.cleanup_days)
                if not cleanup.ok:
                    return f"Cleanup failed: {cleanup.error}"
                return f"Archived {cleanup.moved} alert(s)"

            if isinstance(trigger, dict):
                delivery = run_on_service_loop(
                    components.dispatcher.send_alert_by_id(trigger["index"])
                )
                if delivery is None:
                    return "Alert not found"
                if not delivery.success:
                    return f"Failed to send email: {delivery.error}"
                return f"Email sent for {trigger['index']}"
        except Exception as e:
            logger.error("dashboard_action_failed", trigger=str(trigger), error=str(e))
            return f"Error: {e}"

        return no_update

    @app.callback(
        Output("export-download", "data"),
        Input("btn-export", "n_clicks"),
        prevent_initial_call=True,
    )
    def export_alerts(n_clicks: Optional[int]) -> Any:
        """Download active and archived alerts as JSON."""
        components = get_components()
        if components is None or not n_clicks:
            return no_update

        store = components.store
        filename = store.export_filename(components.config.dashboard.export_prefix)
        logger.info("alerts_exported", include_archived=True, filename=filename)
        return dict(
            content=store.export_snapshot(include_archived=True),
            filename=filename,
            type="application/json",
        )

    # =========================================================================
    # PERIODIC DATA CALLBACK
    # =========================================================================

    @app.callback(
        [Output(f"summary-value-{metric_id}", "children") for metric_id, _ in SUMMARY_METRICS]
        + [
            Output("data-freshness-indicator", "children"),
            Output("last-update-timestamp", "children"),
            Output("alerts-list-container", "children"),
            Output("alerts-count-badge", "children"),
            Output("alerts-count-badge", "className"),
            Output("heartbeat-chart", "figure"),
            Output("device-map", "figure"),
            Output("device-location-filter", "options"),
        ],
        [
            Input("interval-refresh", "n_intervals"),
            Input("alerts-action-message", "children"),
        ],
    )
    def update_dashboard(n_intervals: int, message: Any) -> List:
        """Refresh everything driven by the latest poll and the alert store."""
        components = get_components()
        if components is None:
            return [no_update] * (len(SUMMARY_METRICS) + 8)

        try:
            monitor = components.monitor
            readings = list(monitor.readings)
            history = components.telemetry.load_history()
            summary = monitor.summary()

            alerts = components.store.list_active()
            counts = get_status_counts(alerts)
            badge_class = "badge bg-danger" if counts["total"] else "badge bg-secondary"

            locations = sorted({r.location for r in readings if r.location})
            location_options = [{"label": "All locations", "value": "all"}] + [
                {"label": loc, "value": loc} for loc in locations
            ]

            last_update = summary.last_update
            timestamp = (
                f"Last update: {last_update.strftime('%H:%M:%S')} UTC"
                if last_update else "Last update: --:--:--"
            )

            return render_summary_values(summary) + [
                render_freshness(monitor.is_fresh(), last_update),
                timestamp,
                render_alerts_list(alerts, utc_now()),
                str(counts["total"]),
                badge_class,
                create_heartbeat_chart(history, readings, components.detector.heartbeat_threshold),
                create_device_map(readings),
                location_options,
            ]
        except Exception as e:
            logger.error("dashboard_update_failed", error=str(e))
            return [no_update] * len(SUMMARY_METRICS) + [
                no_update,
                no_update,
                no_update,
                no_update,
                no_update,
                create_empty_heartbeat_chart(),
                no_update,
                no_update,
            ]

    # =========================================================================
    # DEVICE TABLE CALLBACK
    # =========================================================================

    @app.callback(
        [
            Output("device-table-container", "children"),
            Output("device-table-pagination", "max_value"),
        ],
        [
            Input("interval-refresh", "n_intervals"),
            Input("device-search", "value"),
            Input("device-status-filter", "value"),
            Input("device-location-filter", "value"),
            Input("device-sort-field", "value"),
            Input("device-sort-desc", "value"),
            Input("device-table-pagination", "active_page"),
        ],
    )
    def update_device_table(
        n_intervals: int,
        search: Optional[str],
        status: Optional[str],
        location: Optional[str],
        sort_field: Optional[str],
        descending: Optional[bool],
        page: Optional[int],
    ) -> Tuple:
        """Filter, sort and page the latest readings."""
        components = get_components()
        if components is None:
            return no_update, no_update

        filtered = filter_readings(
            components.monitor.readings,
            search=search or "",
            status=status or "all",
            location=location or "all",
        )
        ordered = sort_readings(filtered, sort_field or "timestamp", bool(descending))
        return render_device_table(ordered, page, PAGE_SIZE), page_count(len(ordered), PAGE_SIZE)
