import json
import logging
from dataclasses import asdict
from importlib.metadata import version, PackageNotFoundError

import click

from .client import DashboardClient
from .config import Config
from .dashboard import Dashboard
from .display import DisplayManager
from .history import parse_time_preset
from .scheduler import RefreshScheduler
from .selection import PreferenceStore, SelectionManager
from .storage import Storage

logger = logging.getLogger(__name__)

try:
    __version__ = version("quotadeck")
except PackageNotFoundError:
    __version__ = "unknown"


# --- Helper functions extracted from main() ---


def _output_json(data):
    """Print a JSON-serializable object to stdout."""
    print(json.dumps(data, indent=2, default=str))


def _build_dashboard(config, url, password, show_exhausted, show_hidden, notify=None):
    """Wire the client, preference store and dashboard together."""

    def prompt_password():
        return click.prompt("Web UI password", hide_input=True, default="", show_default=False)

    client = DashboardClient(
        base_url=url or config.base_url,
        timeout=config.request_timeout,
        password_prompt=prompt_password,
    )
    selection = SelectionManager(PreferenceStore(Storage(config.preferences_db_path)))
    selection.load()
    return Dashboard(
        client,
        selection,
        show_exhausted=show_exhausted,
        show_hidden_models=show_hidden,
        password=password or config.password,
        notify=notify,
    )


def _remember_password(config, dashboard, password):
    """Persist a password entered at the prompt, unless one was passed in."""
    if password or not dashboard.password or dashboard.password == config.password:
        return
    config.data["password"] = dashboard.password
    config.save()


def _parse_model_ref(value):
    """Split a FAMILY:MODEL reference."""
    family, sep, model = value.partition(":")
    if not sep or not family or not model:
        raise click.BadParameter(f"Expected FAMILY:MODEL, got {value!r}")
    return family, model


def _apply_config_updates(dashboard, pin, unpin, hide, unhide):
    """Send pin/hide updates. Returns True if any update was requested."""
    updates = []
    updates += [(model_id, {"pinned": True}) for model_id in pin]
    updates += [(model_id, {"pinned": False}) for model_id in unpin]
    updates += [(model_id, {"hidden": True}) for model_id in hide]
    updates += [(model_id, {"hidden": False}) for model_id in unhide]
    for model_id, patch in updates:
        if dashboard.update_model_config(model_id, patch):
            dashboard.notify(f"Updated {model_id}: {patch}", "success")
    return bool(updates)


def _apply_selection_changes(
    dashboard, mode, toggle_family, toggle_model, select_all, deselect_all, top, top_window
):
    """Apply trend-chart selection changes in a fixed order."""
    if select_all:
        dashboard.select_all()
    if deselect_all:
        dashboard.deselect_all()
    if top:
        window = parse_time_preset(top_window)
        if window is None:
            raise click.BadParameter(f"Invalid window: {top_window}")
        dashboard.auto_select_top_n(n=top, window=window)
    for family in toggle_family:
        dashboard.toggle_family(family)
    for ref in toggle_model:
        dashboard.toggle_model(*_parse_model_ref(ref))
    if mode:
        dashboard.set_display_mode(mode)


def _build_json_results(dashboard, trend):
    """Build the JSON output structure."""
    result = {
        "connection_status": dashboard.connection_status,
        "stats": dashboard.stats,
        "health": dashboard.health,
        "quota_rows": dashboard.quota_rows,
    }
    if trend:
        chart = dashboard.charts.get("usage_trend")
        result["usage_stats"] = asdict(dashboard.usage_stats)
        result["model_tree"] = dashboard.model_tree
        result["selection"] = dashboard.selection.state.to_dict()
        result["usage_trend"] = asdict(chart) if chart else None
    return result


def _render(display, dashboard, trend):
    display.print_main_header(dashboard.last_updated, dashboard.connection_status)
    display.render_stats(dashboard.stats, dashboard.usage_stats if trend else None)
    if trend:
        display.render_model_tree(dashboard.model_tree, dashboard.selection)
        display.render_trend_chart(
            dashboard.charts.get("usage_trend"),
            dashboard.selection.get_selected_count(),
        )
    else:
        display.render_health(dashboard.health)
        display.render_quota_table(dashboard.quota_rows)


# --- Main CLI entrypoint ---


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.version_option(__version__, "--version", "-v", prog_name="quotadeck")
@click.option("--url", help="Base URL of the proxy (default from config).")
@click.option("--password", help="Web UI password for the proxy.")
@click.option("-a", "--account", default="all", help="Only include this account email.")
@click.option(
    "-f",
    "--family",
    type=click.Choice(["all", "claude", "gemini", "other"]),
    default="all",
    help="Only include models of this family.",
)
@click.option("-q", "--search", default="", help="Filter models by id (case-insensitive).")
@click.option("--hide-exhausted", is_flag=True, help="Hide models with an exhausted account.")
@click.option(
    "--show-hidden", is_flag=True, help="Include hidden models in the health figure."
)
@click.option("-j", "--json", "json_output", is_flag=True, help="Output results as JSON.")
@click.option("-t", "--trend", is_flag=True, help="Show the usage trend instead of the table.")
@click.option(
    "--mode", type=click.Choice(["family", "model"]), help="Trend chart grouping."
)
@click.option("--top", type=int, help="Select the N most used models of the window.")
@click.option("--top-window", default="24h", help="Window for --top (e.g. 6h, 24h, 7d).")
@click.option("--toggle-family", multiple=True, help="Toggle a family in the trend chart.")
@click.option(
    "--toggle-model", multiple=True, help="Toggle FAMILY:MODEL in the trend chart."
)
@click.option("--select-all", is_flag=True, help="Select every discovered model.")
@click.option("--deselect-all", is_flag=True, help="Clear the trend selection.")
@click.option(
    "--reset-selection",
    is_flag=True,
    help="Forget the saved trend selection and start from everything selected.",
)
@click.option("--pin", multiple=True, help="Pin a model to the top of the table.")
@click.option("--unpin", multiple=True, help="Unpin a model.")
@click.option("--hide", multiple=True, help="Hide a model from the table.")
@click.option("--unhide", multiple=True, help="Show a hidden model in the table.")
@click.option("-w", "--watch", is_flag=True, help="Keep refreshing until interrupted.")
@click.option("--interval", type=int, help="Refresh interval in seconds for --watch.")
@click.option("--verbose", is_flag=True, help="Enable verbose logging.")
def main(
    url,
    password,
    account,
    family,
    search,
    hide_exhausted,
    show_hidden,
    json_output,
    trend,
    mode,
    top,
    top_window,
    toggle_family,
    toggle_model,
    select_all,
    deselect_all,
    reset_selection,
    pin,
    unpin,
    hide,
    unhide,
    watch,
    interval,
    verbose,
):
    """Monitor per-model quota and usage across the proxy's accounts."""
    log_level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=log_level, format="%(message)s", datefmt="[%X]")

    config = Config()
    display = DisplayManager()

    try:
        dashboard = _build_dashboard(
            config,
            url,
            password,
            show_exhausted=config.show_exhausted and not hide_exhausted,
            show_hidden=config.show_hidden_models or show_hidden,
            # JSON mode: notifications go to the log
            notify=None if json_output else display.notify,
        )
        dashboard.filters.update({"account": account, "family": family, "search": search})

        fetched = dashboard.fetch_data()
        _remember_password(config, dashboard, password)
        if not fetched:
            if json_output:
                _output_json({"status": "error", "message": "Connection lost"})
            return

        if _apply_config_updates(dashboard, pin, unpin, hide, unhide) and not (
            trend or json_output
        ):
            display.render_quota_table(dashboard.quota_rows)
            return

        selection_requested = bool(
            mode
            or toggle_family
            or toggle_model
            or select_all
            or deselect_all
            or top
            or reset_selection
        )
        if trend or selection_requested:
            if reset_selection:
                dashboard.reset_selection()
            dashboard.fetch_history()
            _remember_password(config, dashboard, password)
            _apply_selection_changes(
                dashboard,
                mode,
                toggle_family,
                toggle_model,
                select_all,
                deselect_all,
                top,
                top_window,
            )
            trend = True
        dashboard.set_active_view("dashboard" if trend else "models")

        if json_output:
            _output_json(_build_json_results(dashboard, trend))
            return

        _render(display, dashboard, trend)

        if watch:
            scheduler = RefreshScheduler()
            dashboard.schedule(scheduler, interval or config.refresh_interval)
            for event in ("rows_updated", "history_updated"):
                dashboard.subscribe(event, lambda *_: _render(display, dashboard, trend))
            try:
                scheduler.run_forever()
            except KeyboardInterrupt:
                display.console.print("[dim]Stopped.[/dim]")
            _remember_password(config, dashboard, password)

    except click.BadParameter:
        raise
    except Exception as e:
        display.console.print(f"[red]Error:[/red] {e}")


if __name__ == "__main__":
    main()
