"""Dashboard state container.

Holds the latest snapshot, history and chart objects, and recomputes derived
data explicitly after every mutation. Consumers subscribe to events instead
of watching attributes:

- ``snapshot_updated``: accounts/models/config replaced
- ``rows_updated``: the filtered quota table was recomputed
- ``history_updated``: history, usage totals and model tree replaced
- ``selection_changed``: the trend-chart selection changed, by the user or by
  auto-extension after a history fetch
- ``charts_updated``: a chart was rebuilt (receives the chart name)
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from .charts import ChartData, build_quota_distribution, build_trend_chart
from .client import ApiError, DashboardClient
from .history import (
    DEFAULT_TOP_N,
    DEFAULT_TOP_WINDOW,
    UsageStats,
    parse_history,
    process_history,
    rank_models,
    sort_buckets,
)
from .quota import (
    DEFAULT_FILTERS,
    aggregate_family_health,
    compute_quota_rows,
    get_unfiltered_quota_data,
)
from .scheduler import HISTORY_REFRESH_INTERVAL, RefreshScheduler
from .selection import SelectionManager, SelectionState
from .stats import compute_account_stats

logger = logging.getLogger(__name__)

EVENTS = (
    "snapshot_updated",
    "rows_updated",
    "history_updated",
    "selection_changed",
    "charts_updated",
)
VIEWS = ("dashboard", "models")


def _log_notification(message: str, level: str = "info") -> None:
    log = logger.error if level == "error" else logger.info
    log(message)


class Dashboard:
    def __init__(
        self,
        client: DashboardClient,
        selection: SelectionManager,
        show_exhausted: bool = True,
        show_hidden_models: bool = False,
        password: Optional[str] = None,
        notify: Optional[Callable[[str, str], None]] = None,
    ):
        self.client = client
        self.selection = selection
        self.selection.on_change = self._on_selection_changed
        self.show_exhausted = show_exhausted
        self.show_hidden_models = show_hidden_models
        self.password = password
        self.notify = notify or _log_notification

        self.accounts: List[Dict[str, Any]] = []
        self.models: List[str] = []
        self.model_config: Dict[str, Dict[str, Any]] = {}
        self.filters = dict(DEFAULT_FILTERS)
        self.quota_rows: List[Dict[str, Any]] = []

        self.loading = False
        self.connection_status = "connecting"
        self.last_updated = "-"
        self.active_view = "dashboard"

        self.stats = {
            "total": 0,
            "active": 0,
            "limited": 0,
            "overall_health": 0,
            "has_trend_data": False,
        }
        self.health: Dict[str, Any] = {"families": {}, "overall_health": 0}
        self.usage_stats = UsageStats()
        self.history = []
        self.model_tree: Dict[str, List[str]] = {}
        self.families: List[str] = []
        self.charts: Dict[str, Optional[ChartData]] = {
            "quota_distribution": None,
            "usage_trend": None,
        }
        self._listeners: Dict[str, List[Callable]] = {event: [] for event in EVENTS}

    # --- Events ---

    def subscribe(self, event: str, callback: Callable) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown event: {event}")
        if callback not in self._listeners[event]:
            self._listeners[event].append(callback)

    def unsubscribe(self, event: str, callback: Callable) -> None:
        if callback in self._listeners.get(event, []):
            self._listeners[event].remove(callback)

    def _emit(self, event: str, *args: Any) -> None:
        for callback in list(self._listeners[event]):
            callback(*args)

    def _store_password(self, new_password: Optional[str]) -> None:
        if new_password:
            self.password = new_password

    # --- Snapshot feed ---

    def fetch_data(self) -> bool:
        """Fetch the snapshot and recompute everything derived from it."""
        self.loading = True
        try:
            data, new_password = self.client.fetch_snapshot(self.password)
            self._store_password(new_password)
            self.apply_snapshot(data)
            self.connection_status = "connected"
            self.last_updated = datetime.now().strftime("%H:%M:%S")
            return True
        except ApiError as e:
            self._store_password(e.new_password)
            logger.error(f"Fetch error: {e}")
            self.connection_status = "disconnected"
            self.notify("Connection lost", "error")
            return False
        finally:
            self.loading = False

    def apply_snapshot(self, data: Dict[str, Any]) -> None:
        self.accounts = data.get("accounts") or []
        self.models = data.get("models") or []
        self.model_config = data.get("modelConfig") or {}
        self.compute_quota_rows()
        self.update_stats()
        self.update_charts()
        self._emit("snapshot_updated")

    def compute_quota_rows(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        self.quota_rows = compute_quota_rows(
            self.accounts,
            self.models,
            self.model_config,
            self.filters,
            show_exhausted=self.show_exhausted,
            now=now,
        )
        self._emit("rows_updated", self.quota_rows)
        return self.quota_rows

    def set_filters(self, **filters: str) -> List[Dict[str, Any]]:
        unknown = set(filters) - set(DEFAULT_FILTERS)
        if unknown:
            raise ValueError(f"Unknown filters: {', '.join(sorted(unknown))}")
        self.filters.update(filters)
        return self.compute_quota_rows()

    def update_model_config(self, model_id: str, patch: Dict[str, Any]) -> bool:
        """Send a config patch; on success merge it locally and recompute rows.

        A failed request is reported through ``notify`` and leaves local
        state untouched.
        """
        try:
            new_password = self.client.update_model_config(
                model_id, patch, self.password
            )
        except ApiError as e:
            self._store_password(e.new_password)
            self.notify(f"Failed to update: {e}", "error")
            return False

        self._store_password(new_password)
        self.model_config[model_id] = {**self.model_config.get(model_id, {}), **patch}
        self.compute_quota_rows()
        return True

    def update_stats(self) -> Dict[str, Any]:
        self.stats.update(compute_account_stats(self.accounts))
        return self.stats

    def update_charts(self) -> ChartData:
        """Rebuild the global health chart from unfiltered quota data."""
        rows = get_unfiltered_quota_data(
            self.accounts,
            self.models,
            self.model_config,
            show_hidden_models=self.show_hidden_models,
        )
        self.health = aggregate_family_health(rows)
        self.stats["overall_health"] = self.health["overall_health"]
        chart = build_quota_distribution(self.health)
        self._replace_chart("quota_distribution", chart)
        return chart

    # --- History feed ---

    def fetch_history(self) -> bool:
        try:
            raw, new_password = self.client.fetch_history(self.password)
            self._store_password(new_password)
            self.apply_history(raw)
            return True
        except ApiError as e:
            self._store_password(e.new_password)
            logger.error(f"Failed to fetch usage history: {e}")
            return False
        finally:
            # Set even on failure so the trend view stops loading
            self.stats["has_trend_data"] = True

    def apply_history(self, raw: Dict[str, Any], now: Optional[datetime] = None) -> None:
        self.history = sort_buckets(parse_history(raw))
        summary = process_history(self.history, now=now)
        self.usage_stats = summary.usage_stats
        self.model_tree = summary.model_tree
        self.families = summary.families

        extended = self.selection.auto_select_new(self.model_tree, self.families)
        self.update_trend_chart()
        if extended:
            self._emit("selection_changed", self.selection.state)
        self._emit("history_updated")

    def update_trend_chart(self) -> ChartData:
        chart = build_trend_chart(self.history, self.selection.state, self.families)
        self._replace_chart("usage_trend", chart)
        return chart

    def _replace_chart(self, name: str, chart: ChartData) -> None:
        previous = self.charts.get(name)
        if previous is not None:
            previous.destroy()
        self.charts[name] = chart
        self._emit("charts_updated", name)

    # --- Selection ---

    def _on_selection_changed(self, state: SelectionState) -> None:
        self.update_trend_chart()
        self._emit("selection_changed", state)

    def toggle_family(self, family: str) -> None:
        self.selection.toggle_family(family)

    def toggle_model(self, family: str, model: str) -> None:
        self.selection.toggle_model(family, model)

    def set_display_mode(self, mode: str) -> None:
        self.selection.set_display_mode(mode)

    def select_all(self) -> None:
        self.selection.select_all()

    def deselect_all(self) -> None:
        self.selection.deselect_all()

    def reset_selection(self) -> None:
        self.selection.reset()

    def auto_select_top_n(
        self,
        n: int = DEFAULT_TOP_N,
        window: timedelta = DEFAULT_TOP_WINDOW,
        now: Optional[datetime] = None,
    ) -> None:
        ranked = rank_models(self.history, now=now, window=window, n=n)
        logger.debug(f"Top {n} models: {ranked}")
        self.selection.select_top_n(ranked)

    # --- Timers ---

    def set_active_view(self, view: str) -> None:
        if view not in VIEWS:
            raise ValueError(f"Unknown view: {view}")
        self.active_view = view

    def schedule(self, scheduler: RefreshScheduler, refresh_interval: int) -> None:
        """Register the periodic snapshot and history refreshes."""
        scheduler.add_job("snapshot", refresh_interval, self.fetch_data)
        scheduler.add_job("history", HISTORY_REFRESH_INTERVAL, self._refresh_history)

    def _refresh_history(self) -> None:
        if self.active_view == "dashboard":
            self.fetch_history()
