"""Chart-ready series for the usage trend and global health charts."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .history import HistoryBucket
from .selection import SelectionState
from .utils import format_clock

logger = logging.getLogger(__name__)

FAMILY_COLORS = {
    "claude": "#a855f7",
    "gemini": "#22c55e",
    "other": "#06b6d4",
}
UNKNOWN_FAMILY_COLOR = "#666666"

MODEL_COLORS = [
    "#a855f7",
    "#c084fc",
    "#8b5cf6",
    "#d946ef",
    "#22c55e",
    "#4ade80",
    "#10b981",
    "#84cc16",
    "#06b6d4",
    "#22d3ee",
    "#3b82f6",
    "#60a5fa",
    "#f59e0b",
    "#f97316",
    "#ef4444",
    "#ec4899",
]

MODEL_COLOR_OFFSETS = {"claude": 0, "gemini": 4}
OTHER_MODEL_COLOR_OFFSET = 8


def get_family_color(family: str) -> str:
    return FAMILY_COLORS.get(family, FAMILY_COLORS["other"])


def get_model_color(family: str, model_index: int) -> str:
    base = MODEL_COLOR_OFFSETS.get(family, OTHER_MODEL_COLOR_OFFSET)
    return MODEL_COLORS[(base + model_index) % len(MODEL_COLORS)]


@dataclass
class Dataset:
    label: str
    data: List[float]
    color: str
    family: str
    model: Optional[str] = None


@dataclass
class ChartData:
    """A built chart. Rebuilt wholesale; ``destroy()`` releases the old one."""

    kind: str
    labels: List[str] = field(default_factory=list)
    datasets: List[Dataset] = field(default_factory=list)
    destroyed: bool = False

    def destroy(self) -> None:
        self.labels = []
        self.datasets = []
        self.destroyed = True


ColorFn = Callable[..., str]


def build_trend_chart(
    buckets: List[HistoryBucket],
    selection: SelectionState,
    families: List[str],
    family_color: Optional[ColorFn] = None,
    model_color: Optional[ColorFn] = None,
) -> ChartData:
    """Build line-chart series from chronologically sorted buckets.

    Family mode plots each selected family's subtotal; model mode plots each
    selected model. Missing data is plotted as 0.
    """
    family_color = family_color or get_family_color
    model_color = model_color or get_model_color
    chart = ChartData(kind="line")
    chart.labels = [format_clock(bucket.timestamp) for bucket in buckets]

    if selection.display_mode == "family":
        for family in selection.selected_families:
            points = []
            for bucket in buckets:
                usage = bucket.families.get(family)
                points.append(usage.subtotal if usage else 0)
            chart.datasets.append(
                Dataset(
                    label=family,
                    data=points,
                    color=family_color(family),
                    family=family,
                )
            )
    else:
        for family in families:
            for index, model in enumerate(selection.selected_models.get(family, [])):
                points = []
                for bucket in buckets:
                    usage = bucket.families.get(family)
                    points.append(usage.models.get(model, 0) if usage else 0)
                chart.datasets.append(
                    Dataset(
                        label=model,
                        data=points,
                        color=model_color(family, index),
                        family=family,
                        model=model,
                    )
                )

    logger.debug(
        f"Built trend chart mode={selection.display_mode} "
        f"points={len(chart.labels)} series={len(chart.datasets)}"
    )
    return chart


def build_quota_distribution(health: Dict[str, Any]) -> ChartData:
    """Doughnut segments: per family an active slice and a depleted slice.

    Each family gets an equal share of the ring, filled in proportion to its
    health.
    """
    chart = ChartData(kind="doughnut")
    families = sorted(health.get("families", {}))
    segment_size = 100 / len(families) if families else 100

    for family in families:
        family_health = health["families"][family].get("health", 0)
        active_value = family_health / 100 * segment_size
        color = FAMILY_COLORS.get(family, UNKNOWN_FAMILY_COLOR)

        chart.labels.append(f"{family} active")
        chart.datasets.append(
            Dataset(label=f"{family} active", data=[active_value], color=color, family=family)
        )
        chart.labels.append(f"{family} depleted")
        chart.datasets.append(
            Dataset(
                label=f"{family} depleted",
                data=[segment_size - active_value],
                color=color,
                family=family,
            )
        )
    return chart
