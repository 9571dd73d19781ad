"""Parsing and aggregation of the hourly usage-history feed."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from .utils import local_now, parse_timestamp

logger = logging.getLogger(__name__)

TOTAL_KEYS = ("_total", "total")
SUBTOTAL_KEY = "_subtotal"

TIME_PRESETS = {
    "6h": timedelta(hours=6),
    "12h": timedelta(hours=12),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
}

DEFAULT_TOP_N = 5
DEFAULT_TOP_WINDOW = TIME_PRESETS["24h"]


@dataclass
class FamilyUsage:
    models: Dict[str, float] = field(default_factory=dict)
    subtotal: float = 0


@dataclass
class HistoryBucket:
    """One hour of usage, with the feed's sentinel keys lifted into fields."""

    key: str
    timestamp: Optional[datetime]
    families: Dict[str, FamilyUsage] = field(default_factory=dict)
    total: float = 0


@dataclass
class UsageStats:
    total: float = 0
    today: float = 0
    this_hour: float = 0


@dataclass
class HistorySummary:
    usage_stats: UsageStats
    model_tree: Dict[str, List[str]]
    families: List[str]


def _as_count(value: Any) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    return 0


def parse_time_preset(preset: str) -> Optional[timedelta]:
    """Convert a preset string like "24h" to a timedelta."""
    if preset in TIME_PRESETS:
        return TIME_PRESETS[preset]
    if preset and preset[:-1].isdigit():
        if preset.endswith("h"):
            return timedelta(hours=int(preset[:-1]))
        if preset.endswith("d"):
            return timedelta(days=int(preset[:-1]))
    return None


def parse_bucket(key: str, data: Dict[str, Any]) -> HistoryBucket:
    """Parse one raw hour bucket.

    Dict-valued keys are families; numeric values outside the total keys are
    the legacy flat per-family format and cannot be told apart from model
    names, so they are ignored.
    """
    bucket = HistoryBucket(key=key, timestamp=parse_timestamp(key))

    for name, value in data.items():
        if name in TOTAL_KEYS:
            continue
        if isinstance(value, dict):
            usage = FamilyUsage(subtotal=_as_count(value.get(SUBTOTAL_KEY)))
            for model_name, count in value.items():
                if model_name != SUBTOTAL_KEY:
                    usage.models[model_name] = _as_count(count)
            bucket.families[name] = usage
        else:
            logger.debug(f"Ignoring legacy flat history key {name!r} in {key}")

    total = data.get("_total")
    if total is None:
        total = data.get("total")
    bucket.total = _as_count(total)
    return bucket


def parse_history(raw: Dict[str, Any]) -> List[HistoryBucket]:
    """Parse the raw history mapping (ISO hour -> bucket), keeping feed order."""
    buckets = []
    for key, data in (raw or {}).items():
        if not isinstance(data, dict):
            logger.warning(f"Skipping malformed history bucket {key!r}")
            continue
        buckets.append(parse_bucket(key, data))
    return buckets


def sort_buckets(buckets: List[HistoryBucket]) -> List[HistoryBucket]:
    """Return buckets in chronological order, unparsable keys last."""
    return sorted(
        buckets,
        key=lambda b: (
            b.timestamp is None,
            b.timestamp.timestamp() if b.timestamp else 0,
            b.key,
        ),
    )


def build_model_tree(buckets: List[HistoryBucket]) -> Dict[str, List[str]]:
    """Union every model name seen per family, sorted."""
    tree: Dict[str, set] = {}
    for bucket in buckets:
        for family, usage in bucket.families.items():
            tree.setdefault(family, set()).update(usage.models)
    return {family: sorted(models) for family, models in tree.items()}


def process_history(
    buckets: List[HistoryBucket], now: Optional[datetime] = None
) -> HistorySummary:
    """Compute running totals and the family/model tree.

    ``today`` counts buckets from local midnight on; ``this_hour`` is the
    bucket whose timestamp equals the current local hour.
    """
    current = local_now(now)
    today_start = current.replace(hour=0, minute=0, second=0, microsecond=0)
    current_hour = current.replace(minute=0, second=0, microsecond=0)

    stats = UsageStats()
    for bucket in buckets:
        stats.total += bucket.total
        if bucket.timestamp is None:
            continue
        if bucket.timestamp >= today_start:
            stats.today += bucket.total
        if bucket.timestamp == current_hour:
            stats.this_hour = bucket.total

    model_tree = build_model_tree(buckets)
    summary = HistorySummary(
        usage_stats=stats,
        model_tree=model_tree,
        families=sorted(model_tree),
    )
    logger.debug(
        f"Processed {len(buckets)} history buckets: total={stats.total} "
        f"families={summary.families}"
    )
    return summary


def rank_models(
    buckets: List[HistoryBucket],
    now: Optional[datetime] = None,
    window: timedelta = DEFAULT_TOP_WINDOW,
    n: int = DEFAULT_TOP_N,
) -> List[Tuple[str, str, float]]:
    """Rank (family, model) pairs by usage over the trailing window.

    Ties keep first-seen order.

    Returns:
        Up to ``n`` (family, model, usage) tuples, highest usage first
    """
    window_start = local_now(now) - window
    usage: Dict[Tuple[str, str], float] = {}

    for bucket in buckets:
        if bucket.timestamp is None or bucket.timestamp < window_start:
            continue
        for family, family_usage in bucket.families.items():
            for model, count in family_usage.models.items():
                usage[(family, model)] = usage.get((family, model), 0) + count

    ranked = sorted(usage.items(), key=lambda item: item[1], reverse=True)
    return [(family, model, total) for (family, model), total in ranked[: max(n, 0)]]
