"""Per-model quota aggregation over the account snapshot."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .families import get_model_family, resolve_hidden
from .utils import format_time_until, parse_timestamp, round_half_up

logger = logging.getLogger(__name__)

DEFAULT_FILTERS = {"account": "all", "family": "all", "search": ""}


def enabled_accounts(accounts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Accounts that take part in aggregates; `enabled` defaults to true."""
    return [acc for acc in accounts or [] if acc.get("enabled") is not False]


def limit_to_pct(limit: Dict[str, Any]) -> int:
    """Convert a limit's remaining fraction into an integer percentage."""
    fraction = limit.get("remainingFraction")
    if fraction is None:
        return 0
    return round_half_up(fraction * 100)


def _matches_filters(model_id: str, family: str, filters: Dict[str, str]) -> bool:
    family_filter = filters.get("family", "all")
    if family_filter != "all" and family_filter != family:
        return False
    search = filters.get("search")
    if search and search.lower() not in model_id.lower():
        return False
    return True


def compute_quota_rows(
    accounts: List[Dict[str, Any]],
    models: List[str],
    model_config: Dict[str, Dict[str, Any]],
    filters: Optional[Dict[str, str]] = None,
    show_exhausted: bool = True,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Build the filtered quota table shown on the models view.

    Args:
        accounts: Raw account dicts from the snapshot feed
        models: Model ids in feed order
        model_config: Per-model overrides (hidden, pinned)
        filters: Dict with "account", "family" and "search" keys
        show_exhausted: Keep rows whose minimum quota is 0
        now: Reference time for the reset countdown

    Returns:
        List of quota row dicts, pinned first then by average quota
    """
    filters = {**DEFAULT_FILTERS, **(filters or {})}
    account_filter = filters.get("account", "all")
    rows = []

    for model_id in models or []:
        config = (model_config or {}).get(model_id) or {}
        family = get_model_family(model_id)

        # Hidden models never show in the table, whatever the filters say
        is_hidden = resolve_hidden(family, config)
        if is_hidden:
            continue

        if not _matches_filters(model_id, family, filters):
            continue

        quota_info = []
        min_quota = 100
        total_pct = 0
        min_reset_time = None
        min_reset_dt = None

        for acc in enabled_accounts(accounts):
            email = acc.get("email", "")
            if account_filter != "all" and email != account_filter:
                continue

            limit = (acc.get("limits") or {}).get(model_id)
            if not limit:
                continue

            pct = limit_to_pct(limit)
            min_quota = min(min_quota, pct)
            total_pct += pct

            reset_time = limit.get("resetTime")
            reset_dt = parse_timestamp(reset_time)
            if reset_dt is not None and (min_reset_dt is None or reset_dt < min_reset_dt):
                min_reset_dt = reset_dt
                min_reset_time = reset_time

            quota_info.append(
                {
                    "email": email.split("@")[0],
                    "full_email": email,
                    "pct": pct,
                    "reset_time": reset_time,
                }
            )

        if not quota_info:
            continue

        if not show_exhausted and min_quota == 0:
            continue

        rows.append(
            {
                "model_id": model_id,
                "display_name": model_id,
                "family": family,
                "min_quota": min_quota,
                "avg_quota": round_half_up(total_pct / len(quota_info)),
                "min_reset_time": min_reset_time,
                "reset_in": format_time_until(min_reset_time, now)
                if min_reset_time
                else "-",
                "quota_info": quota_info,
                "pinned": bool(config.get("pinned")),
                "hidden": is_hidden,
            }
        )

    rows.sort(key=lambda r: (not r["pinned"], -r["avg_quota"]))
    logger.debug(f"Computed {len(rows)} quota rows from {len(models or [])} models")
    return rows


def get_unfiltered_quota_data(
    accounts: List[Dict[str, Any]],
    models: List[str],
    model_config: Dict[str, Dict[str, Any]],
    show_hidden_models: bool = False,
) -> List[Dict[str, Any]]:
    """Quota data across every account, ignoring the table filters.

    Feeds the global health chart, so it uses the lighter
    ``{model_id, family, quota_info: [{pct}]}`` shape.
    """
    rows = []
    for model_id in models or []:
        config = (model_config or {}).get(model_id) or {}
        family = get_model_family(model_id)

        if resolve_hidden(family, config) and not show_hidden_models:
            continue

        quota_info = []
        for acc in enabled_accounts(accounts):
            limit = (acc.get("limits") or {}).get(model_id)
            if not limit:
                continue
            quota_info.append({"pct": limit_to_pct(limit)})

        if not quota_info:
            continue

        rows.append({"model_id": model_id, "family": family, "quota_info": quota_info})
    return rows


def aggregate_family_health(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Sum remaining percentages per family into a health figure.

    Returns:
        Dict with "families" ({family: {used, total, health}}) and
        "overall_health" (0-100)
    """
    families: Dict[str, Dict[str, int]] = {}
    for row in rows:
        stats = families.setdefault(row["family"], {"used": 0, "total": 0})
        for info in row["quota_info"]:
            stats["used"] += info["pct"]
            stats["total"] += 100

    for stats in families.values():
        stats["health"] = (
            round_half_up(stats["used"] / stats["total"] * 100) if stats["total"] else 0
        )

    global_total = sum(s["total"] for s in families.values())
    global_used = sum(s["used"] for s in families.values())
    overall = round_half_up(global_used / global_total * 100) if global_total else 0

    return {"families": families, "overall_health": overall}
