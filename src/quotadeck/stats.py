"""Dashboard summary counters derived from the account snapshot."""

from typing import Any, Dict, List

from .families import is_core_model
from .quota import enabled_accounts

ACTIVE_THRESHOLD = 0.05


def _has_headroom(limit: Any) -> bool:
    if not limit:
        return False
    fraction = limit.get("remainingFraction")
    return fraction is not None and fraction > ACTIVE_THRESHOLD


def is_account_active(account: Dict[str, Any]) -> bool:
    """Whether an account can still serve its core models.

    Accounts without any core-model limit fall back to "any limit has
    headroom".
    """
    if account.get("status") != "ok":
        return False

    limits = list((account.get("limits") or {}).items())
    if any(_has_headroom(l) and is_core_model(mid) for mid, l in limits):
        return True
    if any(is_core_model(mid) for mid, _ in limits):
        return False
    return any(_has_headroom(l) for _, l in limits)


def compute_account_stats(accounts: List[Dict[str, Any]]) -> Dict[str, int]:
    """Count enabled accounts as active or limited.

    Returns:
        Dict with "total", "active" and "limited"
    """
    enabled = enabled_accounts(accounts)
    active = sum(1 for acc in enabled if is_account_active(acc))
    return {
        "total": len(enabled),
        "active": active,
        "limited": len(enabled) - active,
    }
