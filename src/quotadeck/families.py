import re
from enum import Enum

CORE_MODEL_PATTERN = re.compile(r"sonnet|opus|pro|flash", re.IGNORECASE)


class Family(str, Enum):
    CLAUDE = "claude"
    GEMINI = "gemini"
    OTHER = "other"


# Families whose models are hidden unless explicitly configured otherwise.
DEFAULT_HIDDEN_FAMILIES = {Family.OTHER.value, "unknown"}


def get_model_family(model_id: str) -> str:
    """Classify a model id into one of the known families."""
    lower = (model_id or "").lower()
    if "claude" in lower:
        return Family.CLAUDE.value
    if "gemini" in lower:
        return Family.GEMINI.value
    return Family.OTHER.value


def is_core_model(model_id: str) -> bool:
    """Flagship models used to judge whether an account is still usable."""
    return bool(CORE_MODEL_PATTERN.search(model_id or ""))


def resolve_hidden(family: str, config: dict) -> bool:
    hidden = (config or {}).get("hidden")
    if hidden is None:
        return family in DEFAULT_HIDDEN_FAMILIES
    return bool(hidden)
