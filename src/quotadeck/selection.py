"""Trend-chart selection state and its durable preference record."""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import validate_schema
from .storage import Storage

logger = logging.getLogger(__name__)

PREFERENCES_KEY = "dashboard_chart_prefs"
DISPLAY_MODES = ("family", "model")
DEFAULT_DISPLAY_MODE = "model"

_NAME_LISTS = {"type": "array", "items": {"type": "string"}}

PREFERENCES_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "displayMode": {"type": "string", "enum": list(DISPLAY_MODES)},
        "selectedFamilies": _NAME_LISTS,
        "selectedModels": {"type": "object", "additionalProperties": _NAME_LISTS},
        "knownModels": {"type": "object", "additionalProperties": _NAME_LISTS},
    },
}


def _unique(values) -> List[str]:
    result = []
    for value in values or []:
        if value not in result:
            result.append(value)
    return result


@dataclass
class SelectionState:
    """Which families and models the trend chart includes.

    Lists behave as sets but keep insertion order, which drives the
    per-model color index. ``known_models`` is None for records written
    before known models were tracked.
    """

    display_mode: str = DEFAULT_DISPLAY_MODE
    selected_families: List[str] = field(default_factory=list)
    selected_models: Dict[str, List[str]] = field(default_factory=dict)
    known_models: Optional[Dict[str, List[str]]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SelectionState":
        known = data.get("knownModels")
        return cls(
            display_mode=data.get("displayMode") or DEFAULT_DISPLAY_MODE,
            selected_families=_unique(data.get("selectedFamilies")),
            selected_models={
                family: _unique(models)
                for family, models in (data.get("selectedModels") or {}).items()
            },
            known_models=None
            if known is None
            else {family: _unique(models) for family, models in known.items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "displayMode": self.display_mode,
            "selectedFamilies": list(self.selected_families),
            "selectedModels": {f: list(m) for f, m in self.selected_models.items()},
        }
        if self.known_models is not None:
            data["knownModels"] = {f: list(m) for f, m in self.known_models.items()}
        return data


class PreferenceStore:
    """Reads and writes the selection record under a fixed key.

    Failures are logged and never raised: a broken record just means the
    dashboard starts from an empty selection.
    """

    def __init__(self, storage: Storage, key: str = PREFERENCES_KEY):
        self.storage = storage
        self.key = key

    def load(self) -> SelectionState:
        try:
            raw = self.storage.get_value(self.key)
        except sqlite3.Error as e:
            logger.error(f"Failed to load dashboard preferences: {e}")
            return SelectionState()

        if raw is None:
            return SelectionState()

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to load dashboard preferences: {e}")
            return SelectionState()

        if not isinstance(data, dict) or not validate_schema(
            data, PREFERENCES_SCHEMA, self.key
        ):
            return SelectionState()
        return SelectionState.from_dict(data)

    def save(self, state: SelectionState) -> bool:
        try:
            self.storage.set_value(self.key, json.dumps(state.to_dict()))
            return True
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.error(f"Failed to save dashboard preferences: {e}")
            return False

    def clear(self) -> bool:
        try:
            return self.storage.delete_value(self.key)
        except sqlite3.Error as e:
            logger.error(f"Failed to clear dashboard preferences: {e}")
            return False


class SelectionManager:
    """Owns the trend-chart selection and keeps it in sync with discoveries."""

    def __init__(
        self,
        store: PreferenceStore,
        on_change: Optional[Callable[[SelectionState], None]] = None,
    ):
        self.store = store
        self.on_change = on_change
        self.state = SelectionState()
        self.model_tree: Dict[str, List[str]] = {}
        self.families: List[str] = []

    def load(self) -> SelectionState:
        self.state = self.store.load()
        return self.state

    def save(self) -> bool:
        return self.store.save(self.state)

    def reset(self) -> None:
        """Forget the saved selection; the next discovery counts as a first run."""
        self.state = SelectionState()
        self.store.clear()
        if self.on_change:
            self.on_change(self.state)

    def _changed(self) -> None:
        self.save()
        if self.on_change:
            self.on_change(self.state)

    def _legacy_known(self) -> Dict[str, List[str]]:
        """Infer known models for records that predate ``knownModels``."""
        known = {}
        for family in self.state.selected_families:
            known[family] = []
        for family, models in self.state.selected_models.items():
            known[family] = _unique(list(models) + self.model_tree.get(family, []))
        return known

    def auto_select_new(
        self, model_tree: Dict[str, List[str]], families: List[str]
    ) -> bool:
        """Extend the selection with newly discovered families and models.

        On the very first run everything is selected. Afterwards the rule is
        additive only: anything seen before keeps its current state, anything
        new starts selected.

        Returns:
            True if the state changed (and was persisted)
        """
        self.model_tree = {f: list(m) for f, m in model_tree.items()}
        self.families = list(families)
        state = self.state

        first_run = (
            not state.selected_families
            and not state.selected_models
            and not state.known_models
        )
        if first_run:
            if not families:
                return False
            state.selected_families = list(families)
            state.selected_models = {
                f: list(self.model_tree.get(f, [])) for f in families
            }
            state.known_models = {
                f: list(self.model_tree.get(f, [])) for f in families
            }
            self.save()
            return True

        known = state.known_models
        changed = False
        if known is None:
            known = self._legacy_known()
            changed = True

        for family in families:
            if family not in known:
                known[family] = []
                changed = True
                if family not in state.selected_families:
                    state.selected_families.append(family)

            for model in self.model_tree.get(family, []):
                if model in known[family]:
                    continue
                known[family].append(model)
                changed = True
                selected = state.selected_models.setdefault(family, [])
                if model not in selected:
                    selected.append(model)

        state.known_models = known
        if changed:
            logger.debug(f"Auto-extended chart selection: {state.selected_models}")
            self.save()
        return changed

    def _mark_known(self) -> None:
        known = self.state.known_models if self.state.known_models is not None else {}
        for family in self.families:
            known[family] = _unique(
                known.get(family, []) + self.model_tree.get(family, [])
            )
        self.state.known_models = known

    def toggle_family(self, family: str) -> None:
        if family in self.state.selected_families:
            self.state.selected_families.remove(family)
        else:
            self.state.selected_families.append(family)
        self._changed()

    def toggle_model(self, family: str, model: str) -> None:
        selected = self.state.selected_models.setdefault(family, [])
        if model in selected:
            selected.remove(model)
        else:
            selected.append(model)
        self._changed()

    def set_display_mode(self, mode: str) -> None:
        if mode not in DISPLAY_MODES:
            raise ValueError(f"Invalid display mode: {mode}")
        self.state.display_mode = mode
        self._changed()

    def select_all(self) -> None:
        self.state.selected_families = list(self.families)
        for family in self.families:
            self.state.selected_models[family] = list(self.model_tree.get(family, []))
        self._mark_known()
        self._changed()

    def deselect_all(self) -> None:
        self.state.selected_families = []
        self.state.selected_models = {}
        self._mark_known()
        self._changed()

    def select_top_n(self, ranked: List[Tuple[str, str, float]]) -> None:
        """Replace the selection with the given (family, model, usage) ranking."""
        self.state.selected_families = []
        self.state.selected_models = {}
        for family, model, _usage in ranked:
            if family not in self.state.selected_families:
                self.state.selected_families.append(family)
            models = self.state.selected_models.setdefault(family, [])
            if model not in models:
                models.append(model)
        self._mark_known()
        self._changed()

    def is_family_selected(self, family: str) -> bool:
        return family in self.state.selected_families

    def is_model_selected(self, family: str, model: str) -> bool:
        return model in self.state.selected_models.get(family, [])

    def get_selected_count(self) -> str:
        if self.state.display_mode == "family":
            return f"{len(self.state.selected_families)}/{len(self.families)}"
        selected = 0
        total = 0
        for family in self.families:
            total += len(self.model_tree.get(family, []))
            selected += len(self.state.selected_models.get(family, []))
        return f"{selected}/{total}"
