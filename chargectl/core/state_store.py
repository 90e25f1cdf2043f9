"""Persistence of the last outlet state known to be asserted."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from chargectl.core.errors import StateStoreError
from chargectl.core.model import ConfirmedState

LOGGER = logging.getLogger(__name__)


def default_state_path() -> Path:
    xdg_state = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local/state"))
    return xdg_state / "chargectl/state.json"


class StateStore:
    def __init__(self, path: Path | None = None) -> None:
        self.path = path or default_state_path()

    def read_confirmed_state(self) -> ConfirmedState | None:
        """Return the persisted state, or None when it is unknown."""
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            LOGGER.warning("Could not read state file %s: %s", self.path, exc)
            return None

        try:
            doc = json.loads(content)
            is_on = doc["is_on"]
            level = doc.get("confirmed_at_level")
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            LOGGER.warning("Ignoring corrupt state file %s: %s", self.path, exc)
            return None

        if not isinstance(is_on, bool) or not (level is None or isinstance(level, int)):
            LOGGER.warning("Ignoring state file %s with unexpected types", self.path)
            return None
        return ConfirmedState(is_on=is_on, confirmed_at_level=level)

    def write_confirmed_state(self, state: ConfirmedState) -> None:
        doc = {"is_on": state.is_on, "confirmed_at_level": state.confirmed_at_level}
        tmp_path = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(doc), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StateStoreError(f"Could not write state file {self.path}: {exc}") from exc

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StateStoreError(f"Could not remove state file {self.path}: {exc}") from exc
