"""
Strategy state persistence.

The engine saves a snapshot at defined lifecycle points (start, stop,
after each rebalance and close) through an injected StateStore.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any

import orjson


logger = logging.getLogger(__name__)

STATE_VERSION = 1


class JsonFileStateStore:
    """
    StateStore writing one JSON document with orjson.

    Writes go to a temporary file that is renamed over the target, so a
    crash mid-write never leaves a truncated state file.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        """Location of the state file."""
        return self._path

    def load(self) -> dict[str, Any] | None:
        """
        Load the last saved state.

        Returns:
            State dict, or None when no usable state exists.
        """
        if not self._path.exists():
            return None

        try:
            data = orjson.loads(self._path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as e:
            logger.error(f"Could not read state file {self._path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.error(f"Ignoring state file {self._path}: not a JSON object")
            return None

        if data.get("version") != STATE_VERSION:
            logger.warning(
                f"Ignoring state file {self._path}: version {data.get('version')} != {STATE_VERSION}"
            )
            return None

        return data

    def save(self, state: dict[str, Any]) -> None:
        """Persist a state snapshot atomically."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = orjson.dumps(
            {**state, "version": STATE_VERSION},
            option=orjson.OPT_INDENT_2,
        )
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_bytes(payload)
        os.replace(tmp, self._path)
        logger.debug(f"State saved to {self._path} ({len(payload)} bytes)")


class InMemoryStateStore:
    """StateStore keeping the snapshot in memory."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._state = copy.deepcopy(initial) if initial is not None else None
        self.save_count = 0

    def load(self) -> dict[str, Any] | None:
        return copy.deepcopy(self._state)

    def save(self, state: dict[str, Any]) -> None:
        self._state = copy.deepcopy(state)
        self.save_count += 1
