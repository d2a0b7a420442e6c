"""
Durable user preferences (e.g. the voice mute toggle).

Stored as a small JSON document so preferences survive across sessions.
"""

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class PreferenceStore:
    """JSON-file backed key/value store, loaded once and written on change."""

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        self._values: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read preferences from {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Update a value and write the store to disk synchronously."""
        self._values[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(".tmp")
            tmp_path.write_text(json.dumps(self._values, indent=2), encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as e:
            logger.warning(f"Could not save preferences to {self.path}: {e}")
