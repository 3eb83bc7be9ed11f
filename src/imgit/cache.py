"""Cache store: disk-backed key/value categories shared by the transform phases.

Each registered category is persisted as ``<root>/<category>.json`` holding a
flat JSON object. The store is loaded once when a pipeline run starts and
saved once when it ends; writes in between are in-memory only.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from imgit.errors import ConfigurationError

log = logging.getLogger(__name__)

#: Category owned by the probe phase: source path -> {"width", "height"}.
SIZE = "size"


class CacheStore:
    """Maps category names to mutable key/value dictionaries.

    Last-writer-wins per key; a save overwrites the whole category file with
    the in-memory state. Concurrency protection is handled by the callers via
    single-flight locks.
    """

    def __init__(self, root: str | Path, categories: tuple[str, ...] = (SIZE,)) -> None:
        """Create an empty store rooted at *root* with the given categories."""
        self.root = Path(root)
        self._data: dict[str, dict[str, Any]] = {}
        for name in categories:
            self.register(name)

    def register(self, category: str) -> dict[str, Any]:
        """Ensure *category* exists and return its mapping."""
        if not category or "/" in category or "\\" in category:
            raise ConfigurationError(
                f"Invalid cache category name: {category!r}",
                hint="Use a plain name such as 'size' or 'youtube'.",
            )
        return self._data.setdefault(category, {})

    def category(self, name: str) -> dict[str, Any]:
        """Return the mapping for a registered category."""
        try:
            return self._data[name]
        except KeyError:
            raise ConfigurationError(
                f"Cache category {name!r} is not registered",
                hint="Register it with CacheStore.register() or via a plugin's cache names.",
            ) from None

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(self._data)

    def path_for(self, category: str) -> Path:
        return self.root / f"{category}.json"

    def load(self) -> None:
        """Read every registered category from disk; missing files leave it empty."""
        for name in self._data:
            path = self.path_for(name)
            if not path.exists():
                continue
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                log.warning("Ignoring unreadable cache file %s: %s", path, exc)
                continue
            if not isinstance(data, dict):
                log.warning("Ignoring cache file %s: expected a JSON object", path)
                continue
            self._data[name] = data
            log.debug("Loaded %d %s cache entries from %s", len(data), name, path)

    def save(self) -> None:
        """Write every registered category to disk, creating the root if needed."""
        self.root.mkdir(parents=True, exist_ok=True)
        for name, data in self._data.items():
            path = self.path_for(name)
            path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            log.debug("Saved %d %s cache entries to %s", len(data), name, path)
