"""
In-memory realtime data store.

A JSON tree addressed by slash paths, in the style of a realtime database:
values are nested dicts with JSON scalars or lists at the leaves, and writing
None to a path deletes it.

Design decisions:
- Every write snapshots the tree before and after and reports
  (path, before, after) to registered listeners
- Listeners are called synchronously but must not block; the trigger
  runtime only schedules invocations, so writers never wait on handlers
- A listener that raises is logged and skipped; writes return what the
  other listeners returned
- Empty parent nodes are pruned after deletes
- Optionally seeded from a JSON fixture file (seeding fires no triggers)
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from triggers.paths import join_path, split_path, value_at

logger = logging.getLogger("data_store")


# Called with (written_path, tree_before, tree_after)
WriteListener = Callable[[str, Any, Any], Any]


class RealtimeDataStore:
    """
    Path-addressed JSON tree that reports every write to its listeners.

    Example usage:
        store = RealtimeDataStore()
        store.add_listener(runtime.notify_write)

        store.set("/messages/abc", {"text": "hello"})
        store.update("/messages/abc", {"read": True})
        store.delete("/messages/abc")
    """

    def __init__(self, seed_file: Optional[Path] = None):
        """
        Initialize the data store.

        Args:
            seed_file: Optional JSON file whose object becomes the initial tree.
        """
        self._root: dict[str, Any] = {}
        self._listeners: list[WriteListener] = []
        if seed_file is not None:
            self.load_json(seed_file)

    # =========================================================================
    # Listeners
    # =========================================================================

    def add_listener(self, listener: WriteListener) -> None:
        """Register a callable to be told about every write."""
        self._listeners.append(listener)

    def has_listener(self, listener: WriteListener) -> bool:
        return listener in self._listeners

    def remove_listener(self, listener: WriteListener) -> bool:
        try:
            self._listeners.remove(listener)
            return True
        except ValueError:
            return False

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, path: str) -> Any:
        """
        Get a deep copy of the value at path, or None if nothing is stored there.
        """
        segments = split_path(path)
        return copy.deepcopy(value_at(self._root, segments))

    def exists(self, path: str) -> bool:
        return value_at(self._root, split_path(path)) is not None

    # =========================================================================
    # Writes
    # =========================================================================

    def set(self, path: str, value: Any) -> list[Any]:
        """
        Replace the value at path. Setting None deletes the node.

        Returns:
            What each listener returned for this write

        Raises:
            ValueError: If the path is invalid or value is not JSON-compatible
        """
        segments = split_path(path)
        _check_value(value)
        before = copy.deepcopy(self._root)

        if not segments:
            if value is not None and not isinstance(value, dict):
                raise ValueError("The root can only hold an object")
            self._root = copy.deepcopy(value) if value is not None else {}
        else:
            self._put(segments, copy.deepcopy(value))

        self._prune()
        return self._notify(join_path(segments), before)

    def update(self, path: str, values: Mapping[str, Any]) -> list[Any]:
        """
        Merge children into the node at path. Children set to None are deleted.

        Child keys may themselves be relative paths ("profile/name").
        """
        segments = split_path(path)
        if not isinstance(values, Mapping):
            raise ValueError("update() needs a mapping of child values")
        for key, value in values.items():
            if not split_path(key):
                raise ValueError(f"Invalid child key {key!r}")
            _check_value(value)
        before = copy.deepcopy(self._root)

        for key, value in values.items():
            self._put(segments + split_path(key), copy.deepcopy(value))

        self._prune()
        return self._notify(join_path(segments), before)

    def delete(self, path: str) -> list[Any]:
        """Delete the node at path (no-op trigger-wise if it did not exist)."""
        return self.set(path, None)

    def _put(self, segments: list[str], value: Any) -> None:
        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                if value is None:
                    return
                child = {}
                node[segment] = child
            node = child
        if value is None:
            node.pop(segments[-1], None)
        else:
            node[segments[-1]] = value

    def _prune(self) -> None:
        def prune(node: Any) -> Any:
            if not isinstance(node, dict):
                return node
            pruned = {}
            for key, child in node.items():
                child = prune(child)
                if child is None or child == {}:
                    continue
                pruned[key] = child
            return pruned

        self._root = prune(self._root)

    def _notify(self, path: str, before: Any) -> list[Any]:
        after = copy.deepcopy(self._root)
        logger.debug(f"Write to {path}")
        results = []
        for listener in list(self._listeners):
            try:
                results.append(listener(path, before, after))
            except Exception as e:
                # The write stays applied and the remaining listeners still run
                logger.error(f"Listener {getattr(listener, '__name__', listener)} failed for write to {path}: {e}")
        return results

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def load_json(self, path: Path) -> None:
        """Replace the whole tree with the object in a JSON file, without firing listeners."""
        with open(path, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Seed file must contain a JSON object: {path}")
        _check_value(data)
        self._root = data
        self._prune()
        logger.info(f"Loaded data store seed from {path}")

    def to_dict(self) -> dict[str, Any]:
        """Deep copy of the whole tree."""
        return copy.deepcopy(self._root)

    def clear(self) -> None:
        """Drop all data without firing listeners."""
        self._root = {}


def _check_value(value: Any) -> None:
    """Raise ValueError unless value is storable JSON."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return
    if isinstance(value, list):
        for item in value:
            _check_value(item)
        return
    if isinstance(value, dict):
        for key, child in value.items():
            if not isinstance(key, str):
                raise ValueError(f"Keys must be strings, got {key!r}")
            if not key or "/" in key:
                raise ValueError(f"Keys must be non-empty and must not contain '/': {key!r}")
            split_path(key)
            _check_value(child)
        return
    raise ValueError(f"Unsupported value type: {type(value).__name__}")

