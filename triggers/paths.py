"""
Data path handling for database triggers.

Paths are slash-separated keys into the realtime data tree ("/messages/abc").
A trigger pattern may contain wildcard segments written as "{name}"; a write
fires the trigger for every concrete node matching the pattern that the write
touched.

Examples:
    pattern = PathPattern("/messages/{id}")
    pattern.match("/messages/abc")           # {"id": "abc"}
    pattern.match("/messages/abc/title")     # None (deeper than the pattern)
    pattern.affected_paths("/messages/abc/title", before, after)
        # [("/messages/abc", {"id": "abc"})]
"""

import re
from typing import Any, Optional

_WILDCARD = re.compile(r"^\{([A-Za-z_][A-Za-z0-9_]*)\}$")


def split_path(path: str) -> list[str]:
    """
    Split a path into its segments, ignoring empty ones.

    Raises:
        ValueError: If a segment contains characters the data tree does not allow.
    """
    if not isinstance(path, str):
        raise ValueError(f"Path must be a string, got {type(path).__name__}")
    segments = [s for s in path.split("/") if s]
    for segment in segments:
        if any(c in segment for c in ".#$[]"):
            raise ValueError(f"Invalid character in path segment {segment!r}")
    return segments


def join_path(segments: list[str]) -> str:
    """Join segments into a normalized absolute path."""
    return "/" + "/".join(segments)


def normalize_path(path: str) -> str:
    return join_path(split_path(path))


def value_at(tree: Any, segments: list[str]) -> Any:
    """Return the value at segments in a nested dict tree, or None if absent."""
    node = tree
    for segment in segments:
        if not isinstance(node, dict):
            return None
        node = node.get(segment)
        if node is None:
            return None
    return node


class PathPattern:
    """A trigger path pattern such as "/messages/{id}"."""

    def __init__(self, raw: str):
        self.segments = [s for s in raw.split("/") if s]
        self.raw = join_path(self.segments)
        self.wildcards: list[str] = []
        for segment in self.segments:
            m = _WILDCARD.match(segment)
            if m:
                if m.group(1) in self.wildcards:
                    raise ValueError(f"Duplicate wildcard {segment} in {raw!r}")
                self.wildcards.append(m.group(1))
            elif "{" in segment or "}" in segment:
                raise ValueError(f"Malformed wildcard segment {segment!r} in {raw!r}")
            else:
                split_path(segment)
        if not self.segments:
            raise ValueError("Trigger pattern must not be the root path")

    def __repr__(self) -> str:
        return f"PathPattern({self.raw!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, PathPattern) and other.raw == self.raw

    def __hash__(self) -> int:
        return hash(self.raw)

    def _wildcard_name(self, index: int) -> Optional[str]:
        m = _WILDCARD.match(self.segments[index])
        return m.group(1) if m else None

    def match(self, path: str) -> Optional[dict[str, str]]:
        """
        Match a concrete path of exactly the pattern's depth.

        Returns:
            Wildcard bindings if the path matches, None otherwise.
        """
        parts = split_path(path)
        if len(parts) != len(self.segments):
            return None
        params: dict[str, str] = {}
        for i, part in enumerate(parts):
            name = self._wildcard_name(i)
            if name is not None:
                params[name] = part
            elif part != self.segments[i]:
                return None
        return params

    def affected_paths(
        self,
        written_path: str,
        before: Any,
        after: Any,
    ) -> list[tuple[str, dict[str, str]]]:
        """
        List the concrete pattern paths a write may have changed.

        Writes at or below a matching node map to that node. Writes above the
        pattern depth expand each wildcard over the child keys present before
        or after the write. Callers still compare before/after values to drop
        nodes that did not actually change.

        Args:
            written_path: The path that was written
            before: Whole data tree before the write
            after: Whole data tree after the write

        Returns:
            List of (concrete_path, params), sorted by path.
        """
        written = split_path(written_path)

        # Written path must agree with the pattern on the shared prefix
        for i, part in enumerate(written[: len(self.segments)]):
            if self._wildcard_name(i) is None and part != self.segments[i]:
                return []

        if len(written) >= len(self.segments):
            concrete = written[: len(self.segments)]
            return [(join_path(concrete), self.match(join_path(concrete)))]

        results: list[tuple[list[str], dict[str, str]]] = [(list(written), {})]
        for i, part in enumerate(written):
            name = self._wildcard_name(i)
            if name is not None:
                results[0][1][name] = part

        for i in range(len(written), len(self.segments)):
            name = self._wildcard_name(i)
            expanded: list[tuple[list[str], dict[str, str]]] = []
            for prefix, params in results:
                if name is None:
                    expanded.append((prefix + [self.segments[i]], params))
                    continue
                keys = set()
                for tree in (before, after):
                    node = value_at(tree, prefix)
                    if isinstance(node, dict):
                        keys.update(node.keys())
                for key in sorted(keys):
                    expanded.append((prefix + [key], {**params, name: key}))
            results = expanded

        return [(join_path(prefix), params) for prefix, params in results]
