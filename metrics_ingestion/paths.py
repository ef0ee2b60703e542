"""
Metrics Ingestion - JSON Path Resolution.

Dotted paths over decoded JSON documents:

- ``stats.viewCount``             nested object keys
- ``items.0.id``                  numeric component indexes an array
- ``items.#.statistics.viewCount`` ``#`` fans out over every array element,
                                  yielding a list of the matches
- ``items.#``                     trailing ``#`` yields the array length

A path that leads nowhere resolves to MISSING rather than raising.
"""

from typing import Any, List


class _Missing:
    """Sentinel for a path that resolves to nothing."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()

FAN_OUT = "#"


def split_path(path: str) -> List[str]:
    """
    Split a dotted path into components.

    Raises:
        ValueError: If the path is empty or has empty components
    """
    if not path or not isinstance(path, str):
        raise ValueError("Field path must be a non-empty string")
    components = path.split(".")
    if not all(components):
        raise ValueError(f"Field path contains empty components: {path!r}")
    return components


def resolve(document: Any, path: str) -> Any:
    """
    Resolve a dotted path against a decoded JSON document.

    Returns:
        The matched value, a list of matches for ``#`` paths,
        or MISSING when nothing matches
    """
    return _walk(document, split_path(path))


def _walk(current: Any, components: List[str]) -> Any:
    for position, component in enumerate(components):
        if current is None:
            return MISSING

        if component == FAN_OUT:
            if not isinstance(current, list):
                return MISSING
            rest = components[position + 1:]
            if not rest:
                return len(current)
            matches = []
            for element in current:
                found = _walk(element, rest)
                if found is not MISSING:
                    matches.append(found)
            return matches

        if isinstance(current, dict):
            if component not in current:
                return MISSING
            current = current[component]
        elif isinstance(current, list) and component.isdigit():
            index = int(component)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING

    return current
