"""Size-bounded snapshots of arbitrary call arguments."""

from collections.abc import Mapping, Set
from typing import Any

ELLIPSIS = "..."
CIRCULAR = "[Circular]"


def _function_label(value: Any) -> str:
    name = getattr(value, "__qualname__", None) or getattr(value, "__name__", None)
    return f"[Function: {name or type(value).__name__}]"


def _safe_repr(value: Any) -> str:
    try:
        if isinstance(value, (bytearray, memoryview)):
            return repr(bytes(value))
        return repr(value)
    except Exception:
        return f"[{type(value).__name__}]"


def _cap_string(text: str, max_string: int) -> str:
    if len(text) <= max_string:
        return text
    return text[:max_string] + ELLIPSIS


def truncate(
    value: Any,
    max_string: int = 1000,
    max_items: int = 100,
    max_depth: int = 5,
) -> Any:
    """Produce a JSON-serialisable, size-bounded copy of ``value``.

    Strings longer than ``max_string`` are cut and suffixed with "...",
    collections keep their first ``max_items`` elements followed by a "..."
    marker, nesting deeper than ``max_depth`` collapses to a type label,
    and objects already on the current path render as "[Circular]".

    Args:
        value: Anything passed to an instrumented operation
        max_string: Longest string kept
        max_items: Most elements kept per collection
        max_depth: Deepest nesting kept

    Returns:
        None, bool, int, float, str, list or dict built from ``value``
    """
    return _truncate(value, max_string, max_items, max_depth, 0, set())


def _truncate(
    value: Any,
    max_string: int,
    max_items: int,
    max_depth: int,
    depth: int,
    path: set[int],
) -> Any:
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return _cap_string(value, max_string)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _cap_string(_safe_repr(value), max_string)

    is_mapping = isinstance(value, Mapping)
    is_sequence = isinstance(value, (list, tuple, Set))
    if not (is_mapping or is_sequence):
        if callable(value):
            return _function_label(value)
        return _cap_string(_safe_repr(value), max_string)

    if id(value) in path:
        return CIRCULAR
    if depth >= max_depth:
        return f"[{type(value).__name__}]"

    path.add(id(value))
    try:
        if is_mapping:
            result: dict[str, Any] = {}
            for index, (key, item) in enumerate(value.items()):
                if index >= max_items:
                    result[ELLIPSIS] = ELLIPSIS
                    break
                result[_cap_string(str(key), max_string)] = _truncate(
                    item, max_string, max_items, max_depth, depth + 1, path
                )
            return result

        items: list[Any] = []
        for index, item in enumerate(value):
            if index >= max_items:
                items.append(ELLIPSIS)
                break
            items.append(
                _truncate(item, max_string, max_items, max_depth, depth + 1, path)
            )
        return items
    finally:
        path.discard(id(value))
