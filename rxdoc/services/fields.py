from __future__ import annotations

import re
from typing import Any, Iterable, List, Mapping, Optional, Sequence


# --------------------- Alias-chain resolution ---------------------

def is_empty(value: Any) -> bool:
    """None and blank strings are empty. ``False`` and ``0`` are values."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def first_non_empty(candidates: Iterable[Any], fallback: Any = None) -> Any:
    """Return the first non-empty candidate, in the order given, else ``fallback``."""
    for candidate in candidates:
        if not is_empty(candidate):
            return candidate
    return fallback


def get_path(record: Any, path: str) -> Any:
    """Read a dotted key path (``testRequest.selectedTests``) from nested dicts."""
    current = record
    for key in path.split('.'):
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def pick(record: Any, aliases: Sequence[str], fallback: Any = None) -> Any:
    """first_non_empty over ``record[alias]`` for each alias (dotted paths allowed)."""
    if not isinstance(record, Mapping):
        return fallback
    return first_non_empty((get_path(record, alias) for alias in aliases), fallback)


def pick_text(record: Any, aliases: Sequence[str], fallback: str = '') -> str:
    """Like ``pick`` but always returns a trimmed string."""
    value = pick(record, aliases, None)
    if value is None:
        return fallback
    text = str(value).strip()
    return text or fallback


def clean_text(value: Any) -> str:
    if value is None:
        return ''
    try:
        return str(value).strip()
    except Exception:
        return ''


def resolve_id(value: Any, keys: Sequence[str] = ('_id', 'id')) -> Optional[str]:
    """Identifier from a bare id (str/int) or a populated object carrying ``_id``/``id``."""
    if is_empty(value) or isinstance(value, bool):
        return None
    if isinstance(value, Mapping):
        return resolve_id(first_non_empty(value.get(k) for k in keys))
    if isinstance(value, (str, int)):
        text = str(value).strip()
        return text or None
    return None


def resolve_name(value: Any) -> str:
    """Display name from a bare string or a populated person object."""
    if isinstance(value, Mapping):
        return pick_text(value, ('name', 'fullName', 'displayName'))
    return clean_text(value)


# --------------------- List-shape tolerance ---------------------

_SPLIT_RE = re.compile(r'[\n,;]+')


def coerce_sequence(value: Any, *, split_text: bool = False) -> List[Any]:
    """Coerce a list-ish value into an ordered list.

    Lists/tuples pass through, a keyed object becomes its values in insertion
    order, a scalar becomes a one-element list and absent becomes empty. With
    ``split_text`` a string is split on newlines, commas and semicolons.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, Mapping):
        return list(value.values())
    if isinstance(value, str):
        if split_text:
            return [seg.strip() for seg in _SPLIT_RE.split(value) if seg.strip()]
        return [value] if value.strip() else []
    return [value]


def has_entries(value: Any) -> bool:
    """True for non-empty lists/dicts and non-blank scalars."""
    if isinstance(value, (list, tuple, Mapping)):
        return len(value) > 0
    return not is_empty(value)


# --------------------- Recursive container unwrap ---------------------

def unwrap_containers(value: Any, container_keys: Sequence[str], *, keep_scalars: bool = False) -> List[Any]:
    """Flatten records nested under container keys into one ordered list.

    Every dict met is emitted and each of its ``container_keys`` is unwrapped
    in turn; lists are walked element by element. Scalars are emitted only
    with ``keep_scalars``. Each dict/list is visited once, so self-referencing
    payloads terminate.
    """
    out: List[Any] = []
    seen: set[int] = set()

    def _walk(node: Any) -> None:
        if node is None:
            return
        if isinstance(node, (list, tuple, Mapping)):
            marker = id(node)
            if marker in seen:
                return
            seen.add(marker)
        if isinstance(node, (list, tuple)):
            for element in node:
                _walk(element)
            return
        if isinstance(node, Mapping):
            out.append(node)
            for key in container_keys:
                nested = node.get(key)
                if isinstance(nested, (list, tuple, Mapping)):
                    _walk(nested)
            return
        if keep_scalars and not is_empty(node):
            out.append(node)

    _walk(value)
    return out
