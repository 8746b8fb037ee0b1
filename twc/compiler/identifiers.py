"""
Identifier and literal helpers for emitted TypeScript.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Set

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
_WORD_SPLIT = re.compile(r"[^A-Za-z0-9]+")
_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_PLAIN_KEY = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


def sanitize_identifier(value: str) -> str:
    """Replace every non-alphanumeric character with ``_``."""

    return _NON_ALNUM.sub("_", value)


def safe_identifier(value: str, prefix: str = "_") -> str:
    candidate = sanitize_identifier(value) or prefix
    if candidate[0].isdigit():
        candidate = f"{prefix}{candidate}"
    return candidate


def _words(value: str) -> List[str]:
    spaced = _CAMEL_BOUNDARY.sub(r"\1 \2", value)
    return [word for word in _WORD_SPLIT.split(spaced) if word]


def to_camel_case(value: str) -> str:
    words = _words(value)
    if not words:
        return ""
    head, *tail = words
    return head.lower() + "".join(word[:1].upper() + word[1:].lower() for word in tail)


def to_pascal_case(value: str) -> str:
    return "".join(word[:1].upper() + word[1:].lower() for word in _words(value))


def to_kebab_case(value: str) -> str:
    return "-".join(word.lower() for word in _words(value))


def workflow_function_name(name: str) -> str:
    return safe_identifier(f"{to_camel_case(name) or 'workflow'}Workflow", prefix="wf")


def ts_string(value: str) -> str:
    """Single-quoted TypeScript string literal."""

    escaped = (
        value.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f"'{escaped}'"


def ts_template(value: str) -> str:
    """Backtick template literal; ``${...}`` interpolations are kept."""

    return "`" + value.replace("\\", "\\\\").replace("`", "\\`") + "`"


def ts_value(value: Any) -> str:
    """Serialize a JSON-compatible value as a TypeScript expression."""

    return json.dumps(value, sort_keys=True)


def ts_object_key(key: str) -> str:
    return key if _PLAIN_KEY.match(key) else ts_string(key)


class IdentifierAllocator:
    """
    Hands out unique identifiers within one generated scope.

    Distinct source names that sanitize to the same identifier get ``_2``,
    ``_3``, ... suffixes; asking again for the same source name returns the
    identifier it was first given.
    """

    def __init__(self) -> None:
        self._taken: Set[str] = set()
        self._assigned: Dict[str, str] = {}

    def allocate(self, source: str, base: str) -> str:
        if source in self._assigned:
            return self._assigned[source]
        candidate = base
        counter = 2
        while candidate in self._taken:
            candidate = f"{base}_{counter}"
            counter += 1
        self._taken.add(candidate)
        self._assigned[source] = candidate
        return candidate
