"""Normalize the provider's ``symbol`` field into a ticker and description.

The field arrives in several shapes depending on the endpoint and on how
it was stored:

- a nested object (``{"symbol": {"symbol": "AAPL", "description": ...}}``)
- a flat object (``{"symbol": "AAPL", "description": ...}``)
- a list whose first element is one of the above
- JSON text of any of the above
- legacy serialized-object text such as
  ``{symbol=AAPL, description=Apple Inc., currencies=[{code=USD}, ...}``
- a bare ticker string

Each value is classified into a :class:`SymbolForm` first and handled by
the matching branch, so adding a shape means adding one case.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

DEFAULT_SYMBOL = "N/A"
# Deeper nesting than this is treated as unusable
MAX_NESTING = 32

# ", key=" after an unterminated list closes that list
_KEY_AFTER_SPACE = re.compile(r" [A-Za-z_][\w.\-]*=")
# Top-level pair separator: ", key="
_KEY_AHEAD = re.compile(r"\s*[A-Za-z_][\w.\-]*=")


@dataclass(frozen=True)
class SymbolDescriptor:
    """Ticker symbol plus human-readable description."""

    symbol: str = DEFAULT_SYMBOL
    description: str = ""


class SymbolForm(str, Enum):
    """Shape of a raw symbol value."""

    EMPTY = "empty"
    LIST = "list"
    OBJECT = "object"
    JSON_TEXT = "json_text"
    LEGACY_TEXT = "legacy_text"
    PLAIN_TEXT = "plain_text"


@dataclass(frozen=True)
class SymbolField:
    """A raw symbol value tagged with its form.

    For the text forms ``value`` holds the already-parsed structure.
    """

    form: SymbolForm
    value: Any = None


def classify_symbol(value: Any) -> SymbolField:
    """Tag a raw symbol value with its :class:`SymbolForm`."""
    if value is None:
        return SymbolField(SymbolForm.EMPTY)
    if isinstance(value, (list, tuple)):
        return SymbolField(SymbolForm.LIST, list(value))
    if isinstance(value, dict):
        return SymbolField(SymbolForm.OBJECT, value)
    if not isinstance(value, str):
        return SymbolField(SymbolForm.EMPTY)

    text = value.strip()
    if not text:
        return SymbolField(SymbolForm.EMPTY)
    try:
        parsed = json.loads(text)
    except (ValueError, RecursionError):
        pass
    else:
        if isinstance(parsed, (dict, list)):
            return SymbolField(SymbolForm.JSON_TEXT, parsed)
        if not isinstance(parsed, str):
            # null, numbers and booleans carry no ticker
            return SymbolField(SymbolForm.EMPTY)
        text = parsed.strip()
    if text.startswith("["):
        return SymbolField(SymbolForm.LEGACY_TEXT, parse_legacy_list(text))
    if text.startswith("{"):
        return SymbolField(SymbolForm.LEGACY_TEXT, parse_legacy_object(text))
    return SymbolField(SymbolForm.PLAIN_TEXT, text)


def extract_symbol(value: Any, depth: int = 0) -> SymbolDescriptor:
    """Extract ``(symbol, description)`` from any supported shape.

    Never raises; unusable input, including anything nested more than
    ``MAX_NESTING`` levels deep, yields ``SymbolDescriptor("N/A", "")``.
    """
    if depth > MAX_NESTING:
        return SymbolDescriptor()
    field = classify_symbol(value)

    if field.form is SymbolForm.EMPTY:
        return SymbolDescriptor()
    if field.form is SymbolForm.LIST:
        if not field.value:
            return SymbolDescriptor()
        return extract_symbol(field.value[0], depth + 1)
    if field.form in (SymbolForm.JSON_TEXT, SymbolForm.LEGACY_TEXT):
        # Parsed text is a list or dict; only those two recurse further
        if isinstance(field.value, (dict, list)):
            return extract_symbol(field.value, depth + 1)
        return SymbolDescriptor()
    if field.form is SymbolForm.PLAIN_TEXT:
        return SymbolDescriptor(symbol=field.value)
    return _from_object(field.value, depth)


def _from_object(obj: dict, depth: int) -> SymbolDescriptor:
    if depth > MAX_NESTING:
        return SymbolDescriptor()
    symbol = obj.get("symbol")
    description = obj.get("description")

    if isinstance(symbol, dict):
        inner_symbol = symbol.get("symbol")
        if isinstance(inner_symbol, dict):
            return _from_object(symbol, depth + 1)
        symbol, description = inner_symbol, symbol.get("description")

    if not isinstance(symbol, str) or not symbol.strip():
        return SymbolDescriptor()
    return SymbolDescriptor(
        symbol=symbol.strip(),
        description=description.strip() if isinstance(description, str) else "",
    )


# -----------------------------------------------------------------------------
# Legacy serialized-object text
# -----------------------------------------------------------------------------


def parse_legacy_object(text: str, depth: int = 0) -> dict[str, Any]:
    """Parse ``{k1=v1, k2={...}, k3=[...]}`` text into a dict.

    Nested braces and brackets are tracked with a stack. The legacy
    serializer sometimes drops the closing ``]`` of a list-valued field;
    inside an open list, a ``, key=`` sequence ends that list so the rest
    of the record is not swallowed into it. Commas not followed by
    ``key=`` belong to the current value (``description=Apple, Inc.``).
    Malformed text yields whatever pairs could be recovered. Values nested
    more than ``MAX_NESTING`` levels deep become ``None``.
    """
    text = text.strip()
    if text.startswith("{"):
        text = text[1:]
        if text.endswith("}"):
            text = text[:-1]

    result: dict[str, Any] = {}
    for chunk in _split_pairs(text):
        key, sep, raw_value = chunk.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        result[key] = _parse_legacy_value(raw_value.strip(), depth + 1)
    return result


def parse_legacy_list(text: str, depth: int = 0) -> list[Any]:
    """Parse ``[item, item, ...]`` text; a missing ``]`` is tolerated."""
    text = text.strip()
    if text.startswith("["):
        text = text[1:]
        if text.endswith("]"):
            text = text[:-1]
    return [
        _parse_legacy_value(item.strip(), depth + 1) for item in _split_items(text) if item.strip()
    ]


def _parse_legacy_value(raw: str, depth: int) -> Any:
    if raw.startswith(("{", "[")) and depth > MAX_NESTING:
        return None
    if raw.startswith("{"):
        return parse_legacy_object(raw, depth)
    if raw.startswith("["):
        return parse_legacy_list(raw, depth)
    if raw == "null":
        return None
    return raw


def _close(stack: list[str], opener: str) -> None:
    """Pop up to and including the nearest ``opener``, if there is one."""
    if opener not in stack:
        return
    while stack:
        if stack.pop() == opener:
            return


def _split_pairs(text: str) -> list[str]:
    chunks: list[str] = []
    stack: list[str] = []
    start = 0
    for i, ch in enumerate(text):
        if ch in "{[":
            stack.append(ch)
        elif ch == "}":
            _close(stack, "{")
        elif ch == "]":
            _close(stack, "[")
        elif ch == ",":
            if stack and stack[-1] == "[" and _KEY_AFTER_SPACE.match(text, i + 1):
                # Unterminated list: drop open brackets back to the enclosing brace
                while stack and stack[-1] == "[":
                    stack.pop()
            if not stack and _KEY_AHEAD.match(text, i + 1):
                chunks.append(text[start:i])
                start = i + 1
    chunks.append(text[start:])
    return chunks


def _split_items(text: str) -> list[str]:
    items: list[str] = []
    stack: list[str] = []
    start = 0
    for i, ch in enumerate(text):
        if ch in "{[":
            stack.append(ch)
        elif ch == "}":
            _close(stack, "{")
        elif ch == "]":
            _close(stack, "[")
        elif ch == "," and not stack:
            items.append(text[start:i])
            start = i + 1
    items.append(text[start:])
    return items
