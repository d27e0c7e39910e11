"""Request signing for the SnapTrade REST API.

Every call carries a ``Signature`` header: the Base64 HMAC-SHA256 of a
compact JSON object ``{"content": ..., "path": ..., "query": ...}``
keyed with the consumer secret. The server rebuilds the same object
from the request it receives, so the serialized bytes must match
exactly: key order, separators, and ``null`` vs ``{}`` for the body.
"""

import base64
import hashlib
import hmac
import json
from typing import Any
from urllib.parse import quote

# Characters left unescaped by JavaScript's encodeURIComponent, which the
# server uses to rebuild the query string it verifies against.
_QUERY_SAFE_CHARS = "!*'()"


def _encode_component(value: str) -> str:
    return quote(value, safe=_QUERY_SAFE_CHARS)


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def canonicalize_query(params: dict[str, Any] | None) -> str:
    """Build the sorted, percent-encoded query string used for signing.

    Keys are sorted by code point (the same order as UTF-8 bytes), so the
    result never depends on locale or on the insertion order of ``params``.
    ``None`` values are dropped.

    Args:
        params: Query parameters.

    Returns:
        ``key=value`` pairs joined with ``&`` (empty string for no params).
    """
    if not params:
        return ""
    pairs = []
    for key in sorted(str(k) for k in params):
        value = params[key]
        if value is None:
            continue
        pairs.append(f"{_encode_component(key)}={_encode_component(_query_value(value))}")
    return "&".join(pairs)


def build_signature_payload(content: Any, path: str, query: str) -> bytes:
    """Serialize the canonical signing object to UTF-8 bytes.

    ``content`` is ``None`` for requests without a body; an empty dict is
    kept as ``{}``. Nested body keys keep their insertion order.
    """
    payload = {"content": content, "path": path, "query": query}
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sign_request(secret: str, content: Any, path: str, query: str) -> str:
    """Compute the Base64 HMAC-SHA256 request signature.

    Args:
        secret: The consumer secret.
        content: Request body (``None`` for GET/DELETE).
        path: Full request path, e.g. ``/api/v1/accounts``.
        query: Output of :func:`canonicalize_query`.

    Returns:
        The value for the ``Signature`` header.
    """
    digest = hmac.new(
        secret.encode("utf-8"),
        build_signature_payload(content, path, query),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")
