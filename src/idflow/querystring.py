"""Deterministic query-string encoding and decoding.

:func:`to_query_string` keeps the caller's key order, so the authorize URL
and the session-info URL are byte-for-byte reproducible, and drops keys whose
value is ``None``.

:func:`parse_query_string` is its exact inverse when it is told the type of
each non-string value through ``types``. The ``coerce`` flag guesses types
instead and is lossy: a string such as ``"1800"`` or ``"true"`` comes back
as an ``int`` or a ``bool``.

Example::

    >>> to_query_string({"client_id": "abc", "max_age": 3600, "sso": True})
    'client_id=abc&max_age=3600&sso=true'
    >>> parse_query_string("client_id=abc&max_age=3600&sso=true",
    ...                    types={"max_age": int, "sso": bool})
    {'client_id': 'abc', 'max_age': 3600, 'sso': True}
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Optional, Union
from urllib.parse import quote, unquote

Scalar = Union[str, int, bool]

_INT_RE = re.compile(r"-?(0|[1-9][0-9]*)")


def _encode_value(value: Scalar) -> str:
    # bool is checked first: it is a subclass of int
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def to_query_string(params: Mapping[str, Any]) -> str:
    """Encode *params* as a URL query string, preserving key order.

    Keys and values are percent-encoded with no safe characters, so a space
    becomes ``%20`` and ``/`` becomes ``%2F``.

    Args:
        params: Ordered mapping of string keys to strings, integers or
            booleans. Entries whose value is ``None`` are omitted.

    Returns:
        The encoded query string without a leading ``?``.
    """
    return "&".join(
        f"{quote(str(key), safe='')}={quote(_encode_value(value), safe='')}"
        for key, value in params.items()
        if value is not None
    )


def decode_value(value: str, kind: type) -> Scalar:
    """Read one decoded wire value back as *kind* (``str``, ``int`` or ``bool``).

    Only the spellings :func:`to_query_string` produces are accepted:
    ``true``/``false`` for booleans and plain decimal literals for integers
    (no sign ``+``, no whitespace, no leading zeros, no ``_``).

    Raises:
        ValueError: *value* is not a valid spelling of *kind*.
    """
    if kind is bool:
        if value not in ("true", "false"):
            raise ValueError(f"not a boolean: {value!r}")
        return value == "true"
    if kind is int:
        if not _INT_RE.fullmatch(value):
            raise ValueError(f"not an integer: {value!r}")
        return int(value)
    if kind is str:
        return value
    raise TypeError(f"unsupported query value type: {kind!r}")


def _guess(value: str) -> Scalar:
    for kind in (bool, int):
        try:
            return decode_value(value, kind)
        except ValueError:
            continue
    return value


def parse_query_string(
    query: str,
    coerce: bool = False,
    types: Optional[Mapping[str, type]] = None,
) -> dict[str, Any]:
    """Decode a query string or URL fragment into a dict.

    A leading ``?`` or ``#`` is ignored. ``+`` is read as a space. When a
    key repeats, the last occurrence wins. A pair without ``=`` maps to an
    empty string.

    Args:
        query: The encoded string.
        coerce: Guess types for keys not listed in *types*: ``true``/``false``
            become booleans and decimal literals become ``int``. Lossy for
            strings that merely look like numbers or booleans.
        types: Expected type of each key. Listed keys are decoded with
            :func:`decode_value`; the rest stay strings unless *coerce* is set.

    Returns:
        A dict in first-seen key order.

    Raises:
        ValueError: A key listed in *types* carries an invalid value.
    """
    if query[:1] in ("?", "#"):
        query = query[1:]
    types = types or {}

    result: dict[str, Any] = {}
    for pair in query.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        key = unquote(key.replace("+", " "))
        decoded = unquote(value.replace("+", " "))
        if key in types:
            result[key] = decode_value(decoded, types[key])
        elif coerce:
            result[key] = _guess(decoded)
        else:
            result[key] = decoded
    return result
