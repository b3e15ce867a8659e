"""Global header storage and per-request header merging.

GlobalHeaders is an immutable, insertion-ordered, case-insensitive mapping of
header name to one or more values. Every mutation returns a new instance so a
snapshot handed to a request can never change underneath it.

merge_global_headers applies a GlobalHeaders snapshot to a request's headers:
- Single-value headers (see SINGLE_VALUE_HEADERS) already present on the
  request are left alone; otherwise only the first global value is used
- Every other header accumulates: request values first, then global values
  in configured order
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping

import httpx


# Common header casing overrides for non-trivial capitalization
_SPECIAL_CASES: dict[str, str] = {
    "www-authenticate": "WWW-Authenticate",
    "etag": "ETag",
    "dnt": "DNT",
    "te": "TE",
}

# Headers for which only one value is semantically valid (lower-cased)
SINGLE_VALUE_HEADERS: frozenset[str] = frozenset(
    {
        "authorization",
        "content-type",
        "content-length",
        "content-encoding",
        "host",
        "user-agent",
        "if-match",
        "if-none-match",
        "if-modified-since",
        "if-range",
        "range",
    }
)
SINGLE_VALUE_HEADERS_BYTES: frozenset[bytes] = frozenset(
    name.encode("ascii") for name in SINGLE_VALUE_HEADERS
)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/133.0.0.0 Safari/537.36"
)


def canonicalize_header_name(name: str) -> str:
    """Return a canonical HTTP-style header name.

    Examples:
    - "content-type" -> "Content-Type"
    - "user-agent" -> "User-Agent"
    - Applies overrides for known special cases like "ETag".
    """
    key = name.strip().lower()
    if key in _SPECIAL_CASES:
        return _SPECIAL_CASES[key]

    parts = [p for p in key.split("-") if p]
    return "-".join(p.capitalize() for p in parts)


def is_single_value_header(name: str) -> bool:
    """Whether only one value of ``name`` may be sent on a request."""
    return name.strip().lower() in SINGLE_VALUE_HEADERS


# RFC 7230 token
_TOKEN_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")


def _validated_name(name: str) -> str:
    if not isinstance(name, str) or not _TOKEN_RE.fullmatch(name.strip()):
        raise ValueError(f"Invalid header name: {name!r}")
    return name.strip()


def _validated_value(name: str, value: str) -> str:
    value = str(value)
    if any(char in value for char in "\r\n\x00"):
        raise ValueError(f"Invalid value for header {name!r}: {value!r}")
    return value


class GlobalHeaders:
    """Immutable, ordered, case-insensitive header multimap.

    Internally maps the lower-cased name to ``(canonical_name, values)``.
    Dict insertion order gives the iteration order used when merging.
    """

    __slots__ = ("_entries",)

    def __init__(
        self,
        headers: Mapping[str, str | Iterable[str]]
        | Iterable[tuple[str, str]]
        | None = None,
    ) -> None:
        entries: dict[str, tuple[str, tuple[str, ...]]] = {}
        if headers is not None:
            pairs: Iterable[tuple[str, str | Iterable[str]]] = (
                headers.items() if isinstance(headers, Mapping) else headers
            )
            for name, value in pairs:
                values = (value,) if isinstance(value, str) else tuple(value)
                for item in values:
                    _append(entries, name, item)
        self._entries = entries

    @classmethod
    def _from_entries(
        cls, entries: dict[str, tuple[str, tuple[str, ...]]]
    ) -> GlobalHeaders:
        instance = cls()
        instance._entries = entries
        return instance

    def with_set(self, name: str, value: str) -> GlobalHeaders:
        """Return a copy where ``name`` has the single value ``value``."""
        name = _validated_name(name)
        entries = dict(self._entries)
        value = _validated_value(name, value)
        entries[name.lower()] = (canonicalize_header_name(name), (value,))
        return self._from_entries(entries)

    def with_added(self, name: str, value: str) -> GlobalHeaders:
        """Return a copy with ``value`` appended to the values for ``name``."""
        entries = dict(self._entries)
        _append(entries, name, value)
        return self._from_entries(entries)

    def without(self, name: str) -> GlobalHeaders:
        """Return a copy with every value for ``name`` removed."""
        key = name.strip().lower()
        if key not in self._entries:
            return self
        entries = dict(self._entries)
        del entries[key]
        return self._from_entries(entries)

    def cleared(self) -> GlobalHeaders:
        return GlobalHeaders()

    def get(self, name: str, default: str | None = None) -> str | None:
        """Return the first value for ``name``."""
        entry = self._entries.get(name.strip().lower())
        return entry[1][0] if entry else default

    def get_list(self, name: str) -> list[str]:
        entry = self._entries.get(name.strip().lower())
        return list(entry[1]) if entry else []

    def items(self) -> Iterator[tuple[str, tuple[str, ...]]]:
        """Iterate ``(canonical_name, values)`` in insertion order."""
        return iter(self._entries.values())

    def multi_items(self) -> list[tuple[str, str]]:
        return [(name, value) for name, values in self.items() for value in values]

    def to_httpx(self) -> httpx.Headers:
        """Materialize as a mutable httpx.Headers copy."""
        return httpx.Headers(self.multi_items())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().lower() in self._entries

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GlobalHeaders):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self) -> int:
        return hash(tuple(self._entries.items()))

    def __repr__(self) -> str:
        return f"GlobalHeaders({self.multi_items()!r})"


def _append(
    entries: dict[str, tuple[str, tuple[str, ...]]], name: str, value: str
) -> None:
    name = _validated_name(name)
    value = _validated_value(name, value)
    key = name.lower()
    if key in entries:
        display, values = entries[key]
        entries[key] = (display, (*values, value))
    else:
        entries[key] = (canonicalize_header_name(name), (value,))


def merge_global_headers(
    headers: httpx.Headers, global_headers: GlobalHeaders
) -> httpx.Headers:
    """Return a new httpx.Headers with ``global_headers`` merged into ``headers``.

    ``headers`` is not modified. Request header order and casing are kept;
    global values are appended after them, encoded as UTF-8.

    Args:
        headers: Headers carried by the outgoing request
        global_headers: Snapshot of the configured global headers

    Returns:
        Merged copy of the request headers
    """
    merged: list[tuple[bytes, bytes]] = list(headers.raw)
    present = {key.lower() for key, _ in headers.raw}

    for name, values in global_headers.items():
        raw_name = name.encode("ascii")
        key = raw_name.lower()
        if key in SINGLE_VALUE_HEADERS_BYTES:
            # Request-level value always wins for single-value headers
            if key in present:
                continue
            merged.append((raw_name, values[0].encode("utf-8")))
        else:
            merged.extend((raw_name, value.encode("utf-8")) for value in values)
        present.add(key)

    return httpx.Headers(merged)
