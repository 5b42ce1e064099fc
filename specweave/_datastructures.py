"""
Request-side data structures.

Provides:
- MultiDict: repeated keys for query strings
- Headers: case-insensitive view over raw ASGI header pairs
- ParsedContentType: media type plus parameters
- parse_cookie_header: cookie header to a plain mapping
"""

from __future__ import annotations

from dataclasses import dataclass, field
from http.cookies import CookieError, SimpleCookie
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union


# ============================================================================
# MultiDict
# ============================================================================

class MultiDict(Mapping[str, List[str]]):
    """
    Read-only mapping of key to every value given for it.

    ``get`` returns the first value; ``get_all`` the full list. Parameter
    binding needs both, since exploded query parameters repeat their key.
    """

    def __init__(self, items: Optional[Union[List[Tuple[str, str]], Mapping[str, Union[str, List[str]]]]] = None):
        self._data: Dict[str, List[str]] = {}
        if not items:
            return
        if isinstance(items, Mapping):
            for key, value in items.items():
                self._data[key] = list(value) if isinstance(value, (list, tuple)) else [value]
        else:
            for key, value in items:
                self._data.setdefault(key, []).append(value)

    def __getitem__(self, key: str) -> List[str]:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MultiDict({self._data!r})"

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        values = self._data.get(key)
        return values[0] if values else default

    def get_all(self, key: str) -> List[str]:
        return list(self._data.get(key, []))


# ============================================================================
# Headers
# ============================================================================

@dataclass
class Headers:
    """
    Case-insensitive access to raw ``(bytes, bytes)`` header pairs.
    """

    raw: List[Tuple[bytes, bytes]] = field(default_factory=list)
    _index: Dict[str, List[str]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        self._index = {}
        for name, value in self.raw:
            key = name.decode("latin-1").lower()
            self._index.setdefault(key, []).append(value.decode("latin-1"))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self._index.get(name.lower())
        return values[0] if values else default

    def get_all(self, name: str) -> List[str]:
        return list(self._index.get(name.lower(), []))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._index

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(f"Header '{name}' not found")
        return value

    def items(self) -> Iterator[Tuple[str, str]]:
        for name, value in self.raw:
            yield name.decode("latin-1"), value.decode("latin-1")


# ============================================================================
# Content type
# ============================================================================

@dataclass
class ParsedContentType:
    """Parsed Content-Type header."""

    media_type: str
    params: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, content_type: Optional[str]) -> Optional["ParsedContentType"]:
        if not content_type:
            return None

        parts = content_type.split(";")
        params = {}
        for part in parts[1:]:
            if "=" in part:
                key, value = part.split("=", 1)
                params[key.strip().lower()] = value.strip().strip('"')
        return cls(media_type=parts[0].strip().lower(), params=params)

    @property
    def charset(self) -> str:
        return self.params.get("charset", "utf-8")

    @property
    def is_json(self) -> bool:
        media = self.media_type
        return media == "application/json" or media.endswith("+json")


def parse_cookie_header(header: Optional[str]) -> Dict[str, str]:
    """Parse a Cookie header; malformed headers yield no cookies."""
    if not header:
        return {}
    cookie = SimpleCookie()
    try:
        cookie.load(header)
    except CookieError:
        return {}
    return {key: morsel.value for key, morsel in cookie.items()}
