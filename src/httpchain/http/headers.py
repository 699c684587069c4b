"""
Case-insensitive, multi-valued HTTP header map.

Header names are case-insensitive (RFC 7230 section 3.2), so "Content-Type"
and "content-type" address the same entry. The spelling used when a header
is first stored is kept for serialization.
"""

from typing import Dict, Iterable, Iterator, List, MutableMapping, Optional, Tuple, Union


HeaderInput = Union[
    "Headers",
    MutableMapping[str, str],
    Iterable[Tuple[str, str]],
    None,
]


class Headers(MutableMapping[str, str]):
    """
    Header map keyed case-insensitively.

    Mapping access (`headers["Accept"]`) reads the first value and assigns
    a single value. `add()` appends, `values_of()` returns every value.

    Example:
        h = Headers({"Content-Type": "application/json"})
        h.get("content-type")           # "application/json"
        h.add("Set-Cookie", "a=1")
        h.add("Set-Cookie", "b=2")
        h.values_of("set-cookie")       # ["a=1", "b=2"]
        dict(h.items())                 # {..., "Set-Cookie": "a=1, b=2"}
    """

    def __init__(self, initial: HeaderInput = None):
        # lowercase name -> (display name, values)
        self._store: Dict[str, Tuple[str, List[str]]] = {}
        if initial is None:
            return
        if isinstance(initial, Headers):
            pairs = initial.raw_items()
        elif hasattr(initial, "items"):
            pairs = initial.items()
        else:
            pairs = initial
        for name, value in pairs:
            self.add(name, value)

    # -------------------------------------------------------------------------
    # MutableMapping protocol
    # -------------------------------------------------------------------------

    def __getitem__(self, name: str) -> str:
        return self._store[name.lower()][1][0]

    def __setitem__(self, name: str, value: str) -> None:
        self.set(name, value)

    def __delitem__(self, name: str) -> None:
        del self._store[name.lower()]

    def __iter__(self) -> Iterator[str]:
        for display, _ in self._store.values():
            yield display

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._store

    def __repr__(self) -> str:
        return f"Headers({dict(self.items())!r})"

    # -------------------------------------------------------------------------
    # Header-specific operations
    # -------------------------------------------------------------------------

    def get(self, name: str, default: Optional[str] = "") -> Optional[str]:  # type: ignore[override]
        """First value for `name`, or `default` (empty string) when absent."""
        entry = self._store.get(name.lower())
        return entry[1][0] if entry else default

    def set(self, name: str, value: str) -> None:
        """Replace every value of `name` with `value`."""
        key = name.lower()
        display = self._store[key][0] if key in self._store else name
        self._store[key] = (display, [str(value)])

    def add(self, name: str, value: str) -> None:
        """Append `value` to `name`, keeping existing values."""
        key = name.lower()
        if key in self._store:
            self._store[key][1].append(str(value))
        else:
            self._store[key] = (name, [str(value)])

    def delete(self, name: str) -> None:
        """Remove `name` if present."""
        self._store.pop(name.lower(), None)

    def values_of(self, name: str) -> List[str]:
        entry = self._store.get(name.lower())
        return list(entry[1]) if entry else []

    def items(self) -> Iterator[Tuple[str, str]]:  # type: ignore[override]
        """Yield (name, value) with multiple values joined by ", "."""
        for display, values in self._store.values():
            yield display, ", ".join(values)

    def raw_items(self) -> Iterator[Tuple[str, str]]:
        """Yield one (name, value) pair per stored value, for serialization."""
        for display, values in self._store.values():
            for value in values:
                yield display, value

    def copy(self) -> "Headers":
        clone = Headers()
        for display, values in self._store.values():
            clone._store[display.lower()] = (display, list(values))
        return clone
