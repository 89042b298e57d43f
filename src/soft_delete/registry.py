"""
Skip Registry

Entity names exempt from every soft-delete rewrite. Built once from settings
and never mutated afterwards.
"""

from typing import Iterable, Iterator, Optional


class SkipRegistry:
    """Immutable, case-insensitive set of entity names"""

    __slots__ = ("_names",)

    def __init__(self, names: Iterable[str] = ()):
        self._names = frozenset(name.strip().lower() for name in names if name and name.strip())

    def __contains__(self, name: Optional[str]) -> bool:
        if not name:
            return False
        return name.lower() in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._names))

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"SkipRegistry({sorted(self._names)!r})"
