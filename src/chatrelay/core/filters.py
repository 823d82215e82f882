"""
Sender filtering for chatrelay

IgnoreList holds display names whose game chat is never relayed.
DuplicateFilter is an opt-in, caller-side layer that drops repeated text
within one producer step (several local sessions observing the same line).
"""

from typing import Iterable, Iterator, Set


class IgnoreList:
    """Ordered, immutable set of display names (case-sensitive)"""

    def __init__(self, names: Iterable[str] = ()):
        # dict.fromkeys keeps first-seen order and drops repeats
        self._names = tuple(dict.fromkeys(names))
        self._lookup = frozenset(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._lookup

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, IgnoreList):
            return self._names == other._names
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._names)

    def __repr__(self) -> str:
        return f"IgnoreList({list(self._names)!r})"


def is_ignored(name: str, ignore_list: IgnoreList) -> bool:
    """Exact-match membership test"""
    return name in ignore_list


class DuplicateFilter:
    """Remembers texts seen since the last ``reset``"""

    def __init__(self):
        self._seen: Set[str] = set()

    def reset(self):
        self._seen.clear()

    def seen(self, text: str) -> bool:
        """Return True if ``text`` was already seen, recording it otherwise"""
        if text in self._seen:
            return True
        self._seen.add(text)
        return False

    def __len__(self) -> int:
        return len(self._seen)
