from __future__ import annotations
from typing import Hashable, Iterable, Iterator, List, Sequence, Set, Tuple, TypeVar

T = TypeVar("T")
H = TypeVar("H", bound=Hashable)


def power_set(items: Sequence[T]) -> Iterator[Tuple[T, ...]]:
    """
    Yields every subset of items, ordered by subset bitmask.
    Subset b holds the items at the positions of the bits set in b.
    """
    n = len(items)
    for b in range(1 << n):
        yield tuple(items[i] for i in range(n) if (b >> i) & 1)


def merge_sets(sets: Iterable[Iterable[H]]) -> List[Set[H]]:
    """
    Merges sets sharing at least one element (transitively).
    A merged group takes the position of the first group it absorbed.
    """
    merged: List[Set[H]] = []
    for s in sets:
        group = set(s)
        overlapping = [i for i, m in enumerate(merged) if m & group]
        if not overlapping:
            merged.append(group)
            continue
        for i in overlapping:
            group |= merged[i]
        merged[overlapping[0]] = group
        for i in reversed(overlapping[1:]):
            del merged[i]
    return merged
