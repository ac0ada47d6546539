"""Deduplication of findings merged from several providers."""

from __future__ import annotations

from typing import Callable, Hashable, Iterable, TypeVar

from quickscan.core.logger import get_logger
from quickscan.models.finding import Finding

logger = get_logger(__name__)

T = TypeVar("T")


class Deduplicator:
    """
    Order-preserving deduplication.

    Keeps the first occurrence of each key and drops later ones, so the
    merged result keeps provider completion order.
    """

    def __init__(self, key_func: Callable[[T], Hashable] = lambda item: item):
        """
        Initialize deduplicator.

        Args:
            key_func: Function to extract the comparison key from an item
        """
        self.key_func = key_func
        self._seen: set[Hashable] = set()

    def add(self, item: T) -> bool:
        """
        Add an item to seen set.

        Returns:
            True if item was new, False if already seen
        """
        key = self.key_func(item)
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def is_new(self, item: T) -> bool:
        return self.key_func(item) not in self._seen

    def deduplicate(self, items: Iterable[T]) -> list[T]:
        """
        Return the items not seen before, updating the seen set.

        Args:
            items: Items to deduplicate

        Returns:
            List of new (unseen) items
        """
        return [item for item in items if self.add(item)]

    @property
    def count(self) -> int:
        """Get number of seen keys."""
        return len(self._seen)

    def clear(self) -> None:
        self._seen.clear()


def merge_findings(*sources: Iterable[Finding]) -> list[Finding]:
    """
    Merge finding lists and drop duplicates.

    Two findings are duplicates when severity and title (case-insensitive)
    match; the first one wins.

    Args:
        *sources: Finding lists in merge order

    Returns:
        Merged and deduplicated list
    """
    all_items: list[Finding] = []
    for source in sources:
        all_items.extend(source)

    dedup: Deduplicator = Deduplicator(key_func=lambda f: f.dedup_key)
    unique = dedup.deduplicate(all_items)

    if len(unique) != len(all_items):
        logger.debug(
            "Deduplication complete",
            total=len(all_items),
            unique=len(unique),
            duplicates=len(all_items) - len(unique),
        )

    return unique
