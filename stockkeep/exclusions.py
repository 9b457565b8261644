import re
from typing import Iterable, Optional, Sequence

from .schemas import Item


class ExclusionMatcher:
    """
    Case-insensitive literal substring matcher over item IDs and display names.

    Matching is one-directional: a pattern must be contained in the value, never
    the other way round. Whitespace inside a pattern is matched literally.
    """

    def __init__(self, patterns: Sequence[str]):
        self.patterns = [p.strip() for p in patterns if p and p.strip()]
        self._compiled = [re.compile(re.escape(p), re.IGNORECASE) for p in self.patterns]

    def test(self, item_id: Optional[str], display_name: Optional[str] = None) -> bool:
        """Returns True when the row should be excluded."""
        for matcher in self._compiled:
            if item_id and matcher.search(item_id):
                return True
            if display_name and matcher.search(display_name):
                return True
        return False

    def filter_items(self, items: Iterable[Item]) -> list[Item]:
        """Keeps only the items that no pattern excludes."""
        return [item for item in items if not self.test(item.item_id, item.display_name)]

    def __bool__(self) -> bool:
        return bool(self._compiled)

    def __len__(self) -> int:
        return len(self._compiled)


def compile_exclusions(patterns: Optional[Sequence[str]]) -> ExclusionMatcher:
    return ExclusionMatcher(patterns or [])
