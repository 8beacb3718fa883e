from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")

MAX_PAGE_SIZE = 200


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    total: int = 0
    per_page: int = 25
    current_page: int = 1

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def first_item(self) -> Optional[int]:
        if not self.items:
            return None
        return (self.current_page - 1) * self.per_page + 1

    @property
    def last_item(self) -> Optional[int]:
        first = self.first_item
        if first is None:
            return None
        return first + len(self.items) - 1

    @property
    def has_more_pages(self) -> bool:
        return self.current_page < self.last_page


def resolve_page_size(limit: Optional[int], default: int) -> int:
    if limit is None:
        limit = default
    return max(1, int(limit))


def resolve_page_number(page: Optional[int]) -> int:
    if not page:
        return 1
    return max(1, int(page))


def paginate(items: Sequence[T], per_page: int, page: Optional[int] = None) -> Page[T]:
    """Slice an already materialised sequence into one page.

    Pages past the end come back empty but keep the requested page number.
    """
    per_page = max(1, int(per_page))
    current = resolve_page_number(page)
    offset = (current - 1) * per_page
    return Page(
        items=list(items[offset:offset + per_page]),
        total=len(items),
        per_page=per_page,
        current_page=current,
    )
