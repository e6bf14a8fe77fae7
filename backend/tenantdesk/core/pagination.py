from __future__ import annotations

import math
from dataclasses import dataclass

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Page:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def meta(self, total: int) -> dict:
        return {
            "currentPage": self.page,
            "totalPages": math.ceil(total / self.limit) if total else 0,
            "limit": self.limit,
        }


def clamp_page(page: int | None, limit: int | None, *, default_limit: int) -> Page:
    """page is clamped to [1, inf), limit to [1, 100]."""
    p = max(1, page or 1)
    lim = default_limit if limit is None else limit
    return Page(page=p, limit=min(MAX_PAGE_SIZE, max(1, lim)))
