"""Library view helpers: filtering, pagination, playback state and sharing.

These are pure functions over catalog rows so the same rules apply to the
`/api/library` endpoint and to any client that mirrors the browsing view.
"""

from __future__ import annotations

import datetime as dt
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

ITEMS_PER_PAGE = 9  # 3 columns * 3 rows
RECENT_DAYS = 7


def _matches_search(entry, term: str) -> bool:
    if not term:
        return True
    needle = term.lower()
    return any(needle in (value or "").lower() for value in (entry.program_name, entry.category, entry.description))


def filter_entries(
    entries: Iterable,
    search: str = "",
    start_date: Optional[dt.date] = None,
    end_date: Optional[dt.date] = None,
    category: Optional[str] = None,
) -> List:
    """Return entries matching every active filter.

    The search term matches case-insensitively in name, category or
    description. The date range is inclusive on both ends and the category
    must match exactly. Empty filters match everything.
    """
    out = []
    for entry in entries:
        if not _matches_search(entry, search):
            continue
        if start_date and entry.date < start_date:
            continue
        if end_date and entry.date > end_date:
            continue
        if category and entry.category != category:
            continue
        out.append(entry)
    return out


def paginate(entries: Sequence, page: int, per_page: int = ITEMS_PER_PAGE) -> Tuple[List, int]:
    """Return `(items_on_page, page_count)` for a 1-based `page`.

    Pages outside `1..page_count` are empty.
    """
    if per_page <= 0:
        raise ValueError("per_page must be positive")
    page_count = math.ceil(len(entries) / per_page)
    if page < 1:
        return [], page_count
    start = (page - 1) * per_page
    return list(entries[start:start + per_page]), page_count


def categories(entries: Iterable) -> List[str]:
    """Distinct categories in first-seen order."""
    seen = []
    for entry in entries:
        if entry.category not in seen:
            seen.append(entry.category)
    return seen


def share_link(base_url: str, entry, site_title: str) -> dict:
    return {
        "url": f"{base_url.rstrip('/')}/program/{entry.id}",
        "title": f"Listen to {entry.program_name} on {site_title}",
    }


def catalog_stats(entries: Sequence, today: Optional[dt.date] = None) -> dict:
    """Totals, category distribution and uploads of the last week.

    The distribution is sorted by count (descending); recent uploads are
    grouped per date, newest first.
    """
    today = today or dt.date.today()
    total = len(entries)
    counts = Counter(e.category for e in entries)
    distribution = [
        {"category": cat, "count": n, "percentage": n * 100 / total}
        for cat, n in sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    ]
    since = today - dt.timedelta(days=RECENT_DAYS)
    recent = Counter(e.date for e in entries if e.date >= since)
    recent_uploads = [{"date": d, "count": n} for d, n in sorted(recent.items(), reverse=True)]
    return {
        "total_programs": total,
        "category_distribution": distribution,
        "recent_uploads": recent_uploads,
    }


@dataclass
class LibraryState:
    """State of one library browsing session.

    Holds the active filters and page, which program is playing and where,
    and which descriptions are expanded. Changing a filter always resets
    the view to the first page.
    """
    entries: List = field(default_factory=list)
    search: str = ""
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    category: Optional[str] = None
    page: int = 1
    playing: Optional[int] = None
    position: float = 0.0
    duration: float = 0.0
    expanded: List[int] = field(default_factory=list)

    def set_filters(self, **filters) -> None:
        for name, value in filters.items():
            if name not in ("search", "start_date", "end_date", "category"):
                raise ValueError(f"unknown filter: {name}")
            setattr(self, name, value)
        self.page = 1

    @property
    def filtered(self) -> List:
        return filter_entries(self.entries, self.search, self.start_date, self.end_date, self.category)

    @property
    def page_count(self) -> int:
        return paginate(self.filtered, 1)[1]

    def visible(self) -> List:
        return paginate(self.filtered, self.page)[0]

    def go_to(self, page: int) -> None:
        self.page = min(max(1, page), max(1, self.page_count))

    def toggle_play(self, program_id: int) -> bool:
        """Play `program_id`, or pause it if it is already playing.

        Returns True when playback starts.
        """
        if self.playing == program_id:
            self.playing = None
            return False
        self.playing = program_id
        self.position = 0.0
        self.duration = 0.0
        return True

    def loaded(self, duration: float) -> None:
        self.duration = max(0.0, duration)

    def seek(self, seconds: float) -> float:
        upper = self.duration if self.duration > 0 else seconds
        self.position = min(max(0.0, seconds), max(0.0, upper))
        return self.position

    def toggle_description(self, program_id: int) -> None:
        if program_id in self.expanded:
            self.expanded.remove(program_id)
        else:
            self.expanded.append(program_id)
