"""
Category Cache

Holds the candidate category list (expense-bearing ledger accounts) with an
explicit refresh timestamp. The resolver is handed one of these instead of
reaching for module-level state.
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from .errors import SourceFetchError
from .models import Category


DEFAULT_MAX_AGE = timedelta(hours=1)


class CategoryCache:
    """
    Category list with a last-refreshed timestamp and a staleness threshold
    """

    def __init__(self,
                 fetch_categories: Callable[[], List[Category]],
                 max_age: timedelta = DEFAULT_MAX_AGE,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            fetch_categories: Callable returning the source-of-truth category list
            max_age: How old the list may get before it is refetched
            clock: Returns "now"; injectable for tests
        """
        self.fetch_categories = fetch_categories
        self.max_age = max_age
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.categories: List[Category] = []
        self.last_refreshed: Optional[datetime] = None

    def is_stale(self, max_age: Optional[timedelta] = None) -> bool:
        """True when never fetched or the cache is older than max_age"""
        if self.last_refreshed is None:
            return True
        limit = max_age if max_age is not None else self.max_age
        return self.clock() - self.last_refreshed > limit

    def refresh(self) -> List[Category]:
        """
        Refetch the category list

        A fetch failure keeps whatever was cached before. Missing
        authentication is not caught here.
        """
        print("  → Fetching categories...")
        try:
            categories = list(self.fetch_categories())
        except SourceFetchError as e:
            print(f"⚠️  Category refresh failed, keeping {len(self.categories)} cached: {e}")
            return self.categories

        self.categories = categories
        self.last_refreshed = self.clock()
        print(f"     Cached {len(self.categories)} expense categories")
        return self.categories

    def get(self, max_age: Optional[timedelta] = None) -> List[Category]:
        """Return categories, refreshing first if stale"""
        if self.is_stale(max_age):
            return self.refresh()
        return self.categories

    def invalidate(self):
        """Force the next get() to refetch"""
        self.last_refreshed = None
