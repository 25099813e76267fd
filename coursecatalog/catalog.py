"""
In-memory catalog view over a loaded snapshot.

Mirrors the browsing UI's state: the loaded courses, derived facets, the
active filters and the current page. Every filter or search change sends
the view back to page 1.
"""

import math
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from .facets import Facets, derive_facets, snapshot_filter_options
from .filters import FilterState, apply_filters
from .logger import get_logger
from .models import Course
from .normalize import map_course
from .storage import SnapshotError, load_snapshot

COURSES_PER_PAGE = 18
LOAD_ERROR_MESSAGE = "Unable to load course data."


@dataclass
class PageSlice:
    items: List[Course]
    page: int
    total_pages: int
    total_items: int


def page_count(total_items: int, per_page: int = COURSES_PER_PAGE) -> int:
    return math.ceil(total_items / per_page) if total_items > 0 else 0


def clamp_page(page: int, total_items: int, per_page: int = COURSES_PER_PAGE) -> int:
    return min(max(1, page), max(1, page_count(total_items, per_page)))


def paginate(items: Sequence[Course], page: int, per_page: int = COURSES_PER_PAGE) -> PageSlice:
    page = clamp_page(page, len(items), per_page)
    start = (page - 1) * per_page
    return PageSlice(
        items=list(items[start:start + per_page]),
        page=page,
        total_pages=page_count(len(items), per_page),
        total_items=len(items),
    )


def _courses_in(data: Dict[str, Any]) -> List[Course]:
    return [map_course(item) for item in data.get("items") or [] if isinstance(item, dict)]


def visible_page_numbers(current: int, total_pages: int, max_visible: int = 5) -> List[int]:
    """Window of page links centred on the current page."""
    if total_pages < 1:
        return []
    start = max(1, current - max_visible // 2)
    end = min(total_pages, start + max_visible - 1)
    if end - start + 1 < max_visible:
        start = max(1, end - max_visible + 1)
    return list(range(start, end + 1))


class CatalogView:
    """Searchable, filterable, paginated listing of one snapshot."""

    def __init__(self, courses: Optional[List[Course]] = None, raw_filters: Optional[List[Any]] = None,
                 per_page: int = COURSES_PER_PAGE):
        self.per_page = per_page
        self.courses: List[Course] = []
        self.raw_filters: List[Any] = []
        self.facets = Facets()
        self.error: Optional[str] = None
        self.filters = FilterState()
        self.current_page = 1
        self.selected: Optional[Course] = None
        if courses is not None:
            self.set_courses(courses, raw_filters or [])

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any], per_page: int = COURSES_PER_PAGE) -> "CatalogView":
        return cls(_courses_in(data), list(data.get("filters") or []), per_page=per_page)

    def set_courses(self, courses: List[Course], raw_filters: List[Any]) -> None:
        self.courses = list(courses)
        self.raw_filters = list(raw_filters)
        self.facets = derive_facets(self.courses)
        self.current_page = 1

    def load(self, location: Union[str, Path], session=None) -> bool:
        """
        Load a snapshot file or URL. On failure the catalog is left empty
        with a user-facing error message instead of raising.
        """
        logger = get_logger()
        try:
            data = load_snapshot(location, session=session)
            courses = _courses_in(data)
        except SnapshotError as e:
            logger.error("Error loading courses", location=str(location), error=str(e))
            return self._fail_load()
        except (TypeError, ValueError, AttributeError) as e:
            logger.error("Error mapping courses", location=str(location), error=str(e),
                         error_type=type(e).__name__)
            return self._fail_load()
        self.error = None
        self.set_courses(courses, list(data.get("filters") or []))
        logger.info(f"Loaded {len(self.courses)} courses", location=str(location))
        return True

    def _fail_load(self) -> bool:
        self.error = LOAD_ERROR_MESSAGE
        self.set_courses([], [])
        return False

    def snapshot_options(self, attribute_code: str) -> List[Dict[str, Any]]:
        return snapshot_filter_options(self.raw_filters, attribute_code)

    # State transitions

    def _set_filters(self, state: FilterState) -> None:
        self.filters = state
        self.current_page = 1

    def set_search(self, term: str) -> None:
        self._set_filters(replace(self.filters, search=term))

    def toggle(self, facet: str, value: str) -> None:
        self._set_filters(self.filters.toggled(facet, value))

    def set_max_price(self, value: Optional[float]) -> None:
        self._set_filters(replace(self.filters, max_price=value))

    def set_min_credits(self, value: Optional[float]) -> None:
        self._set_filters(replace(self.filters, min_credits=value))

    def clear_filters(self) -> None:
        self._set_filters(FilterState())

    def go_to_page(self, page: int) -> int:
        self.current_page = clamp_page(page, len(self.filtered()), self.per_page)
        return self.current_page

    def select(self, course: Course) -> None:
        self.selected = course

    def close_details(self) -> None:
        self.selected = None

    # Derived views

    def filtered(self) -> List[Course]:
        return apply_filters(self.courses, self.filters)

    def page(self) -> PageSlice:
        return paginate(self.filtered(), self.current_page, self.per_page)

    def page_numbers(self, max_visible: int = 5) -> List[int]:
        current = self.page()
        return visible_page_numbers(current.page, current.total_pages, max_visible)
