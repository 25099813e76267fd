from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable, List, Optional

from .facets import mentions_jurisdiction
from .models import Course
from .normalize import normalized_credits


@dataclass(frozen=True)
class FilterState:
    """Active filters; an empty selection or unset bound is inactive."""

    search: str = ""
    categories: FrozenSet[str] = field(default_factory=frozenset)
    qualifications: FrozenSet[str] = field(default_factory=frozenset)
    sponsors: FrozenSet[str] = field(default_factory=frozenset)
    jurisdictions: FrozenSet[str] = field(default_factory=frozenset)
    max_price: Optional[float] = None
    min_credits: Optional[float] = None

    @property
    def active(self) -> bool:
        return self != FilterState()

    def toggled(self, facet: str, value: str) -> "FilterState":
        """Copy with value added to or removed from one selection set."""
        current = getattr(self, facet)
        if not isinstance(current, frozenset):
            raise ValueError(f"Not a selection facet: {facet}")
        updated = current - {value} if value in current else current | {value}
        return replace(self, **{facet: updated})


def matches_search(course: Course, term: str) -> bool:
    """Case-insensitive substring match on title or description.

    Surrounding whitespace only decides whether a search is active; an
    active term is matched as typed.
    """
    if not term or not term.strip():
        return True
    term = term.lower()
    return term in (course.title or "").lower() or term in (course.description or "").lower()


def matches(course: Course, state: FilterState) -> bool:
    """True when the course satisfies every active filter."""
    if not matches_search(course, state.search):
        return False
    if state.categories and course.category not in state.categories:
        return False
    if state.qualifications and not state.qualifications.intersection(course.qualifications):
        return False
    if state.sponsors and course.sponsor not in state.sponsors:
        return False
    if state.jurisdictions and not any(mentions_jurisdiction(course, j) for j in state.jurisdictions):
        return False
    if state.max_price and course.price > state.max_price:
        return False
    if state.min_credits and normalized_credits(course) < state.min_credits:
        return False
    return True


def apply_filters(courses: Iterable[Course], state: FilterState) -> List[Course]:
    return [c for c in courses if matches(c, state)]
