"""
Facet derivation over the loaded course collection.

Each facet is an independent single pass over the courses.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence

from .models import Course
from .normalize import normalized_credits

JURISDICTIONS = (
    "Alabama", "Alaska", "Arizona", "Arkansas", "California", "Colorado",
    "Connecticut", "Delaware", "District of Columbia", "Florida", "Georgia",
    "Hawaii", "Idaho", "Illinois", "Indiana", "Iowa", "Kansas", "Kentucky",
    "Louisiana", "Maine", "Maryland", "Massachusetts", "Michigan", "Minnesota",
    "Mississippi", "Missouri", "Montana", "Nebraska", "Nevada", "New Hampshire",
    "New Jersey", "New Mexico", "New York", "North Carolina", "North Dakota",
    "Ohio", "Oklahoma", "Oregon", "Pennsylvania", "Rhode Island",
    "South Carolina", "South Dakota", "Tennessee", "Texas", "Utah", "Vermont",
    "Virginia", "Washington", "West Virginia", "Wisconsin", "Wyoming",
)

SPONSOR_FILTER = "lcv_sponsor"
FIELDS_OF_STUDY_FILTER = "lcv_fields_of_study"
QUALIFICATIONS_FILTER = "lcv_program_qualifications"


@dataclass(frozen=True)
class FacetValue:
    value: str
    count: int


@dataclass
class Facets:
    categories: List[FacetValue] = field(default_factory=list)
    qualifications: List[FacetValue] = field(default_factory=list)
    sponsors: List[FacetValue] = field(default_factory=list)
    jurisdictions: List[FacetValue] = field(default_factory=list)
    max_price: float = 0.0
    max_credits: float = 0.0


def _alphabetical(counts: Counter) -> List[FacetValue]:
    return [FacetValue(v, counts[v]) for v in sorted(counts, key=str.lower)]


def count_categories(courses: Iterable[Course]) -> List[FacetValue]:
    return _alphabetical(Counter(c.category for c in courses if c.category))


def count_qualifications(courses: Iterable[Course]) -> List[FacetValue]:
    counts: Counter = Counter()
    for c in courses:
        counts.update(set(c.qualifications))
    return _alphabetical(counts)


def count_sponsors(courses: Iterable[Course]) -> List[FacetValue]:
    """Sponsors by descending count, ties broken by name."""
    counts = Counter(c.sponsor for c in courses if c.sponsor)
    return [FacetValue(v, n) for v, n in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0].lower()))]


def mentions_jurisdiction(course: Course, name: str) -> bool:
    return name.lower() in course.search_text().lower()


def count_jurisdictions(
    courses: Iterable[Course],
    names: Sequence[str] = JURISDICTIONS,
) -> List[FacetValue]:
    """Score every jurisdiction in fixed order, zero counts included."""
    counts = dict.fromkeys(names, 0)
    for c in courses:
        text = c.search_text().lower()
        for name in names:
            if name.lower() in text:
                counts[name] += 1
    return [FacetValue(name, counts[name]) for name in names]


def price_and_credit_ceiling(courses: Iterable[Course]):
    max_price = 0.0
    max_credits = 0.0
    for c in courses:
        max_price = max(max_price, c.price)
        max_credits = max(max_credits, normalized_credits(c))
    return max_price, max_credits


def derive_facets(courses: Sequence[Course]) -> Facets:
    max_price, max_credits = price_and_credit_ceiling(courses)
    return Facets(
        categories=count_categories(courses),
        qualifications=count_qualifications(courses),
        sponsors=count_sponsors(courses),
        jurisdictions=count_jurisdictions(courses),
        max_price=max_price,
        max_credits=max_credits,
    )


def snapshot_filter_options(filters: Sequence[Any], attribute_code: str) -> List[Dict[str, Any]]:
    """Options the endpoint itself reported for one filter attribute."""
    for f in filters or []:
        if isinstance(f, dict) and f.get("attribute_code") == attribute_code:
            return list(f.get("items") or [])
    return []
