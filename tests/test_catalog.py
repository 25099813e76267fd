"""
Tests for item mapping, facets, filtering and pagination.
"""

import itertools
import json

import pytest

import coursecatalog.catalog as catalog_module
from coursecatalog.catalog import (
    LOAD_ERROR_MESSAGE,
    CatalogView,
    clamp_page,
    page_count,
    paginate,
    visible_page_numbers,
)
from coursecatalog.facets import (
    JURISDICTIONS,
    FacetValue,
    count_jurisdictions,
    count_sponsors,
    derive_facets,
    snapshot_filter_options,
)
from coursecatalog.filters import FilterState, apply_filters, matches_search
from coursecatalog.models import Course
from coursecatalog.normalize import (
    PLACEHOLDER_IMAGE,
    map_course,
    normalized_credits,
    parse_number,
    strip_html,
)


def _course(i, **fields):
    defaults = dict(id=i, sku=f"SKU-{i}", title=f"Course {i}")
    defaults.update(fields)
    return Course(**defaults)


@pytest.fixture
def courses(snapshot_data):
    return [map_course(item) for item in snapshot_data["items"]]


@pytest.fixture
def varied_courses():
    """Courses cycling through categories, sponsors and qualifications."""
    categories = ["Ethics", "Taxes", "Auditing"]
    sponsors = ["Acme Learning", "Beta Institute"]
    quals = [["CPE"], ["CLE"], ["CPE", "CLE"], []]
    states = ["Texas", "Ohio", "Nevada", "Oregon", "Maine"]
    return [
        _course(
            i,
            category=categories[i % 3],
            sponsor=sponsors[i % 2],
            qualifications=quals[i % 4],
            description=f"Accepted in {states[i % 5]}.",
            price=float(10 * (i % 7)),
            credits=str(50 * (i % 5)),
        )
        for i in range(60)
    ]


class TestMapCourse:
    """Test raw item to Course mapping."""

    def test_maps_fields(self, raw_course):
        course = map_course(raw_course)
        assert course.id == 101
        assert course.sku == "ETH-101"
        assert course.title == "Ethics for Texas Accountants"
        assert course.description == "Covers the Texas board rules."
        assert course.sponsor == "Acme Learning"
        assert course.category == "Ethics"
        assert course.qualifications == ["CPE", "CLE"]
        assert course.level == "Basic"
        assert course.delivery_method == "QAS Self Study"
        assert course.length == "2 hours"
        assert course.credits == "100"
        assert course.price == 49.5
        assert course.vendor["logo"] == "https://cdn.example.com/acme.png"

    def test_defaults_for_sparse_item(self):
        course = map_course({"id": 1, "name": "Bare"})
        assert course.sponsor == "Unknown Provider"
        assert course.category == ""
        assert course.qualifications == []
        assert course.price == 0.0
        assert course.image_url == PLACEHOLDER_IMAGE

    def test_strip_html(self):
        assert strip_html("<div>Tax<br/>update</div>") == "Tax update"
        assert strip_html(None) == ""

    def test_parse_number(self):
        assert parse_number("$1,250.50") == 1250.5
        assert parse_number(12) == 12.0
        assert parse_number("n/a") == 0.0
        assert parse_number(None) == 0.0

    def test_normalized_credits(self):
        assert normalized_credits(_course(1, credits="100")) == 2.0
        assert normalized_credits(_course(1, credits="")) == 0.0

    def test_wrong_typed_fields_treated_as_absent(self):
        course = map_course({
            "sku": "A",
            "name": 42,
            "short_description": 5,
            "vendor": "Acme",
            "prices_unformatted": [12],
            "attributes": {"code": "lcv_level"},
            "image_url": None,
        })
        assert course.title == "42"
        assert course.description == "5"
        assert course.sponsor == "Unknown Provider"
        assert course.price == 0.0
        assert course.level == ""
        assert course.image_url == PLACEHOLDER_IMAGE
        assert not matches_search(course, "tax")


class TestFacets:
    """Test facet derivation."""

    def test_derive_facets(self, courses):
        facets = derive_facets(courses)
        assert facets.categories == [FacetValue("Ethics", 2), FacetValue("Taxes", 1)]
        assert facets.qualifications == [FacetValue("CLE", 1), FacetValue("CPE", 2)]
        assert facets.sponsors == [FacetValue("Acme Learning", 2), FacetValue("Beta Institute", 1)]
        assert facets.max_price == 120.0
        assert facets.max_credits == 8.0

    def test_jurisdictions_scored_in_fixed_order(self, courses):
        scored = count_jurisdictions(courses)
        assert [f.value for f in scored] == list(JURISDICTIONS)
        counts = {f.value: f.count for f in scored if f.count}
        assert counts == {"Texas": 1, "New York": 1, "Ohio": 1}

    def test_jurisdiction_match_is_case_insensitive(self):
        course = _course(1, description="Approved by the TEXAS state board")
        assert count_jurisdictions([course], names=["Texas"]) == [FacetValue("Texas", 1)]

    def test_sponsors_sorted_by_count(self):
        data = [_course(i, sponsor=s) for i, s in enumerate(["B", "A", "C", "C", "A", "C"])]
        assert count_sponsors(data) == [FacetValue("C", 3), FacetValue("A", 2), FacetValue("B", 1)]

    def test_empty_collection(self):
        facets = derive_facets([])
        assert facets.categories == []
        assert facets.max_price == 0.0
        assert all(f.count == 0 for f in facets.jurisdictions)

    def test_snapshot_filter_options(self, snapshot_data):
        options = snapshot_filter_options(snapshot_data["filters"], "lcv_sponsor")
        assert options == [{"label": "Acme Learning", "count": 2}]
        assert snapshot_filter_options(snapshot_data["filters"], "lcv_fields_of_study") == []
        assert snapshot_filter_options(None, "lcv_sponsor") == []


class TestFilters:
    """Test the conjunctive filter predicate."""

    def _titles(self, courses, **state):
        return [c.title for c in apply_filters(courses, FilterState(**state))]

    def test_no_filters(self, courses):
        assert len(apply_filters(courses, FilterState())) == 3
        assert not FilterState().active

    def test_search_title_or_description(self, courses):
        assert self._titles(courses, search="ETHICS") == ["Ethics for Texas Accountants", "Professional Ethics"]
        assert self._titles(courses, search="board rules") == ["Ethics for Texas Accountants"]
        assert self._titles(courses, search="   ") == [c.title for c in courses]

    def test_category(self, courses):
        assert self._titles(courses, categories=frozenset({"Taxes"})) == ["Federal Tax Update"]

    def test_qualifications_intersect(self, courses):
        assert self._titles(courses, qualifications=frozenset({"CLE", "CFP"})) == ["Ethics for Texas Accountants"]

    def test_sponsor(self, courses):
        assert len(self._titles(courses, sponsors=frozenset({"Acme Learning"}))) == 2

    def test_jurisdiction(self, courses):
        assert self._titles(courses, jurisdictions=frozenset({"new york"})) == ["Federal Tax Update"]

    def test_price_ceiling(self, courses):
        assert self._titles(courses, max_price=50) == ["Ethics for Texas Accountants", "Professional Ethics"]
        assert len(self._titles(courses, max_price=0)) == 3

    def test_credit_floor(self, courses):
        assert self._titles(courses, min_credits=5) == ["Federal Tax Update"]
        assert len(self._titles(courses, min_credits=0)) == 3

    def test_conjunction_equals_intersection(self, varied_courses):
        """Combining two filters gives the intersection of each alone."""
        singles = [
            {"categories": frozenset({"Ethics"})},
            {"sponsors": frozenset({"Beta Institute"})},
            {"qualifications": frozenset({"CLE"})},
            {"jurisdictions": frozenset({"Texas", "Oregon"})},
            {"max_price": 30.0},
            {"min_credits": 2.0},
            {"search": "accepted in o"},
        ]
        for a, b in itertools.combinations(singles, 2):
            left = {c.sku for c in apply_filters(varied_courses, FilterState(**a))}
            right = {c.sku for c in apply_filters(varied_courses, FilterState(**b))}
            both = {c.sku for c in apply_filters(varied_courses, FilterState(**a, **b))}
            assert both == left & right, (a, b)

    def test_toggled(self):
        state = FilterState().toggled("categories", "Ethics")
        assert state.categories == frozenset({"Ethics"})
        assert state.active
        assert state.toggled("categories", "Ethics").categories == frozenset()
        with pytest.raises(ValueError):
            state.toggled("search", "x")

    def test_matches_search_handles_missing_text(self):
        assert not matches_search(_course(1, title="", description=""), "tax")

    def test_search_term_matched_as_typed(self):
        course = _course(1, title="Professional Ethics", description="")
        assert matches_search(course, " ethics")
        assert not matches_search(course, "ethics ")
        assert matches_search(course, "  ")


class TestPagination:
    """Test page slicing and clamping."""

    def test_last_page_of_37(self):
        items = [_course(i) for i in range(37)]
        assert page_count(37, 18) == 3
        page = paginate(items, 3, 18)
        assert page.items == [items[36]]
        assert page.total_pages == 3
        assert page.total_items == 37

    def test_full_page(self):
        items = [_course(i) for i in range(37)]
        assert paginate(items, 2).items == items[18:36]

    def test_clamping(self):
        assert clamp_page(10, 37) == 3
        assert clamp_page(0, 37) == 1
        assert clamp_page(-4, 37) == 1
        assert clamp_page(5, 0) == 1

    def test_empty(self):
        page = paginate([], 3)
        assert page.items == []
        assert page.page == 1
        assert page.total_pages == 0

    def test_visible_page_numbers(self):
        assert visible_page_numbers(1, 10) == [1, 2, 3, 4, 5]
        assert visible_page_numbers(5, 10) == [3, 4, 5, 6, 7]
        assert visible_page_numbers(10, 10) == [6, 7, 8, 9, 10]
        assert visible_page_numbers(1, 2) == [1, 2]
        assert visible_page_numbers(1, 0) == []


class TestCatalogView:
    """Test the catalog view state."""

    def test_load_snapshot_file(self, snapshot_file):
        view = CatalogView()
        assert view.load(snapshot_file)
        assert view.error is None
        assert len(view.courses) == 3
        assert view.facets.sponsors[0] == FacetValue("Acme Learning", 2)
        assert view.snapshot_options("lcv_sponsor") == [{"label": "Acme Learning", "count": 2}]

    def test_load_failure_leaves_empty_catalog(self, tmp_path, snapshot_data):
        view = CatalogView.from_snapshot(snapshot_data)
        assert len(view.courses) == 3

        assert not view.load(tmp_path / "missing.json")

        assert view.error == LOAD_ERROR_MESSAGE
        assert view.courses == []
        assert view.facets.categories == []
        assert view.page().items == []

    def test_load_unparsable(self, tmp_path):
        path = tmp_path / "courses.json"
        path.write_text("<html>not json</html>")
        view = CatalogView()
        assert not view.load(path)
        assert view.error == LOAD_ERROR_MESSAGE

    def test_load_tolerates_malformed_items(self, tmp_path):
        path = tmp_path / "courses.json"
        path.write_text(json.dumps({
            "items": [
                {"sku": "A", "name": "x", "vendor": "Acme"},
                {"sku": "B", "name": ["y"], "short_description": 5, "attributes": "none"},
            ],
            "filters": [],
            "total": 2,
        }))
        view = CatalogView()

        assert view.load(path)

        assert view.error is None
        assert [c.sponsor for c in view.courses] == ["Unknown Provider", "Unknown Provider"]
        view.set_search("x")
        assert [c.sku for c in view.filtered()] == ["A"]

    def test_mapping_error_becomes_load_message(self, snapshot_file, monkeypatch):
        def broken(item):
            raise TypeError("unexpected item")

        monkeypatch.setattr(catalog_module, "map_course", broken)
        view = CatalogView()

        assert not view.load(snapshot_file)

        assert view.error == LOAD_ERROR_MESSAGE
        assert view.courses == []

    def test_filter_change_resets_page(self, varied_courses):
        view = CatalogView(varied_courses)
        assert view.go_to_page(3) == 3

        view.set_search("course")
        assert view.current_page == 1

        view.go_to_page(2)
        view.toggle("sponsors", "Acme Learning")
        assert view.current_page == 1

        view.go_to_page(2)
        view.set_max_price(40)
        assert view.current_page == 1

        view.go_to_page(2)
        view.set_min_credits(1)
        assert view.current_page == 1

        view.go_to_page(2)
        view.clear_filters()
        assert view.current_page == 1
        assert len(view.filtered()) == 60

    def test_go_to_page_clamps_to_filtered(self, varied_courses):
        view = CatalogView(varied_courses)
        view.toggle("categories", "Ethics")
        assert len(view.filtered()) == 20
        assert view.go_to_page(9) == 2
        assert len(view.page().items) == 2
        assert view.page_numbers() == [1, 2]

    def test_selection(self, courses):
        view = CatalogView(courses)
        view.select(courses[1])
        assert view.selected is courses[1]
        view.close_details()
        assert view.selected is None
