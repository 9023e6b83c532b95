import pytest

from natours.core.api_features import APIFeatures, normalize_query_string, with_defaults
from natours.core.errors import AppError
from natours.models import Tour
from natours.services.tour_repository import TourRepository


def run(db, query_string):
    repository = TourRepository(db)
    features = (
        APIFeatures(repository.query(), query_string, Tour, repository.public_fields)
        .filter()
        .sort()
        .limit_fields()
        .paginate()
    )
    return features.query.all(), features.fields


@pytest.fixture
def tours(make_tour):
    return [
        make_tour(name="Cheap Easy", price=200, difficulty="easy", duration=3, ratings_average=4.2),
        make_tour(name="Mid Medium", price=500, difficulty="medium", duration=5, ratings_average=4.8),
        make_tour(name="Pricey Hard", price=1500, difficulty="difficult", duration=9, ratings_average=4.8),
        make_tour(name="Mid Easy", price=600, difficulty="easy", duration=5, ratings_average=3.9),
        make_tour(name="Hidden Gem", price=100, difficulty="easy", duration=2, secret_tour=True),
    ]


def test_normalize_query_string_accepts_plain_mapping():
    assert normalize_query_string({"a": "1", "b": ["2", "3"]}) == {"a": ["1"], "b": ["2", "3"]}


@pytest.mark.parametrize(
    "op,value,expected",
    [
        ("gt", "500", {"Mid Easy", "Pricey Hard"}),
        ("gte", "500", {"Mid Medium", "Mid Easy", "Pricey Hard"}),
        ("lt", "500", {"Cheap Easy"}),
        ("lte", "500", {"Cheap Easy", "Mid Medium"}),
    ],
)
def test_comparison_filters_use_numeric_values(db, tours, op, value, expected):
    docs, _ = run(db, {f"price[{op}]": value, "limit": "10"})
    assert {tour.name for tour in docs} == expected


def test_equality_filter_and_camel_case_field_names(db, tours):
    docs, _ = run(db, {"difficulty": "easy", "maxGroupSize": "10", "limit": "10"})
    assert {tour.name for tour in docs} == {"Cheap Easy", "Mid Easy"}


def test_secret_tours_are_never_listed(db, tours):
    docs, _ = run(db, {"limit": "100"})
    assert "Hidden Gem" not in {tour.name for tour in docs}


def test_whitelisted_field_repeated_becomes_in_filter(db, tours):
    docs, _ = run(db, {"duration": ["3", "9"], "limit": "10"})
    assert {tour.name for tour in docs} == {"Cheap Easy", "Pricey Hard"}


def test_repeated_key_outside_whitelist_keeps_last_value(db, tours):
    docs, _ = run(db, {"name": ["Cheap Easy", "Mid Easy"]})
    assert [tour.name for tour in docs] == ["Mid Easy"]


def test_default_order_is_newest_first(db, tours):
    docs, _ = run(db, {"limit": "10"})
    assert [tour.name for tour in docs] == ["Mid Easy", "Pricey Hard", "Mid Medium", "Cheap Easy"]


def test_multi_key_sort(db, tours):
    docs, _ = run(db, {"sort": "-ratingsAverage,price", "limit": "10"})
    assert [tour.name for tour in docs] == ["Mid Medium", "Pricey Hard", "Cheap Easy", "Mid Easy"]


def test_pagination_skips_previous_pages(db, tours):
    first, _ = run(db, {"sort": "price", "limit": "3", "page": "1"})
    second, _ = run(db, {"sort": "price", "limit": "3", "page": "2"})
    assert [tour.name for tour in first] == ["Cheap Easy", "Mid Medium", "Mid Easy"]
    assert [tour.name for tour in second] == ["Pricey Hard"]


def test_default_page_size_is_four(db, make_tour):
    for _ in range(6):
        make_tour()
    docs, _ = run(db, {})
    assert len(docs) == 4


def test_invalid_pagination_falls_back_to_defaults(db, tours):
    docs, _ = run(db, {"page": "zero", "limit": "-2"})
    assert len(docs) == 4


def test_field_projection_always_keeps_id(db, tours):
    _, fields = run(db, {"fields": "name,price"})
    assert fields == ["id", "name", "price"]


def test_default_projection_hides_update_metadata(db, tours):
    _, fields = run(db, {})
    assert "updated_at" not in fields
    assert "name" in fields


@pytest.mark.parametrize(
    "query_string,message",
    [
        ({"colour": "red"}, "invalid field : colour"),
        ({"price[ne]": "5"}, "invalid filter operator : ne"),
        ({"price[gte]": "cheap"}, "invalid price : cheap"),
        ({"sort": "-password"}, "invalid field : password"),
        ({"fields": "name,secretSauce"}, "invalid field : secretSauce"),
    ],
)
def test_bad_query_strings_are_rejected(db, tours, query_string, message):
    with pytest.raises(AppError) as exc_info:
        run(db, query_string)
    assert exc_info.value.status_code == 400
    assert exc_info.value.message == message


def test_with_defaults_overrides_request_values():
    merged = with_defaults({"limit": "50", "difficulty": "easy"}, {"limit": "5", "sort": "price"})
    assert merged == {"limit": ["5"], "difficulty": ["easy"], "sort": ["price"]}
