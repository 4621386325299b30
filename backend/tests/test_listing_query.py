import pytest
from pymongo import ASCENDING, DESCENDING

from utils.errors import ValidationFailed
from utils.listings import build_listing_query, parse_tags_param


def test_defaults_only_match_available_listings_newest_first():
    query, sort, projection = build_listing_query()
    assert query == {"is_available": True}
    assert sort == [("created_at", DESCENDING)]
    assert projection is None


def test_compound_filters():
    query, sort, _ = build_listing_query(
        category="Books",
        condition="Like New",
        min_price=5,
        max_price=50,
        location="  new york ",
        tags=["novel", "paperback"],
        sort_by="price",
        sort_order="asc",
    )
    assert query["category"] == "Books"
    assert query["condition"] == "Like New"
    assert query["price"] == {"$gte": 5, "$lte": 50}
    assert query["location"] == {"$regex": "new\\ york", "$options": "i"}
    assert query["tags"] == {"$in": ["novel", "paperback"]}
    assert sort == [("price", ASCENDING)]


def test_only_min_price():
    query, _, _ = build_listing_query(min_price=0)
    assert query["price"] == {"$gte": 0}


def test_text_search_sorts_by_score_first():
    query, sort, projection = build_listing_query(search=" desk lamp ", sort_by="views")
    assert query["$text"] == {"$search": "desk lamp"}
    assert projection == {"score": {"$meta": "textScore"}}
    assert sort[0] == ("score", {"$meta": "textScore"})
    assert sort[1] == ("views", DESCENDING)


def test_location_is_regex_escaped():
    query, _, _ = build_listing_query(location="a.*b")
    assert query["location"]["$regex"] == "a\\.\\*b"


def test_min_price_above_max_is_rejected():
    with pytest.raises(ValidationFailed):
        build_listing_query(min_price=100, max_price=10)


def test_unknown_sort_field_is_rejected():
    with pytest.raises(ValidationFailed):
        build_listing_query(sort_by="password_hash")


def test_parse_tags_param():
    assert parse_tags_param("Vintage, wood,, ") == ["vintage", "wood"]
    assert parse_tags_param("") is None
    assert parse_tags_param(" , ") is None
    assert parse_tags_param(None) is None
