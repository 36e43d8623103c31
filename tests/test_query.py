import re
from datetime import datetime

import pytest

from query import coerce, parse_query


# ---------------------------------------------------------------------------
# No-filter variant
# ---------------------------------------------------------------------------

def test_empty_query_string_means_list_all() -> None:
    assert parse_query("") is None


def test_unrecognised_key_is_still_a_search() -> None:
    query = parse_query("colour=red")
    assert query is not None
    assert query.criteria == {"colour": "red"}


# ---------------------------------------------------------------------------
# Criteria
# ---------------------------------------------------------------------------

def test_range_operators_merge_on_same_field() -> None:
    query = parse_query("price>=10&price<20")
    assert query.criteria == {"price": {"$gte": 10, "$lt": 20}}


def test_url_encoded_operators_are_decoded() -> None:
    query = parse_query("price%3E%3D10")
    assert query.criteria == {"price": {"$gte": 10}}


def test_comma_lists_become_in_and_nin() -> None:
    assert parse_query("category=home,garden").criteria == {"category": {"$in": ["home", "garden"]}}
    assert parse_query("category!=home,garden").criteria == {"category": {"$nin": ["home", "garden"]}}


def test_not_equal_and_existence() -> None:
    assert parse_query("brand!=acme").criteria == {"brand": {"$ne": "acme"}}
    assert parse_query("image_url").criteria == {"image_url": {"$exists": True}}
    assert parse_query("!image_url").criteria == {"image_url": {"$exists": False}}


def test_regex_value() -> None:
    query = parse_query("brand=/^ac/i")
    assert query.criteria == {"brand": {"$regex": "^ac", "$options": "i"}}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("true", True),
        ("false", False),
        ("null", None),
        ("12", 12),
        ("-3", -3),
        ("1.5", 1.5),
        ("2024-01-02", datetime(2024, 1, 2)),
        ("home", "home"),
    ],
)
def test_value_coercion(raw: str, expected) -> None:
    assert coerce(raw) == expected


# ---------------------------------------------------------------------------
# Name policy: always a case-insensitive substring match
# ---------------------------------------------------------------------------

def test_name_equality_becomes_escaped_substring_regex() -> None:
    query = parse_query("name=Mu.g")
    assert query.criteria["name"] == {"$regex": re.escape("Mu.g"), "$options": "i"}
    assert query.name_criteria == {"name": query.criteria["name"]}


def test_name_ignores_requested_operator() -> None:
    assert parse_query("name!=mug").criteria["name"] == {"$regex": "mug", "$options": "i"}
    assert parse_query("name=mug,cup").criteria["name"] == {"$regex": re.escape("mug,cup"), "$options": "i"}


def test_name_keeps_explicit_pattern() -> None:
    assert parse_query("name=/^mu/").criteria["name"] == {"$regex": "^mu", "$options": "i"}


def test_no_name_filter_means_unfiltered_page() -> None:
    assert parse_query("category=home").name_criteria == {}


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------

def test_sort_fields_and_pagination() -> None:
    query = parse_query("sort=-price,name&fields=name,price&offset=10&limit=5")
    assert query.sort == [("price", -1), ("name", 1)]
    assert query.projection == {"name": 1, "price": 1}
    assert query.skip == 10
    assert query.limit == 5
    assert query.criteria == {}


def test_omit_builds_exclusion_projection() -> None:
    assert parse_query("omit=description,reviews").projection == {"description": 0, "reviews": 0}


def test_bad_limit_is_rejected() -> None:
    with pytest.raises(ValueError):
        parse_query("limit=ten")
    with pytest.raises(ValueError):
        parse_query("offset=-1")


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------

def test_links_in_the_middle_of_a_result_set() -> None:
    query = parse_query("category=home&offset=10&limit=10")
    links = query.links("http://shop.test/products", total=25)
    assert links["next"] == "http://shop.test/products?category=home&offset=20&limit=10"
    assert links["previous"] == "http://shop.test/products?category=home&offset=0&limit=10"


def test_links_on_last_and_first_page() -> None:
    assert parse_query("offset=10&limit=10").links("http://x/products", total=20)["next"] is None
    assert parse_query("limit=10").links("http://x/products", total=20)["previous"] is None


def test_no_links_without_limit() -> None:
    assert parse_query("category=home").links("http://x/products", total=100) == {"next": None, "previous": None}


def test_name_is_never_coerced() -> None:
    assert parse_query("name=true").criteria["name"] == {"$regex": "true", "$options": "i"}
    assert parse_query("name=null").criteria["name"] == {"$regex": "null", "$options": "i"}
    assert parse_query("name=007").criteria["name"] == {"$regex": "007", "$options": "i"}
    assert parse_query("name=1.50").criteria["name"] == {"$regex": re.escape("1.50"), "$options": "i"}
    assert parse_query("name=2024-01-02").criteria["name"] == {"$regex": re.escape("2024-01-02"), "$options": "i"}


def test_negated_regex_keeps_its_flags() -> None:
    condition = parse_query("brand!=/^ac/i").criteria["brand"]["$not"]
    assert condition.pattern == "^ac"
    assert condition.flags & re.IGNORECASE


# ---------------------------------------------------------------------------
# Operator keys and parameter-less query strings
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "query_string",
    ["$where=sleep(100)", "%24where=sleep(100)", "$expr=1", "reviews.$where=1", "sort=$natural", "fields=$where"],
)
def test_operator_keys_are_rejected(query_string: str) -> None:
    with pytest.raises(ValueError):
        parse_query(query_string)


@pytest.mark.parametrize("query_string", ["&", "&&", "=x", "&=x&"])
def test_query_string_without_parameters_means_list_all(query_string: str) -> None:
    assert parse_query(query_string) is None
