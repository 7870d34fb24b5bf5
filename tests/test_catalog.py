import pytest

import catalog


def test_filter_all_collections():
    assert catalog.build_product_filter("all") == {}
    assert catalog.build_product_filter(None) == {}


def test_filter_by_collection_category_availability():
    query = catalog.build_product_filter("summer", "shirt, pant,", "true,False")
    assert query == {
        "collection": "summer",
        "category": {"$in": ["shirt", "pant"]},
        "availability": {"$in": [True, False]},
    }


def test_invalid_availability():
    with pytest.raises(ValueError):
        catalog.parse_availability("true,maybe")


@pytest.mark.parametrize("sort, expected", [
    ("default", ("createdAt", -1)),
    ("low", ("sale_price", 1)),
    ("high", ("sale_price", -1)),
    ("cheapest", ("createdAt", -1)),
    (None, ("createdAt", -1)),
])
def test_sort_order(sort, expected):
    assert catalog.sort_order(sort) == expected


def test_page_window():
    assert catalog.page_window(1, 2) == (0, 2)
    assert catalog.page_window(3, 10) == (20, 10)


def test_count_pipelines_prefilter_collection():
    assert catalog.category_counts_pipeline("all")[0] == {"$match": {}}
    assert catalog.availability_counts_pipeline("winter")[0] == {"$match": {"collection": "winter"}}
