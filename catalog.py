"""
Product listing queries

Maps the listing query parameters to a MongoDB filter, sort and page window,
and builds the two group-by pipelines behind the filter sidebar.
"""
from typing import Any, Dict, List, Optional, Tuple

ALL_COLLECTIONS = "all"

SORT_OPTIONS: Dict[str, Tuple[str, int]] = {
    "default": ("createdAt", -1),
    "low": ("sale_price", 1),
    "high": ("sale_price", -1),
}

AVAILABILITY_VALUES = {"true": True, "false": False}


def split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_availability(value: Optional[str]) -> List[bool]:
    flags = []
    for part in split_list(value):
        key = part.lower()
        if key not in AVAILABILITY_VALUES:
            raise ValueError(f"Invalid availability value: {part}")
        flags.append(AVAILABILITY_VALUES[key])
    return flags


def collection_match(collection: Optional[str]) -> Dict[str, Any]:
    if collection and collection != ALL_COLLECTIONS:
        return {"collection": collection}
    return {}


def build_product_filter(collection: Optional[str] = None, category: Optional[str] = None, availability: Optional[str] = None) -> Dict[str, Any]:
    query = collection_match(collection)
    categories = split_list(category)
    if categories:
        query["category"] = {"$in": categories}
    flags = parse_availability(availability)
    if flags:
        query["availability"] = {"$in": flags}
    return query


def sort_order(sort: Optional[str]) -> Tuple[str, int]:
    return SORT_OPTIONS.get(sort or "default", SORT_OPTIONS["default"])


def page_window(page: int, size: int) -> Tuple[int, int]:
    """Return (skip, limit) for a 1-based page."""
    return page * size - size, size


def category_counts_pipeline(collection: Optional[str] = None) -> List[Dict[str, Any]]:
    return [
        {"$match": collection_match(collection)},
        {"$group": {"_id": "$category", "count": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
    ]


def availability_counts_pipeline(collection: Optional[str] = None) -> List[Dict[str, Any]]:
    return [
        {"$match": collection_match(collection)},
        {"$group": {"_id": "$availability", "count": {"$sum": 1}}},
        {"$sort": {"_id": -1}},
    ]
