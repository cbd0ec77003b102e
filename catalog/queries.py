"""
MongoDB query builders for book listings.

Pure functions turning a BookQuery into filter documents, sort specs and the
aggregation pipeline used to sort by live average rating.
"""

import re
from typing import Any, Dict, List, Tuple

from catalog.models import ALL_GENRES, BookQuery, SortBy, SortOrder

NEWEST_FIRST: List[Tuple[str, int]] = [("created_at", -1), ("_id", -1)]


def build_book_filter(query: BookQuery) -> Dict[str, Any]:
    """
    Build the filter document for a book listing.

    Args:
        query: Listing query parameters

    Returns:
        MongoDB filter document
    """
    filter_query: Dict[str, Any] = {}

    if query.search:
        pattern = re.escape(query.search.strip())
        filter_query["$or"] = [
            {"title": {"$regex": pattern, "$options": "i"}},
            {"author": {"$regex": pattern, "$options": "i"}},
        ]

    if query.genre and query.genre != ALL_GENRES:
        filter_query["genre"] = query.genre

    return filter_query


def sort_direction(order: SortOrder) -> int:
    return -1 if order == SortOrder.DESC else 1


def build_book_sort(query: BookQuery) -> List[Tuple[str, int]]:
    """
    Build the sort spec for a listing that does not sort by rating.

    Newest-first ignores the requested order; other fields fall back to
    newest-first on ties.
    """
    if query.sort_by == SortBy.YEAR:
        return [("year", sort_direction(query.sort_order))] + NEWEST_FIRST
    return list(NEWEST_FIRST)


def build_rating_sort_pipeline(
    filter_query: Dict[str, Any],
    order: SortOrder,
    skip: int,
    limit: int,
    reviews_collection: str = "reviews"
) -> List[Dict[str, Any]]:
    """
    Build an aggregation pipeline sorting books by their current average rating.

    Books without reviews sort as rating 0. The helper fields are projected
    away before documents leave the pipeline.
    """
    return [
        {"$match": filter_query},
        {"$lookup": {
            "from": reviews_collection,
            "localField": "_id",
            "foreignField": "book_id",
            "as": "_reviews",
        }},
        {"$addFields": {
            "_average_rating": {"$ifNull": [{"$avg": "$_reviews.rating"}, 0]},
        }},
        {"$sort": {"_average_rating": sort_direction(order), "created_at": -1, "_id": -1}},
        {"$skip": skip},
        {"$limit": limit},
        {"$project": {"_reviews": 0, "_average_rating": 0}},
    ]
