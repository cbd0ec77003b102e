"""
Rating aggregation engine.

Derives read-only rating statistics for books from their current reviews:
- Average rating and review count
- Five-bucket rating histogram

Nothing here is persisted; every call reads the current review rows.
"""

import math
from typing import Dict, Iterable, List, Optional

from catalog.models import RATING_VALUES, RatingDistribution, RatingSummary
from utilities.logger import get_logger

logger = get_logger(__name__)


def round_rating(value: float) -> float:
    """Round to one decimal, halves away from zero on the tenths digit."""
    return math.copysign(math.floor(abs(value) * 10 + 0.5), value) / 10


def summarize_ratings(ratings: Iterable[int]) -> RatingSummary:
    """
    Compute average rating and review count.

    Args:
        ratings: Ratings of every review of one book

    Returns:
        RatingSummary with average 0 and count 0 when there are no ratings
    """
    ratings = list(ratings)
    if not ratings:
        return RatingSummary(average_rating=0, review_count=0)
    return RatingSummary(
        average_rating=round_rating(sum(ratings) / len(ratings)),
        review_count=len(ratings)
    )


def tally_ratings(ratings: Iterable[int], book_id: Optional[str] = None) -> RatingDistribution:
    """
    Count reviews per rating value 1 through 5.

    Ratings outside 1-5 are skipped with a warning.
    """
    distribution = {value: 0 for value in RATING_VALUES}
    for rating in ratings:
        if isinstance(rating, bool) or rating not in distribution:
            logger.warning("Skipping out-of-range rating", book_id=book_id, rating=rating)
            continue
        distribution[rating] += 1
    return distribution


class RatingAggregator:
    """Computes rating statistics from the reviews stored in the catalog database."""

    def __init__(self, database):
        """
        Initialize the aggregator.

        Args:
            database: Catalog database exposing get_ratings()
        """
        self.database = database

    async def compute_rating_summary(self, book_id: str) -> RatingSummary:
        ratings = await self.database.get_ratings([book_id])
        return summarize_ratings(ratings.get(book_id, []))

    async def compute_rating_summaries(self, book_ids: List[str]) -> Dict[str, RatingSummary]:
        """
        Compute summaries for a page of books with a single ratings query.

        Returns:
            Mapping with an entry for every requested book id
        """
        if not book_ids:
            return {}
        ratings = await self.database.get_ratings(book_ids)
        return {book_id: summarize_ratings(ratings.get(book_id, [])) for book_id in book_ids}

    async def compute_rating_distribution(self, book_id: str) -> RatingDistribution:
        ratings = await self.database.get_ratings([book_id])
        return tally_ratings(ratings.get(book_id, []), book_id=book_id)
