"""
Book catalog service: listing, detail, creation, update and cascade deletion
of books, each read enriched with live rating statistics.
"""

from typing import Any, Dict, Optional

from catalog.aggregation import RatingAggregator, summarize_ratings
from catalog.exceptions import ForbiddenError, NotFoundError
from catalog.models import (
    ActingUser, BookDetail, BookInput, BookPage, BookQuery, BookResponse,
    Pagination, RatingDistribution, RatingSummary, UserRef
)
from catalog.review_service import build_review_response
from utilities.logger import AuditLogger, get_logger

logger = get_logger(__name__)


def build_book_response(
    document: Dict[str, Any],
    users: Dict[str, Dict[str, Any]],
    summary: RatingSummary
) -> BookResponse:
    """Attach creator name and rating statistics to a book document."""
    creator = users.get(document["added_by"], {})
    return BookResponse(
        id=document["id"],
        title=document["title"],
        author=document["author"],
        description=document["description"],
        genre=document["genre"],
        year=document["year"],
        added_by=UserRef(id=document["added_by"], name=creator.get("name")),
        created_at=document.get("created_at"),
        updated_at=document.get("updated_at"),
        average_rating=summary.average_rating,
        review_count=summary.review_count
    )


class BookCatalogService:
    """Book operations over the catalog database."""

    def __init__(
        self,
        database,
        aggregator: Optional[RatingAggregator] = None,
        audit_logger: Optional[AuditLogger] = None
    ):
        """
        Initialize the service.

        Args:
            database: Catalog database
            aggregator: Rating aggregator (defaults to one over the same database)
            audit_logger: Logger for mutations
        """
        self.database = database
        self.aggregator = aggregator or RatingAggregator(database)
        self.audit = audit_logger or AuditLogger()

    async def list_books(self, query: BookQuery) -> BookPage:
        """
        Get books with search, genre filter, sorting and pagination.

        Args:
            query: Listing query parameters

        Returns:
            BookPage with each book's rating statistics and creator attached
        """
        skip = (query.page - 1) * query.limit
        total = await self.database.count_books(query)
        documents = await self.database.find_books(query, skip, query.limit)

        summaries = await self.aggregator.compute_rating_summaries([document["id"] for document in documents])
        users = await self.database.get_users(document["added_by"] for document in documents)

        logger.debug("Listed books", total=total, returned=len(documents), page=query.page)

        return BookPage(
            books=[build_book_response(document, users, summaries[document["id"]]) for document in documents],
            pagination=Pagination.build(query.page, query.limit, total)
        )

    async def get_book(self, book_id: str) -> BookDetail:
        """
        Get a single book with creator, rating statistics and all reviews.

        Raises:
            NotFoundError: No book has this id
        """
        document = await self._require_book(book_id)
        reviews = await self.database.find_reviews(book_id=document["id"])
        users = await self.database.get_users(
            [document["added_by"]] + [review["user_id"] for review in reviews]
        )

        summary = summarize_ratings(review["rating"] for review in reviews)
        book = build_book_response(document, users, summary)

        return BookDetail(
            **book.model_dump(),
            reviews=[build_review_response(review, users) for review in reviews]
        )

    async def create_book(self, data: BookInput, acting_user: ActingUser) -> BookResponse:
        document = await self.database.insert_book(data.model_dump(mode="json"), acting_user.id)
        self.audit.log_book_created(document["id"], acting_user.id, document["title"])
        return build_book_response(
            document,
            {acting_user.id: {"name": acting_user.name}},
            RatingSummary()
        )

    async def update_book(self, book_id: str, data: BookInput, acting_user: ActingUser) -> BookResponse:
        """
        Replace a book's fields.

        Raises:
            NotFoundError: No book has this id
            ForbiddenError: The acting user did not create the book
        """
        book = await self._require_owned_book(book_id, acting_user, "update")

        document = await self.database.update_book(book["id"], data.model_dump(mode="json"))
        if document is None:
            # Deleted between the ownership check and the update
            raise NotFoundError("Book not found")
        self.audit.log_book_updated(book["id"], acting_user.id)

        summary = await self.aggregator.compute_rating_summary(book["id"])
        return build_book_response(document, {acting_user.id: {"name": acting_user.name}}, summary)

    async def delete_book(self, book_id: str, acting_user: ActingUser) -> int:
        """
        Delete a book and every review referencing it.

        Reviews go first so no review outlives its book.

        Returns:
            Number of reviews removed
        """
        book = await self._require_owned_book(book_id, acting_user, "delete")

        reviews_removed = await self.database.delete_book_cascade(book["id"])
        self.audit.log_book_deleted(book["id"], acting_user.id, reviews_removed)
        return reviews_removed

    async def rating_distribution(self, book_id: str) -> RatingDistribution:
        book = await self._require_book(book_id)
        return await self.aggregator.compute_rating_distribution(book["id"])

    async def _require_book(self, book_id: str) -> Dict[str, Any]:
        document = await self.database.get_book(book_id)
        if document is None:
            raise NotFoundError("Book not found")
        return document

    async def _require_owned_book(self, book_id: str, acting_user: ActingUser, action: str) -> Dict[str, Any]:
        """Existence is checked before ownership."""
        book = await self._require_book(book_id)
        if book["added_by"] != acting_user.id:
            self.audit.log_ownership_denied("book", book["id"], acting_user.id, action)
            raise ForbiddenError(f"Not authorized to {action} this book")
        return book
