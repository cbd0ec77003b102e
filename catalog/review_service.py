"""
Review service: CRUD over reviews with the one-review-per-user-per-book rule
and author-only mutation.
"""

from typing import Any, Dict, Optional

from catalog.exceptions import ConflictError, ForbiddenError, NotFoundError
from catalog.models import (
    ActingUser, BookRef, Pagination, ReviewCreate, ReviewInput, ReviewPage,
    ReviewResponse, UserRef
)
from utilities.logger import AuditLogger, get_logger

logger = get_logger(__name__)


def build_review_response(
    document: Dict[str, Any],
    users: Dict[str, Dict[str, Any]],
    books: Optional[Dict[str, Dict[str, Any]]] = None,
    include_book_author: bool = False
) -> ReviewResponse:
    """
    Attach author name (and book title/author when books are given) to a review.

    Args:
        document: Normalized review document
        users: Users by id, as returned by get_users()
        books: Books by id, as returned by get_books()
        include_book_author: Also attach the book's author
    """
    user = users.get(document["user_id"], {})
    book_ref = None
    if books is not None:
        book = books.get(document["book_id"], {})
        book_ref = BookRef(
            id=document["book_id"],
            title=book.get("title"),
            author=book.get("author") if include_book_author else None
        )

    return ReviewResponse(
        id=document["id"],
        book_id=document["book_id"],
        user=UserRef(id=document["user_id"], name=user.get("name")),
        rating=document["rating"],
        review_text=document["review_text"],
        created_at=document.get("created_at"),
        updated_at=document.get("updated_at"),
        book=book_ref
    )


class ReviewService:
    """Review operations over the catalog database."""

    def __init__(self, database, audit_logger: Optional[AuditLogger] = None):
        self.database = database
        self.audit = audit_logger or AuditLogger()

    async def list_by_book(self, book_id: str, page: int, limit: int) -> ReviewPage:
        """
        Get reviews of a book, newest first, with author names.

        An unknown book yields an empty page.
        """
        skip = (page - 1) * limit
        total = await self.database.count_reviews(book_id=book_id)
        documents = await self.database.find_reviews(book_id=book_id, skip=skip, limit=limit)
        users = await self.database.get_users(document["user_id"] for document in documents)

        return ReviewPage(
            reviews=[build_review_response(document, users) for document in documents],
            pagination=Pagination.build(page, limit, total)
        )

    async def list_by_user(self, user_id: str, page: int, limit: int) -> ReviewPage:
        """Get reviews written by a user, newest first, with book title and author."""
        skip = (page - 1) * limit
        total = await self.database.count_reviews(user_id=user_id)
        documents = await self.database.find_reviews(user_id=user_id, skip=skip, limit=limit)
        users = await self.database.get_users(document["user_id"] for document in documents)
        books = await self.database.get_books(document["book_id"] for document in documents)

        return ReviewPage(
            reviews=[
                build_review_response(document, users, books, include_book_author=True)
                for document in documents
            ],
            pagination=Pagination.build(page, limit, total)
        )

    async def create_review(self, data: ReviewCreate, acting_user: ActingUser) -> ReviewResponse:
        """
        Create a review of a book by the acting user.

        The duplicate check and the insert are separate round-trips; concurrent
        duplicate submissions can both pass the check unless the unique index
        is enabled.

        Raises:
            NotFoundError: The book does not exist
            ConflictError: The acting user already reviewed the book
        """
        book = await self.database.get_book(data.book_id)
        if book is None:
            raise NotFoundError("Book not found")

        existing = await self.database.find_user_review(book["id"], acting_user.id)
        if existing is not None:
            self.audit.log_duplicate_review(book["id"], acting_user.id)
            raise ConflictError("You have already reviewed this book")

        document = await self.database.insert_review(
            book_id=book["id"],
            user_id=acting_user.id,
            rating=data.rating,
            review_text=data.review_text
        )
        self.audit.log_review_created(document["id"], book["id"], acting_user.id, data.rating)

        return build_review_response(
            document,
            {acting_user.id: {"name": acting_user.name}},
            {book["id"]: book}
        )

    async def update_review(self, review_id: str, data: ReviewInput, acting_user: ActingUser) -> ReviewResponse:
        review = await self._require_owned_review(review_id, acting_user, "update")

        document = await self.database.update_review(review["id"], {
            "rating": data.rating,
            "review_text": data.review_text,
        })
        if document is None:
            # Deleted between the ownership check and the update
            raise NotFoundError("Review not found")
        self.audit.log_review_updated(review["id"], acting_user.id)

        books = await self.database.get_books([document["book_id"]])
        return build_review_response(document, {acting_user.id: {"name": acting_user.name}}, books)

    async def delete_review(self, review_id: str, acting_user: ActingUser) -> None:
        review = await self._require_owned_review(review_id, acting_user, "delete")
        await self.database.delete_review(review["id"])
        self.audit.log_review_deleted(review["id"], acting_user.id)

    async def _require_owned_review(self, review_id: str, acting_user: ActingUser, action: str) -> Dict[str, Any]:
        """Existence is checked before ownership."""
        review = await self.database.get_review(review_id)
        if review is None:
            raise NotFoundError("Review not found")

        if review["user_id"] != acting_user.id:
            self.audit.log_ownership_denied("review", review["id"], acting_user.id, action)
            raise ForbiddenError(f"Not authorized to {action} this review")

        return review
