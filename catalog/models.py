"""
Pydantic models for book and review validation and serialization.
Field names are snake_case in Python and camelCase on the wire.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, validator
from pydantic.alias_generators import to_camel


class Genre(str, Enum):
    """Fixed genre enumeration (exact casing)."""
    FICTION = "Fiction"
    NON_FICTION = "Non-Fiction"
    MYSTERY = "Mystery"
    ROMANCE = "Romance"
    SCIENCE_FICTION = "Science Fiction"
    FANTASY = "Fantasy"
    BIOGRAPHY = "Biography"
    HISTORY = "History"
    SELF_HELP = "Self-Help"
    BUSINESS = "Business"
    TECHNOLOGY = "Technology"
    OTHER = "Other"


# Genre filter value meaning "no genre restriction"
ALL_GENRES = "All"

RATING_VALUES = (1, 2, 3, 4, 5)

# Largest page number accepted by listings
MAX_PAGE_NUMBER = 1_000_000


class SortBy(str, Enum):
    """Sort options for book listings."""
    NEWEST = "newest"
    YEAR = "year"
    RATING = "rating"


class SortOrder(str, Enum):
    """Sort order options."""
    ASC = "asc"
    DESC = "desc"


class CatalogModel(BaseModel):
    """Base model rendering camelCase keys while accepting either spelling."""

    class Config:
        """Pydantic configuration."""
        alias_generator = to_camel
        populate_by_name = True


class ActingUser(CatalogModel):
    """Identity resolved from a request credential."""
    id: str = Field(..., description="User identifier")
    name: str = Field(..., description="Display name")


class UserRef(CatalogModel):
    """Reference to a user with display name attached."""
    id: str = Field(..., description="User identifier")
    name: Optional[str] = Field(None, description="Display name")


class BookRef(CatalogModel):
    """Reference to a book with title (and author where requested) attached."""
    id: str = Field(..., description="Book identifier")
    title: Optional[str] = Field(None, description="Book title")
    author: Optional[str] = Field(None, description="Book author")


class BookInput(CatalogModel):
    """Fields accepted when creating or updating a book."""
    title: str = Field(..., min_length=1, max_length=200, description="Book title")
    author: str = Field(..., min_length=1, max_length=100, description="Book author")
    description: str = Field(..., min_length=10, max_length=2000, description="Book description")
    genre: Genre = Field(..., description="Book genre")
    year: int = Field(..., ge=1000, description="Published year")

    @validator('year')
    def validate_year_not_future(cls, v):
        """Ensure the published year is not after the current year."""
        if v > datetime.utcnow().year:
            raise ValueError('Year cannot be in the future')
        return v

    class Config:
        """Pydantic configuration."""
        alias_generator = to_camel
        populate_by_name = True
        str_strip_whitespace = True
        json_schema_extra = {
            "example": {
                "title": "Dune",
                "author": "Frank Herbert",
                "description": "A desert planet saga spanning politics and prophecy.",
                "genre": "Science Fiction",
                "year": 1965
            }
        }


class ReviewInput(CatalogModel):
    """Fields accepted when updating a review."""
    rating: int = Field(..., ge=1, le=5, description="Star rating (1-5)")
    review_text: str = Field(..., min_length=10, max_length=1000, description="Review text")

    @validator('rating', pre=True)
    def reject_boolean_rating(cls, v):
        """Booleans are not star ratings."""
        if isinstance(v, bool):
            raise ValueError('Rating must be an integer between 1 and 5')
        return v

    class Config:
        """Pydantic configuration."""
        alias_generator = to_camel
        populate_by_name = True
        str_strip_whitespace = True


class ReviewCreate(ReviewInput):
    """Fields accepted when creating a review."""
    book_id: str = Field(..., min_length=1, description="Reviewed book identifier")


class BookQuery(CatalogModel):
    """Query parameters for book listing."""
    search: Optional[str] = Field(None, description="Case-insensitive title/author substring")
    genre: Optional[str] = Field(None, description="Exact genre, or 'All'")
    sort_by: SortBy = Field(SortBy.NEWEST, description="Sort field")
    sort_order: SortOrder = Field(SortOrder.ASC, description="Sort order")
    page: int = Field(1, ge=1, le=MAX_PAGE_NUMBER, description="Page number")
    limit: int = Field(5, ge=1, description="Items per page")

    @validator('search', 'genre')
    def blank_to_none(cls, v):
        """Treat empty filter values as absent."""
        if v is not None and not v.strip():
            return None
        return v


class Pagination(CatalogModel):
    """Pagination metadata for list responses."""
    current_page: int = Field(..., description="Current page number")
    total_pages: int = Field(..., description="Total number of pages")
    total_items: int = Field(..., description="Total number of matching items")
    has_next: bool = Field(..., description="Whether there is a next page")
    has_prev: bool = Field(..., description="Whether there is a previous page")

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> 'Pagination':
        return cls(
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_items=total,
            has_next=page * limit < total,
            has_prev=page > 1
        )


class RatingSummary(CatalogModel):
    """Derived rating statistics of a book."""
    average_rating: float = Field(0, description="Mean rating rounded to one decimal")
    review_count: int = Field(0, description="Number of reviews")


class ReviewResponse(CatalogModel):
    """Review with author (and book where requested) attached."""
    id: str = Field(..., description="Unique review identifier")
    book_id: str = Field(..., description="Reviewed book identifier")
    user: UserRef = Field(..., description="Review author")
    rating: int = Field(..., description="Star rating (1-5)")
    review_text: str = Field(..., description="Review text")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")
    book: Optional[BookRef] = Field(None, description="Reviewed book details")


class BookResponse(CatalogModel):
    """Book with creator and live rating statistics attached."""
    id: str = Field(..., description="Unique book identifier")
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")
    description: str = Field(..., description="Book description")
    genre: str = Field(..., description="Book genre")
    year: int = Field(..., description="Published year")
    added_by: UserRef = Field(..., description="User who added the book")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")
    average_rating: float = Field(0, description="Mean rating rounded to one decimal")
    review_count: int = Field(0, description="Number of reviews")


class BookDetail(BookResponse):
    """Single book with its full review list, newest first."""
    reviews: List[ReviewResponse] = Field(default_factory=list, description="Reviews of the book")


class BookPage(CatalogModel):
    """Page of books with pagination metadata."""
    books: List[BookResponse] = Field(..., description="Books on this page")
    pagination: Pagination = Field(..., description="Pagination metadata")


class ReviewPage(CatalogModel):
    """Page of reviews with pagination metadata."""
    reviews: List[ReviewResponse] = Field(..., description="Reviews on this page")
    pagination: Pagination = Field(..., description="Pagination metadata")


RatingDistribution = Dict[int, int]
