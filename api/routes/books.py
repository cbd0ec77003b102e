"""
Book endpoints: listing, detail, rating histogram and owner-only mutation.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from api.auth import get_acting_user
from api.dependencies import get_book_service
from api.models import (
    BookDetailEnvelope, BookEnvelope, BookListEnvelope, DistributionEnvelope,
    Envelope, envelope_response
)
from catalog.book_service import BookCatalogService
from catalog.models import MAX_PAGE_NUMBER, ActingUser, BookInput, BookQuery, SortBy, SortOrder
from utilities.config import config

router = APIRouter(prefix="/books", tags=["Books"])


@router.get("", response_model=BookListEnvelope)
async def list_books(
    page: int = Query(1, ge=1, le=MAX_PAGE_NUMBER, description="Page number (starts from 1)"),
    limit: int = Query(config.default_books_page_size, ge=1, le=config.max_page_size, description="Items per page"),
    search: Optional[str] = Query(None, description="Case-insensitive title/author substring"),
    genre: Optional[str] = Query(None, description="Exact genre, or 'All'"),
    sort_by: SortBy = Query(SortBy.NEWEST, alias="sortBy", description="newest, year or rating"),
    sort_order: SortOrder = Query(SortOrder.ASC, alias="sortOrder", description="asc or desc"),
    service: BookCatalogService = Depends(get_book_service)
):
    """
    Get books with search, genre filtering, sorting, and pagination.

    - **search**: Matches title or author, case-insensitively
    - **genre**: Restrict to one genre ("All" or absent for every genre)
    - **sortBy**: newest (default), year or rating
    - **sortOrder**: asc (default) or desc; ignored for newest
    """
    query = BookQuery(
        search=search,
        genre=genre,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit
    )
    result = await service.list_books(query)
    return envelope_response(BookListEnvelope(books=result.books, pagination=result.pagination))


@router.get("/{book_id}", response_model=BookDetailEnvelope)
async def get_book(book_id: str, service: BookCatalogService = Depends(get_book_service)):
    """Get a single book with its reviews and rating statistics."""
    book = await service.get_book(book_id)
    return envelope_response(BookDetailEnvelope(book=book))


@router.get("/{book_id}/ratings", response_model=DistributionEnvelope)
async def get_rating_distribution(book_id: str, service: BookCatalogService = Depends(get_book_service)):
    """Get the number of reviews per rating 1-5."""
    distribution = await service.rating_distribution(book_id)
    return envelope_response(DistributionEnvelope(distribution=distribution))


@router.post("", response_model=BookEnvelope, status_code=status.HTTP_201_CREATED)
async def create_book(
    data: BookInput,
    acting_user: ActingUser = Depends(get_acting_user),
    service: BookCatalogService = Depends(get_book_service)
):
    book = await service.create_book(data, acting_user)
    return envelope_response(
        BookEnvelope(message="Book created successfully", book=book),
        status_code=status.HTTP_201_CREATED
    )


@router.put("/{book_id}", response_model=BookEnvelope)
async def update_book(
    book_id: str,
    data: BookInput,
    acting_user: ActingUser = Depends(get_acting_user),
    service: BookCatalogService = Depends(get_book_service)
):
    """Update a book. Only its creator may do so."""
    book = await service.update_book(book_id, data, acting_user)
    return envelope_response(BookEnvelope(message="Book updated successfully", book=book))


@router.delete("/{book_id}", response_model=Envelope)
async def delete_book(
    book_id: str,
    acting_user: ActingUser = Depends(get_acting_user),
    service: BookCatalogService = Depends(get_book_service)
):
    """Delete a book and all of its reviews. Only its creator may do so."""
    await service.delete_book(book_id, acting_user)
    return envelope_response(Envelope(message="Book deleted successfully"))
