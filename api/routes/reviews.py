"""
Review endpoints: per-book and per-user listings and author-only mutation.
"""

from fastapi import APIRouter, Depends, Query, status

from api.auth import get_acting_user
from api.dependencies import get_review_service
from api.models import Envelope, ReviewEnvelope, ReviewListEnvelope, envelope_response
from catalog.models import MAX_PAGE_NUMBER, ActingUser, ReviewCreate, ReviewInput
from catalog.review_service import ReviewService
from utilities.config import config

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.get("/book/{book_id}", response_model=ReviewListEnvelope)
async def list_reviews_for_book(
    book_id: str,
    page: int = Query(1, ge=1, le=MAX_PAGE_NUMBER, description="Page number (starts from 1)"),
    limit: int = Query(config.default_reviews_page_size, ge=1, le=config.max_page_size, description="Items per page"),
    service: ReviewService = Depends(get_review_service)
):
    result = await service.list_by_book(book_id, page, limit)
    return envelope_response(ReviewListEnvelope(reviews=result.reviews, pagination=result.pagination))


@router.get("/user/{user_id}", response_model=ReviewListEnvelope)
async def list_reviews_by_user(
    user_id: str,
    page: int = Query(1, ge=1, le=MAX_PAGE_NUMBER, description="Page number (starts from 1)"),
    limit: int = Query(config.default_reviews_page_size, ge=1, le=config.max_page_size, description="Items per page"),
    service: ReviewService = Depends(get_review_service)
):
    """Get a user's reviews, each with the reviewed book's title and author."""
    result = await service.list_by_user(user_id, page, limit)
    return envelope_response(ReviewListEnvelope(reviews=result.reviews, pagination=result.pagination))


@router.post("", response_model=ReviewEnvelope, status_code=status.HTTP_201_CREATED)
async def create_review(
    data: ReviewCreate,
    acting_user: ActingUser = Depends(get_acting_user),
    service: ReviewService = Depends(get_review_service)
):
    """Review a book. Each user may review a book once."""
    review = await service.create_review(data, acting_user)
    return envelope_response(
        ReviewEnvelope(message="Review created successfully", review=review),
        status_code=status.HTTP_201_CREATED
    )


@router.put("/{review_id}", response_model=ReviewEnvelope)
async def update_review(
    review_id: str,
    data: ReviewInput,
    acting_user: ActingUser = Depends(get_acting_user),
    service: ReviewService = Depends(get_review_service)
):
    review = await service.update_review(review_id, data, acting_user)
    return envelope_response(ReviewEnvelope(message="Review updated successfully", review=review))


@router.delete("/{review_id}", response_model=Envelope)
async def delete_review(
    review_id: str,
    acting_user: ActingUser = Depends(get_acting_user),
    service: ReviewService = Depends(get_review_service)
):
    await service.delete_review(review_id, acting_user)
    return envelope_response(Envelope(message="Review deleted successfully"))
