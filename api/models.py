"""
API response envelopes for the FastAPI application.

Every response carries a success flag; failures carry a message and,
for validation failures, itemized field errors.
"""

from datetime import datetime
from typing import Dict, List, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from catalog.models import (
    BookDetail, BookResponse, CatalogModel, Pagination, ReviewResponse
)


class Envelope(CatalogModel):
    """Base success envelope."""
    success: bool = Field(True, description="Whether the request succeeded")
    message: Optional[str] = Field(None, description="Human-readable outcome")


class BookEnvelope(Envelope):
    book: BookResponse = Field(..., description="Created or updated book")


class BookDetailEnvelope(Envelope):
    book: BookDetail = Field(..., description="Book with reviews and rating statistics")


class BookListEnvelope(Envelope):
    books: List[BookResponse] = Field(..., description="Books on this page")
    pagination: Pagination = Field(..., description="Pagination metadata")


class ReviewEnvelope(Envelope):
    review: ReviewResponse = Field(..., description="Created or updated review")


class ReviewListEnvelope(Envelope):
    reviews: List[ReviewResponse] = Field(..., description="Reviews on this page")
    pagination: Pagination = Field(..., description="Pagination metadata")


class DistributionEnvelope(Envelope):
    distribution: Dict[int, int] = Field(..., description="Review count per rating 1-5")


class FieldError(BaseModel):
    """Single field-level validation failure."""
    field: str = Field(..., description="Offending field")
    message: str = Field(..., description="Why the value was rejected")


class ErrorResponse(BaseModel):
    """Error response model."""
    success: bool = Field(False, description="Always false")
    message: str = Field(..., description="Error message")
    errors: Optional[List[FieldError]] = Field(None, description="Field-level validation errors")
    detail: Optional[str] = Field(None, description="Additional error details (debug only)")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")


def envelope_response(envelope: BaseModel, status_code: int = 200, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    """Render an envelope with camelCase keys, omitting unset optional values."""
    return JSONResponse(
        status_code=status_code,
        content=envelope.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers
    )
