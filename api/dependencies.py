"""
FastAPI dependencies providing the catalog database and services.
"""

from fastapi import Depends, HTTPException, status

from catalog.book_service import BookCatalogService
from catalog.database import CatalogDatabase
from catalog.review_service import ReviewService

# Global database handle, set by the application lifespan
catalog_db: CatalogDatabase = None


def get_catalog_database() -> CatalogDatabase:
    if catalog_db is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database service not available"
        )
    return catalog_db


def get_book_service(database: CatalogDatabase = Depends(get_catalog_database)) -> BookCatalogService:
    return BookCatalogService(database)


def get_review_service(database: CatalogDatabase = Depends(get_catalog_database)) -> ReviewService:
    return ReviewService(database)
