"""
Pytest configuration and shared fixtures.
"""

import itertools
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from api.auth import AccessTokenManager
from catalog.models import ALL_GENRES, ActingUser, BookInput, BookQuery, SortBy, SortOrder
from catalog.book_service import BookCatalogService
from catalog.review_service import ReviewService


class InMemoryCatalogDatabase:
    """
    In-memory implementation of the CatalogDatabase interface.

    Timestamps come from a monotonic clock so newest-first ordering is deterministic.
    """

    def __init__(self):
        self.books: Dict[str, Dict[str, Any]] = {}
        self.reviews: Dict[str, Dict[str, Any]] = {}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.tokens: Dict[str, Dict[str, Any]] = {}
        self.operations: List[str] = []
        self._clock = itertools.count()

    def _now(self) -> datetime:
        return datetime(2024, 1, 1) + timedelta(seconds=next(self._clock))

    # Users and tokens

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        user = self.users.get(user_id)
        return dict(user) if user else None

    async def get_users(self, user_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        return {uid: dict(self.users[uid]) for uid in set(user_ids) if uid in self.users}

    async def insert_user(self, name: str, email: str) -> Dict[str, Any]:
        user = {"id": str(ObjectId()), "name": name, "email": email, "created_at": self._now()}
        self.users[user["id"]] = user
        return dict(user)

    async def count_users(self) -> int:
        return len(self.users)

    async def insert_token(self, token_hash: str, user_id: str, expires_at: Optional[datetime]) -> None:
        self.tokens[token_hash] = {
            "id": str(ObjectId()),
            "token_hash": token_hash,
            "user_id": user_id,
            "created_at": self._now(),
            "expires_at": expires_at,
            "is_active": True,
        }

    async def find_token(self, token_hash: str) -> Optional[Dict[str, Any]]:
        token = self.tokens.get(token_hash)
        return dict(token) if token else None

    async def deactivate_token(self, token_hash: str) -> bool:
        if token_hash not in self.tokens:
            return False
        self.tokens[token_hash]["is_active"] = False
        return True

    def add_token(self, token: str, user_id: str, expires_at: Optional[datetime] = None) -> None:
        self.tokens[AccessTokenManager.hash_token(token)] = {
            "id": str(ObjectId()),
            "token_hash": AccessTokenManager.hash_token(token),
            "user_id": user_id,
            "created_at": self._now(),
            "expires_at": expires_at,
            "is_active": True,
        }

    # Books

    def _average(self, book_id: str) -> float:
        ratings = [r["rating"] for r in self.reviews.values() if r["book_id"] == book_id]
        return sum(ratings) / len(ratings) if ratings else 0

    def _matching_books(self, query: Optional[BookQuery]) -> List[Dict[str, Any]]:
        books = list(self.books.values())
        if query is None:
            return books
        if query.search:
            needle = query.search.strip().lower()
            books = [
                b for b in books
                if needle in b["title"].lower() or needle in b["author"].lower()
            ]
        if query.genre and query.genre != ALL_GENRES:
            books = [b for b in books if b["genre"] == query.genre]
        return books

    async def find_books(self, query: BookQuery, skip: int, limit: int) -> List[Dict[str, Any]]:
        books = sorted(self._matching_books(query), key=lambda b: b["created_at"], reverse=True)
        descending = query.sort_order == SortOrder.DESC
        if query.sort_by == SortBy.YEAR:
            books = sorted(books, key=lambda b: b["year"], reverse=descending)
        elif query.sort_by == SortBy.RATING:
            books = sorted(books, key=lambda b: self._average(b["id"]), reverse=descending)
        return [dict(b) for b in books[skip:skip + limit]]

    async def count_books(self, query: Optional[BookQuery] = None) -> int:
        return len(self._matching_books(query))

    async def get_book(self, book_id: str) -> Optional[Dict[str, Any]]:
        book = self.books.get(book_id)
        return dict(book) if book else None

    async def get_books(self, book_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        return {bid: dict(self.books[bid]) for bid in set(book_ids) if bid in self.books}

    async def insert_book(self, fields: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        now = self._now()
        book = dict(fields, id=str(ObjectId()), added_by=user_id, created_at=now, updated_at=now)
        self.books[book["id"]] = book
        return dict(book)

    async def update_book(self, book_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if book_id not in self.books:
            return None
        self.books[book_id].update(fields, updated_at=self._now())
        return dict(self.books[book_id])

    async def delete_book_cascade(self, book_id: str) -> int:
        doomed = [rid for rid, r in self.reviews.items() if r["book_id"] == book_id]
        for review_id in doomed:
            del self.reviews[review_id]
        self.operations.append("delete_reviews")
        self.books.pop(book_id, None)
        self.operations.append("delete_book")
        return len(doomed)

    # Reviews

    def _matching_reviews(self, book_id=None, user_id=None) -> List[Dict[str, Any]]:
        reviews = [
            r for r in self.reviews.values()
            if (book_id is None or r["book_id"] == book_id)
            and (user_id is None or r["user_id"] == user_id)
        ]
        return sorted(reviews, key=lambda r: r["created_at"], reverse=True)

    async def find_reviews(self, book_id=None, user_id=None, skip: int = 0, limit: Optional[int] = None):
        reviews = self._matching_reviews(book_id, user_id)[skip:]
        if limit is not None:
            reviews = reviews[:limit]
        return [dict(r) for r in reviews]

    async def count_reviews(self, book_id=None, user_id=None) -> int:
        return len(self._matching_reviews(book_id, user_id))

    async def get_review(self, review_id: str) -> Optional[Dict[str, Any]]:
        review = self.reviews.get(review_id)
        return dict(review) if review else None

    async def find_user_review(self, book_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        matches = self._matching_reviews(book_id, user_id)
        return dict(matches[0]) if matches else None

    async def insert_review(self, book_id: str, user_id: str, rating: int, review_text: str) -> Dict[str, Any]:
        now = self._now()
        review = {
            "id": str(ObjectId()),
            "book_id": book_id,
            "user_id": user_id,
            "rating": rating,
            "review_text": review_text,
            "created_at": now,
            "updated_at": now,
        }
        self.reviews[review["id"]] = review
        return dict(review)

    async def update_review(self, review_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if review_id not in self.reviews:
            return None
        self.reviews[review_id].update(fields, updated_at=self._now())
        return dict(self.reviews[review_id])

    async def delete_review(self, review_id: str) -> bool:
        return self.reviews.pop(review_id, None) is not None

    async def get_ratings(self, book_ids: Iterable[str]) -> Dict[str, List[int]]:
        wanted = set(book_ids)
        ratings: Dict[str, List[int]] = {}
        for review in self.reviews.values():
            if review["book_id"] in wanted:
                ratings.setdefault(review["book_id"], []).append(review["rating"])
        return ratings

    async def find_orphaned_review_ids(self) -> List[str]:
        return [rid for rid, r in self.reviews.items() if r["book_id"] not in self.books]

    async def delete_reviews(self, review_ids: Iterable[str]) -> int:
        return sum(1 for rid in list(review_ids) if self.reviews.pop(rid, None) is not None)


def _seed_user(db: InMemoryCatalogDatabase, name: str) -> ActingUser:
    user_id = str(ObjectId())
    db.users[user_id] = {"id": user_id, "name": name, "email": f"{name.lower()}@example.com"}
    return ActingUser(id=user_id, name=name)


@pytest.fixture
def fake_db():
    """Create an empty in-memory catalog database."""
    return InMemoryCatalogDatabase()


@pytest.fixture
def alice(fake_db):
    return _seed_user(fake_db, "Alice")


@pytest.fixture
def bob(fake_db):
    return _seed_user(fake_db, "Bob")


@pytest.fixture
def book_service(fake_db):
    return BookCatalogService(fake_db)


@pytest.fixture
def review_service(fake_db):
    return ReviewService(fake_db)


@pytest.fixture
def dune_input():
    """Book input used across service and API tests."""
    return BookInput(
        title="Dune",
        author="Frank Herbert",
        description="A desert planet saga spanning politics and prophecy.",
        genre="Science Fiction",
        year=1965
    )


@pytest.fixture
def client(fake_db):
    """Create a test client backed by the in-memory database."""
    from api.dependencies import get_catalog_database
    from api.main import app, rate_limiter

    rate_limiter.reset()
    app.dependency_overrides[get_catalog_database] = lambda: fake_db
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
    rate_limiter.reset()


@pytest.fixture
def alice_headers(fake_db, alice):
    fake_db.add_token("token-alice", alice.id)
    return {"Authorization": "Bearer token-alice"}


@pytest.fixture
def bob_headers(fake_db, bob):
    fake_db.add_token("token-bob", bob.id)
    return {"Authorization": "Bearer token-bob"}
