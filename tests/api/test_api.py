"""
Tests for the FastAPI application.
"""

from unittest.mock import AsyncMock, patch

import pytest

from catalog.book_service import BookCatalogService


DUNE = {
    "title": "Dune",
    "author": "Frank Herbert",
    "description": "A desert planet saga spanning politics and prophecy.",
    "genre": "Science Fiction",
    "year": 1965
}


def create_book(client, headers, **overrides):
    response = client.post("/books", json=dict(DUNE, **overrides), headers=headers)
    assert response.status_code == 201
    return response.json()["book"]


def create_review(client, headers, book_id, rating=5, text="Spice, sandworms and politics."):
    return client.post(
        "/reviews",
        json={"bookId": book_id, "rating": rating, "reviewText": text},
        headers=headers
    )


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert "status" in data
    assert "timestamp" in data
    assert "version" in data
    assert "database_status" in data


class TestAuthentication:

    def test_mutation_without_token(self, client):
        response = client.post("/books", json=DUNE)
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Not authorized, no token"}

    def test_mutation_with_unknown_token(self, client):
        response = client.post("/books", json=DUNE, headers={"Authorization": "Bearer bk_unknown"})
        assert response.status_code == 401
        assert response.json()["message"] == "Not authorized, token failed"

    def test_revoked_token(self, client, fake_db, alice_headers):
        fake_db.tokens[next(iter(fake_db.tokens))]["is_active"] = False
        response = client.post("/books", json=DUNE, headers=alice_headers)
        assert response.status_code == 401

    def test_reads_are_public(self, client):
        response = client.get("/books")
        assert response.status_code == 200
        assert response.json()["success"] is True


class TestBooksEndpoints:

    def test_create_book(self, client, alice, alice_headers):
        response = client.post("/books", json=DUNE, headers=alice_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Book created successfully"
        assert data["book"]["addedBy"] == {"id": alice.id, "name": "Alice"}
        assert data["book"]["averageRating"] == 0
        assert data["book"]["reviewCount"] == 0
        assert "createdAt" in data["book"]

    def test_create_book_validation_errors(self, client, alice_headers):
        response = client.post(
            "/books",
            json=dict(DUNE, title="", description="short", year=3000),
            headers=alice_headers
        )

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["message"] == "Validation failed"
        fields = {error["field"] for error in data["errors"]}
        assert {"title", "description", "year"} <= fields

    def test_create_book_unknown_genre(self, client, alice_headers):
        response = client.post("/books", json=dict(DUNE, genre="Poetry"), headers=alice_headers)
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "genre"

    def test_list_books_envelope(self, client, alice_headers):
        for title in ("Dune", "Children of Dune", "Emma"):
            create_book(client, alice_headers, title=title)

        response = client.get("/books", params={"search": "dune", "limit": 1})

        assert response.status_code == 200
        data = response.json()
        assert [b["title"] for b in data["books"]] == ["Children of Dune"]
        assert data["pagination"] == {
            "currentPage": 1,
            "totalPages": 2,
            "totalItems": 2,
            "hasNext": True,
            "hasPrev": False
        }

    def test_list_books_sort_and_genre(self, client, alice_headers):
        create_book(client, alice_headers, title="Old", year=1900)
        create_book(client, alice_headers, title="New", year=2001)
        create_book(client, alice_headers, title="Case", genre="Mystery", year=1950)

        response = client.get("/books", params={"sortBy": "year", "sortOrder": "desc", "genre": "Science Fiction"})
        assert [b["title"] for b in response.json()["books"]] == ["New", "Old"]

    def test_list_books_limit_above_maximum(self, client):
        response = client.get("/books", params={"limit": 1000})
        assert response.status_code == 400

    @pytest.mark.parametrize("path", ["/books", "/reviews/book/507f1f77bcf86cd799439011", "/reviews/user/u1"])
    def test_page_above_maximum(self, client, path):
        response = client.get(path, params={"page": 10 ** 19})
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "page"

    def test_list_books_invalid_sort(self, client):
        response = client.get("/books", params={"sortBy": "title"})
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "sortBy"

    def test_get_unknown_book(self, client):
        response = client.get("/books/507f1f77bcf86cd799439011")
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Book not found"}

    def test_update_book_by_non_owner(self, client, alice_headers, bob_headers):
        book = create_book(client, alice_headers)

        response = client.put(f"/books/{book['id']}", json=dict(DUNE, title="Mine now"), headers=bob_headers)

        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized to update this book"

    def test_update_book_by_owner(self, client, alice_headers):
        book = create_book(client, alice_headers)

        response = client.put(f"/books/{book['id']}", json=dict(DUNE, year=1966), headers=alice_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Book updated successfully"
        assert response.json()["book"]["year"] == 1966

    def test_delete_book_cascades(self, client, alice_headers, bob_headers):
        book = create_book(client, alice_headers)
        review_id = create_review(client, bob_headers, book["id"]).json()["review"]["id"]

        response = client.delete(f"/books/{book['id']}", headers=alice_headers)
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Book deleted successfully"}

        assert client.get(f"/books/{book['id']}").status_code == 404
        assert client.delete(f"/reviews/{review_id}", headers=bob_headers).status_code == 404

    def test_rating_distribution(self, client, alice_headers, bob_headers):
        book = create_book(client, alice_headers)
        create_review(client, alice_headers, book["id"], rating=3)
        create_review(client, bob_headers, book["id"], rating=5)

        response = client.get(f"/books/{book['id']}/ratings")

        assert response.status_code == 200
        assert response.json()["distribution"] == {"1": 0, "2": 0, "3": 1, "4": 0, "5": 1}


class TestReviewsEndpoints:

    def test_dune_scenario(self, client, alice_headers, bob_headers):
        book = create_book(client, alice_headers)

        first = create_review(client, bob_headers, book["id"], rating=5)
        assert first.status_code == 201
        assert first.json()["message"] == "Review created successfully"

        second = create_review(client, bob_headers, book["id"], rating=1)
        assert second.status_code == 400
        assert second.json()["message"] == "You have already reviewed this book"

        detail = client.get(f"/books/{book['id']}").json()["book"]
        assert detail["averageRating"] == 5.0
        assert detail["reviewCount"] == 1
        assert detail["reviews"][0]["user"]["name"] == "Bob"

    def test_review_validation(self, client, alice_headers):
        book = create_book(client, alice_headers)

        response = create_review(client, alice_headers, book["id"], rating=6, text="too short")

        assert response.status_code == 400
        fields = {error["field"] for error in response.json()["errors"]}
        assert fields == {"rating", "reviewText"}

        response = create_review(client, alice_headers, book["id"], rating=True)
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "rating"

        created = create_review(client, alice_headers, book["id"], rating="4")
        assert created.status_code == 201
        assert created.json()["review"]["rating"] == 4

        response = client.put(
            f"/reviews/{created.json()['review']['id']}",
            json={"rating": False, "reviewText": "Boolean ratings are not stars."},
            headers=alice_headers
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "rating"

    def test_review_unknown_book(self, client, bob_headers):
        response = create_review(client, bob_headers, "507f1f77bcf86cd799439011")
        assert response.status_code == 404

    def test_update_and_delete_by_non_author(self, client, alice_headers, bob_headers):
        book = create_book(client, alice_headers)
        review_id = create_review(client, bob_headers, book["id"]).json()["review"]["id"]
        body = {"rating": 1, "reviewText": "Overwritten by someone else."}

        assert client.put(f"/reviews/{review_id}", json=body, headers=alice_headers).status_code == 403
        assert client.delete(f"/reviews/{review_id}", headers=alice_headers).status_code == 403

        response = client.put(f"/reviews/{review_id}", json=body, headers=bob_headers)
        assert response.status_code == 200
        assert response.json()["review"]["rating"] == 1

        response = client.delete(f"/reviews/{review_id}", headers=bob_headers)
        assert response.json() == {"success": True, "message": "Review deleted successfully"}

    def test_list_reviews_for_book(self, client, alice_headers, bob_headers):
        book = create_book(client, alice_headers)
        create_review(client, alice_headers, book["id"], rating=4)
        create_review(client, bob_headers, book["id"], rating=2)

        data = client.get(f"/reviews/book/{book['id']}").json()

        assert [r["user"]["name"] for r in data["reviews"]] == ["Bob", "Alice"]
        assert data["pagination"]["totalItems"] == 2

    def test_list_reviews_by_user(self, client, bob, alice_headers, bob_headers):
        book = create_book(client, alice_headers)
        create_review(client, bob_headers, book["id"])

        data = client.get(f"/reviews/user/{bob.id}").json()

        assert data["reviews"][0]["book"] == {"id": book["id"], "title": "Dune", "author": "Frank Herbert"}


class TestRateLimiting:

    def test_rate_limit_headers(self, client):
        response = client.get("/books")
        assert response.headers["X-RateLimit-Limit"] == "100"
        assert response.headers["X-RateLimit-Remaining"] == "99"
        assert "X-RateLimit-Reset" in response.headers

    def test_rate_limit_exceeded(self, client, monkeypatch):
        from api.main import rate_limiter
        monkeypatch.setattr(rate_limiter, "rate_limit", 2)

        assert client.get("/books").status_code == 200
        assert client.get("/books").status_code == 200
        response = client.get("/books")

        assert response.status_code == 429
        assert response.json()["success"] is False
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert client.get("/health").status_code == 200


def test_unexpected_error_is_generic_500(client):
    with patch.object(BookCatalogService, "list_books", AsyncMock(side_effect=RuntimeError("boom"))):
        response = client.get("/books")

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert response.json()["message"] == "Internal server error"


@pytest.mark.parametrize("path", ["/books", "/reviews/book/507f1f77bcf86cd799439011"])
def test_database_unavailable(path):
    from fastapi.testclient import TestClient
    from api.main import app, rate_limiter

    rate_limiter.reset()
    response = TestClient(app).get(path)
    assert response.status_code == 503
