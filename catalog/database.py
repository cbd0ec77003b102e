"""
MongoDB database utilities for async operations.
Handles connection, indexing, and CRUD operations for books, reviews,
users and access tokens.

Ids cross this layer's boundary as strings; ObjectId conversion happens here.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError

from catalog.exceptions import ConflictError
from catalog.models import BookQuery, SortBy
from catalog.queries import NEWEST_FIRST, build_book_filter, build_book_sort, build_rating_sort_pipeline
from utilities.logger import get_logger

logger = get_logger(__name__)

REFERENCE_FIELDS = ("added_by", "book_id", "user_id")


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Convert an id string to ObjectId, or None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def normalize_document(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Replace `_id` with a string `id` and stringify reference fields."""
    if document is None:
        return None
    document = dict(document)
    document["id"] = str(document.pop("_id"))
    for field in REFERENCE_FIELDS:
        if isinstance(document.get(field), ObjectId):
            document[field] = str(document[field])
    return document


class CatalogDatabase:
    """
    Async MongoDB access layer for the catalog.
    Handles connection, indexing, and CRUD operations.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        books_collection: str = "books",
        reviews_collection: str = "reviews",
        users_collection: str = "users",
        tokens_collection: str = "access_tokens",
        enforce_unique_reviews: bool = False,
        use_transactions: bool = False
    ):
        """
        Initialize the catalog database.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            books_collection: Name of the books collection
            reviews_collection: Name of the reviews collection
            users_collection: Name of the users collection
            tokens_collection: Name of the access token collection
            enforce_unique_reviews: Create a unique (book_id, user_id) index on reviews
            use_transactions: Run the book cascade delete inside a transaction
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.books_collection_name = books_collection
        self.reviews_collection_name = reviews_collection
        self.users_collection_name = users_collection
        self.tokens_collection_name = tokens_collection
        self.enforce_unique_reviews = enforce_unique_reviews
        self.use_transactions = use_transactions
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.books: Optional[AsyncIOMotorCollection] = None
        self.reviews: Optional[AsyncIOMotorCollection] = None
        self.users: Optional[AsyncIOMotorCollection] = None
        self.tokens: Optional[AsyncIOMotorCollection] = None

    @classmethod
    def from_config(cls, config) -> 'CatalogDatabase':
        return cls(
            connection_url=config.mongodb_url,
            database_name=config.mongodb_database,
            books_collection=config.books_collection,
            reviews_collection=config.reviews_collection,
            users_collection=config.users_collection,
            tokens_collection=config.tokens_collection,
            enforce_unique_reviews=config.enforce_unique_reviews,
            use_transactions=config.use_transactions
        )

    async def connect(self) -> None:
        """Establish connection to MongoDB."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]
            self.books = self.database[self.books_collection_name]
            self.reviews = self.database[self.reviews_collection_name]
            self.users = self.database[self.users_collection_name]
            self.tokens = self.database[self.tokens_collection_name]

            # Test connection
            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """
        Create indexes for the listing, lookup and token query patterns.
        """
        try:
            await self.books.create_index([("created_at", -1)])
            await self.books.create_index("genre")
            await self.books.create_index("year")
            await self.books.create_index("added_by")

            await self.reviews.create_index([("book_id", 1), ("created_at", -1)])
            await self.reviews.create_index([("user_id", 1), ("created_at", -1)])
            if self.enforce_unique_reviews:
                await self.reviews.create_index([("book_id", 1), ("user_id", 1)], unique=True)

            await self.users.create_index("email", unique=True)
            await self.tokens.create_index("token_hash", unique=True)

            logger.info(
                "Successfully created MongoDB indexes",
                unique_reviews=self.enforce_unique_reviews
            )

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    # Users and tokens

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        object_id = to_object_id(user_id)
        if object_id is None:
            return None
        return normalize_document(await self.users.find_one({"_id": object_id}))

    async def get_users(self, user_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        """
        Fetch several users at once.

        Returns:
            Mapping of user id to user document; unknown ids are absent
        """
        object_ids = [oid for oid in (to_object_id(uid) for uid in set(user_ids)) if oid is not None]
        if not object_ids:
            return {}
        cursor = self.users.find({"_id": {"$in": object_ids}}, {"name": 1})
        users = await cursor.to_list(length=None)
        return {str(user["_id"]): normalize_document(user) for user in users}

    async def insert_user(self, name: str, email: str) -> Dict[str, Any]:
        document = {"name": name, "email": email, "created_at": datetime.utcnow()}
        result = await self.users.insert_one(document)
        document["_id"] = result.inserted_id
        logger.info("User created", user_id=str(result.inserted_id))
        return normalize_document(document)

    async def count_users(self) -> int:
        return await self.users.count_documents({})

    async def insert_token(self, token_hash: str, user_id: str, expires_at: Optional[datetime]) -> None:
        await self.tokens.insert_one({
            "token_hash": token_hash,
            "user_id": to_object_id(user_id),
            "created_at": datetime.utcnow(),
            "expires_at": expires_at,
            "is_active": True,
        })

    async def find_token(self, token_hash: str) -> Optional[Dict[str, Any]]:
        return normalize_document(await self.tokens.find_one({"token_hash": token_hash}))

    async def deactivate_token(self, token_hash: str) -> bool:
        result = await self.tokens.update_one(
            {"token_hash": token_hash},
            {"$set": {"is_active": False}}
        )
        return result.matched_count > 0

    # Books

    async def find_books(self, query: BookQuery, skip: int, limit: int) -> List[Dict[str, Any]]:
        """
        Get one page of books matching a listing query.

        Args:
            query: Listing query (search, genre, sort)
            skip: Number of matching books to skip
            limit: Maximum number of books to return

        Returns:
            Normalized book documents in listing order
        """
        try:
            filter_query = build_book_filter(query)

            if query.sort_by == SortBy.RATING:
                pipeline = build_rating_sort_pipeline(
                    filter_query, query.sort_order, skip, limit,
                    reviews_collection=self.reviews_collection_name
                )
                cursor = self.books.aggregate(pipeline)
            else:
                cursor = self.books.find(filter_query).sort(build_book_sort(query)).skip(skip).limit(limit)

            documents = await cursor.to_list(length=limit)
            return [normalize_document(document) for document in documents]

        except Exception as e:
            logger.error("Failed to find books", error=str(e), query=query.model_dump())
            raise

    async def count_books(self, query: Optional[BookQuery] = None) -> int:
        filter_query = build_book_filter(query) if query else {}
        return await self.books.count_documents(filter_query)

    async def get_book(self, book_id: str) -> Optional[Dict[str, Any]]:
        """Get a book by id; invalid ids behave like unknown ids."""
        object_id = to_object_id(book_id)
        if object_id is None:
            return None
        return normalize_document(await self.books.find_one({"_id": object_id}))

    async def get_books(self, book_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        object_ids = [oid for oid in (to_object_id(bid) for bid in set(book_ids)) if oid is not None]
        if not object_ids:
            return {}
        cursor = self.books.find({"_id": {"$in": object_ids}}, {"title": 1, "author": 1})
        books = await cursor.to_list(length=None)
        return {str(book["_id"]): normalize_document(book) for book in books}

    async def insert_book(self, fields: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        """
        Insert a book created by the given user.

        Args:
            fields: Validated book fields
            user_id: Id of the creating user

        Returns:
            The stored book document
        """
        now = datetime.utcnow()
        document = dict(fields)
        document.update({
            "added_by": to_object_id(user_id),
            "created_at": now,
            "updated_at": now,
        })
        result = await self.books.insert_one(document)
        document["_id"] = result.inserted_id
        return normalize_document(document)

    async def update_book(self, book_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        update_data = dict(fields)
        update_data["updated_at"] = datetime.utcnow()
        document = await self.books.find_one_and_update(
            {"_id": to_object_id(book_id)},
            {"$set": update_data},
            return_document=ReturnDocument.AFTER
        )
        return normalize_document(document)

    async def delete_book_cascade(self, book_id: str) -> int:
        """
        Delete a book's reviews, then the book.

        Runs both deletes in one transaction when transactions are enabled
        (requires a replica set).

        Returns:
            Number of reviews removed
        """
        object_id = to_object_id(book_id)
        try:
            if self.use_transactions:
                async with await self.client.start_session() as session:
                    async with session.start_transaction():
                        return await self._delete_book_and_reviews(object_id, session=session)
            return await self._delete_book_and_reviews(object_id)

        except Exception as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise

    async def _delete_book_and_reviews(self, object_id: ObjectId, session=None) -> int:
        reviews_result = await self.reviews.delete_many({"book_id": object_id}, session=session)
        await self.books.delete_one({"_id": object_id}, session=session)
        return reviews_result.deleted_count

    # Reviews

    @staticmethod
    def _review_filter(book_id: Optional[str] = None, user_id: Optional[str] = None) -> Dict[str, Any]:
        filter_query = {}
        if book_id is not None:
            filter_query["book_id"] = to_object_id(book_id)
        if user_id is not None:
            filter_query["user_id"] = to_object_id(user_id)
        return filter_query

    async def find_reviews(
        self,
        book_id: Optional[str] = None,
        user_id: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Get reviews for a book and/or an author, newest first.

        Args:
            book_id: Restrict to reviews of this book
            user_id: Restrict to reviews by this user
            skip: Number of reviews to skip
            limit: Maximum number of reviews (None for all)

        Returns:
            Normalized review documents
        """
        cursor = self.reviews.find(self._review_filter(book_id, user_id)).sort(NEWEST_FIRST).skip(skip)
        if limit is not None:
            cursor = cursor.limit(limit)
        documents = await cursor.to_list(length=limit)
        return [normalize_document(document) for document in documents]

    async def count_reviews(self, book_id: Optional[str] = None, user_id: Optional[str] = None) -> int:
        return await self.reviews.count_documents(self._review_filter(book_id, user_id))

    async def get_review(self, review_id: str) -> Optional[Dict[str, Any]]:
        object_id = to_object_id(review_id)
        if object_id is None:
            return None
        return normalize_document(await self.reviews.find_one({"_id": object_id}))

    async def find_user_review(self, book_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return normalize_document(await self.reviews.find_one(self._review_filter(book_id, user_id)))

    async def insert_review(self, book_id: str, user_id: str, rating: int, review_text: str) -> Dict[str, Any]:
        """
        Insert a review.

        Raises:
            ConflictError: When the unique (book_id, user_id) index rejects the insert
        """
        now = datetime.utcnow()
        document = {
            "book_id": to_object_id(book_id),
            "user_id": to_object_id(user_id),
            "rating": rating,
            "review_text": review_text,
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.reviews.insert_one(document)
        except DuplicateKeyError:
            logger.warning("Duplicate review rejected by index", book_id=book_id, user_id=user_id)
            raise ConflictError("You have already reviewed this book")
        document["_id"] = result.inserted_id
        return normalize_document(document)

    async def update_review(self, review_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        update_data = dict(fields)
        update_data["updated_at"] = datetime.utcnow()
        document = await self.reviews.find_one_and_update(
            {"_id": to_object_id(review_id)},
            {"$set": update_data},
            return_document=ReturnDocument.AFTER
        )
        return normalize_document(document)

    async def delete_review(self, review_id: str) -> bool:
        result = await self.reviews.delete_one({"_id": to_object_id(review_id)})
        return result.deleted_count > 0

    async def get_ratings(self, book_ids: Iterable[str]) -> Dict[str, List[int]]:
        """
        Get the ratings of every review of the given books.

        Returns:
            Mapping of book id to its list of ratings; books without reviews are absent
        """
        object_ids = [oid for oid in (to_object_id(bid) for bid in set(book_ids)) if oid is not None]
        if not object_ids:
            return {}

        ratings: Dict[str, List[int]] = {}
        cursor = self.reviews.find({"book_id": {"$in": object_ids}}, {"book_id": 1, "rating": 1})
        async for review in cursor:
            ratings.setdefault(str(review["book_id"]), []).append(review.get("rating"))
        return ratings

    # Maintenance

    async def find_orphaned_review_ids(self) -> List[str]:
        """Find reviews whose book no longer exists."""
        referenced = await self.reviews.distinct("book_id")
        existing = set(await self.books.distinct("_id", {"_id": {"$in": referenced}}))
        missing = [book_id for book_id in referenced if book_id not in existing]
        if not missing:
            return []
        cursor = self.reviews.find({"book_id": {"$in": missing}}, {"_id": 1})
        return [str(review["_id"]) async for review in cursor]

    async def delete_reviews(self, review_ids: Iterable[str]) -> int:
        object_ids = [oid for oid in (to_object_id(rid) for rid in review_ids) if oid is not None]
        if not object_ids:
            return 0
        result = await self.reviews.delete_many({"_id": {"$in": object_ids}})
        return result.deleted_count

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            return {
                "status": "healthy",
                "books_count": await self.books.count_documents({}),
                "reviews_count": await self.reviews.count_documents({}),
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }

    async def get_database_stats(self) -> Dict[str, Any]:
        """Get catalog statistics for monitoring."""
        return {
            "total_books": await self.books.count_documents({}),
            "total_reviews": await self.reviews.count_documents({}),
            "total_users": await self.count_users(),
            "orphaned_reviews": len(await self.find_orphaned_review_ids()),
            "last_updated": datetime.utcnow().isoformat()
        }
