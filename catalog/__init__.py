"""
Catalog package: books, reviews and their rating aggregates.

This package contains:
- Pydantic models for books, reviews and response payloads
- MongoDB persistence layer and query builders
- Rating aggregation engine
- Book catalog and review services
- Domain exceptions
"""

__version__ = "1.0.0"
