"""
FastAPI RESTful API for the Book Review Catalog.

This module provides a REST API for:
- Book catalog browsing, search and genre filtering
- Star-rated reviews with live rating statistics
- Bearer token authentication with owner-only mutation
- Rate limiting
"""
