"""
API routers for books and reviews.
"""
