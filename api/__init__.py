"""
FastAPI RESTful API for the Book Portal.

This package provides REST endpoints for:
- Registration, login and profile management
- Book catalogue management
- Book feedback with moderation and rate limiting
- User administration and cascading deletion
"""
