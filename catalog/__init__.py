"""
Core of the book portal.

This package contains:
- Authorization policy for owner-or-admin access
- Authentication and user administration
- Book and feedback services
- Feedback rate limiting and moderation
- Cascading user deletion
- MongoDB persistence
"""

__version__ = "1.0.0"
