"""
Error taxonomy for the blog service.

Only two kinds of failure ever reach a caller: a post that does not exist,
and an opaque internal error.  Storage-level detail stays in the server log.
"""
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError

# SQLSTATE for unique_violation (PostgreSQL).
UNIQUE_VIOLATION = "23505"


class BlogServiceError(Exception):
    """Base exception class for blog service errors"""
    status_code = 500

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to standard error format"""
        return {
            "code": self.code,
            "message": str(self),
            "details": self.details,
        }


class PostNotFoundError(BlogServiceError):
    """Raised when no post matches the requested (blog_id, post_id)"""
    status_code = 404

    def __init__(self, blog_id: int, post_id: int):
        super().__init__(
            "no blog post with requested ids",
            code="POST_NOT_FOUND",
            details={"blog_id": blog_id, "post_id": post_id},
        )


class InternalServiceError(BlogServiceError):
    """Raised for any storage failure; carries no storage detail"""
    status_code = 500

    def __init__(self):
        super().__init__("internal service error", code="INTERNAL")


def is_duplicate_key_error(exc: IntegrityError) -> bool:
    """
    Return True when *exc* was raised because a unique constraint rejected
    the row, as opposed to any other integrity failure (NOT NULL, FK...).

    asyncpg exposes the SQLSTATE on the adapted driver error; SQLite only
    reports it in the message.
    """
    orig = exc.orig
    for attr in ("sqlstate", "pgcode"):
        if getattr(orig, attr, None) == UNIQUE_VIOLATION:
            return True
    message = str(orig)
    return "UNIQUE constraint failed" in message or "duplicate key value" in message
