from fastapi import HTTPException, Query

from blogserver.config import settings


class SearchParams:
    """
    Reusable FastAPI dependency that parses and validates the filter and
    range query parameters of a post listing.

    Usage in a router::

        @router.get("/posts")
        async def list_posts(params: SearchParams = Depends()):
            ...

    Attributes
    ----------
    filter:
        Title pattern where ``%`` matches any sequence; empty means no filter.
    start:
        0-based index of the first post to return.
    end:
        Exclusive end of the range.  Defaults to ``start`` plus
        ``settings.DEFAULT_PAGE_SIZE`` and is clamped so the range never
        exceeds ``settings.MAX_PAGE_SIZE``.
    """

    def __init__(
        self,
        filter: str = Query(
            "",
            max_length=300,
            description="Title pattern, '%' matches any sequence of characters.",
        ),
        start: int = Query(
            0,
            ge=0,
            description="Index of the first post (inclusive).",
        ),
        end: int | None = Query(
            None,
            ge=0,
            description="Index after the last post (exclusive).",
        ),
    ) -> None:
        if end is None:
            end = start + settings.DEFAULT_PAGE_SIZE
        if end < start:
            raise HTTPException(status_code=422, detail="end must not be lower than start")
        self.filter = filter
        self.start = start
        self.end = min(end, start + settings.MAX_PAGE_SIZE)
