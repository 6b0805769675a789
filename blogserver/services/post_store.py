"""
Post store: persistence logic for blog posts.

Design notes
------------
- Post ids are scoped to a blog and assigned as "current maximum + 1".
  Two concurrent creators can compute the same candidate; the
  ``uq_posts_blog_id_post_id`` constraint rejects the loser, which rolls
  back and derives a new candidate from a fresh maximum.  Because of that
  rollback ``create_post`` must own the transaction of the session it is
  given (one request, one session).
- Every storage failure is logged here with full detail and replaced by an
  opaque ``InternalServiceError``; only "no such post" is reported as such.
- Reads go through the cache-aside pattern.  Posts are immutable, so the
  cache only needs invalidating on create and delete, and only once the
  change is committed: writes record the stale keys on the session and
  ``database.commit`` drops them after the commit succeeds.
- Service functions do not commit; the ``get_db`` dependency does.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from blogserver.cache import cache, defer_invalidation, detail_key, discard_invalidations, list_key
from blogserver.config import settings
from blogserver.errors import InternalServiceError, PostNotFoundError, is_duplicate_key_error
from blogserver.models import Post
from blogserver.schemas import PostContent, PostList

logger = logging.getLogger(__name__)

# Errors a database round trip can raise: driver errors wrapped by
# SQLAlchemy, and socket errors surfacing while the connection is opened.
STORAGE_ERRORS = (SQLAlchemyError, OSError)

WILDCARD = "%"
LIKE_ESCAPE = "\\"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def build_title_pattern(filter: str) -> str:
    """
    Turn a user filter into a ``LIKE`` pattern matching titles that contain it.

    ``%`` is the only wildcard a caller can use; ``_`` and the escape
    character are matched literally.  The result always starts and ends with
    exactly one added ``%`` unless the caller already put one there, so a
    filter without wildcards becomes a substring search:

    >>> build_title_pattern("cat")
    '%cat%'
    >>> build_title_pattern("%cat")
    '%cat%'
    >>> build_title_pattern("c%t")
    '%c%t%'
    """
    pattern = filter.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("_", LIKE_ESCAPE + "_")
    if not pattern.startswith(WILDCARD):
        pattern = WILDCARD + pattern
    if not pattern.endswith(WILDCARD):
        pattern = pattern + WILDCARD
    return pattern


def _as_int(value) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0


def _as_str(value) -> str:
    return value if isinstance(value, str) else ""


def _as_timestamp(value) -> int:
    if not isinstance(value, datetime):
        return 0
    if value.tzinfo is None:
        # SQLite hands back naive values for CURRENT_TIMESTAMP, which is UTC.
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def post_to_content(post) -> PostContent:
    """
    Convert a stored post to its response model.

    Missing or unexpectedly typed attributes become ``""`` or ``0`` so a
    single malformed row never fails a whole listing.
    """
    return PostContent(
        post_id=_as_int(getattr(post, "post_id", None)),
        user_id=_as_int(getattr(post, "user_id", None)),
        title=_as_str(getattr(post, "title", None)),
        text=_as_str(getattr(post, "text", None)),
        created_at=_as_timestamp(getattr(post, "created_at", None)),
    )


def _internal_error(operation: str, exc: BaseException) -> InternalServiceError:
    logger.error("Failed during database call in %s: %s", operation, exc, exc_info=exc)
    return InternalServiceError()


def _compound_key(blog_id: int, post_id: int):
    return (Post.blog_id == blog_id, Post.post_id == post_id)


async def _max_post_id(db: AsyncSession, blog_id: int) -> int | None:
    """Return the highest post id used in *blog_id*, or None for an empty blog."""
    q = (
        select(Post.post_id)
        .where(Post.blog_id == blog_id)
        .order_by(Post.post_id.desc())
        .limit(1)
    )
    return (await db.execute(q)).scalar_one_or_none()


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_post(
    db: AsyncSession,
    blog_id: int,
    user_id: int,
    title: str,
    text: str,
) -> int:
    """
    Insert a new post in *blog_id* and return the post id assigned to it.

    The id is derived from the current maximum on every attempt.  A
    duplicate-key rejection means another creator took that id first; the
    attempt is rolled back and the whole derivation starts over.  Retries
    are unbounded unless ``settings.CREATE_MAX_ATTEMPTS`` is set.
    """
    max_attempts = settings.CREATE_MAX_ATTEMPTS
    attempt = 0
    while True:
        attempt += 1
        try:
            current = await _max_post_id(db, blog_id)
            candidate = 1 if current is None else _as_int(current) + 1
            await db.execute(
                insert(Post).values(
                    blog_id=blog_id,
                    post_id=candidate,
                    user_id=user_id,
                    title=title,
                    text=text,
                )
            )
        except IntegrityError as exc:
            if not is_duplicate_key_error(exc):
                raise _internal_error("create_post", exc) from exc
            try:
                await db.rollback()
            except STORAGE_ERRORS as rollback_exc:
                raise _internal_error("create_post", rollback_exc) from rollback_exc
            discard_invalidations(db)
            logger.debug(
                "Post id %d already taken in blog %d (attempt %d), retrying",
                candidate, blog_id, attempt,
            )
            if max_attempts and attempt >= max_attempts:
                logger.error(
                    "Gave up assigning a post id in blog %d after %d attempts",
                    blog_id, attempt,
                )
                raise InternalServiceError() from exc
            continue
        except STORAGE_ERRORS as exc:
            raise _internal_error("create_post", exc) from exc

        defer_invalidation(db, blog_id)
        return candidate


async def get_post(db: AsyncSession, blog_id: int, post_id: int) -> dict:
    """
    Return the post identified by (*blog_id*, *post_id*).

    Raises ``PostNotFoundError`` when it does not exist and
    ``InternalServiceError`` on any storage failure.
    """
    cache_key = detail_key(blog_id, post_id)
    cached = await cache.get(cache_key)
    if cached is not None:
        return cached

    q = select(Post).where(*_compound_key(blog_id, post_id)).limit(1)
    try:
        post = (await db.execute(q)).scalars().first()
    except STORAGE_ERRORS as exc:
        raise _internal_error("get_post", exc) from exc
    if post is None:
        raise PostNotFoundError(blog_id, post_id)

    data = post_to_content(post).model_dump()
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def search_posts(
    db: AsyncSession,
    blog_id: int,
    filter: str = "",
    start: int = 0,
    end: int = 0,
) -> PostList:
    """
    Return the posts of *blog_id* in the half-open range [*start*, *end*)
    of the newest-first ordering, together with the total match count.

    A non-empty *filter* restricts both the page and the total to titles
    matching it (see ``build_title_pattern``).  An empty range still
    reports the total but skips the row query.
    """
    start = max(start, 0)
    limit = end - start

    cache_key = list_key(blog_id, start, end, filter)
    cached = await cache.get(cache_key)
    if cached is not None:
        return PostList(**cached)

    conditions = [Post.blog_id == blog_id]
    if filter:
        conditions.append(Post.title.like(build_title_pattern(filter), escape=LIKE_ESCAPE))

    count_q = select(func.count()).select_from(Post).where(*conditions)
    posts = []
    try:
        total: int = (await db.execute(count_q)).scalar_one()
        if limit > 0 and total > start:
            posts_q = (
                select(Post)
                .where(*conditions)
                .order_by(Post.post_id.desc())
                .offset(start)
                .limit(limit)
            )
            posts = (await db.execute(posts_q)).scalars().all()
    except STORAGE_ERRORS as exc:
        raise _internal_error("search_posts", exc) from exc

    response = PostList(items=[post_to_content(p) for p in posts], total=total)
    await cache.set(cache_key, response.model_dump(), ttl=settings.CACHE_TTL_LIST)
    return response


async def delete_post(db: AsyncSession, blog_id: int, post_id: int) -> None:
    """
    Delete every post matching (*blog_id*, *post_id*).

    Deleting something that does not exist is not an error.
    """
    try:
        result = await db.execute(delete(Post).where(*_compound_key(blog_id, post_id)))
    except STORAGE_ERRORS as exc:
        raise _internal_error("delete_post", exc) from exc
    logger.debug("Deleted %d post(s) for blog %d post %d", result.rowcount, blog_id, post_id)
    defer_invalidation(db, blog_id, post_id)
