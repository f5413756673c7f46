"""Boolean tag search over the post membership index.

Query grammar (whitespace separated terms):

* ``cat``       the post must carry ``cat``
* ``-cat``      the post must not carry ``cat``
* ``cat|dog``   the post must carry at least one of the alternatives
* ``-cat|dog``  the post must carry none of them

Every query runs as a single SELECT, so a result reflects either all or none
of any concurrently committing write.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import Select, and_, exists, func, or_, select
from sqlalchemy.orm import Session

from tagboard.core.errors import ValidationError
from tagboard.core.settings import settings
from tagboard.db.time import as_utc
from tagboard.models import Post, PostSorting, PostTag, Tag
from tagboard.services.access import VisibilityPredicate
from tagboard.services.tag_vector import NEGATION_PREFIX, normalize_tag

logger = logging.getLogger(__name__)

ALTERNATIVE_SEPARATOR = "|"


@dataclass(frozen=True)
class TagQuery:
    """Parsed form of a search string."""

    required: frozenset[str] = frozenset()
    excluded: frozenset[str] = frozenset()
    any_of: tuple[frozenset[str], ...] = ()

    @property
    def tag_names(self) -> frozenset[str]:
        names = set(self.required) | set(self.excluded)
        for group in self.any_of:
            names |= group
        return frozenset(names)


def parse_query(terms: str | Iterable[str], *, max_tags: int | None = None) -> TagQuery:
    """Parse a search string (or pre-split list of terms) into a TagQuery.

    Raises:
        ValidationError: On malformed terms, reserved characters or too many
            tags.
    """
    if isinstance(terms, str):
        terms = terms.split()
    required: set[str] = set()
    excluded: set[str] = set()
    any_of: list[frozenset[str]] = []

    for raw in terms:
        term = raw.strip()
        if not term:
            continue
        negated = term.startswith(NEGATION_PREFIX)
        body = term[len(NEGATION_PREFIX):] if negated else term
        alternatives = body.split(ALTERNATIVE_SEPARATOR)
        if any(not alt.strip() for alt in alternatives):
            raise ValidationError(f"malformed search term {raw!r}")
        names = frozenset(normalize_tag(alt, enforce_length=False) for alt in alternatives)
        if negated:
            excluded |= names
        elif len(names) == 1:
            required |= names
        else:
            any_of.append(names)

    query = TagQuery(frozenset(required), frozenset(excluded), tuple(any_of))
    limit = settings.max_query_tags if max_tags is None else max_tags
    if len(query.tag_names) > limit:
        raise ValidationError(f"too many tags in query (limit {limit})")
    return query


@dataclass(frozen=True)
class SearchCursor:
    """Keyset position: the sort key and id of the last post returned."""

    sort: PostSorting
    key: datetime | int
    post_id: int

    @classmethod
    def after(cls, post: Post, sort: PostSorting) -> SearchCursor:
        key = as_utc(post.create_date) if sort.by_date else post.score
        return cls(sort=sort, key=key, post_id=post.id)

    def encode(self) -> str:
        key = self.key.isoformat() if isinstance(self.key, datetime) else self.key
        payload = json.dumps({"s": self.sort.value, "k": key, "i": self.post_id})
        return base64.urlsafe_b64encode(payload.encode()).decode().rstrip("=")

    @classmethod
    def decode(cls, token: str, sort: PostSorting) -> SearchCursor:
        padding = "=" * (-len(token) % 4)
        try:
            data = json.loads(base64.urlsafe_b64decode(token + padding))
            cursor_sort = PostSorting(data["s"])
            post_id = int(data["i"])
            key = datetime.fromisoformat(data["k"]) if cursor_sort.by_date else int(data["k"])
        except (binascii.Error, ValueError, KeyError, TypeError) as err:
            raise ValidationError("invalid search cursor") from err
        if cursor_sort is not sort:
            raise ValidationError("cursor was issued for a different sort order")
        if isinstance(key, datetime):
            key = as_utc(key)
        return cls(sort=cursor_sort, key=key, post_id=post_id)


@dataclass
class SearchPage:
    posts: list[Post] = field(default_factory=list)
    next_cursor: str | None = None


class SearchEngine:
    """Evaluates tag queries under a visibility predicate. Read-only."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def search(
        self,
        query: str | Iterable[str] | TagQuery,
        visibility: VisibilityPredicate,
        *,
        sort: PostSorting = PostSorting.DateDescending,
        limit: int | None = None,
        offset: int = 0,
        cursor: str | None = None,
    ) -> SearchPage:
        """Return one page of matching posts.

        Pagination is either by ``offset`` or by an opaque ``cursor`` taken
        from a previous page's ``next_cursor``; not both.
        """
        limit = settings.default_page_size if limit is None else limit
        if not 1 <= limit <= settings.max_page_size:
            raise ValidationError(f"page size must be between 1 and {settings.max_page_size}")
        if offset < 0:
            raise ValidationError("offset must not be negative")
        if cursor is not None and offset:
            raise ValidationError("use either a cursor or an offset, not both")
        parsed = query if isinstance(query, TagQuery) else parse_query(query)
        position = SearchCursor.decode(cursor, sort) if cursor else None
        return self._page(parsed, visibility, sort, limit, offset, position)

    def iter_search(
        self,
        query: str | Iterable[str] | TagQuery,
        visibility: VisibilityPredicate,
        *,
        sort: PostSorting = PostSorting.DateDescending,
        batch_size: int | None = None,
        cursor: str | None = None,
        cancel: threading.Event | None = None,
    ) -> Iterator[Post]:
        """Lazily yield every match, fetching keyset batches on demand.

        Iteration stops early once ``cancel`` is set. Pass a cursor to
        resume where an earlier iteration stopped.
        """
        parsed = query if isinstance(query, TagQuery) else parse_query(query)
        size = batch_size or settings.search_batch_size
        position = SearchCursor.decode(cursor, sort) if cursor else None
        while True:
            if cancel is not None and cancel.is_set():
                logger.debug("Search cancelled by caller")
                return
            page = self._page(parsed, visibility, sort, size, 0, position)
            for post in page.posts:
                if cancel is not None and cancel.is_set():
                    logger.debug("Search cancelled by caller")
                    return
                yield post
            if page.next_cursor is None:
                return
            position = SearchCursor.after(page.posts[-1], sort)

    def random_post(self, visibility: VisibilityPredicate) -> Post | None:
        """Return a random visible post, or None when there is none."""
        stmt = self._filtered(TagQuery(), visibility).order_by(func.random()).limit(1)
        return self.db.execute(stmt).scalars().first()

    def _page(
        self,
        parsed: TagQuery,
        visibility: VisibilityPredicate,
        sort: PostSorting,
        limit: int,
        offset: int,
        position: SearchCursor | None,
    ) -> SearchPage:
        stmt = self._filtered(parsed, visibility)
        key = Post.create_date if sort.by_date else Post.score
        if position is not None:
            if sort.descending:
                stmt = stmt.where(
                    or_(key < position.key, and_(key == position.key, Post.id < position.post_id))
                )
            else:
                stmt = stmt.where(
                    or_(key > position.key, and_(key == position.key, Post.id > position.post_id))
                )
        if sort.descending:
            stmt = stmt.order_by(key.desc(), Post.id.desc())
        else:
            stmt = stmt.order_by(key.asc(), Post.id.asc())
        stmt = stmt.offset(offset).limit(limit)

        posts = list(self.db.execute(stmt).scalars())
        next_cursor = None
        if len(posts) == limit:
            next_cursor = SearchCursor.after(posts[-1], sort).encode()
        return SearchPage(posts=posts, next_cursor=next_cursor)

    def _filtered(self, parsed: TagQuery, visibility: VisibilityPredicate) -> Select:
        ratings = sorted(visibility.allowed_ratings, key=lambda rating: rating.level)
        stmt = select(Post).where(Post.rating.in_(ratings))
        if not visibility.include_deleted:
            stmt = stmt.where(Post.is_deleted.is_(False))
        # Unknown names simply never match a membership row.
        for name in sorted(parsed.required):
            stmt = stmt.where(_carries_any([name]))
        for group in parsed.any_of:
            stmt = stmt.where(_carries_any(sorted(group)))
        if parsed.excluded:
            stmt = stmt.where(~_carries_any(sorted(parsed.excluded)))
        return stmt


def _carries_any(names: list[str]):
    return exists().where(
        PostTag.post_id == Post.id,
        PostTag.tag_id == Tag.id,
        Tag.name.in_(names),
    )
