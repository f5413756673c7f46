"""Post lifecycle: create, edit, soft-delete, undelete and counters.

Every write that touches a post's tags goes through :class:`PostStore`, which
keeps three representations in step inside the caller's transaction:

* the ``post_tag`` membership rows (the inverted index),
* the post's ``tag_vector`` (always ``build()`` of the membership),
* the live ``count`` of every tag (non-deleted posts only).

Nothing here commits; wrap calls in
:func:`tagboard.services.unit_of_work.run_in_transaction`.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from tagboard.core.errors import (
    ConflictError,
    InvariantViolation,
    NotFoundError,
    ValidationError,
)
from tagboard.db.time import utcnow
from tagboard.models import ImageExtension, Post, Rating, User
from tagboard.models.post import DEFAULT_DESCRIPTION
from tagboard.repositories.post_repo import PostRepository
from tagboard.services.access import VisibilityPredicate
from tagboard.services.tag_catalog import TagCatalog
from tagboard.services.tag_vector import TagVector, build

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=enum.Enum)


def coerce_enum(kind: type[E], value: E | str, label: str) -> E:
    """Return ``value`` as a member of ``kind`` or raise ValidationError."""
    if isinstance(value, kind):
        return value
    try:
        return kind[value]
    except (KeyError, TypeError):
        pass
    try:
        return kind(value)
    except ValueError as err:
        raise ValidationError(f"unknown {label} {value!r}") from err


@dataclass(frozen=True)
class FileDescriptor:
    """Image metadata handed over by the upload handler."""

    filename: str
    path: str
    ext: ImageExtension | str
    size: int
    width: int
    height: int

    def validated(self) -> FileDescriptor:
        """Return a copy with ``ext`` coerced, checking presence and sizes."""
        if not self.filename or not self.filename.strip():
            raise ValidationError("filename is required")
        if not self.path:
            raise ValidationError("storage path is required")
        for field_name in ("size", "width", "height"):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"{field_name} must be an integer")
            if value < 0:
                raise ValidationError(f"{field_name} must not be negative")
        return FileDescriptor(
            filename=self.filename,
            path=self.path,
            ext=coerce_enum(ImageExtension, self.ext, "image extension"),
            size=self.size,
            width=self.width,
            height=self.height,
        )


class PostStore:
    """Owns post records and their tag bookkeeping."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = PostRepository(db)
        self.catalog = TagCatalog(db)

    def get(self, post_id: int, visibility: VisibilityPredicate | None = None) -> Post:
        """Return a post, hiding it as NotFound when ``visibility`` rejects it."""
        post = self.repo.get_by_id(post_id)
        if post is None or (visibility is not None and not visibility.allows(post)):
            raise NotFoundError("post", post_id)
        return post

    def create(
        self,
        *,
        poster: int,
        tags: Iterable[str],
        rating: Rating | str,
        file: FileDescriptor,
        description: str | None = None,
        source: str | None = None,
    ) -> Post:
        """Insert a post, creating unseen tags and counting it once per tag.

        Raises:
            ValidationError: On an empty tag set, bad tag, unknown rating or
                malformed file metadata.
            NotFoundError: If ``poster`` is not a known user.
        """
        rating = coerce_enum(Rating, rating, "rating")
        file = file.validated()
        vector = build(tags)
        if self.db.get(User, poster) is None:
            raise NotFoundError("user", poster)

        tag_ids = self.catalog.resolve_or_create(vector)
        now = utcnow()
        post = self.repo.add(
            Post(
                poster=poster,
                tag_vector=vector.to_text(),
                create_date=now,
                modified_date=now,
                rating=rating,
                score=0,
                views=0,
                is_deleted=False,
                filename=file.filename,
                path=file.path,
                ext=file.ext,
                size=file.size,
                width=file.width,
                height=file.height,
                description=description or DEFAULT_DESCRIPTION,
                source=source or None,
            )
        )
        self.repo.link_tags(post.id, tag_ids.values())
        self.catalog.adjust_counts({tag_id: 1 for tag_id in tag_ids.values()})
        logger.info("Created post %s by user %s with %d tags", post.id, poster, len(vector))
        return post

    def edit(
        self,
        post_id: int,
        *,
        expected_version: int,
        tags: Iterable[str] | None = None,
        rating: Rating | str | None = None,
        description: str | None = None,
        source: str | None = None,
    ) -> Post:
        """Apply an edit made against version ``expected_version`` of a post.

        The version-checked row update is flushed before any membership or
        count is touched, so of two edits from the same base state exactly
        one gets through; the other fails with a non-retryable Conflict and
        must re-read the post before trying again.

        Tag changes are applied as a difference against the stored set:
        removed tags lose one count and added tags gain one, unless the post
        is soft-deleted, in which case only membership and vector change.

        Raises:
            NotFoundError: Unknown post.
            ConflictError: The post is no longer at ``expected_version``, or
                another writer committed first (never retryable).
            ValidationError: Nothing to change, or invalid tags/rating.
        """
        if tags is None and rating is None and description is None and source is None:
            raise ValidationError("edit does not change anything")
        new_rating = coerce_enum(Rating, rating, "rating") if rating is not None else None
        new_vector = build(tags) if tags is not None else None

        post = self._load_for_update(post_id)
        if post.version != expected_version:
            raise ConflictError(
                f"post {post_id} is at version {post.version}, not {expected_version}",
                retryable=False,
            )

        added: frozenset[str] = frozenset()
        removed: dict[str, int] = {}
        if new_vector is not None:
            current = self._checked_membership(post)
            old_vector = TagVector.from_text(post.tag_vector)
            added = new_vector.added_since(old_vector)
            removed = {name: current[name] for name in new_vector.removed_since(old_vector)}
            post.tag_vector = new_vector.to_text()
        if new_rating is not None:
            post.rating = new_rating
        if description is not None:
            post.description = description or DEFAULT_DESCRIPTION
        if source is not None:
            post.source = source or None
        post.modified_date = utcnow()
        self._flush(post_id, retryable=False)

        if added or removed:
            added_ids = self.catalog.resolve_or_create(added)
            self.repo.unlink_tags(post.id, removed.values())
            self.repo.link_tags(post.id, added_ids.values())
            if not post.is_deleted:
                delta = {tag_id: 1 for tag_id in added_ids.values()}
                delta.update({tag_id: -1 for tag_id in removed.values()})
                self.catalog.adjust_counts(delta)
            logger.debug("Post %s tags: +%s -%s", post.id, sorted(added), sorted(removed))
        return post

    def soft_delete(self, post_id: int) -> Post:
        """Hide a post and release its tag counts; vector and membership stay."""
        post = self._load_for_update(post_id)
        if post.is_deleted:
            raise ConflictError(f"post {post_id} is already deleted", retryable=False)
        current = self._checked_membership(post)
        self.catalog.adjust_counts({tag_id: -1 for tag_id in current.values()})
        post.is_deleted = True
        post.modified_date = utcnow()
        self._flush(post_id)
        logger.info("Soft-deleted post %s", post_id)
        return post

    def undelete(self, post_id: int) -> Post:
        """Restore a soft-deleted post and re-count its tags."""
        post = self._load_for_update(post_id)
        if not post.is_deleted:
            raise ConflictError(f"post {post_id} is not deleted", retryable=False)
        current = self._checked_membership(post)
        self.catalog.adjust_counts({tag_id: 1 for tag_id in current.values()})
        post.is_deleted = False
        post.modified_date = utcnow()
        self._flush(post_id)
        logger.info("Restored post %s", post_id)
        return post

    def bump_score(self, post_id: int, delta: int) -> int:
        """Atomically add ``delta`` to the score and return the new score."""
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValidationError("score delta must be an integer")
        score = self.repo.increment(post_id, "score", delta)
        if score is None:
            raise NotFoundError("post", post_id)
        return score

    def increment_views(self, post_id: int) -> int:
        """Atomically count one view and return the new total."""
        views = self.repo.increment(post_id, "views", 1)
        if views is None:
            raise NotFoundError("post", post_id)
        return views

    def verify(self, post_id: int) -> None:
        """Check that the post's vector matches its membership rows.

        Raises:
            InvariantViolation: On any drift between the two.
        """
        post = self.repo.get_by_id(post_id)
        if post is None:
            raise NotFoundError("post", post_id)
        self._checked_membership(post)

    def _load_for_update(self, post_id: int) -> Post:
        post = self.repo.get_by_id(post_id, for_update=True)
        if post is None:
            raise NotFoundError("post", post_id)
        return post

    def _checked_membership(self, post: Post) -> dict[str, int]:
        current = self.repo.membership(post.id)
        rebuilt = TagVector(tuple(sorted(current)))
        if rebuilt.to_text() != post.tag_vector:
            logger.critical(
                "Post %s vector %r does not match membership %r",
                post.id,
                post.tag_vector,
                rebuilt.to_text(),
            )
            raise InvariantViolation(f"post {post.id} tag vector does not match its tags")
        return current

    def _flush(self, post_id: int, *, retryable: bool = True) -> None:
        try:
            self.db.flush()
        except StaleDataError as err:
            raise ConflictError(
                f"post {post_id} was modified concurrently", retryable=retryable
            ) from err
