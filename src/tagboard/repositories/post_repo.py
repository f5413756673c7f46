"""Data access helpers for working with posts."""
from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import delete, insert, select, update
from sqlalchemy.orm import Session

from tagboard.db.time import utcnow
from tagboard.models import Post, PostTag, Tag

__all__ = ["PostRepository"]


class PostRepository:
    """Thin wrapper around database access for post entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_by_id(self, post_id: int, *, for_update: bool = False) -> Post | None:
        """Return a post by identifier, refreshed from the database.

        With ``for_update`` the row is locked until the transaction ends on
        backends that support ``SELECT ... FOR UPDATE``.
        """
        stmt = select(Post).where(Post.id == post_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalars().first()

    def add(self, post: Post) -> Post:
        """Insert a new post and flush so it receives its id."""
        self.session.add(post)
        self.session.flush()
        return post

    def membership(self, post_id: int) -> dict[str, int]:
        """Return ``{tag name: tag id}`` for every tag linked to the post."""
        rows = self.session.execute(
            select(Tag.name, Tag.id)
            .join(PostTag, PostTag.tag_id == Tag.id)
            .where(PostTag.post_id == post_id)
        )
        return {name: tag_id for name, tag_id in rows}

    def link_tags(self, post_id: int, tag_ids: Iterable[int]) -> None:
        rows = [{"post_id": post_id, "tag_id": tag_id} for tag_id in sorted(set(tag_ids))]
        if rows:
            self.session.execute(insert(PostTag), rows)

    def unlink_tags(self, post_id: int, tag_ids: Iterable[int]) -> None:
        ids = sorted(set(tag_ids))
        if ids:
            self.session.execute(
                delete(PostTag)
                .where(PostTag.post_id == post_id, PostTag.tag_id.in_(ids))
                .execution_options(synchronize_session=False)
            )

    def increment(self, post_id: int, column: str, delta: int) -> int | None:
        """Atomically add ``delta`` to a counter column of a live post.

        Returns the new value, or None if no live post has that id.
        """
        counter = getattr(Post, column)
        result = self.session.execute(
            update(Post)
            .where(Post.id == post_id, Post.is_deleted.is_(False))
            .values({counter: counter + delta, Post.modified_date: utcnow()})
            .returning(counter)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()
