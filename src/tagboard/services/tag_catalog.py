"""Tag catalog: canonical tag rows and their live reference counts."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from sqlalchemy import func, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tagboard.core.errors import InvariantViolation, NotFoundError, ValidationError
from tagboard.models import Post, PostTag, Tag
from tagboard.services.tag_vector import normalize_tag, normalize_tags

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CountMismatch:
    """A tag whose stored count disagrees with its live membership."""

    tag_id: int
    name: str
    stored: int
    actual: int


class TagCatalog:
    """Resolve tag names to ids and keep per-tag counts consistent.

    All methods run inside the caller's session and transaction; nothing is
    committed here.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def resolve_or_create(self, names: Iterable[str]) -> dict[str, int]:
        """Return ``{normalized name: tag id}``, creating unseen tags.

        New tags start with a count of zero. When two writers introduce the
        same name at once the unique constraint on ``tag.name`` lets exactly
        one insert through; the other simply picks up the winner's id.
        """
        wanted = normalize_tags(names)
        if not wanted:
            return {}
        resolved = self._lookup(wanted)
        missing = sorted(wanted - resolved.keys())
        if missing:
            self._insert_missing(missing)
            resolved.update(self._lookup(missing))
        if resolved.keys() != wanted:  # pragma: no cover - unique index guarantees this
            unresolved = sorted(wanted - resolved.keys())
            raise InvariantViolation(f"tags could not be resolved: {unresolved}")
        return resolved

    def lookup(self, names: Iterable[str]) -> dict[str, int]:
        """Return ids for the names that exist; unknown names are left out."""
        return self._lookup(normalize_tags(names))

    def adjust_counts(self, delta: Mapping[int, int]) -> None:
        """Atomically add ``delta[tag_id]`` to each tag's count.

        Raises:
            InvariantViolation: If an adjustment would make a count negative
                or names a tag that does not exist.
        """
        # Fixed lock order keeps concurrent multi-tag writers from deadlocking.
        for tag_id in sorted(delta):
            change = delta[tag_id]
            if change == 0:
                continue
            result = self.db.execute(
                update(Tag)
                .where(Tag.id == tag_id, Tag.count + change >= 0)
                .values(count=Tag.count + change)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.critical(
                    "Refusing count adjustment of %+d on tag %s: count would go negative",
                    change,
                    tag_id,
                )
                raise InvariantViolation(
                    f"count adjustment {change:+d} on tag {tag_id} would go negative"
                )

    def get(self, name: str) -> Tag:
        """Return a tag by (un-normalized) name."""
        normalized = normalize_tag(name)
        stmt = select(Tag).where(Tag.name == normalized).execution_options(populate_existing=True)
        tag = self.db.execute(stmt).scalars().first()
        if tag is None:
            raise NotFoundError("tag", normalized)
        return tag

    def suggest(self, prefix: str, limit: int = 10) -> list[Tag]:
        """Return tags starting with ``prefix``, most used first."""
        stripped = prefix.strip()
        if not stripped:
            return []
        normalized = normalize_tag(stripped)
        escaped = normalized.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        stmt = (
            select(Tag)
            .where(Tag.name.like(f"{escaped}%", escape="\\"))
            .order_by(Tag.count.desc(), Tag.name)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars())

    def set_type(self, name: str, tag_type: int) -> Tag:
        """Change the category code of an existing tag."""
        if not 0 <= tag_type <= 32767:
            raise ValidationError(f"tag type {tag_type} out of range")
        tag = self.get(name)
        tag.type = tag_type
        self.db.flush()
        return tag

    def audit_counts(self) -> list[CountMismatch]:
        """Recompute counts from membership of non-deleted posts.

        Returns every tag whose stored count differs from the live total.
        """
        live = (
            select(PostTag.tag_id, func.count().label("actual"))
            .join(Post, Post.id == PostTag.post_id)
            .where(Post.is_deleted.is_(False))
            .group_by(PostTag.tag_id)
            .subquery()
        )
        actual = func.coalesce(live.c.actual, 0)
        rows = self.db.execute(
            select(Tag.id, Tag.name, Tag.count, actual)
            .outerjoin(live, live.c.tag_id == Tag.id)
            .where(Tag.count != actual)
            .order_by(Tag.id)
        )
        return [
            CountMismatch(tag_id=row[0], name=row[1], stored=row[2], actual=row[3])
            for row in rows
        ]

    def recount(self) -> list[CountMismatch]:
        """Repair drifted counts and return what was fixed."""
        mismatches = self.audit_counts()
        for mismatch in mismatches:
            logger.error(
                "Tag %r count drifted: stored=%d actual=%d",
                mismatch.name,
                mismatch.stored,
                mismatch.actual,
            )
            self.db.execute(
                update(Tag)
                .where(Tag.id == mismatch.tag_id)
                .values(count=mismatch.actual)
                .execution_options(synchronize_session=False)
            )
        return mismatches

    def _lookup(self, names: Iterable[str]) -> dict[str, int]:
        names = list(names)
        if not names:
            return {}
        rows = self.db.execute(select(Tag.name, Tag.id).where(Tag.name.in_(names)))
        return {name: tag_id for name, tag_id in rows}

    def _insert_missing(self, names: list[str]) -> None:
        rows = [{"name": name, "count": 0} for name in names]
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = postgresql.insert(Tag).on_conflict_do_nothing(index_elements=["name"])
            self.db.execute(stmt, rows)
        elif dialect == "sqlite":
            stmt = sqlite.insert(Tag).on_conflict_do_nothing(index_elements=["name"])
            self.db.execute(stmt, rows)
        else:
            for row in rows:
                try:
                    with self.db.begin_nested():
                        self.db.execute(insert(Tag), [row])
                except IntegrityError:
                    logger.debug("Tag %r created concurrently; reusing winner", row["name"])
        logger.debug("Introduced tags %s", names)
