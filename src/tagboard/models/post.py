# src/tagboard/models/post.py
"""SQLAlchemy model for image posts."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from tagboard.db.session import Base
from tagboard.db.time import utcnow
from tagboard.models.enums import DEFAULT_RATING, ImageExtension, Rating

DEFAULT_DESCRIPTION = "No Description Provided"


class Post(Base):
    """A single uploaded image and its tagging state.

    ``tag_vector`` is the space separated, sorted list of normalized tag
    names. It is regenerated from the post's ``post_tag`` membership on every
    write and never edited directly.
    """

    __tablename__ = "post"
    __table_args__ = (
        CheckConstraint(
            "size >= 0 AND width >= 0 AND height >= 0",
            name="ck_post_file_dimensions",
        ),
        Index("ix_post_create_date_id", "create_date", "id"),
        Index("ix_post_score_id", "score", "id"),
        # Ids are never reused, even for the highest row.
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    poster: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("user_account.id"),
        nullable=False,
        index=True,
    )
    tag_vector: Mapped[str] = mapped_column(Text, nullable=False)

    create_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    modified_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    rating: Mapped[Rating] = mapped_column(
        Enum(Rating, name="rating", validate_strings=True),
        nullable=False,
        default=DEFAULT_RATING,
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    views: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # File descriptor, opaque to the store.
    filename: Mapped[str] = mapped_column(Text, nullable=False)
    path: Mapped[str] = mapped_column(Text, nullable=False)
    ext: Mapped[ImageExtension] = mapped_column(
        Enum(ImageExtension, name="imgext", validate_strings=True),
        nullable=False,
    )
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    width: Mapped[int] = mapped_column(Integer, nullable=False)
    height: Mapped[int] = mapped_column(Integer, nullable=False)

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=DEFAULT_DESCRIPTION,
    )
    source: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Optimistic lock; bumped by every ORM flush that updates the row.
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def tags(self) -> list[str]:
        """Return the post's tags in vector order."""
        return self.tag_vector.split()
