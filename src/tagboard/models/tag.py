# src/tagboard/models/tag.py
"""SQLAlchemy models for the tag catalog and post membership index."""

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from tagboard.db.session import Base

TAG_TYPE_GENERAL = 0


class Tag(Base):
    """Canonical tag with its live reference count.

    ``count`` is derived state: the number of non-deleted posts carrying the
    tag. It is only ever changed through atomic increments issued by the
    tag catalog.
    """

    __tablename__ = "tag"
    __table_args__ = (
        CheckConstraint("count >= 0", name="ck_tag_count_non_negative"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    # Normalized form; unique so concurrent first uses collapse onto one row.
    name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    # Opaque category code (general/artist/character/...).
    type: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
        default=TAG_TYPE_GENERAL,
        server_default=str(TAG_TYPE_GENERAL),
    )


class PostTag(Base):
    """Inverted index row: post ``post_id`` carries tag ``tag_id``."""

    __tablename__ = "post_tag"
    __table_args__ = (
        Index("ix_post_tag_tag_id_post_id", "tag_id", "post_id"),
    )

    post_id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("post.id"),
        primary_key=True,
    )
    tag_id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("tag.id"),
        primary_key=True,
    )
