"""initial schema: users, tags, posts and the post_tag index

Revision ID: 9c1e4a7b2d10
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "9c1e4a7b2d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

perms = sa.Enum("Guest", "User", "Moderator", "Admin", name="perms")
rating = sa.Enum("Safe", "Sketchy", "Explicit", name="rating")
imgext = sa.Enum("Bmp", "Gif", "Jpg", "Png", "Tiff", "Webp", name="imgext")


def upgrade() -> None:
    """Create the content store tables."""
    op.create_table(
        "user_account",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=24), nullable=False),
        sa.Column("perms", perms, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_table(
        "tag",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("type", sa.SmallInteger(), nullable=False, server_default="0"),
        sa.CheckConstraint("count >= 0", name="ck_tag_count_non_negative"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_table(
        "post",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("poster", ID_TYPE, nullable=False),
        sa.Column("tag_vector", sa.Text(), nullable=False),
        sa.Column("create_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("modified_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("rating", rating, nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("views", sa.BigInteger(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("filename", sa.Text(), nullable=False),
        sa.Column("path", sa.Text(), nullable=False),
        sa.Column("ext", imgext, nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("width", sa.Integer(), nullable=False),
        sa.Column("height", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("source", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "size >= 0 AND width >= 0 AND height >= 0",
            name="ck_post_file_dimensions",
        ),
        sa.ForeignKeyConstraint(["poster"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_post_poster", "post", ["poster"])
    op.create_index("ix_post_create_date_id", "post", ["create_date", "id"])
    op.create_index("ix_post_score_id", "post", ["score", "id"])
    op.create_table(
        "post_tag",
        sa.Column("post_id", ID_TYPE, nullable=False),
        sa.Column("tag_id", ID_TYPE, nullable=False),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"]),
        sa.ForeignKeyConstraint(["tag_id"], ["tag.id"]),
        sa.PrimaryKeyConstraint("post_id", "tag_id"),
    )
    op.create_index("ix_post_tag_tag_id_post_id", "post_tag", ["tag_id", "post_id"])


def downgrade() -> None:
    """Drop the content store tables."""
    op.drop_index("ix_post_tag_tag_id_post_id", table_name="post_tag")
    op.drop_table("post_tag")
    op.drop_index("ix_post_score_id", table_name="post")
    op.drop_index("ix_post_create_date_id", table_name="post")
    op.drop_index("ix_post_poster", table_name="post")
    op.drop_table("post")
    op.drop_table("tag")
    op.drop_table("user_account")
    bind = op.get_bind()
    for enum_type in (imgext, rating, perms):
        enum_type.drop(bind, checkfirst=True)
