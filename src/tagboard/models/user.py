# src/tagboard/models/user.py
"""SQLAlchemy model for accounts owned by the external identity system."""

from __future__ import annotations

from sqlalchemy import BigInteger, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tagboard.db.session import Base
from tagboard.models.enums import Perms


class User(Base):
    """Account referenced as the owner of posts.

    Credentials live with the authentication service; only the id, display
    name and permission tier are mirrored here.
    """

    __tablename__ = "user_account"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    name: Mapped[str] = mapped_column(String(24), unique=True, nullable=False)
    perms: Mapped[Perms] = mapped_column(
        Enum(Perms, name="perms", validate_strings=True),
        nullable=False,
        default=Perms.User,
    )
