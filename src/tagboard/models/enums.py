"""Closed enumerations shared by models, services and schemas.

Member names are persisted verbatim, so they must stay in sync with the
database enum types (``rating``, ``perms``, ``imgext``).
"""

from __future__ import annotations

import enum


class Rating(str, enum.Enum):
    """Maturity rating of a post, ordered from least to most restricted."""

    Safe = "Safe"
    Sketchy = "Sketchy"
    Explicit = "Explicit"

    @property
    def level(self) -> int:
        return _RATING_LEVELS[self]

    @classmethod
    def up_to(cls, ceiling: Rating) -> frozenset[Rating]:
        """Return every rating at or below ``ceiling``."""
        return frozenset(rating for rating in cls if rating.level <= ceiling.level)


_RATING_LEVELS = {Rating.Safe: 0, Rating.Sketchy: 1, Rating.Explicit: 2}

DEFAULT_RATING = Rating.Sketchy


class Perms(str, enum.Enum):
    """Permission tier supplied by the external identity system."""

    Guest = "Guest"
    User = "User"
    Moderator = "Moderator"
    Admin = "Admin"

    @property
    def is_staff(self) -> bool:
        return self in (Perms.Moderator, Perms.Admin)


class ImageExtension(str, enum.Enum):
    """Image container formats accepted from the upload handler."""

    Bmp = "Bmp"
    Gif = "Gif"
    Jpg = "Jpg"
    Png = "Png"
    Tiff = "Tiff"
    Webp = "Webp"


class PostSorting(str, enum.Enum):
    """Result orderings; the short values match the public query parameter."""

    DateDescending = "dd"
    DateAscending = "da"
    VoteDescending = "vd"
    VoteAscending = "va"

    @property
    def descending(self) -> bool:
        return self in (PostSorting.DateDescending, PostSorting.VoteDescending)

    @property
    def by_date(self) -> bool:
        return self in (PostSorting.DateDescending, PostSorting.DateAscending)
