"""Normalization of tag names and construction of post tag vectors.

Everything in this module is pure: the same input tags always yield the same
vector, independent of database state. Both the write path (posts) and the
read path (search queries) normalize through :func:`normalize_tag` so that
``"Cat"``, ``"cat"`` and ``" cat "`` always name the same tag.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from tagboard.core.errors import ValidationError
from tagboard.core.settings import settings

# Characters the search grammar gives meaning to, plus those the upload
# handler has always refused.
RESERVED_CHARACTERS = frozenset("()|+!,")
NEGATION_PREFIX = "-"

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_tag(
    name: str,
    *,
    max_length: int | None = None,
    enforce_length: bool = True,
) -> str:
    """Return the canonical form of a tag name.

    Surrounding whitespace is stripped, case is folded and internal runs of
    whitespace collapse to a single underscore. Search terms pass
    ``enforce_length=False``: an over-long term names no stored tag and so
    simply matches nothing.

    Raises:
        ValidationError: If the name is empty, too long, starts with the
            negation prefix or contains a reserved character.
    """
    if not isinstance(name, str):
        raise ValidationError(f"tag must be a string, got {type(name).__name__}")
    normalized = _WHITESPACE_RUN.sub("_", name.strip().casefold())
    if not normalized:
        raise ValidationError("tag names must not be empty")
    limit = settings.max_tag_length if max_length is None else max_length
    if enforce_length and len(normalized) > limit:
        raise ValidationError(f"tag {normalized!r} exceeds {limit} characters")
    if normalized.startswith(NEGATION_PREFIX):
        raise ValidationError(f"tag {normalized!r} must not start with '-'")
    bad = RESERVED_CHARACTERS.intersection(normalized)
    if bad:
        raise ValidationError(
            f"tag {normalized!r} contains reserved characters: {''.join(sorted(bad))}"
        )
    return normalized


def normalize_tags(names: Iterable[str]) -> frozenset[str]:
    """Normalize and deduplicate a collection of tag names."""
    if isinstance(names, str):
        # A bare string would otherwise be iterated character by character.
        names = names.split()
    return frozenset(normalize_tag(name) for name in names)


@dataclass(frozen=True)
class TagVector:
    """Immutable, order-independent search vector of a post.

    Stored as the sorted tuple of normalized names so that equality,
    membership and the persisted text form are all deterministic.
    """

    names: tuple[str, ...] = ()

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def as_set(self) -> frozenset[str]:
        return frozenset(self.names)

    def added_since(self, previous: TagVector) -> frozenset[str]:
        """Tags present here but not in ``previous``."""
        return self.as_set() - previous.as_set()

    def removed_since(self, previous: TagVector) -> frozenset[str]:
        """Tags present in ``previous`` but missing here."""
        return previous.as_set() - self.as_set()

    def to_text(self) -> str:
        return " ".join(self.names)

    @classmethod
    def from_text(cls, text: str) -> TagVector:
        """Parse a stored vector; the text must already be in canonical form."""
        return cls(tuple(text.split()))


def build(tags: Iterable[str]) -> TagVector:
    """Build the vector for a tag set.

    Raises:
        ValidationError: If any tag is invalid or the set is empty.
    """
    normalized = normalize_tags(tags)
    if not normalized:
        raise ValidationError("a post needs at least one tag")
    return TagVector(tuple(sorted(normalized)))
