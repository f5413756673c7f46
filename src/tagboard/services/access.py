"""Access gate: turns a requester's tier and preferences into visibility rules.

The predicate is computed once per request and handed, unchanged, to the
post store and search engine.
"""

from __future__ import annotations

from dataclasses import dataclass

from tagboard.core.errors import PermissionDeniedError
from tagboard.models import Perms, Post, Rating


@dataclass(frozen=True)
class Requester:
    """Identity facts supplied by the external session/auth system."""

    user_id: int | None = None
    perms: Perms = Perms.Guest
    show_explicit: bool = False

    @classmethod
    def guest(cls) -> Requester:
        return cls()


@dataclass(frozen=True)
class VisibilityPredicate:
    """Which posts a requester may see."""

    max_rating: Rating = Rating.Sketchy
    include_deleted: bool = False

    @property
    def allowed_ratings(self) -> frozenset[Rating]:
        return Rating.up_to(self.max_rating)

    def allows(self, post: Post) -> bool:
        """Return True if ``post`` passes this predicate."""
        if post.is_deleted and not self.include_deleted:
            return False
        return post.rating in self.allowed_ratings


@dataclass(frozen=True)
class _TierPolicy:
    ceiling: Rating
    explicit_opt_in: bool
    may_include_deleted: bool


# Must name every Perms member; checked at import time below.
_POLICY: dict[Perms, _TierPolicy] = {
    Perms.Guest: _TierPolicy(Rating.Sketchy, explicit_opt_in=True, may_include_deleted=False),
    Perms.User: _TierPolicy(Rating.Sketchy, explicit_opt_in=True, may_include_deleted=False),
    Perms.Moderator: _TierPolicy(Rating.Explicit, explicit_opt_in=False, may_include_deleted=True),
    Perms.Admin: _TierPolicy(Rating.Explicit, explicit_opt_in=False, may_include_deleted=True),
}

_missing = set(Perms) - _POLICY.keys()
if _missing:  # pragma: no cover - import-time guard
    raise RuntimeError(f"access policy missing tiers: {sorted(p.value for p in _missing)}")


def visibility_for(requester: Requester, *, include_deleted: bool = False) -> VisibilityPredicate:
    """Compute the visibility predicate for a requester.

    Raises:
        PermissionDeniedError: If deleted posts are requested by a tier that
            may not moderate.
    """
    policy = _POLICY[requester.perms]
    if include_deleted and not policy.may_include_deleted:
        raise PermissionDeniedError("only moderators may include deleted posts")
    ceiling = policy.ceiling
    if policy.explicit_opt_in and requester.show_explicit:
        ceiling = Rating.Explicit
    return VisibilityPredicate(max_rating=ceiling, include_deleted=include_deleted)


def ensure_can_post(requester: Requester) -> None:
    """Guests (no account) cannot upload."""
    if requester.perms is Perms.Guest or requester.user_id is None:
        raise PermissionDeniedError("an account is required to post")


def ensure_can_vote(requester: Requester) -> None:
    if requester.perms is Perms.Guest or requester.user_id is None:
        raise PermissionDeniedError("an account is required to vote")


def ensure_can_modify(requester: Requester, post: Post) -> None:
    """Owners and staff may edit or delete a post."""
    if requester.perms.is_staff:
        return
    if requester.user_id is not None and requester.user_id == post.poster:
        return
    raise PermissionDeniedError("only the poster or a moderator may modify this post")


def ensure_can_undelete(requester: Requester) -> None:
    if not requester.perms.is_staff:
        raise PermissionDeniedError("only moderators may restore deleted posts")
