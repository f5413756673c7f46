# src/tagboard/api/v1/endpoints/tags.py
"""Tag catalog endpoints for the Tagboard API."""

from fastapi import APIRouter, Query

from tagboard.api.v1.dependencies import RequesterDep, SessionDep
from tagboard.core.errors import PermissionDeniedError
from tagboard.models import Perms, Tag
from tagboard.schemas.tag import CountMismatchResponse, TagResponse, TagTypeUpdate
from tagboard.services.access import Requester
from tagboard.services.tag_catalog import TagCatalog
from tagboard.services.unit_of_work import run_in_transaction

router = APIRouter(prefix="/tags", tags=["tags"])


def _require(requester: Requester, *tiers: Perms) -> None:
    if requester.perms not in tiers:
        raise PermissionDeniedError("insufficient permissions for tag administration")


@router.get("/", response_model=list[TagResponse])
def suggest_tags(
    db: SessionDep,
    prefix: str = Query(..., min_length=1, description="Start of the tag name"),
    limit: int = Query(10, ge=1, le=50),
) -> list[Tag]:
    """Autocomplete tag names, most used first."""
    return TagCatalog(db).suggest(prefix, limit)


@router.get("/audit", response_model=list[CountMismatchResponse])
def audit_tag_counts(db: SessionDep, requester: RequesterDep) -> list[CountMismatchResponse]:
    """List tags whose stored count differs from live membership (admins)."""
    _require(requester, Perms.Admin)
    return [
        CountMismatchResponse.model_validate(mismatch)
        for mismatch in TagCatalog(db).audit_counts()
    ]


@router.post("/recount", response_model=list[CountMismatchResponse])
def recount_tags(db: SessionDep, requester: RequesterDep) -> list[CountMismatchResponse]:
    """Repair drifted tag counts and report what changed (admins)."""
    _require(requester, Perms.Admin)
    catalog = TagCatalog(db)
    fixed = run_in_transaction(db, catalog.recount)
    return [CountMismatchResponse.model_validate(mismatch) for mismatch in fixed]


@router.get("/{name}", response_model=TagResponse)
def get_tag(name: str, db: SessionDep) -> Tag:
    """Get a tag and its live post count."""
    return TagCatalog(db).get(name)


@router.patch("/{name}", response_model=TagResponse)
def update_tag_type(
    name: str,
    payload: TagTypeUpdate,
    db: SessionDep,
    requester: RequesterDep,
) -> TagResponse:
    """Change a tag's category code (moderators)."""
    _require(requester, Perms.Moderator, Perms.Admin)
    catalog = TagCatalog(db)
    tag = run_in_transaction(db, lambda: catalog.set_type(name, payload.type))
    return TagResponse.model_validate(tag)
