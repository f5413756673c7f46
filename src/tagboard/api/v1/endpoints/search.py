# src/tagboard/api/v1/endpoints/search.py
"""Tag search endpoints for the Tagboard API."""

from fastapi import APIRouter, HTTPException, Query, status

from tagboard.api.v1.dependencies import RequesterDep, SessionDep
from tagboard.core.settings import settings
from tagboard.models import PostSorting
from tagboard.schemas.post import PostResponse
from tagboard.schemas.search import SearchResponse
from tagboard.services.access import visibility_for
from tagboard.services.search import SearchEngine

router = APIRouter(prefix="/search", tags=["search"])


@router.get("/", response_model=SearchResponse)
def search_posts(
    db: SessionDep,
    requester: RequesterDep,
    t: str = Query("", description="Tags; '-tag' excludes, 'a|b' matches either"),
    p: int = Query(0, ge=0, description="Zero-based page number"),
    l: int = Query(settings.default_page_size, ge=1, description="Posts per page"),  # noqa: E741
    s: PostSorting = Query(PostSorting.DateDescending, description="dd, da, vd or va"),
    cursor: str | None = Query(None, description="next_cursor of the previous page"),
    include_deleted: bool = Query(False, description="Moderators only"),
) -> SearchResponse:
    """Search posts by tags. Unknown tags yield an empty page, not an error."""
    visibility = visibility_for(requester, include_deleted=include_deleted)
    page = SearchEngine(db).search(
        t,
        visibility,
        sort=s,
        limit=l,
        offset=0 if cursor else p * l,
        cursor=cursor,
    )
    return SearchResponse(
        posts=[PostResponse.model_validate(post) for post in page.posts],
        next_cursor=page.next_cursor,
    )


@router.get("/random", response_model=PostResponse)
def random_post(db: SessionDep, requester: RequesterDep) -> PostResponse:
    """Return a random post visible to the requester."""
    post = SearchEngine(db).random_post(visibility_for(requester))
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No posts found")
    return PostResponse.model_validate(post)
