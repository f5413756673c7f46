# src/tagboard/api/v1/endpoints/posts.py
"""Post-related endpoints for the Tagboard API."""

from fastapi import APIRouter, Query, status

from tagboard.api.v1.dependencies import RequesterDep, SessionDep
from tagboard.models import Post
from tagboard.schemas.post import PostCreate, PostEdit, PostResponse, ScoreBump
from tagboard.services.access import (
    ensure_can_modify,
    ensure_can_post,
    ensure_can_undelete,
    ensure_can_vote,
    visibility_for,
)
from tagboard.services.post_store import PostStore
from tagboard.services.unit_of_work import run_in_transaction

router = APIRouter(prefix="/posts", tags=["posts"])


def _respond(post: Post) -> PostResponse:
    return PostResponse.model_validate(post)


@router.post("/", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
def create_post(
    payload: PostCreate,
    db: SessionDep,
    requester: RequesterDep,
) -> PostResponse:
    """Create a post owned by the requester.

    Raises:
        PermissionDeniedError: For guests.
        ValidationError: For invalid tags or metadata.
    """
    ensure_can_post(requester)
    store = PostStore(db)
    post = run_in_transaction(
        db,
        lambda: store.create(
            poster=requester.user_id,
            tags=payload.tags,
            rating=payload.rating,
            file=payload.file.to_descriptor(),
            description=payload.description,
            source=payload.source,
        ),
    )
    return _respond(post)


@router.get("/{post_id}", response_model=PostResponse)
def get_post(
    post_id: int,
    db: SessionDep,
    requester: RequesterDep,
    include_deleted: bool = Query(False, description="Moderators only"),
) -> PostResponse:
    """Get a specific post by ID, subject to the requester's visibility."""
    visibility = visibility_for(requester, include_deleted=include_deleted)
    return _respond(PostStore(db).get(post_id, visibility))


@router.patch("/{post_id}", response_model=PostResponse)
def edit_post(
    post_id: int,
    payload: PostEdit,
    db: SessionDep,
    requester: RequesterDep,
) -> PostResponse:
    """Edit tags, rating, description or source of a post.

    Any change committed since ``expected_version`` is reported as 409; the
    client re-reads the post and decides how to reapply its edit.
    """
    store = PostStore(db)

    def operation() -> Post:
        ensure_can_modify(requester, store.get(post_id))
        return store.edit(
            post_id,
            tags=payload.tags,
            rating=payload.rating,
            description=payload.description,
            source=payload.source,
            expected_version=payload.expected_version,
        )

    return _respond(run_in_transaction(db, operation))


@router.delete("/{post_id}", response_model=PostResponse)
def delete_post(post_id: int, db: SessionDep, requester: RequesterDep) -> PostResponse:
    """Soft-delete a post (poster or moderator)."""
    store = PostStore(db)

    def operation() -> Post:
        ensure_can_modify(requester, store.get(post_id))
        return store.soft_delete(post_id)

    return _respond(run_in_transaction(db, operation))


@router.post("/{post_id}/restore", response_model=PostResponse)
def restore_post(post_id: int, db: SessionDep, requester: RequesterDep) -> PostResponse:
    """Undo a soft-delete (moderators only)."""
    ensure_can_undelete(requester)
    store = PostStore(db)
    return _respond(run_in_transaction(db, lambda: store.undelete(post_id)))


@router.post("/{post_id}/score", response_model=dict[str, int])
def vote_post(
    post_id: int,
    payload: ScoreBump,
    db: SessionDep,
    requester: RequesterDep,
) -> dict[str, int]:
    """Apply an up or down vote and return the new score."""
    ensure_can_vote(requester)
    store = PostStore(db)

    def operation() -> int:
        store.get(post_id, visibility_for(requester))
        return store.bump_score(post_id, payload.delta)

    return {"id": post_id, "score": run_in_transaction(db, operation)}


@router.post("/{post_id}/views", response_model=dict[str, int])
def view_post(post_id: int, db: SessionDep, requester: RequesterDep) -> dict[str, int]:
    """Count one view of a post and return the new total."""
    store = PostStore(db)

    def operation() -> int:
        store.get(post_id, visibility_for(requester))
        return store.increment_views(post_id)

    return {"id": post_id, "views": run_in_transaction(db, operation)}
