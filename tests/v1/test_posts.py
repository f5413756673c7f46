# tests/v1/test_posts.py
"""Tests for post-related endpoints."""

import pytest
from fastapi import status

from tagboard.models.post import DEFAULT_DESCRIPTION

FILE = {
    "filename": "sunset.png",
    "path": "00",
    "ext": "Png",
    "size": 1024,
    "width": 800,
    "height": 600,
}


def _create(client, headers, tags, rating="Safe", **extra):
    payload = {"tags": tags, "rating": rating, "file": FILE, **extra}
    return client.post("/api/v1/posts/", json=payload, headers=headers)


def test_create_post_success(client, poster, auth_headers, tag_count) -> None:
    """Test successful post creation."""
    response = _create(client, auth_headers(poster), ["Sunset", "beach"], source="camera")
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["tags"] == ["beach", "sunset"]
    assert data["poster"] == poster.id
    assert data["rating"] == "Safe"
    assert data["description"] == DEFAULT_DESCRIPTION
    assert data["source"] == "camera"
    assert data["version"] == 1
    assert tag_count("sunset") == 1


def test_create_post_defaults_to_sketchy(client, poster, auth_headers) -> None:
    payload = {"tags": ["cat"], "file": FILE}
    response = client.post("/api/v1/posts/", json=payload, headers=auth_headers(poster))
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["rating"] == "Sketchy"


def test_guest_cannot_create(client) -> None:
    response = _create(client, {}, ["cat"])
    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.parametrize("tags", [["-cat"], ["a|b"], ["   "]])
def test_create_post_invalid_tags(client, poster, auth_headers, tags) -> None:
    response = _create(client, auth_headers(poster), tags)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_create_post_schema_errors(client, poster, auth_headers) -> None:
    assert _create(client, auth_headers(poster), []).status_code == 422
    assert _create(client, auth_headers(poster), ["cat"], rating="Nsfw").status_code == 422


def test_get_post_visibility(client, create_post, auth_headers, poster, moderator) -> None:
    safe = create_post(["cat"])
    explicit = create_post(["cat"], rating="Explicit")

    assert client.get(f"/api/v1/posts/{safe.id}").status_code == 200
    assert client.get(f"/api/v1/posts/{explicit.id}").status_code == 404
    opted_in = auth_headers(poster, show_explicit=True)
    assert client.get(f"/api/v1/posts/{explicit.id}", headers=opted_in).status_code == 200
    headers = auth_headers(moderator)
    assert client.get(f"/api/v1/posts/{explicit.id}", headers=headers).status_code == 200
    assert client.get("/api/v1/posts/9999").status_code == 404


def test_edit_post_by_owner(client, create_post, poster, auth_headers, tag_count) -> None:
    post = create_post(["a", "b"])
    response = client.patch(
        f"/api/v1/posts/{post.id}",
        json={"tags": ["b", "c"], "expected_version": 1},
        headers=auth_headers(poster),
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["tags"] == ["b", "c"]
    assert response.json()["version"] == 2
    assert (tag_count("a"), tag_count("b"), tag_count("c")) == (0, 1, 1)


def test_edit_with_stale_version_conflicts(client, create_post, poster, auth_headers) -> None:
    post = create_post(["a"])
    headers = auth_headers(poster)
    first = client.patch(
        f"/api/v1/posts/{post.id}",
        json={"tags": ["a", "y"], "expected_version": 1},
        headers=headers,
    )
    assert first.status_code == status.HTTP_200_OK

    response = client.patch(
        f"/api/v1/posts/{post.id}",
        json={"tags": ["z"], "expected_version": 1},
        headers=headers,
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert "Retry-After" not in response.headers
    assert client.get(f"/api/v1/posts/{post.id}").json()["tags"] == ["a", "y"]


def test_edit_post_by_stranger(client, create_post, other_user, auth_headers) -> None:
    post = create_post(["a"])
    response = client.patch(
        f"/api/v1/posts/{post.id}",
        json={"tags": ["b"], "expected_version": 1},
        headers=auth_headers(other_user),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_empty_edit_is_rejected(client, create_post, poster, auth_headers) -> None:
    post = create_post(["a"])
    response = client.patch(
        f"/api/v1/posts/{post.id}", json={"expected_version": 1}, headers=auth_headers(poster)
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_edit_requires_a_base_version(client, create_post, poster, auth_headers, tag_count):
    post = create_post(["a"])
    response = client.patch(
        f"/api/v1/posts/{post.id}", json={"tags": ["b"]}, headers=auth_headers(poster)
    )
    assert response.status_code == 422
    assert client.get(f"/api/v1/posts/{post.id}").json()["tags"] == ["a"]
    assert tag_count("b") is None


def test_delete_and_restore(client, create_post, poster, moderator, auth_headers, tag_count):
    post = create_post(["cat"])

    response = client.delete(f"/api/v1/posts/{post.id}", headers=auth_headers(poster))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["is_deleted"] is True
    assert tag_count("cat") == 0
    assert client.get(f"/api/v1/posts/{post.id}").status_code == 404

    again = client.delete(f"/api/v1/posts/{post.id}", headers=auth_headers(moderator))
    assert again.status_code == status.HTTP_409_CONFLICT

    forbidden = client.post(f"/api/v1/posts/{post.id}/restore", headers=auth_headers(poster))
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    restored = client.post(f"/api/v1/posts/{post.id}/restore", headers=auth_headers(moderator))
    assert restored.status_code == status.HTTP_200_OK
    assert restored.json()["is_deleted"] is False
    assert tag_count("cat") == 1


def test_moderator_sees_deleted_posts(client, create_post, poster, moderator, auth_headers):
    post = create_post(["cat"])
    client.delete(f"/api/v1/posts/{post.id}", headers=auth_headers(poster))

    url = f"/api/v1/posts/{post.id}?include_deleted=true"
    assert client.get(url, headers=auth_headers(moderator)).status_code == 200
    assert client.get(url, headers=auth_headers(poster)).status_code == 403


def test_vote_and_view(client, create_post, poster, auth_headers) -> None:
    post = create_post(["cat"])
    headers = auth_headers(poster)

    response = client.post(f"/api/v1/posts/{post.id}/score", json={"delta": 1}, headers=headers)
    assert response.json() == {"id": post.id, "score": 1}
    response = client.post(f"/api/v1/posts/{post.id}/score", json={"delta": -1}, headers=headers)
    assert response.json() == {"id": post.id, "score": 0}

    assert client.post(f"/api/v1/posts/{post.id}/views").json() == {"id": post.id, "views": 1}
    assert client.post(f"/api/v1/posts/{post.id}/views").json() == {"id": post.id, "views": 2}


def test_vote_validation(client, create_post, poster, auth_headers) -> None:
    post = create_post(["cat"])
    url = f"/api/v1/posts/{post.id}/score"
    assert client.post(url, json={"delta": 1}).status_code == 403
    assert client.post(url, json={"delta": 5}, headers=auth_headers(poster)).status_code == 422
    missing = client.post("/api/v1/posts/9999/score", json={"delta": 1}, headers=auth_headers(poster))
    assert missing.status_code == 404
