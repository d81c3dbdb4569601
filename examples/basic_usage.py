"""Basic sqla-associations usage examples.

Demonstrates binding a connection, lazy loads, eager loads with
``include``, through relationships, and building related records.

NOTE: This file is illustrative; it won't run standalone
without seeded data.
"""

from __future__ import annotations

import sqlalchemy as sa

from sqla_associations import init_registry

from .models import Post, User, metadata


# ── 1. Bind once per connection ──────────────────────────────────────

engine = sa.create_engine("sqlite://")


def setup(conn: sa.Connection) -> None:
    metadata.create_all(conn)

    # Every finder and relationship load runs on this connection
    init_registry(conn)


# ── 2. Lazy loads ────────────────────────────────────────────────────


def get_post_titles(user_id: int) -> list[str]:
    user = User.first(conditions=("users.id = :id", {"id": user_id}))
    if user is None:
        return []

    # one query on first access, cached afterwards
    return [post.title for post in user.posts]


def get_author_name(post: Post) -> str | None:
    author = post.user
    return author.name if author is not None else None


# ── 3. Eager loads (one query per relationship) ──────────────────────


def get_users_with_posts() -> list[User]:
    return User.all(include="posts")


def get_users_deep() -> list[User]:
    # users, then their posts, then the posts' comments and tags
    return User.all(include={"posts": ["comments", "tags"], "profile": None})


# ── 4. Through relationships ─────────────────────────────────────────


def get_comments_on_users_posts(user: User) -> list[str]:
    # SELECT comments.* FROM comments INNER JOIN posts ON(comments.post_id = posts.id)
    # WHERE posts.user_id = :id
    return [comment.text for comment in user.comments]


# ── 5. Joins and conditions ──────────────────────────────────────────


def get_users_who_published() -> list[User]:
    return User.all(
        select="DISTINCT users.*",
        joins=["posts"],
        conditions="posts.published",
    )


# ── 6. Building and creating related records ─────────────────────────


def write_post(user: User, title: str) -> Post:
    # user_id is set from the owner; ``published`` is protected from mass assignment
    return user.create_association("posts", {"title": title, "published": True})


def tag_post(post: Post, name: str) -> None:
    # inserts the tag and the posts_tags row
    post.create_association("tags", {"name": name})
