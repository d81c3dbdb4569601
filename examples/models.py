"""Minimal models for sqla-associations examples."""

from __future__ import annotations

import sqlalchemy as sa

from sqla_associations import BelongsTo, HasAndBelongsToMany, HasMany, HasOne, Model


metadata = sa.MetaData()

sa.Table(
    "users",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("name", sa.String(100)),
)
sa.Table(
    "posts",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("title", sa.String(200)),
    sa.Column("published", sa.Boolean, default=False),
    sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id")),
)
sa.Table(
    "comments",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("text", sa.String(500)),
    sa.Column("post_id", sa.Integer, sa.ForeignKey("posts.id")),
)
sa.Table(
    "profiles",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("bio", sa.String(500)),
    sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id")),
)
sa.Table(
    "tags",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("name", sa.String(50)),
)
# join table inferred for Post <-> Tag
sa.Table(
    "posts_tags",
    metadata,
    sa.Column("post_id", sa.Integer, sa.ForeignKey("posts.id"), primary_key=True),
    sa.Column("tag_id", sa.Integer, sa.ForeignKey("tags.id"), primary_key=True),
)


class User(Model):
    posts = HasMany(order="posts.id")
    published_posts = HasMany(class_name="Post", conditions="posts.published")
    comments = HasMany(through="posts")
    profile = HasOne()


class Post(Model):
    attr_protected = ("published",)

    user = BelongsTo()
    comments = HasMany()
    tags = HasAndBelongsToMany()


class Comment(Model):
    post = BelongsTo()


class Profile(Model):
    user = BelongsTo()


class Tag(Model):
    posts = HasAndBelongsToMany()
