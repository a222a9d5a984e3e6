"""Shared fixtures: an in-memory SQLite schema with authors, posts and comments.

The engine uses a StaticPool so the single :memory: database is shared
with the worker threads executors run their sessions in.
"""

from __future__ import annotations

from datetime import date, datetime

import pytest
from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Integer, String, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    pass


class Author(Base):
    __tablename__ = "authors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    posts: Mapped[list["Post"]] = relationship(back_populates="author")


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    status: Mapped[str] = mapped_column(String(20))
    views: Mapped[int] = mapped_column(Integer)
    rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    published: Mapped[bool] = mapped_column(Boolean)
    created_at: Mapped[datetime] = mapped_column(DateTime)
    published_on: Mapped[date] = mapped_column(Date)
    author_id: Mapped[int] = mapped_column(ForeignKey("authors.id"))

    author: Mapped[Author] = relationship(back_populates="posts")
    comments: Mapped[list["Comment"]] = relationship(back_populates="post")


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    body: Mapped[str] = mapped_column(String(200))
    post_id: Mapped[int] = mapped_column(ForeignKey("posts.id"))

    post: Mapped[Post] = relationship(back_populates="comments")


# (id, title, status, views, rating, published, created_at, author_id)
POSTS = [
    (1, "Intro to SQL", "published", 120, 4.5, True, datetime(2024, 1, 5, 10, 0), 1),
    (2, "Advanced SQL", "draft", 40, 3.0, False, datetime(2024, 1, 10, 9, 30), 1),
    (3, "Python tips", "published", 300, 4.8, True, datetime(2024, 2, 1, 12, 0), 2),
    (4, "Async python", "archived", 75, 2.5, False, datetime(2024, 2, 15, 8, 0), 3),
    (5, "Testing 100%", "published", 10, None, True, datetime(2024, 3, 1, 23, 30), 3),
]


@pytest.fixture
def engine():
    """Function-scoped :memory: SQLite engine shared across threads."""
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def seeded(session_factory):
    """Populate authors, posts and comments; returns the session factory."""
    with session_factory() as session:
        session.add_all([
            Author(id=1, name="Ann", active=True),
            Author(id=2, name="Bob", active=False),
            Author(id=3, name="Cara", active=True),
        ])
        for pid, title, status, views, rating, published, created_at, author_id in POSTS:
            session.add(Post(
                id=pid,
                title=title,
                status=status,
                views=views,
                rating=rating,
                published=published,
                created_at=created_at,
                published_on=created_at.date(),
                author_id=author_id,
            ))
        session.add_all([
            Comment(id=1, body="great", post_id=1),
            Comment(id=2, body="thanks", post_id=1),
            Comment(id=3, body="great", post_id=3),
        ])
        session.commit()
    return session_factory


@pytest.fixture
def run(seeded):
    """Execute a select and return the list of primary keys it yields."""

    def _run(stmt):
        with seeded() as session:
            return [row.id for row in session.scalars(stmt).all()]

    return _run
