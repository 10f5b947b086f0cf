"""Shared fixtures: declarative models, a seeded SQLite session, introspectors."""

from __future__ import annotations

import datetime
import uuid
from collections.abc import Iterator
from typing import Any

import pytest
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    create_engine,
    func,
    select,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import DeclarativeBase, Session, column_property, relationship

from datagrid_query.filters import build_default_filter_registry
from datagrid_query.persistence import SQLAlchemyIntrospector
from datagrid_query.schema import CalculationKind, FieldType

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


post_tags = Table(
    "post_tags",
    Base.metadata,
    Column("post_id", ForeignKey("posts.id"), primary_key=True),
    Column("tag_id", ForeignKey("tags.id"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    uid = Column(Uuid, default=uuid.uuid4, nullable=False)
    name = Column(String(100), nullable=False)
    email = Column(String(200), nullable=False)
    age = Column(Integer, nullable=True)
    score = Column(Float, nullable=True)
    balance = Column(Numeric(10, 2), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    role = Column(Enum("admin", "member", "guest", name="user_role"), nullable=False)
    birthday = Column(Date, nullable=True)
    created_at = Column(DateTime, nullable=False)
    profile = Column(JSON, nullable=True)

    posts = relationship("Post", back_populates="author")

    @hybrid_property
    def display_name(self) -> Any:
        return self.name + " <" + self.email + ">"

    @property
    def initials(self) -> str:
        return "".join(part[0].upper() for part in self.name.split())


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    body = Column(Text, nullable=True)
    status = Column(Enum("draft", "published", name="post_status"), nullable=False)
    views = Column(Integer, default=0, nullable=False)
    published_at = Column(DateTime, nullable=True)
    author_id = Column(ForeignKey("users.id"), nullable=False)

    author = relationship("User", back_populates="posts")
    tags = relationship("Tag", secondary=post_tags, back_populates="posts")


class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False)

    posts = relationship("Post", secondary=post_tags, back_populates="tags")


User.post_count = column_property(
    select(func.count(Post.id))
    .where(Post.author_id == User.id)
    .correlate_except(Post)
    .scalar_subquery()
)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


def _seed(session: Session) -> None:
    python = Tag(name="python")
    sql = Tag(name="sql")
    alice = User(
        id=1,
        uid=uuid.UUID("123e4567-e89b-12d3-a456-426614174000"),
        name="Alice",
        email="alice@example.com",
        age=30,
        score=4.5,
        is_active=True,
        role="admin",
        birthday=datetime.date(1994, 5, 1),
        created_at=datetime.datetime(2024, 1, 5, 9, 30),
        profile={"theme": "dark", "address": {"city": "Paris"}},
    )
    bob = User(
        id=2,
        name="Bob",
        email="bob@example.com",
        age=25,
        score=3.0,
        is_active=False,
        role="member",
        created_at=datetime.datetime(2024, 1, 10, 18, 0),
        profile={"theme": "light", "address": {"city": "Berlin"}},
    )
    carol = User(
        id=3,
        name="Carol",
        email="carol@example.com",
        age=35,
        score=None,
        is_active=True,
        role="member",
        created_at=datetime.datetime(2024, 2, 1, 12, 0),
        profile=None,
    )
    dave = User(
        id=4,
        name="Dave",
        email="dave@example.com",
        age=None,
        score=2.5,
        is_active=True,
        role="guest",
        created_at=datetime.datetime(2024, 2, 20, 8, 15),
        profile={"theme": "dark"},
    )
    session.add_all([alice, bob, carol, dave])
    session.add_all(
        [
            Post(
                id=1,
                title="Hello World",
                status="published",
                views=10,
                author=alice,
                tags=[python],
                published_at=datetime.datetime(2024, 1, 6),
            ),
            Post(id=2, title="Drafting 100%", status="draft", views=5, author=alice),
            Post(
                id=3,
                title="Bob's SQL notes",
                status="published",
                views=7,
                author=bob,
                tags=[python, sql],
                published_at=datetime.datetime(2024, 1, 12),
            ),
        ]
    )
    session.commit()


@pytest.fixture
def session() -> Iterator[Session]:
    """In-memory SQLite session with four users, three posts and two tags."""
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    with Session(engine) as db:
        _seed(db)
        yield db
    engine.dispose()


# ---------------------------------------------------------------------------
# Engine collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def registry():
    """Isolated registry holding the built-in filter kinds."""
    return build_default_filter_registry()


@pytest.fixture
def introspector() -> SQLAlchemyIntrospector:
    return SQLAlchemyIntrospector()


class FakeResource:
    def __init__(self, name: str) -> None:
        self.__name__ = name

    def __repr__(self) -> str:
        return self.__name__


class FakeIntrospector:
    """
    Dict-backed ``SchemaIntrospector``.

    ``schema`` maps a ``FakeResource`` to::

        {"attributes": {name: FieldType}, "relations": {name: FakeResource},
         "calculations": {name: CalculationKind}, "enums": {name: [values]}}
    """

    def __init__(self, schema: dict[FakeResource, dict[str, Any]]) -> None:
        self.schema = schema

    def _entry(self, resource: Any) -> dict[str, Any]:
        return self.schema.get(resource, {})

    def attribute_exists(self, resource: Any, name: str) -> bool:
        return name in self._entry(resource).get("attributes", {})

    def relation_target(self, resource: Any, name: str) -> Any | None:
        return self._entry(resource).get("relations", {}).get(name)

    def calculation_kind(self, resource: Any, name: str) -> CalculationKind:
        return self._entry(resource).get("calculations", {}).get(name, CalculationKind.NONE)

    def attribute_type(self, resource: Any, name: str) -> FieldType:
        return self._entry(resource).get("attributes", {}).get(name, FieldType.UNKNOWN)

    def is_structured(self, resource: Any, name: str) -> bool:
        return self.attribute_type(resource, name) is FieldType.JSON

    def attribute_names(self, resource: Any) -> list[str]:
        return sorted(self._entry(resource).get("attributes", {}))

    def enum_values(self, resource: Any, name: str) -> list[str]:
        return list(self._entry(resource).get("enums", {}).get(name, []))


@pytest.fixture
def fake_schema() -> tuple[FakeIntrospector, FakeResource]:
    """A fake ``Article`` resource with an author relation and a settings document."""
    article = FakeResource("Article")
    author = FakeResource("Author")
    fake = FakeIntrospector(
        {
            article: {
                "attributes": {
                    "title": FieldType.STRING,
                    "views": FieldType.INTEGER,
                    "state": FieldType.ENUM,
                    "published_on": FieldType.DATE,
                    "featured": FieldType.BOOLEAN,
                    "labels": FieldType.ARRAY,
                    "settings": FieldType.JSON,
                    "word_count": FieldType.INTEGER,
                    "reading_time": FieldType.INTEGER,
                },
                "relations": {"author": author},
                "calculations": {
                    "word_count": CalculationKind.EXPRESSION,
                    "reading_time": CalculationKind.HOST_EVALUATED,
                },
                "enums": {"state": ["draft", "live"]},
            },
            author: {
                "attributes": {"name": FieldType.STRING, "bio": FieldType.JSON},
            },
        }
    )
    return fake, article
