"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.
Topics own their urls; categories and tags are shared reference data.
"""

from typing import Optional
from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime, timezone
from typing import List


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UrlTagLink(SQLModel, table=True):
    """Join row between a `Url` and a `Tag`."""
    url_id: Optional[int] = Field(default=None, foreign_key='url.id', primary_key=True, ondelete='CASCADE')
    tag_id: Optional[int] = Field(default=None, foreign_key='tag.id', primary_key=True)


class SoftwareTagLink(SQLModel, table=True):
    """Join row between a `Software` entry and a `Tag`."""
    software_id: Optional[int] = Field(default=None, foreign_key='software.id', primary_key=True, ondelete='CASCADE')
    tag_id: Optional[int] = Field(default=None, foreign_key='tag.id', primary_key=True)


class User(SQLModel, table=True):
    """A registered user allowed to edit topics.

    Fields:
    - `username`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    created_at: datetime = Field(default_factory=utcnow)


class Tag(SQLModel, table=True):
    """A label shared by urls and software entries."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)


class Category(SQLModel, table=True):
    """A display category for software entries.

    Categories are created ahead of software and are never deleted while
    a `Software` row still points at them.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    softwares: List['Software'] = Relationship(back_populates='category')


class Topic(SQLModel, table=True):
    """A named collection of bookmarked urls."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)
    urls: List['Url'] = Relationship(
        back_populates='topic',
        sa_relationship_kwargs={'cascade': 'all, delete-orphan', 'order_by': 'Url.position'},
    )


class Url(SQLModel, table=True):
    """A bookmark inside a `Topic`.

    `position` keeps the order in which the urls were submitted.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    topic_id: int = Field(foreign_key='topic.id', index=True, ondelete='CASCADE')
    position: int = 0
    url: Optional[str] = None
    title: str
    icon: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    topic: Optional[Topic] = Relationship(back_populates='urls')
    tags: List[Tag] = Relationship(link_model=UrlTagLink, sa_relationship_kwargs={'order_by': 'Tag.id'})


class Software(SQLModel, table=True):
    """A catalog entry managed from the admin area."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    website: str
    description: Optional[str] = None
    category_id: int = Field(foreign_key='category.id', index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)
    category: Optional[Category] = Relationship(back_populates='softwares')
    tags: List[Tag] = Relationship(link_model=SoftwareTagLink, sa_relationship_kwargs={'order_by': 'Tag.id'})
