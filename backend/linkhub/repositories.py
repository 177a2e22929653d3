"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
topics, software, categories, tags). Repositories return SQLModel
objects and perform commits/refreshes where appropriate, so every public
write is atomic on its own. `TopicRepository.save` commits whatever the
caller staged on a topic graph in one transaction and is what the topic
upsert builds on.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from sqlmodel import Session, select
from sqlalchemy import func
from sqlalchemy.orm import selectinload
from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)


class TopicRepository:
    """Read/write operations for `Topic` and its owned `Url` rows."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, topic_id: int) -> Optional[models.Topic]:
        """Fetch a topic with its urls and their tags, or `None`."""
        stmt = (
            select(models.Topic)
            .where(models.Topic.id == topic_id)
            .options(selectinload(models.Topic.urls).selectinload(models.Url.tags))
        )
        return self.session.exec(stmt).first()

    def list(self) -> List[Tuple[models.Topic, int]]:
        """Return `(topic, url_count)` pairs, newest topic first."""
        stmt = (
            select(models.Topic, func.count(models.Url.id))
            .outerjoin(models.Url, models.Url.topic_id == models.Topic.id)
            .group_by(models.Topic.id)
            .order_by(models.Topic.created_at.desc(), models.Topic.id.desc())
            .options(selectinload(models.Topic.urls).selectinload(models.Url.tags))
        )
        return [(topic, count) for topic, count in self.session.exec(stmt).all()]

    def create(self, topic: models.Topic) -> models.Topic:
        """Persist a new topic (and any urls already attached to it)."""
        return self.save(topic)

    def update(self, topic: models.Topic) -> models.Topic:
        """Persist changes to a managed topic and bump `updated_at`."""
        topic.updated_at = models.utcnow()
        return self.save(topic)

    def save(self, topic: models.Topic) -> models.Topic:
        """Commit the staged topic graph as one transaction.

        Url rows appended to `topic.urls` are inserted, modified ones are
        updated and rows removed from the list are deleted (delete-orphan).
        On any failure the session is rolled back and the error re-raised.
        """
        self.session.add(topic)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(topic)
        return topic

    def delete(self, topic_id: int) -> bool:
        """Delete a topic and, through the cascade, all of its urls."""
        topic = self.session.get(models.Topic, topic_id)
        if topic is None:
            return False
        self.session.delete(topic)
        self.session.commit()
        return True


class SoftwareRepository:
    """CRUD and filtered pagination for `Software` catalog entries."""
    def __init__(self, session: Session):
        self.session = session

    def _filtered(self, stmt, category_id: int = 0, tag_ids: Sequence[int] = ()):
        if category_id:
            stmt = stmt.where(models.Software.category_id == category_id)
        if tag_ids:
            tagged = select(models.SoftwareTagLink.software_id).where(
                models.SoftwareTagLink.tag_id.in_(list(tag_ids))
            )
            stmt = stmt.where(models.Software.id.in_(tagged))
        return stmt

    def get(self, software_id: int) -> Optional[models.Software]:
        """Fetch a software entry with category and tags, or `None`."""
        stmt = (
            select(models.Software)
            .where(models.Software.id == software_id)
            .options(selectinload(models.Software.category), selectinload(models.Software.tags))
        )
        return self.session.exec(stmt).first()

    def list(self, page: int, page_size: int, category_id: int = 0,
             tag_ids: Sequence[int] = ()) -> Tuple[List[models.Software], int]:
        """Return one page of matching entries plus the total match count.

        `category_id == 0` and an empty `tag_ids` disable the respective
        filter; a software matches the tag filter when it carries any of
        the given tags. Entries are ordered newest first.
        """
        count_stmt = self._filtered(select(func.count()).select_from(models.Software), category_id, tag_ids)
        total = self.session.exec(count_stmt).one()
        offset = (page - 1) * page_size
        if offset >= total:
            return [], total
        stmt = (
            self._filtered(select(models.Software), category_id, tag_ids)
            .options(selectinload(models.Software.category), selectinload(models.Software.tags))
            .order_by(models.Software.created_at.desc(), models.Software.id.desc())
            .offset(offset)
            .limit(min(page_size, total - offset))
        )
        return list(self.session.exec(stmt).all()), total

    def create(self, software: models.Software, tags: List[models.Tag]) -> models.Software:
        """Persist a new entry linked to `tags`."""
        software.tags = list(tags)
        self.session.add(software)
        self.session.commit()
        self.session.refresh(software)
        return software

    def update(self, software: models.Software, tags: List[models.Tag]) -> models.Software:
        """Persist changes to a managed entry and replace its tag links."""
        software.tags = list(tags)
        software.updated_at = models.utcnow()
        self.session.add(software)
        self.session.commit()
        self.session.refresh(software)
        return software

    def delete(self, software_id: int) -> bool:
        """Delete an entry and its tag links; `False` if it does not exist."""
        software = self.session.get(models.Software, software_id)
        if software is None:
            return False
        self.session.delete(software)
        self.session.commit()
        return True


class CategoryRepository:
    """Lookups and writes for `Category` reference data."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, category_id: int) -> Optional[models.Category]:
        return self.session.get(models.Category, category_id)

    def get_by_name(self, name: str) -> Optional[models.Category]:
        stmt = select(models.Category).where(models.Category.name == name)
        return self.session.exec(stmt).first()

    def list(self) -> List[models.Category]:
        return list(self.session.exec(select(models.Category).order_by(models.Category.id)).all())

    def create(self, category: models.Category) -> models.Category:
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def is_referenced(self, category_id: int) -> bool:
        """Return True if any software entry still points at the category."""
        stmt = select(models.Software.id).where(models.Software.category_id == category_id)
        return self.session.exec(stmt).first() is not None

    def delete(self, category_id: int) -> bool:
        category = self.session.get(models.Category, category_id)
        if category is None:
            return False
        self.session.delete(category)
        self.session.commit()
        return True


class TagRepository:
    """Lookups and writes for shared `Tag` rows."""
    def __init__(self, session: Session):
        self.session = session

    def list(self) -> List[models.Tag]:
        return list(self.session.exec(select(models.Tag).order_by(models.Tag.id)).all())

    def get_by_name(self, name: str) -> Optional[models.Tag]:
        stmt = select(models.Tag).where(models.Tag.name == name)
        return self.session.exec(stmt).first()

    def get_many(self, tag_ids: Iterable[int]) -> List[models.Tag]:
        """Return the tags for `tag_ids`; unknown ids are simply absent."""
        ids = list(tag_ids)
        if not ids:
            return []
        stmt = select(models.Tag).where(models.Tag.id.in_(ids)).order_by(models.Tag.id)
        return list(self.session.exec(stmt).all())

    def create(self, tag: models.Tag) -> models.Tag:
        self.session.add(tag)
        self.session.commit()
        self.session.refresh(tag)
        return tag

    def resolve_names(self, names: Iterable[str]) -> Dict[str, models.Tag]:
        """Map each label to an existing tag, staging new tags for unknown ones.

        Nothing is committed here: new tags become visible together with
        the caller's next commit.
        """
        wanted = list(dict.fromkeys(names))
        if not wanted:
            return {}
        stmt = select(models.Tag).where(models.Tag.name.in_(wanted))
        found = {t.name: t for t in self.session.exec(stmt).all()}
        for name in wanted:
            if name not in found:
                tag = models.Tag(name=name)
                self.session.add(tag)
                found[name] = tag
        return found
