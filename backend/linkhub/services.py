"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and auxiliary logic. Services are intentionally thin: they perform
validation, execute domain logic and persist aggregates via
repositories. Malformed input raises `ValueError`; missing identities
raise `NotFoundError` and constraint clashes raise `ConflictError`.
"""

from datetime import datetime, timedelta, timezone
from passlib.context import CryptContext
import jwt
import logging
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence
import httpx
from . import models, repositories
from .config import settings
from .errors import ConflictError, NotFoundError, ResolveError
from .schemas import SoftwareIn, SoftwarePage, SoftwareOut, TopicDraft, TopicSummaryOut, UrlDraft, check_http_url
from .utils.page_meta import parse_page_meta
from .utils.url_text import parse_url_lines
from sqlmodel import Session

logger = logging.getLogger("linkhub.services")

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_HOURS = 24


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, username: str, password: str) -> models.User:
        """Create a new user with a hashed password.

        Returns the persisted `User` instance.
        """
        if not username.strip() or not password:
            raise ValueError("username and password are required")
        hashed = PWD_CTX.hash(password)
        u = models.User(username=username.strip(), password_hash=hashed)
        return self.user_repo.create(u)

    def authenticate(self, username: str, password: str):
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_username(username)
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        expire = datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "username": user.username, "exp": int(expire.timestamp())}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=JWT_ALGORITHM)


class UrlChanges(NamedTuple):
    """Drafts split by what the upsert has to do with them."""
    create: List[UrlDraft]
    update: List[UrlDraft]
    delete: List[int]


def partition_url_drafts(existing_ids: Iterable[int], drafts: Sequence[UrlDraft]) -> UrlChanges:
    """Split `drafts` against the ids currently stored for a topic.

    Drafts without an id are created, drafts whose id is stored are
    updated in place, and stored ids that no draft mentions are deleted.
    A draft id that is not stored raises `NotFoundError`.
    """
    existing = list(existing_ids)
    known = set(existing)
    submitted = {d.id for d in drafts if d.id is not None}
    unknown = sorted(submitted - known)
    if unknown:
        raise NotFoundError(f"url not found in topic: {', '.join(str(i) for i in unknown)}")
    return UrlChanges(
        create=[d for d in drafts if d.id is None],
        update=[d for d in drafts if d.id is not None],
        delete=[i for i in existing if i not in submitted],
    )


class TopicService:
    """Create, reconcile, list and delete topics with their urls."""
    def __init__(self, session: Session, resolver: Optional["UrlResolver"] = None):
        self.session = session
        self.resolver = resolver
        self.topic_repo = repositories.TopicRepository(session)
        self.tag_repo = repositories.TagRepository(session)

    def list_topics(self) -> List[TopicSummaryOut]:
        """Return every topic with its urls and url count, newest first."""
        out = []
        for topic, count in self.topic_repo.list():
            item = TopicSummaryOut.model_validate(topic)
            item.url_count = count
            out.append(item)
        return out

    def get_topic(self, topic_id: int) -> models.Topic:
        topic = self.topic_repo.get(topic_id)
        if topic is None:
            raise NotFoundError(f"topic not found: {topic_id}")
        return topic

    def upsert(self, draft: TopicDraft) -> int:
        """Make the stored topic match `draft` and return its id.

        Without `draft.id` a new topic is created with every url. With an
        id the stored urls are reconciled against the submitted list
        (create, update, delete) and committed as one transaction, so a
        failure leaves the stored topic untouched.
        """
        if draft.id is None:
            if any(u.id is not None for u in draft.urls):
                raise ValueError("url ids are not allowed when creating a topic")
            tags = self._resolve_tags(draft.urls)
            topic = models.Topic(name=draft.name, description=draft.description)
            topic.urls = [self._build_url(u, i, tags) for i, u in enumerate(draft.urls)]
            topic = self.topic_repo.create(topic)
            logger.info("topic_created id=%s urls=%d", topic.id, len(draft.urls))
            return topic.id

        topic = self.get_topic(draft.id)
        stored = {u.id: u for u in topic.urls}
        changes = partition_url_drafts(stored.keys(), draft.urls)
        tags = self._resolve_tags(draft.urls)
        positions = {id(u): i for i, u in enumerate(draft.urls)}
        rows = {}
        now = models.utcnow()
        for u in changes.update:
            row = stored[u.id]
            self._apply_url(row, u, positions[id(u)], tags)
            row.updated_at = now
            rows[id(u)] = row
        for u in changes.create:
            rows[id(u)] = self._build_url(u, positions[id(u)], tags)
        topic.name = draft.name
        topic.description = draft.description
        # ids in `changes.delete` are left out and deleted as orphans on commit
        topic.urls = [rows[id(u)] for u in draft.urls]
        self.topic_repo.update(topic)
        logger.info(
            "topic_updated id=%s created=%d updated=%d deleted=%d",
            topic.id, len(changes.create), len(changes.update), len(changes.delete),
        )
        return topic.id

    def batch_create(self, name: str, text: str) -> int:
        """Create a topic from pasted text holding one url per line.

        Lines without an explicit title are looked up through the url
        resolver when the service has one; a page that cannot be fetched
        keeps the url as its title.
        """
        items = parse_url_lines(text)
        if not items:
            raise ValueError("no urls found")
        drafts = []
        for item in items:
            if item['title'] is None:
                item.update(self._describe(item['url']))
            drafts.append(UrlDraft(**item))
        return self.upsert(TopicDraft(name=name, urls=drafts))

    def delete_topic(self, topic_id: int) -> None:
        if not self.topic_repo.delete(topic_id):
            raise NotFoundError(f"topic not found: {topic_id}")
        logger.info("topic_deleted id=%s", topic_id)

    def _resolve_tags(self, drafts: Sequence[UrlDraft]) -> Dict[str, models.Tag]:
        return self.tag_repo.resolve_names(name for u in drafts for name in u.tags)

    def _describe(self, url: str) -> Dict[str, Optional[str]]:
        if self.resolver is None:
            return {'title': url}
        try:
            meta = self.resolver.resolve(url)
        except ResolveError as exc:
            logger.warning("batch_resolve_failed url=%s error=%s", url, exc)
            return {'title': url}
        return {'title': meta['title'], 'icon': meta['icon'], 'description': meta['description']}

    def _build_url(self, draft: UrlDraft, position: int, tags: Dict[str, models.Tag]) -> models.Url:
        row = models.Url(title=draft.title)
        self._apply_url(row, draft, position, tags)
        return row

    @staticmethod
    def _apply_url(row: models.Url, draft: UrlDraft, position: int, tags: Dict[str, models.Tag]) -> None:
        row.position = position
        row.url = draft.url
        row.title = draft.title
        row.icon = draft.icon
        row.description = draft.description
        row.tags = [tags[name] for name in draft.tags]


class CatalogService:
    """Manage the software catalog and its categories and tags."""
    def __init__(self, session: Session):
        self.session = session
        self.software_repo = repositories.SoftwareRepository(session)
        self.category_repo = repositories.CategoryRepository(session)
        self.tag_repo = repositories.TagRepository(session)

    def list_software(self, page: int = 1, page_size: int = 10, category_id: int = 0,
                      tag_ids: Sequence[int] = ()) -> SoftwarePage:
        """Return one page of software with category and tag names resolved.

        A page past the end is not an error: it comes back empty with the
        real `total` so callers can still compute the page count.
        """
        if page < 1:
            raise ValueError("page must be >= 1")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        items, total = self.software_repo.list(page, page_size, category_id=category_id, tag_ids=tag_ids)
        return SoftwarePage(data=[SoftwareOut.model_validate(s) for s in items], total=total)

    def get_software(self, software_id: int) -> models.Software:
        software = self.software_repo.get(software_id)
        if software is None:
            raise NotFoundError(f"software not found: {software_id}")
        return software

    def create_software(self, draft: SoftwareIn) -> models.Software:
        """Create a software entry; category and tags must already exist."""
        tags = self._check_references(draft)
        software = models.Software(
            name=draft.name,
            website=draft.website,
            description=draft.description,
            category_id=draft.category_id,
        )
        software = self.software_repo.create(software, tags)
        logger.info("software_created id=%s category=%s", software.id, software.category_id)
        return software

    def update_software(self, software_id: int, draft: SoftwareIn) -> models.Software:
        software = self.get_software(software_id)
        tags = self._check_references(draft)
        software.name = draft.name
        software.website = draft.website
        software.description = draft.description
        software.category_id = draft.category_id
        return self.software_repo.update(software, tags)

    def delete_software(self, software_id: int) -> None:
        if not self.software_repo.delete(software_id):
            raise NotFoundError(f"software not found: {software_id}")
        logger.info("software_deleted id=%s", software_id)

    def list_categories(self) -> List[models.Category]:
        return self.category_repo.list()

    def create_category(self, name: str) -> models.Category:
        if self.category_repo.get_by_name(name):
            raise ConflictError(f"category already exists: {name}")
        return self.category_repo.create(models.Category(name=name))

    def delete_category(self, category_id: int) -> None:
        """Delete a category that no software entry references any more."""
        if self.category_repo.get(category_id) is None:
            raise NotFoundError(f"category not found: {category_id}")
        if self.category_repo.is_referenced(category_id):
            raise ConflictError(f"category is still in use: {category_id}")
        self.category_repo.delete(category_id)

    def list_tags(self) -> List[models.Tag]:
        return self.tag_repo.list()

    def create_tag(self, name: str) -> models.Tag:
        if self.tag_repo.get_by_name(name):
            raise ConflictError(f"tag already exists: {name}")
        return self.tag_repo.create(models.Tag(name=name))

    def _check_references(self, draft: SoftwareIn) -> List[models.Tag]:
        """Return the draft's tags, raising `NotFoundError` for dangling ids."""
        if self.category_repo.get(draft.category_id) is None:
            raise NotFoundError(f"category not found: {draft.category_id}")
        wanted = list(dict.fromkeys(draft.tag_ids))
        tags = self.tag_repo.get_many(wanted)
        missing = sorted(set(wanted) - {t.id for t in tags})
        if missing:
            raise NotFoundError(f"tag not found: {', '.join(str(i) for i in missing)}")
        return tags


class UrlResolver:
    """Read title, icon and description of bookmarked pages over http.

    The `httpx.Client` is passed in so the caller owns its timeout,
    redirect policy and transport.
    """
    def __init__(self, http: httpx.Client):
        self.http = http

    def resolve(self, url: str) -> Dict[str, Optional[str]]:
        """Fetch `url` and return `{url, title, icon, description}`.

        Raises `ValueError` for a malformed url and `ResolveError` when
        the page cannot be fetched or answers with a non-2xx status.
        """
        check_http_url(url)
        try:
            response = self.http.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ResolveError(f"could not fetch {url}: {exc}") from exc
        content_type = response.headers.get("content-type", "text/html")
        html = response.text if "html" in content_type else ""
        meta = parse_page_meta(html, str(response.url))
        if meta["title"] == meta["url"]:
            meta["title"] = url
        meta["url"] = url
        return meta

    def resolve_many(self, urls: Sequence[str]) -> List[Dict[str, Optional[str]]]:
        return [self.resolve(url) for url in urls]
