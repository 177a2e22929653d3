"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Draft schemas validate before any store
call is made; output schemas read straight from the SQLModel rows.
"""

from datetime import datetime
from pydantic import (
    AnyHttpUrl, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator, model_validator,
)
from typing import Any, Generic, List, Optional, TypeVar

T = TypeVar('T')

_HTTP_URL = TypeAdapter(AnyHttpUrl)


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value.strip() if isinstance(value, str) else value


def check_http_url(value: Optional[str]) -> Optional[str]:
    """Validate `value` as an http(s) url and return it unchanged."""
    if value is None:
        return None
    try:
        _HTTP_URL.validate_python(value)
    except ValidationError:
        raise ValueError(f'invalid url: {value}')
    return value


class RegisterIn(BaseModel):
    """Payload for user registration/login endpoints."""
    username: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str


class JsonBody(BaseModel, Generic[T]):
    """Envelope for write results: `status` 0 means success."""
    status: int = 0
    message: str = 'ok'
    data: Optional[T] = None


class UrlDraft(BaseModel):
    """A url row as submitted from the topic form.

    `id` is the persisted identity when the row already exists; `key` is
    the form's own row correlation key and is never stored.
    """
    id: Optional[int] = None
    key: Optional[str] = None
    url: Optional[str] = None
    title: str = Field(min_length=1)
    icon: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator('url', 'icon', 'description', mode='before')
    @classmethod
    def _optional_text(cls, v):
        return _blank_to_none(v)

    @field_validator('url', 'icon')
    @classmethod
    def _http_url(cls, v):
        return check_http_url(v)

    @field_validator('title', mode='before')
    @classmethod
    def _strip_title(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator('tags')
    @classmethod
    def _clean_tags(cls, v):
        return list(dict.fromkeys(t.strip() for t in v if t and t.strip()))


class TopicDraft(BaseModel):
    """Desired state of a topic: its fields plus the full ordered url list."""
    id: Optional[int] = None
    name: str = Field(min_length=1)
    description: Optional[str] = None
    urls: List[UrlDraft] = Field(default_factory=list)

    @field_validator('name', mode='before')
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator('description', mode='before')
    @classmethod
    def _optional_text(cls, v):
        return _blank_to_none(v)

    @model_validator(mode='after')
    def _unique_rows(self):
        ids = [u.id for u in self.urls if u.id is not None]
        if len(ids) != len(set(ids)):
            raise ValueError('duplicate url id in submission')
        keys = [u.key for u in self.urls if u.key is not None]
        if len(keys) != len(set(keys)):
            raise ValueError('duplicate url key in submission')
        return self


class BatchTopicIn(BaseModel):
    """Batch form: a topic name and one url per line."""
    name: str = Field(min_length=1)
    urls: str = Field(min_length=1)

    @field_validator('name', 'urls', mode='before')
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class TagOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str


class NameIn(BaseModel):
    """Payload for creating a category or a tag."""
    name: str = Field(min_length=1)

    @field_validator('name', mode='before')
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str


class UrlOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    url: Optional[str] = None
    title: str
    icon: Optional[str] = None
    description: Optional[str] = None
    tags: List[TagOut] = Field(default_factory=list)


class TopicOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    urls: List[UrlOut] = Field(default_factory=list)


class TopicSummaryOut(TopicOut):
    """List item for the topic overview, with the number of urls."""
    url_count: int = 0


class SoftwareIn(BaseModel):
    """Software draft submitted from the management page."""
    name: str = Field(min_length=1)
    website: str
    description: Optional[str] = None
    category_id: int = Field(ge=1)
    tag_ids: List[int] = Field(default_factory=list)

    @field_validator('name', 'website', mode='before')
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator('website')
    @classmethod
    def _http_url(cls, v):
        return check_http_url(v)

    @field_validator('description', mode='before')
    @classmethod
    def _optional_text(cls, v):
        return _blank_to_none(v)


class SoftwareOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    website: str
    description: Optional[str] = None
    category: CategoryOut
    tags: List[TagOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class SoftwarePage(BaseModel):
    """One page of the software listing plus the total match count."""
    data: List[SoftwareOut]
    total: int


class PageMetaOut(BaseModel):
    """Metadata read from a bookmarked page."""
    url: str
    title: str
    icon: Optional[str] = None
    description: Optional[str] = None


class ErrorOut(BaseModel):
    """Error body rendered for every failed request."""
    status: int
    message: str
    detail: Optional[Any] = None
