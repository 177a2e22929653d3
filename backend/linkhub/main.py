"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the linkhub backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses. Every failure is rendered as
`{status, message}` with the matching HTTP status code.

Endpoints implemented:
- POST /auth/register
- POST /auth/login
- GET /api/management, POST /api/management, PUT /api/management, DELETE /api/management
- GET /api/categories, POST /api/categories, DELETE /api/categories/{id}
- GET /api/tags, POST /api/tags
- GET /api/topics, GET /api/topics/{id}
- POST /api/topics, POST /api/topics/batch, DELETE /api/topics/{id}
- GET /api/resolveUrl
- GET /health
"""

from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlmodel import Session
from typing import List, Optional
import httpx
import json
import logging
import time
import uuid
from .database import create_db_and_tables, get_session
from . import services, repositories, models
from .auth import get_current_user
from .config import settings
from .errors import ConflictError, NotFoundError, ResolveError
from .schemas import (
    BatchTopicIn, CategoryOut, JsonBody, NameIn, RegisterIn, SoftwareIn, SoftwareOut, SoftwarePage,
    PageMetaOut, TagOut, TokenOut, TopicDraft, TopicOut, TopicSummaryOut,
)

# largest id an sqlite INTEGER column can bind
MAX_ID = 2 ** 63 - 1

app = FastAPI(title="linkhub API")
logger = logging.getLogger("linkhub.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()

page_client = httpx.Client(
    timeout=settings.RESOLVE_TIMEOUT_SECONDS,
    follow_redirects=True,
    headers={"User-Agent": "linkhub/0.1"},
)


def _log_request(log, event: str, request: Request, started: float, **fields) -> None:
    record = {
        "request_id": request.state.request_id,
        "path": request.url.path,
        "method": request.method,
        **fields,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
    }
    log("%s %s", event, json.dumps(record, ensure_ascii=True))


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        _log_request(logger.exception, "request_failed", request, started)
        raise
    response.headers["X-Request-ID"] = req_id
    if request.url.path.startswith("/api"):
        _log_request(logger.info, "request_done", request, started, status_code=response.status_code)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": exc.status_code, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(
        status_code=422,
        content={"status": 422, "message": "; ".join(parts), "detail": jsonable_encoder(errors)},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled_error path=%s error=%r", request.url.path, exc)
    return JSONResponse(status_code=500, content={"status": 500, "message": "internal server error"})


def _http_error(exc: Exception) -> HTTPException:
    """Translate a service exception into the matching HTTPException."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ResolveError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def get_url_resolver() -> services.UrlResolver:
    """Resolver dependency sharing one http client for page fetches."""
    return services.UrlResolver(page_client)


def _parse_id_list(raw: Optional[str]) -> List[int]:
    if not raw:
        return []
    try:
        ids = [int(x) for x in raw.split(',') if x.strip()]
    except ValueError:
        raise HTTPException(status_code=400, detail='tags must be a comma separated list of ids')
    if any(i < 0 or i > MAX_ID for i in ids):
        raise HTTPException(status_code=400, detail='tag ids are out of range')
    return ids


@app.post('/auth/register')
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a new user (idempotent).

    Returns the existing user if the username is already taken, which
    keeps the operation idempotent for automation/tests.
    """
    existing = repositories.UserRepository(db).get_by_username(payload.username)
    if existing:
        return {'id': existing.id, 'username': existing.username}
    try:
        user = services.AuthService(db).register(payload.username, payload.password)
    except ValueError as e:
        raise _http_error(e)
    return {'id': user.id, 'username': user.username}


@app.post('/auth/login', response_model=TokenOut)
def login(payload: RegisterIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token."""
    token = services.AuthService(db).authenticate(payload.username, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return {'access_token': token}


@app.get('/api/management', response_model=SoftwarePage)
def list_software(
    page: int = Query(1, ge=1),
    pageSize: int = Query(10, ge=1),
    category: int = Query(0, ge=0, le=MAX_ID),
    tags: Optional[str] = None,
    db: Session = Depends(get_session),
):
    """Paginated software listing filtered by category and/or tag ids.

    `category=0` and an empty `tags` list mean no filter. A page past the
    end returns an empty `data` list with the real `total`.
    """
    try:
        return services.CatalogService(db).list_software(page, pageSize, category, _parse_id_list(tags))
    except ValueError as e:
        raise _http_error(e)


@app.post('/api/management', response_model=SoftwareOut)
def create_software(payload: SoftwareIn, db: Session = Depends(get_session)):
    try:
        software = services.CatalogService(db).create_software(payload)
    except (ValueError, NotFoundError) as e:
        raise _http_error(e)
    return SoftwareOut.model_validate(software)


@app.put('/api/management', response_model=SoftwareOut)
def update_software(payload: SoftwareIn, id: int = Query(..., ge=1), db: Session = Depends(get_session)):
    try:
        software = services.CatalogService(db).update_software(id, payload)
    except (ValueError, NotFoundError) as e:
        raise _http_error(e)
    return SoftwareOut.model_validate(software)


@app.delete('/api/management', response_model=JsonBody[int])
def delete_software(id: int = Query(..., ge=1), db: Session = Depends(get_session)):
    try:
        services.CatalogService(db).delete_software(id)
    except NotFoundError as e:
        raise _http_error(e)
    return JsonBody[int](message='deleted', data=id)


@app.get('/api/categories', response_model=List[CategoryOut])
def list_categories(db: Session = Depends(get_session)):
    return services.CatalogService(db).list_categories()


@app.post('/api/categories', response_model=CategoryOut)
def create_category(payload: NameIn, db: Session = Depends(get_session)):
    try:
        return services.CatalogService(db).create_category(payload.name)
    except ConflictError as e:
        raise _http_error(e)


@app.delete('/api/categories/{category_id}', response_model=JsonBody[int])
def delete_category(category_id: int, db: Session = Depends(get_session)):
    """Delete a category; refused with 409 while software still uses it."""
    try:
        services.CatalogService(db).delete_category(category_id)
    except (NotFoundError, ConflictError) as e:
        raise _http_error(e)
    return JsonBody[int](message='deleted', data=category_id)


@app.get('/api/tags', response_model=List[TagOut])
def list_tags(db: Session = Depends(get_session)):
    return services.CatalogService(db).list_tags()


@app.post('/api/tags', response_model=TagOut)
def create_tag(payload: NameIn, db: Session = Depends(get_session)):
    try:
        return services.CatalogService(db).create_tag(payload.name)
    except ConflictError as e:
        raise _http_error(e)


@app.get('/api/topics', response_model=List[TopicSummaryOut])
def list_topics(db: Session = Depends(get_session)):
    """List all topics newest first, each with its urls and url count."""
    return services.TopicService(db).list_topics()


@app.get('/api/topics/{topic_id}', response_model=TopicOut)
def get_topic(topic_id: int, db: Session = Depends(get_session)):
    try:
        topic = services.TopicService(db).get_topic(topic_id)
    except NotFoundError as e:
        raise _http_error(e)
    return TopicOut.model_validate(topic)


@app.post('/api/topics', response_model=JsonBody[int])
def upsert_topic(payload: TopicDraft, db: Session = Depends(get_session),
                 user: models.User = Depends(get_current_user)):
    """Create a topic or reconcile an existing one with the submitted urls.

    The body carries the full desired url list; rows with an `id` are
    updated, rows without one are created and stored rows left out are
    deleted, all in one transaction.
    """
    try:
        topic_id = services.TopicService(db).upsert(payload)
    except (ValueError, NotFoundError) as e:
        raise _http_error(e)
    return JsonBody[int](message='saved', data=topic_id)


@app.post('/api/topics/batch', response_model=JsonBody[int])
def batch_create_topic(payload: BatchTopicIn, db: Session = Depends(get_session),
                       user: models.User = Depends(get_current_user),
                       resolver: services.UrlResolver = Depends(get_url_resolver)):
    """Create a topic from pasted text with one url (or `title | url`) per line.

    Lines without a title get the fetched page title, icon and description.
    """
    try:
        topic_id = services.TopicService(db, resolver=resolver).batch_create(payload.name, payload.urls)
    except ValueError as e:
        raise _http_error(e)
    return JsonBody[int](message='saved', data=topic_id)


@app.get('/api/resolveUrl', response_model=List[PageMetaOut])
def resolve_url(url: List[str] = Query(...),
                resolver: services.UrlResolver = Depends(get_url_resolver)):
    """Fetch each `url` and return its title, icon and description.

    Repeat the parameter to resolve several pages at once; the results
    keep the request order. A page that cannot be fetched fails the call
    with 502.
    """
    try:
        return resolver.resolve_many(url)
    except (ValueError, ResolveError) as e:
        raise _http_error(e)


@app.delete('/api/topics/{topic_id}', response_model=JsonBody[int])
def delete_topic(topic_id: int, db: Session = Depends(get_session),
                 user: models.User = Depends(get_current_user)):
    try:
        services.TopicService(db).delete_topic(topic_id)
    except NotFoundError as e:
        raise _http_error(e)
    return JsonBody[int](message='deleted', data=topic_id)


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
