"""HTTP client for callers that reach the linkhub API over the network.

`ApiClient` wraps a single `httpx.Client`: every call goes through
`request(method, path, payload, options)`, GET/DELETE payloads become the
query string and POST/PUT payloads the JSON body. Failures are reported
to a notifier callback before the exception reaches the caller.

Build one `ClientConfig` at startup and hand it to the client explicitly:

    client = ApiClient(ClientConfig.from_settings())
    page = client.get('/api/management', {'page': 1, 'pageSize': 6})
"""

from dataclasses import dataclass, field
import json
import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx

from .config import settings

logger = logging.getLogger("linkhub.client")

QUERY_METHODS = ("GET", "DELETE")
BODY_METHODS = ("POST", "PUT")


class ClientError(Exception):
    """Base class for failures raised by `ApiClient`."""


class TransportError(ClientError):
    """Network failure or a non-2xx response."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RequestTimeoutError(ClientError, TimeoutError):
    """The request did not complete within the configured timeout."""


@dataclass
class ClientConfig:
    base_url: str = ""
    headers: Dict[str, str] = field(default_factory=lambda: {"Content-Type": "application/json"})
    timeout: float = 60.0

    @classmethod
    def from_settings(cls) -> "ClientConfig":
        return cls(base_url=settings.API_BASE_URL, timeout=settings.HTTP_TIMEOUT_SECONDS)


@dataclass
class RequestOptions:
    """Per-call overrides; `timeout=None` keeps the configured one."""
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None


def log_notification(message: str) -> None:
    logger.error("request_failed %s", message)


class ApiClient:
    def __init__(self, config: ClientConfig, notify: Optional[Callable[[str], None]] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self.config = config
        self.notify = notify or log_notification
        self._http = httpx.Client(
            base_url=config.base_url,
            headers=config.headers,
            timeout=config.timeout,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self) -> None:
        self._http.close()

    def request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None,
                options: Optional[RequestOptions] = None) -> Any:
        """Send one request and return the parsed JSON body.

        The timeout is a deadline for the whole call: httpx bounds each
        connect/read/write wait by it, and the body is streamed so the
        deadline is also checked between chunks. A call that runs past it
        never returns a partial body.

        Raises `RequestTimeoutError` when the call exceeds its timeout and
        `TransportError` for network failures, non-2xx statuses and
        bodies that are not JSON. The notifier is called first in every
        case.
        """
        method = method.upper()
        if method not in QUERY_METHODS + BODY_METHODS:
            raise ValueError(f"unsupported method: {method}")
        options = options or RequestOptions()
        timeout = options.timeout if options.timeout is not None else self.config.timeout
        kwargs: Dict[str, Any] = {"headers": options.headers, "timeout": timeout}
        if payload is not None:
            if method in QUERY_METHODS:
                kwargs["params"] = payload
            else:
                kwargs["json"] = payload
        deadline = time.monotonic() + timeout
        try:
            with self._http.stream(method, path, **kwargs) as response:
                chunks = []
                for chunk in response.iter_bytes():
                    if time.monotonic() > deadline:
                        break
                    chunks.append(chunk)
                status_code = response.status_code
        except httpx.TimeoutException as exc:
            raise self._fail(self._timed_out(timeout)) from exc
        except httpx.HTTPError as exc:
            raise self._fail(TransportError(f"Request failed: {exc}")) from exc
        if time.monotonic() > deadline:
            raise self._fail(self._timed_out(timeout))
        body = b"".join(chunks)
        if not 200 <= status_code < 300:
            raise self._fail(TransportError(_status_message(status_code, body), status_code))
        try:
            return json.loads(body)
        except ValueError as exc:
            raise self._fail(TransportError("Response body is not valid JSON", status_code)) from exc

    def get(self, path: str, payload: Optional[Dict[str, Any]] = None, options: Optional[RequestOptions] = None):
        return self.request("GET", path, payload, options)

    def post(self, path: str, payload: Optional[Dict[str, Any]] = None, options: Optional[RequestOptions] = None):
        return self.request("POST", path, payload, options)

    def put(self, path: str, payload: Optional[Dict[str, Any]] = None, options: Optional[RequestOptions] = None):
        return self.request("PUT", path, payload, options)

    def delete(self, path: str, payload: Optional[Dict[str, Any]] = None, options: Optional[RequestOptions] = None):
        return self.request("DELETE", path, payload, options)

    def _fail(self, error: ClientError) -> ClientError:
        self.notify(str(error))
        return error

    @staticmethod
    def _timed_out(timeout: float) -> "RequestTimeoutError":
        return RequestTimeoutError(f"Request timed out after {timeout:g}s")


def _status_message(status_code: int, body: bytes) -> str:
    """Describe a failed response, using the API's error message if present."""
    msg = f"HTTP error! status: {status_code}"
    try:
        data = json.loads(body)
    except ValueError:
        return msg
    if isinstance(data, dict) and data.get("message"):
        return f"{msg} ({data['message']})"
    return msg
