"""Resource and ResourceCollection — Domain objects synchronized over HTTP(S).

Verbs map onto HTTP methods::

    create -> POST     success(status)
    update -> PUT      success(status, reason)
    delete -> DELETE   success(status, reason)
    read   -> GET      success(status, reason) after replacing state

Write verbs send the serialized state as a JSON body. A transport failure
calls ``error(500, TransportError)``. A read only succeeds on a 2xx status
with a JSON body of the expected shape; otherwise ``error(status, reason)``
or ``error(status, DeserializationError)`` is called and the state is left
unchanged.

Whether HTTP or HTTPS is used is decided by the ``secure`` flag each time a
request is made.

Usage::

    user = Resource(url="https://api.example.com/users/1", secure=True)
    await user.fetch(success=on_ok, error=on_fail)
    user.set(name="Ada")
    await user.update()
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from typing import Any, NamedTuple

import httpx

from syncstore.config.settings import ResourceSettings
from syncstore.datasources.base.datasource import Callback, notify
from syncstore.models.base import Collection, Model, SyncMethod
from syncstore.models.exceptions import DeserializationError, TransportError

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}

_HTTP_METHODS = {
    SyncMethod.CREATE: "POST",
    SyncMethod.UPDATE: "PUT",
    SyncMethod.DELETE: "DELETE",
    SyncMethod.READ: "GET",
}

URL = str | Callable[[], str]


class _Outcome(NamedTuple):
    """Which callback a finished request calls, and with what."""

    ok: bool
    args: tuple[Any, ...]


class _RestSync:
    """Shared HTTP verb dispatch for REST-backed domain objects.

    Mixed in ahead of ``Model`` or ``Collection``.
    """

    url: URL = ""
    secure: bool = False

    def _setup_transport(
        self,
        url: URL | None,
        secure: bool | None,
        client: httpx.AsyncClient | None,
        settings: ResourceSettings | None,
    ) -> None:
        self._settings = settings or ResourceSettings()
        if url:
            self.url = url
        self.secure = self._settings.secure if secure is None else secure
        self._client = client

    def set_url(self, url: URL) -> None:
        """Set the URL, either a string or a zero-argument callable returning one."""
        self.url = url

    async def sync(
        self,
        method: str | SyncMethod,
        *,
        success: Callback | None = None,
        error: Callback | None = None,
    ) -> httpx.Response | None:
        """Synchronize with the remote resource.

        Exactly one of ``success`` or ``error`` is called once a request was
        attempted. Both run after the request handling, so an exception
        raised by either propagates to the caller.

        Args:
            method: One of ``create``, ``read``, ``update``, ``delete``.
            success: Called with the status code (and reason phrase, except for create).
            error: Called with a status code and the cause.

        Returns:
            The HTTP response, or None when no response was received.

        Raises:
            ValueError: If ``method`` is not a known verb.
        """
        verb = SyncMethod.parse(method)
        logger.debug("sync %s", verb.value)
        if not self.url:
            logger.warning("No url")
            return None

        try:
            url = self._request_url()
            async with self._http_client() as client:
                if verb is SyncMethod.READ:
                    resp, outcome = await self._read(client, url)
                else:
                    resp, outcome = await self._write(client, verb, url)
        except Exception as e:
            logger.error("Got exception: %s", e)
            resp, outcome = None, _Outcome(False, (500, e))

        await notify(success if outcome.ok else error, *outcome.args)
        return resp

    # ── Requests ────────────────────────────────────────────────────────

    async def _write(
        self,
        client: httpx.AsyncClient,
        verb: SyncMethod,
        url: httpx.URL,
    ) -> tuple[httpx.Response | None, _Outcome]:
        http_method = _HTTP_METHODS[verb]
        kwargs: dict[str, Any] = {}
        if verb is not SyncMethod.DELETE:
            kwargs = {"json": self.to_json(), "headers": JSON_HEADERS}

        try:
            resp = await client.request(http_method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Problem with request: %s", e)
            return None, _Outcome(False, (500, TransportError(f"{http_method} {url} failed: {e}")))

        logger.debug("Status: %d", resp.status_code)
        logger.debug("Headers: %s", dict(resp.headers))
        if verb is SyncMethod.CREATE:
            return resp, _Outcome(True, (resp.status_code,))
        return resp, _Outcome(True, (resp.status_code, resp.reason_phrase))

    async def _read(
        self,
        client: httpx.AsyncClient,
        url: httpx.URL,
    ) -> tuple[httpx.Response | None, _Outcome]:
        logger.debug("reading from %s", url)
        try:
            resp = await client.get(url)
        except httpx.HTTPError as e:
            logger.error("Got error: %s", e)
            return None, _Outcome(False, (500, TransportError(f"GET {url} failed: {e}")))

        if not 200 <= resp.status_code < 300:
            logger.error("Unsuccessful fetch - %d %s", resp.status_code, resp.reason_phrase)
            return resp, _Outcome(False, (resp.status_code, resp.reason_phrase))

        logger.debug("Got data: %s", resp.text)
        try:
            parsed = self._parse(resp.json())
        except (ValueError, DeserializationError) as e:
            logger.error("Not JSON response, can't add to resource. Exception: %s", e)
            cause = e if isinstance(e, DeserializationError) else DeserializationError(str(e))
            return resp, _Outcome(False, (resp.status_code, cause))

        self.reset(parsed)
        return resp, _Outcome(True, (resp.status_code, resp.reason_phrase))

    # ── Helpers ─────────────────────────────────────────────────────────

    def _parse(self, body: Any) -> Any:
        if not isinstance(body, Mapping):
            raise DeserializationError(f"Expected a JSON object, got {type(body).__name__}")
        return body

    def _request_url(self) -> httpx.URL:
        """Resolve the URL and apply the scheme selected by ``secure``."""
        raw = self.url() if callable(self.url) else self.url
        scheme = "https" if self.secure else "http"
        url = httpx.URL(raw)
        if not url.host:
            path = raw if raw.startswith("/") else f"/{raw}"
            return httpx.URL(f"{scheme}://{self._settings.host}{path}")
        return url.copy_with(scheme=scheme)

    @contextlib.asynccontextmanager
    async def _http_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=httpx.Timeout(self._settings.timeout)) as client:
            yield client


class Resource(_RestSync, Model):
    """A single record synchronized with a REST endpoint.

    Args:
        attributes: Initial attribute values.
        url: Endpoint URL or a zero-argument callable returning it. Bare
            paths are resolved against the configured host.
        secure: Use HTTPS. Defaults to the configured value.
        client: Optional shared ``httpx.AsyncClient``; a short-lived client
            is created per call otherwise.
        settings: Resource settings (host, default scheme, timeout).
    """

    def __init__(
        self,
        attributes: Mapping[str, Any] | None = None,
        *,
        url: URL | None = None,
        secure: bool | None = None,
        client: httpx.AsyncClient | None = None,
        settings: ResourceSettings | None = None,
    ) -> None:
        super().__init__(attributes)
        self._setup_transport(url, secure, client, settings)


class ResourceCollection(_RestSync, Collection):
    """A list of records synchronized with a REST endpoint.

    Reads expect a JSON array of objects (a single object is accepted as a
    one-record collection). Writes send the whole list as the body.

    Args:
        models: Initial records.
        name: Collection name, used as an identifier.
        url: Endpoint URL or a zero-argument callable returning it.
        secure: Use HTTPS. Defaults to the configured value.
        client: Optional shared ``httpx.AsyncClient``.
        settings: Resource settings.
    """

    name: str = "collection"

    def __init__(
        self,
        models: Iterable[Mapping[str, Any]] | None = None,
        *,
        name: str | None = None,
        url: URL | None = None,
        secure: bool | None = None,
        client: httpx.AsyncClient | None = None,
        settings: ResourceSettings | None = None,
    ) -> None:
        super().__init__(models)
        if name:
            self.name = name
        self._setup_transport(url, secure, client, settings)

    def _parse(self, body: Any) -> Any:
        if isinstance(body, Mapping):
            return body
        if isinstance(body, list) and all(isinstance(item, Mapping) for item in body):
            return body
        raise DeserializationError(f"Expected a JSON array of objects, got {type(body).__name__}")
