"""Cache offline del shell de la app (stale-while-revalidate).

El controlador instala un conjunto fijo de recursos de forma atomica, limpia
los buckets de versiones anteriores al activarse y responde los GET desde la
cache mientras refresca la entrada en segundo plano.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit

import requests
from requests.exceptions import RequestException

from glucose_log.storage import CacheStore, ShellResponse

logger = logging.getLogger(__name__)

CACHE_VERSION = "sgt-cache-v1"
APP_SHELL: tuple[str, ...] = (
    "/",
    "/manifest.webmanifest",
    "/favicon.ico",
    "/icons/icon-192.png",
    "/icons/icon-512.png",
)
BROWSER_INTERNAL_SCHEMES = frozenset(
    {"chrome-extension", "moz-extension", "safari-web-extension"}
)

PARSED = "parsed"
INSTALLED = "installed"
ACTIVATED = "activated"


class CacheInstallError(RuntimeError):
    """At least one shell asset could not be fetched; nothing was cached."""


class OfflineFetchError(RuntimeError):
    """Network failed and the cache had no copy of the request."""


@dataclass(frozen=True)
class ShellRequest:
    """An intercepted request; the URL is the cache key."""

    url: str
    method: str = "GET"


Fetcher = Callable[[ShellRequest], ShellResponse]


class RequestsFetcher:
    """Network leg backed by ``requests`` with an explicit timeout."""

    def __init__(
        self, timeout: float = 10.0, session: requests.Session | None = None
    ) -> None:
        self._timeout = timeout
        self._session = session or requests.Session()

    def __call__(self, request: ShellRequest) -> ShellResponse:
        response = self._session.request(
            request.method, request.url, timeout=self._timeout
        )
        return ShellResponse(
            url=response.url or request.url,
            status=response.status_code,
            body=response.content,
            headers=dict(response.headers),
        )


class OfflineCacheController:
    """Install/activate/fetch reactions over one versioned cache bucket."""

    def __init__(
        self,
        store: CacheStore,
        base_url: str,
        version: str = CACHE_VERSION,
        shell_assets: Sequence[str] = APP_SHELL,
        fetch: Fetcher | None = None,
        timeout: float = 10.0,
        max_workers: int = 4,
    ) -> None:
        self._store = store
        self._base_url = base_url.rstrip("/") + "/"
        self.version = version
        self._assets = tuple(shell_assets)
        self._fetch = fetch or RequestsFetcher(timeout=timeout)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="shell-cache"
        )
        self._pending: set[Future[ShellResponse]] = set()
        self._lock = threading.Lock()
        self.state = PARSED
        self.controls_clients = False

    def asset_urls(self) -> list[str]:
        return [urljoin(self._base_url, asset.lstrip("/")) for asset in self._assets]

    def install(self) -> None:
        """Fetch every shell asset and cache them all, or none.

        Raises:
            CacheInstallError: If any asset fails to fetch or is not 2xx.
        """
        fetched: list[tuple[str, ShellResponse]] = []
        for url in self.asset_urls():
            try:
                response = self._fetch(ShellRequest(url))
            except (RequestException, OSError) as exc:
                logger.error("Shell asset %s could not be fetched: %s", url, exc)
                raise CacheInstallError(f"{url}: {exc}") from exc
            if not response.ok:
                logger.error("Shell asset %s returned %s", url, response.status)
                raise CacheInstallError(f"{url}: HTTP {response.status}")
            fetched.append((url, response))

        self._store.put_many(self.version, fetched)
        self.state = INSTALLED
        logger.info("Cached %d shell assets in %s", len(fetched), self.version)

    def is_installed(self) -> bool:
        """True when the current bucket already holds every shell asset."""
        if self.version not in self._store.bucket_names():
            return False
        cached = set(self._store.keys(self.version))
        return all(url in cached for url in self.asset_urls())

    def activate(self) -> list[str]:
        """Delete stale buckets and take control of open clients.

        Returns:
            Names of the deleted buckets.

        Raises:
            RuntimeError: If ``install()`` has not succeeded.
        """
        if self.state == PARSED and not self.is_installed():
            raise RuntimeError("Cannot activate before a successful install")
        deleted = [
            name
            for name in self._store.bucket_names()
            if name != self.version and self._store.delete_bucket(name)
        ]
        if deleted:
            logger.info("Deleted stale caches: %s", ", ".join(deleted))
        self.state = ACTIVATED
        self.controls_clients = True
        return deleted

    def start(self) -> list[str]:
        """Install, then activate without waiting for a navigation."""
        self.install()
        return self.activate()

    def handle_fetch(self, request: ShellRequest) -> ShellResponse | None:
        """Answer a request from the cache, refreshing it in the background.

        Args:
            request: Intercepted request.

        Returns:
            The cached response when present, otherwise the network response.
            None for non-GET requests, which are not intercepted.

        Raises:
            OfflineFetchError: If there is no cached copy and the network fails.
        """
        if request.method.upper() != "GET":
            return None

        cached = self._store.match(self.version, request.url)
        network = self._submit(request)
        if cached is not None:
            return cached

        try:
            return network.result()
        except (RequestException, OSError) as exc:
            raise OfflineFetchError(f"{request.url}: {exc}") from exc

    def drain(self, timeout: float | None = None) -> None:
        """Wait for pending background refreshes."""
        with self._lock:
            pending = list(self._pending)
        wait(pending, timeout=timeout)

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def _submit(self, request: ShellRequest) -> Future[ShellResponse]:
        future = self._executor.submit(self._revalidate, request)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future[ShellResponse]) -> None:
        with self._lock:
            self._pending.discard(future)

    def _revalidate(self, request: ShellRequest) -> ShellResponse:
        try:
            response = self._fetch(request)
        except (RequestException, OSError) as exc:
            logger.warning("Network fetch failed for %s: %s", request.url, exc)
            raise
        if _cacheable(request, response):
            self._store.put(self.version, request.url, response)
        return response


def _cacheable(request: ShellRequest, response: ShellResponse) -> bool:
    if response.status != 200 or response.opaque:
        return False
    return urlsplit(request.url).scheme not in BROWSER_INTERNAL_SCHEMES
