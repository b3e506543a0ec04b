"""Registry store — one client per index URL, sharing a fetcher and notifier."""

from __future__ import annotations

import logging
from typing import Callable

from wally_lint.config import Settings
from wally_lint.errors import UnsupportedRegistryError
from wally_lint.registry.client import Fetcher, RegistryClient
from wally_lint.registry.github import GitHubFetcher, parse_registry_url
from wally_lint.registry.notifier import FailureNotifier

logger = logging.getLogger(__name__)


class RegistryStore:
    """Owns every :class:`RegistryClient` the application talks to.

    Clients are created on first use and keyed by their normalized URL, so
    ``https://github.com/UpliftGames/wally-index/`` and
    ``https://github.com/upliftgames/wally-index`` share one cache. Fallback
    registries are resolved through the same store.
    """

    def __init__(
        self,
        fetcher: Fetcher | None = None,
        notifier: FailureNotifier | None = None,
        token: str | None = None,
    ):
        self.fetcher = fetcher or GitHubFetcher(token=token)
        self.notifier = notifier or FailureNotifier()
        self._token = token or None
        self._clients: dict[str, RegistryClient] = {}

    @classmethod
    def from_settings(
        cls, settings: Settings, sink: Callable[[str], None] | None = None
    ) -> RegistryStore:
        fetcher = GitHubFetcher(
            token=settings.github_token,
            api_url=settings.github_api_url,
            timeout=settings.http_timeout,
        )
        notifier = FailureNotifier(sink=sink, cooldown=settings.notify_cooldown)
        return cls(fetcher=fetcher, notifier=notifier, token=settings.github_token)

    def get(self, url: str) -> RegistryClient | None:
        """Return the client for ``url``, or None when it is not a supported index."""
        try:
            address = parse_registry_url(url)
        except UnsupportedRegistryError as e:
            logger.debug("%s", e)
            return None

        client = self._clients.get(address.url)
        if client is None:
            client = RegistryClient(
                address,
                self.fetcher,
                notifier=self.notifier,
                resolve_fallback=self.get,
                token=self._token,
                share_token=self.set_auth_token,
            )
            self._clients[address.url] = client
        return client

    def require(self, url: str) -> RegistryClient:
        """Like :meth:`get` but raises :class:`UnsupportedRegistryError`."""
        client = self.get(url)
        if client is None:
            raise UnsupportedRegistryError(f"Unsupported registry '{url}'")
        return client

    @property
    def clients(self) -> list[RegistryClient]:
        return list(self._clients.values())

    async def set_auth_token(self, token: str | None) -> bool:
        """Switch credentials for every client. Returns True when the token changed."""
        token = token or None
        if token == self._token:
            return False
        self._token = token
        self.fetcher.set_token(token)
        for client in self.clients:
            await client.token_changed(token)
        return True

    async def invalidate_all(self) -> None:
        for client in self.clients:
            await client.invalidate_cache()

    async def aclose(self) -> None:
        await self.fetcher.aclose()

    async def __aenter__(self) -> RegistryStore:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
