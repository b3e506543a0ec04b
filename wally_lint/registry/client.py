"""Registry client — cached, fallback-aware lookups against one package index.

An index is laid out as a Git tree::

    <root>/
        config.json
        <author>/
            owners.json
            <package>       # newline-delimited JSON, one line per version

Reads go root tree -> author subtree -> package blob, and every level is
cached on the client until :meth:`RegistryClient.invalidate_cache` runs.

Private ``_get_*`` methods raise :class:`RegistryFetchError`. Public methods
never raise for fetch problems: they report the failure through the
notifier and return ``None`` or :attr:`Validity.INDETERMINATE`.
"""

from __future__ import annotations

import json
import logging
from typing import Awaitable, Callable, Protocol, TypeVar

from wally_lint.errors import RegistryFetchError
from wally_lint.registry.github import FetchResult, RegistryAddress
from wally_lint.registry.models import (
    OWNERS_FILE,
    PackageInfo,
    PackageVersionRecord,
    RegistryAuthor,
    RegistryConfig,
    RegistryPackage,
    RegistryTree,
    TreeEntry,
    Validity,
    config_from_dict,
    parse_version_history,
)
from wally_lint.registry.notifier import FailureNotifier
from wally_lint.utils.semver import is_compatible

logger = logging.getLogger(__name__)

ROOT_REF = "main"

T = TypeVar("T")


class Fetcher(Protocol):
    async def get_tree(self, owner: str, repo: str, tree_id: str) -> FetchResult: ...

    async def get_blob(self, owner: str, repo: str, blob_id: str) -> FetchResult: ...

    def set_token(self, token: str | None) -> None: ...

    async def aclose(self) -> None: ...


class RegistryClient:
    """Lookups against one index, falling back to the indexes its config lists."""

    def __init__(
        self,
        address: RegistryAddress,
        fetcher: Fetcher,
        notifier: FailureNotifier | None = None,
        resolve_fallback: Callable[[str], RegistryClient | None] | None = None,
        token: str | None = None,
        share_token: Callable[[str | None], Awaitable[bool]] | None = None,
    ):
        self.address = address
        self.fetcher = fetcher
        self.notifier = notifier or FailureNotifier()
        self._resolve_fallback = resolve_fallback
        self._token = token or None
        self._share_token = share_token
        self._last_failure_status: int | None = None
        self._clear()

    @property
    def url(self) -> str:
        return self.address.url

    def __repr__(self) -> str:
        return f"RegistryClient({self.url!r})"

    def _clear(self) -> None:
        self._tree: RegistryTree | None = None
        self._config: RegistryConfig | None = None
        self._authors: dict[str, RegistryAuthor] = {}
        self._packages: dict[str, dict[str, RegistryPackage]] = {}

    # ── Fetch layer ─────────────────────────────────────────────────────

    async def _fetch_tree(self, tree_id: str) -> list[dict]:
        result = await self.fetcher.get_tree(self.address.owner, self.address.repo, tree_id)
        if not result.ok:
            raise RegistryFetchError(
                f"Could not read tree '{tree_id}' of {self.url}: {result.message or result.status}",
                result.status,
            )
        return [e for e in result.payload if isinstance(e, dict)]

    async def _fetch_blob(self, blob_id: str) -> str:
        result = await self.fetcher.get_blob(self.address.owner, self.address.repo, blob_id)
        if not result.ok:
            raise RegistryFetchError(
                f"Could not read blob '{blob_id}' of {self.url}: {result.message or result.status}",
                result.status,
            )
        return result.payload

    async def _get_tree(self) -> RegistryTree:
        if self._tree is not None:
            return self._tree

        logger.info("Fetching package index %s", self.address)
        try:
            entries = await self._fetch_tree(ROOT_REF)
        except RegistryFetchError as e:
            if e.not_found:
                raise RegistryFetchError(f"Registry index not found: {self.url}", e.status) from e
            raise

        tree = RegistryTree()
        for entry in entries:
            path, sha = entry.get("path", ""), entry.get("sha", "")
            if entry.get("type") == "tree":
                tree.authors.append(TreeEntry(path.lower(), sha))
            elif path.endswith(".json"):
                tree.config = TreeEntry(path, sha)
        self._tree = tree
        return tree

    async def _get_author(self, author_name: str) -> RegistryAuthor | None:
        lowered = author_name.lower()
        cached = self._authors.get(lowered)
        if cached is not None:
            return cached

        tree = await self._get_tree()
        content_id = tree.author_id(lowered)
        if content_id is None:
            return None

        entries = await self._fetch_tree(content_id)
        author = RegistryAuthor(
            name=lowered,
            content_id=content_id,
            packages=[
                TreeEntry(e.get("path", "").lower(), e.get("sha", ""))
                for e in entries
                if e.get("type") != "tree" and e.get("path") != OWNERS_FILE
            ],
        )
        self._authors[lowered] = author
        return author

    async def _get_package(self, author_name: str, package_name: str) -> RegistryPackage | None:
        lowered_author, lowered_name = author_name.lower(), package_name.lower()
        cached = self._packages.get(lowered_author, {}).get(lowered_name)
        if cached is not None:
            return cached

        author = await self._get_author(lowered_author)
        if author is None:
            return None
        content_id = author.package_id(lowered_name)
        if content_id is None:
            return None

        text = await self._fetch_blob(content_id)
        package = RegistryPackage(
            author=lowered_author,
            name=lowered_name,
            versions=parse_version_history(text),
        )
        self._packages.setdefault(lowered_author, {})[lowered_name] = package
        return package

    async def _get_config(self) -> RegistryConfig | None:
        if self._config is not None:
            return self._config

        tree = await self._get_tree()
        if tree.config is None:
            logger.debug("Index %s has no config blob", self.address)
            return None

        text = await self._fetch_blob(tree.config.content_id)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise RegistryFetchError(f"Malformed config.json in {self.url}: {e}") from e
        if not isinstance(data, dict):
            raise RegistryFetchError(f"Malformed config.json in {self.url}: expected an object")
        self._config = config_from_dict(data)
        return self._config

    # ── Failure boundary ────────────────────────────────────────────────

    async def _attempt(self, operation: Awaitable[T]) -> tuple[T | None, bool]:
        """Run a fetch-layer call. Returns ``(value, failed)``."""
        try:
            return await operation, False
        except RegistryFetchError as e:
            self._last_failure_status = e.status
            self._report(e)
            return None, True
        except Exception as e:
            self._last_failure_status = None
            logger.exception("Unexpected error while reading %s", self.url)
            self.notifier.notify(f"Unexpected error while reading {self.url}: {e}")
            return None, True

    def _report(self, error: RegistryFetchError) -> None:
        if error.rate_limited:
            self.notifier.notify(
                f"GitHub rate limit reached while reading {self.url}. "
                "Configure a GitHub token to raise the limit."
            )
        else:
            self.notifier.notify(str(error))

    async def _chain(self) -> list[RegistryClient]:
        """This client followed by its fallback registries, in declared order."""
        chain: list[RegistryClient] = [self]
        if self._resolve_fallback is None:
            return chain

        config, _ = await self._attempt(self._get_config())
        if config is None:
            return chain

        for url in config.fallback_registries:
            client = self._resolve_fallback(url)
            if client is None:
                logger.info("Skipping unsupported fallback registry %s", url)
                continue
            if any(c.url == client.url for c in chain):
                continue
            chain.append(client)
        return chain

    async def _find_package(self, author: str, name: str) -> tuple[RegistryPackage | None, bool]:
        failed = False
        for client in await self._chain():
            package, client_failed = await client._attempt(client._get_package(author, name))
            failed = failed or client_failed
            if package is not None:
                return package, failed
        return None, failed

    # ── Lookups ─────────────────────────────────────────────────────────

    async def get_author_names(self) -> list[str] | None:
        """Every author across this index and its fallbacks.

        Returns None only when no index in the chain could be read.
        """
        names: list[str] = []
        any_read = False
        for client in await self._chain():
            tree, _ = await client._attempt(client._get_tree())
            if tree is None:
                continue
            any_read = True
            for name in tree.author_names:
                if name not in names:
                    names.append(name)
        return names if any_read else None

    async def get_package_names(self, author: str) -> list[str] | None:
        for client in await self._chain():
            record, _ = await client._attempt(client._get_author(author))
            if record is not None:
                return record.package_names
        return None

    async def get_package_versions(self, author: str, name: str) -> list[str] | None:
        """Published versions, newest first."""
        package, _ = await self._find_package(author, name)
        if package is None:
            return None
        return package.version_strings

    async def get_full_package_info(
        self, author: str, name: str, version_text: str
    ) -> PackageVersionRecord | None:
        """The newest published record that satisfies ``version_text``."""
        package, _ = await self._find_package(author, name)
        if package is None:
            return None
        return package.find_compatible(version_text)

    async def get_latest_version(self, author: str, name: str) -> str | None:
        versions = await self.get_package_versions(author, name)
        return versions[0] if versions else None

    async def get_latest_compatible_version(
        self, author: str, name: str, version_text: str
    ) -> str | None:
        record = await self.get_full_package_info(author, name, version_text)
        return record.version if record else None

    async def describe_package(self, author: str, name: str, version_text: str) -> PackageInfo | None:
        """Everything a hover view shows for ``author/name@version_text``."""
        package, _ = await self._find_package(author, name)
        if package is None:
            return None
        record = package.find_compatible(version_text)
        if record is None:
            return None
        versions = package.version_strings
        return PackageInfo(
            record=record,
            latest_version=versions[0] if versions else "",
            latest_compatible_version=record.version,
            registry_url=self.url,
        )

    async def get_registry_config(self) -> RegistryConfig | None:
        config, _ = await self._attempt(self._get_config())
        return config

    # ── Validity checks ─────────────────────────────────────────────────

    async def is_valid_author(self, author: str) -> Validity:
        lowered = author.lower()
        failed = False
        for client in await self._chain():
            tree, client_failed = await client._attempt(client._get_tree())
            if tree is None:
                failed = failed or client_failed
                continue
            if tree.author_id(lowered) is not None:
                return Validity.VALID
        return Validity.INDETERMINATE if failed else Validity.INVALID

    async def is_valid_package(self, author: str, name: str) -> Validity:
        lowered = name.lower()
        failed = False
        for client in await self._chain():
            record, client_failed = await client._attempt(client._get_author(author))
            failed = failed or client_failed
            if record is not None and lowered in record.package_names:
                return Validity.VALID
        return Validity.INDETERMINATE if failed else Validity.INVALID

    async def is_valid_version(self, author: str, name: str, version_text: str) -> Validity:
        package, failed = await self._find_package(author, name)
        if package is None:
            return Validity.INDETERMINATE if failed else Validity.INVALID
        if is_compatible(version_text, package.version_strings):
            return Validity.VALID
        return Validity.INVALID

    async def check_reachable(self) -> Validity:
        """Whether this index itself exists (fallbacks are not consulted)."""
        tree, _ = await self._attempt(self._get_tree())
        if tree is not None:
            return Validity.VALID
        if self._last_failure_status == 404:
            return Validity.INVALID
        return Validity.INDETERMINATE

    # ── Cache control ───────────────────────────────────────────────────

    async def invalidate_cache(self) -> None:
        """Drop every cached level and eagerly refetch the config."""
        logger.debug("Invalidating cache for %s", self.address)
        self._clear()
        await self.get_registry_config()

    async def set_auth_token(self, token: str | None) -> bool:
        """Use a new credential. Returns True when it changed and caches were dropped.

        A client created by a store shares its fetcher with every other client
        there, so the change is handed to the store and reaches all of them.
        """
        if self._share_token is not None:
            return await self._share_token(token)
        token = token or None
        if token == self._token:
            return False
        self.fetcher.set_token(token)
        await self.token_changed(token)
        return True

    async def token_changed(self, token: str | None) -> None:
        """Record a credential already set on the fetcher and drop the caches."""
        self._token = token or None
        await self.invalidate_cache()
