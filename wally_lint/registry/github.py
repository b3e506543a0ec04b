"""GitHub tree/blob fetcher for Git-backed package indexes.

A Wally index is a plain Git repository. Everything the registry client
needs can be read through two endpoints of the GitHub REST API:

* ``GET /repos/{owner}/{repo}/git/trees/{tree_sha}``
* ``GET /repos/{owner}/{repo}/git/blobs/{blob_sha}``

Failures are returned as a :class:`FetchResult` status, never raised, so
the caller decides how to report them.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from wally_lint.errors import UnsupportedRegistryError

logger = logging.getLogger(__name__)

GITHUB_BASE_URL = "https://github.com/"
DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 20.0

# Status reported when the request never produced an HTTP response
TRANSPORT_FAILURE = 0


# ---------------------------------------------------------------------------
# Registry addresses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RegistryAddress:
    owner: str
    repo: str

    @property
    def url(self) -> str:
        return f"{GITHUB_BASE_URL}{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}"


def parse_registry_url(url: str) -> RegistryAddress:
    """Split ``https://github.com/<owner>/<repo>`` into its parts.

    Trailing slashes and a ``.git`` suffix are tolerated. Owner and repo are
    lower-cased since GitHub treats them case-insensitively.

    Raises:
        UnsupportedRegistryError: for anything that is not a GitHub
            repository URL.
    """
    text = url.strip()
    if not text.lower().startswith(GITHUB_BASE_URL):
        raise UnsupportedRegistryError(f"Unsupported registry '{url}': only GitHub indexes are supported")

    path = text[len(GITHUB_BASE_URL):].strip("/")
    if path.endswith(".git"):
        path = path[:-4]
    parts = [p for p in path.split("/") if p]
    if len(parts) != 2:
        raise UnsupportedRegistryError(f"Unsupported registry '{url}': expected {GITHUB_BASE_URL}<owner>/<repo>")
    return RegistryAddress(owner=parts[0].lower(), repo=parts[1].lower())


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------

@dataclass
class FetchResult:
    """Outcome of one API call. ``payload`` is only set when ``ok``."""

    status: int
    payload: Any = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == 200


class GitHubFetcher:
    """Reads trees and blobs from GitHub with a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        token: str | None = None,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._token = token or None
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "wally-lint",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                headers=self._headers(),
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    def set_token(self, token: str | None) -> None:
        """Swap the credential used for subsequent requests."""
        self._token = token or None
        if self._client is not None and not self._client.is_closed:
            self._client.headers.pop("Authorization", None)
            if self._token:
                self._client.headers["Authorization"] = f"Bearer {self._token}"

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, path: str) -> FetchResult:
        try:
            response = await self._get_client().get(path)
        except httpx.RequestError as e:
            logger.debug("Request to %s failed: %s", path, e)
            return FetchResult(TRANSPORT_FAILURE, message=f"Request failed: {e}")

        if response.status_code != 200:
            status = response.status_code
            if status == 403 and response.headers.get("x-ratelimit-remaining") == "0":
                status = 429
            logger.debug("GET %s returned %d", path, response.status_code)
            return FetchResult(status, message=f"GitHub returned {response.status_code}")

        try:
            return FetchResult(200, payload=response.json())
        except ValueError as e:
            return FetchResult(TRANSPORT_FAILURE, message=f"Invalid JSON from GitHub: {e}")

    async def get_tree(self, owner: str, repo: str, tree_id: str) -> FetchResult:
        """Fetch one tree. The payload is the list of its entries."""
        result = await self._get_json(f"/repos/{owner}/{repo}/git/trees/{tree_id}")
        if not result.ok:
            return result
        entries = result.payload.get("tree") if isinstance(result.payload, dict) else None
        if not isinstance(entries, list):
            return FetchResult(TRANSPORT_FAILURE, message=f"Malformed tree '{tree_id}'")
        return FetchResult(200, payload=entries)

    async def get_blob(self, owner: str, repo: str, blob_id: str) -> FetchResult:
        """Fetch one blob. The payload is its decoded text."""
        result = await self._get_json(f"/repos/{owner}/{repo}/git/blobs/{blob_id}")
        if not result.ok:
            return result
        data = result.payload if isinstance(result.payload, dict) else {}
        content = data.get("content", "")
        if data.get("encoding") == "base64":
            try:
                content = base64.b64decode(content).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as e:
                return FetchResult(TRANSPORT_FAILURE, message=f"Undecodable blob '{blob_id}': {e}")
        return FetchResult(200, payload=content)
