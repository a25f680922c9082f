"""GitHub contents-API implementation of RemoteContentProvider.

Transport rules:
- HTTPS only, 30 second timeout per request.
- ``Authorization: Bearer <token>`` when the credential store holds a token.
- HTTP 401 clears the cached credential and returns ``Unauthorized``.
- HTTP 404 on a hash lookup is a successful ``None`` (file will be created).
- DNS / connection / timeout errors return ``NetworkFailure``.
"""

from __future__ import annotations

import base64
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from vaultkeeper.errors import NetworkFailure, RemoteError, Unauthorized
from vaultkeeper.remote.base import RemoteContentProvider, RemoteFile, Result
from vaultkeeper.remote.credentials import CredentialStore

logger = logging.getLogger(__name__)

_DEFAULT_API_URL = "https://api.github.com"
_USER_AGENT = "vaultkeeper/0.1"
_TIMEOUT = 30  # seconds


class _NotFound(Exception):
    pass


class GitHubContentProvider(RemoteContentProvider):
    """Talk to ``/repos/{owner}/{repo}/contents/{path}``.

    Args:
        credentials: Store holding the bearer token; cleared on 401.
        api_url: API root (override for GitHub Enterprise).
        branch: Branch to read from and commit to.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        api_url: str = _DEFAULT_API_URL,
        branch: str = "main",
    ) -> None:
        if not api_url.startswith("https://"):
            raise ValueError(f"Remote API URL must use https://, got '{api_url}'")
        self._credentials = credentials
        self._api_url = api_url.rstrip("/")
        self._branch = branch

    # ------------------------------------------------------------------
    # RemoteContentProvider
    # ------------------------------------------------------------------

    def list_contents(self, owner: str, repo: str, path: str = "") -> Result[list[RemoteFile]]:
        try:
            payload = self._get_json(self._contents_url(owner, repo, path, ref=True))
        except _NotFound:
            return Result.failure(RemoteError(f"Remote path not found: '{path}'", 404))
        except (NetworkFailure, Unauthorized, RemoteError) as exc:
            return Result.failure(exc)

        items = payload if isinstance(payload, list) else [payload]
        return Result.success([_to_remote_file(item) for item in items])

    def fetch_content(self, locator: str) -> Result[bytes]:
        try:
            raw = self._request("GET", locator, accept="application/vnd.github.raw")
        except _NotFound:
            return Result.failure(RemoteError(f"Remote blob not found: '{locator}'", 404))
        except (NetworkFailure, Unauthorized, RemoteError) as exc:
            return Result.failure(exc)
        return Result.success(raw)

    def fetch_hash(self, owner: str, repo: str, path: str) -> Result[str | None]:
        try:
            payload = self._get_json(self._contents_url(owner, repo, path, ref=True))
        except _NotFound:
            return Result.success(None)
        except (NetworkFailure, Unauthorized, RemoteError) as exc:
            return Result.failure(exc)
        if isinstance(payload, list):
            return Result.failure(RemoteError(f"Remote path is a directory: '{path}'"))
        return Result.success(payload.get("sha"))

    def push_content(
        self,
        owner: str,
        repo: str,
        path: str,
        content: bytes,
        known_hash: str | None,
        message: str,
    ) -> Result[str | None]:
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self._branch,
        }
        if known_hash:
            body["sha"] = known_hash
        try:
            raw = self._request(
                "PUT",
                self._contents_url(owner, repo, path),
                data=json.dumps(body).encode("utf-8"),
            )
        except _NotFound:
            return Result.failure(RemoteError(f"Repository not found: {owner}/{repo}", 404))
        except (NetworkFailure, Unauthorized, RemoteError) as exc:
            return Result.failure(exc)
        try:
            new_hash = json.loads(raw).get("content", {}).get("sha")
        except (ValueError, AttributeError):
            new_hash = None
        return Result.success(new_hash)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _contents_url(self, owner: str, repo: str, path: str, ref: bool = False) -> str:
        quoted = urllib.parse.quote(path.strip("/"), safe="/")
        url = (
            f"{self._api_url}/repos/{urllib.parse.quote(owner)}/"
            f"{urllib.parse.quote(repo)}/contents/{quoted}"
        )
        if ref:
            url += "?" + urllib.parse.urlencode({"ref": self._branch})
        return url

    def _get_json(self, url: str) -> Any:
        raw = self._request("GET", url)
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise RemoteError(f"Malformed JSON from {url}: {exc}") from exc

    def _request(
        self,
        method: str,
        url: str,
        data: bytes | None = None,
        accept: str = "application/vnd.github+json",
    ) -> bytes:
        headers = {"Accept": accept, "User-Agent": _USER_AGENT}
        if data is not None:
            headers["Content-Type"] = "application/json"
        token = self._credentials.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        req = urllib.request.Request(url, data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=_TIMEOUT) as resp:
                return resp.read()
        except urllib.error.HTTPError as exc:
            if exc.code == 401:
                self._credentials.clear()
                raise Unauthorized(f"{method} {url} → 401 Unauthorized") from exc
            if exc.code == 404:
                raise _NotFound(url) from exc
            raise RemoteError(f"{method} {url} → HTTP {exc.code}", exc.code) from exc
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            logger.debug("Network failure on %s %s: %s", method, url, exc)
            raise NetworkFailure(f"{method} {url} failed: {exc}") from exc


def _to_remote_file(item: dict[str, Any]) -> RemoteFile:
    return RemoteFile(
        name=item["name"],
        path=item["path"],
        content_hash=item.get("sha", ""),
        size=int(item.get("size") or 0),
        kind="dir" if item.get("type") == "dir" else "file",
        download_url=item.get("download_url"),
    )
