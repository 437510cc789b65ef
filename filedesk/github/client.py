"""GitHub contents/commits API implementation of the content store."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from filedesk.exceptions import (
    RemoteNotFoundError,
    RemoteUnavailableError,
    VersionConflictError,
)
from filedesk.github.base import FileSnapshot, HistoryEntry, TargetDescriptor
from filedesk.services.datetime_service import parse_datetime

if TYPE_CHECKING:
    from datetime import datetime

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"
_VERSION_RE = re.compile(r"^[0-9a-f]{4,40}$")


def _decode_content(payload: Any) -> bytes:
    """Decode the base64 ``content`` field of a contents API response.

    Files of 1 MB or more come back with ``encoding: "none"`` and an empty
    ``content``; those are refused rather than read as empty files.
    """
    if not isinstance(payload, dict) or payload.get("type", "file") != "file":
        msg = "Remote path is not a file"
        raise RemoteNotFoundError(msg)
    encoded = payload.get("content")
    if not isinstance(encoded, str):
        msg = "Remote store returned a file without content"
        raise RemoteUnavailableError(msg)
    encoding = payload.get("encoding", "base64")
    size = payload.get("size")
    if encoding != "base64" or (not encoded and isinstance(size, int) and size > 0):
        msg = f"Remote file is too large to edit here ({size} bytes, encoding {encoding!r})"
        raise RemoteUnavailableError(msg)
    try:
        # GitHub wraps base64 at 60 columns; b64decode drops the newlines.
        return base64.b64decode(encoded)
    except (binascii.Error, ValueError) as exc:
        msg = "Remote store returned undecodable content"
        raise RemoteUnavailableError(msg) from exc


def _parse_commit(item: dict[str, Any]) -> HistoryEntry:
    commit = item.get("commit") or {}
    author = commit.get("author") or {}
    committer = commit.get("committer") or {}
    raw_date = committer.get("date") or author.get("date")
    date: datetime | None = parse_datetime(raw_date) if raw_date else None
    return HistoryEntry(
        version_id=str(item["sha"]),
        message=str(commit.get("message", "")),
        author=str(author.get("name") or "unknown"),
        date=date,
        url=item.get("html_url"),
    )


class GitHubContentClient:
    """Talks to the GitHub REST API for one or more targets.

    Every call opens its own ``httpx.AsyncClient``; no call is retried.
    """

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _contents_url(self, target: TargetDescriptor) -> str:
        return f"{self.api_url}/repos/{target.repo}/contents/{quote(target.path)}"

    def _commits_url(self, target: TargetDescriptor) -> str:
        return f"{self.api_url}/repos/{target.repo}/commits"

    @staticmethod
    def _headers(target: TargetDescriptor) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if target.token:
            headers["Authorization"] = f"Bearer {target.token}"
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        target: TargetDescriptor,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as http_client:
                return await http_client.request(
                    method, url, headers=self._headers(target), params=params, json=json
                )
        except httpx.HTTPError as exc:
            logger.warning("GitHub %s %s failed: %s", method, url, exc)
            msg = f"Could not reach GitHub for {target.display_name}: {exc}"
            raise RemoteUnavailableError(msg) from exc

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict) and isinstance(body.get("message"), str):
            return body["message"]
        return response.text[:200]

    def _check(self, response: httpx.Response, target: TargetDescriptor, action: str) -> None:
        """Map a non-success GitHub response onto the error taxonomy."""
        if response.is_success:
            return
        detail = self._error_message(response)
        status = response.status_code
        logger.warning(
            "GitHub %s for %s returned %d: %s", action, target.key, status, detail
        )
        if status == 404:
            msg = f"{target.display_name}: {action} not found ({target.repo}/{target.path})"
            raise RemoteNotFoundError(msg)
        if status == 409 or (status == 422 and "sha" in detail.lower()):
            msg = (
                f"{target.display_name} was changed by someone else; "
                "reload the latest version and try again"
            )
            raise VersionConflictError(msg)
        msg = f"GitHub {action} failed for {target.display_name} ({status}): {detail}"
        raise RemoteUnavailableError(msg)

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            msg = "GitHub returned a malformed response"
            raise RemoteUnavailableError(msg) from exc

    async def fetch_current(self, target: TargetDescriptor) -> FileSnapshot:
        params = {"ref": target.branch} if target.branch else None
        response = await self._request("GET", self._contents_url(target), target, params=params)
        self._check(response, target, "file")
        payload = self._json(response)
        content = _decode_content(payload)
        try:
            version_tag = str(payload["sha"])
        except KeyError as exc:
            msg = "GitHub returned a file without a version tag"
            raise RemoteUnavailableError(msg) from exc

        history = await self.fetch_history(target, page=1, page_size=1)
        last_modified = history[0].date if history else None
        return FileSnapshot(
            content=content,
            version_tag=version_tag,
            last_modified=last_modified,
        )

    async def fetch_history(
        self, target: TargetDescriptor, page: int, page_size: int
    ) -> list[HistoryEntry]:
        params: dict[str, Any] = {"path": target.path, "page": page, "per_page": page_size}
        if target.branch:
            params["sha"] = target.branch
        response = await self._request("GET", self._commits_url(target), target, params=params)
        self._check(response, target, "history")
        payload = self._json(response)
        if not isinstance(payload, list):
            msg = "GitHub returned a malformed commit list"
            raise RemoteUnavailableError(msg)
        try:
            return [_parse_commit(item) for item in payload]
        except (KeyError, TypeError, ValueError) as exc:
            msg = "GitHub returned a malformed commit entry"
            raise RemoteUnavailableError(msg) from exc

    async def fetch_content_at_version(self, target: TargetDescriptor, version_id: str) -> bytes:
        # Commit ids are case-insensitive; GitHub prints them in lowercase.
        version_id = version_id.strip().lower()
        if not _VERSION_RE.match(version_id):
            logger.warning("Rejected invalid version id %r for %s", version_id, target.key)
            msg = f"Unknown version {version_id!r} for {target.display_name}"
            raise RemoteNotFoundError(msg)
        response = await self._request(
            "GET", self._contents_url(target), target, params={"ref": version_id}
        )
        if response.status_code == 422:
            # GitHub answers 422 "No commit found for the ref" for unknown shas.
            msg = f"Unknown version {version_id!r} for {target.display_name}"
            raise RemoteNotFoundError(msg)
        self._check(response, target, "version")
        return _decode_content(self._json(response))

    async def write(
        self,
        target: TargetDescriptor,
        content: bytes,
        expected_version: str,
        message: str,
    ) -> str:
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "sha": expected_version,
        }
        if target.branch:
            body["branch"] = target.branch
        response = await self._request("PUT", self._contents_url(target), target, json=body)
        self._check(response, target, "update")
        payload = self._json(response)
        try:
            return str(payload["content"]["sha"])
        except (KeyError, TypeError) as exc:
            msg = "GitHub accepted the update but returned no version tag"
            raise RemoteUnavailableError(msg) from exc
