"""Shared HTTP plumbing for the article backend API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from enhancer.config import BackendSettings
from enhancer.errors import ValidationError, error_from_response, error_from_transport
from enhancer.models import SourceArticle
from enhancer.retry import DEFAULT_POLICY, RetryPolicy, retry_async

logger = logging.getLogger(__name__)

SERVICE = "Backend API"


def unwrap(data: Any) -> Any:
    """Strip a ``{"data": ...}`` envelope if present."""
    if isinstance(data, dict) and "data" in data:
        return data["data"]
    return data


def article_from_payload(data: Any) -> SourceArticle:
    """Validate a backend record and build a SourceArticle."""
    if not isinstance(data, dict):
        raise ValidationError("Article payload must be an object", field="article")

    missing = [
        key for key in ("title", "content")
        if not isinstance(data.get(key), str) or not data[key].strip()
    ]
    if data.get("id") in (None, ""):
        missing.insert(0, "id")
    if missing:
        raise ValidationError(
            f"Article is missing required field(s): {', '.join(missing)}",
            field=missing[0],
            details={"missing": missing, "id": data.get("id")},
        )

    return SourceArticle(
        id=data["id"],
        title=data["title"].strip(),
        content=data["content"],
        author=data.get("author") or None,
        created_at=data.get("created_at"),
    )


class BackendClient:
    """JSON requests against the backend, retried under the default policy."""

    def __init__(self, settings: BackendSettings, policy: RetryPolicy | None = None):
        self.settings = settings
        self.policy = policy or DEFAULT_POLICY

    def headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "article-enhancer/1.0",
        }
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: dict | None = None,
        expected: tuple[int, ...] = (200,),
    ) -> Any:
        return await retry_async(
            self._send, method, path, params, json, expected,
            policy=self.policy,
            operation=f"{method} {path}",
        )

    async def _send(
        self,
        method: str,
        path: str,
        params: dict | None,
        json: dict | None,
        expected: tuple[int, ...],
    ) -> Any:
        url = f"{self.settings.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.settings.timeout) as client:
                resp = await client.request(
                    method, url, params=params, json=json, headers=self.headers(),
                )
        except httpx.HTTPError as e:
            raise error_from_transport(e, url) from e

        logger.debug("%s %s -> %d", method, url, resp.status_code)
        if resp.status_code not in expected:
            raise error_from_response(resp, service=SERVICE)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ValidationError(f"{SERVICE} returned invalid JSON for {path}") from e
