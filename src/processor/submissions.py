"""
Client for the submission API.

Requests are authenticated with an Auth0 machine-to-machine token obtained via
the client-credentials grant and reused for ``token_cache_time`` seconds (or
the token's own lifetime, whichever is shorter). When no client id is
configured requests are sent without a token, which is what local mock APIs
expect.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import httpx
from pydantic import ValidationError

from core.errors import SubmissionLookupError
from core.log import get_logger
from core.messages import SubmissionDetails

from .constants import (
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SUBMISSION_API_URL,
    DEFAULT_TOKEN_CACHE_TIME,
    REVIEW_TYPES_PAGE_SIZE,
)

logger = get_logger(__name__)


@dataclass
class Auth0Settings:
    url: Optional[str] = None
    audience: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    proxy_server_url: Optional[str] = None
    token_cache_time: int = DEFAULT_TOKEN_CACHE_TIME

    @property
    def enabled(self) -> bool:
        return bool(self.url and self.client_id and self.client_secret)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"{response.status_code} {response.reason_phrase}: {response.text}".strip()


class SubmissionApiClient:
    """Looks up submissions and review types."""

    def __init__(
        self,
        base_url: str = DEFAULT_SUBMISSION_API_URL,
        auth0: Optional[Auth0Settings] = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth0 = auth0 or Auth0Settings()
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(request_timeout)
        )
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Any) -> "SubmissionApiClient":
        auth0 = Auth0Settings(
            url=settings.get("auth0_url"),
            audience=settings.get("auth0_audience"),
            client_id=settings.get("auth0_client_id"),
            client_secret=settings.get("auth0_client_secret"),
            proxy_server_url=settings.get("auth0_proxy_server_url"),
            token_cache_time=int(
                settings.get("token_cache_time", DEFAULT_TOKEN_CACHE_TIME)
            ),
        )
        return cls(
            base_url=settings.get("submission_api_url", DEFAULT_SUBMISSION_API_URL),
            auth0=auth0,
            request_timeout=float(
                settings.get("request_timeout", DEFAULT_REQUEST_TIMEOUT)
            ),
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> "SubmissionApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _get_token(self) -> Optional[str]:
        if not self.auth0.enabled:
            return None

        async with self._token_lock:
            if self._token and time.monotonic() < self._token_expires_at:
                return self._token

            token_url = self.auth0.proxy_server_url or self.auth0.url
            try:
                response = await self._http_client.post(
                    token_url,
                    json={
                        "grant_type": "client_credentials",
                        "client_id": self.auth0.client_id,
                        "client_secret": self.auth0.client_secret,
                        "audience": self.auth0.audience,
                        "auth0_url": self.auth0.url,
                    },
                )
                response.raise_for_status()
                body = response.json()
            except httpx.HTTPStatusError as exc:
                raise SubmissionLookupError(
                    f"Failed to obtain machine token: {_error_message(exc.response)}",
                    status_code=exc.response.status_code,
                ) from exc
            except (httpx.RequestError, ValueError) as exc:
                raise SubmissionLookupError(
                    f"Failed to obtain machine token: {exc}"
                ) from exc

            token = body.get("access_token") if isinstance(body, dict) else None
            if not token:
                raise SubmissionLookupError("Machine token response had no access_token")

            ttl = self.auth0.token_cache_time
            expires_in = body.get("expires_in")
            if isinstance(expires_in, (int, float)) and expires_in > 0:
                ttl = min(ttl, expires_in)

            self._token = token
            self._token_expires_at = time.monotonic() + ttl
            logger.debug("Obtained machine token valid for %ss", ttl)
            return token

    async def _get(
        self, path: str, params: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        headers = {}
        token = await self._get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._http_client.get(
                f"{self.base_url}{path}", params=params, headers=headers
            )
        except httpx.RequestError as exc:
            raise SubmissionLookupError(f"Submission API request failed: {exc}") from exc

        if response.is_error:
            raise SubmissionLookupError(
                _error_message(response), status_code=response.status_code
            )
        return response

    async def get_submission(self, submission_id: str) -> SubmissionDetails:
        """Fetch one submission by id."""
        response = await self._get(f"/submissions/{submission_id}")
        try:
            return SubmissionDetails.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise SubmissionLookupError(
                f"Malformed submission {submission_id} returned by API: {exc}"
            ) from exc

    async def search_review_types(self, name: str) -> List[Dict[str, Any]]:
        """Return every active review type with the given name, across all pages."""
        query = {"name": name, "isActive": "true", "perPage": REVIEW_TYPES_PAGE_SIZE}
        first = await self._get("/reviewTypes", params=query)
        review_types = list(first.json())

        try:
            total_pages = int(first.headers.get("x-total-pages", "1"))
        except ValueError:
            total_pages = 1

        if total_pages > 1:
            pages = await asyncio.gather(
                *(
                    self._get("/reviewTypes", params={**query, "page": page})
                    for page in range(2, total_pages + 1)
                )
            )
            for page in pages:
                review_types.extend(page.json())
        return review_types

    async def fetch_ignored_review_type_ids(self, names: Iterable[str]) -> List[str]:
        """Resolve review type names to the ids review events carry."""
        ids: List[str] = []
        for name in names:
            review_types = await self.search_review_types(name)
            ids.extend(str(review_type["id"]) for review_type in review_types)
            logger.info(
                "Ignoring review type %r (%d matching ids)", name, len(review_types)
            )
        return ids
