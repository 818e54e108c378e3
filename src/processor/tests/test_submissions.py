"""
Tests for the submission API client against an httpx mock transport.
"""

import json

import httpx
import pytest

from core.errors import SubmissionLookupError
from processor.submissions import Auth0Settings, SubmissionApiClient

API_URL = "http://submissions.test/v5"
TOKEN_URL = "http://auth.test/oauth/token"


class FakeApi:
    """Serves canned submission API responses and records requests."""

    def __init__(self):
        self.requests = []
        self.token_requests = 0
        self.review_type_pages = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if str(request.url) == TOKEN_URL:
            self.token_requests += 1
            body = json.loads(request.content)
            assert body["grant_type"] == "client_credentials"
            return httpx.Response(
                200, json={"access_token": f"token-{self.token_requests}", "expires_in": 3600}
            )

        path = request.url.path
        if path == "/v5/submissions/sub-1":
            return httpx.Response(
                200,
                json={
                    "id": "sub-1",
                    "created": "2018-02-16T00:00:00.000Z",
                    "memberId": 27244033,
                    "challengeId": 30054163,
                    "legacySubmissionId": 2001,
                    "type": "Contest Submission",
                },
            )
        if path == "/v5/submissions/broken":
            return httpx.Response(200, json={"created": "not a date"})
        if path == "/v5/reviewTypes":
            page = int(request.url.params.get("page", "1"))
            return httpx.Response(
                200,
                json=self.review_type_pages.get(page, []),
                headers={"X-Total-Pages": str(len(self.review_type_pages) or 1)},
            )
        if path == "/v5/submissions/down":
            return httpx.Response(503, text="upstream unavailable")
        return httpx.Response(
            404, json={"message": f"Submission with id: {path.rsplit('/', 1)[-1]} doesn't exist"}
        )


class TestSubmissionApiClient:
    @pytest.fixture
    def api(self):
        return FakeApi()

    @pytest.fixture
    def auth0(self):
        return Auth0Settings(
            url=TOKEN_URL,
            audience="https://m2m.test/",
            client_id="client",
            client_secret="secret",
        )

    def make_client(self, api, auth0=None):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(api))
        return SubmissionApiClient(API_URL, auth0=auth0, http_client=http_client)

    @pytest.mark.asyncio
    async def test_get_submission(self, api, auth0):
        client = self.make_client(api, auth0)

        submission = await client.get_submission("sub-1")

        assert submission.member_id == 27244033
        assert submission.challenge_id == 30054163
        assert submission.legacy_submission_id == 2001
        assert submission.created.year == 2018
        assert api.requests[-1].headers["Authorization"] == "Bearer token-1"

    @pytest.mark.asyncio
    async def test_token_is_cached(self, api, auth0):
        """Only one token exchange happens while the token is valid."""
        client = self.make_client(api, auth0)

        await client.get_submission("sub-1")
        await client.get_submission("sub-1")

        assert api.token_requests == 1

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed(self, api):
        auth0 = Auth0Settings(
            url=TOKEN_URL, client_id="client", client_secret="secret", token_cache_time=0
        )
        client = self.make_client(api, auth0)

        await client.get_submission("sub-1")
        await client.get_submission("sub-1")

        assert api.token_requests == 2
        assert api.requests[-1].headers["Authorization"] == "Bearer token-2"

    @pytest.mark.asyncio
    async def test_no_credentials_sends_no_token(self, api):
        client = self.make_client(api)

        await client.get_submission("sub-1")

        assert api.token_requests == 0
        assert "Authorization" not in api.requests[-1].headers

    @pytest.mark.asyncio
    async def test_not_found_uses_api_message(self, api):
        client = self.make_client(api)

        with pytest.raises(SubmissionLookupError) as exc_info:
            await client.get_submission("missing")

        assert exc_info.value.status_code == 404
        assert str(exc_info.value) == "Submission with id: missing doesn't exist"

    @pytest.mark.asyncio
    async def test_server_error_without_message(self, api):
        client = self.make_client(api)

        with pytest.raises(SubmissionLookupError) as exc_info:
            await client.get_submission("down")

        assert exc_info.value.status_code == 503
        assert "upstream unavailable" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = self.make_client(refuse)

        with pytest.raises(SubmissionLookupError) as exc_info:
            await client.get_submission("sub-1")

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_malformed_submission(self, api):
        client = self.make_client(api)

        with pytest.raises(SubmissionLookupError):
            await client.get_submission("broken")

    @pytest.mark.asyncio
    async def test_token_failure(self, auth0):
        def deny(request):
            return httpx.Response(401, json={"message": "Unauthorized"})

        client = self.make_client(deny, auth0)

        with pytest.raises(SubmissionLookupError, match="Unauthorized"):
            await client.get_submission("sub-1")

    @pytest.mark.asyncio
    async def test_review_types_follow_pagination(self, api):
        api.review_type_pages = {
            1: [{"id": "a1", "name": "AV Scan"}],
            2: [{"id": "a2", "name": "AV Scan"}],
            3: [{"id": "a3", "name": "AV Scan"}],
        }
        client = self.make_client(api)

        review_types = await client.search_review_types("AV Scan")

        assert sorted(rt["id"] for rt in review_types) == ["a1", "a2", "a3"]
        first = api.requests[0]
        assert first.url.params["name"] == "AV Scan"
        assert first.url.params["isActive"] == "true"

    @pytest.mark.asyncio
    async def test_fetch_ignored_review_type_ids(self, api):
        api.review_type_pages = {1: [{"id": "av-scan-id", "name": "AV Scan"}]}
        client = self.make_client(api)

        ids = await client.fetch_ignored_review_type_ids(["AV Scan"])

        assert ids == ["av-scan-id"]

    @pytest.mark.asyncio
    async def test_closes_only_owned_client(self, api):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(api))
        async with SubmissionApiClient(API_URL, http_client=http_client):
            pass

        assert not http_client.is_closed
        await http_client.aclose()
