"""Tests for FigmaClient — transport is mocked with httpx.MockTransport."""

import httpx
import pytest

from figdigest.errors import ErrorClassification, FigmaAPIError
from figdigest.figma.client import FigmaClient


def make_client(handler, account_name="work"):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FigmaClient("figd_secret", account_name, http_client=http)


def respond(status, json=None, text=None, headers=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if json is not None:
            return httpx.Response(status, json=json, headers=headers)
        return httpx.Response(status, text=text or "", headers=headers)

    return handler


class TestRequest:
    @pytest.mark.asyncio
    async def test_sends_token_header(self):
        seen = {}

        def handler(request):
            seen["token"] = request.headers.get("X-Figma-Token")
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"ok": True})

        client = make_client(handler)
        assert await client.request("/me") == {"ok": True}
        assert seen["token"] == "figd_secret"
        assert seen["url"] == "https://api.figma.com/v1/me"

    @pytest.mark.asyncio
    async def test_rate_limit_with_header(self):
        client = make_client(respond(429, text="slow down", headers={"Retry-After": "12"}))
        with pytest.raises(FigmaAPIError) as exc_info:
            await client.request("/me")
        err = exc_info.value
        assert err.status == 429
        assert err.recoverable is True
        assert err.retry_after == 12
        assert err.classification == ErrorClassification.RECOVERABLE
        assert "Retry after 12 seconds" in str(err)

    @pytest.mark.asyncio
    async def test_rate_limit_default_retry_after(self):
        client = make_client(respond(429))
        with pytest.raises(FigmaAPIError) as exc_info:
            await client.request("/me")
        assert exc_info.value.retry_after == 60

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_failures_are_fatal(self, status):
        client = make_client(respond(status, text="nope"))
        with pytest.raises(FigmaAPIError, match="Invalid or expired PAT") as exc_info:
            await client.request("/me")
        assert exc_info.value.recoverable is False
        assert exc_info.value.account_name == "work"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [500, 502, 503])
    async def test_server_errors_are_recoverable(self, status):
        client = make_client(respond(status))
        with pytest.raises(FigmaAPIError) as exc_info:
            await client.request("/me")
        assert exc_info.value.recoverable is True
        assert exc_info.value.retry_after is None

    @pytest.mark.asyncio
    async def test_other_client_error_keeps_body(self):
        client = make_client(respond(404, text='{"err":"Not found"}'))
        with pytest.raises(FigmaAPIError) as exc_info:
            await client.request("/files/abc")
        err = exc_info.value
        assert err.status == 404
        assert err.recoverable is False
        assert err.response_body == '{"err":"Not found"}'

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        client = make_client(handler)
        with pytest.raises(FigmaAPIError, match="Network error") as exc_info:
            await client.request("/me")
        assert exc_info.value.status == 0
        assert exc_info.value.recoverable is True

    @pytest.mark.asyncio
    async def test_malformed_json_is_fatal(self):
        client = make_client(respond(200, text="<html>"))
        with pytest.raises(FigmaAPIError) as exc_info:
            await client.request("/me")
        assert exc_info.value.recoverable is False

    def test_repr_hides_token(self):
        client = make_client(respond(200, json={}))
        assert "figd_secret" not in repr(client)


class TestTypedOperations:
    @pytest.mark.asyncio
    async def test_identity_flat(self):
        client = make_client(respond(200, json={"id": 123, "handle": "Ana", "email": "ana@example.com"}))
        me = await client.get_identity()
        assert me.id == "123"
        assert me.handle == "Ana"

    @pytest.mark.asyncio
    async def test_identity_nested_under_user(self):
        client = make_client(respond(200, json={"user": {"id": "u1", "handle": "Ana"}}))
        me = await client.get_identity()
        assert me.id == "u1"

    @pytest.mark.asyncio
    async def test_identity_keeps_unknown_fields(self):
        client = make_client(respond(200, json={"id": "u1", "expires_at": "2026-02-01T00:00:00Z"}))
        me = await client.get_identity()
        assert me.model_extra["expires_at"] == "2026-02-01T00:00:00Z"

    @pytest.mark.asyncio
    async def test_identity_without_id(self):
        client = make_client(respond(200, json={"handle": "Ana"}))
        with pytest.raises(FigmaAPIError, match="Invalid identity"):
            await client.get_identity()

    @pytest.mark.asyncio
    async def test_list_team_projects(self):
        client = make_client(respond(200, json={"projects": [{"id": 1, "name": "Web"}]}))
        projects = await client.list_team_projects("team-1")
        assert [(p.id, p.name) for p in projects] == [("1", "Web")]

    @pytest.mark.asyncio
    async def test_list_project_files(self):
        payload = {"files": [{"key": "abc", "name": "Home", "last_modified": "2026-01-02T00:00:00Z"}]}
        client = make_client(respond(200, json=payload))
        files = await client.list_project_files("1")
        assert files[0].key == "abc"
        assert files[0].last_modified == "2026-01-02T00:00:00Z"

    @pytest.mark.asyncio
    async def test_versions_since_is_encoded(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            seen["path"] = request.url.path
            return httpx.Response(200, json={"versions": [
                {"id": "v1", "created_at": "2026-01-02T00:00:00Z", "user": {"id": "u1", "handle": "Ana"}},
            ]})

        client = make_client(handler)
        versions = await client.list_file_versions("abc", since="2026-01-01T00:00:00+00:00")
        assert seen["path"] == "/v1/files/abc/versions"
        assert seen["params"] == {"since": "2026-01-01T00:00:00+00:00"}
        assert versions[0].user.handle == "Ana"

    @pytest.mark.asyncio
    async def test_versions_without_since(self):
        seen = {}

        def handler(request):
            seen["query"] = request.url.query
            return httpx.Response(200, json={"versions": []})

        client = make_client(handler)
        assert await client.list_file_versions("abc") == []
        assert seen["query"] == b""

    @pytest.mark.asyncio
    async def test_list_file_comments(self):
        payload = {"comments": [{
            "id": "c1",
            "file_key": "abc",
            "parent_id": None,
            "user": {"id": "u1", "handle": "Ana"},
            "created_at": "2026-01-02T00:00:00Z",
            "resolved_at": None,
            "message": "Looks good",
        }]}
        client = make_client(respond(200, json=payload))
        comments = await client.list_file_comments("abc")
        assert comments[0].message == "Looks good"
        assert comments[0].parent_id is None

    @pytest.mark.asyncio
    async def test_get_file_meta(self):
        seen = {}

        def handler(request):
            seen["raw_path"] = request.url.raw_path.split(b"?")[0]
            seen["fields"] = request.url.params["fields"]
            return httpx.Response(200, json={
                "name": "Home",
                "last_modified": "2026-01-02T00:00:00Z",
                "thumbnail_url": None,
                "version": "123",
                "role": "owner",
            })

        client = make_client(handler)
        meta = await client.get_file_meta("a/b c")
        assert seen["raw_path"] == b"/v1/files/a%2Fb%20c"
        assert seen["fields"] == "name,last_modified,thumbnail_url,version"
        assert meta.name == "Home"
        assert meta.last_modified == "2026-01-02T00:00:00Z"
        assert meta.thumbnail_url is None
        assert meta.version == "123"

    @pytest.mark.asyncio
    async def test_missing_list_key_is_empty(self):
        client = make_client(respond(200, json={}))
        assert await client.list_file_comments("abc") == []


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_does_not_close_shared_client(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(respond(200, json={})))
        async with FigmaClient("figd_secret", "work", http_client=http):
            pass
        assert not http.is_closed
        await http.aclose()

    @pytest.mark.asyncio
    async def test_closes_owned_client(self):
        client = FigmaClient("figd_secret", "work")
        await client.close()
        assert client._client.is_closed
