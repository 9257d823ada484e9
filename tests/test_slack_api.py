"""Tests for slack_api.py against an in-process httpx transport."""

from __future__ import annotations

import json
from datetime import datetime

import httpx
import pytest

from channel_stats import RawMessage
from helpers import api_message
from slack_api import SlackClient
from slack_errors import ConfigurationError, SlackApiError, UpstreamError


def _client(handler, token: str = "xoxp-test") -> SlackClient:
    return SlackClient(token, transport=httpx.MockTransport(handler))


class TestSlackClientSetup:
    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token(self, token):
        with pytest.raises(ConfigurationError, match="token not found"):
            SlackClient(token)

    def test_bearer_token_and_method_path(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["url"] = (request.url.host, request.url.path)
            return httpx.Response(200, json={"ok": True, "profile": {}})

        with _client(handler, token="xoxp-abc") as client:
            client.users_profile_get()

        assert seen["auth"] == "Bearer xoxp-abc"
        assert seen["url"] == ("slack.com", "/api/users.profile.get")


class TestCall:
    def test_none_params_dropped(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"ok": True})

        with _client(handler) as client:
            client.call("conversations.history", channel="C1", cursor=None)

        assert seen["params"] == {"channel": "C1"}

    def test_http_error(self):
        with _client(lambda request: httpx.Response(500, text="boom")) as client:
            with pytest.raises(SlackApiError) as exc_info:
                client.call("users.profile.get")
        assert exc_info.value.status_code == 500
        assert exc_info.value.method == "users.profile.get"
        assert isinstance(exc_info.value, UpstreamError)

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with _client(handler) as client:
            with pytest.raises(SlackApiError, match="request failed"):
                client.call("users.profile.get")

    def test_invalid_json(self):
        with _client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(SlackApiError, match="invalid JSON"):
                client.call("users.profile.get")


class TestProfile:
    def test_get_returns_profile(self):
        profile = {"display_name": "ada", "status_text": "Lunch", "status_emoji": ":taco:"}
        with _client(lambda r: httpx.Response(200, json={"ok": True, "profile": profile})) as client:
            assert client.users_profile_get() == profile

    def test_get_error_text(self):
        body = {"ok": False, "error": "invalid_auth"}
        with _client(lambda r: httpx.Response(200, json=body)) as client:
            with pytest.raises(SlackApiError, match="Slack API returned error invalid_auth"):
                client.users_profile_get()

    def test_warning_used_when_no_error(self):
        body = {"ok": False, "warning": "superfluous_charset"}
        with _client(lambda r: httpx.Response(200, json=body)) as client:
            with pytest.raises(SlackApiError, match="superfluous_charset"):
                client.users_profile_get()

    def test_set_posts_json_profile(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "profile": seen["body"]["profile"]})

        profile = {"status_text": "Focus", "status_emoji": ":headphones:"}
        with _client(handler) as client:
            assert client.users_profile_set(profile) == profile

        assert seen["method"] == "POST"
        assert seen["body"] == {"profile": profile}


class TestConversationsHistory:
    def test_page_with_cursor(self):
        seen = {}
        when = datetime(2024, 1, 2, 9, 0)

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={
                "ok": True,
                "messages": [api_message(when, thread_ts="1704186000.000100", reply_count=2,
                                         reply_users_count=1)],
                "has_more": True,
                "response_metadata": {"next_cursor": "bmV4dA=="},
            })

        with _client(handler) as client:
            page = client.conversations_history("C1", "100", "200", 100, "abc")

        assert seen["path"] == "/api/conversations.history"
        assert seen["params"] == {
            "channel": "C1", "oldest": "100", "latest": "200", "limit": "100",
            "inclusive": "true", "cursor": "abc",
        }
        assert page.ok
        assert page.next_cursor == "bmV4dA=="
        assert page.messages == [RawMessage(
            ts=api_message(when)["ts"], thread_ts="1704186000.000100",
            reply_count=2, reply_users_count=1,
        )]

    def test_last_page_has_no_cursor(self):
        body = {"ok": True, "messages": [], "response_metadata": {"next_cursor": ""}}
        with _client(lambda r: httpx.Response(200, json=body)) as client:
            page = client.conversations_history("C1", "100", "200", 100)
        assert page.next_cursor is None

    def test_first_request_sends_no_cursor(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"ok": True, "messages": []})

        with _client(handler) as client:
            client.conversations_history("C1", "100", "200", 100, None)
        assert "cursor" not in seen["params"]

    def test_failure_returned_not_raised(self):
        body = {"ok": False, "error": "not_in_channel"}
        with _client(lambda r: httpx.Response(200, json=body)) as client:
            page = client.conversations_history("C1", "100", "200", 100)
        assert not page.ok
        assert page.error == "not_in_channel"
        assert page.messages == []
