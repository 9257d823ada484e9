"""Minimal synchronous client for the Slack Web API.

Covers the three methods the CLI needs: ``users.profile.get``,
``users.profile.set`` and ``conversations.history``.  One request at a time,
no retries; failures surface as ``SlackApiError``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from channel_stats import HistoryPage, RawMessage
from slack_errors import ConfigurationError, SlackApiError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://slack.com/api/"
DEFAULT_TIMEOUT = 30.0


def _error_text(payload: dict) -> str | None:
    return payload.get("error") or payload.get("warning")


class SlackClient:
    """Bearer-token client around a single ``httpx.Client``.

    Use as a context manager so the underlying connection pool is closed::

        with SlackClient(token) as client:
            profile = client.users_profile_get()
    """

    def __init__(
        self,
        token: str | None,
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        if not token:
            raise ConfigurationError(
                "Slack API token not found. Please specify API token by environment variable or argument."
            )
        self._client = httpx.Client(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> "SlackClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def call(self, method: str, http_method: str = "GET", **params: Any) -> dict:
        """Invoke a Web API method and return the decoded JSON body.

        ``None`` params are dropped.  GET sends params as a query string,
        POST sends them as a JSON body.

        Raises:
            SlackApiError: On transport errors, non-2xx responses or a body
                that is not JSON.
        """
        params = {k: v for k, v in params.items() if v is not None}
        logger.debug("Slack API %s %s %s", http_method, method, sorted(params))
        try:
            if http_method == "GET":
                response = self._client.get(method, params=params)
            else:
                response = self._client.request(http_method, method, json=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise SlackApiError(
                f"Slack API {method} failed with HTTP {e.response.status_code}",
                method=method,
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise SlackApiError(f"Slack API {method} request failed: {e}", method=method) from e
        except ValueError as e:
            raise SlackApiError(f"Slack API {method} returned invalid JSON", method=method) from e

    def _checked_call(self, method: str, http_method: str = "GET", **params: Any) -> dict:
        payload = self.call(method, http_method, **params)
        if not payload.get("ok"):
            raise SlackApiError(f"Slack API returned error {_error_text(payload)}", method=method)
        return payload

    def users_profile_get(self) -> dict:
        """Return the authenticated user's profile object."""
        return self._checked_call("users.profile.get")["profile"]

    def users_profile_set(self, profile: dict) -> dict:
        """Update profile fields and return the resulting profile object."""
        return self._checked_call("users.profile.set", "POST", profile=profile)["profile"]

    def conversations_history(
        self,
        channel: str,
        oldest: str,
        latest: str,
        limit: int,
        cursor: Optional[str] = None,
    ) -> HistoryPage:
        """Fetch one page of channel history.

        A response with ``ok == False`` is returned as a failed HistoryPage
        rather than raised, leaving the decision to the caller.
        """
        payload = self.call(
            "conversations.history",
            channel=channel,
            oldest=oldest,
            latest=latest,
            limit=limit,
            inclusive="true",
            cursor=cursor or None,
        )
        if not payload.get("ok"):
            return HistoryPage(messages=[], ok=False, error=_error_text(payload))
        metadata = payload.get("response_metadata") or {}
        return HistoryPage(
            messages=[RawMessage.from_api(m) for m in payload.get("messages", [])],
            next_cursor=metadata.get("next_cursor") or None,
        )
