"""Exceptions shared by the slack-status modules.

Every error the CLI reports derives from ``SlackStatusError`` so that
``slack_status.main`` can catch one type and exit with status 1.
"""

from __future__ import annotations


class SlackStatusError(Exception):
    """Base class for errors surfaced to the user."""


class ConfigurationError(SlackStatusError):
    """Invalid or missing invocation parameters, raised before any API call."""


class UpstreamError(SlackStatusError):
    """The Slack API reported a non-success response."""


class SlackApiError(UpstreamError):
    """Transport or HTTP-level failure talking to the Slack Web API."""

    def __init__(self, message: str, method: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.method = method
        self.status_code = status_code
