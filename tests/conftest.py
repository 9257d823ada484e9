"""Shared fixtures for slack-status tests."""

from __future__ import annotations

from datetime import datetime

import pytest

from helpers import make_message


# ── Calendar anchors (2024-01-06 is a Saturday) ──

SATURDAY = datetime(2024, 1, 6, 12, 0)
SUNDAY = datetime(2024, 1, 7, 12, 0)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep real Slack credentials and any local .env out of the tests."""
    for name in ("SLACK_API_TOKEN", "SLACK_API_URL", "SLACK_HISTORY_PAGE_SIZE",
                 "SLACK_HTTP_TIMEOUT", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def two_week_messages():
    """Five messages, newest first as Slack returns them.

    Week of 2023/12/31 holds two messages, one a thread root with 4 replies
    from 3 users; week of 2024/01/07 holds three plain messages.
    """
    return [
        make_message(datetime(2024, 1, 10, 9, 0)),
        make_message(datetime(2024, 1, 9, 9, 0)),
        make_message(datetime(2024, 1, 8, 9, 0)),
        make_message(datetime(2024, 1, 3, 9, 0), thread=True, reply_count=4, reply_users=3),
        make_message(datetime(2024, 1, 2, 9, 0)),
    ]
