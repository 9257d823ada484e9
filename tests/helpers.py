"""Shared test helpers for slack-status tests.

Regular functions (not fixtures) that can be imported by any test module.
"""

from __future__ import annotations

from datetime import datetime

from channel_stats import HistoryPage, RawMessage


def slack_ts(when: datetime, micros: int = 0) -> str:
    """Render a local naive datetime as a Slack ``ts`` string."""
    return f"{int(when.timestamp())}.{micros:06d}"


def make_message(
    when: datetime,
    thread: bool = False,
    broadcast: bool = False,
    reply_count: int = 0,
    reply_users: int = 0,
) -> RawMessage:
    """Build a RawMessage posted at *when*.

    Args:
        when: Local naive datetime of the message.
        thread: Mark the message as part of a thread (sets thread_ts).
        broadcast: Give the message the thread_broadcast subtype.
        reply_count: Reported number of replies.
        reply_users: Reported number of distinct repliers.
    """
    ts = slack_ts(when)
    return RawMessage(
        ts=ts,
        thread_ts=ts if thread or broadcast else None,
        subtype="thread_broadcast" if broadcast else None,
        reply_count=reply_count,
        reply_users_count=reply_users,
    )


def api_message(when: datetime, **fields) -> dict:
    """Build a raw ``conversations.history`` message dict."""
    message = {"type": "message", "user": "U123", "text": "hi", "ts": slack_ts(when)}
    message.update(fields)
    return message


class FakeHistory:
    """Stand-in for ``SlackClient.conversations_history``.

    Serves *pages* in order, linking them with cursors "c1", "c2", ... and
    records every call's arguments in ``calls``.  A page given as a string
    is served as a failed page with that error text.
    """

    def __init__(self, pages: list[list[RawMessage] | str]):
        self.pages = pages
        self.calls: list[tuple] = []

    def __call__(self, channel, oldest, latest, limit, cursor):
        self.calls.append((channel, oldest, latest, limit, cursor))
        index = len(self.calls) - 1
        page = self.pages[index]
        if isinstance(page, str):
            return HistoryPage(messages=[], ok=False, error=page)
        next_cursor = f"c{index + 1}" if index + 1 < len(self.pages) else ""
        return HistoryPage(messages=list(page), next_cursor=next_cursor)
