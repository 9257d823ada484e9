"""Core data processing for Slack channel statistics.

Pulls a channel's history page by page, splits it into week or month
periods and aggregates per-period message and thread counts.
Used by the CLI (slack_status.py); the Slack client is passed in as a
plain ``fetch_page`` callable so the engine never touches HTTP itself.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from functools import reduce
from typing import Callable, Iterable, Iterator, NamedTuple, Optional

from slack_errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

HISTORY_PAGE_SIZE = 100
THREAD_BROADCAST_SUBTYPE = "thread_broadcast"

STATS_HEADER = [
    "Period",
    "Num Messages",
    "Num Threads",
    "Min Thread Length",
    "Max Thread Length",
    "Avg Thread Length",
    "Avg Thread Users",
]


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

class Interval(Enum):
    NONE = "none"
    WEEK = "week"
    MONTH = "month"

    @classmethod
    def from_selector(cls, value: str | None) -> "Interval":
        """Map a ``--split-by`` value to an Interval.

        Args:
            value: The raw selector.  None or blank means no bucketing.

        Returns:
            The matching Interval member.

        Raises:
            ConfigurationError: If *value* is neither "week" nor "month"
                (case-insensitive).
        """
        if value is None or not value.strip():
            return cls.NONE
        selector = value.strip().lower()
        if selector in (cls.WEEK.value, cls.MONTH.value):
            return cls(selector)
        raise ConfigurationError(
            f"Channel stats can only be split-by 'week' or 'month', not '{value}'."
        )


@dataclass(frozen=True)
class TimeRange:
    """Inclusive bounds for a history fetch."""

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start > self.end:
            raise ConfigurationError(
                f"Start date {self.start:%Y-%m-%d %H:%M:%S} is after end date {self.end:%Y-%m-%d %H:%M:%S}."
            )

    @property
    def oldest(self) -> str:
        return str(int(self.start.timestamp()))

    @property
    def latest(self) -> str:
        return str(int(self.end.timestamp()))

    def label(self) -> str:
        return f"{self.start:%Y-%m-%d %H:%M:%S} to {self.end:%Y-%m-%d %H:%M:%S}"


@dataclass(frozen=True)
class RawMessage:
    """One message from the channel history feed.

    Only the fields the aggregator reads are kept.  Slack omits the thread
    and reply fields on plain messages, so each has an explicit default:
    no ``thread_ts`` means the message is not part of a thread, and missing
    reply metadata counts as zero.
    """

    ts: str
    thread_ts: Optional[str] = None
    subtype: Optional[str] = None
    reply_count: int = 0
    reply_users_count: int = 0

    @classmethod
    def from_api(cls, message: dict) -> "RawMessage":
        """Build a RawMessage from a ``conversations.history`` message dict.

        ``reply_users_count`` is preferred; older payloads only carry the
        ``reply_users`` id list, whose length is used instead.
        """
        reply_users_count = message.get("reply_users_count")
        if reply_users_count is None:
            reply_users_count = len(message.get("reply_users") or [])
        return cls(
            ts=str(message["ts"]),
            thread_ts=message.get("thread_ts"),
            subtype=message.get("subtype"),
            reply_count=int(message.get("reply_count") or 0),
            reply_users_count=int(reply_users_count),
        )

    @property
    def timestamp(self) -> datetime:
        """Local naive datetime of the message, to the whole second."""
        return datetime.fromtimestamp(int(self.ts.split(".", 1)[0]))

    @property
    def is_thread_root(self) -> bool:
        # Broadcasts echo a reply into the channel; the thread is already
        # counted on its parent.
        return bool(self.thread_ts and self.thread_ts.strip()) and self.subtype != THREAD_BROADCAST_SUBTYPE


@dataclass(frozen=True)
class ThreadStats:
    num_messages: int
    num_users: int


@dataclass
class PeriodStats:
    """Mutable accumulator for one reporting period."""

    period_name: str
    num_messages: int = 0
    num_threads: int = 0
    threads: list[ThreadStats] = field(default_factory=list)

    def add(self, message: RawMessage) -> None:
        self.num_messages += 1
        if message.is_thread_root:
            self.num_threads += 1
            self.threads.append(ThreadStats(message.reply_count, message.reply_users_count))


@dataclass
class HistoryPage:
    """One ``conversations.history`` response."""

    messages: list[RawMessage]
    next_cursor: Optional[str] = None
    ok: bool = True
    error: Optional[str] = None


@dataclass(frozen=True)
class PeriodSummary:
    period_name: str
    num_messages: int
    num_threads: int
    min_thread_length: Optional[int]
    max_thread_length: Optional[int]
    avg_thread_length: float
    avg_thread_users: float


FetchPage = Callable[[str, str, str, int, Optional[str]], HistoryPage]


# ---------------------------------------------------------------------------
# History fetcher
# ---------------------------------------------------------------------------

def iter_history_pages(
    fetch_page: FetchPage,
    channel_id: str,
    time_range: TimeRange,
    page_size: int = HISTORY_PAGE_SIZE,
) -> Iterator[HistoryPage]:
    """Yield history pages for a channel until the cursor runs out.

    Each request uses the same ``oldest``/``latest`` bounds and the cursor
    from the previous response.  Pages are yielded in the order the API
    hands out cursors; nothing is re-sorted or retried.

    Args:
        fetch_page: Callable ``(channel, oldest, latest, limit, cursor)``
            returning a HistoryPage, e.g. ``SlackClient.conversations_history``.
        channel_id: Slack channel id.
        time_range: Inclusive bounds of the fetch.
        page_size: Maximum messages requested per call.

    Yields:
        Successful HistoryPage objects.

    Raises:
        UpstreamError: As soon as a page reports ``ok == False``.  Pages
            already yielded are not rolled back.
    """
    cursor: Optional[str] = None
    page_number = 0
    while True:
        page = fetch_page(channel_id, time_range.oldest, time_range.latest, page_size, cursor)
        page_number += 1
        if not page.ok:
            logger.warning("History page %d for %s failed: %s", page_number, channel_id, page.error)
            raise UpstreamError(f"Slack API returned error {page.error}")
        logger.debug(
            "History page %d for %s: %d messages, next cursor %r",
            page_number, channel_id, len(page.messages), page.next_cursor,
        )
        yield page
        cursor = page.next_cursor
        if not cursor:
            return


def fetch_history(
    fetch_page: FetchPage,
    channel_id: str,
    time_range: TimeRange,
    page_size: int = HISTORY_PAGE_SIZE,
) -> Iterator[RawMessage]:
    """Stream every message of a channel in the given range, page by page."""
    for page in iter_history_pages(fetch_page, channel_id, time_range, page_size):
        yield from page.messages


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def period_name_for(timestamp: datetime, interval: Interval) -> str:
    """Name the week or month period that contains *timestamp*.

    Weeks start on Sunday: the name is the most recent Sunday on or before
    the local date, e.g. "Week of 2024/01/07".  Months are named like
    "Month of 2024/01".

    Raises:
        ValueError: For ``Interval.NONE``, which has no per-message period.
    """
    if interval is Interval.WEEK:
        day = timestamp.date()
        sunday = day - timedelta(days=(day.weekday() + 1) % 7)
        return sunday.strftime("Week of %Y/%m/%d")
    if interval is Interval.MONTH:
        return timestamp.strftime("Month of %Y/%m")
    raise ValueError(f"No period name for interval {interval!r}")


class _FoldState(NamedTuple):
    current: PeriodStats
    finished: list[PeriodStats]


def _fold_message(interval: Interval, state: _FoldState, message: RawMessage) -> _FoldState:
    current, finished = state
    if interval is not Interval.NONE:
        name = period_name_for(message.timestamp, interval)
        if not current.period_name:
            current.period_name = name
        elif current.period_name != name:
            finished.append(current)
            current = PeriodStats(name)
    current.add(message)
    return _FoldState(current, finished)


def aggregate(
    messages: Iterable[RawMessage],
    interval: Interval,
    range_label: str,
) -> list[PeriodStats]:
    """Fold a message stream into per-period statistics.

    Periods open when their first message arrives and close when a message
    from a different period shows up, so a period that reappears later in an
    unsorted stream gets a second, separate entry.

    Args:
        messages: Messages in delivery order.
        interval: Bucketing mode.  ``Interval.NONE`` puts everything in one
            period named *range_label*.
        range_label: Human-readable rendering of the fetched range.

    Returns:
        PeriodStats sorted by period name.  Never empty: a stream with no
        messages gives a single zero-count period named *range_label*.
    """
    start = PeriodStats(range_label if interval is Interval.NONE else "")
    state = reduce(
        lambda acc, message: _fold_message(interval, acc, message),
        messages,
        _FoldState(start, []),
    )
    if not state.current.period_name:
        state.current.period_name = range_label
    periods = sorted([*state.finished, state.current], key=lambda p: p.period_name)
    logger.info(
        "Aggregated %d messages into %d period(s)",
        sum(p.num_messages for p in periods), len(periods),
    )
    return periods


class StatsRequest(NamedTuple):
    channel_id: str
    interval: Interval
    time_range: TimeRange


def validate_stats_request(
    channel_id: str | None,
    start: datetime | None,
    end: datetime | None,
    split_by: str | None = None,
) -> StatsRequest:
    """Check the channel stats parameters without touching the network.

    Raises:
        ConfigurationError: Missing channel id or dates, start after end, or
            a *split_by* other than "week"/"month".
    """
    if not channel_id or not channel_id.strip() or start is None or end is None:
        raise ConfigurationError("Channel and start/end dates must be provided to get stats.")
    interval = Interval.from_selector(split_by)
    return StatsRequest(channel_id.strip(), interval, TimeRange(start, end))


def get_channel_stats(
    fetch_page: FetchPage,
    channel_id: str | None,
    start: datetime | None,
    end: datetime | None,
    split_by: str | None = None,
    page_size: int = HISTORY_PAGE_SIZE,
) -> list[PeriodStats]:
    """Validate the request, then fetch and aggregate a channel's history.

    All validation happens before the first call to *fetch_page*.

    Raises:
        ConfigurationError: See ``validate_stats_request``.
        UpstreamError: If any history page fails.
    """
    request = validate_stats_request(channel_id, start, end, split_by)
    messages = fetch_history(fetch_page, request.channel_id, request.time_range, page_size)
    return aggregate(messages, request.interval, request.time_range.label())


# ---------------------------------------------------------------------------
# Reporting helpers
# ---------------------------------------------------------------------------

def _mean(values: list[int]) -> float:
    return sum(values) / len(values) if values else math.nan


def summarize(period: PeriodStats) -> PeriodSummary:
    """Derive min/max/average thread metrics for one period.

    Min and max are None and both averages are NaN when the period has no
    threads.
    """
    lengths = [t.num_messages for t in period.threads]
    users = [t.num_users for t in period.threads]
    return PeriodSummary(
        period_name=period.period_name,
        num_messages=period.num_messages,
        num_threads=period.num_threads,
        min_thread_length=min(lengths) if lengths else None,
        max_thread_length=max(lengths) if lengths else None,
        avg_thread_length=_mean(lengths),
        avg_thread_users=_mean(users),
    )


def _format_avg(value: float) -> str:
    return "NaN" if math.isnan(value) else f"{value:.2f}"


def format_stats_rows(stats: Iterable[PeriodStats]) -> list[list[str]]:
    """Render periods as CSV rows, header first.

    Args:
        stats: Finalized periods, usually the output of ``aggregate``.

    Returns:
        List of string rows: the fixed header followed by one row per period.
        Averages use two decimals; missing min/max are empty strings and
        missing averages are "NaN".
    """
    rows = [list(STATS_HEADER)]
    for period in stats:
        s = summarize(period)
        rows.append([
            s.period_name,
            str(s.num_messages),
            str(s.num_threads),
            "" if s.min_thread_length is None else str(s.min_thread_length),
            "" if s.max_thread_length is None else str(s.max_thread_length),
            _format_avg(s.avg_thread_length),
            _format_avg(s.avg_thread_users),
        ])
    return rows
