"""slack_status.py

Get, set or clear your Slack status, or print message/thread statistics for
a channel as CSV.

Usage:
    slack-status --get-status
    slack-status --set-status --text "In a meeting" --emoji calendar --expires "in 1 hour"
    slack-status --clear-status
    slack-status --get-channel-stats --channel-id C0123456 --start 2024-01-01 --end 2024-03-31 --split-by week

The API token is read from ``SLACK_API_TOKEN`` or passed as ``--token``.
Progress messages and logs go to stderr; status and CSV output go to stdout.
"""

from __future__ import annotations

import argparse
import csv
import logging
import sys
from datetime import datetime

from pydantic import ValidationError

from channel_stats import PeriodStats, format_stats_rows, get_channel_stats, validate_stats_request
from date_phrases import parse_date_phrase
from slack_api import SlackClient
from slack_errors import ConfigurationError, SlackStatusError
from slack_settings import Settings, get_settings

logger = logging.getLogger(__name__)

USAGE = """Slack Status application: get, set, or clear your Slack status!
Set your Slack API user token via environment variable `SLACK_API_TOKEN` or as `--token=<token>`.
Specify `--get-status`, `--set-status`, `--clear-status`, `--get-channel-stats`, or `--help` for mode.
Specify `--text='some text' --emoji='emoji-name'` when setting status, and optionally `--expires='date/time'`
Specify `--channel-id='Slack channel ID' --start='date/time' --end='date/time'` when getting stats, and optionally `--split-by='week|month'`."""

MODE_USAGE = "usage"
MODE_CLEAR_STATUS = "clear_status"
MODE_GET_STATUS = "get_status"
MODE_SET_STATUS = "set_status"
MODE_GET_CHANNEL_STATS = "get_channel_stats"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slack-status",
        description="Get, set, or clear your Slack status, or compute channel stats",
        add_help=False,
    )
    modes = parser.add_argument_group("modes")
    modes.add_argument("--help", "--usage", "-h", dest="usage", action="store_true",
                       help="Print usage and exit")
    modes.add_argument("--clear-status", action="store_true", help="Clear your status")
    modes.add_argument("--get-status", action="store_true", help="Print your current status")
    modes.add_argument("--set-status", action="store_true", help="Set your status")
    modes.add_argument("--get-channel-stats", action="store_true",
                       help="Print per-period message and thread stats for a channel")

    parser.add_argument("--token", help="Slack API user token (default: $SLACK_API_TOKEN)")
    parser.add_argument("--text", help="Status text")
    parser.add_argument("--emoji", help="Status emoji, with or without surrounding colons")
    parser.add_argument("--expires", help="When the status expires, e.g. 'tomorrow at 09:00'")
    parser.add_argument("--channel-id", help="Slack channel ID")
    parser.add_argument("--start", help="Start of the stats range, e.g. '2024-01-01' or '30 days ago'")
    parser.add_argument("--end", help="End of the stats range, e.g. 'now'")
    parser.add_argument("--split-by", help="Split stats by 'week' or 'month'")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def get_mode(args: argparse.Namespace) -> str:
    """Pick the run mode; help wins, then clear, get, set and channel stats."""
    if args.usage:
        return MODE_USAGE
    for mode in (MODE_CLEAR_STATUS, MODE_GET_STATUS, MODE_SET_STATUS, MODE_GET_CHANNEL_STATS):
        if getattr(args, mode):
            return mode
    return MODE_USAGE


def configure_logging(settings: Settings, verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def quote_emoji(emoji: str) -> str:
    """Wrap an emoji name in colons unless it already is."""
    if emoji.startswith(":") and emoji.endswith(":") and len(emoji) > 1:
        return emoji
    return f":{emoji}:"


def set_status(
    client: SlackClient,
    status_text: str,
    status_emoji: str,
    status_expiration: datetime | None = None,
) -> dict:
    """Update the status fields of the user's profile.

    Args:
        client: An open SlackClient.
        status_text: New status text ("" clears it).
        status_emoji: New status emoji, already colon-quoted ("" clears it).
        status_expiration: Optional local datetime when Slack should clear
            the status.

    Returns:
        The updated profile dict.
    """
    profile = {"status_text": status_text, "status_emoji": status_emoji}
    if status_expiration is not None:
        profile["status_expiration"] = int(status_expiration.timestamp())
    return client.users_profile_set(profile)


def print_status(profile: dict) -> None:
    print(f"Status for {profile.get('display_name', '')}:")
    print(f"\tText: {profile.get('status_text', '')}")
    print(f"\tEmoji: {profile.get('status_emoji', '')}")
    expiration = profile.get("status_expiration") or 0
    if expiration > 0:
        expires = datetime.fromtimestamp(expiration).strftime("%Y-%m-%d %H:%M")
        print(f"\tStatus expires: {expires}")


def print_channel_stats(stats: list[PeriodStats]) -> None:
    """Write the channel stats table to stdout as CSV."""
    writer = csv.writer(sys.stdout, lineterminator="\n")
    writer.writerows(format_stats_rows(stats))


def _open_client(settings: Settings, token: str | None) -> SlackClient:
    return SlackClient(
        settings.resolve_token(token),
        base_url=settings.slack_api_url,
        timeout=settings.slack_http_timeout,
    )


def _parse_required_date(value: str | None) -> datetime | None:
    return parse_date_phrase(value) if value else None


def run(mode: str, args: argparse.Namespace, settings: Settings) -> None:
    """Execute one mode.  Raises SlackStatusError subclasses on failure."""
    if mode == MODE_USAGE:
        print(USAGE)
        return

    if mode == MODE_GET_STATUS:
        print("Getting Slack status...", file=sys.stderr)
        with _open_client(settings, args.token) as client:
            print_status(client.users_profile_get())
        return

    if mode == MODE_SET_STATUS:
        print("Setting Slack status...", file=sys.stderr)
        if args.text is None or args.emoji is None:
            raise ConfigurationError("Status text and emoji must be provided to set status.")
        expiration = None
        if args.expires:
            expiration = parse_date_phrase(args.expires)
            if expiration is None:
                raise ConfigurationError(f"Could not understand expiration date '{args.expires}'.")
        with _open_client(settings, args.token) as client:
            print_status(set_status(client, args.text, quote_emoji(args.emoji), expiration))
        return

    if mode == MODE_CLEAR_STATUS:
        print("Clearing Slack status...", file=sys.stderr)
        with _open_client(settings, args.token) as client:
            client.users_profile_set({"status_text": "", "status_emoji": "", "status_expiration": 0})
        print("Slack status cleared.")
        return

    if mode == MODE_GET_CHANNEL_STATS:
        print("Getting Slack channel stats...", file=sys.stderr)
        start = _parse_required_date(args.start)
        end = _parse_required_date(args.end)
        validate_stats_request(args.channel_id, start, end, args.split_by)
        with _open_client(settings, args.token) as client:
            stats = get_channel_stats(
                client.conversations_history,
                args.channel_id,
                start,
                end,
                args.split_by,
                page_size=settings.slack_history_page_size,
            )
        print_channel_stats(stats)
        return

    raise ValueError(f"Unknown mode {mode!r}")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the slack-status tool."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)
    configure_logging(settings, args.verbose)

    try:
        run(get_mode(args), args, settings)
    except SlackStatusError as e:
        logger.debug("Run failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
