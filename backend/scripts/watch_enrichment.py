#!/usr/bin/env python3
"""Follow a profile enrichment stream from the command line.

Run from backend/:
    python -m scripts.watch_enrichment <username> <user_id> [--base-url http://localhost:8000]

Prints every state change and notification until the session is done or
gives up after its retry budget.
"""

import argparse
import asyncio
import logging
import sys

from profile_enrichment.client import EnrichmentSubscription, HttpxEventStreamTransport
from profile_enrichment.models import PhaseNotification, SubscriptionState, SubscriptionStatus


def _print_state(state: SubscriptionState) -> None:
    print(f"[{state.status.value:>10}] progress={state.progress:3d}% retries={state.retry_count}")


def _print_notification(notification: PhaseNotification) -> None:
    marker = "+" if notification.level == "success" else "!"
    print(f"  {marker} {notification.title}: {notification.description}")


async def main(args: argparse.Namespace) -> int:
    transport = HttpxEventStreamTransport(args.base_url)
    subscription = EnrichmentSubscription(
        transport,
        max_retries=args.max_retries,
        on_change=_print_state,
        on_notification=_print_notification,
    )
    await subscription.start(args.username, args.user_id)
    try:
        state = await subscription.wait()
    finally:
        await subscription.close()

    if state.status == SubscriptionStatus.ERROR:
        print(f"Failed: {state.error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Watch a progressive profile enrichment stream")
    parser.add_argument("username", help="Handle of the profile to enrich")
    parser.add_argument("user_id", help="Owner whose stored profile receives the results")
    parser.add_argument("--base-url", default="http://localhost:8000", help="Relay API base URL")
    parser.add_argument("--max-retries", type=int, default=3, help="Reconnect attempts after drops")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show client debug logs")
    cli_args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if cli_args.verbose else logging.WARNING)
    sys.exit(asyncio.run(main(cli_args)))
