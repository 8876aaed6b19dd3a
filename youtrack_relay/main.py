"""Main entry point for the YouTrack to Telegram relay."""

import argparse
import logging
import signal
import sys
import threading
from typing import Optional, Tuple

from .commands import CommandHandler, CommandListener
from .config import AppConfig, load_config
from .poller import PollerState, RelayPoller, now_ms
from .telegram_notifier import TelegramNotifier
from .youtrack_client import IssueCreationFailed, YouTrackClient

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging to stdout at the given level name."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def build_relay(
    config: AppConfig, shutdown_event: threading.Event
) -> Tuple[RelayPoller, CommandListener]:
    """
    Wire the poller and the command listener around one shared state.

    Each side gets its own tracker client and notifier, so no HTTP session
    is used from two threads.
    """
    state = PollerState(config.polling.dedup_max_size, last_issue_check_ms=now_ms())
    poller = RelayPoller(
        config,
        YouTrackClient(config.tracker),
        TelegramNotifier(config.telegram),
        state,
        shutdown_event=shutdown_event,
    )

    command_notifier = TelegramNotifier(config.telegram)
    handler = CommandHandler(config, YouTrackClient(config.tracker), command_notifier, state)
    listener = CommandListener(command_notifier, handler, shutdown_event=shutdown_event)
    return poller, listener


def run_relay(config: AppConfig, once: bool = False, with_commands: bool = True) -> None:
    """Run the poll loop, and the command listener unless disabled."""
    shutdown_event = threading.Event()
    poller, listener = build_relay(config, shutdown_event)

    if once:
        poller.run_forever(max_cycles=1)
        return

    def _shutdown(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    if with_commands:
        listener.start()

    logger.info(
        f"Relaying {config.tracker.base_url} to chat {config.telegram.chat_id} "
        f"every {config.polling.interval_seconds}s"
    )
    poller.run_forever()


def create_from_cli(config: AppConfig, summary: str, description: Optional[str] = None) -> int:
    """Create an issue from the command line. Returns the process exit code."""
    client = YouTrackClient(config.tracker)
    try:
        issue_id = client.create_issue(config.tracker.project_id, summary, description)
    except IssueCreationFailed as e:
        logger.error(f"Failed to create issue: {e}")
        return 1
    print(issue_id)
    return 0


def main():
    """Main entry point with command-line argument parsing."""
    parser = argparse.ArgumentParser(
        description="Relay YouTrack notifications and issue updates to a Telegram chat"
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Path to a .env file with configuration (default: .env lookup)"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single poll cycle and exit"
    )
    parser.add_argument(
        "--no-commands",
        action="store_true",
        help="Do not listen for Telegram commands (/create, /status, /help)"
    )
    parser.add_argument(
        "--create",
        metavar="SUMMARY",
        type=str,
        default=None,
        help="Create an issue with this summary, print its id and exit"
    )
    parser.add_argument(
        "--description",
        type=str,
        default=None,
        help="Description for --create"
    )

    args = parser.parse_args()

    try:
        config = load_config(args.env_file)
    except ValueError as e:
        configure_logging()
        logger.error(f"Configuration error: {e}")
        sys.exit(2)

    # After load_config, so LOG_LEVEL from the env file applies.
    configure_logging(config.log_level)

    if args.create:
        sys.exit(create_from_cli(config, args.create, args.description))

    run_relay(config, once=args.once, with_commands=not args.no_commands)


if __name__ == "__main__":
    main()
