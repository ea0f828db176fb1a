"""CLI entrypoint for the social feature orchestrator."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading

from pydantic import ValidationError

from social_feature_orchestrator import __version__
from social_feature_orchestrator.errors import ReplyFetchError, StoreUnavailableError
from social_feature_orchestrator.orchestrator.config import OrchestratorSettings
from social_feature_orchestrator.orchestrator.logging import configure_logging
from social_feature_orchestrator.orchestrator.services import build_services
from social_feature_orchestrator.social.replies import (
    DEFAULT_REPLIES_COUNT,
    MAX_REPLIES_COUNT,
    extract_tweet_id,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="feature-orchestrator",
        description="Collect feature requests from social replies and drive them to pull requests",
    )
    parser.add_argument(
        "--version", action="version", version=f"social-feature-orchestrator {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the orchestration loop in the foreground")
    run.add_argument(
        "--interval-minutes",
        type=float,
        default=None,
        help="Minutes between cycles (defaults to ORCHESTRATION_INTERVAL_MINUTES)",
    )

    subparsers.add_parser("cycle", help="Execute a single orchestration cycle and exit")

    chat = subparsers.add_parser("chat", help="Send one message to the orchestration chat")
    chat.add_argument("message", help="Message text, e.g. 'what's the status?'")
    chat.add_argument("--session-id", default="cli", help="Chat session id")
    chat.add_argument("--user-id", default=None, help="Optional user id stored with the message")

    replies = subparsers.add_parser("replies", help="Fetch replies to a tweet")
    replies.add_argument("url", help="Tweet URL (twitter.com or x.com)")
    replies.add_argument(
        "--count",
        type=int,
        default=DEFAULT_REPLIES_COUNT,
        help=f"Number of replies to fetch (1-{MAX_REPLIES_COUNT})",
    )

    serve = subparsers.add_parser("serve", help="Run the REST API server")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve.add_argument("--port", type=int, default=3000, help="Bind port")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = OrchestratorSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        if args.command == "serve":
            import uvicorn

            from social_feature_orchestrator.server.app import create_app

            uvicorn.run(create_app(), host=args.host, port=args.port, log_config=None)
            return 0

        if args.command == "replies":
            tweet_id = extract_tweet_id(args.url)
            if tweet_id is None:
                print(f"Not a tweet URL: {args.url}", file=sys.stderr)
                return 2
            if not 1 <= args.count <= MAX_REPLIES_COUNT:
                print(f"--count must be between 1 and {MAX_REPLIES_COUNT}", file=sys.stderr)
                return 2

            services = build_services(settings)
            found = services.replies.get_replies(tweet_id, args.count)
            print(json.dumps([r.model_dump() for r in found], indent=2, ensure_ascii=False))
            return 0

        services = build_services(settings)
        try:
            if args.command == "chat":
                result = services.require_chat().process_message(
                    args.message, session_id=args.session_id, user_id=args.user_id
                )
                print(result.response)
                return 0 if result.success else 1

            scheduler = services.require_scheduler()

            if args.command == "cycle":
                outcome = scheduler.execute_cycle()
                print(json.dumps(outcome.to_json(), indent=2, ensure_ascii=False))
                return 0 if outcome.relay is None or outcome.relay.success else 1

            if args.command == "run":
                if args.interval_minutes is not None:
                    scheduler.update_config(interval_minutes=args.interval_minutes)
                scheduler.start()
                print("Orchestration agent running. Press Ctrl+C to stop.")
                try:
                    threading.Event().wait()
                except KeyboardInterrupt:
                    print("Stopping orchestration agent...")
                return 0
        finally:
            services.close()

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except StoreUnavailableError as e:
        logger.error(str(e))
        print(str(e), file=sys.stderr)
        return 3

    except ReplyFetchError as e:
        logger.error("Failed to fetch replies", extra={"error": str(e)})
        print(str(e), file=sys.stderr)
        return 1

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
