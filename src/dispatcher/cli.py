"""
Command-line interface for the queue dispatcher.

Provides commands for sending messages and resolving queue names.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import IO, Iterator, List, Optional

import structlog

from dispatcher import __version__
from dispatcher.config import DispatcherConfig, set_config
from dispatcher.core.request import OutboundRequest
from dispatcher.engine.dispatcher import QueueDispatcher
from dispatcher.errors import CancellationError, DispatcherError


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
    )


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--region",
        help="AWS region (default: boto3 default chain)",
    )
    parser.add_argument(
        "--endpoint-url",
        help="Custom SQS endpoint URL",
    )
    parser.add_argument(
        "--profile",
        help="Named AWS profile",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs in JSON format",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="sqs-dispatch",
        description="Batched message dispatch to Amazon SQS queues",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Send command
    send_parser = subparsers.add_parser("send", help="Send messages read from a file or stdin")
    send_parser.add_argument(
        "--queue",
        required=True,
        help="Logical queue name or queue URL",
    )
    send_parser.add_argument(
        "--file",
        default="-",
        help="Input file with one message per line (default: stdin)",
    )
    send_parser.add_argument(
        "--raw",
        action="store_true",
        help="Send each line as-is instead of parsing it as JSON",
    )
    send_parser.add_argument(
        "--delay",
        type=int,
        help="Delivery delay in seconds",
    )
    send_parser.add_argument(
        "--batch-size",
        type=int,
        help="Messages per batch call (default: DISPATCHER_MAX_BATCH_SIZE or 10)",
    )
    send_parser.add_argument(
        "--max-concurrent",
        type=int,
        help="Batch calls in flight (default: unbounded)",
    )
    _add_common_arguments(send_parser)

    # Resolve command
    resolve_parser = subparsers.add_parser("resolve", help="Print the URL of a queue")
    resolve_parser.add_argument(
        "--queue",
        required=True,
        help="Logical queue name",
    )
    _add_common_arguments(resolve_parser)

    return parser


def build_config(args: argparse.Namespace) -> DispatcherConfig:
    """Create configuration from command-line arguments."""
    overrides = {
        "aws_region": args.region,
        "aws_endpoint_url": args.endpoint_url,
        "aws_profile": args.profile,
        "log_level": args.log_level,
        "log_json": args.log_json,
        "max_batch_size": getattr(args, "batch_size", None),
        "max_concurrent_batches": getattr(args, "max_concurrent", None),
    }
    return DispatcherConfig(**{k: v for k, v in overrides.items() if v is not None})


def read_lines(stream: IO[str]) -> Iterator[str]:
    """Yield non-blank lines without their trailing newline."""
    for line in stream:
        line = line.rstrip("\n")
        if line.strip():
            yield line


def load_messages(stream: IO[str], raw: bool) -> List:
    """Read input messages, parsing JSON lines unless raw."""
    if raw:
        return list(read_lines(stream))
    messages = []
    for number, line in enumerate(read_lines(stream), start=1):
        try:
            messages.append(json.loads(line))
        except json.JSONDecodeError as e:
            raise ValueError(f"line {number}: invalid JSON ({e.msg})") from e
    return messages


async def send_messages(args: argparse.Namespace, config: DispatcherConfig) -> int:
    """Send messages and print the dispatch report."""
    if args.file == "-":
        messages = load_messages(sys.stdin, args.raw)
    else:
        with open(args.file, encoding="utf-8") as stream:
            messages = load_messages(stream, args.raw)

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, cancel_event.set)
    except NotImplementedError:
        pass  # Signals not available on Windows

    async with QueueDispatcher.from_config(config) as dispatcher:
        try:
            if args.raw:
                requests = [OutboundRequest(args.queue, body, args.delay) for body in messages]
                report = await dispatcher.send_raw(
                    requests,
                    max_batch_size=args.batch_size,
                    max_concurrent_batches=args.max_concurrent,
                    cancel_event=cancel_event,
                )
            else:
                report = await dispatcher.send_many(
                    messages,
                    args.queue,
                    delay_seconds=args.delay,
                    max_batch_size=args.batch_size,
                    max_concurrent_batches=args.max_concurrent,
                    cancel_event=cancel_event,
                )
        except CancellationError as e:
            print("Cancelled.", file=sys.stderr)
            if e.report is not None:
                print(json.dumps(e.report.to_dict(), indent=2))
            return 130
        except DispatcherError as e:
            print(str(e), file=sys.stderr)
            report = getattr(e, "report", None)
            if report is not None:
                print(json.dumps(report.to_dict(), indent=2))
            return 1

    print(json.dumps(report.to_dict(), indent=2))
    return 0


async def resolve_queue(args: argparse.Namespace, config: DispatcherConfig) -> int:
    """Resolve a queue name and print its URL."""
    async with QueueDispatcher.from_config(config) as dispatcher:
        try:
            print(await dispatcher.resolver.resolve(args.queue))
        except DispatcherError as e:
            print(str(e), file=sys.stderr)
            return 1
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)
    set_config(config)

    # Setup logging
    setup_logging(config.log_level, config.log_json)

    # Run appropriate command
    try:
        if args.command == "send":
            sys.exit(asyncio.run(send_messages(args, config)))
        elif args.command == "resolve":
            sys.exit(asyncio.run(resolve_queue(args, config)))
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
