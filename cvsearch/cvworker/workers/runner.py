import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime

from cvworker.config import settings
from cvworker.workers.base import BaseWorker
from cvworker.workers.parse_cv import CvParseWorker
from cvworker.workers.retention import RetentionWorker
from cvworker.workers.virus_scan import VirusScanWorker

logger = logging.getLogger(__name__)


def build_workers(args: argparse.Namespace) -> list[BaseWorker]:
    """Instantiate the workers selected on the command line."""
    workers: list[BaseWorker] = []

    if args.command in ("virus-scan", "all"):
        workers.append(VirusScanWorker(batch_size=args.batch_size))

    if args.command in ("parse", "all"):
        workers.append(
            CvParseWorker(
                batch_size=args.batch_size,
                parser_version=getattr(args, "parser_version", None),
                force=getattr(args, "force", False),
            )
        )

    if args.command in ("retention", "all"):
        workers.append(RetentionWorker(now=getattr(args, "now", None), page_size=args.batch_size))

    return workers


async def run_once(workers: list[BaseWorker]) -> None:
    """Run each worker's batch once, in order, printing the summaries."""
    for worker in workers:
        summary = await worker.run_once()
        print(f"{worker.name}: {summary.model_dump_json()}")


async def run_continuous(workers: list[BaseWorker]) -> None:
    """Run all workers concurrently until a shutdown signal arrives."""

    # Handle shutdown signals
    def handle_shutdown(sig, frame):  # noqa: ARG001
        logger.info(f"Received shutdown signal: {sig}")
        for worker in workers:
            worker.stop()

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    await asyncio.gather(*(worker.run() for worker in workers))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="CV Search background workers")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--loop",
        action="store_true",
        help="Keep polling instead of running a single batch",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("virus-scan", help="Scan pending CV versions")
    scan.add_argument("--batch-size", type=int, default=None)

    parse = subparsers.add_parser("parse", help="Parse pending or failed CV versions")
    parse.add_argument("--batch-size", type=int, default=None)
    parse.add_argument("--parser-version", type=str, default=None)
    parse.add_argument(
        "--force",
        action="store_true",
        help="Also re-parse versions that are already parsed",
    )

    retention = subparsers.add_parser("retention", help="Apply the CV retention policy")
    retention.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="Reference time (ISO 8601) instead of the current time",
    )
    retention.add_argument("--batch-size", type=int, default=None, help="Page size")

    everything = subparsers.add_parser("all", help="Run every worker")
    everything.add_argument("--batch-size", type=int, default=None)

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the worker process."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    workers = build_workers(args)
    logger.info(f"Starting CV Search workers: {', '.join(w.name for w in workers)}")

    try:
        if args.loop:
            asyncio.run(run_continuous(workers))
        else:
            asyncio.run(run_once(workers))
    except Exception as e:
        logger.exception(f"Worker run failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
