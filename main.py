#!/usr/bin/env python3
"""
Generation Broker - Main Entry Point

Usage:
    # Start the HTTP API
    python main.py server --port 8080

    # Run the background job worker
    python main.py worker

    # Process whatever jobs are waiting, then exit
    python main.py worker --once

    # Report configuration problems
    python main.py check-config
"""

import argparse
import asyncio
import logging
import signal
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("generation_broker")


async def run_worker(once: bool = False) -> int:
    """Run the job worker until interrupted. Returns a process exit code."""
    from core.config import Config
    from services.runtime import BrokerServices

    config = Config.from_env()
    if not config.store.database_url:
        # The in-memory store lives inside the server process, which runs its own worker
        logger.error("DATABASE_URL not set - a standalone worker cannot see the server's jobs")
        return 1

    services = await BrokerServices.build(
        config, operation_max_wait=config.worker.operation_max_wait_seconds
    )
    worker = services.create_worker()

    try:
        if once:
            processed = await worker.run_once()
            logger.info(f"Processed {processed} jobs")
            return 0

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(worker.stop()))

        await worker.start()
        return 0
    finally:
        await services.aclose()
        logger.info("Worker stopped")


def check_config() -> int:
    """Print configuration issues. Returns a process exit code."""
    from core.config import Config
    from core.credentials import CapabilityClass

    config = Config.from_env()
    for capability_class in CapabilityClass:
        slots = config.credentials.configured_slots(capability_class)
        print(f"{capability_class.value:12s} {len(slots)}/{config.credentials.pool_size} slots configured")

    issues = config.validate()
    for issue in issues:
        print(f"  ! {issue}")
    if not issues:
        print("Configuration OK")
    return 1 if issues else 0


def main():
    parser = argparse.ArgumentParser(
        description="Generation Broker - image, edit and video generation with async jobs"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    server_parser = subparsers.add_parser("server", help="Start the HTTP API")
    server_parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    server_parser.add_argument("--port", type=int, default=8080, help="Port to listen on")

    worker_parser = subparsers.add_parser("worker", help="Run the background job worker")
    worker_parser.add_argument("--once", action="store_true", help="Process one batch and exit")

    subparsers.add_parser("check-config", help="Report configuration problems")

    args = parser.parse_args()

    if args.command == "server":
        from services.api.server import run_server
        run_server(host=args.host, port=args.port)

    elif args.command == "worker":
        sys.exit(asyncio.run(run_worker(once=args.once)))

    elif args.command == "check-config":
        sys.exit(check_config())

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
