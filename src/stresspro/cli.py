"""Command line entry point for StressPro.

Usage:
    stresspro serve [--host HOST] [--port PORT]
    stresspro run URL [--iterations N] [--concurrency C] [--output FILE]

``serve`` starts the HTTP control plane. ``run`` executes a single load job
in-process and prints its summary as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any

from aiohttp import web

from stresspro.api.app import create_app
from stresspro.config import Settings
from stresspro.engine.models import LoadProfile, ProfileValidationError
from stresspro.engine.scheduler import BatchScheduler
from stresspro.manager import JobManager
from stresspro.persistence.jsonl import JsonlWriter, JsonlWriterConfig

logger = logging.getLogger("stresspro")

POLL_INTERVAL_SECONDS = 0.5


def _install_uvloop() -> None:
    # uvloop does not support Windows; fall back to the default event loop
    if sys.platform == "win32":
        return
    try:
        import uvloop
    except ImportError:
        # Install with: pip install stresspro[performance]
        return
    uvloop.install()


def _parse_header(value: str) -> tuple[str, str]:
    name, sep, header_value = value.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"header must look like 'Name: value', got {value!r}")
    return name.strip(), header_value.strip()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stresspro", description="HTTP load-generation engine")
    parser.add_argument("--log-level", type=str, default=None, help="Log level (default: INFO)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP control plane")
    serve.add_argument("--host", type=str, default=None, help="Bind address")
    serve.add_argument("--port", type=int, default=None, help="Listening port (default: 3001)")

    run = subparsers.add_parser("run", help="Run one load job and print its summary")
    run.add_argument("url", type=str, help="Target URL")
    run.add_argument("--method", type=str, default="GET", help="HTTP method (default: GET)")
    run.add_argument("--iterations", "-n", type=int, default=100, help="Requests to issue")
    run.add_argument("--concurrency", "-c", type=int, default=10, help="Requests per wave")
    run.add_argument("--timeout-ms", type=int, default=10000, help="Per-request deadline")
    run.add_argument("--payload-kb", type=int, default=0, help="POST body size in KiB")
    run.add_argument("--cache-busting", action="store_true", help="Make every URL unique")
    run.add_argument(
        "--header",
        "-H",
        type=_parse_header,
        action="append",
        default=[],
        help="Extra header as 'Name: value' (repeatable)",
    )
    run.add_argument("--output", "-o", type=Path, default=None, help="Write results as JSONL")
    return parser


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def serve(settings: Settings) -> None:
    _install_uvloop()
    logger.info(f"StressPro backend running on http://{settings.host}:{settings.port}")
    web.run_app(create_app(settings), host=settings.host, port=settings.port, print=None)


async def run_job(
    profile: LoadProfile,
    settings: Settings,
    output: Path | None = None,
) -> dict[str, Any]:
    """Run one job to completion, logging progress, and return its summary."""
    scheduler = BatchScheduler(
        wave_pause_seconds=settings.wave_pause_ms / 1000,
        config=settings.connection_config,
    )
    manager = JobManager(scheduler=scheduler)
    job_id = manager.submit(profile)

    while True:
        poll = manager.poll(job_id)
        if poll.new_results:
            logger.info(f"Progress {poll.progress}/{poll.total}")
        if poll.status.is_terminal:
            break
        await asyncio.sleep(POLL_INTERVAL_SECONDS)

    job = await manager.wait(job_id)
    if output is not None:
        async with JsonlWriter(JsonlWriterConfig(file_path=output)) as writer:
            await writer.write_batch(job.results)
        logger.info(f"Results saved to: {output}")

    report: dict[str, Any] = {
        "jobId": job.id,
        "status": job.status.value,
        "peakInFlight": job.peak_in_flight,
        "summary": poll.summary.to_dict() if poll.summary else None,
    }
    if job.error is not None:
        report["error"] = job.error
    return report


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for a failed job, 2 for invalid input).
    """
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    _configure_logging(args.log_level or settings.log_level)

    if args.command == "serve":
        overrides = {
            key: value
            for key, value in (("host", args.host), ("port", args.port))
            if value is not None
        }
        serve(dataclasses.replace(settings, **overrides))
        return 0

    try:
        profile = LoadProfile.from_dict(
            {
                "targetUrl": args.url,
                "method": args.method,
                "iterations": args.iterations,
                "concurrency": args.concurrency,
                "timeoutMs": args.timeout_ms,
                "payloadSizeKB": args.payload_kb,
                "cacheBusting": args.cache_busting,
                "headers": dict(args.header),
            }
        )
    except ProfileValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    _install_uvloop()
    report = asyncio.run(run_job(profile, settings, output=args.output))
    print(json.dumps(report, indent=2))
    return 1 if report["status"] == "FAILED" else 0


if __name__ == "__main__":
    sys.exit(main())
