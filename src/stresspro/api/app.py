"""aiohttp control plane: submit, poll and cancel load jobs over HTTP/JSON.

Routes:
- ``GET /`` banner
- ``GET /health`` liveness and job counts
- ``POST /api/jobs`` submit a load profile, returns ``{"jobId": ...}``
- ``GET /api/jobs/{job_id}`` incremental poll
- ``POST /api/jobs/{job_id}/cancel`` cancel a running job
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from aiohttp import web

from stresspro.config import Settings
from stresspro.engine.models import LoadProfile, ProfileValidationError
from stresspro.engine.scheduler import BatchScheduler
from stresspro.jobs.models import JobNotFoundError
from stresspro.jobs.retention import RetentionSweeper
from stresspro.manager import JobManager

logger = logging.getLogger(__name__)

MANAGER_KEY = web.AppKey("manager", JobManager)
SWEEPER_KEY = web.AppKey("sweeper", RetentionSweeper)

BANNER = "StressPro backend is running. Use /api/jobs to start a test."

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@web.middleware
async def cors_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Allow any origin and answer preflight requests."""
    if request.method == "OPTIONS":
        response: web.StreamResponse = web.Response(status=204)
    else:
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            # Routing errors (404/405) are raised, not returned
            exc.headers.update(CORS_HEADERS)
            raise
    response.headers.update(CORS_HEADERS)
    return response


def _not_found() -> web.Response:
    return web.json_response({"error": "Job not found"}, status=404)


async def handle_root(request: web.Request) -> web.Response:
    return web.Response(text=BANNER)


async def handle_health(request: web.Request) -> web.Response:
    manager = request.app[MANAGER_KEY]
    return web.json_response(
        {
            "status": "healthy",
            "jobs": len(manager.store),
            "running": manager.running_count,
        }
    )


async def handle_submit(request: web.Request) -> web.Response:
    """Create a job from the JSON body and start it in the background."""
    try:
        body = await request.json()
    except ValueError:
        # Covers malformed JSON and bodies that are not valid UTF-8
        return web.json_response({"error": "Request body must be valid JSON"}, status=400)

    try:
        profile = LoadProfile.from_dict(body)
    except ProfileValidationError as exc:
        logger.warning(f"Rejected load profile: {exc}")
        return web.json_response({"error": str(exc)}, status=400)

    job_id = request.app[MANAGER_KEY].submit(profile)
    return web.json_response({"jobId": job_id})


async def handle_poll(request: web.Request) -> web.Response:
    """Return status plus the results not delivered by earlier polls."""
    try:
        poll = request.app[MANAGER_KEY].poll(request.match_info["job_id"])
    except JobNotFoundError:
        return _not_found()
    return web.json_response(poll.to_dict())


async def handle_cancel(request: web.Request) -> web.Response:
    try:
        job = request.app[MANAGER_KEY].cancel(request.match_info["job_id"])
    except JobNotFoundError:
        return _not_found()
    return web.json_response({"jobId": job.id, "status": job.status.value})


async def _on_startup(app: web.Application) -> None:
    app[SWEEPER_KEY].start()


async def _on_cleanup(app: web.Application) -> None:
    await app[SWEEPER_KEY].stop()
    await app[MANAGER_KEY].shutdown()


def create_app(
    settings: Settings | None = None,
    manager: JobManager | None = None,
) -> web.Application:
    """Create the aiohttp application with routes and lifecycle hooks.

    Args:
        settings: Server settings (default: read from the environment).
        manager: Job manager to serve; built from settings when omitted.

    Returns:
        Configured aiohttp web application.
    """
    settings = settings or Settings.from_env()
    if manager is None:
        scheduler = BatchScheduler(
            wave_pause_seconds=settings.wave_pause_ms / 1000,
            config=settings.connection_config,
        )
        manager = JobManager(scheduler=scheduler)

    app = web.Application(middlewares=[cors_middleware])
    app[MANAGER_KEY] = manager
    app[SWEEPER_KEY] = RetentionSweeper(
        manager.store,
        retention_seconds=settings.job_retention_seconds,
        interval_seconds=settings.sweep_interval_seconds,
    )

    app.router.add_get("/", handle_root)
    app.router.add_get("/health", handle_health)
    app.router.add_post("/api/jobs", handle_submit)
    app.router.add_get("/api/jobs/{job_id}", handle_poll)
    app.router.add_post("/api/jobs/{job_id}/cancel", handle_cancel)

    app.on_startup.append(_on_startup)
    app.on_cleanup.append(_on_cleanup)
    return app
