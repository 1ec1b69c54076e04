"""aiohttp application factory and HTTP routes."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from aiohttp import web

from bandwidth.auth import TokenAuthenticator
from bandwidth.config import load_profile
from bandwidth.constants import CHUNK_SIZE
from bandwidth.errors import AllMethodsFailed
from bandwidth.latency import LatencyTester
from bandwidth.methods import build_methods
from bandwidth.selector import MethodSelector

from .output import (
    create_download_json,
    create_error_json,
    create_latency_json,
    create_result_json,
)

LOGGER = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey("config", dict)
SELECTOR_KEY = web.AppKey("selector", MethodSelector)
LATENCY_KEY = web.AppKey("latency", LatencyTester)
AUTH_KEY = web.AppKey("authenticator", TokenAuthenticator)

# Route names that need a bearer token when ``require_auth`` is on.
PROTECTED_ROUTES = {"speedtest-get", "speedtest-post", "download-test"}

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as exc:
        LOGGER.exception("Unhandled error on %s %s", request.method, request.path)
        return web.json_response(
            create_error_json("Internal server error", str(exc) or type(exc).__name__),
            status=500,
        )


@web.middleware
async def auth_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    config = request.app[CONFIG_KEY]
    route_name = request.match_info.route.name

    if config.get("require_auth") and route_name in PROTECTED_ROUTES:
        user_id = request.app[AUTH_KEY].authenticate(request.headers.get("Authorization"))
        if user_id is None:
            return web.json_response(
                create_error_json("Unauthorized", "missing or invalid bearer token"),
                status=401,
            )
        request["user_id"] = user_id

    return await handler(request)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def speedtest(request: web.Request) -> web.Response:
    selector = request.app[SELECTOR_KEY]
    LOGGER.info("Starting speed test for user %s", request.get("user_id", "anonymous"))

    try:
        result = await selector.run()
    except AllMethodsFailed as exc:
        return web.json_response(create_error_json("Speed test failed", str(exc)), status=500)

    return web.json_response(create_result_json(result))


async def health(request: web.Request) -> web.Response:
    return web.json_response({
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "methods": request.app[SELECTOR_KEY].method_names,
    })


async def ping(request: web.Request) -> web.Response:
    result = await request.app[LATENCY_KEY].test()
    if not result.success:
        return web.json_response(
            create_error_json("Ping test failed", result.error or "no round trip succeeded"),
            status=500,
        )
    return web.json_response(create_latency_json(result))


async def download_test(request: web.Request) -> web.Response:
    try:
        result = await request.app[SELECTOR_KEY].run_download()
    except AllMethodsFailed as exc:
        return web.json_response(create_error_json("Download test failed", str(exc)), status=500)
    return web.json_response(create_download_json(result))


async def upload_sink(request: web.Request) -> web.Response:
    """Accept and discard an upload body, reporting how much arrived."""
    size = 0
    async for chunk in request.content.iter_chunked(CHUNK_SIZE):
        size += len(chunk)

    if size == 0:
        return web.json_response({"message": "No data uploaded for speed test."}, status=400)

    return web.json_response({
        "message": "Data received for upload speed test.",
        "fileSize": size,
        "contentType": request.content_type,
    })


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_app(
    config: Dict[str, Any],
    selector: Optional[MethodSelector] = None,
    latency: Optional[LatencyTester] = None,
    authenticator: Optional[TokenAuthenticator] = None,
) -> web.Application:
    if selector is None:
        profile = load_profile(config)
        selector = MethodSelector(build_methods(config, profile), profile)

    app = web.Application(middlewares=[error_middleware, auth_middleware])
    app[CONFIG_KEY] = config
    app[SELECTOR_KEY] = selector
    app[LATENCY_KEY] = latency or LatencyTester(
        config["ping_url"], count=max(int(config["ping_count"]), 1)
    )
    app[AUTH_KEY] = authenticator or TokenAuthenticator(config.get("api_tokens"))

    app.router.add_get("/api/speedtest", speedtest, name="speedtest-get")
    app.router.add_post("/api/speedtest", speedtest, name="speedtest-post")
    app.router.add_get("/api/speedtest/health", health, name="health")
    app.router.add_get("/api/speedtest/ping", ping, name="ping")
    app.router.add_get("/api/speedtest/download-test", download_test, name="download-test")
    app.router.add_post("/api/speedtest/upload", upload_sink, name="upload")

    LOGGER.info(
        "Speed test routes configured (methods: %s, auth %s)",
        ", ".join(selector.method_names),
        "required" if config.get("require_auth") else "off",
    )
    return app


def run_app(config: Dict[str, Any]) -> None:
    web.run_app(create_app(config), host=config["host"], port=int(config["port"]))
