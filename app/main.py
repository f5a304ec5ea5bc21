"""Entry point for the FastAPI-powered home feed service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .services.airing import AiringRailBuilder
from .services.bangumi import BangumiClient
from .services.cache_gateway import HomeCacheGateway
from .services.cache_store import RemoteJsonStore
from .services.caches import ProcessCaches
from .services.feeds import FeedClient
from .services.home_feed import HomeFeedService, UpstreamUnavailableError
from .services.omdb import OmdbClient, RatingsEnricher
from .services.tvmaze import TvmazeClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

HOME_CACHE_CONTROL = "public, s-maxage=600, stale-while-revalidate=120"

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    feed_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            timeout=httpx.Timeout(settings.feed_timeout_seconds, connect=5.0),
            follow_redirects=True,
        )
    )
    enrichment_timeout = httpx.Timeout(settings.enrichment_timeout_seconds, connect=5.0)
    omdb_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=enrichment_timeout)
    )
    tvmaze_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=enrichment_timeout, follow_redirects=True)
    )
    bangumi_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            timeout=enrichment_timeout,
            headers={"User-Agent": f"{settings.app_name}/1.0"},
        )
    )
    store_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=httpx.Timeout(10.0, connect=5.0))
    )

    caches = ProcessCaches()
    store = RemoteJsonStore(store_http)
    omdb = OmdbClient(settings, omdb_http, store, caches)
    service = HomeFeedService(
        settings,
        FeedClient(settings, feed_http),
        HomeCacheGateway(settings, store),
        RatingsEnricher(settings, omdb),
        AiringRailBuilder(
            settings,
            TvmazeClient(settings, tvmaze_http, caches),
            BangumiClient(settings, bangumi_http),
        ),
    )

    fastapi_app.state.home_feed_service = service
    fastapi_app.state.remote_store = store

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await store.drain()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Merged Douban and TMDB home feed with ratings and an airing rail",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_home_feed_service(app: FastAPI) -> HomeFeedService:
    service = getattr(app.state, "home_feed_service", None)
    if not isinstance(service, HomeFeedService):
        raise RuntimeError("Home feed service not initialised")
    return service


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/home/merged")
    async def merged_home(request: Request) -> JSONResponse:
        service = get_home_feed_service(fastapi_app)
        try:
            result = await service.get_home(_request_origin(request))
        except UpstreamUnavailableError as exc:
            logger.warning(
                "Both home feeds failed (douban=%s, tmdb=%s)",
                exc.douban_status,
                exc.tmdb_status,
            )
            return JSONResponse(exc.to_payload(), status_code=502)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to build merged home feed")
            return JSONResponse(
                {"error": "Unexpected error", "details": str(exc)}, status_code=500
            )
        return JSONResponse(
            result.payload,
            headers={
                "Cache-Control": HOME_CACHE_CONTROL,
                "x-cache": result.cache_status,
            },
        )


def _request_origin(request: Request) -> str:
    headers = request.headers
    scheme = _first_forwarded_value(headers.get("x-forwarded-proto")) or request.url.scheme
    host = _first_forwarded_value(headers.get("x-forwarded-host"))
    if not host:
        host = request.url.netloc
    return f"{scheme}://{host}".rstrip("/")


def _first_forwarded_value(header_value: str | None) -> str | None:
    if not header_value:
        return None
    return header_value.split(",", 1)[0].strip()


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
