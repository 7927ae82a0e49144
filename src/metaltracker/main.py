"""Entry point for the gold & silver rate tracker.

Wires all components together and serves the dashboard API. The refresh
scheduler and the API share a single asyncio event loop via uvicorn's
programmatic API and FastAPI's lifespan context manager.

Component wiring order (in _build_components):
1. Clock and timezone
2. KeyValueDatabase (SQLite, connected by the caller)
3. HistoryStore
4. Shared httpx.AsyncClient and providers (MetalpriceAPI, then Metals.dev)
5. FallbackChain
6. RateService
7. RefreshScheduler
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import httpx
import uvicorn
from fastapi import FastAPI

from metaltracker.clock import MS_PER_SECOND, SystemClock, load_timezone
from metaltracker.config import AppSettings
from metaltracker.history.database import KeyValueDatabase
from metaltracker.history.store import HistoryStore
from metaltracker.logging import get_logger, setup_logging
from metaltracker.providers.metalprice import MetalpriceProvider
from metaltracker.providers.metalsdev import MetalsDevProvider
from metaltracker.rates.fallback import FallbackChain
from metaltracker.scheduler import RefreshScheduler
from metaltracker.service import RateService


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all tracker components from settings.

    Note: Does NOT connect the database or open network connections --
    that happens in start_components().
    """
    logger = get_logger("metaltracker.main")

    clock = SystemClock()
    tz = load_timezone(settings.history.timezone)

    kv = KeyValueDatabase(settings.history.db_path)
    history = HistoryStore(
        kv,
        tz=tz,
        capacity=settings.history.capacity,
        seed_days=settings.history.seed_days,
        clock=clock,
    )

    http_client = httpx.AsyncClient(timeout=settings.providers.request_timeout)
    providers = [
        MetalpriceProvider(
            api_key=settings.providers.metalprice_api_key.get_secret_value(),
            url=settings.providers.metalprice_url,
            client=http_client,
            timeout=settings.providers.request_timeout,
            clock=clock,
        ),
        MetalsDevProvider(
            api_key=settings.providers.metalsdev_api_key.get_secret_value(),
            url=settings.providers.metalsdev_url,
            client=http_client,
            timeout=settings.providers.request_timeout,
            clock=clock,
        ),
    ]

    if not any(p.is_configured for p in providers):
        logger.warning(
            "no_provider_keys_configured",
            note="Set PROVIDER_METALPRICE_API_KEY or PROVIDER_METALSDEV_API_KEY "
            "for live rates. Cached or approximate rates will be served.",
        )

    chain = FallbackChain(providers, history, clock=clock)
    service = RateService(chain, history, clock=clock)
    scheduler = RefreshScheduler(
        service,
        clock=clock,
        interval_ms=settings.refresh.interval_seconds * MS_PER_SECOND,
    )

    return {
        "kv": kv,
        "history": history,
        "http_client": http_client,
        "chain": chain,
        "service": service,
        "scheduler": scheduler,
    }


async def start_components(components: dict[str, Any], settings: AppSettings) -> None:
    """Connect storage, seed history on first run, start the scheduler."""
    await components["kv"].connect()
    await components["service"].initialize()
    if settings.refresh.enabled:
        await components["scheduler"].start()


async def stop_components(components: dict[str, Any]) -> None:
    """Stop the scheduler, let a running refresh finish, then release
    network and database resources."""
    await components["scheduler"].stop()
    await components["service"].wait_idle()
    await components["http_client"].aclose()
    await components["kv"].close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application."""
    logger = get_logger("metaltracker.main")
    settings = app.state.settings
    components = app.state.components

    app.state.rate_service = components["service"]
    app.state.scheduler = components["scheduler"]

    await start_components(components, settings)
    logger.info("lifespan_started", db_path=settings.history.db_path)

    yield

    await stop_components(components)
    logger.info("metaltracker_stopped")


async def run() -> None:
    """Run the tracker.

    With the dashboard enabled (DASHBOARD_ENABLED=true, the default) the API
    is served by uvicorn and the lifespan owns startup/shutdown. Otherwise
    only the refresh scheduler runs until SIGINT/SIGTERM.
    """
    settings = AppSettings()

    setup_logging(settings.log_level)
    logger = get_logger("metaltracker.main")

    components = _build_components(settings)

    if settings.dashboard.enabled:
        from metaltracker.dashboard.app import create_dashboard_app

        app = create_dashboard_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = components

        logger.info(
            "starting_with_dashboard",
            host=settings.dashboard.host,
            port=settings.dashboard.port,
        )

        config = uvicorn.Config(
            app,
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            log_level="warning",
        )
        server = uvicorn.Server(config)
        await server.serve()
        return

    logger.info("starting_without_dashboard")
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await start_components(components, settings)
        await stop_event.wait()
    finally:
        await stop_components(components)
        logger.info("metaltracker_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
