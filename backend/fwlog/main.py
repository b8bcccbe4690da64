from __future__ import annotations

import asyncio
import logging
import signal
from datetime import tzinfo
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .api import routes_ingest
from .config import AppConfig, parse_args
from .errors import ConnectivityError, ZoneLoadError
from .ingest.pipeline import IngestPipeline
from .ingest.stats import ingest_stats
from .ingest.syslog_udp import run_syslog_udp_server
from .ingest.timestamps import TimestampNormalizer, load_local_zone
from .storage.db import init_engine_and_sessionmaker
from .storage.persister import RecordPersister

logger = logging.getLogger("fwlog")


def create_app(config: AppConfig) -> FastAPI:
    app = FastAPI(title="Firewall syslog ingest")
    app.include_router(routes_ingest.router, prefix="/api")
    app.state.app_config = config
    return app


async def _run_uvicorn(app: FastAPI, config: AppConfig, shutdown_event: asyncio.Event) -> None:
    """Run Uvicorn server until shutdown_event is set."""
    config_kwargs = {
        "host": config.web_host,
        "port": config.web_port,
        "log_level": config.log_level,
        "loop": "asyncio",
        "factory": False,
    }
    server = uvicorn.Server(uvicorn.Config(app, **config_kwargs))

    async def serve() -> None:
        logger.info("Starting HTTP stats API on %s:%s", config.web_host, config.web_port)
        await server.serve()

    server_task = asyncio.create_task(serve(), name="uvicorn-server")

    await shutdown_event.wait()
    logger.info("Shutdown event received, stopping HTTP server...")
    server.should_exit = True
    await server_task


async def _run_syslog(
    config: AppConfig,
    shutdown_event: asyncio.Event,
    pipeline: IngestPipeline,
    zone: tzinfo,
) -> None:
    logger.info("Starting UDP syslog receiver on %s:%s", config.syslog_host, config.syslog_port)
    await run_syslog_udp_server(
        host=config.syslog_host,
        port=config.syslog_port,
        shutdown_event=shutdown_event,
        handler=pipeline.submit,
        zone=zone,
    )


async def _run_stats_logger(shutdown_event: asyncio.Event, interval_seconds: int) -> None:
    """Log ingest counters every interval_seconds."""
    if interval_seconds <= 0:
        return
    while not shutdown_event.is_set():
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval_seconds)
            return
        except asyncio.TimeoutError:
            ingest_stats.log_summary()


def open_store(config: AppConfig) -> RecordPersister:
    """Connect to the configured store and make sure the Logs table exists.

    Raises ConnectivityError when the store cannot be reached.
    """
    engine, SessionLocal = init_engine_and_sessionmaker(config.resolved_database_url())
    persister = RecordPersister(
        engine,
        SessionLocal,
        retry_attempts=config.retry_attempts,
        retry_base_sleep=config.retry_base_sleep,
    )
    persister.check_connectivity()
    logger.info("Connected to store %s", engine.url.render_as_string(hide_password=True))
    persister.create_schema()
    return persister


async def main_async(config: AppConfig) -> None:
    # Configure logging
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    zone = load_local_zone(config.timezone)
    logger.info("Labelling syslog timestamps with zone %s", zone)
    normalizer = TimestampNormalizer(zone)

    persister = open_store(config)

    pipeline = IngestPipeline(
        persister,
        normalizer,
        queue_size=config.queue_size,
        backlog_max=config.backlog_max,
    )

    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown_event.set)

    tasks = [
        _run_syslog(config, shutdown_event, pipeline, zone),
        pipeline.run(shutdown_event),
        _run_stats_logger(shutdown_event, config.stats_interval),
    ]
    if config.serve_api:
        tasks.append(_run_uvicorn(create_app(config), config, shutdown_event))

    try:
        await asyncio.gather(*tasks)
    finally:
        ingest_stats.log_summary()
        persister.dispose()


def cli(argv: Optional[list[str]] = None) -> None:
    """Console entrypoint defined in pyproject."""
    config = parse_args(argv)
    try:
        asyncio.run(main_async(config))
    except (ZoneLoadError, ConnectivityError) as exc:
        logger.critical("Startup failed: %s", exc)
        raise SystemExit(1) from exc


def main() -> None:
    """Entrypoint for `python -m fwlog`."""
    cli()


if __name__ == "__main__":
    main()
