"""Entry point for the funding lending bot.

Loads configuration, wires the BotContext and Scheduler, optionally embeds
the FastAPI status API, and runs until SIGINT/SIGTERM. When the status API
is enabled, the scheduler and uvicorn share one asyncio event loop via
FastAPI's lifespan context manager.

Component wiring order:
1. AppSettings (environment + optional TOML file)
2. Logging setup
3. BotContext (database pool, one lending client per exchange)
4. Scheduler (one PairRunner per configured pair)
"""

import argparse
import asyncio
import signal
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from lendbot.config import AppSettings, load_settings
from lendbot.exceptions import ConfigError
from lendbot.logging import get_logger, setup_logging
from lendbot.scheduler import BotContext, Scheduler


def _setup_signal_handlers(scheduler: Scheduler) -> None:
    """Stop the scheduler on SIGINT/SIGTERM.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("lendbot.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        asyncio.create_task(scheduler.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the scheduler for the lifetime of the status API.

    On startup: opens the context, starts the scheduler as a background task.
    On shutdown: stops the scheduler and closes clients and the pool.
    """
    logger = get_logger("lendbot.main")
    context: BotContext = app.state.context
    scheduler: Scheduler = app.state.scheduler
    app.state.pool = context.pool

    await context.open()
    scheduler_task = asyncio.create_task(scheduler.run())
    logger.info("lifespan_started", pairs=len(scheduler.runners))

    yield

    await scheduler.stop()
    try:
        await scheduler_task
    except asyncio.CancelledError:
        pass
    await context.close()
    logger.info("lending_bot_stopped")


async def run(settings: AppSettings) -> None:
    """Run the lending bot with or without the status API."""
    logger = get_logger("lendbot.main")

    context = BotContext.build(settings)
    scheduler = Scheduler(context)

    if settings.dashboard.enabled:
        from lendbot.dashboard.app import create_status_app

        app = create_status_app(lifespan=lifespan)
        app.state.context = context
        app.state.scheduler = scheduler

        logger.info(
            "starting_with_status_api",
            host=settings.dashboard.host,
            port=settings.dashboard.port,
        )
        config = uvicorn.Config(
            app,
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            log_level="warning",  # Suppress uvicorn access logs
        )
        await uvicorn.Server(config).serve()
    else:
        _setup_signal_handlers(scheduler)
        logger.info(
            "starting_without_status_api",
            pairs=len(scheduler.runners),
            tick_interval=settings.scheduler.tick_interval_seconds,
        )
        try:
            await context.open()
            await scheduler.run()
        finally:
            await context.close()
            logger.info("lending_bot_stopped")


def main(argv: list[str] | None = None) -> None:
    """Synchronous entry point."""
    parser = argparse.ArgumentParser(description="Funding-market lending bot")
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="TOML configuration file (default: ./config.toml if present)",
    )
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        setup_logging()
        get_logger("lendbot.main").critical("invalid_configuration", error=str(e))
        sys.exit(2)

    setup_logging(settings.log_level)

    try:
        asyncio.run(run(settings))
    except ConfigError as e:
        get_logger("lendbot.main").critical("invalid_configuration", error=str(e))
        sys.exit(2)


if __name__ == "__main__":
    main()
