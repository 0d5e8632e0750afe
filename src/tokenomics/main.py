"""Entry point for the tokenomics indexer.

Two commands:
- ``serve``: FastAPI app under uvicorn; the lifespan connects storage, opens
  the HTTP session, and starts the daily scheduler when enabled.
- ``index``: one manual indexing run from the shell, ``--force`` to overwrite
  a record that already exists for today.

Component wiring order (in build_components):
1. RecordStore over the connected blob store
2. SourceAggregator over the shared RetryingFetcher
3. DataValidator
4. FallbackBuilder
5. DailyIndexer
6. DailyScheduler
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import typer
import uvicorn
from fastapi import FastAPI

from tokenomics.config import AppSettings
from tokenomics.fallback import FallbackBuilder
from tokenomics.indexer import DailyIndexer
from tokenomics.logging import get_logger, setup_logging
from tokenomics.models import IndexingOutcome
from tokenomics.scheduler import DailyScheduler
from tokenomics.sources.aggregator import SourceAggregator
from tokenomics.sources.fetcher import RetryingFetcher
from tokenomics.storage.blob_store import SQLiteBlobStore
from tokenomics.storage.records import RecordStore
from tokenomics.validation import DataValidator

cli = typer.Typer(help="Daily token-supply indexer.")


def build_components(
    settings: AppSettings,
    blob_store: SQLiteBlobStore,
    fetcher: RetryingFetcher,
) -> dict[str, Any]:
    """Build the indexing graph around an already-connected blob store and fetcher."""
    token = settings.token_config()
    records = RecordStore(blob_store, settings.storage.file_prefix)
    aggregator = SourceAggregator(fetcher, token, settings.sources)
    validator = DataValidator(settings.validation)
    fallback_builder = FallbackBuilder(records)
    indexer = DailyIndexer(aggregator, validator, fallback_builder, records)
    scheduler = DailyScheduler(indexer, settings.schedule)

    return {
        "token": token,
        "blob_store": blob_store,
        "records": records,
        "aggregator": aggregator,
        "validator": validator,
        "fallback_builder": fallback_builder,
        "indexer": indexer,
        "scheduler": scheduler,
    }


@asynccontextmanager
async def open_components(settings: AppSettings) -> AsyncIterator[dict[str, Any]]:
    """Connect storage and the HTTP session, yield the wired components, clean up."""
    async with SQLiteBlobStore(
        settings.storage.db_path, settings.storage.public_base_url
    ) as blob_store:
        async with RetryingFetcher(settings.retry, settings.sources.user_agent) as fetcher:
            yield build_components(settings, blob_store, fetcher)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Attach components to app.state for the lifetime of the server."""
    logger = get_logger("tokenomics.main")
    settings: AppSettings = app.state.settings

    async with open_components(settings) as components:
        app.state.token = components["token"]
        app.state.blob_store = components["blob_store"]
        app.state.records = components["records"]
        app.state.indexer = components["indexer"]

        scheduler: DailyScheduler = components["scheduler"]
        if settings.schedule.enabled:
            await scheduler.start()

        logger.info("lifespan_started", schedule_enabled=settings.schedule.enabled)
        try:
            yield
        finally:
            await scheduler.stop()
            logger.info("tokenomics_indexer_stopped")


async def serve(settings: AppSettings) -> None:
    from tokenomics.api.app import create_app

    logger = get_logger("tokenomics.main")
    app = create_app(lifespan=lifespan)
    app.state.settings = settings

    logger.info("starting_api", host=settings.api.host, port=settings.api.port)
    config = uvicorn.Config(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    await server.serve()


async def index_once(settings: AppSettings, force: bool) -> IndexingOutcome:
    async with open_components(settings) as components:
        indexer: DailyIndexer = components["indexer"]
        return await indexer.run(force=force)


def _print_outcome(outcome: IndexingOutcome) -> None:
    typer.echo(f"[{outcome.status.value}] {outcome.date}: {outcome.message}")
    for warning in outcome.warnings or []:
        typer.echo(f"  warning: {warning}")
    for error in outcome.errors or []:
        typer.echo(f"  error: {error}", err=True)
    if outcome.url:
        typer.echo(f"  stored at: {outcome.url}")
    typer.echo(f"  execution time: {outcome.execution_time_ms}ms")


@cli.command("serve")
def serve_command() -> None:
    """Run the HTTP API (and the daily scheduler, unless disabled)."""
    settings = AppSettings()
    setup_logging(settings.log_level, settings.log_format)
    asyncio.run(serve(settings))


@cli.command("index")
def index_command(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite the record if today's data already exists.",
    ),
) -> None:
    """Run one indexing pass for today and print the outcome."""
    settings = AppSettings()
    setup_logging(settings.log_level, settings.log_format)
    outcome = asyncio.run(index_once(settings, force))
    _print_outcome(outcome)
    if not outcome.success:
        raise typer.Exit(code=1)


def main() -> None:
    try:
        cli()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
