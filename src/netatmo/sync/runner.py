"""Wire settings, credentials, the API client and a sink into one sync run."""

from __future__ import annotations

import logging

import httpx

from src.config import Settings
from src.netatmo.api.client import NetatmoClient, build_http_client
from src.netatmo.config_loader import SyncConfig
from src.netatmo.credentials import CredentialStore
from src.netatmo.sinks.base import MetricsSink
from src.netatmo.sinks.stdout import StdoutSink
from src.netatmo.sinks.victoria import VictoriaMetricsSink
from src.netatmo.sync.paginator import Paginator
from src.netatmo.sync.resume import ResumeCoordinator, ResumeState
from src.netatmo.sync.session import SyncResult, SyncSession
from src.netatmo.sync.units import build_units

logger = logging.getLogger("netatmo_sync.sync.runner")


def build_sink(settings: Settings, config: SyncConfig) -> MetricsSink:
    """VictoriaMetrics when a destination is set, stdout otherwise."""
    if settings.dest:
        logger.info("Exporting to %s", settings.dest)
        return VictoriaMetricsSink.for_dest(settings.dest, config.sink, timeout=config.api.timeout_seconds)
    logger.info("No destination set; writing exposition text to stdout")
    return StdoutSink(metric_prefix=config.sink.metric_prefix)


async def run_sync(
    settings: Settings,
    config: SyncConfig,
    sink: MetricsSink | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[SyncResult]:
    """Discover stations and sync every unit once.

    Args:
        settings:  Runtime settings (destination, resume token, lookbacks).
        config:    Sync tunables.
        sink:      Override the sink built from settings (for testing).
        transport: Underlying API transport (for testing).

    Raises:
        ResumeTokenError: If ``settings.resume`` is malformed (before any request).
        NetatmoSyncError: On the first failure of any unit.
    """
    resume = ResumeState.from_text(settings.resume)

    store = CredentialStore(settings.credentials_path)
    credentials = store.load()

    sink = sink or build_sink(settings, config)
    try:
        http = build_http_client(
            config,
            credentials.to_tokens(),
            client_id=credentials.client_id,
            client_secret=credentials.client_secret,
            on_refresh=store.save_tokens,
            transport=transport,
        )
        try:
            client = NetatmoClient(http, verbose=settings.verbose)
            units = build_units(await client.get_stations())
            logger.info("Syncing %d unit(s)", len(units))

            coordinator = ResumeCoordinator(
                resume,
                sink,
                incremental=settings.incremental,
                incremental_since=settings.incremental_since,
                since=settings.since,
            )
            session = SyncSession(Paginator(client, config.api.measure), coordinator, sink)
            results = await session.run(units)
            if resume.pending:
                logger.warning("Resume token %s matched no unit", resume.token)
            return results
        finally:
            await http.aclose()
    finally:
        await sink.aclose()
