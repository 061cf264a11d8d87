"""netatmo-sync — command-line entry point.

Run once (typically from cron or a systemd timer):
    python -m src.main --dest victoria:8428

Flags override the ``NETATMO_*`` environment variables read by
``src.config.Settings``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from src.config import Settings, get_settings, parse_duration
from src.netatmo.config_loader import ConfigValidationError, load_sync_config
from src.netatmo.exceptions import NetatmoSyncError, ResumeTokenError
from src.netatmo.sync.runner import run_sync

logger = logging.getLogger("netatmo_sync")


def build_parser(defaults: Settings) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="netatmo-sync",
        description="Incrementally export Netatmo station history into VictoriaMetrics.",
    )
    p.add_argument(
        "--dest", default=defaults.dest,
        help="Destination host:port. Must accept Prometheus queries and imports at "
        "VictoriaMetrics routes. Empty writes to stdout.",
    )
    p.add_argument(
        "--resume", default=defaults.resume,
        help="The resume token that was logged. Units before it are skipped.",
    )
    p.add_argument(
        "--incremental", action=argparse.BooleanOptionalAction, default=defaults.incremental,
        help="Query for the last timestamp exported and start from there.",
    )
    p.add_argument(
        "--incremental-since", type=parse_duration, default=defaults.incremental_since,
        help="How far back to look for the last written sample (e.g. 90d).",
    )
    p.add_argument(
        "--since", type=parse_duration, default=defaults.since,
        help="Start this long ago when no sample is found. 0 starts from the first recorded sample.",
    )
    p.add_argument(
        "--credentials", type=Path, default=defaults.credentials_path,
        help="OAuth credentials file (client_id, client_secret, token).",
    )
    p.add_argument(
        "--config", type=Path, default=None,
        help="Override the bundled sync_config.yaml.",
    )
    p.add_argument("--verbose", action="store_true", default=defaults.verbose, help="Verbose logging")
    return p


def configure_logging(level: str, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
    # Keep request logging to ours; httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main(argv: list[str] | None = None) -> int:
    defaults = get_settings()
    args = build_parser(defaults).parse_args(argv)
    configure_logging(defaults.log_level, args.verbose)

    settings = defaults.model_copy(
        update={
            "dest": args.dest,
            "resume": args.resume,
            "incremental": args.incremental,
            "incremental_since": args.incremental_since,
            "since": args.since,
            "credentials_path": args.credentials,
            "verbose": args.verbose,
        }
    )
    try:
        config = load_sync_config(args.config)
        asyncio.run(run_sync(settings, config))
    except (ConfigValidationError, FileNotFoundError) as exc:
        logger.error("Invalid config: %s", exc)
        return 1
    except ResumeTokenError as exc:
        logger.error("%s", exc)
        return 2
    except NetatmoSyncError as exc:
        logger.error("Sync failed: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
