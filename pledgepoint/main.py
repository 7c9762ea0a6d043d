"""
Command line entry point

PledgePoint runs in-process inside the platform's services, so there is no
server to start. ``pledgepoint`` prepares the database once (schema plus the
default badge catalog) and exits. ``--serve-metrics`` keeps the process alive
afterwards only to host the Prometheus exporter for a sidecar deployment.
"""
import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from pledgepoint.config import validate_config, LOG_LEVEL, ENABLE_METRICS, METRICS_PORT
from pledgepoint.db.connection import db
from pledgepoint.db.schema import create_schema
from pledgepoint.exceptions import PledgePointError
from pledgepoint.observability.metrics import init_metrics
from pledgepoint.observability.sentry_config import init_sentry, shutdown_sentry
from pledgepoint.services.container import init_container

logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL.upper())
)

logger = logging.getLogger(__name__)


async def init_database() -> int:
    """Create tables and seed badges; returns how many badges were added"""
    logger.info("Opening database connection pool...")
    await db.init_pool()
    await create_schema(db)

    container = init_container(db)

    logger.info("Seeding badge catalog...")
    added = await container.gamification_service.seed_badge_catalog()
    logger.info(f"Badge catalog ready ({added} badges added)")
    return added


async def main(serve_metrics: bool = False) -> int:
    """Run the init command; returns the process exit code"""
    try:
        logger.info("Validating configuration...")
        validate_config()
        init_sentry()

        await init_database()

        if serve_metrics:
            if not ENABLE_METRICS:
                logger.error("--serve-metrics given but ENABLE_METRICS is false")
                return 2
            logger.info(f"Serving metrics on port {METRICS_PORT}. Press Ctrl+C to stop.")
            init_metrics(METRICS_PORT)
            await asyncio.Event().wait()

        return 0

    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Shutting down...")
        return 0
    except PledgePointError as e:
        # Already logged with context when raised
        logger.error(f"Initialisation failed: {e.user_message}")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await db.close_pool()
        shutdown_sentry()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pledgepoint",
        description="Prepare the PledgePoint gamification database",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="init",
        choices=["init"],
        help="create tables and seed the default badges (default)",
    )
    parser.add_argument(
        "--serve-metrics",
        action="store_true",
        help="after init, keep running to expose Prometheus metrics",
    )
    return parser


def run(argv: Optional[Sequence[str]] = None) -> None:
    """Console script entry point"""
    args = build_parser().parse_args(argv)
    sys.exit(asyncio.run(main(serve_metrics=args.serve_metrics)))


if __name__ == "__main__":
    run()
