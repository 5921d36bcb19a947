"""
CLI entry point for rebuilding the appointment index.

Usage:
    rebuild-appointments --max-tickets 500
    python -m core.commands.rebuild_appointments --database-url postgresql://... --verbose
"""

import argparse
import logging
import sys

from clients.document_store import DocumentStoreError
from clients.postgres_store import PostgresDocumentStore
from clients.vault_client import VaultError, get_database_url
from core.event_bus import EventBus
from core.services.appointment_rebuild import AppointmentRebuildJob

logger = logging.getLogger(__name__)


def _load_config():
    # utils.config validates the environment on import
    from utils.config import load_config
    return load_config()


def _configure_logging(verbose: bool, log_level: str) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        )
    else:
        logging.basicConfig(
            level=log_level.upper(),
            format="%(asctime)s %(levelname)s: %(message)s",
        )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Re-derive appointment records from tickets and their service items."
    )
    parser.add_argument(
        "--max-tickets",
        type=int,
        default=None,
        help="Maximum number of tickets to scan (default: REBUILD_MAX_TICKETS).",
    )
    parser.add_argument(
        "--flush-threshold",
        type=int,
        default=None,
        help="Writes per committed batch (default: REBUILD_FLUSH_THRESHOLD).",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="PostgreSQL URL of the document store (default: read from Vault).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging output.",
    )

    args = parser.parse_args(argv)

    store = None
    try:
        config = _load_config()
        _configure_logging(args.verbose, config.log_level)

        store = PostgresDocumentStore(args.database_url or get_database_url())
        store.ensure_schema()

        flush_threshold = args.flush_threshold
        if flush_threshold is None:
            flush_threshold = config.store.rebuild_flush_threshold
        max_tickets = args.max_tickets
        if max_tickets is None:
            max_tickets = config.store.rebuild_max_tickets

        job = AppointmentRebuildJob(
            store,
            EventBus(),
            flush_threshold=flush_threshold,
            max_service_items=config.store.rebuild_max_service_items,
        )
        result = job.run(max_tickets=max_tickets)
    except (VaultError, DocumentStoreError, ValueError) as e:
        logger.debug("Rebuild failed", exc_info=True)
        sys.stderr.write(f"Rebuild failed: {e}\n")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()

    sys.stdout.write(
        f"Rebuild complete. Tickets scanned: {result.tickets_scanned}, "
        f"appointments upserted: {result.appointments_upserted}, "
        f"appointments deleted: {result.appointments_deleted}, "
        f"batches: {result.batches_committed}\n"
    )


if __name__ == "__main__":
    main()
