"""Entry point for the TCP ingest server."""

import asyncio
import logging

from app.core.config import get_settings
from app.core.logging import configure_logging
from app.services.ingestion import IngestionPipeline
from app.services.storage import TickStore
from app.workers.ingest_server.worker import IngestServer

log = logging.getLogger("ingest-server")


async def main():
    """Server entry point."""
    settings = get_settings()
    configure_logging(settings)
    store = TickStore.from_settings(settings)
    server = IngestServer(IngestionPipeline(store), settings)
    try:
        await server.start()
        await server.serve_forever()
    finally:
        await server.close()
        await store.close()
        log.info("Ingest server stopped")


if __name__ == "__main__":
    asyncio.run(main())
