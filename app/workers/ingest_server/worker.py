"""Raw TCP listeners that feed device uploads into the ingestion pipeline."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time

from app.core.config import Settings
from app.models.enums import FormatVersion
from app.services.decoders import DecodeError
from app.services.ingestion import IngestionPipeline
from app.services.storage import StoreUnavailable

log = logging.getLogger("ingest-server")

TERMINATOR = b"\r\n"


async def read_upload(reader: asyncio.StreamReader, chunk_size: int) -> bytes:
    """Accumulate chunks until EOF or a chunk that starts with CR LF.

    Only the first two bytes of each chunk are inspected, so a terminator
    in the middle of a chunk or split across two chunks does not end the
    upload.
    """
    buf = bytearray()
    while True:
        chunk = await reader.read(chunk_size)
        if not chunk:
            break
        buf.extend(chunk)
        if chunk[:2] == TERMINATOR:
            break
    return bytes(buf)


class IngestServer:
    """One asyncio listener per wire format; the port selects the decoder."""

    def __init__(self, pipeline: IngestionPipeline, settings: Settings) -> None:
        self.pipeline = pipeline
        self.settings = settings
        self._servers: dict[FormatVersion, asyncio.Server] = {}

    def configured_ports(self) -> dict[FormatVersion, int]:
        ports = {
            FormatVersion.V1: self.settings.v1_port,
            FormatVersion.V2: self.settings.v2_port,
            FormatVersion.V3: self.settings.v3_port,
        }
        return {version: port for version, port in ports.items() if port}

    @property
    def ports(self) -> dict[FormatVersion, int]:
        """Ports actually bound, useful when listening on port 0."""
        return {version: server.sockets[0].getsockname()[1] for version, server in self._servers.items()}

    async def start(self, bindings: dict[FormatVersion, int] | None = None) -> None:
        bindings = self.configured_ports() if bindings is None else bindings
        for version, port in bindings.items():
            server = await asyncio.start_server(
                lambda reader, writer, version=version: self._handle_connection(version, reader, writer),
                host=self.settings.listen_host,
                port=port,
            )
            self._servers[version] = server
            log.info("V%d server started on port %d", version, self.ports[version])

    async def serve_forever(self) -> None:
        await asyncio.gather(*(server.serve_forever() for server in self._servers.values()))

    async def close(self) -> None:
        for server in self._servers.values():
            server.close()
        for server in self._servers.values():
            await server.wait_closed()
        self._servers.clear()

    async def _handle_connection(
        self, version: FormatVersion, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        peer = writer.get_extra_info("peername")
        log.info("New v%d connection from %s", version, peer)
        try:
            try:
                data = await asyncio.wait_for(
                    read_upload(reader, self.settings.read_chunk_size),
                    timeout=self.settings.socket_timeout_seconds,
                )
            except asyncio.TimeoutError:
                log.warning("Connection timeout from %s, dropping partial upload", peer)
                return
            if not data:
                log.info("Connection from %s closed without data", peer)
                return

            start = time.monotonic()
            upload = await self.pipeline.handle(version, data)
            log.info(
                "Upload with %d readings processed in %.3fs", len(upload.readings), time.monotonic() - start
            )
        except DecodeError:
            # Already logged with the raw payload by the pipeline.
            return
        except StoreUnavailable:
            log.exception("Store failure while ingesting v%d upload from %s", version, peer)
        except ConnectionError as exc:
            log.warning("Connection from %s failed: %s", peer, exc)
        except Exception:
            log.exception("Unexpected error while ingesting v%d upload from %s", version, peer)
        finally:
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()
