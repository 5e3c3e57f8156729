from __future__ import annotations

import logging
from datetime import datetime

from app.models.enums import FormatVersion
from app.services.codec import adc_temperature
from app.services.decoders import DECODERS, DecodeError, Upload
from app.services.storage import StoreUnavailable, TickStore

log = logging.getLogger("ingestion")


class IngestionPipeline:
    """Decodes one raw upload and persists everything it contains."""

    def __init__(self, store: TickStore):
        self.store = store

    async def handle(self, version: FormatVersion, data: bytes, received_at: datetime | None = None) -> Upload:
        log.info("Upload v%d: %r", version, data)
        try:
            await self.store.push_log(version, data)
        except StoreUnavailable:
            log.exception("Could not append v%d upload to the diagnostic log", version)

        try:
            upload = DECODERS[version](data, received_at)
        except DecodeError as exc:
            log.warning("Rejected v%d upload %r: %s", version, data, exc)
            raise

        if version is FormatVersion.V2:
            await self._calibrate(upload)
        if upload.coordinator_reading is not None:
            await self.store.save_coordinator_reading(upload.coordinator_reading)
        for reading in upload.readings:
            await self.store.save(reading)
        return upload

    async def _calibrate(self, upload: Upload) -> None:
        for reading in upload.readings:
            constant = await self.store.calibration_constant(reading.sensor_id)
            if constant is not None:
                reading.temperature = adc_temperature(reading.raw_temperature, constant)
