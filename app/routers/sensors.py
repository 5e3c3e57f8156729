from fastapi import APIRouter, Depends, HTTPException, status

from app.core.security import require_admin
from app.deps import get_tick_store
from app.schemas.telemetry import SensorIn, SensorOut, TickOut
from app.services.downsampler import MAX_DOTS_PER_DAY, downsample
from app.services.storage import TickStore

router = APIRouter(prefix="/api/sensors", tags=["sensors"])


@router.api_route("/{sensor_id}", methods=["PUT", "POST"], response_model=SensorOut)
async def update_sensor(
    sensor_id: str,
    payload: SensorIn,
    _admin=Depends(require_admin),
    store: TickStore = Depends(get_tick_store),
):
    if payload.lat is not None or payload.lng is not None:
        await store.save_sensor_coordinates(sensor_id, payload.lat or "", payload.lng or "")
    if "calibration_constant" in payload.model_fields_set:
        await store.set_calibration_constant(sensor_id, payload.calibration_constant)
    sensor = await store.get_sensor(sensor_id)
    return SensorOut.model_validate(sensor)


@router.get("/{sensor_id}/ticks", response_model=list[TickOut])
async def list_ticks(sensor_id: str, start: int, end: int, store: TickStore = Depends(get_tick_store)):
    ticks = await store.range_by_score(sensor_id, start, end)
    return [TickOut.model_validate(tick) for tick in ticks]


@router.get("/{sensor_id}/dots", response_model=list[TickOut])
async def list_dots(
    sensor_id: str,
    start: int,
    end: int,
    dots_per_day: int,
    store: TickStore = Depends(get_tick_store),
):
    if not 0 <= dots_per_day <= MAX_DOTS_PER_DAY:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"dots_per_day must be in range 0-{MAX_DOTS_PER_DAY}",
        )
    ticks = await store.range_by_score(sensor_id, start, end)
    dots = downsample(ticks, dots_per_day, start, end, sensor_id=sensor_id)
    return [TickOut.model_validate(dot) for dot in dots]
