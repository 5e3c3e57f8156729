from fastapi import APIRouter, Depends, HTTPException, status

from app.core.security import require_admin
from app.deps import get_tick_store
from app.schemas.telemetry import CoordinatorIn, CoordinatorOut, CoordinatorReadingOut, SensorOut
from app.services.storage import TickStore

router = APIRouter(prefix="/api/coordinators", tags=["coordinators"])


@router.get("", response_model=list[CoordinatorOut])
async def list_coordinators(_admin=Depends(require_admin), store: TickStore = Depends(get_tick_store)):
    coordinators = await store.list_coordinators()
    return [CoordinatorOut(id=c.id, label=c.display_name, token=c.token) for c in coordinators]


@router.get("/{coordinator_id}/sensors", response_model=list[SensorOut])
async def list_coordinator_sensors(coordinator_id: str, store: TickStore = Depends(get_tick_store)):
    sensors = await store.coordinator_sensors(coordinator_id)
    return [SensorOut.model_validate(sensor) for sensor in sensors]


@router.get("/{coordinator_id}/readings", response_model=list[CoordinatorReadingOut])
async def list_coordinator_readings(
    coordinator_id: str,
    start: int = 0,
    stop: int = 99,
    store: TickStore = Depends(get_tick_store),
):
    readings = await store.coordinator_readings(coordinator_id, start, stop)
    return [CoordinatorReadingOut.model_validate(reading) for reading in readings]


@router.api_route("/{coordinator_id}", methods=["PUT", "POST"], response_model=CoordinatorOut)
async def update_coordinator(
    coordinator_id: str,
    payload: CoordinatorIn,
    _admin=Depends(require_admin),
    store: TickStore = Depends(get_tick_store),
):
    await store.set_coordinator_name(coordinator_id, payload.label)
    return CoordinatorOut(id=coordinator_id, label=payload.label)


@router.get("/{coordinator_id}/{token}", response_model=CoordinatorOut)
async def get_coordinator(coordinator_id: str, token: str, store: TickStore = Depends(get_tick_store)):
    stored_token = await store.coordinator_token(coordinator_id)
    if stored_token is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coordinator not found")
    if stored_token != token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect hash for this coordinator")
    label = await store.coordinator_name(coordinator_id)
    return CoordinatorOut(id=coordinator_id, label=label, token=stored_token)
