from fastapi import APIRouter, Depends, Query

from app.core.security import require_admin
from app.deps import get_tick_store
from app.models.enums import LogStream
from app.services.storage import TickStore

router = APIRouter(prefix="/api", tags=["logs"])


@router.get("/logs", response_model=list[str])
@router.get("/log", response_model=list[str], include_in_schema=False)
async def recent_logs(
    stream: LogStream = LogStream.V1,
    limit: int = Query(default=1000, ge=1),
    _admin=Depends(require_admin),
    store: TickStore = Depends(get_tick_store),
):
    return await store.recent_log_entries(stream, limit)
