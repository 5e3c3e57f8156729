from app.core.config import Settings, get_settings
from app.services.storage import TickStore

tick_store = TickStore.from_settings(get_settings())


def get_app_settings() -> Settings:
    return get_settings()


async def get_tick_store() -> TickStore:
    yield tick_store
