from fastapi import APIRouter

from . import coordinators, logs, sensors

API_ROUTERS: tuple[APIRouter, ...] = (
    coordinators.router,
    sensors.router,
    logs.router,
)

__all__ = ["API_ROUTERS"]
