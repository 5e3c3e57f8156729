from . import coordinators, logs, sensors

__all__ = [
    "coordinators",
    "logs",
    "sensors",
]
