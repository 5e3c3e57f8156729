import logging
import os

from app.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    """Route log output to stderr, or to ``<workdir>/log/<environment>.log`` on servers."""
    if settings.logs_to_file:
        log_dir = os.path.join(settings.workdir, "log")
        os.makedirs(log_dir, mode=0o755, exist_ok=True)
        logging.basicConfig(
            level=settings.log_level,
            format=LOG_FORMAT,
            filename=os.path.join(log_dir, f"{settings.environment}.log"),
        )
    else:
        logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
