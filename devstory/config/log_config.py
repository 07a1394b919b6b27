import logging

from devstory.config.settings import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: Settings) -> None:
    """
    Configures root logging once for the process.
    DEBUG in development unless LOG_LEVEL says otherwise.
    """
    level_name = settings.LOG_LEVEL or ("DEBUG" if settings.is_development else "INFO")
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
