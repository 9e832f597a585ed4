import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str) -> None:
    """Set the level of the ``app`` loggers and make sure their records are emitted.

    A handler is attached only when nothing upstream (uvicorn ``--log-config``,
    a process-wide ``dictConfig``) has configured the root logger, so records
    are never printed twice.
    """
    logger = logging.getLogger("app")
    logger.setLevel(level)
    if logger.handlers or logging.getLogger().handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
