from loguru import logger
import os

_logger_initialized = False
_sink_ids: list[int] = []

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {extra[component]} | {message}"


def setup_logger(
    log_level: str = "INFO",
    log_path: str | None = "/data/logs/crawlvault.log",
    component: str | None = None,
):
    global _logger_initialized, _sink_ids

    resolved_component = component or os.getenv("CRAWLVAULT_COMPONENT") or "crawlvault"

    if not _logger_initialized:
        logger.remove()
        logger.configure(extra={"component": "crawlvault"})

        sinks = []
        if log_path:
            os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)
            sinks.append(
                logger.add(
                    log_path,
                    rotation="10 MB",
                    retention="7 days",
                    level=log_level,
                    format=LOG_FORMAT,
                )
            )
        sinks.append(
            logger.add(
                lambda msg: print(msg, end=""),
                colorize=True,
                level=log_level,
                format=LOG_FORMAT,
            )
        )

        _sink_ids = sinks
        _logger_initialized = True

    return logger.bind(component=resolved_component)


def component_logger(component: str, handle=None):
    """Return ``handle`` if the caller supplied one, else a bound loguru logger."""
    if handle is not None:
        return handle
    return logger.bind(component=component)
