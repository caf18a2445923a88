"""
Logging configuration.
Uvicorn and application loggers share one level; payment/payout failures are logged
by the services with logger.warning / logger.exception.
"""
import logging
import sys


def setup_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
) -> None:
    if format_string is None:
        format_string = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=format_string,
        stream=sys.stdout,
        force=True,
    )
    # Uvicorn loggers: keep access and error levels in line
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    # app loggers
    logging.getLogger("crypbuy").setLevel(level)
    logging.getLogger("app").setLevel(level)
    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
