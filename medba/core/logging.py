import logging
from typing import Any, Optional

from fastapi import Request
from rich.logging import RichHandler

from medba.config.settings import LoggingConfig, config

logger = logging.getLogger("medba.request")


class InjectRequestIdFilter(logging.Filter):
    """Ensure every record has a request_id, defaulting to '-'"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        return True


def setup_logging(settings: Optional[LoggingConfig] = None) -> logging.Logger:
    """Configure the ``medba`` logger tree once, from configuration"""
    settings = settings or config.logging
    root = logging.getLogger("medba")
    root.setLevel(settings.level)

    for handler in list(root.handlers):
        root.removeHandler(handler)

    if settings.enable_rich:
        handler: logging.Handler = RichHandler(rich_tracebacks=True, show_path=False)
    else:
        handler = logging.StreamHandler()

    handler.setFormatter(logging.Formatter(settings.format))
    handler.addFilter(InjectRequestIdFilter())
    root.addHandler(handler)
    root.propagate = False
    return root


def log_with_context(
    request: Request,
    level: int,
    message: str,
    exc_info: bool = False,
    **kwargs: Any
) -> None:
    """
    Log with request context.
    Automatically includes request_id for tracing.
    """
    extra = {
        "request_id": getattr(request.state, "request_id", "unknown"),
        **kwargs
    }
    logger.log(level, message, exc_info=exc_info, extra=extra)


def log_info(request: Request, message: str, **kwargs: Any) -> None:
    log_with_context(request, logging.INFO, message, **kwargs)


def log_error(request: Request, message: str, exc_info: bool = False, **kwargs: Any) -> None:
    log_with_context(request, logging.ERROR, message, exc_info=exc_info, **kwargs)


def log_warning(request: Request, message: str, **kwargs: Any) -> None:
    log_with_context(request, logging.WARNING, message, **kwargs)


def log_debug(request: Request, message: str, **kwargs: Any) -> None:
    log_with_context(request, logging.DEBUG, message, **kwargs)
