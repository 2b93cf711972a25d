"""structlog setup plus the request-scoped context every log line carries."""

import logging
import sys

import structlog

# Keys bound for the lifetime of one HTTP request.
REQUEST_KEYS = ("request_id", "path", "user_id", "school_id")

_COMMON_PROCESSORS = (
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
)


def _renderers(json_format: bool) -> list:
    if json_format:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def configure_logging(
    level: str = "INFO", json_format: bool = True, service_name: str = "halaqa"
) -> None:
    """Send stdlib logging and structlog output to stdout at ``level``.

    JSON lines by default, console output for local runs. Every entry
    carries ``service``.

    Raises:
        ValueError: ``level`` is not a logging level name
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    structlog.configure(
        processors=[*_COMMON_PROCESSORS, *_renderers(json_format)],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(**values: str | None) -> None:
    """Bind the given request values to later log entries, skipping empty ones."""
    structlog.contextvars.bind_contextvars(
        **{key: value for key, value in values.items() if value is not None}
    )


def clear_request_context() -> None:
    """Drop the request keys; process-wide keys such as ``service`` stay bound."""
    structlog.contextvars.unbind_contextvars(*REQUEST_KEYS)
