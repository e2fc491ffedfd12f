# resize_proxy/infra/logging_config.py
import logging
import sys
import json
from datetime import datetime, timezone
from urllib.parse import urlsplit

# Record attributes set through LogContext / ``extra=`` that formatters emit
CONTEXT_FIELDS = ("request_id", "host", "mode", "error_kind", "status_code", "duration_ms")


def _context(record: logging.LogRecord) -> dict:
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shipping in production"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        log_data.update(_context(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Coloured single-line format for development"""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    # Shown inline in the console; the rest only go to JSON
    INLINE_FIELDS = ("req", "host", "mode")

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%H:%M:%S")

        context = _context(record)
        if "request_id" in context:
            context["req"] = str(context.pop("request_id"))[:8]
        parts = [f"{name}={context[name]}" for name in self.INLINE_FIELDS if name in context]
        suffix = f" [{' '.join(parts)}]" if parts else ""

        line = (
            f"{color}{timestamp} {record.levelname:8}{self.RESET} "
            f"{record.name}{suffix} - {record.getMessage()}"
        )
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


# Third-party loggers and the level they are capped at
_NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "aiohttp.access": logging.WARNING,
    "PIL": logging.WARNING,
}


def setup_logging(level: str = "INFO", use_json: bool = False) -> None:
    """
    Configure the root logger with a single stdout handler.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_json: JSON lines (production) instead of coloured console output
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if use_json else ConsoleFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    for name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)

    logging.info(f"Logging configured: level={level}, json={use_json}")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext(logging.LoggerAdapter):
    """Logger that stamps request_id / host / mode onto every record"""

    def __init__(
            self,
            logger: logging.Logger,
            request_id: str | None = None,
            host: str | None = None,
            mode: str | None = None,
    ):
        context = {
            k: v for k, v in (("request_id", request_id), ("host", host), ("mode", mode))
            if v is not None
        }
        super().__init__(logger, context)

    def process(self, msg, kwargs):
        kwargs["extra"] = {**kwargs.get("extra", {}), **self.extra}
        return msg, kwargs


def mask_url(url: str) -> str:
    """Shorten a source URL for logging.

    Example: ``mask_url("https://cdn.example.com/a/b/photo.jpg?sig=abc")``
    → ``"cdn.example.com/.../photo.jpg"``

    Query strings are dropped because signed CDN links carry credentials
    there.
    """
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return "<invalid url>"

    # hostname (not netloc) so userinfo never reaches the logs
    host = parts.hostname or "<no host>"
    if port:
        host = f"{host}:{port}"
    path = parts.path or "/"
    segments = [s for s in path.split("/") if s]
    if len(segments) > 1:
        path = f"/.../{segments[-1]}"
    return f"{host}{path}"
