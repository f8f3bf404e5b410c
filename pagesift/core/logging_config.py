"""Structured logging configuration.

Supports two modes via LOG_FORMAT env var:
- "json" (default): JSON-formatted log lines carrying the extraction_id
- "text" (for development): Human-readable log lines
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from pagesift.core.run_context import get_extraction_id

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(extraction_id)s] %(message)s"


class ExtractionIDFilter(logging.Filter):
    """Inject extraction_id into every log record."""

    def filter(self, record):
        record.extraction_id = get_extraction_id()
        return True


class PlaywrightPipeFilter(logging.Filter):
    """Suppress Playwright's noisy 'pipe closed by peer' warnings.

    When a browser is torn down mid-write Playwright logs this once per
    pending message, which drowns out the cascade's own transition logs.
    """

    def filter(self, record):
        return "pipe closed by peer" not in record.getMessage()


def configure_logging(
    log_format: str = "json", log_level: str = "INFO", stream=None
):
    """Configure root logger with the specified format.

    Args:
        log_format: "json" or "text"
        log_level: Python log level name
        stream: output stream, stdout by default
    """
    root = logging.getLogger()
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(ExtractionIDFilter())
    handler.addFilter(PlaywrightPipeFilter())

    if log_format == "json":
        formatter = JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s %(extraction_id)s",
            rename_fields={
                "levelname": "level",
                "name": "logger",
                "asctime": "timestamp",
            },
        )
    else:
        formatter = logging.Formatter(_TEXT_FORMAT)

    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    logging.getLogger("playwright").setLevel(logging.ERROR)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
