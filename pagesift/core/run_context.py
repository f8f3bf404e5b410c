"""Extraction ID tracking for log correlation.

Every pipeline invocation runs under a short random ID stored in a
contextvars.ContextVar, so concurrent extractions in one event loop keep
their log lines apart.
"""

import contextvars
import uuid
from contextlib import contextmanager

# Context variable accessible from anywhere in the same async task
extraction_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "extraction_id", default=""
)


@contextmanager
def extraction_scope(extraction_id: str | None = None):
    """Bind an extraction ID for the duration of the block."""
    eid = extraction_id or uuid.uuid4().hex[:12]
    token = extraction_id_var.set(eid)
    try:
        yield eid
    finally:
        extraction_id_var.reset(token)


def get_extraction_id() -> str:
    """Get the current extraction ID (empty string outside an extraction)."""
    return extraction_id_var.get()
