"""Exception taxonomy.

- AcquisitionError: one strategy could not obtain usable page content.
  The cascade recovers by moving to the next strategy.
- CascadeExhaustedError: every strategy failed; wraps the last error.
- ConfigurationError: unknown strategy name. Fatal, never retried.
- MalformedDataError: JSON that does not parse. Handled inside the
  relevance engine, which returns an empty result instead.
- ResourceError: a browser failed to close. Logged, never raised past
  the strategy that owns the browser.
- ExtractionError: the language-model extraction call failed.
"""


class PagesiftError(Exception):
    """Base class for every error raised by pagesift."""


class AcquisitionError(PagesiftError):
    """Raised when an extraction strategy cannot obtain page content."""

    def __init__(self, strategy: str, reason: str, status_code: int | None = None):
        self.strategy = strategy
        self.reason = reason
        self.status_code = status_code
        status = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"{strategy} failed{status}: {reason}")


class CascadeExhaustedError(AcquisitionError):
    """Raised when every strategy in a cascade has failed.

    Carries the last strategy's name, status and reason, plus the full
    attempt log for diagnosis.
    """

    def __init__(self, last_error: AcquisitionError, attempts: list | None = None):
        self.last_error = last_error
        self.attempts = list(attempts or [])
        super().__init__(
            last_error.strategy,
            f"all {len(self.attempts)} strategies failed, last: {last_error.reason}",
            last_error.status_code,
        )


class ConfigurationError(PagesiftError):
    """Raised for an unknown strategy name or invalid option."""


class MalformedDataError(PagesiftError):
    """Raised when input that should be JSON cannot be parsed."""


class ResourceError(PagesiftError):
    """Raised when a browser or context fails to release cleanly."""


class ExtractionError(PagesiftError):
    """Raised when structured extraction from the prompt fails."""
