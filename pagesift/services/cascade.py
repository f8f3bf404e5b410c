"""Ordered fallback over extraction strategies.

States: IDLE → ATTEMPTING(i) → SUCCEEDED | EXHAUSTED
- ATTEMPTING(i): strategy i runs; an AcquisitionError advances to i+1
- SUCCEEDED: the first record returned is final, later strategies never run
- EXHAUSTED: every strategy failed; CascadeExhaustedError carries the last error

Strategies run strictly one after another against the same URL.
"""

import enum
import logging
import time
from dataclasses import dataclass, field

from pagesift.core.exceptions import AcquisitionError, CascadeExhaustedError
from pagesift.core.metrics import record_attempt, record_cascade_exhausted
from pagesift.schemas.page import PageRecord
from pagesift.services.extraction.base import ExtractionStrategy
from pagesift.services.ip_strategy import IPStrategy

logger = logging.getLogger(__name__)


class CascadeState(enum.Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class AttemptRecord:
    strategy: str
    ok: bool
    elapsed_ms: int
    error: AcquisitionError | None = None

    def to_dict(self) -> dict:
        result = {"strategy": self.strategy, "ok": self.ok, "elapsed_ms": self.elapsed_ms}
        if self.error is not None:
            result["error"] = self.error.reason
            result["status_code"] = self.error.status_code
        return result


@dataclass(frozen=True)
class CascadeResult:
    page: PageRecord
    attempts: list[AttemptRecord] = field(default_factory=list)

    @property
    def strategy(self) -> str:
        return self.page.strategy


class StrategyCascade:
    """Runs strategies in order until one returns a PageRecord."""

    def __init__(self, strategies: list[ExtractionStrategy], ip_strategy: IPStrategy):
        if not strategies:
            raise ValueError("StrategyCascade needs at least one strategy")
        self.strategies = list(strategies)
        self.ip_strategy = ip_strategy
        self.state = CascadeState.IDLE
        self.index = 0
        self.attempts: list[AttemptRecord] = []

    def _transition(self, state: CascadeState, reason: str) -> None:
        logger.info(f"Cascade {self.state.value} -> {state.value}: {reason}")
        self.state = state

    async def _attempt(self, strategy: ExtractionStrategy, url: str) -> PageRecord:
        """Run one strategy; any failure comes back as an AcquisitionError."""
        try:
            return await strategy.extract(url, self.ip_strategy)
        except AcquisitionError:
            raise
        except Exception as e:
            logger.error(f"{strategy.name} raised unexpectedly for {url}", exc_info=True)
            raise AcquisitionError(strategy.name, f"unexpected error: {e!r}") from e

    async def run(self, url: str) -> CascadeResult:
        if self.state is not CascadeState.IDLE:
            raise RuntimeError(f"Cascade already ran (state={self.state.value})")

        last_error: AcquisitionError | None = None
        for i, strategy in enumerate(self.strategies):
            self.index = i
            self._transition(
                CascadeState.ATTEMPTING,
                f"strategy {self.index + 1}/{len(self.strategies)} {strategy.name}",
            )
            started = time.perf_counter()
            try:
                page = await self._attempt(strategy, url)
            except AcquisitionError as e:
                elapsed = time.perf_counter() - started
                last_error = e
                self.attempts.append(AttemptRecord(strategy.name, False, int(elapsed * 1000), e))
                record_attempt(strategy.name, "failed", elapsed)
                logger.warning(f"{strategy.name} failed for {url}: {e}")
                continue

            elapsed = time.perf_counter() - started
            self.attempts.append(AttemptRecord(strategy.name, True, int(elapsed * 1000)))
            record_attempt(strategy.name, "succeeded", elapsed)
            self._transition(CascadeState.SUCCEEDED, f"{strategy.name} returned content")
            return CascadeResult(page=page, attempts=list(self.attempts))

        self._transition(
            CascadeState.EXHAUSTED, f"all {len(self.strategies)} strategies failed"
        )
        record_cascade_exhausted()
        raise CascadeExhaustedError(last_error, self.attempts) from last_error
