"""Unit tests for pagesift.services.cascade: ordered strategy fallback."""

import logging

import pytest

from pagesift.core.exceptions import AcquisitionError, CascadeExhaustedError
from pagesift.schemas.page import PageRecord
from pagesift.schemas.strategy import StrategyDescriptor
from pagesift.services.cascade import CascadeState, StrategyCascade
from pagesift.services.extraction.base import ExtractionStrategy
from pagesift.services.ip_strategy import DirectIP


class FakeStrategy(ExtractionStrategy):
    """Strategy that either returns a canned record or raises a canned error."""

    def __init__(self, name: str, result: PageRecord | None = None, error: Exception | None = None):
        self.descriptor = StrategyDescriptor(name=name, description=f"fake {name}")
        self.result = result
        self.error = error
        self.calls: list[str] = []

    async def extract(self, url, ip_strategy):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.result


def _page(strategy: str) -> PageRecord:
    return PageRecord(url="https://shop.example.com/p/1", title=f"from {strategy}", strategy=strategy)


URL = "https://shop.example.com/p/1"


# ---------------------------------------------------------------------------
# Success paths
# ---------------------------------------------------------------------------


class TestCascadeSuccess:
    """First successful strategy wins."""

    @pytest.mark.asyncio
    async def test_falls_through_to_third(self):
        """403, then timeout, then success: C's record is returned."""
        a = FakeStrategy("a", error=AcquisitionError("a", "access forbidden", 403))
        b = FakeStrategy("b", error=AcquisitionError("b", "transport error: timeout"))
        c = FakeStrategy("c", result=_page("c"))
        cascade = StrategyCascade([a, b, c], DirectIP())

        result = await cascade.run(URL)

        assert result.page.title == "from c"
        assert result.strategy == "c"
        assert [x.strategy for x in result.attempts] == ["a", "b", "c"]
        assert [x.ok for x in result.attempts] == [False, False, True]
        assert result.attempts[0].error.status_code == 403
        assert cascade.state is CascadeState.SUCCEEDED
        assert len(a.calls) == len(b.calls) == len(c.calls) == 1

    @pytest.mark.asyncio
    async def test_later_strategies_never_run(self):
        a = FakeStrategy("a", result=_page("a"))
        b = FakeStrategy("b", result=_page("b"))

        result = await StrategyCascade([a, b], DirectIP()).run(URL)

        assert result.strategy == "a"
        assert b.calls == []

    @pytest.mark.asyncio
    async def test_attempt_to_dict(self):
        a = FakeStrategy("a", error=AcquisitionError("a", "access forbidden", 403))
        b = FakeStrategy("b", result=_page("b"))

        result = await StrategyCascade([a, b], DirectIP()).run(URL)

        failed = result.attempts[0].to_dict()
        assert failed["strategy"] == "a"
        assert failed["ok"] is False
        assert failed["error"] == "access forbidden"
        assert failed["status_code"] == 403
        assert "error" not in result.attempts[1].to_dict()


# ---------------------------------------------------------------------------
# Failure paths
# ---------------------------------------------------------------------------


class TestCascadeExhausted:
    """Every strategy failing raises CascadeExhaustedError with the last cause."""

    @pytest.mark.asyncio
    async def test_reports_last_error(self):
        err_a = AcquisitionError("a", "access forbidden", 403)
        err_b = AcquisitionError("b", "unexpected status 500", 500)
        cascade = StrategyCascade(
            [FakeStrategy("a", error=err_a), FakeStrategy("b", error=err_b)], DirectIP()
        )

        with pytest.raises(CascadeExhaustedError) as exc_info:
            await cascade.run(URL)

        exc = exc_info.value
        assert exc.strategy == "b"
        assert exc.status_code == 500
        assert exc.last_error is err_b
        assert exc.__cause__ is err_b
        assert "unexpected status 500" in str(exc)
        assert len(exc.attempts) == 2
        assert cascade.state is CascadeState.EXHAUSTED

    @pytest.mark.asyncio
    async def test_is_an_acquisition_error(self):
        cascade = StrategyCascade(
            [FakeStrategy("a", error=AcquisitionError("a", "boom"))], DirectIP()
        )
        with pytest.raises(AcquisitionError):
            await cascade.run(URL)

    @pytest.mark.asyncio
    async def test_unexpected_exception_wrapped_and_cascade_continues(self, caplog):
        a = FakeStrategy("a", error=RuntimeError("driver crashed"))
        b = FakeStrategy("b", result=_page("b"))

        with caplog.at_level(logging.ERROR):
            result = await StrategyCascade([a, b], DirectIP()).run(URL)

        assert result.strategy == "b"
        err = result.attempts[0].error
        assert isinstance(err, AcquisitionError)
        assert err.strategy == "a"
        assert "driver crashed" in err.reason
        assert isinstance(err.__cause__, RuntimeError)
        assert "a raised unexpectedly" in caplog.text


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class TestCascadeState:
    def test_starts_idle(self):
        cascade = StrategyCascade([FakeStrategy("a", result=_page("a"))], DirectIP())
        assert cascade.state is CascadeState.IDLE

    def test_empty_strategy_list_rejected(self):
        with pytest.raises(ValueError):
            StrategyCascade([], DirectIP())

    @pytest.mark.asyncio
    async def test_runs_once(self):
        cascade = StrategyCascade([FakeStrategy("a", result=_page("a"))], DirectIP())
        await cascade.run(URL)
        with pytest.raises(RuntimeError):
            await cascade.run(URL)

    @pytest.mark.asyncio
    async def test_transitions_logged(self, caplog):
        a = FakeStrategy("a", error=AcquisitionError("a", "boom"))
        b = FakeStrategy("b", result=_page("b"))

        with caplog.at_level(logging.INFO, logger="pagesift.services.cascade"):
            await StrategyCascade([a, b], DirectIP()).run(URL)

        assert "Cascade idle -> attempting: strategy 1/2 a" in caplog.text
        assert "Cascade attempting -> attempting: strategy 2/2 b" in caplog.text
        assert "Cascade attempting -> succeeded" in caplog.text

    @pytest.mark.asyncio
    async def test_strategies_receive_ip_strategy(self):
        seen = []

        class Recording(FakeStrategy):
            async def extract(self, url, ip_strategy):
                seen.append(ip_strategy)
                return _page(self.name)

        ip = DirectIP()
        await StrategyCascade([Recording("a")], ip).run(URL)
        assert seen == [ip]
