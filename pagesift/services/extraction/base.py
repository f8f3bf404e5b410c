from abc import ABC, abstractmethod

from pagesift.schemas.page import PageRecord
from pagesift.schemas.strategy import StrategyDescriptor
from pagesift.services.ip_strategy import IPStrategy


class ExtractionStrategy(ABC):
    """One way of turning a URL into a PageRecord.

    ``extract`` returns a record on success and raises AcquisitionError when
    no usable content could be obtained. It never returns a partial failure.
    """

    descriptor: StrategyDescriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @abstractmethod
    async def extract(self, url: str, ip_strategy: IPStrategy) -> PageRecord:
        ...


def elapsed_ms(started: float, now: float) -> int:
    return int((now - started) * 1000)
