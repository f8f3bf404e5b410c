from pagesift.services.extraction.base import ExtractionStrategy
from pagesift.services.extraction.browser import BrowserStrategy
from pagesift.services.extraction.fetch import FetchStrategy
from pagesift.services.extraction.fetch_headers import FetchHeadersStrategy

__all__ = [
    "ExtractionStrategy",
    "BrowserStrategy",
    "FetchStrategy",
    "FetchHeadersStrategy",
]
