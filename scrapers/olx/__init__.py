# OLX scraper - listing page extraction and detail enrichment

from .detail import BlockedPageError, OlxDetailEnricher
from .scraper import OlxScraper

__all__ = [
    'BlockedPageError',
    'OlxDetailEnricher',
    'OlxScraper',
]
