# Core module - shared components for the OLX tracker
# Contains: config, models, storage, formatter, notifier, base_scraper, pipeline, scheduler, commands

from .base_scraper import BaseScraper
from .config import Settings, load_settings
from .events import EventObserver, LoggingObserver, RecordingObserver
from .formatter import MessageFormatter, escape_markdown, should_suppress
from .links import CategoryError, CategoryLinksStore
from .models import EnrichedDetail, Listing
from .notifier import RateLimitError, TelegramError, TelegramNotifier
from .pipeline import ListingPipeline
from .scheduler import PeriodicScheduler, get_last_run_time, record_run_time
from .storage import DedupStore
from .timeparse import format_posted_at, is_fresh, parse_posted_at

__all__ = [
    'BaseScraper',
    'Settings',
    'load_settings',
    'EventObserver',
    'LoggingObserver',
    'RecordingObserver',
    'MessageFormatter',
    'escape_markdown',
    'should_suppress',
    'CategoryError',
    'CategoryLinksStore',
    'EnrichedDetail',
    'Listing',
    'RateLimitError',
    'TelegramError',
    'TelegramNotifier',
    'ListingPipeline',
    'PeriodicScheduler',
    'get_last_run_time',
    'record_run_time',
    'DedupStore',
    'format_posted_at',
    'is_fresh',
    'parse_posted_at',
]
